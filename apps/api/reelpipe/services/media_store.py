from __future__ import annotations

import logging
import shutil
from pathlib import Path

from reelpipe.core.config import settings

logger = logging.getLogger(__name__)


class LocalMediaStore:
    """Downloaded bytes on local disk, one directory per job."""

    def __init__(self, root: str | Path | None = None) -> None:
        self.root = Path(root or settings.media_dir)

    def _job_dir(self, job_id: str) -> Path:
        return self.root / job_id

    def save(self, job_id: str, filename: str, data: bytes) -> str:
        d = self._job_dir(job_id)
        d.mkdir(parents=True, exist_ok=True)
        path = d / Path(filename).name
        path.write_bytes(data)
        return str(path)

    def exists(self, path: str | None) -> bool:
        return bool(path) and Path(path).is_file()

    def load(self, path: str) -> bytes:
        return Path(path).read_bytes()

    def delete(self, job_id: str) -> None:
        d = self._job_dir(job_id)
        if d.exists():
            shutil.rmtree(d, ignore_errors=True)
            logger.info("removed local media for job %s", job_id)
