from __future__ import annotations

import time
from typing import Callable

from cachetools import TTLCache

from reelpipe.core.platform_settings import PlatformSettings, platform_settings


def metadata_cache(
    settings: PlatformSettings | None = None,
    timer: Callable[[], float] = time.monotonic,
) -> TTLCache:
    """
    Per-Downloader metadata cache keyed by (platform, identifier).

    Nothing is shared at module level; `timer` is injectable for tests.
    """
    s = settings or platform_settings
    return TTLCache(
        maxsize=max(1, int(s.metadata_cache_max_entries)),
        ttl=float(s.metadata_cache_ttl_sec),
        timer=timer,
    )
