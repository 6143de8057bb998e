from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol


@dataclass(frozen=True)
class VideoRef:
    """Either inline bytes or a URL the model (or we) can fetch."""

    data: bytes | None = None
    url: str | None = None
    mime_type: str = "video/mp4"
    filename: str | None = None
    # request headers the url needs (e.g. a Referer for TikTok CDN links)
    headers: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.data and not self.url:
            raise ValueError("VideoRef needs bytes or a url")

    @property
    def is_inline(self) -> bool:
        return bool(self.data)


class ModelClient(Protocol):
    """generate(prompt, media?) -> raw text. The caller owns all parsing."""

    name: str

    def generate(self, prompt: str, media: VideoRef | None = None) -> str: ...
