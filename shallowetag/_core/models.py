from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

from shallowetag._core._headers import Headers


@dataclass
class Request:
    method: str
    url: str
    headers: Headers = field(default_factory=Headers)


@dataclass
class Response:
    """
    Snapshot of the response as set by the downstream application.

    Status code and headers are visible here as soon as the application
    sets them. The body is never stored on the snapshot; it lives in the
    `ContentCachingBuffer` owned by the capturing state.
    """

    status_code: int = 200
    headers: Headers = field(default_factory=Headers)


class ContentCachingBuffer:
    """
    In-memory sink for the response body written by the downstream application.

    The buffer is handed out exactly once via `release`, or thrown away via
    `discard`. After either call it holds no bytes and `released` is True.
    """

    def __init__(self) -> None:
        self._chunks: List[bytes] = []
        self._size = 0
        self.released = False

    def write(self, chunk: bytes) -> None:
        if self.released:
            raise RuntimeError("Cannot write to a released content buffer")
        if chunk:
            self._chunks.append(bytes(chunk))
            self._size += len(chunk)

    @property
    def content(self) -> bytes:
        """The captured body as one contiguous byte string."""
        if len(self._chunks) > 1:
            self._chunks = [b"".join(self._chunks)]
        return self._chunks[0] if self._chunks else b""

    def release(self) -> bytes:
        """Return the captured bytes and clear the buffer."""
        content = self.content
        self.discard()
        return content

    def discard(self) -> None:
        self._chunks = []
        self._size = 0
        self.released = True

    def __len__(self) -> int:
        return self._size

    def __repr__(self) -> str:
        return f"<ContentCachingBuffer size={self._size} released={self.released}>"
