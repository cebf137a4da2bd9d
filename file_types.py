"""Static extension table deciding Content-Type and gzip eligibility."""

from __future__ import annotations

import os
from dataclasses import dataclass
from types import MappingProxyType


@dataclass(frozen=True, slots=True)
class FileTypeRule:
    extension: str
    mime_type: str | None
    compressible: bool

    @property
    def known(self) -> bool:
        return self.mime_type is not None


def _rule(extension: str, mime_type: str, compressible: bool) -> tuple[str, FileTypeRule]:
    return extension, FileTypeRule(extension, mime_type, compressible)


FILE_TYPES = MappingProxyType(
    dict(
        [
            _rule(".bin", "application/octet-stream", False),
            _rule(".glsl", "text/plain", True),
            _rule(".htm", "text/html", True),
            _rule(".html", "text/html", True),
            _rule(".css", "text/css", True),
            _rule(".js", "text/javascript", True),
            _rule(".json", "application/json", True),
            _rule(".ttf", "application/x-font-ttf", True),
            _rule(".png", "image/png", False),
            _rule(".jpg", "image/jpeg", False),
            _rule(".jpeg", "image/jpeg", False),
        ]
    )
)


def classify(extension: str) -> FileTypeRule:
    """Look up an extension such as ``.HTML``; unknown ones get an unset rule."""
    normalized = extension.lower()
    rule = FILE_TYPES.get(normalized)
    if rule is None:
        return FileTypeRule(normalized, None, False)
    return rule


def classify_path(file_path: str) -> FileTypeRule:
    _root, extension = os.path.splitext(file_path)
    return classify(extension)
