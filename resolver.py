"""Map a request target onto the served directory tree.

The join mirrors a plain path join followed by normalization: ``..`` segments
collapse, but nothing stops a crafted target from climbing above the root
directory. Clients that normalize URLs never send such targets; raw sockets can.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from urllib.parse import unquote, urlsplit

from config import INDEX_FILE
from file_types import FileTypeRule, classify_path


@dataclass(frozen=True, slots=True)
class Redirect:
    location: str


@dataclass(frozen=True, slots=True)
class NotFound:
    path: str


@dataclass(frozen=True, slots=True)
class Serve:
    absolute_path: str
    rule: FileTypeRule


ResolvedTarget = Redirect | NotFound | Serve


def request_path(request_url: str) -> str:
    """Return the raw path component, dropping query string and fragment."""
    return urlsplit(request_url).path


def join_root(working_directory: str, raw_path: str) -> str:
    relative = unquote(raw_path).lstrip("/")
    return os.path.normpath(os.path.join(working_directory, relative))


def resolve(request_url: str, working_directory: str) -> ResolvedTarget:
    raw_path = request_path(request_url)
    candidate = join_root(working_directory, raw_path)

    if os.path.isdir(candidate):
        if not raw_path.endswith("/"):
            return Redirect(location=raw_path + "/")
        candidate = os.path.join(candidate, INDEX_FILE)

    if os.path.isfile(candidate):
        return Serve(absolute_path=candidate, rule=classify_path(candidate))
    return NotFound(path=candidate)
