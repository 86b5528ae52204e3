"""PathKey: a decomposed path plus a growing trailing suffix window.

    segments = ("some", "path", "PROJECT", "google_apple_feed", "jpg", "g_iconic_poster_600x800.jpg")

    level 0 -> ./g_iconic_poster_600x800.jpg
    level 1 -> ./jpg/g_iconic_poster_600x800.jpg
    level 2 -> ./google_apple_feed/jpg/g_iconic_poster_600x800.jpg

Everything strictly above the window is the project directory; the segment right
above it is the project name (unless overridden).
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from typing import Final

from posterguard.errors import MalformedLeaf
from posterguard.registry import PolicyRecord, Registry

LEAF_TAG_RE: Final[re.Pattern[str]] = re.compile(r"^(?:.*_)?(\d+x\d+|logo)[._].*$")

LOGO_TAG: Final[str] = "logo"


def split_segments(path: str | os.PathLike[str]) -> tuple[str, ...]:
    p = os.path.normpath(os.fspath(path)).replace("\\", "/")
    if p in ("", "."):
        return ()
    return tuple(p.split("/"))


def leaf_size_tag(leaf: str) -> str:
    """Return the size/logo tag of a leaf ("600x800", "logo").

    Exactly one match is required; the pattern is anchored, so in practice this
    rejects leaves with no tag at all.
    """
    found = LEAF_TAG_RE.findall(leaf)
    if len(found) != 1:
        raise MalformedLeaf(f"{leaf!r}: expected exactly one size tag, found {len(found)}")
    return found[0]


@dataclass
class PathKey:
    segments: tuple[str, ...]
    size_tag: str
    name: str = ""
    level: int = 0

    @classmethod
    def build(cls, path: str | os.PathLike[str], name: str = "") -> "PathKey":
        segments = split_segments(path)
        if not segments:
            raise MalformedLeaf(f"empty path: {os.fspath(path)!r}")
        return cls(segments=segments, size_tag=leaf_size_tag(segments[-1]), name=name)

    def __len__(self) -> int:
        return len(self.segments)

    @property
    def base(self) -> str:
        return self.segments[-1]

    @property
    def _window_start(self) -> int:
        return len(self.segments) - 1 - self.level

    @property
    def suffix(self) -> str:
        return "./" + "/".join(self.segments[self._window_start :])

    def next_level(self) -> bool:
        if self.level + 1 >= len(self.segments):
            return False
        self.level += 1
        return True

    def policy(self, registry: Registry) -> PolicyRecord | None:
        return registry.get(self.suffix)

    @property
    def project_dir(self) -> str:
        return "/".join(self.segments[: self._window_start])

    @property
    def project_name(self) -> str:
        if self.name:
            return self.name
        idx = self._window_start - 1
        return self.segments[idx] if idx >= 0 else ""
