"""Tag-metadata sources used by the resolver fallback.

The filename tag grammar lives outside this project. What we consume is a small
contract (``TagSource``) plus two derived values:

  - a synthetic leaf path ``<dir>/<sizetag>[_<aligntag>]<ext>``
  - a synthetic project name built from naming tags

Tag sources are built by engines that are not safe for concurrent construction,
so ``TagSourceFactory`` serializes ``build()`` behind one lock. Reading an already
built source from several workers is fine.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Final, Protocol

from posterguard.errors import InsufficientTags, NoFallbackSource, UsageError

log = logging.getLogger(__name__)

# name, season-number, subname, episode-number, episode-name, comment, year, format-quality
NAME_TAGS: Final[tuple[str, ...]] = ("name", "sxx", "sname", "exx", "ename", "comment", "year", "sdhd")


class TagSource(Protocol):
    @property
    def source(self) -> str: ...

    def get_tag(self, name: str) -> str:
        """Return the tag value, raise KeyError if the tag is missing."""
        ...

    def state(self) -> Exception | None: ...


@dataclass(frozen=True)
class MappingTagSource:
    """Dict-backed tag source (sidecar JSON, tests)."""

    source: str
    tags: Mapping[str, str] = field(default_factory=dict)
    error: Exception | None = None

    def get_tag(self, name: str) -> str:
        return self.tags[name]

    def state(self) -> Exception | None:
        return self.error


TagBuilder = Callable[[str], "TagSource | None"]


class TagSourceFactory:
    def __init__(self, builder: TagBuilder) -> None:
        self._builder = builder
        self._lock = threading.Lock()

    def build(self, path: str | os.PathLike[str]) -> TagSource | None:
        src = os.fspath(path)
        with self._lock:
            try:
                return self._builder(src)
            except Exception as e:
                # a broken source is still a value: the resolver sees it through state()
                log.debug("tag source for %s failed: %s", src, e)
                return MappingTagSource(source=src, error=e)


def _usable(tags: TagSource | None) -> TagSource:
    if tags is None:
        raise NoFallbackSource("fallback: no tag source")
    err = tags.state()
    if err is not None:
        raise NoFallbackSource(f"fallback: invalid tag source for {tags.source}: {err}")
    return tags


def _opt_tag(tags: TagSource, name: str) -> str:
    try:
        return (tags.get_tag(name) or "").strip()
    except KeyError:
        return ""


def path_from_tags(tags: TagSource | None) -> str:
    tn = _usable(tags)
    size = _opt_tag(tn, "sizetag")
    if not size:
        raise NoFallbackSource(f"fallback: {tn.source} has no 'sizetag'")
    base = size
    align = _opt_tag(tn, "aligntag")
    if align:
        base += "_" + align
    base += os.path.splitext(tn.source)[1]
    return os.path.join(os.path.dirname(tn.source), base)


def name_from_tags(tags: TagSource | None) -> str:
    tn = _usable(tags)
    parts = [v for v in (_opt_tag(tn, t) for t in NAME_TAGS) if v]
    if not parts:
        raise InsufficientTags(f"{tn.source} does not have enough tags to construct a project name")
    return "_".join(parts)


def load_tag_sidecar(arg: str) -> TagBuilder:
    """Load ``{"<file name or path>": {"tag": "value"}}`` from '@file.json' or inline JSON.

    Lookup order for a path: exact path, then its base name. Unknown paths have no
    tag source (fallback unavailable).
    """
    s = arg.strip()
    if not s:
        raise UsageError("tags: empty argument")
    if s.startswith("@"):
        p = Path(s[1:]).expanduser()
        if not p.is_file():
            raise UsageError(f"tags: file not found: {p}")
        s = p.read_text(encoding="utf-8")
    try:
        obj = json.loads(s)
    except Exception as e:
        raise UsageError(f"tags: invalid JSON: {e}") from e
    if not isinstance(obj, dict):
        raise UsageError("tags: JSON root must be an object")

    table: dict[str, dict[str, str]] = {}
    for key, tags in obj.items():
        if not isinstance(tags, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in tags.items()
        ):
            raise UsageError(f"tags: entry {key!r} must be a string->string object")
        table[str(key).replace("\\", "/")] = dict(tags)

    def _build(src: str) -> TagSource | None:
        norm = src.replace("\\", "/")
        tags = table.get(norm)
        if tags is None:
            tags = table.get(os.path.basename(norm))
        if tags is None:
            return None
        return MappingTagSource(source=src, tags=tags)

    return _build
