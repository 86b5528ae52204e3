"""Project directory renames, collected during a run and applied afterwards.

Workers only *propose* (project_dir -> project_name). The first proposal for a
directory wins and is applied; a later one with a different name is reported
as a conflict. The apply pass is sequential and records every failure per entry
instead of raising.
"""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass, field

log = logging.getLogger(__name__)


@dataclass
class _Proposal:
    project_dir: str
    name: str
    source: str
    conflicts: list[tuple[str, str]] = field(default_factory=list)


@dataclass(frozen=True)
class RenameOutcome:
    project_dir: str
    target: str
    status: str  # renamed | unchanged | planned | conflict | error
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.status in ("renamed", "unchanged", "planned")


def _norm_key(project_dir: str) -> str:
    return os.path.normcase(os.path.normpath(project_dir.replace("\\", "/")))


def _apply_order(p: _Proposal) -> tuple[int, str]:
    key = _norm_key(p.project_dir)
    return (-len(key.split(os.sep)), key)


class ProjectRenames:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._items: dict[str, _Proposal] = {}

    def propose(self, project_dir: str, project_name: str, *, source: str = "") -> bool:
        """Register a rename; return False if it conflicts with an earlier proposal."""
        key = _norm_key(project_dir)
        with self._lock:
            cur = self._items.get(key)
            if cur is None:
                self._items[key] = _Proposal(project_dir=project_dir, name=project_name, source=source)
                return True
            if cur.name == project_name:
                return True
            cur.conflicts.append((project_name, source))
            return False

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def apply(self, *, dry_run: bool = False) -> list[RenameOutcome]:
        """Rename every proposed directory, deepest first.

        Nested project dirs go before their parents so their recorded paths
        still exist when their turn comes. Each later duplicate with a different
        name adds its own ``conflict`` row; the first proposal is still applied.
        """
        with self._lock:
            items = sorted(self._items.values(), key=_apply_order)

        out: list[RenameOutcome] = []
        for p in items:
            parent, current = os.path.split(os.path.normpath(p.project_dir))
            target = os.path.join(parent, p.name)
            out.append(self._apply_one(p, current, target, dry_run=dry_run))
            for name, source in p.conflicts:
                detail = f"{name} (from {source or '?'}) loses to {p.name} (from {p.source or '?'})"
                out.append(RenameOutcome(p.project_dir, os.path.join(parent, name), "conflict", detail))
        return out

    @staticmethod
    def _apply_one(p: _Proposal, current: str, target: str, *, dry_run: bool) -> RenameOutcome:
        if current == p.name:
            return RenameOutcome(p.project_dir, target, "unchanged")
        if not os.path.isdir(p.project_dir):
            return RenameOutcome(p.project_dir, target, "error", "project directory not found")
        if os.path.exists(target):
            return RenameOutcome(p.project_dir, target, "error", "target already exists")
        if dry_run:
            return RenameOutcome(p.project_dir, target, "planned")
        try:
            os.rename(p.project_dir, target)
        except OSError as e:
            return RenameOutcome(p.project_dir, target, "error", str(e))
        log.info("renamed %s -> %s", p.project_dir, target)
        return RenameOutcome(p.project_dir, target, "renamed")
