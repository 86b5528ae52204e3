"""Batch driver: a bounded worker pool feeding files through resolve -> reduce.

Each file is an independent task. Errors are recorded on the task and never abort
siblings; nothing is retried here. Completion order across files is not
deterministic, the sink sorts by path when asked.
"""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path

from posterguard.errors import PosterGuardError
from posterguard.limits import format_size
from posterguard.probe import deep_check
from posterguard.reducer import codec_family, reduce_to_budget
from posterguard.registry import DEFAULT_REGISTRY, PolicyRecord, Registry
from posterguard.renames import ProjectRenames
from posterguard.resolver import resolve
from posterguard.tags import TagSourceFactory
from posterguard.tools import Encoders

log = logging.getLogger(__name__)

OUTCOME_SKIPPED = "skipped"
OUTCOME_FAILED = "failed"

ERROR_KIND_UNEXPECTED = "Unexpected"

_FORMAT_FAMILY = {"jpg": "jpeg", "png": "png"}


@dataclass
class AssetTask:
    path: str
    policy: PolicyRecord | None = None
    project_dir: str = ""
    project_name: str = ""
    original_size: int = -1
    achieved_size: int = -1
    effort: int | None = None
    outcome: str = ""
    error: str = ""
    error_kind: str = ""

    @property
    def ok(self) -> bool:
        return not self.error


class ResultSink:
    """Thread-safe collector of finished tasks."""

    def __init__(self, total: int = 0) -> None:
        self._lock = threading.Lock()
        self._tasks: list[AssetTask] = []
        self.total = int(total)

    def add(self, task: AssetTask) -> int:
        """Store a finished task; return its completion index (1-based)."""
        with self._lock:
            self._tasks.append(task)
            return len(self._tasks)

    def tasks(self) -> list[AssetTask]:
        with self._lock:
            return sorted(self._tasks, key=lambda t: t.path)

    @property
    def ok(self) -> int:
        with self._lock:
            return sum(1 for t in self._tasks if t.ok)

    @property
    def failed(self) -> int:
        with self._lock:
            return sum(1 for t in self._tasks if not t.ok)


def iter_asset_files(paths: Iterable[str | os.PathLike[str]], registry: Registry = DEFAULT_REGISTRY) -> list[str]:
    """Expand directories (deterministic order); explicit files are kept as given."""
    out: list[str] = []
    for raw in paths:
        p = Path(raw)
        if p.is_dir():
            found = [q for q in p.rglob("*") if q.is_file() and q.suffix.lower() in registry.extensions]
            found.sort(key=lambda q: q.relative_to(p).as_posix())
            out.extend(str(q) for q in found)
        else:
            out.append(str(p))
    return out


def process_asset(
    path: str,
    *,
    encoders: Encoders,
    registry: Registry = DEFAULT_REGISTRY,
    tag_factory: TagSourceFactory | None = None,
    deep: bool = False,
    formats: str = "all",
    renames: ProjectRenames | None = None,
) -> AssetTask:
    task = AssetTask(path=path)
    try:
        want = _FORMAT_FAMILY.get(formats)
        if want is not None and codec_family(path) != want:
            task.outcome = OUTCOME_SKIPPED
            return task

        tags = tag_factory.build(path) if tag_factory is not None else None
        res = resolve(path, tags, registry=registry)
        task.policy = res.policy
        task.project_dir = res.project_dir
        task.project_name = res.project_name

        if deep:
            deep_check(path, res.size_tag)

        task.original_size = os.path.getsize(path)
        rr = reduce_to_budget(path, res.policy.byte_limit, encoders)
        task.achieved_size = rr.achieved_size
        task.effort = rr.effort
        task.outcome = rr.outcome

        if renames is not None and res.used_fallback and res.project_dir:
            renames.propose(res.project_dir, res.project_name, source=path)
    except PosterGuardError as e:
        task.outcome = OUTCOME_FAILED
        task.error = str(e)
        task.error_kind = e.kind
    except OSError as e:
        task.outcome = OUTCOME_FAILED
        task.error = str(e)
        task.error_kind = "OSError"
    except Exception as e:
        # still a per-file failure
        log.debug("unexpected error on %s", path, exc_info=True)
        task.outcome = OUTCOME_FAILED
        task.error = f"{type(e).__name__}: {e}"
        task.error_kind = ERROR_KIND_UNEXPECTED
    return task


def _log_task(task: AssetTask, idx: int, total: int) -> None:
    name = os.path.basename(task.path)
    if not task.ok:
        log.error("- %d/%d %s %s: %s", idx, total, name, task.error_kind, task.error)
    elif task.outcome == OUTCOME_SKIPPED:
        log.info("  %d/%d %s skipped", idx, total, name)
    else:
        limit = task.policy.byte_limit if task.policy else -1
        log.info(
            "+ %d/%d %s %s %s (limit %s, q=%s)",
            idx,
            total,
            name,
            task.outcome,
            format_size(task.achieved_size),
            format_size(limit),
            task.effort,
        )


def run_batch(
    paths: Iterable[str],
    *,
    encoders: Encoders,
    jobs: int = 1,
    registry: Registry = DEFAULT_REGISTRY,
    tag_factory: TagSourceFactory | None = None,
    deep: bool = False,
    formats: str = "all",
    renames: ProjectRenames | None = None,
    sink: ResultSink | None = None,
) -> ResultSink:
    files = list(paths)
    sink = sink if sink is not None else ResultSink()
    sink.total = len(files)

    def _one(p: str) -> AssetTask:
        return process_asset(
            p,
            encoders=encoders,
            registry=registry,
            tag_factory=tag_factory,
            deep=deep,
            formats=formats,
            renames=renames,
        )

    def _finish(task: AssetTask) -> None:
        _log_task(task, sink.add(task), sink.total)

    if jobs > 1 and len(files) > 1:
        with ThreadPoolExecutor(max_workers=int(jobs)) as ex:
            futs = [ex.submit(_one, p) for p in files]
            for fut in as_completed(futs):
                _finish(fut.result())
    else:
        for p in files:
            _finish(_one(p))
    return sink
