"""Aggregated mini-report for ``posterguard run``.

Determinism note:
The report is built from the sorted task list, so the serialized JSON is stable
across runs for the same inputs and outcomes, regardless of worker completion
order. We DO NOT embed timestamps or environment details.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path
from typing import Any

from posterguard.dispatcher import OUTCOME_SKIPPED, AssetTask
from posterguard.limits import format_size
from posterguard.renames import RenameOutcome

REPORT_SCHEMA = "posterguard.run_report.v1"


def _safe_int(x: object, default: int = 0) -> int:
    try:
        return int(x)  # type: ignore[arg-type]
    except Exception:
        return default


def _safe_float(x: object, default: float = 0.0) -> float:
    try:
        if x is None:
            return default
        return float(x)  # type: ignore[arg-type]
    except Exception:
        return default


def _norm_ext(path: str) -> str:
    suf = Path(path).suffix.lower()
    return suf if suf else "(none)"


def _bytes_h(n: int) -> str:
    # decimal units, like the budgets
    return format_size(n) if n >= 0 else f"-{format_size(-n)}"


def _top_rows(stats: dict[str, dict[str, int]], k: int) -> list[dict[str, Any]]:
    rows: list[dict[str, Any]] = []
    for key, v in stats.items():
        in_b = _safe_int(v.get("in"), 0)
        out_b = _safe_int(v.get("out"), 0)
        rows.append(
            {
                "key": key,
                "files": _safe_int(v.get("files"), 0),
                "in": in_b,
                "out": out_b,
                "saved": in_b - out_b,
                "ratio": float(out_b / in_b) if in_b else 0.0,
            }
        )
    rows.sort(key=lambda rr: (-_safe_int(rr.get("saved"), 0), _safe_int(rr.get("out"), 0), str(rr.get("key"))))
    return rows[: max(0, int(k))]


def build_run_report(
    tasks: Iterable[AssetTask],
    renames: list[RenameOutcome] | None = None,
) -> dict[str, Any]:
    rows = sorted(tasks, key=lambda t: t.path)

    files_ok = files_fail = files_skipped = 0
    total_in = total_out = 0
    family_stats: dict[str, dict[str, int]] = {}
    ext_stats: dict[str, dict[str, int]] = {}
    outcomes: dict[str, int] = {}
    error_kinds: dict[str, int] = {}
    errors: list[dict[str, Any]] = []
    files: list[dict[str, Any]] = []

    for t in rows:
        outcomes[t.outcome or "(none)"] = outcomes.get(t.outcome or "(none)", 0) + 1
        if not t.ok:
            files_fail += 1
            error_kinds[t.error_kind] = error_kinds.get(t.error_kind, 0) + 1
            errors.append({"path": t.path, "kind": t.error_kind, "error": t.error})
            continue
        if t.outcome == OUTCOME_SKIPPED:
            files_skipped += 1
            continue

        files_ok += 1
        in_sz = max(0, t.original_size)
        out_sz = max(0, t.achieved_size)
        total_in += in_sz
        total_out += out_sz

        fam = t.policy.family if t.policy else "(none)"
        for stats, key in ((family_stats, fam), (ext_stats, _norm_ext(t.path))):
            s = stats.setdefault(key, {"files": 0, "in": 0, "out": 0})
            s["files"] += 1
            s["in"] += in_sz
            s["out"] += out_sz

        files.append(
            {
                "path": t.path,
                "family": fam,
                "limit": t.policy.byte_limit if t.policy else -1,
                "project_dir": t.project_dir,
                "project_name": t.project_name,
                "in_size": in_sz,
                "out_size": out_sz,
                "effort": t.effort,
                "outcome": t.outcome,
            }
        )

    rename_rows = [
        {"project_dir": r.project_dir, "target": r.target, "status": r.status, "detail": r.detail}
        for r in (renames or [])
    ]

    return {
        "schema": REPORT_SCHEMA,
        "files_ok": files_ok,
        "files_fail": files_fail,
        "files_skipped": files_skipped,
        "total_in": total_in,
        "total_out": total_out,
        "ratio": float(total_out / total_in) if total_in else 0.0,
        "outcomes": dict(sorted(outcomes.items())),
        "error_kinds": dict(sorted(error_kinds.items())),
        "top_families": _top_rows(family_stats, 10),
        "top_extensions": _top_rows(ext_stats, 10),
        "files": files,
        "errors": errors[:200],
        "renames": rename_rows,
    }


def render_run_report_text(rep: dict[str, Any]) -> str:
    lines: list[str] = []
    lines.append("posterguard run - mini-report\n")
    lines.append(
        f"files_ok={rep.get('files_ok')} files_fail={rep.get('files_fail')} files_skipped={rep.get('files_skipped')}\n"
    )
    lines.append(
        f"total_in={_bytes_h(_safe_int(rep.get('total_in'), 0))} total_out={_bytes_h(_safe_int(rep.get('total_out'), 0))} ratio={_safe_float(rep.get('ratio'), 0.0):.3f}\n\n"
    )

    lines.append("Outcomes\n")
    oc = rep.get("outcomes") or {}
    if not oc:
        lines.append("  (no data)\n\n")
    else:
        for k, v in oc.items():
            lines.append(f"  {str(k):12s} {_safe_int(v, 0)}\n")
        lines.append("\n")

    lines.append("Top families (by savings)\n")
    tf = rep.get("top_families") or []
    if not tf:
        lines.append("  (no data)\n\n")
    else:
        for r in tf:
            lines.append(
                f"  {str(r.get('key')):10s} files={_safe_int(r.get('files'), 0):4d} saved={_bytes_h(_safe_int(r.get('saved'), 0))} ratio={_safe_float(r.get('ratio'), 0.0):.3f}\n"
            )
        lines.append("\n")

    errs = rep.get("errors") or []
    if errs:
        lines.append("ERRORS\n========\n")
        for e in errs:
            lines.append(f"  {e.get('kind')}: {e.get('path')}\n    {e.get('error')}\n")
        lines.append("========\n\n")

    rn = rep.get("renames") or []
    if rn:
        lines.append("Project renames\n")
        for r in rn:
            detail = f" ({r.get('detail')})" if r.get("detail") else ""
            lines.append(f"  [{r.get('status')}] {r.get('project_dir')} -> {r.get('target')}{detail}\n")
        lines.append("\n")

    return "".join(lines)
