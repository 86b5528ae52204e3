"""posterguard CLI.

This is the stable CLI entrypoint (console-script: ``posterguard``).

Commands:
  check            resolve paths against the naming conventions (read-only)
  run              resolve + deep check + reduce to budget (+ project renames)
  registry         list the policy table
  config-validate  validate a run config
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path

from posterguard.errors import EXIT_FILES_FAILED, EXIT_OK, PosterGuardError
from posterguard.run_config import FORMATS, RunConfig, RunConfigError, load_run_config


def _add_common_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--debug", action="store_true", help="Show stack traces and debug logs")


def _setup_logging(debug: bool, verbose: bool = False) -> None:
    level = logging.DEBUG if debug else (logging.INFO if verbose else logging.WARNING)
    logging.basicConfig(level=level, format="[posterguard] %(levelname)s %(name)s: %(message)s")


def _tag_factory(tags_arg: str | None):
    if not tags_arg:
        return None
    from posterguard.tags import TagSourceFactory, load_tag_sidecar

    return TagSourceFactory(load_tag_sidecar(tags_arg))


def _cmd_check(paths: list[Path], *, tags_arg: str | None, deep: bool) -> int:
    from posterguard.dispatcher import iter_asset_files
    from posterguard.limits import format_size
    from posterguard.probe import deep_check
    from posterguard.resolver import resolve

    factory = _tag_factory(tags_arg)
    n_fail = 0
    for p in iter_asset_files(paths):
        try:
            tags = factory.build(p) if factory is not None else None
            res = resolve(p, tags)
            if deep:
                deep_check(p, res.size_tag)
        except PosterGuardError as e:
            n_fail += 1
            print(f"[posterguard] {e.kind}: {p}: {e}", file=sys.stderr)
            continue
        fb = " (fallback)" if res.used_fallback else ""
        print(
            f"{p}\t{res.suffix}\t{res.policy.family}\t{format_size(res.policy.byte_limit)}"
            f"\t{res.project_dir}\t{res.project_name}{fb}"
        )
    return EXIT_FILES_FAILED if n_fail else EXIT_OK


def _cmd_run(
    paths: list[Path],
    *,
    cfg: RunConfig,
    jobs: int | None,
    formats: str | None,
    tags_arg: str | None,
    deep: bool,
    rename: bool,
    dry_run: bool,
    json_out: Path | None,
) -> int:
    from posterguard.dispatcher import iter_asset_files, run_batch
    from posterguard.renames import ProjectRenames
    from posterguard.report import build_run_report, render_run_report_text

    # precedence: CLI flag > config > default
    n_jobs = int(jobs) if jobs is not None else (cfg.jobs if cfg.jobs is not None else (os.cpu_count() or 1))
    renames = ProjectRenames() if (rename or cfg.rename_projects) else None

    sink = run_batch(
        iter_asset_files(paths),
        encoders=cfg.tools.build(),
        jobs=n_jobs,
        tag_factory=_tag_factory(tags_arg),
        deep=deep or cfg.deep_check,
        formats=formats or cfg.formats,
        renames=renames,
    )

    # renames are a separate sequential phase, after every worker is done
    rename_outcomes = renames.apply(dry_run=dry_run) if renames is not None else None

    rep = build_run_report(sink.tasks(), rename_outcomes)
    if json_out is not None:
        json_out.parent.mkdir(parents=True, exist_ok=True)
        json_out.write_text(json.dumps(rep, ensure_ascii=False, indent=2), encoding="utf-8")
    print(render_run_report_text(rep), end="")

    failed = sink.failed or any(r["status"] in ("conflict", "error") for r in rep["renames"])
    return EXIT_FILES_FAILED if failed else EXIT_OK


def _cmd_registry() -> int:
    from posterguard.limits import format_size
    from posterguard.registry import DEFAULT_REGISTRY

    for suffix, rec in sorted(DEFAULT_REGISTRY.items(), key=lambda kv: (kv[1].family, kv[0])):
        print(f"{rec.family}\t{format_size(rec.byte_limit)}\t{suffix}")
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="posterguard", description="Validate delivered image assets and reduce them to their byte budget"
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    p_check = sub.add_parser("check", help="Resolve files against the naming conventions (read-only)")
    p_check.add_argument("paths", nargs="+", type=Path)
    p_check.add_argument(
        "--tags",
        default=None,
        help="Tag sidecar JSON (@file.json or inline): {file: {sizetag, aligntag, name, ...}} used as fallback",
    )
    p_check.add_argument("--deep", action="store_true", help="Check codec and WxH against the file name")
    _add_common_args(p_check)

    p_run = sub.add_parser("run", help="Check and reduce files to their byte budget")
    p_run.add_argument("paths", nargs="+", type=Path)
    p_run.add_argument("--config", default=None, help="Run config JSON (@file.json or inline JSON)")
    p_run.add_argument("--jobs", type=int, default=None, help="Worker count (default: config.jobs or CPU count)")
    p_run.add_argument("--format", dest="formats", choices=FORMATS, default=None, help="Only process this format")
    p_run.add_argument("--tags", default=None, help="Tag sidecar JSON used as resolver fallback")
    p_run.add_argument("--deep", action="store_true", help="Check codec and WxH against the file name")
    p_run.add_argument("--rename", action="store_true", help="Rename project dirs to tag-derived names at the end")
    p_run.add_argument("--dry-run", action="store_true", help="With --rename: only report planned renames")
    p_run.add_argument("--json-out", type=Path, default=None, help="Write the JSON report to this file")
    p_run.add_argument("-v", "--verbose", action="store_true", help="Log every finished file")
    _add_common_args(p_run)

    p_reg = sub.add_parser("registry", help="List the policy table")
    _add_common_args(p_reg)

    p_cv = sub.add_parser("config-validate", help="Validate a run config")
    p_cv.add_argument("config", help="Run config JSON (@file.json or inline JSON)")
    _add_common_args(p_cv)

    return p


def main(argv: list[str] | None = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    p = build_parser()
    ns = p.parse_args(argv)
    _setup_logging(bool(ns.debug), bool(getattr(ns, "verbose", False)))

    try:
        if ns.cmd == "check":
            return _cmd_check(ns.paths, tags_arg=ns.tags, deep=bool(ns.deep))
        if ns.cmd == "run":
            if ns.jobs is not None and ns.jobs <= 0:
                raise RunConfigError("--jobs must be > 0")
            cfg = load_run_config(ns.config) if ns.config else RunConfig()
            return _cmd_run(
                ns.paths,
                cfg=cfg,
                jobs=ns.jobs,
                formats=ns.formats,
                tags_arg=ns.tags,
                deep=bool(ns.deep),
                rename=bool(ns.rename),
                dry_run=bool(ns.dry_run),
                json_out=ns.json_out,
            )
        if ns.cmd == "registry":
            return _cmd_registry()
        if ns.cmd == "config-validate":
            # load is the validation
            load_run_config(ns.config)
            print("OK")
            return EXIT_OK
        raise AssertionError("unreachable")

    except SystemExit:
        raise
    except RunConfigError as e:
        # Treat as usage/config error.
        if getattr(ns, "debug", False):
            raise
        print(f"[posterguard] {e}", file=sys.stderr)
        return 2
    except PosterGuardError as e:
        if getattr(ns, "debug", False):
            raise
        print(f"[posterguard] {e}", file=sys.stderr)
        return int(getattr(e, "exit_code", 10) or 10)
    except Exception as e:
        if getattr(ns, "debug", False):
            raise
        print(f"[posterguard] error: {e}", file=sys.stderr)
        return 10


if __name__ == "__main__":
    raise SystemExit(main())
