"""Run config loader/validator.

Controls a batch run (worker count, format filter, deep check, renames, external
tools) in a reproducible way.

Schema id: ``posterguard.run_config.v1``

Design goals:
  - Strict: unknown keys are errors
  - Deterministic: defaults mirror the historical tool behaviour
  - Minimal: only the knobs we actually use today
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional

from posterguard.tools import DEFAULT_TIMEOUT_S, ExternalTools, ToolRunner

SCHEMA_ID = "posterguard.run_config.v1"

FORMATS = ("jpg", "png", "all")


class RunConfigError(ValueError):
    pass


@dataclass(frozen=True)
class ToolsConfig:
    ffmpeg: str = "ffmpeg"
    pngquant: str = "pngquant"
    exiftool: str = "exiftool"
    timeout_s: Optional[float] = DEFAULT_TIMEOUT_S

    def build(self) -> ExternalTools:
        return ExternalTools(
            runner=ToolRunner(timeout_s=self.timeout_s),
            ffmpeg=self.ffmpeg,
            pngquant=self.pngquant,
            exiftool=self.exiftool,
        )


@dataclass(frozen=True)
class RunConfig:
    spec: str = SCHEMA_ID
    jobs: Optional[int] = None
    formats: str = "all"
    deep_check: bool = False
    rename_projects: bool = False
    tools: ToolsConfig = field(default_factory=ToolsConfig)


def _read_json_text(arg: str) -> str:
    s = arg.strip()
    if not s:
        raise RunConfigError("run config: empty input")
    if s.startswith("@"):  # @file.json
        p = Path(s[1:]).expanduser()
        if not p.is_file():
            raise RunConfigError(f"run config: file not found: {p}")
        return p.read_text(encoding="utf-8")
    return s


def _expect_type(name: str, v: Any, t: type | tuple[type, ...]) -> Any:
    # bool is an int subclass: never accept it where a number is expected
    if isinstance(v, bool) and t is not bool:
        raise RunConfigError(f"run config: '{name}' has the wrong type")
    if not isinstance(v, t):
        tname = t.__name__ if isinstance(t, type) else "/".join(x.__name__ for x in t)
        raise RunConfigError(f"run config: '{name}' must be {tname}")
    return v


def _ensure_allowed_keys(obj_name: str, obj: Mapping[str, Any], allowed: Iterable[str]) -> None:
    allowed_set = set(allowed)
    extra = [k for k in obj.keys() if k not in allowed_set]
    if extra:
        raise RunConfigError(f"run config: unsupported keys in {obj_name}: {', '.join(sorted(extra))}")


def _parse_tools(v: Any) -> ToolsConfig:
    if v is None:
        return ToolsConfig()
    _expect_type("tools", v, dict)
    _ensure_allowed_keys("tools", v, ["ffmpeg", "pngquant", "exiftool", "timeout_s"])
    kw: dict[str, Any] = {}
    for name in ("ffmpeg", "pngquant", "exiftool"):
        exe = v.get(name)
        if exe is None:
            continue
        if not isinstance(exe, str) or not exe.strip():
            raise RunConfigError(f"run config: tools.{name} must be a non-empty string")
        kw[name] = exe.strip()
    if "timeout_s" in v:
        t = v.get("timeout_s")
        if t is not None:
            _expect_type("tools.timeout_s", t, (int, float))
            if t <= 0:
                raise RunConfigError("run config: tools.timeout_s must be > 0")
            t = float(t)
        kw["timeout_s"] = t
    return ToolsConfig(**kw)


def parse_run_config(obj: Any) -> RunConfig:
    _expect_type("root", obj, dict)
    _ensure_allowed_keys("root", obj, ["spec", "jobs", "formats", "deep_check", "rename_projects", "tools"])

    spec = obj.get("spec")
    if spec != SCHEMA_ID:
        raise RunConfigError(f"run config: spec must be '{SCHEMA_ID}'")

    jobs = obj.get("jobs")
    if jobs is not None:
        _expect_type("jobs", jobs, int)
        if jobs <= 0:
            raise RunConfigError("run config: jobs must be > 0")

    formats = obj.get("formats", "all")
    _expect_type("formats", formats, str)
    if formats not in FORMATS:
        raise RunConfigError(f"run config: formats must be one of {', '.join(FORMATS)}")

    deep_check = obj.get("deep_check", False)
    _expect_type("deep_check", deep_check, bool)
    rename_projects = obj.get("rename_projects", False)
    _expect_type("rename_projects", rename_projects, bool)

    return RunConfig(
        spec=spec,
        jobs=jobs,
        formats=formats,
        deep_check=deep_check,
        rename_projects=rename_projects,
        tools=_parse_tools(obj.get("tools")),
    )


def load_run_config(arg: str) -> RunConfig:
    """Load and validate a run config from '@file.json' or inline JSON."""
    text = _read_json_text(arg)
    try:
        obj = json.loads(text)
    except Exception as e:
        raise RunConfigError(f"run config: invalid JSON: {e}") from e
    return parse_run_config(obj)
