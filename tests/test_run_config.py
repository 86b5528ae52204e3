from __future__ import annotations

import json
from pathlib import Path

import pytest

from posterguard.run_config import SCHEMA_ID, RunConfigError, load_run_config


def test_minimal_config_defaults() -> None:
    cfg = load_run_config(json.dumps({"spec": SCHEMA_ID}))
    assert cfg.jobs is None
    assert cfg.formats == "all"
    assert cfg.deep_check is False
    assert cfg.tools.ffmpeg == "ffmpeg"
    assert cfg.tools.timeout_s == 300.0


def test_full_config_from_file(tmp_path: Path) -> None:
    p = tmp_path / "run.json"
    p.write_text(
        json.dumps(
            {
                "spec": SCHEMA_ID,
                "jobs": 3,
                "formats": "png",
                "deep_check": True,
                "rename_projects": True,
                "tools": {"ffmpeg": "/usr/bin/ffmpeg", "timeout_s": 30},
            }
        ),
        encoding="utf-8",
    )
    cfg = load_run_config("@" + str(p))
    assert cfg.jobs == 3
    assert cfg.formats == "png"
    assert cfg.rename_projects
    assert cfg.tools.timeout_s == 30.0
    tools = cfg.tools.build()
    assert tools.ffmpeg == "/usr/bin/ffmpeg"
    assert tools.runner.timeout_s == 30.0


@pytest.mark.parametrize(
    "obj",
    [
        {"spec": "nope"},
        {"spec": SCHEMA_ID, "wat": 1},
        {"spec": SCHEMA_ID, "jobs": 0},
        {"spec": SCHEMA_ID, "jobs": True},
        {"spec": SCHEMA_ID, "formats": "gif"},
        {"spec": SCHEMA_ID, "deep_check": "yes"},
        {"spec": SCHEMA_ID, "tools": {"ffmpeg": ""}},
        {"spec": SCHEMA_ID, "tools": {"timeout_s": -1}},
        {"spec": SCHEMA_ID, "tools": {"optipng": "x"}},
    ],
)
def test_invalid_configs_rejected(obj: dict) -> None:
    with pytest.raises(RunConfigError):
        load_run_config(json.dumps(obj))


def test_bad_json_and_missing_file() -> None:
    with pytest.raises(RunConfigError):
        load_run_config("{")
    with pytest.raises(RunConfigError):
        load_run_config("@/does/not/exist.json")
    with pytest.raises(RunConfigError):
        load_run_config("   ")
