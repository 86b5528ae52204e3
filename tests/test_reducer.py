from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from posterguard.errors import BudgetUnreachable, ExternalToolFailure, UnsupportedFormat
from posterguard.reducer import (
    OUTCOME_COMPLIANT,
    OUTCOME_REDUCED,
    OUTCOME_STRIPPED,
    reduce_to_budget,
    temp_path_for,
)


@dataclass
class FakeEncoders:
    """Writes files of scripted sizes instead of running real tools."""

    jpeg_sizes: list[int] = field(default_factory=list)
    png_quant_sizes: list[int] = field(default_factory=list)  # one per quantize call, -1 = fail
    reencode_size: int = 0
    strip_to: int | None = None
    strip_fails: bool = False
    calls: list[tuple] = field(default_factory=list)

    def strip_metadata(self, path: str) -> None:
        self.calls.append(("strip", path))
        if self.strip_fails:
            raise ExternalToolFailure("exiftool", "exit code 1")
        if self.strip_to is not None:
            Path(path).write_bytes(b"s" * self.strip_to)

    def encode_jpeg(self, src: str, dst: str, q: int) -> None:
        self.calls.append(("jpeg", q))
        Path(dst).write_bytes(b"j" * self.jpeg_sizes[q])

    def quantize_png(self, src: str, dst: str) -> None:
        self.calls.append(("quant", src, dst))
        size = self.png_quant_sizes.pop(0)
        if size < 0:
            raise ExternalToolFailure("pngquant", "unexpected output: 'error'")
        Path(dst).write_bytes(b"q" * size)

    def reencode_png(self, src: str, dst: str) -> None:
        self.calls.append(("reencode", src, dst))
        Path(dst).write_bytes(b"r" * self.reencode_size)


def _asset(tmp_path: Path, name: str, size: int) -> Path:
    p = tmp_path / name
    p.write_bytes(b"x" * size)
    return p


def test_unconstrained_never_calls_encoders(tmp_path: Path) -> None:
    p = _asset(tmp_path, "600x600.jpg", 5000)
    enc = FakeEncoders()
    res = reduce_to_budget(p, -1, enc)
    assert res.outcome == OUTCOME_COMPLIANT
    assert res.achieved_size == 5000
    assert res.effort is None
    assert enc.calls == []


def test_limit_equal_to_size_is_compliant(tmp_path: Path) -> None:
    p = _asset(tmp_path, "600x600.jpg", 1000)
    enc = FakeEncoders()
    res = reduce_to_budget(p, 1000, enc)
    assert res.outcome == OUTCOME_COMPLIANT
    assert enc.calls == []


def test_compliant_file_is_idempotent(tmp_path: Path) -> None:
    p = _asset(tmp_path, "logo.png", 800)
    before = p.stat().st_mtime_ns
    enc = FakeEncoders()
    first = reduce_to_budget(p, 1000, enc)
    second = reduce_to_budget(p, 1000, enc)
    assert first == second
    assert p.stat().st_mtime_ns == before
    assert p.read_bytes() == b"x" * 800
    assert enc.calls == []


def test_jpeg_picks_first_q_that_fits(tmp_path: Path) -> None:
    p = _asset(tmp_path, "600x600.jpg", 5000)
    sizes = [4000 - 100 * q for q in range(32)]
    enc = FakeEncoders(jpeg_sizes=sizes)
    res = reduce_to_budget(p, 3500, enc)
    assert res.outcome == OUTCOME_REDUCED
    assert res.effort == 5
    assert res.achieved_size == 3500
    assert [c[1] for c in enc.calls if c[0] == "jpeg"] == [0, 1, 2, 3, 4, 5]
    assert enc.calls[0][0] == "strip"
    assert p.stat().st_size == 3500
    assert not os.path.exists(temp_path_for(str(p)))


def test_jpeg_scan_is_linear_on_non_monotonic_curve(tmp_path: Path) -> None:
    p = _asset(tmp_path, "600x600.jpg", 5000)
    sizes = [4000] * 32
    sizes[3] = 900  # dip
    sizes[10] = 950
    enc = FakeEncoders(jpeg_sizes=sizes)
    res = reduce_to_budget(p, 1000, enc)
    assert res.effort == 3


def test_jpeg_budget_unreachable_cleans_temp(tmp_path: Path) -> None:
    p = _asset(tmp_path, "600x600.jpg", 5000)
    enc = FakeEncoders(jpeg_sizes=[4000] * 32)
    with pytest.raises(BudgetUnreachable):
        reduce_to_budget(p, 1000, enc)
    assert len([c for c in enc.calls if c[0] == "jpeg"]) == 32
    assert p.read_bytes() == b"x" * 5000
    assert not os.path.exists(temp_path_for(str(p)))


def test_strip_failure_is_fatal(tmp_path: Path) -> None:
    p = _asset(tmp_path, "600x600.jpg", 5000)
    enc = FakeEncoders(strip_fails=True)
    with pytest.raises(ExternalToolFailure):
        reduce_to_budget(p, 1000, enc)
    assert enc.calls == [("strip", str(p))]


def test_strip_alone_may_be_enough(tmp_path: Path) -> None:
    p = _asset(tmp_path, "600x600.jpg", 5000)
    enc = FakeEncoders(strip_to=900)
    res = reduce_to_budget(p, 1000, enc)
    assert res.outcome == OUTCOME_STRIPPED
    assert res.achieved_size == 900
    assert [c[0] for c in enc.calls] == ["strip"]


def test_png_quantize_first(tmp_path: Path) -> None:
    p = _asset(tmp_path, "logo.png", 5000)
    enc = FakeEncoders(png_quant_sizes=[700])
    res = reduce_to_budget(p, 1000, enc)
    assert res.outcome == OUTCOME_REDUCED
    assert res.effort is None
    assert res.achieved_size == 700
    assert [c[0] for c in enc.calls] == ["strip", "quant"]
    assert p.read_bytes() == b"q" * 700


def test_png_falls_back_to_reencode_then_quantize(tmp_path: Path) -> None:
    p = _asset(tmp_path, "logo.png", 5000)
    enc = FakeEncoders(png_quant_sizes=[-1, 600], reencode_size=3000)
    res = reduce_to_budget(p, 1000, enc)
    assert res.achieved_size == 600
    tmp = temp_path_for(str(p))
    assert enc.calls[1:] == [("quant", str(p), tmp), ("reencode", str(p), tmp), ("quant", tmp, tmp)]


def test_png_over_budget(tmp_path: Path) -> None:
    p = _asset(tmp_path, "logo.png", 5000)
    enc = FakeEncoders(png_quant_sizes=[2000])
    with pytest.raises(BudgetUnreachable):
        reduce_to_budget(p, 1000, enc)
    assert p.stat().st_size == 5000
    assert not os.path.exists(temp_path_for(str(p)))


def test_png_second_quantize_failure_is_fatal(tmp_path: Path) -> None:
    p = _asset(tmp_path, "logo.png", 5000)
    enc = FakeEncoders(png_quant_sizes=[-1, -1], reencode_size=3000)
    with pytest.raises(ExternalToolFailure):
        reduce_to_budget(p, 1000, enc)
    assert not os.path.exists(temp_path_for(str(p)))


def test_unsupported_extension(tmp_path: Path) -> None:
    p = _asset(tmp_path, "600x600.psd", 5000)
    with pytest.raises(UnsupportedFormat):
        reduce_to_budget(p, 1000, FakeEncoders())


def test_temp_path_is_sibling() -> None:
    assert temp_path_for("a/b/600x600.jpg") == "a/b/600x600.budget-tmp.jpg"
