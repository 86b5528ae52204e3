"""Adaptive, budget-constrained re-encoding.

    compliance check -> metadata strip -> encode/quantize -> rename over original

JPEG: linear sweep of ffmpeg's ``-q:v`` from 0 (best quality, largest output) to
31; the first q whose output fits the budget wins. The size/q curve is not
guaranteed monotonic, so the scan order is part of the contract (no bisection).

PNG: fallback chain, no quality knob:
    pngquant(src) || (ffmpeg re-encode(src) && pngquant(tmp))

Results are written to a sibling temp file; the original is only touched by the
final ``os.replace``.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Final

from posterguard.errors import BudgetUnreachable, ExternalToolFailure, UnsupportedFormat
from posterguard.limits import format_size
from posterguard.tools import Encoders

log = logging.getLogger(__name__)

Q_BEST: Final[int] = 0
Q_WORST: Final[int] = 31

JPEG_EXTS: Final[frozenset[str]] = frozenset({".jpg", ".jpeg"})
PNG_EXTS: Final[frozenset[str]] = frozenset({".png"})

TMP_MARKER: Final[str] = ".budget-tmp"

OUTCOME_COMPLIANT: Final[str] = "compliant"
OUTCOME_STRIPPED: Final[str] = "stripped"
OUTCOME_REDUCED: Final[str] = "reduced"


@dataclass(frozen=True)
class ReduceResult:
    achieved_size: int
    effort: int | None  # JPEG q, None when not applicable
    outcome: str


def codec_family(path: str) -> str | None:
    ext = os.path.splitext(path)[1].lower()
    if ext in JPEG_EXTS:
        return "jpeg"
    if ext in PNG_EXTS:
        return "png"
    return None


def temp_path_for(path: str) -> str:
    stem, ext = os.path.splitext(path)
    return f"{stem}{TMP_MARKER}{ext}"


def _reduce_jpeg(src: str, dst: str, byte_limit: int, encoders: Encoders) -> tuple[int, int]:
    out_size = -1
    for q in range(Q_BEST, Q_WORST + 1):
        encoders.encode_jpeg(src, dst, q)
        out_size = os.path.getsize(dst)
        if out_size <= byte_limit:
            return out_size, q
    raise BudgetUnreachable(f"cannot reduce file size ({out_size}>{byte_limit}) with q<={Q_WORST}")


def _reduce_png(src: str, dst: str, byte_limit: int, encoders: Encoders) -> int:
    try:
        encoders.quantize_png(src, dst)
    except ExternalToolFailure as e:
        log.debug("%s: pngquant failed (%s), re-encoding first", src, e)
        encoders.reencode_png(src, dst)
        encoders.quantize_png(dst, dst)
    out_size = os.path.getsize(dst)
    if out_size > byte_limit:
        raise BudgetUnreachable(f"cannot reduce file size ({out_size}>{byte_limit})")
    return out_size


def _discard_temp(tmp: str, err: BaseException) -> None:
    try:
        os.remove(tmp)
    except FileNotFoundError:
        pass
    except OSError as rm_err:
        log.warning("cannot remove temp file %s: %s", tmp, rm_err)
        err.add_note(f"temp file left behind: {tmp} ({rm_err})")


def reduce_to_budget(path: str | os.PathLike[str], byte_limit: int, encoders: Encoders) -> ReduceResult:
    src = os.fspath(path)
    size = os.path.getsize(src)
    if byte_limit < 0 or size <= byte_limit:
        return ReduceResult(achieved_size=size, effort=None, outcome=OUTCOME_COMPLIANT)

    family = codec_family(src)
    if family is None:
        raise UnsupportedFormat(f"unsupported extension {os.path.splitext(src)[1]!r} to process file")

    encoders.strip_metadata(src)
    size = os.path.getsize(src)
    if size <= byte_limit:
        return ReduceResult(achieved_size=size, effort=None, outcome=OUTCOME_STRIPPED)

    tmp = temp_path_for(src)
    effort: int | None = None
    try:
        if family == "jpeg":
            out_size, effort = _reduce_jpeg(src, tmp, byte_limit, encoders)
        else:
            out_size = _reduce_png(src, tmp, byte_limit, encoders)
        os.replace(tmp, src)
    except Exception as e:
        _discard_temp(tmp, e)
        raise

    log.info("%s: %s -> %s (q=%s)", src, format_size(size), format_size(out_size), effort)
    return ReduceResult(achieved_size=out_size, effort=effort, outcome=OUTCOME_REDUCED)
