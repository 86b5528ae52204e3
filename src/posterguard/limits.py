"""Byte-limit strings ("700k", "1M", "" ...).

Multipliers are decimal (k/K=1000, M=1000**2, G=1000**3). An empty string means
"no limit" and is encoded as -1.
"""

from __future__ import annotations

from typing import Final

from posterguard.errors import LimitParseError

UNLIMITED: Final[int] = -1

KB: Final[int] = 1000
MB: Final[int] = KB * 1000
GB: Final[int] = MB * 1000

_MULTIPLIERS: Final[dict[str, int]] = {"k": KB, "K": KB, "M": MB, "G": GB}


def parse_size_limit(text: str) -> int:
    s = text.strip()
    if not s:
        return UNLIMITED

    mult = _MULTIPLIERS.get(s[-1])
    digits = s[:-1] if mult is not None else s
    if not (digits.isascii() and digits.isdigit()):
        raise LimitParseError(f"invalid size limit: {text!r}")
    return int(digits) * (mult or 1)


def format_size(n: int) -> str:
    if n < 0:
        return "unlimited"
    if n < KB:
        return f"{n} B"
    if n < MB:
        return f"{n / KB:.1f} kB"
    return f"{n / MB:.2f} MB"
