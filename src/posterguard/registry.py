"""Static policy table: canonical relative suffix -> (family, byte limit).

Keys are the *shortest distinguishing suffix* of a delivered file, relative to the
project directory (``./<...>/<leaf>``). The resolver probes this table with growing
suffix windows, so a key must never be a suffix of another key of a different
convention.

Families:
  rt  flat single-directory deliveries (size tags + logo)
  gp  nested deliveries (service dir + google_apple_feed/{jpg,psd}/...)
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Final

from posterguard.limits import parse_size_limit

GP_SERVICE_DIR: Final[str] = "для сервиса"
GP_FEED_DIR: Final[str] = "google_apple_feed"


@dataclass(frozen=True, slots=True)
class PolicyRecord:
    family: str
    byte_limit: int

    @property
    def constrained(self) -> bool:
        return self.byte_limit >= 0


def _rt_table() -> list[tuple[str, str, str]]:
    out = [
        (f"./{size}.jpg", "rt", "")
        for size in ("350x500", "525x300", "810x498", "270x390", "1620x996", "503x726")
    ]
    out.append(("./logo.png", "rt", "1M"))
    return out


def _gp_table() -> list[tuple[str, str, str]]:
    out: list[tuple[str, str, str]] = []
    for tag in (
        "600x600",
        "600x840",
        "1920x1080",
        "1920x1080_left",
        "1920x1080_center",
        "1260x400",
        "1080x540",
    ):
        out.append((f"./{GP_SERVICE_DIR}/{tag}.jpg", "gp", "700k"))
        out.append((f"./{GP_SERVICE_DIR}/{tag}.psd", "gp", ""))

    feed: list[tuple[str, str, str]] = [
        ("g_hasLogo_600x800", ".png", "2M"),
        ("g_hasTitleLogo_1800x1000", ".png", ""),
        ("g_iconic_poster_600x600", ".jpg", "2M"),
        ("g_iconic_poster_600x800", ".jpg", "2M"),
        ("g_iconic_poster_800x600", ".jpg", "2M"),
        ("g_iconic_poster_1000x1500", ".jpg", "2M"),
        ("g_iconic_poster_3840x2160", ".jpg", "2M"),
        ("g_iconic_background_1000x1500", ".jpg", "2M"),
        ("g_iconic_background_3840x2160", ".jpg", "2M"),
    ]
    for stem, ext, limit in feed:
        # the "jpg" subdir holds every delivery format, "psd" holds the sources
        out.append((f"./{GP_FEED_DIR}/jpg/{stem}{ext}", "gp", limit))
        out.append((f"./{GP_FEED_DIR}/psd/{stem}.psd", "gp", ""))
    return out


def build_policy_table(rows: list[tuple[str, str, str]]) -> dict[str, PolicyRecord]:
    table: dict[str, PolicyRecord] = {}
    for suffix, family, limit in rows:
        if not suffix.startswith("./"):
            raise ValueError(f"registry key must start with './': {suffix!r}")
        if suffix in table:
            raise ValueError(f"duplicate registry key: {suffix!r}")
        table[suffix] = PolicyRecord(family=family, byte_limit=parse_size_limit(limit))
    return table


class Registry(Mapping[str, PolicyRecord]):
    """Read-only suffix -> PolicyRecord mapping."""

    def __init__(self, entries: Mapping[str, PolicyRecord]) -> None:
        self._entries: dict[str, PolicyRecord] = dict(entries)
        self.extensions: frozenset[str] = frozenset(
            PurePosixPath(k).suffix.lower() for k in self._entries if PurePosixPath(k).suffix
        )

    def __getitem__(self, suffix: str) -> PolicyRecord:
        return self._entries[suffix]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def families(self) -> list[str]:
        return sorted({r.family for r in self._entries.values()})

    @classmethod
    def from_limits(cls, rows: Mapping[str, tuple[str, str]]) -> "Registry":
        """Build from ``{suffix: (family, limit_string)}``."""
        return cls(build_policy_table([(k, fam, lim) for k, (fam, lim) in rows.items()]))


DEFAULT_REGISTRY: Final[Registry] = Registry(build_policy_table(_rt_table() + _gp_table()))
