#!/usr/bin/env python3
"""Write (or verify) docs/exit_codes.md from the EXIT_CODES table in posterguard.errors."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

REPO = Path(__file__).resolve().parents[1]
DOC = REPO / "docs" / "exit_codes.md"


def render() -> str:
    sys.path.insert(0, str(REPO / "src"))
    from posterguard.errors import render_exit_codes_markdown  # noqa: E402

    return render_exit_codes_markdown()


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(description="Regenerate docs/exit_codes.md")
    ap.add_argument("--check", action="store_true", help="Exit 1 if the committed doc is stale; write nothing")
    ns = ap.parse_args(argv)

    text = render()
    if ns.check:
        current = DOC.read_text(encoding="utf-8") if DOC.is_file() else ""
        if current != text:
            print(f"[posterguard] {DOC} is stale; run scripts/gen_exit_codes_md.py", file=sys.stderr)
            return 1
        print(f"[posterguard] {DOC} is up to date")
        return 0

    DOC.parent.mkdir(parents=True, exist_ok=True)
    DOC.write_text(text, encoding="utf-8")
    print(f"[posterguard] wrote {DOC}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
