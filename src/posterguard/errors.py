"""Typed errors for posterguard.

Single source of truth for exit codes lives here.

Policy:
- Errors are small and boring.
- Every per-file error carries a stable ``kind`` used by reports.
- The CLI maps errors to stable exit codes (see EXIT_* constants).
- docs/exit_codes.md is generated from this module (scripts/gen_exit_codes_md.py).
"""

from __future__ import annotations

from dataclasses import dataclass

# -------------------------
# Exit codes (single source)
# -------------------------

EXIT_OK = 0
EXIT_USAGE = 2
EXIT_GENERIC = 10
EXIT_POLICY_NOT_FOUND = 11
EXIT_BUDGET_UNREACHABLE = 12
EXIT_EXTERNAL_TOOL = 13
EXIT_FILES_FAILED = 14


@dataclass(frozen=True, slots=True)
class ExitCodeInfo:
    code: int
    name: str
    description: str


EXIT_CODES: tuple[ExitCodeInfo, ...] = (
    ExitCodeInfo(EXIT_OK, "OK", "Success"),
    ExitCodeInfo(EXIT_USAGE, "USAGE", "Usage/config error (invalid args, invalid run config, bad limit string)"),
    ExitCodeInfo(EXIT_GENERIC, "GENERIC", "Generic failure (unexpected error, props mismatch, etc.)"),
    ExitCodeInfo(EXIT_POLICY_NOT_FOUND, "POLICY_NOT_FOUND", "No naming convention matches the path (fallback included)"),
    ExitCodeInfo(EXIT_BUDGET_UNREACHABLE, "BUDGET_UNREACHABLE", "Re-encoding could not meet the byte budget"),
    ExitCodeInfo(EXIT_EXTERNAL_TOOL, "EXTERNAL_TOOL", "External tool failed (exit code, diagnostics, timeout)"),
    ExitCodeInfo(EXIT_FILES_FAILED, "FILES_FAILED", "Batch finished but at least one file failed"),
)

# For convenience (fast lookup)
_EXIT_CODE_BY_CODE: dict[int, ExitCodeInfo] = {e.code: e for e in EXIT_CODES}


def exit_code_info(code: int) -> ExitCodeInfo | None:
    return _EXIT_CODE_BY_CODE.get(int(code))


def render_exit_codes_markdown() -> str:
    """Render docs/exit_codes.md content."""
    lines: list[str] = []
    lines.append("# Exit codes\n")
    lines.append("> GENERATED FILE - do not edit manually.\n")
    lines.append("> Source of truth: `src/posterguard/errors.py` (EXIT_CODES).\n")
    lines.append("> Regenerate: `python scripts/gen_exit_codes_md.py`.\n\n")
    lines.append("These are the CLI exit codes you can rely on.\n\n")
    lines.append("| Code | Name | Meaning |\n")
    lines.append("|---:|---|---|\n")
    for e in sorted(EXIT_CODES, key=lambda x: x.code):
        lines.append(f"| {e.code} | `{e.name}` | {e.description} |\n")
    lines.append("\n## Notes\n")
    lines.append("- Most internal errors extend `PosterGuardError` and carry an `exit_code`.\n")
    lines.append("- `run` isolates per-file errors; they end up in the report and yield `FILES_FAILED`.\n")
    lines.append("- `--debug` re-raises errors to show full stack traces.\n")
    return "".join(lines)


# ---------------
# Typed exceptions
# ---------------


class PosterGuardError(Exception):
    """Base error for posterguard."""

    exit_code: int = EXIT_GENERIC
    kind: str = "Error"


class UsageError(PosterGuardError):
    exit_code = EXIT_USAGE
    kind = "Usage"


class LimitParseError(UsageError):
    kind = "LimitParse"


class MalformedLeaf(PosterGuardError):
    """Leaf segment has zero or several size/logo tags."""

    exit_code = EXIT_POLICY_NOT_FOUND
    kind = "MalformedLeaf"


class PolicyNotFound(PosterGuardError):
    exit_code = EXIT_POLICY_NOT_FOUND
    kind = "PolicyNotFound"


class NoFallbackSource(PolicyNotFound):
    kind = "NoFallbackSource"


class InsufficientTags(PolicyNotFound):
    kind = "InsufficientTags"


class PropsMismatch(PosterGuardError):
    """Decoded image does not match the codec/size claimed by its name."""

    kind = "PropsMismatch"


class UnsupportedFormat(PosterGuardError):
    kind = "UnsupportedFormat"


class BudgetUnreachable(PosterGuardError):
    exit_code = EXIT_BUDGET_UNREACHABLE
    kind = "BudgetUnreachable"


class ExternalToolFailure(PosterGuardError):
    exit_code = EXIT_EXTERNAL_TOOL
    kind = "ExternalToolFailure"

    def __init__(self, tool: str, message: str, *, returncode: int | None = None, output: str = "") -> None:
        super().__init__(f"{tool}: {message}")
        self.tool = tool
        self.returncode = returncode
        self.output = output
