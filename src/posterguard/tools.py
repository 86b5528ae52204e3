"""External image tools (exiftool, ffmpeg, pngquant) behind a small contract.

The tools are opaque: we only look at the exit code, at the diagnostic output and
at the size of what they wrote. Silent tools (ffmpeg with ``-loglevel error``,
pngquant) must print nothing; any output is treated as a failure.

Every call has a timeout, so a hung process fails its own file instead of
stalling a worker forever.
"""

from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass
from typing import Protocol

from posterguard.errors import ExternalToolFailure

log = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S = 300.0


class Encoders(Protocol):
    def strip_metadata(self, path: str) -> None: ...

    def encode_jpeg(self, src: str, dst: str, q: int) -> None: ...

    def quantize_png(self, src: str, dst: str) -> None: ...

    def reencode_png(self, src: str, dst: str) -> None: ...


@dataclass(frozen=True)
class ToolRunner:
    timeout_s: float | None = DEFAULT_TIMEOUT_S

    def run(self, cmd: list[str], *, silent: bool) -> str:
        """Run one command; return its combined output."""
        tool = os.path.basename(cmd[0])
        log.debug("run: %s", " ".join(cmd))
        try:
            res = subprocess.run(
                cmd,
                text=True,
                errors="replace",
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                timeout=self.timeout_s,
            )
        except FileNotFoundError as e:
            raise ExternalToolFailure(tool, f"executable not found ({cmd[0]})") from e
        except subprocess.TimeoutExpired as e:
            raise ExternalToolFailure(tool, f"timed out after {self.timeout_s}s") from e

        out = res.stdout or ""
        if res.returncode != 0:
            raise ExternalToolFailure(
                tool, f"exit code {res.returncode}: {out.strip()!r}", returncode=res.returncode, output=out
            )
        if silent and out.strip():
            raise ExternalToolFailure(tool, f"unexpected output: {out.strip()!r}", returncode=0, output=out)
        return out


@dataclass(frozen=True)
class ExternalTools:
    runner: ToolRunner = ToolRunner()
    ffmpeg: str = "ffmpeg"
    pngquant: str = "pngquant"
    exiftool: str = "exiftool"

    def strip_metadata(self, path: str) -> None:
        # exiftool reports "1 image files updated": only the exit code counts
        self.runner.run([self.exiftool, "-overwrite_original", "-all=", path], silent=False)

    def encode_jpeg(self, src: str, dst: str, q: int) -> None:
        self.runner.run(
            [
                self.ffmpeg,
                "-i", src,
                "-q:v", str(int(q)),
                "-pix_fmt", "rgb24",
                "-map_metadata", "-1",
                "-loglevel", "error",
                "-y",
                dst,
            ],
            silent=True,
        )

    def quantize_png(self, src: str, dst: str) -> None:
        self.runner.run(
            [
                self.pngquant,
                "--force",
                "--skip-if-larger",
                "--output", dst,
                "--quality=0-100",
                "--speed", "1",
                "--strip",
                "--", src,
            ],
            silent=True,
        )

    def reencode_png(self, src: str, dst: str) -> None:
        self.runner.run(
            [
                self.ffmpeg,
                "-i", src,
                "-q:v", "0",
                "-map_metadata", "-1",
                "-loglevel", "error",
                "-y",
                dst,
            ],
            silent=True,
        )
