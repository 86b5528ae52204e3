"""Deep check: the decoded image must match what its name claims.

Only the header is read (Pillow opens lazily), so this stays cheap on large
posters.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Final

from PIL import Image, UnidentifiedImageError

from posterguard.errors import PropsMismatch
from posterguard.pathkey import LOGO_TAG

_FORMAT_BY_EXT: Final[dict[str, str]] = {
    ".jpg": "JPEG",
    ".jpeg": "JPEG",
    ".png": "PNG",
    ".psd": "PSD",
}


@dataclass(frozen=True)
class ImageProps:
    format: str
    width: int
    height: int

    @property
    def size_tag(self) -> str:
        return f"{self.width}x{self.height}"


def probe_image(path: str | os.PathLike[str]) -> ImageProps:
    try:
        with Image.open(path) as im:
            return ImageProps(format=str(im.format or ""), width=int(im.width), height=int(im.height))
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError, SyntaxError) as e:
        # SyntaxError and ValueError come from some plugins on broken headers
        raise PropsMismatch(f"{os.fspath(path)}: cannot read image: {e}") from e


def deep_check(path: str | os.PathLike[str], size_tag: str) -> ImageProps:
    props = probe_image(path)
    ext = os.path.splitext(os.fspath(path))[1].lower()
    want = _FORMAT_BY_EXT.get(ext)
    if want is not None and props.format != want:
        raise PropsMismatch(f"{os.fspath(path)}: codec {props.format} does not match extension {ext}")
    if size_tag != LOGO_TAG and props.size_tag != size_tag:
        raise PropsMismatch(f"{os.fspath(path)}: props [{size_tag}] != file data [{props.size_tag}]")
    return props
