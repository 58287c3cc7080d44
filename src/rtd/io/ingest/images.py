from __future__ import annotations

from pathlib import Path
from typing import Iterator

IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".bmp", ".webp"}


def iter_image_paths(uri: str) -> Iterator[Path]:
    """Yield image files for a single path or, recursively, a directory in sorted order."""
    path = Path(uri).expanduser()
    if path.is_dir():
        yield from sorted(
            p for p in path.rglob("*") if p.is_file() and p.suffix.lower() in IMAGE_EXTENSIONS
        )
        return
    if path.is_file():
        yield path
        return
    raise FileNotFoundError(f"Image source not found: {uri}")
