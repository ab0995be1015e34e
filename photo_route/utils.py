from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable


ALLOWED_EXTS = {".jpg", ".jpeg", ".png", ".webp", ".tif", ".tiff"}


def ensure_image_path(path: str | os.PathLike[str]) -> Path:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Image not found: {p}")
    if p.suffix.lower() not in ALLOWED_EXTS:
        raise ValueError(f"Unsupported image type {p.suffix}. Supported: {sorted(ALLOWED_EXTS)}")
    return p


def expand_image_paths(paths: Iterable[str | os.PathLike[str]]) -> list[Path]:
    """Expand directories into their images; explicit files are validated.

    Order follows the arguments, then file name inside a directory. Capture
    time ordering happens later in the pipeline.
    """
    out: list[Path] = []
    for raw in paths:
        p = Path(raw)
        if p.is_dir():
            out.extend(sorted(c for c in p.iterdir() if c.is_file() and c.suffix.lower() in ALLOWED_EXTS))
        else:
            out.append(ensure_image_path(p))
    return out


def get_cache_dir() -> Path:
    env = os.environ.get("PHOTO_ROUTE_CACHE")
    if env:
        d = Path(env)
    else:
        d = Path.home() / ".cache" / "photo-route"
    d.mkdir(parents=True, exist_ok=True)
    return d
