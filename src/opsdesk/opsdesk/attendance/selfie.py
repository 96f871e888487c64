from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import BinaryIO

from PIL import Image, UnidentifiedImageError

from ..core.exceptions import ValidationError

MAX_SELFIE_SIDE = 800


def save_selfie(stream: BinaryIO, *, upload_dir: str | Path, user_id: int, now: datetime) -> str:
    """Validate an uploaded selfie, shrink it and store it as JPEG. Returns the stored path."""

    try:
        img = Image.open(stream)
        img.load()
    except (UnidentifiedImageError, OSError):
        raise ValidationError("Selfie must be a valid image")

    img = img.convert("RGB")
    img.thumbnail((MAX_SELFIE_SIDE, MAX_SELFIE_SIDE))

    folder = Path(upload_dir) / now.strftime("%Y%m%d")
    folder.mkdir(parents=True, exist_ok=True)
    path = folder / f"selfie_{user_id}_{now.strftime('%H%M%S')}.jpg"
    img.save(path, format="JPEG", quality=85)
    return str(path)
