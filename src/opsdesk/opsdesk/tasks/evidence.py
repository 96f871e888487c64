from __future__ import annotations

import io
from datetime import datetime
from pathlib import Path
from typing import BinaryIO

from PIL import Image, UnidentifiedImageError
from werkzeug.utils import secure_filename

from ..core.constants import MAX_EVIDENCE_FILE_BYTES
from ..core.enums import EvidenceType
from ..core.exceptions import ValidationError

MAX_PHOTO_SIDE = 1920

IMAGE_EXTENSIONS = frozenset({"jpg", "jpeg", "png", "gif", "webp"})
VIDEO_EXTENSIONS = frozenset({"mp4", "mov", "avi", "wmv", "webm", "mkv"})
DOCUMENT_EXTENSIONS = frozenset({"pdf", "doc", "docx", "xls", "xlsx", "txt", "csv"})
FILE_EXTENSIONS = IMAGE_EXTENSIONS | VIDEO_EXTENSIONS | DOCUMENT_EXTENSIONS

_FOLDERS = {EvidenceType.PHOTO: "photos", EvidenceType.FILE: "evidence"}


def _extension(filename: str) -> str:
    name = secure_filename(filename or "")
    return name.rsplit(".", 1)[1].lower() if "." in name else ""


def save_evidence(
    stream: BinaryIO,
    filename: str,
    *,
    upload_dir: str | Path,
    task_id: int,
    evidence_type: EvidenceType,
    now: datetime,
    max_bytes: int = MAX_EVIDENCE_FILE_BYTES,
) -> str:
    """Validate an evidence upload and store it as ``tasks/<folder>/<task_id>_<timestamp>.<ext>``.

    Photos are decoded with Pillow, shrunk and re-encoded as JPEG. Other files
    are kept byte for byte once their extension and size check out.
    Returns the stored path.
    """

    folder_name = _FOLDERS.get(evidence_type)
    if folder_name is None:
        raise ValidationError("Only photo or file evidence can be uploaded")

    content = stream.read(max_bytes + 1)
    if not content:
        raise ValidationError("Uploaded file is empty")
    if len(content) > max_bytes:
        raise ValidationError(f"File size exceeds {max_bytes // (1024 * 1024)}MB limit")

    ext = _extension(filename)
    allowed = IMAGE_EXTENSIONS if evidence_type == EvidenceType.PHOTO else FILE_EXTENSIONS
    if ext not in allowed:
        raise ValidationError(f"File type .{ext or '?'} is not allowed for {evidence_type.value} evidence")

    folder = Path(upload_dir) / "tasks" / folder_name
    folder.mkdir(parents=True, exist_ok=True)
    stem = f"{task_id}_{now.strftime('%Y%m%d%H%M%S%f')}"

    if evidence_type == EvidenceType.PHOTO:
        try:
            img = Image.open(io.BytesIO(content))
            img.load()
        except (UnidentifiedImageError, OSError):
            raise ValidationError("Photo evidence must be a valid image")
        img = img.convert("RGB")
        img.thumbnail((MAX_PHOTO_SIDE, MAX_PHOTO_SIDE))
        path = folder / f"{stem}.jpg"
        img.save(path, format="JPEG", quality=85)
        return str(path)

    path = folder / f"{stem}.{ext}"
    path.write_bytes(content)
    return str(path)
