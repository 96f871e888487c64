from datetime import datetime
from io import BytesIO

import pytest
from PIL import Image

from opsdesk.attendance.selfie import MAX_SELFIE_SIDE, save_selfie
from opsdesk.core.exceptions import ValidationError


def _png(width, height) -> BytesIO:
    buf = BytesIO()
    Image.new("RGBA", (width, height), (200, 10, 10, 255)).save(buf, format="PNG")
    buf.seek(0)
    return buf


def test_selfie_is_shrunk_and_stored_as_jpeg(tmp_path):
    path = save_selfie(_png(1600, 1200), upload_dir=tmp_path, user_id=3, now=datetime(2026, 3, 2, 8, 55, 1))

    assert path.endswith("20260302/selfie_3_085501.jpg")
    with Image.open(path) as img:
        assert img.format == "JPEG"
        assert max(img.size) == MAX_SELFIE_SIDE


def test_non_image_rejected(tmp_path):
    with pytest.raises(ValidationError, match="valid image"):
        save_selfie(BytesIO(b"not an image"), upload_dir=tmp_path, user_id=3, now=datetime(2026, 3, 2))
