# services/qr_codes.py

from io import BytesIO

import qrcode
from qrcode.constants import ERROR_CORRECT_M

from core.config import settings

DEFAULT_BRAND_COLOR = "#1e40af"


def registration_url(code: str) -> str:
    return f"{settings.APP_URL.rstrip('/')}/register/{code}"


def render_qr_png(data: str, color: str = DEFAULT_BRAND_COLOR) -> bytes:
    qr = qrcode.QRCode(error_correction=ERROR_CORRECT_M, box_size=10, border=4)
    qr.add_data(data)
    qr.make(fit=True)

    image = qr.make_image(fill_color=color or DEFAULT_BRAND_COLOR, back_color="white")
    buffer = BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()
