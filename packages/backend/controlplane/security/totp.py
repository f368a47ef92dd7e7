from __future__ import annotations

import base64
import datetime
import io

import pyotp
import qrcode
from qrcode.image.svg import SvgPathImage


TOTP_DIGITS = 6
TOTP_INTERVAL_SECONDS = 30
TOTP_VALID_WINDOW = 2


def generate_secret() -> str:
    # 32 base32 characters, 160 bits.
    return pyotp.random_base32()


def provisioning_uri(secret: str, *, account_name: str, issuer: str) -> str:
    return _totp(secret).provisioning_uri(name=account_name, issuer_name=issuer)


def qr_code_data_url(uri: str) -> str:
    """Render ``uri`` as an SVG QR code embedded in a ``data:`` URL."""
    buffer = io.BytesIO()
    qrcode.make(uri, image_factory=SvgPathImage).save(buffer)
    encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
    return f"data:image/svg+xml;base64,{encoded}"


def verify_code(secret: str | None, code: str | None, *, now: datetime.datetime | None = None) -> bool:
    if not secret or not code:
        return False
    normalized = code.strip()
    if len(normalized) != TOTP_DIGITS or not normalized.isdigit():
        return False
    for_time = now or datetime.datetime.now(datetime.UTC)
    try:
        return _totp(secret).verify(normalized, for_time=for_time, valid_window=TOTP_VALID_WINDOW)
    except ValueError:
        # Stored secret is not valid base32.
        return False


def _totp(secret: str) -> pyotp.TOTP:
    return pyotp.TOTP(secret, digits=TOTP_DIGITS, interval=TOTP_INTERVAL_SECONDS)
