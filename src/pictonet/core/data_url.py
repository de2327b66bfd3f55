"""Rendered images travel through the pipeline as base64 data URLs."""

import base64
import binascii
import re

__all__ = ['encode_data_url', 'decode_data_url']

_DATA_URL = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?:;[\w=-]+)*;base64,(?P<data>.*)$", re.DOTALL)


def encode_data_url(data: bytes, mime_type: str = "image/png") -> str:
    return f"data:{mime_type or 'image/png'};base64,{base64.b64encode(data).decode('ascii')}"


def decode_data_url(value: str) -> tuple[bytes, str]:
    """Bytes and MIME type of a data URL.

    Bare base64 (no ``data:`` prefix) is accepted and assumed to be PNG.

    Raises
    ------
    ValueError
        If the payload is not valid base64.
    """
    match = _DATA_URL.match(value.strip())
    if match:
        mime = match.group("mime") or "image/png"
        payload = match.group("data")
    else:
        mime = "image/png"
        payload = value.strip()
    try:
        return base64.b64decode(payload, validate=True), mime
    except binascii.Error as e:
        raise ValueError(f"Image payload is not valid base64: {e}") from e
