"""Binary <-> text encoding for cached payloads."""

import base64
import binascii

from .errors import DecodeError


def encode_payload(data: bytes) -> str:
    """Encode asset bytes into the storable text form.

    Raises:
        DecodeError: If there is nothing to store
    """
    if not data:
        raise DecodeError("Provider returned an empty payload")
    return base64.b64encode(data).decode("ascii")


def decode_payload(payload: str) -> bytes:
    """Decode a cached payload back into asset bytes.

    Raises:
        DecodeError: If the payload is empty or not valid base64
    """
    if not payload:
        raise DecodeError("Payload is empty")
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeError(f"Payload is not valid base64: {e}", e) from e
