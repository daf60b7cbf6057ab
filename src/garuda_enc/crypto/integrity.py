"""Plaintext integrity tags (HMAC-SHA-256)."""

from __future__ import annotations

from typing import IO

from cryptography.hazmat.primitives import hashes, hmac

from garuda_enc.crypto.compare import constant_time_compare

TAG_LEN = 32
_READ_CHUNK = 64 * 1024


def compute_tag(stream: IO[bytes], auth_key: bytes) -> bytes:
    """Return HMAC-SHA-256 of everything left in ``stream``."""

    mac = hmac.HMAC(bytes(auth_key), hashes.SHA256())
    while True:
        chunk = stream.read(_READ_CHUNK)
        if not chunk:
            break
        mac.update(chunk)
    return mac.finalize()


def verify(computed_tag: bytes, stored_tag: bytes) -> bool:
    # Wrong password and tampering are deliberately indistinguishable here.
    return constant_time_compare(computed_tag, stored_tag)
