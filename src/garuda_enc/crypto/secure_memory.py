"""Best-effort wiping of derived key material.

Python cannot guarantee that no other copy of a secret survives (the
``cryptography`` backend keeps its own), but the buffers this package owns
are zeroed as soon as an operation ends.
"""
from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from garuda_enc.crypto.kdf import DerivedKeys


def secure_zeroize(data: bytearray | None) -> None:
    """Zero a bytearray in-place."""
    if data is None:
        return
    length = len(data)
    for i in range(length):
        data[i] = 0
    # Read back to create a data dependency on the last write
    if length > 0:
        _ = data[0]


def wipe_keys(keys: DerivedKeys | None) -> None:
    if keys is None:
        return
    secure_zeroize(keys.enc_key)
    secure_zeroize(keys.auth_key)
