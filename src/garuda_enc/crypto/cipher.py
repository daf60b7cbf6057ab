"""Streaming AES-256-CBC encryption/decryption with progress reporting."""

from __future__ import annotations

import threading
from typing import IO, Callable, Literal, Optional

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from garuda_enc.errors import OperationAborted, PaddingError

STREAM_CHUNK_SIZE = 8192
KEY_LEN = 32
IV_LEN = 16
BLOCK_BITS = 128
BLOCK_SIZE = BLOCK_BITS // 8

ModeLiteral = Literal["encrypt", "decrypt"]
ProgressCallback = Callable[[int], None]


def progress_percent(done: int, total: int) -> int:
    """Return ``floor(done * 100 / total)`` clamped to 0..100."""

    if total <= 0:
        return 100
    return max(0, min(100, done * 100 // total))


def transform(
    in_file: IO[bytes],
    out_file: IO[bytes],
    mode: ModeLiteral,
    key: bytes,
    iv: bytes,
    total_bytes_hint: int,
    on_progress: Optional[ProgressCallback] = None,
    *,
    chunk_size: int = STREAM_CHUNK_SIZE,
    cancel_event: Optional[threading.Event] = None,
) -> int:
    """Encrypt or decrypt ``in_file`` into ``out_file`` chunk by chunk.

    Progress is measured against bytes read from ``in_file``, so for
    decryption ``total_bytes_hint`` is the ciphertext length. Returns the
    number of bytes read.
    """

    if len(key) != KEY_LEN:
        raise ValueError(f"key must be {KEY_LEN} bytes")
    if len(iv) != IV_LEN:
        raise ValueError(f"iv must be {IV_LEN} bytes")
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")

    cipher = Cipher(algorithms.AES(bytes(key)), modes.CBC(bytes(iv)))
    if mode == "encrypt":
        padder = padding.PKCS7(BLOCK_BITS).padder()
        encryptor = cipher.encryptor()

        def _step(chunk: bytes) -> bytes:
            return encryptor.update(padder.update(chunk))

        def _final() -> bytes:
            return encryptor.update(padder.finalize()) + encryptor.finalize()

    elif mode == "decrypt":
        unpadder = padding.PKCS7(BLOCK_BITS).unpadder()
        decryptor = cipher.decryptor()

        def _step(chunk: bytes) -> bytes:
            return unpadder.update(decryptor.update(chunk))

        def _final() -> bytes:
            try:
                tail = unpadder.update(decryptor.finalize())
                return tail + unpadder.finalize()
            except ValueError as exc:
                raise PaddingError("Invalid padding or ciphertext length") from exc

    else:
        raise ValueError(f"Unknown mode: {mode!r}")

    total_read = 0
    last_percent = -1
    while True:
        if cancel_event is not None and cancel_event.is_set():
            raise OperationAborted("Operation was cancelled")
        chunk = in_file.read(chunk_size)
        if not chunk:
            break
        total_read += len(chunk)
        data = _step(chunk)
        if data:
            out_file.write(data)
        last_percent = progress_percent(total_read, total_bytes_hint)
        if on_progress is not None:
            on_progress(last_percent)

    final_chunk = _final()
    if final_chunk:
        out_file.write(final_chunk)
    out_file.flush()

    if last_percent < 100 and on_progress is not None:
        on_progress(100)
    return total_read


__all__ = [
    "BLOCK_SIZE",
    "IV_LEN",
    "KEY_LEN",
    "ModeLiteral",
    "ProgressCallback",
    "STREAM_CHUNK_SIZE",
    "progress_percent",
    "transform",
]
