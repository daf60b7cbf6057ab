"""Container header format helpers.

Layout, in byte order::

    magic        10 bytes   b"GaRuDaxEnc"
    ext_len       1 byte    length of the UTF-8 extension
    extension     ext_len   original suffix, including the leading dot
    salt         32 bytes   PBKDF2 salt
    iv           16 bytes   AES-CBC IV
    tag          32 bytes   HMAC-SHA-256 of the plaintext
    ciphertext   rest       PKCS#7 padded AES-256-CBC

The format has no version field.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Union

from garuda_enc.errors import (
    ContainerFormatError,
    EncodingError,
    NotAContainer,
    TruncatedContainer,
)

MAGIC = b"GaRuDaxEnc"
MAGIC_LEN = len(MAGIC)
EXT_LEN_SIZE = 1
MAX_EXTENSION_LEN = 255
SALT_LEN = 32
IV_LEN = 16
TAG_LEN = 32
FIXED_HEADER_LEN = MAGIC_LEN + EXT_LEN_SIZE + SALT_LEN + IV_LEN + TAG_LEN


@dataclass(frozen=True)
class ContainerHeader:
    extension: str
    salt: bytes
    iv: bytes
    plaintext_tag: bytes
    header_len: int


def header_length(extension_len: int) -> int:
    return FIXED_HEADER_LEN + extension_len


def encode_extension(extension: str) -> bytes:
    ext_bytes = extension.encode("utf-8")
    if len(ext_bytes) > MAX_EXTENSION_LEN:
        raise EncodingError(
            f"Extension is {len(ext_bytes)} bytes, at most {MAX_EXTENSION_LEN} fit in the header",
        )
    return ext_bytes


def build_header(extension: str, salt: bytes, iv: bytes, plaintext_tag: bytes) -> bytes:
    """Build header bytes; the ciphertext follows directly."""

    if len(salt) != SALT_LEN:
        raise EncodingError(f"salt must be {SALT_LEN} bytes")
    if len(iv) != IV_LEN:
        raise EncodingError(f"iv must be {IV_LEN} bytes")
    if len(plaintext_tag) != TAG_LEN:
        raise EncodingError(f"plaintext tag must be {TAG_LEN} bytes")
    ext_bytes = encode_extension(extension)
    return b"".join([MAGIC, bytes([len(ext_bytes)]), ext_bytes, salt, iv, plaintext_tag])


def write_header(
    stream: IO[bytes],
    extension: str,
    salt: bytes,
    iv: bytes,
    plaintext_tag: bytes,
) -> int:
    """Serialize the header to ``stream`` and return its length."""

    header = build_header(extension, salt, iv, plaintext_tag)
    stream.write(header)
    return len(header)


def _read_exact(stream: IO[bytes], size: int, field: str) -> bytes:
    data = stream.read(size)
    if len(data) != size:
        raise TruncatedContainer(f"Container truncated while reading {field}")
    return data


def read_header(stream: IO[bytes]) -> ContainerHeader:
    """Parse the header from the current position of ``stream``.

    Only the magic tag is consumed when it does not match. On success the
    stream is left positioned at the first ciphertext byte.
    """

    magic = stream.read(MAGIC_LEN)
    if magic != MAGIC:
        raise NotAContainer("File is not encrypted with this system")

    ext_len = _read_exact(stream, EXT_LEN_SIZE, "extension length")[0]
    ext_bytes = _read_exact(stream, ext_len, "extension")
    try:
        extension = ext_bytes.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ContainerFormatError("Extension is not valid UTF-8") from exc

    salt = _read_exact(stream, SALT_LEN, "salt")
    iv = _read_exact(stream, IV_LEN, "iv")
    plaintext_tag = _read_exact(stream, TAG_LEN, "integrity tag")

    return ContainerHeader(
        extension=extension,
        salt=salt,
        iv=iv,
        plaintext_tag=plaintext_tag,
        header_len=header_length(ext_len),
    )


def probe(path: Union[str, os.PathLike[str]]) -> bool:
    """Return True if ``path`` starts with the container magic tag.

    Never raises: missing or unreadable files are simply not containers.
    """

    try:
        with Path(path).open("rb") as f:
            return f.read(MAGIC_LEN) == MAGIC
    except (OSError, ValueError):
        return False


def validate_extension(extension: str) -> str:
    """Reject recorded extensions that could redirect the restored file."""

    if not extension:
        return extension
    if (
        not extension.startswith(".")
        or extension == "."
        or "/" in extension
        or "\\" in extension
        or "\x00" in extension
        or extension.count(".") != 1
    ):
        raise ContainerFormatError(f"Invalid recorded extension: {extension!r}")
    return extension


__all__ = [
    "ContainerHeader",
    "FIXED_HEADER_LEN",
    "IV_LEN",
    "MAGIC",
    "MAGIC_LEN",
    "MAX_EXTENSION_LEN",
    "SALT_LEN",
    "TAG_LEN",
    "build_header",
    "encode_extension",
    "header_length",
    "probe",
    "read_header",
    "validate_extension",
    "write_header",
]
