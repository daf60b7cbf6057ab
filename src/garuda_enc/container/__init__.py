"""Public container API re-exported for external users.

The objects listed in ``__all__`` form the supported public surface for
Python consumers. Everything else in :mod:`garuda_enc.container` is
considered internal and may change without notice.
"""
from __future__ import annotations

from garuda_enc.container.api import Encryptor, OperationHandle, OperationResult
from garuda_enc.container.core import decrypt_file, encrypt_file, encrypted_path_for
from garuda_enc.container.format import (
    MAGIC,
    ContainerHeader,
    probe,
    read_header,
    write_header,
)
from garuda_enc.container.overview import ContainerOverview, inspect_container
from garuda_enc.crypto.kdf import KdfParams

is_container = probe

__all__ = [
    "ContainerHeader",
    "ContainerOverview",
    "Encryptor",
    "KdfParams",
    "MAGIC",
    "OperationHandle",
    "OperationResult",
    "decrypt_file",
    "encrypt_file",
    "encrypted_path_for",
    "inspect_container",
    "is_container",
    "probe",
    "read_header",
    "write_header",
]
