"""Container overview helpers (header summary without key derivation)."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Union

from garuda_enc.container.format import ContainerHeader, read_header
from garuda_enc.crypto.cipher import BLOCK_SIZE
from garuda_enc.errors import InputError


@dataclass(frozen=True)
class ContainerOverview:
    path: Path
    header: ContainerHeader
    file_size: int
    ciphertext_len: int

    @property
    def block_aligned(self) -> bool:
        """CBC ciphertext is always a non-empty multiple of the block size."""
        return self.ciphertext_len > 0 and self.ciphertext_len % BLOCK_SIZE == 0


def inspect_container(path: Union[str, os.PathLike[str]]) -> ContainerOverview:
    container = Path(path)
    if not container.is_file():
        raise InputError("Encrypted file not found.")
    with container.open("rb") as f:
        header = read_header(f)
        file_size = os.fstat(f.fileno()).st_size
    return ContainerOverview(
        path=container,
        header=header,
        file_size=file_size,
        ciphertext_len=file_size - header.header_len,
    )
