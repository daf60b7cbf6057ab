"""Runtime configuration for encrypt/decrypt operations."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from garuda_enc.crypto.cipher import STREAM_CHUNK_SIZE
from garuda_enc.crypto.kdf import KdfParams, recommended_params

ENCRYPTED_SUFFIX = ".enc"


@dataclass(frozen=True)
class EncryptorConfig:
    kdf: KdfParams = field(default_factory=recommended_params)
    chunk_size: int = STREAM_CHUNK_SIZE
    encrypted_suffix: str = ENCRYPTED_SUFFIX
    # None selects the default location next to the running program.
    log_path: Optional[Path] = None
    log_enabled: bool = True
    overwrite: bool = False
