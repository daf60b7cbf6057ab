import os
from pathlib import Path

import pytest

from garuda_enc.container.core import decrypt_file, encrypt_file
from garuda_enc.crypto.kdf import KdfParams
from garuda_enc.errors import CryptoError, IntegrityError

PAYLOAD_SIZE = 1000


def _encrypted(tmp_path: Path) -> tuple[Path, bytes]:
    data = os.urandom(PAYLOAD_SIZE)
    source = tmp_path / "hello.txt"
    source.write_bytes(data)
    return encrypt_file(source, "pw1"), data


def test_wrong_password_leaves_no_output(tmp_path: Path) -> None:
    container, _data = _encrypted(tmp_path)
    before = container.read_bytes()

    with pytest.raises((CryptoError, IntegrityError)):
        decrypt_file(container, "pw2")

    assert container.read_bytes() == before
    assert sorted(p.name for p in tmp_path.iterdir()) == ["hello.enc"]


def test_decryption_is_retryable_after_failure(tmp_path: Path) -> None:
    container, data = _encrypted(tmp_path)

    for wrong in ("pw2", "", "PW1"):
        with pytest.raises((CryptoError, IntegrityError)):
            decrypt_file(container, wrong)

    restored = decrypt_file(container, "pw1")
    assert restored.read_bytes() == data


def test_mismatched_iteration_count_is_rejected(tmp_path: Path) -> None:
    container, _data = _encrypted(tmp_path)

    with pytest.raises((CryptoError, IntegrityError)):
        decrypt_file(container, "pw1", params=KdfParams(iterations=4999))
    assert container.exists()
