from pathlib import Path

import pytest

from garuda_enc.container import inspect_container
from garuda_enc.container.core import encrypt_file
from garuda_enc.container.format import FIXED_HEADER_LEN
from garuda_enc.errors import InputError, NotAContainer


def test_inspect_reports_header_and_sizes(tmp_path: Path) -> None:
    source = tmp_path / "photo.jpeg"
    source.write_bytes(b"\xff\xd8" * 500)
    container = encrypt_file(source, "pw")

    overview = inspect_container(container)

    assert overview.header.extension == ".jpeg"
    assert overview.header.header_len == FIXED_HEADER_LEN + 5
    assert overview.file_size == container.stat().st_size
    assert overview.ciphertext_len == 1008
    assert overview.block_aligned


def test_inspect_rejects_plain_and_missing_files(tmp_path: Path) -> None:
    plain = tmp_path / "plain.txt"
    plain.write_text("hello there, plain text")

    with pytest.raises(NotAContainer):
        inspect_container(plain)
    with pytest.raises(InputError):
        inspect_container(tmp_path / "missing.enc")
