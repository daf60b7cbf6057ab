import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent
SRC_DIR = PROJECT_ROOT / "src"
if SRC_DIR.exists():
    sys.path.insert(0, str(SRC_DIR))

from garuda_enc.activity import ActivityLog  # noqa: E402
from garuda_enc.config import EncryptorConfig  # noqa: E402
from garuda_enc.container.api import Encryptor  # noqa: E402


class CountingRandomSource:
    """Deterministic stand-in for the system CSPRNG."""

    def __init__(self) -> None:
        self.calls: list[int] = []
        self._counter = 0

    def random_bytes(self, length: int) -> bytes:
        self.calls.append(length)
        self._counter += 1
        return bytes((self._counter + i) % 256 for i in range(length))


@pytest.fixture
def log_path(tmp_path: Path) -> Path:
    return tmp_path / "activity.log"


@pytest.fixture
def encryptor(log_path: Path) -> Encryptor:
    return Encryptor(EncryptorConfig(log_path=log_path, chunk_size=1024))


@pytest.fixture
def counting_random() -> CountingRandomSource:
    return CountingRandomSource()


@pytest.fixture
def activity_log(log_path: Path) -> ActivityLog:
    return ActivityLog(log_path)
