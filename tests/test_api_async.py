import os
import subprocess
import sys
import textwrap
import threading
from pathlib import Path

from garuda_enc.activity import ActivityLog
from garuda_enc.config import EncryptorConfig
from garuda_enc.container.api import (
    INTEGRITY_MESSAGE,
    INVALID_PASSWORD_MESSAGE,
    Encryptor,
    OperationResult,
)
from garuda_enc.container.format import read_header
from garuda_enc.errors import InputError, OperationAborted

TIMEOUT = 30


class _Recorder:
    def __init__(self) -> None:
        self.progress: list[int] = []
        self.completions: list[tuple[bool, str]] = []

    def on_progress(self, percent: int) -> None:
        self.progress.append(percent)

    def on_complete(self, success: bool, message: str) -> None:
        self.completions.append((success, message))


def _run_encrypt(encryptor: Encryptor, path: Path, password: str, **kwargs) -> tuple[OperationResult, _Recorder]:
    recorder = _Recorder()
    handle = encryptor.encrypt(
        path,
        password,
        on_progress=recorder.on_progress,
        on_complete=recorder.on_complete,
        **kwargs,
    )
    result = handle.wait(TIMEOUT)
    assert handle.done
    assert result is not None
    return result, recorder


def _run_decrypt(encryptor: Encryptor, path: Path, password: str) -> tuple[OperationResult, _Recorder]:
    recorder = _Recorder()
    handle = encryptor.decrypt(path, password, on_progress=recorder.on_progress, on_complete=recorder.on_complete)
    result = handle.wait(TIMEOUT)
    assert result is not None
    return result, recorder


def test_encrypt_then_decrypt_reports_once(tmp_path: Path, encryptor: Encryptor) -> None:
    data = os.urandom(5000)
    source = tmp_path / "hello.txt"
    source.write_bytes(data)

    result, recorder = _run_encrypt(encryptor, source, "pw1")
    assert result.success
    assert result.message == "File encrypted successfully."
    assert result.output_path == tmp_path / "hello.enc"
    assert recorder.completions == [(True, "File encrypted successfully.")]
    assert recorder.progress == sorted(recorder.progress)
    assert recorder.progress[-1] == 100
    assert encryptor.is_container(tmp_path / "hello.enc")

    result, recorder = _run_decrypt(encryptor, tmp_path / "hello.enc", "pw1")
    assert result.success
    assert recorder.completions == [(True, "File decrypted successfully.")]
    assert recorder.progress[-1] == 100
    assert source.read_bytes() == data


def test_missing_file(tmp_path: Path, encryptor: Encryptor) -> None:
    result, recorder = _run_encrypt(encryptor, tmp_path / "nope.txt", "pw")
    assert recorder.completions == [(False, "File not found.")]
    assert recorder.progress == []
    assert isinstance(result.error, InputError)

    _result, recorder = _run_decrypt(encryptor, tmp_path / "nope.enc", "pw")
    assert recorder.completions == [(False, "Encrypted file not found.")]


def test_already_encrypted_and_not_a_container(tmp_path: Path, encryptor: Encryptor) -> None:
    source = tmp_path / "a.txt"
    source.write_bytes(b"plain")
    result, _ = _run_encrypt(encryptor, source, "pw")
    container = result.output_path
    assert container is not None
    before = container.read_bytes()

    _result, recorder = _run_encrypt(encryptor, container, "pw")
    assert recorder.completions == [(False, "File is already encrypted.")]
    assert container.read_bytes() == before

    plain = tmp_path / "b.txt"
    plain.write_bytes(b"not encrypted at all")
    _result, recorder = _run_decrypt(encryptor, plain, "pw")
    assert recorder.completions == [(False, "File is not encrypted with this system.")]
    assert plain.read_bytes() == b"not encrypted at all"


def test_wrong_password_message_is_ambiguous(tmp_path: Path, encryptor: Encryptor) -> None:
    source = tmp_path / "hello.txt"
    source.write_bytes(os.urandom(1000))
    _run_encrypt(encryptor, source, "pw1")

    result, recorder = _run_decrypt(encryptor, tmp_path / "hello.enc", "pw2")

    assert not result.success
    assert result.message in {INVALID_PASSWORD_MESSAGE, INTEGRITY_MESSAGE}
    assert len(recorder.completions) == 1
    assert sorted(p.name for p in tmp_path.iterdir()) == ["activity.log", "hello.enc"]


def test_cancel_removes_temp_and_keeps_original(tmp_path: Path, log_path: Path) -> None:
    encryptor = Encryptor(EncryptorConfig(log_path=log_path, chunk_size=512))
    data = os.urandom(8192)
    source = tmp_path / "big.bin"
    source.write_bytes(data)
    gate = threading.Event()
    recorder = _Recorder()

    def _blocking_progress(percent: int) -> None:
        recorder.on_progress(percent)
        gate.wait(TIMEOUT)

    handle = encryptor.encrypt(source, "pw", on_progress=_blocking_progress, on_complete=recorder.on_complete)
    handle.cancel()
    gate.set()
    result = handle.wait(TIMEOUT)

    assert result is not None
    assert handle.cancelled
    assert not result.success
    assert isinstance(result.error, OperationAborted)
    assert recorder.completions == [(False, "Encryption was aborted.")]
    assert source.read_bytes() == data
    assert not (tmp_path / "big.bin.tmp").exists()
    assert not (tmp_path / "big.enc").exists()
    assert "ENCRYPT_ABORTED" in log_path.read_text(encoding="utf-8")


def test_callback_errors_do_not_break_completion(tmp_path: Path, encryptor: Encryptor) -> None:
    source = tmp_path / "a.txt"
    source.write_bytes(b"x" * 3000)
    completions: list[bool] = []

    def _bad_progress(_percent: int) -> None:
        raise RuntimeError("ui went away")

    def _bad_complete(success: bool, _message: str) -> None:
        completions.append(success)
        raise RuntimeError("ui went away")

    handle = encryptor.encrypt(source, "pw", on_progress=_bad_progress, on_complete=_bad_complete)
    result = handle.wait(TIMEOUT)

    assert result is not None and result.success
    assert completions == [True]


def test_concurrent_operations_are_independent(tmp_path: Path, encryptor: Encryptor) -> None:
    payloads = {tmp_path / f"file{i}.txt": os.urandom(2000 + i) for i in range(6)}
    for path, data in payloads.items():
        path.write_bytes(data)

    handles = [encryptor.encrypt(path, f"pw-{path.name}") for path in payloads]
    results = [handle.wait(TIMEOUT) for handle in handles]
    assert all(r is not None and r.success for r in results)

    salts = set()
    for path in payloads:
        with path.with_suffix(".enc").open("rb") as f:
            salts.add(read_header(f).salt)
    assert len(salts) == len(payloads)

    handles = [encryptor.decrypt(path.with_suffix(".enc"), f"pw-{path.name}") for path in payloads]
    assert all(h.wait(TIMEOUT).success for h in handles)  # type: ignore[union-attr]
    for path, data in payloads.items():
        assert path.read_bytes() == data


def test_make_backup_creates_plain_copy(tmp_path: Path, encryptor: Encryptor) -> None:
    source = tmp_path / "keep.txt"
    source.write_bytes(b"original")

    result, _ = _run_encrypt(encryptor, source, "pw", make_backup=True)

    assert result.success
    assert (tmp_path / "keep.txt.bak").read_bytes() == b"original"
    assert not source.exists()


def test_activity_log_lines(tmp_path: Path, log_path: Path) -> None:
    encryptor = Encryptor(activity_log=ActivityLog(log_path))
    source = tmp_path / "doc.txt"
    source.write_bytes(b"content")

    _run_encrypt(encryptor, source, "pw")
    _run_decrypt(encryptor, tmp_path / "doc.enc", "wrong")
    _run_decrypt(encryptor, tmp_path / "doc.enc", "pw")

    lines = log_path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 3
    actions = [line.split(" | ")[1] for line in lines]
    assert actions[0] == "ENCRYPT_SUCCESS"
    assert actions[1].startswith("DECRYPT_FAILED: ")
    assert actions[2] == "DECRYPT_SUCCESS"
    assert lines[0].endswith(f" | {source}")
    assert "pw" not in actions[1]


def test_log_disabled(tmp_path: Path, log_path: Path) -> None:
    encryptor = Encryptor(EncryptorConfig(log_path=log_path, log_enabled=False))
    source = tmp_path / "doc.txt"
    source.write_bytes(b"content")
    result, _ = _run_encrypt(encryptor, source, "pw")
    assert result.success
    assert not log_path.exists()


def test_injected_random_source(tmp_path: Path, log_path: Path, counting_random) -> None:
    encryptor = Encryptor(EncryptorConfig(log_path=log_path), random_source=counting_random)
    source = tmp_path / "doc.txt"
    source.write_bytes(b"content")
    result, _ = _run_encrypt(encryptor, source, "pw")
    assert result.success
    assert counting_random.calls == [32, 16]


_EXIT_MID_OPERATION = textwrap.dedent(
    """
    import sys
    import threading
    import time
    from pathlib import Path

    from garuda_enc.config import EncryptorConfig
    from garuda_enc.container.api import Encryptor

    started = threading.Event()

    def on_progress(percent):
        started.set()
        time.sleep(0.01)

    encryptor = Encryptor(EncryptorConfig(log_enabled=False, chunk_size=1024))
    encryptor.encrypt(Path(sys.argv[1]), "pw", on_progress=on_progress)
    if not started.wait(30):
        sys.exit(1)
    """
)


def test_interpreter_exit_cancels_and_removes_temp(tmp_path: Path) -> None:
    source = tmp_path / "big.bin"
    data = os.urandom(1024 * 1024)
    source.write_bytes(data)
    src_dir = Path(__file__).resolve().parent.parent / "src"
    env = dict(os.environ)
    env["PYTHONPATH"] = os.pathsep.join(filter(None, [str(src_dir), env.get("PYTHONPATH")]))

    completed = subprocess.run(
        [sys.executable, "-c", _EXIT_MID_OPERATION, str(source)],
        env=env,
        capture_output=True,
        timeout=120,
    )

    assert completed.returncode == 0, completed.stderr
    assert sorted(p.name for p in tmp_path.iterdir()) == ["big.bin"]
    assert source.read_bytes() == data


def test_surrogate_escaped_password_roundtrip(tmp_path: Path, encryptor: Encryptor) -> None:
    source = tmp_path / "raw.txt"
    source.write_bytes(b"payload")

    result, _ = _run_encrypt(encryptor, source, "pw\udcff")
    assert result.success, result.message

    result, _ = _run_decrypt(encryptor, tmp_path / "raw.enc", "pw\udcff")
    assert result.success, result.message
    assert source.read_bytes() == b"payload"
