"""Asynchronous encrypt/decrypt surface with progress and completion callbacks.

Every call runs on its own worker thread and reports exactly one
:class:`OperationResult`. Callbacks are invoked from the worker thread;
callers that drive a UI must marshal them onto their own thread.
"""

from __future__ import annotations

import atexit
import logging
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Literal, Optional, Union

from garuda_enc.activity import ActivityLog, backup
from garuda_enc.config import EncryptorConfig
from garuda_enc.container.core import decrypt_file, encrypt_file
from garuda_enc.container.format import probe
from garuda_enc.crypto.cipher import ProgressCallback
from garuda_enc.crypto.rng import RandomSource, default_random_source
from garuda_enc.errors import (
    ContainerFormatError,
    CryptoError,
    InputError,
    IntegrityError,
    OperationAborted,
)

logger = logging.getLogger(__name__)

# Workers are daemon threads; interpreter shutdown cancels and joins them so
# their temporary files are cleaned up instead of being left behind.
_LIVE_HANDLES: set[OperationHandle] = set()
_LIVE_LOCK = threading.Lock()

PathLike = Union[str, os.PathLike[str]]
ActionLiteral = Literal["encrypt", "decrypt"]

INVALID_PASSWORD_MESSAGE = "Decryption failed: Invalid password or corrupted file."
INTEGRITY_MESSAGE = "File integrity check failed. Possible tampering or wrong password."

_MESSAGES = {
    "encrypt": {
        "success": "File encrypted successfully.",
        "aborted": "Encryption was aborted.",
        "failed": "Encryption failed: {}",
    },
    "decrypt": {
        "success": "File decrypted successfully.",
        "aborted": "Decryption was aborted.",
        "failed": "Decryption failed: {}",
    },
}


@dataclass(frozen=True)
class OperationResult:
    success: bool
    message: str
    output_path: Optional[Path] = None
    error: Optional[Exception] = None


CompletionCallback = Callable[[bool, str], None]


class OperationHandle:
    """Handle for one running operation."""

    def __init__(self, action: ActionLiteral, path: Path) -> None:
        self.action = action
        self.path = path
        self._cancel_event = threading.Event()
        self._done_event = threading.Event()
        self._result: Optional[OperationResult] = None
        self._thread: Optional[threading.Thread] = None

    def cancel(self) -> None:
        """Request an abort; temporary files are removed by the worker."""
        self._cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    @property
    def done(self) -> bool:
        return self._done_event.is_set()

    @property
    def result(self) -> Optional[OperationResult]:
        return self._result

    def wait(self, timeout: Optional[float] = None) -> Optional[OperationResult]:
        self._done_event.wait(timeout)
        return self._result


def _safe_progress(callback: Optional[ProgressCallback]) -> Optional[ProgressCallback]:
    if callback is None:
        return None

    def _emit(percent: int) -> None:
        try:
            callback(percent)
        except Exception:  # noqa: BLE001
            logger.exception("progress callback raised")

    return _emit


def _abort_live_operations() -> None:
    with _LIVE_LOCK:
        handles = list(_LIVE_HANDLES)
    for handle in handles:
        handle.cancel()
    for handle in handles:
        if handle._thread is not None:
            handle._thread.join()


atexit.register(_abort_live_operations)


class Encryptor:
    """Runs encrypt/decrypt workflows on background threads.

    ``random_source`` can be replaced with a deterministic source in tests;
    by default the process-wide locked CSPRNG is used.
    """

    def __init__(
        self,
        config: Optional[EncryptorConfig] = None,
        *,
        random_source: Optional[RandomSource] = None,
        activity_log: Optional[ActivityLog] = None,
    ) -> None:
        self.config = config or EncryptorConfig()
        self.random_source = random_source or default_random_source()
        self.activity_log = activity_log or ActivityLog(
            self.config.log_path,
            enabled=self.config.log_enabled,
        )

    @staticmethod
    def is_container(path: PathLike) -> bool:
        return probe(path)

    @staticmethod
    def backup(path: PathLike) -> Optional[Path]:
        return backup(path)

    def encrypt(
        self,
        path: PathLike,
        password: str,
        make_backup: bool = False,
        *,
        on_progress: Optional[ProgressCallback] = None,
        on_complete: Optional[CompletionCallback] = None,
    ) -> OperationHandle:
        handle = OperationHandle("encrypt", Path(path))
        progress = _safe_progress(on_progress)

        def _work() -> Path:
            return encrypt_file(
                handle.path,
                password,
                make_backup=make_backup,
                params=self.config.kdf,
                random_source=self.random_source,
                overwrite=self.config.overwrite,
                encrypted_suffix=self.config.encrypted_suffix,
                chunk_size=self.config.chunk_size,
                on_progress=progress,
                cancel_event=handle._cancel_event,
            )

        return self._start(handle, _work, on_complete)

    def decrypt(
        self,
        path: PathLike,
        password: str,
        *,
        on_progress: Optional[ProgressCallback] = None,
        on_complete: Optional[CompletionCallback] = None,
    ) -> OperationHandle:
        handle = OperationHandle("decrypt", Path(path))
        progress = _safe_progress(on_progress)

        def _work() -> Path:
            return decrypt_file(
                handle.path,
                password,
                params=self.config.kdf,
                overwrite=self.config.overwrite,
                chunk_size=self.config.chunk_size,
                on_progress=progress,
                cancel_event=handle._cancel_event,
            )

        return self._start(handle, _work, on_complete)

    def _start(
        self,
        handle: OperationHandle,
        work: Callable[[], Path],
        on_complete: Optional[CompletionCallback],
    ) -> OperationHandle:
        thread = threading.Thread(
            target=self._run,
            args=(handle, work, on_complete),
            name=f"garuda-enc-{handle.action}",
            daemon=True,
        )
        handle._thread = thread
        with _LIVE_LOCK:
            _LIVE_HANDLES.add(handle)
        thread.start()
        return handle

    def _run(
        self,
        handle: OperationHandle,
        work: Callable[[], Path],
        on_complete: Optional[CompletionCallback],
    ) -> None:
        result = self._execute(handle, work)
        handle._result = result
        try:
            if on_complete is not None:
                on_complete(result.success, result.message)
        except Exception:  # noqa: BLE001
            logger.exception("completion callback raised")
        finally:
            with _LIVE_LOCK:
                _LIVE_HANDLES.discard(handle)
            handle._done_event.set()

    def _execute(self, handle: OperationHandle, work: Callable[[], Path]) -> OperationResult:
        action = handle.action
        tag = action.upper()
        messages = _MESSAGES[action]
        try:
            output = work()
        except OperationAborted as exc:
            self.activity_log.record(f"{tag}_ABORTED", handle.path)
            return OperationResult(False, messages["aborted"], error=exc)
        except InputError as exc:
            return OperationResult(False, str(exc), error=exc)
        except IntegrityError as exc:
            self.activity_log.record(f"{tag}_FAILED: Integrity check failed", handle.path)
            return OperationResult(False, INTEGRITY_MESSAGE, error=exc)
        except CryptoError as exc:
            self.activity_log.record(f"{tag}_FAILED: Cryptographic error", handle.path)
            if action == "decrypt":
                return OperationResult(False, INVALID_PASSWORD_MESSAGE, error=exc)
            return OperationResult(False, messages["failed"].format(exc), error=exc)
        except ContainerFormatError as exc:
            self.activity_log.record(f"{tag}_FAILED: {exc}", handle.path)
            return OperationResult(False, messages["failed"].format(exc), error=exc)
        except Exception as exc:  # noqa: BLE001
            logger.debug("%s of %s failed", action, handle.path, exc_info=True)
            self.activity_log.record(f"{tag}_FAILED: {exc}", handle.path)
            return OperationResult(False, messages["failed"].format(exc), error=exc)

        self.activity_log.record(f"{tag}_SUCCESS", handle.path)
        return OperationResult(True, messages["success"], output_path=output)


__all__ = [
    "CompletionCallback",
    "Encryptor",
    "INTEGRITY_MESSAGE",
    "INVALID_PASSWORD_MESSAGE",
    "OperationHandle",
    "OperationResult",
]
