"""Core high-level operations for container encryption/decryption."""
from __future__ import annotations

import logging
import os
import threading
from pathlib import Path
from types import TracebackType
from typing import IO, Literal, Optional, Type, Union

from garuda_enc.activity import backup
from garuda_enc.config import ENCRYPTED_SUFFIX
from garuda_enc.container.format import (
    IV_LEN,
    SALT_LEN,
    encode_extension,
    probe,
    read_header,
    validate_extension,
    write_header,
)
from garuda_enc.crypto.cipher import STREAM_CHUNK_SIZE, ProgressCallback, transform
from garuda_enc.crypto.integrity import compute_tag, verify
from garuda_enc.crypto.kdf import DerivedKeys, KdfParams, derive_keys, recommended_params
from garuda_enc.crypto.rng import RandomSource, default_random_source
from garuda_enc.crypto.secure_memory import wipe_keys
from garuda_enc.errors import InputError, IntegrityError, OperationAborted

logger = logging.getLogger(__name__)

TEMP_SUFFIX = ".tmp"

PathLike = Union[str, os.PathLike[str]]

__all__ = [
    "TEMP_SUFFIX",
    "decrypt_file",
    "encrypt_file",
    "encrypted_path_for",
    "restored_path_for",
    "split_suffix",
]


def split_suffix(path: PathLike) -> tuple[str, str]:
    """Split a file name into stem and suffix.

    A leading or trailing dot never starts a suffix, so ``.bashrc`` and
    ``notes.`` have none. This does not depend on the running Python's
    ``Path.suffix`` rules, which changed for trailing dots.
    """

    name = Path(path).name
    dot = name.rfind(".")
    if 0 < dot < len(name) - 1:
        return name[:dot], name[dot:]
    return name, ""


def encrypted_path_for(path: PathLike, suffix: str = ENCRYPTED_SUFFIX) -> Path:
    """``report.txt`` -> ``report.enc``; paths without a suffix gain one."""

    stem, _ = split_suffix(path)
    return Path(path).with_name(stem + suffix)


def restored_path_for(container: PathLike, extension: str) -> Path:
    stem, _ = split_suffix(container)
    return Path(container).with_name(stem + validate_extension(extension))


def _temp_path_for(path: Path) -> Path:
    return path.with_name(path.name + TEMP_SUFFIX)


class _TempOutput:
    """Temporary output file removed on exit unless committed.

    Cleanup runs for every exit path, including cancellation and errors
    raised while the file is still open.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._created = False
        self._committed = False

    def __enter__(self) -> _TempOutput:
        return self

    def open(self) -> IO[bytes]:
        handle = self.path.open("xb")
        self._created = True
        return handle

    def commit(self, target: Path) -> None:
        os.replace(self.path, target)
        self._committed = True

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> Literal[False]:
        if self._created and not self._committed:
            try:
                self.path.unlink(missing_ok=True)
            except OSError as cleanup_exc:
                logger.warning("could not remove temporary file %s: %s", self.path, cleanup_exc)
        return False


def _ensure_output(target: Path, source: Path, overwrite: bool) -> None:
    if target == source or not target.exists():
        return
    if not overwrite:
        raise InputError(f"Output file already exists: {target}")
    if target.is_dir():
        raise InputError(f"Output path is a directory: {target}")


def _check_cancelled(cancel_event: Optional[threading.Event]) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise OperationAborted("Operation was cancelled")


def _sync(handle: IO[bytes]) -> None:
    handle.flush()
    os.fsync(handle.fileno())


def _finish_replace(temp: _TempOutput, target: Path, source: Path) -> None:
    """Move ``temp`` onto ``target``, then drop ``source``.

    ``os.replace`` is atomic, so either the source or the finished output
    exists at every point. If the source cannot be removed the new output is
    withdrawn again and the source is left as it was.
    """

    temp.commit(target)
    if target == source:
        return
    try:
        source.unlink()
    except OSError:
        try:
            target.unlink(missing_ok=True)
        except OSError as cleanup_exc:
            logger.warning("could not withdraw %s: %s", target, cleanup_exc)
        raise


def _derive(password: str, salt: bytes, params: KdfParams) -> DerivedKeys:
    return derive_keys(password, salt, params.iterations, hash_name=params.hash_name)


def encrypt_file(
    path: PathLike,
    password: str,
    *,
    make_backup: bool = False,
    params: Optional[KdfParams] = None,
    random_source: Optional[RandomSource] = None,
    overwrite: bool = False,
    encrypted_suffix: str = ENCRYPTED_SUFFIX,
    chunk_size: int = STREAM_CHUNK_SIZE,
    on_progress: Optional[ProgressCallback] = None,
    cancel_event: Optional[threading.Event] = None,
) -> Path:
    """Encrypt ``path`` in place, returning the path of the new container.

    The original file is only removed after the container has been fully
    written and moved into place.
    """

    source = Path(path)
    if not source.is_file():
        raise InputError("File not found.")
    if probe(source):
        raise InputError("File is already encrypted.")

    target = encrypted_path_for(source, encrypted_suffix)
    _ensure_output(target, source, overwrite)
    _, extension = split_suffix(source)
    encode_extension(extension)

    if make_backup:
        backup(source)

    kdf_params = params or recommended_params()
    rng = random_source or default_random_source()
    salt = rng.random_bytes(SALT_LEN)
    iv = rng.random_bytes(IV_LEN)

    keys = _derive(password, salt, kdf_params)
    try:
        with source.open("rb") as f:
            plaintext_tag = compute_tag(f, keys.auth_key)
        _check_cancelled(cancel_event)

        with _TempOutput(_temp_path_for(source)) as temp:
            with source.open("rb") as in_file, temp.open() as out_file:
                write_header(out_file, extension, salt, iv, plaintext_tag)
                total = os.fstat(in_file.fileno()).st_size
                transform(
                    in_file,
                    out_file,
                    "encrypt",
                    keys.enc_key,
                    iv,
                    total,
                    on_progress,
                    chunk_size=chunk_size,
                    cancel_event=cancel_event,
                )
                _sync(out_file)
            _check_cancelled(cancel_event)
            _finish_replace(temp, target, source)
    finally:
        wipe_keys(keys)

    logger.debug("encrypted %s -> %s", source, target)
    return target


def decrypt_file(
    path: PathLike,
    password: str,
    *,
    params: Optional[KdfParams] = None,
    overwrite: bool = False,
    chunk_size: int = STREAM_CHUNK_SIZE,
    on_progress: Optional[ProgressCallback] = None,
    cancel_event: Optional[threading.Event] = None,
) -> Path:
    """Decrypt the container at ``path`` in place, returning the restored path.

    The container is left untouched unless the decrypted plaintext passes the
    integrity check.
    """

    container = Path(path)
    if not container.is_file():
        raise InputError("Encrypted file not found.")
    if not probe(container):
        raise InputError("File is not encrypted with this system.")

    kdf_params = params or recommended_params()
    keys: Optional[DerivedKeys] = None
    try:
        with container.open("rb") as in_file:
            header = read_header(in_file)
            target = restored_path_for(container, header.extension)
            _ensure_output(target, container, overwrite)
            ciphertext_len = os.fstat(in_file.fileno()).st_size - header.header_len

            keys = _derive(password, header.salt, kdf_params)
            temp = _TempOutput(_temp_path_for(target))
            with temp:
                with temp.open() as out_file:
                    transform(
                        in_file,
                        out_file,
                        "decrypt",
                        keys.enc_key,
                        header.iv,
                        ciphertext_len,
                        on_progress,
                        chunk_size=chunk_size,
                        cancel_event=cancel_event,
                    )
                    _sync(out_file)

                with temp.path.open("rb") as check:
                    computed = compute_tag(check, keys.auth_key)
                if not verify(computed, header.plaintext_tag):
                    raise IntegrityError("File integrity check failed")
                _check_cancelled(cancel_event)

                in_file.close()
                _finish_replace(temp, target, container)
    finally:
        wipe_keys(keys)

    logger.debug("decrypted %s -> %s", container, target)
    return target
