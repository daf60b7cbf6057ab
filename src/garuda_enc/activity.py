"""Activity log file and backup copies.

Both are best-effort side effects: failures are logged to the diagnostic
logger and never propagate into an encrypt/decrypt operation.
"""
from __future__ import annotations

import logging
import os
import shutil
import sys
import threading
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)

LOG_FILE_NAME = "garuda_enc.log"
BACKUP_SUFFIX = ".bak"

# Shared by log appends and the backup existence check.
_ACTIVITY_LOCK = threading.Lock()

PathLike = Union[str, os.PathLike[str]]


def default_log_path() -> Path:
    """Return the log location next to the running program, or in the CWD."""

    argv0 = sys.argv[0] if sys.argv else ""
    if argv0:
        base = Path(argv0).resolve().parent
        if base.is_dir():
            return base / LOG_FILE_NAME
    return Path.cwd() / LOG_FILE_NAME


class ActivityLog:
    """Append-only ``timestamp | action | path`` log."""

    def __init__(self, path: Optional[PathLike] = None, *, enabled: bool = True) -> None:
        self.path = Path(path) if path is not None else default_log_path()
        self.enabled = enabled

    def record(self, action: str, target: PathLike) -> None:
        if not self.enabled:
            return
        line = f"{datetime.now():%Y-%m-%d %H:%M:%S} | {action} | {target}\n"
        try:
            with _ACTIVITY_LOCK:
                with self.path.open("a", encoding="utf-8") as f:
                    f.write(line)
        except OSError as exc:
            logger.debug("activity log write to %s failed: %s", self.path, exc)


def backup_path_for(path: PathLike) -> Path:
    source = Path(path)
    return source.with_name(source.name + BACKUP_SUFFIX)


def backup(path: PathLike) -> Optional[Path]:
    """Copy ``path`` to ``path + '.bak'`` unless that backup already exists.

    Returns the backup path, or None if the copy failed.
    """

    source = Path(path)
    target = backup_path_for(source)
    try:
        with _ACTIVITY_LOCK:
            if not target.exists():
                shutil.copy2(source, target)
    except OSError as exc:
        logger.warning("backup of %s failed: %s", source, exc)
        return None
    return target
