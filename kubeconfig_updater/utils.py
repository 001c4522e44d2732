"""
Updater Utilities

Small filesystem and hashing helpers shared by the services.
"""

import hashlib
import os
import threading
from pathlib import Path
from typing import Optional, Union


def expand_path(path: Union[str, Path]) -> Path:
    """Expand ~ in a user supplied path."""
    return Path(path).expanduser()


def sha256_hex(content: bytes) -> str:
    """Return the lowercase hex SHA-256 digest of raw bytes."""
    return hashlib.sha256(content).hexdigest()


def atomic_write(
    path: Union[str, Path],
    content: Union[str, bytes],
    mode: Optional[int] = None,
) -> None:
    """
    Write a file atomically (write to a sibling .tmp file, then rename).

    Args:
        path: Destination path
        content: Text or bytes to write
        mode: Optional permission bits applied to the temp file before writing
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f"{path.name}.{os.getpid()}.{threading.get_ident()}.tmp")

    data = content.encode("utf-8") if isinstance(content, str) else content
    fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode or 0o644)
    try:
        with os.fdopen(fd, "wb") as f:
            if mode is not None:
                os.fchmod(f.fileno(), mode)
            f.write(data)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise

    os.replace(tmp_path, path)
