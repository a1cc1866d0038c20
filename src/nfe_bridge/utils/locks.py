from __future__ import annotations

import hashlib
import re
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from filelock import FileLock

from nfe_bridge import config as _config

_UNSAFE = re.compile(r"[^A-Za-z0-9._-]")


def _lock_file(record_id: str) -> Path:
    # digest keeps names that sanitize alike (INV/1, INV_1) on separate files
    safe = _UNSAFE.sub("_", record_id) or "_"
    digest = hashlib.sha1(record_id.encode()).hexdigest()[:8]
    return _config.get_data_dir() / "locks" / f"{safe}-{digest}.lock"


@contextmanager
def issuance_lock(record_id: str, timeout: float = -1) -> Iterator[None]:
    """Hold an exclusive file lock while one source record is being issued.

    Two webhook deliveries for the same record are serialized; different
    records never contend. *timeout* follows FileLock (-1 waits forever).
    """
    lf = _lock_file(record_id)
    lf.parent.mkdir(parents=True, exist_ok=True)
    lock = FileLock(lf, timeout=timeout)
    with lock:
        yield
