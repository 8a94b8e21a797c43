from __future__ import annotations
import logging
from typing import Callable, Dict, Optional, TypeVar

import psutil

from ..models import ProcessRecord

log = logging.getLogger(__name__)

T = TypeVar("T")


def _field(fn: Callable[[], T]) -> Optional[T]:
    try:
        return fn()
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        return None


def read_process(pid: int) -> ProcessRecord:
    """Details of one pid; whatever cannot be read stays None."""
    try:
        p = psutil.Process(pid)
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        log.debug("pid %d vanished before it could be read", pid)
        return ProcessRecord(pid=pid)

    with p.oneshot():
        uids = getattr(p, "uids", None)  # POSIX only
        uid = _field(lambda: uids().real) if uids else None
        cmdline = _field(p.cmdline)
        return ProcessRecord(
            pid=pid,
            name=_field(p.name) or None,
            user_id=uid,
            username=_field(p.username),
            command_line=tuple(cmdline) if cmdline is not None else None,
            executable_path=_field(p.exe) or None,
            working_directory=_field(p.cwd) or None,
        )


def snapshot_processes() -> Dict[int, ProcessRecord]:
    """One pass over the process table, keyed and ordered by pid."""
    return {pid: read_process(pid) for pid in sorted(psutil.pids())}
