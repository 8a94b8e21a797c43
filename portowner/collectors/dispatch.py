from __future__ import annotations
import logging, platform
from typing import AbstractSet, List

from ..errors import EnumerationError
from ..models import Family, Proto, SocketRecord
from . import generic, linux, windows

log = logging.getLogger(__name__)

STRATEGIES = ("auto", "proc", "windows", "psutil")


def pick_strategy(strategy: str = "auto", system: str | None = None) -> str:
    if strategy not in STRATEGIES:
        raise EnumerationError(f"unknown socket strategy {strategy!r}")
    if strategy != "auto":
        return strategy
    system = system or platform.system()
    if system == 'Linux':
        return "proc"
    if system == 'Windows':
        return "windows"
    return "psutil"


def enumerate_sockets(families: AbstractSet[Family], protocols: AbstractSet[Proto],
                      strategy: str = "auto") -> List[SocketRecord]:
    chosen = pick_strategy(strategy)
    log.info("enumerating sockets via %s", chosen)
    if chosen == "proc":
        sockets = linux.enumerate_sockets(families, protocols)
    elif chosen == "windows":
        sockets = windows.enumerate_sockets(families, protocols)
    else:
        sockets = generic.enumerate_sockets(families, protocols)
    log.debug("%d sockets enumerated", len(sockets))
    return sockets
