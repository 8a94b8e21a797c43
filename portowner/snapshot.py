from __future__ import annotations
import dataclasses
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, List, Optional, Union

from .assembler import assemble
from .collectors import UserDirectory, enumerate_sockets, read_fd_links, snapshot_processes
from .config import CFG
from .models import FilterMiss, OwnershipRecord, ProcessRecord, SocketRecord
from .resolver import FdReader, resolve

log = logging.getLogger(__name__)


class Snapshot:
    """One point-in-time capture: sockets, processes, accounts and the join.

    Nothing here is refreshed after capture; every query answers from the
    same tables.
    """

    def __init__(self, sockets: List[SocketRecord], processes: Dict[int, ProcessRecord],
                 users: UserDirectory, ownership: List[OwnershipRecord], taken_at: float):
        self.sockets = sockets
        self.processes = processes
        self.users = users
        self.ownership = ownership
        self.taken_at = taken_at

    @classmethod
    def capture(cls, cfg: CFG,
                enumerate_fn: Optional[Callable[[], List[SocketRecord]]] = None,
                processes_fn: Callable[[], Dict[int, ProcessRecord]] = snapshot_processes,
                users: Optional[UserDirectory] = None,
                fd_reader: FdReader = read_fd_links) -> "Snapshot":
        if enumerate_fn is None:
            def enumerate_fn():
                return enumerate_sockets(cfg.families, cfg.protocols, cfg.strategy)

        taken_at = time.time()
        # both sides are read-only OS queries with nothing shared between them
        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="snapshot") as ex:
            f_sockets = ex.submit(enumerate_fn)
            f_procs = ex.submit(processes_fn)
            sockets = f_sockets.result()
            processes = f_procs.result()
        if users is None:
            users = UserDirectory.load()

        records = resolve(sockets, processes, fd_reader=fd_reader, workers=cfg.workers)
        ownership = [
            dataclasses.replace(r, user_name=users.user_name_for(r.primary))
            for r in records
        ]
        log.info("snapshot: %d sockets, %d processes", len(sockets), len(processes))
        return cls(sockets, processes, users, ownership, taken_at)

    def records(self, port: Optional[int] = None) -> Union[List[OwnershipRecord], FilterMiss]:
        return assemble(self.ownership, port)


def take_snapshot(cfg: CFG) -> Union[List[OwnershipRecord], FilterMiss]:
    """Capture and assemble in one call, honouring cfg.port."""
    return Snapshot.capture(cfg).records(cfg.port)
