"""
Socket -> owning process correlation.

Direct: the enumerator already attached owner pids (Windows owner tables,
psutil); those are looked up in the process snapshot.

Indirect: the socket only carries its inode. Every process's descriptor
table is read once and each ``socket:[<inode>]`` link is matched against the
inodes the socket table asked for. Owners are recorded in process-snapshot
order, so the outcome does not depend on the order in which descriptor reads
complete.
"""
from __future__ import annotations
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import AbstractSet, Callable, Dict, FrozenSet, Iterable, Iterator, List, Mapping, Sequence, Tuple

from .collectors.linux import read_fd_links, socket_inode
from .models import OwnershipRecord, ProcessRecord, SocketRecord

log = logging.getLogger(__name__)

FdReader = Callable[[int], Iterable[str]]


def socket_inodes(pid: int, fd_reader: FdReader = read_fd_links) -> FrozenSet[int]:
    """Inodes of the sockets pid holds; empty when its fd table is unreadable."""
    try:
        links = list(fd_reader(pid))
    except OSError as e:
        log.debug("pid %d: descriptor table unreadable: %s", pid, e)
        return frozenset()
    inodes = set()
    for link in links:
        inode = socket_inode(link)
        if inode is not None:
            inodes.add(inode)
    return frozenset(inodes)


def scan_descriptor_tables(pids: Sequence[int], fd_reader: FdReader = read_fd_links,
                           workers: int = 0) -> Iterator[Tuple[int, FrozenSet[int]]]:
    if workers > 1 and len(pids) > 1:
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="fdscan") as ex:
            # map() yields in submission order
            results = list(ex.map(lambda pid: socket_inodes(pid, fd_reader), pids))
    else:
        results = [socket_inodes(pid, fd_reader) for pid in pids]
    return zip(pids, results)


def owners_by_inode(wanted: AbstractSet[int], processes: Mapping[int, ProcessRecord],
                    fd_reader: FdReader = read_fd_links,
                    workers: int = 0) -> Dict[int, List[ProcessRecord]]:
    owners: Dict[int, List[ProcessRecord]] = {}
    if not wanted:
        return owners
    for pid, inodes in scan_descriptor_tables(list(processes), fd_reader, workers):
        for inode in inodes & wanted:
            owners.setdefault(inode, []).append(processes[pid])
    return owners


def resolve(sockets: Iterable[SocketRecord], processes: Mapping[int, ProcessRecord],
            fd_reader: FdReader = read_fd_links, workers: int = 0) -> List[OwnershipRecord]:
    """One OwnershipRecord per socket, in input order. Never raises for a miss."""
    sockets = list(sockets)
    wanted = {s.kernel_id for s in sockets if s.owner_pids is None and s.kernel_id is not None}
    by_inode = owners_by_inode(wanted, processes, fd_reader, workers)

    out: List[OwnershipRecord] = []
    for s in sockets:
        if s.owner_pids is not None:
            procs = tuple(processes.get(pid) or ProcessRecord(pid=pid) for pid in s.owner_pids)
        elif s.kernel_id is not None:
            procs = tuple(by_inode.get(s.kernel_id, ()))
        else:
            procs = ()
        if not procs:
            log.debug("no owner for %s %s", s.label, s.local)
        out.append(OwnershipRecord(socket=s, processes=procs))
    return out
