from __future__ import annotations
import logging
from typing import AbstractSet, Dict, List, Tuple

import psutil

from ..errors import EnumerationError
from ..models import Family, Proto, SocketRecord, TcpState

log = logging.getLogger(__name__)

PSUTIL_STATES = {
    psutil.CONN_ESTABLISHED: TcpState.ESTABLISHED,
    psutil.CONN_SYN_SENT: TcpState.SYN_SENT,
    psutil.CONN_SYN_RECV: TcpState.SYN_RECEIVED,
    psutil.CONN_FIN_WAIT1: TcpState.FIN_WAIT_1,
    psutil.CONN_FIN_WAIT2: TcpState.FIN_WAIT_2,
    psutil.CONN_TIME_WAIT: TcpState.TIME_WAIT,
    psutil.CONN_CLOSE: TcpState.CLOSED,
    psutil.CONN_CLOSE_WAIT: TcpState.CLOSE_WAIT,
    psutil.CONN_LAST_ACK: TcpState.LAST_ACK,
    psutil.CONN_LISTEN: TcpState.LISTEN,
    psutil.CONN_CLOSING: TcpState.CLOSING,
    "DELETE_TCB": TcpState.DELETE_TCB,  # Windows only
}

KINDS = (
    ("tcp4", Proto.TCP, Family.IPV4),
    ("tcp6", Proto.TCP, Family.IPV6),
    ("udp4", Proto.UDP, Family.IPV4),
    ("udp6", Proto.UDP, Family.IPV6),
)


def _addr(a) -> Tuple[str, int] | None:
    if not a:
        return None
    return (a[0], int(a[1]))


def enumerate_sockets(families: AbstractSet[Family], protocols: AbstractSet[Proto]) -> List[SocketRecord]:
    """Socket table via psutil; every record carries its owning pids.

    psutil reports a socket once per (process, fd), so rows describing the
    same endpoint pair are folded together with their pids in report order.
    """
    sockets: List[SocketRecord] = []
    handle = 0
    for kind, proto, family in KINDS:
        if proto not in protocols or family not in families:
            continue
        try:
            conns = psutil.net_connections(kind=kind)
        except psutil.AccessDenied as e:
            raise EnumerationError(f"socket table for {kind}: access denied") from e
        except (psutil.Error, OSError) as e:
            raise EnumerationError(f"socket table for {kind}: {e}") from e

        merged: Dict[tuple, Tuple[tuple, List[int]]] = {}
        for c in conns:
            try:
                laddr = _addr(c.laddr)
                raddr = _addr(c.raddr)
            except (TypeError, ValueError, IndexError) as e:
                log.debug("skipping %s row %r: %s", kind, c, e)
                continue
            if laddr is None:
                log.debug("skipping %s row without local address: %r", kind, c)
                continue
            status = c.status if proto is Proto.TCP else None
            key = (laddr, raddr, status)
            _, pids = merged.setdefault(key, (key, []))
            if c.pid and c.pid not in pids:
                pids.append(c.pid)

        for (laddr, raddr, status), pids in merged.values():
            state = PSUTIL_STATES.get(status, TcpState.UNKNOWN) if status is not None else None
            handle += 1
            try:
                sockets.append(SocketRecord.build(
                    proto, family, laddr, raddr, state=state,
                    kernel_id=handle, owner_pids=tuple(pids),
                ))
            except ValueError as e:
                log.debug("skipping %s row %r: %s", kind, laddr, e)
    return sockets
