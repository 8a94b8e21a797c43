import logging
import os
import re
from pathlib import Path
from typing import AbstractSet, List, Optional, Union

from ..errors import EnumerationError
from ..models import Family, Proto, SocketRecord, TcpState
from ..utils.net import parse_proc_endpoint

log = logging.getLogger(__name__)

PROC_ROOT = Path("/proc")

# include/net/tcp_states.h
TCP_STATES = {
    0x01: TcpState.ESTABLISHED,
    0x02: TcpState.SYN_SENT,
    0x03: TcpState.SYN_RECEIVED,
    0x04: TcpState.FIN_WAIT_1,
    0x05: TcpState.FIN_WAIT_2,
    0x06: TcpState.TIME_WAIT,
    0x07: TcpState.CLOSED,
    0x08: TcpState.CLOSE_WAIT,
    0x09: TcpState.LAST_ACK,
    0x0A: TcpState.LISTEN,
    0x0B: TcpState.CLOSING,
    0x0C: TcpState.NEW_SYN_RECV,
}

TABLES = (
    ("tcp", Proto.TCP, Family.IPV4),
    ("tcp6", Proto.TCP, Family.IPV6),
    ("udp", Proto.UDP, Family.IPV4),
    ("udp6", Proto.UDP, Family.IPV6),
)

SOCKET_LINK_RE = re.compile(r"^socket:\[(?P<inode>\d+)\]$")


def parse_table_line(line: str, proto: Proto, family: Family) -> SocketRecord:
    """
    Parse one row of /proc/net/{tcp,tcp6,udp,udp6}:
      sl local_address rem_address st tx_queue:rx_queue tr:tm->when retrnsmt uid timeout inode ...
    Raises ValueError/IndexError on a malformed row.
    """
    fields = line.split()
    if len(fields) < 10:
        raise ValueError(f"short row ({len(fields)} fields)")
    ipv6 = family is Family.IPV6
    laddr = parse_proc_endpoint(fields[1], ipv6)
    raddr = parse_proc_endpoint(fields[2], ipv6)
    state = TCP_STATES.get(int(fields[3], 16), TcpState.UNKNOWN)
    inode = int(fields[9])
    return SocketRecord.build(
        proto, family, laddr, raddr, state=state,
        # TIME_WAIT and other orphaned rows report inode 0
        kernel_id=inode or None,
    )


def read_socket_table(path: Union[str, Path], proto: Proto, family: Family) -> List[SocketRecord]:
    with open(path, "r", encoding="ascii", errors="replace") as f:
        lines = f.read().splitlines()
    out: List[SocketRecord] = []
    for lineno, line in enumerate(lines[1:], 2):
        if not line.strip():
            continue
        try:
            out.append(parse_table_line(line, proto, family))
        except (ValueError, IndexError) as e:
            log.debug("skipping %s:%d: %s", path, lineno, e)
    return out


def enumerate_sockets(families: AbstractSet[Family], protocols: AbstractSet[Proto],
                      proc_root: Path = PROC_ROOT) -> List[SocketRecord]:
    sockets: List[SocketRecord] = []
    for name, proto, family in TABLES:
        if proto not in protocols or family not in families:
            continue
        path = Path(proc_root) / "net" / name
        try:
            sockets.extend(read_socket_table(path, proto, family))
        except FileNotFoundError as e:
            if family is Family.IPV6:
                log.debug("%s missing, IPv6 disabled?", path)
                continue
            raise EnumerationError(f"cannot read {path}: {e.strerror}") from e
        except OSError as e:
            raise EnumerationError(f"cannot read {path}: {e.strerror or e}") from e
    return sockets


def read_fd_links(pid: int, proc_root: Path = PROC_ROOT) -> List[str]:
    """Link targets of every open descriptor of pid.

    Raises OSError when the fd directory itself is unreadable (process gone,
    permission denied). Descriptors closed while scanning are skipped.
    """
    fd_dir = Path(proc_root) / str(pid) / "fd"
    links: List[str] = []
    for entry in os.listdir(fd_dir):
        try:
            links.append(os.readlink(fd_dir / entry))
        except OSError:
            continue
    return links


def socket_inode(link: str) -> Optional[int]:
    m = SOCKET_LINK_RE.match(link)
    return int(m.group("inode")) if m else None
