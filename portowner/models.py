from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

UNKNOWN = "unknown"


class Proto(str, Enum):
    TCP = "tcp"
    UDP = "udp"


class Family(str, Enum):
    IPV4 = "ipv4"
    IPV6 = "ipv6"


class TcpState(str, Enum):
    ESTABLISHED = "ESTABLISHED"
    SYN_SENT = "SYN_SENT"
    SYN_RECEIVED = "SYN_RECEIVED"
    FIN_WAIT_1 = "FIN_WAIT_1"
    FIN_WAIT_2 = "FIN_WAIT_2"
    TIME_WAIT = "TIME_WAIT"
    CLOSED = "CLOSED"
    CLOSE_WAIT = "CLOSE_WAIT"
    LAST_ACK = "LAST_ACK"
    LISTEN = "LISTEN"
    CLOSING = "CLOSING"
    NEW_SYN_RECV = "NEW_SYN_RECV"
    DELETE_TCB = "DELETE_TCB"
    UNKNOWN = "UNKNOWN"


_UNSPECIFIED = {"0.0.0.0", "::", "*", ""}


@dataclass(frozen=True)
class SocketRecord:
    proto: Proto
    family: Family
    local_address: str
    local_port: int
    remote_address: Optional[str] = None
    remote_port: Optional[int] = None
    state: Optional[TcpState] = None
    kernel_id: Optional[int] = None  # inode or per-pass row handle
    owner_pids: Optional[Tuple[int, ...]] = None  # set only by direct enumerators

    def __post_init__(self):
        if (self.remote_address is None) != (self.remote_port is None):
            raise ValueError("remote address and port must be both present or both absent")
        if self.proto is Proto.UDP and (self.remote_address is not None or self.state is not None):
            raise ValueError("UDP sockets carry neither a remote endpoint nor a state")

    @classmethod
    def build(cls, proto: Proto, family: Family, laddr: Tuple[str, int],
              raddr: Optional[Tuple[str, int]], state: Optional[TcpState] = None,
              kernel_id: Optional[int] = None,
              owner_pids: Optional[Tuple[int, ...]] = None) -> "SocketRecord":
        """Normalize raw endpoints the way every enumerator needs.

        UDP drops remote endpoint and state. A TCP remote of
        unspecified-address:0 (listeners) is treated as absent.
        """
        if proto is Proto.UDP:
            raddr = None
            state = None
        elif raddr is not None and raddr[1] == 0 and raddr[0] in _UNSPECIFIED:
            raddr = None
        return cls(
            proto=proto, family=family,
            local_address=laddr[0], local_port=int(laddr[1]),
            remote_address=raddr[0] if raddr else None,
            remote_port=int(raddr[1]) if raddr else None,
            state=state, kernel_id=kernel_id, owner_pids=owner_pids,
        )

    @property
    def label(self) -> str:
        base = "TCP" if self.proto is Proto.TCP else "UDP"
        return base + ("6" if self.family is Family.IPV6 else "")

    @property
    def local(self) -> str:
        return _fmt_endpoint(self.local_address, self.local_port)

    @property
    def remote(self) -> Optional[str]:
        if self.remote_address is None:
            return None
        return _fmt_endpoint(self.remote_address, self.remote_port)


def _fmt_endpoint(addr: str, port: Optional[int]) -> str:
    if ":" in addr:
        return f"[{addr}]:{port}"
    return f"{addr}:{port}"


@dataclass(frozen=True)
class ProcessRecord:
    pid: int
    name: Optional[str] = None
    user_id: Optional[int] = None
    username: Optional[str] = None
    command_line: Optional[Tuple[str, ...]] = None
    executable_path: Optional[str] = None
    working_directory: Optional[str] = None

    @property
    def cmd(self) -> str:
        if self.command_line:
            return " ".join(self.command_line)
        return self.executable_path or self.name or ""


@dataclass(frozen=True)
class OwnershipRecord:
    socket: SocketRecord
    processes: Tuple[ProcessRecord, ...] = field(default_factory=tuple)
    user_name: Optional[str] = None

    @property
    def primary(self) -> Optional[ProcessRecord]:
        return self.processes[0] if self.processes else None

    @property
    def local_port(self) -> int:
        return self.socket.local_port

    def to_dict(self) -> dict:
        s = self.socket
        return {
            "protocol": s.label,
            "local_address": s.local_address,
            "local_port": s.local_port,
            "remote_address": s.remote_address,
            "remote_port": s.remote_port,
            "state": s.state.value if s.state else None,
            "user": self.user_name,
            "processes": [
                {
                    "pid": p.pid,
                    "name": p.name,
                    "uid": p.user_id,
                    "cmdline": list(p.command_line) if p.command_line is not None else None,
                    "exe": p.executable_path,
                    "cwd": p.working_directory,
                }
                for p in self.processes
            ],
        }


@dataclass(frozen=True)
class FilterMiss:
    """No socket uses the requested local port."""
    port: int
