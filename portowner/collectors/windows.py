from __future__ import annotations
from typing import AbstractSet, Callable, Dict, List, Optional
import ctypes, logging, platform

from ..errors import EnumerationError
from ..models import Family, Proto, SocketRecord, TcpState
from ..utils.net import ntohs16, ipv4_from_dword, ipv6_from_bytes

log = logging.getLogger(__name__)

AF_INET = 2
AF_INET6 = 23
TCP_TABLE_OWNER_PID_ALL = 5
UDP_TABLE_OWNER_PID = 1
NO_ERROR = 0
ERROR_INSUFFICIENT_BUFFER = 122

# fixed-width stand-ins for the wintypes names, so the row layouts load anywhere
DWORD = ctypes.c_uint32
ULONG = ctypes.c_uint32
BYTE = ctypes.c_ubyte

# MIB_TCP_STATE
TCP_STATE = {
    1: TcpState.CLOSED, 2: TcpState.LISTEN, 3: TcpState.SYN_SENT, 4: TcpState.SYN_RECEIVED,
    5: TcpState.ESTABLISHED, 6: TcpState.FIN_WAIT_1, 7: TcpState.FIN_WAIT_2, 8: TcpState.CLOSE_WAIT,
    9: TcpState.CLOSING, 10: TcpState.LAST_ACK, 11: TcpState.TIME_WAIT, 12: TcpState.DELETE_TCB,
}

class IN6_ADDR(ctypes.Structure):
    _fields_ = [("Byte", BYTE * 16)]

class MIB_TCPROW_OWNER_PID(ctypes.Structure):
    _fields_ = [("state", DWORD), ("localAddr", DWORD), ("localPort", DWORD),
                ("remoteAddr", DWORD), ("remotePort", DWORD), ("owningPid", DWORD)]

class MIB_TCP6ROW_OWNER_PID(ctypes.Structure):
    _fields_ = [("localAddr", IN6_ADDR), ("localScopeId", DWORD), ("localPort", DWORD),
                ("remoteAddr", IN6_ADDR), ("remoteScopeId", DWORD), ("remotePort", DWORD),
                ("state", DWORD), ("owningPid", DWORD)]

class MIB_UDPROW_OWNER_PID(ctypes.Structure):
    _fields_ = [("localAddr", DWORD), ("localPort", DWORD), ("owningPid", DWORD)]

class MIB_UDP6ROW_OWNER_PID(ctypes.Structure):
    _fields_ = [("localAddr", IN6_ADDR), ("localScopeId", DWORD), ("localPort", DWORD),
                ("owningPid", DWORD)]

# (proto, family, api name, address family, table class, row type)
TABLES = (
    (Proto.TCP, Family.IPV4, "GetExtendedTcpTable", AF_INET, TCP_TABLE_OWNER_PID_ALL, MIB_TCPROW_OWNER_PID),
    (Proto.TCP, Family.IPV6, "GetExtendedTcpTable", AF_INET6, TCP_TABLE_OWNER_PID_ALL, MIB_TCP6ROW_OWNER_PID),
    (Proto.UDP, Family.IPV4, "GetExtendedUdpTable", AF_INET, UDP_TABLE_OWNER_PID, MIB_UDPROW_OWNER_PID),
    (Proto.UDP, Family.IPV6, "GetExtendedUdpTable", AF_INET6, UDP_TABLE_OWNER_PID, MIB_UDP6ROW_OWNER_PID),
)

def _addr(value, family: Family) -> str:
    if family is Family.IPV6:
        return ipv6_from_bytes(bytes(value.Byte))
    return ipv4_from_dword(value)

def _owners(pid: int) -> tuple:
    # pid 0 is the System Idle pseudo-process (TIME_WAIT rows)
    return (int(pid),) if pid else ()

def tcp_row_socket(row, family: Family, handle: int) -> SocketRecord:
    return SocketRecord.build(
        Proto.TCP, family,
        (_addr(row.localAddr, family), ntohs16(row.localPort)),
        (_addr(row.remoteAddr, family), ntohs16(row.remotePort)),
        state=TCP_STATE.get(row.state, TcpState.UNKNOWN),
        kernel_id=handle, owner_pids=_owners(row.owningPid),
    )

def udp_row_socket(row, family: Family, handle: int) -> SocketRecord:
    return SocketRecord.build(
        Proto.UDP, family,
        (_addr(row.localAddr, family), ntohs16(row.localPort)), None,
        kernel_id=handle, owner_pids=_owners(row.owningPid),
    )

def read_table(fn: Callable, af: int, table_class: int, row_type) -> list:
    """Rows of one owner-pid table; size query, then fetch, retrying once if it grew."""
    size = ULONG(0)
    rc = ERROR_INSUFFICIENT_BUFFER
    buf = None
    for _ in range(2):
        fn(None, ctypes.byref(size), False, af, table_class, 0)
        buf = ctypes.create_string_buffer(max(size.value, ctypes.sizeof(DWORD)))
        rc = fn(buf, ctypes.byref(size), False, af, table_class, 0)
        if rc != ERROR_INSUFFICIENT_BUFFER:
            break
    if rc != NO_ERROR:
        raise EnumerationError(f"{getattr(fn, '__name__', 'owner table')}(af={af}) failed with error {rc}")
    count = DWORD.from_buffer(buf).value
    # dwNumEntries is followed by DWORD-aligned rows in every variant
    return list((row_type * count).from_buffer(buf, ctypes.sizeof(DWORD)))

def _load_api() -> Dict[str, Callable]:
    if platform.system() != "Windows":
        raise EnumerationError("the windows socket table is only available on Windows")
    iphlpapi = ctypes.WinDLL('Iphlpapi.dll')
    api = {}
    for name in ("GetExtendedTcpTable", "GetExtendedUdpTable"):
        fn = getattr(iphlpapi, name)
        fn.restype = DWORD
        api[name] = fn
    return api

def enumerate_sockets(families: AbstractSet[Family], protocols: AbstractSet[Proto],
                      api: Optional[Dict[str, Callable]] = None) -> List[SocketRecord]:
    if api is None:
        api = _load_api()
    sockets: List[SocketRecord] = []
    handle = 0
    for proto, family, name, af, table_class, row_type in TABLES:
        if proto not in protocols or family not in families:
            continue
        convert = tcp_row_socket if proto is Proto.TCP else udp_row_socket
        for row in read_table(api[name], af, table_class, row_type):
            handle += 1
            try:
                sockets.append(convert(row, family, handle))
            except ValueError as e:
                log.debug("skipping %s row: %s", name, e)
    return sockets
