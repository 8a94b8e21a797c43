from __future__ import annotations
import socket, struct, ctypes
from typing import Tuple

def ntohs16(v: int) -> int:
    return socket.ntohs(v & 0xFFFF)

def ipv4_from_dword(dw: int) -> str:
    # Windows row DWORDs hold network-order bytes read on a little-endian host
    return socket.inet_ntoa(struct.pack('<I', ctypes.c_uint32(dw).value))

def ipv6_from_bytes(b: bytes) -> str:
    return socket.inet_ntop(socket.AF_INET6, b)

def _host_order_words(h: str) -> bytes:
    # /proc/net/* prints each 32-bit address word in host byte order
    return b"".join(struct.pack('=I', int(h[i:i + 8], 16)) for i in range(0, len(h), 8))

def ipv4_from_hex_word(h: str) -> str:
    if len(h) != 8:
        raise ValueError(f"bad IPv4 hex address: {h!r}")
    return socket.inet_ntoa(_host_order_words(h))

def ipv6_from_hex_words(h: str) -> str:
    if len(h) != 32:
        raise ValueError(f"bad IPv6 hex address: {h!r}")
    return ipv6_from_bytes(_host_order_words(h))

def parse_proc_endpoint(s: str, ipv6: bool) -> Tuple[str, int]:
    """Decode a '0100007F:1F90' style endpoint from /proc/net/{tcp,udp}[6]."""
    addr, sep, port = s.partition(':')
    if not sep or not port:
        raise ValueError(f"bad endpoint: {s!r}")
    ip = ipv6_from_hex_words(addr) if ipv6 else ipv4_from_hex_word(addr)
    return ip, int(port, 16)
