from collections import namedtuple

import psutil
import pytest

from portowner.collectors import generic
from portowner.errors import EnumerationError
from portowner.models import Family, Proto, TcpState

sconn = namedtuple("sconn", "fd family type laddr raddr status pid")
addr = namedtuple("addr", "ip port")

BOTH = {Family.IPV4, Family.IPV6}


@pytest.fixture
def conns(monkeypatch):
    table = {"tcp4": [], "tcp6": [], "udp4": [], "udp6": []}
    calls = []

    def net_connections(kind="inet"):
        calls.append(kind)
        return list(table[kind])

    monkeypatch.setattr(generic.psutil, "net_connections", net_connections)
    return table, calls


def test_tcp_rows_carry_owner_pids(conns):
    table, _ = conns
    table["tcp4"] = [
        sconn(3, 2, 1, addr("0.0.0.0", 8080), (), psutil.CONN_LISTEN, 42),
        sconn(4, 2, 1, addr("10.0.0.5", 51000), addr("1.1.1.1", 443), psutil.CONN_ESTABLISHED, 7),
    ]
    sockets = generic.enumerate_sockets({Family.IPV4}, {Proto.TCP})
    assert [(s.local_port, s.state, s.owner_pids) for s in sockets] == [
        (8080, TcpState.LISTEN, (42,)),
        (51000, TcpState.ESTABLISHED, (7,)),
    ]
    assert sockets[0].remote_address is None
    assert sockets[1].remote == "1.1.1.1:443"


def test_shared_socket_rows_are_merged(conns):
    table, _ = conns
    table["tcp4"] = [
        sconn(3, 2, 1, addr("0.0.0.0", 80), (), psutil.CONN_LISTEN, 10),
        sconn(3, 2, 1, addr("0.0.0.0", 80), (), psutil.CONN_LISTEN, 11),
        sconn(5, 2, 1, addr("0.0.0.0", 80), (), psutil.CONN_LISTEN, 10),
    ]
    [s] = generic.enumerate_sockets({Family.IPV4}, {Proto.TCP})
    assert s.owner_pids == (10, 11)


def test_rows_without_pid_have_no_owner(conns):
    table, _ = conns
    table["tcp6"] = [sconn(-1, 10, 1, addr("::", 22), (), psutil.CONN_LISTEN, None)]
    [s] = generic.enumerate_sockets(BOTH, {Proto.TCP})
    assert s.owner_pids == ()
    assert s.label == "TCP6"


def test_udp_and_kind_selection(conns):
    table, calls = conns
    table["udp4"] = [sconn(3, 2, 2, addr("0.0.0.0", 53), (), psutil.CONN_NONE, 101)]
    table["udp6"] = [sconn(3, 10, 2, (), (), psutil.CONN_NONE, 101)]  # malformed
    sockets = generic.enumerate_sockets(BOTH, {Proto.UDP})
    assert calls == ["udp4", "udp6"]
    assert [(s.label, s.local_port, s.state) for s in sockets] == [("UDP", 53, None)]


def test_kernel_ids_are_unique_per_pass(conns):
    table, _ = conns
    table["tcp4"] = [sconn(3, 2, 1, addr("0.0.0.0", p), (), psutil.CONN_LISTEN, 1) for p in (1, 2)]
    table["udp4"] = [sconn(3, 2, 2, addr("0.0.0.0", p), (), psutil.CONN_NONE, 1) for p in (1, 2)]
    sockets = generic.enumerate_sockets({Family.IPV4}, {Proto.TCP, Proto.UDP})
    ids = [s.kernel_id for s in sockets]
    assert len(set(ids)) == len(ids) == 4


def test_unmapped_status_is_unknown(conns):
    table, _ = conns
    table["tcp4"] = [sconn(3, 2, 1, addr("0.0.0.0", 1), (), "BOUND", 1)]
    [s] = generic.enumerate_sockets({Family.IPV4}, {Proto.TCP})
    assert s.state is TcpState.UNKNOWN


def test_access_denied_is_an_enumeration_error(monkeypatch):
    def denied(kind="inet"):
        raise psutil.AccessDenied()

    monkeypatch.setattr(generic.psutil, "net_connections", denied)
    with pytest.raises(EnumerationError):
        generic.enumerate_sockets({Family.IPV4}, {Proto.TCP})


def test_half_remote_rows_are_skipped(conns):
    table, _ = conns
    table["tcp4"] = [
        sconn(3, 2, 1, addr("10.0.0.5", 51000), addr(None, 443), psutil.CONN_ESTABLISHED, 7),
        sconn(4, 2, 1, addr("10.0.0.5", 51001), addr("1.1.1.1", None), psutil.CONN_ESTABLISHED, 7),
        sconn(5, 2, 1, addr("10.0.0.5", 51002), addr("1.1.1.1", 443), psutil.CONN_ESTABLISHED, 7),
    ]
    sockets = generic.enumerate_sockets({Family.IPV4}, {Proto.TCP})
    assert [(s.local_port, s.remote) for s in sockets] == [(51002, "1.1.1.1:443")]
    assert all((s.remote_address is None) == (s.remote_port is None) for s in sockets)
