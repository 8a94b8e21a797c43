import pytest

from portowner.collectors import UserDirectory
from portowner.config import CFG
from portowner.errors import EnumerationError
from portowner.models import FilterMiss, ProcessRecord, TcpState
from portowner.snapshot import Snapshot

from .conftest import FakeFdTables, listener


def capture(sockets, procs, tables, names=None, workers=0):
    return Snapshot.capture(
        CFG(workers=workers),
        enumerate_fn=lambda: list(sockets),
        processes_fn=lambda: dict(procs),
        users=UserDirectory(names or {}),
        fd_reader=FakeFdTables(tables),
    )


def test_webserver_owned_by_alice(webserver):
    snap = capture([listener(8080, 12345)], {42: webserver}, {42: ["socket:[12345]"]}, {1000: "alice"})
    [rec] = snap.records()
    assert rec.local_port == 8080
    assert rec.socket.state is TcpState.LISTEN
    assert [(p.pid, p.name) for p in rec.processes] == [(42, "webserver")]
    assert rec.user_name == "alice"


def test_orphaned_socket_has_no_user(webserver):
    snap = capture([listener(8080, 12345)], {42: webserver}, {42: []}, {1000: "alice"})
    [rec] = snap.records()
    assert rec.processes == ()
    assert rec.user_name is None


def test_user_comes_from_first_owner():
    procs = {10: ProcessRecord(pid=10, user_id=0), 11: ProcessRecord(pid=11, user_id=1000)}
    snap = capture([listener(80, 500)], procs, {10: ["socket:[500]"], 11: ["socket:[500]"]},
                   {0: "root", 1000: "alice"})
    [rec] = snap.records()
    assert [p.pid for p in rec.processes] == [10, 11]
    assert rec.user_name == "root"


def test_record_count_matches_socket_count(webserver):
    sockets = [listener(p, 1000 + i) for i, p in enumerate((443, 22, 8080, 22))]
    snap = capture(sockets, {42: webserver}, {42: ["socket:[1002]"]})
    assert len(snap.records()) == len(snap.sockets) == 4
    assert [r.local_port for r in snap.records()] == [22, 22, 443, 8080]


def test_filter_miss_and_hit(webserver):
    snap = capture([listener(8080, 12345)], {42: webserver}, {42: ["socket:[12345]"]})
    assert snap.records(9999) == FilterMiss(9999)
    assert [r.local_port for r in snap.records(8080)] == [8080]


def test_same_input_same_output(webserver):
    args = ([listener(8080, 12345), listener(22, 1)], {42: webserver, 1: ProcessRecord(pid=1)},
            {42: ["socket:[12345]"], 1: ["socket:[1]"]})
    assert capture(*args).records() == capture(*args, workers=4).records()


def test_enumeration_error_propagates():
    def broken():
        raise EnumerationError("cannot read /proc/net/tcp: Permission denied")

    with pytest.raises(EnumerationError):
        Snapshot.capture(CFG(), enumerate_fn=broken, processes_fn=dict,
                         users=UserDirectory(), fd_reader=FakeFdTables({}))
