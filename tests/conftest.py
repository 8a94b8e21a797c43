from __future__ import annotations

import os
from pathlib import Path

import pytest

from portowner.models import Family, ProcessRecord, Proto, SocketRecord, TcpState

TCP_HEADER = ("  sl  local_address rem_address   st tx_queue rx_queue tr tm->when "
              "retrnsmt   uid  timeout inode")


def proc_row(sl: int, local: str, remote: str, st: str, uid: int, inode: int) -> str:
    return (f"  {sl:>2}: {local} {remote} {st} 00000000:00000000 00:00000000 "
            f"00000000  {uid:>4}        0 {inode} 1 0000000000000000 100 0 0 10 0")


class FakeFdTables:
    """fd_reader stand-in: pid -> link targets, or an exception to raise."""

    def __init__(self, tables):
        self.tables = tables
        self.calls = []

    def __call__(self, pid):
        self.calls.append(pid)
        entry = self.tables.get(pid, [])
        if isinstance(entry, BaseException):
            raise entry
        return list(entry)


@pytest.fixture
def proc_root(tmp_path: Path):
    """Synthetic /proc tree. Returns (root, add_table, add_fds)."""
    root = tmp_path / "proc"
    (root / "net").mkdir(parents=True)

    def add_table(name: str, rows):
        (root / "net" / name).write_text("\n".join([TCP_HEADER, *rows]) + "\n")

    def add_fds(pid: int, links: dict):
        fd_dir = root / str(pid) / "fd"
        fd_dir.mkdir(parents=True)
        for fd, target in links.items():
            os.symlink(target, fd_dir / str(fd))

    return root, add_table, add_fds


def listener(port=8080, kernel_id=12345, proto=Proto.TCP, family=Family.IPV4, owner_pids=None):
    if proto is Proto.UDP:
        return SocketRecord.build(proto, family, ("0.0.0.0", port), None,
                                  kernel_id=kernel_id, owner_pids=owner_pids)
    return SocketRecord.build(proto, family, ("0.0.0.0", port), ("0.0.0.0", 0),
                              state=TcpState.LISTEN, kernel_id=kernel_id, owner_pids=owner_pids)


@pytest.fixture
def webserver():
    return ProcessRecord(pid=42, name="webserver", user_id=1000,
                         command_line=("webserver", "--port", "8080"))
