from __future__ import annotations
from typing import Iterable, List, Optional, Sequence

import orjson

from .models import UNKNOWN, OwnershipRecord

HEADER = ("PORT", "UID", "USER", "STATUS", "PROTOCOL", "PROCESS_NAME", "LOCAL", "REMOTE")


def _uid(r: OwnershipRecord) -> str:
    p = r.primary
    return str(p.user_id) if p is not None and p.user_id is not None else UNKNOWN


def _state(r: OwnershipRecord) -> str:
    return r.socket.state.value if r.socket.state else UNKNOWN


def _process_name(r: OwnershipRecord) -> str:
    p = r.primary
    if p is None:
        return UNKNOWN
    name = p.name or UNKNOWN
    if len(r.processes) > 1:
        name += f" (+{len(r.processes) - 1})"
    return name


def table_rows(records: Iterable[OwnershipRecord]) -> List[Sequence[str]]:
    rows: List[Sequence[str]] = [HEADER]
    for r in records:
        s = r.socket
        rows.append((
            str(s.local_port), _uid(r), r.user_name or UNKNOWN, _state(r), s.label,
            _process_name(r), s.local, s.remote or "-",
        ))
    return rows


def render_table(records: Iterable[OwnershipRecord], gap: int = 2) -> str:
    rows = table_rows(records)
    widths = [max(len(row[i]) for row in rows) for i in range(len(HEADER))]
    lines = []
    for row in rows:
        cells = [cell.ljust(widths[i]) for i, cell in enumerate(row)]
        lines.append((" " * gap).join(cells).rstrip())
    return "\n".join(lines)


def render_detail(record: OwnershipRecord) -> str:
    s = record.socket
    lines = [
        f"Port {s.local_port}/{s.label}:",
        f"  Local Address: {s.local}",
        f"  Remote Address: {s.remote or '-'}",
        f"  State: {_state(record)}",
    ]
    if not record.processes:
        lines.append(f"  Process: {UNKNOWN} (PID: {UNKNOWN})")
    for p in record.processes:
        lines.append(f"  Process: {p.name or UNKNOWN} (PID: {p.pid})")
        if p.cmd:
            lines.append(f"    Command: {p.cmd}")
    uid = _uid(record)
    lines.append(f"  UID: {uid} (User: {record.user_name or UNKNOWN})")
    return "\n".join(lines)


def render_details(records: Iterable[OwnershipRecord]) -> str:
    return "\n\n".join(render_detail(r) for r in records)


def render_json(records: Iterable[OwnershipRecord], port: Optional[int] = None) -> str:
    payload = [r.to_dict() for r in records]
    body = {"count": len(payload), "sockets": payload}
    if port is not None:
        body["port"] = port
    return orjson.dumps(body, option=orjson.OPT_INDENT_2).decode()
