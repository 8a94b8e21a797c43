from __future__ import annotations
from typing import Iterable, List, Optional, Union

from .models import FilterMiss, OwnershipRecord


def assemble(records: Iterable[OwnershipRecord],
             port: Optional[int] = None) -> Union[List[OwnershipRecord], FilterMiss]:
    """Sort by local port (stable) and optionally keep one port.

    A port that matches nothing gives FilterMiss rather than an empty list,
    so callers can tell "not in use" apart from "nothing open at all".
    """
    ordered = sorted(records, key=lambda r: r.local_port)
    if port is None:
        return ordered
    matching = [r for r in ordered if r.local_port == port]
    if not matching:
        return FilterMiss(port)
    return matching
