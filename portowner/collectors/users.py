from __future__ import annotations
import logging
from typing import Dict, Mapping, Optional

try:
    import pwd
except ImportError:  # Windows
    pwd = None

from ..models import UNKNOWN, ProcessRecord

log = logging.getLogger(__name__)


class UserDirectory:
    """uid -> account name, read once and never refreshed."""

    def __init__(self, names: Optional[Mapping[int, str]] = None):
        self._names: Dict[int, str] = dict(names or {})

    @classmethod
    def load(cls) -> "UserDirectory":
        names: Dict[int, str] = {}
        if pwd is not None:
            for entry in pwd.getpwall():
                # first entry wins for shared uids, matching getpwuid()
                names.setdefault(entry.pw_uid, entry.pw_name)
        log.debug("loaded %d accounts", len(names))
        return cls(names)

    def __len__(self) -> int:
        return len(self._names)

    def lookup(self, uid: Optional[int]) -> Optional[str]:
        if uid is None:
            return None
        return self._names.get(uid)

    def display(self, uid: Optional[int]) -> str:
        return self.lookup(uid) or UNKNOWN

    def user_name_for(self, proc: Optional[ProcessRecord]) -> Optional[str]:
        if proc is None:
            return None
        if proc.user_id is not None:
            return self.lookup(proc.user_id)
        return proc.username
