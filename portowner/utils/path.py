from __future__ import annotations
import os
from pathlib import Path
from typing import Optional, Sequence

PACKAGE_DIR = Path(__file__).resolve().parent.parent
USER_CONFIG_DIR = Path("~/.config/portowner")


def to_abs_path(p: Optional[str | os.PathLike],
                search: Sequence[Path] = (USER_CONFIG_DIR, PACKAGE_DIR)) -> Optional[Path]:
    """Absolute path for a config file name.
    Order:
      1) absolute: expanduser + resolve
      2) relative to CWD, if it exists there
      3) first of `search` (user config dir, then the package folder) holding it
      4) otherwise relative to CWD, so errors name the path the user typed
    """
    if not p:
        return None
    pp = Path(p).expanduser()
    if pp.is_absolute():
        return pp.resolve()
    in_cwd = Path.cwd() / pp
    if in_cwd.exists():
        return in_cwd.resolve()
    for base in search:
        candidate = Path(base).expanduser() / pp
        if candidate.exists():
            return candidate.resolve()
    return in_cwd.resolve()
