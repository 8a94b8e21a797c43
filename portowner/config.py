from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Set
import json
import logging

import yaml

from .collectors.dispatch import STRATEGIES
from .errors import ConfigError
from .models import Family, Proto
from .utils.path import to_abs_path

log = logging.getLogger(__name__)

@dataclass
class CFG:
    families: Set[Family] = field(default_factory=lambda: {Family.IPV4, Family.IPV6})
    protocols: Set[Proto] = field(default_factory=lambda: {Proto.TCP})
    port: Optional[int] = None
    strategy: str = "auto"
    workers: int = 0
    json_output: bool = False
    listen_port: int = 8765

FILE_KEYS = ("families", "protocols", "strategy", "workers", "listen_port")

def _check_port(value: Any, what: str) -> int:
    try:
        port = int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{what} must be a number, got {value!r}") from None
    if not 0 < port < 65536:
        raise ConfigError(f"{what} out of range: {port}")
    return port

def _enum_set(enum_cls, values: Any, key: str) -> set:
    if isinstance(values, str):
        values = [values]
    if not isinstance(values, (list, tuple)) or not values:
        raise ConfigError(f"'{key}' must be a non-empty list")
    try:
        return {enum_cls(str(v).lower()) for v in values}
    except ValueError:
        allowed = ", ".join(e.value for e in enum_cls)
        raise ConfigError(f"'{key}' accepts only: {allowed}") from None

def cfg_from_mapping(data: Dict[str, Any], cfg: Optional[CFG] = None) -> CFG:
    cfg = cfg or CFG()
    unknown = set(data) - set(FILE_KEYS)
    if unknown:
        raise ConfigError(f"unknown config keys: {', '.join(sorted(unknown))}")
    if "families" in data:
        cfg.families = _enum_set(Family, data["families"], "families")
    if "protocols" in data:
        cfg.protocols = _enum_set(Proto, data["protocols"], "protocols")
    if "strategy" in data:
        if data["strategy"] not in STRATEGIES:
            raise ConfigError(f"'strategy' must be one of {', '.join(STRATEGIES)}")
        cfg.strategy = data["strategy"]
    if "workers" in data:
        try:
            cfg.workers = max(0, int(data["workers"]))
        except (TypeError, ValueError):
            raise ConfigError(f"'workers' must be a number, got {data['workers']!r}") from None
    if "listen_port" in data:
        cfg.listen_port = _check_port(data["listen_port"], "listen_port")
    return cfg

def load_cfg_file(path: str | Path) -> CFG:
    """Read defaults from a YAML (.yaml/.yml) or JSON file."""
    p = to_abs_path(path)
    if not p.exists():
        raise ConfigError(f"config not found: {p}")
    txt = p.read_text(encoding="utf-8")
    try:
        data = yaml.safe_load(txt) if p.suffix in (".yaml", ".yml") else json.loads(txt)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigError(f"cannot parse {p}: {e}") from e
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"{p}: top level must be a mapping")
    log.debug("config loaded from %s", p)
    return cfg_from_mapping(data)

def init_cfg_from_args(args) -> CFG:
    cfg = load_cfg_file(args.config) if getattr(args, "config", None) else CFG()
    if getattr(args, "udp", False):
        cfg.protocols = cfg.protocols | {Proto.UDP}
    if getattr(args, "ipv4", False) and not getattr(args, "ipv6", False):
        cfg.families = {Family.IPV4}
    elif getattr(args, "ipv6", False) and not getattr(args, "ipv4", False):
        cfg.families = {Family.IPV6}
    if getattr(args, "strategy", None):
        cfg.strategy = args.strategy
    if getattr(args, "workers", None) is not None:
        cfg.workers = max(0, int(args.workers))
    if getattr(args, "port", None) is not None:
        cfg.port = _check_port(args.port, "--port")
    if getattr(args, "listen_port", None) is not None:
        cfg.listen_port = _check_port(args.listen_port, "--listen-port")
    cfg.json_output = bool(getattr(args, "json", False))
    return cfg
