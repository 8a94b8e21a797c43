from __future__ import annotations
from typing import Callable, List, Union

import orjson
from flask import Flask, Response, current_app

from ..config import CFG
from ..errors import EnumerationError
from ..models import FilterMiss, OwnershipRecord
from ..snapshot import take_snapshot

Capture = Callable[[CFG], Union[List[OwnershipRecord], FilterMiss]]

def _json(obj, status: int = 200) -> Response:
    resp = Response(orjson.dumps(obj), status=status, mimetype="application/json")
    # every response is a fresh snapshot
    resp.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, max-age=0"
    return resp

def create_app(cfg: CFG, capture: Capture = take_snapshot) -> Flask:
    app = Flask(__name__)

    def _run(port):
        req_cfg = CFG(
            families=set(cfg.families), protocols=set(cfg.protocols), port=port,
            strategy=cfg.strategy, workers=cfg.workers,
        )
        try:
            return capture(req_cfg), None
        except EnumerationError as e:
            current_app.logger.error("socket enumeration failed: %s", e)
            return None, _json({"error": str(e)}, status=503)

    @app.get("/api/sockets")
    def api_sockets():
        result, err = _run(None)
        if err is not None:
            return err
        return _json({"count": len(result), "sockets": [r.to_dict() for r in result]})

    @app.get("/api/sockets/<int:port>")
    def api_port(port: int):
        result, err = _run(port)
        if err is not None:
            return err
        if isinstance(result, FilterMiss):
            current_app.logger.info("port %d not in use", result.port)
            return _json({"error": "port not in use", "port": result.port}, status=404)
        return _json({"count": len(result), "port": port, "sockets": [r.to_dict() for r in result]})

    return app
