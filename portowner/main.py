from __future__ import annotations
import argparse, logging, sys
from .collectors import STRATEGIES
from .config import init_cfg_from_args
from .errors import ConfigError, EnumerationError
from .models import FilterMiss
from .render import render_details, render_json, render_table
from .snapshot import take_snapshot

EXIT_NOT_FOUND = 1
EXIT_FAILURE = 2

def parse_args(argv=None):
    ap = argparse.ArgumentParser(prog='portowner', description='Lists ports in use and their owning processes')
    ap.add_argument('-p', '--port', type=int, default=None, help='show details for one local port')
    ap.add_argument('--udp', action='store_true', help='include UDP sockets')
    ap.add_argument('-4', dest='ipv4', action='store_true', help='IPv4 only')
    ap.add_argument('-6', dest='ipv6', action='store_true', help='IPv6 only')
    ap.add_argument('--strategy', choices=STRATEGIES, default=None, help='socket table source (default: auto)')
    ap.add_argument('--workers', type=int, default=None, help='threads for descriptor scans (0 = serial)')
    ap.add_argument('--config', type=str, default=None, help='YAML or JSON file with defaults')
    ap.add_argument('--json', action='store_true', help='print JSON instead of a table')
    ap.add_argument('--serve', action='store_true', help='serve the JSON API instead of printing')
    ap.add_argument('--listen-port', type=int, default=None, help='port for --serve (default 8765)')
    ap.add_argument('-v', '--verbose', action='store_true')
    return ap.parse_args(argv)

def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format='%(levelname)s %(name)s: %(message)s')
    try:
        cfg = init_cfg_from_args(args)
    except ConfigError as e:
        print(f"[error] {e}", file=sys.stderr)
        return EXIT_FAILURE

    if args.serve:
        from .web import create_app
        if cfg.port is not None or cfg.json_output:
            print("[warn] --port and --json are ignored with --serve", file=sys.stderr)
        app = create_app(cfg)
        print(f"[*] Serving on http://localhost:{cfg.listen_port}")
        app.run(host='127.0.0.1', port=cfg.listen_port, debug=False, use_reloader=False)
        return 0

    try:
        result = take_snapshot(cfg)
    except EnumerationError as e:
        print(f"[error] {e}", file=sys.stderr)
        return EXIT_FAILURE

    if isinstance(result, FilterMiss):
        print(f"[error] Port {result.port} is not in use.", file=sys.stderr)
        return EXIT_NOT_FOUND

    if cfg.json_output:
        print(render_json(result, cfg.port))
    elif cfg.port is not None:
        if len(result) > 1:
            print(f"[warn] {len(result)} sockets use port {cfg.port}", file=sys.stderr)
        print(render_details(result))
    else:
        print(render_table(result))
    return 0

if __name__ == '__main__':
    sys.exit(main())
