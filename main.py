"""Entry point for running the monitoring service."""

from __future__ import annotations

import argparse
import sys

from iperfmon import bootstrap
from iperfmon.errors import ConfigError


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="iperf3 throughput and latency monitor")
    parser.add_argument("--config", help="Path to config.json", default="config.json")
    parser.add_argument("--host", default=None, help="Override web server host")
    parser.add_argument("--port", type=int, default=None, help="Override web server port")
    parser.add_argument("--debug", action="store_true", help="Enable Flask debug mode")
    parser.add_argument("--run-now", action="store_true", help="Run one measurement cycle at startup")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    try:
        context = bootstrap(args.config)
    except ConfigError as exc:
        sys.exit(f"Failed to load configuration: {exc}")
    context.start(run_now=args.run_now)

    host = args.host or context.config.web.host
    port = args.port or context.config.web.port
    try:
        # The reloader would start a second scheduler.
        context.web_app.run(host=host, port=port, debug=args.debug, use_reloader=False, threaded=True)
    finally:
        context.stop()


if __name__ == "__main__":
    main()
