"""Command line entry point.

Usage:
    python -m payhook recover --start 1700000000 [--end ...] [--mode chunked]
    python -m payhook serve [--host 0.0.0.0] [--port 8000]
    python -m payhook show-config
"""

import argparse
import asyncio
import json
import sys

import uvicorn

from payhook.bootstrap import Services, services_from_settings
from payhook.core.config import get_config, get_settings
from payhook.core.logging import configure_logging
from payhook.core.recovery import RecoveryMode


async def run_recovery(services: Services, args: argparse.Namespace) -> dict:
    mode = RecoveryMode(args.mode)
    options = {}
    if mode is RecoveryMode.CHUNKED:
        options = {"source": "manual", "max_pages": args.max_pages}
    try:
        stats = await services.recovery.run(mode, args.start, args.end, **options)
    finally:
        await services.store.close()
    return stats.as_dict()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="payhook", description="Payment webhook ingestion")
    commands = parser.add_subparsers(dest="command", required=True)

    recover = commands.add_parser("recover", help="Replay events missing from the store")
    recover.add_argument("--start", type=int, required=True, help="Window start (epoch seconds)")
    recover.add_argument("--end", type=int, default=None, help="Window end (default: now)")
    recover.add_argument(
        "--mode", choices=[m.value for m in RecoveryMode], default=RecoveryMode.CHUNKED.value
    )
    recover.add_argument("--max-pages", type=int, default=None, help="Page cap for chunked mode")

    serve = commands.add_parser("serve", help="Run the webhook HTTP server")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=8000)

    commands.add_parser("show-config", help="Print the effective configuration")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    if args.command == "recover":
        services = services_from_settings()
        if services.recovery is None:
            raise SystemExit("Recovery needs an upstream source: set PAYHOOK_STRIPE_API_KEY")
        stats = asyncio.run(run_recovery(services, args))
        print(json.dumps(stats, indent=2))
    elif args.command == "serve":
        uvicorn.run("payhook.api:app_from_env", factory=True, host=args.host, port=args.port)
    else:
        configure_logging(get_settings().log_level)
        print(get_config().model_dump_json(indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
