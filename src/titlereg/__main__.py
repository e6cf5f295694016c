"""Command-line shim: run one registry operation against an HTTP ledger.

Example::

    python -m titlereg --url http://ledger:8080 init_title V1 1HGCM82633A004352 Honda Civic ABC123 Alice
    python -m titlereg --url http://ledger:8080 query V1
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from titlereg.config import RegistryConfig
from titlereg.dispatch import Dispatcher
from titlereg.exceptions import TitleRegistryError
from titlereg.registry import TitleRegistry
from titlereg.store.http import HttpStore


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="titlereg",
        description="Invoke a vehicle-title registry operation.",
    )
    parser.add_argument("--url", help="Ledger base URL (default: $TITLEREG_STORE_URL)")
    parser.add_argument("--create-only", action="store_true", help="Reject init_title for existing ids")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    parser.add_argument("operation", help="Operation name, e.g. init_title, set_owner, query")
    parser.add_argument("args", nargs="*", help="Positional operation arguments")
    return parser


async def run(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.WARNING)

    overrides: dict[str, object] = {}
    if args.url:
        overrides["store_url"] = args.url
    if args.create_only:
        overrides["create_only"] = True

    try:
        config = RegistryConfig.from_env(**overrides)
        async with HttpStore.from_config(config) as store:
            dispatcher = Dispatcher(TitleRegistry(store, config))
            result = await dispatcher.invoke(args.operation, args.args)
    except TitleRegistryError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    if result is not None:
        sys.stdout.write(result.decode("utf-8", errors="replace"))
        sys.stdout.write("\n")
    return 0


def main() -> None:
    sys.exit(asyncio.run(run()))


if __name__ == "__main__":
    main()
