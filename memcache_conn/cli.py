#!/usr/bin/env python3
"""
Interactive memcache-conn Client

A small command-line client for trying a Connection against a live
memcache server.

Usage:
    memcache-conn                         # Connect to localhost:11211
    memcache-conn --host 10.0.0.5         # Connect to a specific host
    memcache-conn --port 11311 --debug    # Custom port, debug logging

Environment Variables:
    MEMCACHE_HOST       - Default server host
    MEMCACHE_PORT       - Default server port
    MEMCACHE_RECONNECT  - Reconnect after lost connections (true/false)
    MEMCACHE_DEBUG      - Enable debug logging (true/false)
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

# Enable command history with arrow keys (works on Unix systems)
try:
    import readline  # noqa: F401
except ImportError:
    pass  # readline not available on Windows by default

from .config.settings import settings
from .errors import MemcacheError
from .network.connection import Connection

logger = logging.getLogger(__name__)

HELP_TEXT = """
Commands:
---------
  set <key> <value> [ttl]   Store a value (optional TTL in seconds)
  get <key>                 Retrieve the value for a key
  delete <key>              Delete a key
  discover                  List cluster nodes via autodiscovery
  stats                     Show connection statistics
  help                      Show this help message
  exit                      Exit the client
""".strip()


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="memcache-conn: interactive memcache client",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "--host",
        type=str,
        default=settings.HOST,
        help="Memcache server host",
    )

    parser.add_argument(
        "--port",
        type=int,
        default=settings.PORT,
        help="Memcache server port",
    )

    parser.add_argument(
        "--timeout",
        type=float,
        default=5.0,
        help="Seconds to wait for each response",
    )

    parser.add_argument(
        "--no-reconnect",
        dest="reconnect",
        action="store_false",
        default=settings.RECONNECT,
        help="Do not reconnect when the connection is lost",
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        default=settings.DEBUG,
        help="Enable debug logging",
    )

    return parser.parse_args(argv)


def setup_logging(debug: bool = False) -> None:
    """Configure logging based on debug flag."""
    level = logging.DEBUG if debug else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
        ]
    )


async def run_command(connection: Connection, line: str, timeout: Optional[float] = None) -> str:
    """
    Execute one client command line.

    Args:
        connection: Connection to run the command on
        line: Raw command line, e.g. "set greeting hello 60"
        timeout: Seconds to wait for the response (None waits forever)

    Returns:
        Printable result. Failures are reported as "ERROR: <reason>".
    """
    parts = line.split()
    if not parts:
        return ""

    name, args = parts[0].lower(), parts[1:]

    try:
        if name == "set" and len(args) in (2, 3):
            ttl = int(args[2]) if len(args) == 3 else 0
            await asyncio.wait_for(connection.set(args[0], args[1], ttl), timeout)
            return "STORED"

        if name == "get" and len(args) == 1:
            value = await asyncio.wait_for(connection.get(args[0]), timeout)
            return value if value is not None else "(not found)"

        if name == "delete" and len(args) == 1:
            deleted = await asyncio.wait_for(connection.delete(args[0]), timeout)
            return "DELETED" if deleted else "NOT_FOUND"

        if name == "discover" and not args:
            nodes = await asyncio.wait_for(connection.autodiscovery(), timeout)
            return "\n".join(nodes) if nodes else "(no nodes)"

        if name == "stats" and not args:
            return "\n".join(f"{key}: {value}" for key, value in connection.get_stats().items())

        if name == "help":
            return HELP_TEXT

    except asyncio.TimeoutError:
        return "ERROR: request timed out"
    except ValueError as exc:
        return f"ERROR: {exc}"
    except MemcacheError as exc:
        return f"ERROR: {exc}"

    return f"ERROR: unknown command {line.strip()!r} (type 'help')"


async def interactive(args: argparse.Namespace) -> None:
    """Prompt for commands until exit or end of input."""
    loop = asyncio.get_running_loop()
    prompt = f"{args.host}:{args.port}> "

    async with Connection(host=args.host, port=args.port, reconnect=args.reconnect) as connection:
        print(f"Connecting to {connection.address}. Type 'help' for commands.")
        while True:
            try:
                line = await loop.run_in_executor(None, input, prompt)
            except EOFError:
                print()
                break

            if line.strip().lower() in ("exit", "quit"):
                break

            result = await run_command(connection, line, timeout=args.timeout)
            if result:
                print(result)


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for the client."""
    args = parse_args(argv)
    setup_logging(debug=args.debug)

    try:
        asyncio.run(interactive(args))
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")


if __name__ == "__main__":
    main()
