"""CLI entry point."""

import os
import sys
from pathlib import Path

from common.logging_config import setup_logging
from cli.config import Config
from cli.constants import CONFIG_DIR_NAME
from cli.repl import repl_loop


def _pop_option(argv: list, name: str):
    """Remove ``name value`` from argv and return value (None if absent)."""
    if name not in argv:
        return None
    position = argv.index(name)
    if position + 1 >= len(argv):
        raise SystemExit(f"{name} requires a value")
    value = argv[position + 1]
    del argv[position:position + 2]
    return value


def main() -> None:
    """
    Entry point for CLI.

    Options:
        --debug               Log at DEBUG level
        --gateway HOST:PORT   Save another gateway address to the config first
    """
    debug = '--debug' in sys.argv
    log_level = 'DEBUG' if debug else os.getenv('LOG_LEVEL', 'WARNING')

    logger = setup_logging('cli', log_level=log_level, stream=sys.stderr)

    if debug:
        logger.info("Debug logging enabled")
        sys.argv.remove('--debug')

    gateway = _pop_option(sys.argv, '--gateway')
    if gateway:
        host, _, port = gateway.rpartition(':')
        if not host or not port.isdigit():
            raise SystemExit("--gateway expects HOST:PORT")
        Config(Path.home() / CONFIG_DIR_NAME / 'config.json').set_gateway(host, int(port))
        logger.info(f"Gateway set to {host}:{port}")

    logger.info("CLI starting...")
    try:
        repl_loop()
    except Exception as e:
        logger.error(f"CLI error: {e}", exc_info=True)
        raise
    finally:
        logger.info("CLI exiting")


if __name__ == "__main__":
    main()
