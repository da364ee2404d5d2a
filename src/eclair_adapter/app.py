from __future__ import annotations

import argparse
import logging
import sys

from . import __version__
from .log import set_logger
from .server import MainConfig, MainServer

DEFAULT_CONFIG = "~/.eclair-adapter/eclair-adapter.toml"

logger = logging.getLogger(__name__)


def _get_args():
    parser = argparse.ArgumentParser(
        prog="eclair-adapter",
        description="Bridges eclair payment events into the settlement platform",
    )
    parser.add_argument(
        "--config",
        type=str,
        help=f"Input file for reading (default: '{DEFAULT_CONFIG}')",
        default=DEFAULT_CONFIG,
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Show the version",
    )
    return parser.parse_args()


def app():

    server: MainServer | None = None

    try:
        args = _get_args()
        if args.version:
            print(f"Version: {__version__}")
            sys.exit(0)

        config = MainConfig.from_config_file(args.config)

        set_logger(config.log_file, config.log_level)
        logger.info(f"eclair-adapter {__version__=} starting...")

        server = MainServer(cfg=config)
        server.start()

        logger.info("eclair-adapter shutdown completed.\n")
        logging.shutdown()

    except Exception:
        # Hard exit with killing of all threads if there is an unknown error.
        logger.exception("An unexpected error occurred.")
        logging.shutdown()

        if server is not None:
            server.kill()
        sys.exit(1)


if __name__ == "__main__":
    app()
