#!/usr/bin/env python3
"""
rms_server/cli.py
Server entry point

Usage:
    python -m rms_server [--host 0.0.0.0] [--port 3000] [--db-path ./data/rms-local.db]
                        [--web-dist ./web/dist] [--setup-token TOKEN]

Startup-fatal conditions (registry cannot be opened, port cannot be bound)
exit with a non-zero status.
"""
import logging
import sys
from typing import Optional, Sequence

import uvicorn
from dotenv import load_dotenv

from rms_server.config import create_parser, parse_server_options
from rms_server.main import create_app

logger = logging.getLogger("rms_server")


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler()]
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    load_dotenv()
    argv = list(sys.argv[1:] if argv is None else argv)

    # Full parse so --help, --version and bad choices behave normally
    create_parser().parse_args(argv)
    options = parse_server_options(argv)

    setup_logging(options.log_level)
    logger.info(f"listening at http://{options.host}:{options.port}")
    logger.info(f"using db at {options.resolved_db_path}")

    app = create_app(options)
    uvicorn.run(
        app,
        host=options.host,
        port=options.port,
        log_level=options.log_level.lower(),
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
