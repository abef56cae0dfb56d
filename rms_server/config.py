"""
rms_server/config.py
Server options

Every option is read from its command-line flag first, then from the
environment, then from the built-in default. The resulting ServerOptions is
passed explicitly into create_app(); components never read the environment.
"""
import argparse
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Mapping, Optional, Sequence

DEFAULT_DB_PATH = "./data/rms-local.db"
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 3000
DEFAULT_SESSION_TTL_DAYS = 7


def parse_port(raw_port: Optional[str]) -> int:
    """Ports outside 1..65535 (or unparsable) fall back to the default."""
    try:
        port = int(raw_port or "")
    except ValueError:
        return DEFAULT_PORT
    if port <= 0 or port > 65535:
        return DEFAULT_PORT
    return port


def parse_positive_int(raw: Optional[str], default: int) -> int:
    try:
        value = int(raw or "")
    except ValueError:
        return default
    return value if value > 0 else default


def _first_set(*values: Optional[str]) -> Optional[str]:
    """First value that is not None and not blank."""
    for value in values:
        if value is not None and value.strip() != "":
            return value
    return None


@dataclass
class ServerOptions:
    """Resolved runtime configuration for one server process."""

    db_path: str = DEFAULT_DB_PATH
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    web_dist: Optional[str] = None
    setup_token: Optional[str] = None
    auth_secret: Optional[str] = None
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    session_ttl_days: int = DEFAULT_SESSION_TTL_DAYS
    log_level: str = "INFO"

    @property
    def resolved_db_path(self) -> Path:
        return Path(self.db_path).expanduser().resolve()

    @property
    def resolved_web_dist(self) -> Optional[Path]:
        if not self.web_dist:
            return None
        return Path(self.web_dist).expanduser().resolve()


def create_parser() -> argparse.ArgumentParser:
    """Create the server argument parser. Every flag defaults to None so the
    environment can fill the gap."""
    parser = argparse.ArgumentParser(
        prog="rms-server",
        description="Local-first tournament event server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment:
  HOST, PORT, DB_PATH, WEB_DIST, SETUP_TOKEN, AUTH_SECRET,
  CORS_ORIGIN, SESSION_TTL_DAYS, LOG_LEVEL

Examples:
  %(prog)s --port 8080 --db-path ./data/rms-local.db
  %(prog)s --web-dist ../web/dist --setup-token s3cret
        """
    )
    parser.add_argument("--version", action="version", version="%(prog)s 1.0.0")
    parser.add_argument("--host", help=f"Bind address (default: {DEFAULT_HOST})")
    parser.add_argument("--port", help=f"Listening port (default: {DEFAULT_PORT})")
    parser.add_argument("--db-path", dest="db_path", help=f"Registry database file (default: {DEFAULT_DB_PATH})")
    parser.add_argument("--web-dist", dest="web_dist", help="Directory holding the built web UI")
    parser.add_argument("--setup-token", dest="setup_token", help="Shared secret for the one-time admin setup")
    parser.add_argument("--auth-secret", dest="auth_secret", help="Secret used to sign session cookies")
    parser.add_argument("--cors-origin", dest="cors_origin", help="Comma separated list of allowed origins")
    parser.add_argument(
        "--log-level",
        dest="log_level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)"
    )
    return parser


def parse_server_options(
    argv: Optional[Sequence[str]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> ServerOptions:
    """Build ServerOptions from argv and environment (flags win)."""
    env = environ if environ is not None else os.environ
    args, _unknown = create_parser().parse_known_args(list(argv) if argv is not None else [])

    raw_origins = _first_set(args.cors_origin, env.get("CORS_ORIGIN")) or "*"
    cors_origins = [origin.strip() for origin in raw_origins.split(",") if origin.strip()]

    return ServerOptions(
        db_path=_first_set(args.db_path, env.get("DB_PATH")) or DEFAULT_DB_PATH,
        host=_first_set(args.host, env.get("HOST")) or DEFAULT_HOST,
        port=parse_port(_first_set(args.port, env.get("PORT"))),
        web_dist=_first_set(args.web_dist, env.get("WEB_DIST")),
        setup_token=_first_set(args.setup_token, env.get("SETUP_TOKEN")),
        auth_secret=_first_set(args.auth_secret, env.get("AUTH_SECRET")),
        cors_origins=cors_origins or ["*"],
        session_ttl_days=parse_positive_int(env.get("SESSION_TTL_DAYS"), DEFAULT_SESSION_TTL_DAYS),
        log_level=(_first_set(args.log_level, env.get("LOG_LEVEL")) or "INFO").upper(),
    )
