#!/usr/bin/env python3
"""
Simple CLI entry point for the pgdesk API server.

Usage:
    python -m pgdesk.web [options]

Options:
    --host HOST          Host to bind to (default: 0.0.0.0)
    --port PORT          Port to listen on (default: 3001)
    --pg-host HOST       PostgreSQL host to connect to at startup (optional)
    --pg-port PORT       PostgreSQL port (default: 5432)
    --pg-database NAME   PostgreSQL database (default: postgres)
    --pg-user USER       PostgreSQL user (default: postgres)
    --pg-password PWD    PostgreSQL password (default: empty)
    --pg-ssl             Use TLS for the database connection
    --pg-ssl-verify      Verify the server certificate
    --pg-schema SCHEMA   Schema whose tables are exposed (default: public)
    --reload             Enable auto-reload (for development)
    --help               Show this help message

Examples:
    python -m pgdesk.web
    python -m pgdesk.web --port 9000 --pg-host db.internal --pg-database inventory
"""

import argparse
import os

import uvicorn

from .api.app import create_app
from .api.connection_store import ConnectionSettings
from .config import build_service, env_bool, settings_to_env


def parse_args() -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="pgdesk - PostgreSQL table browser and record editor API",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s
  %(prog)s --port 9000 --pg-host db.internal --pg-database inventory
  %(prog)s --reload --pg-host localhost --pg-user admin --pg-password secret
        """,
    )

    # Web server options
    parser.add_argument(
        "--host",
        default=os.getenv("HOST", "0.0.0.0"),
        help="Host to bind to (default: %(default)s)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=int(os.getenv("PORT", "3001")),
        help="Port to listen on (default: %(default)s)",
    )

    # PostgreSQL connection options
    parser.add_argument(
        "--pg-host",
        default=os.getenv("PG_HOST"),
        help="PostgreSQL host; connect at startup when given (default: %(default)s)",
    )
    parser.add_argument(
        "--pg-port",
        type=int,
        default=int(os.getenv("PG_PORT", "5432")),
        help="PostgreSQL port (default: %(default)s)",
    )
    parser.add_argument(
        "--pg-database",
        default=os.getenv("PG_DATABASE", "postgres"),
        help="PostgreSQL database (default: %(default)s)",
    )
    parser.add_argument(
        "--pg-user",
        default=os.getenv("PG_USER", "postgres"),
        help="PostgreSQL user (default: %(default)s)",
    )
    parser.add_argument(
        "--pg-password",
        default=os.getenv("PG_PASSWORD", ""),
        help="PostgreSQL password",
    )
    parser.add_argument(
        "--pg-ssl",
        action="store_true",
        default=env_bool("PG_SSL", False),
        help="Use TLS (default: %(default)s)",
    )
    parser.add_argument(
        "--pg-ssl-verify",
        action="store_true",
        default=env_bool("PG_SSL_VERIFY", False),
        help="Verify the server certificate (default: %(default)s)",
    )
    parser.add_argument(
        "--pg-schema",
        default=os.getenv("PG_SCHEMA", "public"),
        help="Schema whose tables are exposed (default: %(default)s)",
    )

    # Development options
    parser.add_argument(
        "--reload",
        action="store_true",
        default=env_bool("RELOAD", False),
        help="Enable auto-reload for development (default: %(default)s)",
    )

    return parser.parse_args()


def settings_from_args(args: argparse.Namespace) -> ConnectionSettings | None:
    if not args.pg_host:
        return None
    return ConnectionSettings(
        host=args.pg_host,
        port=args.pg_port,
        database=args.pg_database,
        username=args.pg_user,
        password=args.pg_password,
        use_tls=args.pg_ssl,
        tls_verify=args.pg_ssl_verify,
        schema=args.pg_schema,
    )


def main() -> None:
    """Main entry point."""
    args = parse_args()
    settings = settings_from_args(args)

    # Reload needs an import string, so the reloaded app reads PG_* from the environment.
    app: object = "pgdesk.api.main:app"
    if not args.reload:
        app = create_app(build_service(settings))
    elif settings is not None:
        settings_to_env(settings)

    display_host = "127.0.0.1" if args.host == "0.0.0.0" else args.host
    print("Starting pgdesk API")
    print(f"   API:      http://{display_host}:{args.port}/api")
    print(f"   API Docs: http://{display_host}:{args.port}/docs")
    if settings is not None:
        target = f"{settings.username}@{settings.host}:{settings.port}/{settings.database}"
        print(f"   Database: {target}")
        if settings.use_tls:
            print(f"   TLS:      yes (verify={settings.tls_verify})")
    else:
        print("   Database: not connected (POST /api/connect)")
    print()

    uvicorn.run(
        app,
        host=args.host,
        port=args.port,
        reload=args.reload,
    )


if __name__ == "__main__":
    main()
