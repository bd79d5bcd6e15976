"""``eventra-server``: run the API, optionally migrating the database first."""

import argparse
import os


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="eventra-server",
        description="Eventra API server: event ingestion, aggregation and webhooks",
    )
    parser.add_argument("--host", help="Bind host (default: EVENTRA_HOST or 0.0.0.0)")
    parser.add_argument("--port", type=int, help="Bind port (default: EVENTRA_PORT or 8080)")
    parser.add_argument(
        "--local",
        action="store_true",
        help="Local dev mode: SQLite database, console logs",
    )
    parser.add_argument(
        "--migrate",
        action="store_true",
        help="Run 'alembic upgrade head' before serving (PostgreSQL deployments)",
    )
    parser.add_argument("--reload", action="store_true", help="Reload on code changes")
    return parser


def run_migrations(database_url: str) -> None:
    from alembic import command
    from alembic.config import Config

    config = Config("alembic.ini")
    config.cmd_opts = argparse.Namespace(x=[f"url={database_url}"])
    command.upgrade(config, "head")


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)

    if args.local:
        os.environ["EVENTRA_LOCAL_MODE"] = "1"
        os.environ["EVENTRA_JSON_LOGS"] = "0"

    # Settings read the environment on import, so import after the overrides above.
    import uvicorn

    from eventra.config import settings

    if args.migrate:
        run_migrations(settings.effective_database_url)

    uvicorn.run(
        "eventra.main:app",
        host=args.host or settings.host,
        port=args.port or settings.port,
        log_level=settings.log_level,
        reload=args.reload,
    )


if __name__ == "__main__":
    main()
