#!/usr/bin/env python
# scripts/manage_db.py

"""
Database management CLI for the Messaging Service.
- Creates the PostgreSQL database if missing
- Applies and authors Alembic migrations
"""

import argparse
import logging
import os
import subprocess
import sys
from pathlib import Path
from typing import Dict
from urllib.parse import urlparse

from dotenv import load_dotenv

service_dir = Path(__file__).parent.parent.absolute()

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger("manage_db")

COLORS = {
    "red": "\033[91m",
    "green": "\033[92m",
    "yellow": "\033[93m",
    "reset": "\033[0m",
}


def colored(text: str, color: str) -> str:
    return f"{COLORS.get(color, '')}{text}{COLORS['reset']}"


def run_command(command: str, check: bool = True) -> subprocess.CompletedProcess:
    logger.info(colored(f"--- Running: {command} ---", "yellow"))
    result = subprocess.run(
        command,
        shell=True,
        text=True,
        capture_output=True,
        cwd=service_dir,
    )
    if result.stdout:
        print(result.stdout)
    if result.stderr:
        print(colored(result.stderr, "yellow"), file=sys.stderr)
    if check and result.returncode != 0:
        logger.error(colored(f"Command failed with exit code {result.returncode}", "red"))
        raise subprocess.CalledProcessError(
            result.returncode, command, result.stdout, result.stderr
        )
    return result


def db_params_from_url(db_url: str) -> Dict:
    parsed = urlparse(db_url)
    return {
        "user": parsed.username or "postgres",
        "password": parsed.password or "postgres",
        "host": parsed.hostname or "localhost",
        "port": parsed.port or 5432,
        "dbname": parsed.path.lstrip("/"),
    }


def admin_dsn(db_params: Dict) -> str:
    return (
        f"postgresql://{db_params['user']}:{db_params['password']}"
        f"@{db_params['host']}:{db_params['port']}/postgres"
    )


def create_db(db_params: Dict) -> None:
    db_name = db_params["dbname"]
    logger.info(f"Ensuring database '{db_name}' exists on host '{db_params['host']}'...")
    # Non-zero exit here usually means the database already exists
    result = run_command(
        f'psql "{admin_dsn(db_params)}" -c "CREATE DATABASE {db_name}"', check=False
    )
    if result.returncode == 0:
        logger.info(colored(f"Database '{db_name}' created.", "green"))
    else:
        logger.info(colored(f"Database '{db_name}' already exists.", "green"))


def delete_db(db_params: Dict) -> None:
    db_name = db_params["dbname"]
    logger.info(f"Deleting database '{db_name}'...")
    run_command(
        f'psql "{admin_dsn(db_params)}" -c "SELECT pg_terminate_backend(pid) '
        f"FROM pg_stat_activity WHERE datname = '{db_name}';\"",
        check=False,
    )
    run_command(f'psql "{admin_dsn(db_params)}" -c "DROP DATABASE IF EXISTS {db_name}"')
    logger.info(colored(f"Database '{db_name}' deleted.", "green"))


def build_parser(project_name: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=f"{project_name} Database Management Tool")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init", help="Create the database and apply all migrations.")
    subparsers.add_parser("recreate", help="Drop, create and migrate the database.")
    subparsers.add_parser("delete-db", help="Drop the database for this service.")
    create_mig = subparsers.add_parser("create-migration", help="Autogenerate a new migration.")
    create_mig.add_argument("-m", "--message", required=True, help="Migration description.")
    subparsers.add_parser("upgrade", help="Apply all pending migrations.")
    downgrade = subparsers.add_parser("downgrade", help="Roll back migrations.")
    downgrade.add_argument(
        "-s", "--step", type=int, default=1, help="Number of steps to downgrade (default: 1)."
    )
    subparsers.add_parser("verify", help="Show migration heads and the current revision.")
    return parser


def main() -> None:
    dotenv_path = service_dir / ".env.dev"
    if dotenv_path.exists():
        logger.info(f"Loading environment variables from {dotenv_path}")
        load_dotenv(dotenv_path=dotenv_path, override=True)
    else:
        logger.warning(f"{dotenv_path} not found. Relying on shell environment variables.")

    from messaging_service.config import settings

    args = build_parser(settings.PROJECT_NAME).parse_args()
    db_params = db_params_from_url(settings.DATABASE_URL)
    os.environ["PGPASSWORD"] = db_params["password"]

    try:
        if args.command == "init":
            create_db(db_params)
            run_command("alembic upgrade head")
        elif args.command == "recreate":
            delete_db(db_params)
            create_db(db_params)
            run_command("alembic upgrade head")
        elif args.command == "delete-db":
            delete_db(db_params)
        elif args.command == "create-migration":
            run_command(f'alembic revision --autogenerate -m "{args.message}"')
        elif args.command == "upgrade":
            run_command("alembic upgrade head")
        elif args.command == "downgrade":
            run_command(f"alembic downgrade -{args.step}")
        elif args.command == "verify":
            run_command("alembic heads")
            run_command("alembic current")

        print(colored("\nOperation completed successfully.", "green"))
    except subprocess.CalledProcessError as e:
        logger.error(colored(f"\nOperation failed: {e}", "red"))
        sys.exit(1)


if __name__ == "__main__":
    main()
