#!/usr/bin/env python3
"""Launch a dockerised PostgreSQL seeded with sample IIS and SQL inventory tables."""

from __future__ import annotations

import argparse
import subprocess
import sys
import time

DEFAULT_CONTAINER = "pgdesk-sample-db"
DEFAULT_PORT = 5544
DEFAULT_PASSWORD = "pgdesk"
DEFAULT_DB = "inventory"
DEFAULT_USER = "pgdesk"
DOCKER_IMAGE = "postgres:16-alpine"

SAMPLE_SQL = """
CREATE TABLE IF NOT EXISTS "vp-v10-apps" (
    id SERIAL PRIMARY KEY,
    hostname TEXT NOT NULL,
    site_name TEXT,
    app_name TEXT,
    app_pool TEXT,
    pool_state TEXT,
    runtime TEXT,
    physical_path TEXT,
    created_at TIMESTAMPTZ DEFAULT now()
);
CREATE TABLE IF NOT EXISTS "vp-v11-prod-applications" (
    id SERIAL PRIMARY KEY,
    hostname TEXT NOT NULL,
    site_name TEXT,
    app_name TEXT,
    version_socle TEXT,
    responsable TEXT,
    updated_at TIMESTAMPTZ
);
CREATE TABLE IF NOT EXISTS "vp-sql-databases" (
    id SERIAL PRIMARY KEY,
    hostname TEXT NOT NULL,
    db_name TEXT NOT NULL,
    owner TEXT,
    state TEXT,
    size_mb INTEGER,
    recovery_model TEXT,
    last_backup_date DATE
);
CREATE TABLE IF NOT EXISTS "vp-sql-logs" (
    id SERIAL PRIMARY KEY,
    instance_name TEXT NOT NULL,
    message TEXT,
    logged_at TIMESTAMPTZ DEFAULT now()
);
INSERT INTO "vp-v10-apps" (hostname, site_name, app_name, app_pool, pool_state, runtime, physical_path)
SELECT * FROM (VALUES
    ('VP-V10-DEV', 'Default Web Site', 'MyApp', 'MyAppPool', 'Started', 'v4.0', 'D:\\sites\\myapp'),
    ('VP-V10-PROD', 'Production Site', 'CriticalApp', 'CriticalPool', 'Started', 'v4.0', 'D:\\sites\\critical'),
    ('VP-V10-TEST', 'Test Site', 'LegacyApp', 'LegacyPool', 'Stopped', 'v2.0', 'D:\\sites\\legacy')
) AS seed
WHERE NOT EXISTS (SELECT 1 FROM "vp-v10-apps");
INSERT INTO "vp-v11-prod-applications" (hostname, site_name, app_name, version_socle, responsable)
SELECT * FROM (VALUES
    ('VP-V11-PROD', 'Portal', 'Portal', '11.2', 'team-web'),
    ('VP-V11-PROD', 'Billing', 'BillingApi', '11.1', 'team-billing')
) AS seed
WHERE NOT EXISTS (SELECT 1 FROM "vp-v11-prod-applications");
INSERT INTO "vp-sql-databases" (hostname, db_name, owner, state, size_mb, recovery_model, last_backup_date)
SELECT * FROM (VALUES
    ('VP-SQL-DEV', 'ACT', 'sa', 'ONLINE', 1930, 'SIMPLE', DATE '2024-01-14'),
    ('VP-SQL-PROD', 'PROD', 'sa', 'ONLINE', 4560, 'FULL', DATE '2024-01-15'),
    ('VP-SQL-TEST', 'QA', 'dbo', 'OFFLINE', 120, 'SIMPLE', NULL)
) AS seed
WHERE NOT EXISTS (SELECT 1 FROM "vp-sql-databases");
INSERT INTO "vp-sql-logs" (instance_name, message)
SELECT * FROM (VALUES
    ('VP-SQL-PROD\\MAIN', 'Backup completed'),
    ('VP-SQL-DEV\\MAIN', 'Login failed for user reporting')
) AS seed
WHERE NOT EXISTS (SELECT 1 FROM "vp-sql-logs");
""".strip()


def run(cmd: list[str], *, check: bool = True, **kwargs) -> subprocess.CompletedProcess[str]:
    print("$", " ".join(cmd))
    return subprocess.run(cmd, check=check, text=True, **kwargs)


def container_exists(name: str) -> bool:
    result = subprocess.run(
        ["docker", "ps", "-a", "--filter", f"name={name}", "--format", "{{.ID}}"],
        text=True,
        capture_output=True,
    )
    return bool(result.stdout.strip())


def start_container(name: str, port: int, password: str, database: str, user: str) -> None:
    if container_exists(name):
        print(f"Container '{name}' already exists. Reusing it.")
        run(["docker", "start", name], check=False)
    else:
        run(
            [
                "docker",
                "run",
                "-d",
                "--name",
                name,
                "-e",
                f"POSTGRES_PASSWORD={password}",
                "-e",
                f"POSTGRES_DB={database}",
                "-e",
                f"POSTGRES_USER={user}",
                "-p",
                f"{port}:5432",
                DOCKER_IMAGE,
            ]
        )
    wait_for_start(name, user)


def wait_for_start(name: str, user: str, retries: int = 15, delay: float = 1.0) -> None:
    for _ in range(retries):
        result = subprocess.run(["docker", "exec", name, "pg_isready", "-U", user], text=True)
        if result.returncode == 0:
            return
        time.sleep(delay)
    print("Warning: database did not report ready state; continuing anyway.")


def seed_data(name: str, database: str, user: str) -> None:
    run(
        [
            "docker",
            "exec",
            "-i",
            name,
            "psql",
            "-U",
            user,
            "-d",
            database,
            "-v",
            "ON_ERROR_STOP=1",
        ],
        input=SAMPLE_SQL,
    )


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--container", default=DEFAULT_CONTAINER, help="Docker container name")
    parser.add_argument(
        "--port", type=int, default=DEFAULT_PORT, help="Host port to expose Postgres on"
    )
    parser.add_argument("--password", default=DEFAULT_PASSWORD, help="Postgres password")
    parser.add_argument("--database", default=DEFAULT_DB, help="Database name to create")
    parser.add_argument("--user", default=DEFAULT_USER, help="Database user")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv or sys.argv[1:])
    try:
        start_container(args.container, args.port, args.password, args.database, args.user)
        seed_data(args.container, args.database, args.user)
    except FileNotFoundError:
        print("Docker is not installed or not on PATH.")
        return 1
    print("Sample database is ready. Start the API against it with:")
    print(
        f"  PG_HOST=localhost PG_PORT={args.port} PG_DATABASE={args.database} "
        f"PG_USER={args.user} PG_PASSWORD={args.password} python -m pgdesk.web"
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
