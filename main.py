#!/usr/bin/env python3
"""
Bhajan Signup API: launch the server.

Usage:
    python main.py                          # http://localhost:3000
    python main.py --port 9000              # http://localhost:9000
    python main.py --host 0.0.0.0           # listen on all interfaces
    python main.py --db /path/to/bhajans.sqlite
    python main.py --reload                 # auto-reload on code changes
    python main.py --init-db                # create the tables and exit
"""

from __future__ import annotations

import argparse
import os
import sqlite3
import sys
from pathlib import Path

from utils.config import AppConfig


def init_db(db_path: Path) -> None:
    """Create the signup and catalog tables at *db_path* if missing."""
    from utils.database import init_pragmas, init_schema

    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(db_path))
    try:
        init_pragmas(conn)
        init_schema(conn)
    finally:
        conn.close()


def main() -> None:
    cfg = AppConfig.from_env()
    parser = argparse.ArgumentParser(
        description="Launch the bhajan signup API.",
    )
    parser.add_argument(
        "--host", default=cfg.api_host,
        help=f"Bind address (default: {cfg.api_host} or APP_HOST env var)",
    )
    parser.add_argument(
        "--port", type=int, default=cfg.api_port,
        help=f"Port to listen on (default: {cfg.api_port} or APP_PORT/PORT env var)",
    )
    parser.add_argument(
        "--db", type=Path, default=None,
        help="Path to SQLite database (default: bhajans.sqlite or APP_DB_PATH env var)",
    )
    parser.add_argument(
        "--reload", action="store_true",
        help="Enable auto-reload on file changes (development mode)",
    )
    parser.add_argument(
        "--init-db", action="store_true",
        help="Create the database tables and exit",
    )
    args = parser.parse_args()

    # Set DB path env var if provided via CLI
    if args.db is not None:
        os.environ["APP_DB_PATH"] = str(args.db)

    db_path = Path(os.getenv("APP_DB_PATH", "bhajans.sqlite"))

    if args.init_db:
        init_db(db_path)
        print(f"Initialized database at {db_path}")
        return

    if not db_path.exists():
        print(f"Warning: Database not found at {db_path}")
        print("  Run 'python main.py --init-db' first to create it,")
        print("  or pass --db /path/to/your/database.sqlite")
        print()

    try:
        import uvicorn
    except ImportError:
        print("Error: uvicorn is not installed.")
        print("  pip install uvicorn[standard]")
        sys.exit(1)

    print(f"Starting Bhajan Signup API at http://{args.host}:{args.port}")
    print(f"Database: {db_path}")
    print()

    uvicorn.run(
        "api.app:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level="info",
    )


if __name__ == "__main__":
    main()
