"""Container entrypoint for geolens.

Runs pending migrations, then replaces itself with either the API server
(``start.py api``, the default) or the RQ worker (``start.py worker``).
"""

import os
import subprocess
import sys


def run_migrations() -> bool:
    """Apply pending migrations. Returns False if alembic failed."""
    print("Running database migrations...")
    try:
        result = subprocess.run(
            ["alembic", "upgrade", "head"],
            check=True,
            capture_output=True,
            text=True,
        )
    except subprocess.CalledProcessError as e:
        print(f"Migration failed: {e.stderr}")
        return False
    print(result.stdout)
    return True


def start_api() -> None:
    port = os.getenv("PORT", "8000")
    host = os.getenv("API_HOST", "0.0.0.0")
    workers = os.getenv("API_WORKERS", "1")

    print(f"Starting API server on {host}:{port} with {workers} worker(s)...")
    os.execvp(
        "uvicorn",
        [
            "uvicorn",
            "api.main:app",
            "--host",
            host,
            "--port",
            port,
            "--workers",
            workers,
            "--proxy-headers",
        ],
    )


def start_worker() -> None:
    print("Starting RQ worker...")
    os.execvp(sys.executable, [sys.executable, "-m", "worker.main"])


def main() -> None:
    mode = sys.argv[1] if len(sys.argv) > 1 else "api"
    if mode not in ("api", "worker"):
        sys.exit(f"Unknown mode '{mode}', expected 'api' or 'worker'")

    # Only the API runs migrations so two containers never race on them
    if mode == "api" and os.getenv("RUN_MIGRATIONS", "true").lower() == "true":
        if not run_migrations():
            sys.exit(1)

    if mode == "worker":
        start_worker()
    else:
        start_api()


if __name__ == "__main__":
    main()
