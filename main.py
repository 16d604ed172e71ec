"""
Entry point to run the background notifier.
"""
import asyncio

from core.errors import ConfigurationError
from worker.main import main as worker_main


if __name__ == "__main__":
    try:
        asyncio.run(worker_main())
    except ConfigurationError as exc:
        raise SystemExit(f"Refusing to start: {exc}")
