#!/usr/bin/env python
# backend/clubdesk/commands/expire_makeup_deadlines.py
"""
Force-expire overdue makeup deadlines.

Runs the same sweep the nightly beat task runs, either inline against the
configured database or by enqueueing the Celery task.

Usage:
    python -m clubdesk.commands.expire_makeup_deadlines run       # Sweep now
    python -m clubdesk.commands.expire_makeup_deadlines enqueue   # Queue the task
    python -m clubdesk.commands.expire_makeup_deadlines init-db   # Create tables
"""

import argparse
import json
import logging
import sys
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from clubdesk.database import SessionLocal, create_all
from clubdesk.services.expiry_sweep_service import ExpirySweepService

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


class ExpireMakeupDeadlinesCommand:
    """Expiry sweep command handler."""

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal) -> None:
        self.session_factory = session_factory

    def run(self) -> Dict[str, Any]:
        """Sweep inline and return the result as a plain dict."""
        db = self.session_factory()
        try:
            result = ExpirySweepService(db).sweep()
            return result.model_dump(mode="json")
        finally:
            db.close()

    def enqueue(self) -> Dict[str, Any]:
        from clubdesk.tasks.absence_tasks import expire_makeup_deadlines_task

        async_result = expire_makeup_deadlines_task.delay()
        logger.info("Submitted expiry sweep task %s", async_result.id)
        return {"status": "submitted", "task_id": async_result.id}

    def init_db(self) -> Dict[str, Any]:
        create_all()
        logger.info("Created scheduling tables")
        return {"status": "created"}


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the expiry command."""
    parser = argparse.ArgumentParser(
        description="Expire approved absences whose makeup deadline has passed",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m clubdesk.commands.expire_makeup_deadlines run       # Sweep inline
  python -m clubdesk.commands.expire_makeup_deadlines enqueue   # Via Celery
        """,
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to run")
    subparsers.add_parser("run", help="Run the sweep inline")
    subparsers.add_parser("enqueue", help="Submit the sweep to the Celery queue")
    subparsers.add_parser("init-db", help="Create the scheduling tables if missing")

    args = parser.parse_args(argv)
    cmd = ExpireMakeupDeadlinesCommand()

    if args.command == "run":
        result = cmd.run()
        print(json.dumps(result, indent=2))
        return 1 if result["failed_ids"] else 0
    if args.command == "enqueue":
        result = cmd.enqueue()
        print(json.dumps(result, indent=2))
        return 0
    if args.command == "init-db":
        print(json.dumps(cmd.init_db(), indent=2))
        return 0

    parser.print_help()
    return 2


if __name__ == "__main__":
    sys.exit(main())
