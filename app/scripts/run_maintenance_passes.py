"""
Entry point for the external periodic job (cron, Kubernetes CronJob, ...).

Runs the alert pass and then the schedule pass once and logs both reports.
Exits non-zero when any unit failed so the scheduler surfaces partial failures.

Run from the ``app`` directory:  python -m scripts.run_maintenance_passes
"""

import asyncio
import logging
import sys

from core.db import AsyncSessionLocal
from core.logging import setup_logging
from services.alert_service import AlertService
from services.planning_service import PlanningService

logger = logging.getLogger(__name__)


async def run_passes(session_factory=AsyncSessionLocal) -> dict:
    async with session_factory() as db:
        alerts = await AlertService(db).run_alert_pass()
        plannings = await PlanningService(db).run_schedule_pass()

    logger.info("Alert pass report", extra={"counts": alerts.counts, "failures": len(alerts.failures)})
    logger.info("Schedule pass report", extra={"counts": plannings.counts, "failures": len(plannings.failures)})
    return {"alerts": alerts, "plannings": plannings}


def main() -> int:
    setup_logging()
    reports = asyncio.run(run_passes())
    failed = sum(len(report.failures) for report in reports.values())
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
