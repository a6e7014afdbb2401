"""Scheduled end-of-day reporting."""

from __future__ import annotations

import json
import logging
from datetime import date
from pathlib import Path

logger = logging.getLogger(__name__)


def write_daily_reports(
    service,
    day: date | str | None = None,
    output_dir: str | Path | None = None,
    *,
    pdf: bool | None = None,
) -> list[Path]:
    """Write the day's sales, stock and suggestion reports to disk.

    Args:
        service: A PosService.
        day: Report date; defaults to today.
        output_dir: Defaults to ``reports.output_dir`` from the config.
        pdf: Also render a PDF; defaults to ``reports.pdf``.

    Returns:
        Paths of the files written.
    """
    cfg = service.config.reports
    if day is None:
        day = date.today()
    if isinstance(day, date):
        day = day.isoformat()
    out = Path(output_dir or cfg.output_dir).expanduser()
    out.mkdir(parents=True, exist_ok=True)

    with service.orders.snapshot():
        sales = service.reports.daily_sales(day)
        stock = service.reports.daily_stock(day)
        suggestions = service.reports.stock_suggestions(day)

    written = []
    for name, data in (
        ("sales", sales.to_dict()),
        ("stock", stock.to_dict()),
        ("suggestions", [s.to_dict() for s in suggestions]),
    ):
        path = out / f"{name}-{day}.json"
        path.write_text(json.dumps(data, ensure_ascii=False, indent=2))
        written.append(path)

    if cfg.pdf if pdf is None else pdf:
        from .pdf import generate_report_pdf

        written.append(
            generate_report_pdf(sales, stock, suggestions, out / f"report-{day}.pdf")
        )

    restock = [s for s in suggestions if s.suggestion == "restock"]
    logger.info(
        "Reports for %s written to %s (%d orders, %d items to restock)",
        day,
        out,
        sales.total_orders,
        len(restock),
    )
    return written


class ReportScheduler:
    """Runs the end-of-day report job on a cron schedule.

    Uses APScheduler for cron-based scheduling.
    """

    def __init__(self, service) -> None:
        """Initialize scheduler with a PosService.

        Raises:
            ImportError: If apscheduler is not installed.
        """
        try:
            from apscheduler.schedulers.asyncio import AsyncIOScheduler
            from apscheduler.triggers.cron import CronTrigger
        except ImportError:
            raise ImportError(
                "apscheduler is required: pip install 'hotelpos[scheduler]'"
            )

        self._service = service
        self._scheduler = AsyncIOScheduler()
        self._CronTrigger = CronTrigger
        self._running = False

    def setup_jobs(self) -> None:
        """Register scheduled jobs based on config."""
        schedule = self._service.config.reports.schedule
        self._scheduler.add_job(
            self._job_end_of_day,
            trigger=self._parse_cron(schedule),
            id="end_of_day",
            name="End-of-day reports",
            replace_existing=True,
        )
        logger.info("End-of-day report job registered: %s", schedule)

    def start(self) -> None:
        self.setup_jobs()
        self._scheduler.start()
        self._running = True
        logger.info("Scheduler started")

    def stop(self) -> None:
        if self._running:
            self._scheduler.shutdown(wait=False)
            self._running = False
            logger.info("Scheduler stopped")

    @property
    def running(self) -> bool:
        return self._running

    def get_jobs(self) -> list[dict]:
        """Return info about scheduled jobs."""
        jobs = []
        for job in self._scheduler.get_jobs():
            next_run = getattr(job, "next_run_time", None)
            jobs.append({
                "id": job.id,
                "name": job.name,
                "next_run": str(next_run) if next_run else None,
            })
        return jobs

    def _parse_cron(self, expr: str):
        """Parse a cron expression into a CronTrigger."""
        parts = expr.split()
        if len(parts) == 5:
            return self._CronTrigger(
                minute=parts[0],
                hour=parts[1],
                day=parts[2],
                month=parts[3],
                day_of_week=parts[4],
            )
        raise ValueError(f"Invalid cron expression: {expr}")

    async def _job_end_of_day(self) -> None:
        logger.info("Running end-of-day reports...")
        try:
            write_daily_reports(self._service)
        except Exception:
            logger.exception("End-of-day report job failed")
