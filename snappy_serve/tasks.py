"""
Celery Tasks
Background report exports, queued by ``POST /reports/daily/export``.
"""

import logging
import time
from datetime import datetime

from snappy_serve.celery_worker import celery_app
from snappy_serve.services.excel_manager import ReportExcelExporter

logger = logging.getLogger(__name__)


@celery_app.task(
    bind=True,
    max_retries=3,
    default_retry_delay=5,
    autoretry_for=(OSError,),
    retry_backoff=True
)
def export_daily_report(self, report: dict) -> dict:
    """
    Write a daily report to the Excel workbook.

    Args:
        report: Daily report as served by ``GET /reports/daily`` (camelCase)

    Returns:
        dict: Result of the export operation
    """
    task_id = self.request.id
    day = report.get('date', 'unknown')

    logger.info(f"Task {task_id}: exporting report {day}")
    start_time = time.time()

    result = ReportExcelExporter.from_settings().export_daily_report(report)

    elapsed = round(time.time() - start_time, 3)
    result['task_id'] = task_id
    result['processing_time_seconds'] = elapsed

    if result['success']:
        logger.info(f"Task {task_id}: report {day} exported in {elapsed}s")
    else:
        logger.warning(f"Task {task_id}: report {day} failed - {result['message']}")

    return result


@celery_app.task
def health_check() -> dict:
    """Verify the worker is consuming tasks."""
    return {
        'status': 'healthy',
        'worker': 'celery',
        'timestamp': datetime.now().isoformat()
    }
