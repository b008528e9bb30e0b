"""
Excel Report Exporter with Concurrency Control

Writes daily reports to ``<data_directory>/reports.xlsx``, one sheet per
date. Re-exporting a date replaces its sheet. A ``FileLock`` next to the
workbook serialises writers across worker processes.

Sheet layout:
    summary block  (metric, value)
    hourly block   (hour, orders, revenue)
    top items      (name, quantity, revenue)
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import pandas as pd
from filelock import FileLock, Timeout

from snappy_serve.core.config import Settings, get_settings

logger = logging.getLogger(__name__)

REPORTS_FILENAME = "reports.xlsx"

SUMMARY_FIELDS = [
    ("Date", "date"),
    ("Total orders", "totalOrders"),
    ("Total revenue", "totalRevenue"),
    ("Average order value", "averageOrderValue"),
    ("Customers", "totalCustomers"),
]
HOURLY_COLUMNS = ["hour", "orders", "revenue"]
TOP_ITEM_COLUMNS = ["name", "quantity", "revenue"]


class ReportExcelExporter:
    """Lock-guarded writer for the report workbook."""

    def __init__(self, data_directory: str, lock_timeout: int = 30):
        self.data_dir = Path(data_directory)
        self.lock_timeout = lock_timeout
        self.reports_file = self.data_dir / REPORTS_FILENAME
        self.lock_file = self.data_dir / f"{REPORTS_FILENAME}.lock"

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "ReportExcelExporter":
        settings = settings or get_settings()
        return cls(settings.data_directory, settings.excel_lock_timeout)

    def _ensure_data_dir(self) -> None:
        if not self.data_dir.exists():
            self.data_dir.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created data directory: {self.data_dir}")

    @staticmethod
    def _frames(report: dict[str, Any]) -> tuple[pd.DataFrame, pd.DataFrame, pd.DataFrame]:
        summary = pd.DataFrame(
            [(label, report.get(key)) for label, key in SUMMARY_FIELDS],
            columns=["metric", "value"],
        )
        hourly = pd.DataFrame(report.get("hourlyBreakdown", []), columns=HOURLY_COLUMNS)
        top = pd.DataFrame(report.get("topItems", []), columns=TOP_ITEM_COLUMNS)
        return summary, hourly, top

    def export_daily_report(self, report: dict[str, Any]) -> dict[str, Any]:
        """
        Write one daily report (camelCase dict, as served by the API).

        Returns a result dict; lock timeouts and write errors are reported
        in it rather than raised.
        """
        self._ensure_data_dir()

        sheet = report.get("date", "unknown")
        result = {
            "success": False,
            "message": "",
            "date": sheet,
            "file": str(self.reports_file),
            "exported_at": None,
        }

        try:
            with FileLock(str(self.lock_file), timeout=self.lock_timeout):
                logger.debug(f"Lock acquired for report {sheet}")

                summary, hourly, top = self._frames(report)
                append = self.reports_file.exists()
                writer_args = {"mode": "a", "if_sheet_exists": "overlay"} if append else {"mode": "w"}

                with pd.ExcelWriter(str(self.reports_file), engine="openpyxl", **writer_args) as writer:
                    # Three blocks share the sheet, so drop the old one once up front
                    if sheet in writer.book.sheetnames:
                        del writer.book[sheet]
                    summary.to_excel(writer, sheet_name=sheet, index=False, startrow=0)
                    hourly_row = len(summary) + 2
                    hourly.to_excel(writer, sheet_name=sheet, index=False, startrow=hourly_row)
                    top.to_excel(writer, sheet_name=sheet, index=False, startrow=0, startcol=4)

                export_time = datetime.now().isoformat()
                logger.info(f"Daily report {sheet} exported to {self.reports_file}")
                result["success"] = True
                result["message"] = f"Report {sheet} exported"
                result["exported_at"] = export_time

            logger.debug(f"Lock released for report {sheet}")

        except Timeout:
            result["message"] = f"Lock timeout ({self.lock_timeout}s)"
            logger.error(f"Lock timeout for report {sheet}")

        except (OSError, ValueError) as e:
            result["message"] = str(e)
            logger.exception(f"Error exporting report {sheet}")

        return result

    def list_sheets(self) -> list[str]:
        """Dates already exported, in workbook order."""
        if not self.reports_file.exists():
            return []
        return pd.ExcelFile(self.reports_file, engine="openpyxl").sheet_names

    def read_hourly(self, date: str) -> list[dict[str, Any]]:
        """Hourly rows of one exported sheet."""
        df = pd.read_excel(
            self.reports_file,
            sheet_name=date,
            engine="openpyxl",
            skiprows=len(SUMMARY_FIELDS) + 2,
            usecols="A:C",
        )
        return df.to_dict("records")
