"""
Report Writer
=============

Renders the aggregated report as CSV. The report is built in memory so
nothing has to be cleaned up after it is mailed; writing it to disk is
optional.
"""

import csv
import io
from datetime import date, datetime
from pathlib import Path
from typing import Union

from ..models import AggregatedReport
from ..utils.dates import format_calendar_date
from ..utils.exceptions import DeliveryError, ErrorCode

REPORT_HEADER = ["magazine", "articles"]


def render_report_csv(report: AggregatedReport) -> str:
    """Render report rows in report order; unknown counts become 'unknown'."""
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(REPORT_HEADER)
    for row in report.rows:
        writer.writerow([row.magazine, row.display_count()])
    return buf.getvalue()


def report_filename(run_date: Union[date, datetime]) -> str:
    return f"daily_article_data_{format_calendar_date(run_date)}.csv"


def write_report(report: AggregatedReport, path: Union[str, Path]) -> Path:
    """Write the CSV report to a file and return its path."""
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(render_report_csv(report), encoding="utf-8")
    except OSError as e:
        raise DeliveryError(
            f"Failed to write report to {path}: {e}",
            error_code=ErrorCode.REPORT_WRITE_FAILED,
            recoverable=False,
        ) from e
    return path
