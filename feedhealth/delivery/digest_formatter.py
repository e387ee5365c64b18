"""
Digest Formatter
================

HTML bodies for the daily report email and the paused feed reminders.
All catalog values are escaped before they are placed in markup.
"""

from html import escape
from typing import List

from ..models import AggregatedReport, FeedDescriptor


class DigestFormatter:
    """Formats report and reminder emails."""

    def __init__(self, sender_name: str = "RSS Mailer", lookback_hours: int = 24):
        self.sender_name = sender_name
        self.lookback_hours = lookback_hours

    def _wrap(self, body: str) -> str:
        return f"<html><head></head><body>{body}</body></html>"

    def format_report_body(self, report: AggregatedReport) -> str:
        """Body of the daily report email; the numbers travel in the attachment."""
        body = (
            f"See attached for the total ingested articles in the past "
            f"{self.lookback_hours} hours by magazine."
        )

        unknown = report.unknown_magazines
        if unknown:
            body += (
                f"<br><br>The ingestion count could not be determined for "
                f"{len(unknown)} magazine(s): {escape(', '.join(unknown))}."
            )

        return self._wrap(body)

    def format_paused_feed(self, feed: FeedDescriptor) -> str:
        url = escape(feed.feed_url, quote=True)
        return (
            f"The feed for <b>{escape(feed.feed_name)}</b> ({escape(feed.publisher)}) is paused. "
            f"Please work with the Publisher to resolve the errors and unpause the feed."
            f"<br><br>URL: <a href='{url}'>{url}</a><br><br><br>"
        )

    def format_paused_reminder(self, feeds: List[FeedDescriptor]) -> str:
        """Reminder body listing every paused feed of one owner."""
        body = "".join(self.format_paused_feed(feed) for feed in feeds)
        return self._wrap(f"{body}<br><br><br>{escape(self.sender_name)}")
