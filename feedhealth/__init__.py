"""
FeedHealth - RSS Ingestion Health Checker
=========================================

Daily health check for a fleet of tracked RSS feeds.

Main Components:
- Catalog: tracked feeds loaded from the Cloudant publisher database
- Processing: concurrent ingestion count fetching with bounded retries
- Aggregation: one deterministic report row per magazine
- Owners: paused feeds grouped by owner through Salesforce
- Delivery: CSV report and reminder emails through Brevo
"""

__version__ = "1.0.0"
__author__ = "FeedHealth Development Team"
__description__ = "RSS feed ingestion health checker"

# Core imports for easy access
from .config.settings import get_settings
from .utils.logging import configure_application_logging, get_logger_for_component
from .utils.exceptions import FeedHealthError

__all__ = [
    "get_settings",
    "configure_application_logging",
    "get_logger_for_component",
    "FeedHealthError",
]
