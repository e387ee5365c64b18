"""
PyTest Configuration and Fixtures
=================================

Shared fixtures and configuration for FeedHealth tests.
"""

import json
import os
import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Set test environment variables before any imports
os.environ["FEEDHEALTH_CATALOG__URL"] = "https://catalog.test"
os.environ["FEEDHEALTH_CATALOG__DB_NAME"] = "publishers"
os.environ["FEEDHEALTH_COUNT_SERVICE__BASE_URL"] = "https://counts.test/"
os.environ["FEEDHEALTH_COUNT_SERVICE__API_KEY"] = "test-count-key"
os.environ["FEEDHEALTH_EMAIL__API_KEY"] = "test-brevo-key"
os.environ["FEEDHEALTH_EMAIL__SENDER_EMAIL"] = "mailer@example.com"
os.environ["FEEDHEALTH_EMAIL__REPORT_RECIPIENTS"] = '["ops@example.com"]'
os.environ["FEEDHEALTH_REMINDERS__ENABLED"] = "false"
os.environ["FEEDHEALTH_LOGGING__FILE_PATH"] = ""
os.environ["FEEDHEALTH_DEBUG"] = "true"

from feedhealth.config.settings import (
    CatalogSettings,
    CountServiceSettings,
    EmailSettings,
    FeedHealthSettings,
    LoggingSettings,
    OwnerSettings,
    ProcessingSettings,
    ReminderSettings,
)
from feedhealth.models import FeedDescriptor


# ============================================================================
# Settings Fixtures
# ============================================================================


@pytest.fixture
def count_settings():
    """Counting service settings with no pause between attempts."""
    return CountServiceSettings(
        base_url="https://counts.test/",
        api_key="test-count-key",
        max_attempts=10,
        retry_delay_seconds=0.0,
    )


@pytest.fixture
def owner_settings():
    return OwnerSettings(
        token_url="https://login.test/services/oauth2/token",
        client_id="client",
        client_secret="secret",
        refresh_token="refresh",
        instance_url="https://crm.test/services/data/",
        max_attempts=2,
        retry_delay_seconds=0.0,
    )


@pytest.fixture
def email_settings():
    return EmailSettings(
        api_key="test-brevo-key",
        sender_email="mailer@example.com",
        report_recipients=["ops@example.com", "editors@example.com"],
        reminder_recipients=["feeds-team@example.com"],
        reminder_bcc=["audit@example.com"],
    )


@pytest.fixture
def test_settings(count_settings, owner_settings, email_settings):
    """Complete, valid settings built without touching the environment."""
    return FeedHealthSettings(
        catalog=CatalogSettings(url="https://catalog.test", db_name="publishers"),
        count_service=count_settings,
        processing=ProcessingSettings(max_concurrent_fetches=4),
        owners=owner_settings,
        email=email_settings,
        reminders=ReminderSettings(enabled=True, weekday=4),
        logging=LoggingSettings(file_path=None),
        debug=False,
    )


# ============================================================================
# Feed Fixtures
# ============================================================================


@pytest.fixture
def sample_feeds():
    """Catalog feeds: two active, one paused, one paused NYT feed."""
    return [
        FeedDescriptor(publisher="Acme Media", feed_name="Acme Daily",
                       feed_url="https://acme.test/daily.xml"),
        FeedDescriptor(publisher="Acme Media", feed_name="Acme Weekly",
                       feed_url="https://acme.test/weekly.xml", paused=True),
        FeedDescriptor(publisher="Globe Press", feed_name="Globe Sports",
                       feed_url="https://globe.test/sports.xml"),
        FeedDescriptor(publisher="The New York Times", feed_name="NYT Science",
                       feed_url="https://nyt.test/science.xml", paused=True),
    ]


# ============================================================================
# Fake HTTP Helpers
# ============================================================================


@pytest.fixture
def count_response():
    """Factory for an aiohttp response context manager.

    Usage: session.get = MagicMock(side_effect=[count_response(200, [...]), ...])
    """
    def _make(status=200, body=None, raw=None):
        if raw is None:
            raw = json.dumps(body if body is not None else [])

        response = MagicMock()
        response.status = status
        response.read = AsyncMock(return_value=raw.encode("utf-8"))

        ctx = MagicMock()
        ctx.__aenter__ = AsyncMock(return_value=response)
        ctx.__aexit__ = AsyncMock(return_value=False)
        return ctx

    return _make


@pytest.fixture
def http_response():
    """Factory for a requests.Response stand-in."""
    def _make(status_code=200, payload=None, text=None):
        response = MagicMock()
        response.status_code = status_code
        if isinstance(payload, Exception):
            response.json.side_effect = payload
        else:
            response.json.return_value = payload
        response.text = text if text is not None else json.dumps(payload)
        return response

    return _make
