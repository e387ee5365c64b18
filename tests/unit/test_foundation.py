"""
Foundation Tests
================

Tests for configuration, retry logic, date helpers, models and the
exception hierarchy.
"""

import logging
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, Mock, patch

import pytest
from pydantic import ValidationError

from feedhealth.config.settings import (
    CountServiceSettings,
    FeedHealthSettings,
    MergePolicy,
    OwnerSettings,
    ReminderSettings,
    load_settings,
)
from feedhealth.models import FeedDescriptor, OwnerGroups, ReportRow
from feedhealth.recovery.retry_logic import (
    RetryConfig,
    RetryExhaustedError,
    RetryManager,
)
from feedhealth.utils.dates import format_calendar_date, ingestion_window_date
from feedhealth.utils.exceptions import (
    ConfigurationError,
    CountFetchError,
    ErrorCode,
    FeedHealthError,
    handle_exception,
)
from feedhealth.utils.logging import (
    ColoredConsoleFormatter,
    PerformanceLogger,
    StructuredFormatter,
    get_logger_for_component,
    setup_logger,
)


class TestSettings:

    def test_environment_is_loaded(self):
        settings = FeedHealthSettings()

        assert settings.catalog.url == "https://catalog.test"
        assert settings.count_service.api_key == "test-count-key"
        assert settings.email.report_recipients == ["ops@example.com"]
        assert settings.reminders.enabled is False

    def test_defaults(self):
        settings = FeedHealthSettings()

        assert settings.count_service.max_attempts == 10
        assert settings.count_service.retry_delay_seconds == 1.0
        assert settings.processing.merge_policy == MergePolicy.LAST_SUCCESS
        assert settings.reminders.weekday == 4
        assert settings.reminders.override_publisher == "The New York Times"
        assert settings.email.report_subject == "RSS Feed Health Status"
        assert settings.email.reminder_subject == "Paused Feed Reminder"

    def test_count_url_joins_base_and_endpoint(self):
        settings = CountServiceSettings(base_url="https://db.test/api")
        assert settings.count_url == "https://db.test/api/v2/get-article-by-ingestdate-magazine"

    def test_owner_instance_url_gets_trailing_slash(self):
        assert OwnerSettings(instance_url="https://crm.test/data").instance_url == "https://crm.test/data/"

    def test_recipient_lists_from_environment(self):
        env = {
            "FEEDHEALTH_EMAIL__REPORT_RECIPIENTS": '["a@example.com", "b@example.com"]',
            "FEEDHEALTH_EMAIL__REMINDER_BCC": '["audit@example.com"]',
        }
        with patch.dict("os.environ", env):
            settings = FeedHealthSettings()

        assert settings.email.report_recipients == ["a@example.com", "b@example.com"]
        assert settings.email.reminder_bcc == ["audit@example.com"]

    def test_plain_recipient_string_is_a_config_error(self):
        env = {"FEEDHEALTH_EMAIL__REPORT_RECIPIENTS": "a@example.com,b@example.com"}
        with patch.dict("os.environ", env):
            with pytest.raises(ConfigurationError) as exc_info:
                load_settings(validate=False)

        assert exc_info.value.error_code == ErrorCode.CONFIG_INVALID

    def test_invalid_weekday(self):
        with pytest.raises(ValidationError):
            ReminderSettings(weekday=7)

    def test_validate_configuration_passes(self, test_settings):
        test_settings.validate_configuration()

    def test_validate_configuration_lists_missing(self, test_settings):
        settings = test_settings.model_copy(update={
            "count_service": CountServiceSettings(),
            "owners": OwnerSettings(),
        })

        with pytest.raises(ConfigurationError) as exc_info:
            settings.validate_configuration()

        message = str(exc_info.value)
        assert exc_info.value.error_code == ErrorCode.CONFIG_MISSING
        assert "count_service.base_url" in message
        assert "owners.refresh_token" in message

    def test_owner_settings_not_required_without_reminders(self, test_settings):
        settings = test_settings.model_copy(update={
            "owners": OwnerSettings(),
            "reminders": ReminderSettings(enabled=False),
        })

        settings.validate_configuration()

    def test_effective_log_level(self, test_settings):
        assert test_settings.get_effective_log_level() == "INFO"
        assert test_settings.model_copy(update={"debug": True}).get_effective_log_level() == "DEBUG"

    def test_load_settings_wraps_validation_errors(self):
        with patch.dict("os.environ", {"FEEDHEALTH_PROCESSING__MAX_CONCURRENT_FETCHES": "0"}):
            with pytest.raises(ConfigurationError) as exc_info:
                load_settings(validate=False)

        assert exc_info.value.error_code == ErrorCode.CONFIG_INVALID


class TestRetryManager:

    def setup_method(self):
        self.manager = RetryManager(RetryConfig(max_attempts=3, delay=0.0))

    def test_returns_first_success(self):
        func = Mock(side_effect=[ConnectionError("a"), "ok"])

        assert self.manager.retry_sync(func) == "ok"
        assert func.call_count == 2

    def test_exhausted(self):
        func = Mock(side_effect=ConnectionError("down"), __name__="fetch_count")

        with pytest.raises(RetryExhaustedError) as exc_info:
            self.manager.retry_sync(func)

        assert func.call_count == 3
        assert exc_info.value.attempts == 3
        assert isinstance(exc_info.value.last_exception, ConnectionError)

    def test_non_retryable_raised_unchanged(self):
        func = Mock(side_effect=ValueError("bad input"))

        with pytest.raises(ValueError):
            self.manager.retry_sync(func)

        assert func.call_count == 1

    def test_recoverable_flag_decides(self):
        func = Mock(side_effect=[CountFetchError("HTTP 502"), 7])
        assert self.manager.retry_sync(func) == 7

        fatal = Mock(side_effect=FeedHealthError("nope", recoverable=False))
        with pytest.raises(FeedHealthError):
            self.manager.retry_sync(fatal)
        assert fatal.call_count == 1

    @pytest.mark.asyncio
    async def test_retry_async(self):
        calls = []

        async def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise TimeoutError("slow")
            return "done"

        assert await self.manager.retry_async(flaky) == "done"
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_fixed_delay_between_attempts(self):
        manager = RetryManager(RetryConfig(max_attempts=3, delay=1.0))
        func = Mock(side_effect=ConnectionError("down"), __name__="fetch_count")

        with patch("feedhealth.recovery.retry_logic.asyncio.sleep", new_callable=AsyncMock) as sleep:
            with pytest.raises(RetryExhaustedError):
                await manager.retry_async(func)

        assert [c.args[0] for c in sleep.call_args_list] == [1.0, 1.0]

    def test_sync_retry_sleeps_fixed_delay(self):
        manager = RetryManager(RetryConfig(max_attempts=4, delay=2.0))
        func = Mock(side_effect=ConnectionError("down"), __name__="owner_query")

        with patch("feedhealth.recovery.retry_logic.time.sleep") as sleep:
            with pytest.raises(RetryExhaustedError):
                manager.retry_sync(func)

        assert [c.args[0] for c in sleep.call_args_list] == [2.0, 2.0, 2.0]

    def test_should_retry(self):
        assert self.manager.should_retry(ConnectionError())
        assert self.manager.should_retry(CountFetchError("x"))
        assert not self.manager.should_retry(ValueError())
        assert not self.manager.should_retry(FeedHealthError("x", recoverable=False))


class TestDates:

    def test_no_zero_padding(self):
        assert format_calendar_date(datetime(2024, 3, 7)) == "2024-3-7"
        assert format_calendar_date(datetime(2024, 11, 25)) == "2024-11-25"

    def test_window_is_previous_utc_day(self):
        run = datetime(2024, 3, 8, 6, 30, tzinfo=timezone.utc)
        assert ingestion_window_date(run) == "2024-3-7"

    def test_window_crosses_year(self):
        assert ingestion_window_date(datetime(2024, 1, 1, 0, 5)) == "2023-12-31"

    def test_window_uses_utc(self):
        local = timezone(timedelta(hours=-5))
        # 22:00 on the 8th at UTC-5 is 03:00 UTC on the 9th
        run = datetime(2024, 3, 8, 22, 0, tzinfo=local)
        assert ingestion_window_date(run) == "2024-3-8"

    def test_custom_lookback(self):
        run = datetime(2024, 3, 8, 12, 0, tzinfo=timezone.utc)
        assert ingestion_window_date(run, lookback_hours=48) == "2024-3-6"


class TestModels:

    def test_feed_name_is_stripped(self):
        feed = FeedDescriptor(publisher="P", feed_name="  Daily  ")
        assert feed.feed_name == "Daily"
        assert feed.magazine == "Daily"

    def test_blank_feed_name_rejected(self):
        with pytest.raises(ValidationError):
            FeedDescriptor(publisher="P", feed_name="   ")

    def test_feed_is_immutable(self):
        feed = FeedDescriptor(publisher="P", feed_name="Daily")
        with pytest.raises(ValidationError):
            feed.paused = True

    def test_report_row_display(self):
        assert ReportRow(magazine="A", article_count=None).display_count() == "unknown"
        assert ReportRow(magazine="A", article_count=0).display_count() == "0"

    def test_owner_groups_keep_first_seen_order(self):
        groups = OwnerGroups()
        a = FeedDescriptor(publisher="P", feed_name="A", paused=True)
        b = FeedDescriptor(publisher="P", feed_name="B", paused=True)

        assert groups.add("z@x", a)
        assert groups.add("a@x", b)
        assert not groups.add("z@x", a)
        assert groups.owners == ["z@x", "a@x"]


class TestErrorsAndLogging:

    def test_error_to_dict(self):
        error = CountFetchError("HTTP 500", magazine="A", status=500, body="oops")
        data = error.to_dict()

        assert data["error_type"] == "CountFetchError"
        assert data["error_code"] == "I001"
        assert data["context"] == {"magazine": "A", "status": 500, "body": "oops"}
        assert data["recoverable"] is True
        assert str(error).startswith("[")

    def test_handle_exception_wraps(self):
        logger = Mock()
        error = handle_exception(ConnectionError("down"), logger, "catalog query")

        assert isinstance(error, FeedHealthError)
        assert error.recoverable
        assert error.context["operation"] == "catalog query"
        logger.error.assert_called_once()

    def test_component_logger_context(self):
        adapter = get_logger_for_component("grouper", magazine="A")

        assert adapter.logger.name == "feedhealth.grouper"
        assert adapter.extra == {"component": "grouper", "magazine": "A"}

    def test_structured_formatter_includes_extra(self):
        record = logging.LogRecord("feedhealth.x", logging.INFO, __file__, 1, "hello", None, None)
        record.magazine = "A"

        output = StructuredFormatter().format(record)

        assert '"message": "hello"' in output
        assert '"magazine": "A"' in output

    def test_console_formatter_plain_without_terminal(self):
        record = logging.LogRecord("feedhealth.x", logging.WARNING, __file__, 1, "slow", None, None)
        record.component = "count_fetcher"
        record.magazine = "A"

        plain = ColoredConsoleFormatter(use_color=False).format(record)
        colored = ColoredConsoleFormatter(use_color=True).format(record)

        assert "\033[" not in plain
        assert "[count_fetcher/A] slow" in plain
        assert colored.startswith("\033[33m")

    def test_setup_logger_disables_color_when_not_a_tty(self):
        stream = Mock()
        stream.isatty.return_value = False

        with patch("feedhealth.utils.logging.sys.stderr", stream):
            logger = setup_logger(name="feedhealth.tty_check", log_file=None)

        formatter = logger.handlers[0].formatter
        assert isinstance(formatter, ColoredConsoleFormatter)
        assert formatter.use_color is False
        logger.handlers.clear()

    def test_performance_logger_records_duration(self):
        logger = Mock()

        with PerformanceLogger(logger, "catalog load") as perf:
            pass

        assert perf.duration >= 0.0
        logger.info.assert_called_once()
