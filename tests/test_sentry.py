"""
Tests for the Sentry event filters.
"""

import pytest
from fastapi import HTTPException

from taskhub.integrations.sentry import _filter_events, _filter_transactions, init_sentry


# =============================================================================
# Transactions
# =============================================================================


class TestFilterTransactions:
    @pytest.mark.parametrize("name", ["/health", "/ready", "/api/v1/health"])
    def test_health_checks_dropped(self, name):
        assert _filter_transactions({"transaction": name}, {}) is None

    @pytest.mark.parametrize("event", [
        {"transaction": None},
        {},
        {"transaction": "/api/v1/projects"},
    ])
    def test_other_events_kept(self, event):
        assert _filter_transactions(event, {}) is event


# =============================================================================
# Errors
# =============================================================================


class TestFilterEvents:
    def test_client_errors_dropped(self):
        exc = HTTPException(status_code=404)
        assert _filter_events({}, {"exc_info": (HTTPException, exc, None)}) is None

    def test_credentials_scrubbed(self):
        event = {"request": {"headers": {"Authorization": "Bearer abc", "Accept": "*/*"}}}
        result = _filter_events(event, {})
        assert result["request"]["headers"] == {"Authorization": "[Filtered]", "Accept": "*/*"}

    def test_no_dsn_skips_init(self, settings):
        assert init_sentry(settings) is False
