"""
Tests for the advisory risk scoring functions.
"""

from datetime import datetime
from decimal import Decimal

import pytest

from ledger_core.models.enums import SecurityEventType
from ledger_core.services.risk import assess_transaction_risk, risk_score_for


class TestAssessTransactionRisk:

    def test_ordinary_transaction_is_low(self):
        result = assess_transaction_risk(Decimal("250"), datetime(2026, 5, 4, 14, 0))

        assert result.risk_score == 0
        assert result.risk_level == "low"
        assert result.flags == []
        assert result.requires_review is False

    def test_large_amount_is_medium(self):
        result = assess_transaction_risk(Decimal("25000"), datetime(2026, 5, 4, 14, 0))

        assert result.risk_score == 30
        assert result.risk_level == "medium"

    def test_large_amount_at_night_needs_review(self):
        result = assess_transaction_risk(Decimal("25000"), datetime(2026, 5, 4, 3, 15))

        assert result.risk_score == 50
        assert result.risk_level == "high"
        assert result.requires_review is True
        assert result.flags == ["Large transaction amount", "Unusual transaction time"]


class TestRiskScoreFor:

    @pytest.mark.parametrize("event_type, details, expected", [
        (SecurityEventType.FAILED_LOGIN, {"attempt_count": 3}, 60),
        (SecurityEventType.FAILED_LOGIN, {"attempt_count": 9}, 100),
        (SecurityEventType.SUSPICIOUS_ACTIVITY, {}, 60),
        (SecurityEventType.ACCOUNT_LOCKED, {}, 90),
        (SecurityEventType.PASSWORD_CHANGE, {}, 30),
    ])
    def test_scores(self, event_type, details, expected):
        assert risk_score_for(event_type, details) == expected
