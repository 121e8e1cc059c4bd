"""
Tests for logging context and metrics helpers.
"""

import structlog
from prometheus_client import REGISTRY

from playbilling.observability import log_context, metrics


def sample(name: str, labels: dict[str, str] | None = None) -> float:
    return REGISTRY.get_sample_value(name, labels or {}) or 0.0


class TestLogContext:
    """Tests for log_context."""

    def test_binds_and_unbinds(self):
        """Test that context is visible inside the block only."""
        with log_context(product_id="gold", product_type="inapp"):
            bound = structlog.contextvars.get_contextvars()
            assert bound["product_id"] == "gold"
            assert bound["product_type"] == "inapp"

        assert "product_id" not in structlog.contextvars.get_contextvars()

    def test_unbinds_on_exception(self):
        """Test that context is cleared when the block raises."""
        try:
            with log_context(order_id="GPA.1"):
                raise RuntimeError("boom")
        except RuntimeError:
            pass

        assert "order_id" not in structlog.contextvars.get_contextvars()


class TestMetrics:
    """Tests for the metrics helpers."""

    def test_record_billing_error(self):
        """Test that billing errors are counted by code."""
        labels = {"code": "102"}
        before = sample("playbilling_billing_errors_total", labels)

        metrics.record_billing_error(102)

        assert sample("playbilling_billing_errors_total", labels) == before + 1

    def test_record_signature_check(self):
        """Test that signature results are counted."""
        labels = {"result": "verified"}
        before = sample("playbilling_signature_checks_total", labels)

        metrics.record_signature_check("verified")

        assert sample("playbilling_signature_checks_total", labels) == before + 1

    def test_connected_gauge(self):
        """Test the connection gauge."""
        metrics.set_connected(True)
        assert sample("playbilling_connected") == 1

        metrics.set_connected(False)
        assert sample("playbilling_connected") == 0

    def test_purchase_completion_counted(self, session, service, make_receipt, make_result):
        """Test that a handled flow result is counted by outcome."""
        labels = {"outcome": "payload_mismatch"}
        before = sample("playbilling_purchase_completions_total", labels)
        session.purchase("gold")

        session.handle_purchase_result(make_result(make_receipt("gold", "foreign"), "sig"))

        assert sample("playbilling_purchase_completions_total", labels) == before + 1
