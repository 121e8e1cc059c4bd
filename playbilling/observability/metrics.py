"""
Metrics Collection with Prometheus.

Exposes purchase, restore and verification metrics for the billing client.
"""

from prometheus_client import Counter, Gauge, Info

from playbilling.config import settings


class BillingClientMetrics:
    """
    Centralized metrics for the billing client.

    Covers:
    - Purchase requests and completions
    - Billing errors reported to the host
    - Restores, consumes and product queries
    - Signature checks
    - Connection state
    """

    def __init__(self) -> None:
        """Initialize all Prometheus metrics."""
        self.enabled = settings.metrics_enabled

        self.client_info = Info(
            "playbilling_client",
            "Billing client information",
        )
        self.client_info.info(
            {
                "version": settings.version,
                "service_name": settings.service_name,
            }
        )

        # ====================================================================
        # Purchase Metrics
        # ====================================================================
        self.purchases_requested_total = Counter(
            "playbilling_purchases_requested_total",
            "Purchase intents requested from the billing service",
            ["product_type", "outcome"],
        )

        self.purchase_completions_total = Counter(
            "playbilling_purchase_completions_total",
            "External purchase flow results handled",
            ["outcome"],
        )

        self.billing_errors_total = Counter(
            "playbilling_billing_errors_total",
            "Billing errors reported to the host application",
            ["code"],
        )

        # ====================================================================
        # Reconciliation Metrics
        # ====================================================================
        self.restores_total = Counter(
            "playbilling_restores_total",
            "Ownership restores against the billing service",
            ["product_type", "success"],
        )

        self.consumes_total = Counter(
            "playbilling_consumes_total",
            "Consume requests",
            ["success"],
        )

        self.product_queries_total = Counter(
            "playbilling_product_queries_total",
            "Product details queries",
            ["product_type", "response_code"],
        )

        # ====================================================================
        # Security Metrics
        # ====================================================================
        self.signature_checks_total = Counter(
            "playbilling_signature_checks_total",
            "Receipt signature verifications",
            ["result"],
        )

        self.connected = Gauge(
            "playbilling_connected",
            "1 while a purchase session is connected to the billing service",
        )

    # ========================================================================
    # Helper Methods
    # ========================================================================

    def record_purchase_request(self, product_type: str, outcome: str) -> None:
        """Record a purchase intent request."""
        if self.enabled:
            self.purchases_requested_total.labels(product_type=product_type, outcome=outcome).inc()

    def record_purchase_completion(self, outcome: str) -> None:
        """Record a handled purchase flow result."""
        if self.enabled:
            self.purchase_completions_total.labels(outcome=outcome).inc()

    def record_billing_error(self, code: int) -> None:
        """Record a billing error event."""
        if self.enabled:
            self.billing_errors_total.labels(code=str(int(code))).inc()

    def record_restore(self, product_type: str, success: bool) -> None:
        """Record a restore of one product category."""
        if self.enabled:
            self.restores_total.labels(product_type=product_type, success=str(success)).inc()

    def record_consume(self, success: bool) -> None:
        """Record a consume request."""
        if self.enabled:
            self.consumes_total.labels(success=str(success)).inc()

    def record_product_query(self, product_type: str, response_code: int) -> None:
        """Record a product details query."""
        if self.enabled:
            self.product_queries_total.labels(
                product_type=product_type, response_code=str(int(response_code))
            ).inc()

    def record_signature_check(self, result: str) -> None:
        """Record a signature verification result (verified, failed, skipped)."""
        if self.enabled:
            self.signature_checks_total.labels(result=result).inc()

    def set_connected(self, connected: bool) -> None:
        """Set the connection gauge."""
        if self.enabled:
            self.connected.set(1 if connected else 0)


# Global metrics instance
metrics = BillingClientMetrics()
