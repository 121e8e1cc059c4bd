"""
Billing Events - Observer interface between the purchase session and the host.
"""

from typing import Protocol

from structlog import get_logger

from playbilling.models.domain import ProductDetails, PurchaseData

logger = get_logger(__name__)


class EventSink(Protocol):
    """
    Callback methods where billing events are reported.

    Hosts implement this to learn about purchases, restores and errors.
    """

    def on_product_purchased(self, product_id: str, is_already_owned: bool) -> None:
        """A product is now owned. ``is_already_owned`` is True when no new transaction happened."""
        ...

    def on_purchase_history_restored(self) -> None:
        """Ownership history was restored from the service after connecting."""
        ...

    def on_billing_error(self, code: int, error: BaseException | None) -> None:
        """
        A billing operation failed.

        ``code`` is a ``BillingErrorCode`` or, for service rejections, the raw
        service response code.
        """
        ...

    def on_billing_initialized(self) -> None:
        """The session is connected and ready."""
        ...

    def on_purchase_data_received(self, purchase: PurchaseData) -> None:
        """A purchase record was parsed from a completed flow, verified or not."""
        ...

    def on_product_list_received(self, products: list[ProductDetails]) -> None:
        """Product details arrived from a batch query."""
        ...


class LoggingEventSink:
    """Default sink: records every event in the structured log."""

    def on_product_purchased(self, product_id: str, is_already_owned: bool) -> None:
        logger.info(
            "billing_event_product_purchased",
            product_id=product_id,
            is_already_owned=is_already_owned,
        )

    def on_purchase_history_restored(self) -> None:
        logger.info("billing_event_purchase_history_restored")

    def on_billing_error(self, code: int, error: BaseException | None) -> None:
        logger.warning(
            "billing_event_error",
            code=int(code),
            error=str(error) if error is not None else None,
        )

    def on_billing_initialized(self) -> None:
        logger.info("billing_event_initialized")

    def on_purchase_data_received(self, purchase: PurchaseData) -> None:
        logger.info(
            "billing_event_purchase_data",
            product_id=purchase.product_id,
            order_id=purchase.order_id,
            purchase_state=int(purchase.purchase_state),
        )

    def on_product_list_received(self, products: list[ProductDetails]) -> None:
        logger.info(
            "billing_event_product_list",
            product_ids=[p.product_id for p in products],
        )
