"""
Remote Billing Service Protocol - Transport-agnostic interface.

NO DICTIONARIES - All data uses strongly typed models.

Any billing backend (the on-device store service, an HTTP gateway, a test
double) must implement this interface. Implementations raise
``ServiceTransportError`` / ``BadResponseError`` on faults; interpreting
response codes is left to the purchase session.
"""

from typing import Protocol

from playbilling.models.api import ProductType
from playbilling.models.domain import (
    LaunchableFlow,
    ProductDetailsResponse,
    PurchaseIntentResponse,
    PurchasesResponse,
)


class ServiceConnectionListener(Protocol):
    """Receives connection state changes from a remote client."""

    def on_service_connected(self) -> None:
        """Called once the service is reachable and ready for requests."""
        ...

    def on_service_disconnected(self) -> None:
        """Called when the service drops the connection."""
        ...


class RemoteServiceClient(Protocol):
    """Request/response contract with the remote billing service."""

    def connect(self, listener: ServiceConnectionListener) -> None:
        """
        Start connecting to the service.

        The listener is notified when the connection is established; this may
        happen before ``connect`` returns or later.

        Raises:
            ServiceTransportError: If the connection cannot even be attempted
        """
        ...

    def disconnect(self) -> None:
        """Tear down the connection and release resources."""
        ...

    def list_purchases(self, product_type: ProductType) -> PurchasesResponse:
        """List every purchase the service records as owned for the category."""
        ...

    def request_purchase_intent(
        self, product_id: str, product_type: ProductType, developer_payload: str
    ) -> PurchaseIntentResponse:
        """
        Ask the service to prepare a purchase.

        Args:
            product_id: Product to purchase
            product_type: Category of the product
            developer_payload: Correlation token echoed back in the receipt

        Returns:
            Response code and, on success, the handle of the flow to launch
        """
        ...

    def query_product_details(
        self, product_type: ProductType, product_ids: list[str]
    ) -> ProductDetailsResponse:
        """Fetch metadata for a batch of products."""
        ...

    def consume(self, purchase_token: str) -> int:
        """Consume a one-time purchase. Returns the service response code."""
        ...


class PurchaseFlowLauncher(Protocol):
    """Platform hook that starts the external consent/payment flow."""

    def launch(self, flow: LaunchableFlow, request_code: int) -> None:
        """
        Start the flow.

        The result must later be forwarded to
        ``PurchaseSession.handle_purchase_result`` with the same request code.
        """
        ...
