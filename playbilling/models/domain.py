"""
Domain Models - Internal business logic models using dataclasses.

NO DICTIONARIES - All data structures are strongly typed immutable dataclasses.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum

from playbilling.models.api import (
    BillingResponseCode,
    ProductDetailsPayload,
    ProductType,
    PurchaseReceipt,
    PurchaseState,
)


class FlowOutcome(str, Enum):
    """Platform-level outcome of the external purchase flow."""

    OK = "ok"
    CANCELED = "canceled"


@dataclass(frozen=True)
class PurchaseData:
    """Immutable purchase record parsed from a service receipt."""

    package_name: str
    order_id: str
    product_id: str
    developer_payload: str
    purchase_time: int  # epoch millis
    purchase_state: PurchaseState
    purchase_token: str

    def __post_init__(self) -> None:
        """Validate purchase record fields."""
        if not self.product_id:
            raise ValueError("Product ID required")
        if not self.purchase_token:
            raise ValueError("Purchase token required")

    @classmethod
    def from_json(cls, receipt: str) -> "PurchaseData":
        """
        Parse a receipt JSON string.

        Raises:
            pydantic.ValidationError: If the receipt is malformed
        """
        payload = PurchaseReceipt.model_validate_json(receipt)
        return cls(
            package_name=payload.package_name,
            order_id=payload.order_id,
            product_id=payload.product_id,
            developer_payload=payload.developer_payload,
            purchase_time=payload.purchase_time,
            purchase_state=payload.purchase_state,
            purchase_token=payload.purchase_token,
        )

    @property
    def purchased_at(self) -> datetime:
        """Purchase time as an aware UTC datetime."""
        return datetime.fromtimestamp(self.purchase_time / 1000, tz=UTC)

    def is_purchased(self) -> bool:
        """Check if the purchase is in the purchased state."""
        return self.purchase_state == PurchaseState.PURCHASED


@dataclass(frozen=True)
class ProductDetails:
    """Product metadata returned by a details query, with the raw response text."""

    product_id: str
    product_type: ProductType
    title: str
    description: str
    price: str
    price_amount_micros: int | None
    price_currency_code: str | None
    raw_json: str

    @classmethod
    def from_json(cls, product_type: ProductType, raw_json: str) -> "ProductDetails":
        """
        Parse one product details record.

        Raises:
            pydantic.ValidationError: If the record is malformed
        """
        payload = ProductDetailsPayload.model_validate_json(raw_json)
        return cls(
            product_id=payload.product_id,
            product_type=payload.type or product_type,
            title=payload.title,
            description=payload.description,
            price=payload.price,
            price_amount_micros=payload.price_amount_micros,
            price_currency_code=payload.price_currency_code,
            raw_json=raw_json,
        )


@dataclass(frozen=True)
class LaunchableFlow:
    """Opaque handle the platform launcher uses to start the purchase flow."""

    flow_id: str
    uri: str | None = None


@dataclass(frozen=True)
class ExternalFlowResult:
    """Result of the external purchase flow, forwarded by the host application."""

    request_code: int
    outcome: FlowOutcome
    response_code: int = BillingResponseCode.OK
    receipt_payload: str | None = None
    receipt_signature: str | None = None

    def is_successful(self) -> bool:
        """Check that both the platform and the service report success."""
        return self.outcome == FlowOutcome.OK and self.response_code == BillingResponseCode.OK


@dataclass(frozen=True)
class PendingPurchase:
    """The single in-flight purchase attempt of a session."""

    developer_payload: str
    product_id: str
    product_type: ProductType


# ============================================================================
# Remote Service Responses
# ============================================================================


@dataclass(frozen=True)
class PurchasesResponse:
    """Response to a purchase list request."""

    response_code: int
    purchase_data: list[str] | None = None
    signatures: list[str] | None = None

    def is_ok(self) -> bool:
        """Check if the service reported success."""
        return self.response_code == BillingResponseCode.OK


@dataclass(frozen=True)
class PurchaseIntentResponse:
    """Response to a purchase intent request."""

    response_code: int
    flow: LaunchableFlow | None = None


@dataclass(frozen=True)
class ProductDetailsResponse:
    """Response to a product details query."""

    response_code: int
    details: list[str] | None = None
