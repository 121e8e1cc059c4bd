"""
API Models - Pydantic models for billing service payloads.

NO DICTIONARIES - All data structures are strongly typed.

Receipts and product details arrive as JSON text with camelCase keys; the
models here validate that text and are converted to the immutable domain
dataclasses in ``playbilling.models.domain``.
"""

from enum import Enum, IntEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Request code the purchase flow is launched with; results carrying any other
# code belong to someone else.
PURCHASE_FLOW_REQUEST_CODE = 2061984


class ProductType(str, Enum):
    """Ownership namespace of a product."""

    MANAGED = "inapp"
    SUBSCRIPTION = "subs"


class PurchaseState(IntEnum):
    """Purchase state reported inside a receipt."""

    PURCHASED = 0
    CANCELED = 1
    REFUNDED = 2


class BillingResponseCode(IntEnum):
    """Response codes returned by the billing service and the query helpers."""

    SERVICE_DISCONNECTED = -1  # local: session is not connected
    OK = 0
    USER_CANCELED = 1
    SERVICE_UNAVAILABLE = 2
    BILLING_UNAVAILABLE = 3
    ITEM_UNAVAILABLE = 4
    DEVELOPER_ERROR = 5
    ERROR = 6
    ITEM_ALREADY_OWNED = 7
    ITEM_NOT_OWNED = 8

    # Local helper codes
    REMOTE_EXCEPTION = -1001
    BAD_RESPONSE = -1002


class BillingErrorCode(IntEnum):
    """Error codes reported through ``EventSink.on_billing_error``."""

    FAILED_LOAD_PURCHASES = 100
    FAILED_TO_INITIALIZE_PURCHASE = 101
    INVALID_SIGNATURE = 102
    LOST_CONTEXT = 103
    OTHER_ERROR = 110


# ============================================================================
# Receipt / Product Payloads
# ============================================================================


class PurchaseReceipt(BaseModel):
    """Purchase record JSON as signed by the billing service."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    package_name: str = Field(default="", alias="packageName")
    order_id: str = Field(default="", alias="orderId")
    product_id: str = Field(..., min_length=1, alias="productId")
    developer_payload: str = Field(default="", alias="developerPayload")
    purchase_time: int = Field(default=0, ge=0, alias="purchaseTime")
    purchase_state: PurchaseState = Field(default=PurchaseState.PURCHASED, alias="purchaseState")
    purchase_token: str = Field(..., min_length=1, alias="purchaseToken")


class ProductDetailsPayload(BaseModel):
    """Product metadata JSON returned by a details query."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    product_id: str = Field(..., min_length=1, alias="productId")
    type: ProductType | None = None
    title: str = ""
    description: str = ""
    price: str = ""
    price_amount_micros: int | None = None
    price_currency_code: str | None = None


# ============================================================================
# HTTP Service Models
# ============================================================================


class PurchasesListResponse(BaseModel):
    """GET /purchases response."""

    model_config = ConfigDict(populate_by_name=True)

    response_code: int = Field(..., alias="responseCode")
    purchase_data_list: list[str] | None = Field(default=None, alias="purchaseDataList")
    signature_list: list[str] | None = Field(default=None, alias="signatureList")


class FlowHandlePayload(BaseModel):
    """Launchable flow handle inside a purchase intent response."""

    model_config = ConfigDict(populate_by_name=True)

    flow_id: str = Field(..., min_length=1, alias="flowId")
    uri: str | None = None


class PurchaseIntentRequest(BaseModel):
    """POST /purchases:intent request body."""

    model_config = ConfigDict(populate_by_name=True)

    product_id: str = Field(..., min_length=1, alias="productId")
    type: ProductType
    developer_payload: str = Field(..., alias="developerPayload")


class PurchaseIntentResponsePayload(BaseModel):
    """POST /purchases:intent response."""

    model_config = ConfigDict(populate_by_name=True)

    response_code: int = Field(..., alias="responseCode")
    flow: FlowHandlePayload | None = None


class ProductQueryRequest(BaseModel):
    """POST /products:query request body."""

    model_config = ConfigDict(populate_by_name=True)

    type: ProductType
    product_ids: list[str] = Field(..., min_length=1, alias="productIds")

    @field_validator("product_ids")
    @classmethod
    def validate_product_ids(cls, v: list[str]) -> list[str]:
        """Reject blank identifiers."""
        if any(not pid.strip() for pid in v):
            raise ValueError("product_ids must not contain blank identifiers")
        return v


class ProductQueryResponse(BaseModel):
    """POST /products:query response."""

    model_config = ConfigDict(populate_by_name=True)

    response_code: int = Field(..., alias="responseCode")
    details_list: list[str] | None = Field(default=None, alias="detailsList")


class ConsumeRequest(BaseModel):
    """POST /purchases:consume request body."""

    model_config = ConfigDict(populate_by_name=True)

    purchase_token: str = Field(..., min_length=1, alias="purchaseToken")


class ConsumeResponse(BaseModel):
    """POST /purchases:consume response."""

    model_config = ConfigDict(populate_by_name=True)

    response_code: int = Field(..., alias="responseCode")
