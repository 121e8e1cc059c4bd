"""
Pytest Configuration and Centralized Fixtures.

Provides reusable test doubles and fixtures:
- In-memory preference store
- Fake remote billing service with scripted responses
- Recording event sink and flow launcher
- RSA key pair, receipt factory and receipt signer
- Purchase sessions in connected / unconnected states
"""

import base64
import json
import os
from collections.abc import Callable
from dataclasses import dataclass, field

import pytest
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

# Set environment BEFORE importing playbilling modules
os.environ.setdefault("PLAYBILLING_PACKAGE_NAME", "com.example.game")
os.environ.setdefault("PLAYBILLING_LOG_FORMAT", "console")

from playbilling.models.api import PURCHASE_FLOW_REQUEST_CODE, BillingResponseCode, ProductType
from playbilling.models.domain import (
    ExternalFlowResult,
    FlowOutcome,
    LaunchableFlow,
    ProductDetails,
    ProductDetailsResponse,
    PurchaseData,
    PurchaseIntentResponse,
    PurchasesResponse,
)
from playbilling.services.preferences import MemoryPreferenceStore
from playbilling.services.purchase_session import PurchaseSession
from playbilling.services.remote_client import ServiceConnectionListener

PACKAGE_NAME = "com.example.game"


# ============================================================================
# Test Doubles
# ============================================================================


class FakeBillingService:
    """
    Scripted RemoteServiceClient.

    Owned purchases are kept per category as receipt JSON strings. Response
    codes and faults can be overridden per operation.
    """

    def __init__(self) -> None:
        self.listener: ServiceConnectionListener | None = None
        self.connect_immediately = True
        self.connect_error: Exception | None = None
        self.connect_calls = 0
        self.disconnect_calls = 0

        self.owned: dict[ProductType, list[str]] = {
            ProductType.MANAGED: [],
            ProductType.SUBSCRIPTION: [],
        }
        self.list_response_code: int = BillingResponseCode.OK
        self.list_error: Exception | None = None
        self.list_calls: list[ProductType] = []

        self.intent_response_code: int = BillingResponseCode.OK
        self.intent_flow: LaunchableFlow | None = LaunchableFlow(flow_id="flow-1", uri="store://buy")
        self.intent_error: Exception | None = None
        self.intent_calls: list[tuple[str, ProductType, str]] = []

        self.details: list[str] | None = []
        self.details_response_code: int = BillingResponseCode.OK
        self.details_error: Exception | None = None
        self.details_calls: list[tuple[ProductType, list[str]]] = []

        self.consume_response_code: int = BillingResponseCode.OK
        self.consume_error: Exception | None = None
        self.consume_calls: list[str] = []

    def connect(self, listener: ServiceConnectionListener) -> None:
        self.connect_calls += 1
        if self.connect_error is not None:
            raise self.connect_error
        self.listener = listener
        if self.connect_immediately:
            listener.on_service_connected()

    def finish_connecting(self) -> None:
        assert self.listener is not None
        self.listener.on_service_connected()

    def drop_connection(self) -> None:
        assert self.listener is not None
        self.listener.on_service_disconnected()

    def disconnect(self) -> None:
        self.disconnect_calls += 1

    def list_purchases(self, product_type: ProductType) -> PurchasesResponse:
        self.list_calls.append(product_type)
        if self.list_error is not None:
            raise self.list_error
        if self.list_response_code != BillingResponseCode.OK:
            return PurchasesResponse(response_code=self.list_response_code)
        return PurchasesResponse(
            response_code=BillingResponseCode.OK,
            purchase_data=list(self.owned[product_type]),
            signatures=["" for _ in self.owned[product_type]],
        )

    def request_purchase_intent(
        self, product_id: str, product_type: ProductType, developer_payload: str
    ) -> PurchaseIntentResponse:
        self.intent_calls.append((product_id, product_type, developer_payload))
        if self.intent_error is not None:
            raise self.intent_error
        if self.intent_response_code != BillingResponseCode.OK:
            return PurchaseIntentResponse(response_code=self.intent_response_code)
        return PurchaseIntentResponse(response_code=BillingResponseCode.OK, flow=self.intent_flow)

    def query_product_details(
        self, product_type: ProductType, product_ids: list[str]
    ) -> ProductDetailsResponse:
        self.details_calls.append((product_type, list(product_ids)))
        if self.details_error is not None:
            raise self.details_error
        return ProductDetailsResponse(
            response_code=self.details_response_code, details=self.details
        )

    def consume(self, purchase_token: str) -> int:
        self.consume_calls.append(purchase_token)
        if self.consume_error is not None:
            raise self.consume_error
        return self.consume_response_code

    @property
    def last_payload(self) -> str:
        return self.intent_calls[-1][2]


@dataclass
class RecordingEventSink:
    """EventSink that records every event in order."""

    events: list[tuple] = field(default_factory=list)

    def on_product_purchased(self, product_id: str, is_already_owned: bool) -> None:
        self.events.append(("purchased", product_id, is_already_owned))

    def on_purchase_history_restored(self) -> None:
        self.events.append(("history_restored",))

    def on_billing_error(self, code: int, error: BaseException | None) -> None:
        self.events.append(("error", int(code), error))

    def on_billing_initialized(self) -> None:
        self.events.append(("initialized",))

    def on_purchase_data_received(self, purchase: PurchaseData) -> None:
        self.events.append(("purchase_data", purchase))

    def on_product_list_received(self, products: list[ProductDetails]) -> None:
        self.events.append(("product_list", products))

    def named(self, name: str) -> list[tuple]:
        return [e for e in self.events if e[0] == name]

    @property
    def error_codes(self) -> list[int]:
        return [e[1] for e in self.named("error")]

    def clear(self) -> None:
        self.events.clear()


@dataclass
class RecordingLauncher:
    """PurchaseFlowLauncher that records launched flows."""

    launched: list[tuple[LaunchableFlow, int]] = field(default_factory=list)
    error: Exception | None = None

    def launch(self, flow: LaunchableFlow, request_code: int) -> None:
        if self.error is not None:
            raise self.error
        self.launched.append((flow, request_code))


# ============================================================================
# Crypto Fixtures
# ============================================================================


@pytest.fixture(scope="session")
def private_key() -> rsa.RSAPrivateKey:
    """RSA key standing in for the billing service's signing key."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def license_key(private_key: rsa.RSAPrivateKey) -> str:
    """Base64 DER public key, as configured in the app."""
    der = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return base64.b64encode(der).decode("ascii")


@pytest.fixture(scope="session")
def sign_receipt(private_key: rsa.RSAPrivateKey) -> Callable[[str], str]:
    """Sign receipt text the way the billing service does."""

    def _sign(receipt: str) -> str:
        signature = private_key.sign(receipt.encode("utf-8"), padding.PKCS1v15(), hashes.SHA1())
        return base64.b64encode(signature).decode("ascii")

    return _sign


@pytest.fixture
def make_receipt() -> Callable[..., str]:
    """Build receipt JSON text."""

    def _make(
        product_id: str,
        developer_payload: str = "",
        purchase_token: str | None = None,
        purchase_state: int = 0,
        order_id: str = "GPA.1234-5678-9012",
        purchase_time: int = 1700000000000,
    ) -> str:
        return json.dumps(
            {
                "packageName": PACKAGE_NAME,
                "orderId": order_id,
                "productId": product_id,
                "developerPayload": developer_payload,
                "purchaseTime": purchase_time,
                "purchaseState": purchase_state,
                "purchaseToken": purchase_token or f"token-{product_id}",
            }
        )

    return _make


@pytest.fixture
def make_result() -> Callable[..., ExternalFlowResult]:
    """Build a successful external flow result."""

    def _make(
        receipt: str | None,
        signature: str | None = None,
        outcome: FlowOutcome = FlowOutcome.OK,
        response_code: int = BillingResponseCode.OK,
        request_code: int = PURCHASE_FLOW_REQUEST_CODE,
    ) -> ExternalFlowResult:
        return ExternalFlowResult(
            request_code=request_code,
            outcome=outcome,
            response_code=response_code,
            receipt_payload=receipt,
            receipt_signature=signature,
        )

    return _make


# ============================================================================
# Session Fixtures
# ============================================================================


@pytest.fixture
def store() -> MemoryPreferenceStore:
    return MemoryPreferenceStore()


@pytest.fixture
def service() -> FakeBillingService:
    return FakeBillingService()


@pytest.fixture
def sink() -> RecordingEventSink:
    return RecordingEventSink()


@pytest.fixture
def launcher() -> RecordingLauncher:
    return RecordingLauncher()


@pytest.fixture
def session_factory(
    service: FakeBillingService,
    store: MemoryPreferenceStore,
    sink: RecordingEventSink,
    launcher: RecordingLauncher,
    license_key: str,
) -> Callable[..., PurchaseSession]:
    """Factory for sessions sharing the fixture doubles."""

    def _create(signed: bool = True, auto_connect: bool = True) -> PurchaseSession:
        return PurchaseSession(
            client=service,
            store=store,
            package_name=PACKAGE_NAME,
            license_key=license_key if signed else None,
            launcher=launcher,
            event_sink=sink,
            auto_connect=auto_connect,
        )

    return _create


@pytest.fixture
def session(
    session_factory: Callable[..., PurchaseSession], sink: RecordingEventSink
) -> PurchaseSession:
    """Connected session verifying signatures; connection events cleared."""
    created = session_factory()
    sink.clear()
    return created
