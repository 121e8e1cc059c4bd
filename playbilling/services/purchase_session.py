"""
Purchase Session - Connection lifecycle, purchases, completion and restore.

NO DICTIONARIES - All data uses strongly typed models.

One session mediates between the host application and the remote billing
service. It keeps the local ownership caches consistent with the service:

- On first connect it restores the full ownership history.
- ``purchase``/``subscribe`` request a purchase intent and launch the flow.
- ``handle_purchase_result`` accepts the flow's result only when the receipt
  echoes the correlation payload of the latest attempt and carries a valid
  signature; only then is ownership recorded.
- ``restore`` replaces a category cache with the service's purchase list.

Sessions are single-threaded: hosts calling from several threads must
serialize access themselves. Only one purchase may be in flight; starting a
new one invalidates the previous attempt.

Public operations never raise. Failures are returned (False, a response
code, or None) and, where the host must react, reported through the
``EventSink``.
"""

import uuid
from enum import Enum
from types import TracebackType

from structlog import get_logger

from playbilling.models.api import (
    PURCHASE_FLOW_REQUEST_CODE,
    BillingErrorCode,
    BillingResponseCode,
    ProductType,
)
from playbilling.models.domain import (
    ExternalFlowResult,
    PendingPurchase,
    PurchaseData,
)
from playbilling.observability.logging import log_context
from playbilling.observability.metrics import metrics
from playbilling.services.events import EventSink, LoggingEventSink
from playbilling.services.ownership_cache import (
    OwnershipCache,
    RestoreFlag,
    cache_key,
    restore_flag_key,
)
from playbilling.services.preferences import PreferenceStore
from playbilling.services.product_query import ProductCallback, ProductQueryService
from playbilling.services.remote_client import PurchaseFlowLauncher, RemoteServiceClient
from playbilling.services.signature import SignatureVerifier

logger = get_logger(__name__)


class ConnectionState(str, Enum):
    """Connection state of a purchase session."""

    UNBOUND = "unbound"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class PurchaseSession:
    """
    Client-side purchase manager for one application install.

    Usage:
        session = PurchaseSession(
            client=HttpBillingServiceClient(base_url, package_name),
            store=SqlPreferenceStore(engine),
            package_name=package_name,
            license_key=license_key,
            launcher=launcher,
            event_sink=handler,
        )

        # Later, when the platform delivers the flow result
        session.handle_purchase_result(result)
    """

    def __init__(
        self,
        client: RemoteServiceClient,
        store: PreferenceStore,
        package_name: str,
        license_key: str | None = None,
        launcher: PurchaseFlowLauncher | None = None,
        event_sink: EventSink | None = None,
        auto_connect: bool = True,
    ) -> None:
        """
        Initialize the session.

        Args:
            client: Remote billing service client
            store: Durable preference store for the ownership caches
            package_name: Application package name, scopes the preference keys
            license_key: Base64 public key; None/empty accepts unsigned receipts
            launcher: Platform hook that starts the purchase flow
            event_sink: Receives billing events; defaults to a logging sink
            auto_connect: Start connecting immediately
        """
        self.client = client
        self.package_name = package_name
        self.launcher = launcher
        self.event_sink: EventSink = event_sink or LoggingEventSink()
        self.verifier = SignatureVerifier(license_key)
        self.products = ProductQueryService(client, self.event_sink)

        self.cached_products = OwnershipCache(store, cache_key(package_name, ProductType.MANAGED))
        self.cached_subscriptions = OwnershipCache(
            store, cache_key(package_name, ProductType.SUBSCRIPTION)
        )
        self._restore_flag = RestoreFlag(store, restore_flag_key(package_name))

        self._state = ConnectionState.UNBOUND
        self._pending: PendingPurchase | None = None

        if auto_connect:
            self.connect()

    # ========================================================================
    # Connection Lifecycle
    # ========================================================================

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_initialized(self) -> bool:
        """True while connected to the billing service."""
        return self._state == ConnectionState.CONNECTED

    def connect(self) -> bool:
        """
        Start connecting to the billing service.

        Returns:
            False if the connection attempt could not be started
        """
        if self._state != ConnectionState.UNBOUND:
            return True

        self._state = ConnectionState.CONNECTING
        try:
            self.client.connect(self)
        except Exception as exc:
            logger.error("billing_service_bind_failed", error=str(exc))
            self._state = ConnectionState.UNBOUND
            return False
        return True

    def on_service_connected(self) -> None:
        """Connection established: restore history once, then report initialized."""
        self._state = ConnectionState.CONNECTED
        metrics.set_connected(True)
        logger.info("purchase_session_connected", package_name=self.package_name)

        try:
            if not self.is_purchase_history_restored and self.restore():
                self._restore_flag.set()
                self.event_sink.on_purchase_history_restored()
        except Exception as exc:
            logger.error("purchase_history_restore_failed", error=str(exc))

        self.event_sink.on_billing_initialized()

    def on_service_disconnected(self) -> None:
        """The service dropped the connection. No reconnect is attempted here."""
        self._state = ConnectionState.UNBOUND
        metrics.set_connected(False)
        logger.warning("purchase_session_disconnected", package_name=self.package_name)

    def release(self) -> None:
        """Disconnect from the billing service."""
        if self._state != ConnectionState.UNBOUND:
            try:
                self.client.disconnect()
            except Exception as exc:
                logger.error("billing_service_unbind_failed", error=str(exc))
        self._state = ConnectionState.UNBOUND
        metrics.set_connected(False)

    def __enter__(self) -> "PurchaseSession":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.release()

    def _require_connected(self, operation: str) -> bool:
        if self.is_initialized:
            return True
        logger.warning("billing_not_initialized", operation=operation, state=self._state.value)
        return False

    # ========================================================================
    # Ownership Queries
    # ========================================================================

    @property
    def is_purchase_history_restored(self) -> bool:
        return self._restore_flag.is_set()

    def is_purchased(self, product_id: str) -> bool:
        return self.cached_products.contains(product_id)

    def is_subscribed(self, product_id: str) -> bool:
        return self.cached_subscriptions.contains(product_id)

    def list_owned_products(self) -> list[str]:
        return self.cached_products.list()

    def list_owned_subscriptions(self) -> list[str]:
        return self.cached_subscriptions.list()

    def _cache_for(self, product_type: ProductType) -> OwnershipCache:
        if product_type == ProductType.SUBSCRIPTION:
            return self.cached_subscriptions
        return self.cached_products

    def _report_error(self, code: int, error: BaseException | None = None) -> None:
        metrics.record_billing_error(code)
        self.event_sink.on_billing_error(code, error)

    # ========================================================================
    # Purchase Initiation
    # ========================================================================

    def purchase(self, product_id: str) -> bool:
        """Start purchasing a one-time product."""
        return self._purchase(product_id, ProductType.MANAGED)

    def subscribe(self, product_id: str) -> bool:
        """Start purchasing a subscription."""
        return self._purchase(product_id, ProductType.SUBSCRIPTION)

    def _purchase(self, product_id: str, product_type: ProductType) -> bool:
        if not self._require_connected("purchase"):
            return False

        with log_context(product_id=product_id, product_type=product_type.value):
            try:
                return self._request_purchase(product_id, product_type)
            except Exception as exc:
                logger.exception("purchase_request_failed")
                metrics.record_purchase_request(product_type.value, "fault")
                self._report_error(BillingErrorCode.OTHER_ERROR, exc)
                return False

    def _request_purchase(self, product_id: str, product_type: ProductType) -> bool:
        pending = PendingPurchase(
            developer_payload=str(uuid.uuid4()),
            product_id=product_id,
            product_type=product_type,
        )
        # A newer attempt always replaces an older one; the older flow's result
        # will no longer match.
        self._pending = pending

        response = self.client.request_purchase_intent(
            product_id, product_type, pending.developer_payload
        )
        logger.info("purchase_intent_received", response_code=response.response_code)

        if response.response_code == BillingResponseCode.OK:
            if self.launcher is None or response.flow is None:
                logger.error(
                    "purchase_flow_not_launchable",
                    has_launcher=self.launcher is not None,
                    has_flow=response.flow is not None,
                )
                metrics.record_purchase_request(product_type.value, "lost_context")
                self._report_error(BillingErrorCode.LOST_CONTEXT)
                return False
            self.launcher.launch(response.flow, PURCHASE_FLOW_REQUEST_CODE)
            metrics.record_purchase_request(product_type.value, "launched")
            return True

        if response.response_code == BillingResponseCode.ITEM_ALREADY_OWNED:
            if not self.is_purchased(product_id) and not self.is_subscribed(product_id):
                logger.info("purchase_already_owned_restoring")
                self.restore()
            metrics.record_purchase_request(product_type.value, "already_owned")
            self.event_sink.on_product_purchased(product_id, True)
            return True

        logger.warning("purchase_intent_rejected", response_code=response.response_code)
        metrics.record_purchase_request(product_type.value, "rejected")
        self._report_error(BillingErrorCode.FAILED_TO_INITIALIZE_PURCHASE)
        return False

    # ========================================================================
    # Completion Handling
    # ========================================================================

    def handle_purchase_result(self, result: ExternalFlowResult) -> bool:
        """
        Process the result of the external purchase flow.

        Returns:
            False if the result belongs to another request code, True once it
            has been handled (whatever the outcome)
        """
        if result.request_code != PURCHASE_FLOW_REQUEST_CODE:
            return False

        # The in-flight token is spent by this result, whatever happens next.
        pending, self._pending = self._pending, None

        if not result.is_successful():
            logger.warning(
                "purchase_flow_unsuccessful",
                outcome=result.outcome.value,
                response_code=result.response_code,
            )
            metrics.record_purchase_completion("unsuccessful")
            self._report_error(BillingErrorCode.OTHER_ERROR)
            return True

        try:
            self._complete_purchase(result, pending)
        except Exception as exc:
            logger.exception("purchase_completion_failed")
            metrics.record_purchase_completion("fault")
            self._report_error(BillingErrorCode.OTHER_ERROR, exc)
        return True

    def _complete_purchase(
        self, result: ExternalFlowResult, pending: PendingPurchase | None
    ) -> None:
        receipt = result.receipt_payload
        if receipt is None:
            raise ValueError("Purchase result carries no receipt")

        purchase = PurchaseData.from_json(receipt)

        with log_context(product_id=purchase.product_id, order_id=purchase.order_id):
            if pending is None or pending.developer_payload != purchase.developer_payload:
                logger.error(
                    "purchase_payload_mismatch",
                    has_pending=pending is not None,
                )
                metrics.record_purchase_completion("payload_mismatch")
                self._report_error(BillingErrorCode.INVALID_SIGNATURE)
            elif not self.verifier.verify(receipt, result.receipt_signature):
                logger.error("purchase_signature_invalid")
                metrics.record_purchase_completion("invalid_signature")
                self._report_error(BillingErrorCode.INVALID_SIGNATURE)
            else:
                self._cache_for(pending.product_type).put(
                    purchase.product_id, purchase.purchase_token
                )
                logger.info("purchase_completed", product_type=pending.product_type.value)
                metrics.record_purchase_completion("purchased")
                self.event_sink.on_product_purchased(purchase.product_id, False)

            self.event_sink.on_purchase_data_received(purchase)

    # ========================================================================
    # Restore / Reconciliation
    # ========================================================================

    def restore(self, product_type: ProductType | None = None) -> bool:
        """
        Replace the ownership cache with the service's purchase list.

        Args:
            product_type: Category to restore; None restores one-time products
                then subscriptions, stopping at the first failure

        Returns:
            True if every requested category was restored
        """
        if not self._require_connected("restore"):
            return False

        if product_type is not None:
            return self._restore_category(product_type)

        return self._restore_category(ProductType.MANAGED) and self._restore_category(
            ProductType.SUBSCRIPTION
        )

    def _restore_category(self, product_type: ProductType) -> bool:
        cache = self._cache_for(product_type)
        try:
            response = self.client.list_purchases(product_type)
            if not response.is_ok():
                logger.warning(
                    "restore_rejected",
                    product_type=product_type.value,
                    response_code=response.response_code,
                )
                metrics.record_restore(product_type.value, False)
                return False

            # Parse everything before touching the cache so a bad record
            # leaves it as it was.
            purchases = [PurchaseData.from_json(raw) for raw in response.purchase_data or []]
            cache.replace((p.product_id, p.purchase_token) for p in purchases)
        except Exception as exc:
            logger.exception("restore_failed", product_type=product_type.value)
            metrics.record_restore(product_type.value, False)
            self._report_error(BillingErrorCode.FAILED_LOAD_PURCHASES, exc)
            return False

        logger.info(
            "purchases_restored",
            product_type=product_type.value,
            owned=len(cache),
        )
        metrics.record_restore(product_type.value, True)
        return True

    def list_unconsumed_purchases(self) -> list[PurchaseData] | None:
        """
        List the one-time purchases the service reports, without touching the cache.

        Returns:
            The purchases, an empty list if the service refused, or None when
            not connected or on a fault
        """
        if not self._require_connected("list_unconsumed_purchases"):
            return None

        try:
            response = self.client.list_purchases(ProductType.MANAGED)
            if not response.is_ok():
                logger.warning("list_purchases_rejected", response_code=response.response_code)
                return []
            return [PurchaseData.from_json(raw) for raw in response.purchase_data or []]
        except Exception:
            logger.exception("list_purchases_failed")
            return None

    # ========================================================================
    # Consume
    # ========================================================================

    def consume_purchase(self, product_id: str) -> bool:
        """
        Consume a one-time product so it can be purchased again.

        Returns:
            True if the service consumed it and it was removed from the cache
        """
        if not self._require_connected("consume_purchase"):
            return False

        with log_context(product_id=product_id):
            purchase_token = self.cached_products.token_for(product_id)
            if not purchase_token:
                logger.warning("consume_not_owned")
                metrics.record_consume(False)
                return False

            try:
                response_code = self.client.consume(purchase_token)
                if response_code != BillingResponseCode.OK:
                    logger.error("consume_rejected", response_code=response_code)
                    metrics.record_consume(False)
                    self._report_error(response_code)
                    return False
                self.cached_products.remove(product_id)
            except Exception as exc:
                logger.exception("consume_failed")
                metrics.record_consume(False)
                self._report_error(BillingErrorCode.OTHER_ERROR, exc)
                return False

            logger.info("purchase_consumed")
            metrics.record_consume(True)
            return True

    # ========================================================================
    # Product Details
    # ========================================================================

    def get_product_details(self, product_ids: list[str]) -> int:
        """Query one-time product details; results go to ``on_product_list_received``."""
        return self._query_batch(ProductType.MANAGED, product_ids)

    def get_subscription_details(self, product_ids: list[str]) -> int:
        """Query subscription details; results go to ``on_product_list_received``."""
        return self._query_batch(ProductType.SUBSCRIPTION, product_ids)

    def get_product_detail(self, product_id: str, callback: ProductCallback) -> int:
        """Query one one-time product; the callback receives it (or None)."""
        return self._query_single(ProductType.MANAGED, product_id, callback)

    def get_subscription_detail(self, product_id: str, callback: ProductCallback) -> int:
        """Query one subscription; the callback receives it (or None)."""
        return self._query_single(ProductType.SUBSCRIPTION, product_id, callback)

    def _query_batch(self, product_type: ProductType, product_ids: list[str]) -> int:
        if not self._require_connected("query_product_details"):
            return BillingResponseCode.SERVICE_DISCONNECTED
        return self.products.query_batch(product_type, product_ids)

    def _query_single(
        self, product_type: ProductType, product_id: str, callback: ProductCallback
    ) -> int:
        if not self._require_connected("query_product_details"):
            return BillingResponseCode.SERVICE_DISCONNECTED
        return self.products.query_single(product_type, product_id, callback)
