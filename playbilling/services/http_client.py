"""
HTTP Billing Service Client.

NO DICTIONARIES - All data uses strongly typed models.

Speaks the JSON request/response contract of a billing gateway:

    GET  /v3/applications/{package}/status
    GET  /v3/applications/{package}/purchases?type=inapp|subs
    POST /v3/applications/{package}/purchases:intent
    POST /v3/applications/{package}/products:query
    POST /v3/applications/{package}/purchases:consume

Response codes inside the bodies are passed through untouched; only transport
failures and unparseable bodies raise.
"""

from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, ValidationError
from structlog import get_logger

from playbilling.exceptions import BadResponseError, ServiceTransportError
from playbilling.models.api import (
    ConsumeRequest,
    ConsumeResponse,
    ProductQueryRequest,
    ProductQueryResponse,
    ProductType,
    PurchaseIntentRequest,
    PurchaseIntentResponsePayload,
    PurchasesListResponse,
)
from playbilling.models.domain import (
    LaunchableFlow,
    ProductDetailsResponse,
    PurchaseIntentResponse,
    PurchasesResponse,
)
from playbilling.services.remote_client import ServiceConnectionListener

logger = get_logger(__name__)

ResponseModel = TypeVar("ResponseModel", bound=BaseModel)


class HttpBillingServiceClient:
    """
    RemoteServiceClient backed by an HTTP billing gateway.

    Connection is established by probing the status endpoint; the listener
    is notified synchronously once the probe succeeds.
    """

    def __init__(
        self,
        base_url: str,
        package_name: str,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """
        Initialize HTTP client.

        Args:
            base_url: Gateway base URL (e.g., 'https://billing.example.com')
            package_name: Application package name the purchases belong to
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.package_name = package_name
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.Client | None = None
        self._listener: ServiceConnectionListener | None = None

    @property
    def _prefix(self) -> str:
        return f"/v3/applications/{self.package_name}"

    def _http(self) -> httpx.Client:
        if self._client is None:
            raise ServiceTransportError("Client is not connected")
        return self._client

    def connect(self, listener: ServiceConnectionListener) -> None:
        """Open the HTTP client, probe the gateway and notify the listener."""
        if self._client is None:
            self._client = httpx.Client(
                base_url=self._base_url,
                timeout=self._timeout,
                transport=self._transport,
                headers={"Content-Type": "application/json"},
            )

        try:
            self._request("GET", f"{self._prefix}/status")
        except ServiceTransportError:
            self._close()
            raise

        self._listener = listener
        logger.info("billing_service_connected", package_name=self.package_name)
        listener.on_service_connected()

    def disconnect(self) -> None:
        """Close the HTTP client."""
        self._close()
        self._listener = None
        logger.info("billing_service_disconnected", package_name=self.package_name)

    def _close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def _request(self, method: str, endpoint: str, **kwargs: Any) -> httpx.Response:
        """Make a request to the gateway, mapping transport failures."""
        try:
            response = self._http().request(method, endpoint, **kwargs)
        except httpx.HTTPError as exc:
            logger.error("billing_service_request_failed", endpoint=endpoint, error=str(exc))
            if self._listener is not None and isinstance(exc, httpx.TransportError):
                # Lost the gateway: report the disconnect; reconnecting is the host's call.
                listener, self._listener = self._listener, None
                self._close()
                listener.on_service_disconnected()
            raise ServiceTransportError(str(exc)) from exc

        if response.status_code >= 400:
            logger.error(
                "billing_service_api_error",
                endpoint=endpoint,
                status=response.status_code,
                error=response.text,
            )
            raise ServiceTransportError(
                f"API error: {response.status_code}", status_code=response.status_code
            )

        return response

    def _parse(self, response: httpx.Response, model: type[ResponseModel]) -> ResponseModel:
        try:
            return model.model_validate_json(response.content)
        except ValidationError as exc:
            logger.error(
                "billing_service_invalid_response",
                model=model.__name__,
                errors=exc.error_count(),
            )
            raise BadResponseError(f"Invalid {model.__name__}: {exc}") from exc

    def list_purchases(self, product_type: ProductType) -> PurchasesResponse:
        response = self._request(
            "GET", f"{self._prefix}/purchases", params={"type": product_type.value}
        )
        payload = self._parse(response, PurchasesListResponse)
        return PurchasesResponse(
            response_code=payload.response_code,
            purchase_data=payload.purchase_data_list,
            signatures=payload.signature_list,
        )

    def request_purchase_intent(
        self, product_id: str, product_type: ProductType, developer_payload: str
    ) -> PurchaseIntentResponse:
        body = PurchaseIntentRequest(
            product_id=product_id,
            type=product_type,
            developer_payload=developer_payload,
        )
        response = self._request(
            "POST",
            f"{self._prefix}/purchases:intent",
            content=body.model_dump_json(by_alias=True),
        )
        payload = self._parse(response, PurchaseIntentResponsePayload)
        flow = None
        if payload.flow is not None:
            flow = LaunchableFlow(flow_id=payload.flow.flow_id, uri=payload.flow.uri)
        return PurchaseIntentResponse(response_code=payload.response_code, flow=flow)

    def query_product_details(
        self, product_type: ProductType, product_ids: list[str]
    ) -> ProductDetailsResponse:
        try:
            body = ProductQueryRequest(type=product_type, product_ids=product_ids)
        except ValidationError as exc:
            raise BadResponseError(f"Invalid product query: {exc}") from exc
        response = self._request(
            "POST",
            f"{self._prefix}/products:query",
            content=body.model_dump_json(by_alias=True),
        )
        payload = self._parse(response, ProductQueryResponse)
        return ProductDetailsResponse(
            response_code=payload.response_code, details=payload.details_list
        )

    def consume(self, purchase_token: str) -> int:
        body = ConsumeRequest(purchase_token=purchase_token)
        response = self._request(
            "POST",
            f"{self._prefix}/purchases:consume",
            content=body.model_dump_json(by_alias=True),
        )
        return self._parse(response, ConsumeResponse).response_code
