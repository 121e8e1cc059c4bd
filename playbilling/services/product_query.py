"""
Product Query Service - Batch and single-item product metadata lookups.

Both paths go through one batch request; the single-item query is a thin
wrapper that hands back the first record. Faults are reported through the
returned response code, never raised.
"""

from collections.abc import Callable

from pydantic import ValidationError
from structlog import get_logger

from playbilling.exceptions import BadResponseError, ServiceTransportError
from playbilling.models.api import BillingResponseCode, ProductType
from playbilling.models.domain import ProductDetails
from playbilling.observability.metrics import metrics
from playbilling.services.events import EventSink
from playbilling.services.remote_client import RemoteServiceClient

logger = get_logger(__name__)

ProductListCallback = Callable[[list[ProductDetails]], None]
ProductCallback = Callable[[ProductDetails | None], None]


class ProductQueryService:
    """Fetches product metadata from the remote billing service."""

    def __init__(self, client: RemoteServiceClient, event_sink: EventSink) -> None:
        self.client = client
        self.event_sink = event_sink

    def query_batch(
        self,
        product_type: ProductType,
        product_ids: list[str],
        callback: ProductListCallback | None = None,
    ) -> int:
        """
        Query metadata for several products.

        Args:
            product_type: Category the ids belong to
            product_ids: Products to look up
            callback: Receives the parsed records; defaults to
                ``event_sink.on_product_list_received``

        Returns:
            BillingResponseCode.OK, the service's error code, BAD_RESPONSE
            or REMOTE_EXCEPTION
        """
        if not product_ids:
            logger.debug("product_query_skipped_no_products", product_type=product_type.value)
            return BillingResponseCode.OK

        code = self._query(
            product_type, product_ids, callback or self.event_sink.on_product_list_received
        )
        metrics.record_product_query(product_type.value, code)
        return code

    def query_single(
        self,
        product_type: ProductType,
        product_id: str,
        callback: ProductCallback | None = None,
    ) -> int:
        """
        Query metadata for one product.

        The callback receives the first record returned, or None when the
        service returned no records.
        """
        if not product_id:
            logger.debug("product_query_skipped_no_products", product_type=product_type.value)
            return BillingResponseCode.OK

        def deliver_first(products: list[ProductDetails]) -> None:
            if callback is not None:
                callback(products[0] if products else None)

        return self.query_batch(product_type, [product_id], deliver_first)

    def _query(
        self,
        product_type: ProductType,
        product_ids: list[str],
        callback: ProductListCallback,
    ) -> int:
        logger.debug(
            "querying_product_details",
            product_type=product_type.value,
            count=len(product_ids),
        )

        try:
            response = self.client.query_product_details(product_type, list(product_ids))
        except ServiceTransportError as exc:
            logger.error("product_query_failed", error=str(exc))
            return BillingResponseCode.REMOTE_EXCEPTION
        except BadResponseError as exc:
            logger.error("product_query_bad_response", error=str(exc))
            return BillingResponseCode.BAD_RESPONSE
        except Exception:
            logger.exception("product_query_unexpected_error")
            return BillingResponseCode.REMOTE_EXCEPTION

        if response.details is None:
            if response.response_code != BillingResponseCode.OK:
                logger.warning("product_query_rejected", response_code=response.response_code)
                return response.response_code
            logger.warning("product_query_missing_details_list")
            return BillingResponseCode.BAD_RESPONSE

        try:
            products = [ProductDetails.from_json(product_type, raw) for raw in response.details]
        except ValidationError as exc:
            logger.error("product_details_unparseable", errors=exc.error_count())
            return BillingResponseCode.BAD_RESPONSE

        logger.debug("product_details_received", product_ids=[p.product_id for p in products])
        callback(products)
        return BillingResponseCode.OK
