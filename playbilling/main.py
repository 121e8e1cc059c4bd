"""
Session Wiring - Build a purchase session from settings.
"""

from playbilling.config import Settings, get_settings
from playbilling.db.session import create_preferences_engine
from playbilling.observability import get_logger, setup_logging
from playbilling.services.events import EventSink
from playbilling.services.http_client import HttpBillingServiceClient
from playbilling.services.preferences import SqlPreferenceStore
from playbilling.services.purchase_session import PurchaseSession
from playbilling.services.remote_client import PurchaseFlowLauncher

logger = get_logger(__name__)


def create_session(
    launcher: PurchaseFlowLauncher,
    event_sink: EventSink | None = None,
    settings: Settings | None = None,
    auto_connect: bool = True,
) -> PurchaseSession:
    """
    Create a purchase session backed by the HTTP gateway and SQL preferences.

    Args:
        launcher: Platform hook that starts the purchase flow
        event_sink: Receives billing events; defaults to a logging sink
        settings: Client settings; defaults to the environment-loaded settings
        auto_connect: Start connecting immediately

    Returns:
        The session (connected if the gateway answered)
    """
    settings = settings or get_settings()
    setup_logging(settings)

    logger.info(
        "purchase_session_starting",
        package_name=settings.package_name,
        service_base_url=settings.service_base_url,
        signature_checks_enabled=settings.signature_checks_enabled,
        metrics_enabled=settings.metrics_enabled,
    )

    engine = create_preferences_engine(
        settings.preferences_url, echo=settings.log_level.upper() == "DEBUG"
    )
    client = HttpBillingServiceClient(
        base_url=settings.service_base_url,
        package_name=settings.package_name,
        timeout=settings.service_timeout_seconds,
    )

    return PurchaseSession(
        client=client,
        store=SqlPreferenceStore(engine),
        package_name=settings.package_name,
        license_key=settings.license_key or None,
        launcher=launcher,
        event_sink=event_sink,
        auto_connect=auto_connect,
    )
