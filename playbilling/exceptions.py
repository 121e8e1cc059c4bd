"""
Exception Classes - Strongly typed exception hierarchy.

NO DICTIONARIES - All exceptions have typed attributes.

These are raised by the collaborators of the purchase session (remote
clients, preference stores, parsers). The session itself catches them at its
public boundary and turns them into billing-error events or failure returns.
"""


class BillingError(Exception):
    """Base exception for all billing client errors."""

    pass


class ServiceTransportError(BillingError):
    """Raised when the remote billing service cannot be reached or answers garbage."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(f"Billing service transport error: {message}")


class BadResponseError(BillingError):
    """Raised when a service payload is well-formed JSON but not the expected shape."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Bad billing service response: {message}")


class StorageError(BillingError):
    """Raised when the preference store fails to read or persist a value."""

    def __init__(self, key: str, message: str) -> None:
        self.key = key
        self.message = message
        super().__init__(f"Preference storage error for {key}: {message}")
