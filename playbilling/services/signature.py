"""
Purchase Signature Verification.

Receipts are signed by the billing service with RSASSA-PKCS1-v1_5 over SHA-1
(the Play billing contract). The public key is the base64 DER
SubjectPublicKeyInfo shown in the store console. The signature is checked
against the receipt text exactly as received, never a re-serialization.
"""

import base64
import binascii

from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from structlog import get_logger

from playbilling.observability.metrics import metrics

logger = get_logger(__name__)


class SignatureVerifier:
    """
    Verifies receipt signatures against the configured license key.

    With no key configured every receipt is accepted. That is an explicit
    configuration choice and is logged once when the verifier is created.
    Any malformed key, signature or encoding yields "not verified"; this
    class never raises from ``verify``.
    """

    def __init__(self, public_key_base64: str | None) -> None:
        self._public_key_base64 = (public_key_base64 or "").strip()
        self._public_key: rsa.RSAPublicKey | None = None
        if not self._public_key_base64:
            logger.warning("signature_verification_disabled")

    @property
    def enabled(self) -> bool:
        """Whether a license key is configured."""
        return bool(self._public_key_base64)

    def _load_public_key(self) -> rsa.RSAPublicKey:
        if self._public_key is None:
            der = base64.b64decode(self._public_key_base64, validate=True)
            key = serialization.load_der_public_key(der)
            if not isinstance(key, rsa.RSAPublicKey):
                raise ValueError(f"License key is not an RSA key: {type(key).__name__}")
            self._public_key = key
        return self._public_key

    def verify(self, receipt: str, signature: str | None) -> bool:
        """
        Check a receipt signature.

        Args:
            receipt: Receipt JSON exactly as delivered by the service
            signature: Base64 signature delivered alongside the receipt

        Returns:
            True if the signature matches, or if no key is configured
        """
        if not self.enabled:
            metrics.record_signature_check("skipped")
            return True

        if not receipt or not signature:
            logger.warning("purchase_signature_missing")
            metrics.record_signature_check("failed")
            return False

        try:
            public_key = self._load_public_key()
            signature_bytes = base64.b64decode(signature, validate=True)
            public_key.verify(
                signature_bytes,
                receipt.encode("utf-8"),
                padding.PKCS1v15(),
                hashes.SHA1(),
            )
        except InvalidSignature:
            logger.error("purchase_signature_mismatch")
            metrics.record_signature_check("failed")
            return False
        except (binascii.Error, ValueError, TypeError, UnsupportedAlgorithm) as exc:
            logger.error("purchase_signature_undecodable", error=str(exc))
            metrics.record_signature_check("failed")
            return False

        metrics.record_signature_check("verified")
        return True
