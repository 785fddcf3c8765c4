"""Domain errors raised by the economy engine.

Every error carries the HTTP status the API layer reports and a stable ``code``
clients can switch on. The global error handler turns them into JSON responses.
"""

from __future__ import annotations


class EconomyError(Exception):
    """Base class for per-request failures of the economy engine."""

    status_code: int = 400
    code: str = "economy_error"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.__class__.__doc__ or self.code
        super().__init__(self.detail)


class InsufficientBalance(EconomyError):
    """No free hints left today and the paid balance is empty."""

    status_code = 402
    code = "insufficient_balance"


class WalletNotFound(EconomyError):
    """Wallet row missing. Healed by provisioning, never returned to clients."""

    status_code = 404
    code = "wallet_not_found"


class InvalidSession(EconomyError):
    """Ranked session does not exist, belongs to another user or is closed."""

    status_code = 400
    code = "invalid_session"


class SessionNotActive(InvalidSession):
    """Ranked session is already closed."""

    status_code = 409
    code = "session_not_active"


class InvalidPackKey(EconomyError):
    """Unknown hint pack."""

    status_code = 400
    code = "invalid_pack_key"


class SignatureVerificationFailed(EconomyError):
    """Payment notification signature could not be verified."""

    status_code = 400
    code = "signature_verification_failed"


class PaymentProcessorError(EconomyError):
    """The payment processor rejected or failed a checkout request."""

    status_code = 502
    code = "payment_processor_error"


class ConsentRequired(EconomyError):
    """Digital-content purchases need the withdrawal waiver to be accepted."""

    status_code = 400
    code = "consent_required"
