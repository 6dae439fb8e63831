"""Payment gateway port (abstract interface).

Defines the contract for the online payment provider. The order engine opens
a checkout session at placement and later asks the provider whether the
session was paid; webhooks deliver the same outcome through ConfirmPayment.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class SessionResult:
    """Result of opening a checkout session."""

    success: bool
    session_id: str | None = None
    redirect_url: str | None = None
    failure_reason: str | None = None


@dataclass(frozen=True)
class VerificationResult:
    """The provider's view of a checkout session."""

    paid: bool
    amount: float | None = None
    payment_reference: str | None = None
    gateway_status: str | None = None


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    @abstractmethod
    def create_session(self, order_number: str, amount: float, buyer: dict) -> SessionResult:
        """Open a checkout session for ``amount`` on behalf of ``buyer``."""
        ...

    @abstractmethod
    def verify(self, order_number: str) -> VerificationResult:
        """Ask the provider whether the order's session was paid."""
        ...

    @abstractmethod
    def verify_webhook_signature(self, payload: str, signature: str) -> bool:
        """Verify that a webhook payload is authentically from the gateway."""
        ...
