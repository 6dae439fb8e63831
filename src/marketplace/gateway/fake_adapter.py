"""Configurable fake payment gateway for development and testing.

Sessions are kept in memory. Tests decide the outcome of a session with
``settle()`` before calling ``verify()``, or make session creation fail with
``configure(should_succeed=False)``. Webhooks are authentic only when signed
with ``"test-signature"``.
"""

from uuid import uuid4

from marketplace.gateway.port import PaymentGateway, SessionResult, VerificationResult


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.failure_reason: str = "Gateway unavailable"
        self.sessions: dict[str, dict] = {}
        self.calls: list[dict] = []

    def configure(self, should_succeed: bool, failure_reason: str = "Gateway unavailable") -> None:
        """Configure session creation behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def settle(self, order_number: str, paid: bool, amount: float | None = None) -> None:
        """Decide what the provider reports for ``order_number``."""
        session = self.sessions.setdefault(order_number, {"amount": amount})
        session["paid"] = paid
        if amount is not None:
            session["amount"] = amount

    def create_session(self, order_number: str, amount: float, buyer: dict) -> SessionResult:
        self.calls.append(
            {
                "method": "create_session",
                "order_number": order_number,
                "amount": amount,
                "buyer": buyer,
            }
        )

        if not self.should_succeed:
            return SessionResult(success=False, failure_reason=self.failure_reason)

        session_id = f"fake_sess_{uuid4().hex[:12]}"
        self.sessions[order_number] = {"session_id": session_id, "amount": amount, "paid": False}
        return SessionResult(
            success=True,
            session_id=session_id,
            redirect_url=f"https://pay.example.test/{session_id}",
        )

    def verify(self, order_number: str) -> VerificationResult:
        self.calls.append({"method": "verify", "order_number": order_number})

        session = self.sessions.get(order_number)
        if session is None:
            return VerificationResult(paid=False, gateway_status="unknown")
        if session.get("paid"):
            return VerificationResult(
                paid=True,
                amount=session.get("amount"),
                payment_reference=f"fake_pay_{uuid4().hex[:12]}",
                gateway_status="paid",
            )
        return VerificationResult(paid=False, amount=session.get("amount"), gateway_status="unpaid")

    def verify_webhook_signature(self, payload: str, signature: str) -> bool:  # noqa: ARG002
        return signature == "test-signature"
