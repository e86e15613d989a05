"""
Payment gateway (simulated)

No external processor is integrated. A payment succeeds whenever the amount
is positive and the method key is one the storefront offers; the returned
transaction id is stored on the order for reference.
"""
import logging
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Optional

logger = logging.getLogger(__name__)

PAYMENT_METHODS: Dict[str, str] = {
    "credit_card": "Credit Card",
    "debit_card": "Debit Card",
    "bank_transfer": "Bank Transfer",
    "virtual_account": "Virtual Account",
    "mobile_payment": "Mobile Payment",
    "kakao_pay": "KakaoPay",
    "naver_pay": "Naver Pay",
    "paypal": "PayPal",
}


def normalize_method_key(method: Optional[str]) -> str:
    return (method or "").strip().lower()


def payment_method_label(method: Optional[str]) -> Optional[str]:
    """Display label for a method key, or None if the key is not offered."""
    return PAYMENT_METHODS.get(normalize_method_key(method))


@dataclass(frozen=True)
class PaymentResult:
    success: bool
    transaction_id: Optional[str]
    method_label: Optional[str]
    amount: Decimal
    message: str = ""


class SimulatedPaymentGateway:
    async def process_payment(self, amount: Decimal, method: str, user_id: int) -> PaymentResult:
        label = payment_method_label(method)
        if label is None:
            return PaymentResult(False, None, None, amount, "Unsupported payment method")
        if amount <= 0:
            return PaymentResult(False, None, label, amount, "Payment amount must be positive")

        transaction_id = f"TXN_{int(time.time() * 1000)}_{user_id}"
        logger.info(
            "Simulated payment approved: txn=%s user_id=%s amount=%s method=%s",
            transaction_id, user_id, amount, label,
        )
        return PaymentResult(True, transaction_id, label, amount, "Payment approved")


payment_gateway = SimulatedPaymentGateway()
