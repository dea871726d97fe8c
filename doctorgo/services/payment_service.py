from datetime import datetime
import logging
import time

from ..schemas.payment import PaymentReceipt

logger = logging.getLogger(__name__)

_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"

def to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_DIGITS[remainder])
    return "".join(reversed(digits))

def process_payment(appointment_id: int, amount: float) -> PaymentReceipt:
    """Fabricate a receipt; no money moves."""
    millis = int(time.time() * 1000)
    receipt = PaymentReceipt(
        id=millis,
        appointment_id=appointment_id,
        amount=amount,
        method="card",
        paid_at=datetime.now(),
        receipt_number=f"RCP-{to_base36(millis).upper()}"
    )
    logger.info(f"Mock payment {receipt.receipt_number} for appointment {appointment_id}")
    return receipt
