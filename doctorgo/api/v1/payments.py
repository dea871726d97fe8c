from fastapi import APIRouter, Depends

from ...api.deps import get_current_user
from ...models.user import User
from ...schemas.payment import PaymentRequest, PaymentReceipt
from ...services.payment_service import process_payment

router = APIRouter(prefix="/payments", tags=["Payments"])

@router.post("/mock", response_model=PaymentReceipt)
def mock_payment(
    payment_data: PaymentRequest,
    _: User = Depends(get_current_user)
):
    """Always-successful payment stub."""
    return process_payment(payment_data.appointment_id, payment_data.amount)
