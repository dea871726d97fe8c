from pydantic import BaseModel, Field
from datetime import datetime

class PaymentRequest(BaseModel):
    appointment_id: int
    amount: float = Field(..., ge=0)

class PaymentReceipt(BaseModel):
    id: int
    appointment_id: int
    amount: float
    method: str = "card"
    paid_at: datetime
    receipt_number: str
