"""Pydantic request models for the REST API."""

from typing import Optional

from pydantic import BaseModel


class RegisterRequest(BaseModel):
    nickname: str
    role: str = "user"


class TransferRequest(BaseModel):
    to_user_id: int
    amount: int
    description: str = ""


class ServiceRequest(BaseModel):
    service_name: str
    service_description: str = ""
    category: str
    price_luminarias: int
    service_type: str = "one_time"
    duration_minutes: Optional[int] = None
    max_clients: Optional[int] = None
    delivery_method: str = ""


class BookRequest(BaseModel):
    scheduled_at: Optional[float] = None
    delivery_notes: Optional[str] = None


class CompleteRequest(BaseModel):
    completion_notes: Optional[str] = None


class CancelRequest(BaseModel):
    reason: Optional[str] = None


class ConversionRequest(BaseModel):
    luminarias_amount: int
    payment_method: str
    payment_details: dict = {}
    notes: Optional[str] = None


class WithdrawalRequest(BaseModel):
    amount: int
    withdrawal_type: str
    payment_method: str
    payment_details: dict = {}
    notes: Optional[str] = None


class ReviewRequest(BaseModel):
    action: str
    notes: Optional[str] = None


class AdjustRequest(BaseModel):
    amount: int
    reason: str
    allow_negative: bool = False


class LevelRequest(BaseModel):
    creator_level: str


class RoleRequest(BaseModel):
    role: str


class StoreItemRequest(BaseModel):
    name: str
    description: str = ""
    category: str
    subcategory: str = ""
    item_type: str = "consumable"
    target_role: str = "both"
    price_luminarias: int
    stock: Optional[int] = None
    duration_days: Optional[int] = None
    max_uses: Optional[int] = None


class PurchaseRequest(BaseModel):
    quantity: int = 1
