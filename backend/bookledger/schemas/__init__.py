from bookledger.schemas.auth import LoginRequest, TokenResponse
from bookledger.schemas.inventory import PurchaseCreateRequest, SaleCreateRequest
from bookledger.schemas.transactions import IncomeCreateRequest, TransactionUpdateRequest
from bookledger.schemas.user import UserRead

__all__ = [
    "IncomeCreateRequest",
    "LoginRequest",
    "PurchaseCreateRequest",
    "SaleCreateRequest",
    "TokenResponse",
    "TransactionUpdateRequest",
    "UserRead",
]
