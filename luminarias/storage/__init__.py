from ._schema import SCHEMA_VERSION, SCHEMA_SQL
from .accounts import AccountRepo
from .transactions import TransactionRepo
from .adjustments import AdjustmentRepo
from .users import UserRepo
from .services import ServiceRepo
from .bookings import BookingRepo
from .conversions import ConversionRepo
from .withdrawals import WithdrawalRepo
from .store_items import StoreItemRepo
from .purchases import PurchaseRepo
from .manager import StorageManager

__all__ = [
    "SCHEMA_VERSION",
    "SCHEMA_SQL",
    "AccountRepo",
    "TransactionRepo",
    "AdjustmentRepo",
    "UserRepo",
    "ServiceRepo",
    "BookingRepo",
    "ConversionRepo",
    "WithdrawalRepo",
    "StoreItemRepo",
    "PurchaseRepo",
    "StorageManager",
]
