"""
In-memory Banking Simulator

This module provides:
- Accounts with deposits, payments and an activity ranking
- Escrowed transfers: pending → accepted / revoked / expired
- Lazy expiration evaluated against caller-supplied timestamps
- Sentinel (None / False) rejections instead of raised faults
"""

from .models import (
    DAY,
    TransferStatus,
    TransactionAction,
    Account,
    Transfer,
    TransferStub,
    Transaction,
)
from .config import BankingSettings, configure_logging
from .service import (
    BankingService,
    BankingServiceError,
    AccountNotFoundError,
    TransferNotFoundError,
)

__all__ = [
    "DAY",
    "TransferStatus",
    "TransactionAction",
    "Account",
    "Transfer",
    "TransferStub",
    "Transaction",
    "BankingSettings",
    "configure_logging",
    "BankingService",
    "BankingServiceError",
    "AccountNotFoundError",
    "TransferNotFoundError",
]
