from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict


DAY = 24 * 60 * 60 * 1000  # milliseconds


class TransferStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REVOKED = "revoked"
    EXPIRED = "expired"


class TransactionAction(str, Enum):
    DEPOSIT = "deposit"
    PAY = "pay"
    TRANSFER = "transfer"


class TransferStub(BaseModel):
    transfer_id: str
    from_account_id: str
    to_account_id: str
    expiration: int


class Account(BaseModel):
    account_id: str
    balance: int = Field(default=0, ge=0)
    created_at: int
    deposits: dict[int, int] = Field(default_factory=dict)
    sent_transfers: dict[str, TransferStub] = Field(default_factory=dict)

    model_config = ConfigDict(validate_assignment=True)


class Transfer(BaseModel):
    transfer_id: str
    from_account_id: str
    to_account_id: str
    amount: int
    created_at: int
    expiration: int
    status: TransferStatus = TransferStatus.PENDING
    resolved_at: Optional[int] = None

    def is_pending(self) -> bool:
        return self.status == TransferStatus.PENDING

    def is_expired_at(self, timestamp: int) -> bool:
        return timestamp > self.expiration

    def stub(self) -> TransferStub:
        return TransferStub(
            transfer_id=self.transfer_id,
            from_account_id=self.from_account_id,
            to_account_id=self.to_account_id,
            expiration=self.expiration,
        )


class Transaction(BaseModel):
    timestamp: int
    account_id: str
    amount: int
    action: TransactionAction


class CreateAccountRequest(BaseModel):
    timestamp: int
    account_id: str = Field(..., min_length=1)

    model_config = ConfigDict(json_schema_extra={
        "example": {"timestamp": 1, "account_id": "alice"}
    })


class AmountRequest(BaseModel):
    timestamp: int
    amount: int


class TransferRequest(BaseModel):
    timestamp: int
    from_account_id: str
    to_account_id: str
    amount: int

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "timestamp": 4,
            "from_account_id": "alice",
            "to_account_id": "bob",
            "amount": 150,
        }
    })


class TimestampRequest(BaseModel):
    timestamp: int


class AccountView(BaseModel):
    account_id: str
    balance: int
    created_at: int
    deposits: dict[int, int]
    sent_transfer_ids: list[str]

    @classmethod
    def from_account(cls, account: Account) -> "AccountView":
        return cls(
            account_id=account.account_id,
            balance=account.balance,
            created_at=account.created_at,
            deposits=dict(account.deposits),
            sent_transfer_ids=list(account.sent_transfers),
        )


class BalanceResponse(BaseModel):
    account_id: str
    balance: int


class TransferCreatedResponse(BaseModel):
    transfer_id: str
    from_account_id: str
    to_account_id: str
    amount: int


class TransferActionResponse(BaseModel):
    transfer_id: str
    status: TransferStatus
    message: str


class AccountHistoryResponse(BaseModel):
    account_id: str
    transactions: list[Transaction]
    total_count: int
    current_balance: int
    activity_total: int
