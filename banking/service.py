import functools
import logging
import threading
from typing import Optional

from .config import BankingSettings
from .models import (
    Account,
    Transfer,
    TransferStatus,
    Transaction,
    TransactionAction,
    AccountHistoryResponse,
)


logger = logging.getLogger(__name__)


class BankingServiceError(Exception):
    pass


class AccountNotFoundError(BankingServiceError):
    pass


class TransferNotFoundError(BankingServiceError):
    pass


def serialized(method):
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with self.lock:
            return method(self, *args, **kwargs)
    return wrapper


class InMemoryStorage:
    def __init__(self):
        self.accounts: dict[str, Account] = {}
        # recipient id -> transfer id -> transfer, in creation order
        self.transfers: dict[str, dict[str, Transfer]] = {}
        self.transfer_counters: dict[str, int] = {}
        self.transactions: dict[str, list[Transaction]] = {}

    def seed_demo(self):
        self.accounts["alice"] = Account(account_id="alice", balance=0, created_at=0)
        self.accounts["bob"] = Account(account_id="bob", balance=0, created_at=0)


class BankingService:
    """
    In-memory ledger for accounts, payments and escrowed transfers.

    Every mutating operation reports rejection through its return value
    (None or False) and leaves state untouched, except for lazy expiration
    inside accept_transfer. Time is the caller-supplied logical timestamp.
    Public operations are serialized on a per-instance lock.
    """

    def __init__(
        self,
        storage: Optional[InMemoryStorage] = None,
        settings: Optional[BankingSettings] = None,
    ):
        self.storage = storage or InMemoryStorage()
        self.settings = settings or BankingSettings.from_env()
        # reentrant: hosts may hold it across several calls
        self.lock = threading.RLock()

    @property
    def transfer_window(self) -> int:
        return self.settings.transfer_window_ms

    @serialized
    def create_account(self, timestamp: int, account_id: str) -> bool:
        if account_id in self.storage.accounts:
            logger.debug("create_account rejected: %s already exists", account_id)
            return False

        self.storage.accounts[account_id] = Account(account_id=account_id, created_at=timestamp)
        logger.info("Account %s created at %s", account_id, timestamp)
        return True

    @serialized
    def deposit(self, timestamp: int, account_id: str, amount: int) -> Optional[int]:
        if amount < 0:
            logger.debug("deposit rejected: negative amount %s", amount)
            return None
        account = self.storage.accounts.get(account_id)
        if account is None:
            logger.debug("deposit rejected: unknown account %s", account_id)
            return None

        account.balance += amount
        account.deposits[timestamp] = amount
        self._record(timestamp, account_id, amount, TransactionAction.DEPOSIT)
        logger.info("Deposited %s to %s, balance %s", amount, account_id, account.balance)
        return account.balance

    @serialized
    def pay(self, timestamp: int, account_id: str, amount: int) -> Optional[int]:
        if amount < 0:
            logger.debug("pay rejected: negative amount %s", amount)
            return None
        account = self.storage.accounts.get(account_id)
        if account is None:
            logger.debug("pay rejected: unknown account %s", account_id)
            return None
        if account.balance < amount:
            logger.debug("pay rejected: %s has %s, needs %s", account_id, account.balance, amount)
            return None

        account.balance -= amount
        self._record(timestamp, account_id, amount, TransactionAction.PAY)
        logger.info("Paid %s from %s, balance %s", amount, account_id, account.balance)
        return account.balance

    @serialized
    def top_accounts(self, timestamp: int, n: int) -> list[str]:
        if n <= 0 or not self.storage.accounts:
            return []

        totals = [
            (account_id, self.activity_total(account_id))
            for account_id in self.storage.accounts
        ]
        totals.sort(key=lambda item: (-item[1], item[0]))
        return [f"{account_id}({total})" for account_id, total in totals[:n]]

    @serialized
    def transfer(self, timestamp: int, from_account_id: str, to_account_id: str, amount: int) -> Optional[str]:
        sender = self.storage.accounts.get(from_account_id)
        recipient = self.storage.accounts.get(to_account_id)
        if sender is None or recipient is None:
            logger.debug("transfer rejected: unknown account in %s -> %s", from_account_id, to_account_id)
            return None
        if amount < 0:
            logger.debug("transfer rejected: negative amount %s", amount)
            return None
        if sender.balance < amount:
            logger.debug("transfer rejected: %s has %s, needs %s", from_account_id, sender.balance, amount)
            return None

        ordinal = self.storage.transfer_counters.get(to_account_id, 0)
        self.storage.transfer_counters[to_account_id] = ordinal + 1
        transfer_id = f"transfer{ordinal}"

        transfer = Transfer(
            transfer_id=transfer_id,
            from_account_id=from_account_id,
            to_account_id=to_account_id,
            amount=amount,
            created_at=timestamp,
            expiration=timestamp + self.transfer_window,
        )
        self.storage.transfers.setdefault(to_account_id, {})[transfer_id] = transfer
        sender.sent_transfers[transfer_id] = transfer.stub()
        sender.balance -= amount

        logger.info(
            "Transfer %s of %s from %s to %s pending until %s",
            transfer_id, amount, from_account_id, to_account_id, transfer.expiration,
        )
        return transfer_id

    @serialized
    def accept_transfer(self, timestamp: int, account_id: str, transfer_id: str) -> bool:
        if account_id not in self.storage.accounts:
            logger.debug("accept rejected: unknown account %s", account_id)
            return False

        transfer = self.storage.transfers.get(account_id, {}).get(transfer_id)
        if transfer is None or transfer.to_account_id != account_id:
            logger.debug("accept rejected: %s has no transfer %s", account_id, transfer_id)
            return False
        if not transfer.is_pending():
            logger.debug("accept rejected: %s is %s", transfer_id, transfer.status.value)
            return False

        if transfer.is_expired_at(timestamp):
            self._resolve(transfer, TransferStatus.EXPIRED, timestamp)
            self.storage.accounts[transfer.from_account_id].balance += transfer.amount
            logger.info(
                "Transfer %s to %s expired at %s, refunded %s to %s",
                transfer_id, account_id, transfer.expiration, transfer.amount, transfer.from_account_id,
            )
            return False

        self.storage.accounts[account_id].balance += transfer.amount
        self._resolve(transfer, TransferStatus.ACCEPTED, timestamp)
        self._record(timestamp, account_id, transfer.amount, TransactionAction.TRANSFER)
        self._record(timestamp, transfer.from_account_id, transfer.amount, TransactionAction.TRANSFER)

        logger.info("Transfer %s accepted by %s", transfer_id, account_id)
        return True

    @serialized
    def revoke_transfer(self, timestamp: int, source_account_id: str, transfer_id: str) -> bool:
        sender = self.storage.accounts.get(source_account_id)
        stub = sender.sent_transfers.get(transfer_id) if sender else None
        if stub is None:
            logger.debug("revoke rejected: %s never sent %s", source_account_id, transfer_id)
            return False

        transfer = self.storage.transfers.get(stub.to_account_id, {}).get(transfer_id)
        # revoke rejects only strictly after expiration and never marks EXPIRED
        if transfer is None or not transfer.is_pending() or transfer.expiration < timestamp:
            logger.debug("revoke rejected: %s is not revocable at %s", transfer_id, timestamp)
            return False

        sender.balance += transfer.amount
        self._resolve(transfer, TransferStatus.REVOKED, timestamp)

        logger.info("Transfer %s revoked by %s, refunded %s", transfer_id, source_account_id, transfer.amount)
        return True

    @serialized
    def get_account(self, account_id: str) -> Account:
        account = self.storage.accounts.get(account_id)
        if account is None:
            raise AccountNotFoundError(f"Account {account_id} not found")
        return account.model_copy(deep=True)

    @serialized
    def get_transfer(self, account_id: str, transfer_id: str) -> Transfer:
        transfer = self.storage.transfers.get(account_id, {}).get(transfer_id)
        if transfer is None:
            raise TransferNotFoundError(f"Transfer {transfer_id} not found for {account_id}")
        return transfer.model_copy()

    @serialized
    def list_transfers(self, account_id: str, status: Optional[TransferStatus] = None) -> list[Transfer]:
        self.get_account(account_id)
        transfers = list(self.storage.transfers.get(account_id, {}).values())
        if status is not None:
            transfers = [t for t in transfers if t.status == status]
        return [t.model_copy() for t in transfers]

    @serialized
    def get_history(self, account_id: str, limit: int = 50, offset: int = 0) -> AccountHistoryResponse:
        account = self.get_account(account_id)
        entries = self.storage.transactions.get(account_id, [])
        # newest first; ties keep latest insertion first
        ordered = [e for _, e in sorted(enumerate(entries), key=lambda p: (p[1].timestamp, p[0]), reverse=True)]

        return AccountHistoryResponse(
            account_id=account_id,
            transactions=[t.model_copy() for t in ordered[offset:offset + limit]],
            total_count=len(ordered),
            current_balance=account.balance,
            activity_total=self.activity_total(account_id),
        )

    @serialized
    def activity_total(self, account_id: str) -> int:
        return sum(t.amount for t in self.storage.transactions.get(account_id, []))

    def _record(self, timestamp: int, account_id: str, amount: int, action: TransactionAction):
        self.storage.transactions.setdefault(account_id, []).append(
            Transaction(timestamp=timestamp, account_id=account_id, amount=amount, action=action)
        )

    def _resolve(self, transfer: Transfer, status: TransferStatus, timestamp: int):
        transfer.status = status
        transfer.resolved_at = timestamp
