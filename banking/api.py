import logging
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, status
from fastapi.middleware.cors import CORSMiddleware

from .config import BankingSettings, configure_logging
from .models import (
    AccountHistoryResponse, AccountView, AmountRequest, BalanceResponse,
    CreateAccountRequest, TimestampRequest, Transfer, TransferActionResponse,
    TransferCreatedResponse, TransferRequest, TransferStatus,
)
from .service import (
    BankingService, InMemoryStorage, AccountNotFoundError, TransferNotFoundError,
)

logger = logging.getLogger(__name__)

settings = BankingSettings.from_env()
configure_logging(settings.log_level)

storage = InMemoryStorage()
if settings.seed_demo:
    storage.seed_demo()
banking_service = BankingService(storage=storage, settings=settings)
logger.info("Banking service ready, transfer window %sms", settings.transfer_window_ms)


def get_service() -> BankingService:
    return banking_service


def _require_account(service: BankingService, account_id: str):
    try:
        return service.get_account(account_id)
    except AccountNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Account {account_id} not found")


router = APIRouter()


@router.get("/health", tags=["System"])
def health_check():
    return {"status": "healthy", "service": "banking-simulator"}


@router.post("/accounts", response_model=AccountView, status_code=status.HTTP_201_CREATED, tags=["Accounts"])
def create_account(request: CreateAccountRequest, service: BankingService = Depends(get_service)) -> AccountView:
    if not service.create_account(request.timestamp, request.account_id):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"Account {request.account_id} already exists")
    return AccountView.from_account(service.get_account(request.account_id))


@router.get("/accounts/{account_id}", response_model=AccountView, tags=["Accounts"])
def get_account(account_id: str, service: BankingService = Depends(get_service)) -> AccountView:
    return AccountView.from_account(_require_account(service, account_id))


@router.post("/accounts/{account_id}/deposit", response_model=BalanceResponse, tags=["Accounts"])
def deposit(account_id: str, request: AmountRequest, service: BankingService = Depends(get_service)) -> BalanceResponse:
    _require_account(service, account_id)
    balance = service.deposit(request.timestamp, account_id, request.amount)
    if balance is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Deposit amount must not be negative")
    return BalanceResponse(account_id=account_id, balance=balance)


@router.post("/accounts/{account_id}/pay", response_model=BalanceResponse, tags=["Accounts"])
def pay(account_id: str, request: AmountRequest, service: BankingService = Depends(get_service)) -> BalanceResponse:
    _require_account(service, account_id)
    balance = service.pay(request.timestamp, account_id, request.amount)
    if balance is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Payment rejected: negative amount or insufficient funds",
        )
    return BalanceResponse(account_id=account_id, balance=balance)


@router.get("/accounts/{account_id}/history", response_model=AccountHistoryResponse, tags=["Accounts"])
def get_history(
    account_id: str, limit: int = 50, offset: int = 0, service: BankingService = Depends(get_service)
) -> AccountHistoryResponse:
    try:
        return service.get_history(account_id, limit, offset)
    except AccountNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Account {account_id} not found")


@router.get("/top-accounts", response_model=list[str], tags=["Accounts"])
def top_accounts(timestamp: int, n: int = 10, service: BankingService = Depends(get_service)) -> list[str]:
    return service.top_accounts(timestamp, n)


@router.post("/transfers", response_model=TransferCreatedResponse, status_code=status.HTTP_201_CREATED, tags=["Transfers"])
def create_transfer(request: TransferRequest, service: BankingService = Depends(get_service)) -> TransferCreatedResponse:
    _require_account(service, request.from_account_id)
    _require_account(service, request.to_account_id)
    transfer_id = service.transfer(request.timestamp, request.from_account_id, request.to_account_id, request.amount)
    if transfer_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Transfer rejected: negative amount or insufficient funds",
        )
    return TransferCreatedResponse(
        transfer_id=transfer_id,
        from_account_id=request.from_account_id,
        to_account_id=request.to_account_id,
        amount=request.amount,
    )


@router.get("/accounts/{account_id}/transfers", response_model=list[Transfer], tags=["Transfers"])
def list_transfers(
    account_id: str,
    status_filter: Optional[TransferStatus] = Query(default=None, alias="status"),
    service: BankingService = Depends(get_service),
) -> list[Transfer]:
    _require_account(service, account_id)
    return service.list_transfers(account_id, status_filter)


@router.get("/accounts/{account_id}/transfers/{transfer_id}", response_model=Transfer, tags=["Transfers"])
def get_transfer(account_id: str, transfer_id: str, service: BankingService = Depends(get_service)) -> Transfer:
    try:
        return service.get_transfer(account_id, transfer_id)
    except TransferNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.post("/accounts/{account_id}/transfers/{transfer_id}/accept", response_model=TransferActionResponse, tags=["Transfers"])
def accept_transfer(
    account_id: str, transfer_id: str, request: TimestampRequest, service: BankingService = Depends(get_service)
) -> TransferActionResponse:
    _require_account(service, account_id)
    # held across the calls so the before/after statuses belong to this request
    with service.lock:
        try:
            before = service.get_transfer(account_id, transfer_id)
        except TransferNotFoundError as e:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
        if service.accept_transfer(request.timestamp, account_id, transfer_id):
            return TransferActionResponse(
                transfer_id=transfer_id, status=TransferStatus.ACCEPTED, message="Transfer accepted successfully"
            )
        after = service.get_transfer(account_id, transfer_id)

    if before.is_pending() and after.status == TransferStatus.EXPIRED:
        detail = f"Transfer {transfer_id} expired and was refunded to {after.from_account_id}"
    else:
        detail = f"Cannot accept transfer in {after.status.value} state"
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


@router.post("/accounts/{account_id}/transfers/{transfer_id}/revoke", response_model=TransferActionResponse, tags=["Transfers"])
def revoke_transfer(
    account_id: str, transfer_id: str, request: TimestampRequest, service: BankingService = Depends(get_service)
) -> TransferActionResponse:
    _require_account(service, account_id)
    if not service.revoke_transfer(request.timestamp, account_id, transfer_id):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Transfer {transfer_id} cannot be revoked by {account_id}",
        )
    return TransferActionResponse(
        transfer_id=transfer_id, status=TransferStatus.REVOKED, message="Transfer revoked successfully"
    )


app = FastAPI(
    title="Banking Simulator API",
    description="In-memory ledger with deposits, payments and escrowed transfers",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
