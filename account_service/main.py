import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, StrictInt

from .auth import get_account_id
from .db import engine, init_db
from .directory import AccountDirectory
from .errors import LedgerError
from .ledger import Ledger, NoAccounts
from .logging_config import setup_logging
from .stores import sql_unit_of_work

logger = logging.getLogger(__name__)

STATUS_BY_KIND = {
    "not_found": 404,
    "invalid_amount": 400,
    "same_account": 400,
    "insufficient_funds": 400,
    "validation_failure": 400,
    "store_conflict": 503,
    "store_failure": 500,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    init_db()
    logger.info("account-service ready")
    yield


app = FastAPI(title="account-service", lifespan=lifespan)

uow_factory = sql_unit_of_work(engine)


def get_ledger() -> Ledger:
    return Ledger(uow_factory)


def get_directory() -> AccountDirectory:
    return AccountDirectory(uow_factory)


@app.exception_handler(LedgerError)
async def ledger_error(request: Request, exc: LedgerError):
    status = STATUS_BY_KIND.get(exc.kind, 500)
    if status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=status, content={"error": exc.message, **exc.to_dict()})


@app.exception_handler(RequestValidationError)
async def request_validation_error(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={
            "error": "Invalid request",
            "kind": "validation_failure",
            "details": [err["msg"] for err in exc.errors()],
        },
    )


class CreateAccountIn(BaseModel):
    name: str
    balance: StrictInt = 0


class UpdateAccountIn(BaseModel):
    name: str


class TopUpIn(BaseModel):
    account_id: StrictInt
    amount: StrictInt


class TransferIn(BaseModel):
    to_account_id: StrictInt
    amount: StrictInt


@app.get("/health")
def health():
    return {"status": "ok"}


@app.post("/accounts")
def create_account(body: CreateAccountIn, directory: AccountDirectory = Depends(get_directory)):
    account = directory.create(body.name, body.balance)
    return {"message": "Create success", "data": account.model_dump()}


@app.get("/accounts")
def list_accounts(directory: AccountDirectory = Depends(get_directory)):
    return {"data": [a.model_dump() for a in directory.list()]}


# fixed paths go before /accounts/{account_id}

@app.get("/accounts/my")
def my_account(account_id: int = Depends(get_account_id), directory: AccountDirectory = Depends(get_directory)):
    return {"data": directory.my(account_id).model_dump()}


@app.get("/accounts/balance")
def balance(account_id: int = Depends(get_account_id), ledger: Ledger = Depends(get_ledger)):
    return {"balance": ledger.balance(account_id)}


@app.post("/accounts/topup")
def top_up(body: TopUpIn, ledger: Ledger = Depends(get_ledger)):
    new_balance = ledger.top_up(body.account_id, body.amount)
    return {"message": "Top up successful", "balance": new_balance}


@app.post("/accounts/transfer")
def transfer(body: TransferIn, account_id: int = Depends(get_account_id), ledger: Ledger = Depends(get_ledger)):
    tx = ledger.transfer(account_id, body.to_account_id, body.amount)
    return {"message": "Transfer successful", "data": tx.model_dump()}


@app.get("/accounts/mutation")
def mutation(account_id: int = Depends(get_account_id), ledger: Ledger = Depends(get_ledger)):
    return {"data": [tx.model_dump() for tx in ledger.mutation(account_id)]}


@app.get("/accounts/statistics")
def statistics(account_id: int = Depends(get_account_id), ledger: Ledger = Depends(get_ledger)):
    stats = ledger.statistics(account_id)
    if isinstance(stats, NoAccounts):
        return stats.to_dict()
    return {"stats": stats.to_dict()}


@app.get("/accounts/{account_id}")
def get_account(account_id: int, directory: AccountDirectory = Depends(get_directory)):
    return {"data": directory.read(account_id).model_dump()}


@app.put("/accounts/{account_id}")
def update_account(account_id: int, body: UpdateAccountIn, directory: AccountDirectory = Depends(get_directory)):
    account = directory.update(account_id, body.name)
    return {"message": "Update success", "data": account.model_dump()}


@app.delete("/accounts/{account_id}")
def delete_account(account_id: int, directory: AccountDirectory = Depends(get_directory)):
    directory.delete(account_id)
    return {"message": "Delete success", "data": {"account_id": account_id}}
