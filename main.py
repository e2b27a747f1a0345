import json
import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.middleware.base import BaseHTTPMiddleware

import ledger
from config import Settings, configure_logging, load_settings
from database import UserModel, build_engine, create_tables
from errors import InvalidInput, LedgerError
from schemas import (
    BankAccountIn,
    BankAccountOut,
    BudgetOut,
    BudgetSetupIn,
    BudgetsOut,
    Credentials,
    Token,
    TransactionIn,
    UserOut,
)
from security import create_access_token, get_current_user, get_db, get_settings

logger = logging.getLogger(__name__)
request_log = logging.getLogger("req")


# ----------------------------------------------------------------------------
# Middleware & error handlers
# ----------------------------------------------------------------------------
class RequestLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        t0 = time.perf_counter()
        rid = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        response = await call_next(request)
        response.headers["X-Request-ID"] = rid
        request_log.info(
            json.dumps(
                {
                    "rid": rid,
                    "method": request.method,
                    "path": request.url.path,
                    "status": response.status_code,
                    "duration_ms": int((time.perf_counter() - t0) * 1000),
                }
            )
        )
        return response


async def ledger_error_handler(request: Request, exc: LedgerError):
    return JSONResponse(status_code=exc.status_code, content={"msg": exc.msg})


async def validation_error_handler(request: Request, exc: RequestValidationError):
    problems = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err.get("loc", ())[1:]) or "body"
        problems.append(f"{field}: {err.get('msg')}")
    error = InvalidInput("Invalid input: " + "; ".join(problems))
    return await ledger_error_handler(request, error)


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"msg": "Server error"})


# ----------------------------------------------------------------------------
# Auth routes
# ----------------------------------------------------------------------------
auth_router = APIRouter(prefix="/api/auth", tags=["auth"])


@auth_router.post("/register", response_model=Token)
async def register(
    payload: Credentials,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    user = await ledger.register_user(db, payload)
    return Token(token=create_access_token(user.id, settings))


@auth_router.post("/login", response_model=Token)
async def login(
    payload: Credentials,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    user = await ledger.authenticate_user(db, payload)
    return Token(token=create_access_token(user.id, settings))


@auth_router.get("", response_model=UserOut)
async def me(current_user: UserModel = Depends(get_current_user)):
    return UserOut.model_validate(current_user)


# ----------------------------------------------------------------------------
# Budgets
# ----------------------------------------------------------------------------
budget_router = APIRouter(prefix="/api/budgets", tags=["budgets"])


def _budgets_out(budgets) -> BudgetsOut:
    return BudgetsOut(budgets=[BudgetOut.model_validate(b) for b in budgets])


@budget_router.get("", response_model=BudgetsOut)
async def list_budgets(
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    return _budgets_out(await ledger.get_budgets(db, current_user.id))


@budget_router.post("/setup", response_model=BudgetsOut)
async def setup_budgets(
    payload: BudgetSetupIn,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    return _budgets_out(await ledger.set_budgets(db, current_user, payload.budgets))


@budget_router.post("/merge", response_model=BudgetsOut)
async def merge_budgets(
    payload: BudgetSetupIn,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    return _budgets_out(await ledger.merge_budgets(db, current_user, payload.budgets))


@budget_router.post("/transaction", response_model=BudgetsOut)
async def create_transaction(
    payload: TransactionIn,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    return _budgets_out(await ledger.record_transaction(db, current_user, payload))


# ----------------------------------------------------------------------------
# Bank accounts
# ----------------------------------------------------------------------------
account_router = APIRouter(prefix="/api/accounts", tags=["accounts"])


@account_router.post("", response_model=List[BankAccountOut])
async def add_account(
    payload: BankAccountIn,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    accounts = await ledger.link_bank_account(db, current_user, payload)
    return [BankAccountOut.model_validate(a) for a in accounts]


@account_router.get("", response_model=List[BankAccountOut])
async def list_accounts(
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    accounts = await ledger.list_bank_accounts(db, current_user.id)
    return [BankAccountOut.model_validate(a) for a in accounts]


# ----------------------------------------------------------------------------
# App setup
# ----------------------------------------------------------------------------
def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or load_settings()
    configure_logging(settings.log_level)
    engine, session_factory = build_engine(settings.database_url)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # an unreachable database aborts startup
        await create_tables(engine)
        logger.info("database ready")
        yield
        await engine.dispose()

    app = FastAPI(title="Budget Ledger API", lifespan=lifespan)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = session_factory

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLogMiddleware)

    app.add_exception_handler(LedgerError, ledger_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    @app.get("/")
    async def read_root():
        return {"message": "Budget Ledger API is running"}

    app.include_router(auth_router)
    app.include_router(budget_router)
    app.include_router(account_router)
    return app


if __name__ == "__main__":
    import uvicorn

    settings = load_settings()
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port)
