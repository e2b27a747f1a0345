"""
Budget ledger services.

Everything a route does to a user's data lives here: registration and login,
budget setup, transaction categorization and bank account linking. Each
function takes the request's AsyncSession, commits at most once, and rolls
back on failure so a failed operation never persists half its work.
"""

import logging
from typing import List

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import select

from database import (
    BankAccountModel,
    BudgetModel,
    BudgetTransactionModel,
    UserModel,
    user_query,
)
from errors import (
    CategoryNotFound,
    DuplicateUser,
    InternalFailure,
    InvalidCredentials,
    NotFound,
)
from schemas import DEFAULT_BUDGETS, BankAccountIn, BudgetItemIn, Credentials, TransactionIn
from security import get_password_hash, verify_password

logger = logging.getLogger(__name__)


def _new_budget(category: str, limit: float) -> BudgetModel:
    return BudgetModel(category=category, limit=limit, spent=0, transactions=[])


async def _commit(db: AsyncSession, action: str) -> None:
    try:
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("%s failed", action)
        raise InternalFailure()


async def get_user(db: AsyncSession, user_id: int) -> UserModel:
    result = await db.execute(user_query(user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFound("User not found")
    return user


# ----------------------------------------------------------------------------
# Credential store
# ----------------------------------------------------------------------------
async def register_user(db: AsyncSession, payload: Credentials) -> UserModel:
    result = await db.execute(select(UserModel.id).where(UserModel.email == payload.email))
    if result.scalar_one_or_none() is not None:
        logger.info("registration refused, email already in use")
        raise DuplicateUser()

    user = UserModel(
        email=payload.email,
        password_hash=get_password_hash(payload.password),
        budgets=[_new_budget(category, limit) for category, limit in DEFAULT_BUDGETS],
        bank_accounts=[],
    )
    db.add(user)
    try:
        await db.commit()
    except IntegrityError:
        # lost a race against a concurrent registration for the same email
        await db.rollback()
        raise DuplicateUser()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("registration failed")
        raise InternalFailure()

    logger.info("registered user %s", user.id)
    return user


async def authenticate_user(db: AsyncSession, payload: Credentials) -> UserModel:
    result = await db.execute(select(UserModel).where(UserModel.email == payload.email))
    user = result.scalar_one_or_none()
    if not user or not verify_password(payload.password, user.password_hash):
        logger.warning("failed login attempt")
        raise InvalidCredentials()
    return user


# ----------------------------------------------------------------------------
# Budgets
# ----------------------------------------------------------------------------
async def get_budgets(db: AsyncSession, user_id: int) -> List[BudgetModel]:
    user = await get_user(db, user_id)
    return list(user.budgets)


async def set_budgets(db: AsyncSession, user: UserModel, items: List[BudgetItemIn]) -> List[BudgetModel]:
    """Replace the user's budgets. Spent totals and history are discarded."""
    user.budgets.clear()
    # old rows must be gone before new ones reuse their categories
    await db.flush()
    user.budgets.extend(_new_budget(item.category, item.limit) for item in items)
    await _commit(db, "budget setup")

    logger.info("user %s set %d budgets", user.id, len(items))
    return await get_budgets(db, user.id)


async def merge_budgets(db: AsyncSession, user: UserModel, items: List[BudgetItemIn]) -> List[BudgetModel]:
    """Update limits in place and add new categories, keeping spent and history."""
    existing = {budget.category: budget for budget in user.budgets}
    added = 0
    for item in items:
        budget = existing.get(item.category)
        if budget is None:
            user.budgets.append(_new_budget(item.category, item.limit))
            added += 1
        else:
            budget.limit = item.limit
    await _commit(db, "budget merge")

    logger.info("user %s merged budgets: %d updated, %d added", user.id, len(items) - added, added)
    return await get_budgets(db, user.id)


async def record_transaction(db: AsyncSession, user: UserModel, payload: TransactionIn) -> List[BudgetModel]:
    result = await db.execute(
        select(BudgetModel.id).where(
            BudgetModel.user_id == user.id,
            BudgetModel.category == payload.category,
        )
    )
    budget_id = result.scalar_one_or_none()
    if budget_id is None:
        logger.info("user %s has no budget '%s'", user.id, payload.category)
        raise CategoryNotFound(payload.category)

    # increment in the database so concurrent recordings both count
    await db.execute(
        update(BudgetModel)
        .where(BudgetModel.id == budget_id)
        .values(spent=BudgetModel.spent + payload.amount)
        .execution_options(synchronize_session=False)
    )
    db.add(
        BudgetTransactionModel(
            budget_id=budget_id,
            description=payload.description,
            amount=payload.amount,
        )
    )
    await _commit(db, "transaction")

    logger.info("user %s spent %.2f on %s", user.id, payload.amount, payload.category)
    return await get_budgets(db, user.id)


# ----------------------------------------------------------------------------
# Bank accounts
# ----------------------------------------------------------------------------
async def list_bank_accounts(db: AsyncSession, user_id: int) -> List[BankAccountModel]:
    user = await get_user(db, user_id)
    return list(user.bank_accounts)


async def link_bank_account(db: AsyncSession, user: UserModel, payload: BankAccountIn) -> List[BankAccountModel]:
    user.bank_accounts.append(
        BankAccountModel(
            bank_name=payload.bank_name,
            account_number=payload.account_number,
            ifsc=payload.ifsc,
        )
    )
    await _commit(db, "bank account link")

    logger.info("user %s linked an account at %s", user.id, payload.bank_name)
    return await list_bank_accounts(db, user.id)
