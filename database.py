from sqlalchemy import (
    Column,
    String,
    Integer,
    Float,
    DateTime,
    ForeignKey,
    UniqueConstraint,
    text,
)
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import declarative_base, sessionmaker, relationship, selectinload
from sqlalchemy.sql import select

Base = declarative_base()


def build_engine(database_url: str):
    engine = create_async_engine(database_url, echo=False, future=True)
    session_factory = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    return engine, session_factory


async def create_tables(engine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        await conn.execute(text("SELECT 1"))


# ----------------------------------------------------------------------------
# DB Models
# ----------------------------------------------------------------------------
# A user owns its budgets, their transactions and its bank accounts outright;
# none of them survive the user.
class UserModel(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    created_at = Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP"))

    budgets = relationship(
        "BudgetModel",
        back_populates="user",
        cascade="all, delete-orphan",
        order_by="BudgetModel.id",
    )
    bank_accounts = relationship(
        "BankAccountModel",
        back_populates="user",
        cascade="all, delete-orphan",
        order_by="BankAccountModel.id",
    )


class BudgetModel(Base):
    __tablename__ = "budgets"
    __table_args__ = (UniqueConstraint("user_id", "category", name="uq_budget_user_category"),)
    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    category = Column(String(64), nullable=False)
    limit = Column("limit", Float, nullable=False, default=0)
    spent = Column(Float, nullable=False, default=0)

    user = relationship("UserModel", back_populates="budgets")
    transactions = relationship(
        "BudgetTransactionModel",
        back_populates="budget",
        cascade="all, delete-orphan",
        order_by="BudgetTransactionModel.id",
    )


class BudgetTransactionModel(Base):
    __tablename__ = "budget_transactions"
    id = Column(Integer, primary_key=True)
    budget_id = Column(Integer, ForeignKey("budgets.id", ondelete="CASCADE"), nullable=False, index=True)
    description = Column(String(255), nullable=False)
    amount = Column(Float, nullable=False)
    # naive UTC, as SQLite stores it
    date = Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP"))

    budget = relationship("BudgetModel", back_populates="transactions")


class BankAccountModel(Base):
    __tablename__ = "bank_accounts"
    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    bank_name = Column(String(120), nullable=False)
    account_number = Column(String(64), nullable=False)
    ifsc = Column(String(32), nullable=False)

    user = relationship("UserModel", back_populates="bank_accounts")


def user_query(user_id: int):
    """Select one user with every owned collection eagerly loaded.

    Async sessions cannot lazy-load, so anything serialized later must be
    loaded here. ``populate_existing`` refreshes rows already in the identity
    map after an in-database update.
    """
    return (
        select(UserModel)
        .where(UserModel.id == user_id)
        .options(
            selectinload(UserModel.budgets).selectinload(BudgetModel.transactions),
            selectinload(UserModel.bank_accounts),
        )
        .execution_options(populate_existing=True)
    )
