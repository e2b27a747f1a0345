"""
App Schemas

Request and response bodies for the budget ledger API, as Pydantic models.
Response models read straight from the ORM rows in database.py; the client
in client_flow.py parses the same models back out of JSON.
"""

import math
from datetime import datetime, timezone
from typing import List

from pydantic import AliasChoices, BaseModel, Field, constr, field_validator

WARNING_THRESHOLD = 0.90
# keeps a running total far from float overflow
MAX_AMOUNT = 1_000_000_000

DEFAULT_BUDGETS = (
    ("Food", 5000),
    ("Shopping", 4000),
    ("Travel", 10000),
    ("Other", 2000),
)


# ----------------------------------------------------------------------------
# Requests
# ----------------------------------------------------------------------------
class Credentials(BaseModel):
    # stored and matched exactly as given
    email: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1)


class BudgetItemIn(BaseModel):
    category: str = Field(..., min_length=1, max_length=64)
    limit: float = Field(..., ge=0, le=MAX_AMOUNT, allow_inf_nan=False)


class BudgetSetupIn(BaseModel):
    budgets: List[BudgetItemIn]

    @field_validator("budgets")
    @classmethod
    def categories_unique(cls, budgets):
        seen = set()
        for item in budgets:
            if item.category in seen:
                raise ValueError(f"duplicate category '{item.category}'")
            seen.add(item.category)
        return budgets


class TransactionIn(BaseModel):
    category: str = Field(..., min_length=1, max_length=64)
    description: constr(strip_whitespace=True, min_length=1, max_length=255)
    amount: float = Field(..., gt=0, le=MAX_AMOUNT, allow_inf_nan=False)

    @field_validator("amount", mode="before")
    @classmethod
    def amount_is_number(cls, value):
        # "450" or true must not sneak through lax coercion
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError("amount must be a number")
        return value


class BankAccountIn(BaseModel):
    bank_name: constr(strip_whitespace=True, min_length=1, max_length=120) = Field(..., alias="bankName")
    account_number: constr(strip_whitespace=True, min_length=1, max_length=64) = Field(..., alias="accountNumber")
    ifsc: constr(strip_whitespace=True, min_length=1, max_length=32)


# ----------------------------------------------------------------------------
# Responses
# ----------------------------------------------------------------------------
class Token(BaseModel):
    token: str


class TransactionOut(BaseModel):
    id: int
    description: str
    amount: float
    date: datetime

    class Config:
        from_attributes = True

    @field_validator("date")
    @classmethod
    def date_is_utc(cls, value):
        # the database hands back naive UTC
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class BudgetOut(BaseModel):
    id: int
    category: str
    limit: float
    spent: float
    transactions: List[TransactionOut] = []

    class Config:
        from_attributes = True

    @property
    def usage_ratio(self) -> float:
        if self.limit > 0:
            return self.spent / self.limit
        return math.inf if self.spent > 0 else 0.0

    @property
    def needs_warning(self) -> bool:
        return self.usage_ratio >= WARNING_THRESHOLD


class BudgetsOut(BaseModel):
    budgets: List[BudgetOut]


class BankAccountOut(BaseModel):
    id: int
    bank_name: str = Field(
        ..., validation_alias=AliasChoices("bank_name", "bankName"), serialization_alias="bankName"
    )
    account_number: str = Field(
        ..., validation_alias=AliasChoices("account_number", "accountNumber"), serialization_alias="accountNumber"
    )
    ifsc: str

    class Config:
        from_attributes = True


class UserOut(BaseModel):
    id: int
    email: str
    budgets: List[BudgetOut] = []
    bank_accounts: List[BankAccountOut] = Field(
        default_factory=list,
        validation_alias=AliasChoices("bank_accounts", "bankAccounts"),
        serialization_alias="bankAccounts",
    )

    class Config:
        from_attributes = True
