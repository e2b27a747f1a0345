import math
from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from errors import CategoryNotFound, NotFound
from schemas import (
    MAX_AMOUNT,
    BankAccountIn,
    BudgetOut,
    BudgetSetupIn,
    Credentials,
    TransactionIn,
    TransactionOut,
)


def _budget(spent, limit):
    return BudgetOut(id=1, category="Food", limit=limit, spent=spent)


def test_usage_ratio_and_warning_threshold():
    assert _budget(4500, 5000).usage_ratio == pytest.approx(0.9)
    assert _budget(4500, 5000).needs_warning
    assert not _budget(4499, 5000).needs_warning
    assert _budget(6000, 5000).needs_warning


def test_zero_limit_budget():
    assert _budget(0, 0).usage_ratio == 0
    assert not _budget(0, 0).needs_warning
    assert math.isinf(_budget(10, 0).usage_ratio)
    assert _budget(10, 0).needs_warning


def test_transaction_keeps_category_exact_and_strips_description():
    tx = TransactionIn(category=" Food ", description=" Zomato ", amount=450)
    assert tx.category == " Food "
    assert tx.description == "Zomato"
    assert tx.amount == 450.0


def test_transaction_rejects_amounts_above_cap():
    with pytest.raises(ValidationError):
        TransactionIn(category="Food", description="x", amount=1.7e308)
    assert TransactionIn(category="Food", description="x", amount=MAX_AMOUNT).amount == MAX_AMOUNT


def test_transaction_date_is_utc():
    naive = TransactionOut(id=1, description="x", amount=1, date=datetime(2026, 10, 19, 4, 56, 7))
    assert naive.date.tzinfo == timezone.utc
    assert naive.date.hour == 4

    ist = timezone(timedelta(hours=5, minutes=30))
    aware = TransactionOut(id=1, description="x", amount=1, date=datetime(2026, 10, 19, 10, 26, 7, tzinfo=ist))
    assert aware.date == datetime(2026, 10, 19, 4, 56, 7, tzinfo=timezone.utc)
    assert aware.date.tzinfo == timezone.utc


def test_credentials_keep_email_as_given():
    creds = Credentials(email="Bob@Example.COM", password="pw")
    assert creds.email == "Bob@Example.COM"
    assert Credentials(email="admin@localhost", password="pw").email == "admin@localhost"
    with pytest.raises(ValidationError):
        Credentials(email="", password="pw")


def test_transaction_rejects_non_finite_amount():
    with pytest.raises(ValidationError):
        TransactionIn(category="Food", description="x", amount=float("inf"))


def test_setup_rejects_repeated_category():
    with pytest.raises(ValidationError):
        BudgetSetupIn(budgets=[{"category": "Food", "limit": 1}, {"category": "Food", "limit": 2}])


def test_bank_account_uses_camel_case_keys():
    account = BankAccountIn.model_validate({"bankName": "HDFC", "accountNumber": "1", "ifsc": "HDFC0001234"})
    assert account.bank_name == "HDFC"
    assert account.account_number == "1"


def test_category_not_found_is_a_not_found():
    err = CategoryNotFound("Gadgets")
    assert isinstance(err, NotFound)
    assert err.status_code == 404
    assert err.msg == "Budget category 'Gadgets' not found."
