"""
Client flow controller.

Drives the onboarding sequence against the HTTP API:

    WELCOME -> AUTHENTICATE -> LINK_ACCOUNT -> SET_BUDGETS -> DASHBOARD

The session token lives on the flow object and is sent with every request;
a 401/403 from any authenticated call drops the token and sends the flow
back to AUTHENTICATE.
"""

import enum
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

import httpx

from schemas import DEFAULT_BUDGETS, BankAccountOut, BudgetOut, UserOut

logger = logging.getLogger(__name__)

TOKEN_HEADER = "x-auth-token"


class ApiError(Exception):
    def __init__(self, status_code: int, msg: str):
        self.status_code = status_code
        self.msg = msg
        super().__init__(f"{status_code}: {msg}")


class SessionExpired(ApiError):
    pass


class FlowError(RuntimeError):
    pass


class BudgetClient:
    """Thin wrapper over the budget ledger HTTP API."""

    def __init__(self, http: httpx.Client):
        self.http = http

    @classmethod
    def connect(cls, base_url: str, timeout: float = 10.0) -> "BudgetClient":
        return cls(httpx.Client(base_url=base_url, timeout=timeout))

    def _call(self, method: str, path: str, token: Optional[str] = None, json=None):
        headers = {TOKEN_HEADER: token} if token else {}
        response = self.http.request(method, path, json=json, headers=headers)
        if response.status_code >= 400:
            try:
                msg = response.json().get("msg", response.text)
            except ValueError:
                msg = response.text
            if response.status_code in (401, 403):
                raise SessionExpired(response.status_code, msg)
            raise ApiError(response.status_code, msg)
        return response.json()

    def register(self, email: str, password: str) -> str:
        return self._call("POST", "/api/auth/register", json={"email": email, "password": password})["token"]

    def login(self, email: str, password: str) -> str:
        return self._call("POST", "/api/auth/login", json={"email": email, "password": password})["token"]

    def me(self, token: str) -> UserOut:
        return UserOut.model_validate(self._call("GET", "/api/auth", token))

    def budgets(self, token: str) -> List[BudgetOut]:
        return _parse_budgets(self._call("GET", "/api/budgets", token))

    def setup_budgets(self, token: str, budgets: Iterable[Tuple[str, float]]) -> List[BudgetOut]:
        body = {"budgets": [{"category": c, "limit": limit} for c, limit in budgets]}
        return _parse_budgets(self._call("POST", "/api/budgets/setup", token, json=body))

    def merge_budgets(self, token: str, budgets: Iterable[Tuple[str, float]]) -> List[BudgetOut]:
        body = {"budgets": [{"category": c, "limit": limit} for c, limit in budgets]}
        return _parse_budgets(self._call("POST", "/api/budgets/merge", token, json=body))

    def record_transaction(self, token: str, category: str, description: str, amount: float) -> List[BudgetOut]:
        body = {"category": category, "description": description, "amount": amount}
        return _parse_budgets(self._call("POST", "/api/budgets/transaction", token, json=body))

    def link_account(self, token: str, bank_name: str, account_number: str, ifsc: str) -> List[BankAccountOut]:
        body = {"bankName": bank_name, "accountNumber": account_number, "ifsc": ifsc}
        return [BankAccountOut.model_validate(a) for a in self._call("POST", "/api/accounts", token, json=body)]


def _parse_budgets(data: Dict) -> List[BudgetOut]:
    return [BudgetOut.model_validate(b) for b in data.get("budgets") or []]


class Step(enum.Enum):
    WELCOME = "welcome"
    AUTHENTICATE = "authenticate"
    LINK_ACCOUNT = "link_account"
    SET_BUDGETS = "set_budgets"
    DASHBOARD = "dashboard"


@dataclass
class SimulatedPayment:
    description: str = "Zomato Order"
    amount: float = 450


@dataclass
class CategorizationResult:
    budgets: List[BudgetOut]
    budget: Optional[BudgetOut]
    warning: bool


@dataclass
class OnboardingFlow:
    client: BudgetClient
    step: Step = Step.WELCOME
    token: Optional[str] = None
    budgets: List[BudgetOut] = field(default_factory=list)
    pending: Optional[SimulatedPayment] = None

    def _expect(self, *steps: Step) -> None:
        if self.step not in steps:
            names = ", ".join(s.value for s in steps)
            raise FlowError(f"cannot do that from {self.step.value}; expected {names}")

    def _authed(self, call, *args):
        try:
            return call(self.token, *args)
        except SessionExpired:
            logger.info("session rejected, returning to sign-in")
            self.logout()
            raise

    def logout(self) -> None:
        self.token = None
        self.budgets = []
        self.pending = None
        self.step = Step.AUTHENTICATE

    def start(self) -> Step:
        self._expect(Step.WELCOME)
        self.step = Step.AUTHENTICATE
        return self.step

    def register(self, email: str, password: str) -> Step:
        self._expect(Step.AUTHENTICATE)
        self.token = self.client.register(email, password)
        self.step = Step.LINK_ACCOUNT
        return self.step

    def login(self, email: str, password: str) -> Step:
        """Sign in; users who already have budgets go straight to the dashboard."""
        self._expect(Step.AUTHENTICATE)
        self.token = self.client.login(email, password)
        self.budgets = self._authed(self.client.budgets)
        self.step = Step.DASHBOARD if self.budgets else Step.LINK_ACCOUNT
        return self.step

    def link_account(self, bank_name: str, account_number: str, ifsc: str) -> Step:
        self._expect(Step.LINK_ACCOUNT)
        self._authed(self.client.link_account, bank_name, account_number, ifsc)
        self.step = Step.SET_BUDGETS
        return self.step

    def save_budgets(self, budgets: Iterable[Tuple[str, float]] = DEFAULT_BUDGETS) -> Step:
        self._expect(Step.SET_BUDGETS)
        self.budgets = self._authed(self.client.setup_budgets, list(budgets))
        self.step = Step.DASHBOARD
        return self.step

    def refresh(self) -> List[BudgetOut]:
        self._expect(Step.DASHBOARD)
        self.budgets = self._authed(self.client.budgets)
        return self.budgets

    def simulate_payment(self, description: str = "Zomato Order", amount: float = 450) -> SimulatedPayment:
        self._expect(Step.DASHBOARD)
        self.pending = SimulatedPayment(description, amount)
        return self.pending

    def categorize(self, category: str) -> CategorizationResult:
        self._expect(Step.DASHBOARD)
        if self.pending is None:
            raise FlowError("no simulated payment to categorize")
        payment, self.pending = self.pending, None
        self.budgets = self._authed(self.client.record_transaction, category, payment.description, payment.amount)
        budget = next((b for b in self.budgets if b.category == category), None)
        warning = bool(budget and budget.needs_warning)
        if warning:
            logger.info("%s is at %.0f%% of its limit", category, budget.usage_ratio * 100)
        return CategorizationResult(budgets=self.budgets, budget=budget, warning=warning)
