"""JSON endpoints exposing the KidSavings trigger points."""
from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Literal, Optional

from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..aggregation import account_balance
from ..exceptions import (
    GoalNotReachedError,
    InsufficientFundsError,
    KidSavingsError,
    NotFoundError,
    ReadOnlyAccountError,
    StorageError,
    ValidationError,
)
from ..models import Account, AllowanceConfig, GoalConfig, InterestConfig, dump_instant
from ..orchestration import CalculationSummary, ChildCalculationResult
from ..service import KidSavings

FrequencyName = Literal["weekly", "bi-weekly", "monthly"]


class RecalculationInProgressError(KidSavingsError):
    """Raised when a second recalculation is requested while one is running."""


class ParentIn(BaseModel):
    name: str


class ChildIn(BaseModel):
    name: str
    avatar: Optional[str] = None


class AllowanceIn(BaseModel):
    enabled: bool = False
    amount: Optional[int] = None
    frequency: Optional[FrequencyName] = None


class InterestIn(BaseModel):
    enabled: bool = False
    type: Optional[Literal["Absolute", "Percentage"]] = None
    value: Optional[float] = None
    frequency: Optional[FrequencyName] = None


class GoalIn(BaseModel):
    name: str
    cost: int


class AccountIn(BaseModel):
    name: str
    type: Literal["Savings", "Goal"] = "Savings"
    allowance: Optional[AllowanceIn] = None
    interest: Optional[InterestIn] = None
    goal: Optional[GoalIn] = None


class ConfigIn(BaseModel):
    allowance: Optional[AllowanceIn] = None
    interest: Optional[InterestIn] = None


class TransactionIn(BaseModel):
    amount: int
    description: str = ""


class TransferIn(BaseModel):
    from_account: str
    to_account: str
    amount: int


def _allowance(data: Optional[AllowanceIn]) -> Optional[AllowanceConfig]:
    if data is None:
        return None
    return AllowanceConfig(enabled=data.enabled, amount=data.amount, frequency=data.frequency)


def _interest(data: Optional[InterestIn]) -> Optional[InterestConfig]:
    if data is None:
        return None
    value: Optional[float | int] = data.value
    if value is not None and float(value).is_integer():
        value = int(value)
    return InterestConfig(enabled=data.enabled, type=data.type, value=value, frequency=data.frequency)


def _account_payload(account: Account) -> Dict[str, Any]:
    payload = account.to_dict()
    payload["balance"] = account_balance(account)
    payload["readOnly"] = account.is_read_only
    return payload


def _child_result_payload(result: ChildCalculationResult) -> Dict[str, Any]:
    return {
        "child": result.child_name,
        "clockSkew": result.clock_skew_detected,
        "accountsProcessed": result.accounts_processed,
        "accruals": result.total_accruals,
        "accruedAmount": result.total_accrued_amount,
        "balance": result.new_balance,
        "errors": list(result.errors),
    }


def _summary_payload(summary: CalculationSummary) -> Dict[str, Any]:
    return {
        "success": summary.success,
        "childrenProcessed": summary.children_processed,
        "accruals": summary.total_accruals,
        "accruedAmount": summary.total_accrued_amount,
        "durationMs": summary.duration_ms,
        "clockSkew": list(summary.clock_skew_children),
        "errors": summary.errors,
        "results": [_child_result_payload(result) for result in summary.results],
    }


_STATUS_BY_ERROR = (
    (NotFoundError, 404),
    (ValidationError, 422),
    (ReadOnlyAccountError, 409),
    (InsufficientFundsError, 409),
    (GoalNotReachedError, 409),
    (RecalculationInProgressError, 409),
    (StorageError, 500),
)


def create_app(bank: KidSavings | None = None) -> FastAPI:
    bank = bank or KidSavings.from_settings()
    app = FastAPI(title="KidSavings")
    app.state.bank = bank
    app.state.run_lock = threading.Lock()

    @contextmanager
    def single_run() -> Iterator[None]:
        if not app.state.run_lock.acquire(blocking=False):
            raise RecalculationInProgressError("A balance calculation is already running.")
        try:
            yield
        finally:
            app.state.run_lock.release()

    @app.exception_handler(KidSavingsError)
    async def handle_domain_error(request: Request, exc: KidSavingsError) -> JSONResponse:
        status = 400
        for error_type, code in _STATUS_BY_ERROR:
            if isinstance(exc, error_type):
                status = code
                break
        bank.logger.log("request_failed", path=request.url.path, status=status, error=str(exc))
        message = "Storage is unavailable." if status == 500 else str(exc)
        return JSONResponse({"detail": message}, status_code=status)

    @app.get("/health")
    def health() -> Dict[str, Any]:
        return {"status": "ok", "onboarded": bank.is_onboarded()}

    @app.post("/parent")
    def setup_parent(payload: ParentIn) -> Dict[str, Any]:
        return bank.setup_parent(payload.name).to_dict()

    @app.post("/recalculate")
    def recalculate_all() -> Dict[str, Any]:
        with single_run():
            return _summary_payload(bank.recalculate_all())

    @app.get("/children")
    def list_children() -> Dict[str, Any]:
        return {"children": [child.to_dict() for child in bank.list_children()]}

    @app.post("/children", status_code=201)
    def create_child(payload: ChildIn) -> Dict[str, Any]:
        return bank.create_child(payload.name, avatar=payload.avatar).to_dict()

    @app.get("/children/{child}")
    def get_child(child: str) -> Dict[str, Any]:
        return bank.get_child(child).to_dict()

    @app.get("/children/{child}/summary")
    def child_summary(child: str) -> Dict[str, Any]:
        summary = bank.child_summary(child)
        return {
            "name": summary.name,
            "avatar": summary.avatar,
            "totalBalance": summary.total_balance,
            "accountCount": summary.account_count,
            "activeAccountCount": summary.active_account_count,
            "achievedGoalCount": summary.achieved_goal_count,
            "lastCalculationTime": dump_instant(summary.last_calculation_time),
        }

    @app.delete("/children/{child}")
    def delete_child(child: str) -> Dict[str, Any]:
        bank.delete_child(child)
        return {"deleted": child}

    @app.post("/children/{child}/recalculate")
    def recalculate_child(child: str) -> Dict[str, Any]:
        with single_run():
            return _child_result_payload(bank.recalculate(child))

    @app.get("/children/{child}/accounts")
    def list_accounts(child: str) -> Dict[str, Any]:
        return {"accounts": [_account_payload(account) for account in bank.list_accounts(child)]}

    @app.post("/children/{child}/accounts", status_code=201)
    def create_account(child: str, payload: AccountIn) -> Dict[str, Any]:
        goal = GoalConfig(name=payload.goal.name, cost=payload.goal.cost) if payload.goal else None
        with single_run():
            account = bank.create_account(
                child,
                payload.name,
                payload.type,
                allowance=_allowance(payload.allowance),
                interest=_interest(payload.interest),
                goal=goal,
            )
        return _account_payload(account)

    @app.get("/children/{child}/accounts/{account}")
    def get_account(child: str, account: str) -> Dict[str, Any]:
        return _account_payload(bank.get_account(child, account))

    @app.put("/children/{child}/accounts/{account}/config")
    def update_config(child: str, account: str, payload: ConfigIn) -> Dict[str, Any]:
        with single_run():
            updated = bank.update_configuration(
                child,
                account,
                allowance=_allowance(payload.allowance),
                interest=_interest(payload.interest),
            )
        return _account_payload(updated)

    @app.delete("/children/{child}/accounts/{account}")
    def delete_account(child: str, account: str, confirm: bool = Query(False)) -> Dict[str, Any]:
        with single_run():
            bank.delete_account(child, account, confirm_if_achieved=confirm)
        return {"deleted": account}

    @app.get("/children/{child}/accounts/{account}/ledger")
    def ledger(child: str, account: str, limit: int = Query(10, ge=0)) -> Dict[str, Any]:
        entries = bank.recent_entries(child, account, limit)
        return {"entries": [entry.to_dict() for entry in entries]}

    @app.post("/children/{child}/accounts/{account}/deposit")
    def deposit(child: str, account: str, payload: TransactionIn) -> Dict[str, Any]:
        with single_run():
            entry = bank.deposit(child, account, payload.amount, payload.description or "Deposit")
        return {"entry": entry.to_dict(), "balance": bank.account_balance(child, account)}

    @app.post("/children/{child}/accounts/{account}/withdraw")
    def withdraw(child: str, account: str, payload: TransactionIn) -> Dict[str, Any]:
        with single_run():
            result = bank.withdraw(child, account, payload.amount, payload.description or "Withdrawal")
        return {
            "entry": result.entry.to_dict(),
            "requested": result.requested_amount,
            "amount": result.actual_amount,
            "capped": result.was_capped,
            "message": result.capped_message,
            "balance": bank.account_balance(child, account),
        }

    @app.post("/children/{child}/transfers")
    def transfer(child: str, payload: TransferIn) -> Dict[str, Any]:
        with single_run():
            result = bank.transfer(child, payload.from_account, payload.to_account, payload.amount)
        return {
            "from": result.from_account,
            "to": result.to_account,
            "requested": result.requested_amount,
            "amount": result.actual_amount,
            "capped": result.was_capped,
            "message": result.capped_message,
            "timestamp": dump_instant(result.withdraw_entry.timestamp),
        }

    @app.post("/children/{child}/accounts/{account}/goal/achieve")
    def achieve_goal(child: str, account: str) -> Dict[str, Any]:
        with single_run():
            updated = bank.mark_goal_achieved(child, account)
        return _account_payload(updated)

    return app


__all__ = ["RecalculationInProgressError", "create_app"]
