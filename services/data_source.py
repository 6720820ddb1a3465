"""
Data sources behind the planner, profile and bank-account procedures.

``LiveDataSource`` reads and writes the DynamoDB table and calls Plaid.
``DemoDataSource`` serves fixtures and acknowledges writes without
persisting them. ``Services.data_source_for`` picks one per caller.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

import plaid

from models.bank_account import (AccountUpdate, BankAccount, ProviderAccount,
                                 Transaction, TransactionsQuery)
from models.plan import (Plan, PlanCreate, PlanUpdate, ProgressEntry,
                         ProgressUpdate)
from models.profile import UserProfile
from utils.logging import log_error, setup_logger

from . import demo_data
from .dynamodb import ItemNotFoundError, PlannerTable
from .plaid_service import PlaidService

logger = setup_logger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class DataSource(ABC):
    """Operations the procedures perform on a user's data."""

    # Plans

    @abstractmethod
    def create_plan(self, user_id: str, data: PlanCreate) -> Plan: ...

    @abstractmethod
    def list_plans(self, user_id: str) -> List[Plan]: ...

    @abstractmethod
    def get_plan(self, user_id: str, plan_id: str) -> Optional[Plan]: ...

    @abstractmethod
    def update_plan(self, user_id: str, update: PlanUpdate) -> None:
        """Raises ItemNotFoundError when the plan does not exist."""

    @abstractmethod
    def record_progress(self, user_id: str, update: ProgressUpdate) -> None:
        """Raises ItemNotFoundError when the plan does not exist."""

    @abstractmethod
    def list_progress(self, user_id: str, plan_id: str) -> List[ProgressEntry]: ...

    @abstractmethod
    def delete_plan(self, user_id: str, plan_id: str) -> None: ...

    @abstractmethod
    def seed_demo_plans(self, user_id: str) -> int: ...

    # Profile

    @abstractmethod
    def get_profile(self, user_id: str) -> Optional[UserProfile]: ...

    @abstractmethod
    def update_profile(self, user_id: str, changes: Dict[str, Any]) -> None: ...

    # Bank accounts

    @abstractmethod
    def create_link_token(
        self, user_id: str, client_name: Optional[str]
    ) -> Dict[str, Any]: ...

    @abstractmethod
    def link_accounts(self, user_id: str, public_token: str) -> Dict[str, Any]: ...

    @abstractmethod
    def list_accounts(self, user_id: str) -> List[BankAccount]: ...

    @abstractmethod
    def get_transactions(
        self, user_id: str, query: TransactionsQuery
    ) -> Tuple[List[Transaction], int]:
        """Raises ItemNotFoundError when the account is unknown."""

    @abstractmethod
    def update_account(self, user_id: str, update: AccountUpdate) -> None: ...

    @abstractmethod
    def remove_account(self, user_id: str, account_id: str) -> None: ...

    @abstractmethod
    def refresh_balances(self, user_id: str) -> Dict[str, Any]: ...


class LiveDataSource(DataSource):
    def __init__(self, table: PlannerTable, plaid: Optional[PlaidService] = None):
        self.table = table
        self._plaid = plaid

    @property
    def plaid(self) -> PlaidService:
        if self._plaid is None:
            raise RuntimeError("Plaid credentials are not configured")
        return self._plaid

    def create_plan(self, user_id: str, data: PlanCreate) -> Plan:
        plan = Plan.new(user_id, data)
        self.table.put(plan)
        return plan

    def list_plans(self, user_id: str) -> List[Plan]:
        return self.table.list_plans(user_id)

    def get_plan(self, user_id: str, plan_id: str) -> Optional[Plan]:
        return self.table.get_plan(user_id, plan_id)

    def update_plan(self, user_id: str, update: PlanUpdate) -> None:
        self.table.update_plan(user_id, update.id, update.changes())

    def record_progress(self, user_id: str, update: ProgressUpdate) -> None:
        # Two separate writes: the amount can be applied while the history put fails.
        self.table.add_to_plan_amount(user_id, update.plan_id, update.amount)
        self.table.put(ProgressEntry.new(user_id, update))

    def list_progress(self, user_id: str, plan_id: str) -> List[ProgressEntry]:
        return self.table.list_progress(user_id, plan_id)

    def delete_plan(self, user_id: str, plan_id: str) -> None:
        self.table.delete_plan(user_id, plan_id)

    def seed_demo_plans(self, user_id: str) -> int:
        plans = demo_data.demo_plans(user_id)
        for plan in plans:
            self.table.put(plan)
        return len(plans)

    def get_profile(self, user_id: str) -> Optional[UserProfile]:
        return self.table.get_profile(user_id)

    def update_profile(self, user_id: str, changes: Dict[str, Any]) -> None:
        self.table.update_profile(user_id, changes)

    def create_link_token(
        self, user_id: str, client_name: Optional[str]
    ) -> Dict[str, Any]:
        return self.plaid.create_link_token(user_id, client_name)

    def _institution_name(self, institution_id: Optional[str]) -> Optional[str]:
        if not institution_id:
            return None
        try:
            return self.plaid.get_institution_name(institution_id)
        except plaid.ApiException as e:
            logger.warning(f"Could not resolve institution {institution_id}: {e}")
            return None

    def link_accounts(self, user_id: str, public_token: str) -> Dict[str, Any]:
        access_token, item_id = self.plaid.exchange_public_token(public_token)
        provider_accounts, institution_id = self.plaid.get_accounts(access_token)
        institution_name = self._institution_name(institution_id)

        now = _now()
        for account in provider_accounts:
            self.table.put(
                BankAccount(
                    id=account.account_id,
                    user_id=user_id,
                    item_id=item_id,
                    access_token=access_token,
                    institution_name=institution_name or account.name,
                    account_name=account.name,
                    account_type=account.type,
                    account_subtype=account.subtype,
                    mask=account.mask,
                    balance=account.balances,
                    is_active=True,
                    created_at=now,
                    updated_at=now,
                )
            )

        count = len(provider_accounts)
        return {
            "success": True,
            "accountsAdded": count,
            "message": f"Successfully connected {count} bank account(s)",
        }

    def list_accounts(self, user_id: str) -> List[BankAccount]:
        return self.table.list_accounts(user_id)

    def get_transactions(
        self, user_id: str, query: TransactionsQuery
    ) -> Tuple[List[Transaction], int]:
        account = self.table.get_account(user_id, query.account_id)
        if account is None or not account.access_token:
            raise ItemNotFoundError(query.account_id)
        return self.plaid.get_transactions(
            account.access_token,
            query.start_date,
            query.end_date,
            account_ids=[account.id],
        )

    def update_account(self, user_id: str, update: AccountUpdate) -> None:
        self.table.update_account(user_id, update.account_id, update.changes())

    def remove_account(self, user_id: str, account_id: str) -> None:
        self.table.delete_account(user_id, account_id)

    def refresh_account(
        self,
        account: BankAccount,
        provider_accounts: Optional[List[ProviderAccount]] = None,
    ) -> bool:
        """
        Re-fetch one account's balance and store it.

        Args:
            account: Stored account (with access token)
            provider_accounts: Accounts already fetched for the same item

        Returns:
            True if the provider still reports the account
        """
        if provider_accounts is None:
            provider_accounts, _ = self.plaid.get_accounts(account.access_token)
        for provider_account in provider_accounts:
            if provider_account.account_id == account.id:
                self.table.set_account_balance(
                    account.user_id, account.id, provider_account.balances
                )
                return True
        return False

    def refresh_balances(self, user_id: str) -> Dict[str, Any]:
        updated = 0
        fetched: Dict[str, List[ProviderAccount]] = {}
        for account in self.table.list_accounts(user_id):
            try:
                if account.access_token not in fetched:
                    fetched[account.access_token], _ = self.plaid.get_accounts(
                        account.access_token
                    )
                if self.refresh_account(account, fetched[account.access_token]):
                    updated += 1
            except Exception as e:
                log_error(logger, e, {"account_id": account.id, "user_id": user_id})

        return {
            "success": True,
            "message": f"Successfully refreshed {updated} account(s)",
            "accountsUpdated": updated,
        }


class DemoDataSource(DataSource):
    """Fixture-backed source for demo users; writes are logged, not stored."""

    def create_plan(self, user_id: str, data: PlanCreate) -> Plan:
        plan = Plan.new(user_id, data)
        logger.info("Demo mode: created plan", extra={"plan_id": plan.id})
        return plan

    def list_plans(self, user_id: str) -> List[Plan]:
        if user_id != demo_data.DEMO_USER_ID:
            return []
        return demo_data.demo_plans(user_id)

    def get_plan(self, user_id: str, plan_id: str) -> Optional[Plan]:
        for plan in self.list_plans(user_id):
            if plan.id == plan_id:
                return plan
        return None

    def update_plan(self, user_id: str, update: PlanUpdate) -> None:
        logger.info("Demo mode: updated plan", extra={"plan_id": update.id})

    def record_progress(self, user_id: str, update: ProgressUpdate) -> None:
        logger.info("Demo mode: updated progress", extra={"plan_id": update.plan_id})

    def list_progress(self, user_id: str, plan_id: str) -> List[ProgressEntry]:
        return []

    def delete_plan(self, user_id: str, plan_id: str) -> None:
        logger.info("Demo mode: deleted plan", extra={"plan_id": plan_id})

    def seed_demo_plans(self, user_id: str) -> int:
        return len(demo_data.demo_plans(user_id))

    def get_profile(self, user_id: str) -> Optional[UserProfile]:
        return demo_data.demo_profile(user_id)

    def update_profile(self, user_id: str, changes: Dict[str, Any]) -> None:
        logger.info("Demo mode: updated profile", extra={"user_id": user_id})

    def create_link_token(
        self, user_id: str, client_name: Optional[str]
    ) -> Dict[str, Any]:
        expiration = datetime.now(timezone.utc) + timedelta(hours=1)
        return {"linkToken": "link-sandbox-demo-token", "expiration": expiration.isoformat()}

    def link_accounts(self, user_id: str, public_token: str) -> Dict[str, Any]:
        return {
            "success": True,
            "accountsAdded": len(demo_data.demo_bank_accounts(user_id)),
            "message": "Demo bank accounts connected successfully",
        }

    def list_accounts(self, user_id: str) -> List[BankAccount]:
        return demo_data.demo_bank_accounts(user_id)

    def get_transactions(
        self, user_id: str, query: TransactionsQuery
    ) -> Tuple[List[Transaction], int]:
        transactions = demo_data.demo_transactions(query.account_id)
        return transactions, len(transactions)

    def update_account(self, user_id: str, update: AccountUpdate) -> None:
        logger.info("Demo mode: account update", extra={"account_id": update.account_id})

    def remove_account(self, user_id: str, account_id: str) -> None:
        logger.info("Demo mode: account removal", extra={"account_id": account_id})

    def refresh_balances(self, user_id: str) -> Dict[str, Any]:
        return {
            "success": True,
            "message": "Demo account balances refreshed",
            "accountsUpdated": len(demo_data.demo_bank_accounts(user_id)),
        }
