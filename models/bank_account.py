from datetime import date
from typing import Any, Dict, List, Tuple

from pydantic import AliasChoices, Field

from models.dynamodb import (ApiModel, DynamoDBItem, account_sk,
                             transaction_sk, user_pk)


class Balance(ApiModel):
    available: float | None = None
    current: float | None = None
    limit: float | None = None
    iso_currency_code: str | None = None
    currency: str | None = None


class ProviderAccount(ApiModel):
    """An account as reported by the banking provider."""

    account_id: str
    name: str | None = None
    official_name: str | None = None
    type: str | None = None
    subtype: str | None = None
    mask: str | None = None
    balances: Balance = Field(default_factory=Balance)


class BankAccount(DynamoDBItem):
    """
    A linked bank account.

    ``access_token`` is the provider credential for the account's item; it is
    persisted but never included in ``to_api()``.
    """

    ENTITY_TYPE = "bank_account"

    id: str = Field(..., validation_alias=AliasChoices("id", "accountId"))
    user_id: str
    item_id: str | None = None
    access_token: str | None = None
    institution_name: str | None = None
    account_name: str | None = None
    account_type: str | None = None
    account_subtype: str | None = None
    mask: str | None = None
    balance: Balance = Field(default_factory=Balance)
    is_active: bool = True
    nickname: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    def keys(self) -> Tuple[str, str]:
        return user_pk(self.user_id), account_sk(self.id)

    def to_api(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json", exclude={"access_token"})

    def to_dynamodb_item(self) -> Dict[str, Any]:
        item = super().to_dynamodb_item()
        item["accountId"] = item.pop("id")
        return item


class Transaction(ApiModel):
    transaction_id: str
    account_id: str
    amount: float
    iso_currency_code: str | None = None
    date: str
    name: str | None = None
    merchant_name: str | None = None
    category: List[str] | None = None
    subcategory: str | None = None
    type: str | None = None
    pending: bool = False
    account_owner: str | None = None


class TransactionRecord(Transaction, DynamoDBItem):
    """A transaction persisted by the bank sync job."""

    ENTITY_TYPE = "transaction"

    user_id: str
    created_at: str | None = None

    def keys(self) -> Tuple[str, str]:
        return user_pk(self.user_id), transaction_sk(self.transaction_id)


class CreateLinkTokenInput(ApiModel):
    client_name: str | None = None


class ExchangeTokenInput(ApiModel):
    public_token: str = Field(..., min_length=1)


class AccountIdInput(ApiModel):
    account_id: str = Field(..., min_length=1)


class TransactionsQuery(ApiModel):
    account_id: str = Field(..., min_length=1)
    start_date: date
    end_date: date


class AccountUpdate(ApiModel):
    account_id: str = Field(..., min_length=1)
    is_active: bool | None = None
    nickname: str | None = None

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(
            by_alias=True, exclude={"account_id"}, exclude_unset=True, exclude_none=True
        )
