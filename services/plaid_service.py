"""
Plaid banking provider integration (plaid-python).

Provider errors (``plaid.ApiException``) are logged and re-raised; the
procedures map them to their documented RPC errors.
"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple

import plaid
from plaid.api import plaid_api
from plaid.model.accounts_get_request import AccountsGetRequest
from plaid.model.country_code import CountryCode
from plaid.model.institutions_get_by_id_request import \
    InstitutionsGetByIdRequest
from plaid.model.item_public_token_exchange_request import \
    ItemPublicTokenExchangeRequest
from plaid.model.link_token_create_request import LinkTokenCreateRequest
from plaid.model.link_token_create_request_user import \
    LinkTokenCreateRequestUser
from plaid.model.products import Products
from plaid.model.transactions_get_request import TransactionsGetRequest
from plaid.model.transactions_get_request_options import \
    TransactionsGetRequestOptions

from models.bank_account import Balance, ProviderAccount, Transaction
from utils.logging import log_error, setup_logger

logger = setup_logger(__name__)

DEFAULT_CLIENT_NAME = "Coinly Financial Planner"
TRANSACTIONS_PAGE_SIZE = 500


def plaid_host(env: str) -> str:
    """Map PLAID_ENV to an API host; anything but production uses the sandbox."""
    if env.lower() == "production":
        return plaid.Environment.Production
    return plaid.Environment.Sandbox


def _iso(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


class PlaidService:
    """Wraps the Plaid API client."""

    def __init__(
        self,
        client: plaid_api.PlaidApi,
        webhook_url: Optional[str] = None,
        redirect_uri: Optional[str] = None,
    ):
        self.client = client
        self.webhook_url = webhook_url
        self.redirect_uri = redirect_uri

    @classmethod
    def from_credentials(
        cls,
        client_id: str,
        secret: str,
        env: str = "sandbox",
        webhook_url: Optional[str] = None,
        redirect_uri: Optional[str] = None,
    ) -> "PlaidService":
        configuration = plaid.Configuration(
            host=plaid_host(env),
            api_key={"clientId": client_id, "secret": secret},
        )
        client = plaid_api.PlaidApi(plaid.ApiClient(configuration))
        return cls(client, webhook_url=webhook_url, redirect_uri=redirect_uri)

    def create_link_token(
        self, user_id: str, client_name: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Create a link token for Plaid Link initialization.

        Returns:
            {"linkToken", "expiration"}
        """
        kwargs: Dict[str, Any] = {
            "user": LinkTokenCreateRequestUser(client_user_id=user_id),
            "client_name": client_name or DEFAULT_CLIENT_NAME,
            "products": [Products("transactions"), Products("auth")],
            "country_codes": [CountryCode("US")],
            "language": "en",
        }
        if self.webhook_url:
            kwargs["webhook"] = self.webhook_url
        if self.redirect_uri:
            kwargs["redirect_uri"] = self.redirect_uri

        try:
            response = self.client.link_token_create(LinkTokenCreateRequest(**kwargs))
        except plaid.ApiException as e:
            log_error(logger, e, {"operation": "link_token_create", "user_id": user_id})
            raise

        return {
            "linkToken": response["link_token"],
            "expiration": _iso(response["expiration"]),
        }

    def exchange_public_token(self, public_token: str) -> Tuple[str, str]:
        """
        Exchange a public token for an access token.

        Returns:
            (access_token, item_id)
        """
        try:
            response = self.client.item_public_token_exchange(
                ItemPublicTokenExchangeRequest(public_token=public_token)
            )
        except plaid.ApiException as e:
            log_error(logger, e, {"operation": "item_public_token_exchange"})
            raise
        return response["access_token"], response["item_id"]

    def get_accounts(
        self, access_token: str
    ) -> Tuple[List[ProviderAccount], Optional[str]]:
        """
        Fetch the accounts (with balances) of an item.

        Returns:
            (accounts, institution_id)
        """
        try:
            response = self.client.accounts_get(
                AccountsGetRequest(access_token=access_token)
            ).to_dict()
        except plaid.ApiException as e:
            log_error(logger, e, {"operation": "accounts_get"})
            raise

        accounts = []
        for account in response.get("accounts", []):
            balances = account.get("balances") or {}
            accounts.append(
                ProviderAccount(
                    account_id=account["account_id"],
                    name=account.get("name"),
                    official_name=account.get("official_name"),
                    type=_iso(account.get("type")),
                    subtype=_iso(account.get("subtype")),
                    mask=account.get("mask"),
                    balances=Balance(
                        available=balances.get("available"),
                        current=balances.get("current"),
                        limit=balances.get("limit"),
                        iso_currency_code=balances.get("iso_currency_code"),
                    ),
                )
            )
        institution_id = (response.get("item") or {}).get("institution_id")
        return accounts, institution_id

    def get_transactions(
        self,
        access_token: str,
        start_date: date,
        end_date: date,
        account_ids: Optional[List[str]] = None,
    ) -> Tuple[List[Transaction], int]:
        """
        Fetch all transactions in a date range, following Plaid's offset paging.

        Returns:
            (transactions, total_transactions)
        """
        transactions: List[Transaction] = []
        total = 0
        while True:
            options = {"count": TRANSACTIONS_PAGE_SIZE, "offset": len(transactions)}
            if account_ids:
                options["account_ids"] = account_ids
            try:
                response = self.client.transactions_get(
                    TransactionsGetRequest(
                        access_token=access_token,
                        start_date=start_date,
                        end_date=end_date,
                        options=TransactionsGetRequestOptions(**options),
                    )
                ).to_dict()
            except plaid.ApiException as e:
                log_error(logger, e, {"operation": "transactions_get"})
                raise

            page = response.get("transactions", [])
            transactions.extend(self._to_transaction(t) for t in page)
            total = response.get("total_transactions", len(transactions))
            if not page or len(transactions) >= total:
                return transactions, total

    def get_institution_name(self, institution_id: str) -> Optional[str]:
        try:
            response = self.client.institutions_get_by_id(
                InstitutionsGetByIdRequest(
                    institution_id=institution_id, country_codes=[CountryCode("US")]
                )
            )
        except plaid.ApiException as e:
            log_error(logger, e, {"operation": "institutions_get_by_id"})
            raise
        return response["institution"]["name"]

    @staticmethod
    def _to_transaction(data: Dict[str, Any]) -> Transaction:
        category = data.get("category")
        return Transaction(
            transaction_id=data["transaction_id"],
            account_id=data["account_id"],
            amount=data["amount"],
            iso_currency_code=data.get("iso_currency_code"),
            date=_iso(data.get("date")),
            name=data.get("name"),
            merchant_name=data.get("merchant_name"),
            category=category,
            subcategory=category[0] if category else None,
            type=_iso(data.get("transaction_type")),
            pending=bool(data.get("pending")),
            account_owner=data.get("account_owner"),
        )
