"""
Bank account procedures backed by Plaid.
"""

from models.bank_account import (AccountIdInput, AccountUpdate,
                                 CreateLinkTokenInput, ExchangeTokenInput,
                                 TransactionsQuery)
from services.dynamodb import ItemNotFoundError
from utils.decorators import require_auth, require_permission, validate_input
from utils.logging import setup_logger
from utils.rpc import Router, RpcError

logger = setup_logger(__name__)

router = Router()


def _source(ctx):
    return ctx.services.data_source_for(ctx.user)


@router.mutation("createLinkToken")
@require_auth
@require_permission("write")
@validate_input(CreateLinkTokenInput)
def create_link_token(ctx, data: CreateLinkTokenInput):
    """
    Create a Plaid Link token for connecting a bank.

    Returns:
        {"linkToken", "expiration"}
    """
    try:
        return _source(ctx).create_link_token(ctx.user.user_id, data.client_name)
    except Exception as e:
        raise RpcError("INTERNAL_SERVER_ERROR", "Failed to create link token", cause=e)


@router.mutation("exchangeToken")
@require_auth
@require_permission("write")
@validate_input(ExchangeTokenInput)
def exchange_token(ctx, data: ExchangeTokenInput):
    """
    Exchange a Link public token and store every account of the new item.

    Returns:
        {"success", "accountsAdded", "message"}
    """
    try:
        result = _source(ctx).link_accounts(ctx.user.user_id, data.public_token)
    except Exception as e:
        raise RpcError(
            "INTERNAL_SERVER_ERROR", "Failed to connect bank account", cause=e
        )
    logger.info(
        "Bank accounts linked",
        extra={"user_id": ctx.user.user_id, "accounts_added": result["accountsAdded"]},
    )
    return result


@router.query("getAccounts")
@require_auth
def get_accounts(ctx, raw_input):
    try:
        accounts = _source(ctx).list_accounts(ctx.user.user_id)
    except Exception as e:
        raise RpcError("INTERNAL_SERVER_ERROR", "Failed to fetch bank accounts", cause=e)
    return [account.to_api() for account in accounts]


@router.query("getTransactions")
@require_auth
@validate_input(TransactionsQuery)
def get_transactions(ctx, data: TransactionsQuery):
    try:
        transactions, total = _source(ctx).get_transactions(ctx.user.user_id, data)
    except ItemNotFoundError:
        raise RpcError("NOT_FOUND", "Bank account not found")
    except Exception as e:
        raise RpcError("INTERNAL_SERVER_ERROR", "Failed to fetch transactions", cause=e)
    return {
        "transactions": [transaction.to_api() for transaction in transactions],
        "totalTransactions": total,
    }


@router.mutation("updateAccount")
@require_auth
@require_permission("write")
@validate_input(AccountUpdate)
def update_account(ctx, data: AccountUpdate):
    try:
        _source(ctx).update_account(ctx.user.user_id, data)
    except ItemNotFoundError:
        raise RpcError("NOT_FOUND", "Bank account not found")
    except Exception as e:
        raise RpcError("INTERNAL_SERVER_ERROR", "Failed to update account", cause=e)
    return {"success": True}


@router.mutation("removeAccount")
@require_auth
@require_permission("write")
@validate_input(AccountIdInput)
def remove_account(ctx, data: AccountIdInput):
    try:
        _source(ctx).remove_account(ctx.user.user_id, data.account_id)
    except Exception as e:
        raise RpcError("INTERNAL_SERVER_ERROR", "Failed to remove account", cause=e)
    return {"success": True}


@router.mutation("refreshBalances")
@require_auth
@require_permission("write")
def refresh_balances(ctx, raw_input):
    """Re-fetch balances for all of the caller's accounts; failing accounts are skipped."""
    try:
        return _source(ctx).refresh_balances(ctx.user.user_id)
    except Exception as e:
        raise RpcError(
            "INTERNAL_SERVER_ERROR", "Failed to refresh account balances", cause=e
        )
