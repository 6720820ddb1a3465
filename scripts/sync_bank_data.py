#!/usr/bin/env python3
"""
Sync linked bank accounts with Plaid.

For every linked account this refreshes the stored balance and stores the
transactions of the last N days. Transactions already in the table are left
untouched, so the job can be re-run safely.
"""

import sys
from datetime import date, datetime, timedelta, timezone
from typing import Dict, List, Optional

import click

from models.bank_account import ProviderAccount, TransactionRecord
from services.container import build_services
from services.data_source import LiveDataSource
from utils.logging import log_error, setup_logger

logger = setup_logger(__name__)


def sync_user(
    source: LiveDataSource, user_id: str, days: int, dry_run: bool = False
) -> Dict[str, int]:
    """
    Sync every linked account of one user.

    Args:
        source: Live data source (table + Plaid)
        user_id: User to sync
        days: Number of days of transactions to fetch
        dry_run: Fetch from Plaid but write nothing

    Returns:
        Counters: accounts, accountsFailed, transactionsStored, transactionsSkipped
    """
    stats = {
        "accounts": 0,
        "accountsFailed": 0,
        "transactionsStored": 0,
        "transactionsSkipped": 0,
    }
    end_date = date.today()
    start_date = end_date - timedelta(days=days)
    fetched: Dict[str, List[ProviderAccount]] = {}

    for account in source.list_accounts(user_id):
        if not account.access_token:
            logger.warning(
                "Account has no access token", extra={"account_id": account.id}
            )
            continue
        try:
            if account.access_token not in fetched:
                fetched[account.access_token], _ = source.plaid.get_accounts(
                    account.access_token
                )
            if not dry_run:
                source.refresh_account(account, fetched[account.access_token])

            transactions, _ = source.plaid.get_transactions(
                account.access_token, start_date, end_date, account_ids=[account.id]
            )
            now = datetime.now(timezone.utc).isoformat()
            for transaction in transactions:
                if dry_run:
                    continue
                record = TransactionRecord(
                    **transaction.model_dump(), user_id=user_id, created_at=now
                )
                if source.table.put_transaction_if_absent(record):
                    stats["transactionsStored"] += 1
                else:
                    stats["transactionsSkipped"] += 1

            stats["accounts"] += 1
            logger.info(
                "Account synced",
                extra={
                    "user_id": user_id,
                    "account_id": account.id,
                    "transactions": len(transactions),
                    "dry_run": dry_run,
                },
            )
        except Exception as e:
            stats["accountsFailed"] += 1
            log_error(logger, e, {"user_id": user_id, "account_id": account.id})

    return stats


@click.command()
@click.option("--user-id", default=None, help="Sync a single user")
@click.option(
    "--days",
    default=30,
    type=click.IntRange(min=1),
    help="Days of transactions to fetch",
    show_default=True,
)
@click.option("--dry-run", is_flag=True, help="Fetch from Plaid without writing")
def main(user_id: Optional[str], days: int, dry_run: bool):
    """
    Refresh balances and store recent transactions for linked bank accounts.
    """
    services = build_services()
    if services.plaid is None:
        click.secho("Plaid credentials are not configured", fg="red", err=True)
        sys.exit(1)
    source = services.live

    if user_id:
        user_ids = [user_id]
    else:
        try:
            user_ids = services.table.list_account_owners()
        except Exception as e:
            log_error(logger, e, {"operation": "list_account_owners"})
            click.secho(f"Failed to list users: {e}", fg="red", err=True)
            sys.exit(1)

    if dry_run:
        click.secho("DRY RUN - nothing will be written", fg="blue")
    click.echo(f"Syncing {len(user_ids)} user(s), last {days} day(s)")

    failed_users = 0
    for uid in user_ids:
        try:
            stats = sync_user(source, uid, days, dry_run)
        except Exception as e:
            failed_users += 1
            log_error(logger, e, {"user_id": uid})
            click.secho(f"✗ {uid}: {e}", fg="red", err=True)
            continue
        click.secho(
            f"✓ {uid}: {stats['accounts']} account(s), "
            f"{stats['transactionsStored']} new transaction(s), "
            f"{stats['transactionsSkipped']} already stored, "
            f"{stats['accountsFailed']} failed",
            fg="green" if not stats["accountsFailed"] else "yellow",
        )

    click.echo(f"Done: {len(user_ids) - failed_users}/{len(user_ids)} user(s) synced")


if __name__ == "__main__":
    main()
