"""
DynamoDB service for the Coinly planner table.

All entities share one table keyed by ``pk``/``sk`` (see models.dynamodb).
The boto3 Table is created once and injected, so Lambda warm starts reuse
the connection and tests can substitute a fake.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import boto3
import botocore

from models.bank_account import Balance, BankAccount, TransactionRecord
from models.dynamodb import (ACCOUNT_PREFIX, PLAN_PREFIX, DynamoDBItem,
                             account_sk, plan_sk, profile_sk, progress_prefix,
                             to_dynamodb, user_id_from_pk, user_pk)
from models.plan import Plan, ProgressEntry
from models.profile import UserProfile
from utils.logging import setup_logger

logger = setup_logger(__name__)

CONDITIONAL_CHECK_FAILED = "ConditionalCheckFailedException"


class ItemNotFoundError(Exception):
    """A conditioned write targeted an item that does not exist."""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _error_code(err: botocore.exceptions.ClientError) -> str:
    return err.response.get("Error", {}).get("Code", "")


def build_set_expression(
    changes: Dict[str, Any],
) -> Tuple[str, Dict[str, str], Dict[str, Any]]:
    """
    Build ``SET #f0 = :f0, ...`` with placeholder names and values.

    :param changes: Attribute name -> new value.
    :return: (expression, ExpressionAttributeNames, ExpressionAttributeValues)
    """
    assignments = []
    names: Dict[str, str] = {}
    values: Dict[str, Any] = {}
    for index, (attribute, value) in enumerate(changes.items()):
        names[f"#f{index}"] = attribute
        values[f":f{index}"] = to_dynamodb(value)
        assignments.append(f"#f{index} = :f{index}")
    return "SET " + ", ".join(assignments), names, values


class PlannerTable:
    """
    Encapsulates operations on the Amazon DynamoDB planner table.
    """

    def __init__(
        self,
        table_name: str,
        region_name: Optional[str] = None,
        table: Any = None,
    ):
        """
        Initialize the DynamoDB table connection.

        :param table_name: Name of the DynamoDB table.
        :param region_name: AWS region of the table.
        :param table: Pre-built boto3 Table (or compatible fake) to use instead.
        """
        if table is None:
            table = boto3.resource("dynamodb", region_name=region_name).Table(
                table_name
            )
        self.table = table
        self.table_name = table_name

    def _log_client_error(self, action: str, err: botocore.exceptions.ClientError):
        logger.error(
            "Couldn't %s in table %s. Error: %s: %s",
            action,
            self.table_name,
            _error_code(err),
            err.response.get("Error", {}).get("Message", ""),
        )

    def _query_prefix(
        self, user_id: str, sk_prefix: str, newest_first: bool = False
    ) -> List[Dict[str, Any]]:
        """Query one user's partition for sort keys starting with sk_prefix."""
        kwargs: Dict[str, Any] = {
            "KeyConditionExpression": "pk = :pk AND begins_with(sk, :sk_prefix)",
            "ExpressionAttributeValues": {
                ":pk": user_pk(user_id),
                ":sk_prefix": sk_prefix,
            },
            "ScanIndexForward": not newest_first,
        }
        items: List[Dict[str, Any]] = []
        while True:
            response = self.table.query(**kwargs)
            items.extend(response.get("Items", []))
            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                return items
            kwargs["ExclusiveStartKey"] = last_key

    def _update(
        self,
        key: Dict[str, str],
        changes: Dict[str, Any],
        must_exist: bool,
        action: str,
    ) -> None:
        expression, names, values = build_set_expression(changes)
        kwargs: Dict[str, Any] = {
            "Key": key,
            "UpdateExpression": expression,
            "ExpressionAttributeNames": names,
            "ExpressionAttributeValues": values,
        }
        if must_exist:
            kwargs["ConditionExpression"] = "attribute_exists(pk)"
        try:
            self.table.update_item(**kwargs)
        except botocore.exceptions.ClientError as err:
            if must_exist and _error_code(err) == CONDITIONAL_CHECK_FAILED:
                raise ItemNotFoundError(action) from err
            self._log_client_error(action, err)
            raise

    def put(self, item: DynamoDBItem) -> bool:
        """
        Write an item, replacing any existing item with the same key.

        :param item: The model to store.
        :return: True if successful, raises exception otherwise.
        """
        try:
            self.table.put_item(Item=item.to_dynamodb_item())
            return True
        except botocore.exceptions.ClientError as err:
            self._log_client_error(f"put {item.ENTITY_TYPE}", err)
            raise

    # Plans

    def get_plan(self, user_id: str, plan_id: str) -> Optional[Plan]:
        """
        Gets a plan from the table.

        :param user_id: Owner of the plan.
        :param plan_id: The plan id.
        :return: The plan if found, None otherwise.
        """
        try:
            response = self.table.get_item(
                Key={"pk": user_pk(user_id), "sk": plan_sk(plan_id)}
            )
            return Plan.from_dynamodb_item(response.get("Item"))
        except botocore.exceptions.ClientError as err:
            self._log_client_error(f"get plan {plan_id}", err)
            raise

    def list_plans(self, user_id: str) -> List[Plan]:
        """
        Lists all plans for a user.

        :param user_id: Owner of the plans.
        :return: A list of plans.
        """
        try:
            items = self._query_prefix(user_id, PLAN_PREFIX)
            return [Plan.from_dynamodb_item(item) for item in items]
        except botocore.exceptions.ClientError as err:
            self._log_client_error(f"list plans for {user_id}", err)
            raise

    def update_plan(self, user_id: str, plan_id: str, changes: Dict[str, Any]) -> None:
        """
        Applies a partial update to an existing plan.

        :param user_id: Owner of the plan.
        :param plan_id: The plan id.
        :param changes: Attribute name -> value; updatedAt is always set.
        :raises ItemNotFoundError: The plan does not exist.
        """
        self._update(
            {"pk": user_pk(user_id), "sk": plan_sk(plan_id)},
            {**changes, "updatedAt": _now()},
            must_exist=True,
            action=f"update plan {plan_id}",
        )

    def add_to_plan_amount(self, user_id: str, plan_id: str, amount: float) -> None:
        """
        Atomically increments a plan's currentAmount.

        :raises ItemNotFoundError: The plan does not exist.
        """
        try:
            self.table.update_item(
                Key={"pk": user_pk(user_id), "sk": plan_sk(plan_id)},
                UpdateExpression="ADD #amount :amount SET #updatedAt = :updatedAt",
                ConditionExpression="attribute_exists(pk)",
                ExpressionAttributeNames={
                    "#amount": "currentAmount",
                    "#updatedAt": "updatedAt",
                },
                ExpressionAttributeValues={
                    ":amount": to_dynamodb(float(amount)),
                    ":updatedAt": _now(),
                },
            )
        except botocore.exceptions.ClientError as err:
            if _error_code(err) == CONDITIONAL_CHECK_FAILED:
                raise ItemNotFoundError(plan_id) from err
            self._log_client_error(f"add progress to plan {plan_id}", err)
            raise

    def list_progress(self, user_id: str, plan_id: str) -> List[ProgressEntry]:
        """
        Lists a plan's progress history, most recent first.
        """
        try:
            items = self._query_prefix(
                user_id, progress_prefix(plan_id), newest_first=True
            )
            return [ProgressEntry.from_dynamodb_item(item) for item in items]
        except botocore.exceptions.ClientError as err:
            self._log_client_error(f"list progress for plan {plan_id}", err)
            raise

    def delete_plan(self, user_id: str, plan_id: str) -> bool:
        """
        Deletes a plan. Its progress entries are left in place.

        :return: True if successful, raises exception otherwise.
        """
        try:
            self.table.delete_item(Key={"pk": user_pk(user_id), "sk": plan_sk(plan_id)})
            return True
        except botocore.exceptions.ClientError as err:
            self._log_client_error(f"delete plan {plan_id}", err)
            raise

    # Profile

    def get_profile(self, user_id: str) -> Optional[UserProfile]:
        try:
            response = self.table.get_item(
                Key={"pk": user_pk(user_id), "sk": profile_sk(user_id)}
            )
            return UserProfile.from_dynamodb_item(response.get("Item"))
        except botocore.exceptions.ClientError as err:
            self._log_client_error(f"get profile for {user_id}", err)
            raise

    def update_profile(self, user_id: str, changes: Dict[str, Any]) -> None:
        """
        Sets the given profile attributes plus updatedAt (creating the item if needed).
        """
        self._update(
            {"pk": user_pk(user_id), "sk": profile_sk(user_id)},
            {**changes, "updatedAt": _now()},
            must_exist=False,
            action=f"update profile for {user_id}",
        )

    # Bank accounts

    def list_accounts(self, user_id: str) -> List[BankAccount]:
        try:
            items = self._query_prefix(user_id, ACCOUNT_PREFIX)
            return [BankAccount.from_dynamodb_item(item) for item in items]
        except botocore.exceptions.ClientError as err:
            self._log_client_error(f"list accounts for {user_id}", err)
            raise

    def get_account(self, user_id: str, account_id: str) -> Optional[BankAccount]:
        try:
            response = self.table.get_item(
                Key={"pk": user_pk(user_id), "sk": account_sk(account_id)}
            )
            return BankAccount.from_dynamodb_item(response.get("Item"))
        except botocore.exceptions.ClientError as err:
            self._log_client_error(f"get account {account_id}", err)
            raise

    def update_account(
        self, user_id: str, account_id: str, changes: Dict[str, Any]
    ) -> None:
        """
        :raises ItemNotFoundError: The account does not exist.
        """
        self._update(
            {"pk": user_pk(user_id), "sk": account_sk(account_id)},
            {**changes, "updatedAt": _now()},
            must_exist=True,
            action=f"update account {account_id}",
        )

    def set_account_balance(
        self, user_id: str, account_id: str, balance: Balance
    ) -> None:
        self.update_account(
            user_id, account_id, {"balance": balance.model_dump(by_alias=True, exclude_none=True)}
        )

    def delete_account(self, user_id: str, account_id: str) -> bool:
        try:
            self.table.delete_item(
                Key={"pk": user_pk(user_id), "sk": account_sk(account_id)}
            )
            return True
        except botocore.exceptions.ClientError as err:
            self._log_client_error(f"delete account {account_id}", err)
            raise

    def list_account_owners(self) -> List[str]:
        """
        Scans the table for users with at least one linked account.

        :return: Sorted distinct user ids.
        """
        kwargs: Dict[str, Any] = {
            "FilterExpression": "begins_with(sk, :sk_prefix)",
            "ExpressionAttributeValues": {":sk_prefix": ACCOUNT_PREFIX},
            "ProjectionExpression": "pk",
        }
        owners = set()
        try:
            while True:
                response = self.table.scan(**kwargs)
                for item in response.get("Items", []):
                    owners.add(user_id_from_pk(item["pk"]))
                last_key = response.get("LastEvaluatedKey")
                if not last_key:
                    return sorted(owners)
                kwargs["ExclusiveStartKey"] = last_key
        except botocore.exceptions.ClientError as err:
            self._log_client_error("scan for account owners", err)
            raise

    # Transactions

    def put_transaction_if_absent(self, record: TransactionRecord) -> bool:
        """
        Stores a transaction unless one with the same id already exists.

        :return: True if written, False if it was already present.
        """
        try:
            self.table.put_item(
                Item=record.to_dynamodb_item(),
                ConditionExpression="attribute_not_exists(pk)",
            )
            return True
        except botocore.exceptions.ClientError as err:
            if _error_code(err) == CONDITIONAL_CHECK_FAILED:
                return False
            self._log_client_error(
                f"put transaction {record.transaction_id}", err
            )
            raise
