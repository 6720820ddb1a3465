"""DynamoDB key layout and item conversion for the single-table design.

Every item lives in the owning user's partition:

    pk = USER#<userId>
    sk = PROFILE#<userId> | PLAN#<planId> | PROGRESS#<planId>#<progressId>
         | ACCOUNT#<accountId> | TRANSACTION#<transactionId>
"""

import random
import string
import time
from decimal import Decimal
from typing import Any, ClassVar, Dict, Tuple

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

USER_PREFIX = "USER#"
PROFILE_PREFIX = "PROFILE#"
PLAN_PREFIX = "PLAN#"
PROGRESS_PREFIX = "PROGRESS#"
ACCOUNT_PREFIX = "ACCOUNT#"
TRANSACTION_PREFIX = "TRANSACTION#"

_ID_ALPHABET = string.ascii_lowercase + string.digits


def user_pk(user_id: str) -> str:
    return f"{USER_PREFIX}{user_id}"


def profile_sk(user_id: str) -> str:
    return f"{PROFILE_PREFIX}{user_id}"


def plan_sk(plan_id: str) -> str:
    return f"{PLAN_PREFIX}{plan_id}"


def progress_prefix(plan_id: str) -> str:
    return f"{PROGRESS_PREFIX}{plan_id}#"


def progress_sk(plan_id: str, progress_id: str) -> str:
    return f"{progress_prefix(plan_id)}{progress_id}"


def account_sk(account_id: str) -> str:
    return f"{ACCOUNT_PREFIX}{account_id}"


def transaction_sk(transaction_id: str) -> str:
    return f"{TRANSACTION_PREFIX}{transaction_id}"


def user_id_from_pk(pk: str) -> str:
    return pk[len(USER_PREFIX):] if pk.startswith(USER_PREFIX) else pk


def generate_id(prefix: str) -> str:
    """
    Generate ``<prefix>_<epoch ms>_<9 base36 chars>``.

    The millisecond part is zero-padded so ids sort chronologically.
    """
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"{prefix}_{int(time.time() * 1000):013d}_{suffix}"


def to_dynamodb(value: Any) -> Any:
    """Convert floats (recursively) to Decimal, which boto3 requires for numbers."""
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, dict):
        return {k: to_dynamodb(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_dynamodb(v) for v in value]
    return value


def from_dynamodb(value: Any) -> Any:
    """Convert Decimals (recursively) back to int or float."""
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, dict):
        return {k: from_dynamodb(v) for k, v in value.items()}
    if isinstance(value, list):
        return [from_dynamodb(v) for v in value]
    return value


class ApiModel(BaseModel):
    """Base model: snake_case in Python, camelCase on the wire and in DynamoDB."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_api(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class DynamoDBItem(ApiModel):
    """Base class for models persisted as a table item."""

    ENTITY_TYPE: ClassVar[str] = ""

    def keys(self) -> Tuple[str, str]:
        raise NotImplementedError

    def to_dynamodb_item(self) -> Dict[str, Any]:
        """Convert to DynamoDB item format."""
        pk, sk = self.keys()
        attributes = to_dynamodb(self.model_dump(by_alias=True, exclude_none=True))
        return {"pk": pk, "sk": sk, **attributes, "entityType": self.ENTITY_TYPE}

    @classmethod
    def from_dynamodb_item(cls, item: Dict[str, Any]):
        """Create an instance from a DynamoDB item (the owner falls back to the pk)."""
        if not item:
            return None
        if "userId" not in item and "pk" in item:
            item = {**item, "userId": user_id_from_pk(item["pk"])}
        return cls.model_validate(from_dynamodb(item))
