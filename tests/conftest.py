import copy
import json
import re
from typing import Any, Dict, List, Optional, Tuple
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from handlers import app_router
from models.session import SessionUser
from services.config import load_settings
from services.container import build_services
from services.demo_data import DEMO_USER_ID
from services.plaid_service import PlaidService
from utils.context import RequestContext
from utils.rpc import QUERY, handle_rpc_request


def conditional_check_failed(operation: str) -> ClientError:
    return ClientError(
        {
            "Error": {
                "Code": "ConditionalCheckFailedException",
                "Message": "The conditional request failed",
            }
        },
        operation,
    )


class FakeTable:
    """
    In-memory stand-in for the boto3 Table calls PlannerTable makes.

    Supports the expressions the application uses: ``pk = :pk AND
    begins_with(sk, :sk_prefix)`` queries, ``begins_with(sk, :sk_prefix)``
    scans, ``SET``/``ADD`` updates and ``attribute_exists(pk)`` /
    ``attribute_not_exists(pk)`` conditions. ``page_size`` forces paging.
    """

    def __init__(self, page_size: Optional[int] = None):
        self.items: Dict[Tuple[str, str], Dict[str, Any]] = {}
        self.page_size = page_size

    def _check(self, condition: Optional[str], key: Tuple[str, str], operation: str):
        if condition == "attribute_exists(pk)" and key not in self.items:
            raise conditional_check_failed(operation)
        if condition == "attribute_not_exists(pk)" and key in self.items:
            raise conditional_check_failed(operation)

    def _page(self, items: List[Dict[str, Any]], start_key: Optional[Dict[str, str]]):
        if start_key:
            keys = [(item["pk"], item["sk"]) for item in items]
            items = items[keys.index((start_key["pk"], start_key["sk"])) + 1:]
        if self.page_size and len(items) > self.page_size:
            page = items[: self.page_size]
            last = page[-1]
            return {
                "Items": copy.deepcopy(page),
                "LastEvaluatedKey": {"pk": last["pk"], "sk": last["sk"]},
            }
        return {"Items": copy.deepcopy(items)}

    def put_item(self, Item, ConditionExpression=None):
        key = (Item["pk"], Item["sk"])
        self._check(ConditionExpression, key, "PutItem")
        self.items[key] = copy.deepcopy(Item)
        return {}

    def get_item(self, Key):
        item = self.items.get((Key["pk"], Key["sk"]))
        return {"Item": copy.deepcopy(item)} if item else {}

    def delete_item(self, Key):
        self.items.pop((Key["pk"], Key["sk"]), None)
        return {}

    def query(
        self,
        KeyConditionExpression,
        ExpressionAttributeValues,
        ScanIndexForward=True,
        ExclusiveStartKey=None,
    ):
        assert KeyConditionExpression == "pk = :pk AND begins_with(sk, :sk_prefix)"
        pk = ExpressionAttributeValues[":pk"]
        prefix = ExpressionAttributeValues[":sk_prefix"]
        matched = sorted(
            (
                item
                for (item_pk, item_sk), item in self.items.items()
                if item_pk == pk and item_sk.startswith(prefix)
            ),
            key=lambda item: item["sk"],
            reverse=not ScanIndexForward,
        )
        return self._page(matched, ExclusiveStartKey)

    def scan(
        self,
        FilterExpression,
        ExpressionAttributeValues,
        ProjectionExpression=None,
        ExclusiveStartKey=None,
    ):
        assert FilterExpression == "begins_with(sk, :sk_prefix)"
        prefix = ExpressionAttributeValues[":sk_prefix"]
        matched = sorted(
            (item for item in self.items.values() if item["sk"].startswith(prefix)),
            key=lambda item: (item["pk"], item["sk"]),
        )
        return self._page(matched, ExclusiveStartKey)

    def update_item(
        self,
        Key,
        UpdateExpression,
        ExpressionAttributeNames=None,
        ExpressionAttributeValues=None,
        ConditionExpression=None,
    ):
        key = (Key["pk"], Key["sk"])
        self._check(ConditionExpression, key, "UpdateItem")
        names = ExpressionAttributeNames or {}
        values = ExpressionAttributeValues or {}
        item = self.items.setdefault(key, {"pk": key[0], "sk": key[1]})

        clauses = re.findall(r"(SET|ADD)\s+(.*?)(?=\s+(?:SET|ADD)\s+|$)", UpdateExpression)
        for action, body in clauses:
            for assignment in body.split(","):
                if action == "SET":
                    name, value = [part.strip() for part in assignment.split("=")]
                    item[names[name]] = copy.deepcopy(values[value])
                else:
                    name, value = assignment.split()
                    attribute = names[name]
                    item[attribute] = item.get(attribute, 0) + values[value]
        return {}

    def items_with_prefix(self, sk_prefix: str) -> List[Dict[str, Any]]:
        return [item for (_, sk), item in self.items.items() if sk.startswith(sk_prefix)]


@pytest.fixture
def settings():
    return load_settings(
        {
            "APP_ENV": "development",
            "COGNITO_USER_POOL_ID": "us-east-1_TestPool",
            "COGNITO_CLIENT_ID": "test-client-id",
            "ALLOWED_EMAILS": "demo@example.com,user@example.com",
            "PLAID_CLIENT_ID": "plaid-client",
            "PLAID_SECRET": "plaid-secret",
        }
    )


@pytest.fixture
def fake_table():
    return FakeTable()


@pytest.fixture
def plaid_service():
    return MagicMock(spec=PlaidService)


@pytest.fixture
def cognito_client():
    return MagicMock()


@pytest.fixture
def jwks_client():
    return MagicMock()


@pytest.fixture
def services(settings, fake_table, cognito_client, jwks_client, plaid_service):
    return build_services(
        settings,
        table=fake_table,
        cognito_client=cognito_client,
        jwks_client=jwks_client,
        plaid=plaid_service,
    )


@pytest.fixture
def demo_token(services):
    return services.demo_tokens.issue(DEMO_USER_ID, "demo@example.com")


@pytest.fixture
def live_user():
    return SessionUser(
        team_id="user-1",
        user_id="user-1",
        email="user@example.com",
        username="user@example.com",
        role_name="user",
        permissions=["read", "write"],
        claims={"sub": "user-1", "access_token": "live-access-token"},
    )


@pytest.fixture
def rpc(services):
    """
    Call a procedure through the router.

    Returns (status, envelope, ctx). Queries send input as ``?input=``,
    mutations as the body; ``user`` skips token resolution.
    """

    def call(path, payload=None, token=None, user=None, method=None, headers=None):
        procedure = app_router.get(path)
        if method is None:
            method = "GET" if procedure and procedure.kind == QUERY else "POST"

        request_headers = dict(headers or {})
        if token:
            request_headers["authorization"] = f"Bearer {token}"

        ctx = RequestContext(
            method=method,
            path=f"/trpc/{path}",
            services=services,
            headers=request_headers,
            user=user,
        )
        body = None
        if payload is not None:
            if method == "GET":
                ctx.query_params["input"] = json.dumps(payload)
            else:
                body = json.dumps(payload)

        status, envelope = handle_rpc_request(app_router, ctx, path, body)
        return status, envelope, ctx

    return call


def plan_input(**overrides):
    data = {
        "title": "Lisbon Trip",
        "planType": "trip",
        "targetAmount": 3000,
        "currentAmount": 100,
        "targetDate": "2026-06-01",
        "monthlyIncome": 4000,
        "monthlySavingsGoal": 300,
    }
    data.update(overrides)
    return data


@pytest.fixture
def new_plan():
    return plan_input
