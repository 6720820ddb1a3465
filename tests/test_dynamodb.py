from decimal import Decimal

import pytest

from models.bank_account import BankAccount, TransactionRecord
from models.dynamodb import (from_dynamodb, generate_id, to_dynamodb,
                             user_id_from_pk)
from models.plan import Plan, PlanCreate, PlanUpdate, ProgressEntry
from services.dynamodb import (ItemNotFoundError, PlannerTable,
                               build_set_expression)

from .conftest import FakeTable, plan_input


@pytest.fixture
def paged_table():
    return PlannerTable("coinly-test", table=FakeTable(page_size=2))


def make_plan(user_id="user-1", **overrides):
    return Plan.new(user_id, PlanCreate.model_validate(plan_input(**overrides)))


class TestConversion:
    def test_to_dynamodb(self):
        assert to_dynamodb({"a": 1.5, "b": [2.25, True, None], "c": "x", "d": 3}) == {
            "a": Decimal("1.5"),
            "b": [Decimal("2.25"), True, None],
            "c": "x",
            "d": 3,
        }

    def test_from_dynamodb(self):
        assert from_dynamodb({"a": Decimal("2"), "b": [Decimal("2.5")]}) == {
            "a": 2,
            "b": [2.5],
        }

    def test_generated_ids_sort_by_time(self):
        first = generate_id("progress")
        parts = first.split("_")
        assert parts[0] == "progress"
        assert len(parts[1]) == 13 and parts[1].isdigit()
        assert len(parts[2]) == 9

    def test_user_id_from_pk(self):
        assert user_id_from_pk("USER#abc") == "abc"
        assert user_id_from_pk("abc") == "abc"


class TestItems:
    def test_plan_item(self):
        plan = make_plan(description=None)
        item = plan.to_dynamodb_item()

        assert item["pk"] == "USER#user-1"
        assert item["sk"] == f"PLAN#{plan.id}"
        assert item["entityType"] == "plan"
        assert item["targetAmount"] == Decimal("3000.0")
        assert "description" not in item
        assert Plan.from_dynamodb_item(item) == plan

    def test_missing_item(self):
        assert Plan.from_dynamodb_item(None) is None
        assert Plan.from_dynamodb_item({}) is None

    def test_bank_account_hides_access_token(self):
        account = BankAccount(id="acc-1", user_id="user-1", access_token="secret")
        assert "accessToken" not in account.to_api()

        item = account.to_dynamodb_item()
        assert item["accountId"] == "acc-1"
        assert "id" not in item
        assert BankAccount.from_dynamodb_item(item).access_token == "secret"

    def test_transaction_record_keys(self):
        record = TransactionRecord(
            transaction_id="t-1", account_id="acc-1", amount=1, date="2024-01-01", user_id="u"
        )
        assert record.keys() == ("USER#u", "TRANSACTION#t-1")

    def test_plan_update_changes(self):
        update = PlanUpdate.model_validate(
            {"id": "plan_1", "targetAmount": 500, "description": None}
        )
        assert update.changes() == {"targetAmount": 500.0}

    def test_set_expression(self):
        expression, names, values = build_set_expression({"title": "A", "amount": 1.5})
        assert expression == "SET #f0 = :f0, #f1 = :f1"
        assert names == {"#f0": "title", "#f1": "amount"}
        assert values == {":f0": "A", ":f1": Decimal("1.5")}


class TestPlannerTable:
    def test_list_plans_follows_pages(self, paged_table):
        plans = [make_plan(title=f"Plan {i}") for i in range(5)]
        for plan in plans:
            paged_table.put(plan)
        paged_table.put(make_plan(user_id="user-2"))

        listed = paged_table.list_plans("user-1")
        assert sorted(p.id for p in listed) == sorted(p.id for p in plans)

    def test_progress_is_newest_first(self, paged_table):
        for suffix in ("0000000000001_aaaaaaaaa", "0000000000003_ccccccccc", "0000000000002_bbbbbbbbb"):
            paged_table.put(
                ProgressEntry(
                    id=f"progress_{suffix}",
                    plan_id="plan_1",
                    user_id="user-1",
                    amount=10,
                    created_at="2024-01-01T00:00:00+00:00",
                )
            )
        paged_table.put(
            ProgressEntry(
                id="progress_0000000000009_zzzzzzzzz",
                plan_id="plan_10",
                user_id="user-1",
                amount=10,
                created_at="2024-01-01T00:00:00+00:00",
            )
        )

        entries = paged_table.list_progress("user-1", "plan_1")
        assert [e.id[9:22] for e in entries] == [
            "0000000000003",
            "0000000000002",
            "0000000000001",
        ]

    def test_add_to_missing_plan(self, paged_table):
        with pytest.raises(ItemNotFoundError):
            paged_table.add_to_plan_amount("user-1", "plan_missing", 5)

    def test_account_owners(self, paged_table):
        for user_id, account_id in [("u1", "a"), ("u1", "b"), ("u2", "c"), ("u3", "d")]:
            paged_table.put(BankAccount(id=account_id, user_id=user_id))
        paged_table.put(make_plan(user_id="u4"))

        assert paged_table.list_account_owners() == ["u1", "u2", "u3"]

    def test_put_transaction_if_absent(self, paged_table):
        record = TransactionRecord(
            transaction_id="t-1", account_id="a", amount=5, date="2024-01-01", user_id="u1"
        )
        assert paged_table.put_transaction_if_absent(record) is True
        assert paged_table.put_transaction_if_absent(record) is False
