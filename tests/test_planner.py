from decimal import Decimal

import pytest

from models.dynamodb import PLAN_PREFIX, PROGRESS_PREFIX


def create(rpc, user, data):
    status, envelope, _ = rpc("planner.createPlan", data, user=user)
    assert status == 200, envelope
    return envelope["result"]["data"]


class TestCreatePlan:
    def test_create_and_fetch(self, rpc, live_user, fake_table, new_plan):
        plan = create(rpc, live_user, new_plan())

        assert plan["id"].startswith("plan_")
        assert plan["userId"] == "user-1"
        assert plan["createdAt"] == plan["updatedAt"]
        assert plan["isActive"] is True
        assert plan["partnerContribution"] == 0

        stored = fake_table.items[("USER#user-1", f"PLAN#{plan['id']}")]
        assert stored["entityType"] == "plan"
        assert stored["targetAmount"] == Decimal("3000.0")

        status, envelope, _ = rpc("planner.getPlan", {"planId": plan["id"]}, user=live_user)
        assert status == 200
        assert envelope["result"]["data"]["title"] == "Lisbon Trip"

    @pytest.mark.parametrize(
        "overrides",
        [
            {"targetAmount": 0},
            {"title": ""},
            {"title": "x" * 101},
            {"planType": "yacht"},
            {"monthlyIncome": -5},
        ],
    )
    def test_invalid_input_is_rejected_before_writing(
        self, rpc, live_user, fake_table, new_plan, overrides
    ):
        status, envelope, _ = rpc("planner.createPlan", new_plan(**overrides), user=live_user)

        assert status == 400
        assert envelope["error"]["data"]["code"] == "BAD_REQUEST"
        assert envelope["error"]["message"] == "Input validation failed"
        assert envelope["error"]["data"]["details"]
        assert fake_table.items == {}

    def test_read_only_user_is_forbidden(self, rpc, live_user, new_plan):
        viewer = live_user.model_copy(update={"permissions": ["read"]})
        status, envelope, _ = rpc("planner.createPlan", new_plan(), user=viewer)
        assert status == 403
        assert envelope["error"]["message"] == "Insufficient permissions"

    def test_user_without_permissions(self, rpc, live_user, new_plan):
        nobody = live_user.model_copy(update={"permissions": None})
        status, envelope, _ = rpc("planner.createPlan", new_plan(), user=nobody)
        assert status == 403
        assert envelope["error"]["message"] == "User has no permissions assigned"


class TestPlanLifecycle:
    def test_list_only_returns_own_plans(self, rpc, live_user, new_plan):
        create(rpc, live_user, new_plan(title="Mine"))
        other = live_user.model_copy(update={"user_id": "user-2", "team_id": "user-2"})
        create(rpc, other, new_plan(title="Theirs"))

        _, envelope, _ = rpc("planner.getPlans", user=live_user)
        assert [plan["title"] for plan in envelope["result"]["data"]] == ["Mine"]

    def test_update_plan(self, rpc, live_user, new_plan):
        plan = create(rpc, live_user, new_plan())

        status, envelope, _ = rpc(
            "planner.updatePlan",
            {"id": plan["id"], "title": "Porto Trip", "isActive": False},
            user=live_user,
        )
        assert status == 200
        assert envelope["result"]["data"] == {"success": True}

        _, envelope, _ = rpc("planner.getPlan", {"planId": plan["id"]}, user=live_user)
        updated = envelope["result"]["data"]
        assert updated["title"] == "Porto Trip"
        assert updated["isActive"] is False
        assert updated["targetAmount"] == 3000
        assert updated["updatedAt"] >= plan["updatedAt"]

    def test_update_missing_plan(self, rpc, live_user, fake_table):
        status, envelope, _ = rpc(
            "planner.updatePlan", {"id": "plan_missing", "title": "New"}, user=live_user
        )
        assert status == 404
        assert envelope["error"]["message"] == "Plan not found"
        assert fake_table.items == {}

    def test_delete_plan(self, rpc, live_user, new_plan):
        plan = create(rpc, live_user, new_plan())

        status, envelope, _ = rpc("planner.deletePlan", {"planId": plan["id"]}, user=live_user)
        assert status == 200

        status, envelope, _ = rpc("planner.getPlan", {"planId": plan["id"]}, user=live_user)
        assert status == 404
        assert envelope["error"]["data"]["code"] == "NOT_FOUND"
        assert envelope["error"]["message"] == "Plan not found"


class TestProgress:
    def test_progress_updates_amount_and_history(self, rpc, live_user, new_plan, fake_table):
        plan = create(rpc, live_user, new_plan(currentAmount=100))

        status, _, _ = rpc(
            "planner.updateProgress",
            {"planId": plan["id"], "amount": 250, "note": "Bonus"},
            user=live_user,
        )
        assert status == 200

        _, envelope, _ = rpc("planner.getPlan", {"planId": plan["id"]}, user=live_user)
        assert envelope["result"]["data"]["currentAmount"] == 350

        _, envelope, _ = rpc(
            "planner.getProgressHistory", {"planId": plan["id"]}, user=live_user
        )
        history = envelope["result"]["data"]
        assert len(history) == 1
        assert history[0]["amount"] == 250
        assert history[0]["note"] == "Bonus"
        assert history[0]["planId"] == plan["id"]
        assert "userId" not in history[0]
        assert len(fake_table.items_with_prefix(PROGRESS_PREFIX)) == 1

    @pytest.mark.parametrize("amount", [0, -10])
    def test_non_positive_amount_is_rejected(self, rpc, live_user, new_plan, amount):
        plan = create(rpc, live_user, new_plan())
        status, envelope, _ = rpc(
            "planner.updateProgress", {"planId": plan["id"], "amount": amount}, user=live_user
        )
        assert status == 400
        assert envelope["error"]["data"]["code"] == "BAD_REQUEST"

    def test_progress_on_missing_plan(self, rpc, live_user, fake_table):
        status, envelope, _ = rpc(
            "planner.updateProgress", {"planId": "plan_missing", "amount": 10}, user=live_user
        )
        assert status == 404
        assert envelope["error"]["message"] == "Plan not found"
        assert fake_table.items_with_prefix(PROGRESS_PREFIX) == []

    def test_history_of_unknown_plan_is_empty(self, rpc, live_user):
        status, envelope, _ = rpc(
            "planner.getProgressHistory", {"planId": "plan_missing"}, user=live_user
        )
        assert status == 200
        assert envelope["result"]["data"] == []


class TestAnalytics:
    def test_empty(self, rpc, live_user):
        _, envelope, _ = rpc("planner.getAnalytics", user=live_user)
        analytics = envelope["result"]["data"]
        assert analytics["totalPlans"] == 0
        assert analytics["overallProgress"] == 0
        assert analytics["plansByType"] == {}

    def test_totals(self, rpc, live_user, new_plan):
        create(rpc, live_user, new_plan(targetAmount=1000, currentAmount=1000))
        create(
            rpc,
            live_user,
            new_plan(
                planType="car",
                targetAmount=3000,
                currentAmount=500,
                partnerContribution=50,
                isActive=False,
            ),
        )

        _, envelope, _ = rpc("planner.getAnalytics", user=live_user)
        analytics = envelope["result"]["data"]
        assert analytics["totalPlans"] == 2
        assert analytics["activePlans"] == 1
        assert analytics["completedPlans"] == 1
        assert analytics["totalTargetAmount"] == 4000
        assert analytics["totalCurrentAmount"] == 1500
        assert analytics["totalMonthlySavings"] == 600
        assert analytics["totalPartnerContribution"] == 50
        assert analytics["overallProgress"] == pytest.approx(37.5)
        assert analytics["plansByType"]["car"] == {
            "count": 1,
            "totalTarget": 3000,
            "totalCurrent": 500,
        }


class TestDemoPlans:
    def test_sign_in_seed_and_list(self, rpc, fake_table):
        _, envelope, _ = rpc(
            "auth.signIn", {"email": "demo@example.com", "password": "DemoPassword123"}
        )
        token = envelope["result"]["data"]["accessToken"]

        status, envelope, _ = rpc("planner.seedDemoData", token=token)
        assert status == 200
        assert envelope["result"]["data"]["count"] == 3

        _, envelope, _ = rpc("planner.getPlans", token=token)
        plans = envelope["result"]["data"]
        assert len(plans) == 3
        emergency = next(plan for plan in plans if plan["title"] == "Emergency Fund")
        assert emergency["currentAmount"] == emergency["targetAmount"] == 15000
        assert emergency["isActive"] is False

        # Demo sessions never touch the table.
        assert fake_table.items == {}

    def test_demo_writes_are_not_persisted(self, rpc, demo_token, fake_table, new_plan):
        status, envelope, _ = rpc("planner.createPlan", new_plan(), token=demo_token)
        assert status == 200
        assert envelope["result"]["data"]["userId"] == "demo_user_123"

        _, envelope, _ = rpc("planner.getPlans", token=demo_token)
        assert len(envelope["result"]["data"]) == 3
        assert fake_table.items == {}

    def test_anonymous_seed_writes_shared_partition(self, rpc, fake_table):
        status, envelope, _ = rpc("planner.seedDemoData")
        assert status == 200
        assert envelope["result"]["data"]["message"] == "Demo data seeded successfully"

        plans = fake_table.items_with_prefix(PLAN_PREFIX)
        assert len(plans) == 3
        assert {item["pk"] for item in plans} == {"USER#demo_user"}

    def test_demo_analytics(self, rpc, demo_token):
        _, envelope, _ = rpc("planner.getAnalytics", token=demo_token)
        analytics = envelope["result"]["data"]
        assert analytics["totalPlans"] == 3
        assert analytics["completedPlans"] == 1
