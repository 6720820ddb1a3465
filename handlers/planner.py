"""
Savings plan procedures.

Plans, their progress history and the analytics summary. Every procedure
reads and writes through the caller's data source, so demo users get the
fixture plans and everyone else gets the DynamoDB table.
"""

from models.plan import (PlanAnalytics, PlanCreate, PlanIdInput, PlanUpdate,
                         ProgressUpdate)
from services.demo_data import SEED_USER_ID
from services.dynamodb import ItemNotFoundError
from utils.decorators import require_auth, require_permission, validate_input
from utils.logging import setup_logger
from utils.rpc import Router, RpcError

logger = setup_logger(__name__)

router = Router()


def _source(ctx):
    return ctx.services.data_source_for(ctx.user)


@router.mutation("createPlan")
@require_auth
@require_permission("write")
@validate_input(PlanCreate)
def create_plan(ctx, data: PlanCreate):
    """
    Create a plan for the caller.

    Args:
        ctx: Request context
        data: Validated plan fields

    Returns:
        The stored plan, including its generated id and timestamps
    """
    try:
        plan = _source(ctx).create_plan(ctx.user.user_id, data)
    except Exception as e:
        raise RpcError("INTERNAL_SERVER_ERROR", "Failed to create plan", cause=e)

    logger.info("Plan created", extra={"plan_id": plan.id, "user_id": ctx.user.user_id})
    return plan.to_api()


@router.query("getPlans")
@require_auth
def get_plans(ctx, raw_input):
    try:
        plans = _source(ctx).list_plans(ctx.user.user_id)
    except Exception as e:
        raise RpcError("INTERNAL_SERVER_ERROR", "Failed to fetch plans", cause=e)
    return [plan.to_api() for plan in plans]


@router.query("getPlan")
@require_auth
@validate_input(PlanIdInput)
def get_plan(ctx, data: PlanIdInput):
    try:
        plan = _source(ctx).get_plan(ctx.user.user_id, data.plan_id)
    except Exception as e:
        raise RpcError("INTERNAL_SERVER_ERROR", "Failed to fetch plan", cause=e)

    if plan is None:
        raise RpcError("NOT_FOUND", "Plan not found")
    return plan.to_api()


@router.mutation("updatePlan")
@require_auth
@require_permission("write")
@validate_input(PlanUpdate)
def update_plan(ctx, data: PlanUpdate):
    """Apply the supplied fields to an existing plan."""
    try:
        _source(ctx).update_plan(ctx.user.user_id, data)
    except ItemNotFoundError:
        raise RpcError("NOT_FOUND", "Plan not found")
    except Exception as e:
        raise RpcError("INTERNAL_SERVER_ERROR", "Failed to update plan", cause=e)
    return {"success": True}


@router.mutation("updateProgress")
@require_auth
@require_permission("write")
@validate_input(ProgressUpdate)
def update_progress(ctx, data: ProgressUpdate):
    """
    Add money to a plan and record the contribution in its history.

    The amount increment and the history entry are separate writes.
    """
    try:
        _source(ctx).record_progress(ctx.user.user_id, data)
    except ItemNotFoundError:
        raise RpcError("NOT_FOUND", "Plan not found")
    except Exception as e:
        raise RpcError("INTERNAL_SERVER_ERROR", "Failed to update progress", cause=e)
    return {"success": True}


@router.query("getProgressHistory")
@require_auth
@validate_input(PlanIdInput)
def get_progress_history(ctx, data: PlanIdInput):
    try:
        entries = _source(ctx).list_progress(ctx.user.user_id, data.plan_id)
    except Exception as e:
        raise RpcError(
            "INTERNAL_SERVER_ERROR", "Failed to fetch progress history", cause=e
        )
    return [entry.model_dump(by_alias=True, mode="json", exclude={"user_id"}) for entry in entries]


@router.mutation("deletePlan")
@require_auth
@require_permission("write")
@validate_input(PlanIdInput)
def delete_plan(ctx, data: PlanIdInput):
    try:
        _source(ctx).delete_plan(ctx.user.user_id, data.plan_id)
    except Exception as e:
        raise RpcError("INTERNAL_SERVER_ERROR", "Failed to delete plan", cause=e)
    return {"success": True}


@router.mutation("seedDemoData")
def seed_demo_data(ctx, raw_input):
    """
    Write the demo plans.

    Public: with a valid session the caller's partition is seeded (demo
    users already see the fixture plans), otherwise the shared demo
    partition.
    """
    services = ctx.services
    user = ctx.user or services.session_resolver.try_resolve(ctx)

    try:
        if user is not None:
            count = services.data_source_for(user).seed_demo_plans(user.user_id)
        else:
            count = services.live.seed_demo_plans(SEED_USER_ID)
    except Exception as e:
        raise RpcError("INTERNAL_SERVER_ERROR", "Failed to seed demo data", cause=e)

    return {"success": True, "message": "Demo data seeded successfully", "count": count}


@router.query("getAnalytics")
@require_auth
def get_analytics(ctx, raw_input):
    try:
        plans = _source(ctx).list_plans(ctx.user.user_id)
    except Exception as e:
        raise RpcError("INTERNAL_SERVER_ERROR", "Failed to fetch analytics", cause=e)
    return PlanAnalytics.from_plans(plans).to_api()
