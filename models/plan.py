from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Tuple

from pydantic import Field

from models.dynamodb import (ApiModel, DynamoDBItem, generate_id, plan_sk,
                             progress_sk, user_pk)

PlanType = Literal["trip", "house", "car", "education", "emergency", "other"]
RecurringFrequency = Literal["weekly", "monthly", "yearly"]


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class Milestone(ApiModel):
    id: str
    title: str
    target_amount: float
    target_date: str
    completed: bool = False
    completed_at: str | None = None


class Expense(ApiModel):
    id: str
    title: str
    amount: float
    category: str
    date: str
    is_recurring: bool = False
    recurring_frequency: RecurringFrequency | None = None


class PlanCreate(ApiModel):
    """Client-supplied plan fields."""

    title: str = Field(..., min_length=1, max_length=100)
    description: str | None = None
    plan_type: PlanType
    target_amount: float = Field(..., gt=0)
    current_amount: float = Field(0, ge=0)
    target_date: str
    monthly_income: float = Field(..., gt=0)
    monthly_savings_goal: float = Field(..., gt=0)
    partner_contribution: float = Field(0, ge=0)
    is_active: bool = True
    milestones: List[Milestone] = Field(default_factory=list)
    expenses: List[Expense] = Field(default_factory=list)


class Plan(PlanCreate, DynamoDBItem):
    ENTITY_TYPE = "plan"

    id: str
    user_id: str
    created_at: str
    updated_at: str

    def keys(self) -> Tuple[str, str]:
        return user_pk(self.user_id), plan_sk(self.id)

    @classmethod
    def new(cls, user_id: str, data: PlanCreate) -> "Plan":
        """Create a plan with a fresh id and timestamps."""
        now = utc_now()
        return cls(
            **data.model_dump(),
            id=generate_id("plan"),
            user_id=user_id,
            created_at=now,
            updated_at=now,
        )


class PlanUpdate(ApiModel):
    """Partial update; only fields the caller supplied are written."""

    id: str = Field(..., min_length=1)
    title: str | None = Field(None, min_length=1, max_length=100)
    description: str | None = None
    plan_type: PlanType | None = None
    target_amount: float | None = Field(None, gt=0)
    current_amount: float | None = Field(None, ge=0)
    target_date: str | None = None
    monthly_income: float | None = Field(None, gt=0)
    monthly_savings_goal: float | None = Field(None, gt=0)
    partner_contribution: float | None = Field(None, ge=0)
    is_active: bool | None = None
    milestones: List[Milestone] | None = None
    expenses: List[Expense] | None = None

    def changes(self) -> Dict[str, Any]:
        """Supplied fields keyed by their stored (camelCase) attribute name."""
        return self.model_dump(
            by_alias=True, exclude={"id"}, exclude_unset=True, exclude_none=True
        )


class PlanIdInput(ApiModel):
    plan_id: str = Field(..., min_length=1)


class ProgressUpdate(ApiModel):
    plan_id: str = Field(..., min_length=1)
    amount: float = Field(..., gt=0)
    note: str | None = None


class ProgressEntry(DynamoDBItem):
    ENTITY_TYPE = "progress"

    id: str
    plan_id: str
    user_id: str
    amount: float
    note: str | None = None
    created_at: str

    def keys(self) -> Tuple[str, str]:
        return user_pk(self.user_id), progress_sk(self.plan_id, self.id)

    @classmethod
    def new(cls, user_id: str, update: ProgressUpdate) -> "ProgressEntry":
        return cls(
            id=generate_id("progress"),
            plan_id=update.plan_id,
            user_id=user_id,
            amount=update.amount,
            note=update.note,
            created_at=utc_now(),
        )


class TypeBreakdown(ApiModel):
    count: int = 0
    total_target: float = 0
    total_current: float = 0


class PlanAnalytics(ApiModel):
    total_plans: int
    active_plans: int
    completed_plans: int
    total_target_amount: float
    total_current_amount: float
    total_monthly_savings: float
    total_partner_contribution: float
    overall_progress: float
    plans_by_type: Dict[str, TypeBreakdown]

    @classmethod
    def from_plans(cls, plans: List[Plan]) -> "PlanAnalytics":
        """Aggregate a user's plans; a plan is completed once current >= target."""
        total_target = sum(p.target_amount for p in plans)
        total_current = sum(p.current_amount for p in plans)

        by_type: Dict[str, TypeBreakdown] = {}
        for plan in plans:
            entry = by_type.setdefault(plan.plan_type, TypeBreakdown())
            entry.count += 1
            entry.total_target += plan.target_amount
            entry.total_current += plan.current_amount

        return cls(
            total_plans=len(plans),
            active_plans=sum(1 for p in plans if p.is_active),
            completed_plans=sum(
                1 for p in plans if p.current_amount >= p.target_amount
            ),
            total_target_amount=total_target,
            total_current_amount=total_current,
            total_monthly_savings=sum(p.monthly_savings_goal for p in plans),
            total_partner_contribution=sum(p.partner_contribution for p in plans),
            overall_progress=(
                total_current / total_target * 100 if total_target > 0 else 0
            ),
            plans_by_type=by_type,
        )
