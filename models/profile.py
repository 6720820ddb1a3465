from typing import Literal, Tuple

from pydantic import Field

from models.dynamodb import ApiModel, DynamoDBItem, profile_sk, user_pk

Theme = Literal["light", "dark"]


class NotificationPreferences(ApiModel):
    email: bool = True
    milestones: bool = True
    reminders: bool = True


class Preferences(ApiModel):
    theme: Theme = "dark"
    currency: str = "USD"
    notifications: NotificationPreferences = Field(
        default_factory=NotificationPreferences
    )


class ProfileStats(ApiModel):
    total_plans: int = 0
    completed_plans: int = 0
    total_saved: float = 0
    total_target: float = 0


class UserProfile(DynamoDBItem):
    """Profile item; missing attributes are filled with defaults on read."""

    ENTITY_TYPE = "user_profile"

    user_id: str
    email: str | None = None
    given_name: str | None = None
    family_name: str | None = None
    plan_count: int = 0
    subscription_tier: str = "free"
    preferences: Preferences = Field(default_factory=Preferences)
    stats: ProfileStats = Field(default_factory=ProfileStats)
    created_at: str | None = None
    updated_at: str | None = None

    def keys(self) -> Tuple[str, str]:
        return user_pk(self.user_id), profile_sk(self.user_id)


class NotificationPreferencesUpdate(ApiModel):
    email: bool | None = None
    milestones: bool | None = None
    reminders: bool | None = None


class PreferencesUpdate(ApiModel):
    theme: Theme | None = None
    currency: str | None = None
    notifications: NotificationPreferencesUpdate | None = None


class ProfileUpdate(ApiModel):
    given_name: str | None = Field(None, min_length=1)
    family_name: str | None = Field(None, min_length=1)
    preferences: PreferencesUpdate | None = None

    def changes(self) -> dict:
        return self.model_dump(by_alias=True, exclude_unset=True, exclude_none=True)
