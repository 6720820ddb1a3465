from typing import Any, Dict, List

from pydantic import BaseModel, Field

DEMO_USER_PREFIX = "demo_user"


class SessionUser(BaseModel):
    """The authenticated caller attached to a request context."""

    team_id: str
    user_id: str
    email: str | None = None
    username: str | None = None
    role_name: str | None = None
    permissions: List[str] | None = None
    claims: Dict[str, Any] = Field(default_factory=dict)

    @property
    def access_token(self) -> str | None:
        return self.claims.get("access_token")

    @property
    def is_demo_user(self) -> bool:
        return self.user_id.startswith(DEMO_USER_PREFIX)
