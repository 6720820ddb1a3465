"""
Application settings.

Settings are read once from the process environment. For local development
a ``.env`` file is loaded first with python-dotenv.
"""

import os
from typing import List, Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

DEFAULT_ALLOWED_ORIGINS = ["http://localhost:5173", "http://127.0.0.1:5173"]
DEFAULT_ALLOWED_EMAILS = ["demo@example.com"]


class Settings(BaseModel):
    app_env: str = "production"
    demo_mode: bool = False
    stage: str = "dev"
    aws_region: str = "us-east-1"
    service_name: str = "coinly-api"
    table_name: str = "coinly-dev"
    s3_bucket_name: str | None = None

    cognito_user_pool_id: str | None = None
    cognito_client_id: str | None = None

    allowed_origins: List[str] = Field(
        default_factory=lambda: list(DEFAULT_ALLOWED_ORIGINS)
    )
    allowed_emails: List[str] = Field(
        default_factory=lambda: list(DEFAULT_ALLOWED_EMAILS)
    )
    ses_from_address: str | None = None

    plaid_client_id: str | None = None
    plaid_secret: str | None = None
    plaid_env: str = "sandbox"
    plaid_webhook_url: str | None = None
    plaid_redirect_uri: str | None = None

    cookie_secure: bool = True
    cookie_samesite: str = "Lax"
    cookie_max_age_days: int = 7

    log_level: str = "INFO"
    port: int = 3001

    @property
    def is_demo_mode(self) -> bool:
        """Demo tokens and fixtures are honoured only in this mode."""
        return self.app_env == "development" or self.demo_mode

    @property
    def cookie_max_age(self) -> int:
        return self.cookie_max_age_days * 24 * 60 * 60

    def is_email_allowed(self, email: str) -> bool:
        """An empty allow list admits everyone."""
        if not self.allowed_emails:
            return True
        return email.strip().lower() in self.allowed_emails


def _split(value: Optional[str], default: List[str]) -> List[str]:
    if value is None:
        return list(default)
    return [item.strip() for item in value.split(",") if item.strip()]


def _flag(value: Optional[str], default: bool) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build Settings from environment variables.

    Args:
        environ: Mapping to read instead of os.environ (skips the .env file)

    Returns:
        Settings instance
    """
    if environ is None:
        load_dotenv()
        environ = os.environ

    def get(name: str, default: Optional[str] = None) -> Optional[str]:
        value = environ.get(name)
        return value if value not in (None, "") else default

    service_name = get("SERVICE_NAME", "coinly-api")
    stage = get("STAGE", "dev")

    return Settings(
        app_env=get("APP_ENV") or get("NODE_ENV") or "production",
        demo_mode=_flag(environ.get("DEMO_MODE"), False),
        stage=stage,
        aws_region=get("AWS_REGION", "us-east-1"),
        service_name=service_name,
        table_name=get("DYNAMODB_TABLE_NAME") or get("DDB_TABLE_NAME") or "coinly-dev",
        s3_bucket_name=get("S3_BUCKET_NAME", f"{service_name}-{stage}-uploads"),
        cognito_user_pool_id=get("COGNITO_USER_POOL_ID"),
        cognito_client_id=get("COGNITO_CLIENT_ID"),
        allowed_origins=_split(environ.get("ALLOWED_ORIGINS"), DEFAULT_ALLOWED_ORIGINS),
        allowed_emails=[
            email.lower()
            for email in _split(environ.get("ALLOWED_EMAILS"), DEFAULT_ALLOWED_EMAILS)
        ],
        ses_from_address=get("SES_FROM_ADDRESS"),
        plaid_client_id=get("PLAID_CLIENT_ID"),
        plaid_secret=get("PLAID_SECRET"),
        plaid_env=get("PLAID_ENV", "sandbox").lower(),
        plaid_webhook_url=get("PLAID_WEBHOOK_URL"),
        plaid_redirect_uri=get("PLAID_REDIRECT_URI"),
        cookie_secure=_flag(environ.get("COOKIE_SECURE"), True),
        cookie_samesite=get("COOKIE_SAMESITE", "Lax"),
        cookie_max_age_days=int(get("COOKIE_MAX_AGE_DAYS", "7")),
        log_level=get("LOG_LEVEL", "INFO"),
        port=int(get("PORT", "3001")),
    )
