"""
Service container: every provider client the procedures use, built once.
"""

from dataclasses import dataclass, field
from typing import Optional

from models.session import SessionUser
from utils.logging import setup_logger

from .cognito import CognitoService
from .config import Settings, load_settings
from .data_source import DataSource, DemoDataSource, LiveDataSource
from .dynamodb import PlannerTable
from .parameter_store import load_plaid_credentials
from .plaid_service import PlaidService
from .session import (CognitoTokenValidator, DemoTokenValidator,
                      SessionResolver)

logger = setup_logger(__name__)


@dataclass
class Services:
    settings: Settings
    table: PlannerTable
    cognito: CognitoService
    session_resolver: SessionResolver
    demo_tokens: DemoTokenValidator
    plaid: Optional[PlaidService] = None
    live: LiveDataSource = field(init=False)
    demo: DemoDataSource = field(init=False)

    def __post_init__(self):
        self.live = LiveDataSource(self.table, self.plaid)
        self.demo = DemoDataSource()

    def is_demo_user(self, user: Optional[SessionUser]) -> bool:
        return bool(self.settings.is_demo_mode and user and user.is_demo_user)

    def data_source_for(self, user: Optional[SessionUser]) -> DataSource:
        """Demo fixtures for demo users in demo mode, the live table otherwise."""
        return self.demo if self.is_demo_user(user) else self.live


def build_services(
    settings: Optional[Settings] = None,
    table=None,
    cognito_client=None,
    jwks_client=None,
    plaid: Optional[PlaidService] = None,
) -> Services:
    """
    Construct the service container.

    Args:
        settings: Settings (loaded from the environment when omitted)
        table: boto3 Table (or fake) to use instead of connecting
        cognito_client: boto3 cognito-idp client to use
        jwks_client: PyJWKClient to use for token verification
        plaid: PlaidService to use instead of building one from credentials

    Returns:
        Services instance
    """
    settings = settings or load_settings()

    if plaid is None:
        credentials = load_plaid_credentials(settings)
        if credentials:
            plaid = PlaidService.from_credentials(
                credentials["client_id"],
                credentials["secret"],
                env=settings.plaid_env,
                webhook_url=settings.plaid_webhook_url,
                redirect_uri=settings.plaid_redirect_uri,
            )

    demo_tokens = DemoTokenValidator()
    cognito_validator = CognitoTokenValidator(
        settings.aws_region,
        settings.cognito_user_pool_id,
        settings.cognito_client_id,
        jwks_client=jwks_client,
    )

    logger.info(
        "Services initialized",
        extra={
            "table_name": settings.table_name,
            "demo_mode": settings.is_demo_mode,
            "plaid_enabled": plaid is not None,
        },
    )

    return Services(
        settings=settings,
        table=PlannerTable(settings.table_name, settings.aws_region, table=table),
        cognito=CognitoService(
            settings.aws_region,
            settings.cognito_user_pool_id,
            settings.cognito_client_id,
            client=cognito_client,
        ),
        session_resolver=SessionResolver(settings, cognito_validator, demo_tokens),
        demo_tokens=demo_tokens,
        plaid=plaid,
    )
