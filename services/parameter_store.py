"""
AWS Systems Manager Parameter Store service.

Secrets that are not present in the environment (the Plaid credentials) are
looked up in Parameter Store under the ``/coinly`` prefix.
"""

from functools import lru_cache
from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from utils.logging import setup_logger

logger = setup_logger(__name__)

DEFAULT_PREFIX = "/coinly"
PLAID_CLIENT_ID_KEY = "plaid/client-id"
PLAID_SECRET_KEY = "plaid/secret"

# Parameter Store clients, one per region
_ssm_clients: Dict[Optional[str], Any] = {}


def get_ssm_client(region_name: Optional[str] = None):
    """Get or create the SSM client for a region."""
    if region_name not in _ssm_clients:
        _ssm_clients[region_name] = boto3.client("ssm", region_name=region_name)
    return _ssm_clients[region_name]


@lru_cache(maxsize=128)
def get_parameter(
    parameter_name: str, decrypt: bool = True, region_name: Optional[str] = None
) -> str | None:
    """
    Get a parameter from AWS Parameter Store with caching.

    Args:
        parameter_name: The name of the parameter to retrieve
        decrypt: Whether to decrypt SecureString parameters
        region_name: AWS region (boto3 default when omitted)

    Returns:
        Parameter value or None if not found
    """
    try:
        ssm = get_ssm_client(region_name)
        response = ssm.get_parameter(Name=parameter_name, WithDecryption=decrypt)
        value = response["Parameter"]["Value"]

        logger.debug(f"Retrieved parameter {parameter_name} from Parameter Store")
        return value

    except ClientError as e:
        error_code = e.response["Error"]["Code"]

        if error_code == "ParameterNotFound":
            logger.warning(f"Parameter {parameter_name} not found in Parameter Store")
        else:
            logger.error(f"Error retrieving parameter {parameter_name}: {e}")

        return None
    except BotoCoreError as e:
        logger.error(f"Unexpected error retrieving parameter {parameter_name}: {e}")
        return None


class ParameterStoreConfig:
    """
    Configuration values loaded from Parameter Store, cached per instance.
    """

    def __init__(
        self, parameter_prefix: str = DEFAULT_PREFIX, region_name: Optional[str] = None
    ):
        self.parameter_prefix = parameter_prefix.rstrip("/")
        self.region_name = region_name
        self._config_cache: Dict[str, Any] = {}

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value.

        Args:
            key: Configuration key (will be prefixed with parameter_prefix)
            default: Default value if not found

        Returns:
            Configuration value or default
        """
        if key in self._config_cache:
            return self._config_cache[key]

        value = get_parameter(
            f"{self.parameter_prefix}/{key}", region_name=self.region_name
        )
        if value is None:
            value = default

        self._config_cache[key] = value
        return value


def load_plaid_credentials(
    settings, store: Optional[ParameterStoreConfig] = None
) -> Optional[Dict[str, str]]:
    """
    Resolve the Plaid client id and secret.

    Environment values win; anything missing is read from Parameter Store.

    Args:
        settings: Application Settings
        store: Parameter source (defaults to the /coinly prefix in settings.aws_region)

    Returns:
        {"client_id", "secret"} or None when either is unavailable
    """
    client_id = settings.plaid_client_id
    secret = settings.plaid_secret

    if not (client_id and secret):
        store = store or ParameterStoreConfig(region_name=settings.aws_region)
        client_id = client_id or store.get(PLAID_CLIENT_ID_KEY)
        secret = secret or store.get(PLAID_SECRET_KEY)

    if not (client_id and secret):
        logger.warning("Plaid credentials not configured; bank integration disabled")
        return None

    return {"client_id": client_id, "secret": secret}


def clear_cache():
    """Clear parameter cache. Useful for testing or config updates."""
    get_parameter.cache_clear()
    _ssm_clients.clear()
    logger.info("Parameter Store cache cleared")
