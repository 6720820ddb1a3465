"""
Amazon Cognito user pool operations (boto3 ``cognito-idp``).

Errors are not translated here; callers map ``ClientError`` to RPC errors
using ``provider_message``.
"""

from typing import Any, Dict, Optional

import boto3
import botocore

from utils.logging import setup_logger

logger = setup_logger(__name__)


def provider_message(err: Exception) -> str:
    """Best human-readable message for a provider failure."""
    if isinstance(err, botocore.exceptions.ClientError):
        return err.response.get("Error", {}).get("Message") or str(err)
    return str(err)


def provider_code(err: Exception) -> str:
    if isinstance(err, botocore.exceptions.ClientError):
        return err.response.get("Error", {}).get("Code", "")
    return ""


class CognitoService:
    """Thin wrapper over the user pool client; users are keyed by email."""

    def __init__(
        self,
        region_name: str,
        user_pool_id: Optional[str],
        client_id: Optional[str],
        client: Any = None,
    ):
        self.region_name = region_name
        self.user_pool_id = user_pool_id
        self.client_id = client_id
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = boto3.client("cognito-idp", region_name=self.region_name)
        return self._client

    def sign_up(
        self, email: str, password: str, given_name: str, family_name: str
    ) -> Dict[str, Any]:
        response = self.client.sign_up(
            ClientId=self.client_id,
            Username=email,
            Password=password,
            UserAttributes=[
                {"Name": "email", "Value": email},
                {"Name": "given_name", "Value": given_name},
                {"Name": "family_name", "Value": family_name},
            ],
        )
        logger.info("User signed up", extra={"email": email})
        return response

    def confirm_sign_up(self, email: str, confirmation_code: str) -> None:
        self.client.confirm_sign_up(
            ClientId=self.client_id, Username=email, ConfirmationCode=confirmation_code
        )

    def resend_confirmation_code(self, email: str) -> Dict[str, Any]:
        return self.client.resend_confirmation_code(
            ClientId=self.client_id, Username=email
        )

    def authenticate(self, email: str, password: str) -> Optional[Dict[str, Any]]:
        """
        Password sign-in.

        Returns:
            The AuthenticationResult, or None when Cognito answered with a
            challenge instead of tokens
        """
        response = self.client.initiate_auth(
            ClientId=self.client_id,
            AuthFlow="USER_PASSWORD_AUTH",
            AuthParameters={"USERNAME": email, "PASSWORD": password},
        )
        return response.get("AuthenticationResult")

    def forgot_password(self, email: str) -> Dict[str, Any]:
        return self.client.forgot_password(ClientId=self.client_id, Username=email)

    def confirm_forgot_password(
        self, email: str, confirmation_code: str, new_password: str
    ) -> None:
        self.client.confirm_forgot_password(
            ClientId=self.client_id,
            Username=email,
            ConfirmationCode=confirmation_code,
            Password=new_password,
        )

    def change_password(
        self, access_token: str, previous_password: str, proposed_password: str
    ) -> None:
        self.client.change_password(
            AccessToken=access_token,
            PreviousPassword=previous_password,
            ProposedPassword=proposed_password,
        )

    def update_user_attributes(
        self, access_token: str, attributes: Dict[str, str]
    ) -> None:
        self.client.update_user_attributes(
            AccessToken=access_token,
            UserAttributes=[
                {"Name": name, "Value": value} for name, value in attributes.items()
            ],
        )

    def global_sign_out(self, access_token: str) -> None:
        self.client.global_sign_out(AccessToken=access_token)

    def get_user(self, access_token: str) -> Dict[str, Any]:
        return self.client.get_user(AccessToken=access_token)
