import base64
import json
import time
from unittest.mock import MagicMock

import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa

from handlers import app_router
from services.demo_data import DEMO_USER_ID
from services.session import CognitoTokenValidator, extract_token_from_header
from utils.rpc import RpcError

ISSUER = "https://cognito-idp.us-east-1.amazonaws.com/us-east-1_TestPool"

PUBLIC_PROCEDURES = {
    "health",
    "hello.hello",
    "auth.signUp",
    "auth.confirmSignUp",
    "auth.resendConfirmationCode",
    "auth.signIn",
    "auth.forgotPassword",
    "auth.confirmForgotPassword",
    "planner.seedDemoData",
}


def unsigned_token(payload):
    return base64.b64encode(json.dumps(payload).encode("utf-8")).decode("ascii")


@pytest.fixture(scope="module")
def private_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture
def signed_token(private_key):
    def sign(**overrides):
        now = int(time.time())
        claims = {
            "sub": "cognito-user-1",
            "iss": ISSUER,
            "token_use": "access",
            "client_id": "test-client-id",
            "username": "cognito-user-1",
            "iat": now,
            "exp": now + 600,
        }
        claims.update(overrides)
        return jwt.encode(claims, private_key, algorithm="RS256", headers={"kid": "k1"})

    return sign


@pytest.fixture
def validator(private_key):
    jwks = MagicMock()
    jwks.get_signing_key_from_jwt.return_value = MagicMock(key=private_key.public_key())
    return CognitoTokenValidator(
        "us-east-1", "us-east-1_TestPool", "test-client-id", jwks_client=jwks
    )


class TestHeaderExtraction:
    def test_bearer(self):
        assert extract_token_from_header("Bearer abc") == "abc"
        assert extract_token_from_header("bearer abc") == "abc"

    def test_other_schemes(self):
        assert extract_token_from_header(None) is None
        assert extract_token_from_header("Basic abc") is None
        assert extract_token_from_header("Bearer") is None


class TestCognitoValidation:
    def test_valid_access_token(self, validator, signed_token):
        token = signed_token()
        user = validator.validate(token)

        assert user.user_id == "cognito-user-1"
        assert user.username == "cognito-user-1"
        assert user.permissions == ["read", "write"]
        assert user.access_token == token
        assert not user.is_demo_user

    def test_expired_token(self, validator, signed_token):
        with pytest.raises(RpcError) as exc:
            validator.validate(signed_token(exp=int(time.time()) - 60))
        assert exc.value.code == "UNAUTHORIZED"
        assert exc.value.message.startswith("Invalid or expired token")

    def test_wrong_issuer(self, validator, signed_token):
        with pytest.raises(RpcError):
            validator.validate(signed_token(iss="https://evil.example.com"))

    def test_id_token_is_rejected(self, validator, signed_token):
        with pytest.raises(RpcError) as exc:
            validator.validate(signed_token(token_use="id"))
        assert "not an access token" in exc.value.message

    def test_other_client(self, validator, signed_token):
        with pytest.raises(RpcError) as exc:
            validator.validate(signed_token(client_id="someone-else"))
        assert "another client" in exc.value.message

    def test_unconfigured_pool(self, signed_token):
        validator = CognitoTokenValidator("us-east-1", None, None, jwks_client=MagicMock())
        with pytest.raises(RpcError) as exc:
            validator.validate(signed_token())
        assert exc.value.code == "UNAUTHORIZED"


class TestResolver:
    def test_no_token(self, rpc):
        status, envelope, _ = rpc("planner.getPlans")
        assert status == 401
        assert envelope["error"]["data"]["code"] == "UNAUTHORIZED"
        assert envelope["error"]["message"] == "No access token"

    def test_expired_demo_token(self, rpc, services):
        token = services.demo_tokens.issue(DEMO_USER_ID, "demo@example.com", ttl=-10)
        status, envelope, _ = rpc("planner.getPlans", token=token)
        assert status == 401
        assert envelope["error"]["message"] == "Token expired"

    def test_garbage_demo_token(self, rpc):
        status, envelope, _ = rpc("planner.getPlans", token="%%%")
        assert status == 401
        assert envelope["error"]["message"] == "Invalid demo token"

    @pytest.mark.parametrize(
        "payload",
        [
            {"sub": DEMO_USER_ID, "exp": "1"},
            {"sub": DEMO_USER_ID, "exp": True},
            {"sub": 123},
            {"sub": DEMO_USER_ID, "email": ["demo@example.com"]},
            ["not", "an", "object"],
        ],
    )
    def test_malformed_demo_claims(self, rpc, payload):
        status, envelope, _ = rpc("planner.getPlans", token=unsigned_token(payload))
        assert status == 401
        assert envelope["error"]["data"]["code"] == "UNAUTHORIZED"
        assert envelope["error"]["message"] == "Invalid demo token"

    @pytest.mark.parametrize(
        "path", sorted(set(app_router.procedures) - PUBLIC_PROCEDURES)
    )
    def test_protected_procedures_need_a_session(self, rpc, path):
        status, envelope, _ = rpc(path)
        assert status == 401
        assert envelope["error"]["data"]["code"] == "UNAUTHORIZED"

    def test_cookie_wins_over_header(self, services, demo_token):
        from utils.context import RequestContext

        ctx = RequestContext(
            method="GET",
            path="/trpc/auth.getCurrentUser",
            services=services,
            headers={"authorization": "Bearer not-used"},
            cookies={"access_token": demo_token},
        )
        user = services.session_resolver.resolve(ctx)
        assert user.user_id == DEMO_USER_ID
        assert user.username == "demo@example.com"

    def test_demo_tokens_rejected_outside_demo_mode(self, services, demo_token):
        services.settings.app_env = "production"
        services.settings.demo_mode = False

        with pytest.raises(RpcError):
            services.session_resolver.validate_token(demo_token)

    def test_signed_tokens_use_cognito(self, services, private_key, signed_token, jwks_client):
        jwks_client.get_signing_key_from_jwt.return_value = MagicMock(
            key=private_key.public_key()
        )
        user = services.session_resolver.validate_token(signed_token())
        assert user.user_id == "cognito-user-1"
