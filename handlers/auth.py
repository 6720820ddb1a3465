"""
Authentication and profile procedures backed by Amazon Cognito.

Sign-up and sign-in are limited to the configured email allow list. While
demo mode is on, the built-in demo accounts sign in without Cognito and
receive demo tokens.
"""

from models.auth import (ChangePasswordInput, ConfirmForgotPasswordInput,
                         ConfirmSignUpInput, EmailInput, SignInInput,
                         SignUpInput)
from models.profile import ProfileUpdate
from services.cognito import provider_message
from services.demo_data import demo_account_by_email, demo_account_by_user_id
from services.session import DEMO_TOKEN_TTL_SECONDS
from utils.cookies import cleared_session_cookies, session_cookies
from utils.decorators import require_auth, validate_input
from utils.logging import log_error, setup_logger
from utils.rpc import Router, RpcError

logger = setup_logger(__name__)

router = Router()


def _require_allowed(ctx, email: str, message: str) -> None:
    if not ctx.services.settings.is_email_allowed(email):
        logger.warning("Email not in allow list", extra={"email": email})
        raise RpcError("UNAUTHORIZED", message)


def _set_session_cookies(ctx, access_token: str, refresh_token: str | None) -> None:
    settings = ctx.services.settings
    ctx.add_cookies(
        session_cookies(
            access_token,
            refresh_token,
            secure=settings.cookie_secure,
            same_site=settings.cookie_samesite,
            max_age=settings.cookie_max_age,
        )
    )


def _is_demo_session(ctx) -> bool:
    return ctx.services.is_demo_user(ctx.user)


def _access_token(ctx) -> str:
    token = ctx.user.access_token if ctx.user else None
    if not token:
        raise RpcError("UNAUTHORIZED", "Access token required")
    return token


@router.mutation("signUp")
@validate_input(SignUpInput)
def sign_up(ctx, data: SignUpInput):
    """
    Register a new user with Cognito.

    Returns:
        {"success", "userSub", "codeDeliveryDetails"}
    """
    _require_allowed(
        ctx,
        data.email,
        "Access denied. This email is not authorized to register for this application.",
    )
    try:
        response = ctx.services.cognito.sign_up(
            data.email, data.password, data.given_name, data.family_name
        )
    except Exception as e:
        log_error(logger, e, {"operation": "sign_up"})
        raise RpcError("BAD_REQUEST", provider_message(e) or "Failed to sign up")

    return {
        "success": True,
        "userSub": response.get("UserSub"),
        "codeDeliveryDetails": response.get("CodeDeliveryDetails"),
    }


@router.mutation("confirmSignUp")
@validate_input(ConfirmSignUpInput)
def confirm_sign_up(ctx, data: ConfirmSignUpInput):
    try:
        ctx.services.cognito.confirm_sign_up(data.email, data.confirmation_code)
    except Exception as e:
        log_error(logger, e, {"operation": "confirm_sign_up"})
        raise RpcError("BAD_REQUEST", provider_message(e) or "Failed to confirm sign up")
    return {"success": True}


@router.mutation("resendConfirmationCode")
@validate_input(EmailInput)
def resend_confirmation_code(ctx, data: EmailInput):
    try:
        response = ctx.services.cognito.resend_confirmation_code(data.email)
    except Exception as e:
        log_error(logger, e, {"operation": "resend_confirmation_code"})
        raise RpcError(
            "BAD_REQUEST", provider_message(e) or "Failed to resend confirmation code"
        )
    return {"success": True, "codeDeliveryDetails": response.get("CodeDeliveryDetails")}


@router.mutation("signIn")
@validate_input(SignInInput)
def sign_in(ctx, data: SignInInput):
    """
    Sign in with email and password.

    On success the access and refresh tokens are returned and also set as
    HttpOnly cookies.

    Returns:
        {"success", "accessToken", "idToken", "refreshToken", "expiresIn"}
    """
    _require_allowed(
        ctx,
        data.email,
        "Access denied. This email is not authorized to use this application.",
    )

    services = ctx.services
    demo_account = demo_account_by_email(data.email)

    if services.settings.is_demo_mode and demo_account is not None:
        if demo_account.password != data.password:
            raise RpcError("UNAUTHORIZED", "Invalid email or password")
        if not demo_account.confirmed:
            raise RpcError("BAD_REQUEST", "Account not confirmed")

        token = services.demo_tokens.issue(demo_account.user_id, demo_account.email)
        _set_session_cookies(ctx, token, token)
        logger.info("Demo sign-in", extra={"user_id": demo_account.user_id})
        return {
            "success": True,
            "accessToken": token,
            "idToken": token,
            "refreshToken": token,
            "expiresIn": DEMO_TOKEN_TTL_SECONDS,
        }

    try:
        result = services.cognito.authenticate(data.email, data.password)
    except Exception as e:
        log_error(logger, e, {"operation": "sign_in"})
        raise RpcError("UNAUTHORIZED", provider_message(e) or "Failed to sign in")

    if not result:
        raise RpcError("BAD_REQUEST", "Authentication failed")

    _set_session_cookies(ctx, result["AccessToken"], result.get("RefreshToken"))
    return {
        "success": True,
        "accessToken": result["AccessToken"],
        "idToken": result.get("IdToken"),
        "refreshToken": result.get("RefreshToken"),
        "expiresIn": result.get("ExpiresIn"),
    }


@router.mutation("forgotPassword")
@validate_input(EmailInput)
def forgot_password(ctx, data: EmailInput):
    try:
        response = ctx.services.cognito.forgot_password(data.email)
    except Exception as e:
        log_error(logger, e, {"operation": "forgot_password"})
        raise RpcError(
            "BAD_REQUEST", provider_message(e) or "Failed to initiate password reset"
        )
    return {"success": True, "codeDeliveryDetails": response.get("CodeDeliveryDetails")}


@router.mutation("confirmForgotPassword")
@validate_input(ConfirmForgotPasswordInput)
def confirm_forgot_password(ctx, data: ConfirmForgotPasswordInput):
    try:
        ctx.services.cognito.confirm_forgot_password(
            data.email, data.confirmation_code, data.new_password
        )
    except Exception as e:
        log_error(logger, e, {"operation": "confirm_forgot_password"})
        raise RpcError("BAD_REQUEST", provider_message(e) or "Failed to reset password")
    return {"success": True}


@router.mutation("changePassword")
@require_auth
@validate_input(ChangePasswordInput)
def change_password(ctx, data: ChangePasswordInput):
    access_token = _access_token(ctx)
    if _is_demo_session(ctx):
        raise RpcError("BAD_REQUEST", "Demo account passwords cannot be changed")

    try:
        ctx.services.cognito.change_password(
            access_token, data.previous_password, data.proposed_password
        )
    except Exception as e:
        log_error(logger, e, {"operation": "change_password"})
        raise RpcError("BAD_REQUEST", provider_message(e) or "Failed to change password")
    return {"success": True}


@router.query("getProfile")
@require_auth
def get_profile(ctx, raw_input):
    """
    Return the caller's profile, with defaults for missing preferences/stats.
    """
    user_id = ctx.user.user_id
    try:
        profile = ctx.services.data_source_for(ctx.user).get_profile(user_id)
    except Exception as e:
        raise RpcError("INTERNAL_SERVER_ERROR", "Failed to get user profile", cause=e)

    if profile is None:
        raise RpcError("NOT_FOUND", "User profile not found")
    return profile.to_api()


@router.mutation("updateProfile")
@require_auth
@validate_input(ProfileUpdate)
def update_profile(ctx, data: ProfileUpdate):
    """
    Update names and preferences.

    Name changes are also pushed to Cognito when the session carries a
    Cognito access token.
    """
    changes = data.changes()
    try:
        names = {}
        if data.given_name:
            names["given_name"] = data.given_name
        if data.family_name:
            names["family_name"] = data.family_name
        if names and ctx.user.access_token and not _is_demo_session(ctx):
            ctx.services.cognito.update_user_attributes(ctx.user.access_token, names)

        if changes:
            ctx.services.data_source_for(ctx.user).update_profile(
                ctx.user.user_id, changes
            )
    except Exception as e:
        raise RpcError("INTERNAL_SERVER_ERROR", "Failed to update profile", cause=e)
    return {"success": True}


@router.mutation("signOut")
@require_auth
def sign_out(ctx, raw_input):
    """Revoke the Cognito session and clear cookies; always succeeds."""
    access_token = ctx.user.access_token
    if access_token and not _is_demo_session(ctx):
        try:
            ctx.services.cognito.global_sign_out(access_token)
        except Exception as e:
            log_error(logger, e, {"operation": "global_sign_out"})

    settings = ctx.services.settings
    ctx.add_cookies(
        cleared_session_cookies(
            secure=settings.cookie_secure, same_site=settings.cookie_samesite
        )
    )
    return {"success": True}


@router.query("getCurrentUser")
@require_auth
def get_current_user(ctx, raw_input):
    access_token = _access_token(ctx)

    if _is_demo_session(ctx):
        account = demo_account_by_user_id(ctx.user.user_id)
        attributes = {"sub": ctx.user.user_id, "email": ctx.user.email}
        if account is not None:
            attributes.update(
                given_name=account.given_name,
                family_name=account.family_name,
                email_verified="true",
            )
        return {
            "username": ctx.user.username,
            "mfaOptions": None,
            "preferredMfaSetting": None,
            "userMFASettingList": None,
            "attributes": attributes,
        }

    try:
        response = ctx.services.cognito.get_user(access_token)
    except Exception as e:
        log_error(logger, e, {"operation": "get_user"})
        raise RpcError("UNAUTHORIZED", provider_message(e) or "Failed to get current user")

    return {
        "username": response.get("Username"),
        "mfaOptions": response.get("MFAOptions"),
        "preferredMfaSetting": response.get("PreferredMfaSetting"),
        "userMFASettingList": response.get("UserMFASettingList"),
        "attributes": {
            attr["Name"]: attr["Value"]
            for attr in response.get("UserAttributes", [])
            if attr.get("Name") and attr.get("Value")
        },
    }
