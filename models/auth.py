from pydantic import EmailStr, Field

from models.dynamodb import ApiModel


class SignUpInput(ApiModel):
    email: EmailStr
    password: str = Field(..., min_length=8)
    given_name: str = Field(..., min_length=1)
    family_name: str = Field(..., min_length=1)


class SignInInput(ApiModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class EmailInput(ApiModel):
    email: EmailStr


class ConfirmSignUpInput(ApiModel):
    email: EmailStr
    confirmation_code: str = Field(..., min_length=6, max_length=6)


class ConfirmForgotPasswordInput(ApiModel):
    email: EmailStr
    confirmation_code: str = Field(..., min_length=6, max_length=6)
    new_password: str = Field(..., min_length=8)


class ChangePasswordInput(ApiModel):
    previous_password: str = Field(..., min_length=1)
    proposed_password: str = Field(..., min_length=8)


class DemoAccount(ApiModel):
    """A built-in account accepted by sign-in while demo mode is on."""

    user_id: str
    email: str
    password: str
    given_name: str
    family_name: str
    confirmed: bool = True
