# This project was developed with assistance from AI tools.
"""Authentication, authorization, phone-OTP and account-linking schemas."""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from tasheel_db.enums import UserRole


class DataScope(BaseModel):
    """Data visibility rules injected by RBAC middleware."""

    own_data_only: bool = False
    customer_id: int | None = None
    full_access: bool = False


class UserContext(BaseModel):
    """Injected by auth middleware into every authenticated request."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    role: UserRole
    email: str
    name: str
    customer_id: int | None = None
    data_scope: DataScope = Field(default_factory=DataScope)


class TokenPayload(BaseModel):
    """Decoded JWT token claims from Keycloak."""

    sub: str
    email: str = ""
    preferred_username: str = ""
    name: str = ""
    customer_id: int | None = None
    realm_access: dict = Field(default_factory=dict)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SendOTPRequest(_CamelModel):
    phone: str = Field(min_length=1)


class SendOTPResponse(_CamelModel):
    success: bool
    message: str


class VerifyOTPRequest(_CamelModel):
    phone: str = Field(min_length=1)
    otp: str = Field(min_length=1)
    name: str | None = None


class VerifyOTPResponse(_CamelModel):
    success: bool
    message: str
    account_id: int
    customer_id: int
    is_new_account: bool


class LinkPhoneAccountRequest(_CamelModel):
    """Link request. Fields are optional so missing values surface as 400, not 422."""

    phone: str | None = None
    email: str | None = None
    password: str | None = None
    name: str | None = None
    otp: str | None = None


class LinkPhoneAccountResponse(_CamelModel):
    success: bool
    linked: bool
    message: str
