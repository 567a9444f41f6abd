"""认证相关的请求/响应模型"""

from pydantic import BaseModel, EmailStr, Field, model_validator

from jcms.schemas.user import UserResponse


class LoginRequest(BaseModel):
    """登录请求：用户名或邮箱任选其一"""
    username: str | None = Field(default=None, description="用户名")
    email: str | None = Field(default=None, description="邮箱")
    password: str = Field(..., min_length=1)
    remember_me: bool = Field(default=False, description="记住我：令牌有效期 7 天")

    @model_validator(mode="after")
    def check_identifier(self):
        if not (self.username or self.email):
            raise ValueError("Either username or email is required")
        return self

    @property
    def identifier(self) -> str:
        return (self.username or self.email or "").strip()


class TokenResponse(BaseModel):
    """登录响应"""
    access_token: str
    token_type: str = "bearer"
    expires_in: int = Field(description="有效期（秒）")
    user: UserResponse


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=1)


class ProfileUpdate(BaseModel):
    """更新个人资料；修改密码必须提供当前密码"""
    username: str | None = Field(default=None, min_length=3, max_length=30, pattern=r"^[a-zA-Z0-9_]+$")
    email: EmailStr | None = None
    phone: str | None = Field(default=None, max_length=50)
    current_password: str | None = None
    new_password: str | None = None


class PasswordStrengthRequest(BaseModel):
    password: str


class PasswordStrengthResponse(BaseModel):
    valid: bool
    errors: list[str]
    score: int
