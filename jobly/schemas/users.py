from pydantic import BaseModel, ConfigDict, Field, field_validator

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+$"


class UserOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    username: str
    first_name: str = Field(alias="firstName")
    last_name: str = Field(alias="lastName")
    email: str
    is_admin: bool = Field(default=False, alias="isAdmin")


class UserDetailOut(UserOut):
    jobs: list[int] = Field(default_factory=list)


class UserRegisterRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    username: str = Field(min_length=1, max_length=25)
    password: str = Field(min_length=5, max_length=20)
    first_name: str = Field(min_length=1, max_length=30, alias="firstName")
    last_name: str = Field(min_length=1, max_length=30, alias="lastName")
    email: str = Field(min_length=6, max_length=60, pattern=EMAIL_PATTERN)


class UserCreateRequest(UserRegisterRequest):
    is_admin: bool = Field(default=False, alias="isAdmin")


class UserPatchRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    first_name: str | None = Field(default=None, min_length=1, max_length=30, alias="firstName")
    last_name: str | None = Field(default=None, min_length=1, max_length=30, alias="lastName")
    password: str | None = Field(default=None, min_length=5, max_length=20)
    email: str | None = Field(default=None, min_length=6, max_length=60, pattern=EMAIL_PATTERN)

    @field_validator("first_name", "last_name", "password", "email")
    @classmethod
    def _reject_null(cls, value: str | None) -> str:
        if value is None:
            raise ValueError("may not be null")
        return value


class UserCreatedOut(BaseModel):
    user: UserOut
    token: str
