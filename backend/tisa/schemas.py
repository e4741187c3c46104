"""Pydantic request/response schemas used by the API.

Schemas keep API input/output shapes stable and provide validation for
controller handlers and tests. Field names on the wire are camelCase.
"""

from pydantic import BaseModel, ConfigDict, EmailStr, Field, HttpUrl, TypeAdapter, ValidationError, field_validator
from pydantic.alias_generators import to_camel
from typing import Optional

NAME_PATTERN = r"^[^\W_]+( [^\W_]+)*$"
USERNAME_PATTERN = r"^[A-Za-z0-9_.]+$"
PHOTO_PATH_MAX_LENGTH = 255
MAX_ID = 2 ** 63 - 1

_HTTP_URL = TypeAdapter(HttpUrl)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UserLoginReq(BaseModel):
    """Login payload; either `username` or `email` identifies the user."""
    username: Optional[str] = None
    email: Optional[str] = None
    password: str


class UserInfoReq(BaseModel):
    """Registration payload."""
    username: str = Field(min_length=3, max_length=32, pattern=USERNAME_PATTERN)
    email: EmailStr
    password: str = Field(min_length=6, max_length=128)


class TokenResponse(BaseModel):
    token: str


class BooleanResponse(BaseModel):
    result: bool


class IdResponse(BaseModel):
    id: int


class MessageResponse(BaseModel):
    message: str


class UserResponse(BaseModel):
    id: int
    username: str
    email: str


class CategoryCreationReq(CamelModel):
    """Create/update payload for categories.

    `parentCategoryId` of 0 or null means a root category.
    """
    name: str = Field(min_length=1, max_length=50, pattern=NAME_PATTERN)
    photo_path: str = Field(max_length=PHOTO_PATH_MAX_LENGTH)
    parent_category_id: Optional[int] = Field(default=None, ge=0, le=MAX_ID)

    @field_validator("photo_path")
    @classmethod
    def _must_be_http_url(cls, value: str) -> str:
        try:
            _HTTP_URL.validate_python(value)
        except ValidationError:
            raise ValueError("photoPath must be an http(s) URL")
        return value

    @field_validator("parent_category_id")
    @classmethod
    def _zero_means_root(cls, value: Optional[int]) -> Optional[int]:
        return value or None


class CategoryResponse(CamelModel):
    id: int
    name: str
    photo_path: str
    parent_category_id: Optional[int] = None
