from typing import Any, List

from pydantic import BaseModel, field_validator

from gread_feed.schemas.lenient import lenient_bool, lenient_int_list


class BlockedListResponse(BaseModel):
    success: bool = False
    blocked_users: List[int] = []

    @field_validator("success", mode="before")
    @classmethod
    def parse_success(cls, v: Any) -> bool:
        return bool(lenient_bool(v))

    @field_validator("blocked_users", mode="before")
    @classmethod
    def parse_ids(cls, v: Any) -> List[int]:
        return lenient_int_list(v)


class MutedListResponse(BaseModel):
    success: bool = False
    muted_users: List[int] = []

    @field_validator("success", mode="before")
    @classmethod
    def parse_success(cls, v: Any) -> bool:
        return bool(lenient_bool(v))

    @field_validator("muted_users", mode="before")
    @classmethod
    def parse_ids(cls, v: Any) -> List[int]:
        return lenient_int_list(v)


class ModerationResponse(BaseModel):
    success: bool = False
    message: str = ""

    @field_validator("success", mode="before")
    @classmethod
    def parse_success(cls, v: Any) -> bool:
        return bool(lenient_bool(v))

    @field_validator("message", mode="before")
    @classmethod
    def parse_message(cls, v: Any) -> str:
        return v if isinstance(v, str) else ""
