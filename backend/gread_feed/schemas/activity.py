"""
Canonical activity record decoded from a BuddyPress activity payload.

Every field except `id` is best-effort: a value of the wrong shape becomes
None instead of failing the record. `children` is never read from the wire;
only the thread reconstructor fills it, on fresh copies.
"""

import hashlib
import html
from typing import Any, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from gread_feed.schemas.lenient import lenient_bool, lenient_int, lenient_str

ACTIVITY_UPDATE = "activity_update"
ACTIVITY_COMMENT = "activity_comment"

DEFAULT_AVATAR_URL = "https://www.gravatar.com/avatar/default?d=mp&s=150"


class UserAvatarUrls(BaseModel):
    model_config = ConfigDict(frozen=True)

    full: Optional[str] = None
    thumb: Optional[str] = None


class ActivityRecord(BaseModel):
    """
    One feed entry: a post, a comment, or another activity type.

    Attributes:
        id: Primary key, unique within a feed session
        user_id: Author id, None when the payload omits or garbles it
        type: "activity_update" (post), "activity_comment" (comment) or
            another tag that is stored but never threaded
        item_id: First parent candidate for comments
        secondary_item_id: Fallback parent candidate for comments
        content: Raw, possibly entity-escaped text
        date_recorded: Server timestamp, compared only as a string
        children: Comments attached by the thread reconstructor
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: int
    user_id: Optional[int] = Field(
        default=None, validation_alias=AliasChoices("user_id", "userId")
    )
    component: Optional[str] = None
    type: Optional[str] = None
    action: Optional[str] = None
    content: Optional[str] = None
    primary_link: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("primary_link", "primaryLink")
    )
    item_id: Optional[int] = Field(
        default=None, validation_alias=AliasChoices("item_id", "itemId")
    )
    secondary_item_id: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices("secondary_item_id", "secondaryItemId"),
    )
    date_recorded: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("date_recorded", "dateRecorded", "date"),
    )
    hide_sitewide: Optional[bool] = Field(
        default=None, validation_alias=AliasChoices("hide_sitewide", "hideSitewide")
    )
    is_spam: Optional[bool] = Field(
        default=None, validation_alias=AliasChoices("is_spam", "isSpam")
    )
    user_nicename: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("user_nicename", "userNicename")
    )
    user_login: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("user_login", "userLogin")
    )
    display_name: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("display_name", "displayName")
    )
    user_fullname: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("user_fullname", "userFullname")
    )
    user_avatar: Optional[UserAvatarUrls] = Field(
        default=None, validation_alias=AliasChoices("user_avatar", "userAvatar")
    )
    user_email: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("user_email", "userEmail")
    )
    children: List["ActivityRecord"] = Field(default_factory=list)

    @field_validator("id", mode="before")
    @classmethod
    def parse_id(cls, v: Any) -> int:
        """The one mandatory field: an int or a numeric string."""
        parsed = lenient_int(v)
        if parsed is None:
            raise ValueError(f"id must be an integer or numeric string, got {v!r}")
        return parsed

    @field_validator("user_id", "item_id", "secondary_item_id", mode="before")
    @classmethod
    def parse_optional_int(cls, v: Any) -> Optional[int]:
        return lenient_int(v)

    @field_validator("hide_sitewide", "is_spam", mode="before")
    @classmethod
    def parse_optional_bool(cls, v: Any) -> Optional[bool]:
        return lenient_bool(v)

    @field_validator(
        "component",
        "type",
        "action",
        "primary_link",
        "date_recorded",
        "user_nicename",
        "user_login",
        "display_name",
        "user_fullname",
        "user_email",
        mode="before",
    )
    @classmethod
    def parse_optional_str(cls, v: Any) -> Optional[str]:
        return lenient_str(v)

    @field_validator("content", mode="before")
    @classmethod
    def parse_content(cls, v: Any) -> Optional[str]:
        """
        Accept plain text or a {"rendered": ..., "raw": ...} object.

        The rendered form wins over the raw one.
        """
        if isinstance(v, dict):
            return lenient_str(v.get("rendered")) or lenient_str(v.get("raw"))
        return lenient_str(v)

    @field_validator("user_avatar", mode="before")
    @classmethod
    def parse_user_avatar(cls, v: Any) -> Any:
        """Accept {"full": ..., "thumb": ...} or a bare URL used for both."""
        if isinstance(v, UserAvatarUrls):
            return v
        if isinstance(v, dict):
            return {
                "full": lenient_str(v.get("full")),
                "thumb": lenient_str(v.get("thumb")),
            }
        if isinstance(v, str):
            return {"full": v, "thumb": v}
        return None

    @property
    def is_post(self) -> bool:
        return self.type == ACTIVITY_UPDATE

    @property
    def is_comment(self) -> bool:
        return self.type == ACTIVITY_COMMENT

    @property
    def best_user_name(self) -> str:
        """Display name, then full name, then login, then a placeholder."""
        for name in (self.display_name, self.user_fullname, self.user_login):
            if name:
                return name
        if self.user_id is not None:
            return f"User {self.user_id}"
        return "Unknown User"

    @property
    def avatar_url(self) -> str:
        """
        Best avatar URL for the author.

        Prefers the API-provided full image, then the thumbnail, then a
        Gravatar derived from the author's email, then the default Gravatar.
        """
        if self.user_avatar is not None:
            if self.user_avatar.full:
                return self.user_avatar.full
            if self.user_avatar.thumb:
                return self.user_avatar.thumb

        if self.user_email:
            email = self.user_email.strip().lower()
            if email:
                digest = hashlib.md5(email.encode("utf-8")).hexdigest()
                return f"https://www.gravatar.com/avatar/{digest}?s=150&d=mp"

        return DEFAULT_AVATAR_URL

    @property
    def plain_content(self) -> str:
        """Content with HTML entities (&amp;, &#8217;, ...) decoded."""
        if not self.content:
            return ""
        return html.unescape(self.content).replace("\xa0", " ")
