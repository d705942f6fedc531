from datetime import datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator

from eiga.models.reaction import ReactionType
from eiga.schemas.common import Booleanish, OptionalBooleanish, OptionalInt

# raw clock strings are normalized to seconds by the service
Timecode = int | float | str | None


class DiscussionCreateRequest(BaseModel):
    film_id: int = Field(gt=0)
    parent_id: OptionalInt = Field(default=None, gt=0)
    # client-side hint only; the real depth is read from the store
    parent_depth: OptionalInt = Field(default=None, ge=0, le=1)
    content: str
    has_spoilers: Booleanish = False
    timestamp_reference: Timecode = None

    @model_validator(mode="after")
    def _two_levels(self):
        if self.parent_id and self.parent_depth is not None and self.parent_depth >= 1:
            raise ValueError("Replies are limited to two levels.")
        return self


class DiscussionEditRequest(BaseModel):
    id: int = Field(gt=0)
    content: str | None = None
    has_spoilers: OptionalBooleanish = None
    timestamp_reference: Timecode = None


class DiscussionDeleteRequest(BaseModel):
    id: int = Field(gt=0)


class ReactionAddRequest(BaseModel):
    comment_id: int = Field(gt=0, validation_alias=AliasChoices("comment_id", "discussion_id"))
    type: ReactionType


class ReactionRemoveRequest(BaseModel):
    comment_id: int = Field(gt=0, validation_alias=AliasChoices("comment_id", "discussion_id"))


class HighlightRequest(BaseModel):
    item_id: int = Field(gt=0)
    highlight: Booleanish = True


class CommentPublic(BaseModel):
    id: int
    film_id: int
    parent_id: int | None
    author_id: int
    author_username: str | None = None
    content: str
    has_spoilers: bool
    timestamp_reference: int | None
    is_highlighted: bool
    created_at: datetime
    edited_at: datetime | None
    reactions: dict[str, int] = {}
    my_reaction: ReactionType | None = None
    replies: list["CommentPublic"] = []

    model_config = ConfigDict(from_attributes=True)
