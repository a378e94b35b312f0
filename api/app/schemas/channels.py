from datetime import datetime

from pydantic import BaseModel, Field


class ChannelCreateRequest(BaseModel):
    # Emptiness and length are checked by normalize_link so they surface as 400.
    link: str | None = None


class BoostRecordOut(BaseModel):
    boosted_at: datetime


class ChannelOut(BaseModel):
    id: str
    link: str
    name: str
    image: str = ""
    boosted_at: datetime
    created_at: datetime
    boost_count: int = 0
    boosts: list[BoostRecordOut] = Field(default_factory=list)


class BoostOut(BaseModel):
    message: str
    channel_id: str
    boosted_at: datetime
    trusted: bool = False


class MessageOut(BaseModel):
    message: str
