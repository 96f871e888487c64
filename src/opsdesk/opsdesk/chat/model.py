from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..core.enums import ChannelRole


@dataclass(frozen=True)
class Channel:
    channel_id: int
    name: str
    description: Optional[str] = None
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class ChannelMember:
    channel_id: int
    user_id: int
    role: ChannelRole = ChannelRole.MEMBER
    joined_at: Optional[datetime] = None
    last_read_at: Optional[datetime] = None


@dataclass(frozen=True)
class Message:
    message_id: int
    channel_id: int
    user_id: int
    content: str
    created_at: datetime
    parent_message_id: Optional[int] = None
    is_pinned: bool = False
    edited_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None
