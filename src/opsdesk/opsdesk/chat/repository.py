from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from ..core.enums import ChannelRole
from .model import Channel, ChannelMember, Message


class ChatRepository(Protocol):
    def get_channel(self, channel_id: int) -> Optional[Channel]:
        raise NotImplementedError

    def get_channel_by_name(self, name: str) -> Optional[Channel]:
        raise NotImplementedError

    def create_channel(self, name: str, description: Optional[str], *, created_by: int, created_at: datetime) -> int:
        raise NotImplementedError

    def list_memberships(self, user_id: int) -> Sequence[ChannelMember]:
        raise NotImplementedError

    def get_member(self, channel_id: int, user_id: int) -> Optional[ChannelMember]:
        raise NotImplementedError

    def list_members(self, channel_id: int) -> Sequence[ChannelMember]:
        raise NotImplementedError

    def add_member(self, channel_id: int, user_id: int, role: ChannelRole, *, joined_at: datetime) -> None:
        raise NotImplementedError

    def remove_member(self, channel_id: int, user_id: int) -> bool:
        raise NotImplementedError

    def set_last_read(self, channel_id: int, user_id: int, at: datetime) -> None:
        raise NotImplementedError

    def get_message(self, message_id: int) -> Optional[Message]:
        raise NotImplementedError

    def add_message(self, message: Message) -> int:
        raise NotImplementedError

    def update_content(self, message_id: int, content: str, *, edited_at: datetime) -> None:
        raise NotImplementedError

    def soft_delete(self, message_id: int, *, deleted_at: datetime) -> None:
        raise NotImplementedError

    def set_pinned(self, message_id: int, pinned: bool) -> None:
        raise NotImplementedError

    def list_messages(self, channel_id: int, *, limit: int) -> Sequence[Message]:
        """Non-deleted messages, oldest first, capped to the newest ``limit``."""
        raise NotImplementedError

    def count_since(self, channel_id: int, *, since: Optional[datetime], exclude_user_id: int) -> int:
        raise NotImplementedError

    def search(self, channel_ids: Sequence[int], query: str) -> Sequence[Message]:
        raise NotImplementedError
