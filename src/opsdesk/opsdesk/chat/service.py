from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional, Sequence

from ..common.datetime_utils import now_local
from ..common.validators import optional_text, require_max_length, require_non_empty
from ..core.constants import DEFAULT_PAGE_SIZE, MAX_MESSAGE_LENGTH
from ..core.enums import ChannelRole, Role
from ..core.exceptions import AuthorizationError, NotFoundError, ValidationError
from .model import Channel, ChannelMember, Message
from .repository import ChatRepository

logger = logging.getLogger(__name__)


class ChatService:
    def __init__(self, chat: ChatRepository):
        self._chat = chat

    def _channel(self, channel_id: int) -> Channel:
        channel = self._chat.get_channel(channel_id)
        if not channel:
            raise NotFoundError("Channel not found")
        return channel

    def _message(self, message_id: int) -> Message:
        message = self._chat.get_message(message_id)
        if not message or message.is_deleted:
            raise NotFoundError("Message not found")
        return message

    def _require_member(self, channel_id: int, user_id: int) -> ChannelMember:
        member = self._chat.get_member(channel_id, user_id)
        if not member:
            raise AuthorizationError("You are not a member of this channel")
        return member

    def _is_moderator(self, channel_id: int, user_id: int, role: Role) -> bool:
        if role == Role.ADMIN:
            return True
        member = self._chat.get_member(channel_id, user_id)
        return member is not None and member.role == ChannelRole.MODERATOR

    def _require_moderator(self, channel_id: int, user_id: int, role: Role) -> None:
        if not self._is_moderator(channel_id, user_id, role):
            raise AuthorizationError("Only channel moderators can do this")

    def create_channel(
        self, *, name: str, description: Optional[str] = None, created_by: int, now: Optional[datetime] = None
    ) -> int:
        name = require_max_length(require_non_empty(name, "Channel name"), "Channel name", 80)
        if self._chat.get_channel_by_name(name):
            raise ValidationError("A channel with this name already exists")
        now = now or now_local()
        channel_id = self._chat.create_channel(name, optional_text(description), created_by=created_by, created_at=now)
        self._chat.add_member(channel_id, created_by, ChannelRole.MODERATOR, joined_at=now)
        logger.info("Channel %s created by user %s", name, created_by)
        return channel_id

    def channels_for(self, user_id: int) -> list[Channel]:
        return [self._channel(m.channel_id) for m in self._chat.list_memberships(user_id)]

    def members(self, channel_id: int, *, user_id: int, role: Role) -> Sequence[ChannelMember]:
        self._channel(channel_id)
        if role != Role.ADMIN:
            self._require_member(channel_id, user_id)
        return self._chat.list_members(channel_id)

    def add_member(
        self,
        channel_id: int,
        member_id: int,
        *,
        actor_id: int,
        actor_role: Role,
        member_role: Optional[ChannelRole] = None,
        now: Optional[datetime] = None,
    ) -> None:
        """Add a member, or change an existing member's role when ``member_role`` is given."""

        self._channel(channel_id)
        self._require_moderator(channel_id, actor_id, actor_role)
        if member_role is None:
            if self._chat.get_member(channel_id, member_id) is not None:
                return
            member_role = ChannelRole.MEMBER
        self._chat.add_member(channel_id, member_id, member_role, joined_at=now or now_local())

    def remove_member(self, channel_id: int, member_id: int, *, actor_id: int, actor_role: Role) -> None:
        self._channel(channel_id)
        self._require_moderator(channel_id, actor_id, actor_role)
        if not self._chat.remove_member(channel_id, member_id):
            raise NotFoundError("Member not found")

    def post_message(
        self,
        channel_id: int,
        *,
        user_id: int,
        content: str,
        parent_message_id: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> int:
        self._channel(channel_id)
        self._require_member(channel_id, user_id)
        content = require_max_length(require_non_empty(content, "Message"), "Message", MAX_MESSAGE_LENGTH)
        if parent_message_id is not None and self._message(parent_message_id).channel_id != channel_id:
            raise ValidationError("Replies must stay in the same channel")

        return self._chat.add_message(
            Message(
                message_id=0,
                channel_id=channel_id,
                user_id=user_id,
                content=content,
                parent_message_id=parent_message_id,
                created_at=now or now_local(),
            )
        )

    def edit_message(self, message_id: int, *, user_id: int, content: str, now: Optional[datetime] = None) -> None:
        message = self._message(message_id)
        if message.user_id != user_id:
            raise AuthorizationError("Only the author can edit this message")
        content = require_max_length(require_non_empty(content, "Message"), "Message", MAX_MESSAGE_LENGTH)
        self._chat.update_content(message_id, content, edited_at=now or now_local())

    def delete_message(self, message_id: int, *, user_id: int, role: Role, now: Optional[datetime] = None) -> None:
        message = self._message(message_id)
        if message.user_id != user_id and not self._is_moderator(message.channel_id, user_id, role):
            raise AuthorizationError("You cannot delete this message")
        self._chat.soft_delete(message_id, deleted_at=now or now_local())

    def _set_pinned(self, message_id: int, pinned: bool, user_id: int, role: Role) -> None:
        message = self._message(message_id)
        self._require_moderator(message.channel_id, user_id, role)
        self._chat.set_pinned(message_id, pinned)

    def pin(self, message_id: int, *, user_id: int, role: Role) -> None:
        self._set_pinned(message_id, True, user_id, role)

    def unpin(self, message_id: int, *, user_id: int, role: Role) -> None:
        self._set_pinned(message_id, False, user_id, role)

    def list_messages(self, channel_id: int, *, user_id: int, limit: int = DEFAULT_PAGE_SIZE) -> Sequence[Message]:
        self._channel(channel_id)
        self._require_member(channel_id, user_id)
        return self._chat.list_messages(channel_id, limit=limit)

    def mark_read(self, channel_id: int, *, user_id: int, now: Optional[datetime] = None) -> None:
        self._require_member(channel_id, user_id)
        self._chat.set_last_read(channel_id, user_id, now or now_local())

    def unread_counts(self, user_id: int) -> dict[int, int]:
        return {
            m.channel_id: self._chat.count_since(m.channel_id, since=m.last_read_at, exclude_user_id=user_id)
            for m in self._chat.list_memberships(user_id)
        }

    def search(self, user_id: int, query: str) -> Sequence[Message]:
        query = require_non_empty(query, "Search query")
        channel_ids = [m.channel_id for m in self._chat.list_memberships(user_id)]
        return self._chat.search(channel_ids, query)
