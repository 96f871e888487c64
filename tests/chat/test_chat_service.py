from __future__ import annotations

from dataclasses import replace
from datetime import timedelta

import pytest

from opsdesk.chat.model import Channel, ChannelMember, Message
from opsdesk.chat.service import ChatService
from opsdesk.core.enums import ChannelRole, Role
from opsdesk.core.exceptions import AuthorizationError, NotFoundError, ValidationError


class InMemoryChat:
    def __init__(self):
        self.channels: dict[int, Channel] = {}
        self.members: dict[tuple[int, int], ChannelMember] = {}
        self.messages: dict[int, Message] = {}

    def get_channel(self, channel_id):
        return self.channels.get(channel_id)

    def get_channel_by_name(self, name):
        return next((c for c in self.channels.values() if c.name.lower() == name.lower()), None)

    def create_channel(self, name, description, *, created_by, created_at) -> int:
        channel_id = len(self.channels) + 1
        self.channels[channel_id] = Channel(channel_id, name, description, created_by, created_at)
        return channel_id

    def list_memberships(self, user_id):
        return [m for (_, uid), m in self.members.items() if uid == user_id]

    def get_member(self, channel_id, user_id):
        return self.members.get((channel_id, user_id))

    def list_members(self, channel_id):
        return [m for (cid, _), m in self.members.items() if cid == channel_id]

    def add_member(self, channel_id, user_id, role, *, joined_at) -> None:
        self.members[(channel_id, user_id)] = ChannelMember(channel_id, user_id, role, joined_at)

    def remove_member(self, channel_id, user_id) -> bool:
        return self.members.pop((channel_id, user_id), None) is not None

    def set_last_read(self, channel_id, user_id, read_at) -> None:
        self.members[(channel_id, user_id)] = replace(self.members[(channel_id, user_id)], last_read_at=read_at)

    def get_message(self, message_id):
        return self.messages.get(message_id)

    def add_message(self, message: Message) -> int:
        message_id = len(self.messages) + 1
        self.messages[message_id] = replace(message, message_id=message_id)
        return message_id

    def update_content(self, message_id, content, *, edited_at) -> bool:
        self.messages[message_id] = replace(self.messages[message_id], content=content, edited_at=edited_at)
        return True

    def soft_delete(self, message_id, *, deleted_at) -> bool:
        self.messages[message_id] = replace(self.messages[message_id], deleted_at=deleted_at)
        return True

    def set_pinned(self, message_id, pinned) -> bool:
        self.messages[message_id] = replace(self.messages[message_id], is_pinned=pinned)
        return True

    def list_messages(self, channel_id, *, limit):
        items = [m for m in self.messages.values() if m.channel_id == channel_id and not m.is_deleted]
        return items[-limit:]

    def count_since(self, channel_id, *, since, exclude_user_id) -> int:
        return sum(
            1
            for m in self.messages.values()
            if m.channel_id == channel_id
            and m.user_id != exclude_user_id
            and not m.is_deleted
            and (since is None or m.created_at > since)
        )

    def search(self, channel_ids, query):
        return [
            m
            for m in self.messages.values()
            if m.channel_id in channel_ids and not m.is_deleted and query.lower() in m.content.lower()
        ]


MOD, ALICE, BOB, ADMIN = 1, 2, 3, 4


def _setup(fixed_now):
    repo = InMemoryChat()
    svc = ChatService(repo)
    channel_id = svc.create_channel(name="packing-floor", created_by=MOD, now=fixed_now)
    svc.add_member(channel_id, ALICE, actor_id=MOD, actor_role=Role.MANAGER, now=fixed_now)
    return svc, repo, channel_id


def test_creator_becomes_moderator(fixed_now):
    svc, repo, channel_id = _setup(fixed_now)

    assert repo.get_member(channel_id, MOD).role == ChannelRole.MODERATOR
    assert [c.name for c in svc.channels_for(ALICE)] == ["packing-floor"]


def test_re_adding_a_member_keeps_their_role(fixed_now):
    svc, repo, channel_id = _setup(fixed_now)

    svc.add_member(channel_id, MOD, actor_id=ADMIN, actor_role=Role.ADMIN, now=fixed_now)
    assert repo.get_member(channel_id, MOD).role == ChannelRole.MODERATOR

    svc.add_member(channel_id, ALICE, actor_id=MOD, actor_role=Role.EMPLOYEE, member_role=ChannelRole.MODERATOR, now=fixed_now)
    assert repo.get_member(channel_id, ALICE).role == ChannelRole.MODERATOR
    with pytest.raises(ValidationError, match="already exists"):
        svc.create_channel(name="Packing-Floor", created_by=ALICE, now=fixed_now)


def test_only_moderators_manage_members(fixed_now):
    svc, _, channel_id = _setup(fixed_now)

    with pytest.raises(AuthorizationError):
        svc.add_member(channel_id, BOB, actor_id=ALICE, actor_role=Role.EMPLOYEE, now=fixed_now)
    svc.add_member(channel_id, BOB, actor_id=ADMIN, actor_role=Role.ADMIN, now=fixed_now)
    svc.remove_member(channel_id, BOB, actor_id=MOD, actor_role=Role.EMPLOYEE)
    with pytest.raises(NotFoundError):
        svc.remove_member(channel_id, BOB, actor_id=MOD, actor_role=Role.EMPLOYEE)


def test_members_visible_to_members_only(fixed_now):
    svc, _, channel_id = _setup(fixed_now)

    assert len(svc.members(channel_id, user_id=ALICE, role=Role.EMPLOYEE)) == 2
    assert len(svc.members(channel_id, user_id=ADMIN, role=Role.ADMIN)) == 2
    with pytest.raises(AuthorizationError):
        svc.members(channel_id, user_id=BOB, role=Role.EMPLOYEE)


def test_post_message_rules(fixed_now):
    svc, _, channel_id = _setup(fixed_now)

    with pytest.raises(AuthorizationError):
        svc.post_message(channel_id, user_id=BOB, content="hi", now=fixed_now)
    with pytest.raises(ValidationError):
        svc.post_message(channel_id, user_id=ALICE, content="   ", now=fixed_now)
    with pytest.raises(ValidationError, match="at most 4000"):
        svc.post_message(channel_id, user_id=ALICE, content="x" * 4001, now=fixed_now)

    parent = svc.post_message(channel_id, user_id=ALICE, content="Out of tape", now=fixed_now)
    reply = svc.post_message(channel_id, user_id=MOD, content="On it", parent_message_id=parent, now=fixed_now)
    assert [m.message_id for m in svc.list_messages(channel_id, user_id=ALICE)] == [parent, reply]


def test_reply_must_stay_in_channel(fixed_now):
    svc, _, channel_id = _setup(fixed_now)
    other = svc.create_channel(name="returns", created_by=ALICE, now=fixed_now)
    parent = svc.post_message(other, user_id=ALICE, content="hello", now=fixed_now)

    with pytest.raises(ValidationError, match="same channel"):
        svc.post_message(channel_id, user_id=ALICE, content="reply", parent_message_id=parent, now=fixed_now)


def test_edit_delete_and_pin(fixed_now):
    svc, repo, channel_id = _setup(fixed_now)
    msg = svc.post_message(channel_id, user_id=ALICE, content="typo", now=fixed_now)

    with pytest.raises(AuthorizationError):
        svc.edit_message(msg, user_id=MOD, content="fixed", now=fixed_now)
    svc.edit_message(msg, user_id=ALICE, content="fixed", now=fixed_now)
    assert repo.messages[msg].content == "fixed"

    with pytest.raises(AuthorizationError):
        svc.pin(msg, user_id=ALICE, role=Role.EMPLOYEE)
    svc.pin(msg, user_id=MOD, role=Role.EMPLOYEE)
    assert repo.messages[msg].is_pinned
    svc.unpin(msg, user_id=ADMIN, role=Role.ADMIN)
    assert not repo.messages[msg].is_pinned

    svc.delete_message(msg, user_id=MOD, role=Role.EMPLOYEE, now=fixed_now)
    with pytest.raises(NotFoundError):
        svc.edit_message(msg, user_id=ALICE, content="again", now=fixed_now)


def test_unread_counts_and_search(fixed_now):
    svc, _, channel_id = _setup(fixed_now)
    svc.post_message(channel_id, user_id=MOD, content="Courier arrives at 3pm", now=fixed_now)
    svc.post_message(channel_id, user_id=ALICE, content="ok", now=fixed_now)

    assert svc.unread_counts(ALICE) == {channel_id: 1}

    svc.mark_read(channel_id, user_id=ALICE, now=fixed_now + timedelta(minutes=1))
    assert svc.unread_counts(ALICE) == {channel_id: 0}

    assert [m.content for m in svc.search(ALICE, "courier")] == ["Courier arrives at 3pm"]
    assert svc.search(BOB, "courier") == []
    with pytest.raises(ValidationError):
        svc.search(ALICE, " ")
