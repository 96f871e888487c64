from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence

from ..core.enums import ChannelRole
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, in_clause
from .model import Channel, ChannelMember, Message
from .repository import ChatRepository

_MESSAGE_SELECT = """
    SELECT message_id, channel_id, user_id, content, parent_message_id, is_pinned, created_at, edited_at, deleted_at
    FROM messages
"""


def _to_channel(r: dict) -> Channel:
    return Channel(
        channel_id=int(r["channel_id"]),
        name=r["name"],
        description=r.get("description"),
        created_by=r.get("created_by"),
        created_at=r.get("created_at"),
    )


def _to_member(r: dict) -> ChannelMember:
    return ChannelMember(
        channel_id=int(r["channel_id"]),
        user_id=int(r["user_id"]),
        role=ChannelRole(r["role"]),
        joined_at=r.get("joined_at"),
        last_read_at=r.get("last_read_at"),
    )


def _to_message(r: dict) -> Message:
    return Message(
        message_id=int(r["message_id"]),
        channel_id=int(r["channel_id"]),
        user_id=int(r["user_id"]),
        content=r["content"],
        parent_message_id=r.get("parent_message_id"),
        is_pinned=bool(r.get("is_pinned")),
        created_at=r["created_at"],
        edited_at=r.get("edited_at"),
        deleted_at=r.get("deleted_at"),
    )


class MySQLChatRepository(ChatRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_channel(self, channel_id: int) -> Optional[Channel]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT channel_id, name, description, created_by, created_at FROM channels WHERE channel_id=%s",
                (int(channel_id),),
            )
            r = fetchone(cur)
            return _to_channel(r) if r else None

    def get_channel_by_name(self, name: str) -> Optional[Channel]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT channel_id, name, description, created_by, created_at FROM channels WHERE name=%s",
                (name,),
            )
            r = fetchone(cur)
            return _to_channel(r) if r else None

    def create_channel(self, name: str, description: Optional[str], *, created_by: int, created_at: datetime) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "INSERT INTO channels(name, description, created_by, created_at) VALUES(%s,%s,%s,%s)",
                (name, description, int(created_by), created_at),
            )
            return int(cur.lastrowid)

    def list_memberships(self, user_id: int) -> Sequence[ChannelMember]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT channel_id, user_id, role, joined_at, last_read_at FROM channel_members WHERE user_id=%s",
                (int(user_id),),
            )
            return [_to_member(r) for r in fetchall(cur)]

    def get_member(self, channel_id: int, user_id: int) -> Optional[ChannelMember]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT channel_id, user_id, role, joined_at, last_read_at
                FROM channel_members
                WHERE channel_id=%s AND user_id=%s
                """,
                (int(channel_id), int(user_id)),
            )
            r = fetchone(cur)
            return _to_member(r) if r else None

    def list_members(self, channel_id: int) -> Sequence[ChannelMember]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT channel_id, user_id, role, joined_at, last_read_at
                FROM channel_members
                WHERE channel_id=%s
                ORDER BY joined_at
                """,
                (int(channel_id),),
            )
            return [_to_member(r) for r in fetchall(cur)]

    def add_member(self, channel_id: int, user_id: int, role: ChannelRole, *, joined_at: datetime) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO channel_members(channel_id, user_id, role, joined_at)
                VALUES(%s,%s,%s,%s)
                ON DUPLICATE KEY UPDATE role=VALUES(role)
                """,
                (int(channel_id), int(user_id), role.value, joined_at),
            )

    def remove_member(self, channel_id: int, user_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "DELETE FROM channel_members WHERE channel_id=%s AND user_id=%s",
                (int(channel_id), int(user_id)),
            )
            return cur.rowcount > 0

    def set_last_read(self, channel_id: int, user_id: int, at: datetime) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE channel_members SET last_read_at=%s WHERE channel_id=%s AND user_id=%s",
                (at, int(channel_id), int(user_id)),
            )

    def get_message(self, message_id: int) -> Optional[Message]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"{_MESSAGE_SELECT} WHERE message_id=%s", (int(message_id),))
            r = fetchone(cur)
            return _to_message(r) if r else None

    def add_message(self, message: Message) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO messages(channel_id, user_id, content, parent_message_id, created_at)
                VALUES(%s,%s,%s,%s,%s)
                """,
                (message.channel_id, message.user_id, message.content, message.parent_message_id, message.created_at),
            )
            return int(cur.lastrowid)

    def update_content(self, message_id: int, content: str, *, edited_at: datetime) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE messages SET content=%s, edited_at=%s WHERE message_id=%s",
                (content, edited_at, int(message_id)),
            )

    def soft_delete(self, message_id: int, *, deleted_at: datetime) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("UPDATE messages SET deleted_at=%s WHERE message_id=%s", (deleted_at, int(message_id)))

    def set_pinned(self, message_id: int, pinned: bool) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("UPDATE messages SET is_pinned=%s WHERE message_id=%s", (1 if pinned else 0, int(message_id)))

    def list_messages(self, channel_id: int, *, limit: int) -> Sequence[Message]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT * FROM (
                    {_MESSAGE_SELECT}
                    WHERE channel_id=%s AND deleted_at IS NULL
                    ORDER BY created_at DESC, message_id DESC
                    LIMIT %s
                ) recent
                ORDER BY created_at, message_id
                """,
                (int(channel_id), int(limit)),
            )
            return [_to_message(r) for r in fetchall(cur)]

    def count_since(self, channel_id: int, *, since: Optional[datetime], exclude_user_id: int) -> int:
        sql = """
            SELECT COUNT(*) AS cnt FROM messages
            WHERE channel_id=%s AND user_id<>%s AND deleted_at IS NULL
        """
        params: list[object] = [int(channel_id), int(exclude_user_id)]
        if since is not None:
            sql += " AND created_at > %s"
            params.append(since)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, tuple(params))
            r = fetchone(cur)
            return int(r["cnt"]) if r else 0

    def search(self, channel_ids: Sequence[int], query: str) -> Sequence[Message]:
        if not channel_ids:
            return []
        ids_sql, ids = in_clause("channel_id", [int(i) for i in channel_ids])
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                {_MESSAGE_SELECT}
                WHERE {ids_sql} AND deleted_at IS NULL AND content LIKE %s
                ORDER BY created_at DESC
                LIMIT 100
                """,
                (*ids, f"%{query}%"),
            )
            return [_to_message(r) for r in fetchall(cur)]
