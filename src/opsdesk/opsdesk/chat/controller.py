from __future__ import annotations

from flask import Flask, jsonify, request

from ..common.validators import parse_int
from ..container import Container
from ..core.enums import ChannelRole, Module
from ..core.exceptions import ValidationError
from ..web.auth import current_user, handle_errors, module_required
from .model import Message


def _message_json(m: Message) -> dict:
    return {
        "message_id": m.message_id,
        "channel_id": m.channel_id,
        "user_id": m.user_id,
        "content": m.content,
        "parent_message_id": m.parent_message_id,
        "is_pinned": m.is_pinned,
        "created_at": m.created_at.isoformat(),
        "edited_at": m.edited_at.isoformat() if m.edited_at else None,
    }


def register(app: Flask, container: Container) -> None:
    chat = container.chat_service

    @app.route("/chat/channels", endpoint="chat_channels")
    @module_required(Module.CHAT)
    @handle_errors
    def chat_channels():
        user = current_user()
        unread = chat.unread_counts(user.user_id)
        return jsonify(
            {
                "channels": [
                    {
                        "channel_id": c.channel_id,
                        "name": c.name,
                        "description": c.description,
                        "unread": unread.get(c.channel_id, 0),
                    }
                    for c in chat.channels_for(user.user_id)
                ]
            }
        )

    @app.route("/chat/channels", methods=["POST"], endpoint="chat_channel_create")
    @module_required(Module.CHAT)
    @handle_errors
    def chat_channel_create():
        data = request.get_json(silent=True) or {}
        channel_id = chat.create_channel(
            name=data.get("name", ""), description=data.get("description"), created_by=current_user().user_id
        )
        return jsonify({"success": True, "channel_id": channel_id}), 201

    @app.route("/chat/channels/<int:channel_id>/members", methods=["GET", "POST"], endpoint="chat_members")
    @module_required(Module.CHAT)
    @handle_errors
    def chat_members(channel_id: int):
        user = current_user()
        if request.method == "POST":
            data = request.get_json(silent=True) or {}
            try:
                member_role = ChannelRole(data["role"]) if data.get("role") else None
            except ValueError:
                raise ValidationError("Invalid channel role")
            chat.add_member(
                channel_id,
                parse_int(data.get("user_id"), "user id", 0),
                actor_id=user.user_id,
                actor_role=user.role,
                member_role=member_role,
            )
            return jsonify({"success": True}), 201
        members = chat.members(channel_id, user_id=user.user_id, role=user.role)
        return jsonify({"members": [{"user_id": m.user_id, "role": m.role.value} for m in members]})

    @app.route("/chat/channels/<int:channel_id>/members/<int:member_id>", methods=["DELETE"], endpoint="chat_member_remove")
    @module_required(Module.CHAT)
    @handle_errors
    def chat_member_remove(channel_id: int, member_id: int):
        user = current_user()
        chat.remove_member(channel_id, member_id, actor_id=user.user_id, actor_role=user.role)
        return jsonify({"success": True})

    @app.route("/chat/channels/<int:channel_id>/messages", methods=["GET", "POST"], endpoint="chat_messages")
    @module_required(Module.CHAT)
    @handle_errors
    def chat_messages(channel_id: int):
        user = current_user()
        if request.method == "POST":
            data = request.get_json(silent=True) or {}
            message_id = chat.post_message(
                channel_id,
                user_id=user.user_id,
                content=data.get("content", ""),
                parent_message_id=parse_int(data.get("parent_message_id"), "parent message id"),
            )
            return jsonify({"success": True, "message_id": message_id}), 201
        messages = chat.list_messages(channel_id, user_id=user.user_id, limit=parse_int(request.args.get("limit"), "limit", 50))
        return jsonify({"messages": [_message_json(m) for m in messages]})

    @app.route("/chat/channels/<int:channel_id>/read", methods=["POST"], endpoint="chat_mark_read")
    @module_required(Module.CHAT)
    @handle_errors
    def chat_mark_read(channel_id: int):
        chat.mark_read(channel_id, user_id=current_user().user_id)
        return jsonify({"success": True})

    @app.route("/chat/messages/<int:message_id>", methods=["PUT", "DELETE"], endpoint="chat_message")
    @module_required(Module.CHAT)
    @handle_errors
    def chat_message(message_id: int):
        user = current_user()
        if request.method == "DELETE":
            chat.delete_message(message_id, user_id=user.user_id, role=user.role)
        else:
            data = request.get_json(silent=True) or {}
            chat.edit_message(message_id, user_id=user.user_id, content=data.get("content", ""))
        return jsonify({"success": True})

    @app.route("/chat/messages/<int:message_id>/pin", methods=["POST", "DELETE"], endpoint="chat_message_pin")
    @module_required(Module.CHAT)
    @handle_errors
    def chat_message_pin(message_id: int):
        user = current_user()
        action = chat.pin if request.method == "POST" else chat.unpin
        action(message_id, user_id=user.user_id, role=user.role)
        return jsonify({"success": True})

    @app.route("/chat/search", endpoint="chat_search")
    @module_required(Module.CHAT)
    @handle_errors
    def chat_search():
        results = chat.search(current_user().user_id, request.args.get("q", ""))
        return jsonify({"messages": [_message_json(m) for m in results]})
