"""
messaging.py — SamvidhanAI
Direct user <-> lawyer messaging: persisted threads plus a WebSocket relay.

Every message is written to the database first; the in-process hub only
pushes a copy to sockets that are currently connected. A recipient that is
offline (or connected to another worker) reads the thread over REST.
"""

import logging
from collections import defaultdict
from typing import List, Optional

from fastapi import WebSocket
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from database import ChatMessage, ChatThread, Lawyer, User
from security import Principal

logger = logging.getLogger("samvidhan.messaging")


class MessagingError(Exception):
    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class SendMessageRequest(BaseModel):
    to: int
    message: str


class LawyerReplyRequest(BaseModel):
    userId: int
    message: str


def room_for(role: str, principal_id: int) -> str:
    return f"{role}_{principal_id}"


def message_out(msg: ChatMessage) -> dict:
    return {
        "id": msg.id,
        "threadId": msg.thread_id,
        "userId": msg.thread.user_id,
        "lawyerId": msg.thread.lawyer_id,
        "sender": msg.sender,
        "content": msg.content,
        "isRead": msg.is_read,
        "timestamp": msg.created_at.isoformat(),
    }


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


def get_or_create_thread(db: Session, user_id: int, lawyer_id: int) -> ChatThread:
    thread = db.scalar(
        select(ChatThread).where(ChatThread.user_id == user_id, ChatThread.lawyer_id == lawyer_id)
    )
    if thread is None:
        thread = ChatThread(user_id=user_id, lawyer_id=lawyer_id)
        db.add(thread)
        db.flush()
    return thread


def send_message(db: Session, sender: Principal, to_id: int, content: str) -> ChatMessage:
    """Persist one message from ``sender`` to the counterpart ``to_id``."""
    content = (content or "").strip()
    if not content:
        raise MessagingError("Message is required")

    if sender.role not in ("user", "lawyer"):
        raise MessagingError("Only users and lawyers can send messages", status_code=403)

    try:
        if sender.role == "user":
            lawyer = db.get(Lawyer, to_id)
            if lawyer is None or not lawyer.is_approved:
                raise MessagingError("Lawyer not found", status_code=404)
            user_id, lawyer_id = sender.id, to_id
        else:
            if db.get(User, to_id) is None:
                raise MessagingError("User not found", status_code=404)
            user_id, lawyer_id = to_id, sender.id

        thread = get_or_create_thread(db, user_id, lawyer_id)
        msg = ChatMessage(thread_id=thread.id, sender=sender.role, content=content)
        db.add(msg)
        db.commit()
        db.refresh(msg)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Failed to store message from %s_%s: %s", sender.role, sender.id, exc)
        raise MessagingError("Failed to send message", status_code=500) from exc
    return msg


def store_message(db: Session, sender: Principal, to_id: int, content: str) -> dict:
    """Persist a message and return its wire form; blocking, run it off the loop."""
    return message_out(send_message(db, sender, to_id, content))


def thread_messages(db: Session, principal: Principal, counterpart_id: int) -> List[dict]:
    if principal.role == "user":
        user_id, lawyer_id = principal.id, counterpart_id
    else:
        user_id, lawyer_id = counterpart_id, principal.id
    thread = db.scalar(
        select(ChatThread).where(ChatThread.user_id == user_id, ChatThread.lawyer_id == lawyer_id)
    )
    if thread is None:
        return []

    # Reading a thread marks the counterpart's messages as read
    changed = False
    for msg in thread.messages:
        if msg.sender != principal.role and not msg.is_read:
            msg.is_read = True
            changed = True
    if changed:
        db.commit()
    return [message_out(m) for m in thread.messages]


def lawyer_inbox(db: Session, lawyer_id: int) -> List[dict]:
    threads = db.scalars(
        select(ChatThread).where(ChatThread.lawyer_id == lawyer_id).order_by(ChatThread.id)
    ).all()
    inbox = []
    for thread in threads:
        last: Optional[ChatMessage] = thread.messages[-1] if thread.messages else None
        inbox.append({
            "threadId": thread.id,
            "userId": thread.user_id,
            "userName": thread.user.full_name,
            "lastMessage": message_out(last) if last else None,
            "unread": sum(1 for m in thread.messages if m.sender == "user" and not m.is_read),
        })
    return inbox


# ---------------------------------------------------------------------------
# WebSocket relay
# ---------------------------------------------------------------------------


class ConnectionHub:
    """Room name -> connected sockets, for this process only.

    join/leave never await, so they run atomically on the event loop.
    """

    def __init__(self):
        self._rooms: dict[str, set[WebSocket]] = defaultdict(set)

    def join(self, room: str, websocket: WebSocket) -> None:
        self._rooms[room].add(websocket)

    def leave(self, room: str, websocket: WebSocket) -> None:
        sockets = self._rooms.get(room)
        if sockets is not None:
            sockets.discard(websocket)
            if not sockets:
                del self._rooms[room]

    def connected(self, room: str) -> int:
        return len(self._rooms.get(room, ()))

    async def emit(self, room: str, payload: dict) -> int:
        targets = list(self._rooms.get(room, ()))
        delivered = 0
        for ws in targets:
            try:
                await ws.send_json(payload)
                delivered += 1
            except Exception as exc:
                logger.warning("Dropping dead socket in %s: %s", room, exc)
                self.leave(room, ws)
        return delivered


hub = ConnectionHub()


async def relay(msg_payload: dict, sender_role: str) -> None:
    """Push a stored message to the recipient's room."""
    if sender_role == "user":
        room = room_for("lawyer", msg_payload["lawyerId"])
    else:
        room = room_for("user", msg_payload["userId"])
    await hub.emit(room, {"type": "newMessage", **msg_payload})
