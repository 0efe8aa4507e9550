"""
Session coordinator: the protocol handlers that tie the registry, rate limiter
and room directory together and emit outbound events through the hub.

Each handler runs its whole sequence under the state lock and only enqueues
outbound frames, so no other event is interleaved mid-sequence.
"""

import time
from datetime import datetime
from typing import Any, Callable

from pydantic import ValidationError

import events
from backend import SessionState
from constants import MAX_MESSAGE_LENGTH
from errors import ChatError, PrivateAccessDenied, RateLimited, RoomNotFound
from hub import ConnectionHub
from logging_config import get_logger
from schemas.rooms import ClientEvent, CreateRoomAck, FileMeta, InviteJoinAck, UsernameAck

logger = get_logger(__name__)

def now_iso() -> str:
    return datetime.now().isoformat()


class SessionCoordinator:
    def __init__(
        self,
        state: SessionState,
        hub: ConnectionHub,
        clock: Callable[[], float] = time.monotonic,
        timestamp: Callable[[], str] = now_iso,
        max_message_length: int = MAX_MESSAGE_LENGTH,
    ):
        self.state = state
        self.hub = hub
        self.clock = clock
        self.timestamp = timestamp
        self.max_message_length = max_message_length

        # Events that reply through an acknowledgment return its payload
        self.handlers = {
            events.SET_USERNAME: self.set_username,
            events.JOIN_ROOM: self.join_room,
            events.JOIN_WITH_INVITE: self.join_with_invite,
            events.CREATE_ROOM: self.create_room,
            events.TYPING: self.typing,
            events.STOP_TYPING: self.stop_typing,
            events.FILE_SHARED: self.file_shared,
            events.CHAT_MESSAGE: self.chat_message,
        }

    async def dispatch(self, connection_id: str, message: ClientEvent) -> None:
        handler = self.handlers.get(message.event)
        if handler is None:
            logger.debug(f"Ignoring unknown event '{message.event}' from connection {connection_id}")
            return

        if message.event in (events.TYPING, events.STOP_TYPING):
            result = await handler(connection_id)
        else:
            result = await handler(connection_id, message.data)

        if message.id is not None and result is not None:
            self.hub.ack(connection_id, message.id, result)

    # --- connection lifecycle ---

    async def connect(self, connection_id: str) -> None:
        async with self.state.lock:
            self.state.add_connection(connection_id)
            self.hub.send(connection_id, events.ROOM_LIST, self.state.rooms.public_names())
        logger.info(f"Connection {connection_id} connected")

    async def disconnect(self, connection_id: str) -> None:
        async with self.state.lock:
            username = self.state.registry.lookup(connection_id)
            left_rooms = self.state.rooms.rooms_of(connection_id)
            self.state.remove_connection(connection_id)

            for room_name in left_rooms:
                self.state.rooms.leave(room_name, connection_id)
                self.hub.publish(room_name, events.MEMBER_LIST, self.state.member_names(room_name))
                if username:
                    self.hub.publish(room_name, events.SYSTEM_MESSAGE, f"{username} disconnected")
        logger.info(f"Connection {connection_id} ({username}) disconnected, left rooms: {left_rooms}")

    # --- request/response events ---

    async def set_username(self, connection_id: str, username: Any) -> dict:
        async with self.state.lock:
            try:
                name = self.state.registry.claim(connection_id, username)
            except ChatError as e:
                logger.info(f"Username claim {username!r} by connection {connection_id} rejected: {e.message}")
                return UsernameAck(success=False, message=e.message).model_dump(exclude_none=True)
        logger.info(f"Username set: {name} (connection {connection_id})")
        return UsernameAck(success=True).model_dump(exclude_none=True)

    async def join_with_invite(self, connection_id: str, code: Any) -> dict:
        async with self.state.lock:
            try:
                room = self.state.rooms.resolve_invite(code)
            except ChatError as e:
                logger.info(f"Invite join by connection {connection_id} rejected: {e.message}")
                return InviteJoinAck(success=False, message=e.message).model_dump(exclude_none=True)
            self._switch_room(connection_id, room.name)
        return InviteJoinAck(success=True, room=room.name).model_dump(exclude_none=True)

    async def create_room(self, connection_id: str, name: Any) -> dict:
        async with self.state.lock:
            owner = self.state.registry.lookup(connection_id)
            try:
                invite_code = self.state.rooms.create(name, owner)
            except ChatError as e:
                logger.info(f"Room creation {name!r} by connection {connection_id} rejected: {e.message}")
                return CreateRoomAck(success=False, message=e.message).model_dump(exclude_none=True)
            self.hub.broadcast(events.ROOM_LIST, self.state.rooms.public_names())
        return CreateRoomAck(success=True, inviteCode=invite_code).model_dump(exclude_none=True)

    # --- notice-style events ---

    async def join_room(self, connection_id: str, room_name: Any) -> None:
        async with self.state.lock:
            username = self.state.registry.lookup(connection_id)
            try:
                if not isinstance(room_name, str) or not self.state.rooms.exists(room_name):
                    raise RoomNotFound()
                if not self.state.rooms.can_join_directly(room_name, username):
                    raise PrivateAccessDenied()
            except ChatError as e:
                logger.info(f"Join {room_name!r} by connection {connection_id} rejected: {e.message}")
                self.hub.send(connection_id, events.SYSTEM_MESSAGE, e.message)
                return
            self._switch_room(connection_id, room_name)

    def _switch_room(self, connection_id: str, new_room: str) -> None:
        """Move a connection into `new_room`. Caller holds the state lock."""
        rooms = self.state.rooms
        username = self.state.registry.lookup(connection_id)
        old_room = self.state.current_room(connection_id)

        if old_room is not None:
            rooms.leave(old_room, connection_id)
            if username is not None:
                self.hub.publish(old_room, events.SYSTEM_MESSAGE, f"{username} left the room")
            self.hub.publish(old_room, events.MEMBER_LIST, self.state.member_names(old_room))

        rooms.join(new_room, connection_id)
        self.state.current_rooms[connection_id] = new_room

        self.hub.publish(new_room, events.MEMBER_LIST, self.state.member_names(new_room))
        if username is not None:
            self.hub.publish(new_room, events.SYSTEM_MESSAGE, f"{username} joined the room", exclude=connection_id)
        self.hub.send(connection_id, events.SYSTEM_MESSAGE, f"You joined {new_room}")
        logger.info(f"User {username} moved from {old_room!r} to '{new_room}'")

    # --- relays ---

    async def typing(self, connection_id: str) -> None:
        await self._relay_typing(connection_id, events.TYPING)

    async def stop_typing(self, connection_id: str) -> None:
        await self._relay_typing(connection_id, events.STOP_TYPING)

    async def _relay_typing(self, connection_id: str, event: str) -> None:
        async with self.state.lock:
            room_name = self.state.current_room(connection_id)
            username = self.state.registry.lookup(connection_id)
            if room_name is None or username is None:
                return
            self.hub.publish(room_name, event, {"user": username}, exclude=connection_id)

    async def file_shared(self, connection_id: str, meta: Any) -> None:
        try:
            file_meta = FileMeta.model_validate(meta)
        except ValidationError:
            logger.debug(f"Discarding malformed fileShared payload from connection {connection_id}")
            return

        async with self.state.lock:
            room_name = self.state.current_room(connection_id)
            username = self.state.registry.lookup(connection_id)
            if room_name is None or username is None:
                return
            payload = {"username": username, **file_meta.model_dump(), "time": self.timestamp()}
            self.hub.publish(room_name, events.FILE_SHARED, payload, exclude=connection_id)
        logger.debug(f"{username} shared file '{file_meta.name}' in room '{room_name}'")

    async def chat_message(self, connection_id: str, text: Any) -> None:
        async with self.state.lock:
            room_name = self.state.current_room(connection_id)
            username = self.state.registry.lookup(connection_id)
            if room_name is None or username is None:
                return

            clean = str(text if text is not None else "").strip()[: self.max_message_length]
            if not clean:
                return

            if not self.state.rate_limiter.try_consume(connection_id, self.clock()):
                logger.warning(f"Rate limited chat message from {username} (connection {connection_id})")
                self.hub.send(connection_id, events.SYSTEM_MESSAGE, RateLimited().message)
                return

            payload = {"username": username, "text": clean, "time": self.timestamp()}
            self.hub.publish(room_name, events.CHAT_MESSAGE, payload, exclude=connection_id)
        logger.debug(f"Relayed chat message from {username} in room '{room_name}'")
