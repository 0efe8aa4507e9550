import asyncio
import random
import string
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Set

from constants import INVITE_CODE_LENGTH, MESSAGE_LIMIT, MESSAGE_WINDOW_SECONDS
from errors import AlreadyNamed, EmptyInput, InvalidInvite, NameTaken, RoomExists
from logging_config import get_logger

logger = get_logger(__name__)


def generate_invite_code(length: int = INVITE_CODE_LENGTH) -> str:
    return ''.join(random.choices(string.ascii_uppercase + string.digits, k=length))


@dataclass
class RoomMeta:
    name: str
    private: bool = False
    owner: Optional[str] = None
    invite_code: Optional[str] = None
    created_at: str = field(default_factory=lambda: datetime.now().isoformat())


@dataclass
class RateBucket:
    count: int
    window_start: float


class ConnectionRegistry:
    """Maps connection ids to claimed usernames. A username belongs to at most one live connection."""

    def __init__(self):
        self._names: Dict[str, str] = {}   # connection_id -> username
        self._owners: Dict[str, str] = {}  # username -> connection_id

    def claim(self, connection_id: str, username: str) -> str:
        name = str(username or "").strip()
        if not name:
            raise EmptyInput("Username required")

        current = self._names.get(connection_id)
        if current == name:
            return name
        if name in self._owners:
            logger.debug(f"Username '{name}' already held by connection {self._owners[name]}")
            raise NameTaken()
        if current is not None:
            raise AlreadyNamed()

        self._names[connection_id] = name
        self._owners[name] = connection_id
        logger.debug(f"Connection {connection_id} claimed username '{name}'")
        return name

    def release(self, connection_id: str) -> Optional[str]:
        name = self._names.pop(connection_id, None)
        if name is not None:
            self._owners.pop(name, None)
            logger.debug(f"Released username '{name}' from connection {connection_id}")
        return name

    def lookup(self, connection_id: str) -> Optional[str]:
        return self._names.get(connection_id)

    def usernames(self, connection_ids: Iterable[str]) -> List[str]:
        """Usernames for the given connections, skipping connections that never claimed one."""
        return sorted(self._names[c] for c in connection_ids if c in self._names)

    def __len__(self):
        return len(self._names)


class RateLimiter:
    """Fixed-window counter per connection.

    The message that crosses the limit still counts, so repeated attempts keep
    failing until the window rolls over.
    """

    def __init__(self, limit: int = MESSAGE_LIMIT, window_seconds: float = MESSAGE_WINDOW_SECONDS):
        self.limit = limit
        self.window_seconds = window_seconds
        self._buckets: Dict[str, RateBucket] = {}

    def try_consume(self, connection_id: str, now: float) -> bool:
        bucket = self._buckets.get(connection_id)
        if bucket is None:
            bucket = RateBucket(count=0, window_start=now)
            self._buckets[connection_id] = bucket
        if now - bucket.window_start > self.window_seconds:
            bucket.count = 0
            bucket.window_start = now
        bucket.count += 1
        return bucket.count <= self.limit

    def discard(self, connection_id: str) -> None:
        self._buckets.pop(connection_id, None)

    def bucket(self, connection_id: str) -> Optional[RateBucket]:
        return self._buckets.get(connection_id)


class RoomDirectory:
    def __init__(self):
        self._rooms: Dict[str, RoomMeta] = {}
        self._members: Dict[str, Set[str]] = {}
        self._invites: Dict[str, str] = {}  # invite code -> room name

    def seed_public(self, names: Iterable[str]) -> None:
        for name in names:
            if name in self._rooms:
                continue
            self._rooms[name] = RoomMeta(name=name)
            self._members[name] = set()
            logger.info(f"Seeded public room '{name}'")

    def create(self, name: str, owner: Optional[str]) -> str:
        """Create a private room and return its invite code."""
        clean = str(name or "").strip()
        if not clean:
            raise EmptyInput("Room name required")
        if clean in self._rooms:
            raise RoomExists()

        code = generate_invite_code()
        while code in self._invites:
            code = generate_invite_code()

        self._rooms[clean] = RoomMeta(name=clean, private=True, owner=owner, invite_code=code)
        self._members[clean] = set()
        self._invites[code] = clean
        logger.info(f"Created private room '{clean}' owned by {owner!r}")
        return code

    def get(self, name: str) -> Optional[RoomMeta]:
        return self._rooms.get(name)

    def exists(self, name: str) -> bool:
        return self.get(name) is not None

    def resolve_invite(self, code: str) -> RoomMeta:
        clean = code.strip().upper() if isinstance(code, str) else ""
        if not clean:
            raise InvalidInvite("Invite code required")
        room_name = self._invites.get(clean)
        if room_name is None:
            raise InvalidInvite()
        return self._rooms[room_name]

    def can_join_directly(self, name: str, username: Optional[str]) -> bool:
        room = self.get(name)
        if room is None:
            return False
        if not room.private:
            return True
        return username is not None and username == room.owner

    def public_names(self) -> List[str]:
        return [name for name, meta in self._rooms.items() if not meta.private]

    def members(self, name: str) -> Set[str]:
        return set(self._members.get(name, ()))

    def member_count(self, name: str) -> int:
        return len(self._members.get(name, ()))

    def join(self, name: str, connection_id: str) -> None:
        self._members.setdefault(name, set()).add(connection_id)
        logger.debug(f"Connection {connection_id} added to room '{name}' ({len(self._members[name])} members)")

    def leave(self, name: str, connection_id: str) -> None:
        members = self._members.get(name)
        if members is not None:
            members.discard(connection_id)
            logger.debug(f"Connection {connection_id} removed from room '{name}' ({len(members)} members)")

    def rooms_of(self, connection_id: str) -> List[str]:
        return [name for name, members in self._members.items() if connection_id in members]

    def clear(self) -> None:
        self._rooms.clear()
        self._members.clear()
        self._invites.clear()


class SessionState:
    """All shared relay state for one process.

    Every multi-step mutation must hold `lock` for its whole sequence.
    """

    def __init__(self, seed_rooms: Iterable[str] = (), rate_limiter: RateLimiter = None):
        self.lock = asyncio.Lock()
        self.registry = ConnectionRegistry()
        self.rooms = RoomDirectory()
        self.rate_limiter = rate_limiter or RateLimiter()
        self.current_rooms: Dict[str, Optional[str]] = {}  # connection_id -> room name
        self.rooms.seed_public(seed_rooms)

    def add_connection(self, connection_id: str) -> None:
        self.current_rooms[connection_id] = None

    def remove_connection(self, connection_id: str) -> None:
        self.current_rooms.pop(connection_id, None)
        self.registry.release(connection_id)
        self.rate_limiter.discard(connection_id)

    def current_room(self, connection_id: str) -> Optional[str]:
        return self.current_rooms.get(connection_id)

    def member_names(self, room_name: str) -> List[str]:
        return self.registry.usernames(self.rooms.members(room_name))

    def close(self) -> None:
        logger.info(f"Tearing down session state ({len(self.current_rooms)} live connections, {len(self.registry)} named)")
        for connection_id in list(self.current_rooms):
            self.remove_connection(connection_id)
        self.rooms.clear()
