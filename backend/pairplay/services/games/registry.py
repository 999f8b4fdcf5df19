from __future__ import annotations

import logging
import random
import string
from threading import RLock
from typing import Dict, List, Optional

from .errors import NotFoundError, StateConflictError, ValidationError
from .state import Room


logger = logging.getLogger(__name__)

CODE_LENGTH = 4
MAX_CODE_ATTEMPTS = 100


def validate_room_code(code) -> bool:
    """A room code is exactly four lowercase ascii letters."""
    return (
        isinstance(code, str)
        and len(code) == CODE_LENGTH
        and all(c in string.ascii_lowercase for c in code)
    )


def random_code(rng=random) -> str:
    return ''.join(rng.choices(string.ascii_lowercase, k=CODE_LENGTH))


def generate_team_code(taken=(), rng=random) -> str:
    """Team codes only need to be unique within their own room."""
    taken = set(taken)
    for _ in range(MAX_CODE_ATTEMPTS):
        code = random_code(rng)
        if code not in taken:
            return code
    raise StateConflictError('Unable to generate unique team code')


class RoomCodeGenerator:
    """Generates room codes and tracks which are in use."""

    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng or random.Random()
        self._active: set[str] = set()

    def generate(self) -> str:
        for _ in range(MAX_CODE_ATTEMPTS):
            code = random_code(self._rng)
            if code not in self._active:
                self._active.add(code)
                return code
        raise StateConflictError(f'Unable to generate unique room code after {MAX_CODE_ATTEMPTS} attempts')

    def claim(self, code: str) -> None:
        self._active.add(code)

    def mark_inactive(self, code: str) -> None:
        self._active.discard(code)

    def is_active(self, code: str) -> bool:
        return code in self._active


class RoomRegistry:
    """Maps room codes to their Room aggregate.

    One registry is built by the application factory and handed to the
    transport layer; tests build their own.
    """

    def __init__(self, code_generator: Optional[RoomCodeGenerator] = None):
        self.codes = code_generator or RoomCodeGenerator()
        self._rooms: Dict[str, Room] = {}
        self._lock = RLock()

    def create_room(self, code: Optional[str] = None) -> Room:
        with self._lock:
            if code is None:
                code = self.codes.generate()
            else:
                if not validate_room_code(code):
                    raise ValidationError('Invalid room code')
                if code in self._rooms:
                    raise StateConflictError('Room already exists')
                self.codes.claim(code)
            room = Room(room_code=code)
            self._rooms[code] = room
        logger.info(f'Game initialized: {code}')
        return room

    def get(self, code: str) -> Optional[Room]:
        with self._lock:
            return self._rooms.get(code)

    def require(self, code: str) -> Room:
        room = self.get(code)
        if room is None:
            raise NotFoundError('Room not found')
        return room

    def has_room(self, code: str) -> bool:
        with self._lock:
            return code in self._rooms

    def delete_room(self, code: str) -> bool:
        with self._lock:
            removed = self._rooms.pop(code, None) is not None
            self.codes.mark_inactive(code)
        if removed:
            logger.info(f'Room deleted: {code}')
        return removed

    def get_room_codes(self) -> List[str]:
        with self._lock:
            return list(self._rooms.keys())

    def get_all_games(self) -> List[Room]:
        """Rooms whose game has not ended."""
        with self._lock:
            return [r for r in self._rooms.values() if r.status != 'ended']

    def get_game_state(self, code: str) -> dict:
        room = self.require(code)
        with room.lock:
            return room.to_dict()
