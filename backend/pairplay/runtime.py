from typing import Dict, Optional

from flask import current_app

from pairplay import socketio
from pairplay.services.games.bots import BotCoordinator
from pairplay.services.games.registry import RoomRegistry


class GameRuntime:
    """Process-level game state owned by the application.

    Holds the room registry, the bot coordinator, which socket belongs to
    which room and the pending host grace deadlines. ``spawn`` and ``sleep``
    default to Socket.IO's background task helpers; tests swap them out.
    """

    def __init__(self, app, registry: Optional[RoomRegistry] = None):
        self.app = app
        self.registry = registry or RoomRegistry()
        self.spawn = socketio.start_background_task
        self.sleep = socketio.sleep
        self.bots = BotCoordinator(
            self.registry,
            spawn=lambda fn, *args: self.spawn(fn, *args),
            sleep=lambda seconds: self.sleep(seconds),
            min_delay=app.config.get('BOT_MIN_DELAY_SEC', 2),
            max_delay=app.config.get('BOT_MAX_DELAY_SEC', 8),
            max_bots=app.config.get('MAX_BOTS', 24),
        )
        self.sessions: Dict[str, dict] = {}
        self.host_deadlines: Dict[str, float] = {}

    @property
    def grace_period(self) -> float:
        return float(self.app.config.get('HOST_GRACE_PERIOD_SEC', 5))

    def bind(self, sid: str, room_code: str, name: str, is_host: bool = False) -> None:
        self.sessions[sid] = {'room_code': room_code, 'name': name, 'is_host': is_host}

    def unbind(self, sid: str) -> Optional[dict]:
        return self.sessions.pop(sid, None)

    def session(self, sid: str) -> Optional[dict]:
        return self.sessions.get(sid)

    def forget_room(self, room_code: str) -> None:
        for sid in [s for s, ctx in self.sessions.items() if ctx['room_code'] == room_code]:
            self.sessions.pop(sid, None)
        self.host_deadlines.pop(room_code, None)
        self.bots.forget(room_code)


def get_runtime() -> GameRuntime:
    return current_app.extensions['pairplay']
