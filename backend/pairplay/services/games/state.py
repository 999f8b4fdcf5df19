from __future__ import annotations

import time
from dataclasses import asdict, dataclass, field
from threading import RLock
from typing import Literal, Optional


RoomStatus = Literal["lobby", "playing", "scoring", "ended"]
RoundStatus = Literal["answering", "selecting", "complete"]
Variant = Literal["open_ended", "multiple_choice", "binary", "pool_selection"]

VARIANTS = ("open_ended", "multiple_choice", "binary", "pool_selection")


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class Player:
    connection_id: str
    name: str
    connected: bool = True
    team_id: Optional[str] = None
    partner_id: Optional[str] = None
    avatar: dict = field(default_factory=dict)
    is_host: bool = False
    is_simulated: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class Team:
    team_id: str
    player1_id: str
    player2_id: str
    score: int = 0

    def member_ids(self) -> tuple[str, str]:
        return self.player1_id, self.player2_id

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class Answer:
    text: str
    response_time_ms: int = -1


@dataclass
class PoolEntry:
    author_name: str
    answer_text: str


@dataclass
class Round:
    round_number: int
    question: str
    variant: Variant = "open_ended"
    options: Optional[list[str]] = None
    answer_for_both: bool = False
    status: RoundStatus = "answering"
    answers: dict[str, Answer] = field(default_factory=dict)
    submitted_in_current_phase: list[str] = field(default_factory=list)
    picks: dict[str, str] = field(default_factory=dict)
    picks_submitted: list[str] = field(default_factory=list)
    answer_pool: Optional[list[PoolEntry]] = None
    revealed_pool_answers: set[str] = field(default_factory=set)
    revealed_pool_pickers: dict[str, list[str]] = field(default_factory=dict)
    pool_points_awarded: dict[str, int] = field(default_factory=dict)
    created_at: int = field(default_factory=now_ms)
    round_id: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "round_number": self.round_number,
            "round_id": self.round_id,
            "question": self.question,
            "variant": self.variant,
            "options": list(self.options) if self.options is not None else None,
            "answer_for_both": self.answer_for_both,
            "status": self.status,
            "answers": {name: asdict(a) for name, a in self.answers.items()},
            "submitted_in_current_phase": list(self.submitted_in_current_phase),
            "picks": dict(self.picks),
            "picks_submitted": list(self.picks_submitted),
            "answer_pool": [asdict(e) for e in self.answer_pool] if self.answer_pool is not None else None,
            "revealed_pool_answers": sorted(self.revealed_pool_answers),
            "revealed_pool_pickers": {k: list(v) for k, v in self.revealed_pool_pickers.items()},
            "pool_points_awarded": dict(self.pool_points_awarded),
            "created_at": self.created_at,
        }


@dataclass
class Room:
    room_code: str
    status: RoomStatus = "lobby"
    host: Optional[Player] = None
    players: list[Player] = field(default_factory=list)
    teams: list[Team] = field(default_factory=list)
    current_round: Optional[Round] = None
    imported_questions: Optional[dict] = None
    question_cursor: Optional[dict] = None
    last_round_number: int = 0
    team_total_response_times: dict[str, int] = field(default_factory=dict)
    created_at: int = field(default_factory=now_ms)
    lock: RLock = field(default_factory=RLock, repr=False, compare=False)

    def find_player(self, connection_id: str) -> Optional[Player]:
        for p in self.players:
            if p.connection_id == connection_id:
                return p
        return None

    def find_player_by_name(self, name: str) -> Optional[Player]:
        for p in self.players:
            if p.name == name:
                return p
        return None

    def find_team(self, team_id: Optional[str]) -> Optional[Team]:
        if not team_id:
            return None
        for t in self.teams:
            if t.team_id == team_id:
                return t
        return None

    def partner_of(self, player: Player) -> Optional[Player]:
        if not player.partner_id:
            return None
        return self.find_player(player.partner_id)

    def connected_players(self) -> list[Player]:
        return [p for p in self.players if p.connected]

    def is_host_connection(self, connection_id: str) -> bool:
        return self.host is not None and self.host.connection_id == connection_id

    def to_dict(self) -> dict:
        return {
            "room_code": self.room_code,
            "status": self.status,
            "host": self.host.to_dict() if self.host else None,
            "players": [p.to_dict() for p in self.players],
            "teams": [t.to_dict() for t in self.teams],
            "current_round": self.current_round.to_dict() if self.current_round else None,
            "imported_questions": self.imported_questions,
            "question_cursor": dict(self.question_cursor) if self.question_cursor else None,
            "last_round_number": self.last_round_number,
            "team_total_response_times": dict(self.team_total_response_times),
            "created_at": self.created_at,
        }
