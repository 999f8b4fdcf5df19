"""Round history persistence.

Everything here runs inside an application context. The in-memory room has
already moved on by the time these are called, so a failure is rolled back,
logged and raised as PersistenceError for the caller to report; nothing is
retried.
"""
import json
from typing import List, Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from pairplay import db
from pairplay.models import AnswerRecord, Game, RoundRecord, utcnow


class PersistenceError(Exception):
    pass


def _commit(tag: str) -> None:
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"[db-error] op={tag} error={e}")
        raise PersistenceError(f'Failed to {tag.replace("_", " ")}') from e


def _open_game(room_code: str) -> Optional[Game]:
    return (
        Game.query.filter_by(room_code=room_code, ended_at=None)
        .order_by(Game.id.desc())
        .first()
    )


def _latest_game(room_code: str) -> Optional[Game]:
    return Game.query.filter_by(room_code=room_code).order_by(Game.id.desc()).first()


def create_game(room_code: str) -> int:
    game = Game(room_code=room_code)
    db.session.add(game)
    _commit('create_game')
    current_app.logger.info(f"[db] game created room={room_code} id={game.id}")
    return game.id


def ensure_game(room_code: str) -> int:
    """The open game for a room, created if the last one was ended."""
    game = _open_game(room_code)
    if game is not None:
        return game.id
    return create_game(room_code)


def end_game(room_code: str) -> None:
    game = _open_game(room_code)
    if game is None:
        return
    game.ended_at = utcnow()
    db.session.add(game)
    _commit('end_game')
    current_app.logger.info(f"[db] game ended room={room_code} id={game.id}")


def save_round(room_code: str, round_number: int, question: str, variant: str = 'open_ended', options=None) -> int:
    game = _open_game(room_code)
    if game is None:
        raise PersistenceError(f'No open game for room {room_code}')
    record = RoundRecord(
        game_id=game.id,
        round_number=round_number,
        question=question,
        variant=variant,
        options=json.dumps(options) if options is not None else None,
    )
    db.session.add(record)
    _commit('save_round')
    current_app.logger.info(f"[db] round saved room={room_code} round={round_number} id={record.id}")
    return record.id


def save_answer(round_id: int, name: str, team_id: Optional[str], text: str, response_time_ms: int = -1) -> int:
    record = AnswerRecord(
        round_id=round_id,
        player_name=name,
        team_id=team_id,
        answer_text=text,
        response_time_ms=int(response_time_ms),
    )
    db.session.add(record)
    _commit('save_answer')
    return record.id


def get_round_count(room_code: str) -> int:
    game = _latest_game(room_code)
    if game is None:
        return 0
    return RoundRecord.query.filter_by(game_id=game.id).count()


def get_game_rounds(room_code: str) -> List[dict]:
    game = _latest_game(room_code)
    if game is None:
        return []
    return [r.to_dict() for r in game.rounds]
