"""Round phase machine and room lifecycle.

Room: lobby -> playing <-> scoring -> ended, with reset back to lobby.
Round: answering -> selecting (pool_selection only) -> complete. The host can
reopen a selecting or complete round back to answering; previous answers are
kept so clients can pre-fill them. Picks, reveals and any pool points the
round already awarded are undone so the selection can be played again.

Round numbers keep increasing for the life of the room, across resets.
"""
from __future__ import annotations

import logging
from typing import Optional

from .errors import NotFoundError, StateConflictError, ValidationError
from .state import VARIANTS, Answer, Room, Round


logger = logging.getLogger(__name__)

MIN_CHOICES = 2
MAX_CHOICES = 6


def start_game(room: Room) -> None:
    if room.status != 'lobby':
        raise StateConflictError('Game already started')
    if not room.teams:
        raise StateConflictError('No teams formed')
    unpaired = [p for p in room.connected_players() if not p.team_id]
    if unpaired:
        raise StateConflictError('All players must be paired before starting')
    room.status = 'playing'
    logger.info(f'Game started: {room.room_code}')


def end_game(room: Room) -> None:
    if room.status == 'lobby':
        raise StateConflictError('Cannot end game that has not started')
    if room.status == 'ended':
        raise StateConflictError('Game already ended')
    room.status = 'ended'
    logger.info(f'Game ended: {room.room_code}')


def reset_game(room: Room) -> None:
    """Back to the lobby with the same roster and teams, scores zeroed.

    ``last_round_number`` survives so the next game's rounds never reuse a
    number already handed to storage.
    """
    if room.current_round is not None:
        room.last_round_number = max(room.last_round_number, room.current_round.round_number)
    room.status = 'lobby'
    room.current_round = None
    room.team_total_response_times = {}
    room.imported_questions = None
    room.question_cursor = None
    for team in room.teams:
        team.score = 0
    logger.info(f'Game reset: {room.room_code}')


def update_team_score(room: Room, team_id: str, points: int) -> int:
    team = room.find_team(team_id)
    if team is None:
        raise NotFoundError('Team not found')
    team.score = max(0, team.score + points)
    logger.info(f'Team {team_id} score updated: {points:+d} (total: {team.score})')
    return team.score


def _validate_options(variant: str, options) -> None:
    if variant == 'multiple_choice':
        if (
            not isinstance(options, list)
            or not MIN_CHOICES <= len(options) <= MAX_CHOICES
            or not all(isinstance(o, str) and o.strip() for o in options)
        ):
            raise ValidationError(f'Multiple choice requires {MIN_CHOICES}-{MAX_CHOICES} options')
    elif variant == 'binary':
        if not isinstance(options, list) or len(options) != 2:
            raise ValidationError('Binary requires exactly 2 options')
    elif variant == 'open_ended':
        if options is not None:
            raise ValidationError('Open ended should not have options')
    elif variant == 'pool_selection':
        if options is not None:
            raise ValidationError('Pool selection should not have options')


def start_round(
    room: Room,
    question: str,
    variant: str = 'open_ended',
    options=None,
    answer_for_both: bool = False,
    round_number: Optional[int] = None,
) -> Round:
    if room.status == 'lobby':
        raise StateConflictError('Game has not started')
    if room.status == 'ended':
        raise StateConflictError('Game already ended')
    if variant not in VARIANTS:
        raise ValidationError('Invalid variant type')
    if not isinstance(question, str) or not question.strip():
        raise ValidationError('Question cannot be empty')
    _validate_options(variant, options)

    if round_number is None:
        round_number = room.last_round_number + 1
    elif round_number <= room.last_round_number:
        raise ValidationError('Round number must increase')

    rnd = Round(
        round_number=round_number,
        question=question.strip(),
        variant=variant,
        options=list(options) if options is not None else None,
        answer_for_both=bool(answer_for_both),
    )
    room.current_round = rnd
    room.last_round_number = round_number
    room.status = 'playing'
    logger.info(f'Round {round_number} started: {rnd.question} ({variant})')
    return rnd


def require_round(room: Room) -> Round:
    if room.current_round is None:
        raise StateConflictError('No active round')
    return room.current_round


def submit_answer(room: Room, connection_id: str, text, response_time_ms: int = -1):
    rnd = require_round(room)
    if rnd.status != 'answering':
        raise StateConflictError('Round not accepting answers')
    player = room.find_player(connection_id)
    if player is None:
        raise NotFoundError('Player not found')
    if not isinstance(text, str):
        raise ValidationError('Answer cannot be empty')
    # '' is the "no response" value in pool rounds
    if not text.strip() and not (rnd.variant == 'pool_selection' and text == ''):
        raise ValidationError('Answer cannot be empty')

    rnd.answers[player.name] = Answer(text=text, response_time_ms=response_time_ms)
    if player.team_id and response_time_ms > 0:
        totals = room.team_total_response_times
        totals[player.team_id] = totals.get(player.team_id, 0) + response_time_ms
    if player.name not in rnd.submitted_in_current_phase:
        rnd.submitted_in_current_phase.append(player.name)
    logger.info(f'Answer submitted by {player.name} ({response_time_ms}ms)')
    return player


def is_round_complete(room: Room) -> bool:
    rnd = room.current_round
    if rnd is None:
        return False
    submitted = set(rnd.submitted_in_current_phase)
    return all(p.name in submitted for p in room.connected_players())


def complete_round(room: Room) -> None:
    rnd = require_round(room)
    rnd.status = 'complete'
    room.status = 'scoring'
    logger.info(f'Round {rnd.round_number} complete')


def start_selecting(room: Room) -> None:
    rnd = require_round(room)
    if rnd.variant != 'pool_selection':
        raise StateConflictError('Not a pool selection round')
    if rnd.status != 'answering':
        raise StateConflictError('Round not in answering phase')
    rnd.status = 'selecting'
    rnd.picks_submitted = []
    logger.info(f'Round {rnd.round_number} selecting')


def return_to_answering(room: Room) -> None:
    rnd = require_round(room)
    for team_id, points in rnd.pool_points_awarded.items():
        if room.find_team(team_id) is not None:
            update_team_score(room, team_id, -points)
    rnd.pool_points_awarded = {}
    rnd.revealed_pool_answers = set()
    rnd.revealed_pool_pickers = {}
    rnd.picks = {}
    rnd.status = 'answering'
    rnd.submitted_in_current_phase = []
    rnd.picks_submitted = []
    room.status = 'playing'
    logger.info(f'Round {rnd.round_number} reopened for answers')


def return_to_playing(room: Room) -> None:
    if room.current_round is not None:
        room.last_round_number = max(room.last_round_number, room.current_round.round_number)
    room.current_round = None
    if room.status != 'ended':
        room.status = 'playing'


next_round = return_to_playing


def set_current_round_id(room: Room, round_id) -> None:
    if room.current_round is not None:
        room.current_round.round_id = round_id
