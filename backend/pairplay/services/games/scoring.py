"""Pool-selection scoring.

Every player's answer goes into an anonymized pool; during selection each
player tries to pick the answer their partner wrote. Matching is case and
whitespace insensitive everywhere, including for the empty "no response"
answer, so two players who both stayed silent share one pool entry key.
"""
from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .errors import NotFoundError, StateConflictError, ValidationError
from .rounds import require_round, update_team_score
from .state import Player, PoolEntry, Room


logger = logging.getLogger(__name__)


def normalize(text) -> str:
    return (text or '').lower().strip()


@dataclass
class PickResult:
    correct_pickers: List[Player] = field(default_factory=list)
    team_ids: List[str] = field(default_factory=list)
    team_points: Dict[str, int] = field(default_factory=dict)

    @property
    def team_id(self) -> Optional[str]:
        return self.team_ids[0] if self.team_ids else None

    def to_dict(self) -> dict:
        return {
            'correct_pickers': [{'name': p.name, 'team_id': p.team_id} for p in self.correct_pickers],
            'team_ids': list(self.team_ids),
            'team_points': dict(self.team_points),
        }


def _answer_text(room: Room, player: Player) -> str:
    answer = room.current_round.answers.get(player.name)
    return answer.text if answer else ''


def _require_pool_round(room: Room):
    rnd = require_round(room)
    if rnd.variant != 'pool_selection':
        raise StateConflictError('Not a pool selection round')
    return rnd


def get_answer_pool(room: Room, rng=random) -> List[PoolEntry]:
    """Shuffled pool, one entry per player, cached on the round.

    The order is fixed the first time the pool is built and kept for the
    life of the round. After a reopen the texts are refreshed in place.
    """
    rnd = require_round(room)
    texts = {p.name: _answer_text(room, p) for p in room.players}
    if rnd.answer_pool is None:
        names = list(texts)
        rng.shuffle(names)
    else:
        names = [e.author_name for e in rnd.answer_pool if e.author_name in texts]
        names += [n for n in texts if n not in names]
    entries = [PoolEntry(author_name=n, answer_text=texts[n]) for n in names]
    if entries != rnd.answer_pool:
        rnd.answer_pool = entries
    return list(rnd.answer_pool)


def get_pool_texts(room: Room) -> List[str]:
    """Pool as shown to players: answer text only, no attribution.

    Hidden while answers are still coming in, otherwise a partner could read
    the answer they are about to guess.
    """
    rnd = _require_pool_round(room)
    if rnd.status not in ('selecting', 'complete'):
        raise StateConflictError('Round not in selecting phase')
    return [e.answer_text for e in get_answer_pool(room)]


def submit_pick(room: Room, connection_id: str, picked_text) -> Player:
    rnd = _require_pool_round(room)
    if rnd.status != 'selecting':
        raise StateConflictError('Round not in selecting phase')
    player = room.find_player(connection_id)
    if player is None:
        raise NotFoundError('Player not found')
    if not isinstance(picked_text, str):
        raise ValidationError('Invalid pick: answer not in pool')

    key = normalize(picked_text)
    authors = [p for p in room.players if normalize(_answer_text(room, p)) == key]
    if not authors:
        raise ValidationError('Invalid pick: answer not in pool')
    if len(authors) == 1 and authors[0] is player:
        raise StateConflictError('Cannot pick your own answer')

    rnd.picks[player.name] = picked_text
    if player.name not in rnd.picks_submitted:
        rnd.picks_submitted.append(player.name)
    logger.info(f'Pick submitted by {player.name}')
    return player


def are_all_picks_in(room: Room) -> bool:
    rnd = room.current_round
    if rnd is None:
        return False
    submitted = set(rnd.picks_submitted)
    return all(p.name in submitted for p in room.connected_players())


def get_author_of_answer(room: Room, text: str) -> Optional[Player]:
    if room.current_round is None:
        return None
    for p in room.players:
        answer = room.current_round.answers.get(p.name)
        if answer is not None and answer.text == text:
            return p
    return None


def get_authors_of_answer(room: Room, text: str) -> List[Player]:
    if room.current_round is None:
        return []
    key = normalize(text)
    return [p for p in room.players if normalize(_answer_text(room, p)) == key]


def get_pickers_for_answer(room: Room, text: str) -> List[Player]:
    rnd = room.current_round
    if rnd is None:
        return []
    key = normalize(text)
    return [p for p in room.players if p.name in rnd.picks and normalize(rnd.picks[p.name]) == key]


def check_correct_pick(room: Room, answer_text: str) -> PickResult:
    """Score one pool answer.

    For every author of the answer, their partner is a correct picker when
    the partner's pick normalizes to the same key. Each distinct correct
    picker earns one point for their own team.
    """
    rnd = room.current_round
    result = PickResult()
    if rnd is None:
        return result
    key = normalize(answer_text)
    seen = set()
    for author in get_authors_of_answer(room, answer_text):
        partner = room.partner_of(author)
        if partner is None or partner.name in seen:
            continue
        pick = rnd.picks.get(partner.name)
        if pick is None or normalize(pick) != key:
            continue
        seen.add(partner.name)
        result.correct_pickers.append(partner)
        if partner.team_id:
            result.team_points[partner.team_id] = result.team_points.get(partner.team_id, 0) + 1
    result.team_ids = list(result.team_points)
    return result


def mark_pool_answer_revealed(room: Room, text: str) -> None:
    require_round(room).revealed_pool_answers.add(normalize(text))


def is_pool_answer_revealed(room: Room, text: str) -> bool:
    rnd = room.current_round
    return rnd is not None and normalize(text) in rnd.revealed_pool_answers


def mark_pool_pickers_revealed(room: Room, text: str) -> List[str]:
    rnd = require_round(room)
    key = normalize(text)
    if key not in rnd.revealed_pool_pickers:
        rnd.revealed_pool_pickers[key] = [p.name for p in get_pickers_for_answer(room, text)]
    return list(rnd.revealed_pool_pickers[key])


def get_revealed_pool_pickers(room: Room) -> Dict[str, List[str]]:
    rnd = room.current_round
    if rnd is None:
        return {}
    return {k: list(v) for k, v in rnd.revealed_pool_pickers.items()}


def award_pool_answer(room: Room, answer_text: str) -> Tuple[PickResult, bool]:
    """Reveal and score an answer once. Returns ``(result, newly_awarded)``.

    Only allowed once every pick is in, so a later pick can't miss out on
    points for an answer that was already marked as revealed.
    """
    rnd = _require_pool_round(room)
    if rnd.status != 'complete':
        raise StateConflictError('Picks are not all in yet')
    result = check_correct_pick(room, answer_text)
    if is_pool_answer_revealed(room, answer_text):
        return result, False
    mark_pool_answer_revealed(room, answer_text)
    for team_id, points in result.team_points.items():
        update_team_score(room, team_id, points)
        rnd.pool_points_awarded[team_id] = rnd.pool_points_awarded.get(team_id, 0) + points
    logger.info(f'Pool answer revealed in {room.room_code}: {len(result.correct_pickers)} correct')
    return result, True
