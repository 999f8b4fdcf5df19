"""Roster management: players, host and teams within a single room.

Players are identified across reconnects by their name. The connection id
is only "the live socket right now" and is rewritten on every reconnect,
together with every reference that points at it (the partner's
``partner_id`` and the team's member ids). Answers and picks are keyed by
name so they never need migrating.

In the lobby a disconnect removes the player outright; once the game has
started a disconnect only flips ``connected`` so the team keeps playing
around them.
"""
from __future__ import annotations

import logging
import random
from typing import List, Optional, Tuple

from .errors import NotFoundError, StateConflictError, ValidationError
from .registry import generate_team_code
from .state import Player, Room, Team


logger = logging.getLogger(__name__)

PASTEL_COLORS = [
    '#F8C8DC', '#F4A4C0',
    '#FFD4B8', '#FFCBA4',
    '#FFF5BA', '#F8E8A0',
    '#C8E8D4', '#B4E4C8',
    '#B4D8E8', '#A4D0E8',
    '#D4C4E8', '#E0D0F0',
    '#E8E4E0', '#F0E8E4',
]

AVATAR_EMOJIS = [
    '😀', '😎', '🥳', '🤠', '🦊', '🐱', '🐶', '🐼', '🦁', '🐯',
    '🐸', '🐵', '🦄', '🐲', '🌸', '🌻', '🍀', '🌈', '⭐', '🔥',
    '💎', '🎈', '🎨', '🎭', '🎪', '🚀', '🌙', '☀️', '🍕', '🧁',
    '🦋', '🍄', '🌴', '🎸', '🎯', '🧸', '🦩', '🐝', '🍩', '🎀',
]


def generate_random_avatar(rng=random) -> dict:
    return {'color': rng.choice(PASTEL_COLORS), 'emoji': rng.choice(AVATAR_EMOJIS)}


def clean_name(name) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError('Name is required')
    return name.strip()


def can_join_as_new(room: Room) -> bool:
    return room.status == 'lobby'


def add_player(
    room: Room,
    connection_id: str,
    name: str,
    is_host: bool = False,
    is_simulated: bool = False,
) -> Player:
    name = clean_name(name)
    if not can_join_as_new(room):
        raise StateConflictError('Cannot join game in progress')
    if room.find_player_by_name(name) is not None:
        raise StateConflictError('Player name already exists')

    if is_host:
        if room.host is not None:
            raise StateConflictError('Host already exists')
        room.host = Player(
            connection_id=connection_id,
            name=name,
            avatar=generate_random_avatar(),
            is_host=True,
        )
        logger.info(f'Host added: {name}')
        return room.host

    if room.host is not None and room.host.name == name:
        raise StateConflictError('This name is already taken by the host')

    player = Player(
        connection_id=connection_id,
        name=name,
        avatar=generate_random_avatar(),
        is_simulated=is_simulated,
    )
    room.players.append(player)
    logger.info(f'Player added: {name}')
    return player


def reconnect_player(room: Room, name: str, new_connection_id: str) -> Player:
    player = room.find_player_by_name(name)
    if player is None:
        raise NotFoundError('Player not found')
    if player.connected:
        raise StateConflictError('Player name already exists')

    old_id = player.connection_id
    player.connection_id = new_connection_id
    player.connected = True

    partner = room.find_player(player.partner_id) if player.partner_id else None
    if partner is not None and partner.partner_id == old_id:
        partner.partner_id = new_connection_id

    team = room.find_team(player.team_id)
    if team is not None:
        if team.player1_id == old_id:
            team.player1_id = new_connection_id
        if team.player2_id == old_id:
            team.player2_id = new_connection_id

    logger.info(f'<{name}> rejoined')
    return player


def reconnect_host(room: Room, name: str, new_connection_id: str) -> Player:
    host = room.host
    if host is None:
        raise NotFoundError('Host not found')
    if host.name != name:
        raise StateConflictError('Host name does not match')
    if host.connected:
        raise StateConflictError('Host is already connected')
    host.connection_id = new_connection_id
    host.connected = True
    logger.info(f'<{name}> (host) reconnected')
    return host


def join(
    room: Room,
    connection_id: str,
    name: str,
    is_host: bool = False,
    is_reconnect: bool = False,
) -> Tuple[Player, bool]:
    """Route a join request. Returns ``(player, reconnected)``.

    A disconnected player who joins under their old name is treated as a
    reconnect even without the explicit flag.
    """
    name = clean_name(name)
    if is_host:
        if room.host is None:
            return add_player(room, connection_id, name, is_host=True), False
        return reconnect_host(room, name, connection_id), True

    if is_reconnect:
        return reconnect_player(room, name, connection_id), True

    existing = room.find_player_by_name(name)
    if existing is not None and not existing.connected:
        return reconnect_player(room, name, connection_id), True
    return add_player(room, connection_id, name), False


def disconnect_player(room: Room, connection_id: str) -> Optional[Player]:
    player = room.find_player(connection_id)
    if player is not None:
        player.connected = False
        logger.info(f'<{player.name}> disconnected')
    return player


def disconnect_host(room: Room) -> Optional[Player]:
    if room.host is None:
        return None
    room.host.connected = False
    logger.info(f'<{room.host.name}> (host) disconnected')
    return room.host


def remove_player(room: Room, connection_id: str) -> Player:
    if room.status != 'lobby':
        raise StateConflictError('Can only remove players in lobby')
    player = room.find_player(connection_id)
    if player is None:
        raise NotFoundError('Player not found')
    if player.partner_id:
        unpair_players(room, connection_id)
    room.players.remove(player)
    logger.info(f'Player removed: {player.name}')
    return player


def pair_players(room: Room, connection_id_a: str, connection_id_b: str) -> Team:
    a = room.find_player(connection_id_a)
    b = room.find_player(connection_id_b)
    if a is None or b is None:
        raise NotFoundError('One or both players not found')
    if a is b:
        raise ValidationError('Cannot pair a player with themselves')
    if a.team_id or b.team_id or a.partner_id or b.partner_id:
        raise StateConflictError('One or both players already paired')

    team_id = generate_team_code(t.team_id for t in room.teams)
    a.partner_id, a.team_id = b.connection_id, team_id
    b.partner_id, b.team_id = a.connection_id, team_id
    team = Team(team_id=team_id, player1_id=a.connection_id, player2_id=b.connection_id)
    room.teams.append(team)
    logger.info(f'Players paired: {a.name} & {b.name}')
    return team


def unpair_players(room: Room, connection_id: str) -> Optional[Team]:
    player = room.find_player(connection_id)
    if player is None:
        raise NotFoundError('Player not found')
    if not player.team_id:
        return None

    team = room.find_team(player.team_id)
    partner = room.partner_of(player)
    player.partner_id = player.team_id = None
    if partner is not None:
        partner.partner_id = partner.team_id = None
    if team is not None:
        room.teams.remove(team)
    logger.info(f"Players unpaired: {player.name}{' & ' + partner.name if partner else ''}")
    return team


def randomize_avatar(room: Room, connection_id: str) -> dict:
    if room.is_host_connection(connection_id):
        room.host.avatar = generate_random_avatar()
        return room.host.avatar
    player = room.find_player(connection_id)
    if player is None:
        raise NotFoundError('Player not found')
    player.avatar = generate_random_avatar()
    return player.avatar


def get_disconnected_players(room: Room) -> List[dict]:
    return [{'name': p.name} for p in room.players if not p.connected]


def get_player_teams(room: Room) -> List[dict]:
    """Team view for the scoring screen, with each member's current answer."""
    answers = room.current_round.answers if room.current_round else {}
    teams = []
    for team in room.teams:
        members = []
        for member_id in team.member_ids():
            p = room.find_player(member_id)
            if p is None:
                continue
            answer = answers.get(p.name)
            members.append({
                'connection_id': p.connection_id,
                'name': p.name,
                'answer': {'text': answer.text, 'response_time_ms': answer.response_time_ms} if answer else None,
            })
        teams.append({'team_id': team.team_id, 'score': team.score, 'players': members})
    return teams
