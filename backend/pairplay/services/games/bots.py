"""Simulated players.

Bots join like anyone else, get auto-paired, and answer or pick after a
random delay through the same ``submit_answer``/``submit_pick`` calls a real
player uses. Delayed work is checked against the live room before it runs.
"""
import logging
import json
import random
import time
from typing import Callable, Dict, List, Optional

from .errors import GameError, StateConflictError, ValidationError
from .roster import add_player, pair_players, remove_player
from .rounds import submit_answer
from .scoring import get_answer_pool, normalize, submit_pick
from .state import Player, Room, Round


logger = logging.getLogger(__name__)

BOT_PREFIX = 'bot-'

BOT_NAMES = [
    'Apollo', 'Athena', 'Hermes', 'Artemis', 'Ares', 'Aphrodite',
    'Zeus', 'Poseidon', 'Demeter', 'Dionysus', 'Persephone', 'Hades',
    'Nike', 'Eros', 'Pan', 'Iris', 'Helios', 'Selene',
    'Atlas', 'Prometheus', 'Calypso', 'Echo', 'Hera', 'Hephaestus',
]

OPEN_ENDED_ANSWERS = [
    'Pizza', 'Sushi', 'The beach', 'Netflix', 'Tacos',
    'Sleeping in', 'Coffee', 'Ice cream', 'A good book', 'Hiking',
    'Dancing', 'Video games', 'Cooking together', 'Road trips', 'Sunsets',
    'Chocolate', 'Wine', 'Puppies', 'A warm blanket', 'Music',
    'Camping', 'Brunch', 'Traveling', 'Board games', 'Stargazing',
]


def is_bot(connection_id) -> bool:
    return isinstance(connection_id, str) and connection_id.startswith(BOT_PREFIX)


def generate_bot_answer(rnd: Round, bot_name: str, partner_name: str, rng=random) -> str:
    def one():
        if rnd.variant in ('multiple_choice', 'binary') and rnd.options:
            return rng.choice(rnd.options)
        return rng.choice(OPEN_ENDED_ANSWERS)

    answer = one()
    if rnd.answer_for_both:
        return json.dumps({bot_name: answer, partner_name: one()})
    return answer


def generate_bot_pick(room: Room, bot: Player, rng=random) -> Optional[str]:
    """A pool answer the bot is allowed to pick, or None if there is none."""
    pool = get_answer_pool(room)
    authors: Dict[str, List[str]] = {}
    for entry in pool:
        authors.setdefault(normalize(entry.answer_text), []).append(entry.author_name)
    choices = [
        e.answer_text for e in pool
        if authors[normalize(e.answer_text)] != [bot.name]
    ]
    if not choices:
        return None
    return rng.choice(choices)


class BotCoordinator:
    """Runs simulated players through the same operations real ones use.

    Every scheduled action is tagged with the room's generation at schedule
    time. ``cancel`` bumps the generation, and each action re-checks the
    room, the generation, the round phase and whether the bot already
    submitted before it touches anything.

    ``spawn(fn, *args)`` starts a background task and ``sleep(seconds)``
    waits inside it. With no ``spawn`` the action runs inline, the same way
    stage timers run synchronously in tests.
    """

    def __init__(
        self,
        registry,
        spawn: Optional[Callable] = None,
        sleep: Callable = time.sleep,
        rng: Optional[random.Random] = None,
        min_delay: float = 2.0,
        max_delay: float = 8.0,
        max_bots: int = len(BOT_NAMES),
    ):
        self.registry = registry
        self._spawn = spawn
        self._sleep = sleep
        self._rng = rng or random.Random()
        self.min_delay = min_delay
        self.max_delay = max_delay
        self.max_bots = max_bots
        self._generations: Dict[str, int] = {}

    def generation(self, room_code: str) -> int:
        return self._generations.get(room_code, 0)

    def cancel(self, room_code: str) -> None:
        self._generations[room_code] = self.generation(room_code) + 1
        logger.info(f'[bot-cancel] room={room_code} generation={self._generations[room_code]}')

    def forget(self, room_code: str) -> None:
        """Drop a closed room's counter; its pending tasks no-op on the room check."""
        self._generations.pop(room_code, None)

    def add_bots(self, room: Room, count: int) -> List[str]:
        count = int(count)
        if count < 1:
            raise ValidationError('Bot count must be at least 1')
        count = -(-count // 2) * 2
        existing = sum(1 for p in room.players if p.is_simulated)
        if existing + count > self.max_bots:
            raise ValidationError(f'Cannot have more than {self.max_bots} bots')
        if room.status != 'lobby':
            raise StateConflictError('Bots can only be added in the lobby')

        used = {p.name for p in room.players}
        if room.host is not None:
            used.add(room.host.name)
        names = [n for n in BOT_NAMES if n not in used][:count]
        names = names[:len(names) - len(names) % 2]

        added = [add_player(room, f'{BOT_PREFIX}{n.lower()}', n, is_simulated=True) for n in names]
        for a, b in zip(added[::2], added[1::2]):
            pair_players(room, a.connection_id, b.connection_id)
        logger.info(f'Added {len(added)} bots to room {room.room_code}')
        return [p.name for p in added]

    def remove_all_bots(self, room: Room) -> int:
        if room.status != 'lobby':
            raise StateConflictError('Bots can only be removed in the lobby')
        self.cancel(room.room_code)
        bots = [p for p in room.players if is_bot(p.connection_id)]
        for bot in bots:
            remove_player(room, bot.connection_id)
        logger.info(f'Removed {len(bots)} bots from room {room.room_code}')
        return len(bots)

    def schedule_answers(self, room: Room, on_submit: Optional[Callable] = None) -> int:
        return self._schedule(room, 'answering', on_submit)

    def schedule_picks(self, room: Room, on_submit: Optional[Callable] = None) -> int:
        return self._schedule(room, 'selecting', on_submit)

    def _schedule(self, room: Room, phase: str, on_submit) -> int:
        rnd = room.current_round
        if rnd is None or rnd.status != phase:
            return 0
        generation = self.generation(room.room_code)
        bots = [p for p in room.players if is_bot(p.connection_id) and p.connected]
        for bot in bots:
            delay = self._rng.uniform(self.min_delay, self.max_delay)
            args = (room, generation, bot.name, phase, rnd.round_number, delay, on_submit)
            if self._spawn is None:
                self._run(*args)
            else:
                self._spawn(self._run, *args)
        logger.info(f'[bot-schedule] room={room.room_code} phase={phase} bots={len(bots)}')
        return len(bots)

    def _run(self, room, generation, bot_name, phase, round_number, delay, on_submit):
        self._sleep(delay)
        room_code = room.room_code
        # a recycled code belongs to a different room
        if self.registry.get(room_code) is not room:
            return
        with room.lock:
            rnd = room.current_round
            if (
                self.generation(room_code) != generation
                or rnd is None
                or rnd.round_number != round_number
                or rnd.status != phase
            ):
                logger.info(f'[bot-abort] room={room_code} bot={bot_name} phase={phase}')
                return
            bot = room.find_player_by_name(bot_name)
            if bot is None or not bot.connected:
                return
            done = rnd.submitted_in_current_phase if phase == 'answering' else rnd.picks_submitted
            if bot.name in done:
                return

            try:
                if phase == 'answering':
                    partner = room.partner_of(bot)
                    text = generate_bot_answer(rnd, bot.name, partner.name if partner else 'Unknown', self._rng)
                    submit_answer(room, bot.connection_id, text, int(delay * 1000))
                else:
                    text = generate_bot_pick(room, bot, self._rng)
                    if text is None:
                        return
                    submit_pick(room, bot.connection_id, text)
            except GameError as e:
                logger.warning(f'[bot-error] room={room_code} bot={bot_name} error={e}')
                return

            if on_submit is not None:
                on_submit(room, bot, phase, text, int(delay * 1000))
