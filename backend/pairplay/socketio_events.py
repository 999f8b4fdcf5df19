from flask_socketio import join_room, leave_room, emit
from pairplay import socketio
from flask import current_app, request
from pairplay.runtime import get_runtime
from pairplay.services.games import importer, questions, roster, rounds, scoring, storage
from pairplay.services.games.errors import GameError, NotFoundError, StateConflictError, ValidationError
from pairplay.services.games.storage import PersistenceError
import functools
import time

NAMESPACE = '/ws'


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _channel(room_code: str) -> str:
    return f"game:{room_code}"


def _as_int(value, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _broadcast(event, room, payload=None) -> None:
    data = dict(payload or {})
    data['game_state'] = room.to_dict()
    socketio.emit(event, data, to=_channel(room.room_code), namespace=NAMESPACE)


def _persist(op, fn, *args, report=True):
    """Run a storage call; failures are logged and optionally reported to the caller."""
    try:
        return fn(*args)
    except PersistenceError as exc:
        current_app.logger.error(f"[persist-failed] op={op} error={exc}")
        if report:
            emit('error', {'message': str(exc)})
        return None


def game_event(handler):
    """Turn GameError into an ``error`` event for the calling socket only."""
    @functools.wraps(handler)
    def wrapper(data=None):
        try:
            return handler(data if isinstance(data, dict) else {})
        except GameError as exc:
            current_app.logger.info(f"[rejected] event={handler.__name__} sid={_get_sid()} error={exc}")
            emit('error', {'message': str(exc)})
    return wrapper


def _current_room():
    runtime = get_runtime()
    ctx = runtime.session(_get_sid())
    if ctx is None:
        raise NotFoundError('Not in a game')
    return runtime, runtime.registry.require(ctx['room_code'])


def _require_host(room, action: str) -> None:
    if not room.is_host_connection(_get_sid()):
        raise StateConflictError(f'Only the host can {action}')


# ---- Shared flows (also driven by bots from background tasks) ----

def _answer_recorded(room, player, text, response_time_ms, report=True) -> None:
    rnd = room.current_round
    if rnd.round_id is not None:
        _persist('save_answer', storage.save_answer, rnd.round_id, player.name, player.team_id,
                 text, response_time_ms, report=report)
    _broadcast('answer_submitted', room, {
        'player_name': player.name,
        'submitted_in_current_phase': list(rnd.submitted_in_current_phase),
    })
    if not rounds.is_round_complete(room):
        return
    if rnd.variant == 'pool_selection':
        # host decides when to move on to selection
        _broadcast('all_answers_in', room)
    else:
        rounds.complete_round(room)
        _broadcast('all_answers_in', room, {'teams': roster.get_player_teams(room)})
    current_app.logger.info(f"[answers-in] room={room.room_code} round={rnd.round_number}")


def _pick_recorded(room, player) -> None:
    rnd = room.current_round
    _broadcast('pick_submitted', room, {
        'player_name': player.name,
        'picks_submitted': list(rnd.picks_submitted),
    })
    if scoring.are_all_picks_in(room):
        rounds.complete_round(room)
        _broadcast('all_picks_in', room, {'teams': roster.get_player_teams(room)})
        current_app.logger.info(f"[picks-in] room={room.room_code} round={rnd.round_number}")


def _bot_callback(runtime):
    def on_submit(room, bot, phase, text, response_time_ms):
        with runtime.app.app_context():
            if phase == 'answering':
                _answer_recorded(room, bot, text, response_time_ms, report=False)
            else:
                _pick_recorded(room, bot)
    return on_submit


def _close_room(runtime, room, reason: str) -> None:
    code = room.room_code
    runtime.bots.cancel(code)
    socketio.emit('game_cancelled', {'room_code': code, 'reason': reason}, to=_channel(code), namespace=NAMESPACE)
    socketio.close_room(_channel(code), namespace=NAMESPACE)
    runtime.registry.delete_room(code)
    runtime.forget_room(code)
    _persist('end_game', storage.end_game, code, report=False)
    current_app.logger.info(f"[room-closed] room={code} reason={reason}")


def _schedule_host_grace(runtime, room_code: str) -> None:
    deadline = time.time() + runtime.grace_period
    runtime.host_deadlines[room_code] = deadline
    current_app.logger.info(f"[grace-set] room={room_code} deadline={deadline}")
    runtime.spawn(_host_grace_worker, runtime, room_code, deadline)


def _host_grace_worker(runtime, room_code: str, deadline: float) -> None:
    runtime.sleep(max(0.0, deadline - time.time()))
    with runtime.app.app_context():
        room = runtime.registry.get(room_code)
        if room is None:
            return
        with room.lock:
            if runtime.host_deadlines.get(room_code) != deadline or room.host is None or room.host.connected:
                current_app.logger.info(f"[grace-abort] room={room_code} host back or rescheduled")
                return
            _close_room(runtime, room, 'host_timeout')


# ---- Connection lifecycle ----

def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def handle_disconnect(reason=None):
    runtime = get_runtime()
    sid = _get_sid()
    ctx = runtime.unbind(sid)
    if not ctx:
        return
    room = runtime.registry.get(ctx['room_code'])
    if room is None:
        return
    with room.lock:
        if room.is_host_connection(sid):
            # in the lobby nothing is lost by cancelling outright
            if room.status == 'lobby':
                _close_room(runtime, room, 'host_left')
                return
            roster.disconnect_host(room)
            _broadcast('host_disconnected', room, {'grace_period_sec': runtime.grace_period})
            _schedule_host_grace(runtime, room.room_code)
            return

        player = room.find_player(sid)
        if player is None:
            return
        if room.status == 'lobby':
            roster.remove_player(room, sid)
            _broadcast('player_left', room, {'player_name': player.name})
        else:
            roster.disconnect_player(room, sid)
            _broadcast('player_disconnected', room, {'player_name': player.name})


# ---- Lobby ----

@game_event
def handle_create_game(data):
    runtime = get_runtime()
    sid = _get_sid()
    name = roster.clean_name(data.get('name'))
    room = runtime.registry.create_room()
    with room.lock:
        host, _ = roster.join(room, sid, name, is_host=True)
        join_room(_channel(room.room_code))
        runtime.bind(sid, room.room_code, host.name, is_host=True)
        _persist('create_game', storage.create_game, room.room_code)
        current_app.logger.info(f"[create] room={room.room_code} host={host.name}")
        emit('game_created', {'room_code': room.room_code, 'player': host.to_dict(), 'game_state': room.to_dict()})


@game_event
def handle_check_room_status(data):
    runtime = get_runtime()
    code = str(data.get('room_code') or '').strip().lower()
    room = runtime.registry.get(code)
    if room is None:
        emit('room_status', {'room_code': code, 'exists': False})
        return
    with room.lock:
        emit('room_status', {
            'room_code': code,
            'exists': True,
            'status': room.status,
            'has_host': room.host is not None,
            'can_join_as_new': roster.can_join_as_new(room),
            'disconnected_players': roster.get_disconnected_players(room),
        })


@game_event
def handle_join_game(data):
    runtime = get_runtime()
    sid = _get_sid()
    code = str(data.get('room_code') or '').strip().lower()
    room = runtime.registry.require(code)
    with room.lock:
        player, reconnected = roster.join(
            room, sid, data.get('name'),
            is_host=bool(data.get('is_host')),
            is_reconnect=bool(data.get('is_reconnect')),
        )
        if player.is_host:
            runtime.host_deadlines.pop(code, None)
        join_room(_channel(code))
        runtime.bind(sid, code, player.name, is_host=player.is_host)

        payload = {
            'room_code': code,
            'player': player.to_dict(),
            'reconnected': reconnected,
            'is_host': player.is_host,
            'game_state': room.to_dict(),
        }
        rnd = room.current_round
        if rnd is not None and rnd.variant == 'pool_selection' and rnd.status == 'selecting':
            payload['answer_pool'] = scoring.get_pool_texts(room)
        emit('joined_game', payload)
        current_app.logger.info(f"[join] room={code} name={player.name} reconnected={reconnected}")
        _broadcast('player_reconnected' if reconnected else 'player_joined', room, {'player_name': player.name})


@game_event
def handle_get_lobby_state(data):
    _, room = _current_room()
    with room.lock:
        emit('lobby_state', {'game_state': room.to_dict(), 'teams': roster.get_player_teams(room)})


@game_event
def handle_request_pair(data):
    _, room = _current_room()
    with room.lock:
        team = roster.pair_players(room, _get_sid(), data.get('target_id'))
        _broadcast('team_formed', room, {'team': team.to_dict()})


@game_event
def handle_unpair(data):
    _, room = _current_room()
    with room.lock:
        team = roster.unpair_players(room, _get_sid())
        _broadcast('team_dissolved', room, {'team_id': team.team_id if team else None})


@game_event
def handle_randomize_avatar(data):
    _, room = _current_room()
    with room.lock:
        avatar = roster.randomize_avatar(room, _get_sid())
        _broadcast('avatar_updated', room, {'connection_id': _get_sid(), 'avatar': avatar})


@game_event
def handle_kick_player(data):
    runtime, room = _current_room()
    with room.lock:
        _require_host(room, 'kick players')
        target = data.get('connection_id')
        player = roster.remove_player(room, target)
        socketio.emit('kicked', {'room_code': room.room_code}, to=target, namespace=NAMESPACE)
        leave_room(_channel(room.room_code), sid=target, namespace=NAMESPACE)
        runtime.unbind(target)
        _broadcast('player_left', room, {'player_name': player.name})


@game_event
def handle_leave_game(data):
    runtime, room = _current_room()
    sid = _get_sid()
    with room.lock:
        if room.is_host_connection(sid):
            _close_room(runtime, room, 'host_left')
            return
        player = room.find_player(sid)
        if player is None:
            raise NotFoundError('Player not found')
        if room.status == 'lobby':
            roster.remove_player(room, sid)
        else:
            roster.disconnect_player(room, sid)
        leave_room(_channel(room.room_code))
        runtime.unbind(sid)
        emit('left_game', {'room_code': room.room_code})
        _broadcast('player_left', room, {'player_name': player.name})


@game_event
def handle_add_bots(data):
    runtime, room = _current_room()
    with room.lock:
        _require_host(room, 'add bots')
        names = runtime.bots.add_bots(room, _as_int(data.get('count'), 2))
        _broadcast('bots_added', room, {'names': names})


@game_event
def handle_remove_bots(data):
    runtime, room = _current_room()
    with room.lock:
        _require_host(room, 'remove bots')
        removed = runtime.bots.remove_all_bots(room)
        _broadcast('bots_removed', room, {'count': removed})


# ---- Game flow ----

@game_event
def handle_start_game(data):
    _, room = _current_room()
    with room.lock:
        _require_host(room, 'start the game')
        rounds.start_game(room)
        current_app.logger.info(f"[game-start] room={room.room_code} teams={len(room.teams)}")
        _broadcast('game_started', room)


@game_event
def handle_start_round(data):
    runtime, room = _current_room()
    with room.lock:
        _require_host(room, 'start rounds')
        rnd = rounds.start_round(
            room,
            data.get('question'),
            data.get('variant') or 'open_ended',
            data.get('options'),
            bool(data.get('answer_for_both')),
        )
        runtime.bots.cancel(room.room_code)
        round_id = _persist('save_round', storage.save_round, room.room_code, rnd.round_number,
                            rnd.question, rnd.variant, rnd.options)
        if round_id is not None:
            rounds.set_current_round_id(room, round_id)
        current_app.logger.info(f"[round-start] room={room.room_code} round={rnd.round_number} variant={rnd.variant}")
        _broadcast('round_started', room, {'round': rnd.to_dict()})
        runtime.bots.schedule_answers(room, _bot_callback(runtime))


@game_event
def handle_submit_answer(data):
    _, room = _current_room()
    with room.lock:
        text = data.get('answer')
        response_time_ms = _as_int(data.get('response_time'), -1)
        player = rounds.submit_answer(room, _get_sid(), text, response_time_ms)
        _answer_recorded(room, player, text, response_time_ms)


@game_event
def handle_start_selecting(data):
    runtime, room = _current_room()
    with room.lock:
        _require_host(room, 'start selection')
        rounds.start_selecting(room)
        runtime.bots.cancel(room.room_code)
        _broadcast('selecting_started', room, {'answer_pool': scoring.get_pool_texts(room)})
        runtime.bots.schedule_picks(room, _bot_callback(runtime))


@game_event
def handle_get_answer_pool(data):
    _, room = _current_room()
    with room.lock:
        emit('answer_pool', {'answer_pool': scoring.get_pool_texts(room)})


@game_event
def handle_submit_pick(data):
    _, room = _current_room()
    with room.lock:
        player = scoring.submit_pick(room, _get_sid(), data.get('pick'))
        _pick_recorded(room, player)


@game_event
def handle_reveal_answer(data):
    _, room = _current_room()
    with room.lock:
        _require_host(room, 'reveal answers')
        rnd = rounds.require_round(room)
        name = data.get('player_name')
        answer = rnd.answers.get(name)
        _broadcast('answer_revealed', room, {
            'player_name': name,
            'answer': answer.text if answer else None,
        })


@game_event
def handle_reveal_pool_answer(data):
    _, room = _current_room()
    with room.lock:
        _require_host(room, 'reveal answers')
        text = data.get('answer_text')
        if not isinstance(text, str):
            raise ValidationError('answer_text is required')
        result, awarded = scoring.award_pool_answer(room, text)
        payload = result.to_dict()
        payload.update({
            'answer_text': text,
            'authors': [p.name for p in scoring.get_authors_of_answer(room, text)],
            'pickers': scoring.mark_pool_pickers_revealed(room, text),
            'awarded': awarded,
        })
        current_app.logger.info(
            f"[pool-reveal] room={room.room_code} correct={len(result.correct_pickers)} awarded={awarded}"
        )
        _broadcast('pool_answer_revealed', room, payload)


def _change_score(data, points: int, action: str) -> None:
    _, room = _current_room()
    with room.lock:
        _require_host(room, action)
        team_id = data.get('team_id')
        score = rounds.update_team_score(room, team_id, points)
        _broadcast('score_updated', room, {'team_id': team_id, 'score': score})


@game_event
def handle_award_point(data):
    _change_score(data, 1, 'award points')


@game_event
def handle_remove_point(data):
    _change_score(data, -1, 'remove points')


@game_event
def handle_skip_point(data):
    _, room = _current_room()
    with room.lock:
        _require_host(room, 'skip points')
        _broadcast('point_skipped', room, {'team_id': data.get('team_id')})


@game_event
def handle_next_round(data):
    runtime, room = _current_room()
    with room.lock:
        _require_host(room, 'advance rounds')
        if room.status not in ('playing', 'scoring'):
            raise StateConflictError('Game is not in progress')
        rounds.next_round(room)
        runtime.bots.cancel(room.room_code)
        _broadcast('ready_for_next_round', room)


@game_event
def handle_back_to_answering(data):
    runtime, room = _current_room()
    with room.lock:
        _require_host(room, 'reopen answering')
        rounds.return_to_answering(room)
        runtime.bots.cancel(room.room_code)
        _broadcast('returned_to_answering', room)
        runtime.bots.schedule_answers(room, _bot_callback(runtime))


@game_event
def handle_end_game(data):
    runtime, room = _current_room()
    with room.lock:
        _require_host(room, 'end the game')
        rounds.end_game(room)
        runtime.bots.cancel(room.room_code)
        _persist('end_game', storage.end_game, room.room_code)
        scores = sorted((t.to_dict() for t in room.teams), key=lambda t: t['score'], reverse=True)
        current_app.logger.info(f"[game-end] room={room.room_code}")
        _broadcast('game_ended', room, {'final_scores': scores})


@game_event
def handle_reset_game(data):
    runtime, room = _current_room()
    with room.lock:
        _require_host(room, 'reset the game')
        rounds.reset_game(room)
        runtime.bots.cancel(room.room_code)
        _persist('ensure_game', storage.ensure_game, room.room_code)
        _broadcast('game_reset', room)


# ---- Imported questions ----

@game_event
def handle_import_questions(data):
    _, room = _current_room()
    with room.lock:
        _require_host(room, 'import questions')
        content = data.get('content')
        if isinstance(content, str):
            parsed = importer.parse_json(content)
            if not parsed['success']:
                raise ValidationError(parsed['error'])
            question_set = parsed['data']
        else:
            question_set = data.get('questions')
        result = importer.validate_question_set(question_set)
        if not result['valid']:
            raise ValidationError(result['error'])
        questions.set_imported_questions(room, question_set)
        _broadcast('questions_imported', room, {
            'title': question_set['title'],
            'chapter_count': len(question_set['chapters']),
            'question_count': importer.count_questions(question_set),
        })


@game_event
def handle_clear_questions(data):
    _, room = _current_room()
    with room.lock:
        _require_host(room, 'clear questions')
        questions.clear_imported_questions(room)
        _broadcast('questions_cleared', room)


@game_event
def handle_next_imported_question(data):
    _, room = _current_room()
    with room.lock:
        _require_host(room, 'pick questions')
        if data.get('direction') == 'previous':
            current = questions.retreat_cursor(room)
        else:
            current = questions.advance_cursor(room)
        emit('imported_question', {
            'current': current,
            'exhausted': current is None,
            'can_advance': questions.can_advance_cursor(room),
            'can_retreat': questions.can_retreat_cursor(room),
        })
        if current is not None and current['is_new_chapter']:
            _broadcast('chapter_started', room, {'chapter': current['chapter']})


EVENT_HANDLERS = {
    'connect': handle_connect,
    'disconnect': handle_disconnect,
    'create_game': handle_create_game,
    'check_room_status': handle_check_room_status,
    'join_game': handle_join_game,
    'get_lobby_state': handle_get_lobby_state,
    'request_pair': handle_request_pair,
    'unpair': handle_unpair,
    'randomize_avatar': handle_randomize_avatar,
    'kick_player': handle_kick_player,
    'leave_game': handle_leave_game,
    'add_bots': handle_add_bots,
    'remove_bots': handle_remove_bots,
    'start_game': handle_start_game,
    'start_round': handle_start_round,
    'submit_answer': handle_submit_answer,
    'start_selecting': handle_start_selecting,
    'get_answer_pool': handle_get_answer_pool,
    'submit_pick': handle_submit_pick,
    'reveal_answer': handle_reveal_answer,
    'reveal_pool_answer': handle_reveal_pool_answer,
    'award_point': handle_award_point,
    'remove_point': handle_remove_point,
    'skip_point': handle_skip_point,
    'next_round': handle_next_round,
    'back_to_answering': handle_back_to_answering,
    'end_game': handle_end_game,
    'reset_game': handle_reset_game,
    'import_questions': handle_import_questions,
    'clear_questions': handle_clear_questions,
    'next_imported_question': handle_next_imported_question,
}


def register_socketio_handlers() -> None:
    """Register Socket.IO event handlers on namespace '/ws'."""
    for event, handler in EVENT_HANDLERS.items():
        socketio.on_event(event, handler, namespace=NAMESPACE)
