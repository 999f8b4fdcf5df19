from flask import Blueprint, jsonify
from pairplay.runtime import get_runtime
from pairplay.services.games import roster, storage
from pairplay.services.games.errors import NotFoundError


games = Blueprint('games', __name__)


@games.route('', methods=['GET'])
def list_games():
    """Active games that have a host, for the join screen."""
    runtime = get_runtime()
    listing = []
    for room in runtime.registry.get_all_games():
        with room.lock:
            if room.host is None:
                continue
            listing.append({
                'room_code': room.room_code,
                'host_name': room.host.name,
                'status': room.status,
                'player_count': len(room.connected_players()),
                'joinable': roster.can_join_as_new(room),
            })
    return jsonify({'games': listing})


@games.route('/<string:room_code>/state', methods=['GET'])
def get_game_state(room_code):
    runtime = get_runtime()
    try:
        payload = runtime.registry.get_game_state(room_code.lower())
    except NotFoundError as exc:
        return jsonify({'error': str(exc)}), 404
    payload['host_grace_period_sec'] = runtime.grace_period
    return jsonify(payload)


@games.route('/<string:room_code>/rounds', methods=['GET'])
def get_game_rounds(room_code):
    code = room_code.lower()
    return jsonify({
        'room_code': code,
        'round_count': storage.get_round_count(code),
        'rounds': storage.get_game_rounds(code),
    })
