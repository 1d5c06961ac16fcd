from flask import Blueprint, jsonify, request, current_app
from matchroom import SESSION_EXTENSION
from matchroom.errors import GameError, NotFound


rooms = Blueprint('rooms', __name__)


def _session():
    return current_app.extensions[SESSION_EXTENSION]


def _serialize(result):
    if isinstance(result, bool):
        return {'ok': result}
    if isinstance(result, list):
        return [item.to_dict() for item in result]
    return result.to_dict()


def _run(operation, status=200, **path_args):
    payload = dict(request.get_json(silent=True) or {})
    # Path parameters win over body fields of the same name
    payload.update(path_args)
    result = _session().dispatch(operation, payload)
    if result is None:
        raise NotFound('room not found')
    return jsonify(_serialize(result)), status


@rooms.errorhandler(GameError)
def handle_game_error(exc):
    if exc.status_code >= 500:
        current_app.logger.error(f"[api] {request.method} {request.path} -> {exc.code}: {exc.message}")
    return jsonify(exc.to_dict()), exc.status_code


@rooms.route('', methods=['POST'])
def create_room():
    return _run('createRoom', status=201)


@rooms.route('/join', methods=['POST'])
def join_room():
    return _run('joinRoom', status=201)


@rooms.route('/players/<string:player_id>/leave', methods=['POST'])
def leave_room(player_id):
    return _run('leaveRoom', playerId=player_id)


@rooms.route('/code/<string:room_code>', methods=['GET'])
def get_room_by_code(room_code):
    return _run('getRoomByCode', roomCode=room_code)


@rooms.route('/<string:room_id>', methods=['GET'])
def get_room(room_id):
    return _run('getRoom', roomId=room_id)


@rooms.route('/<string:room_id>/players', methods=['GET'])
def list_players(room_id):
    return _run('listPlayers', roomId=room_id)


@rooms.route('/<string:room_id>/answers', methods=['GET'])
def list_answers(room_id):
    return _run('listAnswers', roomId=room_id)


@rooms.route('/<string:room_id>/kick', methods=['POST'])
def kick_player(room_id):
    return _run('kickPlayer', roomId=room_id)


@rooms.route('/<string:room_id>/start', methods=['POST'])
def start_game(room_id):
    return _run('startGame', roomId=room_id)


@rooms.route('/<string:room_id>/answers', methods=['POST'])
def submit_answer(room_id):
    return _run('submitAnswer', status=201, roomId=room_id)


@rooms.route('/<string:room_id>/judging', methods=['POST'])
def start_judging(room_id):
    return _run('startJudging', roomId=room_id)


@rooms.route('/<string:room_id>/comments', methods=['POST'])
def generate_judging_comments(room_id):
    return _run('generateJudgingComments', roomId=room_id)


@rooms.route('/<string:room_id>/judge', methods=['POST'])
def judge_answers(room_id):
    return _run('judgeAnswers', roomId=room_id)


@rooms.route('/<string:room_id>/next', methods=['POST'])
def next_round(room_id):
    return _run('nextRound', roomId=room_id)


@rooms.route('/<string:room_id>/skip', methods=['POST'])
def skip_topic(room_id):
    return _run('skipTopic', roomId=room_id)


@rooms.route('/<string:room_id>/end', methods=['POST'])
def end_game(room_id):
    return _run('endGame', roomId=room_id)


@rooms.route('/ops/<string:operation>', methods=['POST'])
def run_operation(operation):
    """Single entry point taking the operation name and a flat argument bag."""
    return _run(operation)
