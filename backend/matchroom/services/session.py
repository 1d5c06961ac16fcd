"""Game-session state machine.

``GameSession`` owns the room/player/answer lifecycle. Every room write goes
through an optimistic compare-and-swap on ``Room.version`` so concurrent
transitions on one room re-read and retry instead of clobbering each other.
Answers are stamped with the room's ``round_seq`` when submitted; reads only
return answers from the current round, so a submission that races a round
sweep can never leak into the next round.

Operations that change what subscribers see are wrapped with
``broadcasts``, which publishes after the store write and never lets a
publish failure reach the caller.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional

from matchroom.domain import JudgeResult, PlayerRole, RoomAggregate, SessionConfig, Transition
from matchroom.errors import ConcurrentModification, InvalidTransition, NotFound, Unauthorized, UpstreamFailure, ValidationError
from matchroom.models import Answer, Player, Room, new_id, utcnow
from matchroom.requests import (
    CreateRoomRequest,
    EndGameRequest,
    GenerateJudgingCommentsRequest,
    GetRoomByCodeRequest,
    GetRoomRequest,
    JoinRoomRequest,
    JudgeAnswersRequest,
    KickPlayerRequest,
    LeaveRoomRequest,
    ListAnswersRequest,
    ListPlayersRequest,
    NextRoundRequest,
    SkipTopicRequest,
    StartGameRequest,
    StartJudgingRequest,
    SubmitAnswerRequest,
)
from matchroom.services import prompt_pool
from matchroom.services.broadcast import ANSWER_SUBMITTED, JUDGE_RESULT, PLAYER_JOINED, PLAYER_LEFT, ROOM_UPDATED, broadcasts


def _player_joined_payload(session, player):
    payload = player.to_dict()
    room = session.store.get(Room, player.room_id)
    payload['roomCode'] = room.room_code if room else None
    return payload


def _player_left_payload(session, player):
    if player is None:
        return None
    return {'roomId': player.room_id, 'playerId': player.id}


def _room_of_result(session, result):
    aggregate = session.get_room(GetRoomRequest(room_id=result.room_id))
    return aggregate.to_dict() if aggregate else None


# Caller-facing operation name -> (request type, method name)
OPERATIONS = {
    'createRoom': (CreateRoomRequest, 'create_room'),
    'joinRoom': (JoinRoomRequest, 'join_room'),
    'leaveRoom': (LeaveRoomRequest, 'leave_room'),
    'kickPlayer': (KickPlayerRequest, 'kick_player'),
    'startGame': (StartGameRequest, 'start_game'),
    'submitAnswer': (SubmitAnswerRequest, 'submit_answer'),
    'startJudging': (StartJudgingRequest, 'start_judging'),
    'generateJudgingComments': (GenerateJudgingCommentsRequest, 'generate_judging_comments'),
    'judgeAnswers': (JudgeAnswersRequest, 'judge_answers'),
    'nextRound': (NextRoundRequest, 'next_round'),
    'skipTopic': (SkipTopicRequest, 'skip_topic'),
    'endGame': (EndGameRequest, 'end_game'),
    'getRoom': (GetRoomRequest, 'get_room'),
    'getRoomByCode': (GetRoomByCodeRequest, 'get_room_by_code'),
    'listPlayers': (ListPlayersRequest, 'list_players'),
    'listAnswers': (ListAnswersRequest, 'list_answers'),
}


class GameSession:
    def __init__(self, store, prompts, commentary, broadcaster, config: Optional[SessionConfig] = None, logger=None):
        self.store = store
        self.prompts = prompts
        self.commentary = commentary
        self.broadcaster = broadcaster
        self.config = config or SessionConfig()
        self.logger = logger or logging.getLogger('matchroom')

    def dispatch(self, operation: str, payload: dict):
        """Validate a flat argument bag and run the named operation."""
        try:
            request_type, method_name = OPERATIONS[operation]
        except KeyError:
            raise ValidationError(f'unknown operation {operation!r}')
        return getattr(self, method_name)(request_type.from_payload(payload or {}))

    # ---- reads -------------------------------------------------------

    def get_room(self, req: GetRoomRequest) -> Optional[RoomAggregate]:
        room = self.store.get(Room, req.room_id)
        return self._assemble(room) if room else None

    def get_room_by_code(self, req: GetRoomByCodeRequest) -> Optional[RoomAggregate]:
        room = self.store.get_room_by_code(req.room_code)
        return self._assemble(room) if room else None

    def list_players(self, req: ListPlayersRequest) -> list:
        return list(self.store.query(Player, room_id=req.room_id) or [])

    def list_answers(self, req: ListAnswersRequest) -> list:
        room = self.store.get(Room, req.room_id)
        if room is None:
            return []
        return self._current_answers(room)

    def _current_answers(self, room) -> list:
        return list(self.store.query(Answer, room_id=room.id, round_seq=room.round_seq) or [])

    def _assemble(self, room) -> RoomAggregate:
        players = self.store.query(Player, room_id=room.id)
        return RoomAggregate(room=room, players=list(players or []), answers=self._current_answers(room))

    def _require_room(self, room_id) -> Room:
        room = self.store.get(Room, room_id)
        if room is None:
            raise NotFound(f'room {room_id} not found')
        return room

    # ---- membership --------------------------------------------------

    def create_room(self, req: CreateRoomRequest) -> RoomAggregate:
        host_id = new_id()
        room = self.store.put(Room(host_id=host_id, ttl_hours=self.config.room_ttl_hours))
        host = self.store.put(Player(id=host_id, room_id=room.id, name=req.host_name, role=PlayerRole.HOST, connected=True))
        self.logger.info(f"[create_room] room={room.id} code={room.room_code} host={host_id}")
        return RoomAggregate(room=room, players=[host], answers=[])

    @broadcasts(PLAYER_JOINED, project=_player_joined_payload)
    def join_room(self, req: JoinRoomRequest) -> Player:
        room = self.store.get_room_by_code(req.room_code)
        if room is None:
            raise NotFound(f'room with code {req.room_code} not found')
        player = self.store.put(Player(room_id=room.id, name=req.player_name, role=PlayerRole.PLAYER, connected=True))
        self.logger.info(f"[join_room] room={room.id} player={player.id} name={player.name}")
        return player

    def leave_room(self, req: LeaveRoomRequest) -> bool:
        self._remove_player(req.player_id)
        return True

    def kick_player(self, req: KickPlayerRequest) -> bool:
        room = self._require_room(req.room_id)
        if room.host_id != req.player_id:
            raise Unauthorized('only the host can remove players')
        if req.player_id == req.kicked_player_id:
            raise ValidationError('the host cannot remove themselves')
        kicked = self.store.get(Player, req.kicked_player_id)
        if kicked is None or kicked.room_id != room.id:
            raise NotFound(f'player {req.kicked_player_id} is not in room {room.id}')

        self._remove_player(kicked.id)
        try:
            self.store.delete_where(Answer, Answer.room_id == room.id, Answer.player_id == req.kicked_player_id)
        except UpstreamFailure as exc:
            self.logger.warning(f"[kick_player] room={room.id} answer cleanup failed: {exc}")
        self.logger.info(f"[kick_player] room={room.id} kicked={req.kicked_player_id}")
        return True

    @broadcasts(PLAYER_LEFT, project=_player_left_payload)
    def _remove_player(self, player_id) -> Optional[Player]:
        player = self.store.get(Player, player_id)
        if player is None:
            return None
        # Detached copy so the payload survives the delete
        removed = Player(id=player.id, room_id=player.room_id, name=player.name, role=player.role)
        self.store.delete(Player, player_id)
        return removed

    def set_connected(self, player_id, connected: bool) -> Optional[Player]:
        player = self.store.get(Player, player_id)
        if player is None or bool(player.connected) == connected:
            return player
        player.connected = connected
        return self.store.put(player)

    # ---- transitions -------------------------------------------------

    def _commit_transition(self, room_id, transition: Transition, changes_for: Callable) -> Room:
        """Read, validate and conditionally write one room transition.

        ``changes_for(room, next_state)`` returns the column values to write.
        It runs again on every retry, against the freshly read room.
        """
        attempts = self.config.cas_max_attempts
        for attempt in range(1, attempts + 1):
            room = self._require_room(room_id)
            next_state = room.state.apply(transition)
            expected_version = room.version
            values = dict(changes_for(room, next_state))
            values.setdefault('state', next_state)
            values['updated_at'] = utcnow()
            if next_state.shows_prompt and not values.get('current_prompt', room.current_prompt):
                raise InvalidTransition(f'{transition.value} would leave the room without a prompt')
            if self.store.compare_and_swap_room(room_id, expected_version, values):
                return self._require_room(room_id)
            self.logger.info(f"[{transition.value}] room={room_id} version={expected_version} conflict, attempt {attempt}/{attempts}")
        raise ConcurrentModification(f'room {room_id} kept changing during {transition.value}')

    def _advance_prompt(self, room_id, transition: Transition, low_water: int) -> Room:
        carried: list = []

        def changes(room, next_state):
            used = list(room.used_prompts or [])
            pool = prompt_pool.clean_pool(room.prompt_pool or [], used)
            if prompt_pool.needs_replenish(pool, low_water):
                pool = pool + self._replenish(room, used, pool, carried)
            prompt, pool, used = prompt_pool.pop_front(pool, used)
            return {
                'current_prompt': prompt,
                'prompt_pool': pool,
                'used_prompts': used,
                'round_seq': room.round_seq + 1,
                'last_judge_result': None,
                'judged_at': None,
                'commentary': [],
            }

        room = self._commit_transition(room_id, transition, changes)
        self._sweep_answers(room)
        self.logger.info(
            f"[{transition.value}] room={room.id} round={room.round_seq} prompt={room.current_prompt!r} pool={len(room.prompt_pool or [])}"
        )
        return room

    def _replenish(self, room, used, pool, carried: list) -> list:
        # Prompts generated by an attempt that lost the CAS race are reused
        fresh = prompt_pool.dedupe(carried, used, pool)
        if fresh:
            return fresh
        cfg = self.config
        try:
            fresh = prompt_pool.replenish(
                self.prompts,
                used,
                pool,
                batch_size=cfg.prompt_batch_size,
                exclude_window=cfg.exclude_window,
                max_attempts=cfg.prompt_max_attempts,
                logger=self.logger,
            )
        except UpstreamFailure as exc:
            self.logger.error(f"[replenish] room={room.id} generation failed with {len(pool)} pooled prompt(s): {exc}")
            raise
        carried[:] = fresh
        return fresh

    def _sweep_answers(self, room) -> None:
        """Delete answers from earlier rounds. Reads already ignore them."""
        try:
            self.store.delete_where(Answer, Answer.room_id == room.id, Answer.round_seq < room.round_seq)
        except UpstreamFailure as exc:
            self.logger.warning(f"[sweep_answers] room={room.id} failed: {exc}")

    @broadcasts(ROOM_UPDATED)
    def start_game(self, req: StartGameRequest) -> RoomAggregate:
        # Only an empty pool forces generation here
        room = self._advance_prompt(req.room_id, Transition.START_GAME, low_water=0)
        return self._assemble(room)

    @broadcasts(ANSWER_SUBMITTED)
    def submit_answer(self, req: SubmitAnswerRequest) -> Answer:
        room = self._require_room(req.room_id)
        room.state.apply(Transition.SUBMIT_ANSWER)
        player = self.store.get(Player, req.player_id)
        if player is None or player.room_id != room.id:
            raise NotFound(f'player {req.player_id} is not in room {room.id}')
        answer = self.store.put(Answer(
            room_id=room.id,
            player_id=player.id,
            player_name=player.name,
            answer_type=req.answer_type,
            text_answer=req.text_answer,
            drawing_data=req.drawing_data,
            round_seq=room.round_seq,
            submitted_at=utcnow(),
        ))
        self.logger.info(f"[submit_answer] room={room.id} player={player.id} round={answer.round_seq}")
        return answer

    @broadcasts(ROOM_UPDATED)
    def start_judging(self, req: StartJudgingRequest) -> RoomAggregate:
        room = self._commit_transition(
            req.room_id,
            Transition.START_JUDGING,
            lambda room, state: {'commentary': [], 'judged_at': None},
        )
        self.logger.info(f"[start_judging] room={room.id} round={room.round_seq}")
        return self._assemble(room)

    @broadcasts(ROOM_UPDATED, project=_room_of_result)
    def generate_judging_comments(self, req: GenerateJudgingCommentsRequest) -> JudgeResult:
        room = self._require_room(req.room_id)
        room.state.apply(Transition.GENERATE_COMMENTS)
        if not room.current_prompt:
            raise InvalidTransition('the room has no current prompt')
        round_seq = room.round_seq
        answers = [(a.player_name, a.text_answer) for a in self._current_answers(room)]

        generated = self.commentary.generate(room.current_prompt, answers)
        commentary = list(generated or [])[:self.config.commentary_limit]
        judged_at = utcnow()

        def changes(current, next_state):
            if current.round_seq != round_seq:
                raise ConcurrentModification('the round advanced while commentary was being generated')
            return {'commentary': commentary, 'judged_at': judged_at}

        room = self._commit_transition(req.room_id, Transition.GENERATE_COMMENTS, changes)
        self.logger.info(f"[generate_judging_comments] room={room.id} comments={len(commentary)}")
        return JudgeResult(room_id=room.id, judged_at=judged_at, is_match=room.last_judge_result, commentary=commentary)

    @broadcasts(JUDGE_RESULT)
    def judge_answers(self, req: JudgeAnswersRequest) -> JudgeResult:
        if req.player_id is not None:
            room = self._require_room(req.room_id)
            if room.host_id != req.player_id:
                raise Unauthorized('only the host can judge answers')
        judged_at: datetime = utcnow()
        room = self._commit_transition(
            req.room_id,
            Transition.JUDGE_ANSWERS,
            lambda room, state: {'last_judge_result': req.is_match, 'judged_at': judged_at},
        )
        self.logger.info(f"[judge_answers] room={room.id} is_match={req.is_match}")
        return JudgeResult(room_id=room.id, judged_at=judged_at, is_match=req.is_match)

    @broadcasts(ROOM_UPDATED)
    def next_round(self, req: NextRoundRequest) -> RoomAggregate:
        room = self._advance_prompt(req.room_id, Transition.NEXT_ROUND, low_water=self.config.pool_low_water)
        return self._assemble(room)

    @broadcasts(ROOM_UPDATED)
    def skip_topic(self, req: SkipTopicRequest) -> RoomAggregate:
        room = self._advance_prompt(req.room_id, Transition.SKIP_TOPIC, low_water=self.config.pool_low_water)
        return self._assemble(room)

    @broadcasts(ROOM_UPDATED)
    def end_game(self, req: EndGameRequest) -> RoomAggregate:
        room = self._commit_transition(req.room_id, Transition.END_GAME, lambda room, state: {'current_prompt': None})
        self.logger.info(f"[end_game] room={room.id}")
        return self._assemble(room)
