from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping, Optional

from matchroom.errors import InvalidTransition


class RoomState(str, enum.Enum):
    WAITING = 'WAITING'
    ANSWERING = 'ANSWERING'
    JUDGING = 'JUDGING'

    @property
    def shows_prompt(self) -> bool:
        return self is not RoomState.WAITING

    def apply(self, transition: 'Transition') -> 'RoomState':
        """Return the state reached by ``transition`` from this state.

        Raises InvalidTransition for pairs missing from the table.
        """
        try:
            return _TRANSITIONS[(transition, self)]
        except KeyError:
            raise InvalidTransition(f'{transition.value} is not allowed while the room is {self.value}')


class Transition(str, enum.Enum):
    START_GAME = 'start_game'
    SUBMIT_ANSWER = 'submit_answer'
    START_JUDGING = 'start_judging'
    GENERATE_COMMENTS = 'generate_judging_comments'
    JUDGE_ANSWERS = 'judge_answers'
    NEXT_ROUND = 'next_round'
    SKIP_TOPIC = 'skip_topic'
    END_GAME = 'end_game'


_W, _A, _J = RoomState.WAITING, RoomState.ANSWERING, RoomState.JUDGING

_TRANSITIONS = {
    (Transition.START_GAME, _W): _A,
    (Transition.START_GAME, _A): _A,
    (Transition.START_GAME, _J): _A,
    (Transition.SUBMIT_ANSWER, _A): _A,
    (Transition.START_JUDGING, _A): _J,
    (Transition.START_JUDGING, _J): _J,
    (Transition.GENERATE_COMMENTS, _A): _A,
    (Transition.GENERATE_COMMENTS, _J): _J,
    (Transition.JUDGE_ANSWERS, _W): _W,
    (Transition.JUDGE_ANSWERS, _A): _A,
    (Transition.JUDGE_ANSWERS, _J): _J,
    (Transition.NEXT_ROUND, _W): _A,
    (Transition.NEXT_ROUND, _A): _A,
    (Transition.NEXT_ROUND, _J): _A,
    (Transition.SKIP_TOPIC, _A): _A,
    (Transition.END_GAME, _W): _W,
    (Transition.END_GAME, _A): _W,
    (Transition.END_GAME, _J): _W,
}


class PlayerRole(str, enum.Enum):
    HOST = 'HOST'
    PLAYER = 'PLAYER'


class AnswerType(str, enum.Enum):
    TEXT = 'TEXT'
    DRAWING = 'DRAWING'


def isoformat(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.replace(microsecond=0).isoformat() + 'Z'


@dataclass
class JudgeResult:
    room_id: str
    judged_at: datetime
    is_match: Optional[bool] = None
    commentary: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        payload = {
            'roomId': self.room_id,
            'isMatch': self.is_match,
            'judgedAt': isoformat(self.judged_at),
        }
        if self.commentary:
            payload['commentary'] = list(self.commentary)
        return payload


@dataclass
class RoomAggregate:
    """A room joined with its players and current-round answers.

    The three parts are read with separate queries, so they may reflect
    slightly different points in time.
    """
    room: Any
    players: list = field(default_factory=list)
    answers: list = field(default_factory=list)

    @property
    def room_id(self) -> str:
        return self.room.id

    def to_dict(self) -> dict:
        payload = self.room.to_dict()
        payload['players'] = [p.to_dict() for p in self.players or []]
        payload['answers'] = [a.to_dict() for a in self.answers or []]
        return payload


@dataclass(frozen=True)
class SessionConfig:
    prompt_batch_size: int = 5
    pool_low_water: int = 3
    exclude_window: int = 20
    prompt_max_attempts: int = 3
    commentary_limit: int = 30
    room_ttl_hours: int = 24
    cas_max_attempts: int = 5

    @classmethod
    def from_mapping(cls, cfg: Mapping[str, Any]) -> 'SessionConfig':
        return cls(
            prompt_batch_size=int(cfg.get('PROMPT_BATCH_SIZE', 5)),
            pool_low_water=int(cfg.get('PROMPT_POOL_LOW_WATER', 3)),
            exclude_window=int(cfg.get('PROMPT_EXCLUDE_WINDOW', 20)),
            prompt_max_attempts=int(cfg.get('PROMPT_MAX_ATTEMPTS', 3)),
            commentary_limit=int(cfg.get('COMMENTARY_LIMIT', 30)),
            room_ttl_hours=int(cfg.get('ROOM_TTL_HOURS', 24)),
            cas_max_attempts=int(cfg.get('CAS_MAX_ATTEMPTS', 5)),
        )
