"""Typed request variants, one per operation.

Payloads arrive as flat JSON objects with camelCase keys. ``from_payload``
validates and converts them so the session never inspects raw values.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

from matchroom.domain import AnswerType
from matchroom.errors import ValidationError

MAX_NAME_LENGTH = 32


def _require_str(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f'{key} is required')
    return value.strip()


def _optional_str(data: Mapping[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f'{key} must be a string')
    return value if value.strip() else None


def _require_name(data: Mapping[str, Any], key: str) -> str:
    name = _require_str(data, key)
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError(f'{key} must be at most {MAX_NAME_LENGTH} characters')
    if any(ord(ch) < 32 for ch in name):
        raise ValidationError(f'{key} contains control characters')
    return name


@dataclass(frozen=True)
class CreateRoomRequest:
    host_name: str

    @classmethod
    def from_payload(cls, data):
        return cls(host_name=_require_name(data, 'hostName'))


@dataclass(frozen=True)
class JoinRoomRequest:
    room_code: str
    player_name: str

    @classmethod
    def from_payload(cls, data):
        return cls(room_code=_require_str(data, 'roomCode'), player_name=_require_name(data, 'playerName'))


@dataclass(frozen=True)
class LeaveRoomRequest:
    player_id: str

    @classmethod
    def from_payload(cls, data):
        return cls(player_id=_require_str(data, 'playerId'))


@dataclass(frozen=True)
class KickPlayerRequest:
    room_id: str
    player_id: str
    kicked_player_id: str

    @classmethod
    def from_payload(cls, data):
        return cls(
            room_id=_require_str(data, 'roomId'),
            player_id=_require_str(data, 'playerId'),
            kicked_player_id=_require_str(data, 'kickedPlayerId'),
        )


@dataclass(frozen=True)
class RoomRequest:
    room_id: str

    @classmethod
    def from_payload(cls, data):
        return cls(room_id=_require_str(data, 'roomId'))


class StartGameRequest(RoomRequest):
    pass


class StartJudgingRequest(RoomRequest):
    pass


class GenerateJudgingCommentsRequest(RoomRequest):
    pass


class NextRoundRequest(RoomRequest):
    pass


class SkipTopicRequest(RoomRequest):
    pass


class EndGameRequest(RoomRequest):
    pass


class GetRoomRequest(RoomRequest):
    pass


class ListPlayersRequest(RoomRequest):
    pass


class ListAnswersRequest(RoomRequest):
    pass


@dataclass(frozen=True)
class GetRoomByCodeRequest:
    room_code: str

    @classmethod
    def from_payload(cls, data):
        return cls(room_code=_require_str(data, 'roomCode'))


@dataclass(frozen=True)
class SubmitAnswerRequest:
    room_id: str
    player_id: str
    answer_type: AnswerType = AnswerType.TEXT
    text_answer: Optional[str] = None
    drawing_data: Optional[str] = None

    @classmethod
    def from_payload(cls, data):
        raw_type = data.get('answerType') or AnswerType.TEXT.value
        try:
            answer_type = AnswerType(str(raw_type).upper())
        except ValueError:
            raise ValidationError(f'unknown answerType {raw_type!r}')
        return cls(
            room_id=_require_str(data, 'roomId'),
            player_id=_require_str(data, 'playerId'),
            answer_type=answer_type,
            text_answer=_optional_str(data, 'textAnswer'),
            drawing_data=_optional_str(data, 'drawingData'),
        )


@dataclass(frozen=True)
class JudgeAnswersRequest:
    room_id: str
    is_match: bool
    player_id: Optional[str] = None

    @classmethod
    def from_payload(cls, data):
        is_match = data.get('isMatch')
        if not isinstance(is_match, bool):
            raise ValidationError('isMatch must be a boolean')
        return cls(room_id=_require_str(data, 'roomId'), is_match=is_match, player_id=_optional_str(data, 'playerId'))
