from matchroom import db
from matchroom.domain import AnswerType, PlayerRole, RoomState, isoformat
from datetime import datetime, timedelta, timezone
import random
import uuid


def new_id():
    return str(uuid.uuid4())


def utcnow():
    """Naive UTC timestamp; SQLite drops tzinfo so we never store it."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def generate_room_code(length=6):
    """Generate a numeric room code that no live room is using."""
    while True:
        code = str(random.randint(10 ** (length - 1), 10 ** length - 1))
        taken = Room.query.filter(Room.room_code == code, Room.expires_at > utcnow()).first()
        if not taken:
            return code


class Room(db.Model):
    __tablename__ = 'room'
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    room_code = db.Column(db.String(12), nullable=False, index=True)
    host_id = db.Column(db.String(36), nullable=False)
    state = db.Column(db.Enum(RoomState, name='room_state'), nullable=False, default=RoomState.WAITING)
    current_prompt = db.Column(db.Text, nullable=True)
    prompt_pool = db.Column(db.JSON, nullable=False, default=list)
    used_prompts = db.Column(db.JSON, nullable=False, default=list)
    last_judge_result = db.Column(db.Boolean, nullable=True)
    judged_at = db.Column(db.DateTime, nullable=True)
    commentary = db.Column(db.JSON, nullable=False, default=list)
    # Bumped whenever the prompt advances; answers carry the value they were submitted under
    round_seq = db.Column(db.Integer, nullable=False, default=0)
    # Bumped on every committed write (compare-and-swap token)
    version = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    expires_at = db.Column(db.DateTime, nullable=False, index=True)

    def __init__(self, ttl_hours=24, **kwargs):
        super(Room, self).__init__(**kwargs)
        now = utcnow()
        self.id = self.id or new_id()
        self.created_at = self.created_at or now
        self.updated_at = self.updated_at or now
        self.expires_at = self.expires_at or (self.created_at + timedelta(hours=ttl_hours))
        if self.state is None:
            self.state = RoomState.WAITING
        for attr in ('prompt_pool', 'used_prompts', 'commentary'):
            if getattr(self, attr) is None:
                setattr(self, attr, [])
        if self.round_seq is None:
            self.round_seq = 0
        if self.version is None:
            self.version = 0
        if not self.room_code:
            self.room_code = generate_room_code()

    def is_expired(self, now=None):
        return self.expires_at is not None and self.expires_at <= (now or utcnow())

    def to_dict(self):
        return {
            'roomId': self.id,
            'roomCode': self.room_code,
            'hostId': self.host_id,
            'state': self.state.value if self.state else None,
            'currentPrompt': self.current_prompt,
            'promptPool': list(self.prompt_pool or []),
            'usedPrompts': list(self.used_prompts or []),
            'lastJudgeResult': self.last_judge_result,
            'judgedAt': isoformat(self.judged_at),
            'commentary': list(self.commentary or []),
            'createdAt': isoformat(self.created_at),
            'updatedAt': isoformat(self.updated_at),
            'expiresAt': isoformat(self.expires_at),
        }


class Player(db.Model):
    __tablename__ = 'player'
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    room_id = db.Column(db.String(36), nullable=False, index=True)
    name = db.Column(db.String(64), nullable=False)
    role = db.Column(db.Enum(PlayerRole, name='player_role'), nullable=False, default=PlayerRole.PLAYER)
    connected = db.Column(db.Boolean, nullable=False, default=True)
    joined_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self):
        return {
            'playerId': self.id,
            'roomId': self.room_id,
            'name': self.name,
            'role': self.role.value if self.role else None,
            'connected': bool(self.connected),
            'joinedAt': isoformat(self.joined_at),
        }


class Answer(db.Model):
    __tablename__ = 'answer'
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    room_id = db.Column(db.String(36), nullable=False, index=True)
    player_id = db.Column(db.String(36), nullable=False)
    # Snapshot of the player's name at submission time
    player_name = db.Column(db.String(64), nullable=False)
    answer_type = db.Column(db.Enum(AnswerType, name='answer_type'), nullable=False, default=AnswerType.TEXT)
    text_answer = db.Column(db.Text, nullable=True)
    drawing_data = db.Column(db.Text, nullable=True)
    round_seq = db.Column(db.Integer, nullable=False, default=0)
    submitted_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self):
        payload = {
            'answerId': self.id,
            'roomId': self.room_id,
            'playerId': self.player_id,
            'playerName': self.player_name,
            'answerType': self.answer_type.value if self.answer_type else None,
            'submittedAt': isoformat(self.submitted_at),
        }
        if self.text_answer is not None:
            payload['textAnswer'] = self.text_answer
        if self.drawing_data is not None:
            payload['drawingData'] = self.drawing_data
        return payload
