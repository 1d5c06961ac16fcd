"""Single-record store operations over Flask-SQLAlchemy.

Each write commits on its own; there is no multi-record transaction. The
one conditional primitive is ``compare_and_swap_room``, which updates a room
only while its ``version`` still matches what the caller read.
"""

from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError

from matchroom.errors import UpstreamFailure
from matchroom.models import Answer, Player, Room, utcnow

_ORDERING = {
    Player: Player.joined_at,
    Answer: Answer.submitted_at,
    Room: Room.created_at,
}


class RoomStore:
    def __init__(self, db):
        self.db = db

    @contextmanager
    def _failures(self, operation):
        try:
            yield
        except SQLAlchemyError as exc:
            self.db.session.rollback()
            raise UpstreamFailure(f'store {operation} failed: {exc.__class__.__name__}') from exc

    def get(self, model, key):
        """Fetch by primary key. Expired rooms read as absent."""
        if not key:
            return None
        with self._failures(f'get {model.__tablename__}'):
            record = self.db.session.get(model, key)
        if isinstance(record, Room) and record.is_expired():
            return None
        return record

    def put(self, record):
        with self._failures(f'put {record.__tablename__}'):
            self.db.session.add(record)
            self.db.session.commit()
        return record

    def delete(self, model, key) -> bool:
        with self._failures(f'delete {model.__tablename__}'):
            deleted = model.query.filter_by(id=key).delete(synchronize_session=False)
            self.db.session.commit()
        return deleted > 0

    def query(self, model, **index):
        """Secondary-index lookup, e.g. ``query(Player, room_id=...)``."""
        with self._failures(f'query {model.__tablename__}'):
            q = model.query.filter_by(**index)
            order = _ORDERING.get(model)
            if order is not None:
                q = q.order_by(order)
            return q.all()

    def delete_where(self, model, *criteria) -> int:
        with self._failures(f'delete {model.__tablename__}'):
            deleted = model.query.filter(*criteria).delete(synchronize_session=False)
            self.db.session.commit()
        return deleted

    def get_room_by_code(self, room_code):
        """Newest live room using ``room_code``."""
        with self._failures('query room'):
            return (
                Room.query.filter(Room.room_code == room_code, Room.expires_at > utcnow())
                .order_by(Room.created_at.desc())
                .first()
            )

    def compare_and_swap_room(self, room_id, expected_version, values) -> bool:
        """Apply ``values`` only if the room is still at ``expected_version``.

        Bumps the version on success. Returns False on a version mismatch.
        """
        changes = dict(values)
        changes['version'] = Room.version + 1
        with self._failures('update room'):
            updated = (
                Room.query.filter(Room.id == room_id, Room.version == expected_version)
                .update(changes, synchronize_session=False)
            )
            if updated != 1:
                self.db.session.rollback()
                return False
            self.db.session.commit()
        return True

    def purge_expired(self) -> int:
        now = utcnow()
        with self._failures('purge rooms'):
            expired = [r.id for r in Room.query.filter(Room.expires_at <= now).all()]
            if not expired:
                return 0
            Answer.query.filter(Answer.room_id.in_(expired)).delete(synchronize_session=False)
            Player.query.filter(Player.room_id.in_(expired)).delete(synchronize_session=False)
            Room.query.filter(Room.id.in_(expired)).delete(synchronize_session=False)
            self.db.session.commit()
        return len(expired)
