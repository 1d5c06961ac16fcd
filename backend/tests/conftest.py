import os
import sys
import pytest

# Ensure the backend root (containing the `matchroom` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from matchroom import SESSION_EXTENSION, create_app, db, socketio
from matchroom.errors import UpstreamFailure


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    OPENAI_API_KEY = ''
    PROMPT_BATCH_SIZE = 5
    PROMPT_POOL_LOW_WATER = 3
    PROMPT_EXCLUDE_WINDOW = 20
    PROMPT_MAX_ATTEMPTS = 3
    COMMENTARY_LIMIT = 30
    CAS_MAX_ATTEMPTS = 5


class FakePromptGenerator:
    """Numbered prompts by default, or scripted batches when given."""

    def __init__(self, batches=None):
        self.batches = [list(b) for b in batches] if batches is not None else None
        self.calls = []
        self.fail = False
        self._counter = 0

    def generate(self, exclude, count):
        self.calls.append((set(exclude), count))
        if self.fail:
            raise UpstreamFailure('prompt service unavailable')
        if self.batches is not None:
            return self.batches.pop(0) if self.batches else []
        out = []
        for _ in range(count):
            self._counter += 1
            out.append(f'Prompt {self._counter}')
        return out


class FakeCommentaryGenerator:
    def __init__(self, lines=None):
        self.lines = lines if lines is not None else ['nice', 'same!', 'no way']
        self.calls = []
        self.fail = False

    def generate(self, prompt, answers):
        self.calls.append((prompt, list(answers)))
        if self.fail:
            raise UpstreamFailure('commentary service unavailable')
        return list(self.lines)


class RecordingBroadcaster:
    def __init__(self):
        self.events = []

    def publish(self, event_type, payload):
        self.events.append((event_type, payload))

    def names(self):
        return [name for name, _ in self.events]


class FailingBroadcaster:
    def __init__(self):
        self.attempts = 0

    def publish(self, event_type, payload):
        self.attempts += 1
        raise RuntimeError('broadcast channel down')


@pytest.fixture()
def prompts():
    return FakePromptGenerator()


@pytest.fixture()
def commentary():
    return FakeCommentaryGenerator()


@pytest.fixture()
def flask_app(prompts, commentary):
    application = create_app(TestConfig, prompt_generator=prompts, commentary_generator=commentary)
    with application.app_context():
        # Ensure models are imported so tables are created
        import matchroom.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def session(flask_app):
    return flask_app.extensions[SESSION_EXTENSION]


@pytest.fixture()
def events(session):
    recorder = RecordingBroadcaster()
    session.broadcaster = recorder
    return recorder


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass
