import os
import sys
import random
import pytest

# Ensure the project root (containing the `memory_game` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from memory_game import create_app, db, socketio
from memory_game.broadcast import SessionChannel
from memory_game.dispatcher import SessionDispatcher
from memory_game.services.sessions.registry import SessionRegistry


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    TURN_DURATION_SEC = 30
    REVEAL_DELAY_SEC = 1.0
    ALLOWED_IMAGE_EXTENSIONS = {'png', 'jpg', 'jpeg', 'gif', 'webp'}


class ManualScheduler:
    """Holds delayed calls until a test decides to run them."""

    def __init__(self):
        self.pending = []

    def call_later(self, delay, fn, *args):
        self.pending.append((delay, fn, args))

    def _run(self, name):
        ready = [c for c in self.pending if c[1].__name__ == name]
        self.pending = [c for c in self.pending if c[1].__name__ != name]
        for _, fn, args in ready:
            fn(*args)
        return len(ready)

    def run_resolutions(self):
        return self._run('_resolve')

    def run_timers(self):
        return self._run('_fire')

    def count(self, name):
        return sum(1 for c in self.pending if c[1].__name__ == name)


class Recorder:
    """Stands in for ``socketio.emit`` and keeps every delivery."""

    def __init__(self):
        self.sent = []

    def __call__(self, event, payload, to=None, namespace=None):
        self.sent.append((to, event, payload))

    def events(self, to=None):
        return [e for (t, e, _) in self.sent if to is None or t == to]

    def payloads(self, event, to=None):
        return [p for (t, e, p) in self.sent if e == event and (to is None or t == to)]

    def clear(self):
        self.sent = []


@pytest.fixture()
def scheduler():
    return ManualScheduler()


@pytest.fixture()
def recorder():
    return Recorder()


@pytest.fixture()
def dispatcher(scheduler, recorder):
    images = {1: ['/uploads/cat.png', '/uploads/dog.png']}

    def loader(card_set_id):
        from memory_game.services.sessions.errors import InvalidInput
        if card_set_id not in images:
            raise InvalidInput('Card set not found')
        return images[card_set_id]

    return SessionDispatcher(
        registry=SessionRegistry(),
        channel=SessionChannel(recorder),
        scheduler=scheduler,
        reveal_delay=1.0,
        default_time_per_turn=30,
        rng=random.Random(1234),
        card_set_loader=loader,
    )


@pytest.fixture()
def flask_app(scheduler, tmp_path):
    application = create_app(TestConfig, scheduler=scheduler, rng=random.Random(42))
    application.config['UPLOAD_FOLDER'] = str(tmp_path / 'uploads')
    with application.app_context():
        # Ensure models are imported so tables are created
        import memory_game.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def app_dispatcher(flask_app):
    return flask_app.extensions['session_dispatcher']


@pytest.fixture()
def sio_factory(flask_app):
    clients = []

    def _make():
        test_client = socketio.test_client(
            flask_app,
            flask_test_client=flask_app.test_client(),
            namespace='/ws'
        )
        clients.append(test_client)
        return test_client

    yield _make
    for test_client in clients:
        try:
            if test_client.is_connected('/ws'):
                test_client.disconnect(namespace='/ws')
        except Exception:
            pass


@pytest.fixture()
def sio_client(sio_factory):
    return sio_factory()
