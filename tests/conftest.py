import pytest
import requests

from app import create_app
from models.models import db

TEST_CONFIG = {
    "TESTING": True,
    "SQLALCHEMY_DATABASE_URI": "sqlite://",
    "JWT_SECRET": "test-secret-that-is-long-enough-for-hs256",
    "OMDB_API_KEY": "test-omdb-key",
    "OMDB_API_URL": "https://omdb.test/",
}

BATMAN = {
    "title": "Batman Begins",
    "year": "2005",
    "imdb_id": "tt0372784",
    "poster_url": "https://m.media-amazon.com/images/batman.jpg",
}


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=None):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON object could be decoded")
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} Error")


@pytest.fixture
def app():
    app = create_app(TEST_CONFIG)
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def ctx(app):
    """Push an app context for tests that call the data layer directly."""
    with app.app_context():
        yield app


@pytest.fixture
def dm(ctx):
    return ctx.data_manager


@pytest.fixture
def issuer(ctx):
    return ctx.session_issuer


@pytest.fixture
def register(client):
    """Register a user over HTTP and return (auth headers, user dict)."""

    def _register(email="alice@example.com", password="secret123"):
        resp = client.post("/api/auth/register", json={"email": email, "password": password})
        assert resp.status_code == 201, resp.get_json()
        data = resp.get_json()["data"]
        return {"Authorization": f"Bearer {data['token']}"}, data["user"]

    return _register


@pytest.fixture
def omdb(monkeypatch):
    """Stub the OMDb HTTP call; tests set ``omdb.response`` or ``omdb.error``."""

    class Stub:
        def __init__(self):
            self.response = FakeResponse(200, {"Response": "False", "Error": "Movie not found!"})
            self.error = None
            self.calls = []

        def get(self, url, params=None, timeout=None):
            self.calls.append({"url": url, "params": params, "timeout": timeout})
            if self.error is not None:
                raise self.error
            return self.response

    stub = Stub()
    monkeypatch.setattr("omdb_movie.omdb.requests.get", stub.get)
    return stub
