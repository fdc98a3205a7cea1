import pytest

from client.client import ApiClientError, ApiSession, MovieApiClient


class FlaskTransport:
    """Stands in for ``requests.Session`` by routing calls to the Flask test client."""

    def __init__(self, test_client):
        self.test_client = test_client
        self.requests = []

    def request(self, method, url, headers=None, timeout=None, json=None, params=None):
        self.requests.append({"method": method, "url": url, "headers": dict(headers or {})})
        resp = self.test_client.open(url, method=method, headers=headers, json=json, query_string=params)
        return _Response(resp)


class _Response:
    def __init__(self, resp):
        self.status_code = resp.status_code
        self._body = resp.get_json(silent=True)

    def json(self):
        if self._body is None:
            raise ValueError("not JSON")
        return self._body


@pytest.fixture
def api(client):
    return MovieApiClient(base_url="/api", http=FlaskTransport(client))


def test_session_lifecycle():
    session = ApiSession()
    assert not session.is_authenticated
    assert session.auth_headers() == {}

    session.load("tok", {"id": 1, "email": "alice@example.com"})
    assert session.is_authenticated
    assert session.auth_headers() == {"Authorization": "Bearer tok"}

    session.clear()
    assert not session.is_authenticated
    assert session.user is None


def test_register_loads_session_and_logout_clears_it(api):
    user = api.register("alice@example.com", "secret123")
    assert user["email"] == "alice@example.com"
    assert api.session.is_authenticated
    assert api.saved() == []

    api.logout()
    assert not api.session.is_authenticated
    with pytest.raises(ApiClientError) as exc:
        api.saved()
    assert exc.value.status_code == 401


def test_save_list_remove(api):
    api.register("alice@example.com", "secret123")

    movie = api.save({"Title": "Batman Begins", "Year": "2005", "Poster": "N/A", "imdbID": "tt0372784"})
    assert movie["imdbID"] == "tt0372784"
    assert [m["imdbID"] for m in api.saved()] == ["tt0372784"]

    with pytest.raises(ApiClientError) as exc:
        api.save(movie)
    assert exc.value.status_code == 400
    assert exc.value.message == "Movie already saved to your list"

    api.remove("tt0372784")
    assert api.saved() == []


def test_protected_calls_send_bearer_token(api):
    api.register("alice@example.com", "secret123")
    api.saved()
    last = api.http.requests[-1]
    assert last["headers"]["Authorization"] == f"Bearer {api.session.token}"


def test_unauthorized_response_clears_session(api):
    api.register("alice@example.com", "secret123")
    api.session.token = "expired-or-tampered"
    with pytest.raises(ApiClientError):
        api.saved()
    assert not api.session.is_authenticated


def test_login_failure_leaves_session_empty(api):
    api.register("alice@example.com", "secret123")
    api.logout()
    with pytest.raises(ApiClientError) as exc:
        api.login("alice@example.com", "wrong-password")
    assert exc.value.message == "Invalid email or password"
    assert not api.session.is_authenticated

    api.login("alice@example.com", "secret123")
    assert api.session.user["email"] == "alice@example.com"


def test_remove_encodes_imdb_id(api):
    api.register("alice@example.com", "secret123")
    with pytest.raises(ApiClientError) as exc:
        api.remove("tt0372784/extra")
    assert exc.value.status_code == 404
    assert api.http.requests[-1]["url"] == "/api/movies/remove/tt0372784%2Fextra"
