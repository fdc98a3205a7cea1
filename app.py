"""Movie Search & Save
---------------------
A Flask JSON API that lets users register, search the OMDb movie database and
keep a personal list of saved movies.

Features:
    - Register/login with email and password, stateless bearer tokens
    - Search OMDb by title (proxied, the API key never reaches the client)
    - Save, list and remove movies; movies saved by several users share one
      catalog record that is deleted when the last user removes it
    - JSON error envelope for every failure

Run locally:
    1) Create and activate a virtualenv
    2) pip install -e .
    3) Create a .env file with OMDB_API_KEY and JWT_SECRET
    4) python app.py
    5) Visit http://127.0.0.1:5000

Note:
    Unless DATABASE_URL is set, data is stored in a local SQLite database file
    under the ./data directory.
"""
from __future__ import annotations

import logging
import os
import secrets
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping, Optional

from dotenv import load_dotenv
from flask import Flask, jsonify, request
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from auth.gate import auth_required, current_identity
from auth.sessions import SessionIssuer
from data_manager.data_manager import DataManager
from errors.errors import ApiError, ConfigError, ValidationError
from models.models import db, init_db
from omdb_movie.omdb import DEFAULT_OMDB_URL, search_omdb

# ---------------------------------------------------------------------------
# Flask app configuration
# ---------------------------------------------------------------------------

load_dotenv()  # Load environment variables from .env if present

BASEDIR = Path(__file__).parent.resolve()
DATA_DIR = BASEDIR / "data"

DEFAULT_ORIGINS = ["http://localhost:5173", "http://localhost:5174"]

logger = logging.getLogger(__name__)


def _envelope(message: str, status: int = 200, **data: Any):
    body: dict = {"success": status < 400, "message": message}
    if data:
        body["data"] = data
    return jsonify(body), status


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in ("1", "true", "yes", "on")


def _json_body() -> dict:
    """Return the request's JSON object, or {} when there is no JSON body.

    Raises:
        ValidationError: If the body is JSON but not an object.
    """
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


def _signing_secret(config: Mapping[str, Any]) -> str:
    """Return the token signing secret.

    Outside debug and testing a secret must be configured. Otherwise a random
    one is generated, so tokens do not survive a restart.

    Raises:
        ConfigError: If no secret is configured in a production setup.
    """
    secret = config.get("JWT_SECRET") or config.get("SECRET_KEY")
    if secret:
        return secret
    if config.get("DEBUG") or config.get("TESTING"):
        logger.warning("JWT_SECRET is not set; using a random secret for this process")
        return secrets.token_urlsafe(32)
    raise ConfigError("JWT_SECRET is not set. Create a .env file or export the variable.")


def _allowed_origins(config: Mapping[str, Any]) -> list:
    origins = [o.strip() for o in (config.get("CORS_ORIGINS") or "").split(",") if o.strip()]
    if not origins:
        origins = list(DEFAULT_ORIGINS)
    if config.get("FRONTEND_URL"):
        origins.append(config["FRONTEND_URL"])
    return origins


def register_error_handlers(app: Flask) -> None:
    """Register error handlers that render every failure as JSON.

    Args:
        app: The Flask application.
    """

    @app.errorhandler(ApiError)
    def api_error(error: ApiError):
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(404)
    def page_not_found(error):  # type: ignore[override]
        return _envelope("Route not found", 404)

    @app.errorhandler(HTTPException)
    def http_error(error: HTTPException):
        return _envelope(error.description or error.name, error.code or 500)

    @app.errorhandler(Exception)
    def internal_error(error: Exception):
        """Log an unexpected failure and hide its details outside debug mode."""
        app.logger.exception("Unhandled error on %s %s", request.method, request.path)
        message = str(error) if app.config.get("DEBUG") else "Internal server error"
        return _envelope(message, 500)


def register_routes(app: Flask) -> None:
    """Attach route functions to the app.

    Args:
        app: The Flask application.
    """

    @app.route("/", methods=["GET"])
    def index():
        return jsonify(
            {
                "success": True,
                "message": "Movie Search Save App Backend API",
                "version": "1.0.0",
                "endpoints": {
                    "auth": {
                        "register": "POST /api/auth/register",
                        "login": "POST /api/auth/login",
                        "me": "GET /api/auth/me",
                    },
                    "movies": {
                        "search": "GET /api/movies/search?title=<movie_title>",
                        "save": "POST /api/movies/save",
                        "list": "GET /api/movies/list",
                        "remove": "DELETE /api/movies/remove/<imdbID>",
                    },
                },
            }
        )

    @app.route("/health", methods=["GET"])
    def health():
        return jsonify(
            {
                "success": True,
                "message": "Server is running successfully",
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }
        )

    # ------------------------- Auth ------------------------
    @app.route("/api/auth/register", methods=["POST"])
    def register():
        """Create an account.

        JSON Body:
            email (str): Email address, unique per account.
            password (str): At least 6 characters.

        Returns:
            Response: 201 with ``{token, user}``.
        """
        payload = _json_body()
        token, user = app.session_issuer.register(
            payload.get("email"), payload.get("password")
        )
        return _envelope(
            "User registered successfully", 201, token=token, user=user.to_dict()
        )

    @app.route("/api/auth/login", methods=["POST"])
    def login():
        payload = _json_body()
        token, user = app.session_issuer.login(payload.get("email"), payload.get("password"))
        return _envelope("Login successful", token=token, user=user.to_dict())

    @app.route("/api/auth/me", methods=["GET"])
    @auth_required
    def me():
        user = app.session_issuer.current_user(current_identity())
        return _envelope("User retrieved successfully", user=user.to_dict())

    # ------------------------- Movies ------------------------
    @app.route("/api/movies/search", methods=["GET"])
    @auth_required
    def search_movies():
        """Search OMDb by title.

        Query Parameters:
            title (str): Required title query.

        Returns:
            Response: ``{movies, totalResults}``.
        """
        results = search_omdb(
            request.args.get("title", ""),
            api_key=app.config.get("OMDB_API_KEY"),
            url=app.config["OMDB_API_URL"],
            timeout=app.config["OMDB_TIMEOUT"],
        )
        return _envelope("Movies retrieved successfully", **results)

    @app.route("/api/movies/save", methods=["POST"])
    @auth_required
    def save_movie():
        """Save a movie to the caller's list.

        JSON Body:
            title (str), year (str), poster (str | null),
            imdbID (str) - ``externalID`` is accepted as well.

        Returns:
            Response: 201 with ``{movie}``.
        """
        payload = _json_body()
        movie = app.data_manager.save_movie(
            current_identity().user_id,
            title=payload.get("title"),
            year=payload.get("year"),
            imdb_id=payload.get("imdbID") or payload.get("externalID"),
            poster_url=payload.get("poster"),
        )
        return _envelope("Movie saved successfully", 201, movie=movie.to_dict())

    @app.route("/api/movies/list", methods=["GET"])
    @auth_required
    def list_movies():
        movies = [m.to_dict() for m in app.data_manager.get_movies(current_identity().user_id)]
        return _envelope(
            "Saved movies retrieved successfully", movies=movies, count=len(movies)
        )

    @app.route("/api/movies/remove/<imdb_id>", methods=["DELETE"])
    @auth_required
    def remove_movie(imdb_id: str):
        app.data_manager.remove_movie(current_identity().user_id, imdb_id)
        return _envelope("Movie removed from your saved list successfully")


def create_app(config: Optional[Mapping[str, Any]] = None) -> Flask:
    """Application factory to create and configure the Flask app.

    Args:
        config: Optional overrides applied on top of the environment.

    Returns:
        Flask: The configured Flask application instance.
    """
    app = Flask(__name__)

    # Configuration
    app.config["SECRET_KEY"] = os.getenv("SECRET_KEY")
    app.config["JWT_SECRET"] = os.getenv("JWT_SECRET")
    app.config["JWT_EXPIRES_MINUTES"] = int(os.getenv("JWT_EXPIRES_MINUTES", str(60 * 24 * 7)))
    app.config["SQLALCHEMY_DATABASE_URI"] = os.getenv("DATABASE_URL")
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
    app.config["OMDB_API_KEY"] = os.getenv("OMDB_API_KEY")
    app.config["OMDB_API_URL"] = os.getenv("OMDB_API_URL", DEFAULT_OMDB_URL)
    app.config["OMDB_TIMEOUT"] = float(os.getenv("OMDB_TIMEOUT", "10"))
    app.config["CORS_ORIGINS"] = os.getenv("CORS_ORIGINS", "")
    app.config["FRONTEND_URL"] = os.getenv("FRONTEND_URL")
    app.config["LOG_LEVEL"] = os.getenv("LOG_LEVEL", "INFO")
    app.config["DEBUG"] = _env_flag("DEBUG")
    if config:
        app.config.update(config)

    if not app.config["SQLALCHEMY_DATABASE_URI"]:
        DATA_DIR.mkdir(exist_ok=True)
        app.config["SQLALCHEMY_DATABASE_URI"] = f"sqlite:///{DATA_DIR / 'movies.sqlite3'}"

    log_level = str(app.config["LOG_LEVEL"]).strip().upper()
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app.logger.setLevel(log_level)
    secret = _signing_secret(app.config)

    CORS(
        app,
        origins=_allowed_origins(app.config),
        supports_credentials=True,
        methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    # Initialize DB, DataManager and token issuer
    init_db(app)
    app.data_manager = DataManager(db)  # type: ignore[attr-defined]
    app.session_issuer = SessionIssuer(  # type: ignore[attr-defined]
        app.data_manager,
        secret=secret,
        expires_minutes=app.config["JWT_EXPIRES_MINUTES"],
    )

    # Register error handlers
    register_error_handlers(app)

    # Register routes
    register_routes(app)

    logger.info("Application created")
    return app


if __name__ == "__main__":
    app = create_app()
    app.run(debug=app.config["DEBUG"], port=int(os.getenv("PORT", "5000")))
