"""Database models for the movie search & save backend.

Defines SQLAlchemy ORM models for users, the shared movie catalog and the
per-user saved-movie links, plus a helper to initialize the database within a
Flask application.

A Movie row exists only while at least one SavedMovie row points at it. The
link table is the single source of truth for both directions of the
relationship: a movie's savers and a user's saved movies are two views of the
same rows.
"""
from __future__ import annotations

import sqlite3
from datetime import datetime, timezone

from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import event
from sqlalchemy.engine import Engine

db = SQLAlchemy()


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # SQLite ignores FOREIGN KEY clauses unless asked per connection.
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(db.Model):
    """Registered account identified by a (lower-cased) email address."""

    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)

    saved_links = db.relationship(
        "SavedMovie",
        back_populates="user",
        cascade="all, delete-orphan",
        order_by="SavedMovie.id",
    )

    def to_dict(self) -> dict:
        return {"id": self.id, "email": self.email}

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"<User id={self.id} email={self.email!r}>"


class Movie(db.Model):
    """Catalog entry shared by every user who saved it, keyed by IMDb id."""

    __tablename__ = "movies"

    id = db.Column(db.Integer, primary_key=True)
    imdb_id = db.Column(db.String(32), unique=True, nullable=False, index=True)
    title = db.Column(db.String(255), nullable=False)
    # OMDb years are strings such as "2005" or "2008–2013".
    year = db.Column(db.String(16), nullable=False)
    poster_url = db.Column(db.String(500))
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)

    saved_links = db.relationship(
        "SavedMovie",
        back_populates="movie",
        cascade="all, delete-orphan",
        order_by="SavedMovie.id",
    )

    @property
    def saved_by(self) -> set:
        """IDs of the users whose lists contain this movie."""
        return {link.user_id for link in self.saved_links}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "year": self.year,
            "poster": self.poster_url,
            "imdbID": self.imdb_id,
        }

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"<Movie id={self.id} imdb_id={self.imdb_id!r} title={self.title!r}>"


class SavedMovie(db.Model):
    """One user's save of one catalog movie."""

    __tablename__ = "saved_movies"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    movie_id = db.Column(db.Integer, db.ForeignKey("movies.id"), nullable=False)
    saved_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)

    user = db.relationship("User", back_populates="saved_links")
    movie = db.relationship("Movie", back_populates="saved_links")

    __table_args__ = (
        db.UniqueConstraint("user_id", "movie_id", name="uq_saved_movie_user_movie"),
    )

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"<SavedMovie user_id={self.user_id} movie_id={self.movie_id}>"


def init_db(app: Flask) -> None:
    """Bind the SQLAlchemy db to the app and create tables if needed.

    Args:
        app: The Flask application to bind to.
    """
    db.init_app(app)
    with app.app_context():
        db.create_all()
