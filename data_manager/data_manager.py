"""DataManager
--------------
Provides a thin abstraction around SQLAlchemy ORM for the credential store and
the saved-movie ledger. Centralizing DB access here keeps route functions
simple.

The ledger keeps one catalog Movie per IMDb id no matter how many users saved
it. A save either creates the Movie together with the first link or appends a
link to the existing Movie; a remove deletes the link and then the Movie if no
links remain. A save commits the Movie and its link in one transaction; a
remove commits the link delete first and then re-checks the Movie against the
committed links.
"""
from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy.exc import IntegrityError

from errors.errors import AlreadySaved, Conflict, NotFound, NotSaved, ValidationError
from models.models import Movie, SavedMovie, User

logger = logging.getLogger(__name__)

POSTER_MISSING = ("", "N/A")


def normalize_poster(poster: Optional[str]) -> Optional[str]:
    """Map OMDb's "N/A" poster sentinel (and blanks) to None."""
    if poster is None:
        return None
    poster = str(poster).strip()
    return None if poster in POSTER_MISSING else poster


class DataManager:
    """High-level CRUD convenience methods for Users and saved Movies."""

    def __init__(self, database):
        """Create a new DataManager.

        Args:
            database: The SQLAlchemy `db` object.
        """
        self.db = database

    # ------------------------- Users -------------------------
    def create_user(self, email: str, password_hash: str) -> User:
        """Create and persist a new user.

        Args:
            email: Normalized (lower-cased) email address.
            password_hash: Salted hash of the user's password.

        Returns:
            User: The persisted User instance.

        Raises:
            Conflict: If a user with that email already exists.
        """
        user = User(email=email, password_hash=password_hash)
        self.db.session.add(user)
        try:
            self.db.session.commit()
        except IntegrityError:
            self.db.session.rollback()
            raise Conflict("User with this email already exists")

        return user

    def get_user(self, user_id: int) -> Optional[User]:
        """Return a single user by primary key."""
        return self.db.session.get(User, user_id)

    def get_user_by_email(self, email: str) -> Optional[User]:
        return User.query.filter_by(email=email).first()

    def _require_user(self, user_id: int) -> User:
        user = self.get_user(user_id)
        if user is None:
            raise NotFound("User not found")
        return user

    # ------------------------- Movies ------------------------
    def find_movie(self, imdb_id: str) -> Optional[Movie]:
        """Return the catalog movie for an IMDb id, if any user has saved it."""
        return Movie.query.filter_by(imdb_id=imdb_id).first()

    def get_movies(self, user_id: int) -> List[Movie]:
        """Return the user's saved movies in the order they were saved.

        Raises:
            NotFound: If the user does not exist.
        """
        self._require_user(user_id)
        return (
            Movie.query.join(SavedMovie, SavedMovie.movie_id == Movie.id)
            .filter(SavedMovie.user_id == user_id)
            .order_by(SavedMovie.id.asc())
            .all()
        )

    def save_movie(
        self,
        user_id: int,
        *,
        title: str,
        year: str,
        imdb_id: str,
        poster_url: Optional[str] = None,
    ) -> Movie:
        """Add a movie to a user's saved list.

        Args:
            user_id: The saving user's ID.
            title: Movie title (required).
            year: Release year as reported by OMDb (required).
            imdb_id: IMDb identifier, the catalog key (required).
            poster_url: Poster image URL (optional, "N/A" means none).

        Returns:
            Movie: The catalog movie now linked to the user.

        Raises:
            ValidationError: If title, year or imdb_id is missing.
            NotFound: If the user does not exist.
            AlreadySaved: If the user already saved this movie.
            Conflict: If the catalog write keeps colliding after one retry.
        """
        title = str(title or "").strip()
        year = str(year or "").strip()
        imdb_id = str(imdb_id or "").strip()
        if not title or not year or not imdb_id:
            raise ValidationError("Title, year, and imdbID are required")
        poster_url = normalize_poster(poster_url)

        user = self._require_user(user_id)
        try:
            movie = self._link(user, title, year, imdb_id, poster_url)
        except IntegrityError:
            # Another request created the movie (or this link) between our
            # lookup and commit. The second attempt sees its row.
            self.db.session.rollback()
            logger.info("Concurrent save of %s detected; retrying as append", imdb_id)
            try:
                movie = self._link(user, title, year, imdb_id, poster_url)
            except IntegrityError:
                self.db.session.rollback()
                logger.warning("Save of %s for user %s failed after retry", imdb_id, user_id)
                raise Conflict("Movie was modified concurrently, please retry")

        logger.info("User %s saved %s", user_id, imdb_id)
        return movie

    def _link(
        self,
        user: User,
        title: str,
        year: str,
        imdb_id: str,
        poster_url: Optional[str],
    ) -> Movie:
        movie = self.find_movie(imdb_id)
        if movie is None:
            movie = Movie(imdb_id=imdb_id, title=title, year=year, poster_url=poster_url)
            self.db.session.add(movie)
        elif user.id in movie.saved_by:
            raise AlreadySaved()

        self.db.session.add(SavedMovie(user=user, movie=movie))
        self.db.session.commit()
        return movie

    def remove_movie(self, user_id: int, imdb_id: str) -> None:
        """Remove a movie from a user's saved list.

        The catalog movie is deleted once nobody has it saved any more.

        Raises:
            NotFound: If no catalog movie has this IMDb id.
            NotSaved: If the user has not saved this movie.
        """
        movie = self.find_movie((imdb_id or "").strip())
        if movie is None:
            raise NotFound("Movie not found")

        link = next((s for s in movie.saved_links if s.user_id == user_id), None)
        if link is None:
            raise NotSaved()

        movie_id = movie.id
        self.db.session.delete(link)
        self.db.session.commit()
        logger.info("User %s removed %s", user_id, imdb_id)
        self.delete_if_orphaned(movie_id)

    def delete_if_orphaned(self, movie_id: int) -> bool:
        """Delete the catalog movie if no saved-movie links point at it.

        Runs after the link delete is committed, so it also sees links that
        concurrent removals deleted after this request loaded the movie.

        Returns:
            bool: True if the movie was deleted.
        """
        orphan = Movie.query.filter(Movie.id == movie_id, ~Movie.saved_links.any()).first()
        if orphan is None:
            return False
        imdb_id = orphan.imdb_id
        self.db.session.delete(orphan)
        try:
            self.db.session.commit()
        except IntegrityError:
            # A concurrent save linked the movie again; it stays.
            self.db.session.rollback()
            return False
        logger.info("Movie %s has no savers left; deleted", imdb_id)
        return True
