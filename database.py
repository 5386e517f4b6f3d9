#!/usr/bin/env python3
"""
Database models and configuration for PlayLog.
Holds users, the shared game catalog rows and the per-user logged entries.
"""

import os
import logging
from datetime import datetime

from sqlalchemy import (create_engine, Column, Integer, String, DateTime,
                        ForeignKey, UniqueConstraint)
from sqlalchemy.orm import sessionmaker, relationship, declarative_base

logger = logging.getLogger('playlog.database')

# Database URL - PostgreSQL in production, a local SQLite file otherwise
DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///playlog.db')

engine = create_engine(DATABASE_URL, echo=False)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


class User(Base):
    """Account keyed by the e-mail the identity provider vouches for."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=True)  # provider-supplied
    display_name = Column(String(50), nullable=True)  # user-chosen
    avatar = Column(String(1000), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    user_games = relationship("UserGame", back_populates="user")


class Game(Base):
    """Catalog game, shared by every user who logs it."""
    __tablename__ = "games"

    id = Column(Integer, primary_key=True)
    external_id = Column(Integer, unique=True, index=True, nullable=False)  # MobyGames game_id
    title = Column(String(500), nullable=False)
    platform = Column(String(255), nullable=False, default='Unknown Platform')
    release_date = Column(String(50), nullable=True)  # free-form, e.g. "1995" or "1995-03-11"
    image_url = Column(String(1000), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    user_games = relationship("UserGame", back_populates="game")


class UserGame(Base):
    """A game logged by a user."""
    __tablename__ = "user_games"
    __table_args__ = (
        UniqueConstraint('user_id', 'game_id', name='uq_user_games_user_game'),
    )

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    game_id = Column(Integer, ForeignKey("games.id"), nullable=False)
    added_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    played_at = Column(DateTime, nullable=True)
    rating = Column(Integer, nullable=True)  # 1-5, NULL = unrated

    # Relationships
    user = relationship("User", back_populates="user_games")
    game = relationship("Game", back_populates="user_games")


def init_db(bind=None):
    """Initialize database tables."""
    try:
        Base.metadata.create_all(bind=bind or engine)
        logger.info("Database tables initialized successfully")
        return True
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        return False


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------
#
# The helpers below let SQLAlchemy errors propagate after rolling back, so
# the service layer can tell a uniqueness clash (IntegrityError) apart from
# any other store failure.

def get_user_by_email(db, email: str):
    """Get user from database."""
    return db.query(User).filter(User.email == email).first()


def create_user(db, email: str, name: str = None, avatar: str = None):
    """Insert a new user row and commit."""
    user = User(email=email, name=name or None, avatar=avatar or None)
    db.add(user)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(user)
    logger.info(f"Created user {email}")
    return user


def update_display_name(db, user, display_name: str):
    """Overwrite the user's display name."""
    user.display_name = display_name
    user.updated_at = datetime.utcnow()
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    return user


def get_user_count(db) -> int:
    """Return the number of users."""
    return db.query(User).count()


# ---------------------------------------------------------------------------
# Games
# ---------------------------------------------------------------------------

def get_game_by_external_id(db, external_id: int):
    """Get the catalog row for a MobyGames id."""
    return db.query(Game).filter(Game.external_id == external_id).first()


def create_game(db, external_id: int, title: str, platform: str,
                release_date: str = None, image_url: str = None):
    """Insert a new catalog row and commit."""
    game = Game(
        external_id=external_id,
        title=title,
        platform=platform,
        release_date=release_date or None,
        image_url=image_url or None,
    )
    db.add(game)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(game)
    logger.info(f"Created game {external_id} ({title})")
    return game


# ---------------------------------------------------------------------------
# Logged entries
# ---------------------------------------------------------------------------

def get_user_game(db, user_id: int, game_id: int):
    """Get the logged entry for (user, game), if any."""
    return db.query(UserGame).filter(
        UserGame.user_id == user_id,
        UserGame.game_id == game_id
    ).first()


def create_user_game(db, user_id: int, game_id: int,
                     played_at: datetime = None, rating: int = None):
    """Insert a logged entry and commit.

    Raises:
        sqlalchemy.exc.IntegrityError: when the (user, game) pair already
            exists, e.g. because a concurrent request won the race.
    """
    entry = UserGame(
        user_id=user_id,
        game_id=game_id,
        added_at=datetime.utcnow(),
        played_at=played_at,
        rating=rating
    )
    db.add(entry)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(entry)
    return entry


def get_user_games(db, user_id: int):
    """Return a user's logged entries, most recently added first."""
    return db.query(UserGame).filter(
        UserGame.user_id == user_id
    ).order_by(UserGame.added_at.desc(), UserGame.id.desc()).all()


def get_all_user_games(db, limit: int = None):
    """Return every user's logged entries, most recently added first."""
    query = db.query(UserGame).order_by(UserGame.added_at.desc(), UserGame.id.desc())
    if limit:
        query = query.limit(limit)
    return query.all()
