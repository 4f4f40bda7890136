from sqlalchemy import (
    Column,
    String,
    DateTime,
    ForeignKey,
    Integer,
    Boolean,
    Index,
    UniqueConstraint,
)
from sqlalchemy.sql import expression

from .db import Base

# Stored values keep the vocabulary used by the tournament front-end.
ROLE_ADMIN = "admin"
ROLE_PLAYER = "player"

TOURNAMENT_TYPE_BRACKET = "Evento por Llaves"
TOURNAMENT_TYPE_LADDER = "Evento tipo Escalera"

MATCH_STATUS_PENDING = "Pendiente"
MATCH_STATUS_IN_PROGRESS = "En Progreso"
MATCH_STATUS_COMPLETED = "Completado"

CHALLENGE_STATUS_PENDING = "Pendiente"
CHALLENGE_STATUS_ACCEPTED = "Aceptado"
CHALLENGE_STATUS_PLAYED = "Jugado"

INSCRIPTION_STATUS_CONFIRMED = "Confirmado"
INSCRIPTION_STATUS_WAITLISTED = "En Espera"

RETIREMENT_SUFFIX = " (Ret.)"


class Player(Base):
    __tablename__ = "player"
    id = Column(String, primary_key=True)
    display_name = Column(String, nullable=False)
    role = Column(String, nullable=False, default=ROLE_PLAYER)
    global_wins = Column(Integer, nullable=False, default=0)
    global_losses = Column(Integer, nullable=False, default=0)
    rank_points = Column(Integer, nullable=False, default=1000)


class Tournament(Base):
    __tablename__ = "tournament"
    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    creator_id = Column(String, ForeignKey("player.id"), nullable=True)
    tournament_type = Column(String, nullable=False, default=TOURNAMENT_TYPE_BRACKET)
    is_ranked = Column(Boolean, nullable=False, default=False)
    score_format = Column(String, nullable=True)

    @property
    def is_ladder(self) -> bool:
        return self.tournament_type == TOURNAMENT_TYPE_LADDER


class Challenge(Base):
    __tablename__ = "challenge"
    id = Column(String, primary_key=True)
    tournament_id = Column(String, ForeignKey("tournament.id"), nullable=False)
    event_id = Column(String, nullable=False)
    challenger_id = Column(String, ForeignKey("player.id"), nullable=False)
    challenged_id = Column(String, ForeignKey("player.id"), nullable=False)
    status = Column(String, nullable=False, default=CHALLENGE_STATUS_PENDING)


class Match(Base):
    __tablename__ = "match"
    id = Column(String, primary_key=True)
    tournament_id = Column(String, ForeignKey("tournament.id"), nullable=False)
    player1_id = Column(String, ForeignKey("player.id"), nullable=False)
    player2_id = Column(String, ForeignKey("player.id"), nullable=False)
    challenge_id = Column(String, ForeignKey("challenge.id"), nullable=True)
    status = Column(String, nullable=False, default=MATCH_STATUS_PENDING)
    winner_id = Column(String, ForeignKey("player.id"), nullable=True)
    score = Column(String, nullable=True)
    is_retirement = Column(Boolean, nullable=False, default=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    rankings_processed = Column(
        Boolean,
        nullable=False,
        default=False,
        server_default=expression.false(),
    )

    __table_args__ = (
        Index("ix_match_tournament_status", "tournament_id", "status"),
    )


class Inscription(Base):
    __tablename__ = "inscription"
    id = Column(String, primary_key=True)
    tournament_id = Column(String, ForeignKey("tournament.id"), nullable=False)
    event_id = Column(String, nullable=False)
    player_id = Column(String, ForeignKey("player.id"), nullable=False)
    status = Column(String, nullable=False, default=INSCRIPTION_STATUS_CONFIRMED)
    initial_position = Column(Integer, nullable=True)
    current_position = Column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "tournament_id",
            "event_id",
            "player_id",
            name="uq_inscription_tournament_event_player",
        ),
    )
