"""
=============================================================================
MODELS.PY — Todos los Modelos (Tablas) de la Base de Datos
=============================================================================
Cada clase aquí = una tabla en la base de datos.
Cada atributo de la clase = una columna en esa tabla.

Hay dos tipos de tablas:
  CATÁLOGO (se insertan al arrancar, no se modifican después):
    quotes, challenges ──→ challenge_tasks, badges
  DEL USUARIO (se crean con cada acción):
    user_favorites, goals, user_challenges, user_badges

Las tablas del usuario NO van "dentro" del usuario: cada una guarda user_id
y se consulta por separado. Así un usuario puede tener muchas inscripciones
(activas o ya terminadas) al mismo tiempo.

  USER
  ├── goals[]
  ├── favorites[] ──→ quote
  ├── user_challenges[] ──→ challenge ──→ daily_tasks[]
  └── user_badges[] ──→ badge
"""

from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, Boolean, Text, DateTime, ForeignKey, JSON,
    UniqueConstraint, Index, text
)
from sqlalchemy.orm import relationship
from database import Base
import enum


# =============================================================================
# ===================== ENUMS (Tipos predefinidos) ============================
# =============================================================================

class ChallengeStatus(str, enum.Enum):
    """Estado de una inscripción a un desafío"""
    active = "active"          # En curso
    completed = "completed"    # Terminado (current_day > duration_days)
    abandoned = "abandoned"    # El usuario lo dejó


class ChallengeDifficulty(str, enum.Enum):
    beginner = "Beginner"
    intermediate = "Intermediate"
    advanced = "Advanced"


# =============================================================================
# ===================== TABLA 1: USERS ========================================
# =============================================================================

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)

    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    username = Column(String(100), unique=True, nullable=False)
    full_name = Column(String(200), nullable=True)
    avatar_url = Column(String(500), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    # cascade="all, delete-orphan" → si borras el usuario, se borran sus datos
    goals = relationship("Goal", back_populates="user", cascade="all, delete-orphan")
    favorites = relationship("UserFavorite", back_populates="user", cascade="all, delete-orphan")
    user_challenges = relationship("UserChallenge", back_populates="user", cascade="all, delete-orphan")
    user_badges = relationship("UserBadge", back_populates="user", cascade="all, delete-orphan")


# =============================================================================
# ===================== TABLA 2: QUOTES =======================================
# =============================================================================
# Citas motivacionales (catálogo)

class Quote(Base):
    __tablename__ = "quotes"

    id = Column(Integer, primary_key=True, autoincrement=True)

    text = Column(Text, nullable=False)
    author = Column(String(100), nullable=False)
    category = Column(String(50), nullable=False)
    # category → "success", "personal-growth", "health", "relationships"...

    created_at = Column(DateTime, default=datetime.utcnow)


# =============================================================================
# ===================== TABLA 3: USER_FAVORITES ===============================
# =============================================================================
# Relación muchos-a-muchos usuario ↔ cita

class UserFavorite(Base):
    __tablename__ = "user_favorites"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    quote_id = Column(Integer, ForeignKey("quotes.id"), nullable=False)

    added_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint('user_id', 'quote_id', name='uq_user_favorite'),
    )

    user = relationship("User", back_populates="favorites")
    quote = relationship("Quote")


# =============================================================================
# ===================== TABLA 4: GOALS ========================================
# =============================================================================

class Goal(Base):
    __tablename__ = "goals"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    title = Column(String(200), nullable=False)
    description = Column(Text, default="")

    completed = Column(Boolean, default=False)
    completed_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="goals")


# =============================================================================
# ===================== TABLA 5: CHALLENGES ===================================
# =============================================================================
# Desafíos de N días (catálogo). Ej: "30-Day Fitness Challenge"

class Challenge(Base):
    __tablename__ = "challenges"

    id = Column(Integer, primary_key=True, autoincrement=True)

    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    duration_days = Column(Integer, nullable=False)
    category = Column(String(100), nullable=False)
    # category → "Fitness", "Mindfulness", "Coding Skills"...
    difficulty = Column(String(20), default=ChallengeDifficulty.beginner.value)

    created_at = Column(DateTime, default=datetime.utcnow)

    daily_tasks = relationship(
        "ChallengeTask", back_populates="challenge",
        cascade="all, delete-orphan", order_by="ChallengeTask.day"
    )


# =============================================================================
# ===================== TABLA 6: CHALLENGE_TASKS ==============================
# =============================================================================
# Una tarea por día del desafío (día 1..N)

class ChallengeTask(Base):
    __tablename__ = "challenge_tasks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    challenge_id = Column(Integer, ForeignKey("challenges.id"), nullable=False)

    day = Column(Integer, nullable=False)
    task = Column(Text, nullable=False)

    __table_args__ = (
        UniqueConstraint('challenge_id', 'day', name='uq_challenge_task_day'),
    )

    challenge = relationship("Challenge", back_populates="daily_tasks")


# =============================================================================
# ===================== TABLA 7: USER_CHALLENGES ==============================
# =============================================================================
# Inscripción de un usuario a un desafío (un "intento")

class UserChallenge(Base):
    __tablename__ = "user_challenges"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    challenge_id = Column(Integer, ForeignKey("challenges.id"), nullable=False)

    status = Column(String(20), nullable=False, default=ChallengeStatus.active.value)
    current_day = Column(Integer, nullable=False, default=1)
    # current_day → empieza en 1 y solo sube mientras está activo

    completed_tasks = Column(JSON, nullable=False, default=list)
    # completed_tasks → ids de ChallengeTask ya completados, ej: [12, 13, 14]
    # Es la fuente de verdad para no contar dos veces la misma tarea

    start_date = Column(DateTime, default=datetime.utcnow)
    last_updated = Column(DateTime, default=datetime.utcnow)
    completed_at = Column(DateTime, nullable=True)

    __table_args__ = (
        # Como mucho UNA inscripción activa por (usuario, desafío).
        # Índice parcial: las completadas/abandonadas no cuentan.
        Index(
            'uq_user_challenge_active', 'user_id', 'challenge_id',
            unique=True,
            sqlite_where=text("status = 'active'"),
            postgresql_where=text("status = 'active'"),
        ),
    )

    user = relationship("User", back_populates="user_challenges")
    challenge = relationship("Challenge")


# =============================================================================
# ===================== TABLA 8: BADGES =======================================
# =============================================================================
# Insignias disponibles (catálogo)

class Badge(Base):
    __tablename__ = "badges"

    id = Column(Integer, primary_key=True, autoincrement=True)

    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    image_url = Column(String(500), nullable=False)
    category = Column(String(100), nullable=False)

    requirements = Column(JSON, nullable=False, default=dict)
    # requirements → {"days_completed": 30}

    created_at = Column(DateTime, default=datetime.utcnow)


# =============================================================================
# ===================== TABLA 9: USER_BADGES ==================================
# =============================================================================
# Insignias ganadas por cada usuario

class UserBadge(Base):
    __tablename__ = "user_badges"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    badge_id = Column(Integer, ForeignKey("badges.id"), nullable=False)

    earned_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint('user_id', 'badge_id', name='uq_user_badge'),
    )

    user = relationship("User", back_populates="user_badges")
    badge = relationship("Badge")
