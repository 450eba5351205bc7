"""
=============================================================================
SCHEMAS.PY — Esquemas de Validación (Pydantic)
=============================================================================
  - Models (SQLAlchemy) → definen las TABLAS de la BD
  - Schemas (Pydantic) → definen qué DATOS acepta/devuelve la API

Convención de nombres:
  XxxCreate → para crear algo nuevo (POST)
  XxxUpdate → para actualizar algo (PUT/PATCH)
  XxxResponse → lo que devuelve la API (GET)

El frontend envía camelCase ({"challengeId": 3}). Los esquemas de entrada
aceptan las dos formas gracias a alias + populate_by_name.
"""

from pydantic import BaseModel, Field, EmailStr, field_validator
from datetime import datetime
from typing import Optional


# =============================================================================
# ===================== AUTH ==================================================
# =============================================================================

class UserSignup(BaseModel):
    """Datos para registrar un usuario nuevo"""
    email: EmailStr
    password: str = Field(min_length=6, description="Mínimo 6 caracteres")
    username: str = Field(min_length=1, max_length=100)
    full_name: Optional[str] = Field(default=None, max_length=200)

class UserSignin(BaseModel):
    email: EmailStr
    password: str

class UserResponse(BaseModel):
    id: int
    email: str
    username: str
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    created_at: datetime
    model_config = {"from_attributes": True}

class TokenResponse(BaseModel):
    """Respuesta con el token JWT"""
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


# =============================================================================
# ===================== QUOTES & FAVORITES ====================================
# =============================================================================

class QuoteResponse(BaseModel):
    id: int
    text: str
    author: str
    category: str
    model_config = {"from_attributes": True}

class FavoriteCreate(BaseModel):
    quote_id: int = Field(alias="quoteId")
    model_config = {"populate_by_name": True}

class FavoriteResponse(BaseModel):
    """El registro de favorito en sí"""
    id: int
    quote_id: int
    added_at: datetime
    model_config = {"from_attributes": True}

class FavoriteQuoteResponse(BaseModel):
    """Una cita favorita con sus datos del catálogo (id = id de la cita)"""
    id: int
    text: str
    author: str
    category: str
    added_at: datetime


# =============================================================================
# ===================== GOALS =================================================
# =============================================================================

class GoalCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = ""

class GoalUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    completed: Optional[bool] = None

    @field_validator("title", "completed")
    @classmethod
    def not_null(cls, value):
        # Se pueden omitir, pero no enviar como null (columnas NOT NULL)
        if value is None:
            raise ValueError("no puede ser null")
        return value

class GoalResponse(BaseModel):
    id: int
    title: str
    description: Optional[str]
    completed: bool
    completed_at: Optional[datetime]
    created_at: datetime
    model_config = {"from_attributes": True}


# =============================================================================
# ===================== CHALLENGES ============================================
# =============================================================================

class ChallengeTaskResponse(BaseModel):
    id: int
    day: int
    task: str
    model_config = {"from_attributes": True}

class ChallengeResponse(BaseModel):
    id: int
    title: str
    description: str
    duration_days: int
    category: str
    difficulty: str
    daily_tasks: list[ChallengeTaskResponse] = []
    model_config = {"from_attributes": True}

class ChallengeStart(BaseModel):
    challenge_id: int = Field(alias="challengeId")
    model_config = {"populate_by_name": True}

class TaskComplete(BaseModel):
    challenge_id: int = Field(alias="challengeId")
    task_id: int = Field(alias="taskId")
    model_config = {"populate_by_name": True}

class UserChallengeResponse(BaseModel):
    id: int
    user_id: int
    challenge_id: int
    status: str
    current_day: int
    completed_tasks: list[int] = []
    start_date: datetime
    last_updated: datetime
    completed_at: Optional[datetime]
    challenge: ChallengeResponse
    model_config = {"from_attributes": True}


# =============================================================================
# ===================== BADGES ================================================
# =============================================================================

class BadgeResponse(BaseModel):
    id: int
    name: str
    description: str
    image_url: str
    category: str
    requirements: dict = {}
    earned_at: Optional[datetime] = None
    model_config = {"from_attributes": True}

class TaskCompleteResponse(BaseModel):
    """Resultado de completar una tarea (claves en camelCase para el frontend)"""
    user_challenge: UserChallengeResponse = Field(alias="userChallenge")
    badge_earned: bool = Field(alias="badgeEarned")
    badge: Optional[BadgeResponse] = None
    model_config = {"populate_by_name": True}
