"""
=============================================================================
MAIN.PY — La API de Daily Motivator
=============================================================================
Este archivo define TODOS los endpoints de la API REST.

Organización por secciones:
  1. AUTH             → Registro, login, usuario actual
  2. QUOTES           → Catálogo de citas
  3. FAVORITES        → Citas favoritas del usuario
  4. GOALS            → CRUD de objetivos
  5. CHALLENGES       → Catálogo, inscribirse, completar tareas, abandonar
  6. USER CHALLENGES  → Inscripción activa e historial
  7. BADGES           → Catálogo de insignias + las ganadas

La lógica de desafíos e insignias vive en gamification.py.
"""

import os
import random
import logging
import traceback
from datetime import datetime
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Depends, HTTPException, status, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from database import get_db, init_db, get_engine, SessionLocal
from errors import MotivatorError, NotFoundError
from models import User, Quote, UserFavorite, Goal, Challenge
from schemas import (
    UserSignup, UserSignin, UserResponse, TokenResponse,
    QuoteResponse, FavoriteCreate, FavoriteResponse, FavoriteQuoteResponse,
    GoalCreate, GoalUpdate, GoalResponse,
    ChallengeResponse, ChallengeStart, TaskComplete, TaskCompleteResponse,
    UserChallengeResponse, BadgeResponse
)
from auth import (
    hash_password, verify_password, create_access_token,
    get_current_user, get_optional_user
)
from gamification import (
    get_challenge, start_challenge, complete_task, abandon_challenge,
    get_active_challenge, list_user_challenges, list_badges
)
from seed import seed_all

# ─────────────────────────────────────────────────────────────────────────────
# LOGGING
# ─────────────────────────────────────────────────────────────────────────────

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s"
)
logger = logging.getLogger("motivator.api")

SEED_ON_STARTUP = os.getenv("SEED_ON_STARTUP", "true").lower() in ("1", "true", "yes")
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]


# ─────────────────────────────────────────────────────────────────────────────
# LIFESPAN (Arranque y apagado)
# ─────────────────────────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Arranque:
      1. Conectar a la BD y crear tablas
      2. Insertar catálogos (citas, desafíos, insignias) si están vacíos
    """
    logger.info("🚀 Arrancando Daily Motivator...")

    get_engine()
    init_db()
    logger.info("✅ Base de datos inicializada")

    if SEED_ON_STARTUP:
        db = SessionLocal()
        try:
            seed_all(db)
        finally:
            db.close()

    yield

    logger.info("👋 Apagado completo")


# ─────────────────────────────────────────────────────────────────────────────
# APLICACIÓN FASTAPI
# ─────────────────────────────────────────────────────────────────────────────

app = FastAPI(
    title="Daily Motivator API",
    description="Objetivos, citas favoritas y desafíos de N días con insignias",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS → permite que la SPA haga peticiones a esta API
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ─────────────────────────────────────────────────────────────────────────────
# ERROR HANDLERS
# ─────────────────────────────────────────────────────────────────────────────

@app.exception_handler(MotivatorError)
async def domain_exception_handler(request: Request, exc: MotivatorError):
    """NotFoundError → 404, ConflictError → 409 (mismo formato que HTTPException)"""
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Captura errores no manejados y devuelve detalles útiles"""
    error_msg = str(exc)
    error_trace = traceback.format_exc()
    logger.error(f"❌ Error no manejado en {request.url}: {error_msg}\n{error_trace}")
    return JSONResponse(
        status_code=500,
        content={
            "detail": error_msg,
            "type": type(exc).__name__,
            "path": str(request.url)
        }
    )


# =============================================================================
# ===================== HEALTH CHECK ==========================================
# =============================================================================

@app.get("/", tags=["Health"])
def health_check():
    """Verifica que la API está viva"""
    return {
        "status": "ok",
        "app": "Daily Motivator",
        "version": "1.0.0",
        "timestamp": datetime.utcnow().isoformat()
    }


# =============================================================================
# ===================== SECCIÓN 1: AUTH =======================================
# =============================================================================

@app.post("/auth/signup", response_model=TokenResponse, status_code=201, tags=["Auth"])
def signup(data: UserSignup, db: Session = Depends(get_db)):
    """Registra un usuario nuevo y devuelve su token"""
    existing = db.query(User).filter(
        (User.email == data.email) | (User.username == data.username)
    ).first()
    if existing:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Ya existe una cuenta con este email o nombre de usuario"
        )

    user = User(
        email=data.email,
        password_hash=hash_password(data.password),
        username=data.username,
        full_name=data.full_name
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    logger.info(f"👤 Nuevo usuario registrado: {user.username} ({user.email})")

    return {"access_token": create_access_token(user.id, user.email), "user": user}


@app.post("/auth/signin", response_model=TokenResponse, tags=["Auth"])
def signin(data: UserSignin, db: Session = Depends(get_db)):
    """Inicia sesión con email y contraseña"""
    user = db.query(User).filter(User.email == data.email).first()

    if not user or not verify_password(data.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Email o contraseña incorrectos"
        )

    return {"access_token": create_access_token(user.id, user.email), "user": user}


@app.get("/auth/me", response_model=UserResponse, tags=["Auth"])
def get_me(user: User = Depends(get_current_user)):
    return user


# =============================================================================
# ===================== SECCIÓN 2: QUOTES =====================================
# =============================================================================

@app.get("/quotes", response_model=list[QuoteResponse], tags=["Quotes"])
def list_quotes(category: Optional[str] = None, db: Session = Depends(get_db)):
    """Catálogo de citas (filtrable por categoría). No requiere autenticación"""
    query = db.query(Quote)
    if category:
        query = query.filter(Quote.category == category)
    return query.order_by(Quote.id).all()


@app.get("/quotes/random", response_model=Optional[QuoteResponse], tags=["Quotes"])
def random_quote(db: Session = Depends(get_db)):
    """Una cita aleatoria (null si el catálogo está vacío)"""
    quotes = db.query(Quote).all()
    if not quotes:
        return None
    return random.choice(quotes)


# =============================================================================
# ===================== SECCIÓN 3: FAVORITES ==================================
# =============================================================================

@app.get("/favorites", response_model=list[FavoriteQuoteResponse], tags=["Favorites"])
def list_favorites(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Citas favoritas del usuario, la última añadida primero"""
    favorites = (
        db.query(UserFavorite)
        .options(joinedload(UserFavorite.quote))
        .filter(UserFavorite.user_id == user.id)
        .order_by(UserFavorite.added_at.desc(), UserFavorite.id.desc())
        .all()
    )
    return [
        {
            "id": fav.quote.id,
            "text": fav.quote.text,
            "author": fav.quote.author,
            "category": fav.quote.category,
            "added_at": fav.added_at
        }
        for fav in favorites
    ]


def _find_favorite(db: Session, user: User, quote_id: int) -> Optional[UserFavorite]:
    return db.query(UserFavorite).filter(
        UserFavorite.user_id == user.id,
        UserFavorite.quote_id == quote_id
    ).first()


@app.post("/favorites", response_model=FavoriteResponse, tags=["Favorites"])
def add_favorite(data: FavoriteCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """
    Añade una cita a favoritos.
    Si ya estaba → devuelve el favorito existente (no es un error).
    """
    quote = db.query(Quote).filter(Quote.id == data.quote_id).first()
    if not quote:
        raise NotFoundError("Cita no encontrada")

    existing = _find_favorite(db, user, quote.id)
    if existing:
        return existing

    favorite = UserFavorite(user_id=user.id, quote_id=quote.id, added_at=datetime.utcnow())
    db.add(favorite)
    try:
        db.commit()
    except IntegrityError:
        # Otra petición la añadió a la vez
        db.rollback()
        existing = _find_favorite(db, user, quote.id)
        if existing is None:
            raise
        logger.warning(f"⚠️ Favorito duplicado de {user.username} (cita {quote.id})")
        return existing

    db.refresh(favorite)
    return favorite


@app.delete("/favorites/{quote_id}", tags=["Favorites"])
def remove_favorite(quote_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Quita una cita de favoritos (404 si no estaba)"""
    favorite = _find_favorite(db, user, quote_id)
    if not favorite:
        raise NotFoundError("Favorito no encontrado")

    db.delete(favorite)
    db.commit()
    return {"message": "Favorito eliminado"}


# =============================================================================
# ===================== SECCIÓN 4: GOALS ======================================
# =============================================================================
# Todas las consultas filtran por id Y por user_id: el objetivo de otro
# usuario simplemente "no existe" (404).

@app.post("/goals", response_model=GoalResponse, tags=["Goals"])
def create_goal(data: GoalCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    goal = Goal(
        user_id=user.id,
        title=data.title,
        description=data.description or "",
        created_at=datetime.utcnow()
    )
    db.add(goal)
    db.commit()
    db.refresh(goal)
    return goal


@app.get("/goals", response_model=list[GoalResponse], tags=["Goals"])
def list_goals(
    completed: Optional[bool] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Lista objetivos, el más nuevo primero"""
    query = db.query(Goal).filter(Goal.user_id == user.id)
    if completed is not None:
        query = query.filter(Goal.completed == completed)
    return query.order_by(Goal.created_at.desc(), Goal.id.desc()).all()


@app.put("/goals/{goal_id}", response_model=GoalResponse, tags=["Goals"])
@app.patch("/goals/{goal_id}", response_model=GoalResponse, tags=["Goals"])
def update_goal(
    goal_id: int, data: GoalUpdate,
    user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    """Actualiza un objetivo (solo los campos enviados)"""
    goal = db.query(Goal).filter(Goal.id == goal_id, Goal.user_id == user.id).first()
    if not goal:
        raise NotFoundError("Objetivo no encontrado")

    update_data = data.model_dump(exclude_unset=True)

    if "completed" in update_data:
        if update_data["completed"] and not goal.completed:
            update_data["completed_at"] = datetime.utcnow()
        elif not update_data["completed"]:
            update_data["completed_at"] = None

    for key, value in update_data.items():
        setattr(goal, key, value)

    db.commit()
    db.refresh(goal)
    return goal


@app.delete("/goals/{goal_id}", tags=["Goals"])
def delete_goal(goal_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    goal = db.query(Goal).filter(Goal.id == goal_id, Goal.user_id == user.id).first()
    if not goal:
        raise NotFoundError("Objetivo no encontrado")

    db.delete(goal)
    db.commit()
    return {"message": f"Objetivo '{goal.title}' eliminado"}


# =============================================================================
# ===================== SECCIÓN 5: CHALLENGES =================================
# =============================================================================

@app.get("/challenges", response_model=list[ChallengeResponse], tags=["Challenges"])
def list_challenges(
    category: Optional[str] = None,
    duration: Optional[int] = None,
    db: Session = Depends(get_db)
):
    """Catálogo de desafíos (filtrable por categoría y duración)"""
    query = db.query(Challenge).options(joinedload(Challenge.daily_tasks))
    if category:
        query = query.filter(Challenge.category == category)
    if duration is not None:
        query = query.filter(Challenge.duration_days == duration)
    return query.order_by(Challenge.id).all()


@app.get("/challenges/{challenge_id}", response_model=ChallengeResponse, tags=["Challenges"])
def get_challenge_detail(challenge_id: int, db: Session = Depends(get_db)):
    return get_challenge(db, challenge_id)


@app.post("/challenges/start", response_model=UserChallengeResponse, tags=["Challenges"])
def start(data: ChallengeStart, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Inscribirse en un desafío (si ya estaba activo, devuelve esa inscripción)"""
    return start_challenge(db, user, data.challenge_id)


@app.post("/challenges/complete-task", response_model=TaskCompleteResponse, tags=["Challenges"])
def complete(data: TaskComplete, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """
    Completa una tarea del desafío activo.

    Respuesta:
      {"userChallenge": {...}, "badgeEarned": true, "badge": {...}}
    """
    result = complete_task(db, user, data.challenge_id, data.task_id)
    return {
        "userChallenge": result["user_challenge"],
        "badgeEarned": result["badge_earned"],
        "badge": result["badge"]
    }


@app.post("/challenges/abandon", response_model=UserChallengeResponse, tags=["Challenges"])
def abandon(data: ChallengeStart, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return abandon_challenge(db, user, data.challenge_id)


# =============================================================================
# ===================== SECCIÓN 6: USER CHALLENGES ============================
# =============================================================================

@app.get("/user-challenges/active", response_model=Optional[UserChallengeResponse], tags=["User Challenges"])
def active_challenge(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """La inscripción activa del usuario, o null"""
    return get_active_challenge(db, user)


@app.get("/user-challenges", response_model=list[UserChallengeResponse], tags=["User Challenges"])
def user_challenges(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return list_user_challenges(db, user)


# =============================================================================
# ===================== SECCIÓN 7: BADGES =====================================
# =============================================================================

@app.get("/badges", response_model=list[BadgeResponse], tags=["Badges"])
def badges(user: Optional[User] = Depends(get_optional_user), db: Session = Depends(get_db)):
    """
    Todas las insignias. Con token, cada una lleva earned_at si el usuario
    la tiene (si no, null). Sin token, earned_at es siempre null.
    """
    return list_badges(db, user)
