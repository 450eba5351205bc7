"""
=============================================================================
GAMIFICATION.PY — Desafíos e Insignias
=============================================================================
Gestiona:
  - Inscribirse a un desafío (start_challenge)
  - Completar la tarea del día (complete_task) ← el corazón de la app
  - Otorgar insignias al terminar un desafío
  - Consultar inscripciones e insignias

Ciclo de vida de una inscripción (UserChallenge):

    start ──→ ACTIVE ──(current_day > duration_days)──→ COMPLETED
                │
                └──(abandon)──→ ABANDONED

Cada tarea completada por primera vez suma 1 a current_day.
Repetir la misma tarea no suma nada (se guarda en completed_tasks).
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from errors import ConflictError, NotFoundError
from models import (
    User, Challenge, ChallengeTask, ChallengeStatus, UserChallenge,
    Badge, UserBadge
)
import logging

logger = logging.getLogger("motivator.gamification")


# =============================================================================
# ===================== CONSULTAS =============================================
# =============================================================================

def get_challenge(db: Session, challenge_id: int) -> Challenge:
    challenge = db.query(Challenge).filter(Challenge.id == challenge_id).first()
    if not challenge:
        raise NotFoundError("Desafío no encontrado")
    return challenge


def _find_active(db: Session, user_id: int, challenge_id: int) -> Optional[UserChallenge]:
    """Inscripción activa del usuario en ESE desafío (o None)"""
    return (
        db.query(UserChallenge)
        .options(joinedload(UserChallenge.challenge))
        .filter(
            UserChallenge.user_id == user_id,
            UserChallenge.challenge_id == challenge_id,
            UserChallenge.status == ChallengeStatus.active.value
        )
        .first()
    )


def get_active_challenge(db: Session, user: User) -> Optional[UserChallenge]:
    """
    Devuelve LA inscripción activa del usuario (o None).

    Si hay varias activas (en desafíos distintos), gana la más reciente:
    start_date más nuevo y, si empatan, el id más alto.
    """
    return (
        db.query(UserChallenge)
        .options(joinedload(UserChallenge.challenge).selectinload(Challenge.daily_tasks))
        .filter(
            UserChallenge.user_id == user.id,
            UserChallenge.status == ChallengeStatus.active.value
        )
        .order_by(UserChallenge.start_date.desc(), UserChallenge.id.desc())
        .first()
    )


def list_user_challenges(db: Session, user: User) -> list[UserChallenge]:
    """Todas las inscripciones del usuario, de la más nueva a la más antigua"""
    return (
        db.query(UserChallenge)
        .options(joinedload(UserChallenge.challenge).selectinload(Challenge.daily_tasks))
        .filter(UserChallenge.user_id == user.id)
        .order_by(UserChallenge.start_date.desc(), UserChallenge.id.desc())
        .all()
    )


# =============================================================================
# ===================== INSCRIPCIÓN ===========================================
# =============================================================================

def start_challenge(db: Session, user: User, challenge_id: int) -> UserChallenge:
    """
    Inscribe al usuario en un desafío.

    Si ya tiene una inscripción ACTIVA en ese mismo desafío, la devuelve tal
    cual (no se crea otra). El índice único parcial de user_challenges
    garantiza lo mismo aunque lleguen dos peticiones a la vez.
    """
    challenge = get_challenge(db, challenge_id)

    existing = _find_active(db, user.id, challenge.id)
    if existing:
        logger.info(f"↩️ {user.username} ya estaba en '{challenge.title}' (inscripción {existing.id})")
        return existing

    now = datetime.utcnow()
    enrollment = UserChallenge(
        user_id=user.id,
        challenge_id=challenge.id,
        status=ChallengeStatus.active.value,
        current_day=1,
        completed_tasks=[],
        start_date=now,
        last_updated=now
    )
    db.add(enrollment)
    try:
        db.commit()
    except IntegrityError:
        # Otra petición la creó justo antes → devolver la suya
        db.rollback()
        existing = _find_active(db, user.id, challenge.id)
        if existing is None:
            raise
        logger.warning(f"⚠️ Inscripción duplicada de {user.username} en '{challenge.title}', se devuelve la existente")
        return existing

    db.refresh(enrollment)
    logger.info(f"🚀 {user.username} empezó '{challenge.title}'")
    return enrollment


def abandon_challenge(db: Session, user: User, challenge_id: int) -> UserChallenge:
    """Marca la inscripción activa como abandonada (current_day no cambia)"""
    enrollment = _find_active(db, user.id, challenge_id)
    if not enrollment:
        raise NotFoundError("Desafío activo no encontrado")

    enrollment.status = ChallengeStatus.abandoned.value
    enrollment.last_updated = datetime.utcnow()
    db.commit()
    db.refresh(enrollment)

    logger.info(f"🏳️ {user.username} abandonó '{enrollment.challenge.title}' en el día {enrollment.current_day}")
    return enrollment


# =============================================================================
# ===================== COMPLETAR TAREA =======================================
# =============================================================================

def complete_task(db: Session, user: User, challenge_id: int, task_id: int) -> dict:
    """
    Marca una tarea del desafío como hecha.

    Pasos:
      1. Buscar la inscripción activa (si no hay → 404)
      2. Comprobar que la tarea es de ese desafío (si no → 404)
      3. Si la tarea ya estaba hecha → no se suma nada
         Si es la tarea del día actual → se añade a completed_tasks y
         current_day += 1
         Si es de otro día → 404
      4. Si current_day > duration_days → COMPLETED + insignia
      5. Guardar con un UPDATE condicional (solo si current_day no cambió
         desde que lo leímos). Si otra petición se adelantó → 409

    Retorna:
      {
        "user_challenge": <UserChallenge>,
        "badge_earned": True,
        "badge": <Badge> o None
      }
    """
    enrollment = _find_active(db, user.id, challenge_id)
    if not enrollment:
        raise NotFoundError("Desafío activo no encontrado")

    challenge = enrollment.challenge

    task = db.query(ChallengeTask).filter(
        ChallengeTask.id == task_id,
        ChallengeTask.challenge_id == challenge.id
    ).first()
    if not task:
        raise NotFoundError("Tarea no encontrada en este desafío")

    now = datetime.utcnow()
    prior_day = enrollment.current_day
    completed_tasks = list(enrollment.completed_tasks or [])

    values = {"last_updated": now}
    badge = None

    if task.id not in completed_tasks:
        # Una tarea nueva solo cuenta si es la del día en curso
        if task.day != prior_day:
            raise NotFoundError(f"La tarea no corresponde al día {prior_day} del desafío")

        completed_tasks.append(task.id)
        values["completed_tasks"] = completed_tasks
        values["current_day"] = prior_day + 1

        if values["current_day"] > challenge.duration_days:
            values["status"] = ChallengeStatus.completed.value
            values["completed_at"] = now
            badge = award_challenge_badge(db, user, challenge)

    result = db.execute(
        update(UserChallenge)
        .where(
            UserChallenge.id == enrollment.id,
            UserChallenge.current_day == prior_day,
            UserChallenge.status == ChallengeStatus.active.value
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        db.rollback()
        logger.warning(f"⚠️ Inscripción {enrollment.id} modificada por otra petición (día {prior_day})")
        raise ConflictError("La inscripción cambió mientras se actualizaba, vuelve a intentarlo")

    db.commit()
    db.refresh(enrollment)

    if enrollment.status == ChallengeStatus.completed.value:
        logger.info(f"🏁 {user.username} completó '{challenge.title}'")

    return {
        "user_challenge": enrollment,
        "badge_earned": badge is not None,
        "badge": badge
    }


# =============================================================================
# ===================== INSIGNIAS =============================================
# =============================================================================

def find_badge_for_challenge(db: Session, challenge: Challenge) -> Optional[Badge]:
    """
    Insignia que corresponde a un desafío:
    misma categoría y requirements.days_completed == duration_days
    """
    candidates = (
        db.query(Badge)
        .filter(Badge.category == challenge.category)
        .order_by(Badge.id)
        .all()
    )
    for badge in candidates:
        if (badge.requirements or {}).get("days_completed") == challenge.duration_days:
            return badge
    return None


def award_challenge_badge(db: Session, user: User, challenge: Challenge) -> Optional[Badge]:
    """
    Otorga la insignia del desafío si el usuario aún no la tiene.
    Retorna la insignia recién ganada, o None (no existe / ya la tenía).

    No hace commit: se guarda junto con la inscripción.
    """
    badge = find_badge_for_challenge(db, challenge)
    if not badge:
        return None

    existing = db.query(UserBadge).filter(
        UserBadge.user_id == user.id,
        UserBadge.badge_id == badge.id
    ).first()
    if existing:
        return None

    db.add(UserBadge(user_id=user.id, badge_id=badge.id, earned_at=datetime.utcnow()))
    logger.info(f"🏅 {user.username} ganó la insignia: {badge.name}")
    return badge


def list_badges(db: Session, user: Optional[User]) -> list[dict]:
    """Todas las insignias del catálogo + earned_at del usuario (o None)"""
    badges = db.query(Badge).order_by(Badge.id).all()

    earned_map = {}
    if user is not None:
        user_badges = db.query(UserBadge).filter(UserBadge.user_id == user.id).all()
        earned_map = {ub.badge_id: ub.earned_at for ub in user_badges}

    return [
        {
            "id": b.id,
            "name": b.name,
            "description": b.description,
            "image_url": b.image_url,
            "category": b.category,
            "requirements": b.requirements or {},
            "earned_at": earned_map.get(b.id)
        }
        for b in badges
    ]
