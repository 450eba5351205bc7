"""
=============================================================================
SEED.PY — Datos Iniciales del Catálogo
=============================================================================
Inserta los datos que NO crea el usuario:
  - Citas motivacionales
  - Desafíos (7 temas × 30/60/100 días) con una tarea por día
  - Una insignia por desafío

Se ejecuta al arrancar la aplicación y solo inserta si las tablas están vacías.
"""

import logging
from sqlalchemy.orm import Session

from models import Quote, Challenge, ChallengeTask, ChallengeDifficulty, Badge

logger = logging.getLogger("motivator.seed")


CHALLENGE_TOPICS = [
    "Health & Wellness",
    "Fitness",
    "Mindfulness",
    "Coding Skills",
    "Productivity",
    "Relationships",
    "Mental Health",
]

# duración → dificultad
CHALLENGE_DURATIONS = {
    30: ChallengeDifficulty.beginner,
    60: ChallengeDifficulty.intermediate,
    100: ChallengeDifficulty.advanced,
}

DEFAULT_QUOTES = [
    ("The only way to do great work is to love what you do.", "Steve Jobs", "success"),
    ("Believe you can and you're halfway there.", "Theodore Roosevelt", "personal-growth"),
    ("Health is the greatest gift.", "Buddha", "health"),
    ("Happiness depends upon ourselves.", "Aristotle", "relationships"),
    ("Your time is limited, don't waste it living someone else's life.", "Steve Jobs", "success"),
    ("The journey of a thousand miles begins with one step.", "Lao Tzu", "personal-growth"),
    ("We are what we repeatedly do. Excellence, then, is not an act, but a habit.", "Will Durant", "personal-growth"),
    ("Success is the sum of small efforts, repeated day in and day out.", "Robert Collier", "success"),
]


def badge_image_url(topic: str, duration: int) -> str:
    return f"https://ui-avatars.com/api/?name={topic.replace(' ', '+')}+{duration}&background=random&size=200"


def seed_quotes(db: Session):
    """Inserta las citas en la BD si está vacía"""
    if db.query(Quote).count() > 0:
        return
    for text, author, category in DEFAULT_QUOTES:
        db.add(Quote(text=text, author=author, category=category))
    db.commit()
    logger.info(f"✅ {len(DEFAULT_QUOTES)} citas motivacionales insertadas")


def seed_challenges(db: Session):
    """
    Inserta desafíos + insignias si no hay ningún desafío.

    Por cada tema y duración:
      Challenge  "30-Day Fitness Challenge" con 30 tareas (día 1..30)
      Badge      "30-Day Fitness Master"   requirements={"days_completed": 30}
    """
    if db.query(Challenge).count() > 0:
        return

    for topic in CHALLENGE_TOPICS:
        for duration, difficulty in CHALLENGE_DURATIONS.items():
            challenge = Challenge(
                title=f"{duration}-Day {topic} Challenge",
                description=(
                    f"A {duration} days journey to improve your {topic}. "
                    f"Commit to small daily tasks to achieve big results."
                ),
                duration_days=duration,
                category=topic,
                difficulty=difficulty.value,
            )
            challenge.daily_tasks = [
                ChallengeTask(
                    day=day,
                    task=f"Day {day} task for {topic}: Dedicate 20 minutes to {topic.lower()} practice."
                )
                for day in range(1, duration + 1)
            ]
            db.add(challenge)

            db.add(Badge(
                name=f"{duration}-Day {topic} Master",
                description=f"Awarded for completing the {duration}-day {topic} challenge.",
                image_url=badge_image_url(topic, duration),
                category=topic,
                requirements={"days_completed": duration},
            ))

    db.commit()
    total = len(CHALLENGE_TOPICS) * len(CHALLENGE_DURATIONS)
    logger.info(f"✅ {total} desafíos y {total} insignias insertados")


def seed_all(db: Session):
    seed_quotes(db)
    seed_challenges(db)
