from datetime import datetime

import pytest
from sqlalchemy import inspect, update
from sqlalchemy.exc import IntegrityError

import gamification
from errors import ConflictError, NotFoundError
from gamification import (
    abandon_challenge, complete_task, find_badge_for_challenge,
    get_active_challenge, list_badges, list_user_challenges, start_challenge
)
from models import Badge, ChallengeStatus, UserBadge, UserChallenge


def _complete_all(db, user, challenge):
    return [
        complete_task(db, user, challenge.id, task.id)
        for task in challenge.daily_tasks
    ]


# =============================================================================
# Inscripción
# =============================================================================

def test_start_creates_active_enrollment(db, make_user, fitness_30):
    user = make_user()

    enrollment = start_challenge(db, user, fitness_30.id)

    assert enrollment.status == ChallengeStatus.active.value
    assert enrollment.current_day == 1
    assert enrollment.completed_tasks == []
    assert enrollment.start_date is not None
    assert enrollment.completed_at is None


def test_start_twice_returns_same_active_enrollment(db, make_user, fitness_30):
    user = make_user()

    first = start_challenge(db, user, fitness_30.id)
    second = start_challenge(db, user, fitness_30.id)

    assert first.id == second.id
    assert db.query(UserChallenge).filter(UserChallenge.user_id == user.id).count() == 1


def test_second_active_enrollment_violates_unique_index(db, make_user, fitness_30):
    user = make_user()
    db.add(UserChallenge(user_id=user.id, challenge_id=fitness_30.id))
    db.commit()

    db.add(UserChallenge(user_id=user.id, challenge_id=fitness_30.id))
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()

    assert db.query(UserChallenge).count() == 1


def test_unique_index_ignores_finished_enrollments(db, make_user, fitness_30):
    user = make_user()
    db.add(UserChallenge(user_id=user.id, challenge_id=fitness_30.id,
                         status=ChallengeStatus.completed.value, current_day=31))
    db.add(UserChallenge(user_id=user.id, challenge_id=fitness_30.id,
                         status=ChallengeStatus.abandoned.value))
    db.commit()

    enrollment = start_challenge(db, user, fitness_30.id)

    assert enrollment.status == ChallengeStatus.active.value
    assert db.query(UserChallenge).count() == 3


def test_start_race_returns_winning_enrollment(db, make_user, fitness_30, monkeypatch):
    user = make_user()
    winner = UserChallenge(user_id=user.id, challenge_id=fitness_30.id)
    db.add(winner)
    db.commit()
    winner_id = winner.id

    # La primera búsqueda no ve la fila (la otra petición aún no había hecho commit)
    real_find_active = gamification._find_active
    calls = []

    def late_find_active(*args):
        calls.append(args)
        if len(calls) == 1:
            return None
        return real_find_active(*args)

    monkeypatch.setattr(gamification, "_find_active", late_find_active)

    enrollment = start_challenge(db, user, fitness_30.id)

    assert len(calls) == 2
    assert enrollment.id == winner_id
    assert db.query(UserChallenge).count() == 1


def test_start_unknown_challenge(db, make_user):
    with pytest.raises(NotFoundError):
        start_challenge(db, make_user(), 99999)


def test_active_lookup_prefers_most_recent_start(db, make_user, fitness_30, mindfulness_60):
    user = make_user()
    older = start_challenge(db, user, fitness_30.id)
    newer = start_challenge(db, user, mindfulness_60.id)
    older.start_date = datetime(2024, 1, 1)
    newer.start_date = datetime(2024, 2, 1)
    db.commit()

    assert get_active_challenge(db, user).id == newer.id


def test_active_lookup_breaks_start_date_ties_by_id(db, make_user, fitness_30, mindfulness_60):
    user = make_user()
    same_moment = datetime(2024, 3, 1, 8, 0, 0)
    a = UserChallenge(user_id=user.id, challenge_id=fitness_30.id, start_date=same_moment)
    b = UserChallenge(user_id=user.id, challenge_id=mindfulness_60.id, start_date=same_moment)
    db.add_all([a, b])
    db.commit()

    picks = {get_active_challenge(db, user).id for _ in range(5)}

    assert picks == {max(a.id, b.id)}


def test_active_lookup_without_enrollments(db, make_user):
    assert get_active_challenge(db, make_user()) is None


def test_list_user_challenges_newest_first(db, make_user, fitness_30, mindfulness_60):
    user = make_user()
    first = start_challenge(db, user, fitness_30.id)
    second = start_challenge(db, user, mindfulness_60.id)
    first.start_date = datetime(2024, 1, 1)
    second.start_date = datetime(2024, 5, 1)
    db.commit()

    assert [uc.id for uc in list_user_challenges(db, user)] == [second.id, first.id]


def test_list_user_challenges_loads_daily_tasks(db, make_user, fitness_30):
    user = make_user()
    start_challenge(db, user, fitness_30.id)
    db.expire_all()

    enrollments = list_user_challenges(db, user)

    assert "daily_tasks" not in inspect(enrollments[0].challenge).unloaded
    assert len(enrollments[0].challenge.daily_tasks) == 30


# =============================================================================
# Completar tareas
# =============================================================================

def test_complete_task_advances_day(db, make_user, fitness_30):
    user = make_user()
    start_challenge(db, user, fitness_30.id)
    task = fitness_30.daily_tasks[0]

    result = complete_task(db, user, fitness_30.id, task.id)

    assert result["user_challenge"].current_day == 2
    assert result["user_challenge"].completed_tasks == [task.id]
    assert result["badge_earned"] is False
    assert result["badge"] is None


def test_repeated_task_does_not_advance(db, make_user, fitness_30):
    user = make_user()
    start_challenge(db, user, fitness_30.id)
    task = fitness_30.daily_tasks[0]

    complete_task(db, user, fitness_30.id, task.id)
    result = complete_task(db, user, fitness_30.id, task.id)

    assert result["user_challenge"].current_day == 2
    assert result["user_challenge"].completed_tasks == [task.id]


def test_complete_task_without_active_enrollment(db, make_user, fitness_30):
    with pytest.raises(NotFoundError):
        complete_task(db, make_user(), fitness_30.id, fitness_30.daily_tasks[0].id)


def test_complete_task_from_other_challenge(db, make_user, fitness_30, mindfulness_60):
    user = make_user()
    start_challenge(db, user, fitness_30.id)

    with pytest.raises(NotFoundError):
        complete_task(db, user, fitness_30.id, mindfulness_60.daily_tasks[0].id)

    assert get_active_challenge(db, user).current_day == 1


def test_task_from_a_later_day_is_rejected(db, make_user, fitness_30):
    user = make_user()
    start_challenge(db, user, fitness_30.id)

    with pytest.raises(NotFoundError):
        complete_task(db, user, fitness_30.id, fitness_30.daily_tasks[-1].id)

    enrollment = get_active_challenge(db, user)
    assert enrollment.current_day == 1
    assert enrollment.completed_tasks == []
    assert db.query(UserBadge).count() == 0


def test_repeating_a_past_task_is_a_no_op(db, make_user, fitness_30):
    user = make_user()
    start_challenge(db, user, fitness_30.id)
    first, second = fitness_30.daily_tasks[:2]
    complete_task(db, user, fitness_30.id, first.id)
    complete_task(db, user, fitness_30.id, second.id)

    result = complete_task(db, user, fitness_30.id, first.id)

    assert result["user_challenge"].current_day == 3
    assert result["user_challenge"].completed_tasks == [first.id, second.id]


def test_thirty_day_challenge_completes_and_awards_badge_once(db, make_user, fitness_30):
    user = make_user()
    start_challenge(db, user, fitness_30.id)

    results = _complete_all(db, user, fitness_30)

    assert [r["badge_earned"] for r in results] == [False] * 29 + [True]
    final = results[-1]["user_challenge"]
    assert final.status == ChallengeStatus.completed.value
    assert final.current_day == 31
    assert final.completed_at is not None
    assert results[-1]["badge"].name == "30-Day Fitness Master"
    assert db.query(UserBadge).filter(UserBadge.user_id == user.id).count() == 1


def test_day_exceeds_duration_only_when_completed(db, make_user, fitness_30):
    user = make_user()
    start_challenge(db, user, fitness_30.id)

    for task in fitness_30.daily_tasks:
        uc = complete_task(db, user, fitness_30.id, task.id)["user_challenge"]
        assert (uc.current_day > fitness_30.duration_days) == (uc.status == ChallengeStatus.completed.value)


def test_final_task_after_completion_is_not_found(db, make_user, fitness_30):
    user = make_user()
    start_challenge(db, user, fitness_30.id)
    _complete_all(db, user, fitness_30)

    with pytest.raises(NotFoundError):
        complete_task(db, user, fitness_30.id, fitness_30.daily_tasks[-1].id)

    assert db.query(UserBadge).filter(UserBadge.user_id == user.id).count() == 1


def test_second_attempt_does_not_duplicate_badge(db, make_user, fitness_30):
    user = make_user()
    start_challenge(db, user, fitness_30.id)
    _complete_all(db, user, fitness_30)

    retry = start_challenge(db, user, fitness_30.id)
    assert retry.status == ChallengeStatus.active.value
    results = _complete_all(db, user, fitness_30)

    assert results[-1]["user_challenge"].status == ChallengeStatus.completed.value
    assert results[-1]["badge_earned"] is False
    assert db.query(UserBadge).filter(UserBadge.user_id == user.id).count() == 1


def test_completion_without_matching_badge(db, make_user, fitness_30):
    db.query(Badge).filter(Badge.category == "Fitness").delete()
    db.commit()
    user = make_user()
    start_challenge(db, user, fitness_30.id)

    results = _complete_all(db, user, fitness_30)

    assert results[-1]["user_challenge"].status == ChallengeStatus.completed.value
    assert results[-1]["badge_earned"] is False


def test_concurrent_progress_update_is_rejected(db, make_user, fitness_30):
    user = make_user()
    enrollment = start_challenge(db, user, fitness_30.id)
    assert enrollment.current_day == 1

    # Otra petición avanza la fila sin que esta sesión se entere
    db.execute(
        update(UserChallenge)
        .where(UserChallenge.id == enrollment.id)
        .values(current_day=2)
        .execution_options(synchronize_session=False)
    )

    with pytest.raises(ConflictError):
        complete_task(db, user, fitness_30.id, fitness_30.daily_tasks[0].id)


# =============================================================================
# Abandonar
# =============================================================================

def test_abandon_active_enrollment(db, make_user, fitness_30):
    user = make_user()
    start_challenge(db, user, fitness_30.id)
    complete_task(db, user, fitness_30.id, fitness_30.daily_tasks[0].id)

    abandoned = abandon_challenge(db, user, fitness_30.id)

    assert abandoned.status == ChallengeStatus.abandoned.value
    assert abandoned.current_day == 2
    assert get_active_challenge(db, user) is None


def test_abandon_without_active_enrollment(db, make_user, fitness_30):
    with pytest.raises(NotFoundError):
        abandon_challenge(db, make_user(), fitness_30.id)


# =============================================================================
# Insignias
# =============================================================================

def test_find_badge_matches_category_and_duration(db, fitness_30, mindfulness_60):
    assert find_badge_for_challenge(db, fitness_30).requirements == {"days_completed": 30}
    assert find_badge_for_challenge(db, mindfulness_60).name == "60-Day Mindfulness Master"


def test_list_badges_marks_earned(db, make_user, fitness_30):
    user = make_user()
    start_challenge(db, user, fitness_30.id)
    _complete_all(db, user, fitness_30)

    badges = list_badges(db, user)
    earned = [b for b in badges if b["earned_at"] is not None]

    assert len(badges) == 21
    assert [b["name"] for b in earned] == ["30-Day Fitness Master"]
    assert all(b["earned_at"] is None for b in list_badges(db, None))


def test_list_badges_keys_match_response(db, make_user):
    badge = list_badges(db, make_user())[0]

    assert set(badge) == {
        "id", "name", "description", "image_url", "category", "requirements", "earned_at"
    }
