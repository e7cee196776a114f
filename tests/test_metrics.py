from datetime import date, datetime, timedelta

import pytest

from lingo_progress.gamification.achievements import AchievementStats, earned_achievements
from lingo_progress.gamification.metrics import (
    compute_level, compute_streaks, is_recently_active, quiz_score, recent_daily_points
)

TODAY = date(2024, 5, 20)


@pytest.mark.parametrize("total, expected", [
    (0, (1, 100)),
    (99, (1, 1)),
    (100, (2, 300)),
    (399, (2, 1)),
    (400, (3, 500)),
    (2500, (6, 1100)),
])
def test_level_grows_with_square_root_of_points(total, expected):
    assert compute_level(total, 100) == expected


def test_negative_total_is_level_one():
    assert compute_level(-5, 100) == (1, 100)


def test_no_active_days_means_no_streak():
    assert compute_streaks([], TODAY) == (0, 0)


def test_streak_ending_today():
    days = [TODAY - timedelta(days=n) for n in range(4)]

    assert compute_streaks(days, TODAY) == (4, 4)


def test_streak_ending_yesterday_is_still_current():
    days = [TODAY - timedelta(days=n) for n in (1, 2)]

    assert compute_streaks(days, TODAY) == (2, 2)


def test_gap_resets_current_but_keeps_longest():
    days = [TODAY - timedelta(days=n) for n in (0, 5, 6, 7, 8)]

    assert compute_streaks(days, TODAY) == (1, 4)


def test_old_activity_has_no_current_streak():
    days = [TODAY - timedelta(days=n) for n in (3, 4)]

    assert compute_streaks(days, TODAY) == (0, 2)


def test_recent_daily_points_zero_fills_oldest_first():
    points = {TODAY: 10, TODAY - timedelta(days=2): 5, TODAY - timedelta(days=30): 99}

    assert recent_daily_points(points, TODAY, 3) == [
        (TODAY - timedelta(days=2), 5),
        (TODAY - timedelta(days=1), 0),
        (TODAY, 10),
    ]


def test_recently_active_window():
    now = datetime(2024, 5, 20, 12, 0)

    assert is_recently_active(now - timedelta(days=6), now, 7)
    assert not is_recently_active(now - timedelta(days=8), now, 7)
    assert not is_recently_active(None, now, 7)


def _stats(**overrides):
    values = dict(total_points=0, longest_streak=0, quizzes_completed=0, lessons_completed=0, perfect_quizzes=0)
    values.update(overrides)
    return AchievementStats(**values)


def test_no_achievements_for_fresh_learner():
    assert earned_achievements(_stats()) == []


def test_streak_and_point_milestones():
    earned = {a.key for a in earned_achievements(_stats(total_points=520, longest_streak=30))}

    assert earned == {
        "streak_7_days", "streak_30_days", "points_milestone_100", "points_milestone_500"
    }


def test_perfect_quiz_earns_perfectionist():
    earned = [a.key for a in earned_achievements(_stats(quizzes_completed=1, perfect_quizzes=1))]

    assert earned == ["first_quiz", "quiz_perfectionist"]


def test_level_is_exact_for_huge_totals():
    # (10**8)^2 * 100 is exactly the start of level 10**8 + 1
    total = (10 ** 8) ** 2 * 100

    assert compute_level(total - 1, 100) == (10 ** 8, 1)
    assert compute_level(total, 100)[0] == 10 ** 8 + 1


@pytest.mark.parametrize("metadata, expected", [
    ({"score": 100}, 100.0),
    ({"score": "87.5"}, 87.5),
    ({"score": "n/a"}, None),
    ({"score": None}, None),
    ({}, None),
    (None, None),
])
def test_quiz_score_parsing(metadata, expected):
    assert quiz_score(metadata) == expected
