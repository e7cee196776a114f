from sqlalchemy import select

from conftest import LEARNER_ID, OTHER_LEARNER_ID, PARENT_ID, TEACHER_ID, auth_headers
from lingo_progress.models.gamification import ActivityLog


async def _award(client, body, user_id=LEARNER_ID):
    return await client.post("/api/gamification/award", json=body, headers=auth_headers(user_id))


async def test_award_accepts_camel_case_body(client):
    response = await _award(client, {
        "activityType": "COMPLETE_QUIZ",
        "referenceId": 42,
        "referenceType": "quiz",
        "language": "french",
        "metadata": {"score": 100},
    })

    assert response.status_code == 200
    body = response.json()
    assert body["pointsGranted"] == 35
    assert body["activityType"] == "COMPLETE_QUIZ"
    assert body["duplicate"] is False
    assert isinstance(body["awardId"], int)


async def test_award_accepts_snake_case_body(client):
    response = await _award(client, {"activity_type": "COMPLETE_LESSON", "reference_id": 10, "reference_type": "lesson"})

    assert response.status_code == 200
    assert response.json()["pointsGranted"] == 15


async def test_award_writes_activity_log(client, session_factory):
    await _award(client, {"activityType": "STUDY_VOCABULARY"})

    async with session_factory() as session:
        result = await session.execute(select(ActivityLog.action).where(ActivityLog.user_id == LEARNER_ID))
        assert result.scalars().all() == ["EARN_POINTS"]


async def test_unknown_activity_is_bad_request(client):
    response = await _award(client, {"activityType": "WIN_THE_GAME"})

    assert response.status_code == 400
    assert response.json()["error"] == "InvalidActivity"


async def test_half_reference_is_bad_request(client):
    response = await _award(client, {"activityType": "COMPLETE_QUIZ", "referenceId": 42})

    assert response.status_code == 400
    assert response.json()["error"] == "InvalidReference"


async def test_missing_token_is_unauthorized(client):
    response = await client.post("/api/gamification/award", json={"activityType": "COMPLETE_LESSON"})

    assert response.status_code == 401


async def test_garbage_token_is_unauthorized(client):
    response = await client.get("/api/progress/me", headers={"Authorization": "Bearer not-a-jwt"})

    assert response.status_code == 401


async def test_own_progress(client):
    await _award(client, {"activityType": "COMPLETE_QUIZ", "referenceId": 42, "referenceType": "quiz"})

    response = await client.get(f"/api/progress/{LEARNER_ID}", headers=auth_headers(LEARNER_ID))

    assert response.status_code == 200
    body = response.json()
    assert body["learnerId"] == LEARNER_ID
    assert body["totalPoints"] == 15
    french = next(course for course in body["courses"] if course["courseId"] == 1)
    assert french["completionRatio"] == 0.2


async def test_me_resolves_to_caller(client):
    response = await client.get("/api/progress/me", headers=auth_headers(LEARNER_ID))

    assert response.status_code == 200
    assert response.json()["learnerId"] == LEARNER_ID


async def test_learner_cannot_view_other_learner(client, session_factory):
    response = await client.get(f"/api/progress/{OTHER_LEARNER_ID}", headers=auth_headers(LEARNER_ID))

    assert response.status_code == 403
    assert response.json() == {"error": "Forbidden", "detail": "Not authorized to view this learner's data"}
    async with session_factory() as session:
        result = await session.execute(select(ActivityLog))
        assert result.scalars().all() == []


async def test_teacher_and_parent_can_view_learner(client):
    teacher = await client.get(f"/api/progress/{LEARNER_ID}", headers=auth_headers(TEACHER_ID, "teacher"))
    parent = await client.get(f"/api/progress/{LEARNER_ID}", headers=auth_headers(PARENT_ID, "parent"))

    assert teacher.status_code == 200
    assert parent.status_code == 200


async def test_unknown_learner_is_not_found(client):
    response = await client.get("/api/progress/777", headers=auth_headers(TEACHER_ID, "teacher"))

    assert response.status_code == 404
    assert response.json()["error"] == "LearnerNotFound"


async def test_language_query_filters_snapshot(client):
    response = await client.get("/api/progress/me?language=german", headers=auth_headers(LEARNER_ID))

    assert response.status_code == 200
    assert [course["courseId"] for course in response.json()["courses"]] == [2]


async def test_award_history_newest_first(client):
    await _award(client, {"activityType": "STUDY_VOCABULARY"})
    await _award(client, {"activityType": "COMPLETE_LESSON"})

    response = await client.get(f"/api/gamification/awards/{LEARNER_ID}", headers=auth_headers(LEARNER_ID))

    assert response.status_code == 200
    assert [award["activityType"] for award in response.json()] == ["COMPLETE_LESSON", "STUDY_VOCABULARY"]


async def test_award_history_of_other_learner_is_forbidden(client):
    response = await client.get(f"/api/gamification/awards/{OTHER_LEARNER_ID}", headers=auth_headers(LEARNER_ID))

    assert response.status_code == 403


async def test_reference_lookup(client):
    await _award(client, {"activityType": "COMPLETE_QUIZ", "referenceId": 42, "referenceType": "quiz"})
    headers = auth_headers(LEARNER_ID)
    url = f"/api/gamification/awards/{LEARNER_ID}/references"

    found = await client.get(url, params={"reference_type": "quiz", "reference_ids": "42,44"}, headers=headers)
    empty = await client.get(url, params={"reference_type": "quiz", "reference_ids": ""}, headers=headers)
    bad = await client.get(url, params={"reference_type": "quiz", "reference_ids": "42,x"}, headers=headers)

    assert [award["referenceId"] for award in found.json()] == [42]
    assert empty.json() == []
    assert bad.status_code == 400


async def test_activity_types_lists_awardable_activities(client):
    response = await client.get("/api/gamification/activity-types")

    types = {entry["activityType"]: entry for entry in response.json()}
    assert "IMPROVEMENT_BONUS" not in types
    assert types["COMPLETE_LESSON"]["basePoints"] == 15
    assert types["PLAY_GAME"]["completes"] == "game"
    assert types["STUDY_VOCABULARY"]["completes"] is None


async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["checks"]["database"] == "healthy"


async def test_request_id_is_echoed(client):
    response = await client.get("/health", headers={"X-Request-ID": "abc123"})

    assert response.headers["X-Request-ID"] == "abc123"


async def test_config_shows_points_policy(client):
    response = await client.get("/config")

    assert response.status_code == 200
    body = response.json()
    assert body["points"]["COMPLETE_QUIZ"] == 10
    assert body["duplicateAwardPolicy"] == "allow"


async def test_non_string_activity_is_invalid_activity(client):
    numeric = await _award(client, {"activityType": 5})
    missing = await _award(client, {"referenceId": 42, "referenceType": "quiz"})

    assert numeric.status_code == 400
    assert numeric.json()["error"] == "InvalidActivity"
    assert missing.status_code == 400
    assert missing.json()["error"] == "InvalidActivity"


async def test_non_integer_reference_is_invalid_reference(client):
    text_id = await _award(client, {"activityType": "COMPLETE_QUIZ", "referenceId": "abc", "referenceType": "quiz"})
    numeric_type = await _award(client, {"activityType": "COMPLETE_QUIZ", "referenceId": 42, "referenceType": 7})

    assert text_id.status_code == 400
    assert text_id.json()["error"] == "InvalidReference"
    assert numeric_type.status_code == 400
    assert numeric_type.json()["error"] == "InvalidReference"


async def test_empty_language_query_means_all_languages(client):
    await _award(client, {"activityType": "COMPLETE_QUIZ", "referenceId": 42, "referenceType": "quiz", "language": "french"})

    response = await client.get("/api/progress/me?language=", headers=auth_headers(LEARNER_ID))

    assert response.status_code == 200
    body = response.json()
    assert body["totalPoints"] == 15
    assert body["language"] is None
    assert [course["courseId"] for course in body["courses"]] == [1, 2]


async def test_snapshot_carries_completion_stats_and_daily_detail(client):
    await _award(client, {
        "activityType": "COMPLETE_QUIZ",
        "referenceId": 42,
        "referenceType": "quiz",
        "language": "french",
        "metadata": {"score": "100"},
    })

    response = await client.get("/api/progress/me", headers=auth_headers(LEARNER_ID))

    body = response.json()
    assert body["totalPoints"] == 35
    assert body["completionStats"]["quizzesCompleted"] == 1
    assert body["completionStats"]["totalCompletions"] == 1
    assert body["completionStats"]["averageScore"] == 100.0
    today = body["recentActivity"][-1]
    assert today["activities"] == {"COMPLETE_QUIZ": 1}
    assert today["languages"] == ["french"]
