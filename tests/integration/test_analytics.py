from fastapi.testclient import TestClient

from tests.helpers.asserts import api_call, assert_error, correct_option_id, wrong_option_id


def mcq_single(points=2):
    return {
        "type": "mcq_single",
        "prompt": "Pick B",
        "points": points,
        "options": [{"label": "A", "is_correct": False}, {"label": "B", "is_correct": True}],
    }


def submit(client: TestClient, headers, test_id, question, correct=True):
    attempt = api_call(client, "POST", "/attempts/start", headers=headers, json={"test_id": test_id}).json()["data"]
    selected = correct_option_id(question) if correct else wrong_option_id(question)
    api_call(client, "POST", f"/attempts/{attempt['id']}/answer", headers=headers,
             json={"question_id": question["id"], "response_json": {"selected": selected}})
    return api_call(client, "POST", f"/attempts/{attempt['id']}/submit", headers=headers).json()["data"]


def user_id_of(client: TestClient, headers, attempt_id):
    return api_call(client, "GET", f"/attempts/{attempt_id}", headers=headers).json()["data"]["user_id"]


def test_leaderboard_hides_unreleased_scores_from_students(client: TestClient, quiz_factory, student_headers, other_student_headers, admin_headers):
    test, questions = quiz_factory([mcq_single()])
    best = submit(client, student_headers, test["id"], questions[0], correct=True)
    worst = submit(client, other_student_headers, test["id"], questions[0], correct=False)

    admin_board = api_call(client, "GET", f"/analytics/leaderboard/{test['id']}", headers=admin_headers).json()["data"]
    assert [(e["rank"], e["user_id"], e["best_score"]) for e in admin_board] == [
        (1, user_id_of(client, admin_headers, best["id"]), 100.0),
        (2, user_id_of(client, admin_headers, worst["id"]), 0.0),
    ]
    assert all(e["attempt_count"] == 1 for e in admin_board)

    student_board = api_call(client, "GET", f"/analytics/leaderboard/{test['id']}", headers=student_headers).json()["data"]
    assert student_board == []

    api_call(client, "POST", f"/tests/{test['id']}/release-results", headers=admin_headers)

    student_board = api_call(client, "GET", f"/analytics/leaderboard/{test['id']}", headers=student_headers).json()["data"]
    assert [e["best_score"] for e in student_board] == [100.0, 0.0]


def test_leaderboard_keeps_best_attempt_per_user(client: TestClient, quiz_factory, student_headers, admin_headers):
    test, questions = quiz_factory([mcq_single()], results_released=True)
    submit(client, student_headers, test["id"], questions[0], correct=False)
    submit(client, student_headers, test["id"], questions[0], correct=True)

    board = api_call(client, "GET", f"/analytics/leaderboard/{test['id']}", headers=student_headers).json()["data"]
    assert len(board) == 1
    assert board[0]["rank"] == 1
    assert board[0]["best_score"] == 100.0
    assert board[0]["attempt_count"] == 2
    assert board[0]["best_time_seconds"] is not None


def test_leaderboard_of_unpublished_test_is_hidden_from_students(client: TestClient, quiz_factory, student_headers, admin_headers):
    test, _ = quiz_factory([mcq_single()], status="draft")

    assert_error(client.get(f"/analytics/leaderboard/{test['id']}", headers=student_headers), 404)
    assert api_call(client, "GET", f"/analytics/leaderboard/{test['id']}", headers=admin_headers).json()["data"] == []
    assert_error(client.get("/analytics/leaderboard/999999", headers=admin_headers), 404)


def test_test_statistics_aggregate_attempts(client: TestClient, quiz_factory, student_headers, other_student_headers, admin_headers):
    test, questions = quiz_factory([mcq_single()])
    submit(client, student_headers, test["id"], questions[0], correct=True)
    submit(client, other_student_headers, test["id"], questions[0], correct=False)
    api_call(client, "POST", "/attempts/start", headers=student_headers, json={"test_id": test["id"]})

    statistics = api_call(client, "GET", "/analytics/tests", headers=admin_headers).json()["data"]
    row = next(s for s in statistics if s["test_id"] == test["id"])
    assert row["title"] == test["title"]
    assert row["status"] == "published"
    assert row["total_attempts"] == 3
    assert row["completed_attempts"] == 2
    assert row["unique_users"] == 2
    assert row["avg_score"] == 50.0
    assert row["pass_rate"] == 50.0
    assert row["avg_duration_seconds"] is not None


def test_test_statistics_include_tests_without_attempts(client: TestClient, quiz_factory, admin_headers):
    test, _ = quiz_factory([mcq_single()])

    statistics = api_call(client, "GET", "/analytics/tests", headers=admin_headers).json()["data"]
    row = next(s for s in statistics if s["test_id"] == test["id"])
    assert row["total_attempts"] == 0
    assert row["unique_users"] == 0
    assert row["avg_score"] is None
    assert row["pass_rate"] is None


def test_dashboard_reports_totals_and_recent_attempts(client: TestClient, quiz_factory, student_headers, admin_headers):
    before = api_call(client, "GET", "/analytics/dashboard", headers=admin_headers).json()["data"]

    test, questions = quiz_factory([mcq_single()])
    submitted = submit(client, student_headers, test["id"], questions[0], correct=True)

    after = api_call(client, "GET", "/analytics/dashboard", headers=admin_headers).json()["data"]
    assert after["total_tests"] == before["total_tests"] + 1
    assert after["total_attempts"] == before["total_attempts"] + 1
    assert after["total_users"] == before["total_users"] + 1
    assert 0 <= after["avg_score"] <= 100

    latest = after["recent_attempts"][0]
    assert latest["id"] == submitted["id"]
    # Operators see scores whether or not they are released.
    assert latest["score"] == 2.0
    assert len(after["recent_attempts"]) <= 10


def test_dashboard_and_statistics_require_admin(client: TestClient, student_headers):
    assert_error(client.get("/analytics/dashboard", headers=student_headers), 403)
    assert_error(client.get("/analytics/tests", headers=student_headers), 403)
