import uuid
from fastapi.testclient import TestClient

from tests.helpers.asserts import api_call, assert_error


def test_admin_creates_and_updates_test(client: TestClient, admin_headers):
    r_create = api_call(client, "POST", "/tests/", headers=admin_headers,
                        json={"title": f"Algebra {uuid.uuid4().hex[:6]}", "pass_score": 70})
    created = r_create.json()["data"]
    assert r_create.status_code == 201
    assert created["status"] == "draft"
    assert created["results_released"] is False
    assert created["created_by"].startswith("admin-")

    r_update = api_call(client, "PUT", f"/tests/{created['id']}", headers=admin_headers,
                        json={"status": "published", "negative_marking": True})
    updated = r_update.json()["data"]
    assert updated["status"] == "published"
    assert updated["negative_marking"] is True
    assert updated["pass_score"] == 70


def test_students_cannot_author(client: TestClient, student_headers, quiz_factory):
    assert_error(client.post("/tests/", headers=student_headers, json={"title": "Nope"}), 403)

    test, _ = quiz_factory([{"type": "short_text", "prompt": "Name a prime"}])
    r = client.post(f"/tests/{test['id']}/questions", headers=student_headers,
                    json=[{"type": "short_text", "prompt": "Another"}])
    assert_error(r, 403)


def test_students_only_see_published_tests(client: TestClient, student_headers, quiz_factory):
    draft, _ = quiz_factory([{"type": "short_text", "prompt": "Q"}], status="draft")
    published, _ = quiz_factory([{"type": "short_text", "prompt": "Q"}])

    visible = [t["id"] for t in api_call(client, "GET", "/tests/?limit=1000", headers=student_headers).json()["data"]]
    assert published["id"] in visible
    assert draft["id"] not in visible
    assert_error(client.get(f"/tests/{draft['id']}", headers=student_headers), 404)


def test_students_never_see_answer_keys(client: TestClient, student_headers, admin_headers, quiz_factory):
    test, _ = quiz_factory([
        {
            "type": "mcq_single",
            "prompt": "Pick B",
            "explanation": "Because B.",
            "options": [{"label": "A", "is_correct": False}, {"label": "B", "is_correct": True}],
        },
        {
            "type": "number",
            "prompt": "2 + 2",
            "tolerance_numeric": 0.1,
            "options": [{"label": "4", "is_correct": True}],
        },
    ])

    student_view = api_call(client, "GET", f"/tests/{test['id']}/questions", headers=student_headers).json()["data"]
    by_type = {q["type"]: q for q in student_view}
    assert all(o["is_correct"] is None for o in by_type["mcq_single"]["options"])
    assert by_type["mcq_single"]["explanation"] is None
    assert by_type["number"]["options"] == []
    assert by_type["number"]["tolerance_numeric"] is None

    admin_view = api_call(client, "GET", f"/tests/{test['id']}/questions", headers=admin_headers).json()["data"]
    admin_by_type = {q["type"]: q for q in admin_view}
    assert admin_by_type["number"]["options"][0]["label"] == "4"
    assert admin_by_type["number"]["tolerance_numeric"] == 0.1


def test_shuffled_order_is_stable_per_student(client: TestClient, student_headers, quiz_factory):
    questions = [{"type": "short_text", "prompt": f"Q{i}", "order_index": i} for i in range(8)]
    test, created = quiz_factory(questions, shuffle_questions=True)

    first = [q["id"] for q in api_call(client, "GET", f"/tests/{test['id']}/questions", headers=student_headers).json()["data"]]
    second = [q["id"] for q in api_call(client, "GET", f"/tests/{test['id']}/questions", headers=student_headers).json()["data"]]
    assert first == second
    assert sorted(first) == sorted(q["id"] for q in created)


def test_invalid_answer_keys_are_rejected(client: TestClient, admin_headers, quiz_factory):
    test, _ = quiz_factory([{"type": "short_text", "prompt": "Q"}], status="draft")
    invalid = [
        {"type": "mcq_single", "prompt": "Two correct",
         "options": [{"label": "A", "is_correct": True}, {"label": "B", "is_correct": True}]},
        {"type": "mcq_multi", "prompt": "None correct",
         "options": [{"label": "A", "is_correct": False}, {"label": "B", "is_correct": False}]},
        {"type": "number", "prompt": "Not numeric", "options": [{"label": "ten", "is_correct": True}]},
        {"type": "short_text", "prompt": "Tolerance on text", "tolerance_numeric": 1},
        {"type": "true_false", "prompt": "Zero points", "points": 0,
         "options": [{"label": "True", "is_correct": True}, {"label": "False", "is_correct": False}]},
    ]
    for question in invalid:
        r = client.post(f"/tests/{test['id']}/questions", headers=admin_headers, json=[question])
        assert_error(r, 422, "VALIDATION_ERROR")
