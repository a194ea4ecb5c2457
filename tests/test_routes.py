import pytest
from fastapi.testclient import TestClient

from examsuite.deps import get_submission_service, require_student, require_teacher
from examsuite.models.user import User
from main import app

STUDENT = User(user_id="stu_1", email="stu@example.com", name="Student One", role="student")
OTHER_STUDENT = User(user_id="stu_2", email="two@example.com", name="Student Two", role="student")
TEACHER = User(user_id="teacher_1", email="t@example.com", name="Teacher", role="teacher")


@pytest.fixture
def api(service):
    current = {"student": STUDENT}
    app.dependency_overrides[get_submission_service] = lambda: service
    app.dependency_overrides[require_student] = lambda: current["student"]
    app.dependency_overrides[require_teacher] = lambda: TEACHER
    client = TestClient(app)
    client.current = current
    yield client
    app.dependency_overrides.clear()


def start(api):
    response = api.post("/api/exams/exam_1/submissions")
    assert response.status_code == 200
    return response.json()


def test_health_and_version_are_public():
    client = TestClient(app)
    assert client.get("/health").json()["status"] == "healthy"
    assert "git_commit" in client.get("/api/version").json()


def test_student_flow_hides_scores_until_published(api):
    submission = start(api)
    sub_id = submission["submission_id"]
    assert submission["status"] == "in-progress"

    saved = api.put(f"/api/submissions/{sub_id}/answers", json={
        "answers": [{"question_id": "q_mcq", "response_option": "opt_mars"}],
        "marked_for_review": ["q_essay"],
    })
    assert saved.status_code == 200
    assert saved.json()["marked_for_review"] == ["q_essay"]

    submitted = api.post(f"/api/submissions/{sub_id}/submit", json={
        "answers": [{"question_id": "q_essay", "response_text": "Rayleigh scattering."}],
    }).json()
    assert submitted["status"] == "evaluated"
    assert submitted["evaluations"] == []
    assert submitted["total_marks"] is None

    teacher_view = api.get("/api/exams/exam_1/submissions").json()
    assert teacher_view[0]["total_marks"] == 13

    published = api.post(f"/api/submissions/{sub_id}/publish").json()
    assert published["status"] == "published"
    mine = api.get("/api/submissions/mine").json()
    assert mine[0]["total_marks"] == 13
    assert len(mine[0]["evaluations"]) == 2


def test_save_after_submit_conflicts(api):
    sub_id = start(api)["submission_id"]
    api.post(f"/api/submissions/{sub_id}/submit", json={})
    response = api.put(f"/api/submissions/{sub_id}/answers", json={"answers": []})
    assert response.status_code == 409


def test_oversized_answer_is_rejected(api):
    sub_id = start(api)["submission_id"]
    response = api.put(f"/api/submissions/{sub_id}/answers", json={
        "answers": [{"question_id": "q_essay", "response_text": "x" * 3001}],
    })
    assert response.status_code == 422


def test_other_students_cannot_see_a_submission(api):
    sub_id = start(api)["submission_id"]
    api.current["student"] = OTHER_STUDENT
    assert api.get(f"/api/submissions/{sub_id}").status_code == 404
    assert api.post(f"/api/submissions/{sub_id}/submit", json={}).status_code == 404


def test_violation_endpoint_always_answers(api):
    sub_id = start(api)["submission_id"]
    response = api.post(f"/api/submissions/{sub_id}/violations", json={"type": "tab-switch"})
    assert response.status_code == 200
    assert response.json() == {"violation_count": 1, "status": "in-progress"}

    missing = api.post("/api/submissions/sub_missing/violations", json={"type": "tab-switch"})
    assert missing.status_code == 200
    assert missing.json() == {"violation_count": 0, "status": None}


def test_teacher_override_and_bulk_publish(api):
    sub_id = start(api)["submission_id"]
    api.post(f"/api/submissions/{sub_id}/submit", json={})

    response = api.put(f"/api/submissions/{sub_id}/evaluations", json={
        "evaluations": [{"question_id": "q_essay", "marks": 6, "remarks": "Needs detail."}],
    })
    assert response.status_code == 200
    body = response.json()
    assert body["total_marks"] == 6
    assert body["evaluated_by"] == "teacher_1"

    assert api.put(f"/api/submissions/{sub_id}/evaluations", json={"evaluations": []}).status_code == 422
    assert api.post("/api/exams/exam_1/publish-results").json() == {"count": 1}


def test_starting_a_closed_exam_is_forbidden(api, db):
    db.exams.docs[0]["status"] = "completed"
    assert api.post("/api/exams/exam_1/submissions").status_code == 403


def test_save_after_deadline_returns_the_auto_submitted_record(api, clock):
    sub_id = start(api)["submission_id"]
    clock.advance(minutes=31)
    response = api.put(f"/api/submissions/{sub_id}/answers", json={
        "answers": [{"question_id": "q_essay", "response_text": "too late"}],
    })
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "evaluated"
    assert body["submission_type"] == "auto"


def test_save_after_a_poll_finalized_the_attempt_is_not_a_conflict(api, clock):
    sub_id = start(api)["submission_id"]
    clock.advance(minutes=31)
    assert api.get(f"/api/submissions/{sub_id}").json()["status"] == "evaluated"
    response = api.put(f"/api/submissions/{sub_id}/answers", json={"answers": []})
    assert response.status_code == 200
    assert response.json()["submission_type"] == "auto"


def test_violation_endpoint_survives_storage_failure(api, db):
    sub_id = start(api)["submission_id"]
    db.submissions.fail_next = RuntimeError("primary stepped down")
    response = api.post(f"/api/submissions/{sub_id}/violations", json={"type": "tab-switch"})
    assert response.status_code == 200
    assert response.json() == {"violation_count": 0, "status": None}


def test_other_students_violation_reports_are_ignored(api, db):
    sub_id = start(api)["submission_id"]
    api.current["student"] = OTHER_STUDENT
    response = api.post(f"/api/submissions/{sub_id}/violations", json={"type": "tab-switch"})
    assert response.json() == {"violation_count": 0, "status": None}
    assert db.submissions.docs[0]["violations"] == []
