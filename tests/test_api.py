from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from rumasta import router as routes
from rumasta.app import create_app
from rumasta.config import settings
from rumasta.globals import session_registry

CSV_HEADER = "level,question_text,correct_answer,incorrect_answers,explanation,image_url\n"


@pytest.fixture
def client(tmp_path, monkeypatch):
    questions_dir = tmp_path / "questions"
    questions_dir.mkdir()
    rows = "".join(
        f"A1-1,Question {i},right {i},wrong {i}a|wrong {i}b|wrong {i}c,Because {i},\n"
        for i in range(12)
    )
    rows += "".join(
        f"B1-3,Final {i},right {i},wrong {i}a|wrong {i}b,,\n" for i in range(10)
    )
    (questions_dir / "bank.csv").write_text(CSV_HEADER + rows, encoding="utf-8")

    monkeypatch.setattr(settings, "DB_DIR", str(tmp_path / "db"))
    monkeypatch.setattr(settings, "LOG_DIR", str(tmp_path / "log"))
    monkeypatch.setattr(settings, "QUESTIONS_DIR", str(questions_dir))
    session_registry.sessions.clear()

    with TestClient(create_app()) as test_client:
        yield test_client
    session_registry.sessions.clear()


def _login(client: TestClient) -> None:
    response = client.post(
        "/login",
        data={"email": "Anna@Example.com", "username": "anna"},
        follow_redirects=False,
    )
    assert response.status_code == 302
    assert settings.USER_COOKIE_NAME in response.cookies


def _correct_option(client: TestClient) -> int:
    [entry] = session_registry.sessions.values()
    item = entry.controller.current_item
    return item.options.index(item.question.correct_answer)


def _answer_all(client: TestClient) -> dict:
    state = client.get("/api/session").json()
    while state["phase"] == "active":
        client.post("/api/session/select", data={"option_index": _correct_option(client)})
        state = client.post("/api/session/submit").json()
        assert state["feedback"]["is_correct"] is True
        state = client.post("/api/session/continue").json()
    return state


def test_health(client) -> None:
    assert client.get("/health").json() == {"status": "ok"}


def test_levels_are_public(client) -> None:
    payload = client.get("/api/levels").json()

    assert [level["id"] for level in payload["levels"]][:2] == ["A1-1", "A1-2"]
    assert payload["current_level"] == "A1-1"


def test_session_api_requires_sign_in(client) -> None:
    assert client.post("/api/session/start").status_code == 401
    assert client.get("/api/dashboard").json() == {"error": "Not signed in"}


def test_home_page_shows_login_form_then_dashboard(client) -> None:
    assert 'action="login"' in client.get("/").text

    _login(client)
    page = client.get("/")

    assert "Welcome, anna!" in page.text
    assert "Current Level: A1-1" in page.text


def test_login_rejects_invalid_email(client) -> None:
    response = client.post("/login", data={"email": "nope"}, follow_redirects=False)

    assert response.status_code == 400


def test_invalid_level_parameter_is_ignored(client) -> None:
    _login(client)

    assert client.get("/api/dashboard", params={"level": "Z9-9"}).json()[
        "current_level"
    ] == "A1-1"

    client.post("/api/level", data={"level": "A2-2"})
    payload = client.get("/api/dashboard", params={"level": "bogus"}).json()

    assert payload["current_level"] == "A2-2"
    assert payload["next_level"] == "A2-3"


def test_start_samples_ten_questions(client) -> None:
    _login(client)

    state = client.post("/api/session/start").json()

    assert state["phase"] == "active"
    assert state["total_questions"] == 10
    assert state["total_available_in_level"] == 12
    assert len(state["question"]["options"]) == 4
    assert state["selected_option"] is None


def test_submit_without_selection_is_rejected(client) -> None:
    _login(client)
    client.post("/api/session/start")

    response = client.post("/api/session/submit")

    assert response.status_code == 400


def test_double_submit_is_rejected(client) -> None:
    _login(client)
    client.post("/api/session/start")
    wrong = (_correct_option(client) + 1) % 4
    client.post("/api/session/select", data={"option_index": wrong})
    client.post("/api/session/submit")

    response = client.post("/api/session/submit")

    assert response.status_code == 400
    assert response.json() == {"error": "Already answered"}
    assert client.get("/api/session").json()["mistakes"] == 1


def test_missing_session_returns_404(client) -> None:
    _login(client)

    assert client.get("/api/session").status_code == 404


def test_wrong_answer_then_retry(client) -> None:
    _login(client)
    client.post("/api/session/start")
    wrong = (_correct_option(client) + 1) % 4

    client.post("/api/session/select", data={"option_index": wrong})
    state = client.post("/api/session/submit").json()
    assert state["feedback"]["is_correct"] is False
    assert state["mistakes"] == 1

    state = client.post("/api/session/retry").json()
    assert state["show_result"] is False
    assert state["attempts"] == 1

    client.post("/api/session/select", data={"option_index": _correct_option(client)})
    state = client.post("/api/session/submit").json()
    assert state["feedback"]["is_correct"] is True
    assert state["score"] == 0
    assert state["mistakes"] == 1


def test_perfect_level_and_next_level(client) -> None:
    _login(client)
    client.post("/api/session/start")

    state = _answer_all(client)

    summary = state["summary"]
    assert state["phase"] == "completed"
    assert summary["score"] == 10
    assert summary["stars"] == 5
    assert summary["percentage"] == 100
    assert summary["next_level"] == "A1-2"

    response = client.post("/api/session/next-level")
    state = response.json()

    assert state["level"] == "A1-2"
    assert state["phase"] == "no_data"
    assert response.cookies.get(settings.LEVEL_COOKIE_NAME) == "A1-2"


def test_final_level_has_no_next_level(client) -> None:
    _login(client)
    client.post("/api/session/start", params={"level": "B1-3"})

    state = _answer_all(client)

    assert state["summary"]["passed"] is True
    assert state["summary"]["next_level"] is None
    assert client.post("/api/session/next-level").json()["phase"] == "completed"


def test_next_level_requires_a_pass(client) -> None:
    _login(client)
    client.post("/api/session/start")

    assert client.post("/api/session/next-level").status_code == 400


def test_restart_and_reset(client) -> None:
    _login(client)
    client.post("/api/session/start")
    client.post("/api/session/select", data={"option_index": 0})
    client.post("/api/session/submit")

    state = client.post("/api/session/restart").json()
    assert state["attempts"] == 0
    assert state["mistakes"] == 0

    assert client.delete("/api/session").json() == {"status": "success"}
    assert client.get("/api/session").status_code == 404


def test_storage_reads_run_in_the_thread_pool(client, monkeypatch) -> None:
    calls = []
    original = routes.run_in_threadpool

    async def _tracking(func, *args):
        calls.append(func.__name__)
        return await original(func, *args)

    monkeypatch.setattr(routes, "run_in_threadpool", _tracking)
    _login(client)
    client.get("/api/dashboard")
    client.get("/")

    assert calls == [
        "ensure_profile",
        "get_user_progress",
        "get_level_completions",
        "get_user_progress",
    ]


def test_quiz_page_offers_first_level_and_escapes_content(client) -> None:
    _login(client)

    page = client.get("/quiz").text

    assert 'data-action="first-level"' in page
    assert 'const FIRST_LEVEL = "A1-1"' in page
    assert "escapeHtml(q.question_text)" in page
    assert "escapeHtml(option)" in page
    assert "escapeHtml(state.feedback.explanation)" in page


def test_empty_level_can_switch_back_to_first_level(client) -> None:
    _login(client)
    client.post("/api/level", data={"level": "A2-1"})
    assert client.post("/api/session/start").json()["phase"] == "no_data"

    client.post("/api/level", data={"level": "A1-1"})
    state = client.post("/api/session/start").json()

    assert state["level"] == "A1-1"
    assert state["phase"] == "active"
