import json

import pytest

from app import config
from app.db import get_conn, init_db
from app.eligibility import evaluate, persist_decision, score
from app.logger import log_payload
from app.onboarding import OnboardingController
from app.schemas import OnboardingState
from app.steps import Branch, Step
from app.store import SqliteStateStore, StateStoreError

from conftest import PERSONAL_DETAILS


@pytest.fixture
def sqlite_store(tmp_path, monkeypatch):
    monkeypatch.setattr(config, "DB_PATH", tmp_path / "store.sqlite3")
    init_db()
    return SqliteStateStore()


def test_load_unknown_user_returns_none(sqlite_store):
    assert sqlite_store.load("nobody") is None


def test_save_and_load_round_trip(sqlite_store):
    state = OnboardingState(
        user_id="u1",
        relocation_type=Branch.EUROPE,
        current_step=Step.VISA_RESULT,
        completed_steps={Step.DESTINATION, Step.PERSONAL_DETAILS, Step.VISA_CHECK},
        visa_eligibility_result={"eligible": True, "reasons": [], "score": 97},
    )
    sqlite_store.save("u1", state)
    loaded = sqlite_store.load("u1")
    assert loaded.current_step == Step.VISA_RESULT
    assert loaded.completed_steps == state.completed_steps
    assert loaded.visa_eligibility_result["score"] == 97

    with get_conn() as conn:
        row = conn.execute(
            "SELECT relocation_type, current_step FROM onboarding_states WHERE user_id = ?", ("u1",)
        ).fetchone()
    assert row == ("europe", "visa_result")


def test_save_overwrites_previous_state(sqlite_store):
    sqlite_store.save("u1", OnboardingState(user_id="u1"))
    sqlite_store.save("u1", OnboardingState(user_id="u1", current_step=Step.PERSONAL_DETAILS))
    with get_conn() as conn:
        count = conn.execute("SELECT COUNT(*) FROM onboarding_states").fetchone()[0]
    assert count == 1
    assert sqlite_store.load("u1").current_step == Step.PERSONAL_DETAILS


def test_profile_completion_flag(sqlite_store):
    assert not sqlite_store.is_onboarding_complete("u1")
    sqlite_store.mark_onboarding_complete("u1")
    sqlite_store.mark_onboarding_complete("u1")
    assert sqlite_store.is_onboarding_complete("u1")
    sqlite_store.delete("u1")
    assert not sqlite_store.is_onboarding_complete("u1")


def test_controller_against_sqlite(sqlite_store):
    controller = OnboardingController(sqlite_store, on_complete=sqlite_store.mark_onboarding_complete)
    controller.select_relocation_type("u2", "gcc")
    result = controller.submit_personal_details("u2", PERSONAL_DETAILS)
    assert result.step == Step.PAYMENT
    assert sqlite_store.load("u2").personal_details["fullName"] == PERSONAL_DETAILS["fullName"]


def test_decisions_and_logs_are_recorded(sqlite_store, eligible_answers):
    verdict = evaluate(eligible_answers)
    decision_id = persist_decision(eligible_answers, verdict, score(eligible_answers))
    log_payload("in", eligible_answers)

    with get_conn() as conn:
        decision = conn.execute(
            "SELECT eligible, score, reasons FROM decisions WHERE decision_id = ?", (decision_id,)
        ).fetchone()
        logged = conn.execute("SELECT direction, payload_json FROM logs").fetchall()

    assert decision == (1, 97, "[]")
    assert logged[0][0] == "in"
    assert json.loads(logged[0][1])["citizenship"] == "non-eu"


def test_profile_errors_surface_as_store_errors(sqlite_store):
    with get_conn() as conn:
        conn.execute("DROP TABLE profiles")

    with pytest.raises(StateStoreError):
        sqlite_store.is_onboarding_complete("u1")
    with pytest.raises(StateStoreError):
        sqlite_store.delete("u1")
