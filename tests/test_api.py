import pytest
from fastapi.testclient import TestClient

from app.main import app, get_controller
from app.onboarding import OnboardingController
from app.store import InMemoryStateStore, StateStoreError

from conftest import CALL, DOCUMENTS, ELIGIBLE_ANSWERS, INELIGIBLE_ANSWERS, PAYMENT, PERSONAL_DETAILS


@pytest.fixture
def api_store():
    return InMemoryStateStore()


@pytest.fixture
def client(api_store):
    controller = OnboardingController(api_store, on_complete=api_store.mark_onboarding_complete)
    app.dependency_overrides[get_controller] = lambda: controller
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}


def test_visa_questions(client):
    questions = client.get("/visa/questions").json()
    assert len(questions) == 9
    assert questions[1]["id"] == "citizenship"
    assert [o["value"] for o in questions[0]["options"]] == ["no", "yes"]


def test_check_eligibility_eligible(client):
    resp = client.post("/visa/eligibility", json=ELIGIBLE_ANSWERS)
    assert resp.status_code == 200
    body = resp.json()
    assert body["eligible"] is True
    assert body["reasons"] == []
    assert body["score"] == 97


def test_check_eligibility_ineligible(client):
    body = client.post("/visa/eligibility", json=INELIGIBLE_ANSWERS).json()
    assert body["eligible"] is False
    assert len(body["reasons"]) == 6
    assert body["recommendation"].startswith("Based on your responses")


def test_check_eligibility_incomplete(client):
    answers = dict(ELIGIBLE_ANSWERS)
    del answers["jobOffer"]
    resp = client.post("/visa/eligibility", json=answers)
    assert resp.status_code == 422
    assert "jobOffer" in resp.json()["detail"]


def test_new_user_state(client):
    body = client.get("/onboarding/u1").json()
    assert body["state"]["currentStep"] == "destination"
    assert body["stepNumber"] == 1
    assert body["totalSteps"] == 6
    assert body["canAccessDashboard"] is False


def test_personal_details_validation_error(client):
    client.post("/onboarding/u1/relocation-type", json={"relocationType": "europe"})
    resp = client.post("/onboarding/u1/personal-details", json=dict(PERSONAL_DETAILS, email=""))
    assert resp.status_code == 422
    assert resp.json()["detail"]["errors"] == {"email": "Email is required"}
    assert client.get("/onboarding/u1").json()["state"]["currentStep"] == "personal_details"


def test_forward_navigation_conflict(client):
    client.post("/onboarding/u1/relocation-type", json={"relocationType": "gcc"})
    assert client.get("/onboarding/u1/can-navigate/4").json()["allowed"] is False
    resp = client.post("/onboarding/u1/navigate/4")
    assert resp.status_code == 409
    assert resp.json()["detail"]["message"] == "Please complete the current step first"


def test_europe_flow_end_to_end(client, api_store):
    uid = "u2"
    resp = client.post(f"/onboarding/{uid}/relocation-type", json={"relocationType": "europe"})
    assert resp.json()["step"] == "personal_details"

    resp = client.post(f"/onboarding/{uid}/personal-details", json=PERSONAL_DETAILS)
    assert resp.json()["step"] == "visa_check"
    assert resp.json()["stepNumber"] == 3

    for question_id, answer in ELIGIBLE_ANSWERS.items():
        resp = client.post(f"/onboarding/{uid}/visa-check/answer", json={"answer": answer})
        assert resp.status_code == 200, resp.json()
    assert resp.json()["step"] == "visa_result"

    assert client.post(f"/onboarding/{uid}/visa-check/continue").json()["step"] == "payment"
    assert client.post(f"/onboarding/{uid}/payment", json=PAYMENT).json()["step"] == "call"
    assert client.post(f"/onboarding/{uid}/call", json=CALL).json()["step"] == "documents"

    resp = client.post(f"/onboarding/{uid}/documents", json=DOCUMENTS)
    assert resp.status_code == 200
    assert resp.json()["message"] == "Onboarding complete!"

    state = client.get(f"/onboarding/{uid}").json()
    assert state["canAccessDashboard"] is True
    assert state["state"]["visaEligibilityResult"]["eligible"] is True
    assert client.get(f"/onboarding/{uid}/dashboard-access").json() == {"allowed": True}
    assert api_store.is_onboarding_complete(uid)


def test_back_and_reset(client, api_store):
    client.post("/onboarding/u3/relocation-type", json={"relocationType": "gcc"})
    assert client.post("/onboarding/u3/back").json()["step"] == "destination"
    assert client.delete("/onboarding/u3").status_code == 204
    assert api_store.load("u3") is None


def test_store_failure_maps_to_503(client, api_store, monkeypatch):
    def failing_load(user_id):
        raise StateStoreError("connection refused")

    monkeypatch.setattr(api_store, "load", failing_load)
    resp = client.get("/onboarding/u4")
    assert resp.status_code == 503


def test_non_finite_amount_rejected_by_schema(client):
    client.post("/onboarding/u5/relocation-type", json={"relocationType": "gcc"})
    client.post("/onboarding/u5/personal-details", json=PERSONAL_DETAILS)
    resp = client.post("/onboarding/u5/payment", json=dict(PAYMENT, amount="inf"))
    assert resp.status_code == 422
    assert client.get("/onboarding/u5").json()["state"]["currentStep"] == "payment"


def test_reset_store_failure_maps_to_503(client, api_store, monkeypatch):
    def failing_delete(user_id):
        raise StateStoreError("Failed to delete onboarding state: database is locked")

    monkeypatch.setattr(api_store, "delete", failing_delete)
    assert client.delete("/onboarding/u6").status_code == 503
