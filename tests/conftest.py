"""Pytest configuration and fixtures for test suite."""

import os
import tempfile
from pathlib import Path

import pytest

# Point the app at a throwaway database BEFORE any app imports
_tmp_dir = tempfile.mkdtemp(prefix="onboarding-tests-")
os.environ["DB_PATH"] = str(Path(_tmp_dir) / "test.sqlite3")

from app.onboarding import OnboardingController  # noqa: E402
from app.store import InMemoryStateStore  # noqa: E402


ELIGIBLE_ANSWERS = {
    "stayLongerThan90Days": "yes",
    "citizenship": "non-eu",
    "englishLevel": "fluent",
    "jobOffer": "have-job",
    "education": "university-degree",
    "specialRegulation": "none",
    "educationCountry": "germany",
    "degreeRecognized": "yes",
    "workExperience": "3plus",
}

INELIGIBLE_ANSWERS = {
    "stayLongerThan90Days": "no",
    "citizenship": "eu-country",
    "englishLevel": "not-speak",
    "jobOffer": "nothing-mentioned",
    "education": "none",
    "specialRegulation": "none",
    "educationCountry": "outside-germany",
    "degreeRecognized": "no",
    "workExperience": "0-2",
}

PERSONAL_DETAILS = {
    "fullName": "Amara Okafor",
    "email": "amara@example.com",
    "telephone": "+234 800 000 0000",
    "street": "12 Marina Road",
    "city": "Lagos",
    "state": "Lagos",
    "zip": "101001",
    "country": "NG",
}

PAYMENT = {
    "plan": "premium",
    "paymentMethod": "paypal",
    "amount": 499.0,
    "currency": "USD",
    "transactionId": "TX-123",
}

CALL = {"date": "2026-11-02", "time": "10:30", "timezone": "Europe/Berlin"}

DOCUMENTS = {
    "passport": "user-1/passport.pdf",
    "educationalCertificates": ["user-1/degree.pdf"],
    "experienceLetters": [],
    "jobOffer": None,
}


@pytest.fixture
def eligible_answers():
    return dict(ELIGIBLE_ANSWERS)


@pytest.fixture
def ineligible_answers():
    return dict(INELIGIBLE_ANSWERS)


@pytest.fixture
def store():
    return InMemoryStateStore()


@pytest.fixture
def completions():
    return []


@pytest.fixture
def controller(store, completions):
    return OnboardingController(store, on_complete=completions.append)
