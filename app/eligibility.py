"""EU Blue Card (Germany) eligibility rules for the visa questionnaire."""

import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Mapping

import numpy as np
import pandas as pd

from .db import get_conn

# Questionnaire in the order the quiz presents it; index = visa question step
VISA_QUESTIONS = [
    {
        "id": "stayLongerThan90Days",
        "question": "Would you like to stay in Germany for longer than 90 days?",
        "options": [
            {"value": "no", "label": "No"},
            {"value": "yes", "label": "Yes"},
        ],
    },
    {
        "id": "citizenship",
        "question": "Which answer applies to your citizenship or passport?",
        "options": [
            {"value": "non-eu", "label": "NON-EU Third Country"},
            {"value": "eu-country", "label": "EU country, Liechtenstein, Iceland or Switzerland"},
            {"value": "visa-exempt", "label": "Andorra, Australia, Brazil, El Salvador, Honduras, Canada, Israel, Japan, Monaco, New Zealand, Republic of Korea, San Marino, USA, or United Kingdom"},
        ],
    },
    {
        "id": "englishLevel",
        "question": "How well do you speak English for professional work?",
        "options": [
            {"value": "fluent", "label": "I use English fluently in my current or previous job"},
            {"value": "basic", "label": "I can communicate in English at a basic level"},
            {"value": "learning", "label": "I am learning but not yet able to work in English"},
            {"value": "not-speak", "label": "I do not speak English"},
        ],
    },
    {
        "id": "jobOffer",
        "question": "Do you have a binding Job Offer/Employment Contract in Germany?",
        "options": [
            {"value": "have-job", "label": "Yes, I already have a Job in Germany"},
            {"value": "getting-job", "label": "No, I'm planning to get a Job before relocating to Germany"},
            {"value": "search-in-germany", "label": "No, I'm planning to search for a Job once I'm in Germany"},
            {"value": "nothing-mentioned", "label": "Nothing above mentioned"},
        ],
    },
    {
        "id": "education",
        "question": "What is your highest educational qualification?",
        "options": [
            {"value": "university-degree", "label": "University Degree (Bachelor's, Master's, or equivalent)"},
            {"value": "vocational-training", "label": "Vocational Training (2+ years formal job training)"},
            {"value": "tertiary-education", "label": "Degree from tertiary education programme"},
            {"value": "it-experience-2years", "label": "2+ years proven IT experience in last 5 years"},
            {"value": "it-experience-3years", "label": "3+ years proven IT experience in last 7 years"},
            {"value": "none", "label": "None of the above"},
        ],
    },
    {
        "id": "specialRegulation",
        "question": "Is there a special regulation for your employment relationship in Germany?",
        "options": [
            {"value": "internal-transfer", "label": "Yes, I'm being sent to a German subsidiary (internal transfer)"},
            {"value": "placement-agreement", "label": "Yes, I have a placement agreement with approval certificate"},
            {"value": "none", "label": "No, none apply"},
        ],
    },
    {
        "id": "educationCountry",
        "question": "In which country did you obtain your educational qualification?",
        "options": [
            {"value": "germany", "label": "Germany"},
            {"value": "outside-germany", "label": "Outside Germany"},
        ],
    },
    {
        "id": "degreeRecognized",
        "question": "Is your degree recognised in Germany?",
        "options": [
            {"value": "yes", "label": "Yes"},
            {"value": "no", "label": "No"},
        ],
    },
    {
        "id": "workExperience",
        "question": "How many years of full-time experience do you have in your current profession?",
        "options": [
            {"value": "0-2", "label": "0–2 years"},
            {"value": "3plus", "label": "3+ years"},
        ],
    },
]

QUESTION_IDS = [q["id"] for q in VISA_QUESTIONS]
LAST_QUESTION_INDEX = len(VISA_QUESTIONS) - 1

OPTIONS_DF = pd.DataFrame(
    [{"question": q["id"], "answer": o["value"]} for q in VISA_QUESTIONS for o in q["options"]]
)

# Partial credit per answer; anything missing scores zero
SCORE_TABLE = [
    ("stayLongerThan90Days", "yes", 1.0),
    ("citizenship", "non-eu", 1.0),
    ("englishLevel", "fluent", 1.0),
    ("englishLevel", "basic", 0.7),
    ("jobOffer", "have-job", 1.0),
    ("jobOffer", "getting-job", 0.8),
    ("education", "university-degree", 1.0),
    ("education", "vocational-training", 0.9),
    ("education", "tertiary-education", 0.9),
    ("education", "it-experience-2years", 0.8),
    ("education", "it-experience-3years", 0.8),
    ("specialRegulation", "internal-transfer", 1.0),
    ("specialRegulation", "placement-agreement", 1.0),
    ("specialRegulation", "none", 0.7),
    ("educationCountry", "germany", 1.0),
    ("educationCountry", "outside-germany", 0.5),
    ("degreeRecognized", "yes", 1.0),
    ("workExperience", "3plus", 1.0),
    ("workExperience", "0-2", 0.6),
]
SCORE_DF = pd.DataFrame(SCORE_TABLE, columns=["question", "answer", "credit"])

MAX_SCORE = 100
POINTS_PER_QUESTION = MAX_SCORE / len(VISA_QUESTIONS)

ELIGIBLE_RECOMMENDATION = (
    "You appear to meet the basic requirements for an EU Blue Card. Our team will review "
    "your complete application and guide you through the next steps."
)
INELIGIBLE_RECOMMENDATION = (
    "Based on your responses, you may not currently qualify for an EU Blue Card. Please "
    "schedule a consultation with our team to explore alternative visa options or ways to "
    "improve your eligibility."
)


class IncompleteAnswerSetError(ValueError):
    """Raised when the rules are run on an answer set that failed validation."""

    def __init__(self, errors: Dict[str, str]):
        self.errors = errors
        super().__init__("Incomplete visa answer set: " + ", ".join(sorted(errors)))


@dataclass
class ValidationResult:
    ok: bool
    errors: Dict[str, str]


@dataclass
class EligibilityVerdict:
    eligible: bool
    reasons: List[str] = field(default_factory=list)
    recommendation: str = ""

    def to_dict(self) -> dict:
        return {
            "eligible": self.eligible,
            "reasons": list(self.reasons),
            "recommendation": self.recommendation,
        }


def allowed_answers(question_id: str) -> List[str]:
    return OPTIONS_DF.loc[OPTIONS_DF["question"] == question_id, "answer"].tolist()


def validate_answer(question_id: str, answer) -> str:
    """Return an error message for a single answer, or '' when it is valid."""
    if question_id not in QUESTION_IDS:
        return f"Unknown question: {question_id}."
    if answer is None or str(answer).strip() == "":
        return "Please select an answer."
    if answer not in allowed_answers(question_id):
        return f"Invalid answer '{answer}': must be one of {', '.join(allowed_answers(question_id))}."
    return ""


def validate_answers(answers: Mapping) -> ValidationResult:
    errors: Dict[str, str] = {}
    for question_id in QUESTION_IDS:
        message = validate_answer(question_id, answers.get(question_id))
        if message:
            errors[question_id] = message
    return ValidationResult(ok=len(errors) == 0, errors=errors)


def _require_complete(answers: Mapping):
    v = validate_answers(answers)
    if not v.ok:
        raise IncompleteAnswerSetError(v.errors)


def evaluate(answers: Mapping) -> EligibilityVerdict:
    """Binary eligibility verdict. Every gating rule is checked so all reasons are collected."""
    _require_complete(answers)

    reasons: List[str] = []
    eligible = True

    if answers["stayLongerThan90Days"] != "yes":
        eligible = False
        reasons.append("You must plan to stay in Germany for longer than 90 days to qualify for an EU Blue Card.")

    # visa-exempt passports can still apply, only EU citizens are turned away
    if answers["citizenship"] == "eu-country":
        eligible = False
        reasons.append("EU citizens do not need an EU Blue Card visa as they have freedom of movement within the EU.")

    if answers["englishLevel"] in ("not-speak", "learning"):
        eligible = False
        reasons.append("You need at least basic professional English skills to work in Germany under the EU Blue Card scheme.")

    if answers["jobOffer"] in ("nothing-mentioned", "search-in-germany"):
        eligible = False
        reasons.append("You must have a binding job offer or employment contract in Germany before applying for an EU Blue Card.")

    if answers["education"] == "none":
        eligible = False
        reasons.append("You must have at least a recognized university degree or equivalent qualification for an EU Blue Card.")

    if answers["educationCountry"] == "outside-germany" and answers["degreeRecognized"] == "no":
        eligible = False
        reasons.append("Your degree must be recognized in Germany. You may need to get it assessed by the ZAB (Central Office for Foreign Education).")

    # specialRegulation and workExperience only feed the score

    return EligibilityVerdict(
        eligible=eligible,
        reasons=reasons,
        recommendation=ELIGIBLE_RECOMMENDATION if eligible else INELIGIBLE_RECOMMENDATION,
    )


def score(answers: Mapping) -> int:
    """Weighted 0-100 score; independent of the verdict."""
    _require_complete(answers)

    given = pd.DataFrame({"question": QUESTION_IDS, "answer": [answers[q] for q in QUESTION_IDS]})
    merged = given.merge(SCORE_DF, on=["question", "answer"], how="left")
    credits = merged["credit"].fillna(0.0).to_numpy(dtype=float)
    total = float(np.sum(credits)) * POINTS_PER_QUESTION
    # half-up rounding, never above the maximum
    return int(min(MAX_SCORE, np.floor(total + 0.5)))


def persist_decision(answers: Mapping, verdict: EligibilityVerdict, points: int) -> str:
    decision_id = str(uuid.uuid4())
    now = datetime.now(timezone.utc).isoformat()
    with get_conn() as conn:
        conn.execute(
            "INSERT INTO decisions(decision_id, eligible, score, reasons, recommendation, answers_json, created_at) VALUES(?,?,?,?,?,?,?)",
            (decision_id, int(verdict.eligible), points, json.dumps(verdict.reasons, ensure_ascii=False),
             verdict.recommendation, json.dumps(dict(answers), ensure_ascii=False), now)
        )
    return decision_id
