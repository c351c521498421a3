from datetime import datetime
from typing import Any, Dict, List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .steps import Branch, Step


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Visa questionnaire ---

class VisaCheckInput(BaseModel):
    """Answer set as sent by the quiz. Missing answers are reported per field."""

    model_config = ConfigDict(populate_by_name=True)

    stay_longer_than_90_days: Optional[str] = Field(None, alias="stayLongerThan90Days")
    citizenship: Optional[str] = None
    english_level: Optional[str] = Field(None, alias="englishLevel")
    job_offer: Optional[str] = Field(None, alias="jobOffer")
    education: Optional[str] = None
    special_regulation: Optional[str] = Field(None, alias="specialRegulation")
    education_country: Optional[str] = Field(None, alias="educationCountry")
    degree_recognized: Optional[str] = Field(None, alias="degreeRecognized")
    work_experience: Optional[str] = Field(None, alias="workExperience")


class EligibilityOutput(BaseModel):
    eligible: bool
    reasons: List[str]
    recommendation: str
    score: int = Field(..., ge=0, le=100)


class QuestionOption(BaseModel):
    value: str
    label: str


class VisaQuestion(BaseModel):
    id: str
    question: str
    options: List[QuestionOption]


# --- Step payloads ---

class RelocationTypeInput(CamelModel):
    relocation_type: Branch


class PersonalDetailsInput(CamelModel):
    full_name: str = ""
    email: str = ""
    telephone: str = ""
    street: str = ""
    city: str = ""
    state: str = ""
    zip: str = ""
    country: str = ""


class VisaAnswerInput(CamelModel):
    answer: str = ""


class PaymentInput(CamelModel):
    plan: str = ""
    payment_method: str = ""
    amount: Optional[float] = Field(None, allow_inf_nan=False)
    currency: str = "USD"
    transaction_id: str = ""
    order_number: Optional[str] = None


class CallInput(CamelModel):
    date: str = ""
    time: str = ""
    timezone: str = "UTC"


class DocumentsInput(CamelModel):
    passport: Optional[str] = None
    educational_certificates: List[str] = Field(default_factory=list)
    experience_letters: List[str] = Field(default_factory=list)
    job_offer: Optional[str] = None


# --- Persisted state ---

class OnboardingState(CamelModel):
    """Committed onboarding record for one user."""

    user_id: str
    relocation_type: Optional[Branch] = None
    current_step: Step = Step.DESTINATION
    completed_steps: Set[Step] = Field(default_factory=set)
    visa_question_index: int = Field(0, ge=0, le=8)
    visa_answers: Dict[str, str] = Field(default_factory=dict)
    personal_details: Dict[str, Any] = Field(default_factory=dict)
    visa_check: Dict[str, str] = Field(default_factory=dict)
    visa_eligibility_result: Optional[Dict[str, Any]] = None
    payment_details: Dict[str, Any] = Field(default_factory=dict)
    call_details: Dict[str, Any] = Field(default_factory=dict)
    documents: Dict[str, Any] = Field(default_factory=dict)
    onboarding_complete: bool = False
    updated_at: Optional[datetime] = None


class StepOutput(CamelModel):
    ok: bool
    step: Step
    step_number: int
    total_steps: int
    step_name: str
    visa_question_index: int
    errors: Dict[str, str] = Field(default_factory=dict)
    message: Optional[str] = None


class StateOutput(CamelModel):
    state: OnboardingState
    step_number: int
    total_steps: int
    step_name: str
    can_access_dashboard: bool
