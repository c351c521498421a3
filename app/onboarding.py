"""Onboarding wizard controller.

Every operation loads the committed state from the injected store, applies one
user action and either saves the new state or returns the reasons it refused.
Form-field state that has not been submitted belongs to the caller.
"""

import logging
import math
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, Mapping, Optional

from .eligibility import (
    LAST_QUESTION_INDEX,
    QUESTION_IDS,
    evaluate,
    score,
    validate_answer,
    validate_answers,
)
from .schemas import OnboardingState
from .steps import (
    DEFAULT_BRANCH,
    REQUIRED_STEPS,
    Branch,
    Step,
    belongs_to,
    next_step,
    position_of,
    previous_step,
    step_at,
)
from .store import StateStore

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

PERSONAL_FIELDS = {
    "fullName": "Full name is required",
    "email": "Email is required",
    "telephone": "Telephone is required",
    "street": "Street address is required",
    "city": "City is required",
    "state": "State/Province is required",
    "zip": "ZIP code is required",
    "country": "Country is required",
}
ADDRESS_FIELDS = ("street", "city", "state", "zip", "country")

PAYMENT_METHODS = {"paypal", "tilopay", "free"}

VALIDATION = "validation"
NAVIGATION = "navigation"

COMPLETE_CURRENT_STEP = "Please complete the current step first"
SELECT_DESTINATION_FIRST = "Please select your destination (GCC or Europe) first."
ALREADY_COMPLETED = "Onboarding already completed"


@dataclass
class StepResult:
    ok: bool
    step: Step
    state: OnboardingState
    errors: Dict[str, str] = field(default_factory=dict)
    message: Optional[str] = None
    violation: Optional[str] = None


# --- Progress indicator ---

def current_step_number(state: OnboardingState) -> int:
    return position_of(state.relocation_type, state.current_step)


def step_name(state: OnboardingState) -> str:
    return state.current_step.display_name


def can_navigate_to(state: OnboardingState, target: int) -> bool:
    """Step indicator clicks may only go back to the current or an earlier step."""
    return target <= current_step_number(state)


def is_onboarding_complete(state: OnboardingState) -> bool:
    if state.relocation_type is None:
        return False
    return all(s in state.completed_steps for s in REQUIRED_STEPS[state.relocation_type])


def can_access_dashboard(state: OnboardingState) -> bool:
    return Step.DOCUMENTS in state.completed_steps


# --- Step-local validation ---

def _text(payload: Mapping, key: str) -> str:
    value = payload.get(key)
    return "" if value is None else str(value).strip()


def validate_personal_details(payload: Mapping) -> Dict[str, str]:
    flat = dict(payload)
    address = payload.get("address")
    if isinstance(address, Mapping):
        for key in ADDRESS_FIELDS:
            flat.setdefault(key, address.get(key))

    errors: Dict[str, str] = {}
    for key, message in PERSONAL_FIELDS.items():
        if not _text(flat, key):
            errors[key] = message

    email = _text(flat, "email")
    if email and not EMAIL_RE.match(email):
        errors["email"] = "Please enter a valid email address"
    return errors


def validate_payment(payload: Mapping) -> Dict[str, str]:
    errors: Dict[str, str] = {}
    if not _text(payload, "plan"):
        errors["plan"] = "Please select a plan"

    method = _text(payload, "paymentMethod").lower()
    if method not in PAYMENT_METHODS:
        errors["paymentMethod"] = f"Payment method must be one of {', '.join(sorted(PAYMENT_METHODS))}"

    amount = payload.get("amount")
    try:
        amount = float(amount)
    except (TypeError, ValueError):
        errors["amount"] = "Amount is required"
        return errors
    if not math.isfinite(amount):
        errors["amount"] = "Amount must be a finite number"
    elif amount < 0:
        errors["amount"] = "Amount cannot be negative"
    elif amount > 0 and not _text(payload, "transactionId"):
        errors["transactionId"] = "Transaction ID is required for paid plans"
    return errors


def validate_call(payload: Mapping) -> Dict[str, str]:
    errors: Dict[str, str] = {}
    if not _text(payload, "date"):
        errors["date"] = "Please select a date for your onboarding call"
    if not _text(payload, "time"):
        errors["time"] = "Please select a time for your onboarding call"
    return errors


def validate_documents(payload: Mapping) -> Dict[str, str]:
    errors: Dict[str, str] = {}
    if not _text(payload, "passport"):
        errors["passport"] = "Please upload your passport copy"
    for key in ("educationalCertificates", "experienceLetters"):
        value = payload.get(key) or []
        if not isinstance(value, (list, tuple)) or not all(isinstance(v, str) and v.strip() for v in value):
            errors[key] = "Must be a list of uploaded file paths"
    return errors


class OnboardingController:

    def __init__(self, store: StateStore, on_complete: Optional[Callable[[str], None]] = None):
        self.store = store
        self.on_complete = on_complete

    # --- state access ---

    def get_state(self, user_id: str) -> OnboardingState:
        state = self.store.load(user_id)
        if state is None:
            return OnboardingState(user_id=user_id)
        if state.relocation_type == Branch.GCC and state.current_step in (Step.VISA_CHECK, Step.VISA_RESULT):
            logger.warning("GCC user %s found on visa step, moving to payment", user_id)
            state.current_step = Step.PAYMENT
            self._save(state)
        return state

    def _save(self, state: OnboardingState) -> OnboardingState:
        state.updated_at = datetime.now(timezone.utc)
        self.store.save(state.user_id, state)
        return state

    def _advance(self, state: OnboardingState, completed: Step) -> StepResult:
        branch = state.relocation_type or DEFAULT_BRANCH
        state.completed_steps.add(completed)
        state.current_step = next_step(branch, completed)
        self._save(state)
        logger.info("User %s completed %s, now at %s", state.user_id, completed.value, state.current_step.value)
        return StepResult(ok=True, step=state.current_step, state=state)

    @staticmethod
    def _refuse(state: OnboardingState, message: str, violation: str = NAVIGATION,
                errors: Optional[Dict[str, str]] = None) -> StepResult:
        return StepResult(ok=False, step=state.current_step, state=state, errors=errors or {},
                          message=message, violation=violation)

    def _guard(self, state: OnboardingState, step: Step) -> Optional[StepResult]:
        """Refusal for submitting `step` in the current state, or None when allowed."""
        if state.onboarding_complete:
            return self._refuse(state, ALREADY_COMPLETED)
        if step != Step.DESTINATION and state.relocation_type is None:
            return self._refuse(state, SELECT_DESTINATION_FIRST)
        if not belongs_to(state.relocation_type, step):
            return self._refuse(state, f"{step.display_name} is not part of the {state.relocation_type.value} track")
        if position_of(state.relocation_type, step) > current_step_number(state):
            return self._refuse(state, COMPLETE_CURRENT_STEP)
        return None

    # --- step actions ---

    def select_relocation_type(self, user_id: str, relocation_type) -> StepResult:
        state = self.get_state(user_id)
        refusal = self._guard(state, Step.DESTINATION)
        if refusal:
            return refusal
        try:
            branch = Branch(relocation_type)
        except ValueError:
            message = "Please choose either Europe or GCC"
            return self._refuse(state, message, VALIDATION, {"relocationType": message})

        if state.relocation_type is not None and state.relocation_type != branch:
            logger.info("User %s switched from %s to %s, restarting", user_id,
                        state.relocation_type.value, branch.value)
            state.completed_steps = set()
            state.visa_question_index = 0
            state.visa_answers = {}
            state.visa_check = {}
            state.visa_eligibility_result = None
        state.relocation_type = branch
        return self._advance(state, Step.DESTINATION)

    def submit_personal_details(self, user_id: str, payload: Mapping) -> StepResult:
        state = self.get_state(user_id)
        refusal = self._guard(state, Step.PERSONAL_DETAILS)
        if refusal:
            if state.relocation_type is None:
                refusal.step = Step.DESTINATION
            return refusal

        errors = validate_personal_details(payload)
        if errors:
            return self._refuse(state, "Please correct the highlighted fields", VALIDATION, errors)

        address = payload.get("address") if isinstance(payload.get("address"), Mapping) else {}
        state.personal_details = {
            "fullName": _text(payload, "fullName"),
            "email": _text(payload, "email"),
            "telephone": _text(payload, "telephone"),
            "address": {
                key: _text(payload, key) or _text(address, key) for key in ADDRESS_FIELDS
            },
        }
        if state.relocation_type == Branch.EUROPE:
            state.visa_question_index = 0
        return self._advance(state, Step.PERSONAL_DETAILS)

    def answer_visa_question(self, user_id: str, answer: str) -> StepResult:
        state = self.get_state(user_id)
        refusal = self._guard(state, Step.VISA_CHECK)
        if refusal:
            return refusal
        if state.current_step != Step.VISA_CHECK:
            return self._refuse(state, "The visa questionnaire is not open")

        index = state.visa_question_index
        question_id = QUESTION_IDS[index]
        message = validate_answer(question_id, answer)
        if message:
            return self._refuse(state, message, VALIDATION, {question_id: message})

        answers = dict(state.visa_answers)
        answers[question_id] = answer
        if index < LAST_QUESTION_INDEX:
            state.visa_answers = answers
            state.visa_question_index = index + 1
            self._save(state)
            return StepResult(ok=True, step=Step.VISA_CHECK, state=state)

        v = validate_answers(answers)
        if not v.ok:
            return self._refuse(state, "Please answer every question", VALIDATION, v.errors)

        verdict = evaluate(answers)
        points = score(answers)
        state.visa_answers = answers
        state.visa_check = {q: answers[q] for q in QUESTION_IDS}
        state.visa_eligibility_result = {
            **verdict.to_dict(),
            "score": points,
            "status": "eligible" if verdict.eligible else "not_eligible",
        }
        logger.info("Visa check for %s: eligible=%s score=%s", user_id, verdict.eligible, points)
        return self._advance(state, Step.VISA_CHECK)

    def continue_from_result(self, user_id: str) -> StepResult:
        state = self.get_state(user_id)
        if state.onboarding_complete:
            return self._refuse(state, ALREADY_COMPLETED)
        if state.current_step != Step.VISA_RESULT:
            return self._refuse(state, "There is no visa result to continue from")
        state.current_step = next_step(Branch.EUROPE, Step.VISA_RESULT)
        self._save(state)
        return StepResult(ok=True, step=state.current_step, state=state)

    def submit_payment(self, user_id: str, payload: Mapping) -> StepResult:
        state = self.get_state(user_id)
        refusal = self._guard(state, Step.PAYMENT)
        if refusal:
            return refusal

        errors = validate_payment(payload)
        if errors:
            return self._refuse(state, "Payment details are incomplete", VALIDATION, errors)

        state.payment_details = {
            "plan": _text(payload, "plan"),
            "amount": float(payload["amount"]),
            "currency": _text(payload, "currency") or "USD",
            "transactionId": _text(payload, "transactionId") or None,
            "orderNumber": _text(payload, "orderNumber") or None,
            "paymentMethod": _text(payload, "paymentMethod").lower(),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        return self._advance(state, Step.PAYMENT)

    def schedule_call(self, user_id: str, payload: Mapping) -> StepResult:
        state = self.get_state(user_id)
        refusal = self._guard(state, Step.CALL)
        if refusal:
            return refusal

        errors = validate_call(payload)
        if errors:
            return self._refuse(state, "Please select both date and time for your onboarding call",
                                VALIDATION, errors)

        state.call_details = {
            "date": _text(payload, "date"),
            "time": _text(payload, "time"),
            "timezone": _text(payload, "timezone") or "UTC",
            "scheduledAt": datetime.now(timezone.utc).isoformat(),
        }
        return self._advance(state, Step.CALL)

    def submit_documents(self, user_id: str, payload: Mapping) -> StepResult:
        state = self.get_state(user_id)
        refusal = self._guard(state, Step.DOCUMENTS)
        if refusal:
            return refusal

        errors = validate_documents(payload)
        if errors:
            return self._refuse(state, errors.get("passport", "Invalid documents"), VALIDATION, errors)

        state.documents = {
            "passport": _text(payload, "passport"),
            "educationalCertificates": [p.strip() for p in payload.get("educationalCertificates") or []],
            "experienceLetters": [p.strip() for p in payload.get("experienceLetters") or []],
            "jobOffer": _text(payload, "jobOffer") or None,
        }
        # profile flag first so a failed unlock leaves the step open for a retry
        if self.on_complete is not None:
            self.on_complete(user_id)
        state.onboarding_complete = True
        result = self._advance(state, Step.DOCUMENTS)
        result.message = "Onboarding complete!"
        return result

    # --- navigation ---

    def back(self, user_id: str) -> StepResult:
        state = self.get_state(user_id)
        if state.onboarding_complete:
            return self._refuse(state, ALREADY_COMPLETED)
        branch = state.relocation_type or DEFAULT_BRANCH
        current = state.current_step

        if current == Step.DESTINATION:
            return self._refuse(state, "Already at the first step")
        if current == Step.VISA_CHECK and state.visa_question_index > 0:
            state.visa_question_index -= 1
        elif current == Step.VISA_RESULT:
            state.current_step = Step.VISA_CHECK
            state.visa_question_index = LAST_QUESTION_INDEX
        else:
            state.current_step = previous_step(branch, current)
            if state.current_step == Step.VISA_CHECK:
                state.visa_question_index = 0
        self._save(state)
        return StepResult(ok=True, step=state.current_step, state=state)

    def navigate_to(self, user_id: str, target: int) -> StepResult:
        state = self.get_state(user_id)
        if state.onboarding_complete:
            return self._refuse(state, ALREADY_COMPLETED)
        if not can_navigate_to(state, target):
            return self._refuse(state, COMPLETE_CURRENT_STEP)
        try:
            destination = step_at(state.relocation_type, target)
        except ValueError as e:
            return self._refuse(state, str(e))

        state.current_step = destination
        if destination == Step.VISA_CHECK:
            state.visa_question_index = 0
        self._save(state)
        return StepResult(ok=True, step=destination, state=state)

    def reset(self, user_id: str) -> None:
        self.store.delete(user_id)
        logger.info("Onboarding reset for %s", user_id)
