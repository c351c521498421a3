"""Onboarding steps, relocation branches and the transition tables between them."""

from enum import Enum
from typing import Dict, List, Optional, Tuple


class Branch(str, Enum):
    """Relocation track chosen on the destination step."""

    EUROPE = "europe"
    GCC = "gcc"


class Step(str, Enum):
    """Wizard screens. VISA_RESULT is a display-only sub-step of VISA_CHECK."""

    DESTINATION = "destination"
    PERSONAL_DETAILS = "personal_details"
    VISA_CHECK = "visa_check"
    VISA_RESULT = "visa_result"
    PAYMENT = "payment"
    CALL = "call"
    DOCUMENTS = "documents"

    @property
    def legacy_id(self) -> float:
        """Numeric identifier used by the first version of the wizard."""
        return LEGACY_IDS[self]

    @property
    def display_name(self) -> str:
        return STEP_NAMES[self]


LEGACY_IDS: Dict[Step, float] = {
    Step.DESTINATION: 0,
    Step.PERSONAL_DETAILS: 1,
    Step.VISA_CHECK: 2,
    Step.VISA_RESULT: 2.5,
    Step.PAYMENT: 3,
    Step.CALL: 4,
    Step.DOCUMENTS: 5,
}

STEP_NAMES: Dict[Step, str] = {
    Step.DESTINATION: "Destination",
    Step.PERSONAL_DETAILS: "Personal Details",
    Step.VISA_CHECK: "Visa Check",
    Step.VISA_RESULT: "Visa Check",
    Step.PAYMENT: "Payment",
    Step.CALL: "Schedule Call",
    Step.DOCUMENTS: "Upload Documents",
}

# Steps shown in the progress bar, in order. Position = index + 1.
BRANCH_SEQUENCE: Dict[Branch, List[Step]] = {
    Branch.EUROPE: [
        Step.DESTINATION,
        Step.PERSONAL_DETAILS,
        Step.VISA_CHECK,
        Step.PAYMENT,
        Step.CALL,
        Step.DOCUMENTS,
    ],
    Branch.GCC: [
        Step.DESTINATION,
        Step.PERSONAL_DETAILS,
        Step.PAYMENT,
        Step.CALL,
        Step.DOCUMENTS,
    ],
}

NEXT_STEP: Dict[Tuple[Branch, Step], Step] = {
    (Branch.EUROPE, Step.DESTINATION): Step.PERSONAL_DETAILS,
    (Branch.EUROPE, Step.PERSONAL_DETAILS): Step.VISA_CHECK,
    (Branch.EUROPE, Step.VISA_CHECK): Step.VISA_RESULT,
    (Branch.EUROPE, Step.VISA_RESULT): Step.PAYMENT,
    (Branch.EUROPE, Step.PAYMENT): Step.CALL,
    (Branch.EUROPE, Step.CALL): Step.DOCUMENTS,
    (Branch.EUROPE, Step.DOCUMENTS): Step.DOCUMENTS,
    (Branch.GCC, Step.DESTINATION): Step.PERSONAL_DETAILS,
    (Branch.GCC, Step.PERSONAL_DETAILS): Step.PAYMENT,
    (Branch.GCC, Step.PAYMENT): Step.CALL,
    (Branch.GCC, Step.CALL): Step.DOCUMENTS,
    (Branch.GCC, Step.DOCUMENTS): Step.DOCUMENTS,
}

PREVIOUS_STEP: Dict[Tuple[Branch, Step], Step] = {
    (Branch.EUROPE, Step.PERSONAL_DETAILS): Step.DESTINATION,
    (Branch.EUROPE, Step.VISA_CHECK): Step.PERSONAL_DETAILS,
    (Branch.EUROPE, Step.VISA_RESULT): Step.VISA_CHECK,
    (Branch.EUROPE, Step.PAYMENT): Step.VISA_CHECK,
    (Branch.EUROPE, Step.CALL): Step.PAYMENT,
    (Branch.EUROPE, Step.DOCUMENTS): Step.CALL,
    (Branch.GCC, Step.PERSONAL_DETAILS): Step.DESTINATION,
    (Branch.GCC, Step.PAYMENT): Step.PERSONAL_DETAILS,
    (Branch.GCC, Step.CALL): Step.PAYMENT,
    (Branch.GCC, Step.DOCUMENTS): Step.CALL,
}

# Steps that must be completed before onboarding counts as done
REQUIRED_STEPS: Dict[Branch, List[Step]] = {
    Branch.EUROPE: [
        Step.PERSONAL_DETAILS,
        Step.VISA_CHECK,
        Step.PAYMENT,
        Step.CALL,
        Step.DOCUMENTS,
    ],
    Branch.GCC: [
        Step.PERSONAL_DETAILS,
        Step.PAYMENT,
        Step.CALL,
        Step.DOCUMENTS,
    ],
}

# Until a destination is picked the bar is drawn for the longer track
DEFAULT_BRANCH = Branch.EUROPE


def next_step(branch: Branch, step: Step) -> Step:
    return NEXT_STEP[(branch, step)]


def previous_step(branch: Branch, step: Step) -> Optional[Step]:
    return PREVIOUS_STEP.get((branch, step))


def belongs_to(branch: Optional[Branch], step: Step) -> bool:
    """True when `step` is reachable on `branch`."""
    branch = branch or DEFAULT_BRANCH
    if step == Step.VISA_RESULT:
        return branch == Branch.EUROPE
    return step in BRANCH_SEQUENCE[branch]


def total_steps(branch: Optional[Branch]) -> int:
    return len(BRANCH_SEQUENCE[branch or DEFAULT_BRANCH])


def position_of(branch: Optional[Branch], step: Step) -> int:
    """1-based position of `step` in the progress bar of `branch`.

    VISA_RESULT shares its position with VISA_CHECK.
    """
    sequence = BRANCH_SEQUENCE[branch or DEFAULT_BRANCH]
    if step == Step.VISA_RESULT:
        step = Step.VISA_CHECK
    if step not in sequence:
        raise ValueError(f"Step {step.value} is not part of the {(branch or DEFAULT_BRANCH).value} track.")
    return sequence.index(step) + 1


def step_at(branch: Optional[Branch], position: int) -> Step:
    sequence = BRANCH_SEQUENCE[branch or DEFAULT_BRANCH]
    if not 1 <= position <= len(sequence):
        raise ValueError(f"Position {position} is outside 1..{len(sequence)}.")
    return sequence[position - 1]
