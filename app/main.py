import logging
from typing import Any, Dict, List

import uvicorn
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, RedirectResponse, Response

from . import config
from .db import init_db
from .eligibility import (
    VISA_QUESTIONS,
    evaluate,
    persist_decision,
    score,
    validate_answers,
)
from .logger import log_payload
from .onboarding import (
    NAVIGATION,
    OnboardingController,
    StepResult,
    can_access_dashboard,
    can_navigate_to,
    current_step_number,
    step_name,
)
from .schemas import (
    CallInput,
    DocumentsInput,
    EligibilityOutput,
    PaymentInput,
    PersonalDetailsInput,
    RelocationTypeInput,
    StateOutput,
    StepOutput,
    VisaAnswerInput,
    VisaCheckInput,
    VisaQuestion,
)
from .steps import total_steps
from .store import SqliteStateStore, StateStoreError

logger = logging.getLogger(__name__)

app = FastAPI(title=config.APP_TITLE, version="1.0.0")

# Initialize DB at import time
init_db()

_store = SqliteStateStore()
_controller = OnboardingController(_store, on_complete=_store.mark_onboarding_complete)


def get_controller() -> OnboardingController:
    return _controller


@app.exception_handler(StateStoreError)
async def state_store_error_handler(request: Request, exc: StateStoreError):
    logger.error("State store failure on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": "Onboarding data is temporarily unavailable"})


# --- Convenience routes ---
@app.get("/", include_in_schema=False)
def home():
    return RedirectResponse(url="/docs", status_code=307)

@app.get("/health", include_in_schema=False)
def health():
    return {"status": "healthy"}

@app.get("/favicon.ico", include_in_schema=False)
def favicon():
    # Avoid 404 log spam from browsers requesting a favicon.
    return Response(status_code=204)
# --- End convenience routes ---


@app.get("/visa/questions", response_model=List[VisaQuestion])
def visa_questions():
    return VISA_QUESTIONS


@app.post("/visa/eligibility", response_model=EligibilityOutput)
def check_eligibility(payload: VisaCheckInput):
    answers: Dict[str, Any] = payload.model_dump(by_alias=True)
    log_payload("in", answers)

    v = validate_answers(answers)
    if not v.ok:
        log_payload("out", {"eligible": False, "errors": v.errors})
        raise HTTPException(status_code=422, detail=v.errors)

    try:
        verdict = evaluate(answers)
        points = score(answers)
        response = {**verdict.to_dict(), "score": points}
        persist_decision(answers, verdict, points)
        log_payload("out", response)
        return JSONResponse(content=response)
    except Exception as e:
        logger.exception("Eligibility check failed")
        log_payload("out", {"eligible": False, "reasons": [f"Internal error: {str(e)}"]})
        raise HTTPException(status_code=500, detail="Internal Server Error")


# --- Onboarding wizard ---

def _step_response(result: StepResult) -> dict:
    out = StepOutput(
        ok=result.ok,
        step=result.step,
        step_number=current_step_number(result.state),
        total_steps=total_steps(result.state.relocation_type),
        step_name=step_name(result.state),
        visa_question_index=result.state.visa_question_index,
        errors=result.errors,
        message=result.message,
    ).model_dump(mode="json", by_alias=True)
    log_payload("out", {"userId": result.state.user_id, **out})
    if not result.ok:
        status = 409 if result.violation == NAVIGATION else 422
        raise HTTPException(status_code=status, detail={"errors": result.errors, "message": result.message})
    return out


@app.get("/onboarding/{user_id}", response_model=StateOutput)
def get_onboarding(user_id: str, controller: OnboardingController = Depends(get_controller)):
    state = controller.get_state(user_id)
    return StateOutput(
        state=state,
        step_number=current_step_number(state),
        total_steps=total_steps(state.relocation_type),
        step_name=step_name(state),
        can_access_dashboard=can_access_dashboard(state),
    )


@app.post("/onboarding/{user_id}/relocation-type")
def select_relocation_type(user_id: str, payload: RelocationTypeInput,
                           controller: OnboardingController = Depends(get_controller)):
    log_payload("in", {"userId": user_id, **payload.model_dump(mode="json", by_alias=True)})
    return _step_response(controller.select_relocation_type(user_id, payload.relocation_type))


@app.post("/onboarding/{user_id}/personal-details")
def submit_personal_details(user_id: str, payload: PersonalDetailsInput,
                            controller: OnboardingController = Depends(get_controller)):
    body = payload.model_dump(by_alias=True)
    log_payload("in", {"userId": user_id, **body})
    return _step_response(controller.submit_personal_details(user_id, body))


@app.post("/onboarding/{user_id}/visa-check/answer")
def answer_visa_question(user_id: str, payload: VisaAnswerInput,
                         controller: OnboardingController = Depends(get_controller)):
    log_payload("in", {"userId": user_id, "answer": payload.answer})
    return _step_response(controller.answer_visa_question(user_id, payload.answer))


@app.post("/onboarding/{user_id}/visa-check/continue")
def continue_from_result(user_id: str, controller: OnboardingController = Depends(get_controller)):
    return _step_response(controller.continue_from_result(user_id))


@app.post("/onboarding/{user_id}/payment")
def submit_payment(user_id: str, payload: PaymentInput,
                   controller: OnboardingController = Depends(get_controller)):
    body = payload.model_dump(by_alias=True)
    log_payload("in", {"userId": user_id, **body})
    return _step_response(controller.submit_payment(user_id, body))


@app.post("/onboarding/{user_id}/call")
def schedule_call(user_id: str, payload: CallInput,
                  controller: OnboardingController = Depends(get_controller)):
    body = payload.model_dump(by_alias=True)
    log_payload("in", {"userId": user_id, **body})
    return _step_response(controller.schedule_call(user_id, body))


@app.post("/onboarding/{user_id}/documents")
def submit_documents(user_id: str, payload: DocumentsInput,
                     controller: OnboardingController = Depends(get_controller)):
    body = payload.model_dump(by_alias=True)
    log_payload("in", {"userId": user_id, **body})
    return _step_response(controller.submit_documents(user_id, body))


@app.post("/onboarding/{user_id}/back")
def back(user_id: str, controller: OnboardingController = Depends(get_controller)):
    return _step_response(controller.back(user_id))


@app.get("/onboarding/{user_id}/can-navigate/{target}")
def can_navigate(user_id: str, target: int, controller: OnboardingController = Depends(get_controller)):
    state = controller.get_state(user_id)
    return {"target": target, "allowed": can_navigate_to(state, target)}


@app.post("/onboarding/{user_id}/navigate/{target}")
def navigate(user_id: str, target: int, controller: OnboardingController = Depends(get_controller)):
    return _step_response(controller.navigate_to(user_id, target))


@app.get("/onboarding/{user_id}/dashboard-access")
def dashboard_access(user_id: str, controller: OnboardingController = Depends(get_controller)):
    state = controller.get_state(user_id)
    allowed = can_access_dashboard(state) and controller.store.is_onboarding_complete(user_id)
    return {"allowed": allowed}


@app.delete("/onboarding/{user_id}", status_code=204)
def reset_onboarding(user_id: str, controller: OnboardingController = Depends(get_controller)):
    controller.reset(user_id)
    return Response(status_code=204)


if __name__ == "__main__":
    uvicorn.run("app.main:app", host="0.0.0.0", port=8000, reload=False)
