"""FastAPI application entrypoint and HTTP controllers.

This module exposes the attempt engine to a presentation layer.
Controllers are intentionally thin: they accept requests, delegate to
services or the live session, and return JSON responses.

Endpoints implemented:
- GET /health
- POST /bank/import
- POST /quizzes
- GET /quizzes/{quiz_id}
- POST /quizzes/{quiz_id}/attempts
- GET /attempts/{session_id}
- PUT /attempts/{session_id}/answers/{question_id}
- POST /attempts/{session_id}/next | /previous | /goto/{index}
- POST /attempts/{session_id}/check/{question_id}
- POST /attempts/{session_id}/submit
- GET /attempts/{session_id}/result
- GET /attempts/{session_id}/report
- GET /analytics/attempts
- GET /analytics/quizzes
"""

import json
import logging
import time
import uuid
from typing import Optional

from fastapi import Depends, FastAPI, File, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from sqlmodel import Session

from . import errors, repositories, services
from .config import preferences, settings
from .database import create_db_and_tables, get_session
from .results import format_report
from .schemas import AnswerIn, QuizIn
from .utils.session_store import SessionStore

app = FastAPI(title="Assessment Engine API")
logger = logging.getLogger("assessment.api")
if not logger.handlers:
    logging.basicConfig(level=settings.LOG_LEVEL)

_sessions = SessionStore(
    max_sessions=settings.MAX_SESSIONS,
    ttl_seconds=settings.SESSION_TTL_SECONDS,
    idle_ttl_seconds=settings.SESSION_IDLE_TTL_SECONDS,
)
attempts = services.AttemptService(_sessions)

if settings.ALLOW_DEV_CORS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

create_db_and_tables()

_STATUS_FOR = {
    errors.NoQuestionsAvailable: 409,
    errors.ConfigurationError: 409,
    errors.UnknownQuiz: 404,
    errors.UnknownSession: 404,
    errors.AnswersHidden: 403,
    errors.ResultUnavailable: 500,
}


@app.exception_handler(errors.AssessmentError)
async def assessment_error_handler(request: Request, exc: errors.AssessmentError):
    status = next((code for cls, code in _STATUS_FOR.items() if isinstance(exc, cls)), 400)
    return JSONResponse(status_code=status, content={"detail": str(exc)})


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
    request.state.request_id = req_id
    started = time.perf_counter()
    response: Response
    try:
        response = await call_next(request)
    except Exception:
        elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
        logger.exception(
            "request_failed %s",
            json.dumps(
                {
                    "request_id": req_id,
                    "path": request.url.path,
                    "method": request.method,
                    "duration_ms": elapsed_ms,
                },
                ensure_ascii=True,
            ),
        )
        raise
    response.headers["X-Request-ID"] = req_id
    elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
    logger.info(
        "request_done %s",
        json.dumps(
            {
                "request_id": req_id,
                "path": request.url.path,
                "method": request.method,
                "status_code": response.status_code,
                "duration_ms": elapsed_ms,
            },
            ensure_ascii=True,
        ),
    )
    return response


@app.get("/health")
def health():
    """Lightweight health check for uptime monitoring."""
    return {"status": "ok", "live_sessions": len(_sessions)}


@app.post("/bank/import")
def import_bank(file: UploadFile = File(...), db: Session = Depends(get_session)):
    """Upload a JSON question bank and import its topics and questions.

    Returns a JSON summary with created/skipped counts, the topic ids and
    any per-question validation errors.
    """
    if not file.filename:
        raise HTTPException(status_code=400, detail="no file")
    content = file.file.read(settings.MAX_UPLOAD_BYTES + 1)
    if len(content) > settings.MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=400, detail="file too large")
    svc = services.ImportService(db)
    try:
        res = svc.import_bank(content, file.filename)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return res


@app.post("/quizzes", status_code=201)
def create_quiz(payload: QuizIn, db: Session = Depends(get_session)):
    """Create a quiz or exam definition; unset fields come from preferences."""
    try:
        definition = services.QuizService(db).create(payload.to_definition(preferences))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return definition.model_dump(mode="json")


@app.get("/quizzes/{quiz_id}")
def get_quiz(quiz_id: int, db: Session = Depends(get_session)):
    return services.QuizService(db).get(quiz_id).model_dump(mode="json")


@app.post("/quizzes/{quiz_id}/attempts", status_code=201)
def start_attempt(quiz_id: int):
    """Sample questions and start a timed session for `quiz_id`.

    Responds 409 with "no questions available" when the quiz pools are empty.
    """
    session = attempts.start(quiz_id)
    return session.view()


@app.get("/attempts/{session_id}")
def get_attempt(session_id: str):
    """Current state: question on screen, remaining time and answered count."""
    return attempts.get(session_id).view()


@app.put("/attempts/{session_id}/answers/{question_id}")
def put_answer(session_id: str, question_id: str, payload: AnswerIn):
    session = attempts.get(session_id)
    stored = session.answer(question_id, payload.value)
    return {"stored": stored, "answered_count": session.answered_count, "status": session.status.value}


@app.post("/attempts/{session_id}/next")
def next_question(session_id: str):
    session = attempts.get(session_id)
    session.next()
    return session.view()


@app.post("/attempts/{session_id}/previous")
def previous_question(session_id: str):
    session = attempts.get(session_id)
    session.previous()
    return session.view()


@app.post("/attempts/{session_id}/goto/{index}")
def goto_question(session_id: str, index: int):
    session = attempts.get(session_id)
    session.go_to(index)
    return session.view()


@app.post("/attempts/{session_id}/check/{question_id}")
def check_answer(session_id: str, question_id: str):
    """Reveal the grade of one answered question (EACH_QUESTION quizzes only)."""
    return attempts.check(session_id, question_id).model_dump(mode="json")


@app.post("/attempts/{session_id}/submit")
def submit_attempt(session_id: str):
    """Submit the attempt. Repeated calls return the same single result."""
    return attempts.submit(session_id).model_dump(mode="json")


@app.get("/attempts/{session_id}/result")
def get_result(session_id: str):
    result = attempts.result(session_id)
    if result is None:
        raise HTTPException(status_code=409, detail="attempt not submitted yet")
    return result.model_dump(mode="json")


@app.get("/attempts/{session_id}/report", response_class=PlainTextResponse)
def get_report(session_id: str):
    """Plain-text export of a submitted attempt."""
    result = attempts.result(session_id)
    if result is None:
        raise HTTPException(status_code=409, detail="attempt not submitted yet")
    return format_report(result)


@app.get("/analytics/attempts")
def list_attempts(quiz_id: Optional[int] = None, db: Session = Depends(get_session)):
    """Stored attempt records, newest first, with summary totals."""
    rows = repositories.AttemptRepository(db).list_attempts(quiz_id)
    return {
        "summary": services.AnalyticsService(db).summary(quiz_id),
        "attempts": [r.model_dump(mode="json") for r in rows],
    }


@app.get("/analytics/quizzes")
def quiz_performance(db: Session = Depends(get_session)):
    return services.AnalyticsService(db).by_quiz()
