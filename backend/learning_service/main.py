"""FastAPI application entrypoint and HTTP controllers.

This module defines the HTTP endpoints of the learning service.
Controllers are intentionally thin: they accept requests, delegate to
services, and return JSON responses.

Endpoints implemented:
- GET /health
- GET /content/{lang}/modules
- GET /content/{lang}/modules/{moduleId}
- GET /content/{lang}/modules/{moduleId}/units
- GET /content/{lang}/modules/{moduleId}/units/{unitId}
- GET /content/{lang}/modules/{moduleId}/units/{unitId}/progress
- GET /content/{lang}/modules/{moduleId}/units/{unitId}/exercises
- GET /content/{lang}/modules/{moduleId}/units/{unitId}/exercises/next
- GET /content/{lang}/modules/{moduleId}/units/{unitId}/exercises/{exerciseId}
- POST /content/{lang}/modules/{moduleId}/units/{unitId}/exercises/{exerciseId}/submit
- GET /settings
- PUT /settings
- POST /users (internal)
- DELETE /users/{userId} (internal)
"""

from fastapi import FastAPI, Depends, Header, HTTPException, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, Response
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError
from sqlmodel import Session
from typing import List, Optional
import json
import logging
import time
import uuid
from .database import create_db_and_tables, get_session
from . import services
from .auth import get_current_user_id, is_internal_secret_valid
from .config import settings
from .errors import install_error_handlers
from .schemas import (
    CreateUserRequest,
    ExerciseSummary,
    HealthResponse,
    ModuleDetailResponse,
    ModuleResponse,
    NextExerciseResponse,
    SubmitExerciseRequest,
    SubmitExerciseResponse,
    UnitDetailResponse,
    UnitProgress,
    UnitSummary,
    UpdateUserSettingsRequest,
    UpdateUserSettingsResponse,
    UserManagementResponse,
    UserSettingsResponse,
)
from .utils.content_library import ContentLibrary, Exercise

SERVICE_NAME = "learning-service"

app = FastAPI(title="Learning Service API")
logger = logging.getLogger("learning_service.api")
if not logger.handlers:
    logging.basicConfig(level=settings.LOG_LEVEL)

install_error_handlers(app)


def allowed_origins(env: str, domain: str) -> List[str]:
    """Any origin in dev; otherwise only the deployed frontend domain over https."""
    return ["*"] if env == "dev" else [f"https://{domain}"]


app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins(settings.ENV, settings.DOMAIN),
    allow_credentials=True,
    allow_methods=["OPTIONS", "GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
)

create_db_and_tables(drop_first=settings.DATABASE_DROP_ON_START)
content_library = ContentLibrary(settings.CONTENT_DIR)


def get_content_library() -> ContentLibrary:
    """Dependency returning the shared content library."""
    return content_library


def get_content_service(db: Session = Depends(get_session), library: ContentLibrary = Depends(get_content_library)) -> services.ContentService:
    return services.ContentService(db, library)


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
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
                    "client": request.client.host if request.client else "unknown",
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
                "client": request.client.host if request.client else "unknown",
            },
            ensure_ascii=True,
        ),
    )
    return response


@app.get("/health", response_model=HealthResponse)
def health():
    """Lightweight health check for uptime monitoring."""
    return HealthResponse(status="UP", service=SERVICE_NAME)


@app.get("/content/{lang}/modules", response_model=List[ModuleResponse])
def list_modules(lang: str, svc: services.ContentService = Depends(get_content_service), user_id: str = Depends(get_current_user_id)):
    """List modules for a target language with the user's unit counters."""
    return svc.list_modules(user_id, lang)


@app.get("/content/{lang}/modules/{module_id}", response_model=ModuleDetailResponse)
def get_module(lang: str, module_id: str, svc: services.ContentService = Depends(get_content_service), user_id: str = Depends(get_current_user_id)):
    module = svc.get_module(user_id, lang, module_id)
    if module is None:
        raise HTTPException(status_code=404, detail="Module not found")
    return module


@app.get("/content/{lang}/modules/{module_id}/units", response_model=List[UnitSummary])
def list_units(lang: str, module_id: str, svc: services.ContentService = Depends(get_content_service), user_id: str = Depends(get_current_user_id)):
    """List the units of a module; unknown modules yield an empty list."""
    return svc.list_units(user_id, lang, module_id)


@app.get("/content/{lang}/modules/{module_id}/units/{unit_id}", response_model=UnitDetailResponse)
def get_unit(lang: str, module_id: str, unit_id: str, svc: services.ContentService = Depends(get_content_service), user_id: str = Depends(get_current_user_id)):
    """Return unit details with a per-exercise status for the user."""
    unit = svc.get_unit(user_id, lang, module_id, unit_id)
    if unit is None:
        raise HTTPException(status_code=404, detail="Unit not found")
    return unit


@app.get("/content/{lang}/modules/{module_id}/units/{unit_id}/progress", response_model=UnitProgress)
def get_unit_progress(lang: str, module_id: str, unit_id: str, svc: services.ContentService = Depends(get_content_service), user_id: str = Depends(get_current_user_id)):
    progress = svc.unit_progress(user_id, lang, module_id, unit_id)
    if progress is None:
        raise HTTPException(status_code=404, detail="Unit not found")
    return progress


@app.get("/content/{lang}/modules/{module_id}/units/{unit_id}/exercises", response_model=List[ExerciseSummary])
def list_exercises(lang: str, module_id: str, unit_id: str, svc: services.ContentService = Depends(get_content_service), user_id: str = Depends(get_current_user_id)):
    return svc.list_exercises(user_id, lang, module_id, unit_id)


@app.get("/content/{lang}/modules/{module_id}/units/{unit_id}/exercises/next", response_model=NextExerciseResponse)
def next_exercise(
    lang: str,
    module_id: str,
    unit_id: str,
    current_exercise_id: Optional[str] = Query(None, alias="currentExerciseId"),
    svc: services.ContentService = Depends(get_content_service),
    user_id: str = Depends(get_current_user_id),
):
    """Suggest the next exercise to practise, never the current one.

    New exercises are favoured over failed ones, and failed ones over
    exercises the user already answered correctly.
    """
    return svc.next_exercise(user_id, lang, module_id, unit_id, current_exercise_id)


@app.get("/content/{lang}/modules/{module_id}/units/{unit_id}/exercises/{exercise_id}", response_model=Exercise)
def get_exercise(lang: str, module_id: str, unit_id: str, exercise_id: str, svc: services.ContentService = Depends(get_content_service), user_id: str = Depends(get_current_user_id)):
    exercise = svc.get_exercise(lang, module_id, unit_id, exercise_id)
    if exercise is None:
        raise HTTPException(status_code=404, detail="Exercise not found")
    return exercise


@app.post("/content/{lang}/modules/{module_id}/units/{unit_id}/exercises/{exercise_id}/submit", response_model=SubmitExerciseResponse)
def submit_exercise(
    lang: str,
    module_id: str,
    unit_id: str,
    exercise_id: str,
    payload: SubmitExerciseRequest,
    svc: services.ContentService = Depends(get_content_service),
    user_id: str = Depends(get_current_user_id),
):
    """Record a client-graded answer and return the updated unit progress.

    The response echoes the exercise solution and tip so the client can
    show feedback for incorrect, skipped or revealed answers.
    """
    result = svc.submit(user_id, lang, module_id, unit_id, exercise_id, payload.answer_status, payload.user_answer)
    if result is None:
        raise HTTPException(status_code=404, detail="Exercise not found")
    return result


@app.get("/settings", response_model=UserSettingsResponse)
def get_settings(db: Session = Depends(get_session), user_id: str = Depends(get_current_user_id)):
    """Return the user's settings, creating defaults on first access."""
    row = services.SettingsService(db).get_or_create(user_id)
    return services.settings_to_response(row)


@app.put("/settings", response_model=UpdateUserSettingsResponse)
def update_settings(payload: UpdateUserSettingsRequest, db: Session = Depends(get_session), user_id: str = Depends(get_current_user_id)):
    """Partially update the user's settings.

    Language collisions are resolved automatically and reported in
    `warnings`; invalid values are rejected with 400.
    """
    svc = services.SettingsService(db)
    try:
        row, warnings = svc.update(
            user_id,
            native_language=payload.native_language,
            target_language=payload.target_language,
            dark_mode=payload.dark_mode,
            onboarding_step=payload.onboarding_step,
            user_level=payload.user_level,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return UpdateUserSettingsResponse(settings=services.settings_to_response(row), warnings=warnings)


def _user_response(status_code: int, success: bool, message: str, user_id: Optional[str] = None) -> JSONResponse:
    body = UserManagementResponse(success=success, message=message, user_id=user_id)
    return JSONResponse(status_code=status_code, content=body.model_dump(by_alias=True))


@app.post("/users", status_code=201, response_model=UserManagementResponse)
async def create_user(request: Request, x_internal_secret: Optional[str] = Header(None), db: Session = Depends(get_session)):
    """Create a user on behalf of the auth service.

    Requires the `X-Internal-Secret` header. Body: `{"userId": "<uuid>"}`.
    """
    if not is_internal_secret_valid(x_internal_secret):
        return _user_response(401, False, "Unauthorized access")
    try:
        payload = CreateUserRequest.model_validate(await request.json())
    except (ValueError, ValidationError):
        return _user_response(400, False, "Invalid request body")
    try:
        user_id = services.validate_user_id(payload.user_id)
    except ValueError as e:
        return _user_response(400, False, str(e))
    try:
        # session work is blocking; keep it off the event loop
        await run_in_threadpool(services.UserService(db).create_user, user_id)
    except services.UserAlreadyExists:
        return _user_response(409, False, "User already exists", user_id)
    return _user_response(201, True, "User created successfully", user_id)


@app.delete("/users/{user_id}", response_model=UserManagementResponse)
def delete_user(user_id: str, x_internal_secret: Optional[str] = Header(None), db: Session = Depends(get_session)):
    """Delete a user's settings and progress on behalf of the auth service.

    Deleting an unknown user succeeds so the auth service can retry safely.
    """
    if not is_internal_secret_valid(x_internal_secret):
        return _user_response(401, False, "Unauthorized access")
    try:
        user_id = services.validate_user_id(user_id)
    except ValueError as e:
        return _user_response(400, False, str(e), user_id.strip() or None)
    services.UserService(db).delete_user(user_id)
    return _user_response(200, True, "User deleted successfully", user_id)


def run():
    """Console entrypoint: serve the app with uvicorn on the configured port."""
    import uvicorn

    logger.info("starting %s (%s) on port %s", SERVICE_NAME, settings.ENV, settings.SERVER_PORT)
    uvicorn.run(app, host="0.0.0.0", port=settings.SERVER_PORT)
