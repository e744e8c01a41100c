import logging
from typing import Optional

from fastapi import APIRouter, Cookie, Depends, Form, Request, Response
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from starlette.concurrency import run_in_threadpool

from .auth import AuthContext, get_auth_context, user_store
from .config import settings
from .controller import SessionController
from .globals import progress_recorder, question_pool, session_registry, templates
from .levels import LEVELS, is_valid_level, list_levels, next_level, resolve_level
from .models import SessionView

logger = logging.getLogger(__name__)

router = APIRouter()


# --- Dependencies ---
def get_session_id(
    session_id: Optional[str] = Cookie(None, alias=settings.SESSION_COOKIE_NAME)
) -> Optional[str]:
    return session_id


def get_stored_level(
    level: Optional[str] = Cookie(None, alias=settings.LEVEL_COOKIE_NAME)
) -> Optional[str]:
    return level


def remember_level(response: Response, level: str):
    response.set_cookie(
        key=settings.LEVEL_COOKIE_NAME,
        value=level,
        max_age=60 * 60 * 24 * 365,
        samesite="Lax",
    )


def _unauthorized() -> JSONResponse:
    return JSONResponse({"error": "Not signed in"}, status_code=401)


def _no_session() -> JSONResponse:
    return JSONResponse({"error": "Session invalid"}, status_code=404)


def _active_controller(
    session_id: Optional[str], auth: AuthContext
) -> Optional[SessionController]:
    return session_registry.get(session_id, auth.user_id)


# --- Pages ---
@router.get("/", response_class=HTMLResponse)
async def home(
    request: Request,
    level: Optional[str] = None,
    stored_level: Optional[str] = Depends(get_stored_level),
    auth: AuthContext = Depends(get_auth_context),
):
    current = resolve_level(level, stored_level)
    progress = None
    if auth.is_authenticated:
        progress = await run_in_threadpool(
            progress_recorder.get_user_progress, auth.user_id, current
        )
    response = templates.TemplateResponse(
        request,
        "index.html",
        {
            "user": auth.user,
            "current_level": current,
            "next_level": next_level(current),
            "levels": list_levels(),
            "progress": progress,
        },
    )
    if current != stored_level:
        remember_level(response, current)
    return response


@router.get("/quiz", response_class=HTMLResponse)
async def quiz_page(request: Request, auth: AuthContext = Depends(get_auth_context)):
    if not auth.is_authenticated:
        return RedirectResponse(url="/", status_code=302)
    return templates.TemplateResponse(
        request, "quiz.html", {"user": auth.user, "first_level": LEVELS[0]}
    )


@router.post("/login", response_class=RedirectResponse)
async def login(email: str = Form(...), username: Optional[str] = Form(None)):
    if "@" not in email:
        return JSONResponse({"error": "Invalid email address"}, status_code=400)
    user = await run_in_threadpool(user_store.ensure_profile, email, username)
    logger.info(f"User {user.id} signed in")

    redirect = RedirectResponse(url="/", status_code=302)
    redirect.set_cookie(
        key=settings.USER_COOKIE_NAME,
        value=user.id,
        httponly=True,
        samesite="Lax",
    )
    return redirect


@router.post("/logout", response_class=RedirectResponse)
async def logout(session_id: Optional[str] = Depends(get_session_id)):
    session_registry.remove(session_id)
    redirect = RedirectResponse(url="/", status_code=302)
    redirect.delete_cookie(settings.USER_COOKIE_NAME)
    redirect.delete_cookie(settings.SESSION_COOKIE_NAME)
    return redirect


@router.get("/health")
async def health():
    return {"status": "ok"}


# --- Levels & progress ---
@router.get("/api/levels")
async def get_levels(stored_level: Optional[str] = Depends(get_stored_level)):
    return {
        "levels": list_levels(),
        "current_level": resolve_level(None, stored_level),
    }


@router.post("/api/level")
async def change_level(
    response: Response,
    level: str = Form(...),
    stored_level: Optional[str] = Depends(get_stored_level),
    auth: AuthContext = Depends(get_auth_context),
):
    if not auth.is_authenticated:
        return _unauthorized()
    current = resolve_level(level, stored_level)
    if not is_valid_level(level):
        logger.warning(f"Ignoring unknown level {level!r}")
    remember_level(response, current)
    logger.info(f"Level changed to: {current}")
    return {"current_level": current, "next_level": next_level(current)}


@router.get("/api/dashboard")
async def get_dashboard(
    response: Response,
    level: Optional[str] = None,
    stored_level: Optional[str] = Depends(get_stored_level),
    auth: AuthContext = Depends(get_auth_context),
):
    if not auth.is_authenticated:
        return _unauthorized()
    current = resolve_level(level, stored_level)
    if current != stored_level:
        remember_level(response, current)
    progress = await run_in_threadpool(
        progress_recorder.get_user_progress, auth.user_id, current
    )
    completions = await run_in_threadpool(
        progress_recorder.get_level_completions, auth.user_id
    )
    return {
        "username": auth.user.display_name,
        "current_level": current,
        "next_level": next_level(current),
        "progress": progress,
        "completions": completions,
    }


# --- Quiz session ---
@router.post("/api/session/start", response_model=SessionView)
async def start_session(
    response: Response,
    level: Optional[str] = None,
    session_id: Optional[str] = Depends(get_session_id),
    stored_level: Optional[str] = Depends(get_stored_level),
    auth: AuthContext = Depends(get_auth_context),
):
    if not auth.is_authenticated:
        return _unauthorized()
    session_registry.remove(session_id)

    current = resolve_level(level, stored_level)
    controller = SessionController(auth, question_pool, progress_recorder)
    await controller.initialize(current)

    new_id = session_registry.create(controller)
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=new_id,
        httponly=True,
        samesite="Lax",
    )
    remember_level(response, controller.level)
    return controller.snapshot()


@router.get("/api/session", response_model=SessionView)
async def get_session(
    session_id: Optional[str] = Depends(get_session_id),
    auth: AuthContext = Depends(get_auth_context),
):
    if not auth.is_authenticated:
        return _unauthorized()
    controller = _active_controller(session_id, auth)
    if not controller:
        return _no_session()
    return controller.snapshot()


@router.post("/api/session/select", response_model=SessionView)
async def select_option(
    option_index: int = Form(...),
    session_id: Optional[str] = Depends(get_session_id),
    auth: AuthContext = Depends(get_auth_context),
):
    if not auth.is_authenticated:
        return _unauthorized()
    controller = _active_controller(session_id, auth)
    if not controller:
        return _no_session()
    controller.select_option(option_index)
    return controller.snapshot()


@router.post("/api/session/submit", response_model=SessionView)
async def submit_answer(
    session_id: Optional[str] = Depends(get_session_id),
    auth: AuthContext = Depends(get_auth_context),
):
    if not auth.is_authenticated:
        return _unauthorized()
    controller = _active_controller(session_id, auth)
    if not controller:
        return _no_session()
    if controller.show_result:
        return JSONResponse({"error": "Already answered"}, status_code=400)
    if controller.submit() is None:
        return JSONResponse({"error": "No answer selected"}, status_code=400)
    return controller.snapshot()


@router.post("/api/session/retry", response_model=SessionView)
async def retry_question(
    session_id: Optional[str] = Depends(get_session_id),
    auth: AuthContext = Depends(get_auth_context),
):
    if not auth.is_authenticated:
        return _unauthorized()
    controller = _active_controller(session_id, auth)
    if not controller:
        return _no_session()
    controller.retry()
    return controller.snapshot()


@router.post("/api/session/continue", response_model=SessionView)
async def continue_session(
    session_id: Optional[str] = Depends(get_session_id),
    auth: AuthContext = Depends(get_auth_context),
):
    if not auth.is_authenticated:
        return _unauthorized()
    controller = _active_controller(session_id, auth)
    if not controller:
        return _no_session()
    controller.continue_()
    return controller.snapshot()


@router.post("/api/session/next-level", response_model=SessionView)
async def go_to_next_level(
    response: Response,
    session_id: Optional[str] = Depends(get_session_id),
    auth: AuthContext = Depends(get_auth_context),
):
    if not auth.is_authenticated:
        return _unauthorized()
    controller = _active_controller(session_id, auth)
    if not controller:
        return _no_session()
    if controller.summary is None or not controller.summary.passed:
        return JSONResponse({"error": "Level not passed"}, status_code=400)

    controller.on_level_change = lambda level: remember_level(response, level)
    try:
        await controller.advance_to_next_level()
    finally:
        controller.on_level_change = None
    return controller.snapshot()


@router.post("/api/session/restart", response_model=SessionView)
async def restart_level(
    session_id: Optional[str] = Depends(get_session_id),
    auth: AuthContext = Depends(get_auth_context),
):
    if not auth.is_authenticated:
        return _unauthorized()
    controller = _active_controller(session_id, auth)
    if not controller:
        return _no_session()
    await controller.restart()
    return controller.snapshot()


@router.delete("/api/session")
async def reset_session(
    response: Response, session_id: Optional[str] = Depends(get_session_id)
):
    session_registry.remove(session_id)
    response.delete_cookie(settings.SESSION_COOKIE_NAME)
    return {"status": "success"}
