"""FastAPI application serving the guestbook, registration and login pages."""

import logging
from datetime import timedelta
from pathlib import Path

from fastapi import APIRouter, Depends, FastAPI, Form, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse, Response
from fastapi.templating import Jinja2Templates
from prometheus_client import CONTENT_TYPE_LATEST, Counter, generate_latest
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from .config import Settings, settings as default_settings
from .database import create_db_engine, create_session_factory, init_db
from .errors import (
    AccessDeniedError,
    BadCredentialsError,
    EntryNotFoundError,
    LoginRequiredError,
    StorageError,
)
from .forms import BindingResult, GuestbookForm, RegistrationForm
from .models.user import ADMIN_ROLE
from .security import PasswordHasher, SessionUser, create_session_token, decode_session_token
from .services import AuthenticationService, GuestbookService, RegistrationService
from .store import UserStore

logger = logging.getLogger(__name__)

REGISTER_HTML = "register.html"
LOGIN_HTML = "login.html"
GUESTBOOK_HTML = "guestbook.html"
ERROR_HTML = "error.html"

SENSITIVE_RATE_LIMIT = "5/minute"

templates = Jinja2Templates(directory=str(Path(__file__).resolve().with_name("templates")))
router = APIRouter()

# Prometheus counter to track requests by method, endpoint and status code
REQUEST_COUNTER = Counter(
    "guestbook_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)


def _redirect(url: str) -> RedirectResponse:
    return RedirectResponse(url, status_code=status.HTTP_302_FOUND)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_registration_service(request: Request) -> RegistrationService:
    return request.app.state.registration


def get_authentication_service(request: Request) -> AuthenticationService:
    return request.app.state.authentication


def get_guestbook_service(request: Request) -> GuestbookService:
    return request.app.state.guestbook


def get_current_user(
    request: Request, settings: Settings = Depends(get_settings)
) -> SessionUser | None:
    token = request.cookies.get(settings.session_cookie_name)
    if not token:
        return None
    return decode_session_token(token, settings.jwt_secret, settings.jwt_algorithm)


def require_admin(current_user: SessionUser | None = Depends(get_current_user)) -> SessionUser:
    if current_user is None:
        raise LoginRequiredError()
    if not current_user.has_role(ADMIN_ROLE):
        raise AccessDeniedError()
    return current_user


@router.get("/")
def index():
    return _redirect("/guestbook")


@router.get("/register", response_class=HTMLResponse)
def register_form(
    request: Request, current_user: SessionUser | None = Depends(get_current_user)
):
    return templates.TemplateResponse(
        request,
        REGISTER_HTML,
        {"form": RegistrationForm(), "binding": BindingResult(), "current_user": current_user},
    )


def register(
    request: Request,
    username: str = Form(""),
    password: str = Form(""),
    registration: RegistrationService = Depends(get_registration_service),
    current_user: SessionUser | None = Depends(get_current_user),
):
    """Mounted by :func:`create_app` behind the app's rate limiter."""
    form = RegistrationForm(username=username, password=password)
    user, binding = registration.register(form)
    if user is None:
        return templates.TemplateResponse(
            request,
            REGISTER_HTML,
            {"form": form, "binding": binding, "current_user": current_user},
        )
    return _redirect("/login")


@router.get("/login", response_class=HTMLResponse)
def login_form(
    request: Request, current_user: SessionUser | None = Depends(get_current_user)
):
    return templates.TemplateResponse(
        request,
        LOGIN_HTML,
        {
            "error": "error" in request.query_params,
            "logout": "logout" in request.query_params,
            "current_user": current_user,
        },
    )


def login(
    request: Request,
    username: str = Form(""),
    password: str = Form(""),
    authentication: AuthenticationService = Depends(get_authentication_service),
    settings: Settings = Depends(get_settings),
):
    """Mounted by :func:`create_app` behind the app's rate limiter."""
    try:
        principal = authentication.authenticate(username, password)
    except BadCredentialsError:
        return _redirect("/login?error")

    token = create_session_token(
        principal.username,
        principal.role,
        settings.jwt_secret,
        settings.jwt_algorithm,
        timedelta(minutes=settings.session_expire_minutes),
    )
    response = _redirect("/")
    response.set_cookie(
        settings.session_cookie_name,
        token,
        max_age=settings.session_expire_minutes * 60,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
    )
    return response


@router.api_route("/logout", methods=["GET", "POST"])
def logout(settings: Settings = Depends(get_settings)):
    response = _redirect("/")
    response.delete_cookie(settings.session_cookie_name)
    return response


@router.get("/guestbook", response_class=HTMLResponse)
def guestbook_page(
    request: Request,
    guestbook: GuestbookService = Depends(get_guestbook_service),
    current_user: SessionUser | None = Depends(get_current_user),
):
    return templates.TemplateResponse(
        request,
        GUESTBOOK_HTML,
        {
            "entries": guestbook.list_entries(),
            "form": GuestbookForm(),
            "binding": BindingResult(),
            "current_user": current_user,
        },
    )


@router.post("/guestbook")
def add_entry(
    request: Request,
    name: str = Form(""),
    text: str = Form(""),
    guestbook: GuestbookService = Depends(get_guestbook_service),
    current_user: SessionUser | None = Depends(get_current_user),
):
    form = GuestbookForm(name=name, text=text)
    entry, binding = guestbook.add_entry(form)
    if entry is None:
        return templates.TemplateResponse(
            request,
            GUESTBOOK_HTML,
            {
                "entries": guestbook.list_entries(),
                "form": form,
                "binding": binding,
                "current_user": current_user,
            },
        )
    return _redirect("/guestbook")


@router.post("/guestbook/{entry_id}/delete", dependencies=[Depends(require_admin)])
def delete_entry(entry_id: int, guestbook: GuestbookService = Depends(get_guestbook_service)):
    guestbook.delete_entry(entry_id)
    return _redirect("/guestbook")


@router.get("/metrics")
def metrics():
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


def _error_page(request: Request, message: str, status_code: int):
    return templates.TemplateResponse(
        request,
        ERROR_HTML,
        {"message": message, "current_user": None},
        status_code=status_code,
    )


async def _storage_error_handler(request: Request, exc: StorageError):
    return _error_page(
        request,
        "Something went wrong. Please try again later.",
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


async def _access_denied_handler(request: Request, exc: AccessDeniedError):
    return _error_page(
        request, "You are not allowed to do that.", status.HTTP_403_FORBIDDEN
    )


async def _entry_not_found_handler(request: Request, exc: EntryNotFoundError):
    return _error_page(request, "Entry not found.", status.HTTP_404_NOT_FOUND)


async def _login_required_handler(request: Request, exc: LoginRequiredError):
    return _redirect("/login")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the application and wire its store and services explicitly."""
    settings = settings or default_settings

    engine = create_db_engine(settings.database_url)
    init_db(engine)
    session_factory = create_session_factory(engine)

    users = UserStore(session_factory)
    hasher = PasswordHasher(rounds=settings.bcrypt_rounds)

    app = FastAPI(title=settings.app_title)
    app.state.settings = settings
    app.state.engine = engine
    app.state.users = users
    app.state.registration = RegistrationService(users, hasher)
    app.state.authentication = AuthenticationService(users, hasher)
    app.state.guestbook = GuestbookService(session_factory)

    limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(StorageError, _storage_error_handler)
    app.add_exception_handler(AccessDeniedError, _access_denied_handler)
    app.add_exception_handler(EntryNotFoundError, _entry_not_found_handler)
    app.add_exception_handler(LoginRequiredError, _login_required_handler)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log incoming requests and their outcomes while updating metrics."""
        logger.info("request %s %s", request.method, request.url.path)
        try:
            response = await call_next(request)
            REQUEST_COUNTER.labels(
                method=request.method,
                endpoint=request.url.path,
                status=str(response.status_code),
            ).inc()
            logger.info(
                "response %s %s status %s",
                request.method,
                request.url.path,
                response.status_code,
            )
            return response
        except Exception:
            REQUEST_COUNTER.labels(
                method=request.method,
                endpoint=request.url.path,
                status="500",
            ).inc()
            logger.exception("error handling %s %s", request.method, request.url.path)
            raise

    # limits are bound to this app's limiter so each app counts its own hits
    app.add_api_route("/register", limiter.limit(SENSITIVE_RATE_LIMIT)(register), methods=["POST"])
    app.add_api_route("/login", limiter.limit(SENSITIVE_RATE_LIMIT)(login), methods=["POST"])
    app.include_router(router)

    if settings.seed_entries:
        app.state.guestbook.seed_defaults()
    if settings.admin_username and settings.admin_password:
        app.state.registration.ensure_user(settings.admin_username, settings.admin_password, ADMIN_ROLE)

    logger.info("guestbook ready (database %s)", settings.database_url)
    return app
