"""FastAPI application entrypoint and HTTP controllers.

This module defines the HTTP endpoints of the Project Tisa backend.
Controllers are intentionally thin: they accept requests, delegate to
services, and return JSON responses. Business failures surface as
`BadRequestError` and are rendered as HTTP 400 `MessageResponse`.

Endpoints implemented:
- POST /api/Auth/Authorize
- GET /api/Auth/CheckIsEmailExist
- GET /api/Auth/CheckIsUsernameExist
- POST /api/Auth/Registrate
- POST /api/Auth/Verify
- GET /api/Auth/Me
- GET /api/Category
- GET /api/Category/{category_id}
- POST /api/Category
- PUT /api/Category/{category_id}
- DELETE /api/Category/{category_id}
- GET /health
"""

from fastapi import Body, Depends, FastAPI, HTTPException, Path, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from sqlmodel import Session
from starlette.exceptions import HTTPException as StarletteHTTPException
from typing import List, Optional
import json
import logging
import os
import time
import uuid
from .database import create_db_and_tables, get_session
from . import services, models
from .auth import get_current_user
from .config import settings
from .emails import EmailSender, get_email_sender
from .errors import BadRequestError, INVALID_REQUEST
from .schemas import (
    BooleanResponse,
    CategoryCreationReq,
    CategoryResponse,
    IdResponse,
    MAX_ID,
    MessageResponse,
    TokenResponse,
    UserInfoReq,
    UserLoginReq,
    UserResponse,
)
from .utils.rate_limit import InMemoryRateLimiter, client_key

app = FastAPI(title="Project Tisa API")
logger = logging.getLogger("tisa.api")
if not logger.handlers:
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
_auth_rate_limiter = InMemoryRateLimiter()

# Wide-open CORS keeps local frontends working without extra config in dev.
if settings.ALLOW_DEV_CORS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

create_db_and_tables()


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
                    "client": request.client.host if request.client else "unknown",
                },
                ensure_ascii=True,
            ),
        )
        raise
    response.headers["X-Request-ID"] = req_id
    elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
    if request.url.path.startswith("/api"):
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


@app.exception_handler(BadRequestError)
def bad_request_handler(request: Request, exc: BadRequestError):
    """Render service rejections as a 400 `MessageResponse`."""
    return JSONResponse(status_code=400, content=MessageResponse(message=exc.message).model_dump())


@app.exception_handler(StarletteHTTPException)
def http_error_handler(request: Request, exc: StarletteHTTPException):
    """Keep 401/403/404/429 answers in the same `MessageResponse` shape."""
    return JSONResponse(
        status_code=exc.status_code,
        content=MessageResponse(message=str(exc.detail)).model_dump(),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
def validation_error_handler(request: Request, exc: RequestValidationError):
    """Report malformed input as 400 like every other rejected request."""
    errors = exc.errors()
    message = INVALID_REQUEST
    if errors:
        first = errors[0]
        field = ".".join(str(p) for p in first.get("loc", ()) if p not in ("body", "query", "path"))
        message = f"{INVALID_REQUEST} {field}: {first.get('msg')}" if field else f"{INVALID_REQUEST} {first.get('msg')}"
    return JSONResponse(status_code=400, content=MessageResponse(message=message).model_dump())


def _enforce_auth_rate_limit(request: Request) -> None:
    key = client_key(request.client.host if request.client else None, request.url.path)
    allowed, retry_after = _auth_rate_limiter.allow(
        key, settings.AUTH_RATE_LIMIT_PER_MIN, settings.AUTH_RATE_LIMIT_WINDOW_SECONDS
    )
    if not allowed:
        logger.warning("rate limit exceeded key=%s retry_after=%s", key, retry_after)
        raise HTTPException(
            status_code=429,
            detail=f"rate limit exceeded; retry after {retry_after}s",
            headers={"Retry-After": str(retry_after)},
        )


def _category_out(category: models.Category) -> CategoryResponse:
    return CategoryResponse(
        id=category.id,
        name=category.name,
        photo_path=category.photo_path,
        parent_category_id=category.parent_category_id,
    )


@app.post('/api/Auth/Authorize', response_model=TokenResponse, dependencies=[Depends(_enforce_auth_rate_limit)])
def authorize(payload: UserLoginReq, db: Session = Depends(get_session)):
    """Return a JWT for a username or email plus password.

    Any failure answers 400 with the same message.
    """
    token = services.AuthService(db).authorize(payload)
    return TokenResponse(token=token)


@app.get('/api/Auth/CheckIsEmailExist', response_model=BooleanResponse)
def check_is_email_exist(email: str, db: Session = Depends(get_session)):
    """`true` when a user already owns `email` (case-insensitive)."""
    return BooleanResponse(result=services.AuthService(db).is_email_exist(email))


@app.get('/api/Auth/CheckIsUsernameExist', response_model=BooleanResponse)
def check_is_username_exist(username: str, db: Session = Depends(get_session)):
    """`true` when a user already owns `username` (case-insensitive)."""
    return BooleanResponse(result=services.AuthService(db).is_username_exist(username))


@app.post('/api/Auth/Registrate', response_model=IdResponse)
def registrate(
    payload: UserInfoReq,
    db: Session = Depends(get_session),
    email_sender: EmailSender = Depends(get_email_sender),
):
    """Create a pending registration and email its verification code.

    Returns the pending registration id to pass to `/api/Auth/Verify`.
    """
    pending_id = services.AuthService(db, email_sender).registrate(payload)
    return IdResponse(id=pending_id)


@app.post('/api/Auth/Verify', response_model=TokenResponse, dependencies=[Depends(_enforce_auth_rate_limit)])
def verify(
    pending_reg_id: int = Query(alias="pendingRegId", ge=1, le=MAX_ID),
    code: str = Body(...),
    db: Session = Depends(get_session),
):
    """Confirm a pending registration with the emailed code.

    The body is the code as a bare JSON string. On success the user is
    created and a JWT for it is returned.
    """
    token = services.AuthService(db).verify(pending_reg_id, code)
    return TokenResponse(token=token)


@app.get('/api/Auth/Me', response_model=UserResponse)
def me(user: models.User = Depends(get_current_user)):
    """Return the account identified by the bearer token."""
    return UserResponse(id=user.id, username=user.username, email=user.email)


@app.get('/api/Category', response_model=List[CategoryResponse])
def list_categories(
    parent_category_id: Optional[int] = Query(default=None, alias="parentCategoryId", ge=0, le=MAX_ID),
    db: Session = Depends(get_session),
):
    """List categories, optionally only the children of one parent."""
    return [_category_out(c) for c in services.CategoryService(db).list(parent_category_id)]


@app.get('/api/Category/{category_id}', response_model=CategoryResponse)
def get_category(category_id: int = Path(ge=1, le=MAX_ID), db: Session = Depends(get_session)):
    return _category_out(services.CategoryService(db).get(category_id))


@app.post('/api/Category', response_model=CategoryResponse)
def create_category(
    payload: CategoryCreationReq,
    db: Session = Depends(get_session),
    user: models.User = Depends(get_current_user),
):
    """Create a category. Requires a bearer token."""
    category = services.CategoryService(db).create(payload)
    logger.info("category created id=%s by user_id=%s", category.id, user.id)
    return _category_out(category)


@app.put('/api/Category/{category_id}', response_model=CategoryResponse)
def update_category(
    *,
    category_id: int = Path(ge=1, le=MAX_ID),
    payload: CategoryCreationReq,
    db: Session = Depends(get_session),
    user: models.User = Depends(get_current_user),
):
    """Replace a category's fields. Requires a bearer token."""
    category = services.CategoryService(db).update(category_id, payload)
    logger.info("category updated id=%s by user_id=%s", category.id, user.id)
    return _category_out(category)


@app.delete('/api/Category/{category_id}', response_model=BooleanResponse)
def delete_category(
    category_id: int = Path(ge=1, le=MAX_ID),
    db: Session = Depends(get_session),
    user: models.User = Depends(get_current_user),
):
    """Delete a category without subcategories. Requires a bearer token."""
    services.CategoryService(db).delete(category_id)
    logger.info("category deleted id=%s by user_id=%s", category_id, user.id)
    return BooleanResponse(result=True)


@app.get("/health")
def health():
    """Lightweight health check for uptime monitoring."""
    return {"status": "ok"}
