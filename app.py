from __future__ import annotations

"""
Tallman Chat Store Backend API

HTTP surface over the local store used by the browser chat client:

    - knowledge: list, add, bulk import/export, context retrieval
    - chats:     sidebar histories and whole-session persistence
    - users:     approved-user allow-list with a protected bootstrap admin

Run with:

    uvicorn app:create_app --factory
"""

import json
import time
import traceback
from typing import Any, List, Optional

from fastapi import APIRouter, Body, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field

from tallman_db import (
    ProtectedResourceError,
    StorageError,
    TallmanDB,
    UniqueKeyViolation,
    ValidationError,
    create_tallman_db,
)
from tallman_db.apis import export_knowledge, import_knowledge
from tallman_db.repositories import ChatSession, Message, User, UserRole

# ============================================================================
# Helpers
# ============================================================================

def _log(msg: str, **extra: Any) -> None:
    """
    Centralised structured logging.

    All logs go through here so we can easily tweak format or sink later.
    """
    try:
        print(json.dumps({"msg": msg, **extra}, ensure_ascii=False))
    except Exception:
        # Last-ditch fallback - never let logging crash the app
        print(f"{msg} {extra}")


def _db(request: Request) -> TallmanDB:
    return request.app.state.db


# ============================================================================
# Request bodies
# ============================================================================

class NewKnowledge(BaseModel):
    content: str


class NewChat(BaseModel):
    messages: List[Message] = Field(default_factory=list)
    first_message: str = ""


class RoleUpdate(BaseModel):
    role: UserRole


# ============================================================================
# Router
# ============================================================================

router = APIRouter(prefix="/api/v1")

# ============================================================================
# Knowledge
# ============================================================================

@router.get("/knowledge")
async def api_list_knowledge(request: Request):
    items = sorted(_db(request).knowledge.get_all(), key=lambda i: i.timestamp, reverse=True)
    return [i.model_dump() for i in items]


@router.get("/knowledge/count")
async def api_count_knowledge(request: Request):
    return {"count": _db(request).knowledge.count()}


@router.post("/knowledge", status_code=201)
async def api_add_knowledge(request: Request, body: NewKnowledge):
    item = _db(request).knowledge.add_knowledge(body.content)
    if item is None:
        raise HTTPException(400, "Please enter some information to add.")
    _log("[api] knowledge added", timestamp=item.timestamp)
    return item.model_dump()


@router.post("/knowledge/import")
async def api_import_knowledge(request: Request, payload: Any = Body(...)):
    n = import_knowledge(_db(request).knowledge, payload)
    _log("[api] knowledge imported", n_items=n)
    return {"status": "ok", "imported": n}


@router.get("/knowledge/export")
async def api_export_knowledge(request: Request):
    return Response(
        content=export_knowledge(_db(request).knowledge),
        media_type="application/json",
        headers={"Content-Disposition": 'attachment; filename="tallman_knowledge_base.json"'},
    )


@router.get("/knowledge/context")
async def api_context(request: Request, q: str = Query("")):
    retriever = _db(request).retriever
    items = retriever.retrieve(q)
    return {"items": items, "context": retriever.get_context_string(q)}

# ============================================================================
# Chats
# ============================================================================

@router.get("/chats")
async def api_list_chats(request: Request):
    return [h.model_dump() for h in _db(request).chats.list_histories()]


@router.post("/chats", status_code=201)
async def api_create_chat(request: Request, body: NewChat):
    session = _db(request).chats.create_session(body.messages, first_message=body.first_message)
    return session.model_dump(mode="json")


@router.get("/chats/{chat_id}")
async def api_get_chat(request: Request, chat_id: str):
    session = _db(request).chats.get(chat_id)
    if session is None:
        raise HTTPException(404, f"Chat {chat_id} not found")
    return session.model_dump(mode="json")


@router.put("/chats/{chat_id}")
async def api_save_chat(request: Request, chat_id: str, session: ChatSession):
    if session.id != chat_id:
        raise HTTPException(400, f"Body id {session.id!r} does not match path id {chat_id!r}")
    _db(request).chats.save(session)
    return session.model_dump(mode="json")


@router.delete("/chats/{chat_id}")
async def api_delete_chat(request: Request, chat_id: str):
    _db(request).chats.delete(chat_id)
    return {"status": "ok"}


@router.delete("/chats")
async def api_clear_chats(request: Request):
    _db(request).chats.clear_all()
    return {"status": "ok"}

# ============================================================================
# Approved users
# ============================================================================

@router.get("/users")
async def api_list_users(request: Request):
    return [u.model_dump(mode="json") for u in _db(request).users.list_all()]


@router.get("/users/{username}")
async def api_get_user(request: Request, username: str):
    user = _db(request).users.get(username)
    if user is None:
        raise HTTPException(404, f"User {username} not found")
    return user.model_dump(mode="json")


@router.put("/users/{username}")
async def api_upsert_user(request: Request, username: str, body: RoleUpdate):
    user = User(username=username, role=body.role)
    _db(request).users.upsert(user)
    return user.model_dump(mode="json")


@router.post("/users/{username}/request-access", status_code=201)
async def api_request_access(request: Request, username: str):
    return _db(request).users.request_access(username).model_dump(mode="json")


@router.delete("/users/{username}")
async def api_delete_user(request: Request, username: str):
    _db(request).users.delete(username)
    return {"status": "ok"}

# ============================================================================
# FastAPI App Setup
# ============================================================================

def _error(status: int, exc: Exception, **extra: Any) -> JSONResponse:
    return JSONResponse(status_code=status, content={"detail": str(exc), **extra})


def create_app(db: Optional[TallmanDB] = None) -> FastAPI:
    """
    Build the application around `db`, or a store configured from the
    environment when none is given.
    """
    if db is None:
        try:
            db = create_tallman_db()
        except Exception as exc:
            # Very early failure - make this as loud as possible
            _log("[app] Failed to initialise TallmanDB",
                 error=str(exc), traceback=traceback.format_exc())
            raise

    app = FastAPI(
        title="Tallman Chat Store API",
        version="1.0.0",
    )
    app.state.db = db

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.time()
        _log("[http] request", method=request.method, path=request.url.path)
        try:
            resp = await call_next(request)
        except Exception as exc:
            _log("[http] error", error=str(exc), traceback=traceback.format_exc())
            raise
        _log(
            "[http] response",
            path=request.url.path,
            duration_ms=int((time.time() - start) * 1000),
            status_code=getattr(resp, "status_code", None),
        )
        return resp

    @app.exception_handler(UniqueKeyViolation)
    async def _on_duplicate(request: Request, exc: UniqueKeyViolation):
        return _error(409, exc)

    @app.exception_handler(ProtectedResourceError)
    async def _on_protected(request: Request, exc: ProtectedResourceError):
        return _error(403, exc)

    @app.exception_handler(ValidationError)
    async def _on_invalid(request: Request, exc: ValidationError):
        return _error(422, exc, errors=exc.errors)

    @app.exception_handler(StorageError)
    async def _on_storage(request: Request, exc: StorageError):
        _log("[api] storage error", path=request.url.path, error=str(exc))
        return _error(503, exc)

    @app.get("/health")
    async def health():
        return {
            "status": "ok",
            "time": time.time(),
            "schema_version": app.state.db.schema_version,
        }

    app.include_router(router)
    return app
