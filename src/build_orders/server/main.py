import os
import logging
from contextlib import asynccontextmanager
from typing import Any, List, Optional

import httpx
from fastapi import Body, Depends, FastAPI, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import ValidationError
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from build_orders.shared.schemas import (
    BuildOrderCreate, BuildOrderUpdate, BuildOrderOut, SessionOut, UserOut
)
from build_orders.server import steam, store
from build_orders.server.auth import (
    SESSION_COOKIE, current_session, end_session, get_settings, require_user,
    start_session, token_from_request
)
from build_orders.server.config import Settings, configure_logging, load_settings
from build_orders.server.database import create_db_engine, create_session_factory, get_db, init_db
from build_orders.server.models import AuthSession, BuildOrder, User

logger = logging.getLogger("build_orders.server")


# --- Helpers ---

def field_errors(errors) -> list[dict]:
    """Flattens pydantic error locations into dotted field names (steps.0.timeSeconds)."""
    fields = []
    for err in errors:
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        fields.append({"field": ".".join(loc) or "body", "message": err.get("msg", "Invalid value")})
    return fields


def parse_payload(model, body: Any):
    try:
        return model.model_validate(body)
    except ValidationError as e:
        raise RequestValidationError(e.errors())


def load_owned(db: Session, build_order_id: str, user: User) -> BuildOrder:
    """404 if absent, 403 if the caller is not the author."""
    build_order = store.get_build_order(db, build_order_id)
    if build_order is None:
        raise HTTPException(status_code=404, detail="Build order not found")
    if build_order.author_id != user.id:
        raise HTTPException(status_code=403, detail="Forbidden")
    return build_order


# --- Application ---

def create_app(settings: Optional[Settings] = None, steam_transport: Optional[httpx.BaseTransport] = None) -> FastAPI:
    settings = settings or load_settings()
    configure_logging(settings.log_level)

    engine = create_db_engine(settings.database_url)
    init_db(engine)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if settings.seed_database:
            with app.state.session_factory() as db:
                store.seed_database(db)
        logger.info(f"--- Build Orders API started ({settings.app_env}) ---")
        yield
        app.state.steam_client.close()
        engine.dispose()

    app = FastAPI(title="Build Orders API", lifespan=lifespan)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine)
    app.state.steam_client = httpx.Client(timeout=10.0, transport=steam_transport)

    # --- Error Handling ---

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        return JSONResponse({"error": exc.detail}, status_code=exc.status_code, headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse({"error": "Invalid build order", "fields": field_errors(exc.errors())}, status_code=400)

    @app.exception_handler(steam.SteamAuthError)
    async def steam_error(request: Request, exc: steam.SteamAuthError):
        logger.error(f"Steam sign-in failed: {exc}")
        return JSONResponse({"error": "Internal Server Error"}, status_code=500)

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
        return JSONResponse({"error": "Internal Server Error"}, status_code=500)

    # --- Routes ---

    @app.get("/")
    def health_check():
        return {"status": "ok"}

    @app.get("/build-orders", response_model=List[BuildOrderOut])
    def list_build_orders(public: Optional[str] = None,
                          user_id: Optional[str] = Query(None, alias="userId"),
                          db: Session = Depends(get_db)):
        build_orders = store.list_build_orders(db, public_only=(public == "true"), author_id=user_id)
        return [BuildOrderOut.model_validate(b) for b in build_orders]

    @app.post("/build-orders", response_model=BuildOrderOut, status_code=201)
    def create_build_order(payload: BuildOrderCreate,
                           user: User = Depends(require_user),
                           db: Session = Depends(get_db)):
        build_order = store.create_build_order(db, user, payload)
        return BuildOrderOut.model_validate(build_order)

    @app.get("/build-orders/{build_order_id}", response_model=BuildOrderOut)
    def get_build_order(build_order_id: str, db: Session = Depends(get_db)):
        build_order = store.get_build_order(db, build_order_id)
        if build_order is None:
            raise HTTPException(status_code=404, detail="Build order not found")
        build_order = store.increment_views(db, build_order)
        return BuildOrderOut.model_validate(build_order)

    @app.put("/build-orders/{build_order_id}", response_model=BuildOrderOut)
    def update_build_order(build_order_id: str,
                           body: Any = Body(...),
                           user: User = Depends(require_user),
                           db: Session = Depends(get_db)):
        build_order = load_owned(db, build_order_id, user)
        payload = parse_payload(BuildOrderUpdate, body)
        updated = store.update_build_order(db, build_order, payload)
        return BuildOrderOut.model_validate(updated)

    @app.delete("/build-orders/{build_order_id}")
    def delete_build_order(build_order_id: str,
                           user: User = Depends(require_user),
                           db: Session = Depends(get_db)):
        build_order = load_owned(db, build_order_id, user)
        store.delete_build_order(db, build_order)
        return {"success": True}

    # --- Steam Sign-in ---

    @app.get("/auth/signin/steam")
    def signin_steam(settings: Settings = Depends(get_settings)):
        return RedirectResponse(steam.login_url(settings), status_code=302)

    @app.get("/auth/callback/steam")
    def callback_steam(request: Request,
                       db: Session = Depends(get_db),
                       settings: Settings = Depends(get_settings)):
        params = dict(request.query_params)
        profile = steam.authenticate(request.app.state.steam_client, settings, params)
        user = store.upsert_user(db, profile.steamid, profile.personaname, profile.avatarfull)
        token, _ = start_session(db, settings, user)

        response = RedirectResponse(f"{settings.public_url}/", status_code=302)
        response.set_cookie(
            SESSION_COOKIE, token,
            max_age=settings.session_max_age,
            httponly=True, samesite="lax",
            secure=settings.public_url.startswith("https://"),
        )
        return response

    @app.get("/auth/session", response_model=Optional[SessionOut])
    def get_session(session: Optional[AuthSession] = Depends(current_session)):
        if session is None:
            return None
        return SessionOut(user=UserOut.model_validate(session.user), expires=session.expires_at)

    @app.post("/auth/signout")
    def signout(request: Request,
                db: Session = Depends(get_db),
                settings: Settings = Depends(get_settings)):
        token = token_from_request(request)
        if token:
            end_session(db, settings, token)
        response = JSONResponse({"success": True})
        response.delete_cookie(SESSION_COOKIE)
        return response

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
