from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import FileResponse, JSONResponse, PlainTextResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from .access_log import (
    AccessLogError,
    AccessLogWriter,
    InvalidLogName,
    LogDirectoryError,
    LogNotFound,
    list_log_files,
    read_log_file,
    read_today,
)
from .auth import TokenAuthority, TokenError, bearer_token, require_admin
from .config import Settings
from .log_stats import analyze, filter_lines, mark, top_ips
from .models import Card, IpCount, LogFilesOut, LogStatsOut, PasswordIn, Result, TokenOut
from .storage import CardStore, duplicate_ids
from .sync import GitHubSync, SyncError

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


# === Helpers ===


def client_ip(request: Request) -> str:
    # deployed behind a reverse proxy: the leftmost forwarded address is the client
    forwarded = request.headers.get("X-Forwarded-For", "")
    first = forwarded.split(",")[0].strip()
    if first:
        return first
    return request.client.host if request.client else "-"


def request_target(request: Request) -> str:
    # log the target as sent, before percent-decoding
    raw_path = request.scope.get("raw_path")
    path = raw_path.decode("latin-1").split("?", 1)[0] if raw_path else request.url.path
    query = request.scope.get("query_string", b"").decode("latin-1")
    return f"{path}?{query}" if query else path


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> CardStore:
    return request.app.state.cards


def get_log_writer(request: Request) -> AccessLogWriter:
    return request.app.state.access_log


def log_error(exc: AccessLogError) -> tuple[int, str]:
    if isinstance(exc, InvalidLogName):
        return 400, "invalid log file name"
    if isinstance(exc, LogNotFound):
        return 404, "log file not found"
    logger.error("%s", exc)
    return 500, "cannot read log file"


def read_log(writer: AccessLogWriter, filename: Optional[str]) -> tuple[str, str]:
    if filename is None:
        return writer.current_path().name, read_today(writer)
    return filename, read_log_file(writer.log_dir, filename)


def log_text(writer: AccessLogWriter, filename: Optional[str]) -> PlainTextResponse:
    try:
        _, body = read_log(writer, filename)
    except AccessLogError as exc:
        status, message = log_error(exc)
        return PlainTextResponse(message, status_code=status, media_type="text/plain; charset=utf-8")
    return PlainTextResponse(body, media_type="text/plain; charset=utf-8")


def log_stats(writer: AccessLogWriter, filename: Optional[str], q: Optional[str], limit: Optional[int]) -> LogStatsOut:
    try:
        name, text = read_log(writer, filename)
    except AccessLogError as exc:
        status, message = log_error(exc)
        raise HTTPException(status_code=status, detail=message) from exc
    lines: List[str] = []
    if q:
        lines = filter_lines(text, q)
        text = "\n".join(lines)
    stats = analyze(text)
    return LogStatsOut(
        file=name,
        total=stats.total,
        unique=stats.unique,
        counts=stats.counts,
        top=[IpCount(ip=ip, count=n) for ip, n in top_ips(stats, limit)],
        query=q or None,
        matches=[mark(line, q) for line in lines],
    )


# === Routes ===


def register_routes(app: FastAPI) -> None:
    @app.get("/api/health")
    def health() -> dict:
        return {"status": "ok", "version": VERSION}

    # --- auth ---

    @app.post("/api/verify-password", response_model=TokenOut, response_model_exclude_none=True)
    def verify_password(payload: PasswordIn, request: Request):
        auth: TokenAuthority = request.app.state.auth
        if not auth.check_password(payload.password):
            return TokenOut(success=False)
        token, exp = auth.issue()
        return TokenOut(success=True, token=token, expiresAt=int(exp.timestamp()))

    @app.post("/api/logout", response_model=Result, response_model_exclude_none=True)
    def logout(request: Request, authorization: Optional[str] = Header(None)):
        token = bearer_token(authorization)
        try:
            request.app.state.auth.revoke(token)
        except TokenError as exc:
            raise HTTPException(status_code=401, detail=str(exc)) from exc
        return Result(success=True)

    # --- cards ---

    @app.get("/api/cards", response_model=List[Card])
    def get_cards(store: CardStore = Depends(get_store)):
        return store.load()

    @app.post("/api/cards", response_model=Result, response_model_exclude_none=True)
    def put_cards(
        cards: List[Card],
        store: CardStore = Depends(get_store),
        _token: str = Depends(require_admin),
    ):
        dupes = duplicate_ids(cards)
        if dupes:
            raise HTTPException(status_code=422, detail=f"duplicate card id: {', '.join(map(str, dupes))}")
        return Result(success=store.replace(cards))

    @app.post("/api/sync", response_model=Result)
    def sync(settings: Settings = Depends(get_settings), _token: str = Depends(require_admin)):
        try:
            GitHubSync.from_settings(settings).run()
        except SyncError as exc:
            logger.error("sync failed: %s", exc)
            return Result(success=False, message=f"sync failed: {exc}")
        return Result(success=True, message="sync succeeded")

    # --- logs (literal paths before the {filename} catch-all) ---

    @app.get("/api/logs/files", response_model=LogFilesOut)
    def log_files(writer: AccessLogWriter = Depends(get_log_writer)):
        try:
            files = list_log_files(writer.log_dir)
        except LogDirectoryError as exc:
            logger.error("%s", exc)
            return JSONResponse({"success": False, "message": "cannot list log files"})
        return LogFilesOut(files=files)

    @app.get("/api/logs/stats", response_model=LogStatsOut)
    def today_stats(
        q: Optional[str] = None,
        limit: Optional[int] = Query(None, ge=1),
        writer: AccessLogWriter = Depends(get_log_writer),
    ):
        return log_stats(writer, None, q, limit)

    @app.get("/api/logs/stats/{filename}", response_model=LogStatsOut)
    def file_stats(
        filename: str,
        q: Optional[str] = None,
        limit: Optional[int] = Query(None, ge=1),
        writer: AccessLogWriter = Depends(get_log_writer),
    ):
        return log_stats(writer, filename, q, limit)

    @app.get("/api/logs/{filename}")
    def log_file(filename: str, writer: AccessLogWriter = Depends(get_log_writer)):
        return log_text(writer, filename)

    @app.get("/api/logs")
    def today_log(writer: AccessLogWriter = Depends(get_log_writer)):
        return log_text(writer, None)


# === App factory ===


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.cards.ensure_exists()
        settings.log_dir.mkdir(parents=True, exist_ok=True)
        yield

    app = FastAPI(title="linkdash", version=VERSION, lifespan=lifespan)
    app.state.settings = settings
    app.state.cards = CardStore(settings.data_file)
    app.state.access_log = AccessLogWriter(settings.log_dir, utc_offset_hours=settings.log_utc_offset_hours)
    app.state.auth = TokenAuthority(settings.admin_password, settings.jwt_secret, settings.token_ttl_minutes)

    @app.middleware("http")
    async def access_log_middleware(request: Request, call_next):
        writer: AccessLogWriter = request.app.state.access_log
        try:
            writer.write(
                client_ip(request),
                request.method,
                request_target(request),
                request.headers.get("User-Agent", ""),
            )
        except Exception:
            logger.exception("access log write failed")
        return await call_next(request)

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "message": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        message = "; ".join(
            f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg', 'invalid')}" for err in exc.errors()
        )
        return JSONResponse(status_code=422, content={"success": False, "message": message or "invalid request"})

    @app.exception_handler(Exception)
    async def server_error(request: Request, exc: Exception):
        logger.exception("unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"success": False, "message": "server error"})

    register_routes(app)

    if settings.static_dir.is_dir():
        logs_page = settings.static_dir / "logs" / "index.html"

        @app.get("/logs", include_in_schema=False)
        def logs_ui():
            if not logs_page.is_file():
                raise HTTPException(status_code=404, detail="not_found")
            return FileResponse(logs_page)

        app.mount("/", StaticFiles(directory=settings.static_dir, html=True), name="static")

    return app
