import logging
import os
import time
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from .config import ALLOWED_ORIGINS, LOG_LEVEL
from .database import SessionLocal
from .errors import MatchCoreError
from .routes import include_modular_routers
from .services.fanout import close_fanout

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Campus Match Realtime API")
include_modular_routers(app)

# Cookie sessions need explicit origins; "*" is not allowed with credentials.
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(MatchCoreError)
async def match_core_error_handler(request: Request, exc: MatchCoreError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"[api] {request.method} {request.url.path} failed: {exc.detail}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail, "code": exc.code})


@app.exception_handler(SQLAlchemyError)
async def store_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error(f"[api] store error on {request.method} {request.url.path}: {exc.__class__.__name__}: {exc}")
    return JSONResponse(
        status_code=500,
        content={"detail": "Something went wrong, please try again later", "code": "store_unavailable"},
    )


def run_migrations() -> None:
    env_dir = os.getenv("MIGRATIONS_DIR", "").strip()
    docker_dir = Path("/app/migrations")
    local_dir = Path(__file__).resolve().parents[1] / "migrations"

    if env_dir:
        migrations_dir = Path(env_dir)
    elif docker_dir.exists():
        migrations_dir = docker_dir
    else:
        migrations_dir = local_dir

    if not migrations_dir.exists() or not migrations_dir.is_dir():
        raise FileNotFoundError(
            "Migrations directory not found. Checked: "
            f"MIGRATIONS_DIR={env_dir or '<unset>'}, {docker_dir}, {local_dir}"
        )

    files = sorted([f.name for f in migrations_dir.iterdir() if f.is_file() and f.suffix == ".sql"])
    with SessionLocal() as db:
        for fname in files:
            sql = (migrations_dir / fname).read_text(encoding="utf-8")
            db.execute(text(sql))
        db.commit()
    logger.info(f"[startup] applied {len(files)} migration file(s) from {migrations_dir}")


def wait_for_db(max_attempts: int = 20, delay_seconds: float = 1.5) -> None:
    last_err: Exception | None = None
    for _ in range(max_attempts):
        try:
            with SessionLocal() as db:
                db.execute(text("SELECT 1"))
                db.commit()
            return
        except OperationalError as exc:
            last_err = exc
            logger.info(f"[startup] database not ready, retrying in {delay_seconds}s")
            time.sleep(delay_seconds)
    if last_err:
        raise last_err


@app.on_event("startup")
def on_startup() -> None:
    wait_for_db()
    run_migrations()


@app.on_event("shutdown")
def on_shutdown() -> None:
    close_fanout()


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
