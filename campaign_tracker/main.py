import logging
from contextlib import asynccontextmanager
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from campaign_tracker.core.calculator import InvalidAmount
from campaign_tracker.core.config import get_settings
from campaign_tracker.core.database import engine, Base, get_db
from campaign_tracker.core.editor import EditorStateError, IncompleteDraft
from campaign_tracker.api import api_router

settings = get_settings()

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Create tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Campaign tracker started (%s)", settings.ENVIRONMENT)

    yield

    await engine.dispose()


app = FastAPI(title="Campaign Profit Tracker API", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)


@app.exception_handler(InvalidAmount)
async def invalid_amount_handler(request: Request, exc: InvalidAmount):
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.exception_handler(IncompleteDraft)
async def incomplete_draft_handler(request: Request, exc: IncompleteDraft):
    return JSONResponse(status_code=422, content={"detail": str(exc), "missing": exc.missing})


@app.exception_handler(EditorStateError)
async def editor_state_handler(request: Request, exc: EditorStateError):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/health/db")
async def health_db(db: AsyncSession = Depends(get_db)):
    try:
        await db.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError):
        logger.exception("Database connectivity check failed")
        raise HTTPException(status_code=503, detail="Database unreachable")
    return {"database": "ok"}
