"""
DocVault Backend — FastAPI application entry‑point.
"""
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from docvault import __version__
from docvault.config import settings
from docvault.database import Base, SessionLocal, engine

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s  %(name)-30s  %(levelname)-5s  %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: ensure storage dir + tables + default categories exist
    os.makedirs(settings.DATA_DIR, exist_ok=True)
    os.makedirs(settings.STORAGE_DIR, exist_ok=True)
    import docvault.models  # noqa: F401
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ready (%s)", settings.DATABASE_URL)

    from docvault.repository import CategoryRepository
    db = SessionLocal()
    try:
        CategoryRepository(db).seed_defaults()
    finally:
        db.close()

    if not settings.GEMINI_API_KEY:
        logger.warning("GEMINI_API_KEY is not set; every upload will be saved for manual review")

    yield
    logger.info("Shutting down")


app = FastAPI(
    title="DocVault",
    description="Document upload → AI field extraction → editable records",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
async def root():
    return {"service": "DocVault", "version": __version__, "status": "running"}


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


# ── Register API routers ─────────────────────────────────────────────────
from docvault.routers.documents import router as documents_router  # noqa: E402
from docvault.routers.categories import router as categories_router  # noqa: E402
from docvault.routers.files import router as files_router  # noqa: E402

app.include_router(documents_router, prefix="/api", tags=["Documents"])
app.include_router(categories_router, prefix="/api", tags=["Categories"])
app.include_router(files_router, prefix="/api", tags=["Files"])
