import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend.api.routes import router as api_router
from backend.core.config import settings
from backend.services.chat_service import chat_service
from thats_my_recruiter.paths import ensure_data_directories

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
    force=True,
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    data_root = ensure_data_directories(Path(settings.DATA_ROOT))
    logger.info(
        "Starting %s (data root %s, object store %s)",
        settings.PROJECT_NAME,
        data_root,
        settings.OBJECT_STORE_PROVIDER,
    )

    yield

    session_ids = chat_service.list_sessions()
    for session_id in session_ids:
        await chat_service.delete_session(session_id)
    logger.info("Closed %d chat session(s) on shutdown", len(session_ids))


app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    lifespan=lifespan,
)

allowed_origins = [str(origin).rstrip("/") for origin in settings.BACKEND_CORS_ORIGINS] or ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix=settings.API_V1_STR)


@app.get("/")
def root():
    return {
        "service": settings.PROJECT_NAME,
        "sessions": f"{settings.API_V1_STR}/sessions",
        "docs": "/docs",
    }


@app.get("/health")
def health_check():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("backend.main:app", host="0.0.0.0", port=8000)
