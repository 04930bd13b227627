from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from studyhub.bootstrap import build_ai_client, build_analysis_service
from studyhub.core.config import Settings
from studyhub.infrastructure.db import connection as db
from studyhub.interfaces.api.routers import ai, analysis, concepts

settings = Settings.from_env()


@asynccontextmanager
async def lifespan(app: FastAPI):
    pool = db.init_pool(settings.database_url, min_size=settings.db_pool_min, max_size=settings.db_pool_max)
    ai_client = build_ai_client(settings)
    service = build_analysis_service(settings, pool, ai_client)
    service.jobs.ensure_table()
    service.content.ensure_tables()
    # Runs left behind by a previous process can never finish now.
    service.sweep_stale_jobs()

    app.state.ai_client = ai_client
    app.state.analysis_service = service
    try:
        yield
    finally:
        await service.wait_for_idle()
        db.close_pool()


app = FastAPI(title="StudyHub Analysis API", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_origin],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


app.include_router(analysis.router)
app.include_router(concepts.router)
app.include_router(ai.router)
