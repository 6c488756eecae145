"""logTerminator FastAPI backend: main application entry point."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from logterminator import __version__, config
from logterminator.db import connection, migrations
from logterminator.db.gateway import PersistenceGateway
from logterminator.history import RecentSources
from logterminator.ingestion.engine import IngestionEngine
from logterminator.routers.api import bookmarks_router, entries_router, sessions_router
from logterminator.routers.ingest import history_router, ingest_router

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger("logterminator")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    logger.info("logTerminator backend starting up")
    if str(config.DB_PATH) == ":memory:":
        # Reader and writer need separate connections to one database file.
        raise RuntimeError("LOGTERM_DB_PATH=:memory: is not supported by the API server; use a file path")

    # 1. Shared read connection + schema
    db = await connection.get_connection()
    await migrations.run_migrations(db)

    # 2. Ingestion writes on their own connection; readers only see committed sessions.
    writer = await connection.open_connection(config.DB_PATH)
    app.state.writer_connection = writer
    app.state.ingest_engine = IngestionEngine(PersistenceGateway(writer))
    app.state.recent_sources = RecentSources()

    yield

    logger.info("logTerminator backend shutting down")
    await writer.close()
    await connection.close_connection()


app = FastAPI(
    title="logTerminator API",
    description="Ingest, browse and bookmark HTML test-log sessions",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        config.FRONTEND_ORIGIN,
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(sessions_router)
app.include_router(entries_router)
app.include_router(bookmarks_router)
app.include_router(ingest_router)
app.include_router(history_router)


@app.get("/api/health")
def health():
    """Health check endpoint."""
    return {
        "status": "ok",
        "db": "connected" if connection._connection else "disconnected",
        "version": __version__,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "logterminator.main:app",
        host=config.HOST,
        port=config.PORT,
        log_level=config.LOG_LEVEL.lower(),
    )
