from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from memotrail.api import memos as memos_api
from memotrail.core.config import get_settings
from memotrail.core.logging import setup_logging
from memotrail.db.base import create_engine, create_sessionmaker, init_db
from memotrail.domain.errors import MemoOperationError
from memotrail.services.memo_service import MemoService
from memotrail.store.sqlalchemy_store import SQLAlchemyMemoStore


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""

    settings = get_settings()
    setup_logging(settings.log_level)

    engine = create_engine(settings.db_url)
    sessionmaker = create_sessionmaker(engine)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await init_db(engine)
        yield
        await engine.dispose()

    app = FastAPI(lifespan=lifespan)
    app.state.engine = engine
    app.state.sessionmaker = sessionmaker
    app.state.memo_store = SQLAlchemyMemoStore(sessionmaker)
    app.state.memo_service = MemoService(
        app.state.memo_store,
        write_retry_attempts=settings.write_retry_attempts,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.parsed_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(MemoOperationError, memos_api.memo_error_handler)
    app.include_router(memos_api.router)

    return app


app = create_app()
