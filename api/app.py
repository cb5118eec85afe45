from __future__ import annotations

import logging

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from novel_reader.content import ContentEngine

from api.dependencies import get_allowed_origins, get_engine
from api.routes.chapters import router as chapters_router
from api.routes.sessions import router as sessions_router

logger = logging.getLogger(__name__)


async def _invalid_request_value(request: Request, exc: ValueError) -> JSONResponse:
    logger.info("Rejected %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=400, content={"detail": str(exc)})


def create_app() -> FastAPI:
    app = FastAPI(title="Novel Reader API", version="0.1.0")
    origins = get_allowed_origins()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials="*" not in origins,
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["*"],
    )
    app.add_exception_handler(ValueError, _invalid_request_value)

    app.include_router(chapters_router)
    app.include_router(sessions_router)

    @app.get("/healthz")
    def health(engine: ContentEngine = Depends(get_engine)) -> dict:
        return {"status": "ok", "engine_version": engine.engine_version}

    return app


app = create_app()
