"""
Riddle Rotator: HTTP Trigger Server
===================================

One trigger endpoint that rotates the riddle when the current one is
inactive, plus a read-only view of the contract state.

Endpoints:
- GET|POST /api/new-riddle -> {message} or {message, riddleIndex, txHash}; {error} with 500
- GET /api/state           -> {question, isActive, winner}
- GET /health              -> {status}

Usage:
    uvicorn riddle.api.server:app
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from riddle.config import RiddleConfig
from riddle.service import RiddleService, ServiceResult

logger = logging.getLogger(__name__)


def _respond(result: ServiceResult) -> JSONResponse:
    if result.success:
        return JSONResponse(status_code=200, content=result.data)
    return JSONResponse(status_code=500, content={"error": "; ".join(result.errors)})


def create_app(service: Optional[RiddleService] = None) -> FastAPI:
    """Build the app. Without ``service``, one is created from the environment at startup."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.service is None:
            # Missing credentials or address fail here, before serving.
            app.state.service = RiddleService(RiddleConfig.from_env())
            logger.info("Rotator ready for contract %s", app.state.service.config.contract_address)
        yield
        logger.info("Shutting down rotator")

    app = FastAPI(
        title="Onchain Riddle Rotator",
        version="0.1.0",
        description="Publishes the next riddle when the current one is solved",
        lifespan=lifespan,
    )
    app.state.service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    @app.api_route("/api/new-riddle", methods=["GET", "POST"])
    def new_riddle() -> JSONResponse:
        result = app.state.service.rotate()
        if not result.success:
            logger.error("Bot function error: %s", "; ".join(result.errors))
        return _respond(result)

    @app.get("/api/state")
    def riddle_state() -> JSONResponse:
        return _respond(app.state.service.state())

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok"}

    return app


app = create_app()
