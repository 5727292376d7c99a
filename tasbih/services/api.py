import asyncio
import structlog

from fastapi import APIRouter, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..config import Config
from ..errors import CounterError, InvalidRequest
from ..models import (
    CounterSnapshot,
    CreateCounterRequest,
    IncrementResponse,
    ParticipantRequest,
    ResetRequest,
)
from .counter_service import CounterService

log = structlog.get_logger()


class CounterApi:
    """HTTP surface of the counter service."""

    def __init__(self, config: Config, service: CounterService):
        self.config = config
        self.service = service
        self.app = self._build_app()

    async def _call(self, fn, *args):
        # store calls block on per-counter locks, keep them off the event loop
        return await asyncio.to_thread(fn, *args)

    def _build_router(self):
        router = APIRouter(prefix=f"{self.config.api_prefix}/tasbih")

        @router.post("/create", response_model=CounterSnapshot)
        async def create_counter(body: CreateCounterRequest):
            counter = await self._call(self.service.create_counter, body.goal, body.created_by)
            return counter.to_dict()

        @router.get("/{counter_id}", response_model=CounterSnapshot)
        async def get_counter(counter_id: str):
            counter = await self._call(self.service.get_state, counter_id)
            return counter.to_dict()

        @router.post("/{counter_id}/join", response_model=CounterSnapshot)
        async def join_counter(counter_id: str, body: ParticipantRequest):
            counter = await self._call(
                self.service.join_counter, counter_id, body.participant_name
            )
            return counter.to_dict()

        @router.post("/{counter_id}/increment", response_model=IncrementResponse)
        async def increment(counter_id: str, body: ParticipantRequest):
            """Add one to the shared total on behalf of participant_name.

            transitioned_now is true only for the single call that reached the
            goal; later calls get a 409 ALREADY_COMPLETED.
            """
            outcome = await self._call(self.service.increment, counter_id, body.participant_name)
            return outcome.to_dict()

        @router.post("/{counter_id}/reset", response_model=CounterSnapshot)
        async def reset(counter_id: str, body: ResetRequest = ResetRequest()):
            counter = await self._call(self.service.reset, counter_id, body.requesting_name)
            return counter.to_dict()

        return router

    def _build_app(self):
        app = FastAPI(title="Tasbih Counter Service")

        @app.exception_handler(CounterError)
        async def counter_error_handler(request: Request, exc: CounterError):
            return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

        @app.exception_handler(RequestValidationError)
        async def validation_error_handler(request: Request, exc: RequestValidationError):
            error = InvalidRequest(str(exc.errors()[0].get("msg")) if exc.errors() else None)
            return JSONResponse(status_code=error.status_code, content=error.to_dict())

        @app.exception_handler(Exception)
        async def unhandled_exception_handler(request: Request, exc: Exception):
            log.error("api_unhandled_exception", error=str(exc), path=str(request.url.path))
            return JSONResponse(
                status_code=500,
                content={
                    "code": "INTERNAL_SERVER_ERROR",
                    "message": "Unexpected counter service error",
                },
            )

        @app.get("/")
        async def root():
            return {"service": "tasbih-counter", "api_prefix": self.config.api_prefix}

        @app.get("/health")
        async def health():
            return {"status": "ok"}

        app.include_router(self._build_router())
        return app
