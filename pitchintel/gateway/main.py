"""
PitchIntel Backend - Main FastAPI Application

This module wires the request-economics layer (LLM client, response cache,
usage tracker, conversation memory) into the HTTP API consumed by the deck
analysis and persona chat screens.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import litellm
from fastapi import APIRouter, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from pitchintel.analysis.personas import list_personas
from pitchintel.cache.response_cache import ResponseCache
from pitchintel.config.settings import Settings
from pitchintel.gateway.models import AnalyzeSlidesRequest, ChatRequest, ScoreAnswerRequest, SlidesRequest
from pitchintel.gateway.service import PitchService
from pitchintel.llm.client import CompletionFn, LLMClient
from pitchintel.llm.errors import PitchIntelError
from pitchintel.memory.memory_manager import ConversationMemory
from pitchintel.observability.tracer import LangFuseTracer
from pitchintel.scheduling.periodic import PeriodicTask
from pitchintel.usage.token_tracker import TokenTracker

logger = logging.getLogger(__name__)


def build_service(
    settings: Settings,
    completion_fn: Optional[CompletionFn] = None,
    tracer: Optional[LangFuseTracer] = None,
) -> PitchService:
    """Construct one instance of every component for this process"""
    client = LLMClient(
        completion_fn=completion_fn,
        default_model=settings.default_model,
        max_retries=settings.max_retries,
        base_delay=settings.retry_base_delay,
        max_delay=settings.retry_max_delay,
        timeout_seconds=settings.request_timeout,
        api_key=settings.openai_api_key,
        tracer=tracer,
    )
    cache = ResponseCache(ttl=settings.cache_ttl, max_size=settings.cache_max_size)
    memory = ConversationMemory(
        max_conversations=settings.max_conversations,
        max_messages=settings.max_messages_per_conversation,
        max_tokens=settings.max_tokens_per_conversation,
        ttl=settings.conversation_ttl,
    )
    return PitchService(
        client=client,
        cache=cache,
        tracker=TokenTracker(),
        memory=memory,
        settings=settings,
        tracer=tracer,
    )


def create_app(
    settings: Optional[Settings] = None,
    service: Optional[PitchService] = None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    litellm.set_verbose = settings.log_level.upper() == "DEBUG"

    tracer = LangFuseTracer()
    service = service or build_service(settings, tracer=tracer)

    sweeps = [
        PeriodicTask("cache", service.cache.sweep_expired, settings.cache_sweep_interval),
        PeriodicTask("conversations", service.memory.sweep_idle, settings.conversation_sweep_interval),
    ]

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup and shutdown events"""
        tracer.initialize()
        for sweep in sweeps:
            sweep.start()
        if not settings.openai_api_key:
            logger.warning("OPENAI_API_KEY not set; provider calls will fail")
        logger.info("PitchIntel backend started")
        yield
        for sweep in sweeps:
            await sweep.stop()
        tracer.shutdown()

    app = FastAPI(
        title="PitchIntel Backend",
        description="Pitch deck analysis and VC persona chat",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.service = service
    app.state.settings = settings
    app.state.sweeps = sweeps

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_error_handlers(app, settings)
    app.include_router(_api_router(service))

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "OK",
            "service": "PitchIntel Backend",
            "version": "0.1.0",
        }

    return app


def _api_router(service: PitchService) -> APIRouter:
    router = APIRouter(prefix="/api")

    @router.post("/analyze-slides")
    async def analyze_slides(request: AnalyzeSlidesRequest):
        return await service.analyze_slides([m.to_dict() for m in request.messages])

    @router.post("/chat")
    async def chat(request: ChatRequest):
        return await service.chat(
            [m.to_dict() for m in request.messages],
            temperature=request.temperature,
            conversation_id=request.conversation_id,
            system_prompt=request.system_prompt,
            persona=request.persona,
        )

    @router.get("/usage-stats")
    async def usage_stats():
        return service.usage_stats()

    @router.post("/clear-cache")
    async def clear_cache():
        return service.clear_cache()

    @router.get("/conversation-stats")
    async def conversation_stats():
        return service.conversation_stats()

    @router.delete("/conversations/{conversation_id}")
    async def delete_conversation(conversation_id: str):
        return await service.delete_conversation(conversation_id)

    @router.post("/clear-conversations")
    async def clear_conversations():
        return await service.clear_conversations()

    @router.get("/personas")
    async def personas():
        return {"personas": list_personas()}

    @router.post("/analyze-deck")
    async def analyze_deck(request: SlidesRequest):
        return {"slides": await service.analyze_deck(request.slides)}

    @router.post("/report")
    async def report(request: SlidesRequest):
        return await service.build_report(request.slides)

    @router.post("/score-answer")
    async def score_answer(request: ScoreAnswerRequest):
        return {"result": await service.score_answer(request.question, request.answer)}

    return router


def _register_error_handlers(app: FastAPI, settings: Settings):
    @app.exception_handler(PitchIntelError)
    async def pitchintel_error(request: Request, exc: PitchIntelError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        details = [
            {"loc": [str(part) for part in err.get("loc", ())], "msg": err.get("msg", "")}
            for err in exc.errors()
        ]
        message = "Invalid messages format" if _mentions_messages(details) else "Invalid request"
        return JSONResponse(status_code=400, content={"error": message, "details": details})

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        message = "Route not found" if exc.status_code == 404 else str(exc.detail)
        return JSONResponse(status_code=exc.status_code, content={"error": message})

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        logger.exception("Server error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "message": str(exc) if settings.debug else "Something went wrong",
            },
        )


def _mentions_messages(details) -> bool:
    return any("messages" in err["loc"] for err in details)


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = app.state.settings
    uvicorn.run(
        "pitchintel.gateway.main:app",
        host=settings.host,
        port=settings.port,
    )
