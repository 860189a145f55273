"""FastAPI application exposing the MetaSearch answer pipeline."""

from __future__ import annotations

import secrets
from uuid import uuid4

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response, StreamingResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from metasearch.api.dependencies import AppDependencies, build_dependencies
from metasearch.api.schemas import (
    ChatRequest,
    ErrorResponse,
    FieldError,
    ModelReference,
    SearchRequest,
    SearchResponseModel,
    SuggestionsRequest,
    SuggestionsResponse,
)
from metasearch.config import Settings, get_settings
from metasearch.errors import ConfigurationError, MetaSearchError, UnknownFocusModeError
from metasearch.metrics.observability import (
    configure_logging,
    correlation_scope,
    get_correlation_id,
    get_logger,
)
from metasearch.providers.registry import default_model_ref
from metasearch.services.history import parse_history
from metasearch.services.pipeline import MetaSearchPipeline
from metasearch.services.suggestions import generate_suggestions
from metasearch.streaming import EventType, collect, iter_ndjson

NDJSON_MEDIA_TYPE = "application/x-ndjson"


def _model_ref(reference: ModelReference | None) -> tuple[str, str] | None:
    if reference is None:
        return None
    return reference.provider_id, reference.key


def _field_errors(exc: RequestValidationError) -> list[FieldError]:
    errors = []
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part != "body"]
        errors.append(FieldError(path=".".join(location), message=str(error.get("msg", "Invalid value"))))
    return errors


def create_app(*, settings: Settings | None = None, dependencies: AppDependencies | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level, json_logs=settings.log_json)
    deps = dependencies or build_dependencies(settings)

    logger = get_logger("api")
    app = FastAPI(title="MetaSearch API", version="0.1.0")
    app.state.dependencies = deps

    if settings.cors_allow_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(settings.cors_allow_origins),
            allow_credentials=settings.cors_allow_credentials,
            allow_methods=list(settings.cors_allow_methods),
            allow_headers=list(settings.cors_allow_headers),
        )

    @app.middleware("http")
    async def add_correlation_id(request: Request, call_next):  # type: ignore[override]
        correlation_id = request.headers.get("X-Request-ID", uuid4().hex)
        request.state.correlation_id = correlation_id
        with correlation_scope(correlation_id):
            response = await call_next(request)
        response.headers["X-Correlation-ID"] = correlation_id
        return response

    def require_api_key(request: Request) -> None:
        expected = settings.api_key
        if not expected:
            return
        provided = request.headers.get("X-API-Key")
        if provided != expected:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")

    def _error(status_code: int, message: str, request: Request, **extra) -> JSONResponse:
        correlation_id = getattr(request.state, "correlation_id", None) or get_correlation_id()
        body = ErrorResponse(message=message, **extra).model_dump(exclude_none=True)
        body["correlation_id"] = correlation_id
        return JSONResponse(status_code=status_code, content=body)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = _field_errors(exc)
        logger.info("request.invalid", path=request.url.path, error_count=len(errors))
        return _error(status.HTTP_400_BAD_REQUEST, "Invalid request body", request, data=errors)

    @app.exception_handler(UnknownFocusModeError)
    async def handle_unknown_focus_mode(request: Request, exc: UnknownFocusModeError) -> JSONResponse:
        return _error(status.HTTP_400_BAD_REQUEST, str(exc), request)

    @app.exception_handler(ConfigurationError)
    async def handle_configuration_error(request: Request, exc: ConfigurationError) -> JSONResponse:
        logger.error("configuration.error", detail=str(exc))
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc), request)

    @app.exception_handler(MetaSearchError)
    async def handle_pipeline_error(request: Request, exc: MetaSearchError) -> JSONResponse:
        logger.error("pipeline.error", detail=str(exc))
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc), request)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.error("unhandled.error", detail=str(exc))
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal Server Error", request)

    def get_dependencies(request: Request) -> AppDependencies:
        return request.app.state.dependencies

    def _pipeline(payload: ChatRequest | SearchRequest, dep: AppDependencies) -> MetaSearchPipeline:
        return dep.build_pipeline(
            settings,
            focus_mode=payload.focus_mode,
            chat_model=_model_ref(payload.chat_model),
            embedding_model=_model_ref(payload.embedding_model),
        )

    @app.post("/api/chat")
    async def chat(
        payload: ChatRequest,
        dep: AppDependencies = Depends(get_dependencies),
        _auth: None = Depends(require_api_key),
    ) -> Response:
        pipeline = _pipeline(payload, dep)
        message_id = secrets.token_hex(7)
        stream = pipeline.search_and_answer(
            payload.message.content,
            parse_history(payload.history),
            optimization_mode=payload.optimization_mode,
            file_ids=payload.files,
            system_instructions=payload.system_instructions,
            end_event=EventType.MESSAGE_END,
            message_id=message_id,
        )
        logger.info("chat.started", chat_id=payload.message.chat_id, message_id=message_id, focus_mode=payload.focus_mode)
        return StreamingResponse(iter_ndjson(stream), media_type=NDJSON_MEDIA_TYPE)

    @app.post("/api/search", response_model=SearchResponseModel)
    async def search(
        payload: SearchRequest,
        request: Request,
        dep: AppDependencies = Depends(get_dependencies),
        _auth: None = Depends(require_api_key),
    ) -> Response:
        pipeline = _pipeline(payload, dep)
        stream = pipeline.search_and_answer(
            payload.query,
            parse_history(payload.history),
            optimization_mode=payload.optimization_mode,
            file_ids=payload.files,
            system_instructions=payload.system_instructions,
            end_event=EventType.DONE,
        )
        if payload.stream:
            return StreamingResponse(iter_ndjson(stream), media_type=NDJSON_MEDIA_TYPE)
        answer = await collect(stream)
        if answer.error is not None:
            return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, answer.error, request)
        return JSONResponse(content=SearchResponseModel(message=answer.message, sources=answer.sources).model_dump())

    @app.post("/api/suggestions", response_model=SuggestionsResponse)
    async def suggestions(
        payload: SuggestionsRequest,
        dep: AppDependencies = Depends(get_dependencies),
        _auth: None = Depends(require_api_key),
    ) -> SuggestionsResponse:
        provider_id, key = _model_ref(payload.chat_model) or default_model_ref(settings, "chat")
        llm = dep.registry.load_chat_model(provider_id, key)
        items = await generate_suggestions(parse_history(payload.chat_history), llm)
        return SuggestionsResponse(suggestions=items)

    @app.get("/metrics")
    async def metrics() -> Response:
        payload = generate_latest()
        return Response(content=payload, media_type=CONTENT_TYPE_LATEST)

    @app.get("/healthz")
    async def healthcheck(dep: AppDependencies = Depends(get_dependencies)) -> dict[str, object]:
        from metasearch import __version__

        return {
            "status": "ok",
            "version": __version__,
            "environment": settings.environment,
            "model_providers": dep.registry.active_providers,
        }

    @app.head("/healthz")
    async def healthcheck_head() -> Response:
        return Response(status_code=status.HTTP_200_OK)

    @app.get("/livez")
    async def liveness() -> dict[str, str]:
        return {"status": "alive"}

    return app


app = create_app()
