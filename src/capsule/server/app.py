"""FastAPI HTTP server for the capsule backend.

Routes:

    GET  /health        -> {"status": "ok", "inference_reachable": ..., ...}
    POST /api/chat      <- {"model": "...", "prompt": "...", "stream": false}
    GET  /api/search    <- ?q=...
    POST /api/ssh       <- {"host": "...", "username": "...", "password": "...", "command": "..."}
    POST /api/vision    <- multipart: file, prompt, [model]

Every failing route answers with a JSON body of the form
``{"error": "..."}``.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import uvicorn
from fastapi import FastAPI, File, Form, HTTPException, Query, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from capsule import __version__
from capsule.config.settings import Settings, load_settings
from capsule.domain.models import (
    CommandRequest,
    CommandResult,
    GenerationReply,
    GenerationRequest,
    HealthResponse,
    SearchResponse,
    VisionReply,
)
from capsule.inference.client import (
    InferenceClient,
    InferenceResponseError,
    InferenceUnavailableError,
)
from capsule.inference.proxy import InferenceProxy
from capsule.remote.executor import (
    CommandExecutionError,
    CommandExecutor,
    CommandNotAllowedError,
)
from capsule.search import PlaceholderSearch
from capsule.uploads.store import UploadStore, UploadStoreError

logger = logging.getLogger(__name__)

CHAT_UNAVAILABLE = "Inference service not reachable"
VISION_UNAVAILABLE = "Vision model not reachable"
BAD_UPSTREAM_REPLY = "Inference service returned an invalid reply"
SSH_FAILED = "Remote command failed"
UPLOAD_FAILED = "Upload could not be stored"
UPLOAD_GONE = "Uploaded file is no longer available"


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------

def create_app(
    settings: Settings | None = None,
    store: UploadStore | None = None,
    inference_client: InferenceClient | None = None,
    executor: CommandExecutor | None = None,
    search: PlaceholderSearch | None = None,
) -> FastAPI:
    """Create the capsule API application.

    Args:
        settings: Loaded configuration. Defaults to ``Settings()``.
        store: Optional pre-configured UploadStore (for testing).
        inference_client: Optional pre-configured InferenceClient (for testing).
        executor: Optional pre-configured CommandExecutor (for testing).
        search: Optional pre-configured search provider (for testing).
    """
    if settings is None:
        settings = Settings()

    if store is None:
        store = UploadStore(settings.uploads.directory)
    if inference_client is None:
        inference_client = InferenceClient(
            base_url=settings.inference.base_url,
            timeout=settings.inference.timeout,
        )
    if executor is None:
        executor = CommandExecutor(
            connect_timeout=settings.ssh.connect_timeout,
            command_timeout=settings.ssh.command_timeout,
            allowed_hosts=settings.ssh.allowed_hosts,
            known_hosts=settings.ssh.known_hosts,
            verify_host_keys=settings.ssh.verify_host_keys,
        )
    if search is None:
        search = PlaceholderSearch(api_key=settings.search_api_key.get_secret_value())

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await app.state.store.open()
        await app.state.inference_client.connect()
        logger.info(
            "capsule backend started (inference=%s, uploads=%s)",
            settings.inference.base_url, settings.uploads.directory,
        )
        yield
        await app.state.inference_client.close()
        await app.state.store.close()
        logger.info("capsule backend stopped")

    app = FastAPI(
        title="capsule",
        description="Backend for a local inference server plus remote tools",
        version=__version__,
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.server.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.store = store
    app.state.inference_client = inference_client
    app.state.proxy = InferenceProxy(inference_client, store)
    app.state.executor = executor
    app.state.search = search

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        problems = [
            f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg', 'invalid')}"
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=422,
            content={"error": "Invalid request: " + "; ".join(problems)},
        )

    @app.get("/health")
    async def health_check() -> HealthResponse:
        client: InferenceClient = app.state.inference_client
        return HealthResponse(
            status="ok",
            inference_reachable=await client.health_check(),
            upload_dir=str(app.state.store.directory),
        )

    # -------------------------------------------------------------------
    # Inference routes
    # -------------------------------------------------------------------

    @app.post("/api/chat", response_model=None)
    async def chat(request: GenerationRequest) -> GenerationReply | StreamingResponse:
        proxy: InferenceProxy = app.state.proxy
        try:
            if request.stream:
                chunks = await proxy.stream(request)
                return StreamingResponse(chunks, media_type="application/x-ndjson")
            return await proxy.generate(request)
        except InferenceUnavailableError as e:
            logger.error("Chat request failed: %s", e)
            raise HTTPException(status_code=503, detail=CHAT_UNAVAILABLE) from e
        except InferenceResponseError as e:
            logger.error("Chat request failed: %s", e)
            raise HTTPException(status_code=502, detail=BAD_UPSTREAM_REPLY) from e

    @app.post("/api/vision")
    async def vision(
        file: UploadFile = File(...),
        prompt: str = Form(...),
        model: str | None = Form(None),
    ) -> VisionReply:
        store: UploadStore = app.state.store
        proxy: InferenceProxy = app.state.proxy
        try:
            artifact = await store.store(await file.read(), file.filename or "")
        except UploadStoreError as e:
            logger.error("Vision upload failed: %s", e)
            raise HTTPException(status_code=500, detail=UPLOAD_FAILED) from e
        finally:
            await file.close()

        request = GenerationRequest(
            model=model or app.state.settings.inference.vision_model,
            prompt=prompt,
            stream=False,
        )
        try:
            reply = await proxy.generate(request, artifact=artifact)
        except InferenceUnavailableError as e:
            logger.error("Vision request failed: %s", e)
            raise HTTPException(status_code=503, detail=VISION_UNAVAILABLE) from e
        except InferenceResponseError as e:
            logger.error("Vision request failed: %s", e)
            raise HTTPException(status_code=502, detail=BAD_UPSTREAM_REPLY) from e
        except UploadStoreError as e:
            # e.g. swept between store and read
            logger.error("Vision upload unreadable: %s", e)
            raise HTTPException(status_code=500, detail=UPLOAD_GONE) from e
        return VisionReply(reply=reply.reply)

    # -------------------------------------------------------------------
    # Tool routes
    # -------------------------------------------------------------------

    @app.get("/api/search")
    async def search_route(q: str = Query(..., description="Search query")) -> SearchResponse:
        return await app.state.search.search(q)

    @app.post("/api/ssh")
    async def ssh(request: CommandRequest) -> CommandResult:
        ex: CommandExecutor = app.state.executor
        try:
            return await ex.execute(
                host=request.host,
                username=request.username,
                password=request.password.get_secret_value(),
                command=request.command,
                port=request.port,
            )
        except CommandNotAllowedError as e:
            raise HTTPException(status_code=403, detail=str(e)) from e
        except CommandExecutionError as e:
            raise HTTPException(status_code=500, detail=SSH_FAILED) from e

    return app


def main() -> None:
    """Entry point for running the server standalone."""
    settings = load_settings()
    uvicorn.run(create_app(settings), host=settings.server.host, port=settings.server.port)


if __name__ == "__main__":
    main()
