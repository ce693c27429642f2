"""
FastAPI surface: feed routes go through the gateway, plus health and metrics.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse, Response

from digg_rss.gateway import FeedGateway
from digg_rss.jobs.pipeline import AppContext


logger = logging.getLogger(__name__)


def create_app(ctx: AppContext) -> FastAPI:
    gateway = FeedGateway(ctx)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("digg rss ready")
        yield
        await gateway.drain()
        await ctx.aclose()
        logger.info("digg rss stopped")

    app = FastAPI(title="Digg RSS", version="0.1.0", lifespan=lifespan)
    app.state.ctx = ctx
    app.state.gateway = gateway

    @app.exception_handler(Exception)
    async def worker_error(request: Request, exc: Exception):
        logger.exception("unhandled error path=%s", request.url.path)
        return PlainTextResponse(f"Worker error: {exc!r}", status_code=500)

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    if ctx.config.metrics_enabled:

        @app.get("/metrics", include_in_schema=False)
        def metrics() -> Response:
            body, content_type = ctx.metrics.render()
            return Response(content=body, media_type=content_type)

    @app.get("/{path:path}", include_in_schema=False)
    async def feed(request: Request) -> Response:
        result = await gateway.handle(str(request.url))
        return Response(content=result.body, status_code=result.status, headers=result.headers)

    return app
