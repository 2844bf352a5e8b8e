from __future__ import annotations

import json
from datetime import datetime
from typing import Callable

from fastapi import FastAPI, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, Response
from sqlalchemy import text
from sqlalchemy.orm import sessionmaker

from teeds import __version__
from teeds.api.handlers import ApiHandlers, ApiRequest, default_blob_store, default_mailer
from teeds.auth import OtpMailer
from teeds.config import Settings, load_settings
from teeds.models import create_session_factory
from teeds.services import BlobStore

ROUTE_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def create_api(
    settings: Settings | None = None,
    session_factory: sessionmaker | None = None,
    mailer: OtpMailer | None = None,
    blob_store: BlobStore | None = None,
    clock: Callable[[], datetime] | None = None,
) -> FastAPI:
    settings = settings or load_settings()
    session_factory = session_factory or create_session_factory(settings)
    app = FastAPI(title="TEEDS API", version=__version__)
    app.state.settings = settings
    app.state.session_factory = session_factory
    app.state.handlers = ApiHandlers(
        settings,
        session_factory,
        mailer or default_mailer(settings),
        blob_store or default_blob_store(settings),
        clock=clock,
    )

    @app.get("/health")
    def health():
        session = app.state.session_factory()
        try:
            session.execute(text("select 1"))
        except Exception as exc:
            raise HTTPException(status_code=503, detail="database_unavailable") from exc
        finally:
            session.close()
        return {"status": "ok"}

    @app.api_route("/functions/v1/{name}", methods=ROUTE_METHODS)
    async def function(name: str, request: Request) -> Response:
        raw = await request.body()
        body = None
        if raw:
            try:
                body = json.loads(raw)
            except ValueError:
                body = None
        api_request = ApiRequest(
            method=request.method,
            headers=dict(request.headers),
            json_body=body,
            query=dict(request.query_params),
        )
        result = await run_in_threadpool(app.state.handlers.dispatch, name, api_request)
        if result.body is None:
            return Response(status_code=result.status, headers=result.headers)
        return JSONResponse(result.body, status_code=result.status, headers=result.headers)

    return app
