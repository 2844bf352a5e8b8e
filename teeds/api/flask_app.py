from __future__ import annotations

from datetime import datetime
from typing import Callable

from flask import Flask, jsonify, request
from sqlalchemy import text
from sqlalchemy.orm import sessionmaker

from teeds.api.handlers import ApiHandlers, ApiRequest, default_blob_store, default_mailer
from teeds.auth import OtpMailer
from teeds.config import Settings, load_settings
from teeds.logging import get_logger
from teeds.models import create_session_factory
from teeds.services import BlobStore

logger = get_logger("api.flask")

ROUTE_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def create_app(
    settings: Settings | None = None,
    session_factory: sessionmaker | None = None,
    mailer: OtpMailer | None = None,
    blob_store: BlobStore | None = None,
    clock: Callable[[], datetime] | None = None,
) -> Flask:
    settings = settings or load_settings()
    session_factory = session_factory or create_session_factory(settings)
    handlers = ApiHandlers(
        settings,
        session_factory,
        mailer or default_mailer(settings),
        blob_store or default_blob_store(settings),
        clock=clock,
    )

    app = Flask(__name__)
    app.config["TEEDS_SETTINGS"] = settings
    app.extensions["teeds_handlers"] = handlers

    @app.route("/functions/v1/<name>", methods=ROUTE_METHODS)
    def function(name: str):
        api_request = ApiRequest(
            method=request.method,
            headers=dict(request.headers),
            json_body=request.get_json(silent=True),
            query=request.args.to_dict(),
        )
        result = handlers.dispatch(name, api_request)
        if result.body is None:
            response = app.response_class(status=result.status)
        else:
            response = jsonify(result.body)
            response.status_code = result.status
        response.headers.update(result.headers)
        return response

    @app.route("/health")
    def health():
        session = session_factory()
        try:
            session.execute(text("select 1"))
        except Exception:
            logger.exception("Database health check failed")
            return jsonify({"status": "database_unavailable"}), 503
        finally:
            session.close()
        return jsonify({"status": "ok"})

    return app
