from __future__ import annotations

import logging
from typing import Any, Optional

from flask import Flask

from werkzeug.exceptions import HTTPException

from eve_industry_planner.application.errors import ServiceError

from flask_app.http import error
from flask_app.state import AppState

from flask_app.routes.admin import admin_bp
from flask_app.routes.industry import industry_bp


def create_app(service: Any = None, *, app_state: Optional[AppState] = None) -> Flask:
    """Build the HTTP app around an IndustryPlannerService.

    Passing `service` marks the app ready immediately; otherwise the
    entrypoint fills `app_state.service` once its collaborators are wired.
    """

    app = Flask(__name__)

    app_state = app_state or AppState()
    if service is not None:
        app_state.service = service
        app_state.init_state = "Ready"
    app.extensions["app_state"] = app_state

    @app.errorhandler(HTTPException)
    def _handle_http_exception(e: HTTPException):
        return error(message=e.description, status_code=e.code or 500)

    @app.errorhandler(ServiceError)
    def _handle_service_error(e: ServiceError):
        extra = {}
        if e.data is not None:
            extra["data"] = e.data
        if e.meta is not None:
            extra["meta"] = e.meta
        if e.status_code >= 500:
            logging.error("Service error (%s): %s", e.status_code, e.message)
        return error(message=e.message, status_code=e.status_code, code=type(e).__name__, **extra)

    @app.errorhandler(Exception)
    def _handle_unhandled_exception(e: Exception):
        logging.exception("Unhandled exception")
        return error(message=str(e), status_code=500)

    @app.errorhandler(404)
    def _handle_not_found(_):
        return error(message="Not found", status_code=404)

    app.register_blueprint(admin_bp)
    app.register_blueprint(industry_bp)

    return app
