from __future__ import annotations

from typing import cast

from flask import current_app

from eve_industry_planner.application.errors import ServiceError
from eve_industry_planner.application.industry.service import IndustryPlannerService
from flask_app.state import AppState, state as default_state


def get_state() -> AppState:
    """Return the AppState for the current Flask app.

    Falls back to the module-level state outside an app context.
    """

    try:
        app = current_app._get_current_object()
    except RuntimeError:
        return default_state

    return cast(AppState, app.extensions.get("app_state", default_state))


def get_service() -> IndustryPlannerService:
    app_state = get_state()
    if app_state.service is None:
        raise ServiceError(
            f"Application not ready: {app_state.init_error or app_state.init_state}",
            status_code=503,
        )
    return cast(IndustryPlannerService, app_state.service)
