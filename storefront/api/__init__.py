"""JSON API: ``/api/v1`` (storefront) and ``/api/v1/admin`` (back office).

Every response is an envelope: ``{"success": true, "data": ...}`` on success,
``{"success": false, "error": "...", "details": ...}`` on failure.
"""
from flask import jsonify, request
from pydantic import ValidationError
from werkzeug.exceptions import HTTPException

from storefront.errors import ApiError, validation_details
from storefront.notify import log, notify


def ok(data=None, status=200, pagination=None, message=None):
    body = {"success": True, "data": data}
    if pagination is not None:
        body["pagination"] = pagination
    if message:
        body["message"] = message
    return jsonify(body), status


def fail(error, status=400, details=None):
    body = {"success": False, "error": error}
    if details is not None:
        body["details"] = details
    return jsonify(body), status


def parse(schema):
    """Validate the JSON body against ``schema``; ValidationError becomes a 400 envelope."""
    return schema.model_validate(request.get_json(silent=True) or {})


def arg_bool(name):
    value = request.args.get(name)
    if value is None or value == "":
        return None
    return value.lower() in ("1", "true", "yes", "on")


def register_error_handlers(bp):
    @bp.errorhandler(ApiError)
    def on_api_error(e):
        return fail(e.message, e.status, e.details)

    @bp.errorhandler(ValidationError)
    def on_validation_error(e):
        return fail("Validation failed", 400, validation_details(e))

    @bp.errorhandler(HTTPException)
    def on_http_error(e):
        return fail(e.description or e.name, e.code)

    @bp.errorhandler(Exception)
    def on_unexpected(e):
        log.exception(f"Unhandled API error on {request.method} {request.path}")
        notify(f"API error on {request.method} {request.path}: {e}")
        return fail("Internal server error", 500)


from storefront.api.admin import admin_api  # noqa: E402
from storefront.api.store import store_api  # noqa: E402

for _bp in (admin_api, store_api):
    register_error_handlers(_bp)
