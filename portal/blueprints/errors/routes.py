import logging
from flask import jsonify, request
from werkzeug.exceptions import HTTPException
from ...errors import PortalError
from ...extensions import db
from . import errors_bp

log = logging.getLogger(__name__)


def _rollback():
    # if a DB action caused this, rollback so the app isn't stuck in a bad transaction
    try:
        db.session.rollback()
    except Exception as e:
        log.warning("rollback after error failed: %s", e)


@errors_bp.app_errorhandler(PortalError)
def err_portal(e: PortalError):
    if e.status_code >= 500:
        _rollback()
        log.error("%s on %s %s: %s %s", type(e).__name__, request.method, request.path, e, e.context)
    else:
        log.info("%s on %s %s: %s", type(e).__name__, request.method, request.path, e.message)
    return jsonify(e.to_dict()), e.status_code


# Fallback for werkzeug HTTP errors (404 route, 405, 413...)
@errors_bp.app_errorhandler(HTTPException)
def err_http(e: HTTPException):
    return jsonify({"error": e.description or e.name}), e.code


# Last-resort: any other Exception
@errors_bp.app_errorhandler(Exception)
def err_unexpected(e):
    _rollback()
    log.exception("Unhandled error on %s %s", request.method, request.path)
    # Don't leak internals
    return jsonify({"error": "Internal server error"}), 500
