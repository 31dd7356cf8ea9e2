from flask import Blueprint

errors_bp = Blueprint("errors", __name__)

# Import route modules to register their endpoints
from . import routes  # noqa: E402,F401
