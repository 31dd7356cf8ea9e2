from flask import Blueprint

payments_bp = Blueprint("payments", __name__)

# Import route modules to register their endpoints
from . import routes  # noqa: E402,F401
