from flask import Blueprint

client_bp = Blueprint("client", __name__)

# Import route modules to register their endpoints
from . import routes  # noqa: E402,F401
