from flask import Blueprint

admin_bp = Blueprint('admin', __name__)

# Import route modules to register their endpoints
from . import clients    # noqa: E402,F401
from . import projects   # noqa: E402,F401
from . import invoices   # noqa: E402,F401
