"""Transaction routes package.

This package organizes transaction routes into logical submodules:
- queries: Listing, detail, quote and financial views
- workflow: Request, negotiation, retraction and payment
- handoff: Pickup and return codes, deposit resolution

Routes only translate HTTP to calls on ``lendit.services.transactions``;
errors raised there are rendered by the app-wide error handler.
"""

from flask import Blueprint

transactions_bp = Blueprint('transactions', __name__)

# Import and register all route modules
from lendit.routes.transactions import queries  # noqa: E402,F401
from lendit.routes.transactions import workflow  # noqa: E402,F401
from lendit.routes.transactions import handoff  # noqa: E402,F401
