"""Routes package for the lending marketplace."""


def register_routes(app):
    """Register all route blueprints with the application."""
    from .auth import auth_bp
    from .users import users_bp
    from .items import items_bp
    from .transactions import transactions_bp
    from .reviews import reviews_bp
    from .payments import payments_bp

    app.register_blueprint(auth_bp, url_prefix='/api/auth')
    app.register_blueprint(users_bp, url_prefix='/api/users')
    app.register_blueprint(items_bp, url_prefix='/api/items')
    app.register_blueprint(transactions_bp, url_prefix='/api/transactions')
    app.register_blueprint(reviews_bp, url_prefix='/api/reviews')
    app.register_blueprint(payments_bp, url_prefix='/api/payments')
