"""Blueprint registrations for application routes."""

from flask import Flask

from .budget import blueprint as budget_blueprint
from .calculations import blueprint as calculations_blueprint
from .config import blueprint as config_blueprint
from .localization import blueprint as translations_blueprint
from .validations import blueprint as validations_blueprint


def register_routes(app: Flask) -> None:
    """Register all Flask blueprints with the provided application."""

    app.register_blueprint(calculations_blueprint)
    app.register_blueprint(validations_blueprint)
    app.register_blueprint(config_blueprint)
    app.register_blueprint(translations_blueprint)
    app.register_blueprint(budget_blueprint)
