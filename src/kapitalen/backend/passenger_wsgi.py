"""WSGI entrypoint for Passenger-style hosting."""

from kapitalen.backend.app import create_app

# Passenger expects a module-level variable named ``application``.
application = create_app()
