"""API components - the health endpoint."""

from flight_oracle.api.health import API_MESSAGE, HealthServer, create_app

__all__ = ["API_MESSAGE", "HealthServer", "create_app"]
