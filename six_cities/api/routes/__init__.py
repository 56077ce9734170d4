from __future__ import annotations

from six_cities.api.routes.health import router as health_router

__all__ = ["health_router"]
