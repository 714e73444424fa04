# API Routes
"""
API route modules.

- health: public banner and liveness endpoints
- protected: diagnostic endpoints under /api
- safe: validated submissions under /api/safe
"""

from src.api.routes import health, protected, safe

__all__ = ["health", "protected", "safe"]
