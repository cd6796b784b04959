"""Routes package for FastAPI endpoints.

This package contains all API route modules for the Form Builder service.
"""

from formbuilder.routes import analytics, auth, forms, health, responses, templates

__all__ = ["analytics", "auth", "forms", "health", "responses", "templates"]
