"""
Dismine Portal Backend Package

This package contains the FastAPI backend for the Dismine community portal,
including:

- main.py: FastAPI application factory and lifecycle
- store.py: document store and cached repository
- services/: role policy, sessions, forms, applications, chat and settings
- routers/: public, portal and admin HTTP endpoints
"""

__version__ = "1.0.0"
