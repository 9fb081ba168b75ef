# ============================================================================
# src/medical_docintel/api/__init__.py
# ============================================================================
"""HTTP API for uploads, status and results."""

from .app import create_app

__all__ = ['create_app']
