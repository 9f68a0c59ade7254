"""
API Routers
Separate router modules for each domain.
"""

from app.routers import extender

__all__ = ["extender"]
