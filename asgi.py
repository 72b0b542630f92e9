"""
asgi.py -- ASGI entry point for the Konfetka shop API.

Run with:  uvicorn asgi:app --reload
           konfetka-api            (console script, see main.py)
"""

from api.main import app

__all__ = ["app"]
