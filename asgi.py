"""
asgi.py -- Application assembly for OTPGate.

This is the ONLY file that imports both the API app and the web router. It
joins the two layers into a single ASGI app. api/main.py knows nothing about
web/; web/routes.py only borrows the shared rate limiter from api/.

Run with:  uvicorn asgi:app --reload
"""

from api.main import app
from web.routes import router as web_router

# Mount the web UI router here, not in api/main.py.
app.include_router(web_router, tags=["Web UI"])
