"""
asgi.py -- Application assembly for shopgate.

This is the ONLY file that imports from both api/ and web/. It joins the two
independent layers into a single ASGI app without coupling them to each other.
api/main.py knows nothing about web/; web/routes.py knows nothing about api/
beyond the shared rate limiter.

Run with:  uvicorn asgi:app --reload
"""

from pathlib import Path

from fastapi.staticfiles import StaticFiles

from api.main import app
from web.routes import router as web_router

app.include_router(web_router, tags=["Web UI"])
# /static/ is on WebGate's public list.
app.mount("/static", StaticFiles(directory=str(Path(__file__).parent / "web" / "static")), name="static")
