"""
Photo Gallery – password-gated photo sharing (FastAPI + Pillow)

Quick start
-----------
1) python -m venv .venv && source .venv/bin/activate  # or .venv\\Scripts\\activate on Windows
2) pip install -e .
3) GALLERY_PASSWORD=secret python app.py  # auto-writes templates/static and folders
4) Open http://localhost:8080 → log in → upload

Notes
-----
• Photos are stored as plain files under UPLOAD_DIR (default ./uploads).
• One JSON sidecar per photo and all thumbnails live under METADATA_DIR (default ./metadata).
• On every start the sidecars and thumbnails are reconciled with the upload folder:
  missing ones are generated, orphaned ones are removed.
• exiftool is used for capture dates when installed; Pillow's EXIF reader otherwise.
"""

import logging
import sys
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse
from fastapi.staticfiles import StaticFiles
from pydantic import ValidationError
from starlette.middleware.sessions import SessionMiddleware

from auth import SESSION_COOKIE
from catalog import PhotoCatalog
from config import GallerySettings, get_settings
from errors import StorageSetupError
from metadata_store import MetadataStore
from photo_time import PhotoTimeExtractor
from routes import (
    build_jinja_env,
    download_all,
    gallery,
    login_page,
    login_submit,
    logout_route,
    serve_photo,
    serve_thumbnail,
    upload,
)
from scanner import CatalogReconciler
from templates_static import ensure_assets
from thumbnails import ThumbnailManager
from uploads import PhotoUploader

logger = logging.getLogger(__name__)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}


def configure_logging(settings: GallerySettings) -> None:
    logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


async def add_security_headers(request: Request, call_next):
    response = await call_next(request)
    for name, value in SECURITY_HEADERS.items():
        response.headers[name] = value
    return response


def create_app(settings: Optional[GallerySettings] = None) -> FastAPI:
    """
    Build the gallery app. Reconciles the catalog before returning; a
    StorageSetupError from that step propagates and should end the process.
    """
    settings = settings or get_settings()
    configure_logging(settings)

    store = MetadataStore(settings)
    thumbnails = ThumbnailManager(settings)
    extractor = PhotoTimeExtractor.from_settings(settings)

    stats = CatalogReconciler(settings, store, thumbnails, extractor).run()
    logger.info(
        "Startup reconciliation: %d metadata and %d thumbnails created, %d metadata and %d thumbnails removed",
        stats["metadata_created"],
        stats["thumbnails_created"],
        stats["metadata_removed"],
        stats["thumbnails_removed"],
    )

    # Ensure templates and static files exist
    ensure_assets(settings.templates_dir, settings.static_dir)

    app = FastAPI(title=settings.site_title)
    app.state.settings = settings
    app.state.jinja_env = build_jinja_env(settings.templates_dir)
    app.state.catalog = PhotoCatalog(settings, store, extractor)
    app.state.thumbnails = thumbnails
    app.state.uploader = PhotoUploader(settings, store, thumbnails, extractor)

    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.session_secret,
        session_cookie=SESSION_COOKIE,
        same_site="lax",
    )
    app.middleware("http")(add_security_headers)

    # Mount static files
    app.mount("/static", StaticFiles(directory=str(settings.static_dir)), name="static")

    # Routes
    app.get("/", response_class=HTMLResponse)(gallery)
    app.get("/login", response_class=HTMLResponse)(login_page)
    app.post("/login", response_class=HTMLResponse)(login_submit)
    app.get("/logout")(logout_route)
    app.post("/logout")(logout_route)
    app.post("/upload")(upload)
    app.get("/download-all")(download_all)
    app.get("/uploads/{filename}")(serve_photo)
    app.get("/thumbnails/{filename}")(serve_thumbnail)

    return app


def main(argv: Optional[list] = None) -> int:
    """Run the gallery with uvicorn. `python app.py 8000` overrides PORT."""
    import uvicorn

    argv = sys.argv[1:] if argv is None else argv
    try:
        settings = get_settings()
    except ValidationError as e:
        print(f"Invalid configuration (is GALLERY_PASSWORD set?): {e}", file=sys.stderr)
        return 1

    try:
        app = create_app(settings)
    except StorageSetupError as e:
        logger.error("Startup aborted: %s", e)
        return 1

    port = int(argv[0]) if argv else settings.port
    print(f"→ Open http://localhost:{port}")
    uvicorn.run(app, host=settings.host, port=port)
    return 0


if __name__ == "__main__":
    sys.exit(main())
