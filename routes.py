"""FastAPI routes for the photo gallery."""
import logging
import time
from datetime import datetime
from pathlib import Path
from typing import Optional
from urllib.parse import quote, urlencode

from fastapi import Form, HTTPException, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import FileResponse, HTMLResponse, RedirectResponse, StreamingResponse
from jinja2 import Environment, FileSystemLoader, select_autoescape
from starlette.datastructures import UploadFile

from auth import is_authenticated, login, logout
from catalog import filter_photos, unique_events, unique_uploaders
from errors import InvalidInput, NotFound
from exporter import archive_filename, iter_zip_chunks
from uploads import UploadedFile

logger = logging.getLogger(__name__)


def fmt_datetime(value):
    """Format datetime for templates."""
    try:
        return (
            datetime.fromtimestamp(value).strftime("%Y-%m-%d %H:%M:%S")
            if isinstance(value, (int, float))
            else value.strftime("%Y-%m-%d %H:%M:%S")
        )
    except Exception:
        return str(value)


def build_jinja_env(templates_dir: Path) -> Environment:
    """Jinja environment for the gallery templates."""
    env = Environment(
        loader=FileSystemLoader(str(templates_dir)),
        autoescape=select_autoescape(["html", "xml"]),
    )
    env.filters["datetime"] = fmt_datetime
    return env


def render(request: Request, name: str, status_code: int = 200, **ctx) -> HTMLResponse:
    """Render template with context."""
    state = request.app.state
    template = state.jinja_env.get_template(name)
    ctx.setdefault("title", state.settings.site_title)
    ctx.setdefault("site_title", state.settings.site_title)
    ctx.setdefault("authenticated", is_authenticated(request))
    ctx.setdefault("cache_breaker", int(time.time()))
    return HTMLResponse(template.render(**ctx), status_code=status_code)


def _require_auth(request: Request) -> None:
    if not is_authenticated(request):
        raise HTTPException(401, "Unauthorized")


def _load_photos(request: Request):
    try:
        return request.app.state.catalog.list_all()
    except OSError as e:
        logger.error("Failed to load photos: %s", e)
        raise HTTPException(500, "Failed to load photos")


def content_disposition(filename: str) -> str:
    """Attachment header with an ASCII fallback and the UTF-8 name."""
    fallback = filename.encode("ascii", "ignore").decode().replace('"', "")
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename)}"


def gallery(
    request: Request,
    event: Optional[str] = Query(None),
    uploader: Optional[str] = Query(None),
):
    """Gallery page with optional event/uploader filters."""
    if not is_authenticated(request):
        return RedirectResponse("/login", 303)

    photos = _load_photos(request)
    filtered = filter_photos(photos, event, uploader)

    params = {k: v for k, v in (("event", event), ("uploader", uploader)) if v}
    download_url = "/download-all" + (f"?{urlencode(params)}" if params else "")

    return render(
        request,
        "gallery.html",
        photos=filtered,
        events=unique_events(photos),
        uploaders=unique_uploaders(photos),
        selected_event=event or "",
        selected_uploader=uploader or "",
        total_count=len(photos),
        filtered_count=len(filtered),
        download_url=download_url,
    )


def login_page(request: Request):
    """Login form."""
    return render(request, "login.html")


def login_submit(request: Request, password: str = Form("")):
    """Check the shared password and start a session."""
    if login(request, password, request.app.state.settings.gallery_password):
        return RedirectResponse("/", 303)
    return render(request, "login.html", status_code=401, error="Invalid password")


def logout_route(request: Request):
    """End the session."""
    logout(request)
    return RedirectResponse("/login", 303)


def limit_body(request: Request, max_bytes: int) -> Request:
    """
    Same request, with a receive channel that fails with 413 once more than
    max_bytes of body have arrived. Covers chunked bodies without Content-Length.
    """
    received = 0

    async def receive():
        nonlocal received
        message = await request.receive()
        if message["type"] == "http.request":
            received += len(message.get("body", b""))
            if received > max_bytes:
                raise HTTPException(413, "Upload too large")
        return message

    return Request(request.scope, receive)


async def upload(request: Request):
    """
    Multipart upload of one or more photos.

    Succeeds as a whole even when individual files are rejected; those are
    only logged.
    """
    _require_auth(request)
    settings = request.app.state.settings

    length = request.headers.get("content-length", "")
    if length.isdigit() and int(length) > settings.max_upload_bytes:
        raise HTTPException(413, "Upload too large")

    form = await limit_body(request, settings.max_upload_bytes).form()
    try:
        files = [
            UploadedFile(f.file, f.filename, f.content_type or "")
            for f in form.getlist("photos")
            if isinstance(f, UploadFile) and f.filename
        ]
        uploader_name = form.get("uploader_name")
        event_name = form.get("event_name")
        await run_in_threadpool(
            request.app.state.uploader.save_all,
            files,
            uploader_name if isinstance(uploader_name, str) else "",
            event_name if isinstance(event_name, str) else "",
        )
    except InvalidInput as e:
        raise HTTPException(400, str(e))
    finally:
        await form.close()

    return RedirectResponse("/", 303)


def download_all(
    request: Request,
    event: Optional[str] = Query(None),
    uploader: Optional[str] = Query(None),
):
    """Stream the (filtered) photos as a ZIP archive."""
    _require_auth(request)

    photos = filter_photos(_load_photos(request), event, uploader)
    if not photos:
        raise HTTPException(404, "No photos to download")

    filename = archive_filename(event, uploader)
    logger.info("Exporting %d photos as %s", len(photos), filename)
    return StreamingResponse(
        iter_zip_chunks(photos, request.app.state.settings.upload_dir),
        media_type="application/zip",
        headers={"Content-Disposition": content_disposition(filename)},
    )


def serve_photo(request: Request, filename: str):
    """Serve an original upload."""
    _require_auth(request)
    try:
        path = request.app.state.catalog.get_photo_path(filename)
    except NotFound:
        raise HTTPException(404, "File not found")
    return FileResponse(path)


def serve_thumbnail(request: Request, filename: str):
    """Serve a thumbnail, rebuilding it if it went missing."""
    _require_auth(request)
    try:
        path = request.app.state.thumbnails.serve(filename, regenerate=True)
    except NotFound:
        raise HTTPException(404, "Thumbnail not found")
    return FileResponse(path)
