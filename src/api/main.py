"""
PollutionWatch - REST API

FastAPI application serving the report page, the per-session report form
and map, and read endpoints over the stored reports.

Run with: uvicorn src.api.main:app --reload
"""

import html
import json
from contextlib import asynccontextmanager
from datetime import datetime
from typing import List, Optional

from fastapi import Cookie, Depends, FastAPI, File, Form, HTTPException, Query, Request, Response, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse
from pydantic import BaseModel, Field

from src.api.sessions import SESSION_COOKIE, SessionStore
from src.core.config import Settings, get_settings
from src.core.constants import PollutionType
from src.core.errors import FetchError, FormBusyError, InvalidFileError, ValidationError
from src.core.logging import get_logger, setup_logging
from src.crowdsource.geolocation import GeolocationProvider, PositionOptions, ReportedPositionSource
from src.crowdsource.page_controller import PageController, StatusLevel
from src.crowdsource.previews import PreviewStore, token_from_url, url_from_token
from src.crowdsource.reports import ImageFile, StoredReport
from src.ingestion.backend_gateway import SupabaseGateway
from src.visualization.map_view import MapView

VERSION = "0.2.0"

logger = get_logger("api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Build the backend gateway and session store.

    Missing backend configuration raises ConfigurationError here, so the
    server refuses to start instead of serving a broken page. Tests may
    preset ``app.state.gateway`` with a fake.
    """
    settings: Settings = getattr(app.state, "settings", None) or get_settings()
    setup_logging(settings)
    gateway = getattr(app.state, "gateway", None)
    owns_gateway = gateway is None
    if owns_gateway:
        gateway = SupabaseGateway.from_settings(settings)

    previews = PreviewStore()
    options = PositionOptions(timeout_seconds=settings.geolocation_timeout_seconds)

    def build_controller() -> PageController:
        return PageController(
            gateway=gateway,
            map_view=MapView(
                gateway,
                center=(settings.map_center_lat, settings.map_center_lon),
                zoom=settings.map_zoom,
                page_size=settings.reports_page_size,
            ),
            previews=previews,
            geolocation=GeolocationProvider(options=options),
            status_clear_seconds=settings.status_clear_seconds,
            require_image=settings.require_image,
        )

    app.state.settings = settings
    app.state.gateway = gateway
    app.state.previews = previews
    app.state.position_options = options
    app.state.sessions = SessionStore(build_controller, max_sessions=settings.max_sessions)
    logger.info(f"PollutionWatch API started (env={settings.app_env})")

    try:
        yield
    finally:
        app.state.sessions.close_all()
        if owns_gateway:
            await gateway.aclose()
            app.state.gateway = None
        logger.info("PollutionWatch API stopped")


# FastAPI app
app = FastAPI(
    title="PollutionWatch",
    description="Crowdsourced pollution reporting: pin a report on the map, see everyone else's",
    version=VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# Pydantic Models
# ============================================================================

class HealthResponse(BaseModel):
    """API health check response."""
    status: str
    version: str
    timestamp: str
    backend_configured: bool


class LocationReportRequest(BaseModel):
    """Outcome of the browser's geolocation request."""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    error_code: Optional[int] = Field(default=None, description="W3C GeolocationPositionError code")
    error_message: str = ""
    unsupported: bool = False


class LocationResponse(BaseModel):
    latitude: float
    longitude: float


class PreviewResponse(BaseModel):
    preview_url: Optional[str]


class StatusResponse(BaseModel):
    level: str
    text: str


class SubmitResponse(BaseModel):
    success: bool
    status: Optional[StatusResponse]


class ReportResponse(BaseModel):
    """Stored pollution report."""
    id: str
    latitude: float
    longitude: float
    pollution_type: str
    description: str
    image_url: Optional[str]
    created_at: Optional[str]


class ReportListResponse(BaseModel):
    """List of stored reports."""
    count: int
    skipped: int
    reports: List[ReportResponse]


class ReportStatsResponse(BaseModel):
    """Report statistics."""
    total_reports: int
    by_type: dict
    with_photo: int
    skipped: int


# ============================================================================
# Dependencies
# ============================================================================

async def get_controller(
    request: Request,
    response: Response,
    session_id: Optional[str] = Cookie(default=None, alias=SESSION_COOKIE),
) -> PageController:
    """Controller for the caller's session, mounting one on first visit."""
    sessions: SessionStore = request.app.state.sessions
    new_id, controller = await sessions.get_or_create(session_id)
    if new_id != session_id:
        response.set_cookie(SESSION_COOKIE, new_id, httponly=True, samesite="lax")
    return controller


def _status_response(controller: PageController) -> Optional[StatusResponse]:
    status = controller.status
    if status is None:
        return None
    return StatusResponse(level=status.level.value, text=status.text)


def _preview_path(url: Optional[str]) -> Optional[str]:
    if not url:
        return None
    return f"/api/v1/previews/{token_from_url(url)}"


async def _read_image(upload: UploadFile) -> ImageFile:
    return ImageFile(
        filename=upload.filename or "",
        content_type=upload.content_type or "",
        data=await upload.read(),
    )


# ============================================================================
# System Routes
# ============================================================================

@app.get("/", response_class=HTMLResponse)
async def root(request: Request, controller: PageController = Depends(get_controller)):
    """Report page: form, map and status slot."""
    settings: Settings = request.app.state.settings
    options: PositionOptions = request.app.state.position_options
    return render_page(
        options=options,
        status_clear_ms=int(settings.status_clear_seconds * 1000),
        selected=controller.form.pending.pollution_type,
    )


@app.get("/health", response_model=HealthResponse, tags=["System"])
async def health_check(request: Request):
    """Check API health status."""
    settings: Settings = request.app.state.settings
    return HealthResponse(
        status="healthy",
        version=VERSION,
        timestamp=datetime.utcnow().isoformat(),
        backend_configured=not settings.missing_backend_settings,
    )


# ============================================================================
# Form Routes
# ============================================================================

@app.post("/api/v1/location", response_model=LocationResponse, tags=["Form"])
async def report_location(
    body: LocationReportRequest,
    request: Request,
    controller: PageController = Depends(get_controller),
):
    """
    Resolve the position the browser reported into the form's coordinates.

    Failures clear the coordinates and return the location error message.
    """
    options: PositionOptions = request.app.state.position_options
    source = None if body.unsupported else ReportedPositionSource(
        latitude=body.latitude,
        longitude=body.longitude,
        error_code=body.error_code,
        error_message=body.error_message,
    )
    controller.form.geolocation = GeolocationProvider(source, options)

    try:
        coords = await controller.form.use_current_location()
    except FormBusyError as e:
        raise HTTPException(status_code=409, detail=e.message)

    if coords is None:
        raise HTTPException(status_code=422, detail=controller.form.error)

    return LocationResponse(latitude=coords.latitude, longitude=coords.longitude)


@app.post("/api/v1/form/image", response_model=PreviewResponse, tags=["Form"])
async def select_image(
    image: UploadFile = File(...),
    controller: PageController = Depends(get_controller),
):
    """Attach a photo to the pending report. Non-image files are rejected."""
    image_file = await _read_image(image)
    try:
        url = controller.form.select_image(image_file)
    except InvalidFileError as e:
        raise HTTPException(status_code=400, detail=e.message)
    except FormBusyError as e:
        raise HTTPException(status_code=409, detail=e.message)

    return PreviewResponse(preview_url=_preview_path(url))


@app.delete("/api/v1/form/image", response_model=PreviewResponse, tags=["Form"])
async def clear_image(controller: PageController = Depends(get_controller)):
    """Remove the photo from the pending report."""
    try:
        controller.form.select_image(None)
    except FormBusyError as e:
        raise HTTPException(status_code=409, detail=e.message)
    return PreviewResponse(preview_url=None)


@app.get("/api/v1/previews/{token}", tags=["Form"])
async def get_preview(token: str, request: Request):
    """Serve a selected photo before it is uploaded."""
    previews: PreviewStore = request.app.state.previews
    preview = previews.get(url_from_token(token))
    if preview is None:
        raise HTTPException(status_code=404, detail="Preview not found")
    return Response(content=preview.data, media_type=preview.content_type)


@app.post("/api/v1/reports", response_model=SubmitResponse, tags=["Reports"])
async def submit_report(
    pollution_type: str = Form(PollutionType.TRASH_DUMP.value),
    description: str = Form(""),
    latitude: Optional[str] = Form(None),
    longitude: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    controller: PageController = Depends(get_controller),
):
    """
    Submit the session's pending report.

    A photo may be sent here or attached earlier via /api/v1/form/image.
    Validation failures return 422, backend failures 502.
    """
    form = controller.form
    try:
        form.set_pollution_type(pollution_type)
        form.set_description(description)
        form.set_coordinates(latitude, longitude)
        if image is not None and image.filename:
            form.select_image(await _read_image(image))
    except FormBusyError as e:
        raise HTTPException(status_code=409, detail=e.message)
    except (ValidationError, InvalidFileError) as e:
        raise HTTPException(status_code=400 if isinstance(e, InvalidFileError) else 422, detail=e.message)

    ok = await controller.submit()
    if ok:
        return SubmitResponse(success=True, status=_status_response(controller))

    status = controller.status
    if status is not None and status.level == StatusLevel.ERROR:
        raise HTTPException(status_code=502, detail=status.text)
    if status is not None and status.level == StatusLevel.INFO:
        raise HTTPException(status_code=422, detail=status.text)
    raise HTTPException(status_code=422, detail=form.error or "Submission failed.")


@app.get("/api/v1/status", tags=["Form"])
async def get_status(controller: PageController = Depends(get_controller)):
    """Current status message, form state and map state for the session."""
    return controller.to_dict()


# ============================================================================
# Map & Report Routes
# ============================================================================

@app.get("/api/v1/map", response_class=HTMLResponse, tags=["Map"])
async def get_map(controller: PageController = Depends(get_controller)):
    """
    The session's map of stored reports.

    Returns an HTML page with a Leaflet map.
    """
    return controller.map_view.render_html()


@app.post("/api/v1/map/refresh", tags=["Map"])
async def refresh_map(controller: PageController = Depends(get_controller)):
    """Re-fetch reports into the session's map."""
    try:
        await controller.map_view.refresh()
    except FetchError as e:
        raise HTTPException(status_code=502, detail=e.message)
    return {"markers": len(controller.map_view.markers), "skipped": controller.map_view.skipped_count}


async def _load_reports(request: Request, limit: int) -> tuple[list[StoredReport], int]:
    try:
        rows = await request.app.state.gateway.list_reports(limit=limit)
    except FetchError as e:
        raise HTTPException(status_code=502, detail=e.message)

    reports = []
    skipped = 0
    for row in rows:
        report = StoredReport.from_record(row) if isinstance(row, dict) else None
        if report is None:
            skipped += 1
            continue
        reports.append(report)
    return reports, skipped


@app.get("/api/v1/reports", response_model=ReportListResponse, tags=["Reports"])
async def list_reports(
    request: Request,
    limit: int = Query(default=500, ge=1, le=500),
):
    """List stored reports with usable coordinates, most recent first."""
    reports, skipped = await _load_reports(request, limit)
    return ReportListResponse(
        count=len(reports),
        skipped=skipped,
        reports=[ReportResponse(**r.to_dict()) for r in reports],
    )


@app.get("/api/v1/reports/stats/summary", response_model=ReportStatsResponse, tags=["Reports"])
async def get_report_stats(request: Request):
    """Get statistics for the latest page of reports."""
    settings: Settings = request.app.state.settings
    reports, skipped = await _load_reports(request, settings.reports_page_size)

    by_type: dict = {}
    with_photo = 0
    for report in reports:
        label = report.category_label or "Unknown"
        by_type[label] = by_type.get(label, 0) + 1
        if report.image_url:
            with_photo += 1

    return ReportStatsResponse(
        total_reports=len(reports),
        by_type=by_type,
        with_photo=with_photo,
        skipped=skipped,
    )


# ============================================================================
# Page
# ============================================================================

PAGE_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
    <meta charset="UTF-8">
    <title>PollutionWatch</title>
    <style>
        body {{ font-family: Arial; max-width: 1100px; margin: 20px auto; padding: 0 20px; }}
        h1 {{ color: #2e7d32; }}
        .layout {{ display: flex; gap: 20px; }}
        form {{ flex: 0 0 320px; }}
        label {{ display: block; margin-top: 10px; }}
        input, select, textarea {{ width: 100%; padding: 6px; box-sizing: border-box; }}
        button {{ margin-top: 10px; padding: 8px 14px; }}
        iframe {{ flex: 1; height: 600px; border: 1px solid #ccc; border-radius: 4px; }}
        #preview {{ max-width: 100%; margin-top: 8px; display: none; }}
        #status {{ padding: 10px; margin: 10px 0; border-radius: 4px; display: none; }}
        #status.info {{ background: #e3f2fd; color: #0d47a1; }}
        #status.success {{ background: #e8f5e9; color: #1b5e20; }}
        #status.error {{ background: #ffebee; color: #b71c1c; }}
        #form-error {{ color: #b71c1c; min-height: 1em; }}
    </style>
</head>
<body>
    <h1>PollutionWatch</h1>
    <p>Report pollution near you. Pin it on the map with a photo and a short description.</p>
    <div id="status"></div>
    <div class="layout">
        <form id="report-form">
            <fieldset id="fields" style="border: none; padding: 0;">
                <label>Pollution type
                    <select name="pollution_type">{options}</select>
                </label>
                <label>Description
                    <textarea name="description" rows="4" required></textarea>
                </label>
                <label>Latitude <input name="latitude" id="latitude" type="number" step="any"></label>
                <label>Longitude <input name="longitude" id="longitude" type="number" step="any"></label>
                <button type="button" id="locate">Use my location</button>
                <label>Photo <input type="file" id="image" accept="image/*"></label>
                <img id="preview" alt="Selected photo">
                <p id="form-error"></p>
                <button type="submit" id="submit">Submit report</button>
            </fieldset>
        </form>
        <iframe id="map" src="/api/v1/map"></iframe>
    </div>
<script>
const GEO_OPTIONS = {geo_options};
const STATUS_MS = {status_ms};
let statusTimer = null;

function showStatus(level, text) {{
    const el = document.getElementById("status");
    el.className = level;
    el.textContent = text;
    el.style.display = "block";
    clearTimeout(statusTimer);
    statusTimer = setTimeout(() => {{ el.style.display = "none"; }}, STATUS_MS);
}}

function formError(text) {{
    document.getElementById("form-error").textContent = text || "";
}}

async function detail(resp) {{
    try {{ return (await resp.json()).detail; }} catch (e) {{ return resp.statusText; }}
}}

async function postLocation(body) {{
    const resp = await fetch("/api/v1/location", {{
        method: "POST",
        headers: {{"Content-Type": "application/json"}},
        body: JSON.stringify(body),
    }});
    const lat = document.getElementById("latitude");
    const lon = document.getElementById("longitude");
    if (resp.ok) {{
        const coords = await resp.json();
        lat.value = coords.latitude;
        lon.value = coords.longitude;
        formError("");
    }} else {{
        lat.value = "";
        lon.value = "";
        formError(await detail(resp));
    }}
}}

document.getElementById("locate").addEventListener("click", () => {{
    if (!navigator.geolocation) {{
        postLocation({{unsupported: true}});
        return;
    }}
    navigator.geolocation.getCurrentPosition(
        (pos) => postLocation({{latitude: pos.coords.latitude, longitude: pos.coords.longitude}}),
        (err) => postLocation({{error_code: err.code, error_message: err.message}}),
        GEO_OPTIONS
    );
}});

document.getElementById("image").addEventListener("change", async (event) => {{
    const preview = document.getElementById("preview");
    const file = event.target.files[0];
    let resp;
    if (file) {{
        const data = new FormData();
        data.append("image", file);
        resp = await fetch("/api/v1/form/image", {{method: "POST", body: data}});
    }} else {{
        resp = await fetch("/api/v1/form/image", {{method: "DELETE"}});
    }}
    if (resp.ok) {{
        const body = await resp.json();
        preview.src = body.preview_url || "";
        preview.style.display = body.preview_url ? "block" : "none";
        formError("");
    }} else {{
        event.target.value = "";
        preview.style.display = "none";
        formError(await detail(resp));
    }}
}});

document.getElementById("report-form").addEventListener("submit", async (event) => {{
    event.preventDefault();
    const fields = document.getElementById("fields");
    const data = new FormData(event.target);
    fields.disabled = true;
    try {{
        const resp = await fetch("/api/v1/reports", {{method: "POST", body: data}});
        if (resp.ok) {{
            const body = await resp.json();
            showStatus("success", body.status ? body.status.text : "Report submitted successfully!");
            event.target.reset();
            document.getElementById("preview").style.display = "none";
            document.getElementById("map").contentWindow.location.reload();
            formError("");
        }} else if (resp.status === 502) {{
            showStatus("error", await detail(resp));
        }} else {{
            formError(await detail(resp));
        }}
    }} finally {{
        fields.disabled = false;
    }}
}});
</script>
</body>
</html>
"""


def render_page(
    options: PositionOptions,
    status_clear_ms: int,
    selected: PollutionType = PollutionType.TRASH_DUMP,
) -> str:
    """Render the report page."""
    option_tags = "".join(
        '<option value="{value}"{sel}>{value}</option>'.format(
            value=html.escape(member.value, quote=True),
            sel=" selected" if member == selected else "",
        )
        for member in PollutionType
    )
    return PAGE_TEMPLATE.format(
        options=option_tags,
        geo_options=json.dumps(options.to_js()),
        status_ms=status_clear_ms,
    )


# ============================================================================
# Main
# ============================================================================

if __name__ == "__main__":
    import uvicorn
    settings = get_settings()
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
