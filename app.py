# ======================================
# app.py - seat reservation web app (code entry -> seat map -> form -> result)
# ======================================

from flask import Flask, request, jsonify, render_template, redirect, url_for
from flask_cors import CORS
from werkzeug.exceptions import HTTPException
from pathlib import Path
import os
import logging

from errors import (
    StoreError, InvalidCodeError, CodeNotFoundError, ReservationNotFoundError,
    SeatUnavailableError, FormValidationError, AlreadyReservedError,
)
from forms import ReservationForm, CODE_LENGTH
from navigation import encode_state, decode_state
from reservations import (
    check_access_code, load_venue, find_selectable_seat,
    commit_reservation, load_reservation_details, format_date, build_share_text,
    ROUTE_SUCCESS, ROUTE_DETAILS,
)
from venue_layout import (
    build_layout, Viewport, clamp_scale, MIN_SCALE, MAX_SCALE, ZOOM_STEP, FIT_MARGIN,
    VENUE_WIDTH, VENUE_HEIGHT,
)

# 設定日誌
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

APP_VERSION = "1.0.0"

EVENT_TITLE = os.environ.get('EVENT_TITLE', 'Reencuentro de egresados FIGMM 2025')

# initial viewport used before the page script measures its container
DEFAULT_VIEWPORT_WIDTH = int(os.environ.get('DEFAULT_VIEWPORT_WIDTH', '1280'))
DEFAULT_VIEWPORT_HEIGHT = int(os.environ.get('DEFAULT_VIEWPORT_HEIGHT', '720'))

SEATS_PER_TABLE = 10
SEED_TABLE_COUNT = 34

# ---------- 基本路徑 ----------
PROJECT_DIR = Path(__file__).resolve().parent
TEMPLATES_DIR = PROJECT_DIR / "templates"
STATIC_DIR = PROJECT_DIR / "static"

app = Flask(__name__, template_folder=str(TEMPLATES_DIR), static_folder=str(STATIC_DIR))
CORS(app, resources={r"/api/*": {"origins": "*"}})

# ---------- 儲存層初始化 ----------
STORE_BACKEND = os.environ.get('STORE_BACKEND', 'dynamodb').lower()


def create_store(backend):
    if backend == 'dynamodb':
        from ddb_store import DynamoDBStore
        logger.info("Using DynamoDB as storage backend")
        return DynamoDBStore()
    if backend == 's3':
        from s3_store import S3Store
        logger.info("Using S3 as storage backend")
        return S3Store()
    if backend == 'sql':
        from sql_store import SQLStore
        logger.info("Using SQL as storage backend")
        return SQLStore(app)
    raise ValueError(f"Unknown STORE_BACKEND: {backend}")


store = create_store(STORE_BACKEND)

# ---------- toast messages ----------
TOAST_INVALID_LENGTH = {"title": "Código inválido",
                        "description": f"Por favor ingresa un código de {CODE_LENGTH} dígitos",
                        "variant": "destructive"}
TOAST_CODE_NOT_FOUND = {"title": "Código no válido",
                        "description": "El código ingresado no existe o no es válido",
                        "variant": "destructive"}
TOAST_CODE_ERROR = {"title": "Error",
                    "description": "Ocurrió un error al validar el código",
                    "variant": "destructive"}
TOAST_LOAD_ERROR = {"title": "Error",
                    "description": "No se pudo cargar la información del evento",
                    "variant": "destructive"}
TOAST_SEAT_TAKEN = {"title": "Asiento no disponible",
                    "description": "El asiento seleccionado ya no está disponible",
                    "variant": "destructive"}
TOAST_COMMIT_ERROR = {"title": "Error",
                      "description": "No se pudo completar la reserva. Inténtalo nuevamente.",
                      "variant": "destructive"}


@app.context_processor
def inject_event():
    return {"event_title": EVENT_TITLE}


# ---------- helpers ----------
def _navigate(route, user_id):
    """Hand off to `route` by posting a fresh navigation state (never in the URL)."""
    return render_template("navigate.html", target=route, state=encode_state(user_id))


def _user_from_state():
    if request.is_json:
        token = (request.get_json(silent=True) or {}).get("state")
    else:
        token = request.form.get("state")
    return decode_state(token)


def _back_home():
    logger.warning(f"No valid navigation state for {request.path}, back to code entry")
    return redirect(url_for("index_page"), code=303)


def _parse_int(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _render_seat_page(user_id, selected_seat=None, form=None, step="editing", toasts=None, status=200):
    toasts = list(toasts or [])
    try:
        mesas, asientos, reservas = load_venue(store)
    except StoreError:
        logger.exception("Loading venue failed")
        mesas, asientos, reservas = [], [], []
        toasts.append(TOAST_LOAD_ERROR)

    selected_id = selected_seat["id"] if selected_seat else None
    layout = build_layout(mesas, asientos, reservas, selected_id)
    mesa = None
    if selected_seat:
        mesa = next((m for m in mesas if str(m["id"]) == str(selected_seat["mesa_id"])), None)

    viewport = Viewport.fit(DEFAULT_VIEWPORT_WIDTH, DEFAULT_VIEWPORT_HEIGHT)
    return render_template(
        "seat_selection.html",
        state=encode_state(user_id),
        layout=layout,
        viewport=viewport,
        viewport_config={
            "minScale": MIN_SCALE, "maxScale": MAX_SCALE, "zoomStep": ZOOM_STEP,
            "margin": FIT_MARGIN, "width": VENUE_WIDTH, "height": VENUE_HEIGHT,
        },
        selected_seat=selected_seat,
        mesa=mesa,
        form=form or ReservationForm(),
        step=step,
        toasts=toasts,
    ), status


def _render_result(template, user_id):
    try:
        details = load_reservation_details(store, user_id)
    except ReservationNotFoundError:
        logger.warning(f"No reservation found for user {user_id}")
        return redirect(url_for("index_page"), code=303)
    except StoreError:
        logger.exception(f"Loading reservation of user {user_id} failed")
        return redirect(url_for("index_page"), code=303)

    return render_template(
        template,
        details=details,
        created_at=format_date(details["reserva"]["created_at"]),
        share_text=build_share_text(details, EVENT_TITLE),
    )


# ---------- 頁面路由 ----------
@app.get("/")
def index_page():
    return render_template("code_entry.html", code="", toasts=[])


@app.post("/")
def submit_code():
    code = request.form.get("code", "")
    try:
        route, user_id = check_access_code(store, code)
    except InvalidCodeError:
        return render_template("code_entry.html", code=code, toasts=[TOAST_INVALID_LENGTH]), 400
    except CodeNotFoundError:
        return render_template("code_entry.html", code=code, toasts=[TOAST_CODE_NOT_FOUND]), 404
    except StoreError:
        logger.exception("Access code lookup failed")
        return render_template("code_entry.html", code=code, toasts=[TOAST_CODE_ERROR]), 502
    return _navigate(route, user_id)


@app.route("/select-seat", methods=["GET", "POST"])
def seat_selection_page():
    user_id = _user_from_state() if request.method == "POST" else None
    if user_id is None:
        return _back_home()

    seat_id = _parse_int(request.form.get("seat_id"))
    if seat_id is None or request.form.get("action") == "close":
        return _render_seat_page(user_id)

    try:
        seat = find_selectable_seat(store, seat_id)
    except SeatUnavailableError:
        # occupied seats are not selectable
        logger.info(f"Ignoring selection of unavailable seat {seat_id}")
        return _render_seat_page(user_id)
    except StoreError:
        logger.exception(f"Reading seat {seat_id} failed")
        return _render_seat_page(user_id, toasts=[TOAST_LOAD_ERROR])
    return _render_seat_page(user_id, selected_seat=seat)


@app.route("/reserve", methods=["GET", "POST"])
def reserve_page():
    user_id = _user_from_state() if request.method == "POST" else None
    if user_id is None:
        return _back_home()

    seat_id = _parse_int(request.form.get("seat_id"))
    if seat_id is None:
        return _render_seat_page(user_id)

    try:
        seat = find_selectable_seat(store, seat_id)
    except SeatUnavailableError:
        return _render_seat_page(user_id, toasts=[TOAST_SEAT_TAKEN], status=409)
    except StoreError:
        logger.exception(f"Reading seat {seat_id} failed")
        return _render_seat_page(user_id, toasts=[TOAST_LOAD_ERROR], status=502)

    form = ReservationForm.from_input(request.form)
    step = request.form.get("step", "review")

    if step == "cancel":
        return _render_seat_page(user_id, selected_seat=seat, form=form)

    if step != "confirm":
        if not form.validate():
            return _render_seat_page(user_id, selected_seat=seat, form=form, status=400)
        return _render_seat_page(user_id, selected_seat=seat, form=form, step="confirming")

    try:
        commit_reservation(store, user_id, seat, form)
    except FormValidationError:
        return _render_seat_page(user_id, selected_seat=seat, form=form, status=400)
    except AlreadyReservedError:
        logger.info(f"User {user_id} already reserved, routing to details")
        return _navigate(ROUTE_DETAILS, user_id)
    except StoreError:
        logger.exception(f"Reservation commit failed for user {user_id}, seat {seat['id']}")
        return _render_seat_page(user_id, selected_seat=seat, form=form,
                                 toasts=[TOAST_COMMIT_ERROR], status=502)
    return _navigate(ROUTE_SUCCESS, user_id)


@app.route("/success", methods=["GET", "POST"])
def success_page():
    user_id = _user_from_state() if request.method == "POST" else None
    if user_id is None:
        return _back_home()
    return _render_result("success.html", user_id)


@app.route("/details", methods=["GET", "POST"])
def details_page():
    user_id = _user_from_state() if request.method == "POST" else None
    if user_id is None:
        return _back_home()
    return _render_result("details.html", user_id)


# ---------- 健康檢查 ----------
@app.get("/health")
def health():
    return jsonify(ok=True)


@app.get("/api/version")
def get_version():
    return jsonify(
        app_version=APP_VERSION,
        store_type=STORE_BACKEND,
        store_version=getattr(store, 'VERSION', 'unknown'),
    )


@app.get("/test-connection")
def test_connection():
    if store.test_connection():
        return jsonify(status='success', message=f'{STORE_BACKEND} connection OK', store_type=STORE_BACKEND)
    return jsonify(status='error', message=f'{STORE_BACKEND} connection failed', store_type=STORE_BACKEND), 500


# ---------- API：存取碼 ----------
@app.post("/api/access")
def api_access():
    payload = request.get_json(silent=True) or {}
    try:
        route, user_id = check_access_code(store, payload.get("code"))
    except InvalidCodeError:
        return jsonify(success=False, message=TOAST_INVALID_LENGTH["description"]), 400
    except CodeNotFoundError:
        return jsonify(success=False, message=TOAST_CODE_NOT_FOUND["description"]), 404
    except StoreError:
        logger.exception("Access code lookup failed")
        return jsonify(success=False, message=TOAST_CODE_ERROR["description"]), 502
    return jsonify(success=True, next=route, state=encode_state(user_id))


# ---------- API：座位圖 ----------
@app.get("/api/venue")
def api_venue():
    """
    Floor plan with seat statuses and a viewport.

    `width`/`height` fit the plan to a container; `scale`, `offset_x` and
    `offset_y` describe the current view, to which `zoom` (delta) and
    `dx`/`dy` (screen pixels) are applied.
    """
    args = request.args
    try:
        mesas, asientos, reservas = load_venue(store)
    except StoreError:
        logger.exception("Loading venue failed")
        return jsonify(success=False, message=TOAST_LOAD_ERROR["description"]), 502

    layout = build_layout(mesas, asientos, reservas, args.get("selected", type=int))

    width = args.get("width", type=float)
    height = args.get("height", type=float)
    if width and height:
        viewport = Viewport.fit(width, height)
    else:
        viewport = Viewport(
            scale=clamp_scale(args.get("scale", default=1.0, type=float)),
            offset_x=args.get("offset_x", default=0.0, type=float),
            offset_y=args.get("offset_y", default=0.0, type=float),
        )
    zoom = args.get("zoom", type=float)
    if zoom:
        viewport = viewport.zoom(zoom)
    dx = args.get("dx", default=0.0, type=float)
    dy = args.get("dy", default=0.0, type=float)
    if dx or dy:
        viewport = viewport.pan(dx, dy)

    return jsonify(success=True, layout=layout.to_dict(), viewport=viewport.to_dict())


# ---------- API：建立預約 ----------
@app.post("/api/reservations")
def api_reserve():
    payload = request.get_json(silent=True) or {}
    user_id = decode_state(payload.get("state"))
    if user_id is None:
        return jsonify(success=False, message="Navigation state missing or expired"), 401

    seat_id = _parse_int(payload.get("seat_id"))
    if seat_id is None:
        return jsonify(success=False, message="seat_id is required"), 400

    try:
        seat = find_selectable_seat(store, seat_id)
        reserva = commit_reservation(store, user_id, seat, ReservationForm.from_input(payload))
    except SeatUnavailableError:
        return jsonify(success=False, message=TOAST_SEAT_TAKEN["description"]), 409
    except FormValidationError as e:
        return jsonify(success=False, message="Invalid form", errors=e.errors), 400
    except AlreadyReservedError:
        return jsonify(success=False, message="This user already has a reservation",
                       next=ROUTE_DETAILS, state=encode_state(user_id)), 409
    except StoreError:
        logger.exception(f"Reservation failed for user {user_id}")
        return jsonify(success=False, message=TOAST_COMMIT_ERROR["description"]), 502

    return jsonify(success=True, reservation_id=reserva.get("id"),
                   next=ROUTE_SUCCESS, state=encode_state(user_id)), 201


# ---------- API：查詢預約 ----------
@app.post("/api/reservation")
def api_reservation():
    user_id = _user_from_state()
    if user_id is None:
        return jsonify(success=False, message="Navigation state missing or expired"), 401
    try:
        details = load_reservation_details(store, user_id)
    except ReservationNotFoundError:
        return jsonify(success=False, message="Reservation not found"), 404
    except StoreError:
        logger.exception(f"Loading reservation of user {user_id} failed")
        return jsonify(success=False, message="Could not load reservation"), 502

    return jsonify(
        success=True,
        reservation=details,
        created_at_display=format_date(details["reserva"]["created_at"]),
        share_text=build_share_text(details, EVENT_TITLE),
    )


# ---------- 錯誤處理 ----------
@app.errorhandler(404)
def not_found(e):
    logger.warning(f"404: user attempted to access non-existent route: {request.path}")
    if request.path.startswith("/api/"):
        return jsonify(success=False, message="Not found"), 404
    return render_template("not_found.html"), 404


@app.errorhandler(Exception)
def handle_exception(e):
    if isinstance(e, HTTPException):
        return e
    logger.exception("Unhandled error")
    if request.path.startswith("/api/"):
        return jsonify(success=False, message="Internal server error"), 500
    return render_template("code_entry.html", code="", toasts=[TOAST_CODE_ERROR]), 500


# ---------- 初始化場地資料 ----------
def init_venue(table_count=SEED_TABLE_COUNT, seats_per_table=SEATS_PER_TABLE):
    """Create tables 1..table_count with their seats when the venue is empty."""
    if store.select("mesa", limit=1):
        logger.info("Venue data already exists")
        return 0

    created = 0
    for numero in range(1, table_count + 1):
        mesa = store.insert("mesa", {"numero": numero, "nombre": f"Mesa {numero}",
                                     "capacidad": seats_per_table})
        for posicion in range(seats_per_table):
            store.insert("asiento", {"numero": posicion + 1, "mesa_id": mesa["id"],
                                     "posicion": posicion, "ocupado": False})
        created += 1
    logger.info(f"Initialized tables (1..{table_count}).")
    return created


@app.cli.command("seed-venue")
def seed_venue_command():
    """Create the default tables and seats."""
    created = init_venue()
    print(f"[INFO] {created} table(s) created")


# ---------- 啟動 ----------
if __name__ == "__main__":
    port = int(os.getenv("PORT", 8080))
    app.run(host="0.0.0.0", port=port, debug=False)
