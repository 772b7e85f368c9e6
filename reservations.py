# ======================================
# reservations.py - access gate, seat commit and reservation lookups
# ======================================
import os
import logging
from datetime import datetime, timezone, timedelta

from errors import (
    InvalidCodeError, CodeNotFoundError, ReservationNotFoundError,
    SeatUnavailableError, FormValidationError, AlreadyReservedError,
)
from forms import CODE_LENGTH, digits_only
from venue_layout import is_selectable

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# ---------- Lima 時區 (UTC-5, no DST) ----------
EVENT_TZ = timezone(timedelta(hours=-5))

RESERVATION_STATUS = os.environ.get('RESERVATION_STATUS', 'confirmed')

ROUTE_SELECT_SEAT = "/select-seat"
ROUTE_DETAILS = "/details"
ROUTE_SUCCESS = "/success"

MONTHS_ES = [
    "enero", "febrero", "marzo", "abril", "mayo", "junio",
    "julio", "agosto", "septiembre", "octubre", "noviembre", "diciembre",
]

DETAIL_COLUMNS = {
    "usuario": ["nombres", "apellidos", "dni", "correo", "telefono", "codigo"],
    "mesa": ["nombre", "numero"],
    "asiento": ["numero"],
}


def now_iso():
    return datetime.now(EVENT_TZ).isoformat()


# ---------- access gate ----------
def check_access_code(store, code):
    """
    Resolve an access code to (route, user_id).

    Raises InvalidCodeError before touching the store when the code does not
    have exactly six digits, CodeNotFoundError for unknown codes. Store
    failures propagate as StoreError.
    """
    raw = str(code or "").strip()
    digits = digits_only(raw)
    if len(digits) != CODE_LENGTH or len(digits) != len(raw.replace(" ", "")):
        raise InvalidCodeError(raw)

    users = store.select("usuario", {"codigo": digits}, limit=1)
    if not users:
        raise CodeNotFoundError(digits)
    usuario = users[0]

    # the flag can be stale, so an existing reservation row also counts
    already_reserved = bool(usuario.get("reservado"))
    if not already_reserved:
        already_reserved = bool(store.select("reserva", {"usuario_id": usuario["id"]}, limit=1))

    if already_reserved:
        logger.info(f"User {usuario['id']} already has a reservation, routing to details")
        return ROUTE_DETAILS, usuario["id"]

    logger.info(f"User {usuario['id']} has no reservation, routing to seat selection")
    return ROUTE_SELECT_SEAT, usuario["id"]


# ---------- venue ----------
def load_venue(store):
    """Tables, seats and reservations (with the reserving user's names) for the seat map."""
    mesas = store.select("mesa", order="numero")
    asientos = store.select("asiento", order="mesa_id,posicion")
    reservas = store.select("reserva", expand={"usuario": ["nombres", "apellidos"]})
    return mesas, asientos, reservas


def find_selectable_seat(store, seat_id):
    """Current seat row if it can still be picked, else SeatUnavailableError."""
    seats = store.select("asiento", {"id": seat_id}, limit=1)
    if not seats:
        raise SeatUnavailableError(seat_id)
    seat = seats[0]
    reservas = store.select("reserva", {"asiento_id": seat["id"]}, limit=1)
    if not is_selectable(seat, reservas):
        raise SeatUnavailableError(seat_id)
    return seat


# ---------- commit ----------
def commit_reservation(store, user_id, seat, form):
    """
    Three sequential writes: user record, reservation row, seat flag.

    Nothing is rolled back when a later write fails; the caller only sees
    the StoreError of the failing step.
    """
    if not form.validate():
        raise FormValidationError(form.errors)

    # one reservation per user
    if store.select("reserva", {"usuario_id": user_id}, limit=1):
        raise AlreadyReservedError(user_id)

    stamp = now_iso()

    patch = form.to_dict()
    patch.update({"reservado": True, "fecha_reserva": stamp})
    store.update("usuario", {"id": user_id}, patch)

    reserva = store.insert("reserva", {
        "usuario_id": user_id,
        "mesa_id": seat["mesa_id"],
        "asiento_id": seat["id"],
        "estado": RESERVATION_STATUS,
        "created_at": stamp,
    })

    store.update("asiento", {"id": seat["id"]}, {"ocupado": True})

    logger.info(f"Reservation {reserva.get('id')} committed: user {user_id}, seat {seat['id']}")
    return reserva


# ---------- result views ----------
def load_reservation_details(store, user_id):
    """Most recent reservation of `user_id` with its user, table and seat."""
    rows = store.select(
        "reserva",
        {"usuario_id": user_id},
        order="-created_at",
        limit=1,
        expand=DETAIL_COLUMNS,
    )
    if not rows:
        raise ReservationNotFoundError(user_id)

    row = rows[0]
    if not all(row.get(name) for name in DETAIL_COLUMNS):
        raise ReservationNotFoundError(user_id)

    return {
        "usuario": row["usuario"],
        "mesa": row["mesa"],
        "asiento": row["asiento"],
        "reserva": {
            "created_at": row.get("created_at"),
            "estado": row.get("estado"),
        },
    }


def format_date(value):
    """ISO timestamp -> '19 de octubre de 2026, 14:30' in the event time zone."""
    if not value:
        return ""
    if isinstance(value, datetime):
        moment = value
    else:
        try:
            moment = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            logger.warning(f"Unparseable timestamp: {value}")
            return str(value)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(EVENT_TZ)
    return f"{moment.day} de {MONTHS_ES[moment.month - 1]} de {moment.year}, {moment:%H:%M}"


def build_share_text(details, event_title):
    usuario = details["usuario"]
    return "\n".join([
        f"{event_title}",
        f"Reserva confirmada para {usuario.get('nombres', '')} {usuario.get('apellidos', '')}".rstrip(),
        f"Mesa: {details['mesa'].get('nombre')} (N° {details['mesa'].get('numero')})",
        f"Asiento: #{details['asiento'].get('numero')}",
        f"Fecha de reserva: {format_date(details['reserva'].get('created_at'))}",
        f"Código de acceso: {usuario.get('codigo')}",
    ])
