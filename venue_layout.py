# ======================================
# venue_layout.py - floor plan geometry and seat status for the seat map
# ======================================
import math
from dataclasses import dataclass, field, asdict

# ---------- canvas ----------
VENUE_WIDTH = 1800
VENUE_HEIGHT = 1200
FIT_MARGIN = 40

# ---------- zoom ----------
MIN_SCALE = 0.3
MAX_SCALE = 3.0
ZOOM_STEP = 0.2

# ---------- table box ----------
TABLE_BOX = 120
TABLE_CENTER = TABLE_BOX / 2
SEAT_RADIUS = 35

# ---------- overflow row ----------
MAX_FIXED_TABLE = 28
EXTRA_ROW_X = 100
EXTRA_ROW_STEP = 120
EXTRA_ROW_Y = 820

SELECTED = "selected"
OCCUPIED = "occupied"
AVAILABLE = "available"

VENUE_AREAS = [
    {"id": "dance_floor", "name": "PISTA DE BAILE", "x": 650, "y": 550, "width": 400, "height": 200,
     "style": "solid", "text": (850, 650)},
    {"id": "stage", "name": "ESCENARIO DE\nORQUESTA", "x": 200, "y": 450, "width": 120, "height": 350,
     "style": "dashed", "text": (260, 625)},
    {"id": "bar", "name": "BARRA DE COCTELES", "x": 1150, "y": 80, "width": 250, "height": 100,
     "rotation": 15, "style": "solid", "text": (1275, 130)},
    {"id": "restrooms", "name": "BAÑOS", "x": 80, "y": 250, "width": 100, "height": 150,
     "style": "solid", "text": (130, 210)},
    {"id": "screen", "name": "PANTALLA", "x": 1650, "y": 500, "width": 60, "height": 250,
     "style": "solid", "text": (1680, 470)},
]

# table number -> (x, y, flag)
TABLE_POSITIONS = {
    18: (600, 150, None), 19: (800, 150, None), 20: (1000, 150, None),
    21: (600, 300, None), 22: (800, 300, None), 23: (1000, 300, None),
    24: (600, 450, None), 25: (800, 450, None), 26: (1000, 450, None),
    27: (1200, 300, None), 28: (1400, 300, None),
    1: (1200, 450, "vip"), 2: (1400, 450, "vip"), 3: (1600, 450, "vip"), 4: (1600, 600, "vip"),
    5: (1200, 600, "highlighted"),
    6: (1400, 600, None), 7: (1200, 750, None), 8: (1400, 750, None),
    9: (1600, 750, None), 10: (1600, 900, None), 11: (1400, 900, None), 12: (1200, 900, None),
    13: (450, 900, None), 14: (600, 900, None), 15: (750, 900, None),
    16: (900, 900, None), 17: (1050, 900, None),
}


def clamp_scale(scale):
    return max(MIN_SCALE, min(MAX_SCALE, scale))


def seat_position(index, count, center=TABLE_CENTER, radius=SEAT_RADIUS):
    """Position of seat `index` of `count` inside its table box; index 0 sits at 12 o'clock."""
    angle = (index / count) * 2 * math.pi
    x = center + radius * math.cos(angle - math.pi / 2)
    y = center + radius * math.sin(angle - math.pi / 2)
    return round(x, 2), round(y, 2)


def first_word(value):
    return (value or "").split(" ")[0]


def seat_status(seat, reservation, selected_seat_id=None):
    """Selected wins over occupied; occupied is the seat flag or any reservation on it."""
    if selected_seat_id is not None and str(seat["id"]) == str(selected_seat_id):
        return SELECTED
    if seat.get("ocupado") or reservation is not None:
        return OCCUPIED
    return AVAILABLE


def is_selectable(seat, reservations):
    reserved = {str(r.get("asiento_id")) for r in reservations}
    return not seat.get("ocupado") and str(seat["id"]) not in reserved


@dataclass
class PlacedSeat:
    id: int
    numero: int
    mesa_id: int
    x: float
    y: float
    status: str
    label: list = field(default_factory=list)


@dataclass
class PlacedTable:
    id: int
    numero: int
    nombre: str
    x: float
    y: float
    flag: str = None
    extra: bool = False
    seats: list = field(default_factory=list)


@dataclass
class VenueLayout:
    width: int
    height: int
    tables: list
    areas: list
    free: int
    occupied: int

    @property
    def has_extra_tables(self):
        return any(t.extra for t in self.tables)

    def to_dict(self):
        data = asdict(self)
        data["has_extra_tables"] = self.has_extra_tables
        return data


def _place_seats(mesa, asientos, reservation_by_seat, selected_seat_id):
    seats = [a for a in asientos if str(a.get("mesa_id")) == str(mesa["id"])]
    seats.sort(key=lambda a: (a.get("posicion") or 0, a.get("numero") or 0))
    placed = []
    for index, asiento in enumerate(seats):
        reserva = reservation_by_seat.get(str(asiento["id"]))
        x, y = seat_position(index, len(seats))
        label = []
        if reserva is not None and reserva.get("usuario"):
            usuario = reserva["usuario"]
            label = [first_word(usuario.get("nombres")), first_word(usuario.get("apellidos"))]
        placed.append(PlacedSeat(
            id=asiento["id"],
            numero=asiento.get("numero"),
            mesa_id=asiento.get("mesa_id"),
            x=x,
            y=y,
            status=seat_status(asiento, reserva, selected_seat_id),
            label=label,
        ))
    return placed


def build_layout(mesas, asientos, reservas, selected_seat_id=None):
    """
    Place every table of the venue and resolve each seat's status.

    Tables with a known slot keep their fixed coordinates. Tables numbered
    above MAX_FIXED_TABLE go to the overflow row and are marked `extra`.
    Tables with neither (a missing slot below the limit) are not drawn.
    """
    reservation_by_seat = {str(r.get("asiento_id")): r for r in reservas}

    tables = []
    extra_index = 0
    for mesa in sorted(mesas, key=lambda m: m.get("numero") or 0):
        numero = mesa.get("numero")
        if numero in TABLE_POSITIONS:
            x, y, flag = TABLE_POSITIONS[numero]
            extra = False
        elif numero is not None and numero > MAX_FIXED_TABLE:
            x, y, flag = EXTRA_ROW_X + extra_index * EXTRA_ROW_STEP, EXTRA_ROW_Y, None
            extra = True
            extra_index += 1
        else:
            continue

        tables.append(PlacedTable(
            id=mesa["id"],
            numero=numero,
            nombre=mesa.get("nombre"),
            x=x - TABLE_CENTER,
            y=y - TABLE_CENTER,
            flag=flag,
            extra=extra,
            seats=_place_seats(mesa, asientos, reservation_by_seat, selected_seat_id),
        ))

    # counters only cover the seats drawn on the map
    placed = [seat for table in tables for seat in table.seats]
    occupied = sum(1 for seat in placed if seat.status == OCCUPIED)
    return VenueLayout(
        width=VENUE_WIDTH,
        height=VENUE_HEIGHT,
        tables=tables,
        areas=VENUE_AREAS,
        free=len(placed) - occupied,
        occupied=occupied,
    )


@dataclass
class Viewport:
    """Scale plus pan offset (in canvas units) of the floor plan inside its container."""
    scale: float = 1.0
    offset_x: float = 0.0
    offset_y: float = 0.0

    @classmethod
    def fit(cls, container_width, container_height):
        scale_x = (container_width - FIT_MARGIN) / VENUE_WIDTH
        scale_y = (container_height - FIT_MARGIN) / VENUE_HEIGHT
        scale = min(scale_x, scale_y, 1)
        if scale <= 0:
            return cls()
        offset_x = (container_width - VENUE_WIDTH * scale) / 2
        offset_y = (container_height - VENUE_HEIGHT * scale) / 2
        return cls(scale=scale, offset_x=offset_x / scale, offset_y=offset_y / scale)

    def zoom(self, delta):
        return Viewport(
            scale=clamp_scale(self.scale + delta),
            offset_x=self.offset_x,
            offset_y=self.offset_y,
        )

    def pan(self, dx, dy):
        return Viewport(
            scale=self.scale,
            offset_x=self.offset_x + dx / self.scale,
            offset_y=self.offset_y + dy / self.scale,
        )

    def transform(self):
        return f"scale({self.scale:.4f}) translate({self.offset_x:.2f}px, {self.offset_y:.2f}px)"

    def to_dict(self):
        data = asdict(self)
        data["transform"] = self.transform()
        return data
