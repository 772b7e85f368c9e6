# ======================================
# forms.py - input normalisation and validation for the reservation form
# ======================================
import re

CODE_LENGTH = 6
DNI_LENGTH = 8
PHONE_LENGTH = 9

EMAIL_RE = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
NON_DIGIT_RE = re.compile(r'\D')

FIELDS = ("nombres", "apellidos", "dni", "telefono", "correo")

MESSAGES = {
    "nombres_required": "Los nombres son obligatorios",
    "apellidos_required": "Los apellidos son obligatorios",
    "dni_required": "El DNI es obligatorio",
    "dni_length": f"El DNI debe tener {DNI_LENGTH} dígitos",
    "telefono_required": "El teléfono es obligatorio",
    "telefono_length": f"El teléfono debe tener {PHONE_LENGTH} dígitos",
    "correo_required": "El correo es obligatorio",
    "correo_format": "Ingresa un correo válido",
}


def digits_only(value, max_length=None):
    """Strip every non-digit character and cut to `max_length`."""
    digits = NON_DIGIT_RE.sub("", str(value or ""))
    if max_length is not None:
        digits = digits[:max_length]
    return digits


def normalize_code(value):
    return digits_only(value, CODE_LENGTH)


class ReservationForm:
    """Personal data entered before a seat is committed."""

    def __init__(self, nombres="", apellidos="", dni="", telefono="", correo=""):
        self.nombres = nombres
        self.apellidos = apellidos
        self.dni = dni
        self.telefono = telefono
        self.correo = correo
        self.errors = {}

    @classmethod
    def from_input(cls, data):
        """Build a form from raw request data, applying the same input masks as the page."""
        data = data or {}
        return cls(
            nombres=str(data.get("nombres") or ""),
            apellidos=str(data.get("apellidos") or ""),
            dni=digits_only(data.get("dni"), DNI_LENGTH),
            telefono=digits_only(data.get("telefono"), PHONE_LENGTH),
            correo=str(data.get("correo") or ""),
        )

    def validate(self):
        errors = {}

        if not self.nombres.strip():
            errors["nombres"] = MESSAGES["nombres_required"]
        if not self.apellidos.strip():
            errors["apellidos"] = MESSAGES["apellidos_required"]

        if not self.dni.strip():
            errors["dni"] = MESSAGES["dni_required"]
        elif not re.fullmatch(rf'\d{{{DNI_LENGTH}}}', self.dni):
            errors["dni"] = MESSAGES["dni_length"]

        if not self.telefono.strip():
            errors["telefono"] = MESSAGES["telefono_required"]
        elif not re.fullmatch(rf'\d{{{PHONE_LENGTH}}}', self.telefono):
            errors["telefono"] = MESSAGES["telefono_length"]

        if not self.correo.strip():
            errors["correo"] = MESSAGES["correo_required"]
        elif not EMAIL_RE.match(self.correo):
            errors["correo"] = MESSAGES["correo_format"]

        self.errors = errors
        return not errors

    def to_dict(self):
        return {field: getattr(self, field) for field in FIELDS}
