from forms import ReservationForm, digits_only, normalize_code, MESSAGES


def test_digits_only_strips_and_truncates():
    assert digits_only("12a34") == "1234"
    assert digits_only("98-765-4321", 9) == "987654321"
    assert digits_only(None) == ""


def test_normalize_code_keeps_six_digits():
    assert normalize_code("12 34 56 78") == "123456"


def test_valid_form(valid_form):
    form = ReservationForm.from_input(valid_form)
    assert form.validate()
    assert form.errors == {}
    assert form.to_dict() == valid_form


def test_dni_mask_then_length_error(valid_form):
    form = ReservationForm.from_input(dict(valid_form, dni="12a34"))
    assert form.dni == "1234"
    assert not form.validate()
    assert form.errors["dni"] == MESSAGES["dni_length"]


def test_phone_is_truncated_to_nine_digits(valid_form):
    form = ReservationForm.from_input(dict(valid_form, telefono="9876543210"))
    assert form.telefono == "987654321"
    assert form.validate()


def test_email_format(valid_form):
    form = ReservationForm.from_input(dict(valid_form, correo="a@b"))
    assert not form.validate()
    assert form.errors == {"correo": MESSAGES["correo_format"]}

    form = ReservationForm.from_input(dict(valid_form, correo="a@b.com"))
    assert form.validate()


def test_required_fields_report_every_error():
    form = ReservationForm.from_input({"nombres": "   "})
    assert not form.validate()
    assert form.errors == {
        "nombres": MESSAGES["nombres_required"],
        "apellidos": MESSAGES["apellidos_required"],
        "dni": MESSAGES["dni_required"],
        "telefono": MESSAGES["telefono_required"],
        "correo": MESSAGES["correo_required"],
    }
