import os

# must be set before app.py builds its store
os.environ["STORE_BACKEND"] = "sql"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-secret-key-with-enough-length-for-hs256"

import pytest

from app import app as flask_app, store
from models import db, Usuario, Mesa, Asiento, Reserva


@pytest.fixture
def app():
    flask_app.config.update(TESTING=True)
    with flask_app.app_context():
        db.drop_all()
        db.create_all()
        yield flask_app
        db.session.remove()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def sql_store(app):
    return store


@pytest.fixture
def venue(app):
    """Mesa 3 (eight seats) and Mesa 30 (overflow row, four seats); seat #2 of Mesa 3 is taken."""
    mesa3 = Mesa(numero=3, nombre="Mesa 3", capacidad=8)
    mesa30 = Mesa(numero=30, nombre="Mesa 30", capacidad=4)
    db.session.add_all([mesa3, mesa30])
    db.session.flush()

    seats = {}
    for mesa, count in ((mesa3, 8), (mesa30, 4)):
        for posicion in range(count):
            seat = Asiento(numero=posicion + 1, mesa_id=mesa.id, posicion=posicion, ocupado=False)
            db.session.add(seat)
            seats[(mesa.numero, posicion + 1)] = seat

    taken_by = Usuario(codigo="999999", nombres="Ana Maria", apellidos="Quispe Rojas",
                       dni="11112222", telefono="911112222", correo="ana@example.com",
                       reservado=True, fecha_reserva="2026-10-01T10:00:00-05:00")
    fresh = Usuario(codigo="123456")
    db.session.add_all([taken_by, fresh])
    db.session.flush()

    seats[(3, 2)].ocupado = True
    db.session.add(Reserva(usuario_id=taken_by.id, mesa_id=mesa3.id, asiento_id=seats[(3, 2)].id,
                           estado="confirmed", created_at="2026-10-01T10:00:00-05:00"))
    db.session.commit()

    ids = {
        "mesa3": mesa3.id,
        "mesa30": mesa30.id,
        "free_seat": seats[(3, 7)].id,
        "other_free_seat": seats[(3, 1)].id,
        "taken_seat": seats[(3, 2)].id,
        "fresh_user": fresh.id,
        "reserved_user": taken_by.id,
    }
    # requests run in their own app context; start the test side with an empty identity map
    db.session.close()
    return ids


@pytest.fixture
def valid_form():
    return {
        "nombres": "Luis Alberto",
        "apellidos": "Paredes Soto",
        "dni": "12345678",
        "telefono": "987654321",
        "correo": "luis@example.com",
    }
