from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import CheckConstraint

db = SQLAlchemy()


class Usuario(db.Model):
    __tablename__ = "usuario"
    id = db.Column(db.Integer, primary_key=True)
    codigo = db.Column(db.String(6), nullable=False, unique=True, index=True)
    nombres = db.Column(db.String(128), nullable=True)
    apellidos = db.Column(db.String(128), nullable=True)
    dni = db.Column(db.String(8), nullable=True)
    telefono = db.Column(db.String(9), nullable=True)
    correo = db.Column(db.String(255), nullable=True)
    reservado = db.Column(db.Boolean, nullable=False, default=False)
    fecha_reserva = db.Column(db.String(40), nullable=True)


class Mesa(db.Model):
    __tablename__ = "mesa"
    id = db.Column(db.Integer, primary_key=True)
    numero = db.Column(db.Integer, nullable=False, unique=True)
    nombre = db.Column(db.String(64), nullable=False)
    capacidad = db.Column(db.Integer, nullable=False, default=10)
    __table_args__ = (
        CheckConstraint('capacidad >= 0', name='ck_capacidad_non_negative'),
    )


class Asiento(db.Model):
    __tablename__ = "asiento"
    id = db.Column(db.Integer, primary_key=True)
    numero = db.Column(db.Integer, nullable=False)
    mesa_id = db.Column(db.Integer, db.ForeignKey("mesa.id"), nullable=False, index=True)
    posicion = db.Column(db.Integer, nullable=False, default=0)
    ocupado = db.Column(db.Boolean, nullable=False, default=False)

    mesa = db.relationship("Mesa")


class Reserva(db.Model):
    __tablename__ = "reserva"
    id = db.Column(db.Integer, primary_key=True)
    usuario_id = db.Column(db.Integer, db.ForeignKey("usuario.id"), nullable=False, index=True)
    mesa_id = db.Column(db.Integer, db.ForeignKey("mesa.id"), nullable=False)
    asiento_id = db.Column(db.Integer, db.ForeignKey("asiento.id"), nullable=False, index=True)
    estado = db.Column(db.String(32), nullable=False, default="confirmed")
    # ISO-8601 text, same representation as the DynamoDB and S3 backends
    created_at = db.Column(db.String(40), nullable=False)

    usuario = db.relationship("Usuario")
    mesa = db.relationship("Mesa")
    asiento = db.relationship("Asiento")


MODELS = {
    "usuario": Usuario,
    "mesa": Mesa,
    "asiento": Asiento,
    "reserva": Reserva,
}
