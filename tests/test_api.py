import pytest

from navigation import encode_state, decode_state


def test_access_code_api(client, venue):
    response = client.post("/api/access", json={"code": "123456"})
    data = response.get_json()
    assert response.status_code == 200
    assert data["next"] == "/select-seat"
    assert decode_state(data["state"]) == venue["fresh_user"]

    assert client.post("/api/access", json={"code": "12"}).status_code == 400
    assert client.post("/api/access", json={"code": "000000"}).status_code == 404


def test_venue_api_returns_layout_and_viewport(client, venue):
    response = client.get(f"/api/venue?selected={venue['free_seat']}&width=940&height=640&zoom=0.2")
    data = response.get_json()

    assert response.status_code == 200
    assert data["layout"]["free"] == 11
    assert data["layout"]["occupied"] == 1
    assert data["layout"]["has_extra_tables"] is True
    statuses = {s["id"]: s["status"] for t in data["layout"]["tables"] for s in t["seats"]}
    assert statuses[venue["free_seat"]] == "selected"
    assert statuses[venue["taken_seat"]] == "occupied"
    assert data["viewport"]["scale"] == pytest.approx(0.7)


def test_venue_api_pans_current_view(client, venue):
    response = client.get("/api/venue?scale=2&offset_x=10&offset_y=0&dx=20&dy=-40")
    viewport = response.get_json()["viewport"]
    assert viewport["offset_x"] == 20
    assert viewport["offset_y"] == -20


def test_reservation_api_flow(client, venue, valid_form):
    state = encode_state(venue["fresh_user"])
    payload = dict(valid_form, state=state, seat_id=venue["free_seat"])

    response = client.post("/api/reservations", json=payload)
    assert response.status_code == 201
    assert response.get_json()["next"] == "/success"

    # the seat is gone now
    other = encode_state(venue["reserved_user"])
    response = client.post("/api/reservations", json=dict(payload, state=other))
    assert response.status_code == 409

    # and the user cannot book a second one
    second = client.post("/api/reservations", json=dict(payload, seat_id=venue["other_free_seat"]))
    assert second.status_code == 409
    assert second.get_json()["next"] == "/details"

    response = client.post("/api/reservation", json={"state": state})
    data = response.get_json()
    assert response.status_code == 200
    assert data["reservation"]["mesa"]["nombre"] == "Mesa 3"
    assert data["reservation"]["asiento"]["numero"] == 7
    assert data["reservation"]["reserva"]["estado"] == "confirmed"
    assert "Asiento: #7" in data["share_text"]


def test_reservation_api_errors(client, venue, valid_form):
    assert client.post("/api/reservations", json=valid_form).status_code == 401

    state = encode_state(venue["fresh_user"])
    response = client.post("/api/reservations", json=dict(valid_form, state=state))
    assert response.status_code == 400

    response = client.post("/api/reservations",
                           json=dict(valid_form, state=state, seat_id=venue["free_seat"], telefono="123"))
    assert response.status_code == 400
    assert "telefono" in response.get_json()["errors"]

    assert client.post("/api/reservation", json={"state": state}).status_code == 404


def test_venue_api_clamps_client_scale(client, venue):
    viewport = client.get("/api/venue?scale=10").get_json()["viewport"]
    assert viewport["scale"] == 3.0

    response = client.get("/api/venue?scale=0&dx=6&dy=3")
    assert response.status_code == 200
    viewport = response.get_json()["viewport"]
    assert viewport["scale"] == pytest.approx(0.3)
    assert viewport["offset_x"] == pytest.approx(20)
    assert viewport["offset_y"] == pytest.approx(10)
