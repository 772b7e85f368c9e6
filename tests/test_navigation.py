from datetime import datetime, timezone, timedelta

from navigation import encode_state, decode_state, NAV_STATE_TTL


def test_state_carries_user_id():
    assert decode_state(encode_state(42)) == 42


def test_missing_state():
    assert decode_state(None) is None
    assert decode_state("") is None


def test_expired_state_is_rejected():
    issued = datetime.now(timezone.utc) - NAV_STATE_TTL - timedelta(minutes=1)
    assert decode_state(encode_state(7, now=issued)) is None


def test_tampered_state_is_rejected():
    token = encode_state(7)
    assert decode_state(token[:-2] + ("aa" if not token.endswith("aa") else "bb")) is None
