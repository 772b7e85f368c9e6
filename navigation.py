# ======================================
# navigation.py - signed, short-lived navigation state (carries userId between screens)
# ======================================
import os
import logging
from datetime import datetime, timezone, timedelta

import jwt

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

JWT_SECRET = os.environ.get('JWT_SECRET', 'your-secret-key-change-this-in-production')
NAV_STATE_TTL = timedelta(minutes=int(os.environ.get('NAV_STATE_TTL_MINUTES', '30')))
ALGORITHM = 'HS256'


def encode_state(user_id, now=None):
    """Token posted as the hidden `state` field; never put in a URL or cookie."""
    now = now or datetime.now(timezone.utc)
    payload = {
        'userId': user_id,
        'iat': now,
        'exp': now + NAV_STATE_TTL,
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=ALGORITHM)


def decode_state(token):
    """Return the user id carried by `token`, or None when missing, expired or forged."""
    if not token:
        return None
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError:
        logger.warning("Navigation state expired")
        return None
    except jwt.InvalidTokenError:
        logger.warning("Invalid navigation state")
        return None
    return payload.get('userId')
