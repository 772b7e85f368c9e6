# ======================================
# errors.py - 例外定義 (store + domain)
# ======================================


class StoreError(Exception):
    """Any failure reported by the storage backend."""


class InvalidCodeError(ValueError):
    """Access code rejected locally (wrong length or non-numeric)."""


class CodeNotFoundError(LookupError):
    pass


class ReservationNotFoundError(LookupError):
    pass


class SeatUnavailableError(Exception):
    def __init__(self, seat_id):
        super().__init__(f"Seat {seat_id} is not available")
        self.seat_id = seat_id


class FormValidationError(ValueError):
    def __init__(self, errors):
        super().__init__("Invalid reservation form")
        self.errors = errors


class AlreadyReservedError(Exception):
    def __init__(self, user_id):
        super().__init__(f"User {user_id} already has a reservation")
        self.user_id = user_id
