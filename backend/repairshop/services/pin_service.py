"""
PIN Service

WHY: The shop runs behind a single numeric access PIN. This module owns
storing, changing and checking it; it does not issue sessions.

SECURITY FEATURES:
- PINs are 3-6 digits, stored as bcrypt hashes
- Lockout starts at MAX_FAILED_ATTEMPTS failures and doubles each further
  failure: 5, 10, 20 ... minutes, capped at MAX_LOCK_MINUTES
- A successful check clears the failure count
- Until a PIN is stored, the configured ACCESS_PIN is accepted
"""
from __future__ import annotations

import hmac
import re
from datetime import datetime, timedelta

import bcrypt
from flask import current_app

from ..extensions import db
from ..models import AuthPin
from repairshop.time_utils import utcnow


# Configuration constants
MAX_FAILED_ATTEMPTS = 3
BASE_LOCK_MINUTES = 5
MAX_LOCK_MINUTES = 1440

PIN_RE = re.compile(r"^\d{3,6}$")


class PinError(Exception):
    """Base class for PIN failures."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class PinFormatError(PinError):
    """PIN missing or not 3-6 digits (400)."""


class InvalidPinError(PinError):
    """PIN did not match (401)."""


class PinLockedError(PinError):
    """Too many failures; retry after the lock expires (423)."""


def validate_pin_format(pin) -> str:
    if pin is None or pin == "":
        raise PinFormatError("PIN is required")
    pin = str(pin)
    if not PIN_RE.match(pin):
        raise PinFormatError("PIN must be 3-6 digits")
    return pin


def hash_pin(pin: str) -> str:
    salt = bcrypt.gensalt(rounds=12)
    return bcrypt.hashpw(pin.encode("utf-8"), salt).decode("utf-8")


def check_pin_hash(pin: str, pin_hash: str) -> bool:
    try:
        return bcrypt.checkpw(pin.encode("utf-8"), pin_hash.encode("utf-8"))
    except ValueError:
        # Malformed hash in the database
        return False


def lock_duration(attempts: int) -> timedelta | None:
    """Lock length after `attempts` consecutive failures, or None below the threshold."""
    if attempts < MAX_FAILED_ATTEMPTS:
        return None
    minutes = min(BASE_LOCK_MINUTES * 2 ** (attempts - MAX_FAILED_ATTEMPTS), MAX_LOCK_MINUTES)
    return timedelta(minutes=minutes)


def is_locked(record: AuthPin, now: datetime | None = None) -> bool:
    if record.locked_until is None:
        return False
    return (now or utcnow()) < record.locked_until


def get_active_pin() -> AuthPin | None:
    return (
        db.session.query(AuthPin)
        .filter_by(is_active=True)
        .order_by(AuthPin.id.desc())
        .first()
    )


def _seconds_remaining(record: AuthPin) -> int:
    return max(int((record.locked_until - utcnow()).total_seconds()), 0)


def _ensure_not_locked(record: AuthPin) -> None:
    if is_locked(record):
        raise PinLockedError(
            "Too many failed attempts. Try again later.",
            details={"secondsRemaining": _seconds_remaining(record)},
        )


def _record_failure(record: AuthPin) -> None:
    record.attempts = (record.attempts or 0) + 1
    duration = lock_duration(record.attempts)
    record.locked_until = utcnow() + duration if duration else None
    db.session.commit()


def verify_pin(pin) -> None:
    """
    Check a PIN. Returns None on success.

    Raises PinFormatError, PinLockedError or InvalidPinError.
    """
    pin = validate_pin_format(pin)
    record = get_active_pin()

    if record is None:
        expected = str(current_app.config.get("ACCESS_PIN") or "")
        if not hmac.compare_digest(pin, expected):
            raise InvalidPinError("Invalid PIN")
        return

    _ensure_not_locked(record)

    if not check_pin_hash(pin, record.pin_hash):
        _record_failure(record)
        raise InvalidPinError("Invalid PIN", details={"attempts": record.attempts})

    record.attempts = 0
    record.locked_until = None
    db.session.commit()


def set_pin(pin, current_pin=None) -> tuple[AuthPin, bool]:
    """
    Store a new PIN. Returns (record, replaced_existing).

    When a PIN already exists the current one must be supplied; a wrong
    current PIN counts as a failed attempt.
    """
    pin = validate_pin_format(pin)
    existing = get_active_pin()

    if existing is not None:
        if not current_pin:
            raise PinFormatError("Current PIN is required to change PIN")
        _ensure_not_locked(existing)
        if not check_pin_hash(str(current_pin), existing.pin_hash):
            _record_failure(existing)
            raise InvalidPinError("Invalid current PIN", details={"attempts": existing.attempts})
        existing.is_active = False

    record = AuthPin(pin_hash=hash_pin(pin), is_active=True, attempts=0)
    db.session.add(record)
    db.session.commit()
    return record, existing is not None


def reset_pin(pin) -> AuthPin:
    """Replace the active PIN without the current one (operator CLI only)."""
    pin = validate_pin_format(pin)
    db.session.query(AuthPin).filter_by(is_active=True).update({"is_active": False})
    record = AuthPin(pin_hash=hash_pin(pin), is_active=True, attempts=0)
    db.session.add(record)
    db.session.commit()
    return record


def pin_status() -> dict:
    record = get_active_pin()
    return {
        "exists": record is not None,
        "initialized": record is not None,
        "locked": bool(record and is_locked(record)),
        "attempts": record.attempts if record else 0,
    }
