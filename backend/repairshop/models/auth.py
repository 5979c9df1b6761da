from __future__ import annotations

from ..extensions import db
from repairshop.time_utils import utcnow, to_utc_z


class AuthPin(db.Model):
    """
    Shop access PIN (bcrypt hash).

    At most one row is active; changing the PIN deactivates the old row.
    attempts / locked_until drive the progressive lockout.
    """
    __tablename__ = "auth_pins"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    pin_hash = db.Column(db.String(255), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    attempts = db.Column(db.Integer, nullable=False, default=0)
    locked_until = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "isActive": self.is_active,
            "attempts": self.attempts,
            "lockedUntil": to_utc_z(self.locked_until),
            "createdAt": to_utc_z(self.created_at),
        }
