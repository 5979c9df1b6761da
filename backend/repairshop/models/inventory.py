from __future__ import annotations

from ..extensions import db
from repairshop.time_utils import utcnow, to_utc_z

# IN/OUT/SALE store a positive magnitude; ADJUST stores the signed delta
TRANSACTION_TYPES = ("IN", "OUT", "ADJUST", "SALE")


class StockTransaction(db.Model):
    """
    Append-only stock ledger entry.

    Rows are never updated. They are deleted only together with the sale
    that produced them (type SALE) or with their part.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.Index("ix_transactions_part_created", "part_id", "created_at"),
        db.Index("ix_transactions_type_created", "type", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    type = db.Column(db.String(16), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.String(255), nullable=True)

    part_id = db.Column(db.Integer, db.ForeignKey("parts.id"), nullable=False, index=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=db.func.now(),
        index=True,
    )

    part = db.relationship("Part", back_populates="transactions")

    @property
    def signed_quantity(self) -> int:
        if self.type == "IN":
            return abs(self.quantity)
        if self.type in ("OUT", "SALE"):
            return -abs(self.quantity)
        return self.quantity

    def to_dict(self, include_part: bool = True) -> dict:
        data = {
            "id": self.id,
            "type": self.type,
            "quantity": self.quantity,
            "signedQuantity": self.signed_quantity,
            "reason": self.reason,
            "partId": self.part_id,
            "saleId": self.sale_id,
            "createdAt": to_utc_z(self.created_at),
        }
        if include_part and self.part is not None:
            data["part"] = self.part.to_summary()
        return data
