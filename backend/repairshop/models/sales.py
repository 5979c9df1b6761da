from __future__ import annotations

from ..extensions import db
from repairshop.money import from_cents
from repairshop.time_utils import utcnow, to_utc_z

SALE_STATUSES = ("COMPLETED", "CANCELLED", "REFUNDED", "PENDING")


class Sale(db.Model):
    """
    Point-of-sale transaction.

    Amounts are integer cents. total_amount_cents and final_amount_cents are
    computed once when the sale is recorded (final = total - discount) and
    never recomputed on read.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    customer_name = db.Column(db.String(255), nullable=True)
    customer_phone = db.Column(db.String(64), nullable=True)
    customer_email = db.Column(db.String(255), nullable=True)

    total_amount_cents = db.Column(db.Integer, nullable=False)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    final_amount_cents = db.Column(db.Integer, nullable=False)

    payment_method = db.Column(db.String(16), nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default="COMPLETED", index=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=db.func.now(),
        index=True,
    )

    items = db.relationship(
        "SaleItem",
        back_populates="sale",
        cascade="all, delete-orphan",
        order_by="SaleItem.id",
    )

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "customerName": self.customer_name,
            "customerPhone": self.customer_phone,
            "customerEmail": self.customer_email,
            "totalAmount": from_cents(self.total_amount_cents),
            "discount": from_cents(self.discount_cents),
            "finalAmount": from_cents(self.final_amount_cents),
            "paymentMethod": self.payment_method,
            "status": self.status,
            "notes": self.notes,
            "createdAt": to_utc_z(self.created_at),
            "itemCount": len(self.items),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class SaleItem(db.Model):
    """One line of a sale; unit_price_cents is the price charged at sale time."""
    __tablename__ = "sale_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id", ondelete="CASCADE"), nullable=False, index=True)
    part_id = db.Column(db.Integer, db.ForeignKey("parts.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    total_price_cents = db.Column(db.Integer, nullable=False)

    sale = db.relationship("Sale", back_populates="items")
    part = db.relationship("Part")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "saleId": self.sale_id,
            "partId": self.part_id,
            "quantity": self.quantity,
            "unitPrice": from_cents(self.unit_price_cents),
            "totalPrice": from_cents(self.total_price_cents),
            "part": self.part.to_dict() if self.part is not None else None,
        }
