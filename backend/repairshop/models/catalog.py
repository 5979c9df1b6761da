from __future__ import annotations

from ..extensions import db
from repairshop.money import from_cents
from repairshop.time_utils import utcnow, to_utc_z


class Part(db.Model):
    """
    Stock-keeping unit in the parts catalog.

    STOCK DESIGN:
    Part.stock is the mutable quantity on hand. It is only changed together
    with a StockTransaction row in the same unit of work, so replaying the
    part's ledger from zero always reproduces it.

    - stock >= 0 is enforced by the services and by a CHECK constraint
    - version_id gives optimistic locking: a concurrent stock write raises
      StaleDataError, which run_with_retry() retries from a fresh read
    """
    __tablename__ = "parts"
    __table_args__ = (
        db.UniqueConstraint("sku", name="uq_parts_sku"),
        db.CheckConstraint("stock >= 0", name="ck_parts_stock_nonnegative"),
        db.CheckConstraint("low_stock_threshold >= 0", name="ck_parts_threshold_nonnegative"),
        db.CheckConstraint("real_cost_cents >= 0", name="ck_parts_real_cost_nonnegative"),
        db.CheckConstraint("selling_price_cents >= 0", name="ck_parts_selling_price_nonnegative"),
        db.Index("ix_parts_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    sku = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    real_cost_cents = db.Column(db.Integer, nullable=False, default=0)
    selling_price_cents = db.Column(db.Integer, nullable=False, default=0)

    stock = db.Column(db.Integer, nullable=False, default=0)
    low_stock_threshold = db.Column(db.Integer, nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=db.func.now(),
        onupdate=utcnow,
    )

    models = db.relationship("PartModel", back_populates="part", cascade="all, delete-orphan")
    transactions = db.relationship(
        "StockTransaction",
        back_populates="part",
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_low_stock(self) -> bool:
        return self.stock <= self.low_stock_threshold

    def __repr__(self) -> str:
        return f"<Part id={self.id} sku={self.sku!r} name={self.name!r} stock={self.stock}>"

    def to_summary(self) -> dict:
        return {"id": self.id, "name": self.name, "sku": self.sku}

    def to_dict(self, include_models: bool = False) -> dict:
        data = {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "description": self.description,
            "realCost": from_cents(self.real_cost_cents),
            "sellingPrice": from_cents(self.selling_price_cents),
            "stock": self.stock,
            "lowStockThreshold": self.low_stock_threshold,
            "isLowStock": self.is_low_stock,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }
        if include_models:
            data["models"] = [link.model.to_dict(include_path=True) for link in self.models]
        return data


class PartModel(db.Model):
    """Many-to-many link between a part and the device models it fits."""
    __tablename__ = "part_models"
    __table_args__ = (
        db.UniqueConstraint("part_id", "model_id", name="uq_part_models_part_model"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    part_id = db.Column(db.Integer, db.ForeignKey("parts.id", ondelete="CASCADE"), nullable=False, index=True)
    model_id = db.Column(db.Integer, db.ForeignKey("device_models.id", ondelete="CASCADE"), nullable=False, index=True)

    part = db.relationship("Part", back_populates="models")
    model = db.relationship("DeviceModel")
