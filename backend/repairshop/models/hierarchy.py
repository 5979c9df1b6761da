from __future__ import annotations

from ..extensions import db
from repairshop.time_utils import utcnow


class Platform(db.Model):
    """Top of the device hierarchy (iOS, Android, ...)."""
    __tablename__ = "platforms"
    __table_args__ = (
        db.UniqueConstraint("name", name="uq_platforms_name"),
        db.UniqueConstraint("slug", name="uq_platforms_slug"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    slug = db.Column(db.String(128), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    brands = db.relationship(
        "Brand",
        back_populates="platform",
        order_by="Brand.name",
        cascade="all, delete-orphan",
    )

    def to_dict(self, include_children: bool = False) -> dict:
        data = {"id": self.id, "name": self.name, "slug": self.slug}
        if include_children:
            data["brands"] = [b.to_dict(include_children=True) for b in self.brands]
        return data


class Brand(db.Model):
    __tablename__ = "brands"
    __table_args__ = (
        db.UniqueConstraint("platform_id", "name", name="uq_brands_platform_name"),
        db.UniqueConstraint("platform_id", "slug", name="uq_brands_platform_slug"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    platform_id = db.Column(db.Integer, db.ForeignKey("platforms.id"), nullable=False, index=True)
    name = db.Column(db.String(128), nullable=False)
    slug = db.Column(db.String(128), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    platform = db.relationship("Platform", back_populates="brands")
    families = db.relationship(
        "Family",
        back_populates="brand",
        order_by="Family.name",
        cascade="all, delete-orphan",
    )

    def to_dict(self, include_children: bool = False, include_parent: bool = False) -> dict:
        data = {"id": self.id, "name": self.name, "slug": self.slug, "platformId": self.platform_id}
        if include_parent:
            data["platform"] = self.platform.to_dict()
        if include_children:
            data["families"] = [f.to_dict(include_children=True) for f in self.families]
        return data


class Family(db.Model):
    __tablename__ = "families"
    __table_args__ = (
        db.UniqueConstraint("brand_id", "name", name="uq_families_brand_name"),
        db.UniqueConstraint("brand_id", "slug", name="uq_families_brand_slug"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    brand_id = db.Column(db.Integer, db.ForeignKey("brands.id"), nullable=False, index=True)
    name = db.Column(db.String(128), nullable=False)
    slug = db.Column(db.String(128), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    brand = db.relationship("Brand", back_populates="families")
    models = db.relationship(
        "DeviceModel",
        back_populates="family",
        order_by="DeviceModel.name",
        cascade="all, delete-orphan",
    )

    def to_dict(self, include_children: bool = False) -> dict:
        data = {"id": self.id, "name": self.name, "slug": self.slug, "brandId": self.brand_id}
        if include_children:
            data["models"] = [m.to_dict() for m in self.models]
        return data


class DeviceModel(db.Model):
    """A concrete handset model; parts are linked to these."""
    __tablename__ = "device_models"
    __table_args__ = (
        db.UniqueConstraint("family_id", "name", name="uq_device_models_family_name"),
        db.UniqueConstraint("family_id", "slug", name="uq_device_models_family_slug"),
        db.Index("ix_device_models_slug", "slug"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    family_id = db.Column(db.Integer, db.ForeignKey("families.id"), nullable=False, index=True)
    name = db.Column(db.String(128), nullable=False)
    slug = db.Column(db.String(128), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    family = db.relationship("Family", back_populates="models")

    def to_dict(self, include_path: bool = False) -> dict:
        data = {"id": self.id, "name": self.name, "slug": self.slug, "familyId": self.family_id}
        if include_path:
            family = self.family
            brand = family.brand
            data["family"] = {
                "id": family.id,
                "name": family.name,
                "slug": family.slug,
                "brand": brand.to_dict(include_parent=True),
            }
        return data
