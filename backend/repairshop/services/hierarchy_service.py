# Overview: Service-layer operations for the device hierarchy (platform > brand > family > model).

from __future__ import annotations

import re

from ..extensions import db
from ..models import Platform, Brand, Family, DeviceModel


def slugify(text: str) -> str:
    """'Galaxy S23 Ultra' -> 'galaxy-s23-ultra'."""
    slug = text.lower()
    slug = re.sub(r"[^a-z0-9 -]", "", slug)
    slug = re.sub(r"\s+", "-", slug.strip())
    return re.sub(r"-+", "-", slug)


def get_or_create_platform(name: str) -> Platform:
    platform = db.session.query(Platform).filter_by(slug=slugify(name)).first()
    if platform is None:
        platform = Platform(name=name, slug=slugify(name))
        db.session.add(platform)
        db.session.flush()
    return platform


def get_or_create_brand(platform: Platform, name: str) -> Brand:
    brand = db.session.query(Brand).filter_by(platform_id=platform.id, slug=slugify(name)).first()
    if brand is None:
        brand = Brand(platform_id=platform.id, name=name, slug=slugify(name))
        db.session.add(brand)
        db.session.flush()
    return brand


def get_or_create_family(brand: Brand, name: str) -> Family:
    family = db.session.query(Family).filter_by(brand_id=brand.id, slug=slugify(name)).first()
    if family is None:
        family = Family(brand_id=brand.id, name=name, slug=slugify(name))
        db.session.add(family)
        db.session.flush()
    return family


def get_or_create_model(family: Family, name: str) -> DeviceModel:
    model = db.session.query(DeviceModel).filter_by(family_id=family.id, slug=slugify(name)).first()
    if model is None:
        model = DeviceModel(family_id=family.id, name=name, slug=slugify(name))
        db.session.add(model)
        db.session.flush()
    return model


def ensure_model_path(platform_name: str, brand_name: str, family_name: str, model_name: str) -> DeviceModel:
    """Create any missing level of the path and return the leaf model. Does not commit."""
    platform = get_or_create_platform(platform_name)
    brand = get_or_create_brand(platform, brand_name)
    family = get_or_create_family(brand, family_name)
    return get_or_create_model(family, model_name)


def get_hierarchy_tree() -> list[dict]:
    platforms = db.session.query(Platform).order_by(Platform.name.asc()).all()
    return [p.to_dict(include_children=True) for p in platforms]


def list_brands(platform_id: int | None = None) -> list[dict]:
    query = db.session.query(Brand)
    if platform_id is not None:
        query = query.filter(Brand.platform_id == platform_id)
    brands = query.order_by(Brand.name.asc()).all()
    return [b.to_dict(include_children=True, include_parent=True) for b in brands]
