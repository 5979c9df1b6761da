# Overview: Flask CLI command groups for seeding, PIN bootstrap, and ledger inspection.

# backend/repairshop/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# Catalog:
# - python -m flask catalog seed [--with-sales]
#   Idempotent: device hierarchy, demo parts (opening stock through the ledger), optional demo sales.
# - python -m flask catalog reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Auth:
# - python -m flask auth init-pin --pin 1234
#   Create or replace the active access PIN (no current PIN needed).
#
# Inventory:
# - python -m flask inventory verify-ledger
#   List parts whose stock disagrees with the replayed ledger. Exit code 1 if any.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Part, Sale
from .services import hierarchy_service, parts_service, pin_service, sales_service
from .services.inventory_service import find_ledger_mismatches


# platform -> brand -> family -> models
DEMO_HIERARCHY = {
    "iOS": {
        "Apple": {
            "iPhone": ["iPhone 15 Pro Max", "iPhone 15 Pro", "iPhone 15", "iPhone 14", "iPhone 13", "iPhone 12"],
            "iPad": ["iPad Pro 12.9", "iPad Air", "iPad Mini"],
        },
    },
    "Android": {
        "Samsung": {"Galaxy": ["Galaxy S24 Ultra", "Galaxy S24", "Galaxy S23", "Galaxy A54"]},
        "Xiaomi": {"Redmi": ["Redmi Note 13 Pro", "Redmi Note 12", "Redmi 12"]},
        "Oppo": {"Reno": ["Reno 11 Pro", "Reno 10"]},
    },
}

# (sku, name, description, real_cost_cents, selling_price_cents, stock, low_stock_threshold, families or None for all)
DEMO_PARTS = [
    ("IPH15PM-SCR", "iPhone 15 Pro Max Screen", "Original OLED display", 15000, 25000, 5, 3, ["iphone"]),
    ("IPH14-BAT", "iPhone 14 Battery", "Replacement battery", 2500, 5000, 15, 5, ["iphone"]),
    ("IPH-LTNG", "iPhone Lightning Port", "Lightning charging port flex cable", 500, 1500, 25, 10, ["iphone"]),
    ("GS24U-SCR", "Galaxy S24 Ultra Screen", "AMOLED display", 12000, 20000, 6, 3, ["galaxy"]),
    ("GS23-BAT", "Galaxy S23 Battery", "Replacement battery", 2000, 4000, 18, 6, ["galaxy"]),
    ("SAM-USBC", "Samsung USB-C Port", "USB-C charging port", 400, 1200, 30, 10, ["galaxy"]),
    ("RN13P-SCR", "Redmi Note 13 Pro Screen", "AMOLED display", 4000, 8000, 12, 4, ["redmi"]),
    ("RENO-SCR", "Oppo Reno Screen", "AMOLED display for Reno series", 5000, 9000, 8, 3, ["reno"]),
    ("UNI-PROT", "Universal Screen Protector", "Tempered glass screen protector", 50, 200, 100, 30, None),
    ("UNI-CABLE", "Charging Cable", "USB-C/Lightning charging cable", 150, 500, 60, 20, None),
]


@click.group('catalog')
def catalog_group():
    """Catalog bootstrap commands."""


@catalog_group.command('seed')
@click.option('--with-sales', is_flag=True, help='Also record a few demo sales (only when none exist)')
@with_appcontext
def seed_catalog(with_sales):
    """Create the demo device hierarchy and parts. Safe to run repeatedly."""
    click.echo("START Seeding catalog...")

    models_by_family: dict[str, list] = {}
    for platform_name, brands in DEMO_HIERARCHY.items():
        for brand_name, families in brands.items():
            for family_name, model_names in families.items():
                for model_name in model_names:
                    model = hierarchy_service.ensure_model_path(platform_name, brand_name, family_name, model_name)
                    models_by_family.setdefault(hierarchy_service.slugify(family_name), []).append(model.id)
    db.session.commit()
    click.echo(f"PASS Hierarchy ready ({sum(len(v) for v in models_by_family.values())} models)")

    all_model_ids = [mid for ids in models_by_family.values() for mid in ids]
    created = 0
    for sku, name, description, cost, price, stock, threshold, families in DEMO_PARTS:
        if db.session.query(Part.id).filter_by(sku=sku).first():
            continue
        if families is None:
            model_ids = all_model_ids
        else:
            model_ids = [mid for fam in families for mid in models_by_family.get(fam, [])]
        parts_service.create_part(
            patch={
                "sku": sku,
                "name": name,
                "description": description,
                "real_cost_cents": cost,
                "selling_price_cents": price,
                "stock": stock,
                "low_stock_threshold": threshold,
            },
            model_ids=model_ids,
        )
        created += 1
    click.echo(f"PASS Parts created: {created} (skipped existing: {len(DEMO_PARTS) - created})")

    if with_sales:
        if db.session.query(Sale.id).first():
            click.echo("SKIP Sales already exist")
        else:
            _seed_sales()

    click.echo("DONE Catalog seeded")


def _seed_sales():
    def _line(sku, quantity, unit_price_cents):
        part = db.session.query(Part).filter_by(sku=sku).one()
        return {
            "part_id": part.id,
            "quantity": quantity,
            "unit_price_cents": unit_price_cents,
            "total_price_cents": unit_price_cents * quantity,
        }

    sales_service.create_sale(
        items=[_line("IPH15PM-SCR", 1, 25000)],
        payment_method="CASH",
        discount_cents=2000,
        customer_name="Ahmed Ali",
        customer_phone="+923001234567",
        notes="Screen replacement",
    )
    sales_service.create_sale(
        items=[_line("IPH14-BAT", 1, 5000), _line("UNI-PROT", 2, 250)],
        payment_method="CARD",
        customer_name="Fatima Khan",
        notes="Battery replacement and screen protector",
    )
    click.echo("PASS Demo sales recorded")


@catalog_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()
    click.echo("BUILD Creating all tables...")
    db.create_all()
    click.echo("PASS Database reset complete")


@click.group('auth')
def auth_group():
    """Access PIN commands."""


@auth_group.command('init-pin')
@click.option('--pin', prompt=True, hide_input=True, confirmation_prompt=True, help='3-6 digit PIN')
@with_appcontext
def init_pin(pin):
    """Create or replace the active PIN."""
    try:
        pin_service.reset_pin(pin)
    except pin_service.PinFormatError as e:
        raise click.BadParameter(str(e), param_hint="--pin")
    click.echo("PASS PIN stored")


@click.group('inventory')
def inventory_group():
    """Stock ledger inspection commands."""


@inventory_group.command('verify-ledger')
@with_appcontext
def verify_ledger():
    """Compare every part's stock with its ledger balance."""
    mismatches = find_ledger_mismatches()
    if not mismatches:
        click.echo("PASS Stock matches the ledger for every part")
        return

    click.echo(f"FAIL {len(mismatches)} part(s) out of balance:")
    for row in mismatches:
        click.echo(
            f"  - #{row['partId']} {row['sku']}: stock={row['stock']} ledger={row['ledgerBalance']}"
        )
    raise SystemExit(1)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(catalog_group)
    app.cli.add_command(auth_group)
    app.cli.add_command(inventory_group)
