# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/branchstock/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed-demo
#   Idempotent demo data: two branches, an admin, products, invoices and payments.
#
# User inspection/bootstrap:
# - python -m flask users list
#   List all users with role, branch and active status.
# - python -m flask users create --name "Admin User" --email admin@branchstock.local --password "Password123!" --role admin
#   Create a user (prompts if options are omitted).
#
# Branch inspection/bootstrap:
# - python -m flask branches list
# - python -m flask branches create --name "Main Branch" --address "1 High Street"

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Branch, Product, User, Invoice, Payment, USER_ROLES
from .services import billing_service, branch_service, user_service
from .services.billing_service import BillingError
from .services.branch_service import BranchError
from .services.user_service import UserError
from .validation import ConflictError


DEMO_PASSWORD = "Password123!"

DEMO_BRANCHES = [
    {"name": "Main Branch", "address": "12 Market Road", "manager": "Asha Rao", "phone": "555-0100"},
    {"name": "Riverside Branch", "address": "4 Quay Street", "manager": "Tom Lee", "phone": "555-0200"},
]

DEMO_PRODUCTS = [
    # sku, name, category, brand, price_cents, cost_price_cents, stock, min_stock
    ("SKU-1001", "Basmati Rice 5kg", "Groceries", "Golden Harvest", 1299, 950, 40, 10),
    ("SKU-1002", "Sunflower Oil 1L", "Groceries", "Sunny", 499, 350, 8, 10),
    ("SKU-2001", "USB-C Cable 1m", "Electronics", "Voltix", 899, 400, 25, 5),
    ("SKU-2002", "Wireless Mouse", "Electronics", "Voltix", 1999, 1200, 0, 3),
    ("SKU-3001", "Notebook A5", "Stationery", "Paperline", 299, 120, 120, 20),
]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('reset-db')
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

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask system seed-demo' for sample data.")


@system_group.command('seed-demo')
@with_appcontext
def seed_demo():
    """
    Load demo data. Safe to run repeatedly: existing rows are reused.

    Creates:
    - Branches: Main Branch, Riverside Branch
    - Users: admin@branchstock.local (admin), staff@branchstock.local (user)
    - Five products in Main Branch, two invoices, one expense payment
    - All passwords default to: "Password123!"
    """
    click.echo("START Seeding demo data...")

    branches = []
    for fields in DEMO_BRANCHES:
        branch = db.session.query(Branch).filter_by(name=fields["name"], is_active=True).first()
        if branch is None:
            branch = db.session.get(Branch, branch_service.create_branch(patch=fields)["id"])
            click.echo(f"PASS Created branch: {branch.name} (ID: {branch.id})")
        else:
            click.echo(f"SKIP Branch exists: {branch.name} (ID: {branch.id})")
        branches.append(branch)
    main = branches[0]

    users = {}
    for name, email, role, branch in (
        ("Admin User", "admin@branchstock.local", "admin", None),
        ("Staff User", "staff@branchstock.local", "user", main),
    ):
        user = db.session.query(User).filter_by(email=email).first()
        if user is None:
            created = user_service.create_user({
                "name": name,
                "email": email,
                "password": DEMO_PASSWORD,
                "role": role,
                "branch_id": branch.id if branch else None,
            })
            user = db.session.get(User, created["id"])
            click.echo(f"PASS Created user: {email} ({role})")
        else:
            click.echo(f"SKIP User exists: {email}")
        users[role] = user

    for sku, name, category, brand, price, cost, stock, min_stock in DEMO_PRODUCTS:
        if db.session.query(Product).filter_by(sku=sku).first():
            continue
        db.session.add(Product(
            sku=sku,
            name=name,
            category=category,
            brand=brand,
            price_cents=price,
            cost_price_cents=cost,
            stock=stock,
            min_stock=min_stock,
            branch_id=main.id,
        ))
        click.echo(f"PASS Created product: {sku} {name}")
    db.session.commit()

    if db.session.query(Invoice).count() == 0:
        rice = db.session.query(Product).filter_by(sku="SKU-1001").one()
        notebook = db.session.query(Product).filter_by(sku="SKU-3001").one()
        try:
            for customer, items in (
                ("Walk-in Customer", [{"product_id": rice.id, "quantity": 2}]),
                ("Priya Shah", [{"product_id": notebook.id, "quantity": 10, "discount_cents": 190}]),
            ):
                invoice = billing_service.create_invoice({
                    "customer": {"name": customer},
                    "items": items,
                    "branch_id": main.id,
                    "payment_method": "cash",
                    "payment_status": "paid",
                    "tax_rate": 5,
                }, users["admin"].id)
                click.echo(f"PASS Created invoice: {invoice['invoice_number']} total={invoice['total_cents']}")
        except BillingError as e:
            click.echo(f"FAIL Could not create demo invoice: {e}")

    if db.session.query(Payment).count() == 0:
        db.session.add(Payment(
            amount_cents=25000,
            payment_method="bank_transfer",
            payment_type="debit",
            description="Monthly rent",
            branch_id=main.id,
            created_by_user_id=users["admin"].id,
        ))
        db.session.commit()
        click.echo("PASS Created expense payment: Monthly rent")

    click.echo("DONE Demo data ready.")
    click.echo(f"     Send X-User-Id: {users['admin'].id} to act as the admin user.")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--name', prompt=True, help='Full name')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(USER_ROLES)), default='user', show_default=True, help='Role')
@click.option('--branch-id', type=int, help='Home branch ID')
@with_appcontext
def create_user_cli(name, email, password, role, branch_id):
    """Create a new user. Password must be at least 8 characters."""
    try:
        user = user_service.create_user({
            "name": name,
            "email": email,
            "password": password,
            "role": role,
            "branch_id": branch_id,
        })
    except (UserError, ConflictError) as e:
        db.session.rollback()
        click.echo(f"FAIL {e}")
        return

    click.echo(f"PASS Created user {user['email']} (ID: {user['id']}, role: {user['role']})")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their role and branch."""
    users = db.session.query(User).order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Name':<20} {'Email':<30} {'Role':<7} {'Branch':<6} {'Active'}")
    click.echo("="*90)

    for user in users:
        click.echo(
            f"{user.id:<5} {user.name[:20]:<20} {user.email[:30]:<30} {user.role:<7} "
            f"{str(user.branch_id or '-'):<6} {'yes' if user.is_active else 'no'}"
        )

    click.echo("="*90 + "\n")


@click.group('branches')
def branches_group():
    """Branch inspection and bootstrap commands."""


@branches_group.command('create')
@click.option('--name', prompt=True, help='Branch name')
@click.option('--address', prompt=True, help='Street address')
@click.option('--manager', help='Manager name')
@with_appcontext
def create_branch_cli(name, address, manager):
    try:
        branch = branch_service.create_branch(patch={"name": name, "address": address, "manager": manager})
    except (BranchError, ConflictError) as e:
        db.session.rollback()
        click.echo(f"FAIL {e}")
        return

    click.echo(f"PASS Created branch {branch['name']} (ID: {branch['id']})")


@branches_group.command('list')
@click.option('--all', 'include_inactive', is_flag=True, help='Include deactivated branches')
@with_appcontext
def list_branches(include_inactive):
    query = db.session.query(Branch)
    if not include_inactive:
        query = query.filter(Branch.is_active.is_(True))
    branches = query.order_by(Branch.id.asc()).all()

    if not branches:
        click.echo("No branches found.")
        return

    for branch in branches:
        status = "" if branch.is_active else " [inactive]"
        click.echo(f"{branch.id:<5} {branch.name:<30} {branch.address}{status}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(branches_group)
