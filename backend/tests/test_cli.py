"""
CLI command tests (flask system / users / branches).
"""

from branchstock.models import Branch, Invoice, Product, User


def test_seed_demo_is_idempotent(app, db_session):
    runner = app.test_cli_runner()

    first = runner.invoke(args=["system", "seed-demo"])
    assert first.exit_code == 0, first.output
    assert "DONE Demo data ready." in first.output

    second = runner.invoke(args=["system", "seed-demo"])
    assert second.exit_code == 0, second.output
    assert "SKIP Branch exists: Main Branch" in second.output

    db_session.expire_all()
    assert db_session.query(Branch).count() == 2
    assert db_session.query(User).count() == 2
    assert db_session.query(Product).count() == 5
    assert db_session.query(Invoice).count() == 2


def test_users_create_and_list(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=[
        "users", "create", "--name", "Ops Admin", "--email", "ops@example.com",
        "--password", "Password123!", "--role", "admin",
    ])
    assert result.exit_code == 0, result.output
    assert "PASS Created user ops@example.com" in result.output

    duplicate = runner.invoke(args=[
        "users", "create", "--name", "Ops Admin", "--email", "ops@example.com",
        "--password", "Password123!",
    ])
    assert "FAIL User with this email already exists" in duplicate.output

    listing = runner.invoke(args=["users", "list"])
    assert "ops@example.com" in listing.output


def test_branches_create_and_list(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["branches", "create", "--name", "Harbour", "--address", "1 Pier Road"])
    assert result.exit_code == 0, result.output

    listing = runner.invoke(args=["branches", "list"])
    assert "Harbour" in listing.output
