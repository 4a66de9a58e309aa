"""
CLI command tests (bootstrap, permission listing, ledger reconcile).
"""

from erp.models import Product, Role, User

from conftest import make_product, stock_in


def test_system_init_is_idempotent(app, db_session):
    runner = app.test_cli_runner()

    first = runner.invoke(args=["system", "init"])
    second = runner.invoke(args=["system", "init"])

    assert first.exit_code == 0, first.output
    assert second.exit_code == 0, second.output
    assert "already exists" in second.output
    assert {r.name for r in db_session.query(Role).all()} == {"admin", "manager", "staff"}
    assert db_session.query(User).filter_by(username="admin").count() == 1


def test_perms_list_for_role(app, db_session, setup_roles):
    result = app.test_cli_runner().invoke(args=["perms", "list", "--role", "staff"])

    assert result.exit_code == 0
    assert "orders:write" in result.output
    assert "inventory:write" not in result.output


def test_users_create(app, db_session, setup_roles):
    result = app.test_cli_runner().invoke(args=[
        "users", "create",
        "--username", "clerk",
        "--email", "clerk@erp.test",
        "--password", "Clerk#Pass1",
        "--role", "staff",
    ])

    assert result.exit_code == 0, result.output
    assert db_session.query(User).filter_by(username="clerk").count() == 1


def test_reconcile_passes_then_detects_drift(app, db_session):
    product = make_product(db_session, "SKU1")
    stock_in(db_session, product, 4)
    runner = app.test_cli_runner()

    ok = runner.invoke(args=["inventory", "reconcile"])
    assert ok.exit_code == 0
    assert "PASS SKU1" in ok.output

    db_session.query(Product).filter_by(id=product.id).update({"quantity": 1})
    db_session.commit()

    drift = runner.invoke(args=["inventory", "reconcile", "--product-id", str(product.id)])
    assert drift.exit_code == 1
    assert "FAIL SKU1" in drift.output
