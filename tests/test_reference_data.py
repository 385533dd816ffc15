"""Tests for reference data seeding and the admin CLI."""
from decimal import Decimal

from click.testing import CliRunner

from fitclub import cli as cli_module
from fitclub.db.models import DiscountType, DurationType, RateType, TaxRate
from fitclub.services.reference_data_service import seed_reference_data


def test_seed_is_idempotent(db):
    first = seed_reference_data(db)
    second = seed_reference_data(db)

    assert first == {
        "duration_types": 4,
        "rate_types": 2,
        "discount_types": 2,
        "tax_rates": 2,
        "currencies": 1,
    }
    assert set(second.values()) == {0}
    assert {d.unit for d in db.query(DurationType).all()} == {"days", "weeks", "months", "years"}
    assert {d.name for d in db.query(DiscountType).all()} == {"Percentage", "Fixed"}


def test_seeded_tax_rates_reference_percentage_rate_type(db):
    seed_reference_data(db)

    percentage = db.query(RateType).filter_by(name="Percentage").one()
    vat = db.query(TaxRate).filter_by(name="VAT - Value Added Tax - 15%").one()
    assert vat.rate == Decimal("15.00")
    assert vat.rate_type_id == percentage.id


def test_cli_seed_command(db, monkeypatch):
    monkeypatch.setattr(cli_module, "SessionLocal", lambda: db)

    result = CliRunner().invoke(cli_module.cli, ["seed-reference-data"])

    assert result.exit_code == 0, result.output
    assert "Reference data seeded" in result.output
    assert db.query(DurationType).count() == 4


def test_cli_process_imports_with_nothing_pending(db, monkeypatch):
    monkeypatch.setattr(cli_module, "SessionLocal", lambda: db)

    result = CliRunner().invoke(cli_module.cli, ["process-member-imports"])

    assert result.exit_code == 0, result.output
    assert "No pending member imports" in result.output
