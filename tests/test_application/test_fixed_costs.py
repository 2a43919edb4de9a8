"""
Tests for FixedCostReconciler and FixedCostCatalog
"""
import pytest
from sqlalchemy import event
from sqlalchemy.exc import SQLAlchemyError

from app.domain.errors import NotFound, StorageError, ValidationError
from app.application.fixed_costs import FixedCostCatalog, FixedCostReconciler
from app.infrastructure.db.models import (
    FixedCostModel, FixedCostPaymentModel, TransactionModel, SOURCE_FIXED_COST,
)


def _tx_count(db_session) -> int:
    return db_session.query(TransactionModel).count()


def _payments(db_session, fixed_cost_id):
    return (
        db_session.query(FixedCostPaymentModel)
        .filter(FixedCostPaymentModel.fixed_cost_id == fixed_cost_id)
        .all()
    )


class TestMarkPaid:
    def test_creates_transaction_and_payment(self, db_session, make_fixed_cost):
        fc = make_fixed_cost("Rent", 500)

        payment = FixedCostReconciler(db_session).mark_paid(fc.id, "2025-05-03")

        assert payment.period_ym == "2025-05"
        assert payment.paid_date_local == "2025-05-03"
        tx = db_session.get(TransactionModel, payment.tx_id)
        assert tx.kind == "OUT"
        assert tx.amount == 500
        assert tx.source == SOURCE_FIXED_COST
        assert tx.fixed_cost_id == fc.id
        assert tx.date_local == "2025-05-03"
        assert tx.description == "Rent"

    def test_idempotent_within_month(self, db_session, make_fixed_cost):
        fc = make_fixed_cost()
        reconciler = FixedCostReconciler(db_session)

        first = reconciler.mark_paid(fc.id, "2025-05-03")
        tx_id = first.tx_id
        second = reconciler.mark_paid(fc.id, "2025-05-20")

        assert _tx_count(db_session) == 1
        assert len(_payments(db_session, fc.id)) == 1
        assert second.tx_id == tx_id
        # refreshed paid date, the transaction keeps its first date
        assert second.paid_date_local == "2025-05-20"
        assert db_session.get(TransactionModel, tx_id).date_local == "2025-05-03"

    def test_separate_months_get_separate_payments(self, db_session, make_fixed_cost):
        fc = make_fixed_cost()
        reconciler = FixedCostReconciler(db_session)

        reconciler.mark_paid(fc.id, "2025-04-30")
        reconciler.mark_paid(fc.id, "2025-05-01")

        assert _tx_count(db_session) == 2
        assert sorted(p.period_ym for p in _payments(db_session, fc.id)) == ["2025-04", "2025-05"]

    def test_stale_link_is_replaced(self, db_session, make_fixed_cost, make_tx):
        fc = make_fixed_cost()
        manual = make_tx("2025-05-02", "OUT", 500)
        db_session.add(FixedCostPaymentModel(
            fixed_cost_id=fc.id, period_ym="2025-05", paid_date_local="2025-05-02", tx_id=manual.id,
        ))
        db_session.commit()

        payment = FixedCostReconciler(db_session).mark_paid(fc.id, "2025-05-04")

        assert payment.tx_id != manual.id
        tx = db_session.get(TransactionModel, payment.tx_id)
        assert tx.source == SOURCE_FIXED_COST
        assert len(_payments(db_session, fc.id)) == 1
        # the manual transaction is left alone
        assert db_session.get(TransactionModel, manual.id) is not None

    def test_dangling_link_is_replaced(self, db_session, make_fixed_cost):
        fc = make_fixed_cost()
        db_session.add(FixedCostPaymentModel(fixed_cost_id=fc.id, period_ym="2025-05", tx_id=9999))
        db_session.commit()

        payment = FixedCostReconciler(db_session).mark_paid(fc.id, "2025-05-04")

        assert payment.tx_id != 9999
        assert _tx_count(db_session) == 1

    def test_missing_fixed_cost(self, db_session):
        with pytest.raises(NotFound):
            FixedCostReconciler(db_session).mark_paid(42, "2025-05-04")

    @pytest.mark.parametrize("fixed_cost_id", [0, -3])
    def test_invalid_id(self, db_session, fixed_cost_id):
        with pytest.raises(ValidationError):
            FixedCostReconciler(db_session).mark_paid(fixed_cost_id, "2025-05-04")

    def test_invalid_date(self, db_session, make_fixed_cost):
        fc = make_fixed_cost()
        with pytest.raises(ValidationError):
            FixedCostReconciler(db_session).mark_paid(fc.id, "2025-13-40")
        assert _tx_count(db_session) == 0


class TestMarkUnpaid:
    def test_removes_transaction_and_payment(self, db_session, make_fixed_cost):
        fc = make_fixed_cost()
        reconciler = FixedCostReconciler(db_session)
        reconciler.mark_paid(fc.id, "2025-05-03")

        period = reconciler.mark_unpaid(fc.id, "2025-05-28")

        assert period == "2025-05"
        assert _tx_count(db_session) == 0
        assert _payments(db_session, fc.id) == []

    def test_repeat_is_noop(self, db_session, make_fixed_cost):
        fc = make_fixed_cost()
        reconciler = FixedCostReconciler(db_session)
        reconciler.mark_paid(fc.id, "2025-05-03")

        reconciler.mark_unpaid(fc.id, "2025-05-03")
        assert reconciler.mark_unpaid(fc.id, "2025-05-03") is None
        assert _tx_count(db_session) == 0

    def test_without_date_falls_back_to_latest_period(self, db_session, make_fixed_cost):
        fc = make_fixed_cost()
        reconciler = FixedCostReconciler(db_session)
        reconciler.mark_paid(fc.id, "2020-01-15")
        reconciler.mark_paid(fc.id, "2020-02-15")

        assert reconciler.mark_unpaid(fc.id) == "2020-02"
        assert [p.period_ym for p in _payments(db_session, fc.id)] == ["2020-01"]

    def test_nothing_to_clear(self, db_session, make_fixed_cost):
        fc = make_fixed_cost()
        assert FixedCostReconciler(db_session).mark_unpaid(fc.id) is None

    def test_missing_fixed_cost(self, db_session):
        with pytest.raises(NotFound):
            FixedCostReconciler(db_session).mark_unpaid(7)

    def test_stale_link_keeps_manual_transaction(self, db_session, make_fixed_cost, make_tx):
        fc = make_fixed_cost()
        manual = make_tx("2025-05-02", "OUT", 42)
        db_session.add(FixedCostPaymentModel(fixed_cost_id=fc.id, period_ym="2025-05", tx_id=manual.id))
        db_session.commit()

        period = FixedCostReconciler(db_session).mark_unpaid(fc.id, "2025-05-10")

        assert period == "2025-05"
        assert _payments(db_session, fc.id) == []
        assert db_session.get(TransactionModel, manual.id) is not None

    def test_link_to_other_fixed_cost_is_not_followed(self, db_session, make_fixed_cost):
        fc = make_fixed_cost()
        other = make_fixed_cost("Internet", 100)
        reconciler = FixedCostReconciler(db_session)
        other_payment = reconciler.mark_paid(other.id, "2025-05-03")
        db_session.add(FixedCostPaymentModel(
            fixed_cost_id=fc.id, period_ym="2025-05", tx_id=other_payment.tx_id,
        ))
        db_session.commit()

        reconciler.mark_unpaid(fc.id, "2025-05-10")

        assert db_session.get(TransactionModel, other_payment.tx_id) is not None
        assert len(_payments(db_session, other.id)) == 1


class TestDeleteTransaction:
    def test_unlinks_payment_but_keeps_row(self, db_session, make_fixed_cost):
        fc = make_fixed_cost()
        reconciler = FixedCostReconciler(db_session)
        payment = reconciler.mark_paid(fc.id, "2025-05-03")

        reconciler.delete_transaction(payment.tx_id)

        rows = _payments(db_session, fc.id)
        assert len(rows) == 1
        assert rows[0].tx_id is None
        assert rows[0].paid_date_local is None
        assert _tx_count(db_session) == 0

    def test_month_reads_unpaid_afterwards(self, db_session, make_fixed_cost, repo):
        fc = make_fixed_cost()
        reconciler = FixedCostReconciler(db_session)
        payment = reconciler.mark_paid(fc.id, "2025-05-03")
        reconciler.delete_transaction(payment.tx_id)

        assert [f.id for f in repo.unpaid_fixed_costs("2025-05")] == [fc.id]

        # paying again creates a fresh transaction
        again = reconciler.mark_paid(fc.id, "2025-05-05")
        assert again.tx_id is not None
        assert _tx_count(db_session) == 1

    def test_missing_transaction(self, db_session):
        with pytest.raises(NotFound):
            FixedCostReconciler(db_session).delete_transaction(123)

    def test_invalid_id(self, db_session):
        with pytest.raises(ValidationError):
            FixedCostReconciler(db_session).delete_transaction(0)


class TestDeleteFixedCost:
    def test_cascades_to_payments_and_transactions(self, db_session, make_fixed_cost, make_tx):
        fc = make_fixed_cost()
        other = make_fixed_cost("Internet", 100)
        reconciler = FixedCostReconciler(db_session)
        reconciler.mark_paid(fc.id, "2025-04-03")
        reconciler.mark_paid(fc.id, "2025-05-03")
        reconciler.mark_paid(other.id, "2025-05-03")
        manual = make_tx("2025-05-03", "OUT", 40)

        reconciler.delete_fixed_cost(fc.id)

        assert db_session.get(FixedCostModel, fc.id) is None
        assert _payments(db_session, fc.id) == []
        remaining = {tx.id for tx in db_session.query(TransactionModel).all()}
        assert manual.id in remaining
        assert len(remaining) == 2

    def test_removes_legacy_tagged_transactions(self, db_session, make_fixed_cost, make_tx):
        fc = make_fixed_cost()
        make_tx("2025-03-01", "OUT", 500, source=SOURCE_FIXED_COST, fixed_cost_id=fc.id)

        FixedCostReconciler(db_session).delete_fixed_cost(fc.id)

        assert _tx_count(db_session) == 0

    def test_missing(self, db_session):
        with pytest.raises(NotFound):
            FixedCostReconciler(db_session).delete_fixed_cost(99)

    def test_stale_link_keeps_manual_transaction(self, db_session, make_fixed_cost, make_tx):
        fc = make_fixed_cost()
        manual = make_tx("2025-05-02", "OUT", 42)
        db_session.add(FixedCostPaymentModel(fixed_cost_id=fc.id, period_ym="2025-05", tx_id=manual.id))
        db_session.commit()

        FixedCostReconciler(db_session).delete_fixed_cost(fc.id)

        assert db_session.get(FixedCostModel, fc.id) is None
        assert _payments(db_session, fc.id) == []
        assert db_session.get(TransactionModel, manual.id) is not None


class TestAtomicity:
    def test_mark_paid_rolls_back_when_payment_write_fails(
        self, db_session, make_fixed_cost, monkeypatch
    ):
        fc = make_fixed_cost()
        reconciler = FixedCostReconciler(db_session)

        def _fail(**kwargs):
            raise SQLAlchemyError("disk I/O error")

        monkeypatch.setattr(reconciler.repo, "upsert_payment", _fail)

        with pytest.raises(StorageError):
            reconciler.mark_paid(fc.id, "2025-05-03")

        # the transaction inserted before the failure is gone too
        assert _tx_count(db_session) == 0
        assert _payments(db_session, fc.id) == []

    def test_mark_paid_rollback_keeps_stale_row(self, db_session, make_fixed_cost, make_tx, monkeypatch):
        fc = make_fixed_cost()
        manual = make_tx("2025-05-02", "OUT", 42)
        db_session.add(FixedCostPaymentModel(fixed_cost_id=fc.id, period_ym="2025-05", tx_id=manual.id))
        db_session.commit()
        reconciler = FixedCostReconciler(db_session)

        def _fail(**kwargs):
            raise SQLAlchemyError("disk I/O error")

        monkeypatch.setattr(reconciler.repo, "upsert_payment", _fail)

        with pytest.raises(StorageError):
            reconciler.mark_paid(fc.id, "2025-05-04")

        rows = _payments(db_session, fc.id)
        assert [(r.period_ym, r.tx_id) for r in rows] == [("2025-05", manual.id)]
        assert _tx_count(db_session) == 1

    def test_delete_transaction_rolls_back_unlinking(self, db_session, make_fixed_cost, monkeypatch):
        fc = make_fixed_cost()
        reconciler = FixedCostReconciler(db_session)
        payment = reconciler.mark_paid(fc.id, "2025-05-03")
        tx_id = payment.tx_id

        def _fail(transaction_id):
            raise SQLAlchemyError("database is locked")

        monkeypatch.setattr(reconciler.repo, "delete_transaction", _fail)

        with pytest.raises(StorageError):
            reconciler.delete_transaction(tx_id)

        rows = _payments(db_session, fc.id)
        assert len(rows) == 1
        assert rows[0].tx_id == tx_id
        assert rows[0].paid_date_local == "2025-05-03"
        assert db_session.get(TransactionModel, tx_id) is not None

    def test_domain_error_inside_scope_rolls_back(self, db_session, make_fixed_cost):
        fc = make_fixed_cost()
        reconciler = FixedCostReconciler(db_session)
        payment = reconciler.mark_paid(fc.id, "2025-05-03")
        reconciler.delete_transaction(payment.tx_id)

        # link already cleared, second delete raises NotFound inside the scope
        with pytest.raises(NotFound):
            reconciler.delete_transaction(payment.tx_id)

        assert len(_payments(db_session, fc.id)) == 1


class TestCleanup:
    def test_purges_only_stale_rows(self, db_session, make_fixed_cost, make_tx):
        fc = make_fixed_cost()
        other = make_fixed_cost("Internet", 100)
        reconciler = FixedCostReconciler(db_session)
        valid = reconciler.mark_paid(fc.id, "2025-05-03")

        # wrong fixed cost on an otherwise valid fixed_cost transaction
        foreign = make_tx("2025-04-01", "OUT", 100, source=SOURCE_FIXED_COST, fixed_cost_id=fc.id)
        db_session.add_all([
            FixedCostPaymentModel(fixed_cost_id=other.id, period_ym="2025-04", tx_id=foreign.id),
            FixedCostPaymentModel(fixed_cost_id=other.id, period_ym="2025-03", tx_id=None),
        ])
        db_session.commit()

        assert reconciler.cleanup_stale_payments() == 2
        assert [p.id for p in db_session.query(FixedCostPaymentModel).all()] == [valid.id]

    def test_nothing_to_purge(self, db_session):
        assert FixedCostReconciler(db_session).cleanup_stale_payments() == 0


class TestCatalog:
    def test_add_strips_name(self, db_session):
        fc = FixedCostCatalog(db_session).add_fixed_cost("  Internet ", 300)
        assert fc.id is not None
        assert fc.name == "Internet"
        assert fc.is_active is True

    @pytest.mark.parametrize("name,amount", [("", 10), ("   ", 10), ("Rent", -1)])
    def test_add_rejects_invalid(self, db_session, name, amount):
        with pytest.raises(ValidationError):
            FixedCostCatalog(db_session).add_fixed_cost(name, amount)

    def test_set_active(self, db_session, make_fixed_cost):
        fc = make_fixed_cost()
        assert FixedCostCatalog(db_session).set_active(fc.id, False).is_active is False

    def test_set_active_missing(self, db_session):
        with pytest.raises(NotFound):
            FixedCostCatalog(db_session).set_active(5, True)

    def test_list_shows_current_month_state(self, db_session, make_fixed_cost):
        rent = make_fixed_cost("Rent", 500)
        internet = make_fixed_cost("Internet", 100)
        payment = FixedCostReconciler(db_session).mark_paid(rent.id, "2025-05-03")

        rows = FixedCostCatalog(db_session).list_fixed_costs(today="2025-05-20")

        assert [r["id"] for r in rows] == [internet.id, rent.id]
        by_id = {r["id"]: r for r in rows}
        assert by_id[rent.id]["is_paid"] is True
        assert by_id[rent.id]["paid_tx_id"] == payment.tx_id
        assert by_id[rent.id]["period_ym"] == "2025-05"
        assert by_id[internet.id]["is_paid"] is False
        assert by_id[internet.id]["paid_date_local"] is None

    def test_payment_state_loaded_in_one_query(self, db_engine, repo, make_fixed_cost):
        for name in ("Rent", "Internet", "Gym"):
            make_fixed_cost(name, 100)
        statements = []

        def _count(conn, cursor, statement, parameters, context, executemany):
            statements.append(statement)

        event.listen(db_engine, "before_cursor_execute", _count)
        try:
            rows = repo.fixed_costs_with_payment("2025-05")
        finally:
            event.remove(db_engine, "before_cursor_execute", _count)

        assert len(rows) == 3
        assert all(payment is None for _, payment in rows)
        assert len(statements) == 1

    def test_list_next_month_is_unpaid(self, db_session, make_fixed_cost):
        rent = make_fixed_cost()
        FixedCostReconciler(db_session).mark_paid(rent.id, "2025-05-03")

        rows = FixedCostCatalog(db_session).list_fixed_costs(today="2025-06-01")

        assert rows[0]["is_paid"] is False
        assert rows[0]["period_ym"] == "2025-06"
