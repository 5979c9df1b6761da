"""
Unit-of-work retry tests: optimistic-lock conflicts and lock errors are
retried from a fresh read, anything else rolls back and propagates.
"""

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.attributes import set_committed_value
from sqlalchemy.orm.exc import StaleDataError

from repairshop.extensions import db
from repairshop.models import Part
from repairshop.services.concurrency import run_with_retry

from conftest import reload_part


class TestRunWithRetry:
    def test_stale_data_is_retried_once_then_succeeds(self, db_session):
        calls = {"n": 0}

        def _op():
            calls["n"] += 1
            if calls["n"] == 1:
                raise StaleDataError("UPDATE statement on table 'parts' expected to update 1 row(s); 0 were matched.")
            return "done"

        assert run_with_retry(_op, backoff_base=0) == "done"
        assert calls["n"] == 2

    def test_lock_error_is_retried(self, db_session):
        calls = {"n": 0}

        def _op():
            calls["n"] += 1
            if calls["n"] == 1:
                raise OperationalError("UPDATE parts", {}, Exception("database is locked"))
            return calls["n"]

        assert run_with_retry(_op, backoff_base=0) == 2

    def test_persistent_conflict_gives_up_after_configured_attempts(self, app, db_session):
        calls = {"n": 0}

        def _op():
            calls["n"] += 1
            raise StaleDataError("version mismatch")

        with pytest.raises(StaleDataError):
            run_with_retry(_op, backoff_base=0)

        assert calls["n"] == app.config["DB_RETRY_ATTEMPTS"]

    def test_explicit_attempts_override_config(self, db_session):
        calls = {"n": 0}

        def _op():
            calls["n"] += 1
            raise StaleDataError("version mismatch")

        with pytest.raises(StaleDataError):
            run_with_retry(_op, attempts=4, backoff_base=0)

        assert calls["n"] == 4

    def test_other_errors_roll_back_without_retry(self, db_session):
        calls = {"n": 0}

        def _op():
            calls["n"] += 1
            db.session.add(Part(sku="TMP-1", name="Temp", stock=0))
            db.session.flush()
            raise ValueError("bad input")

        with pytest.raises(ValueError):
            run_with_retry(_op, backoff_base=0)

        assert calls["n"] == 1
        assert db.session.query(Part).filter_by(sku="TMP-1").count() == 0


class TestPartVersionConflict:
    def test_concurrent_write_is_retried_from_fresh_read(self, make_part):
        part = make_part(stock=5)
        before = reload_part(part.id).version_id
        calls = {"n": 0}

        def _op():
            calls["n"] += 1
            p = db.session.get(Part, part.id)
            if calls["n"] == 1:
                # Our copy predates another writer's commit
                set_committed_value(p, "version_id", p.version_id - 1)
            p.name = "Renamed"
            db.session.commit()
            return p

        run_with_retry(_op, backoff_base=0)

        assert calls["n"] == 2
        after = reload_part(part.id)
        assert after.name == "Renamed"
        assert after.version_id == before + 1

    def test_stale_copy_cannot_overwrite(self, make_part):
        part = make_part(stock=5)
        p = reload_part(part.id)
        set_committed_value(p, "version_id", p.version_id - 1)
        p.stock = 4

        with pytest.raises(StaleDataError):
            db.session.flush()
        db.session.rollback()

        assert reload_part(part.id).stock == 5
