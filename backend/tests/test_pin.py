import unittest
from datetime import timedelta

from flask import Flask

from repairshop.extensions import db
from repairshop.models import AuthPin
from repairshop.services import pin_service
from repairshop.services.pin_service import (
    InvalidPinError,
    PinFormatError,
    PinLockedError,
)
from repairshop.time_utils import utcnow


class PinServiceTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.app = Flask(__name__)
        cls.app.config.update(
            SECRET_KEY="test",
            SQLALCHEMY_DATABASE_URI="sqlite:///:memory:",
            SQLALCHEMY_TRACK_MODIFICATIONS=False,
            TESTING=True,
            ACCESS_PIN="4321",
        )
        db.init_app(cls.app)
        cls.ctx = cls.app.app_context()
        cls.ctx.push()
        from repairshop import models  # noqa: F401
        db.create_all()

    @classmethod
    def tearDownClass(cls):
        db.session.remove()
        db.drop_all()
        cls.ctx.pop()

    def setUp(self):
        db.session.query(AuthPin).delete()
        db.session.commit()

    def _fail(self, pin="0000", times=1):
        for _ in range(times):
            with self.assertRaises((InvalidPinError, PinLockedError)):
                pin_service.verify_pin(pin)

    def test_lock_duration_schedule(self):
        self.assertIsNone(pin_service.lock_duration(2))
        self.assertEqual(pin_service.lock_duration(3), timedelta(minutes=5))
        self.assertEqual(pin_service.lock_duration(4), timedelta(minutes=10))
        self.assertEqual(pin_service.lock_duration(6), timedelta(minutes=40))
        self.assertEqual(pin_service.lock_duration(30), timedelta(minutes=1440))

    def test_format(self):
        for bad in ("", None, "12", "1234567", "12a4"):
            with self.assertRaises(PinFormatError):
                pin_service.validate_pin_format(bad)
        self.assertEqual(pin_service.validate_pin_format(1234), "1234")

    def test_configured_pin_used_until_one_is_stored(self):
        pin_service.verify_pin("4321")
        with self.assertRaises(InvalidPinError):
            pin_service.verify_pin("1111")
        self.assertFalse(pin_service.pin_status()["exists"])

    def test_set_then_verify(self):
        record, replaced = pin_service.set_pin("2468")

        self.assertFalse(replaced)
        self.assertNotEqual(record.pin_hash, "2468")
        pin_service.verify_pin("2468")
        with self.assertRaises(InvalidPinError):
            pin_service.verify_pin("4321")

    def test_change_requires_current_pin(self):
        pin_service.set_pin("2468")

        with self.assertRaises(PinFormatError):
            pin_service.set_pin("1357")
        with self.assertRaises(InvalidPinError):
            pin_service.set_pin("1357", current_pin="9999")

        _, replaced = pin_service.set_pin("1357", current_pin="2468")
        self.assertTrue(replaced)
        pin_service.verify_pin("1357")
        self.assertEqual(db.session.query(AuthPin).filter_by(is_active=True).count(), 1)

    def test_lockout_after_three_failures(self):
        pin_service.set_pin("2468")
        self._fail(times=2)
        self.assertFalse(pin_service.pin_status()["locked"])

        self._fail()
        status = pin_service.pin_status()
        self.assertTrue(status["locked"])
        self.assertEqual(status["attempts"], 3)

        # Even the right PIN is refused while locked
        with self.assertRaises(PinLockedError) as ctx:
            pin_service.verify_pin("2468")
        self.assertGreater(ctx.exception.details["secondsRemaining"], 0)

    def test_expired_lock_allows_login_and_resets_attempts(self):
        pin_service.set_pin("2468")
        self._fail(times=3)

        record = pin_service.get_active_pin()
        record.locked_until = utcnow() - timedelta(seconds=1)
        db.session.commit()

        pin_service.verify_pin("2468")
        record = pin_service.get_active_pin()
        self.assertEqual(record.attempts, 0)
        self.assertIsNone(record.locked_until)

    def test_failure_after_lock_expires_doubles_lock(self):
        pin_service.set_pin("2468")
        self._fail(times=3)
        record = pin_service.get_active_pin()
        record.locked_until = utcnow() - timedelta(seconds=1)
        db.session.commit()

        self._fail()

        record = pin_service.get_active_pin()
        self.assertEqual(record.attempts, 4)
        remaining = record.locked_until - utcnow()
        self.assertGreater(remaining, timedelta(minutes=9))
        self.assertLessEqual(remaining, timedelta(minutes=10))


if __name__ == "__main__":
    unittest.main()
