import asyncio
import unittest
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from support import OTHER_ADDRESS, PAY_ADDRESS, FakeRpc, make_session_factory, make_settings, receipt, transfer_log, tx_hash, whole

from models import PaymentReceipt, SponsoredSpot
from services.errors import (
    ConfigurationError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    PaymentRequiredError,
    ValidationError,
)
from services.payments.tokens import SNR, USDC
from services.sponsored.booking_service import SLOT_TAKEN_MESSAGE, book_slot, confirm_booking
from services.sponsored.pricing import compute_price, parse_week_start, upcoming_weeks

NOW = datetime(2026, 2, 16, 12, 0, tzinfo=timezone.utc)
WEEK = "2026-02-16"


class TestPricing(unittest.TestCase):
    def test_price_grid(self):
        self.assertEqual(compute_price("homepage_inline", "USDC"), Decimal("299"))
        self.assertEqual(compute_price("homepage_inline", "SNR"), Decimal("239.20"))
        self.assertEqual(compute_price("project_sidebar", "USDC"), Decimal("149"))
        self.assertEqual(compute_price("project_sidebar", "SNR"), Decimal("119.20"))

    def test_week_start_must_be_monday(self):
        self.assertEqual(parse_week_start("2026-02-16"), date(2026, 2, 16))
        for raw in ("2026-02-17", "2026-02-30", "16/02/2026", ""):
            with self.assertRaises(ValueError):
                parse_week_start(raw)

    def test_upcoming_weeks_start_on_current_monday(self):
        weeks = upcoming_weeks(date(2026, 2, 19))
        self.assertEqual(len(weeks), 5)
        self.assertEqual(weeks[0], (date(2026, 2, 16), date(2026, 2, 22)))
        self.assertEqual(weeks[4][0], date(2026, 3, 16))


class BookingTestCase(unittest.TestCase):
    def setUp(self):
        self.settings = make_settings()
        self.db = make_session_factory(self.settings)()

    def tearDown(self):
        self.db.close()

    def book(self, handle="alice", now=NOW, settings=None, **overrides):
        fields = dict(
            spot_type="homepage_inline",
            week_start=WEEK,
            title="Sonar Agents",
            description="Agents that ship",
            url="https://example.com",
            payment_token="USDC",
        )
        fields.update(overrides)
        return book_slot(self.db, settings or self.settings, handle, now=now, **fields)

    def spots(self):
        return self.db.query(SponsoredSpot).all()


class TestBookSlot(BookingTestCase):
    def test_snr_sidebar_booking_is_discounted(self):
        out = self.book(spot_type="project_sidebar", payment_token="SNR")
        instructions = out["payment_instructions"]
        self.assertEqual(instructions["amount"], Decimal("119.20"))
        self.assertEqual(instructions["token"], "$SNR")
        self.assertEqual(instructions["token_contract"], SNR.contract)
        self.assertEqual(instructions["address"], PAY_ADDRESS)
        self.assertEqual(instructions["chain_id"], 8453)
        self.assertEqual(instructions["expires_at"], NOW + timedelta(minutes=5))
        self.assertEqual(out["spot"]["week_end"], date(2026, 2, 22))

    def test_hold_row_written(self):
        out = self.book()
        [spot] = self.spots()
        self.assertEqual(spot.id, out["booking_id"])
        self.assertEqual(spot.status, "held")
        self.assertEqual(spot.booked_by, "alice")
        self.assertEqual(spot.payment_token, "USDC")
        self.assertEqual(spot.week_start, date(2026, 2, 16))

    def test_non_monday_rejected_without_write(self):
        with self.assertRaises(ValidationError) as ctx:
            self.book(week_start="2026-02-18")
        self.assertIn("Monday", ctx.exception.message)
        self.assertEqual(self.spots(), [])

    def test_field_validation(self):
        cases = [
            (dict(title=None), "Missing required fields"),
            (dict(spot_type="homepage_banner"), "Invalid spot_type"),
            (dict(title="x" * 61), "Title must be 60 characters or less"),
            (dict(description="x" * 121), "Description must be 120 characters or less"),
            (dict(url="http://example.com"), "URL must start with https://"),
            (dict(payment_token="ETH"), "payment_token must be USDC or SNR"),
        ]
        for overrides, message in cases:
            with self.subTest(overrides=overrides):
                with self.assertRaises(ValidationError) as ctx:
                    self.book(**overrides)
                self.assertIn(message, ctx.exception.message)
        self.assertEqual(self.spots(), [])

    def test_missing_payment_address_is_config_error(self):
        settings = make_settings(sponsored_payment_address=None)
        with self.assertRaises(ConfigurationError):
            self.book(settings=settings)
        self.assertEqual(self.spots(), [])

    def test_live_hold_blocks_second_booking(self):
        self.book(handle="alice")
        with self.assertRaises(ConflictError) as ctx:
            self.book(handle="bob", now=NOW + timedelta(minutes=4))
        self.assertEqual(ctx.exception.message, SLOT_TAKEN_MESSAGE)
        self.assertEqual([s.booked_by for s in self.spots()], ["alice"])

    def test_expired_hold_is_replaced(self):
        self.book(handle="alice")
        self.book(handle="bob", now=NOW + timedelta(minutes=6))
        [spot] = self.spots()
        self.assertEqual(spot.booked_by, "bob")
        self.assertEqual(spot.status, "held")

    def test_other_slot_type_same_week_is_independent(self):
        self.book(handle="alice")
        self.book(handle="bob", spot_type="project_sidebar")
        self.assertEqual(len(self.spots()), 2)


class TestConfirmBooking(BookingTestCase):
    def confirm(self, booking_id, tx, rpc, handle="alice", settings=None, now=NOW + timedelta(minutes=1)):
        return asyncio.run(
            confirm_booking(
                self.db,
                rpc,
                settings or self.settings,
                handle,
                booking_id=booking_id,
                tx_hash=tx,
                now=now,
            )
        )

    def paid(self, tx, token=USDC, amount="299", to=PAY_ADDRESS):
        return {tx: receipt([transfer_log(token, to=to, raw_amount=whole(token, amount))])}

    def test_confirm_activates_and_records_receipt(self):
        booking_id = self.book()["booking_id"]
        tx = tx_hash(10)
        spot = self.confirm(booking_id, tx, FakeRpc(self.paid(tx)))

        self.assertEqual(spot.status, "active")
        self.assertIsNone(spot.hold_expires_at)
        self.assertEqual(spot.payment_tx_hash, tx)
        [row] = self.db.query(PaymentReceipt).all()
        self.assertEqual(row.tx_hash, tx)
        self.assertEqual(row.purpose, "sponsored_spot")
        self.assertEqual(row.twitter_handle, "alice")

    def test_uppercase_tx_hash_normalized(self):
        booking_id = self.book()["booking_id"]
        tx = tx_hash(11)
        spot = self.confirm(booking_id, "0x" + tx[2:].upper(), FakeRpc(self.paid(tx)))
        self.assertEqual(spot.payment_tx_hash, tx)

    def test_invalid_payment_is_402_and_keeps_hold(self):
        booking_id = self.book()["booking_id"]
        tx = tx_hash(12)
        with self.assertRaises(PaymentRequiredError) as ctx:
            self.confirm(booking_id, tx, FakeRpc(self.paid(tx, to=OTHER_ADDRESS)))
        self.assertEqual(ctx.exception.extra["error_kind"], "wrong_recipient")
        self.assertFalse(ctx.exception.extra["retryable"])
        self.db.expire_all()
        self.assertEqual(self.spots()[0].status, "held")
        self.assertEqual(self.db.query(PaymentReceipt).count(), 0)

    def test_pending_transaction_is_retryable(self):
        booking_id = self.book()["booking_id"]
        with self.assertRaises(PaymentRequiredError) as ctx:
            self.confirm(booking_id, tx_hash(13), FakeRpc())
        self.assertTrue(ctx.exception.extra["retryable"])

    def test_snr_booking_accepts_positive_transfer(self):
        booking_id = self.book(spot_type="project_sidebar", payment_token="SNR")["booking_id"]
        tx = tx_hash(14)
        spot = self.confirm(booking_id, tx, FakeRpc(self.paid(tx, token=SNR, amount="3")))
        self.assertEqual(spot.status, "active")

    def test_booking_of_someone_else_is_forbidden(self):
        booking_id = self.book(handle="alice")["booking_id"]
        with self.assertRaises(ForbiddenError):
            self.confirm(booking_id, tx_hash(15), FakeRpc(), handle="mallory")

    def test_unknown_booking(self):
        with self.assertRaises(NotFoundError):
            self.confirm(999, tx_hash(16), FakeRpc())

    def test_bad_tx_hash(self):
        booking_id = self.book()["booking_id"]
        with self.assertRaises(ValidationError):
            self.confirm(booking_id, "0x1234", FakeRpc())

    def test_already_active(self):
        booking_id = self.book()["booking_id"]
        tx = tx_hash(17)
        rpc = FakeRpc(self.paid(tx))
        self.confirm(booking_id, tx, rpc)
        with self.assertRaises(ConflictError) as ctx:
            self.confirm(booking_id, tx_hash(18), rpc)
        self.assertEqual(ctx.exception.message, "Booking is already active")

    def test_transaction_cannot_pay_twice(self):
        first = self.book(spot_type="homepage_inline")["booking_id"]
        second = self.book(spot_type="homepage_inline", week_start="2026-02-23")["booking_id"]
        tx = tx_hash(19)
        rpc = FakeRpc(self.paid(tx))
        self.confirm(first, tx, rpc)

        with self.assertRaises(ConflictError) as ctx:
            self.confirm(second, tx, rpc)
        self.assertEqual(ctx.exception.message, "This transaction has already been used for a payment")
        self.assertEqual(rpc.calls, [tx])

    def test_missing_payment_address(self):
        booking_id = self.book()["booking_id"]
        with self.assertRaises(ConfigurationError):
            self.confirm(booking_id, tx_hash(20), FakeRpc(), settings=make_settings(sponsored_payment_address=None))

    def test_confirmed_slot_blocks_new_bookings(self):
        booking_id = self.book()["booking_id"]
        tx = tx_hash(21)
        self.confirm(booking_id, tx, FakeRpc(self.paid(tx)))
        with self.assertRaises(ConflictError):
            self.book(handle="bob", now=NOW + timedelta(days=1))
        self.assertEqual(len(self.spots()), 1)

    def test_expired_hold_cannot_be_confirmed(self):
        booking_id = self.book()["booking_id"]
        tx = tx_hash(22)
        rpc = FakeRpc(self.paid(tx))
        with self.assertRaises(ConflictError) as ctx:
            self.confirm(booking_id, tx, rpc, now=NOW + timedelta(hours=3))
        self.assertEqual(ctx.exception.message, "Hold expired. Book the slot again.")
        self.assertEqual(rpc.calls, [])
        self.db.expire_all()
        self.assertEqual(self.spots()[0].status, "held")
        self.assertEqual(self.db.query(PaymentReceipt).count(), 0)


if __name__ == "__main__":
    unittest.main()
