import sys
import unittest
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path


ROOT_DIR = Path(__file__).resolve().parents[2]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from encore.schemas.records import Rental, RentalStatus
from encore.services.errors import InvalidTransitionError
from encore.services.pricing_service import SERVICE_FEE_RATE, quote_rental, rental_days
from encore.services.rental_service import (
    RentalBook,
    can_transition,
    group_host_bookings,
    group_renter_rentals,
    transition_state,
)
from encore.services.sample_data import SAMPLE_HOST_REQUESTS, SAMPLE_RENTALS


def make_rental(rental_id: str, status: RentalStatus) -> Rental:
    return Rental(
        id=rental_id,
        instrument_id="1",
        renter_id="u1",
        host_id="h1",
        start_date=date(2025, 6, 10),
        end_date=date(2025, 6, 14),
        total_price=Decimal("79.2"),
        status=status,
        instrument_name="Fender Stratocaster",
        instrument_emoji="🎸",
    )


class PricingTests(unittest.TestCase):
    def test_quote_matches_worked_example(self):
        quote = quote_rental(18, date(2025, 6, 10), date(2025, 6, 14))
        self.assertEqual(quote.days, 4)
        self.assertEqual(quote.subtotal, Decimal("72"))
        self.assertEqual(quote.service_fee, Decimal("7.2"))
        self.assertEqual(quote.total, Decimal("79.2"))

    def test_total_is_days_times_rate_plus_ten_percent(self):
        for price, days in ((Decimal("14"), 1), (Decimal("22.5"), 3), (Decimal("42"), 30)):
            start = date(2025, 1, 1)
            end = date.fromordinal(start.toordinal() + days)
            quote = quote_rental(price, start, end)
            self.assertEqual(quote.days, days)
            self.assertEqual(quote.total, price * days * (1 + SERVICE_FEE_RATE))

    def test_same_day_and_inverted_ranges_clamp_to_one_day(self):
        self.assertEqual(rental_days(date(2025, 6, 10), date(2025, 6, 10)), 1)
        self.assertEqual(rental_days(date(2025, 6, 14), date(2025, 6, 10)), 1)
        quote = quote_rental(25, "2025-06-10", "2025-06-10")
        self.assertEqual(quote.days, 1)
        self.assertEqual(quote.total, Decimal("27.5"))

    def test_time_of_day_is_ignored(self):
        self.assertEqual(rental_days(datetime(2025, 6, 10, 23, 59), datetime(2025, 6, 11, 0, 1)), 1)
        self.assertEqual(rental_days("2025-06-10", "2025-06-13"), 3)

    def test_full_precision_is_kept(self):
        quote = quote_rental("18.35", "2025-06-10", "2025-06-13")
        self.assertEqual(quote.subtotal, Decimal("55.05"))
        self.assertEqual(quote.service_fee, Decimal("5.505"))
        self.assertEqual(quote.total, Decimal("60.555"))

    def test_negative_price_is_rejected(self):
        with self.assertRaises(ValueError):
            quote_rental(-1, "2025-06-10", "2025-06-13")

    def test_rental_days_count_uses_same_rule(self):
        self.assertEqual(SAMPLE_RENTALS[0].days_count, 4)
        same_day = make_rental("x", RentalStatus.PENDING).model_copy(update={"end_date": date(2025, 6, 10)})
        self.assertEqual(same_day.days_count, 1)


class TransitionTests(unittest.TestCase):
    def test_transition_table(self):
        self.assertTrue(can_transition("pending", "confirmed"))
        self.assertTrue(can_transition(RentalStatus.PENDING, RentalStatus.CANCELLED))
        self.assertTrue(can_transition("confirmed", "active"))
        self.assertTrue(can_transition("confirmed", "cancelled"))
        self.assertTrue(can_transition("active", "completed"))
        self.assertFalse(can_transition("active", "cancelled"))
        self.assertFalse(can_transition("completed", "active"))
        self.assertFalse(can_transition("cancelled", "pending"))
        self.assertFalse(can_transition("pending", "pending"))

    def test_illegal_transition_raises(self):
        rental = make_rental("r1", RentalStatus.COMPLETED)
        with self.assertRaises(InvalidTransitionError) as ctx:
            transition_state(rental, RentalStatus.PENDING)
        self.assertIn("completed -> pending", str(ctx.exception))

    def test_transition_only_changes_status(self):
        rental = make_rental("r1", RentalStatus.CONFIRMED)
        updated = transition_state(rental, "active")
        self.assertEqual(updated.status, RentalStatus.ACTIVE)
        self.assertEqual(
            updated.model_dump(exclude={"status"}),
            rental.model_dump(exclude={"status"}),
        )


class RentalBookTests(unittest.TestCase):
    def setUp(self):
        self.book = RentalBook(SAMPLE_RENTALS + SAMPLE_HOST_REQUESTS)

    def test_approve_pending_confirms_and_keeps_other_fields(self):
        before = self.book.get("r3")
        updated = self.book.approve("r3")
        self.assertIsNotNone(updated)
        self.assertEqual(updated.status, RentalStatus.CONFIRMED)
        self.assertEqual(self.book.get("r3").status, RentalStatus.CONFIRMED)
        self.assertEqual(
            updated.model_dump(exclude={"status"}),
            before.model_dump(exclude={"status"}),
        )

    def test_decline_pending_cancels(self):
        updated = self.book.decline("r4")
        self.assertEqual(updated.status, RentalStatus.CANCELLED)
        self.assertEqual(self.book.get("r4").total_price, Decimal("70"))

    def test_approve_and_decline_are_noops_outside_pending(self):
        before = [rental.model_dump() for rental in self.book]
        self.assertIsNone(self.book.approve("r1"))
        self.assertIsNone(self.book.decline("r2"))
        self.assertIsNone(self.book.approve("missing"))
        self.assertEqual([rental.model_dump() for rental in self.book], before)

    def test_second_decision_is_a_noop(self):
        self.book.approve("r3")
        self.assertIsNone(self.book.decline("r3"))
        self.assertEqual(self.book.get("r3").status, RentalStatus.CONFIRMED)

    def test_transition_rejects_illegal_edges(self):
        with self.assertRaises(InvalidTransitionError):
            self.book.transition("r2", RentalStatus.ACTIVE)
        self.assertEqual(self.book.transition("r1", "completed").status, RentalStatus.COMPLETED)
        with self.assertRaises(KeyError):
            self.book.transition("missing", "completed")


class GroupingTests(unittest.TestCase):
    def test_host_grouping_is_a_total_partition(self):
        rentals = [make_rental(f"g{idx}", status) for idx, status in enumerate(RentalStatus)]
        rentals += SAMPLE_HOST_REQUESTS
        groups = group_host_bookings(rentals)
        self.assertEqual([r.status for r in groups.pending], [RentalStatus.PENDING] * 3)
        self.assertEqual({r.status for r in groups.active}, {RentalStatus.CONFIRMED, RentalStatus.ACTIVE})
        self.assertEqual({r.status for r in groups.past}, {RentalStatus.COMPLETED, RentalStatus.CANCELLED})
        seen = [r.id for group in groups for r in group]
        self.assertEqual(sorted(seen), sorted(r.id for r in rentals))

    def test_renter_grouping(self):
        rentals = [make_rental(f"g{idx}", status) for idx, status in enumerate(RentalStatus)]
        groups = group_renter_rentals(rentals)
        self.assertEqual(
            {r.status for r in groups.active},
            {RentalStatus.PENDING, RentalStatus.CONFIRMED, RentalStatus.ACTIVE},
        )
        self.assertEqual({r.status for r in groups.history}, {RentalStatus.COMPLETED, RentalStatus.CANCELLED})

    def test_book_groups_follow_decisions(self):
        book = RentalBook(SAMPLE_HOST_REQUESTS)
        self.assertEqual(len(book.host_groups().pending), 2)
        book.approve("r3")
        book.decline("r4")
        groups = book.host_groups()
        self.assertEqual([r.id for r in groups.pending], [])
        self.assertEqual([r.id for r in groups.active], ["r3"])
        self.assertEqual([r.id for r in groups.past], ["r4"])


if __name__ == "__main__":
    unittest.main()
