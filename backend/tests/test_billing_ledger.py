import re
import threading
from datetime import date, datetime, timezone

import pytest

from sppbilling.core import errors
from sppbilling.models.billing import BillingStatus, PaymentMethod
from sppbilling.services import billing_service

from conftest import SCHOOL_DAY


def _bill(world):
    return billing_service.create_billing(
        world["store"], world["structure"], world["student"], world["class"],
    )


def _pay(world, billing_id, amount, **kwargs):
    kwargs.setdefault("today", SCHOOL_DAY)
    return billing_service.apply_payment(
        world["store"], billing_id, amount, PaymentMethod.cash,
        processed_by="Kasir Satu", **kwargs,
    )


def _assert_balanced(record):
    assert record.outstanding_amount == record.expected_outstanding


def test_new_billing_starts_current_with_full_balance(world):
    record = _bill(world)

    assert record.total_fees == 6800000
    assert record.paid_amount == 0
    assert record.outstanding_amount == 6800000
    assert record.status == BillingStatus.current
    assert record.next_due_date == date(2024, 7, 10)
    assert record.class_id == world["class"].id


def test_payments_run_the_balance_down_to_paid(world):
    store = world["store"]
    record = _bill(world)

    record, first = _pay(world, record.id, 2000000)
    assert record.paid_amount == 2000000
    assert record.outstanding_amount == 4800000
    assert record.status == BillingStatus.current
    _assert_balanced(record)

    record, second = _pay(world, record.id, 4800000)
    assert record.outstanding_amount == 0
    assert record.status == BillingStatus.paid
    assert record.payment_ids == [first.id, second.id]
    _assert_balanced(record)

    with pytest.raises(errors.OverpaymentRejected):
        _pay(world, record.id, 1)
    unchanged = store.require_one("billings", record.id)
    assert unchanged == record
    assert len(store.all("payments")) == 2


def test_overpayment_leaves_record_untouched(world):
    store = world["store"]
    record = _bill(world)

    with pytest.raises(errors.OverpaymentRejected) as exc:
        _pay(world, record.id, 6800001)
    assert exc.value.context["outstanding"] == 6800000
    assert store.require_one("billings", record.id) == record
    assert store.all("payments") == []


@pytest.mark.parametrize("amount", [0, -50000])
def test_non_positive_amounts_are_invalid(world, amount):
    record = _bill(world)
    with pytest.raises(errors.InvalidAmount):
        _pay(world, record.id, amount)


@pytest.mark.parametrize("amount", [150000.5, "150000", True])
def test_non_integer_amounts_fail_validation(world, amount):
    record = _bill(world)
    with pytest.raises(errors.ValidationError):
        _pay(world, record.id, amount)


def test_unknown_payment_method_fails_validation(world):
    record = _bill(world)
    with pytest.raises(errors.ValidationError):
        billing_service.apply_payment(
            world["store"], record.id, 100000, "bitcoin", processed_by="Kasir Satu",
        )


def test_payment_method_accepts_plain_strings(world):
    record = _bill(world)
    _, payment = billing_service.apply_payment(
        world["store"], record.id, 100000, "transfer",
        processed_by="Kasir Satu", today=SCHOOL_DAY,
    )
    assert payment.payment_method == PaymentMethod.transfer


def test_unknown_billing_is_not_found(world):
    with pytest.raises(errors.NotFound):
        _pay(world, "no-such-billing", 100000)


def test_fee_items_must_belong_to_the_structure(world):
    record = _bill(world)
    spp = world["structure"].fee_items[0]

    _, payment = _pay(world, record.id, 400000, fee_item_ids=[spp.id])
    assert payment.fee_item_ids == [spp.id]

    with pytest.raises(errors.ValidationError):
        _pay(world, record.id, 400000, fee_item_ids=["bogus-item"])


def test_second_billing_for_same_year_conflicts(world):
    _bill(world)
    with pytest.raises(errors.Conflict):
        _bill(world)


def test_apply_fee_structure_skips_already_billed_students(world):
    store, structure = world["store"], world["structure"]

    created, skipped = billing_service.apply_fee_structure(store, structure.id)
    assert len(created) == 1 and skipped == 0

    created, skipped = billing_service.apply_fee_structure(store, structure.id)
    assert created == [] and skipped == 1


def test_inactive_structure_cannot_be_billed(world):
    store, structure = world["store"], world["structure"]
    inactive = store.update("fee_structures", structure.id, status="inactive")
    with pytest.raises(errors.ValidationError):
        billing_service.create_billing(store, inactive, world["student"])


def test_next_due_date_moves_once_an_installment_is_covered(world):
    record = _bill(world)

    record, _ = _pay(world, record.id, 2399999)
    assert record.next_due_date == date(2024, 7, 10)

    record, _ = _pay(world, record.id, 1)
    assert record.next_due_date == date(2024, 8, 10)


def test_next_due_date_without_schedule_is_none():
    assert billing_service.next_due_date([], covered=0) is None


def test_refresh_marks_overdue_then_defaulter(world):
    store = world["store"]
    record = _bill(world)

    # five days late, inside the 10 day grace
    assert billing_service.refresh_statuses(store, today=date(2024, 7, 15)) == [record.id]
    assert store.require_one("billings", record.id).status == BillingStatus.overdue

    billing_service.refresh_statuses(store, today=date(2024, 7, 25))
    assert store.require_one("billings", record.id).status == BillingStatus.defaulter

    assert billing_service.refresh_statuses(store, today=date(2024, 7, 25)) == []


def test_refresh_never_touches_paid_records(world):
    store = world["store"]
    record = _bill(world)
    _pay(world, record.id, 6800000)

    billing_service.refresh_statuses(store, today=date(2025, 3, 1))
    assert store.require_one("billings", record.id).status == BillingStatus.paid


def test_paying_the_late_installment_brings_record_back_to_current(world):
    store = world["store"]
    record = _bill(world)
    billing_service.refresh_statuses(store, today=date(2024, 7, 15))

    record, _ = _pay(world, record.id, 2400000, today=date(2024, 7, 15))
    assert record.status == BillingStatus.current
    assert record.next_due_date == date(2024, 8, 10)


def test_partial_payment_past_grace_leaves_record_overdue(world):
    record = _bill(world)

    # 22 days after the 10 July due date, grace is 10 days
    record, _ = _pay(world, record.id, 100000, today=date(2024, 8, 1))
    assert record.status == BillingStatus.overdue
    _assert_balanced(record)


def test_discount_past_grace_leaves_record_overdue(world):
    record = _bill(world)
    record = billing_service.apply_discount(world["store"], record.id, 100000, today=date(2024, 8, 1))
    assert record.status == BillingStatus.overdue


def test_only_refresh_turns_a_record_into_a_defaulter(world):
    store = world["store"]
    record = _bill(world)
    _pay(world, record.id, 100000, today=date(2024, 8, 1))

    billing_service.refresh_statuses(store, today=date(2024, 8, 1))
    assert store.require_one("billings", record.id).status == BillingStatus.defaulter

    record, _ = _pay(world, record.id, 100000, today=date(2024, 8, 1))
    assert record.status == BillingStatus.overdue


def test_late_fee_keeps_a_defaulter_a_defaulter(world):
    store = world["store"]
    record = _bill(world)
    billing_service.refresh_statuses(store, today=date(2024, 7, 25))

    charged = billing_service.apply_late_fee(store, record.id, today=date(2024, 7, 25))
    assert charged.late_fee_amount == 340000
    assert charged.status == BillingStatus.defaulter


def test_unknown_billing_ids_do_not_leave_locks_behind(world):
    store = world["store"]
    for n in range(5):
        with pytest.raises(errors.NotFound):
            _pay(world, f"missing-{n}", 100000)
        with pytest.raises(errors.NotFound):
            billing_service.apply_discount(store, f"missing-{n}", 100000)
        with pytest.raises(errors.NotFound):
            billing_service.apply_late_fee(store, f"missing-{n}")
    assert store._record_locks == {}


def test_late_fee_is_charged_once_on_overdue_records(world):
    store = world["store"]
    record = _bill(world)

    # not late yet
    assert billing_service.apply_late_fee(store, record.id, today=SCHOOL_DAY).late_fee_amount == 0

    charged = billing_service.apply_late_fee(store, record.id, today=date(2024, 7, 15))
    assert charged.late_fee_amount == 340000
    assert charged.outstanding_amount == 7140000
    _assert_balanced(charged)

    again = billing_service.apply_late_fee(store, record.id, today=date(2024, 8, 20))
    assert again.late_fee_amount == 340000
    assert again.outstanding_amount == 7140000


def test_discount_reduces_outstanding(world):
    store = world["store"]
    record = _bill(world)

    record = billing_service.apply_discount(
        store, record.id, 800000, reason="Beasiswa prestasi", today=SCHOOL_DAY,
    )
    assert record.discount_amount == 800000
    assert record.outstanding_amount == 6000000
    _assert_balanced(record)

    with pytest.raises(errors.OverpaymentRejected):
        billing_service.apply_discount(store, record.id, 6000001, today=SCHOOL_DAY)
    with pytest.raises(errors.InvalidAmount):
        billing_service.apply_discount(store, record.id, 0, today=SCHOOL_DAY)


def test_discount_counts_towards_covering_installments(world):
    store = world["store"]
    record = _bill(world)
    _pay(world, record.id, 2000000)

    record = billing_service.apply_discount(store, record.id, 400000, today=SCHOOL_DAY)
    assert record.next_due_date == date(2024, 8, 10)


def test_receipt_numbers_follow_the_wib_year(world):
    record = _bill(world)
    _, payment = _pay(
        world, record.id, 400000,
        payment_date=datetime(2024, 7, 15, 2, 30, tzinfo=timezone.utc),
    )
    assert re.fullmatch(r"RCP/2024/\d{6}", payment.receipt_number)

    # 31 Dec 18:00 UTC is already 1 Jan in Jakarta
    _, late_night = _pay(
        world, record.id, 400000,
        payment_date=datetime(2024, 12, 31, 18, 0, tzinfo=timezone.utc),
    )
    assert late_night.receipt_number.startswith("RCP/2025/")


def test_concurrent_payments_keep_the_ledger_consistent(world):
    store = world["store"]
    record = _bill(world)
    receipts, failures = [], []

    def pay():
        try:
            _, payment = _pay(world, record.id, 400000)
            receipts.append(payment.receipt_number)
        except errors.OverpaymentRejected:
            failures.append(1)

    # 20 × 400.000 against a 6.800.000 balance: exactly 17 fit
    threads = [threading.Thread(target=pay) for _ in range(20)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    final = store.require_one("billings", record.id)
    assert len(receipts) == 17
    assert len(failures) == 3
    assert len(set(receipts)) == 17
    assert final.paid_amount == 6800000
    assert final.outstanding_amount == 0
    assert len(final.payment_ids) == 17
    _assert_balanced(final)


def test_get_billing_by_student_uses_the_active_year(world):
    store = world["store"]
    record = _bill(world)

    assert billing_service.get_billing_by_student(store, world["student"].id) == record
    assert billing_service.get_billing_by_student(store, "someone-else") is None


def test_seeded_billing_reflects_the_cash_payment(demo):
    store, ids = demo
    record = store.require_one("billings", ids["billing_id"])

    assert record.total_fees == 7600000
    assert record.paid_amount == 400000
    assert record.outstanding_amount == 7200000
    payment = store.require_one("payments", record.payment_ids[0])
    assert payment.processed_by == "Kasir Satu"
    assert payment.payment_method == PaymentMethod.cash
