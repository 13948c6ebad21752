from datetime import date

import pytest

from sppbilling.core import errors
from sppbilling.models.billing import FeeFrequency, FeeItem, InstallmentStatus
from sppbilling.schemas.fees import FeeItemCreate, FeeStructureCreate, InstallmentCreate
from sppbilling.services import fee_service


def _item(amount, recurring=False, frequency=None, optional=False, item_id=None):
    return FeeItem(
        id=item_id or f"item-{amount}-{frequency}",
        name="Biaya",
        amount=amount,
        is_recurring=recurring,
        frequency=frequency,
        is_optional=optional,
    )


def test_monthly_item_counts_twelve_times():
    items = [
        _item(400000, recurring=True, frequency=FeeFrequency.monthly),
        _item(2000000),
    ]
    assert fee_service.compute_total_amount(items) == 6800000


def test_quarterly_and_annual_items_count_once():
    items = [
        _item(750000, recurring=True, frequency=FeeFrequency.quarterly),
        _item(1000000, recurring=True, frequency=FeeFrequency.annually),
    ]
    assert fee_service.compute_total_amount(items) == 1750000


def test_optional_items_are_included_by_default():
    items = [_item(2000000), _item(300000, optional=True)]
    assert fee_service.compute_total_amount(items) == 2300000


def test_optional_items_can_be_excluded():
    items = [_item(2000000), _item(300000, optional=True)]
    assert fee_service.compute_total_amount(items, include_optional=False) == 2000000


def test_empty_structure_totals_zero():
    assert fee_service.compute_total_amount([]) == 0


def test_generated_schedule_adds_up_to_total():
    items = [
        _item(400000, recurring=True, frequency=FeeFrequency.monthly, item_id="spp"),
        _item(2000000, item_id="gedung"),
    ]
    schedule = fee_service.build_payment_schedule(items, date(2024, 7, 1), today=date(2024, 7, 5))

    assert len(schedule) == 12
    assert [inst.installment_number for inst in schedule] == list(range(1, 13))
    assert sum(inst.amount for inst in schedule) == fee_service.compute_total_amount(items)

    first, second, last = schedule[0], schedule[1], schedule[-1]
    assert first.due_date == date(2024, 7, 10)
    assert first.amount == 2400000
    assert set(first.fee_item_ids) == {"spp", "gedung"}
    assert second.due_date == date(2024, 8, 10)
    assert second.fee_item_ids == ["spp"]
    assert last.due_date == date(2025, 6, 10)


def test_schedule_without_monthly_items_is_one_installment():
    schedule = fee_service.build_payment_schedule([_item(500000)], date(2024, 7, 1))
    assert len(schedule) == 1
    assert schedule[0].amount == 500000


@pytest.mark.parametrize("today,expected", [
    (date(2024, 6, 1), InstallmentStatus.upcoming),
    (date(2024, 7, 1), InstallmentStatus.due),
    (date(2024, 7, 10), InstallmentStatus.due),
    (date(2024, 7, 11), InstallmentStatus.overdue),
])
def test_installment_status_follows_the_calendar(today, expected):
    assert fee_service.installment_status(date(2024, 7, 10), today) == expected


def test_create_structure_links_the_class(world):
    store, cls, structure = world["store"], world["class"], world["structure"]
    assert structure.total_amount == 6800000
    assert store.require_one("classes", cls.id).fee_structure_id == structure.id


def test_class_scope_requires_target(world):
    with pytest.raises(ValueError):
        FeeStructureCreate(
            name="Tanpa Target", institution_id=world["institution"].id,
            academic_year_id=world["year"].id, applicable_for="class",
            fee_items=[FeeItemCreate(name="SPP", amount=100000)],
        )


def test_explicit_schedule_is_sorted_and_renumbered(world):
    structure = fee_service.create_fee_structure(world["store"], FeeStructureCreate(
        name="Cicilan Manual", institution_id=world["institution"].id,
        academic_year_id=world["year"].id,
        fee_items=[FeeItemCreate(name="Uang Gedung", amount=2000000)],
        payment_schedule=[
            InstallmentCreate(due_date=date(2024, 9, 1), amount=1000000, fee_item_indexes=[0]),
            InstallmentCreate(due_date=date(2024, 8, 1), amount=1000000, fee_item_indexes=[0]),
        ],
    ))
    assert [i.due_date for i in structure.payment_schedule] == [date(2024, 8, 1), date(2024, 9, 1)]
    assert [i.installment_number for i in structure.payment_schedule] == [1, 2]
    assert structure.payment_schedule[0].fee_item_ids == [structure.fee_items[0].id]


def test_explicit_schedule_with_unknown_item_is_rejected(world):
    with pytest.raises(errors.ValidationError):
        fee_service.create_fee_structure(world["store"], FeeStructureCreate(
            name="Cicilan Salah", institution_id=world["institution"].id,
            academic_year_id=world["year"].id,
            fee_items=[FeeItemCreate(name="Uang Gedung", amount=2000000)],
            payment_schedule=[
                InstallmentCreate(due_date=date(2024, 8, 1), amount=2000000, fee_item_indexes=[3]),
            ],
        ))


def test_billed_structure_cannot_be_deleted(world):
    from sppbilling.services import billing_service

    store, structure = world["store"], world["structure"]
    billing_service.apply_fee_structure(store, structure.id)
    with pytest.raises(errors.Conflict):
        fee_service.delete_fee_structure(store, structure.id)


def test_unbilled_structure_delete_unlinks_class(world):
    store, structure, cls = world["store"], world["structure"], world["class"]
    fee_service.delete_fee_structure(store, structure.id)
    assert store.select_one("fee_structures", structure.id) is None
    assert store.require_one("classes", cls.id).fee_structure_id is None
