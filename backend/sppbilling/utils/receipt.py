# sppbilling/utils/receipt.py
# Generates human-readable receipt numbers: RCP/2024/000042

from datetime import datetime
from typing import Optional

from sppbilling.core.config import settings
from sppbilling.core.store import SchoolStore
from sppbilling.core.time import to_local, utc_now


def generate_receipt_number(store: SchoolStore, when: Optional[datetime] = None) -> str:
    """
    Takes the next value of the store's receipt sequence.
    The sequence never repeats for the life of the store, so the
    number is unique even across years.
    Format: RCP/2024/000042 (year in WIB)
    """
    year = to_local(when or utc_now()).year
    return f"{settings.RECEIPT_PREFIX}/{year}/{store.next_receipt_sequence():06d}"
