# sppbilling/services/institution_service.py
#
# Schools managed by the console. Each one carries its own
# billing settings (payment_due_days, late_fee_percentage, ...)
# which billing_service reads when classifying defaulters
# and charging late fees.

from typing import Optional, List
import logging

from sppbilling.core import errors
from sppbilling.core.store import SchoolStore
from sppbilling.models.academic import Institution, InstitutionSettings
from sppbilling.schemas.academic import InstitutionCreate, InstitutionUpdate
from sppbilling.services.activity_service import log_activity

logger = logging.getLogger(__name__)


def create_institution(store: SchoolStore, data: InstitutionCreate, created_by: Optional[str] = None) -> Institution:
    code = data.code.strip().upper()
    if store.exists("institutions", code=code):
        raise errors.Conflict(f"Institution code '{code}' already exists.")

    institution = store.insert("institutions", Institution(
        id=store.new_id(),
        name=data.name.strip(),
        code=code,
        address=data.address,
        phone=data.phone,
        email=data.email,
        principal_name=data.principal_name,
        established_year=data.established_year,
        status=data.status,
        settings=InstitutionSettings(**data.settings.model_dump()),
    ))
    log_activity(
        store, "institution.created", user_id=created_by,
        entity_type="institution", entity_id=institution.id,
        metadata={"code": code, "name": institution.name},
    )
    logger.info(f"Institution {code} created")
    return institution


def list_institutions(store: SchoolStore, status: Optional[str] = None) -> List[Institution]:
    return store.select("institutions", status=status)


def get_institution(store: SchoolStore, institution_id: str) -> Institution:
    return store.require_one("institutions", institution_id)


def update_institution(
    store: SchoolStore, institution_id: str, data: InstitutionUpdate, updated_by: Optional[str] = None
) -> Institution:
    store.require_one("institutions", institution_id)
    payload = data.model_dump(exclude_unset=True)
    if not payload:
        raise errors.ValidationError("Nothing to update")

    if payload.get("code"):
        payload["code"] = payload["code"].strip().upper()
        clash = store.select("institutions", where=lambda i: i.id != institution_id, code=payload["code"])
        if clash:
            raise errors.Conflict(f"Institution code '{payload['code']}' already exists.")

    institution = store.update("institutions", institution_id, **payload)
    log_activity(
        store, "institution.updated", user_id=updated_by,
        entity_type="institution", entity_id=institution_id,
        metadata={"fields": sorted(payload)},
    )
    return institution


def delete_institution(store: SchoolStore, institution_id: str, deleted_by: Optional[str] = None) -> Institution:
    institution = store.require_one("institutions", institution_id)
    if store.exists("billings", institution_id=institution_id):
        raise errors.Conflict("Institution has billing records and cannot be deleted.")
    for table, label in (("classes", "classes"), ("students", "students"), ("fee_structures", "fee structures")):
        if store.exists(table, institution_id=institution_id):
            raise errors.Conflict(f"Institution still has {label}. Remove them first.")

    store.delete("institutions", institution_id)
    log_activity(
        store, "institution.deleted", user_id=deleted_by,
        entity_type="institution", entity_id=institution_id,
        metadata={"code": institution.code},
    )
    return institution


def class_count(store: SchoolStore, institution_id: str) -> int:
    return len(store.select("classes", institution_id=institution_id))
