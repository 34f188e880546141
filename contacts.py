import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends

from envelope import normalize_page, paginated_response, pagination_meta, success_response
from errors import NotFoundError, ValidationError
from repositories import contacts, serialize, sort_spec
from schemas import Contact, ContactIn, ContactStatusIn
from security import require_roles
from validation import check_choice, check_email, check_text

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/contact", tags=["contact"])

STATUSES = ('pending', 'reviewed', 'responded', 'archived')

admin_only = require_roles('admin')


def get_contact_doc(contact_id: str) -> Dict[str, Any]:
    contact = contacts.find_by_id(contact_id)
    if not contact:
        raise NotFoundError("Contact")
    return contact


def submit_contact(payload: ContactIn) -> Dict[str, Any]:
    errors: List[str] = []
    check_text(errors, "Name", payload.name, min_len=2, max_len=100)
    check_email(errors, payload.email)
    check_text(errors, "Message", payload.message, min_len=10, max_len=2000)
    if errors:
        raise ValidationError.from_errors(errors)

    now = datetime.now(timezone.utc)
    contact = Contact(
        name=payload.name.strip(),
        email=payload.email.strip().lower(),
        message=payload.message.strip(),
        submittedAt=now,
        updatedAt=now,
    )
    created = contacts.create(contact.model_dump(exclude={"id"}))
    logger.info("Contact submission received: %s", created["_id"])
    return {
        "id": str(created["_id"]),
        "status": created["status"],
        "message": "Your message has been received and will be reviewed shortly.",
    }


def list_contacts(status: Optional[str] = None, page: int = 1, limit: int = 10):
    errors: List[str] = []
    check_choice(errors, "status", status, STATUSES)
    if errors:
        raise ValidationError.from_errors(errors)
    page, limit = normalize_page(page, limit)
    query = {"status": status} if status else {}
    total = contacts.count(query)
    docs = contacts.find(query, sort=sort_spec("submittedAt", "desc"), skip=(page - 1) * limit, limit=limit)
    return [serialize(d) for d in docs], pagination_meta(page, limit, total)


def update_contact_status(contact_id: str, status: str) -> Dict[str, Any]:
    if status not in STATUSES:
        raise ValidationError(f"Invalid status. Must be one of: {', '.join(STATUSES)}")
    updated = contacts.update(contact_id, {"status": status})
    if not updated:
        raise NotFoundError("Contact")
    return serialize(updated)


def delete_contact(contact_id: str) -> None:
    if not contacts.delete(contact_id):
        raise NotFoundError("Contact")


def contact_statistics() -> Dict[str, Any]:
    by_status = {status: contacts.count({"status": status}) for status in STATUSES}
    total = contacts.count()

    def rate(count: int) -> float:
        return round(count / total * 100, 1) if total else 0

    return {
        "total": total,
        "byStatus": by_status,
        "pendingRate": rate(by_status["pending"]),
        "responseRate": rate(by_status["responded"]),
    }


# --------- Routes ---------

@router.post("", status_code=201)
def submit(payload: ContactIn):
    return success_response(submit_contact(payload), "Contact form submitted successfully")


@router.get("")
def get_contacts(status: Optional[str] = None, page: int = 1, limit: int = 10, admin: dict = Depends(admin_only)):
    items, meta = list_contacts(status, page, limit)
    return paginated_response(items, meta, "Contacts retrieved successfully")


@router.get("/stats")
def get_stats(admin: dict = Depends(admin_only)):
    return success_response(contact_statistics(), "Contact statistics retrieved successfully")


@router.get("/{contact_id}")
def get_contact(contact_id: str, admin: dict = Depends(admin_only)):
    return success_response(serialize(get_contact_doc(contact_id)), "Contact retrieved successfully")


@router.patch("/{contact_id}")
@router.patch("/{contact_id}/status")
def patch_status(contact_id: str, payload: ContactStatusIn, admin: dict = Depends(admin_only)):
    contact = update_contact_status(contact_id, payload.status)
    return success_response(contact, f"Contact status updated to '{payload.status}'")


@router.delete("/{contact_id}")
def remove_contact(contact_id: str, admin: dict = Depends(admin_only)):
    delete_contact(contact_id)
    return success_response(None, "Contact deleted successfully")
