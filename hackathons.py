"""
Hackathon listings and registration.

Registration is a single conditional update: the hackathon must still be
upcoming, the caller must not be registered yet, and when there is a cap the
participant at index ``maxParticipants - 1`` must not exist.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends

from envelope import normalize_page, paginated_response, pagination_meta, success_response
from errors import AuthorizationError, BusinessRuleError, ConflictError, NotFoundError, ValidationError
from repositories import hackathons, serialize
from schemas import Hackathon, HackathonIn, HackathonStatusIn, HackathonUpdate
from security import get_current_user
from validation import check_choice, check_text

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/hackathons", tags=["hackathons"])

STATUSES = ('upcoming', 'ongoing', 'completed', 'cancelled')
UPDATABLE_FIELDS = ('title', 'description', 'startDate', 'endDate', 'prize', 'categories',
                    'maxParticipants', 'location', 'registrationDeadline')
NULLABLE_FIELDS = ('maxParticipants', 'registrationDeadline')


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Mongo hands back naive datetimes unless the client is tz-aware; treat those as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def validate_hackathon(data: Dict[str, Any]) -> List[str]:
    errors: List[str] = []
    check_text(errors, "Title", data.get("title"), max_len=200)
    check_text(errors, "Description", data.get("description"), max_len=2000)
    start, end = as_utc(data.get("startDate")), as_utc(data.get("endDate"))
    deadline = as_utc(data.get("registrationDeadline"))
    if start is None:
        errors.append("Start date is required")
    if end is None:
        errors.append("End date is required")
    if start and end and start >= end:
        errors.append("End date must be after start date")
    if start and deadline and deadline > start:
        errors.append("Registration deadline must be before the start date")
    max_participants = data.get("maxParticipants")
    if max_participants is not None and max_participants < 1:
        errors.append("Max participants must be at least 1")
    return errors


def get_hackathon_doc(hackathon_id: str) -> Dict[str, Any]:
    hackathon = hackathons.find_by_id(hackathon_id)
    if not hackathon:
        raise NotFoundError("Hackathon")
    return hackathon


def _organized(hackathon_id: str, requester: Dict[str, Any], action: str) -> Dict[str, Any]:
    hackathon = get_hackathon_doc(hackathon_id)
    if hackathon["organizerId"] != str(requester["_id"]):
        raise AuthorizationError(f"Only the organizer can {action} this hackathon")
    return hackathon


# --------- Use cases ---------

def create_hackathon(payload: HackathonIn, organizer: Dict[str, Any]) -> Dict[str, Any]:
    data = payload.model_dump()
    errors = validate_hackathon(data)
    if errors:
        raise ValidationError.from_errors(errors)

    hackathon = Hackathon(
        title=data["title"].strip(),
        description=data["description"].strip(),
        startDate=as_utc(data["startDate"]),
        endDate=as_utc(data["endDate"]),
        prize=data["prize"],
        categories=[c.strip() for c in data["categories"] if c.strip()],
        maxParticipants=data["maxParticipants"],
        organizerId=str(organizer["_id"]),
        location=data["location"] or 'Online',
        registrationDeadline=as_utc(data["registrationDeadline"]),
    )
    created = hackathons.create(hackathon.model_dump(exclude={"id"}))
    logger.info("Hackathon created: %s by %s", created["_id"], organizer["_id"])
    return serialize(created)


def list_hackathons(status: Optional[str] = None, category: Optional[str] = None, page: int = 1, limit: int = 10):
    errors: List[str] = []
    check_choice(errors, "status", status, STATUSES)
    if errors:
        raise ValidationError.from_errors(errors)
    page, limit = normalize_page(page, limit)
    query: Dict[str, Any] = {}
    if status:
        query["status"] = status
    if category:
        query["categories"] = category
    total = hackathons.count(query)
    docs = hackathons.find(query, sort=[("startDate", 1), ("_id", 1)], skip=(page - 1) * limit, limit=limit)
    return [serialize(d) for d in docs], pagination_meta(page, limit, total)


def update_hackathon(hackathon_id: str, payload: HackathonUpdate, requester: Dict[str, Any]) -> Dict[str, Any]:
    hackathon = _organized(hackathon_id, requester, "update")
    changes = {
        k: v for k, v in payload.model_dump(exclude_unset=True).items()
        if k in UPDATABLE_FIELDS and (v is not None or k in NULLABLE_FIELDS)
    }
    for field in ('startDate', 'endDate', 'registrationDeadline'):
        if field in changes:
            changes[field] = as_utc(changes[field])
    errors = validate_hackathon({**hackathon, **changes})
    if errors:
        raise ValidationError.from_errors(errors)
    if changes.get("maxParticipants") is not None and changes["maxParticipants"] < len(hackathon.get("participants", [])):
        raise BusinessRuleError("Max participants cannot be lower than the current participant count", "CAPACITY_BELOW_PARTICIPANTS")

    updated = hackathons.update(hackathon_id, changes)
    if not updated:
        raise NotFoundError("Hackathon")
    return serialize(updated)


def update_status(hackathon_id: str, status: str, requester: Dict[str, Any]) -> Dict[str, Any]:
    if status not in STATUSES:
        raise ValidationError(f"Invalid status. Must be one of: {', '.join(STATUSES)}")
    _organized(hackathon_id, requester, "update")
    updated = hackathons.update(hackathon_id, {"status": status})
    if not updated:
        raise NotFoundError("Hackathon")
    return serialize(updated)


def delete_hackathon(hackathon_id: str, requester: Dict[str, Any]) -> None:
    _organized(hackathon_id, requester, "delete")
    hackathons.delete(hackathon_id)
    logger.info("Hackathon %s deleted", hackathon_id)


def register(hackathon_id: str, user: Dict[str, Any]) -> Dict[str, Any]:
    hackathon = get_hackathon_doc(hackathon_id)
    user_id = str(user["_id"])
    if hackathon["status"] != 'upcoming':
        raise BusinessRuleError("Registration is only open for upcoming hackathons", "REGISTRATION_CLOSED")
    deadline = as_utc(hackathon.get("registrationDeadline"))
    if deadline and datetime.now(timezone.utc) > deadline:
        raise BusinessRuleError("Registration deadline has passed", "REGISTRATION_CLOSED")
    if user_id in hackathon.get("participants", []):
        raise ConflictError("You are already registered for this hackathon")

    query: Dict[str, Any] = {"_id": hackathon["_id"], "status": 'upcoming', "participants": {"$ne": user_id}}
    cap = hackathon.get("maxParticipants")
    if cap:
        query[f"participants.{cap - 1}"] = {"$exists": False}
    updated = hackathons.update_where(query, {"$push": {"participants": user_id}})
    if updated:
        logger.info("User %s registered for hackathon %s", user_id, hackathon_id)
        return serialize(updated)

    current = get_hackathon_doc(hackathon_id)
    if user_id in current.get("participants", []):
        raise ConflictError("You are already registered for this hackathon")
    if current["status"] != 'upcoming':
        raise BusinessRuleError("Registration is only open for upcoming hackathons", "REGISTRATION_CLOSED")
    raise ConflictError("Hackathon is full")


def unregister(hackathon_id: str, user: Dict[str, Any]) -> Dict[str, Any]:
    hackathon = get_hackathon_doc(hackathon_id)
    user_id = str(user["_id"])
    updated = hackathons.update_where({"_id": hackathon["_id"], "participants": user_id},
                                      {"$pull": {"participants": user_id}})
    if not updated:
        raise NotFoundError("Registration")
    return serialize(updated)


# --------- Routes ---------

@router.get("")
def get_hackathons(status: Optional[str] = None, category: Optional[str] = None, page: int = 1, limit: int = 10):
    items, meta = list_hackathons(status, category, page, limit)
    return paginated_response(items, meta, "Hackathons retrieved successfully")


@router.post("", status_code=201)
def post_hackathon(payload: HackathonIn, user: dict = Depends(get_current_user)):
    return success_response(create_hackathon(payload, user), "Hackathon created successfully")


@router.get("/{hackathon_id}")
def get_hackathon(hackathon_id: str):
    return success_response(serialize(get_hackathon_doc(hackathon_id)), "Hackathon retrieved successfully")


@router.put("/{hackathon_id}")
def put_hackathon(hackathon_id: str, payload: HackathonUpdate, user: dict = Depends(get_current_user)):
    return success_response(update_hackathon(hackathon_id, payload, user), "Hackathon updated successfully")


@router.patch("/{hackathon_id}/status")
def patch_status(hackathon_id: str, payload: HackathonStatusIn, user: dict = Depends(get_current_user)):
    hackathon = update_status(hackathon_id, payload.status, user)
    return success_response(hackathon, f"Hackathon status updated to '{payload.status}'")


@router.delete("/{hackathon_id}")
def remove_hackathon(hackathon_id: str, user: dict = Depends(get_current_user)):
    delete_hackathon(hackathon_id, user)
    return success_response(None, "Hackathon deleted successfully")


@router.post("/{hackathon_id}/register")
def post_registration(hackathon_id: str, user: dict = Depends(get_current_user)):
    return success_response(register(hackathon_id, user), "Registered for hackathon")


@router.delete("/{hackathon_id}/register")
def delete_registration(hackathon_id: str, user: dict = Depends(get_current_user)):
    return success_response(unregister(hackathon_id, user), "Registration cancelled")
