"""
Project applications.

An application moves from ``pending`` to exactly one of ``accepted``,
``rejected`` or ``withdrawn``; all three are terminal. Each transition is a
single conditional update on ``status: "pending"``, so two concurrent
reviewers cannot both win.

``activeKey`` ("<applicantId>:<projectId>") is carried by every application
that is not withdrawn and sits under a sparse unique index. That index is what
stops a second live application for the same pair.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends

from envelope import success_response
from errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from projects import add_member_entry, get_project_doc, increment_application_count, is_owner, is_team_member
from repositories import applications, oid, projects, serialize
from schemas import Application, ApplicationIn, RejectIn
from security import get_current_user
from users import get_user_doc
from validation import check_choice, check_text

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["applications"])

PENDING, ACCEPTED, REJECTED, WITHDRAWN = 'pending', 'accepted', 'rejected', 'withdrawn'
STATUSES = (PENDING, ACCEPTED, REJECTED, WITHDRAWN)
ALREADY_APPLIED = "You have already applied to this project"
ALREADY_PROCESSED = "Application has already been processed"

HIDDEN_FIELDS = ('activeKey',)


def to_output(doc: Dict[str, Any]) -> Dict[str, Any]:
    return serialize(doc, HIDDEN_FIELDS)


def active_key(applicant_id: str, project_id: str) -> str:
    return f"{applicant_id}:{project_id}"


def get_application_doc(application_id: str) -> Dict[str, Any]:
    application = applications.find_by_id(application_id)
    if not application:
        raise NotFoundError("Application")
    return application


def _status_filter(status: Optional[str]) -> Dict[str, Any]:
    errors: List[str] = []
    check_choice(errors, "status", status, STATUSES)
    if errors:
        raise ValidationError.from_errors(errors)
    return {"status": status} if status else {}


def _transition(application: Dict[str, Any], changes: Dict[str, Any], unset: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    update: Dict[str, Any] = {"$set": changes}
    if unset:
        update["$unset"] = unset
    updated = applications.update_where({"_id": application["_id"], "status": PENDING}, update)
    if not updated:
        raise ConflictError(ALREADY_PROCESSED)
    return updated


# --------- Use cases ---------

def create_application(project_id: str, payload: ApplicationIn, applicant: Dict[str, Any]) -> Dict[str, Any]:
    errors: List[str] = []
    check_text(errors, "Position", payload.position)
    if payload.message and len(payload.message) > 2000:
        errors.append("Message must be less than 2000 characters")
    if errors:
        raise ValidationError.from_errors(errors)

    applicant_id = str(applicant["_id"])
    project = get_project_doc(project_id)
    applicant = get_user_doc(applicant_id)
    if is_owner(project, applicant_id) or is_team_member(project, applicant_id):
        raise ConflictError("You are already part of this project")

    key = active_key(applicant_id, project_id)
    if applications.find_one({"activeKey": key}):
        raise ConflictError(ALREADY_APPLIED)

    application = Application(
        applicantId=applicant_id,
        applicantName=applicant["name"],
        applicantEmail=applicant["email"],
        applicantAvatar=applicant.get("avatar"),
        projectId=project_id,
        projectName=project["title"],
        position=payload.position.strip(),
        skills=[s.strip() for s in payload.skills if s.strip()],
        message=(payload.message or '').strip(),
        hasResume=bool(payload.resumeUrl),
        resumeUrl=payload.resumeUrl,
        appliedDate=datetime.now(timezone.utc),
    )
    doc = application.model_dump(exclude={"id"})
    doc["activeKey"] = key
    created = applications.create(doc, ALREADY_APPLIED)
    if not increment_application_count(project_id):
        # Project was deleted after the lookup above.
        applications.delete(str(created["_id"]))
        raise NotFoundError("Project")
    logger.info("Application %s created for project %s", created["_id"], project_id)
    return to_output(created)


def get_application(application_id: str, requester: Dict[str, Any]) -> Dict[str, Any]:
    application = get_application_doc(application_id)
    requester_id = str(requester["_id"])
    if application["applicantId"] != requester_id:
        project = projects.find_one({"_id": oid(application["projectId"])})
        if not project or not is_owner(project, requester_id):
            raise AuthorizationError("Not authorized to view this application")
    return to_output(application)


def list_for_project(project_id: str, requester: Dict[str, Any], status: Optional[str] = None) -> List[Dict[str, Any]]:
    project = get_project_doc(project_id)
    if not is_owner(project, str(requester["_id"])):
        raise AuthorizationError("Only project owner can view applications")
    query = {"projectId": project_id, **_status_filter(status)}
    return [to_output(d) for d in applications.find(query, sort=[("appliedDate", -1)])]


def list_mine(requester: Dict[str, Any], status: Optional[str] = None) -> List[Dict[str, Any]]:
    query = {"applicantId": str(requester["_id"]), **_status_filter(status)}
    return [to_output(d) for d in applications.find(query, sort=[("appliedDate", -1)])]


def list_received(requester: Dict[str, Any], status: Optional[str] = None) -> List[Dict[str, Any]]:
    owned = projects.find({"ownerId": str(requester["_id"])})
    project_ids = [str(p["_id"]) for p in owned]
    if not project_ids:
        return []
    query = {"projectId": {"$in": project_ids}, **_status_filter(status)}
    return [to_output(d) for d in applications.find(query, sort=[("appliedDate", -1)])]


def statistics(project_id: str, requester: Dict[str, Any]) -> Dict[str, int]:
    project = get_project_doc(project_id)
    if not is_owner(project, str(requester["_id"])):
        raise AuthorizationError("Only project owner can view application statistics")
    counts = {status: applications.count({"projectId": project_id, "status": status}) for status in STATUSES}
    counts["total"] = sum(counts.values())
    return counts


def _reviewable(application_id: str, reviewer: Dict[str, Any], action: str):
    application = get_application_doc(application_id)
    project = get_project_doc(application["projectId"])
    if not is_owner(project, str(reviewer["_id"])):
        raise AuthorizationError(f"Only project owner can {action} applications")
    if application["status"] != PENDING:
        raise ConflictError(ALREADY_PROCESSED)
    return application, project


def accept_application(application_id: str, reviewer: Dict[str, Any]) -> Dict[str, Any]:
    """Accept, then add the applicant to the team; the status write is rolled back if the team write cannot apply."""
    application, project = _reviewable(application_id, reviewer, "accept")
    applicant = get_user_doc(application["applicantId"])
    reviewer_id = str(reviewer["_id"])

    accepted = _transition(application, {
        "status": ACCEPTED,
        "reviewedAt": datetime.now(timezone.utc),
        "reviewedBy": reviewer_id,
    })

    team = add_member_entry(application["projectId"], applicant, application["position"], owner_id=reviewer_id)
    if team is None:
        current = projects.find_one({"_id": project["_id"]})
        if current is None or not is_owner(current, reviewer_id):
            applications.update_where(
                {"_id": application["_id"], "status": ACCEPTED, "reviewedBy": reviewer_id},
                {"$set": {"status": PENDING, "reviewedAt": None, "reviewedBy": None}},
            )
            logger.warning("Rolled back acceptance of application %s: project %s changed", application_id, project["_id"])
            if current is None:
                raise NotFoundError("Project")
            raise AuthorizationError("Only project owner can accept applications")
        # applicant already on the team; nothing left to add

    logger.info("Application %s accepted by %s", application_id, reviewer_id)
    return to_output(accepted)


def reject_application(application_id: str, reviewer: Dict[str, Any], reason: Optional[str] = None) -> Dict[str, Any]:
    application, _ = _reviewable(application_id, reviewer, "reject")
    rejected = _transition(application, {
        "status": REJECTED,
        "reviewedAt": datetime.now(timezone.utc),
        "reviewedBy": str(reviewer["_id"]),
        "rejectionReason": (reason or "").strip() or None,
    })
    logger.info("Application %s rejected", application_id)
    return to_output(rejected)


def withdraw_application(application_id: str, applicant: Dict[str, Any]) -> Dict[str, Any]:
    application = get_application_doc(application_id)
    if application["applicantId"] != str(applicant["_id"]):
        raise AuthorizationError("Only applicant can withdraw their application")
    if application["status"] != PENDING:
        raise ConflictError(ALREADY_PROCESSED)
    withdrawn = _transition(application, {"status": WITHDRAWN, "withdrawnAt": datetime.now(timezone.utc)},
                            unset={"activeKey": ""})
    logger.info("Application %s withdrawn", application_id)
    return to_output(withdrawn)


def delete_application(application_id: str, applicant: Dict[str, Any]) -> None:
    application = get_application_doc(application_id)
    if application["applicantId"] != str(applicant["_id"]):
        raise AuthorizationError("Only applicant can delete their application")
    applications.delete(application_id)


# --------- Routes ---------

@router.post("/projects/{project_id}/applications", status_code=201)
@router.post("/projects/{project_id}/join", status_code=201)
def apply(project_id: str, payload: ApplicationIn, user: dict = Depends(get_current_user)):
    return success_response(create_application(project_id, payload, user), "Application submitted successfully")


@router.get("/projects/{project_id}/applications")
def project_applications(project_id: str, status: Optional[str] = None, user: dict = Depends(get_current_user)):
    return success_response(list_for_project(project_id, user, status), "Applications retrieved successfully")


@router.get("/projects/{project_id}/applications/stats")
def project_application_stats(project_id: str, user: dict = Depends(get_current_user)):
    return success_response(statistics(project_id, user), "Application statistics retrieved successfully")


@router.get("/applications/mine")
def my_applications(status: Optional[str] = None, user: dict = Depends(get_current_user)):
    return success_response(list_mine(user, status), "Applications retrieved successfully")


@router.get("/applications/received")
def received_applications(status: Optional[str] = None, user: dict = Depends(get_current_user)):
    return success_response(list_received(user, status), "Applications retrieved successfully")


@router.get("/applications/{application_id}")
def read_application(application_id: str, user: dict = Depends(get_current_user)):
    return success_response(get_application(application_id, user), "Application retrieved successfully")


@router.post("/applications/{application_id}/accept")
def accept(application_id: str, user: dict = Depends(get_current_user)):
    return success_response(accept_application(application_id, user), "Application accepted")


@router.post("/applications/{application_id}/reject")
def reject(application_id: str, payload: Optional[RejectIn] = None, user: dict = Depends(get_current_user)):
    reason = payload.reason if payload else None
    return success_response(reject_application(application_id, user, reason), "Application rejected")


@router.post("/applications/{application_id}/withdraw")
def withdraw(application_id: str, user: dict = Depends(get_current_user)):
    return success_response(withdraw_application(application_id, user), "Application withdrawn")


@router.delete("/applications/{application_id}")
def remove_application(application_id: str, user: dict = Depends(get_current_user)):
    delete_application(application_id, user)
    return success_response(None, "Application deleted successfully")
