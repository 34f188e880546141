import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends

from envelope import normalize_page, paginated_response, pagination_meta, success_response
from errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from repositories import applications, messages, oid, projects, serialize, sort_spec
from schemas import MemberIn, Project, ProjectIn, ProjectUpdate, StageIn, TeamMember
from security import get_current_user
from users import get_user_doc
from validation import check_choice, check_text, clean_str, require_query, search_regex

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["projects"])

STAGES = ('idea', 'prototype', 'mvp', 'growth', 'scaling')
FUNDING_STATUSES = ('Not Funded', 'Bootstrapped', 'Seed', 'Series A', 'Series B', 'Series C+')
UPDATABLE_FIELDS = ('title', 'description', 'stage', 'industry', 'requiredSkills', 'openPositions', 'funding')
SORTABLE_FIELDS = ('createdAt', 'updatedAt', 'title', 'applications')
FOUNDER_ROLE = 'Founder'
DUPLICATE_TITLE = "You already have a project with this title"

HIDDEN_FIELDS = ('titleKey', 'skillKeys')


def to_output(doc: Dict[str, Any]) -> Dict[str, Any]:
    return serialize(doc, HIDDEN_FIELDS)


def title_key(title: str) -> str:
    return title.strip().lower()


def skill_keys(skills: List[str]) -> List[str]:
    return sorted({s.strip().lower() for s in skills if s and s.strip()})


def member_entry(user: Dict[str, Any], role: str) -> Dict[str, Any]:
    return TeamMember(
        userId=str(user["_id"]),
        name=user["name"],
        role=role,
        avatar=user.get("avatar"),
        email=user.get("email"),
        joinedAt=datetime.now(timezone.utc),
    ).model_dump()


def is_owner(project: Dict[str, Any], user_id: str) -> bool:
    return project.get("ownerId") == user_id


def is_team_member(project: Dict[str, Any], user_id: str) -> bool:
    return any(m.get("userId") == user_id for m in project.get("teamMembers", []))


def has_access(project: Dict[str, Any], user_id: str) -> bool:
    return is_owner(project, user_id) or is_team_member(project, user_id)


def validate_project(data: Dict[str, Any]) -> List[str]:
    errors: List[str] = []
    check_text(errors, "Title", data.get("title"), min_len=3, max_len=100)
    check_text(errors, "Description", data.get("description"), min_len=10, max_len=2000)
    check_choice(errors, "stage", data.get("stage"), STAGES)
    check_text(errors, "Industry", data.get("industry"))
    check_choice(errors, "funding", data.get("funding"), FUNDING_STATUSES)
    if not data.get("ownerId"):
        errors.append("Owner ID is required")
    for index, position in enumerate(data.get("openPositions") or [], start=1):
        if not (position.get("role") or "").strip():
            errors.append(f"Position {index}: Role is required")
    return errors


def get_project_doc(project_id: str) -> Dict[str, Any]:
    project = projects.find_by_id(project_id)
    if not project:
        raise NotFoundError("Project")
    return project


def _owned_project(project_id: str, requester: Dict[str, Any], action: str) -> Dict[str, Any]:
    project = get_project_doc(project_id)
    if not is_owner(project, str(requester["_id"])):
        raise AuthorizationError(f"Not authorized to {action}")
    return project


# --------- Use cases ---------

def create_project(payload: ProjectIn, owner: Dict[str, Any]) -> Dict[str, Any]:
    owner_id = str(owner["_id"])
    owner = get_user_doc(owner_id)
    data = payload.model_dump()
    data["ownerId"] = owner_id
    errors = validate_project(data)
    if errors:
        raise ValidationError.from_errors(errors)

    key = title_key(data["title"])
    if projects.find_one({"ownerId": owner_id, "titleKey": key}):
        raise ConflictError(DUPLICATE_TITLE)

    project = Project(
        title=data["title"].strip(),
        description=data["description"].strip(),
        stage=data.get("stage") or 'idea',
        industry=data["industry"].strip(),
        requiredSkills=[s.strip() for s in data["requiredSkills"] if s.strip()],
        openPositions=data["openPositions"],
        funding=data.get("funding") or 'Not Funded',
        ownerId=owner_id,
    )
    doc = project.model_dump(exclude={"id", "createdAt", "updatedAt"})
    doc["teamMembers"] = [member_entry(owner, FOUNDER_ROLE)]
    doc["titleKey"] = key
    doc["skillKeys"] = skill_keys(doc["requiredSkills"])
    created = projects.create(doc, DUPLICATE_TITLE)
    logger.info("Project created: %s by %s", created["_id"], owner_id)
    return to_output(created)


def list_projects(filters: Dict[str, Any], page: int = 1, limit: int = 10, sort_by: str = 'createdAt', sort_order: str = 'desc'):
    page, limit = normalize_page(page, limit)
    query: Dict[str, Any] = {}
    if filters.get("stage"):
        query["stage"] = filters["stage"]
    if filters.get("industry"):
        query["industry"] = search_regex(filters["industry"])
    if filters.get("ownerId"):
        query["ownerId"] = filters["ownerId"]
    if filters.get("skills"):
        query["skillKeys"] = {"$in": skill_keys(filters["skills"])}
    if sort_by not in SORTABLE_FIELDS:
        sort_by = 'createdAt'
    total = projects.count(query)
    docs = projects.find(query, sort=sort_spec(sort_by, sort_order), skip=(page - 1) * limit, limit=limit)
    return [to_output(d) for d in docs], pagination_meta(page, limit, total)


def update_project(project_id: str, payload: ProjectUpdate, requester: Dict[str, Any]) -> Dict[str, Any]:
    project = _owned_project(project_id, requester, "update this project")
    fields = {k: v for k, v in payload.model_dump(exclude_unset=True, exclude_none=True).items() if k in UPDATABLE_FIELDS}

    merged = {**project, **fields}
    errors = validate_project(merged)
    if errors:
        raise ValidationError.from_errors(errors)

    changes: Dict[str, Any] = {}
    for key, value in fields.items():
        changes[key] = clean_str(value) if isinstance(value, str) else value
    if "requiredSkills" in changes:
        changes["requiredSkills"] = [s.strip() for s in changes["requiredSkills"] if s.strip()]
        changes["skillKeys"] = skill_keys(changes["requiredSkills"])
    title_changed = "title" in changes and changes["title"] != project["title"]
    if title_changed:
        key = title_key(changes["title"])
        if projects.find_one({"ownerId": project["ownerId"], "titleKey": key, "_id": {"$ne": project["_id"]}}):
            raise ConflictError(DUPLICATE_TITLE)
        changes["titleKey"] = key

    updated = projects.update(project_id, changes, DUPLICATE_TITLE)
    if not updated:
        raise NotFoundError("Project")
    if title_changed:
        applications.update_many({"projectId": project_id}, {"projectName": updated["title"]})
    return to_output(updated)


def delete_project(project_id: str, requester: Dict[str, Any]) -> None:
    _owned_project(project_id, requester, "delete this project")
    # Project first, so a concurrent application either fails its counter bump or is swept below.
    projects.delete(project_id)
    removed = applications.delete_many({"projectId": project_id})
    messages.delete_many({"projectId": project_id})
    logger.info("Project deleted: %s (%d applications removed)", project_id, removed)


def update_stage(project_id: str, stage: str, requester: Dict[str, Any]) -> Dict[str, Any]:
    _owned_project(project_id, requester, "update project stage")
    if stage not in STAGES:
        raise ValidationError(f"Invalid stage. Must be one of: {', '.join(STAGES)}")
    updated = projects.update(project_id, {"stage": stage})
    if not updated:
        raise NotFoundError("Project")
    return to_output(updated)


def add_member_entry(project_id: str, user: Dict[str, Any], role: str, owner_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
    """Append `user` to the team unless already present; returns the updated project or None when no write applied."""
    query: Dict[str, Any] = {"_id": oid(project_id), "teamMembers.userId": {"$ne": str(user["_id"])}}
    if owner_id is not None:
        query["ownerId"] = owner_id
    return projects.update_where(query, {"$push": {"teamMembers": member_entry(user, role)}})


def add_team_member(project_id: str, member_id: str, role: str, requester: Dict[str, Any]) -> Dict[str, Any]:
    project = _owned_project(project_id, requester, "add team members")
    member = get_user_doc(member_id)
    role = (role or "").strip()
    if not role:
        raise ValidationError("Role is required")
    if is_team_member(project, member_id):
        raise ConflictError("User is already a team member")
    updated = add_member_entry(project_id, member, role, owner_id=project["ownerId"])
    if not updated:
        get_project_doc(project_id)
        raise ConflictError("User is already a team member")
    return to_output(updated)


def remove_team_member(project_id: str, member_id: str, requester: Dict[str, Any]) -> Dict[str, Any]:
    project = get_project_doc(project_id)
    requester_id = str(requester["_id"])
    if not is_owner(project, requester_id) and member_id != requester_id:
        raise AuthorizationError("Not authorized to remove this team member")
    if member_id == project["ownerId"]:
        raise ValidationError("Cannot remove the project owner")
    updated = projects.update_where(
        {"_id": project["_id"], "teamMembers.userId": member_id},
        {"$pull": {"teamMembers": {"userId": member_id}}},
    )
    if not updated:
        raise NotFoundError("Team member")
    return to_output(updated)


def increment_application_count(project_id: str) -> bool:
    return projects.update_where({"_id": oid(project_id)}, {"$inc": {"applications": 1}}) is not None


def search_projects(q: Optional[str], limit: int = 20) -> List[Dict[str, Any]]:
    q = require_query(q)
    query = {"$or": [{"title": search_regex(q)}, {"description": search_regex(q)}]}
    docs = projects.find(query, sort=[("createdAt", -1)], limit=max(1, min(limit, 100)))
    return [to_output(d) for d in docs]


def recent_projects(limit: int = 10) -> List[Dict[str, Any]]:
    docs = projects.find({}, sort=[("createdAt", -1), ("_id", -1)], limit=max(1, min(limit, 100)))
    return [to_output(d) for d in docs]


def featured_projects(limit: int = 6) -> List[Dict[str, Any]]:
    docs = projects.find({}, sort=[("applications", -1), ("createdAt", -1)], limit=max(1, min(limit, 100)))
    return [to_output(d) for d in docs]


def user_projects(user_id: str) -> Dict[str, Any]:
    get_user_doc(user_id)
    owned = projects.find({"ownerId": user_id}, sort=[("createdAt", -1)])
    participating = projects.find({"teamMembers.userId": user_id, "ownerId": {"$ne": user_id}}, sort=[("createdAt", -1)])
    return {
        "ownedProjects": [to_output(p) for p in owned],
        "participatingProjects": [to_output(p) for p in participating],
    }


# --------- Routes ---------

@router.get("/projects")
def get_projects(stage: Optional[str] = None, industry: Optional[str] = None, ownerId: Optional[str] = None,
                 skills: Optional[str] = None, page: int = 1, limit: int = 10,
                 sortBy: str = 'createdAt', sortOrder: str = 'desc'):
    errors: List[str] = []
    check_choice(errors, "stage", stage, STAGES)
    if errors:
        raise ValidationError.from_errors(errors)
    filters = {
        "stage": stage,
        "industry": industry,
        "ownerId": ownerId,
        "skills": skills.split(",") if skills else None,
    }
    items, meta = list_projects(filters, page, limit, sortBy, sortOrder)
    return paginated_response(items, meta, "Projects retrieved successfully")


@router.get("/projects/search")
def search(q: Optional[str] = None, limit: int = 20):
    return success_response(search_projects(q, limit), "Projects retrieved successfully")


@router.get("/projects/recent")
def recent(limit: int = 10):
    return success_response(recent_projects(limit), "Recent projects retrieved successfully")


@router.get("/projects/featured")
def featured(limit: int = 6):
    return success_response(featured_projects(limit), "Featured projects retrieved successfully")


@router.post("/projects", status_code=201)
def post_project(payload: ProjectIn, user: dict = Depends(get_current_user)):
    return success_response(create_project(payload, user), "Project created successfully")


@router.get("/projects/{project_id}")
def get_project(project_id: str):
    return success_response(to_output(get_project_doc(project_id)), "Project retrieved successfully")


@router.put("/projects/{project_id}")
def put_project(project_id: str, payload: ProjectUpdate, user: dict = Depends(get_current_user)):
    return success_response(update_project(project_id, payload, user), "Project updated successfully")


@router.patch("/projects/{project_id}/stage")
def patch_stage(project_id: str, payload: StageIn, user: dict = Depends(get_current_user)):
    return success_response(update_stage(project_id, payload.stage, user), "Project stage updated successfully")


@router.delete("/projects/{project_id}")
def remove_project(project_id: str, user: dict = Depends(get_current_user)):
    delete_project(project_id, user)
    return success_response(None, "Project deleted successfully")


@router.get("/projects/{project_id}/members")
def list_members(project_id: str):
    project = get_project_doc(project_id)
    return success_response(project.get("teamMembers", []), "Team members retrieved successfully")


@router.post("/projects/{project_id}/members", status_code=201)
def post_member(project_id: str, payload: MemberIn, user: dict = Depends(get_current_user)):
    return success_response(add_team_member(project_id, payload.userId, payload.role, user), "Team member added successfully")


@router.delete("/projects/{project_id}/members/{member_id}")
def delete_member(project_id: str, member_id: str, user: dict = Depends(get_current_user)):
    return success_response(remove_team_member(project_id, member_id, user), "Team member removed successfully")


@router.post("/projects/{project_id}/leave")
def leave_project(project_id: str, user: dict = Depends(get_current_user)):
    remove_team_member(project_id, str(user["_id"]), user)
    return success_response({"left": True}, "You have left the project")


@router.get("/users/{user_id}/projects")
def get_user_projects(user_id: str):
    return success_response(user_projects(user_id), "User projects retrieved successfully")
