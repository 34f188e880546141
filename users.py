import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query

from envelope import normalize_page, paginated_response, pagination_meta, success_response
from errors import (AuthenticationError, AuthorizationError, BusinessRuleError, ConflictError, NotFoundError,
                    ValidationError)
from repositories import projects, serialize, sort_spec, users
from schemas import (LoginIn, PasswordChangeIn, ProfileUpdate, RegisterIn, Skill, SocialLinks, User, UserUpdate)
from security import create_token, get_current_user, hash_password, is_admin, verify_password
from validation import check_choice, check_email, check_text, clean_str, require_query, search_regex

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["users"])

VALID_ROLES = ('user', 'admin', 'moderator', 'founder', 'professional', 'investor', 'student')
PRIVILEGED_ROLES = ('admin', 'moderator')
VALID_STATUSES = ('active', 'inactive', 'suspended')
SORTABLE_FIELDS = ('createdAt', 'updatedAt', 'name', 'email')
MIN_PASSWORD_LENGTH = 6

ROLE_TITLES = {
    'founder': 'The Founder',
    'professional': 'The Professional',
    'investor': 'The Investor',
    'student': 'The Student',
    'admin': 'Administrator',
    'moderator': 'Moderator',
    'user': 'Developer',
}

HIDDEN_FIELDS = ('password', 'skillKeys')
PUBLIC_FIELDS = ('id', 'name', 'avatar', 'bio', 'title', 'location', 'skills', 'socialLinks')


def role_title(role: Optional[str]) -> str:
    return ROLE_TITLES.get(role or 'user', 'Developer')


def to_public(doc: Dict[str, Any]) -> Dict[str, Any]:
    data = serialize(doc, HIDDEN_FIELDS)
    return {key: data.get(key) for key in PUBLIC_FIELDS}


def to_output(doc: Dict[str, Any]) -> Dict[str, Any]:
    return serialize(doc, HIDDEN_FIELDS)


def normalize_skills(skills) -> List[Dict[str, Any]]:
    result = []
    for skill in skills or []:
        if isinstance(skill, str):
            skill = Skill(name=skill.strip())
        elif isinstance(skill, dict):
            skill = Skill(**skill)
        if skill.name.strip():
            result.append(skill.model_dump())
    return result


def skill_keys(skills: List[Dict[str, Any]]) -> List[str]:
    return sorted({s["name"].strip().lower() for s in skills})


def merge_links(user: Dict[str, Any], links: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    merged = dict(user.get("socialLinks") or {})
    merged.update({k: v for k, v in (links or {}).items() if v is not None})
    return merged


def _validate_account(errors: List[str], name=None, email=None, bio=None, check_name=True, check_mail=True) -> None:
    if check_name:
        check_text(errors, "Name", name, min_len=2, max_len=100)
    if check_mail:
        check_email(errors, email)
    if bio is not None and len(bio) > 500:
        errors.append("Bio must be less than 500 characters")


def _ensure_email_free(email: str, exclude_id=None) -> None:
    query: Dict[str, Any] = {"email": email}
    if exclude_id is not None:
        query["_id"] = {"$ne": exclude_id}
    if users.find_one(query):
        raise ConflictError.email_exists()


def get_user_doc(user_id: str) -> Dict[str, Any]:
    user = users.find_by_id(user_id)
    if not user:
        raise NotFoundError("User", "USER_NOT_FOUND")
    return user


def _ensure_self_or_admin(target_id: str, requester: Dict[str, Any], action: str) -> None:
    if str(requester["_id"]) != target_id and not is_admin(requester):
        raise AuthorizationError(f"You do not have permission to {action}", "INSUFFICIENT_PERMISSIONS")


# --------- Use cases ---------

def register_user(payload: RegisterIn) -> Dict[str, Any]:
    errors: List[str] = []
    _validate_account(errors, payload.name, payload.email, payload.bio)
    if not payload.password:
        errors.append("Password is required")
    elif len(payload.password) < MIN_PASSWORD_LENGTH:
        errors.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    if errors:
        raise ValidationError.from_errors(errors)
    if payload.confirmPassword is not None and payload.confirmPassword != payload.password:
        raise ValidationError("Password and Confirm Password do not match", code="PASSWORD_MISMATCH")
    if payload.role in PRIVILEGED_ROLES:
        raise AuthorizationError("Privileged roles cannot be self-assigned", "ROLE_REQUIRED")

    email = payload.email.strip().lower()
    _ensure_email_free(email)

    role = payload.role or 'user'
    skills = normalize_skills(payload.skills)
    user = User(
        name=payload.name.strip(),
        email=email,
        avatar=payload.avatar,
        bio=clean_str(payload.bio) or '',
        role=role,
        skills=skills,
        location=clean_str(payload.location),
        title=clean_str(payload.title) or role_title(role),
        socialLinks=payload.socialLinks or SocialLinks(),
    )
    data = user.model_dump(mode="json", exclude={"id", "createdAt", "updatedAt"})
    data["password"] = hash_password(payload.password)
    data["skillKeys"] = skill_keys(skills)
    created = users.create(data, "Email already exists", "EMAIL_EXISTS")
    logger.info("User registered: %s", created["_id"])
    return to_output(created)


def login_user(payload: LoginIn) -> Dict[str, Any]:
    if not payload.email or not payload.password:
        raise ValidationError("Email and password are required", code="MISSING_CREDENTIALS")
    user = users.find_one({"email": payload.email.strip().lower()})
    if not user or not verify_password(payload.password, user.get("password", "")):
        raise AuthenticationError("Invalid email or password", "INVALID_CREDENTIALS")
    if user.get("status", "active") != "active":
        raise AuthorizationError("Account is not active", "ACCOUNT_INACTIVE")
    return {"user": to_output(user), "token": create_token(user)}


def list_users(page: int = 1, limit: int = 10, role: Optional[str] = None, status: Optional[str] = None,
               sort_by: str = 'createdAt', sort_order: str = 'desc'):
    page, limit = normalize_page(page, limit)
    query: Dict[str, Any] = {}
    if role:
        query["role"] = role
    if status:
        query["status"] = status
    if sort_by not in SORTABLE_FIELDS:
        sort_by = 'createdAt'
    total = users.count(query)
    docs = users.find(query, sort=sort_spec(sort_by, sort_order), skip=(page - 1) * limit, limit=limit)
    return [to_output(d) for d in docs], pagination_meta(page, limit, total)


def update_user(user_id: str, payload: UserUpdate, requester: Dict[str, Any]) -> Dict[str, Any]:
    _ensure_self_or_admin(user_id, requester, "update this user")
    user = get_user_doc(user_id)
    fields = payload.model_dump(mode="json", exclude_unset=True, exclude_none=True)

    errors: List[str] = []
    _validate_account(errors, fields.get("name"), fields.get("email"), fields.get("bio"),
                      check_name="name" in fields, check_mail="email" in fields)
    if errors:
        raise ValidationError.from_errors(errors)
    if not is_admin(requester):
        if fields.get("role") in PRIVILEGED_ROLES:
            raise AuthorizationError("Only administrators can assign this role", "ROLE_REQUIRED")
        if "status" in fields:
            raise AuthorizationError("Only administrators can change account status", "ROLE_REQUIRED")

    changes: Dict[str, Any] = {}
    for key in ("name", "bio", "location", "title"):
        if key in fields:
            changes[key] = clean_str(fields[key])
    for key in ("avatar", "role", "status"):
        if key in fields:
            changes[key] = fields[key]
    if "email" in fields:
        email = fields["email"].strip().lower()
        if email != user["email"]:
            _ensure_email_free(email, exclude_id=user["_id"])
        changes["email"] = email
    if "skills" in fields:
        changes["skills"] = normalize_skills(fields["skills"])
        changes["skillKeys"] = skill_keys(changes["skills"])
    if "socialLinks" in fields:
        changes["socialLinks"] = merge_links(user, fields["socialLinks"])
    if "role" in changes and not changes.get("title"):
        changes["title"] = role_title(changes["role"])

    updated = users.update(user_id, changes, "Email already exists", "EMAIL_EXISTS")
    if not updated:
        raise NotFoundError("User", "USER_NOT_FOUND")
    return to_output(updated)


def update_profile(user_id: str, payload: ProfileUpdate, requester: Dict[str, Any]) -> Dict[str, Any]:
    _ensure_self_or_admin(user_id, requester, "update this profile")
    user = get_user_doc(user_id)
    fields = payload.model_dump(mode="json", exclude_unset=True, exclude_none=True)
    if "experience" in fields:
        fields.setdefault("experiences", fields["experience"])
        fields.pop("experience")

    errors: List[str] = []
    _validate_account(errors, bio=fields.get("bio"), check_name=False, check_mail=False)
    if errors:
        raise ValidationError.from_errors(errors)
    if fields.get("role") in PRIVILEGED_ROLES and not is_admin(requester):
        raise AuthorizationError("Only administrators can assign this role", "ROLE_REQUIRED")

    changes: Dict[str, Any] = {}
    for key in ("avatar", "role", "experiences", "education"):
        if key in fields:
            changes[key] = fields[key]
    for key in ("bio", "title", "location"):
        if key in fields:
            changes[key] = clean_str(fields[key])
    if "skills" in fields:
        changes["skills"] = normalize_skills(fields["skills"])
        changes["skillKeys"] = skill_keys(changes["skills"])
    if "socialLinks" in fields:
        changes["socialLinks"] = merge_links(user, fields["socialLinks"])
    if changes.get("role") and not changes.get("title"):
        changes["title"] = role_title(changes["role"])

    updated = users.update(user_id, changes)
    if not updated:
        raise NotFoundError("User", "USER_NOT_FOUND")
    return to_output(updated)


def change_password(user_id: str, payload: PasswordChangeIn, requester: Dict[str, Any]) -> None:
    if str(requester["_id"]) != user_id:
        raise AuthorizationError("You can only change your own password", "INSUFFICIENT_PERMISSIONS")
    user = get_user_doc(user_id)
    if not verify_password(payload.currentPassword, user.get("password", "")):
        raise AuthenticationError("Current password is incorrect", "INVALID_CREDENTIALS")
    if len(payload.newPassword) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    if payload.newPassword != payload.confirmPassword:
        raise ValidationError("New Password and Confirm Password do not match", code="PASSWORD_MISMATCH")
    users.update(user_id, {"password": hash_password(payload.newPassword)})


def delete_user(user_id: str, requester: Dict[str, Any]) -> Dict[str, Any]:
    _ensure_self_or_admin(user_id, requester, "delete this user")
    user = get_user_doc(user_id)
    if projects.count({"ownerId": user_id}) > 0:
        raise BusinessRuleError("Cannot delete user with owned projects. Transfer or delete projects first.",
                                "HAS_OWNED_PROJECTS")
    users.delete(user_id)
    logger.info("User deleted: %s", user_id)
    return to_output(user)


def search_users(q: Optional[str], limit: int = 10) -> Dict[str, Any]:
    q = require_query(q)
    query = {"$or": [{"name": search_regex(q)}, {"email": search_regex(q)}]}
    total = users.count(query)
    docs = users.find(query, sort=[("name", 1)], limit=max(1, min(limit, 100)))
    return {"users": [to_public(d) for d in docs], "total": total}


def find_by_skills(skills: List[str], match_all: bool = False) -> List[Dict[str, Any]]:
    keys = sorted({s.strip().lower() for s in skills if s and s.strip()})
    if not keys:
        raise ValidationError("At least one skill is required")
    operator = "$all" if match_all else "$in"
    docs = users.find({"skillKeys": {operator: keys}}, sort=[("name", 1)])
    return [to_public(d) for d in docs]


# --------- Routes ---------

@router.post("/users", status_code=201)
@router.post("/auth/register", status_code=201)
def register(payload: RegisterIn):
    return success_response(register_user(payload), "User created successfully")


@router.post("/users/login")
@router.post("/auth/login")
def login(payload: LoginIn):
    return success_response(login_user(payload), "Login successful")


@router.get("/auth/me")
def me(user: dict = Depends(get_current_user)):
    return success_response(to_output(user), "User retrieved successfully")


@router.get("/users")
def get_users(page: int = 1, limit: int = 10, role: Optional[str] = None, status: Optional[str] = None,
              sortBy: str = 'createdAt', sortOrder: str = 'desc'):
    errors: List[str] = []
    check_choice(errors, "role", role, VALID_ROLES)
    check_choice(errors, "status", status, VALID_STATUSES)
    if errors:
        raise ValidationError.from_errors(errors)
    items, meta = list_users(page, limit, role, status, sortBy, sortOrder)
    return paginated_response(items, meta, "Users retrieved successfully")


@router.get("/users/search")
def search(q: Optional[str] = None, limit: int = 10):
    return success_response(search_users(q, limit), "Users retrieved successfully")


@router.get("/users/by-skills")
def by_skills(skills: str = Query(""), matchAll: bool = False):
    return success_response(find_by_skills(skills.split(","), matchAll), "Users retrieved successfully")


@router.get("/users/{user_id}")
def get_user(user_id: str):
    return success_response(to_output(get_user_doc(user_id)), "User retrieved successfully")


@router.get("/users/{user_id}/profile")
def get_profile(user_id: str):
    return success_response(to_public(get_user_doc(user_id)), "User profile retrieved successfully")


@router.put("/users/{user_id}")
def put_user(user_id: str, payload: UserUpdate, user: dict = Depends(get_current_user)):
    return success_response(update_user(user_id, payload, user), "User updated successfully")


@router.put("/users/{user_id}/profile")
def put_profile(user_id: str, payload: ProfileUpdate, user: dict = Depends(get_current_user)):
    return success_response(update_profile(user_id, payload, user), "Profile updated successfully")


@router.put("/users/{user_id}/password")
def put_password(user_id: str, payload: PasswordChangeIn, user: dict = Depends(get_current_user)):
    change_password(user_id, payload, user)
    return success_response(None, "Password updated successfully")


@router.delete("/users/{user_id}")
def remove_user(user_id: str, user: dict = Depends(get_current_user)):
    return success_response(delete_user(user_id, user), "User deleted successfully")
