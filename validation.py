"""Field checks shared by the domain modules. Each helper appends messages to an error list."""
import re
from typing import Any, List, Optional

from pydantic import EmailStr, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from errors import ValidationError

_email = TypeAdapter(EmailStr)


def is_valid_email(email: Any) -> bool:
    if not isinstance(email, str):
        return False
    try:
        _email.validate_python(email.strip())
    except PydanticValidationError:
        return False
    return True


def check_text(errors: List[str], label: str, value: Any, min_len: int = 1, max_len: Optional[int] = None, required: bool = True) -> None:
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            errors.append(f"{label} is required")
        return
    if not isinstance(value, str):
        errors.append(f"{label} must be a string")
        return
    length = len(value.strip())
    if length < min_len:
        errors.append(f"{label} must be at least {min_len} characters long")
    elif max_len is not None and length > max_len:
        errors.append(f"{label} must be less than {max_len} characters")


def check_choice(errors: List[str], label: str, value: Any, choices) -> None:
    if value is not None and value not in choices:
        errors.append(f"Invalid {label}. Must be one of: {', '.join(choices)}")


def check_email(errors: List[str], email: Any) -> None:
    if not email:
        errors.append("Email is required")
    elif not is_valid_email(email):
        errors.append("Invalid email format")


def clean_str(value: Optional[str]) -> Optional[str]:
    return value.strip() if isinstance(value, str) else value


def search_regex(query: str) -> dict:
    """Case-insensitive literal substring match."""
    return {"$regex": re.escape(query), "$options": "i"}


def require_query(query: Optional[str], min_len: int = 2) -> str:
    query = (query or "").strip()
    if len(query) < min_len:
        raise ValidationError(f"Search query must be at least {min_len} characters")
    return query
