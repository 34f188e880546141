"""
Project-scoped chat. Only the owner and team members of a project can read
or post in its space. Deleted messages are kept and flagged.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List

from fastapi import APIRouter, Depends

from envelope import success_response
from errors import AuthorizationError, NotFoundError, ValidationError
from projects import get_project_doc, has_access, is_owner
from repositories import messages, oid, serialize
from schemas import Message, MessageIn, ReactionIn
from security import get_current_user
from validation import check_choice, check_text

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["messages"])

MESSAGE_TYPES = ('text', 'file', 'image', 'system')
MAX_PAGE = 200


def _member_project(project_id: str, user: Dict[str, Any]) -> Dict[str, Any]:
    project = get_project_doc(project_id)
    if not has_access(project, str(user["_id"])):
        raise AuthorizationError("Only project members can access project messages")
    return project


def get_message_doc(message_id: str) -> Dict[str, Any]:
    message = messages.find_by_id(message_id)
    if not message or message.get("isDeleted"):
        raise NotFoundError("Message")
    return message


def post_message(project_id: str, payload: MessageIn, sender: Dict[str, Any]) -> Dict[str, Any]:
    _member_project(project_id, sender)
    errors: List[str] = []
    check_text(errors, "Message content", payload.content, max_len=2000)
    check_choice(errors, "message type", payload.type, MESSAGE_TYPES)
    if errors:
        raise ValidationError.from_errors(errors)
    if payload.replyTo:
        parent = messages.find_one({"_id": oid(payload.replyTo), "projectId": project_id})
        if not parent:
            raise ValidationError("Reply target must be a message in the same project")

    message = Message(
        projectId=project_id,
        senderId=str(sender["_id"]),
        senderName=sender["name"],
        content=payload.content.strip(),
        type=payload.type,
        replyTo=payload.replyTo,
    )
    created = messages.create(message.model_dump(exclude={"id"}))
    return serialize(created)


def list_messages(project_id: str, user: Dict[str, Any], limit: int = 50) -> List[Dict[str, Any]]:
    _member_project(project_id, user)
    limit = max(1, min(limit, MAX_PAGE))
    docs = messages.find({"projectId": project_id, "isDeleted": False}, sort=[("createdAt", -1), ("_id", -1)], limit=limit)
    return [serialize(d) for d in reversed(docs)]


def toggle_reaction(message_id: str, emoji: str, user: Dict[str, Any]) -> Dict[str, Any]:
    message = get_message_doc(message_id)
    _member_project(message["projectId"], user)
    emoji = (emoji or "").strip()
    if not emoji:
        raise ValidationError("Emoji is required")

    user_id = str(user["_id"])
    reacted = any(r.get("userId") == user_id and r.get("emoji") == emoji for r in message.get("reactions", []))
    if reacted:
        update = {"$pull": {"reactions": {"userId": user_id, "emoji": emoji}}}
    else:
        update = {"$push": {"reactions": {"userId": user_id, "emoji": emoji, "createdAt": datetime.now(timezone.utc)}}}
    updated = messages.update_where({"_id": message["_id"]}, update)
    if not updated:
        raise NotFoundError("Message")
    return serialize(updated)


def delete_message(message_id: str, user: Dict[str, Any]) -> None:
    message = get_message_doc(message_id)
    user_id = str(user["_id"])
    if message["senderId"] != user_id:
        project = get_project_doc(message["projectId"])
        if not is_owner(project, user_id):
            raise AuthorizationError("Only the sender or project owner can delete this message")
    messages.update_where({"_id": message["_id"]}, {"$set": {"isDeleted": True, "deletedAt": datetime.now(timezone.utc)}})
    logger.info("Message %s deleted by %s", message_id, user_id)


# --------- Routes ---------

@router.get("/projects/{project_id}/messages")
def get_messages(project_id: str, limit: int = 50, user: dict = Depends(get_current_user)):
    return success_response(list_messages(project_id, user, limit), "Messages retrieved successfully")


@router.post("/projects/{project_id}/messages", status_code=201)
def send_message(project_id: str, payload: MessageIn, user: dict = Depends(get_current_user)):
    return success_response(post_message(project_id, payload, user), "Message sent successfully")


@router.post("/messages/{message_id}/reactions")
def react(message_id: str, payload: ReactionIn, user: dict = Depends(get_current_user)):
    return success_response(toggle_reaction(message_id, payload.emoji, user), "Reaction updated")


@router.delete("/messages/{message_id}")
def remove_message(message_id: str, user: dict = Depends(get_current_user)):
    delete_message(message_id, user)
    return success_response(None, "Message deleted successfully")
