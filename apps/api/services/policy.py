"""Single capability check used by every router and service.

``can_operate(actor, resource, action)`` answers whether an authenticated
actor may perform ``action`` on ``resource``. ``resource`` is an ORM instance
or ``None`` for type-level actions (creating a snippet, administering the
system). Admins pass every check; inactive actors pass none.
"""

from __future__ import annotations

import enum
from typing import Any, Optional

from errors import Forbidden
from models.code_snippet import CodeSnippet
from models.comment import Comment
from models.message import Message
from models.notification import Notification
from models.share_token import ShareToken
from models.tag import Tag
from models.user import User, UserRole


class Action(str, enum.Enum):
    READ = "read"
    COPY = "copy"
    CREATE = "create"
    EDIT = "edit"
    DELETE = "delete"
    MANAGE = "manage"
    SHARE = "share"
    COMMENT = "comment"
    MODERATE = "moderate"
    ADMINISTER = "administer"


def _owner_id(resource: Any) -> Optional[str]:
    if isinstance(resource, (ShareToken, CodeSnippet, Tag)):
        return resource.created_by
    if isinstance(resource, User):
        return resource.id
    if isinstance(resource, (Comment, Notification)):
        return resource.user_id
    if isinstance(resource, Message):
        return resource.sender_id
    return None


def _can_operate_snippet(actor: Any, snippet: CodeSnippet, action: Action) -> bool:
    readable = bool(snippet.is_public) or actor.role != UserRole.VIEWER.value
    if action in (Action.READ, Action.COPY, Action.SHARE, Action.COMMENT):
        return readable
    return False


def can_operate(actor: Any, resource: Any, action: Action) -> bool:
    if actor is None or not getattr(actor, "is_active", True):
        return False
    if actor.role == UserRole.ADMIN.value:
        return True
    if action in (Action.MODERATE, Action.ADMINISTER):
        return False

    if resource is None:
        if action == Action.CREATE:
            return actor.role == UserRole.EDITOR.value
        return False

    if _owner_id(resource) == actor.user_id:
        return True

    if isinstance(resource, CodeSnippet):
        return _can_operate_snippet(actor, resource, action)
    if isinstance(resource, Message):
        # Receivers may read and remove their copy.
        return resource.receiver_id == actor.user_id and action in (Action.READ, Action.DELETE)
    return False


def ensure_can_operate(actor: Any, resource: Any, action: Action, message: Optional[str] = None) -> None:
    if not can_operate(actor, resource, action):
        raise Forbidden(message or f"Not permitted to {action.value} this resource.")
