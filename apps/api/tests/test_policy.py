import pytest

from errors import Forbidden
from models.code_snippet import CodeSnippet
from models.comment import Comment
from models.message import Message
from models.share_token import ShareToken
from routers.auth_scope import AuthContext
from services.policy import Action, can_operate, ensure_can_operate


ADMIN = AuthContext(user_id="admin", role="admin")
OWNER = AuthContext(user_id="owner", role="editor")
EDITOR = AuthContext(user_id="editor", role="editor")
VIEWER = AuthContext(user_id="viewer", role="viewer")


def _snippet(is_public=False):
    return CodeSnippet(id="s1", title="t", code="c", language="python", created_by="owner", is_public=is_public)


def test_admin_passes_everything_and_inactive_actor_passes_nothing():
    share = ShareToken(id="sh1", created_by="owner")
    for action in Action:
        assert can_operate(ADMIN, share, action)
        assert can_operate(ADMIN, None, action)

    inactive_owner = AuthContext(user_id="owner", role="admin", is_active=False)
    assert not can_operate(inactive_owner, share, Action.MANAGE)


def test_share_management_is_owner_only():
    share = ShareToken(id="sh1", created_by="owner")
    assert can_operate(OWNER, share, Action.MANAGE)
    assert not can_operate(EDITOR, share, Action.MANAGE)
    assert not can_operate(VIEWER, share, Action.MANAGE)


def test_snippet_visibility_by_role():
    private = _snippet(is_public=False)
    public = _snippet(is_public=True)

    assert can_operate(EDITOR, private, Action.READ)
    assert not can_operate(VIEWER, private, Action.READ)
    assert not can_operate(VIEWER, private, Action.SHARE)
    assert can_operate(VIEWER, public, Action.READ)
    assert can_operate(VIEWER, public, Action.COMMENT)

    assert not can_operate(EDITOR, public, Action.EDIT)
    assert not can_operate(EDITOR, private, Action.EDIT)
    assert not can_operate(VIEWER, public, Action.EDIT)
    assert not can_operate(EDITOR, public, Action.DELETE)
    assert can_operate(OWNER, private, Action.DELETE)


def test_type_level_actions():
    assert can_operate(EDITOR, None, Action.CREATE)
    assert not can_operate(VIEWER, None, Action.CREATE)
    assert not can_operate(EDITOR, None, Action.MODERATE)
    assert not can_operate(OWNER, _snippet(), Action.ADMINISTER)


def test_comment_and_message_ownership():
    comment = Comment(id="c1", user_id="editor", snippet_id="s1", content="hi")
    assert can_operate(EDITOR, comment, Action.EDIT)
    assert not can_operate(OWNER, comment, Action.EDIT)

    message = Message(id="m1", sender_id="owner", receiver_id="viewer", content="hello")
    assert can_operate(VIEWER, message, Action.READ)
    assert can_operate(VIEWER, message, Action.DELETE)
    assert not can_operate(VIEWER, message, Action.EDIT)
    assert not can_operate(EDITOR, message, Action.READ)


def test_ensure_can_operate_raises_forbidden_with_message():
    with pytest.raises(Forbidden) as excinfo:
        ensure_can_operate(VIEWER, ShareToken(id="sh1", created_by="owner"), Action.MANAGE, "nope")
    assert excinfo.value.message == "nope"
    assert excinfo.value.status_code == 403
