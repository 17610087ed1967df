"""Models package."""

from .user import User
from .code_snippet import CodeSnippet
from .share_token import ShareToken
from .share_access_log import ShareAccessLog
from .comment import Comment, CommentLike, CommentReport
from .message import Message
from .notification import Notification
from .system_settings import SystemSettings
from .snippet_version import SnippetVersion
from .tag import Tag, SnippetTag
from .clipboard_history import ClipboardHistory
