"""Routers package."""

from . import (
    health,
    auth,
    snippets,
    share,
    comments,
    messages,
    notifications,
    settings,
    users,
    versions,
    tags,
    clipboard,
)
