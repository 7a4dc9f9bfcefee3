"""tabnote: notebooks, ordered tabs and autosaved notes over a hosted backend."""

from tabnote.autosave import DebouncedSaver, NoteDraft
from tabnote.config import Settings, connect
from tabnote.editor import NotebookEditor
from tabnote.errors import ConfigError, NotFoundError, RemoteError
from tabnote.listing import NotebookList
from tabnote.models import Note, Notebook, NotebookSummary, Profile, Tab, User
from tabnote.profile import ProfileView
from tabnote.session import SessionContext

__all__ = [
    "ConfigError",
    "DebouncedSaver",
    "Note",
    "NoteDraft",
    "Notebook",
    "NotebookEditor",
    "NotebookList",
    "NotebookSummary",
    "NotFoundError",
    "Profile",
    "ProfileView",
    "RemoteError",
    "SessionContext",
    "Settings",
    "Tab",
    "User",
    "connect",
]
