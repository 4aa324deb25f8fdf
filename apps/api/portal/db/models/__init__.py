"""SQLAlchemy ORM models."""

from portal.db.models.auth import Admin, Client
from portal.db.models.dossiers import Document, Dossier, Evenement, Note, Task
from portal.db.models.portal import AdminFavorite, DemandeRdv, Notification
from portal.db.models.audit import ActivityLog, SyncLog
from portal.db.models.integrations import OAuthToken
from portal.db.models.jobs import Job
from portal.db.models.settings import Parametre

__all__ = [
    "ActivityLog",
    "Admin",
    "AdminFavorite",
    "Client",
    "DemandeRdv",
    "Document",
    "Dossier",
    "Evenement",
    "Job",
    "Note",
    "Notification",
    "OAuthToken",
    "Parametre",
    "Task",
    "SyncLog",
]
