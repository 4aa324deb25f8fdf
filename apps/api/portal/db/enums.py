"""Enum definitions for application constants."""

from enum import Enum


class AdminRole(str, Enum):
    """
    Staff roles.

    SUPER_ADMIN is created by seed only and can never be created, edited,
    deleted or deactivated through the API.
    """
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"


class Realm(str, Enum):
    """Authentication realms (separate session cookies)."""
    ADMIN = "admin"
    CLIENT = "client"


class ActorType(str, Enum):
    ADMIN = "admin"
    CLIENT = "client"
    SYSTEM = "system"


class ClientType(str, Enum):
    PARTICULIER = "particulier"
    INSTITUTIONNEL = "institutionnel"


class DossierStatut(str, Enum):
    """Dossier lifecycle. ``cloture_*`` and ``archive`` are closed states."""
    NOUVEAU = "nouveau"
    EN_COURS = "en_cours"
    EN_ATTENTE = "en_attente"
    AUDIENCE_PREVUE = "audience_prevue"
    EN_DELIBERE = "en_delibere"
    CLOTURE_GAGNE = "cloture_gagne"
    CLOTURE_PERDU = "cloture_perdu"
    CLOTURE_TRANSACTION = "cloture_transaction"
    ARCHIVE = "archive"

    @property
    def is_closed(self) -> bool:
        return self.value.startswith("cloture") or self is DossierStatut.ARCHIVE


class TypeAffaire(str, Enum):
    CIVIL = "civil"
    PENAL = "penal"
    COMMERCIAL = "commercial"
    SOCIAL = "social"
    FAMILLE = "famille"
    ADMINISTRATIF = "administratif"
    IMMOBILIER = "immobilier"


class DocumentLocation(str, Enum):
    """OneDrive subfolder a document lives in: internal or client-visible."""
    CABINET = "cabinet"
    CLIENT = "client"


class TaskStatut(str, Enum):
    A_FAIRE = "a_faire"
    EN_COURS = "en_cours"
    TERMINEE = "terminee"
    ANNULEE = "annulee"


class TaskPriorite(str, Enum):
    BASSE = "basse"
    NORMALE = "normale"
    HAUTE = "haute"
    URGENTE = "urgente"


class FavoriteType(str, Enum):
    DOSSIER = "dossier"
    CLIENT = "client"


class Creneau(str, Enum):
    MATIN = "matin"
    APRES_MIDI = "apres_midi"
    FIN_JOURNEE = "fin_journee"


class Urgence(str, Enum):
    NORMAL = "normal"
    URGENT = "urgent"
    TRES_URGENT = "tres_urgent"


class DemandeRdvStatut(str, Enum):
    EN_ATTENTE = "en_attente"
    ACCEPTE = "accepte"
    REFUSE = "refuse"


class SyncType(str, Enum):
    ONEDRIVE = "onedrive"
    GOOGLE_CALENDAR = "google_calendar"


class SyncMode(str, Enum):
    AUTO = "auto"
    MANUAL = "manual"


class SyncStatut(str, Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    ERROR = "error"


class OAuthService(str, Enum):
    """Service keys under which OAuth tokens are stored."""
    ONEDRIVE = "onedrive"
    GOOGLE_CALENDAR = "google_calendar"


class JobType(str, Enum):
    """Types of background jobs."""
    ONEDRIVE_FOLDER_CREATE = "onedrive_folder_create"
    ONEDRIVE_CLIENT_FOLDER_CREATE = "onedrive_client_folder_create"
    ONEDRIVE_FOLDER_RENAME = "onedrive_folder_rename"
    ONEDRIVE_ITEM_DELETE = "onedrive_item_delete"
    CALENDAR_EVENT_SYNC = "calendar_event_sync"
    CALENDAR_EVENT_DELETE = "calendar_event_delete"


class ParametreType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    JSON = "json"


class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class EvenementType(str, Enum):
    AUDIENCE = "audience"
    RDV_CLIENT = "rdv_client"
    RDV_ADVERSE = "rdv_adverse"
    EXPERTISE = "expertise"
    MEDIATION = "mediation"
    ECHEANCE = "echeance"
    AUTRE = "autre"


class EvenementStatut(str, Enum):
    PLANIFIE = "planifie"
    CONFIRME = "confirme"
    ANNULE = "annule"
    REPORTE = "reporte"
    TERMINE = "termine"
