"""Initial schema - accounts, dossiers, portal, integrations and jobs

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-18

Portable DDL (PostgreSQL in production, SQLite for local runs).
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001_initial"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id() -> sa.Column:
    return sa.Column("id", sa.Uuid(), primary_key=True)


def _timestamps(updated: bool = True) -> list[sa.Column]:
    columns = [sa.Column("created_at", sa.DateTime(timezone=True), nullable=False)]
    if updated:
        columns.append(sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False))
    return columns


def _admin_fk(name: str) -> sa.Column:
    return sa.Column(name, sa.Uuid(), sa.ForeignKey("admins.id", ondelete="SET NULL"), nullable=True)


def upgrade() -> None:
    """Create every table."""

    # ==========================================================================
    # Accounts
    # ==========================================================================
    op.create_table(
        "admins",
        _id(),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("nom", sa.String(100), nullable=False),
        sa.Column("prenom", sa.String(100), nullable=False),
        sa.Column("username", sa.String(50), nullable=True, unique=True),
        sa.Column("role", sa.String(20), nullable=False, server_default="admin"),
        sa.Column("totp_secret", sa.Text(), nullable=True),
        sa.Column("totp_enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("actif", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("notif_email_document", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("email_notification", sa.String(255), nullable=True),
        sa.Column("filter_by_responsable", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("token_version", sa.Integer(), nullable=False, server_default="1"),
        _admin_fk("created_by_id"),
        sa.Column("last_login", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_admins_role", "admins", ["role"])

    op.create_table(
        "clients",
        _id(),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("civilite", sa.String(10), nullable=True),
        sa.Column("nom", sa.String(100), nullable=False),
        sa.Column("prenom", sa.String(100), nullable=False),
        sa.Column("telephone", sa.String(20), nullable=True),
        sa.Column("adresse_ligne1", sa.String(255), nullable=True),
        sa.Column("adresse_ligne2", sa.String(255), nullable=True),
        sa.Column("code_postal", sa.String(10), nullable=True),
        sa.Column("ville", sa.String(100), nullable=True),
        sa.Column("pays", sa.String(50), nullable=True),
        sa.Column("type", sa.String(20), nullable=False, server_default="particulier"),
        sa.Column("societe_nom", sa.String(255), nullable=True),
        sa.Column("totp_secret", sa.Text(), nullable=True),
        sa.Column("totp_enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("peut_uploader", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("peut_demander_rdv", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("acces_documents_sensibles", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("notif_email_document", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("notif_email_evenement", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("actif", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("notes_internes", sa.Text(), nullable=True),
        _admin_fk("responsable_id"),
        sa.Column("token_version", sa.Integer(), nullable=False, server_default="1"),
        _admin_fk("created_by_id"),
        sa.Column("last_login", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )

    # ==========================================================================
    # Dossiers and their content
    # ==========================================================================
    op.create_table(
        "dossiers",
        _id(),
        sa.Column("client_id", sa.Uuid(), sa.ForeignKey("clients.id", ondelete="CASCADE"), nullable=False),
        sa.Column("reference", sa.String(50), nullable=False, unique=True),
        sa.Column("intitule", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("type_affaire", sa.String(50), nullable=True),
        sa.Column("statut", sa.String(30), nullable=False, server_default="nouveau"),
        sa.Column("date_ouverture", sa.Date(), nullable=True),
        sa.Column("date_cloture", sa.Date(), nullable=True),
        sa.Column("date_prescription", sa.Date(), nullable=True),
        sa.Column("honoraires_estimes", sa.Numeric(10, 2), nullable=True),
        sa.Column("honoraires_factures", sa.Numeric(10, 2), nullable=True),
        sa.Column("honoraires_payes", sa.Numeric(10, 2), nullable=True),
        sa.Column("juridiction", sa.String(100), nullable=True),
        sa.Column("numero_rg", sa.String(50), nullable=True),
        sa.Column("adversaire_nom", sa.String(255), nullable=True),
        sa.Column("adversaire_avocat", sa.String(255), nullable=True),
        sa.Column("notes_internes", sa.Text(), nullable=True),
        _admin_fk("created_by_id"),
        _admin_fk("assigned_admin_id"),
        sa.Column("onedrive_folder_id", sa.String(255), nullable=True),
        sa.Column("onedrive_folder_path", sa.String(500), nullable=True),
        sa.Column("onedrive_cabinet_folder_id", sa.String(255), nullable=True),
        sa.Column("onedrive_client_folder_id", sa.String(255), nullable=True),
        sa.Column("onedrive_last_sync", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_dossiers_client", "dossiers", ["client_id"])
    op.create_index("idx_dossiers_statut", "dossiers", ["statut"])

    op.create_table(
        "documents",
        _id(),
        sa.Column("dossier_id", sa.Uuid(), sa.ForeignKey("dossiers.id", ondelete="CASCADE"), nullable=False),
        sa.Column("nom", sa.String(255), nullable=False),
        sa.Column("nom_original", sa.String(255), nullable=True),
        sa.Column("type_document", sa.String(50), nullable=False),
        sa.Column("taille_octets", sa.BigInteger(), nullable=True),
        sa.Column("mime_type", sa.String(100), nullable=True),
        sa.Column("extension", sa.String(20), nullable=True),
        sa.Column("sensible", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("visible_client", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("uploaded_by_client", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("uploaded_by_id", sa.Uuid(), nullable=True),
        sa.Column("uploaded_by_type", sa.String(10), nullable=False, server_default="admin"),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("date_document", sa.Date(), nullable=True),
        sa.Column("dossier_location", sa.String(10), nullable=False, server_default="cabinet"),
        sa.Column("onedrive_file_id", sa.String(255), nullable=True),
        sa.Column("onedrive_web_url", sa.String(2000), nullable=True),
        sa.Column("onedrive_download_url", sa.String(2000), nullable=True),
        sa.Column("onedrive_last_modified", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(updated=False),
    )
    op.create_index("idx_documents_dossier", "documents", ["dossier_id"])
    op.create_index("idx_documents_onedrive", "documents", ["onedrive_file_id"])

    op.create_table(
        "evenements",
        _id(),
        sa.Column("dossier_id", sa.Uuid(), sa.ForeignKey("dossiers.id", ondelete="CASCADE"), nullable=True),
        sa.Column("titre", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("type", sa.String(30), nullable=False),
        sa.Column("date_debut", sa.DateTime(timezone=True), nullable=False),
        sa.Column("date_fin", sa.DateTime(timezone=True), nullable=False),
        sa.Column("journee_entiere", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("lieu", sa.String(255), nullable=True),
        sa.Column("adresse", sa.Text(), nullable=True),
        sa.Column("salle", sa.String(100), nullable=True),
        sa.Column("statut", sa.String(20), nullable=False, server_default="confirme"),
        sa.Column("sync_google", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("google_event_id", sa.String(255), nullable=True),
        sa.Column("google_calendar_id", sa.String(255), nullable=True),
        sa.Column("google_last_sync", sa.DateTime(timezone=True), nullable=True),
        sa.Column("google_remote_updated", sa.DateTime(timezone=True), nullable=True),
        _admin_fk("created_by_id"),
        *_timestamps(),
    )
    op.create_index("idx_evenements_dossier", "evenements", ["dossier_id"])
    op.create_index("idx_evenements_date", "evenements", ["date_debut"])
    op.create_index("idx_evenements_google", "evenements", ["google_event_id"])

    op.create_table(
        "notes",
        _id(),
        sa.Column("dossier_id", sa.Uuid(), sa.ForeignKey("dossiers.id", ondelete="CASCADE"), nullable=False),
        _admin_fk("created_by_id"),
        sa.Column("contenu", sa.Text(), nullable=False),
        sa.Column("is_pinned", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
    )
    op.create_index("idx_notes_dossier", "notes", ["dossier_id", "is_pinned"])

    op.create_table(
        "tasks",
        _id(),
        sa.Column("dossier_id", sa.Uuid(), sa.ForeignKey("dossiers.id", ondelete="CASCADE"), nullable=False),
        _admin_fk("created_by_id"),
        _admin_fk("assigned_to_id"),
        sa.Column("titre", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("priorite", sa.String(20), nullable=False, server_default="normale"),
        sa.Column("statut", sa.String(20), nullable=False, server_default="a_faire"),
        sa.Column("date_echeance", sa.Date(), nullable=True),
        sa.Column("rappel_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_tasks_dossier", "tasks", ["dossier_id"])
    op.create_index("idx_tasks_assigned", "tasks", ["assigned_to_id", "statut"])

    # ==========================================================================
    # Portal
    # ==========================================================================
    op.create_table(
        "admin_favoris",
        _id(),
        sa.Column("admin_id", sa.Uuid(), sa.ForeignKey("admins.id", ondelete="CASCADE"), nullable=False),
        sa.Column("favori_type", sa.String(20), nullable=False),
        sa.Column("favori_id", sa.Uuid(), nullable=False),
        sa.Column("ordre", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(updated=False),
        sa.UniqueConstraint("admin_id", "favori_type", "favori_id", name="uq_admin_favori"),
    )
    op.create_index("idx_admin_favoris_admin", "admin_favoris", ["admin_id", "ordre"])

    op.create_table(
        "demandes_rdv",
        _id(),
        sa.Column("client_id", sa.Uuid(), sa.ForeignKey("clients.id", ondelete="CASCADE"), nullable=False),
        sa.Column("dossier_id", sa.Uuid(), sa.ForeignKey("dossiers.id", ondelete="SET NULL"), nullable=True),
        sa.Column("date_souhaitee", sa.Date(), nullable=False),
        sa.Column("creneau", sa.String(20), nullable=False),
        sa.Column("motif", sa.Text(), nullable=False),
        sa.Column("urgence", sa.String(20), nullable=False, server_default="normal"),
        sa.Column("statut", sa.String(20), nullable=False, server_default="en_attente"),
        sa.Column("reponse_admin", sa.Text(), nullable=True),
        sa.Column("evenement_id", sa.Uuid(), sa.ForeignKey("evenements.id", ondelete="SET NULL"), nullable=True),
        _admin_fk("traite_par_id"),
        sa.Column("traite_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(updated=False),
    )
    op.create_index("idx_demandes_client", "demandes_rdv", ["client_id"])
    op.create_index("idx_demandes_statut", "demandes_rdv", ["statut"])

    op.create_table(
        "notifications",
        _id(),
        sa.Column("destinataire_type", sa.String(10), nullable=False),
        sa.Column("destinataire_id", sa.Uuid(), nullable=False),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column("titre", sa.String(255), nullable=False),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("lien", sa.String(500), nullable=True),
        sa.Column("lu", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(updated=False),
    )
    op.create_index(
        "idx_notif_destinataire", "notifications", ["destinataire_type", "destinataire_id", "lu"]
    )

    # ==========================================================================
    # Activity, integrations and jobs
    # ==========================================================================
    op.create_table(
        "activity_logs",
        _id(),
        sa.Column("user_id", sa.Uuid(), nullable=True),
        sa.Column("user_type", sa.String(20), nullable=False),
        sa.Column("action", sa.String(100), nullable=False),
        sa.Column("resource_type", sa.String(50), nullable=True),
        sa.Column("resource_id", sa.Uuid(), nullable=True),
        sa.Column("dossier_id", sa.Uuid(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("ip_address", sa.String(45), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        *_timestamps(updated=False),
    )
    op.create_index("idx_activity_dossier", "activity_logs", ["dossier_id", "created_at"])
    op.create_index("idx_activity_resource", "activity_logs", ["resource_type", "resource_id"])
    op.create_index("idx_activity_user", "activity_logs", ["user_type", "user_id"])

    op.create_table(
        "sync_logs",
        _id(),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("mode", sa.String(20), nullable=False),
        sa.Column("statut", sa.String(20), nullable=False),
        sa.Column("elements_traites", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("elements_crees", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("elements_modifies", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("elements_supprimes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("elements_erreur", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("details", sa.JSON(), nullable=True),
        sa.Column("duree_ms", sa.Integer(), nullable=True),
        _admin_fk("triggered_by_id"),
        *_timestamps(updated=False),
    )
    op.create_index("idx_sync_logs", "sync_logs", ["type", "created_at"])

    op.create_table(
        "oauth_tokens",
        _id(),
        sa.Column("service", sa.String(50), nullable=False, unique=True),
        sa.Column("access_token_encrypted", sa.Text(), nullable=False),
        sa.Column("refresh_token_encrypted", sa.Text(), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("account_email", sa.String(255), nullable=True),
        sa.Column("account_name", sa.String(255), nullable=True),
        sa.Column("scopes", sa.Text(), nullable=True),
        sa.Column("selected_calendar_id", sa.String(255), nullable=True),
        sa.Column("selected_calendar_name", sa.String(255), nullable=True),
        sa.Column("sync_mode", sa.String(20), nullable=False, server_default="auto"),
        *_timestamps(),
    )

    op.create_table(
        "jobs",
        _id(),
        sa.Column("job_type", sa.String(50), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("run_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("max_attempts", sa.Integer(), nullable=False, server_default="3"),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("idempotency_key", sa.String(255), nullable=True, unique=True),
    )
    op.create_index("idx_jobs_pending", "jobs", ["status", "run_at"])

    op.create_table(
        "parametres",
        _id(),
        sa.Column("cle", sa.String(100), nullable=False, unique=True),
        sa.Column("valeur", sa.Text(), nullable=True),
        sa.Column("type", sa.String(20), nullable=False, server_default="string"),
        sa.Column("categorie", sa.String(50), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        _admin_fk("updated_by_id"),
    )


def downgrade() -> None:
    for table in (
        "parametres",
        "jobs",
        "oauth_tokens",
        "sync_logs",
        "activity_logs",
        "notifications",
        "demandes_rdv",
        "admin_favoris",
        "tasks",
        "notes",
        "evenements",
        "documents",
        "dossiers",
        "clients",
        "admins",
    ):
        op.drop_table(table)
