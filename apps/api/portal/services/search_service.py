"""Search service - global admin search across clients, dossiers, documents and appointment requests.

Each entity type contributes at most ``limit`` matches, in a fixed order
(clients, dossiers, documents, demandes RDV). Matching is a
case-insensitive substring match; ``%`` and ``_`` in the query are literal.
"""

import logging
from typing import TypedDict

from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from portal.db.models import Client, DemandeRdv, Document, Dossier

logger = logging.getLogger(__name__)

MIN_QUERY_LENGTH = 2
MOTIF_TITLE_LENGTH = 50


class SearchResult(TypedDict):
    """A single search hit, with the front-end route it opens."""

    type: str  # "client", "dossier", "document", "demande_rdv"
    id: str
    title: str
    subtitle: str | None
    url: str
    icon: str


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so user input only matches literally (escape char ``\\``)."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _contains(column, pattern: str):
    return column.ilike(pattern, escape="\\")


def _search_clients(db: Session, pattern: str, limit: int) -> list[SearchResult]:
    clients = (
        db.query(Client)
        .filter(
            or_(
                _contains(Client.nom, pattern),
                _contains(Client.prenom, pattern),
                _contains(Client.email, pattern),
                _contains(Client.prenom + " " + Client.nom, pattern),
            )
        )
        .order_by(Client.nom, Client.prenom)
        .limit(limit)
        .all()
    )
    return [
        SearchResult(
            type="client",
            id=str(client.id),
            title=f"{client.prenom} {client.nom}",
            subtitle=client.email,
            url=f"/admin/clients/{client.id}",
            icon="user",
        )
        for client in clients
    ]


def _search_dossiers(db: Session, pattern: str, limit: int) -> list[SearchResult]:
    dossiers = (
        db.query(Dossier)
        .options(joinedload(Dossier.client))
        .filter(or_(_contains(Dossier.reference, pattern), _contains(Dossier.intitule, pattern)))
        .order_by(Dossier.created_at.desc())
        .limit(limit)
        .all()
    )
    return [
        SearchResult(
            type="dossier",
            id=str(dossier.id),
            title=dossier.reference,
            subtitle=dossier.intitule or f"{dossier.client.prenom} {dossier.client.nom}",
            url=f"/admin/dossiers/{dossier.id}",
            icon="folder",
        )
        for dossier in dossiers
    ]


def _search_documents(db: Session, pattern: str, limit: int) -> list[SearchResult]:
    documents = (
        db.query(Document)
        .options(joinedload(Document.dossier))
        .filter(_contains(Document.nom, pattern))
        .order_by(Document.created_at.desc())
        .limit(limit)
        .all()
    )
    return [
        SearchResult(
            type="document",
            id=str(document.id),
            title=document.nom,
            subtitle=document.dossier.reference if document.dossier else "Document",
            url=f"/admin/dossiers/{document.dossier_id}",
            icon="file",
        )
        for document in documents
    ]


def _search_demandes(db: Session, pattern: str, limit: int) -> list[SearchResult]:
    demandes = (
        db.query(DemandeRdv)
        .options(joinedload(DemandeRdv.client))
        .filter(_contains(DemandeRdv.motif, pattern))
        .order_by(DemandeRdv.created_at.desc())
        .limit(limit)
        .all()
    )
    results = []
    for demande in demandes:
        title = demande.motif[:MOTIF_TITLE_LENGTH]
        if len(demande.motif) > MOTIF_TITLE_LENGTH:
            title += "..."
        results.append(
            SearchResult(
                type="demande_rdv",
                id=str(demande.id),
                title=title,
                subtitle=f"{demande.client.prenom} {demande.client.nom}" if demande.client else "Demande RDV",
                url="/admin/demandes-rdv",
                icon="calendar",
            )
        )
    return results


def global_search(db: Session, query: str, limit: int = 5) -> list[SearchResult]:
    """
    Search every entity type for ``query``.

    Args:
        db: Database session
        query: Raw user input; trimmed, ignored below two characters
        limit: Max results per entity type

    Returns:
        Results grouped by type in a fixed order
    """
    query = (query or "").strip()
    if len(query) < MIN_QUERY_LENGTH:
        return []

    pattern = f"%{escape_like(query)}%"
    results: list[SearchResult] = []
    results.extend(_search_clients(db, pattern, limit))
    results.extend(_search_dossiers(db, pattern, limit))
    results.extend(_search_documents(db, pattern, limit))
    results.extend(_search_demandes(db, pattern, limit))
    logger.debug("Global search matched %s results", len(results))
    return results
