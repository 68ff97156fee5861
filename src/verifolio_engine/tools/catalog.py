"""Action catalog for planner function calling.

Each entry declares one action the planner may request, with a JSON Schema
describing its arguments. The dispatcher validates every call against the
same schema before running a handler, so the planner and the engine never
disagree on argument shape.

Entity references accept either an ``*_id`` (UUID) or a ``*_name`` /
``*_numero`` searched by name; a name sent in an id slot is also accepted.
"""

from decimal import Decimal
from enum import Enum
from typing import Any

from jsonschema import Draft202012Validator
from jsonschema.exceptions import best_match

from verifolio_engine.errors import UnknownTool, ValidationError
from verifolio_engine.finance import MAX_AMOUNT, MAX_TAX_RATE
from verifolio_engine.models import (
    AuditAction,
    BriefStatus,
    ClientType,
    ContactContext,
    DealStatus,
    EntityKind,
    InvoiceStatus,
    MissionStatus,
    ProposalStatus,
    QuoteStatus,
)

CATALOG_VERSION = "2025.1"


class Action(str, Enum):
    """Closed set of action names. Add a member and its handler together."""

    # Clients
    CREATE_CLIENT = "create_client"
    LIST_CLIENTS = "list_clients"
    UPDATE_CLIENT = "update_client"
    # Contacts
    CREATE_CONTACT = "create_contact"
    LIST_CONTACTS = "list_contacts"
    UPDATE_CONTACT = "update_contact"
    LINK_CONTACT_TO_CLIENT = "link_contact_to_client"
    UNLINK_CONTACT_FROM_CLIENT = "unlink_contact_from_client"
    UPDATE_CLIENT_CONTACT = "update_client_contact"
    GET_CONTACT_FOR_CONTEXT = "get_contact_for_context"
    # Deals
    CREATE_DEAL = "create_deal"
    LIST_DEALS = "list_deals"
    GET_DEAL = "get_deal"
    UPDATE_DEAL_STATUS = "update_deal_status"
    # Missions
    CREATE_MISSION = "create_mission"
    LIST_MISSIONS = "list_missions"
    GET_MISSION = "get_mission"
    UPDATE_MISSION_STATUS = "update_mission_status"
    # Quotes
    CREATE_QUOTE = "create_quote"
    LIST_QUOTES = "list_quotes"
    UPDATE_QUOTE_STATUS = "update_quote_status"
    # Invoices
    CREATE_INVOICE = "create_invoice"
    LIST_INVOICES = "list_invoices"
    UPDATE_INVOICE = "update_invoice"
    UPDATE_INVOICE_STATUS = "update_invoice_status"
    MARK_INVOICE_PAID = "mark_invoice_paid"
    CONVERT_QUOTE_TO_INVOICE = "convert_quote_to_invoice"
    # Delivery notes
    CREATE_DELIVERY_NOTE = "create_delivery_note"
    LIST_DELIVERY_NOTES = "list_delivery_notes"
    # Sending, finance, settings
    SEND_EMAIL = "send_email"
    GET_FINANCIAL_SUMMARY = "get_financial_summary"
    GET_COMPANY_SETTINGS = "get_company_settings"
    # Custom fields
    LIST_CUSTOM_FIELDS = "list_custom_fields"
    CREATE_CUSTOM_FIELD = "create_custom_field"
    UPDATE_CUSTOM_FIELD_VALUE = "update_custom_field_value"
    DELETE_CUSTOM_FIELD = "delete_custom_field"
    # Proposals
    LIST_PROPOSAL_TEMPLATES = "list_proposal_templates"
    CREATE_PROPOSAL = "create_proposal"
    LIST_PROPOSALS = "list_proposals"
    SET_PROPOSAL_STATUS = "set_proposal_status"
    GET_CLIENT_CONTACTS_FOR_PROPOSAL = "get_client_contacts_for_proposal"
    SET_PROPOSAL_RECIPIENTS = "set_proposal_recipients"
    GET_PROPOSAL_PUBLIC_LINK = "get_proposal_public_link"
    # Briefs
    LIST_BRIEF_TEMPLATES = "list_brief_templates"
    CREATE_BRIEF = "create_brief"
    LIST_BRIEFS = "list_briefs"
    SEND_BRIEF = "send_brief"
    # Reviews
    CREATE_REVIEW_REQUEST = "create_review_request"
    LIST_REVIEW_REQUESTS = "list_review_requests"
    LIST_REVIEWS = "list_reviews"


def _string(description: str, **extra: Any) -> dict[str, Any]:
    return {"type": "string", "description": description, **extra}


def _enum(values: type[Enum], description: str) -> dict[str, Any]:
    return {"type": "string", "enum": [v.value for v in values], "description": description}


def _amount(description: str, maximum: Decimal = MAX_AMOUNT) -> dict[str, Any]:
    return {"type": "number", "maximum": float(maximum), "description": description}


def _ref(entity: str, label: str = "name") -> dict[str, dict[str, Any]]:
    """``<entity>_id`` plus a searchable ``<entity>_<label>`` alternative."""
    return {
        f"{entity}_id": _string(f"ID ({entity}, UUID)"),
        f"{entity}_{label}": _string(f"Recherche par {label} si l'ID est inconnu"),
    }


def _object(properties: dict[str, Any], required: list[str] | None = None) -> dict[str, Any]:
    return {"type": "object", "properties": properties, "required": required or []}


LINE_ITEMS_SCHEMA: dict[str, Any] = {
    "type": "array",
    "minItems": 1,
    "description": "Lignes du document. Les totaux sont recalculés, jamais repris.",
    "items": {
        "type": "object",
        "properties": {
            "description": _string("Description de la ligne"),
            "quantite": _amount("Quantité"),
            "prix_unitaire": _amount("Prix unitaire HT"),
            "tva_rate": {**_amount("Taux de TVA en %", MAX_TAX_RATE), "minimum": 0},
        },
        "required": ["description", "quantite", "prix_unitaire"],
    },
}

CONTACT_ROLE_PROPERTIES: dict[str, Any] = {
    "role": _string("Fonction du contact chez le client (ex: Comptable)"),
    "handles_billing": {"type": "boolean", "description": "Gère la facturation"},
    "handles_ops": {"type": "boolean", "description": "Gère l'opérationnel"},
    "handles_management": {"type": "boolean", "description": "Gère les validations"},
    "is_primary": {"type": "boolean", "description": "Contact principal du client"},
    "preferred_channel": {
        "type": "string",
        "enum": ["email", "phone"],
        "description": "Canal de communication préféré",
    },
}

CLIENT_FIELDS: dict[str, Any] = {
    "email": _string("Email du client"),
    "telephone": _string("Téléphone du client"),
    "adresse": _string("Adresse du client"),
    "custom_fields": {
        "type": "object",
        "description": 'Champs personnalisés {label: valeur}, ex: {"SIRET": "12345678901234"}',
        "additionalProperties": {"type": "string"},
    },
}

# === Client Tools ===

CREATE_CLIENT_TOOL: dict[str, Any] = {
    "name": "create_client",
    "description": "Créer un nouveau client. Supporte les champs personnalisés (SIRET, ICE...).",
    "parameters": _object(
        {
            "type": _enum(ClientType, "Type de client"),
            "nom": _string("Nom du client ou de l'entreprise"),
            **CLIENT_FIELDS,
        },
        ["type", "nom"],
    ),
}

LIST_CLIENTS_TOOL: dict[str, Any] = {
    "name": "list_clients",
    "description": "Lister tous les clients.",
    "parameters": _object({}),
}

UPDATE_CLIENT_TOOL: dict[str, Any] = {
    "name": "update_client",
    "description": "Modifier un client existant. Seuls les champs fournis sont modifiés.",
    "parameters": _object({**_ref("client"), "nom": _string("Nouveau nom"), **CLIENT_FIELDS}),
}

# === Contact Tools ===

CREATE_CONTACT_TOOL: dict[str, Any] = {
    "name": "create_contact",
    "description": "Créer un contact indépendant, à lier ensuite à un ou plusieurs clients.",
    "parameters": _object(
        {
            "nom": _string("Nom complet du contact"),
            "email": _string("Email du contact"),
            "telephone": _string("Téléphone du contact"),
            "notes": _string("Notes sur le contact"),
        },
        ["nom"],
    ),
}

LIST_CONTACTS_TOOL: dict[str, Any] = {
    "name": "list_contacts",
    "description": "Lister les contacts, éventuellement ceux liés à un client.",
    "parameters": _object(_ref("client")),
}

UPDATE_CONTACT_TOOL: dict[str, Any] = {
    "name": "update_contact",
    "description": "Modifier les informations d'un contact (nom, email, téléphone, notes).",
    "parameters": _object(
        {
            **_ref("contact"),
            "nom": _string("Nouveau nom"),
            "email": _string("Nouvel email"),
            "telephone": _string("Nouveau téléphone"),
            "notes": _string("Nouvelles notes"),
        }
    ),
}

LINK_CONTACT_TO_CLIENT_TOOL: dict[str, Any] = {
    "name": "link_contact_to_client",
    "description": "Lier un contact existant à un client avec ses rôles.",
    "parameters": _object({**_ref("contact"), **_ref("client"), **CONTACT_ROLE_PROPERTIES}),
}

UNLINK_CONTACT_FROM_CLIENT_TOOL: dict[str, Any] = {
    "name": "unlink_contact_from_client",
    "description": "Supprimer le lien entre un contact et un client (le contact est conservé).",
    "parameters": _object({**_ref("contact"), **_ref("client")}),
}

UPDATE_CLIENT_CONTACT_TOOL: dict[str, Any] = {
    "name": "update_client_contact",
    "description": "Modifier les rôles d'un contact chez un client.",
    "parameters": _object({**_ref("contact"), **_ref("client"), **CONTACT_ROLE_PROPERTIES}),
}

GET_CONTACT_FOR_CONTEXT_TOOL: dict[str, Any] = {
    "name": "get_contact_for_context",
    "description": "Trouver le meilleur contact d'un client pour un contexte donné.",
    "parameters": _object(
        {**_ref("client"), "context": _enum(ContactContext, "Contexte de sélection")},
        ["context"],
    ),
}

# === Deal Tools ===

CREATE_DEAL_TOOL: dict[str, Any] = {
    "name": "create_deal",
    "description": "Créer un deal (opportunité commerciale) pour un client existant.",
    "parameters": _object(
        {
            **_ref("client"),
            "title": _string("Titre du deal"),
            "description": _string("Description du besoin"),
            "estimated_amount": _amount("Montant estimé"),
        },
        ["title"],
    ),
}

LIST_DEALS_TOOL: dict[str, Any] = {
    "name": "list_deals",
    "description": "Lister les deals. Peut filtrer par client ou statut.",
    "parameters": _object({**_ref("client"), "status": _enum(DealStatus, "Filtrer par statut")}),
}

GET_DEAL_TOOL: dict[str, Any] = {
    "name": "get_deal",
    "description": "Détails d'un deal avec ses devis, propositions et briefs.",
    "parameters": _object({"deal_id": _string("ID ou titre du deal")}, ["deal_id"]),
}

UPDATE_DEAL_STATUS_TOOL: dict[str, Any] = {
    "name": "update_deal_status",
    "description": "Changer le statut d'un deal. Un deal gagné peut donner lieu à une mission.",
    "parameters": _object(
        {"deal_id": _string("ID ou titre du deal"), "status": _enum(DealStatus, "Nouveau statut")},
        ["deal_id", "status"],
    ),
}

# === Mission Tools ===

CREATE_MISSION_TOOL: dict[str, Any] = {
    "name": "create_mission",
    "description": "Créer la mission d'un deal (une seule mission par deal).",
    "parameters": _object(
        {
            "deal_id": _string("ID ou titre du deal parent"),
            "title": _string("Titre de la mission"),
            "description": _string("Description de la mission"),
            "estimated_amount": _amount("Montant estimé"),
        },
        ["deal_id", "title"],
    ),
}

LIST_MISSIONS_TOOL: dict[str, Any] = {
    "name": "list_missions",
    "description": "Lister les missions. Peut filtrer par client ou statut.",
    "parameters": _object(
        {**_ref("client"), "status": _enum(MissionStatus, "Filtrer par statut")}
    ),
}

GET_MISSION_TOOL: dict[str, Any] = {
    "name": "get_mission",
    "description": "Détails d'une mission avec ses factures et le reste à facturer.",
    "parameters": _object({"mission_id": _string("ID ou titre de la mission")}, ["mission_id"]),
}

UPDATE_MISSION_STATUS_TOOL: dict[str, Any] = {
    "name": "update_mission_status",
    "description": "Changer le statut d'une mission.",
    "parameters": _object(
        {
            "mission_id": _string("ID ou titre de la mission"),
            "status": _enum(MissionStatus, "Nouveau statut"),
        },
        ["mission_id", "status"],
    ),
}

# === Quote Tools ===

CREATE_QUOTE_TOOL: dict[str, Any] = {
    "name": "create_quote",
    "description": "Créer un devis. Tout devis DOIT être lié à un deal (deal_id obligatoire).",
    "parameters": _object(
        {
            **_ref("client"),
            "deal_id": _string("ID du deal parent (obligatoire)"),
            "items": LINE_ITEMS_SCHEMA,
            "notes": _string("Notes additionnelles"),
        },
        ["items"],
    ),
}

LIST_QUOTES_TOOL: dict[str, Any] = {
    "name": "list_quotes",
    "description": "Lister les devis. Peut filtrer par statut.",
    "parameters": _object({"status": _enum(QuoteStatus, "Filtrer par statut")}),
}

UPDATE_QUOTE_STATUS_TOOL: dict[str, Any] = {
    "name": "update_quote_status",
    "description": "Changer le statut d'un devis. Demander confirmation avant accepted/refused.",
    "parameters": _object(
        {**_ref("quote", "numero"), "status": _enum(QuoteStatus, "Nouveau statut")},
        ["status"],
    ),
}

# === Invoice Tools ===

CREATE_INVOICE_TOOL: dict[str, Any] = {
    "name": "create_invoice",
    "description": (
        "Créer une facture. Toute facture DOIT être liée à une mission "
        "(mission_id obligatoire)."
    ),
    "parameters": _object(
        {
            **_ref("client"),
            "mission_id": _string("ID de la mission parente (obligatoire)"),
            "quote_id": _string("ID du devis source"),
            "items": LINE_ITEMS_SCHEMA,
            "date_echeance": _string("Date d'échéance (YYYY-MM-DD)", format="date"),
            "notes": _string("Notes additionnelles"),
        },
        ["items"],
    ),
}

LIST_INVOICES_TOOL: dict[str, Any] = {
    "name": "list_invoices",
    "description": "Lister les factures. Peut filtrer par statut ou rechercher par numéro.",
    "parameters": _object(
        {
            "numero": _string("Numéro (recherche partielle)"),
            "status": _enum(InvoiceStatus, "Filtrer par statut"),
        }
    ),
}

UPDATE_INVOICE_TOOL: dict[str, Any] = {
    "name": "update_invoice",
    "description": "Modifier les dates ou les notes d'une facture en brouillon.",
    "parameters": _object(
        {
            **_ref("invoice", "numero"),
            "date_emission": _string("Date d'émission (YYYY-MM-DD)", format="date"),
            "date_echeance": _string("Date d'échéance (YYYY-MM-DD)", format="date"),
            "notes": _string("Nouvelles notes"),
        }
    ),
}

UPDATE_INVOICE_STATUS_TOOL: dict[str, Any] = {
    "name": "update_invoice_status",
    "description": "Changer le statut d'une facture. Demander confirmation avant sent/cancelled.",
    "parameters": _object(
        {**_ref("invoice", "numero"), "status": _enum(InvoiceStatus, "Nouveau statut")},
        ["status"],
    ),
}

MARK_INVOICE_PAID_TOOL: dict[str, Any] = {
    "name": "mark_invoice_paid",
    "description": "Marquer une facture comme payée.",
    "parameters": _object(_ref("invoice", "numero")),
}

CONVERT_QUOTE_TO_INVOICE_TOOL: dict[str, Any] = {
    "name": "convert_quote_to_invoice",
    "description": "Créer une facture à partir d'un devis. La mission est obligatoire.",
    "parameters": _object(
        {
            **_ref("quote", "numero"),
            "client_name": _string("Client dont convertir le devis le plus récent"),
            "mission_id": _string("ID de la mission parente (obligatoire)"),
        }
    ),
}

# === Delivery Note Tools ===

CREATE_DELIVERY_NOTE_TOOL: dict[str, Any] = {
    "name": "create_delivery_note",
    "description": "Créer un bon de livraison. Il DOIT être lié à une mission.",
    "parameters": _object(
        {
            "mission_id": _string("ID de la mission parente (obligatoire)"),
            "items": {
                **LINE_ITEMS_SCHEMA,
                "items": {**LINE_ITEMS_SCHEMA["items"], "required": ["description"]},
            },
            "date_livraison": _string("Date de livraison (YYYY-MM-DD)", format="date"),
            "notes": _string("Notes additionnelles"),
        },
        ["items"],
    ),
}

LIST_DELIVERY_NOTES_TOOL: dict[str, Any] = {
    "name": "list_delivery_notes",
    "description": "Lister les bons de livraison, éventuellement pour une mission.",
    "parameters": _object({"mission_id": _string("Filtrer par mission")}),
}

# === Sending, Finance, Settings ===

SEND_EMAIL_TOOL: dict[str, Any] = {
    "name": "send_email",
    "description": (
        "Préparer l'envoi d'un document par email. Rien n'est envoyé: "
        "l'utilisateur doit confirmer."
    ),
    "parameters": _object(
        {
            "entity_type": {
                "type": "string",
                "enum": ["quote", "invoice", "delivery_note"],
                "description": "Type de document",
            },
            "entity_id": _string("ID ou numéro du document"),
            "to_email": _string("Destinataire; par défaut le contact adapté du client"),
        },
        ["entity_type", "entity_id"],
    ),
}

GET_FINANCIAL_SUMMARY_TOOL: dict[str, Any] = {
    "name": "get_financial_summary",
    "description": "Résumé financier: impayés, chiffre d'affaires encaissé, totaux par client.",
    "parameters": _object(
        {
            "query_type": {
                "type": "string",
                "enum": ["unpaid", "revenue", "by_client", "all"],
                "description": "unpaid, revenue, by_client ou all",
            },
            "client_name": _string("Filtrer par nom de client"),
        },
        ["query_type"],
    ),
}

GET_COMPANY_SETTINGS_TOOL: dict[str, Any] = {
    "name": "get_company_settings",
    "description": "Paramètres de l'entreprise: devise, TVA, numérotation et prochains numéros.",
    "parameters": _object({}),
}

# === Custom Field Tools ===

LIST_CUSTOM_FIELDS_TOOL: dict[str, Any] = {
    "name": "list_custom_fields",
    "description": "Lister les champs personnalisés (ICE, SIRET, TVA Intracommunautaire...).",
    "parameters": _object(
        {
            "scope": {
                "type": "string",
                "enum": ["company", "client", "all"],
                "description": "company, client ou all (défaut)",
            }
        }
    ),
}

CREATE_CUSTOM_FIELD_TOOL: dict[str, Any] = {
    "name": "create_custom_field",
    "description": "Créer un champ personnalisé pour l'entreprise et/ou les clients.",
    "parameters": _object(
        {
            "label": _string("Libellé du champ (ex: ICE, SIRET)"),
            "applies_to_company": {
                "type": "boolean",
                "description": "Le champ s'applique à l'entreprise",
            },
            "applies_to_client": {
                "type": "boolean",
                "description": "Le champ s'applique aux clients",
            },
            "company_value": _string("Valeur pour l'entreprise"),
        },
        ["label"],
    ),
}

UPDATE_CUSTOM_FIELD_VALUE_TOOL: dict[str, Any] = {
    "name": "update_custom_field_value",
    "description": "Modifier la valeur d'un champ personnalisé pour l'entreprise ou un client.",
    "parameters": _object(
        {
            "field_label": _string("Libellé du champ (ex: ICE)"),
            "value": _string("Nouvelle valeur"),
            **_ref("client"),
        },
        ["field_label", "value"],
    ),
}

DELETE_CUSTOM_FIELD_TOOL: dict[str, Any] = {
    "name": "delete_custom_field",
    "description": "Supprimer un champ personnalisé (entreprise et clients).",
    "parameters": _object({"field_label": _string("Libellé du champ")}, ["field_label"]),
}

# === Proposal Tools ===

LIST_PROPOSAL_TEMPLATES_TOOL: dict[str, Any] = {
    "name": "list_proposal_templates",
    "description": "Lister les templates de propositions commerciales.",
    "parameters": _object({}),
}

CREATE_PROPOSAL_TOOL: dict[str, Any] = {
    "name": "create_proposal",
    "description": "Créer une proposition commerciale. Elle DOIT être liée à un deal.",
    "parameters": _object(
        {
            "deal_id": _string("ID du deal parent (obligatoire)"),
            **_ref("template"),
            "title": _string("Titre de la proposition"),
            "variables": {
                "type": "object",
                "description": "Valeurs des variables du template",
                "additionalProperties": {"type": "string"},
            },
            "linked_quote_id": _string("ID d'un devis à lier"),
        }
    ),
}

LIST_PROPOSALS_TOOL: dict[str, Any] = {
    "name": "list_proposals",
    "description": "Lister les propositions. Peut filtrer par client ou statut.",
    "parameters": _object(
        {**_ref("client"), "status": _enum(ProposalStatus, "Filtrer par statut")}
    ),
}

SET_PROPOSAL_STATUS_TOOL: dict[str, Any] = {
    "name": "set_proposal_status",
    "description": "Changer le statut d'une proposition. Ne pas passer à sent sans confirmation.",
    "parameters": _object(
        {
            "proposal_id": _string("ID ou titre de la proposition"),
            "status": {
                "type": "string",
                "enum": [ProposalStatus.DRAFT.value, ProposalStatus.SENT.value],
                "description": "Nouveau statut; accepted/refused sont posés par le client",
            },
        },
        ["proposal_id", "status"],
    ),
}

GET_CLIENT_CONTACTS_FOR_PROPOSAL_TOOL: dict[str, Any] = {
    "name": "get_client_contacts_for_proposal",
    "description": "Contacts d'un client, pour choisir les destinataires d'une proposition.",
    "parameters": _object(_ref("client")),
}

SET_PROPOSAL_RECIPIENTS_TOOL: dict[str, Any] = {
    "name": "set_proposal_recipients",
    "description": "Définir les destinataires d'une proposition. Remplace la liste existante.",
    "parameters": _object(
        {
            "proposal_id": _string("ID ou titre de la proposition"),
            "contact_ids": {
                "type": "array",
                "items": {"type": "string"},
                "description": "IDs des contacts destinataires",
            },
        },
        ["proposal_id", "contact_ids"],
    ),
}

GET_PROPOSAL_PUBLIC_LINK_TOOL: dict[str, Any] = {
    "name": "get_proposal_public_link",
    "description": "Obtenir le lien public d'une proposition à partager avec le client.",
    "parameters": _object(
        {"proposal_id": _string("ID ou titre de la proposition")}, ["proposal_id"]
    ),
}

# === Brief Tools ===

LIST_BRIEF_TEMPLATES_TOOL: dict[str, Any] = {
    "name": "list_brief_templates",
    "description": "Lister les templates de briefs.",
    "parameters": _object({}),
}

CREATE_BRIEF_TOOL: dict[str, Any] = {
    "name": "create_brief",
    "description": "Créer un brief de collecte des besoins. Il DOIT être lié à un deal.",
    "parameters": _object(
        {
            "deal_id": _string("ID du deal parent (obligatoire)"),
            **_ref("template"),
            "title": _string("Titre du brief"),
        },
        ["title"],
    ),
}

LIST_BRIEFS_TOOL: dict[str, Any] = {
    "name": "list_briefs",
    "description": "Lister les briefs. Peut filtrer par deal, client ou statut.",
    "parameters": _object(
        {
            "deal_id": _string("Filtrer par deal"),
            **_ref("client"),
            "status": _enum(BriefStatus, "Filtrer par statut"),
        }
    ),
}

SEND_BRIEF_TOOL: dict[str, Any] = {
    "name": "send_brief",
    "description": "Passer un brief en SENT et obtenir son lien public.",
    "parameters": _object({"brief_id": _string("ID ou titre du brief")}, ["brief_id"]),
}

# === Review Tools ===

CREATE_REVIEW_REQUEST_TOOL: dict[str, Any] = {
    "name": "create_review_request",
    "description": "Créer une demande d'avis client. Elle DOIT être liée à une mission.",
    "parameters": _object(
        {
            "mission_id": _string("ID de la mission (obligatoire)"),
            "invoice_id": _string("ID de la facture concernée"),
            "title": _string("Titre de la demande"),
            "context_text": _string("Texte de contexte pour le client"),
        },
        ["title"],
    ),
}

LIST_REVIEW_REQUESTS_TOOL: dict[str, Any] = {
    "name": "list_review_requests",
    "description": "Lister les demandes d'avis.",
    "parameters": _object(
        {
            "status": {
                "type": "string",
                "enum": ["sent", "pending", "responded"],
                "description": "Filtrer par statut",
            },
            "client_id": _string("Filtrer par client"),
        }
    ),
}

LIST_REVIEWS_TOOL: dict[str, Any] = {
    "name": "list_reviews",
    "description": "Lister les avis clients reçus. Peut filtrer par client ou publication.",
    "parameters": _object(
        {
            "client_id": _string("Filtrer par client"),
            "is_published": {"type": "boolean", "description": "Filtrer par publication"},
        }
    ),
}

# === Tool Collections ===

ALL_TOOLS: list[dict[str, Any]] = [
    # Clients & contacts
    CREATE_CLIENT_TOOL,
    LIST_CLIENTS_TOOL,
    UPDATE_CLIENT_TOOL,
    CREATE_CONTACT_TOOL,
    LIST_CONTACTS_TOOL,
    UPDATE_CONTACT_TOOL,
    LINK_CONTACT_TO_CLIENT_TOOL,
    UNLINK_CONTACT_FROM_CLIENT_TOOL,
    UPDATE_CLIENT_CONTACT_TOOL,
    GET_CONTACT_FOR_CONTEXT_TOOL,
    # Pipeline
    CREATE_DEAL_TOOL,
    LIST_DEALS_TOOL,
    GET_DEAL_TOOL,
    UPDATE_DEAL_STATUS_TOOL,
    CREATE_MISSION_TOOL,
    LIST_MISSIONS_TOOL,
    GET_MISSION_TOOL,
    UPDATE_MISSION_STATUS_TOOL,
    # Documents
    CREATE_QUOTE_TOOL,
    LIST_QUOTES_TOOL,
    UPDATE_QUOTE_STATUS_TOOL,
    CREATE_INVOICE_TOOL,
    LIST_INVOICES_TOOL,
    UPDATE_INVOICE_TOOL,
    UPDATE_INVOICE_STATUS_TOOL,
    MARK_INVOICE_PAID_TOOL,
    CONVERT_QUOTE_TO_INVOICE_TOOL,
    CREATE_DELIVERY_NOTE_TOOL,
    LIST_DELIVERY_NOTES_TOOL,
    SEND_EMAIL_TOOL,
    # Finance, settings, custom fields
    GET_FINANCIAL_SUMMARY_TOOL,
    GET_COMPANY_SETTINGS_TOOL,
    LIST_CUSTOM_FIELDS_TOOL,
    CREATE_CUSTOM_FIELD_TOOL,
    UPDATE_CUSTOM_FIELD_VALUE_TOOL,
    DELETE_CUSTOM_FIELD_TOOL,
    # Proposals, briefs, reviews
    LIST_PROPOSAL_TEMPLATES_TOOL,
    CREATE_PROPOSAL_TOOL,
    LIST_PROPOSALS_TOOL,
    SET_PROPOSAL_STATUS_TOOL,
    GET_CLIENT_CONTACTS_FOR_PROPOSAL_TOOL,
    SET_PROPOSAL_RECIPIENTS_TOOL,
    GET_PROPOSAL_PUBLIC_LINK_TOOL,
    LIST_BRIEF_TEMPLATES_TOOL,
    CREATE_BRIEF_TOOL,
    LIST_BRIEFS_TOOL,
    SEND_BRIEF_TOOL,
    CREATE_REVIEW_REQUEST_TOOL,
    LIST_REVIEW_REQUESTS_TOOL,
    LIST_REVIEWS_TOOL,
]

TOOLS: dict[Action, dict[str, Any]] = {Action(tool["name"]): tool for tool in ALL_TOOLS}

# Successful calls of these actions are written to the activity log.
MUTATING_ACTIONS: dict[Action, tuple[EntityKind, AuditAction]] = {
    Action.CREATE_CLIENT: (EntityKind.CLIENT, AuditAction.CREATE),
    Action.UPDATE_CLIENT: (EntityKind.CLIENT, AuditAction.UPDATE),
    Action.CREATE_CONTACT: (EntityKind.CONTACT, AuditAction.CREATE),
    Action.UPDATE_CONTACT: (EntityKind.CONTACT, AuditAction.UPDATE),
    Action.CREATE_DEAL: (EntityKind.DEAL, AuditAction.CREATE),
    Action.UPDATE_DEAL_STATUS: (EntityKind.DEAL, AuditAction.UPDATE),
    Action.CREATE_MISSION: (EntityKind.MISSION, AuditAction.CREATE),
    Action.UPDATE_MISSION_STATUS: (EntityKind.MISSION, AuditAction.UPDATE),
    Action.CREATE_QUOTE: (EntityKind.QUOTE, AuditAction.CREATE),
    Action.UPDATE_QUOTE_STATUS: (EntityKind.QUOTE, AuditAction.UPDATE),
    Action.CREATE_INVOICE: (EntityKind.INVOICE, AuditAction.CREATE),
    Action.CONVERT_QUOTE_TO_INVOICE: (EntityKind.INVOICE, AuditAction.CREATE),
    Action.UPDATE_INVOICE: (EntityKind.INVOICE, AuditAction.UPDATE),
    Action.UPDATE_INVOICE_STATUS: (EntityKind.INVOICE, AuditAction.UPDATE),
    Action.MARK_INVOICE_PAID: (EntityKind.INVOICE, AuditAction.UPDATE),
    Action.CREATE_DELIVERY_NOTE: (EntityKind.DELIVERY_NOTE, AuditAction.CREATE),
    Action.CREATE_PROPOSAL: (EntityKind.PROPOSAL, AuditAction.CREATE),
    Action.SET_PROPOSAL_STATUS: (EntityKind.PROPOSAL, AuditAction.UPDATE),
    Action.CREATE_BRIEF: (EntityKind.BRIEF, AuditAction.CREATE),
    Action.SEND_BRIEF: (EntityKind.BRIEF, AuditAction.UPDATE),
    Action.CREATE_REVIEW_REQUEST: (EntityKind.REVIEW_REQUEST, AuditAction.CREATE),
}

# Every action that writes, audited or not.
WRITE_ACTIONS: frozenset[Action] = frozenset(MUTATING_ACTIONS) | {
    Action.LINK_CONTACT_TO_CLIENT,
    Action.UNLINK_CONTACT_FROM_CLIENT,
    Action.UPDATE_CLIENT_CONTACT,
    Action.CREATE_CUSTOM_FIELD,
    Action.UPDATE_CUSTOM_FIELD_VALUE,
    Action.DELETE_CUSTOM_FIELD,
    Action.SET_PROPOSAL_RECIPIENTS,
}

READ_ONLY_TOOLS: list[dict[str, Any]] = [
    tool for action, tool in TOOLS.items() if action not in WRITE_ACTIONS
]

_VALIDATORS: dict[Action, Draft202012Validator] = {
    action: Draft202012Validator(tool["parameters"]) for action, tool in TOOLS.items()
}


def get_tool(name: str) -> Action:
    """Look up an action by name.

    Raises:
        UnknownTool: if the name is not in the catalog.
    """
    try:
        return Action(name)
    except ValueError:
        raise UnknownTool(name) from None


def validate_arguments(action: Action, arguments: dict[str, Any]) -> None:
    """Check arguments against the action's schema.

    Raises:
        ValidationError: with the most relevant schema violation, located by path.
    """
    error = best_match(_VALIDATORS[action].iter_errors(arguments))
    if error is None:
        return
    location = ".".join(str(p) for p in error.path) or "arguments"
    raise ValidationError(f"Argument invalide pour {action.value} ({location}): {error.message}")


def to_openai_tools() -> list[dict[str, Any]]:
    """Catalog in the OpenAI ``tools`` format."""
    return [
        {
            "type": "function",
            "function": {
                "name": tool["name"],
                "description": tool["description"],
                "parameters": tool["parameters"],
            },
        }
        for tool in ALL_TOOLS
    ]


def to_anthropic_tools() -> list[dict[str, Any]]:
    """Catalog in the Anthropic ``tools`` format."""
    return [
        {
            "name": tool["name"],
            "description": tool["description"],
            "input_schema": tool["parameters"],
        }
        for tool in ALL_TOOLS
    ]
