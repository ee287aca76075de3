from __future__ import annotations

from enum import Enum


class LeadStatus(str, Enum):
    NEW = "new"
    INITIAL_CONTACT = "initial_contact"
    NEGOTIATION = "negotiation"
    PROPOSAL_SENT = "proposal_sent"
    WON = "won"
    LOST = "lost"


class ProductType(str, Enum):
    CONSULTORIA = "consultoria"
    MENTORIA_COLETIVA = "mentoria_coletiva"
    MENTORIA_INDIVIDUAL = "mentoria_individual"
    CURSO_IDEA = "curso_idea"
    GUIA_IA = "guia_ia"
    CODIGO_PROMPTS = "codigo_prompts"
    COMBO_EBOOKS = "combo_ebooks"
    EBOOK_UNITARIO = "ebook_unitario"
    IMERSAO_IDEA = "imersao_idea"


PRODUCT_NAMES = {
    ProductType.CONSULTORIA.value: "Consultoria IDEA",
    ProductType.MENTORIA_COLETIVA.value: "Mentoria Coletiva",
    ProductType.MENTORIA_INDIVIDUAL.value: "Mentoria Individual",
    ProductType.CURSO_IDEA.value: "Curso IDEA",
    ProductType.GUIA_IA.value: "Guia de IA",
    ProductType.CODIGO_PROMPTS.value: "Código dos Prompts",
    ProductType.COMBO_EBOOKS.value: "Combo de E-books",
    ProductType.EBOOK_UNITARIO.value: "E-book Unitário",
    ProductType.IMERSAO_IDEA.value: "Imersão IDEA",
}


class InteractionType(str, Enum):
    WHATSAPP = "whatsapp"
    EMAIL = "email"
    CALL = "call"
    MEETING = "meeting"
    OTHER = "other"


class NotificationChannel(str, Enum):
    IN_APP = "in_app"
    WHATSAPP = "whatsapp"
    WHATSAPP_ZAPI = "whatsapp_zapi"


class LogStatus(str, Enum):
    SENT = "sent"
    FAILED = "failed"


class DedupWindow(str, Enum):
    CALENDAR_DAY = "calendar_day"
    ROLLING_24H = "rolling_24h"


def product_name(product: str) -> str:
    return PRODUCT_NAMES.get(product, product)
