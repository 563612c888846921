from __future__ import annotations

"""Scripted reply rules for the storefront chat.

Rules are evaluated top to bottom against the normalized message and the first rule
with a keyword present as a whole word (plural "s" allowed) answers; rules are never
combined. The last rule matches everything, so every message gets a reply.
"""

import logging
import re
from dataclasses import dataclass
from typing import Callable, List, Sequence

from .catalog import BeverageType, Catalog, Product
from .utils import format_brl, normalize_text

logger = logging.getLogger("storefront.reply")

RETURNABLE_SUFFIX = " - ⚠️ Retornável (necessário trazer o casco)"

BEER_KEYWORDS = ["cerveja", "beer"]
SODA_KEYWORDS = ["refrigerante", "coca", "pepsi"]
ENERGY_KEYWORDS = ["energetico", "red bull", "monster"]
WATER_KEYWORDS = ["agua"]
CHECKOUT_KEYWORDS = ["fechar pedido", "finalizar"]

EMPTY_CART_REPLY = (
    "🛒 Seu carrinho está vazio! Adicione alguns produtos primeiro. "
    'Use o menu "Produtos" para ver nosso catálogo.'
)
CHECKOUT_REPLY = "Para fechar seu pedido, preciso de algumas informações. Vou te ajudar no checkout! 📋"
FALLBACK_REPLY = (
    '😊 Entendi! Para ver todos os nossos produtos, use o menu "Produtos". '
    "Ou me fale que tipo de bebida você está procurando: cerveja, refrigerante, água, energético..."
)
OUT_OF_STOCK_TEMPLATE = "😕 No momento estamos sem {label} disponíveis. Posso te ajudar com outra bebida?"


@dataclass(frozen=True)
class ReplyRule:
    """Keyword trigger paired with the reply it produces."""
    name: str
    keywords: Sequence[str]
    respond: Callable[[Catalog, int], str]

    def matches(self, normalized: str) -> bool:
        return any(re.search(rf"\b{re.escape(keyword)}s?\b", normalized) for keyword in self.keywords)


@dataclass(frozen=True)
class ListingTemplate:
    beverage_type: BeverageType
    heading: str
    closing: str
    label: str


def format_product_line(product: Product) -> str:
    line = f"{product.name} ({product.volume}) - {format_brl(product.price)}"
    if product.is_returnable:
        line += RETURNABLE_SUFFIX
    return line


def _listing(template: ListingTemplate) -> Callable[[Catalog, int], str]:
    def respond(catalog: Catalog, cart_size: int) -> str:
        products = catalog.by_type(template.beverage_type)
        if not products:
            return OUT_OF_STOCK_TEMPLATE.format(label=template.label)
        listing = "\n".join(format_product_line(product) for product in products)
        return f"{template.heading}\n\n{listing}\n\n{template.closing}"

    return respond


def _checkout(catalog: Catalog, cart_size: int) -> str:
    if cart_size <= 0:
        return EMPTY_CART_REPLY
    return CHECKOUT_REPLY


def _fallback(catalog: Catalog, cart_size: int) -> str:
    return FALLBACK_REPLY


REPLY_RULES: List[ReplyRule] = [
    ReplyRule(
        "beer",
        BEER_KEYWORDS,
        _listing(ListingTemplate(BeverageType.BEER, "🍺 Temos essas cervejas disponíveis:", "Qual você gostaria de pedir?", "cervejas")),
    ),
    ReplyRule(
        "soda",
        SODA_KEYWORDS,
        _listing(ListingTemplate(BeverageType.SODA, "🥤 Temos esses refrigerantes:", "Qual você quer?", "refrigerantes")),
    ),
    ReplyRule(
        "energy",
        ENERGY_KEYWORDS,
        _listing(ListingTemplate(BeverageType.ENERGY, "⚡ Temos esses energéticos:", "Qual você quer?", "energéticos")),
    ),
    ReplyRule(
        "water",
        WATER_KEYWORDS,
        _listing(ListingTemplate(BeverageType.WATER, "💧 Temos essas águas:", "Quantas você quer?", "águas")),
    ),
    ReplyRule("checkout", CHECKOUT_KEYWORDS, _checkout),
]
FALLBACK_RULE = ReplyRule("fallback", (), _fallback)


def match_rule(text: str, rules: Sequence[ReplyRule] = REPLY_RULES) -> ReplyRule:
    """Return the first rule triggered by the text, or the fallback rule."""
    normalized = normalize_text(text)
    for rule in rules:
        if rule.matches(normalized):
            return rule
    return FALLBACK_RULE


def reply(text: str, catalog: Catalog, cart_size: int) -> str:
    """Purpose: Produce the scripted reply for a customer message.
    Inputs/Outputs: Inputs are the raw message, the catalog and the number of cart
        lines; output is the reply string.
    Side Effects / State: None; pure function apart from debug logging.
    Dependencies: match_rule over REPLY_RULES.
    Failure Modes: None; unmatched messages get FALLBACK_REPLY.
    If Removed: The chat cannot answer customers.
    Testing Notes: "cerveja e coca" must answer with the beer listing only.
    """
    rule = match_rule(text)
    logger.debug("reply rule=%s cart_size=%d", rule.name, cart_size)
    return rule.respond(catalog, cart_size)
