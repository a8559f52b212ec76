"""
Message / Bank Classifier

Normalizes free-text failure messages from the payment processor into a small
closed set of categories, and matches bank names against configured lists.

The keyword table is evaluated top to bottom and the first matching category
wins. Specific stop reasons (customer order, possible data error) come before
the generic hard-decline bucket so generic words like "cuenta" or "cancel"
do not swallow them. Insufficient-funds wording is excluded from the
hard-decline bucket: a temporary funding gap is never a dead account.
"""
import unicodedata
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

SETTLED_AMOUNT = 1.0


class FailureCategory(str, Enum):
    SETTLED = "settled"
    CHARGEBACK = "chargeback"
    CUSTOMER_STOP = "customer_stop"
    POSSIBLE_ERROR = "possible_error"
    HARD_DECLINE = "hard_decline"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    NETWORK_ERROR = "network_error"
    FRAUD = "fraud"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class KeywordRule:
    category: FailureCategory
    keywords: tuple[str, ...]
    excludes: tuple[str, ...] = ()


_INSUFFICIENT_FUNDS_KEYWORDS = (
    "fondos insuficientes",
    "saldo insuficiente",
    "insuficiencia de fondos",
    "sin fondos",
    "insufficient funds",
    "insufficient balance",
    "not sufficient funds",
)

# Keywords are stored lower-case and accent-free; see normalize_text.
KEYWORD_TABLE: tuple[KeywordRule, ...] = (
    KeywordRule(
        FailureCategory.CHARGEBACK,
        ("contracargo", "chargeback", "charge back"),
    ),
    KeywordRule(
        FailureCategory.CUSTOMER_STOP,
        (
            "por orden del cliente",
            "cancelacion del servicio",
            "domiciliacion dada de baja",
            "stopped by customer",
            "customer requested stop",
            "mandate revoked",
        ),
    ),
    KeywordRule(
        FailureCategory.POSSIBLE_ERROR,
        (
            "cuenta inexistente",
            "cuenta no pertenece al banco receptor",
            "account does not exist",
            "no such account",
            "invalid account number",
        ),
    ),
    KeywordRule(
        FailureCategory.HARD_DECLINE,
        (
            "cuenta cancelada",
            "cuenta bloqueada",
            "baja por oficina",
            "cliente no tiene autorizado el servicio",
            "account closed",
            "account blocked",
            "account frozen",
            "not authorized",
        ),
        excludes=_INSUFFICIENT_FUNDS_KEYWORDS,
    ),
    KeywordRule(FailureCategory.INSUFFICIENT_FUNDS, _INSUFFICIENT_FUNDS_KEYWORDS),
    KeywordRule(
        FailureCategory.NETWORK_ERROR,
        (
            "tiempo de espera",
            "error de comunicacion",
            "servicio no disponible",
            "timeout",
            "timed out",
            "network error",
            "service unavailable",
        ),
    ),
    KeywordRule(
        FailureCategory.FRAUD,
        ("fraude", "tarjeta robada", "reporte de robo", "fraud", "stolen", "lost card"),
    ),
)


def normalize_text(text: Optional[str]) -> str:
    """Lower-case and strip accents so keyword matching is encoding-proof."""
    if not text:
        return ""
    decomposed = unicodedata.normalize("NFKD", str(text).lower())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def classify_message(message: Optional[str]) -> FailureCategory:
    """
    Classify a failure message.

    Example:
        >>> classify_message("Cuenta bloqueada")
        <FailureCategory.HARD_DECLINE: 'hard_decline'>
        >>> classify_message("Fondos insuficientes")
        <FailureCategory.INSUFFICIENT_FUNDS: 'insufficient_funds'>
    """
    text = normalize_text(message)
    if not text:
        return FailureCategory.UNKNOWN

    for rule in KEYWORD_TABLE:
        if any(excluded in text for excluded in rule.excludes):
            continue
        if any(keyword in text for keyword in rule.keywords):
            return rule.category
    return FailureCategory.UNKNOWN


def classify_loan(amount: float, message: Optional[str]) -> FailureCategory:
    """Category of a loan: settled by amount first, then by failure message."""
    if amount <= SETTLED_AMOUNT:
        return FailureCategory.SETTLED
    return classify_message(message)


def bank_matches(bank: Optional[str], tokens: Iterable[str]) -> bool:
    """True when the bank name contains any configured token (case-insensitive)."""
    name = normalize_text(bank).upper()
    if not name:
        return False
    return any(token and normalize_text(token).upper() in name for token in tokens)
