import re
import unicodedata
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Optional, Union

CENTS = Decimal("0.01")


def normalize_text(text: str) -> str:
    """Purpose: Normalize free-form customer text for stable keyword matching.
    Inputs/Outputs: Input is a raw string; output is a lowercase ASCII-only string with
        diacritics removed and whitespace collapsed.
    Side Effects / State: None; pure function.
    Dependencies: Uses unicodedata and regex; called by the reply rules.
    Failure Modes: Returns an empty string when input is falsy.
    If Removed: Keyword rules miss accented input ("água", "energético").
    Testing Notes: Validate Portuguese text is normalized (e.g., "Água" -> "agua").
    """
    # Case-fold and strip diacritics for consistent matching.
    if not text:
        return ""
    lowered = text.casefold()
    decomposed = unicodedata.normalize("NFD", lowered)
    stripped = "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")
    cleaned = re.sub(r"[^a-z0-9\s\-_/.,]+", " ", stripped)
    return re.sub(r"\s+", " ", cleaned).strip()


def normalize_key(text: str) -> str:
    """Purpose: Produce a compact normalization key without spaces.
    Inputs/Outputs: Input is a raw string; output is normalized string with spaces removed.
    Side Effects / State: None; pure function.
    Dependencies: Calls normalize_text; used for catalog field synonyms.
    Failure Modes: Returns empty string for falsy input; otherwise deterministic.
    If Removed: Catalog files using "Preço" or "is returnable" headers stop loading.
    Testing Notes: Ensure spaces are removed after normalization.
    """
    return normalize_text(text).replace(" ", "").replace("_", "")


def to_money(value: Union[Decimal, int, float, str]) -> Decimal:
    """Quantize a value to cents."""
    return Decimal(str(value)).quantize(CENTS)


def format_brl(value: Union[Decimal, int, float]) -> str:
    """Purpose: Render an amount the way the storefront shows prices.
    Inputs/Outputs: Input is a numeric amount; output is "R$ 11.00".
    Side Effects / State: None.
    Dependencies: Uses to_money.
    Failure Modes: Non-numeric values raise InvalidOperation.
    If Removed: Replies and confirmations lose a consistent price format.
    Testing Notes: Check integer and fractional amounts render with two decimals.
    """
    return f"R$ {to_money(value):.2f}"


def parse_amount(raw: Union[str, float, None]) -> Optional[Decimal]:
    """Purpose: Parse a customer-typed amount such as "50", "50.00" or "50,00".
    Inputs/Outputs: Input is free text or None; output is a Decimal or None when blank.
    Side Effects / State: None.
    Dependencies: Uses Decimal and to_money.
    Failure Modes: Raises ValueError on unparseable or negative text.
    If Removed: Change-for values typed with a comma cannot be accepted.
    Testing Notes: Blank returns None; "R$ 50,00" returns Decimal("50.00").
    """
    if raw is None:
        return None
    cleaned = str(raw).strip().replace("R$", "").replace(" ", "")
    if not cleaned:
        return None
    if "," in cleaned:
        cleaned = cleaned.replace(".", "").replace(",", ".")
    try:
        amount = to_money(cleaned)
    except InvalidOperation as exc:
        raise ValueError(f"invalid amount: {raw!r}") from exc
    if amount < 0:
        raise ValueError(f"amount must not be negative: {raw!r}")
    return amount


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
