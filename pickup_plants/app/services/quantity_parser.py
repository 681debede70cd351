from decimal import Decimal, InvalidOperation
from typing import Optional, Union

_UNICODE_FRACTIONS = {
    "½": "1/2",
    "⅓": "1/3",
    "⅔": "2/3",
    "¼": "1/4",
    "¾": "3/4",
    "⅛": "1/8",
}


def parse_quantity_display(raw: Optional[Union[str, int, float, Decimal]]) -> Optional[Decimal]:
    """Parse an ingredient amount as typed into the recipe form.

    Accepts "2", "0.5", "1/2", "1 1/2" and "1½". Returns None for blanks and
    anything unparseable.
    """
    if raw is None:
        return None
    if isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float, Decimal)):
        try:
            return Decimal(str(raw))
        except InvalidOperation:
            return None
    value = raw.strip()
    if not value:
        return None
    for glyph, ascii_frac in _UNICODE_FRACTIONS.items():
        if glyph in value:
            prefix = value.replace(glyph, "").strip()
            value = f"{prefix} {ascii_frac}" if prefix else ascii_frac

    # Whole or decimal numbers
    try:
        if "/" not in value and " " not in value:
            number = Decimal(value)
            return number if number.is_finite() else None
    except InvalidOperation:
        return None

    # Fractions like "1/2" or "1 1/2"
    try:
        if " " in value:
            whole_part, frac_part = value.split(" ", 1)
            whole = Decimal(whole_part)
            num_str, denom_str = frac_part.strip().split("/", 1)
            num = Decimal(num_str)
            denom = Decimal(denom_str)
            if denom == 0:
                return None
            return whole + (num / denom)
        if "/" in value:
            num_str, denom_str = value.split("/", 1)
            num = Decimal(num_str)
            denom = Decimal(denom_str)
            if denom == 0:
                return None
            return num / denom
    except (InvalidOperation, ValueError):
        return None

    return None
