"""Cache key derivation from a document identity."""

import hashlib
import math
import numbers

from .errors import InvalidKeyInput

NUMBER_PRECISION = 6


def canonical_number(value: float) -> str:
    """Fixed-precision text for a number, so 80, 80.0 and 80.00 agree."""
    number = float(value)
    if math.isnan(number):
        return "nan"
    if math.isinf(number):
        return "inf" if number > 0 else "-inf"
    text = f"{number:.{NUMBER_PRECISION}f}"
    # -0.000000 and 0.000000 are the same parameter
    if float(text) == 0:
        text = f"{0:.{NUMBER_PRECISION}f}"
    return text


def derive_key(numeric_parameter: float, template_reference: str) -> str:
    """
    Stable cache key for a (numeric parameter, template reference) pair.

    Args:
        numeric_parameter: e.g. the user's maximal bench-press load
        template_reference: identifier of the plan template / strategy

    Returns:
        Hex SHA-256 digest

    Raises:
        InvalidKeyInput: reference is empty, or the parameter is not a number
    """
    if template_reference is None or not str(template_reference).strip():
        raise InvalidKeyInput("Template reference must not be empty")
    if isinstance(numeric_parameter, bool) or not isinstance(numeric_parameter, numbers.Real):
        raise InvalidKeyInput(f"Numeric parameter must be a number, got {numeric_parameter!r}")

    material = f"{canonical_number(numeric_parameter)}|{template_reference}"
    return hashlib.sha256(material.encode("utf-8")).hexdigest()
