"""Scalar-field membership checks for values entering the verifier boundary."""

import logging
from typing import Any, Dict

from zk.poseidon import SNARK_SCALAR_FIELD

from .errors import InputOverflowError

logger = logging.getLogger(__name__)


def check_field_element(name: str, value: Any, modulus: int = SNARK_SCALAR_FIELD) -> int:
    """
    Return `value` as an int if it is a canonical field element.

    Anything at or above the modulus would alias to a different element
    inside the proof system, so it is rejected with an overflow naming the
    offending input. Negative or non-numeric values are not uint field
    elements either and get the same treatment.
    """
    if isinstance(value, bool):
        raise InputOverflowError(name)

    if isinstance(value, int):
        parsed = value
    elif isinstance(value, str):
        text = value.strip()
        try:
            parsed = int(text, 16) if text.lower().startswith("0x") else int(text, 10)
        except ValueError:
            raise InputOverflowError(name)
    else:
        raise InputOverflowError(name)

    if parsed < 0 or parsed >= modulus:
        logger.warning(f"Rejected out-of-field value for {name}")
        raise InputOverflowError(name)

    return parsed


def check_public_signals(signals: Dict[str, Any], modulus: int = SNARK_SCALAR_FIELD) -> Dict[str, int]:
    """Guard every named signal in order, failing on the first violation"""
    return {name: check_field_element(name, value, modulus) for name, value in signals.items()}
