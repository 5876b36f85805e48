"""Purchase order number formatting: ``PO-<year>-<5-digit sequence>``."""

import re

PO_NUMBER_SEQUENCE = "po_number"

PO_NUMBER_PATTERN = re.compile(r"^PO-\d{4}-\d{5,}$")


def format_po_number(year: int, sequence_value: int) -> str:
    """
    Render a PO number.

    The sequence is zero-padded to five digits; values past 99999 keep
    growing in width rather than wrapping.
    """
    if sequence_value < 1:
        raise ValueError(f"sequence value must be >= 1, got {sequence_value}")
    return f"PO-{year:04d}-{sequence_value:05d}"
