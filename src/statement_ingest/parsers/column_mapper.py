"""Resolution of logical statement fields to concrete column indices."""

import logging
import re
from typing import List, Optional, Sequence

from ..models.core import ColumnMap, LayoutConfig


logger = logging.getLogger(__name__)

ABBREVIATION_LENGTH = 2


def find_column_index(headers: Sequence[str], candidates: Sequence[str]) -> Optional[int]:
    """Return the first header index containing a candidate, trying candidates in order.

    Abbreviations of two letters or fewer must start a word, so "cr" finds
    "Cr Amount" but not "Description".
    """
    normalized = [header.lower().strip() for header in headers]
    for candidate in candidates:
        needle = candidate.lower()
        for index, header in enumerate(normalized):
            if len(needle) <= ABBREVIATION_LENGTH:
                if re.search(r'\b' + re.escape(needle), header):
                    return index
            elif needle in header:
                return index
    return None


def build_column_map(header_row: List[str], layout: LayoutConfig) -> ColumnMap:
    """Build the column map for one file from its header row.

    Each field takes the first header that contains one of its candidates.
    Candidates of two letters or fewer ("dr", "cr") only match at the start
    of a word; see ``find_column_index``.
    """
    indices = {
        field_name: find_column_index(header_row, layout.candidates(field_name))
        for field_name in ColumnMap.FIELDS
    }
    column_map = ColumnMap(**indices)

    logger.debug(f"Column map for {layout.bank_name}: {indices}")
    if column_map.missing_fields():
        logger.debug(f"Columns not found in header: {column_map.missing_fields()}")

    return column_map
