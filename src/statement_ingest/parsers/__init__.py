"""Statement parsers for delimited exports and free-form text"""

from .base import StatementParser, DataTransformer
from .column_mapper import build_column_map
from .delimited_parser import DelimitedStatementParser, parse_delimited_statement
from .freeform_parser import FreeformStatementParser, parse_freeform_statement_text
from .layouts import LAYOUTS, detect_bank, get_layout, supported_bank_names

__all__ = [
    'StatementParser',
    'DataTransformer',
    'DelimitedStatementParser',
    'FreeformStatementParser',
    'LAYOUTS',
    'build_column_map',
    'detect_bank',
    'get_layout',
    'parse_delimited_statement',
    'parse_freeform_statement_text',
    'supported_bank_names',
]
