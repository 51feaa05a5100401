"""
Disbursement Converter Package

Extracts disbursement records from PDF reports into one xlsx sheet per page.
"""

from .converter import DisbursementConverter, rows_dataframe
from .exceptions import ConversionError, PageExtractionError
from .models import CANONICAL_COLUMNS, ParsedPage, ParsedRow, ParsedTotals
from .parser import parse_page
from .workbook import create_workbook, workbook_to_bytes, write_workbook

__version__ = "1.0.0"
__author__ = "Disbursement Converter Team"

__all__ = [
  "DisbursementConverter",
  "rows_dataframe",
  "ConversionError",
  "PageExtractionError",
  "CANONICAL_COLUMNS",
  "ParsedPage",
  "ParsedRow",
  "ParsedTotals",
  "parse_page",
  "create_workbook",
  "workbook_to_bytes",
  "write_workbook",
]
