"""Builds the xlsx workbook: one formatted sheet per parsed page."""

import io
import logging
import re
from typing import Any, List, Sequence, Set

from openpyxl import Workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.styles import Alignment, Border, Font, Side
from openpyxl.utils import get_column_letter

from .amounts import CURRENCY_FORMAT, parse_amount, to_number
from .models import CANONICAL_COLUMNS, ParsedPage

logger = logging.getLogger(__name__)

MAX_SHEET_NAME = 31
TOTAL_LABEL = 'TOTAL FOR THIS DISBURSEMENT'
MIN_WIDTH = 12
MAX_WIDTH = 40

_ILLEGAL_SHEET_CHARS_RE = re.compile(r'[\\/*?:\[\]]')

THIN = Side(border_style='thin')
BORDER = Border(left=THIN, right=THIN, top=THIN, bottom=THIN)
CENTER = Alignment(vertical='center', horizontal='center')
BOLD = Font(bold=True)


def _as_string(value: Any) -> str:
  """Cell text; control characters that xlsx cannot store are dropped."""
  if value is None:
    return ''
  return ILLEGAL_CHARACTERS_RE.sub('', str(value))


def sanitize_sheet_name(raw: Any, index: int) -> str:
  """Strip characters Excel rejects and cap the length. ``index`` is 0-based."""
  name = _ILLEGAL_SHEET_CHARS_RE.sub('', _as_string(raw)).strip()
  if not name:
    name = f'Page {index + 1}'
  return name[:MAX_SHEET_NAME]


def unique_sheet_name(base: str, used: Set[str]) -> str:
  """Suffix ``base`` with " (2)", " (3)" ... until unused; records the result.

  Excel compares sheet names case-insensitively, so ``used`` holds
  lower-cased names.
  """
  name = base
  n = 2
  while name.lower() in used:
    suffix = f' ({n})'
    name = base[:MAX_SHEET_NAME - len(suffix)] + suffix
    n += 1
  used.add(name.lower())
  return name


def column_width(label: str) -> int:
  return max(MIN_WIDTH, min(MAX_WIDTH, len(label) + 6))


def is_currency_column(label: str) -> bool:
  return 'AMOUNT' in label.upper()


def _intended_sheet_name(page: ParsedPage, index: int) -> Any:
  if page.sheet_name:
    return page.sheet_name
  if page.header_lines:
    return page.header_lines[0]
  return f'Page {index + 1}'


def _set_currency(cell, value: Any):
  number = parse_amount(value)
  if number is None and _as_string(value).strip():
    # unparseable, keep what the page said
    cell.value = _as_string(value)
    return
  cell.value = 0.0 if number is None else number
  cell.number_format = CURRENCY_FORMAT


def _write_sheet(ws, page: ParsedPage):
  headers: List[str] = [_as_string(h) for h in page.columns] or list(CANONICAL_COLUMNS)
  width = len(headers)

  for col, label in enumerate(headers, start=1):
    ws.column_dimensions[get_column_letter(col)].width = column_width(label)

  row_idx = 1

  # Free-form header lines, exactly as parsed
  if page.header_lines:
    for line in page.header_lines:
      if width > 1:
        ws.merge_cells(start_row=row_idx, start_column=1, end_row=row_idx, end_column=width)
      cell = ws.cell(row=row_idx, column=1, value=_as_string(line))
      cell.alignment = CENTER
      row_idx += 1
    row_idx += 1

  for col, label in enumerate(headers, start=1):
    cell = ws.cell(row=row_idx, column=col, value=label)
    cell.font = BOLD
    cell.border = BORDER
    cell.alignment = CENTER
  row_idx += 1

  for row in page.rows:
    for col, label in enumerate(headers, start=1):
      cell = ws.cell(row=row_idx, column=col)
      raw = row.value_for(label)
      if is_currency_column(label):
        _set_currency(cell, raw)
      else:
        cell.value = _as_string(raw)
      cell.border = BORDER
      cell.alignment = CENTER
    row_idx += 1

  totals = page.totals
  count = totals.count if totals is not None and totals.count is not None else len(page.rows)
  if totals is not None and totals.amount is not None:
    amount = to_number(totals.amount)
  else:
    amount = sum(to_number(row.amount) for row in page.rows)

  row_idx += 1
  # Label spans all but the last two columns; narrow tables lose the label first
  if width >= 3:
    if width > 3:
      ws.merge_cells(start_row=row_idx, start_column=1, end_row=row_idx, end_column=width - 2)
    ws.cell(row=row_idx, column=1, value=TOTAL_LABEL)
  if width >= 2:
    ws.cell(row=row_idx, column=width - 1, value=count)
  amount_cell = ws.cell(row=row_idx, column=width, value=amount)
  amount_cell.number_format = CURRENCY_FORMAT

  for col in range(1, width + 1):
    cell = ws.cell(row=row_idx, column=col)
    cell.font = BOLD
    cell.border = BORDER
    cell.alignment = CENTER


def create_workbook(pages: Sequence[ParsedPage]) -> Workbook:
  """One sheet per page, in page order."""
  wb = Workbook()
  if not pages:
    logger.warning('No pages to write, workbook will contain an empty sheet')
    return wb
  wb.remove(wb.active)

  used: Set[str] = set()
  for idx, page in enumerate(pages):
    base = sanitize_sheet_name(_intended_sheet_name(page, idx), idx)
    title = unique_sheet_name(base, used)
    ws = wb.create_sheet(title=title)
    _write_sheet(ws, page)
    logger.info(f'Sheet "{title}": {len(page.rows)} rows')

  return wb


def workbook_to_bytes(wb: Workbook) -> bytes:
  buffer = io.BytesIO()
  wb.save(buffer)
  return buffer.getvalue()


def write_workbook(pages: Sequence[ParsedPage], path: str) -> Workbook:
  wb = create_workbook(pages)
  wb.save(path)
  logger.info(f'Wrote {len(wb.sheetnames)} sheets to {path}')
  return wb
