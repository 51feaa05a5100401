"""Turns the text of one disbursement page into a ParsedPage.

The page text comes either from the PDF text layer or from OCR, so the
parser assumes nothing beyond newline separated lines.  A page is read as:

1. free-form preamble lines (report title, school, period ...),
2. a header line naming the columns,
3. one line per disbursement record,
4. an optional ``TOTAL`` line, after which the rest of the page is ignored.
"""

import logging
import re
from typing import List, Optional, Sequence

from .amounts import to_number
from .models import CANONICAL_COLUMNS, ParsedPage, ParsedRow, ParsedTotals

logger = logging.getLogger(__name__)

HEADER_KEYWORDS = ('STUDENT', 'SIN', 'GOV', 'CERT', 'NAME', 'EOS', 'DATE', 'AMOUNT')
MIN_HEADER_KEYWORDS = 3
# Noisy pages without a recognisable header are assumed to start the table here
FALLBACK_HEADER_INDEX = 4
MIN_COLUMNS = 3

_SPACES_RE = re.compile(r'[ \t]+')
_COLUMN_SPLIT_RE = re.compile(r' {2,}|\t+')
_LINE_SPLIT_RE = re.compile(r'\r?\n')

ROW_RE = re.compile(
  r"""^
  (?P<student_no>\d{3,}) \s+
  (?P<sin>\d{3}-\d{3}-\d{3}) \s+
  (?P<gov>[A-Z]{2})? \s*
  (?P<cert>\d{4,}) \s+
  (?P<name>.+?) \s+
  (?P<eos_date>\d{2}/\d{2}/\d{2}) \s+
  (?P<amount>\$?\d{1,3}(?:,?\d{3})*\.\d{2})
  $""",
  re.VERBOSE,
)

TOTAL_AMOUNT_RE = re.compile(r'\$?\s*(\d[\d,]*\.\d{2})\b')
# A bare count: not glued to a "$", a digit group or a decimal part
TOTAL_COUNT_RE = re.compile(r'(?<![\d$])(?<!\d[.,])\b(\d{1,4})\b(?![.,]?\d)')


def normalize_line(line: str) -> str:
  line = line.replace('\u00a0', ' ')
  return _SPACES_RE.sub(' ', line).strip()


def looks_like_header(line: str) -> bool:
  upper = line.upper()
  hits = sum(1 for token in HEADER_KEYWORDS if token in upper)
  return hits >= MIN_HEADER_KEYWORDS


def find_header_index(lines: Sequence[str]) -> int:
  """Index of the first header-like line, or the fallback boundary."""
  for i, line in enumerate(lines):
    if looks_like_header(line):
      return i
  return min(FALLBACK_HEADER_INDEX, len(lines))


def split_columns(header_line: Optional[str]) -> List[str]:
  """Column labels from the header line, or the canonical schema.

  The labels only drive the display; they do not have to agree with the
  fields the row grammar extracts.
  """
  text = (header_line or '').replace('|', '  ')
  parts = [part.strip() for part in _COLUMN_SPLIT_RE.split(text)]
  parts = [part for part in parts if part]
  if len(parts) < MIN_COLUMNS:
    return list(CANONICAL_COLUMNS)
  return parts


def parse_row(line: str) -> Optional[ParsedRow]:
  match = ROW_RE.match(normalize_line(line))
  if not match:
    return None
  fields = match.groupdict()
  return ParsedRow(
    student_no=fields['student_no'],
    sin=fields['sin'],
    gov=(fields['gov'] or '').strip() or None,
    cert=fields['cert'],
    name=fields['name'],
    eos_date=fields['eos_date'],
    amount=fields['amount'],
  )


def parse_totals(line: str) -> Optional[ParsedTotals]:
  if 'TOTAL' not in line.upper():
    return None

  amount = None
  amount_match = TOTAL_AMOUNT_RE.search(line)
  if amount_match:
    amount = to_number(amount_match.group(1))

  count = None
  counts = TOTAL_COUNT_RE.findall(line)
  if counts:
    count = int(counts[-1])

  if amount is None and count is None:
    return None
  return ParsedTotals(count=count, amount=amount)


def parse_lines(lines: Sequence[str], page_number: int) -> ParsedPage:
  clean = [normalize_line(line) for line in lines]
  clean = [line for line in clean if line]

  header_idx = find_header_index(clean)
  header_lines = clean[:header_idx]
  header_line = clean[header_idx] if header_idx < len(clean) else ''
  columns = split_columns(header_line)
  logger.debug(f'Page {page_number}: header at line {header_idx}, columns {columns}')

  rows = []
  totals = None
  for line in clean[header_idx + 1:]:
    totals = parse_totals(line)
    if totals is not None:
      logger.debug(f'Page {page_number}: totals line "{line}"')
      break
    row = parse_row(line)
    if row is not None:
      rows.append(row)
    else:
      logger.debug(f'Page {page_number}: skipping line "{line}"')

  logger.info(f'Page {page_number}: parsed {len(rows)} rows'
              f'{" with totals" if totals else ""}')

  sheet_name = header_lines[0] if header_lines else f'Page {page_number}'
  return ParsedPage(
    sheet_name=sheet_name,
    header_lines=tuple(header_lines),
    columns=tuple(columns),
    rows=tuple(rows),
    totals=totals,
  )


def parse_page(raw_text: str, page_number: int) -> ParsedPage:
  """Parse the raw text of one page; ``page_number`` is 1-based."""
  return parse_lines(_LINE_SPLIT_RE.split(raw_text or ''), page_number)
