"""Money helpers shared by the parser and the workbook writer."""

import math
import re
from typing import Any, Optional

CURRENCY_FORMAT = '$#,##0.00'

_STRIP_RE = re.compile(r'[,$\s]')


def parse_amount(value: Any) -> Optional[float]:
  """Parse "2,205.00", "$2,205.00", 2205 etc. Returns None when it can't."""
  if isinstance(value, bool):
    return None
  if isinstance(value, (int, float)):
    return float(value) if math.isfinite(value) else None
  if value is None:
    return None
  cleaned = _STRIP_RE.sub('', str(value))
  if not cleaned:
    return None
  try:
    number = float(cleaned)
  except ValueError:
    return None
  return number if math.isfinite(number) else None


def to_number(value: Any) -> float:
  """Numeric coercion: anything unparseable, empty or non-finite becomes 0."""
  number = parse_amount(value)
  return 0.0 if number is None else number


def format_currency(value: Any) -> str:
  return f'${to_number(value):,.2f}'
