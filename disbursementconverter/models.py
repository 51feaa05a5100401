"""Immutable records produced by the page parser."""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple, Union

Amount = Union[str, float, int]

CANONICAL_COLUMNS = (
  'STUDENT NO',
  'SIN',
  'GOV',
  'CERT #',
  'ABBREVIATED NAME',
  'EOS DATE',
  'AMOUNT',
)

# Canonical column label -> ParsedRow attribute
LABEL_FIELDS = {
  'STUDENT NO': 'student_no',
  'SIN': 'sin',
  'GOV': 'gov',
  'CERT #': 'cert',
  'ABBREVIATED NAME': 'name',
  'EOS DATE': 'eos_date',
  'AMOUNT': 'amount',
}


@dataclass(frozen=True)
class ParsedRow:
  """One disbursement record.

  Columns that are not part of the canonical schema are looked up in
  ``extra`` using the column label exactly as it appears in the header.
  """

  student_no: Optional[str] = None
  sin: Optional[str] = None
  gov: Optional[str] = None
  cert: Optional[str] = None
  name: Optional[str] = None
  eos_date: Optional[str] = None
  amount: Optional[Amount] = None
  extra: Mapping[str, Any] = field(default_factory=dict, hash=False)

  def __post_init__(self):
    object.__setattr__(self, 'extra', MappingProxyType(dict(self.extra)))

  def value_for(self, label: str) -> Any:
    attr = LABEL_FIELDS.get(label.strip().upper())
    if attr is not None:
      return getattr(self, attr)
    return self.extra.get(label)

  def to_dict(self) -> Dict[str, Any]:
    data = {attr: getattr(self, attr) for attr in LABEL_FIELDS.values()}
    data.update(self.extra)
    return data


@dataclass(frozen=True)
class ParsedTotals:
  count: Optional[int] = None
  amount: Optional[Amount] = None


@dataclass(frozen=True)
class ParsedPage:
  """Everything extracted from one page, in document order."""

  sheet_name: Optional[str] = None
  header_lines: Tuple[str, ...] = ()
  columns: Tuple[str, ...] = ()
  rows: Tuple[ParsedRow, ...] = ()
  totals: Optional[ParsedTotals] = None
