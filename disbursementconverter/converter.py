"""Converts disbursement report PDFs into xlsx workbooks.

Each page is read from the PDF text layer when it has one; scanned pages
fall back to OCR.  Every page becomes one sheet of the output workbook.
"""

import logging
import os
from typing import Callable, List, Optional, Sequence

import pandas as pd
import pdfplumber

from .amounts import to_number
from .exceptions import PageExtractionError
from .models import LABEL_FIELDS, ParsedPage
from .ocr_converter import OCRPageReader
from .parser import normalize_line, parse_page
from .workbook import create_workbook, workbook_to_bytes, write_workbook

logger = logging.getLogger(__name__)

# Text layers shorter than this are treated as scanned pages
MIN_TEXT_LENGTH = 50

ProgressCallback = Callable[[int, str], None]


class DisbursementConverter:
  def __init__(self, min_text_length: int = MIN_TEXT_LENGTH,
               ocr_reader: Optional[OCRPageReader] = None):
    self.min_text_length = min_text_length
    self.ocr_reader = ocr_reader or OCRPageReader()

  def extract_pages(self, pdf_path: str,
                    progress_callback: Optional[ProgressCallback] = None) -> List[ParsedPage]:
    """Parse every page of the PDF, in order."""
    pages = []

    with pdfplumber.open(pdf_path) as pdf:
      total_pages = len(pdf.pages)
      logger.info(f"PDF loaded: {pdf_path} ({total_pages} pages)")

      for page_number, page in enumerate(pdf.pages, start=1):
        if progress_callback:
          progress = (page_number - 1) * 90 // max(total_pages, 1)
          progress_callback(progress, f'Reading page {page_number}/{total_pages}...')

        text = self._page_text(pdf_path, page, page_number)
        pages.append(parse_page(text, page_number))

    if progress_callback:
      progress_callback(90, 'Pages parsed')
    return pages

  def _page_text(self, pdf_path: str, page, page_number: int) -> str:
    try:
      text = page.extract_text() or ''
    except Exception as e:
      raise PageExtractionError(page_number, str(e)) from e

    if len(normalize_line(text)) > self.min_text_length:
      logger.info(f"Page {page_number}: using text layer ({len(text)} characters)")
      return text

    logger.info(f"Page {page_number}: text layer empty or too short, trying OCR")
    return self.ocr_reader.read_page(pdf_path, page_number)

  def convert(self, pdf_path: str, xlsx_path: str,
              progress_callback: Optional[ProgressCallback] = None) -> List[ParsedPage]:
    """Write one workbook for the PDF and return the parsed pages."""
    pages = self.extract_pages(pdf_path, progress_callback)

    if progress_callback:
      progress_callback(95, 'Building Excel workbook...')
    write_workbook(pages, xlsx_path)

    if progress_callback:
      progress_callback(100, 'Processing complete!')
    return pages

  def convert_to_bytes(self, pdf_path: str) -> bytes:
    return workbook_to_bytes(create_workbook(self.extract_pages(pdf_path)))


def default_output_path(pdf_path: str) -> str:
  root, _ = os.path.splitext(pdf_path)
  return root + '.xlsx'


def rows_dataframe(pages: Sequence[ParsedPage]) -> pd.DataFrame:
  """Flatten the rows of all pages into one DataFrame, one row per record."""
  records = []
  for page_number, page in enumerate(pages, start=1):
    for row in page.rows:
      record = {'page': page_number, 'sheet': page.sheet_name}
      record.update(row.to_dict())
      records.append(record)

  columns = ['page', 'sheet'] + list(LABEL_FIELDS.values())
  if not records:
    return pd.DataFrame(columns=columns)

  df = pd.DataFrame(records)
  df['amount'] = df['amount'].map(to_number)
  return df
