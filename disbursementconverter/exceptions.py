"""Errors raised by the disbursement converter."""


class ConversionError(Exception):
  """Base class for conversion failures."""


class PageExtractionError(ConversionError):
  """No text could be produced for a page (native text layer or OCR)."""

  def __init__(self, page_number: int, message: str = ''):
    self.page_number = page_number
    detail = f': {message}' if message else ''
    super().__init__(f'Could not extract text from page {page_number}{detail}')
