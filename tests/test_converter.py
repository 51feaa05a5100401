import os
import tempfile
import unittest
from unittest import mock

from fpdf import FPDF
from openpyxl import load_workbook

from disbursementconverter.__main__ import main
from disbursementconverter.converter import DisbursementConverter, default_output_path, rows_dataframe
from disbursementconverter.exceptions import PageExtractionError
from disbursementconverter.models import CANONICAL_COLUMNS
from disbursementconverter.ocr_converter import OCRPageReader

TEXT_PAGE = [
  'ASC DISBURSEMENT REPORT',
  'NORTHERN COLLEGE',
  'STUDENT NO | SIN | GOV | CERT # | ABBREVIATED NAME | EOS DATE | AMOUNT',
  '000123 123-456-789 ON 45678 DOE JOHN 08/09/23 $2,205.00',
  '000124 123-456-780 ON 45679 ROE JANE 08/09/23 $2,205.00',
  'TOTAL 2 $4,410.00',
  'Page 1 of 2',
]

OCR_TEXT = '\n'.join([
  'ASC DISBURSEMENT REPORT',
  'STUDENT NO  SIN  GOV  CERT #  ABBREVIATED NAME  EOS DATE  AMOUNT',
  '000200 222-333-444 AB 55555 SCANNED ROW 01/10/23 $100.00',
])


class ConverterTest(unittest.TestCase):
  def _create_pdf(self, path):
    pdf = FPDF()
    pdf.set_font('Arial', size=12)
    pdf.add_page()
    for line in TEXT_PAGE:
      pdf.cell(0, 10, line, ln=True)
    # a "scanned" page: next to no text layer
    pdf.add_page()
    pdf.cell(0, 10, 'scan', ln=True)
    pdf.output(path)

  def setUp(self):
    self.tmp = tempfile.TemporaryDirectory()
    self.pdf_path = os.path.join(self.tmp.name, 'sample.pdf')
    self._create_pdf(self.pdf_path)
    self.ocr = mock.create_autospec(OCRPageReader, instance=True)
    self.ocr.read_page.return_value = OCR_TEXT

  def tearDown(self):
    self.tmp.cleanup()

  def test_extract_pages(self):
    converter = DisbursementConverter(ocr_reader=self.ocr)
    pages = converter.extract_pages(self.pdf_path)

    self.assertEqual(len(pages), 2)
    first, second = pages
    self.assertEqual(first.sheet_name, 'ASC DISBURSEMENT REPORT')
    self.assertEqual(first.columns, CANONICAL_COLUMNS)
    self.assertEqual([r.name for r in first.rows], ['DOE JOHN', 'ROE JANE'])
    self.assertEqual(first.totals.count, 2)
    self.assertEqual(first.totals.amount, 4410.0)

    self.ocr.read_page.assert_called_once_with(self.pdf_path, 2)
    self.assertEqual(second.rows[0].gov, 'AB')

  def test_convert_writes_workbook(self):
    converter = DisbursementConverter(ocr_reader=self.ocr)
    xlsx_path = os.path.join(self.tmp.name, 'out.xlsx')
    progress = []
    converter.convert(self.pdf_path, xlsx_path, progress_callback=lambda p, m: progress.append(p))

    wb = load_workbook(xlsx_path)
    self.assertEqual(wb.sheetnames, ['ASC DISBURSEMENT REPORT', 'ASC DISBURSEMENT REPORT (2)'])
    self.assertEqual(progress[-1], 100)
    self.assertEqual(progress, sorted(progress))

  @mock.patch('disbursementconverter.converter.write_workbook')
  def test_convert_delegates_to_write_workbook(self, write_workbook):
    converter = DisbursementConverter(ocr_reader=self.ocr)
    xlsx_path = os.path.join(self.tmp.name, 'out.xlsx')
    pages = converter.convert(self.pdf_path, xlsx_path)
    write_workbook.assert_called_once_with(pages, xlsx_path)

  def test_convert_to_bytes(self):
    data = DisbursementConverter(ocr_reader=self.ocr).convert_to_bytes(self.pdf_path)
    self.assertTrue(data.startswith(b'PK'))

  def test_ocr_failure_propagates(self):
    self.ocr.read_page.side_effect = PageExtractionError(2, 'tesseract missing')
    converter = DisbursementConverter(ocr_reader=self.ocr)
    with self.assertRaises(PageExtractionError) as ctx:
      converter.extract_pages(self.pdf_path)
    self.assertEqual(ctx.exception.page_number, 2)

  def test_rows_dataframe(self):
    pages = DisbursementConverter(ocr_reader=self.ocr).extract_pages(self.pdf_path)
    df = rows_dataframe(pages)
    self.assertEqual(len(df), 3)
    self.assertEqual(list(df['page']), [1, 1, 2])
    self.assertAlmostEqual(df['amount'].sum(), 4510.0)
    self.assertTrue(rows_dataframe([]).empty)

  def test_default_output_path(self):
    self.assertEqual(default_output_path('/x/report.PDF'), '/x/report.xlsx')


class OCRPageReaderTest(unittest.TestCase):
  @mock.patch('disbursementconverter.ocr_converter.OCR_AVAILABLE', False)
  def test_unavailable(self):
    with self.assertRaises(PageExtractionError):
      OCRPageReader().read_page('missing.pdf', 1)


class CommandLineTest(unittest.TestCase):
  @mock.patch('disbursementconverter.__main__.DisbursementConverter')
  def test_main(self, converter_cls):
    converter_cls.return_value.convert.return_value = []
    self.assertEqual(main(['in/report.pdf', '--min-text-length', '10']), 0)
    converter_cls.assert_called_once_with(min_text_length=10)
    converter_cls.return_value.convert.assert_called_once_with('in/report.pdf', 'in/report.xlsx')

  @mock.patch('disbursementconverter.__main__.DisbursementConverter')
  def test_main_reports_failure(self, converter_cls):
    converter_cls.return_value.convert.side_effect = PageExtractionError(1)
    self.assertEqual(main(['report.pdf', '--output', 'out.xlsx']), 1)


if __name__ == '__main__':
  unittest.main()
