import argparse
import logging
import sys

from .converter import MIN_TEXT_LENGTH, DisbursementConverter, default_output_path
from .exceptions import ConversionError

logger = logging.getLogger('disbursementconverter')


def main(argv=None):
  parser = argparse.ArgumentParser(description='Convert a disbursement report PDF to Excel, one sheet per page')
  parser.add_argument('pdf', help='Input PDF file')
  parser.add_argument('--output', help='Output .xlsx file (default: next to the PDF)')
  parser.add_argument('--min-text-length', type=int, default=MIN_TEXT_LENGTH,
                      help='Pages with less native text than this are OCRed')
  parser.add_argument('--verbose', action='store_true', help='Log every parsing decision')
  args = parser.parse_args(argv)

  logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                      format='%(levelname)s | %(message)s')

  output = args.output or default_output_path(args.pdf)
  converter = DisbursementConverter(min_text_length=args.min_text_length)
  try:
    pages = converter.convert(args.pdf, output)
  except ConversionError as e:
    logger.error(str(e))
    return 1

  rows = sum(len(page.rows) for page in pages)
  print(f'{output}: {len(pages)} sheets, {rows} rows')
  return 0


if __name__ == '__main__':
  sys.exit(main())
