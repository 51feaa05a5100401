"""OCR text for scanned PDF pages that have no usable text layer."""

import logging

from .exceptions import PageExtractionError

# OCR imports with fallbacks
try:
    import pytesseract
    from pdf2image import convert_from_path
    OCR_AVAILABLE = True
except ImportError:
    OCR_AVAILABLE = False

logger = logging.getLogger(__name__)

# 2x the 72 dpi PDF user space
OCR_DPI = 144
OCR_LANG = 'eng'
# Only characters that appear in disbursement reports
CHAR_WHITELIST = (
    'ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-/$:,.()#'
)
TESSERACT_CONFIG = (
    f'--psm 6 -c preserve_interword_spaces=1 -c tessedit_char_whitelist={CHAR_WHITELIST}'
)


class OCRPageReader:
    """Renders single PDF pages and runs Tesseract over them."""

    def __init__(self, dpi: int = OCR_DPI, lang: str = OCR_LANG,
                 config: str = TESSERACT_CONFIG):
        self.dpi = dpi
        self.lang = lang
        self.config = config

        if not OCR_AVAILABLE:
            logger.warning("OCR not available. Install: pip install pytesseract pdf2image")

    def read_page(self, pdf_path: str, page_number: int) -> str:
        """Return the recognised text of one 1-based page."""
        if not OCR_AVAILABLE:
            raise PageExtractionError(page_number, 'OCR libraries not available')

        logger.info(f"Running OCR on page {page_number} of {pdf_path}")
        try:
            images = convert_from_path(pdf_path, dpi=self.dpi,
                                       first_page=page_number, last_page=page_number)
            if not images:
                raise PageExtractionError(page_number, 'page could not be rendered')
            text = pytesseract.image_to_string(images[0], lang=self.lang, config=self.config)
        except PageExtractionError:
            raise
        except Exception as e:
            raise PageExtractionError(page_number, str(e)) from e

        logger.info(f"OCR extracted {len(text)} characters from page {page_number}")
        return text
