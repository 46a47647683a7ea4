"""PDF rendering for letters."""

from .renderer import PdfRenderer, RenderOptions, RenderedDocument, WeasyPrintRenderer
from .layout import build_letter_html, image_data_uri
from .service import PdfService, branding_for, pdf_is_current

__all__ = [
    "PdfRenderer",
    "RenderOptions",
    "RenderedDocument",
    "WeasyPrintRenderer",
    "build_letter_html",
    "image_data_uri",
    "PdfService",
    "branding_for",
    "pdf_is_current",
]
