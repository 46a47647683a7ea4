"""
PDF Rendering Port

The letter pipeline only depends on PdfRenderer.render(html, options).
WeasyPrintRenderer is the production adapter; tests substitute a fake.
"""
import logging
from dataclasses import dataclass
from functools import partial
from typing import Optional, Protocol

from ...config import RENDER_TIMEOUT_SECONDS
from ...errors import RenderingError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RenderOptions:
    """Engine options for one render call."""
    base_url: Optional[str] = None
    presentational_hints: bool = True
    # Seconds allowed per external resource fetch
    timeout: int = RENDER_TIMEOUT_SECONDS


@dataclass(frozen=True)
class RenderedDocument:
    """PDF bytes and the number of pages they span."""
    pdf: bytes
    page_count: int


class PdfRenderer(Protocol):
    def render(self, html: str, options: RenderOptions) -> RenderedDocument:
        ...


class WeasyPrintRenderer:
    """Render HTML to PDF with WeasyPrint, one document per call."""

    def render(self, html: str, options: RenderOptions) -> RenderedDocument:
        # WeasyPrint loads native libraries on import
        from weasyprint import HTML, default_url_fetcher

        fetcher = partial(default_url_fetcher, timeout=options.timeout)
        try:
            document = HTML(string=html, base_url=options.base_url, url_fetcher=fetcher).render(
                presentational_hints=options.presentational_hints
            )
            pdf = document.write_pdf()
        except Exception as e:
            logger.error(f"PDF rendering failed: {e}")
            raise RenderingError(f"PDF rendering failed: {e}") from e

        if not pdf:
            raise RenderingError("PDF rendering produced no output")
        return RenderedDocument(pdf=pdf, page_count=len(document.pages))
