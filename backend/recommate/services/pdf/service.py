"""
PDF Service

Materializes a letter as a PDF on demand and tracks whether the stored
PDF still matches the letter content.

AUTO-SHRINK:
Render at the default font size. When that spans exactly two pages,
render once more at the compact size and keep it only if it fits on one
page. Three or more pages are accepted as rendered.
"""
from __future__ import annotations
import logging
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.orm import Session

from ...config import PDF_DEFAULT_FONT_SIZE, PDF_COMPACT_FONT_SIZE
from ...database import utcnow
from ...errors import NotFoundError, ValidationError
from ...models.db_models import LetterDB, ProfessorDB
from ...models.letter_variables import BrandingBundle, HeaderConfig
from ..letters.interpolation import interpolate
from ..letters.variables import preview_variables
from ..storage import FileStore
from .layout import build_letter_html
from .renderer import PdfRenderer, RenderOptions, RenderedDocument, WeasyPrintRenderer

logger = logging.getLogger(__name__)

PDF_SUBDIR = "pdfs"


def branding_for(professor: ProfessorDB) -> BrandingBundle:
    """Collect the professor fields used on the letterhead."""
    return BrandingBundle(
        name=professor.name or "",
        title=professor.title or "",
        department=professor.department or "",
        institution=professor.institution or "",
        address=professor.address or "",
        email=professor.email or "",
        phone=professor.phone or "",
        letterhead_image=professor.letterhead_image,
        signature_image=professor.signature_image,
        header=HeaderConfig.from_json(professor.header_config),
    )


def pdf_is_current(letter: LetterDB, store: FileStore) -> bool:
    """PDF exists on disk and was generated after the last content change."""
    if not letter.pdf_path or not letter.pdf_generated_at:
        return False
    if not store.exists(letter.pdf_path):
        return False
    return letter.pdf_generated_at >= letter.content_updated_at


class PdfService:
    """Render, store and check PDFs for letters."""

    def __init__(
        self,
        db: Session,
        renderer: Optional[PdfRenderer] = None,
        store: Optional[FileStore] = None,
        clock: Callable[[], datetime] = utcnow,
        default_font_size: float = PDF_DEFAULT_FONT_SIZE,
        compact_font_size: float = PDF_COMPACT_FONT_SIZE,
    ):
        self.db = db
        self.renderer = renderer or WeasyPrintRenderer()
        self.store = store or FileStore()
        self.clock = clock
        self.default_font_size = default_font_size
        self.compact_font_size = compact_font_size

    def _get_owned_letter(self, professor_id: str, letter_id: str) -> LetterDB:
        letter = self.db.query(LetterDB).filter(LetterDB.id == letter_id).first()
        if not letter or letter.request is None or letter.request.professor_id != professor_id:
            raise NotFoundError("Letter not found")
        return letter

    def render_letter(self, content: str, branding: BrandingBundle) -> RenderedDocument:
        """Render with the one-page shrink heuristic."""
        options = RenderOptions()
        first = self.renderer.render(build_letter_html(content, branding, self.default_font_size), options)
        if first.page_count != 2 or self.compact_font_size >= self.default_font_size:
            return first

        compact = self.renderer.render(build_letter_html(content, branding, self.compact_font_size), options)
        if compact.page_count == 1:
            logger.info(f"Letter fits one page at {self.compact_font_size}pt")
            return compact
        return first

    def preview_pdf(self, professor: ProfessorDB, content: str) -> RenderedDocument:
        """Template content filled with sample values, on the professor's letterhead. Nothing is stored."""
        if not (content or "").strip():
            raise ValidationError("Content is required", {"content": "Template content is empty"})
        result = interpolate(content, preview_variables(professor))
        return self.render_letter(result.content, branding_for(professor))

    def generate_pdf(self, professor_id: str, letter_id: str) -> str:
        """Render the letter, store the file and stamp the letter. Returns the path."""
        letter = self._get_owned_letter(professor_id, letter_id)
        professor = letter.request.professor
        if professor is None:
            raise NotFoundError("Professor not found")

        document = self.render_letter(letter.content, branding_for(professor))

        filename = self.store.unique_name(f"letter-{letter.request_id}-", ".pdf")
        pdf_path = self.store.write(PDF_SUBDIR, filename, document.pdf)

        previous_path = letter.pdf_path
        if previous_path and previous_path != pdf_path:
            self.store.delete(previous_path)

        letter.pdf_path = pdf_path
        letter.pdf_generated_at = self.clock()
        self.db.commit()

        logger.info(f"Generated PDF for letter {letter.id} ({document.page_count} page(s)) at {pdf_path}")
        return pdf_path

    def get_pdf_path(self, professor_id: str, letter_id: str) -> str:
        letter = self._get_owned_letter(professor_id, letter_id)
        if not self.store.exists(letter.pdf_path):
            raise NotFoundError("PDF not found. Generate it first.")
        return letter.pdf_path

    def is_pdf_up_to_date(self, professor_id: str, letter_id: str) -> bool:
        letter = self._get_owned_letter(professor_id, letter_id)
        return pdf_is_current(letter, self.store)
