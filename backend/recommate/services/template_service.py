"""
Template Service

Professor-owned letter templates. Each professor has at most one default
template; marking one as default clears the flag on the others.
"""
from __future__ import annotations
import copy
import logging
from typing import Any, Dict, List, Optional
from uuid import uuid4

from sqlalchemy.orm import Session

from ..errors import NotFoundError, ValidationError
from ..models.db_models import ProfessorDB, TemplateDB
from .letters.interpolation import interpolate
from .letters.variables import preview_variables

logger = logging.getLogger(__name__)

_UNSET = object()


class TemplateService:
    """CRUD and preview for a professor's templates."""

    def __init__(self, db: Session):
        self.db = db

    def _get_owned(self, professor_id: str, template_id: str) -> TemplateDB:
        template = self.db.query(TemplateDB).filter(TemplateDB.id == template_id).first()
        if not template or template.professor_id != professor_id:
            raise NotFoundError("Template not found")
        return template

    def _clear_other_defaults(self, professor_id: str, keep_id: Optional[str] = None) -> None:
        query = self.db.query(TemplateDB).filter(
            TemplateDB.professor_id == professor_id,
            TemplateDB.is_default.is_(True),
        )
        if keep_id:
            query = query.filter(TemplateDB.id != keep_id)
        for other in query.all():
            other.is_default = False

    @staticmethod
    def _require_text(name: Optional[str], content: Optional[str]) -> None:
        errors = {}
        if name is not None and not name.strip():
            errors["name"] = "Name is required"
        if content is not None and not content.strip():
            errors["content"] = "Content is required"
        if errors:
            raise ValidationError("Invalid template", errors)

    # =========================================================================
    # QUERIES
    # =========================================================================

    def list_templates(
        self,
        professor_id: str,
        active_only: bool = False,
        category: Optional[str] = None,
    ) -> List[TemplateDB]:
        query = self.db.query(TemplateDB).filter(TemplateDB.professor_id == professor_id)
        if active_only:
            query = query.filter(TemplateDB.is_active.is_(True))
        if category:
            query = query.filter(TemplateDB.category == category)
        return query.order_by(TemplateDB.is_default.desc(), TemplateDB.name.asc()).all()

    def get_template(self, professor_id: str, template_id: str) -> TemplateDB:
        return self._get_owned(professor_id, template_id)

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    def create_template(
        self,
        professor_id: str,
        name: str,
        content: str,
        description: Optional[str] = None,
        variables: Optional[List[Dict[str, Any]]] = None,
        category: Optional[str] = None,
        is_default: bool = False,
    ) -> TemplateDB:
        if name is None or content is None:
            raise ValidationError("Invalid template", {"name": "Name and content are required"})
        self._require_text(name, content)

        if is_default:
            self._clear_other_defaults(professor_id)

        template = TemplateDB(
            id=str(uuid4()),
            professor_id=professor_id,
            name=name.strip(),
            description=description,
            content=content,
            variables=variables,
            category=category,
            is_active=True,
            is_default=bool(is_default),
        )
        self.db.add(template)
        self.db.commit()
        self.db.refresh(template)
        logger.info(f"Created template {template.id} '{template.name}'")
        return template

    def update_template(
        self,
        professor_id: str,
        template_id: str,
        name: Optional[str] = None,
        content: Optional[str] = None,
        description: Any = _UNSET,
        variables: Optional[List[Dict[str, Any]]] = None,
        category: Any = _UNSET,
        is_active: Optional[bool] = None,
        is_default: Optional[bool] = None,
    ) -> TemplateDB:
        template = self._get_owned(professor_id, template_id)
        self._require_text(name, content)

        if is_default:
            self._clear_other_defaults(professor_id, keep_id=template.id)

        if name is not None:
            template.name = name.strip()
        if content is not None:
            template.content = content
        if description is not _UNSET:
            template.description = description
        if variables is not None:
            template.variables = variables
        if category is not _UNSET:
            template.category = category
        if is_active is not None:
            template.is_active = is_active
        if is_default is not None:
            template.is_default = is_default

        self.db.commit()
        self.db.refresh(template)
        return template

    def delete_template(self, professor_id: str, template_id: str) -> None:
        template = self._get_owned(professor_id, template_id)
        self.db.delete(template)
        self.db.commit()
        logger.info(f"Deleted template {template_id}")

    def duplicate_template(self, professor_id: str, template_id: str) -> TemplateDB:
        original = self._get_owned(professor_id, template_id)
        template = TemplateDB(
            id=str(uuid4()),
            professor_id=professor_id,
            name=f"{original.name} (Copy)",
            description=original.description,
            content=original.content,
            variables=copy.deepcopy(original.variables),
            category=original.category,
            is_active=original.is_active,
            is_default=False,
        )
        self.db.add(template)
        self.db.commit()
        self.db.refresh(template)
        return template

    # =========================================================================
    # PREVIEW
    # =========================================================================

    def preview_template(
        self,
        content: str,
        professor: Optional[ProfessorDB] = None,
    ) -> Dict[str, Any]:
        """Interpolate with sample values; custom questions show as [label]."""
        result = interpolate(content, preview_variables(professor))
        return {"content": result.content, "unresolved": result.unresolved}
