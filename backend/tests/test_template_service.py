"""
Template Service Tests

Verifies:
1. At most one default template per professor
2. Update only touches provided fields
3. Duplicate creates a non-default copy
4. Preview uses sample values and [label] for custom questions
"""

import pytest

from recommate.errors import NotFoundError, ValidationError
from recommate.services.template_service import TemplateService

from conftest import make_template


@pytest.fixture
def service(db):
    return TemplateService(db)


class TestDefaults:
    def test_new_default_clears_previous(self, service, professor):
        first = service.create_template(professor.id, "First", "<p>1</p>", is_default=True)
        second = service.create_template(professor.id, "Second", "<p>2</p>", is_default=True)

        assert service.get_template(professor.id, first.id).is_default is False
        assert second.is_default is True

    def test_update_to_default_clears_previous(self, service, professor):
        first = service.create_template(professor.id, "First", "<p>1</p>", is_default=True)
        second = service.create_template(professor.id, "Second", "<p>2</p>")

        service.update_template(professor.id, second.id, is_default=True)

        defaults = [t for t in service.list_templates(professor.id) if t.is_default]
        assert [t.id for t in defaults] == [second.id]
        assert service.get_template(professor.id, first.id).is_default is False

    def test_defaults_are_per_professor(self, service, professor, other_professor):
        mine = service.create_template(professor.id, "Mine", "<p>a</p>", is_default=True)
        service.create_template(other_professor.id, "Theirs", "<p>b</p>", is_default=True)
        assert service.get_template(professor.id, mine.id).is_default is True


class TestCrud:
    def test_list_default_first_then_name(self, service, professor):
        service.create_template(professor.id, "Zeta", "<p>z</p>")
        service.create_template(professor.id, "Alpha", "<p>a</p>")
        service.create_template(professor.id, "Main", "<p>m</p>", is_default=True)
        assert [t.name for t in service.list_templates(professor.id)] == ["Main", "Alpha", "Zeta"]

    def test_list_filters(self, service, professor):
        service.create_template(professor.id, "Grad", "<p>g</p>", category="graduate")
        retired = service.create_template(professor.id, "Old", "<p>o</p>", category="graduate")
        service.update_template(professor.id, retired.id, is_active=False)
        service.create_template(professor.id, "Job", "<p>j</p>", category="employment")

        names = [t.name for t in service.list_templates(professor.id, active_only=True, category="graduate")]
        assert names == ["Grad"]

    def test_blank_name_rejected(self, service, professor):
        with pytest.raises(ValidationError) as exc_info:
            service.create_template(professor.id, "  ", "<p>x</p>")
        assert "name" in exc_info.value.fields

    def test_update_only_provided_fields(self, service, professor):
        template = service.create_template(
            professor.id, "Standard", "<p>Body</p>", description="Keep me", category="graduate"
        )
        updated = service.update_template(professor.id, template.id, name="Renamed")
        assert updated.name == "Renamed"
        assert updated.content == "<p>Body</p>"
        assert updated.description == "Keep me"
        assert updated.category == "graduate"

    def test_update_can_clear_description(self, service, professor):
        template = service.create_template(professor.id, "Standard", "<p>Body</p>", description="Old")
        updated = service.update_template(professor.id, template.id, description=None)
        assert updated.description is None

    def test_duplicate(self, service, professor):
        original = service.create_template(
            professor.id, "Standard", "<p>Body</p>", is_default=True,
            variables=[{"name": "student_name", "required": True}],
        )
        copy = service.duplicate_template(professor.id, original.id)
        assert copy.id != original.id
        assert copy.name == "Standard (Copy)"
        assert copy.is_default is False
        assert copy.content == original.content
        assert copy.variables == original.variables

    def test_delete(self, service, professor):
        template = service.create_template(professor.id, "Standard", "<p>Body</p>")
        service.delete_template(professor.id, template.id)
        with pytest.raises(NotFoundError):
            service.get_template(professor.id, template.id)

    def test_other_professor_cannot_read(self, db, service, professor, other_professor):
        template = make_template(db, professor, "<p>mine</p>")
        with pytest.raises(NotFoundError):
            service.get_template(other_professor.id, template.id)
        with pytest.raises(NotFoundError):
            service.update_template(other_professor.id, template.id, name="Stolen")


class TestPreview:
    def test_sample_values(self, service):
        result = service.preview_template("Dear {{student_name}}, {{program}}")
        assert result["content"] == "Dear Jane Smith, Master of Science in Computer Science"
        assert result["unresolved"] == []

    def test_custom_questions_show_labels(self, db, service, professor):
        professor.custom_questions = [
            {"id": "q1", "type": "text", "label": "Research area", "variable_name": "research_area"},
        ]
        db.commit()
        result = service.preview_template("Works on {{research_area}}.", professor)
        assert result["content"] == "Works on [Research area]."

    def test_unknown_variables_reported(self, service):
        result = service.preview_template("{{student_name}} {{favourite_colour}}")
        assert result["content"] == "Jane Smith "
        assert result["unresolved"] == ["favourite_colour"]
