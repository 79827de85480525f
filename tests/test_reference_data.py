"""
Tests for the category cache and cascading selection
"""

import pytest

from services.auth_service.exceptions import BackendError, ValidationError
from services.auth_service.models import CategorySelection
from services.category_service.reference_data import (
    check_selections, parse_category, select_category, select_subcategory,
)


@pytest.fixture
def loaded_cache(category_cache):
    category_cache.load()
    return category_cache


class TestParseCategory:
    """Test backend document parsing"""

    def test_name_or_title(self):
        """Test subcategories may be named by `name` or `title`"""
        category = parse_category({
            "_id": "c1", "title": "Tech",
            "subcategories": [{"_id": "s1", "name": "AI"}, {"_id": "s2", "title": "Cloud"}],
        })
        assert [sub.name for sub in category.subcategories] == ["AI", "Cloud"]

    def test_missing_subcategories(self):
        """Test a category without subcategories parses to an empty tuple"""
        assert parse_category({"_id": "c1", "title": "Tech"}).subcategories == ()


class TestCategoryCache:
    """Test loading and lookups"""

    def test_load(self, loaded_cache):
        """Test hierarchy is indexed by id"""
        assert loaded_cache.loaded
        assert [c.title for c in loaded_cache.categories()] == ["Legal", "Technology"]
        assert [s.id for s in loaded_cache.subcategories_for("cat-legal")] == ["sub-contracts", "sub-tax"]

    def test_unknown_category_has_no_subcategories(self, loaded_cache):
        """Test an unknown id yields an empty list, not an error"""
        assert loaded_cache.subcategories_for("nope") == ()

    def test_failed_load_keeps_previous_data(self, loaded_cache, api):
        """Test a failed refresh raises and leaves the cached hierarchy alone"""
        api.get_categories.side_effect = BackendError("Failed to load categories")

        with pytest.raises(BackendError):
            loaded_cache.load()

        assert loaded_cache.get("cat-tech") is not None

    def test_ensure_loaded_fetches_once(self, category_cache, api):
        """Test ensure_loaded does not refetch"""
        category_cache.ensure_loaded()
        category_cache.ensure_loaded()
        assert api.get_categories.call_count == 1

    def test_clear(self, loaded_cache):
        """Test clear forgets the hierarchy"""
        loaded_cache.clear()
        assert not loaded_cache.loaded
        assert loaded_cache.categories() == []


class TestSelection:
    """Test category -> subcategory cascade"""

    def test_changing_category_resets_subcategory(self, loaded_cache):
        """Test a new category always clears the subcategory"""
        row = CategorySelection("cat-legal", "Legal", "sub-tax", "Tax Law")

        row = select_category(row, "cat-tech", loaded_cache)

        assert row == CategorySelection(category_id="cat-tech", category_name="Technology")

    def test_select_subcategory(self, loaded_cache):
        """Test a valid pair fills both names"""
        row = select_category(CategorySelection(), "cat-legal", loaded_cache)
        row = select_subcategory(row, "sub-tax", loaded_cache)

        assert row.is_complete
        assert row.subcategory_name == "Tax Law"

    def test_foreign_subcategory_rejected(self, loaded_cache):
        """Test a subcategory of another category is refused"""
        row = select_category(CategorySelection(), "cat-legal", loaded_cache)

        with pytest.raises(ValidationError, match="does not belong"):
            select_subcategory(row, "sub-cloud", loaded_cache)

    def test_unknown_category_rejected(self, loaded_cache):
        """Test an id missing from the cache is refused"""
        with pytest.raises(ValidationError):
            select_category(CategorySelection(), "cat-unknown", loaded_cache)

    def test_empty_category_clears_row(self, loaded_cache):
        """Test choosing the placeholder empties the row"""
        row = CategorySelection("cat-legal", "Legal", "sub-tax", "Tax Law")
        assert select_category(row, "", loaded_cache).is_empty

    def test_check_selections_ignores_partial_rows(self, loaded_cache):
        """Test incomplete rows are not checked"""
        check_selections([CategorySelection("cat-legal", "Legal"), CategorySelection()], loaded_cache)

    def test_check_selections_inconsistent_row(self, loaded_cache):
        """Test a complete row with a mismatched pair is refused"""
        rows = [CategorySelection("cat-legal", "Legal", "sub-cloud", "Cloud")]
        with pytest.raises(ValidationError):
            check_selections(rows, loaded_cache)
