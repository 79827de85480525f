"""
Category reference data and the cascading category -> subcategory selection.
"""

from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Tuple

from infrastructure.external.backend_client import BackendClient, get_backend_client
from services.auth_service.exceptions import ValidationError
from services.auth_service.models import CategorySelection
from utils.logging_config import get_logger


@dataclass(frozen=True)
class Subcategory:
    id: str
    name: str


@dataclass(frozen=True)
class Category:
    id: str
    title: str
    subcategories: Tuple[Subcategory, ...] = ()

    def find_subcategory(self, subcategory_id: str) -> Optional[Subcategory]:
        for subcategory in self.subcategories:
            if subcategory.id == subcategory_id:
                return subcategory
        return None


def parse_category(item: Dict[str, Any]) -> Category:
    """Backend category document -> Category (`_id`/`id`, subcategory `name`/`title`)"""
    subcategories = tuple(
        Subcategory(id=str(sub.get("_id") or sub.get("id") or ""),
                    name=sub.get("name") or sub.get("title") or "")
        for sub in item.get("subcategories") or []
        if isinstance(sub, dict)
    )
    return Category(
        id=str(item.get("_id") or item.get("id") or ""),
        title=item.get("title") or item.get("name") or "",
        subcategories=subcategories,
    )


class CategoryCache:
    """
    Read-through cache of the category hierarchy.

    `load()` replaces the cached hierarchy only when the fetch succeeds; a
    failed fetch leaves the previous data in place and raises.
    """

    def __init__(self, api: Optional[BackendClient] = None):
        self.api = api or get_backend_client()
        self.logger = get_logger(__name__)
        self._hierarchy: Dict[str, Category] = {}
        self._loaded = False

    @property
    def loaded(self) -> bool:
        return self._loaded

    def load(self) -> Dict[str, Category]:
        """
        Fetch categories with nested subcategories

        Raises:
            BackendError: If the backend call fails
        """
        items = self.api.get_categories()
        hierarchy: Dict[str, Category] = {}
        for item in items:
            if not isinstance(item, dict):
                continue
            category = parse_category(item)
            if category.id:
                hierarchy[category.id] = category

        self._hierarchy = hierarchy
        self._loaded = True
        self.logger.info(f"Loaded {len(hierarchy)} categories")
        return dict(hierarchy)

    def ensure_loaded(self) -> None:
        if not self._loaded:
            self.load()

    def clear(self) -> None:
        self._hierarchy = {}
        self._loaded = False

    def categories(self) -> List[Category]:
        return list(self._hierarchy.values())

    def get(self, category_id: str) -> Optional[Category]:
        return self._hierarchy.get(category_id)

    def subcategories_for(self, category_id: str) -> Tuple[Subcategory, ...]:
        category = self._hierarchy.get(category_id)
        return category.subcategories if category else ()


def select_category(selection: CategorySelection, category_id: str,
                    cache: CategoryCache) -> CategorySelection:
    """
    Choose a category for a row. The subcategory is always reset.

    Raises:
        ValidationError: If `category_id` is not a known category
    """
    if not category_id:
        return CategorySelection()
    category = cache.get(category_id)
    if category is None:
        raise ValidationError("Please select a valid category")
    return CategorySelection(category_id=category.id, category_name=category.title)


def select_subcategory(selection: CategorySelection, subcategory_id: str,
                       cache: CategoryCache) -> CategorySelection:
    """
    Choose a subcategory of the row's current category

    Raises:
        ValidationError: If no category is chosen or the subcategory belongs elsewhere
    """
    if not subcategory_id:
        return replace(selection, subcategory_id="", subcategory_name="")
    category = cache.get(selection.category_id)
    if category is None:
        raise ValidationError("Please select a category first")
    subcategory = category.find_subcategory(subcategory_id)
    if subcategory is None:
        raise ValidationError("Subcategory does not belong to the selected category")
    return replace(selection, subcategory_id=subcategory.id, subcategory_name=subcategory.name)


def check_selections(selections: List[CategorySelection], cache: CategoryCache) -> None:
    """
    Every complete row must pair a known category with one of its own subcategories

    Raises:
        ValidationError: On the first inconsistent row
    """
    for selection in selections:
        if not selection.is_complete:
            continue
        category = cache.get(selection.category_id)
        if category is None or category.find_subcategory(selection.subcategory_id) is None:
            raise ValidationError("Subcategory does not belong to the selected category")
