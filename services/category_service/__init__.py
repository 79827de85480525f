"""
Category service - reference data for consultant registration.
"""

from .reference_data import (
    Category,
    Subcategory,
    CategoryCache,
    select_category,
    select_subcategory,
    check_selections,
)

__all__ = [
    'Category',
    'Subcategory',
    'CategoryCache',
    'select_category',
    'select_subcategory',
    'check_selections',
]
