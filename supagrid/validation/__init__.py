"""
Validation module for the supagrid data service.

This module checks grid requests against a table's column metadata.
"""

from .rules import (
    _assert_columns_allowed,
    _assert_sorts_allowed,
    _assert_filters_allowed,
    _assert_values_allowed,
    _assert_editable,
    _cap_pagination,
)

__all__ = [
    "_assert_columns_allowed",
    "_assert_sorts_allowed",
    "_assert_filters_allowed",
    "_assert_values_allowed",
    "_assert_editable",
    "_cap_pagination",
]
