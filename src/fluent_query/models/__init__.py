"""Result models."""

from .pagination import Pagination

__all__ = ["Pagination"]
