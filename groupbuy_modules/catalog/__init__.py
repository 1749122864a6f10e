"""
Catalog Module.

Projects (a group purchase and its members) and the JPY-priced products
offered in them.
"""

from groupbuy_modules.catalog.models import Product, Project, ProjectStatus
from groupbuy_modules.catalog.service import CatalogService

__all__ = ["CatalogService", "Product", "Project", "ProjectStatus"]
