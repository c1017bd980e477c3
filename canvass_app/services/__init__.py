"""Catalog services layered over the reconciliation engine."""

from .catalog_service import CatalogService

__all__ = ["CatalogService"]
