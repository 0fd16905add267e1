"""Catalog gateway factory.

Provides get_catalog() / set_catalog() to swap implementations:
- InMemoryCatalog for development and testing
- a catalog-service adapter in production
"""

from shopping.catalog.port import CatalogGateway

_current_catalog: CatalogGateway | None = None


def get_catalog() -> CatalogGateway:
    """Return the current catalog gateway. Defaults to InMemoryCatalog."""
    global _current_catalog
    if _current_catalog is None:
        from shopping.catalog.memory_adapter import InMemoryCatalog

        _current_catalog = InMemoryCatalog()
    return _current_catalog


def set_catalog(catalog: CatalogGateway) -> None:
    """Override the active catalog gateway (useful for tests)."""
    global _current_catalog
    _current_catalog = catalog


def reset_catalog() -> None:
    """Reset to default catalog."""
    global _current_catalog
    _current_catalog = None
