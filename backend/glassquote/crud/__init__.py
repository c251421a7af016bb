from . import crud_catalog, crud_quote, crud_tenant

__all__ = ["crud_catalog", "crud_quote", "crud_tenant"]
