from .tenancy import Organization, OrganizationMember
from .inventory import Product, StockTransaction

__all__ = [
    'Organization', 'OrganizationMember',
    'Product', 'StockTransaction',
]
