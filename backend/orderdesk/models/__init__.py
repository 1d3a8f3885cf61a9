from .tenancy import Organization
from .auth import User, SessionToken
from .catalog import Category, Product, ProductMapping
from .orders import Order, OrderItem
from .returns import Return, ReturnItem

__all__ = [
    'Organization',
    'User', 'SessionToken',
    'Category', 'Product', 'ProductMapping',
    'Order', 'OrderItem',
    'Return', 'ReturnItem',
]
