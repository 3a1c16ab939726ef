from .auth import User, SessionToken
from .catalog import Product, Category
from .sales import CartItem, Transaction

__all__ = [
    'User', 'SessionToken',
    'Product', 'Category',
    'CartItem', 'Transaction',
]
