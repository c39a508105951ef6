from .tenancy import Restaurant
from .auth import User, SessionToken
from .inventory import InventoryItem
from .orders import Order, OrderItem
from .cash import CashClose, CashCloseExpense

__all__ = [
    'Restaurant',
    'User', 'SessionToken',
    'InventoryItem',
    'Order', 'OrderItem',
    'CashClose', 'CashCloseExpense',
]
