from .tenancy import Company
from .auth import User, SessionToken
from .inventory import Category, Product, StockMovement, RestockRecord, StockAlert
from .orders import OrderRequest, OrderRequestItem, UserInventory
from .customers import Customer, CustomerOrder, CustomerPayment
from .finance import Payment, Expense, CreditTransaction

__all__ = [
    'Company',
    'User', 'SessionToken',
    'Category', 'Product', 'StockMovement', 'RestockRecord', 'StockAlert',
    'OrderRequest', 'OrderRequestItem', 'UserInventory',
    'Customer', 'CustomerOrder', 'CustomerPayment',
    'Payment', 'Expense', 'CreditTransaction',
]
