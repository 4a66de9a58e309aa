from .inventory import Product, InventoryIn, InventoryOut
from .orders import Order, OrderItem, DocumentSequence, ORDER_STATUSES
from .auth import User, Role, UserRole, Permission, RolePermission, SessionToken

__all__ = [
    'Product', 'InventoryIn', 'InventoryOut',
    'Order', 'OrderItem', 'DocumentSequence', 'ORDER_STATUSES',
    'User', 'Role', 'UserRole', 'Permission', 'RolePermission', 'SessionToken',
]
