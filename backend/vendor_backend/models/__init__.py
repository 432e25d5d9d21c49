from .catalog import Product
from .customers import Customer
from .orders import Order, OrderItem, PaymentRecord, OrderStatusEvent
from .security import ApiKey, RateLimitCounter

__all__ = [
    'Product',
    'Customer',
    'Order', 'OrderItem', 'PaymentRecord', 'OrderStatusEvent',
    'ApiKey', 'RateLimitCounter',
]
