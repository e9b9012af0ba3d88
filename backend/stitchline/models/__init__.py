from .orders import Order, LineItem
from .points import DailyPointsRecord

__all__ = [
    'Order', 'LineItem',
    'DailyPointsRecord',
]
