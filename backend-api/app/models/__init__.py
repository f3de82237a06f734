"""
모델 패키지
"""

from .user import User
from .product import Product, ProductVariant, Article
from .subscription import Subscription
from .notification import Notification, NotificationRead, NotificationHide

__all__ = [
    "User",
    "Product",
    "ProductVariant",
    "Article",
    "Subscription",
    "Notification",
    "NotificationRead",
    "NotificationHide",
]
