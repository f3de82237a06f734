"""
Pydantic 스키마 패키지
"""

from .subscription import SubscriptionPurchaseRequest, SubscriptionResponse, RenewalEligibilityResponse
from .product import AccessibleArticleResponse, ProductArticlesResponse, ArticleDetailResponse
from .notification import NotificationResponse, NotificationListResponse, BroadcastCreate, CountResponse

__all__ = [
    "SubscriptionPurchaseRequest",
    "SubscriptionResponse",
    "RenewalEligibilityResponse",
    "AccessibleArticleResponse",
    "ProductArticlesResponse",
    "ArticleDetailResponse",
    "NotificationResponse",
    "NotificationListResponse",
    "BroadcastCreate",
    "CountResponse",
]
