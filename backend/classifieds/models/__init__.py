from classifieds.models.user import User, ADMIN_ROLES
from classifieds.models.listing import Listing, LISTING_STATUSES
from classifieds.models.favorite import ListingFavorite
from classifieds.models.notification import Notification

__all__ = [
    "User",
    "ADMIN_ROLES",
    "Listing",
    "LISTING_STATUSES",
    "ListingFavorite",
    "Notification",
]
