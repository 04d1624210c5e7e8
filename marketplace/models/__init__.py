from marketplace.models.enums import ContainerType, Role, SubscriptionTier, UrlStatus, Visibility
from marketplace.models.identity import Company, User, UserPermission
from marketplace.models.container import CompanyContainerAssignment, Container

__all__ = [
    "ContainerType",
    "Role",
    "SubscriptionTier",
    "UrlStatus",
    "Visibility",
    "Company",
    "User",
    "UserPermission",
    "CompanyContainerAssignment",
    "Container",
]
