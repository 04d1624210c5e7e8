from enum import Enum


class Role(str, Enum):
    ADMIN = "admin"
    VIEWER = "viewer"


class SubscriptionTier(str, Enum):
    BASIC = "basic"
    PREMIUM = "premium"
    ENTERPRISE = "enterprise"


class ContainerType(str, Enum):
    APP = "app"
    VOICE = "voice"
    WORKFLOW = "workflow"


class Visibility(str, Enum):
    PUBLIC = "public"
    RESTRICTED = "restricted"
    ADMIN_ONLY = "admin_only"


class UrlStatus(str, Enum):
    UNKNOWN = "unknown"
    ACTIVE = "active"
    BROKEN = "broken"
    AUTH_REQUIRED = "auth_required"
    TIMEOUT = "timeout"
    BLOCKED = "blocked"
