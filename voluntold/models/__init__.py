from voluntold.core.database import Base
from voluntold.models.polls import Poll, PollResponse
from voluntold.models.projects import (
    EmailBroadcast,
    HoursLog,
    Opportunity,
    Project,
    Signup,
)
from voluntold.models.tenants import (
    Credential,
    Group,
    GroupMember,
    OrganizationApplication,
    Role,
    Tenant,
    UserProfile,
)
from voluntold.models.tokens import AccessToken, TokenPurpose

__all__ = [
    "AccessToken",
    "Base",
    "Credential",
    "EmailBroadcast",
    "Group",
    "GroupMember",
    "HoursLog",
    "Opportunity",
    "OrganizationApplication",
    "Poll",
    "PollResponse",
    "Project",
    "Role",
    "Signup",
    "Tenant",
    "TokenPurpose",
    "UserProfile",
]
