"""Resource wrappers for the analytics platform REST API.

Each wrapper holds one JSON document and sends its requests through
:meth:`gdc_api.api.Api.request`. Mutating methods are chained and run in
call order per object.
"""

from .base import MetadataObject, Resource
from .metadata import Dashboard, Metric, Report, ReportDefinition
from .profile_settings import ProfileSettings
from .project import Project
from .role import Role
from .user import User

__all__ = [
    "Dashboard",
    "MetadataObject",
    "Metric",
    "ProfileSettings",
    "Project",
    "Report",
    "ReportDefinition",
    "Resource",
    "Role",
    "User",
]
