"""Client for the analytics platform REST API.

Authenticates users, keeps the session and temporary tokens fresh, follows
asynchronous tasks, and wraps users, projects, dashboards, reports, metrics
and roles in objects whose mutating calls run in order.

Exports:
    Api: Authenticated session and request pipeline.
    ApiConfig: Validated connection settings.
    create_api: Build a session from a JSON configuration file.
    errors: Exception hierarchy.
"""

from . import errors
from .api import Api, create_api
from .config import ApiConfig, configure_logging, load_config
from .resources import (
    Dashboard,
    Metric,
    ProfileSettings,
    Project,
    Report,
    ReportDefinition,
    Resource,
    Role,
    User,
)
from .sequencer import Sequenced, chained

__version__ = "0.1.0"

__all__ = [
    "Api",
    "ApiConfig",
    "Dashboard",
    "Metric",
    "ProfileSettings",
    "Project",
    "Report",
    "ReportDefinition",
    "Resource",
    "Role",
    "Sequenced",
    "User",
    "chained",
    "configure_logging",
    "create_api",
    "errors",
    "load_config",
]
