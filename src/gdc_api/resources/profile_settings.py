"""Per-user profile settings: default project and default dashboards."""

from typing import TYPE_CHECKING, Any

from ..errors import ResourceError
from ..sequencer import chained
from .base import Resource, uri_of

if TYPE_CHECKING:
    from ..api import Api
    from .base import MetadataObject
    from .project import Project
    from .user import User


class ProfileSettings(Resource):
    """Settings document of a user profile.

    The setters only change the local document; persist them with
    :meth:`~gdc_api.resources.base.Resource.save`.
    """

    namespace = "profileSetting"

    def __init__(
        self,
        api: "Api",
        user: "User | None" = None,
        data: dict[str, Any] | None = None,
    ):
        super().__init__(api, data)
        self.user = user

    @property
    def current_project_uri(self) -> str | None:
        return self.data.get("currentProjectUri")

    def default_dashboard_uri(self, project: "Project | str") -> str | None:
        project_uri = uri_of(project)
        settings = self.data.get("projectSettings") or {}
        return (settings.get(project_uri) or {}).get("dashboard")

    @chained
    def set_default_project(self, project: "Project | str") -> None:
        project_uri = uri_of(project)
        if not project_uri:
            msg = f"Missing project uri for set_default_project(), got {project_uri!r}"
            raise ResourceError(msg)
        self.data["currentProjectUri"] = project_uri

    @chained
    def set_default_dashboard(
        self,
        project: "Project | str",
        dashboard: "MetadataObject | str",
    ) -> None:
        project_uri = uri_of(project)
        if not project_uri:
            msg = f"Missing project uri for set_default_dashboard(), got {project_uri!r}"
            raise ResourceError(msg)
        dashboard_uri = uri_of(dashboard)
        if not dashboard_uri:
            msg = f"Missing dashboard uri for set_default_dashboard(), got {dashboard_uri!r}"
            raise ResourceError(msg)

        project_settings = self.data.setdefault("projectSettings", {})
        entry = project_settings.setdefault(
            project_uri,
            {"tab": None, "recentSearches": [], "manageReportsSettings": {}},
        )
        entry["dashboard"] = dashboard_uri
