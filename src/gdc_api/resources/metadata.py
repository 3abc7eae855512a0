"""Project metadata objects: dashboards, reports, report definitions, metrics."""

import structlog

from ..errors import ResourceError
from ..sequencer import chained
from .base import MetadataObject, Resource

logger = structlog.get_logger(__name__)


class Dashboard(MetadataObject):
    namespace = "projectDashboard"

    @chained
    async def set_as_default(self) -> None:
        """Make this dashboard the user's default one in its project."""
        project = self._require_project("default dashboard")
        if project.user is None:
            msg = "Project must belong to a user to set a default dashboard"
            raise ResourceError(msg)
        settings = await project.user.settings()
        await settings.set_default_dashboard(project, self).save()
        logger.info("Set default dashboard", dashboard=self.uri)

    async def reports(self) -> list[Resource]:
        return await self.using("report")


class Report(MetadataObject):
    namespace = "report"

    async def metrics(self) -> list[Resource]:
        return await self.using("metric")

    async def report_definitions(self) -> list[Resource]:
        return await self.using("reportDefinition")


class ReportDefinition(MetadataObject):
    namespace = "reportDefinition"

    async def metrics(self) -> list[Resource]:
        return await self.using("metric")


class Metric(MetadataObject):
    namespace = "metric"
