"""Project resource and its metadata queries."""

import asyncio
from typing import TYPE_CHECKING, Any

import structlog

from ..errors import ResourceError
from ..sequencer import chained
from ..types import ProjectRolesResult, ProjectUsersUpdate, QueryResult, UseManyResult
from .base import MetadataObject, Resource, uri_of
from .metadata import Dashboard, Metric, Report, ReportDefinition
from .role import Role

if TYPE_CHECKING:
    from ..api import Api
    from .user import User

logger = structlog.get_logger(__name__)

PROJECTS_PATH = "/gdc/projects"
ENABLED_STATE = "ENABLED"

QUERY_TYPES: dict[str, type[MetadataObject]] = {
    "projectdashboards": Dashboard,
    "reports": Report,
    "metrics": Metric,
}

USING_USEDBY_TYPES: dict[str, type[MetadataObject]] = {
    "projectDashboard": Dashboard,
    "report": Report,
    "reportDefinition": ReportDefinition,
    "metric": Metric,
}


def objects_to_uris(objects: Any) -> list[str]:
    """Normalize one object or a list of objects (or URIs) to URIs.

    Objects without a URI are dropped.
    """
    if not objects:
        return []
    if not isinstance(objects, list):
        objects = [objects]
    return [uri for uri in (uri_of(item) for item in objects) if uri]


class Project(Resource):
    """A project of the analytics platform.

    Loading a project waits until the project reaches the ``ENABLED`` state,
    so a freshly created project is usable once :meth:`load` or
    :meth:`create` completes.
    """

    namespace = "project"

    def __init__(
        self,
        api: "Api",
        user: "User | None" = None,
        data: dict[str, Any] | None = None,
    ):
        super().__init__(api, data)
        self.user = user

    @property
    def project_id(self) -> str | None:
        uri = self.uri
        return uri.replace(f"{PROJECTS_PATH}/", "", 1) if uri else None

    @project_id.setter
    def project_id(self, value: str | None) -> None:
        self.uri = f"{PROJECTS_PATH}/{value}" if value else None

    def collection_uri(self) -> str:
        return PROJECTS_PATH

    def _metadata_uri(self, suffix: str) -> str | None:
        metadata_uri = self.links.get("metadata")
        return f"{metadata_uri}/{suffix}" if metadata_uri else None

    def using_uri(self) -> str | None:
        return self._metadata_uri("using2")

    def usedby_uri(self) -> str | None:
        return self._metadata_uri("usedby2")

    def query_uri(self) -> str | None:
        return self._metadata_uri("query")

    def permissions_uri(self) -> str | None:
        project_id = self.project_id
        if not project_id:
            return None
        return f"/gdc/internal/projects/{project_id}/objects/setPermissions"

    async def _load(self, uri: str | None = None) -> dict[str, Any]:
        uri = self._require_uri(uri, "load")
        while True:
            body = await self.api.request(uri)
            data = self.unwrap(body)
            if data.get("content", {}).get("state") == ENABLED_STATE:
                break
            logger.debug("Waiting for project to be enabled", uri=uri)
            await asyncio.sleep(self.api.config.poll_interval)

        self.data = data
        if not self.uri:
            self.uri = uri
        return self.data

    @chained
    async def set_as_default(self) -> None:
        """Make this project the user's default project."""
        if self.user is None:
            msg = "Project must belong to a user to become the default project"
            raise ResourceError(msg)
        settings = await self.user.settings()
        await settings.set_default_project(self).save()
        logger.info("Set default project", project=self.uri)

    @chained
    async def set_object_permissions(
        self,
        objects: Any,
        locked: bool | None = None,
        listed: bool | None = None,
        cascade: bool = False,
    ) -> Any:
        """Lock/unlock and list/unlist metadata objects of this project.

        Args:
            objects: One object or URI, or a list of them.
            locked: New lock state, or None to leave it unchanged.
            listed: New listing state, or None to leave it unchanged.
            cascade: Also apply to the objects' dependencies.

        Returns:
            The server response, or None if there was nothing to change.
        """
        uri = self.permissions_uri()
        if not uri:
            msg = "No URI for set_object_permissions()"
            raise ResourceError(msg)
        if locked is None and listed is None:
            return None

        items = objects_to_uris(objects)
        if not items:
            return None

        permissions: dict[str, Any] = {"items": items, "cascade": bool(cascade)}
        if locked is not None:
            permissions["lock"] = bool(locked)
        if listed is not None:
            permissions["listed"] = bool(listed)
        return await self.api.request(uri, "POST", {"permissions": permissions})

    async def query(self, resource_type: str) -> list[MetadataObject]:
        """Load every metadata object of a type (projectdashboards, reports, metrics)."""
        await self.wait()
        uri = self.query_uri()
        if not uri:
            msg = "No URI specified for query()"
            raise ResourceError(msg)
        if not resource_type:
            msg = "Type of resource to query must be specified"
            raise ResourceError(msg)
        resource_class = QUERY_TYPES.get(resource_type)
        if resource_class is None:
            msg = f"query() does not support `{resource_type}` resource"
            raise ResourceError(msg)

        body = await self.api.request(f"{uri}/{resource_type}")
        entries = QueryResult.model_validate(body).query.entries
        return list(
            await asyncio.gather(
                *(resource_class(self.api, self).load(entry.link).wait() for entry in entries),
            ),
        )

    async def dashboards(self) -> list[MetadataObject]:
        return await self.query("projectdashboards")

    async def reports(self) -> list[MetadataObject]:
        return await self.query("reports")

    async def metrics(self) -> list[MetadataObject]:
        return await self.query("metrics")

    async def _roles(self) -> list[Role]:
        uri = self.links.get("roles")
        if not uri:
            msg = "No URI specified for roles()"
            raise ResourceError(msg)
        body = await self.api.request(uri)
        role_uris = ProjectRolesResult.model_validate(body).projectRoles.roles
        return list(
            await asyncio.gather(
                *(Role(self.api, self).load(role_uri).wait() for role_uri in role_uris),
            ),
        )

    async def roles(self) -> list[Role]:
        await self.wait()
        return await self._roles()

    async def _role_by_name(self, name: str) -> Role:
        for role in await self._roles():
            if role.title == name:
                return role
        msg = f"No such role: {name}"
        raise ResourceError(msg)

    async def role_by_name(self, name: str) -> Role:
        await self.wait()
        return await self._role_by_name(name)

    @chained
    async def invite(self, user: "User | str", role: Role | str) -> None:
        """Add a user to the project with a role given as Role or role title.

        Raises:
            ResourceError: If the role is unknown or the server does not
                report the user as added.
        """
        uri = self.links.get("users")
        if not uri:
            msg = "No URI specified for invite()"
            raise ResourceError(msg)
        if isinstance(role, str):
            role = await self._role_by_name(role)
        user_uri = uri_of(user)
        if not user_uri:
            msg = "No user URI specified for invite()"
            raise ResourceError(msg)

        body = await self.api.request(
            uri,
            "POST",
            {
                "user": {
                    "content": {"status": "ENABLED", "userRoles": [role.uri]},
                    "links": {"self": user_uri},
                },
            },
        )
        result = ProjectUsersUpdate.model_validate(body).projectUsersUpdateResult
        if user_uri not in result.successful:
            msg = f"Could not invite user {user_uri} to project"
            raise ResourceError(msg)
        logger.info("Invited user", project=self.uri, user=user_uri, role=role.title)

    async def _using_usedby(
        self,
        uri: str,
        objects: Any,
        types: str | list[str],
    ) -> list[MetadataObject] | dict[str, list[MetadataObject]]:
        uris = objects_to_uris(objects)
        if not uris:
            msg = "You must specify an URI of root object for using/usedby operation"
            raise ResourceError(msg)
        if not types:
            msg = "You must specify types of objects for using/usedby operation"
            raise ResourceError(msg)
        types = types if isinstance(types, list) else [types]
        for resource_type in types:
            if resource_type not in USING_USEDBY_TYPES:
                msg = f"Resource type {resource_type} is not supported when calling using()/usedby()"
                raise ResourceError(msg)

        body = await self.api.request(
            uri,
            "POST",
            {"inUseMany": {"uris": uris, "types": types}},
        )
        result_sets = UseManyResult.model_validate(body).useMany

        objects_by_uri: dict[str, list[MetadataObject]] = {}
        loading = []
        for result_set in result_sets:
            resources = []
            for entry in result_set.entries:
                resource_class = USING_USEDBY_TYPES.get(entry.category)
                if resource_class is None:
                    logger.warning(
                        "Skipping object of unsupported category",
                        category=entry.category,
                        link=entry.link,
                    )
                    continue
                resource = resource_class(self.api, self).load(entry.link)
                resources.append(resource)
                loading.append(resource.wait())
            objects_by_uri[result_set.uri] = resources
        await asyncio.gather(*loading)

        if isinstance(objects, list):
            return objects_by_uri
        return objects_by_uri.get(uri_of(objects), [])

    async def using(
        self,
        objects: Any,
        types: str | list[str],
    ) -> list[MetadataObject] | dict[str, list[MetadataObject]]:
        """Load objects of the given types used by one or more objects.

        Returns:
            A list when ``objects`` is a single object or URI; a dict keyed
            by source URI when ``objects`` is a list.
        """
        await self.wait()
        uri = self.using_uri()
        if not uri:
            msg = "No URI for using()"
            raise ResourceError(msg)
        return await self._using_usedby(uri, objects, types)

    async def usedby(
        self,
        objects: Any,
        types: str | list[str],
    ) -> list[MetadataObject] | dict[str, list[MetadataObject]]:
        """Load objects of the given types that use one or more objects.

        Returns the same shapes as :meth:`using`.
        """
        await self.wait()
        uri = self.usedby_uri()
        if not uri:
            msg = "No URI for usedby()"
            raise ResourceError(msg)
        return await self._using_usedby(uri, objects, types)

    find = using
    parents = usedby
