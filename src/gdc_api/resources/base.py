"""Base class for REST resources.

A resource wraps one JSON document of the platform API. The document lives
under a fixed namespace key in request and response bodies, e.g.
``{"project": {...}}``; :attr:`Resource.data` holds the content without
that key.
"""

from typing import TYPE_CHECKING, Any, ClassVar

import structlog

from ..errors import MissingNamespaceError, ResourceError
from ..paths import get_path, set_path
from ..sequencer import Sequenced, chained

if TYPE_CHECKING:
    from ..api import Api
    from .project import Project

logger = structlog.get_logger(__name__)


class Resource(Sequenced):
    """A platform object with load, create, update, save and delete.

    Mutating operations are chained (see :mod:`gdc_api.sequencer`): they
    return the resource itself and run one after another.
    """

    namespace: ClassVar[str] = ""
    uri_path: ClassVar[str] = "links.self"

    def __init__(self, api: "Api", data: dict[str, Any] | None = None):
        super().__init__()
        self.api = api
        self.data: dict[str, Any] = data or {}
        self.project: Project | None = None

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.uri or '(new)'}>"

    @property
    def meta(self) -> dict[str, Any]:
        return self.data.get("meta") or {}

    @property
    def links(self) -> dict[str, Any]:
        return self.data.get("links") or {}

    @property
    def content(self) -> dict[str, Any]:
        return self.data.get("content") or {}

    @property
    def title(self) -> str | None:
        return self.meta.get("title")

    @property
    def uri(self) -> str | None:
        return get_path(self.data, self.uri_path)

    @uri.setter
    def uri(self, value: str | None) -> None:
        set_path(self.data, self.uri_path, value)

    def get(self, path: str) -> Any:
        """Read a value by dotted path, e.g. ``resource.get("meta.locked")``."""
        return get_path(self.data, path)

    def set(self, path: str, value: Any) -> None:
        set_path(self.data, path, value)

    def collection_uri(self) -> str | None:
        """URI new resources of this kind are POSTed to, if any."""
        return None

    def unwrap(self, body: Any) -> dict[str, Any]:
        """Take this resource's document out of a response body.

        Raises:
            MissingNamespaceError: If the namespace key is absent or empty.
        """
        data = body.get(self.namespace) if isinstance(body, dict) else None
        if not data:
            raise MissingNamespaceError(self.namespace)
        return data

    def _require_uri(self, uri: str | None, operation: str) -> str:
        uri = uri or self.uri
        if not uri:
            msg = f"No URI specified for {operation}()"
            raise ResourceError(msg)
        return uri

    def _require_project(self, feature: str) -> "Project":
        if self.project is None:
            msg = f"Resource must have a project to use {feature} functionality"
            raise ResourceError(msg)
        return self.project

    async def _load(self, uri: str | None = None) -> dict[str, Any]:
        uri = self._require_uri(uri, "load")
        body = await self.api.request(uri)
        self.data = self.unwrap(body)
        if not self.uri:
            self.uri = uri
        logger.debug("Loaded resource", namespace=self.namespace, uri=uri)
        return self.data

    async def _create(self, data: dict[str, Any] | None = None) -> dict[str, Any]:
        uri = self.collection_uri()
        if not uri:
            msg = f"No URI for create() of {type(self).__name__}"
            raise ResourceError(msg)
        payload = {self.namespace: data or self.data}
        body = await self.api.request(uri, "POST", payload)
        created_uri = body.get("uri") if isinstance(body, dict) else None
        if not created_uri:
            msg = "No URI returned from create call"
            raise ResourceError(msg)
        logger.info("Created resource", namespace=self.namespace, uri=created_uri)
        return await self._load(created_uri)

    async def _update(self, data: dict[str, Any] | None = None) -> dict[str, Any]:
        uri = self._require_uri(None, "update")
        payload = {self.namespace: data or self.data}
        await self.api.request(uri, "PUT", payload)
        return await self._load(uri)

    @chained
    async def load(self, uri: str | None = None) -> dict[str, Any]:
        """Load the document from uri, or from the resource's own URI."""
        return await self._load(uri)

    @chained
    async def create(self, data: dict[str, Any] | None = None) -> dict[str, Any]:
        """POST a new document to the collection and load the result."""
        return await self._create(data)

    @chained
    async def update(self, data: dict[str, Any] | None = None) -> dict[str, Any]:
        """PUT the document to the resource URI and reload it."""
        return await self._update(data)

    @chained
    async def save(self, data: dict[str, Any] | None = None) -> dict[str, Any]:
        """Create the resource if it has no URI yet, update it otherwise."""
        if not self.uri:
            return await self._create(data)
        return await self._update(data)

    @chained
    async def delete(self, uri: str | None = None) -> None:
        uri = self._require_uri(uri, "delete")
        await self.api.request(uri, "DELETE")
        logger.info("Deleted resource", namespace=self.namespace, uri=uri)
        self.data = {}

    @chained
    async def set_locked(self, locked: bool, cascade: bool = False) -> None:
        """Lock or unlock the object (and optionally its dependencies)."""
        project = self._require_project("locking")
        await project.set_object_permissions(self, locked=locked, cascade=cascade)
        self.set("meta.locked", int(bool(locked)))

    @chained
    async def set_listed(self, listed: bool, cascade: bool = False) -> None:
        """Show or hide the object in object listings."""
        project = self._require_project("list visibility")
        await project.set_object_permissions(self, listed=listed, cascade=cascade)
        self.set("meta.unlisted", int(not listed))

    async def using(self, types: str | list[str]) -> list["Resource"]:
        """Load the objects of the given types this object uses."""
        await self.wait()
        project = self._require_project("using/usedby")
        return await project.using(self, types)

    async def usedby(self, types: str | list[str]) -> list["Resource"]:
        """Load the objects of the given types that use this object."""
        await self.wait()
        project = self._require_project("using/usedby")
        return await project.usedby(self, types)

    find = using
    parents = usedby


class MetadataObject(Resource):
    """Project metadata object addressed by ``meta.uri``."""

    uri_path: ClassVar[str] = "meta.uri"

    def __init__(
        self,
        api: "Api",
        project: "Project | None" = None,
        data: dict[str, Any] | None = None,
    ):
        super().__init__(api, data)
        self.project = project


def uri_of(item: "str | Resource | None") -> str | None:
    """Return the URI of a resource, or the item itself if it is a string."""
    if item is None or isinstance(item, str):
        return item
    return item.uri
