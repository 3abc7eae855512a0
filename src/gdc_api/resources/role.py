"""Project role resource."""

from typing import TYPE_CHECKING, Any

from ..errors import ResourceError
from ..sequencer import chained
from .base import Resource, uri_of

if TYPE_CHECKING:
    from ..api import Api
    from .project import Project
    from .user import User


class Role(Resource):
    """A role (e.g. "Editor") defined in a project."""

    namespace = "projectRole"

    def __init__(
        self,
        api: "Api",
        project: "Project | None" = None,
        data: dict[str, Any] | None = None,
    ):
        super().__init__(api, data)
        self.project = project

    @chained
    async def add_user(self, user: "User | str") -> Any:
        """Assign the role to a user given as User or profile URI."""
        uri = self.links.get("roleUsers")
        if not uri:
            msg = "Role must have users' URI for adding user"
            raise ResourceError(msg)
        user_uri = uri_of(user)
        if not user_uri:
            msg = "User must have an URI to be assigned a role"
            raise ResourceError(msg)
        return await self.api.request(
            uri,
            "POST",
            {"associateUser": {"user": user_uri}},
        )
