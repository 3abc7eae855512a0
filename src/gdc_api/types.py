"""Wire payload types for the analytics platform REST API.

Pydantic models for the small set of protocol payloads the request pipeline
and the resource wrappers interpret. Business resource bodies (dashboards,
reports, metrics) are passed through as plain JSON and are not modelled here.
"""

from typing import Any

from pydantic import BaseModel, Field


class ErrorPayload(BaseModel):
    """Structured error body.

    Nested under ``error`` on every endpoint except login, which returns the
    fields at the top level.
    """

    message: str
    parameters: list[Any] = Field(default_factory=list)


class PollLink(BaseModel):
    poll: str | None = None


class AsyncTaskLink(BaseModel):
    link: PollLink = Field(default_factory=PollLink)


class AsyncTaskEnvelope(BaseModel):
    """Body of an HTTP 202 response: ``{"asyncTask": {"link": {"poll": ...}}}``."""

    asyncTask: AsyncTaskLink = Field(default_factory=AsyncTaskLink)  # noqa: N815

    @property
    def poll_uri(self) -> str | None:
        return self.asyncTask.link.poll


class UserLogin(BaseModel):
    profile: str


class LoginResult(BaseModel):
    """Body of a successful login: ``{"userLogin": {"profile": <uri>}}``."""

    userLogin: UserLogin  # noqa: N815


class QueryEntry(BaseModel):
    """One metadata object reference returned by query and using/usedby."""

    link: str
    category: str = ""
    title: str = ""


class QueryEntries(BaseModel):
    entries: list[QueryEntry] = Field(default_factory=list)


class QueryResult(BaseModel):
    """Body of ``<metadata>/query/<type>``."""

    query: QueryEntries


class UseManyResultSet(BaseModel):
    """Objects related to a single source URI."""

    uri: str
    entries: list[QueryEntry] = Field(default_factory=list)


class UseManyResult(BaseModel):
    """Body of the batched using2/usedby2 lookup."""

    useMany: list[UseManyResultSet] = Field(default_factory=list)  # noqa: N815


class ProjectUsersUpdateResult(BaseModel):
    successful: list[str] = Field(default_factory=list)
    failed: list[Any] = Field(default_factory=list)


class ProjectUsersUpdate(BaseModel):
    """Body returned after inviting a user to a project."""

    projectUsersUpdateResult: ProjectUsersUpdateResult  # noqa: N815


class ProjectRoles(BaseModel):
    roles: list[str] = Field(default_factory=list)


class ProjectRolesResult(BaseModel):
    """Body of a project's roles listing."""

    projectRoles: ProjectRoles  # noqa: N815
