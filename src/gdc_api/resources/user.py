"""User account resource."""

from typing import TYPE_CHECKING, Any

import structlog

from ..errors import ConfigurationError, ResourceError
from ..sequencer import chained
from .base import Resource
from .profile_settings import ProfileSettings
from .project import Project

if TYPE_CHECKING:
    from ..api import Api

logger = structlog.get_logger(__name__)


def _check_string(label: str, value: Any) -> None:
    if value and not isinstance(value, str):
        msg = f"{label} must be a string, got {value!r}"
        raise TypeError(msg)


class User(Resource):
    """A platform user account.

    Usually obtained from :meth:`gdc_api.api.Api.login`::

        user = await api.login("john@example.com", "secret")
        print(user.first_name)
    """

    namespace = "accountSetting"

    def __init__(self, api: "Api", data: dict[str, Any] | None = None):
        super().__init__(api, data)
        self._password: str | None = None

    @property
    def first_name(self) -> str | None:
        return self.data.get("firstName")

    @first_name.setter
    def first_name(self, value: str | None) -> None:
        _check_string("First name", value)
        self.data["firstName"] = value

    @property
    def last_name(self) -> str | None:
        return self.data.get("lastName")

    @last_name.setter
    def last_name(self, value: str | None) -> None:
        _check_string("Last name", value)
        self.data["lastName"] = value

    @property
    def username(self) -> str | None:
        return self.data.get("login")

    @username.setter
    def username(self, value: str | None) -> None:
        _check_string("Username", value)
        self.data["login"] = value

    @property
    def password(self) -> str | None:
        return self._password

    @password.setter
    def password(self, value: str | None) -> None:
        _check_string("Password", value)
        self._password = value

    async def _load(self, uri: str | None = None) -> dict[str, Any]:
        uri = self._require_uri(uri, "load")
        body = await self.api.request(uri)
        self.data = self.unwrap(body)
        self.uri = uri
        return self.data

    @chained
    async def login(
        self,
        username: str | None = None,
        password: str | None = None,
    ) -> dict[str, Any]:
        """Authenticate and load the account profile.

        Falls back to the user's own username and password when omitted.

        Raises:
            AuthenticationError: If the login fails.
        """
        username = username or self.username
        password = password or self.password
        profile_uri = await self.api.authenticate(username, password)
        self.password = password
        return await self._load(profile_uri)

    @chained
    async def register(
        self,
        username: str | None = None,
        password: str | None = None,
    ) -> None:
        """Create this user in the organization domain of the session.

        Needs a configured domain and an organization admin session.

        Raises:
            ConfigurationError: If no domain is configured.
        """
        domain = self.api.domain
        if not domain:
            msg = (
                "In order to create users you have to provide a valid domain "
                "and be logged in as organization admin"
            )
            raise ConfigurationError(msg)

        login = username or self.username
        password = password or self.password
        account = {
            "login": login,
            "password": password,
            "email": login,
            "verifyPassword": password,
            "firstName": self.first_name or "Dummy",
            "lastName": self.last_name or "User",
        }
        await self.api.request(
            f"/gdc/account/domain/{domain}/users",
            "POST",
            {"accountSetting": account},
        )
        logger.info("Registered user", username=login, domain=domain)

        self.username = account["login"]
        self.password = account["password"]
        self.first_name = account["firstName"]
        self.last_name = account["lastName"]

    async def settings(self) -> ProfileSettings:
        """Load the user's profile settings."""
        await self.wait()
        uri = self._require_uri(None, "settings")
        return await ProfileSettings(self.api, self).load(f"{uri}/settings")

    async def projects(self) -> list[Project]:
        """List the projects the user is a member of."""
        await self.wait()
        uri = self.links.get("projects")
        if not uri:
            msg = "No URI specified for projects()"
            raise ResourceError(msg)
        body = await self.api.request(uri)
        return [
            Project(self.api, self, entry["project"])
            for entry in body.get("projects", [])
            if entry.get("project")
        ]

    async def logout(self) -> None:
        """End the session and forget the account data."""
        await self.wait()
        await self.api.logout()
        self.data = {}
        self.password = None
