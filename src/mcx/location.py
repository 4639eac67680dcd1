"""Alias expansion and container detection.

An aliased URL is ``alias/bucket/key``.  Aliases registered in the
:class:`AliasRegistry` expand to an S3-compatible endpoint; any other first
segment means the whole string is a filesystem path.  All filesystem paths
share the empty alias, so local-to-local transfers count as one backend.
"""

from __future__ import annotations

import os
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING
from urllib.parse import unquote, urlparse

from .client import Client, new_client_from_alias
from .exceptions import InvalidArgumentError, MCXError

if TYPE_CHECKING:
    from ._context import Context
    from .encryption import KeyRegistry

ENV_HOST_PREFIX = "MCX_HOST_"

_URL_RE = re.compile(r"^https?://")


@dataclass(frozen=True)
class AliasConfig:
    """Endpoint and credentials for one alias."""
    url: str
    access_key: str = ""
    secret_key: str = ""
    session_token: str = ""
    region: str = ""

    def __repr__(self) -> str:
        return f"AliasConfig({self.url!r})"

    @classmethod
    def from_url(cls, value: str) -> AliasConfig:
        """Parse ``scheme://access:secret[:token]@host[:port]``."""
        parsed = urlparse(value)
        if parsed.scheme not in ("http", "https") or not parsed.hostname:
            raise InvalidArgumentError(f"Invalid host URL {value!r}")
        host = parsed.hostname
        if parsed.port:
            host = f"{host}:{parsed.port}"
        access = unquote(parsed.username or "")
        secret, token = "", ""
        if parsed.password:
            secret, _, token = unquote(parsed.password).partition(":")
        return cls(url=f"{parsed.scheme}://{host}", access_key=access,
                   secret_key=secret, session_token=token)


@dataclass(frozen=True)
class Location:
    """A resolved address.

    Attributes:
        alias: Registered alias, empty for every filesystem path.
        url: Fully qualified URL (endpoint + path) or filesystem path.
        config: Host config, ``None`` for filesystem locations.
    """
    alias: str
    url: str
    config: AliasConfig | None = None

    @property
    def is_fs(self) -> bool:
        return self.config is None

    @property
    def path(self) -> str:
        """Backend-native path: the filesystem path or ``/bucket/key``."""
        if self.config is None:
            return self.url
        # Keys may hold "#" or "?", so slice rather than parse.
        return self.url[len(self.config.url.rstrip("/")):] or "/"

    def aliased(self, path: str) -> str:
        """User-facing ``alias/bucket/key`` form of a backend-native *path*."""
        if self.config is None:
            return path
        return f"{self.alias}/{path.lstrip('/')}"


def _default_factory(location: Location) -> Client:
    return new_client_from_alias(location.alias, location.url, location.config)


class AliasRegistry:
    """Known aliases plus the factory that turns locations into clients."""

    def __init__(self, aliases: Mapping[str, AliasConfig] | None = None, *,
                 client_factory: Callable[[Location], Client] | None = None):
        self._aliases: dict[str, AliasConfig] = dict(aliases or {})
        self.client_factory = client_factory or _default_factory

    def __contains__(self, alias: str) -> bool:
        return alias in self._aliases

    def __repr__(self) -> str:
        return f"AliasRegistry({sorted(self._aliases)!r})"

    @classmethod
    def from_environ(cls, environ: Mapping[str, str] | None = None) -> AliasRegistry:
        """Register every ``MCX_HOST_<ALIAS>`` variable."""
        if environ is None:
            environ = os.environ
        aliases = {}
        for name, value in environ.items():
            if name.startswith(ENV_HOST_PREFIX) and len(name) > len(ENV_HOST_PREFIX):
                alias = name[len(ENV_HOST_PREFIX):].lower()
                aliases[alias] = AliasConfig.from_url(value)
        return cls(aliases)

    def add(self, alias: str, config: AliasConfig) -> None:
        self._aliases[alias] = config

    def get(self, alias: str) -> AliasConfig | None:
        return self._aliases.get(alias)

    def resolve(self, url: str) -> Location:
        """Expand *url*'s alias; unregistered aliases are filesystem paths.

        Raises:
            InvalidArgumentError: For a raw ``http(s)://`` URL, which must be
                registered as an alias first.
        """
        alias, _, rest = url.replace("\\", "/").partition("/")
        config = self._aliases.get(alias)
        if config is None:
            if _URL_RE.match(url):
                raise InvalidArgumentError(
                    f"Use an alias instead of a raw URL: {url!r}")
            return Location(alias="", url=url)
        full = config.url.rstrip("/")
        if rest:
            full = f"{full}/{rest}"
        return Location(alias=alias, url=full, config=config)

    def new_client(self, location: Location) -> Client:
        return self.client_factory(location)

    def client_for(self, url: str) -> tuple[Location, Client]:
        """Resolve *url* and build its client."""
        location = self.resolve(url)
        return location, self.new_client(location)


def is_container_like(ctx: Context, url: str, registry: AliasRegistry,
                      keys: KeyRegistry | None = None) -> bool:
    """Whether *url* names a directory, bucket or prefix.

    An existing path answers from its stat.  Otherwise a filesystem path
    is a directory iff it ends with a separator; an aliased URL is a
    directory for ``alias/bucket``, never for a bare ``alias``, and for
    deeper paths iff it ends with ``/``.
    """
    try:
        _, client = registry.client_for(url)
        sse = keys.resolve(url) if keys is not None else None
        return client.stat(ctx, sse=sse).is_dir
    except MCXError:
        pass

    if location_is_fs(url, registry):
        return url.endswith(("/", os.sep))

    path = url.replace("\\", "/")
    fields = path.split("/")
    if len(fields) <= 1:
        return False
    if len(fields) == 2:
        return True
    return path.endswith("/")


def location_is_fs(url: str, registry: AliasRegistry) -> bool:
    alias, _, _ = url.replace("\\", "/").partition("/")
    return alias not in registry
