"""Maven ``settings.xml`` support.

The user settings and the settings of the Maven installation are merged, user
entries first. Before any request, repositories are rewritten the way Maven
does: repositories of active profiles are added, mirrors replace the
repositories they match and server credentials are attached by repository
id. Active proxies are handed to ``requests``.

Encrypted passwords (``settings-security.xml``) are not supported.
"""
from __future__ import annotations

import logging
import os
import re
import shutil
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field, replace
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple, Union
from urllib.parse import quote, urlsplit

from artifact.models import RepositoryType
from common.logging_utils import extra_context, is_debug_enabled, safe_url
from constants import Constants
from .models import Repository

logger = logging.getLogger(__name__)

SETTINGS_FILE_NAME = "settings.xml"

_LOCAL_HOSTS = frozenset({"localhost", "127.0.0.1"})
_HTTP_PROTOCOLS = frozenset({"http", "dav", "dav:http", "dav+http"})
_PROPERTY_PATTERN = re.compile(r"\$\{(env\.[^}]+|user\.home)\}")
_ENCRYPTED_PATTERN = re.compile(r"^\{.*\}$")


class SettingsError(Exception):
    """Raised when a settings file cannot be read or parsed."""


def _path(path: str) -> str:
    # {*} matches a tag in any namespace, or in none
    return "/".join(f"{{*}}{segment}" for segment in path.split("/"))


def _interpolate(value: str) -> str:
    def _lookup(match: re.Match) -> str:
        name = match.group(1)
        if name == "user.home":
            return str(Path.home())
        return os.environ.get(name[len("env."):], match.group(0))
    return _PROPERTY_PATTERN.sub(_lookup, value)


def _text(element: ET.Element, path: str) -> Optional[str]:
    node = element.find(_path(path))
    if node is None or node.text is None:
        return None
    value = _interpolate(node.text.strip())
    return value or None


def _flag(element: ET.Element, path: str, default: bool = False) -> bool:
    value = _text(element, path)
    return default if value is None else value.lower() == "true"


def _is_external(url: str) -> bool:
    parts = urlsplit(url)
    return parts.scheme != "file" and (parts.hostname or "") not in _LOCAL_HOSTS


@dataclass(frozen=True)
class Mirror:
    """A ``mirror`` entry standing for the repositories its ``mirrorOf`` matches."""
    id: str
    url: str
    mirror_of: str
    blocked: bool = False

    def matches(self, repository: Repository) -> bool:
        """Match a repository against ``mirrorOf``.

        Supports ``*``, ``external:*``, ``external:http:*``, comma separated
        ids and ``!id`` exclusions, which win over any other pattern.
        """
        matched = False
        for pattern in (token.strip() for token in self.mirror_of.split(",")):
            if not pattern:
                continue
            if pattern.startswith("!"):
                if pattern[1:] == repository.id:
                    return False
            elif pattern in ("*", repository.id):
                matched = True
            elif pattern == "external:*":
                matched = matched or _is_external(repository.url)
            elif pattern == "external:http:*":
                matched = matched or (
                    _is_external(repository.url) and urlsplit(repository.url).scheme in _HTTP_PROTOCOLS
                )
        return matched


@dataclass(frozen=True)
class Server:
    id: str
    username: Optional[str] = None
    password: Optional[str] = field(default=None, repr=False)


@dataclass(frozen=True)
class Proxy:
    """An active ``proxy`` entry; ``protocol`` is the protocol of the proxied repositories."""
    protocol: str
    host: str
    port: int = 8080
    username: Optional[str] = None
    password: Optional[str] = field(default=None, repr=False)
    non_proxy_hosts: Tuple[str, ...] = ()

    @property
    def url(self) -> str:
        credentials = ""
        if self.username:
            credentials = f"{quote(self.username, safe='')}:{quote(self.password or '', safe='')}@"
        return f"http://{credentials}{self.host}:{self.port}"

    def bypasses(self, host: str) -> bool:
        host = host.lower()
        return any(fnmatchcase(host, pattern.lower()) for pattern in self.non_proxy_hosts)


@dataclass(frozen=True)
class Profile:
    id: str
    active_by_default: bool = False
    repositories: Tuple[Repository, ...] = ()


@dataclass
class MavenSettings:
    """Merged content of the settings files relevant to remote lookups."""
    mirrors: List[Mirror] = field(default_factory=list)
    servers: Dict[str, Server] = field(default_factory=dict)
    proxies: List[Proxy] = field(default_factory=list)
    profiles: List[Profile] = field(default_factory=list)
    active_profiles: List[str] = field(default_factory=list)

    def merge(self, other: "MavenSettings") -> "MavenSettings":
        """Return these settings completed by ``other``, these entries first."""
        profile_ids = {profile.id for profile in self.profiles}
        return MavenSettings(
            self.mirrors + other.mirrors,
            {**other.servers, **self.servers},
            self.proxies + other.proxies,
            self.profiles + [profile for profile in other.profiles if profile.id not in profile_ids],
            self.active_profiles + [name for name in other.active_profiles if name not in self.active_profiles],
        )

    @property
    def repositories(self) -> List[Repository]:
        """Repositories declared by the active profiles."""
        repositories: List[Repository] = []
        for profile in self.profiles:
            if profile.id in self.active_profiles or profile.active_by_default:
                repositories.extend(profile.repositories)
        return repositories

    def mirror_for(self, repository: Repository) -> Optional[Mirror]:
        """Return the mirror of a repository, an exact ``mirrorOf`` id first."""
        for mirror in self.mirrors:
            if mirror.mirror_of == repository.id:
                return mirror
        for mirror in self.mirrors:
            if mirror.matches(repository):
                return mirror
        return None

    def auth_for(self, repository_id: str) -> Optional[Tuple[str, str]]:
        server = self.servers.get(repository_id)
        if server is None or server.username is None:
            return None
        return server.username, server.password or ""

    def apply(self, repositories: Sequence[Repository]) -> List[Repository]:
        """Rewrite declared repositories into the ones to request.

        Profile repositories are appended, mirrored repositories are replaced by
        their mirror, blocked ones dropped and duplicates (same type and URL)
        removed. Expects declared repositories, not an already applied list.
        """
        applied: List[Repository] = []
        seen: Set[Tuple[RepositoryType, str]] = set()
        for repository in list(repositories) + self.repositories:
            mirror = self.mirror_for(repository)
            if mirror is not None:
                if mirror.blocked:
                    logger.warning(
                        "The %s repository is blocked by the %s mirror", repository.id, mirror.id
                    )
                    continue
                if is_debug_enabled(logger):
                    logger.debug(
                        "Repository mirrored",
                        extra=extra_context(
                            component="maven_settings",
                            action="apply",
                            repository=repository.id,
                            mirror=mirror.id,
                            target=safe_url(mirror.url),
                        )
                    )
                repository = Repository(repository.type, mirror.id, mirror.url)
            auth = self.auth_for(repository.id)
            if auth is not None:
                repository = replace(repository, auth=auth)
            key = (repository.type, repository.url.rstrip("/"))
            if key in seen:
                continue
            seen.add(key)
            applied.append(repository)
        return applied

    def proxy_for(self, url: str) -> Optional[Proxy]:
        """Return the proxy to reach a URL; an ``http`` proxy also serves ``https``."""
        parts = urlsplit(url)
        host = parts.hostname or ""
        candidates: Dict[str, Proxy] = {}
        for proxy in self.proxies:
            if not proxy.bypasses(host):
                candidates.setdefault(proxy.protocol.lower(), proxy)
        scheme = parts.scheme.lower()
        proxy = candidates.get(scheme)
        if proxy is None and scheme == "https":
            proxy = candidates.get("http")
        return proxy

    def request_options(self, url: str) -> Dict[str, Any]:
        """Extra ``requests`` keyword arguments to reach a URL."""
        proxy = self.proxy_for(url)
        if proxy is None:
            return {}
        return {"proxies": {urlsplit(url).scheme.lower(): proxy.url}}


def _repositories(profile: ET.Element, path: str, repository_type: RepositoryType) -> List[Repository]:
    repositories = []
    for node in profile.findall(_path(path)):
        url = _text(node, "url")
        if url:
            repositories.append(Repository(repository_type, _text(node, "id") or url, url))
    return repositories


def parse_settings(text: str, source: str = "settings") -> MavenSettings:
    """Parse the content of a ``settings.xml`` file.

    Raises:
        SettingsError: If the document is not well-formed settings XML.
    """
    try:
        root = ET.fromstring(text)
    except ET.ParseError as exc:
        raise SettingsError(f"Unable to parse the {source} settings: {exc}") from exc
    if not root.tag.endswith("settings"):
        raise SettingsError(f"Unexpected root element in the {source} settings: {root.tag}")

    settings = MavenSettings()
    for node in root.findall(_path("mirrors/mirror")):
        mirror_id, url, mirror_of = _text(node, "id"), _text(node, "url"), _text(node, "mirrorOf")
        if mirror_id and url and mirror_of:
            settings.mirrors.append(Mirror(mirror_id, url, mirror_of, _flag(node, "blocked")))
        else:
            logger.warning("Skipping an incomplete mirror of the %s settings", source)

    for node in root.findall(_path("servers/server")):
        server_id = _text(node, "id")
        if not server_id:
            continue
        password = _text(node, "password")
        if password is not None and _ENCRYPTED_PATTERN.match(password):
            logger.warning("Encrypted passwords are not supported, skipping the %s server credentials", server_id)
            continue
        settings.servers[server_id] = Server(server_id, _text(node, "username"), password)

    for node in root.findall(_path("proxies/proxy")):
        host = _text(node, "host")
        if not host or not _flag(node, "active", default=True):
            continue
        try:
            port = int(_text(node, "port") or 8080)
        except ValueError:
            logger.warning("Skipping the %s proxy with an invalid port", host)
            continue
        non_proxy_hosts = tuple(
            token.strip() for token in re.split(r"[|,]", _text(node, "nonProxyHosts") or "") if token.strip()
        )
        settings.proxies.append(Proxy(
            _text(node, "protocol") or "http", host, port,
            _text(node, "username"), _text(node, "password"), non_proxy_hosts,
        ))

    for node in root.findall(_path("profiles/profile")):
        profile_id = _text(node, "id")
        if not profile_id:
            continue
        repositories = _repositories(node, "repositories/repository", RepositoryType.NORMAL)
        repositories.extend(_repositories(node, "pluginRepositories/pluginRepository", RepositoryType.PLUGIN))
        settings.profiles.append(Profile(profile_id, _flag(node, "activation/activeByDefault"), tuple(repositories)))

    for node in root.findall(_path("activeProfiles/activeProfile")):
        if node.text and node.text.strip():
            settings.active_profiles.append(node.text.strip())
    return settings


def read_settings(path: Union[str, Path]) -> MavenSettings:
    """Read a settings file.

    Raises:
        SettingsError: If the file cannot be read or parsed.
    """
    try:
        text = Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise SettingsError(f"Unable to read the {path} settings: {exc}") from exc
    return parse_settings(text, str(path))


def user_settings_file() -> Path:
    if Constants.MAVEN_SETTINGS_FILE:
        return Path(Constants.MAVEN_SETTINGS_FILE).expanduser()
    return Path.home() / ".m2" / SETTINGS_FILE_NAME


def global_settings_file() -> Optional[Path]:
    """Locate the settings of the Maven installation, if any."""
    if Constants.MAVEN_GLOBAL_SETTINGS_FILE:
        return Path(Constants.MAVEN_GLOBAL_SETTINGS_FILE).expanduser()
    for name in Constants.ENV_MAVEN_HOME:
        home = os.environ.get(name)
        if home:
            return Path(home) / "conf" / SETTINGS_FILE_NAME
    mvn = shutil.which("mvn")
    if mvn:
        return Path(mvn).resolve().parent.parent / "conf" / SETTINGS_FILE_NAME
    return None


def load_settings(user_file: Union[str, Path, None] = None,
                  global_file: Union[str, Path, None] = None) -> MavenSettings:
    """Load and merge the user and global settings.

    Missing files are skipped silently, unreadable or malformed ones with an
    error log, so a broken settings file never stops a check.
    """
    settings = MavenSettings()
    for path in (user_file or user_settings_file(), global_file or global_settings_file()):
        if path is None or not Path(path).is_file():
            continue
        logger.info("Reading the %s Maven settings", path)
        try:
            settings = settings.merge(read_settings(path))
        except SettingsError as exc:
            logger.error("Skipping the Maven settings: %s", exc)
    return settings
