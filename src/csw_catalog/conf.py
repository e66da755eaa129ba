import contextlib
import dataclasses
import json
import os
import typing
import uuid
from pathlib import Path

import toml

from .utils import log

SETTINGS_PATH_ENV_VAR = "CSW_CATALOG_SETTINGS"
NETWORK_TIMEOUT_ENV_VAR = "CSW_CATALOG_NETWORK_TIMEOUT"
DEFAULT_NETWORK_TIMEOUT = 5000  # milliseconds
DEFAULT_PAGE_SIZE = 10


def get_settings_path() -> Path:
    raw_path = os.getenv(SETTINGS_PATH_ENV_VAR)
    if raw_path:
        result = Path(raw_path).expanduser()
    else:
        result = Path("~/.config/csw_catalog/settings.toml").expanduser()
    return result


def _get_network_requests_timeout() -> int:
    raw_value = os.getenv(NETWORK_TIMEOUT_ENV_VAR)
    try:
        result = int(raw_value) if raw_value else DEFAULT_NETWORK_TIMEOUT
    except ValueError:
        log(
            f"Invalid {NETWORK_TIMEOUT_ENV_VAR} value {raw_value!r}, using default",
            debug=False,
        )
        result = DEFAULT_NETWORK_TIMEOUT
    return result


@contextlib.contextmanager
def settings_file(path: typing.Optional[Path] = None, save: bool = True):
    """A simple context manager to load and optionally save the settings document"""
    settings_path = path or get_settings_path()
    if settings_path.is_file():
        document = toml.loads(settings_path.read_text("utf-8"))
    else:
        document = {}
    yield document
    if save:
        settings_path.parent.mkdir(parents=True, exist_ok=True)
        settings_path.write_text(toml.dumps(document), "utf-8")


@dataclasses.dataclass
class ConnectionSettings:
    """Helper class to manage settings for a catalogue connection"""

    id: uuid.UUID
    name: str
    catalog_url: str
    page_size: int = DEFAULT_PAGE_SIZE
    network_requests_timeout: int = dataclasses.field(
        default_factory=_get_network_requests_timeout
    )
    username: typing.Optional[str] = None
    password: typing.Optional[str] = None

    @classmethod
    def from_dict(cls, connection_identifier: str, raw: typing.Dict):
        return cls(
            id=uuid.UUID(connection_identifier),
            name=raw["name"],
            catalog_url=raw["catalog_url"],
            page_size=int(raw.get("page_size", DEFAULT_PAGE_SIZE)),
            network_requests_timeout=int(
                raw.get("network_requests_timeout", _get_network_requests_timeout())
            ),
            username=raw.get("username") or None,
            password=raw.get("password") or None,
        )

    def to_dict(self) -> typing.Dict:
        result = {
            "name": self.name,
            "catalog_url": self.catalog_url,
            "page_size": self.page_size,
            "network_requests_timeout": self.network_requests_timeout,
        }
        if self.username is not None:
            result["username"] = self.username
        if self.password is not None:
            result["password"] = self.password
        return result

    def to_json(self):
        return json.dumps(
            {
                "id": str(self.id),
                "name": self.name,
                "catalog_url": self.catalog_url,
                "page_size": self.page_size,
                "network_requests_timeout": self.network_requests_timeout,
                "username": self.username,
            }
        )


class SettingsManager:
    """Manage saving/loading catalogue connections in a TOML settings file"""

    CONNECTIONS_KEY: str = "connections"
    SELECTED_CONNECTION_KEY: str = "selected_connection"

    def __init__(self, path: typing.Optional[Path] = None):
        self.path = path

    def list_connections(self) -> typing.List[ConnectionSettings]:
        with settings_file(self.path, save=False) as document:
            raw_connections = document.get(self.CONNECTIONS_KEY, {})
            result = [
                ConnectionSettings.from_dict(connection_id, raw)
                for connection_id, raw in raw_connections.items()
            ]
        result.sort(key=lambda obj: obj.name)
        return result

    def get_connection_settings(
        self, connection_id: uuid.UUID
    ) -> ConnectionSettings:
        with settings_file(self.path, save=False) as document:
            raw = document.get(self.CONNECTIONS_KEY, {}).get(str(connection_id))
        if raw is None:
            raise ValueError(f"Unknown connection {str(connection_id)!r}")
        return ConnectionSettings.from_dict(str(connection_id), raw)

    def find_connection(self, name: str) -> typing.Optional[ConnectionSettings]:
        for connection_settings in self.list_connections():
            if connection_settings.name == name:
                result = connection_settings
                break
        else:
            result = None
        return result

    def save_connection_settings(self, connection_settings: ConnectionSettings):
        with settings_file(self.path) as document:
            connections = document.setdefault(self.CONNECTIONS_KEY, {})
            connections[str(connection_settings.id)] = connection_settings.to_dict()

    def delete_connection(self, connection_id: uuid.UUID):
        with settings_file(self.path) as document:
            document.get(self.CONNECTIONS_KEY, {}).pop(str(connection_id), None)
            if document.get(self.SELECTED_CONNECTION_KEY) == str(connection_id):
                del document[self.SELECTED_CONNECTION_KEY]

    def get_current_connection_settings(self) -> typing.Optional[ConnectionSettings]:
        with settings_file(self.path, save=False) as document:
            current = document.get(self.SELECTED_CONNECTION_KEY)
        if current is not None:
            result = self.get_connection_settings(uuid.UUID(current))
        else:
            result = None
        return result

    def set_current_connection(self, connection_id: typing.Optional[uuid.UUID] = None):
        with settings_file(self.path) as document:
            if connection_id is None:
                document.pop(self.SELECTED_CONNECTION_KEY, None)
            else:
                if str(connection_id) not in document.get(self.CONNECTIONS_KEY, {}):
                    raise ValueError(f"Unknown connection {str(connection_id)!r}")
                document[self.SELECTED_CONNECTION_KEY] = str(connection_id)
