import typing
from xml.etree import ElementTree as ET

import requests

from .. import conf
from ..utils import log
from .client import CswCatalogClient
from .csw import parse_url
from .models import Csw202Namespace

_capabilities_cache: typing.Dict[str, bool] = {}


def is_csw_endpoint(url: str, timeout: float = 5) -> bool:
    """
    Returns True if a GetCapabilities request to `url` is answered with a
    CSW capabilities document.
    """

    if url in _capabilities_cache:
        return _capabilities_cache[url]
    supported = _fetch_capabilities_root(url, timeout) is not None
    _capabilities_cache[url] = supported
    return supported


def _fetch_capabilities_root(url: str, timeout: float) -> typing.Optional[ET.Element]:
    try:
        response = requests.get(
            parse_url(url), params={"request": "GetCapabilities"}, timeout=timeout
        )
    except requests.RequestException as exc:
        log(f"Could not fetch capabilities from {url}: {exc}", debug=False)
        return None
    if response.status_code != 200:
        return None
    try:
        root = ET.fromstring(response.content)
    except ET.ParseError:
        return None
    expected_tag = f"{{{Csw202Namespace.CSW.value}}}Capabilities"
    return root if root.tag == expected_tag else None


def get_catalog_client(
    connection_settings: conf.ConnectionSettings,
) -> CswCatalogClient:
    return CswCatalogClient.from_connection_settings(connection_settings)
