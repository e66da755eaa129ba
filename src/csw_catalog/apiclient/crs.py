"""Bounding box CRS normalization.

EPSG:4326 is defined by its authority as latitude first, but internally we
always keep coordinates longitude first (x, y), which is what mapping
libraries expect. CRS84 is longitude first by definition. Bounding boxes
reported by catalogues are therefore converted as follows:

- the CRS identifier, given as ``EPSG:n``, as an OGC URN or as an OGC http URI,
  is resolved to a numeric ``EPSG:n`` code
- when the result is EPSG:4326 and the catalogue did not explicitly say CRS84,
  the corners are assumed to be lat/lon and their axes get swapped

"""

import re
import typing

from ..errors import CrsResolutionError
from ..utils import log
from .models import BoundingBox

DEFAULT_CRS = "EPSG:4326"
LON_LAT_CRS_NAMES = ("CRS84", "OGC:CRS84", "OGC:84")

# a complete code, not the version segment of urn:ogc:def:crs:EPSG:6.11:4326
_EPSG_PATTERN = re.compile(r"EPSG:[0-9]+(?![0-9.:])")
_NUMERIC_EPSG_PATTERN = re.compile(r"^EPSG:([0-9]+)$")
# urn:ogc:def:crs:{authority}:{version}:{code}
_URN_PATTERN = re.compile(
    r"[\w-]*:[\w-]*:[\w-]*:[\w-]*:[\w-]*:[^:]*:(([\w-]+\s[\w-]+)|[\w-]*)"
)
# http://www.opengis.net/def/crs/{authority}/{version}/{code}
_URI_PATTERN = re.compile(r"/def/crs/([\w.-]+)/([\w.-]*)/([\w.-]+)/?$")

# identifiers that have a numeric EPSG equivalent without being EPSG codes
_EPSG_ALIASES = {
    "EPSG:CRS84": "EPSG:4326",
    "EPSG:OGC:CRS84": "EPSG:4326",
    "EPSG:WGS84": "EPSG:4326",
    "EPSG:OGC:84": "EPSG:4326",
    "EPSG:900913": "EPSG:3857",
    "EPSG:102100": "EPSG:3857",
    "EPSG:102113": "EPSG:3857",
    "EPSG:GOOGLE": "EPSG:3857",
}


def make_numeric_epsg(crs: typing.Optional[str]) -> typing.Optional[str]:
    """Return the canonical ``EPSG:<n>`` form of the input, if there is one"""
    if not crs:
        return None
    candidate = crs.strip().upper()
    candidate = _EPSG_ALIASES.get(candidate, candidate)
    match = _NUMERIC_EPSG_PATTERN.match(candidate)
    if match is not None:
        result = f"EPSG:{int(match.group(1))}"
    else:
        result = None
    return result


def _qualify(authority: str, code: str) -> typing.Optional[str]:
    if not code:
        result = None
    elif authority.upper() == "EPSG":
        result = f"EPSG:{code}"
    else:
        result = f"{authority}:{code}"
    return result


def extract_crs_from_urn(urn: typing.Optional[str]) -> typing.Optional[str]:
    """Extract ``AUTHORITY:code`` from an URN like ``urn:ogc:def:crs:EPSG::4326``"""
    if not urn:
        return None
    parts = urn.split(":")
    if len(parts) < 7:
        return None
    return _qualify(parts[4], parts[-1])


def extract_crs_from_uri(raw_crs: str) -> typing.Optional[str]:
    """Extract ``AUTHORITY:code`` from an URI like ``http://www.opengis.net/def/crs/EPSG/0/4326``"""
    match = _URI_PATTERN.search(raw_crs)
    if match is None:
        return None
    return _qualify(match.group(1), match.group(3))


def extract_crs(raw_crs: typing.Optional[str]) -> typing.Optional[str]:
    """Extract the CRS identifier reported by a catalogue, without resolving it.

    An explicit ``EPSG:<digits>`` token wins over anything else. Otherwise the
    value is parsed as an URN or URI and, as a last resort, its last
    colon-delimited segment is used.

    """

    raw_crs = raw_crs or ""
    epsg_match = _EPSG_PATTERN.search(raw_crs)
    epsg = make_numeric_epsg(epsg_match.group() if epsg_match else None)
    urn_match = _URN_PATTERN.search(raw_crs)
    return (
        epsg
        or extract_crs_from_urn(urn_match.group() if urn_match else None)
        or extract_crs_from_uri(raw_crs)
        or raw_crs.split(":")[-1]
        or None
    )


def resolve_crs(raw_crs: typing.Optional[str]) -> typing.Tuple[str, typing.Optional[str]]:
    """Resolve the input into a numeric EPSG code.

    Returns a tuple with the resolved ``EPSG:<n>`` code and the extracted
    identifier it was resolved from.

    """

    extracted = extract_crs(raw_crs)
    if not extracted:
        resolved = DEFAULT_CRS
    elif extracted[:5] == "EPSG:":
        resolved = make_numeric_epsg(extracted)
    else:
        resolved = make_numeric_epsg(f"EPSG:{extracted}")
    if resolved is None:
        raise CrsResolutionError(
            f"No suitable EPSG numeric conversion found for {extracted!r}",
            crs=raw_crs,
        )
    return resolved, extracted


def needs_axis_swap(resolved_crs: str, extracted_crs: typing.Optional[str]) -> bool:
    return resolved_crs == DEFAULT_CRS and extracted_crs not in LON_LAT_CRS_NAMES


def parse_corner(raw_corner: typing.Optional[str]) -> typing.Tuple[float, float]:
    """Parse a ``"a b"`` corner into a pair of floats.

    Some catalogues use a comma as the decimal separator, so it is replaced
    with a dot.

    """

    values = (raw_corner or "").replace(",", ".").split()
    if len(values) < 2:
        raise ValueError(f"Invalid corner coordinates: {raw_corner!r}")
    return float(values[0]), float(values[1])


def normalize(
    raw_crs: typing.Optional[str],
    lower_corner: typing.Sequence[float],
    upper_corner: typing.Sequence[float],
) -> BoundingBox:
    crs, extracted = resolve_crs(raw_crs)
    lower = (float(lower_corner[0]), float(lower_corner[1]))
    upper = (float(upper_corner[0]), float(upper_corner[1]))
    if needs_axis_swap(crs, extracted):
        log(f"Swapping bounding box axes reported as {raw_crs!r}")
        lower = (lower[1], lower[0])
        upper = (upper[1], upper[0])
    return BoundingBox(extent=(lower[0], lower[1], upper[0], upper[1]), crs=crs)
