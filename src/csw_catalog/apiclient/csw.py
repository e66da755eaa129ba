import datetime as dt
import io
import typing
import urllib.parse
from xml.etree import ElementTree as ET

from .. import network
from ..errors import MalformedResponseError
from ..utils import (
    clean_duplicated_question_marks,
    log,
)
from . import (
    crs,
    filters,
    models,
)
from .models import Csw202Namespace

SERVICE = "CSW"
VERSION = "2.0.2"
TYPE_NAMES = "csw:Record"
ELEMENT_SET_NAME = "full"
RESULT_TYPE = "results"
CONSTRAINT_VERSION = "1.1.0"
OUTPUT_FORMAT = "application/xml"

GET_RECORD_BY_ID = "GetRecordById"

# substitutes for csw:AbstractRecord plus the ISO records some catalogues return
RECORD_TAGS = (
    f"{{{Csw202Namespace.CSW.value}}}Record",
    f"{{{Csw202Namespace.CSW.value}}}SummaryRecord",
    f"{{{Csw202Namespace.CSW.value}}}BriefRecord",
    f"{{{Csw202Namespace.GMD.value}}}MD_Metadata",
    f"{{{Csw202Namespace.GMI.value}}}MI_Metadata",
)
DC_NAMESPACES = (Csw202Namespace.DC.value, Csw202Namespace.DCT.value)
CRS84_URN = "urn:ogc:def:crs:OGC:1.3:CRS84"

for _member in Csw202Namespace:
    ET.register_namespace(_member.name.lower(), _member.value)


def parse_url(url: str) -> str:
    """Prepare a catalogue URL for sending CSW requests.

    The ``service`` and ``version`` parameters are added when missing and any
    ``request`` parameter is dropped, since the operation being performed is
    expressed elsewhere.

    """

    parsed = urllib.parse.urlsplit(clean_duplicated_question_marks(url))
    defaults = {"service": SERVICE, "version": VERSION}
    found = {name: [] for name in defaults}
    others = []
    for name, value in urllib.parse.parse_qsl(parsed.query, keep_blank_values=True):
        key = name.lower()
        if key in found:
            found[key].append((key, value))
        elif key != "request":
            others.append((name, value))
    query = []
    for name, default in defaults.items():
        query.extend(found[name] or [(name, default)])
    query.extend(others)
    return urllib.parse.urlunsplit(
        parsed._replace(
            query=urllib.parse.urlencode(query, quote_via=urllib.parse.quote)
        )
    )


def _declare_remaining_namespaces(root: ET.Element):
    """Declare namespaces that are only referenced inside text and attribute values

    ElementTree only declares namespaces used by element and attribute names,
    but values such as ``csw:Record`` or ``dc:type`` need their prefix bound too.

    """

    used = set()
    for element in root.iter():
        names = [element.tag, *element.attrib.keys()]
        for name in names:
            text = name.text if isinstance(name, ET.QName) else name
            if text.startswith("{"):
                used.add(text[1:].partition("}")[0])
    for member in Csw202Namespace:
        if member.value not in used:
            root.set(f"xmlns:{member.name.lower()}", member.value)


def build_get_records(
    start_position: int,
    max_records: int,
    filter_: typing.Optional[
        typing.Union[str, filters.Filter, filters.Predicate]
    ] = None,
) -> str:
    """Build the XML body of a CSW GetRecords request.

    A missing or plain text ``filter_`` selects datasets matching the text, if
    any. Structured filters are embedded as the query constraint as is.

    """

    if filter_ is None or isinstance(filter_, str):
        constraint = filters.text_filter(filter_)
    elif isinstance(filter_, filters.Filter):
        constraint = filter_
    else:
        constraint = filters.Filter(filter_)
    get_records_el = ET.Element(
        ET.QName(Csw202Namespace.CSW.value, "GetRecords"),
        attrib={
            "service": SERVICE,
            "version": VERSION,
            "resultType": RESULT_TYPE,
            "startPosition": str(start_position),
            "maxRecords": str(max_records),
        },
    )
    query_el = ET.SubElement(
        get_records_el,
        ET.QName(Csw202Namespace.CSW.value, "Query"),
        attrib={"typeNames": TYPE_NAMES},
    )
    elementsetname_el = ET.SubElement(
        query_el, ET.QName(Csw202Namespace.CSW.value, "ElementSetName")
    )
    elementsetname_el.text = ELEMENT_SET_NAME
    constraint_el = ET.SubElement(
        query_el,
        ET.QName(Csw202Namespace.CSW.value, "Constraint"),
        attrib={"version": CONSTRAINT_VERSION},
    )
    constraint.to_element(constraint_el)
    _declare_remaining_namespaces(get_records_el)
    log(f"constraint: {constraint}")
    tree = ET.ElementTree(get_records_el)
    buffer = io.StringIO()
    tree.write(buffer, xml_declaration=True, encoding="unicode")
    result = buffer.getvalue()
    buffer.close()
    return result


def build_get_records_request(
    url: str, search_request: models.SearchRequest
) -> network.RequestToPerform:
    return network.RequestToPerform(
        url=parse_url(url),
        method=network.HttpMethod.POST,
        payload=build_get_records(
            search_request.start_position,
            search_request.max_records,
            search_request.filter_,
        ),
        content_type=OUTPUT_FORMAT,
    )


def build_get_record_by_id(url: str) -> network.RequestToPerform:
    return network.RequestToPerform(
        url=parse_url(url),
        method=network.HttpMethod.GET,
        operation=GET_RECORD_BY_ID,
    )


def _local_name(tag: str) -> str:
    return tag.rpartition("}")[-1]


def _find_child(
    element: ET.Element, local_name: str
) -> typing.Optional[ET.Element]:
    for child in element:
        if _local_name(child.tag) == local_name:
            return child
    return None


def decode_response(contents: typing.Union[str, bytes]) -> ET.Element:
    try:
        result = ET.fromstring(contents)
    except ET.ParseError as exc:
        raise MalformedResponseError(f"Could not decode response as XML: {exc}") from exc
    return result


def classify_response(root: ET.Element) -> models.ResponseKind:
    try:
        result = models.ResponseKind(_local_name(root.tag))
    except ValueError:
        result = models.ResponseKind.UNRECOGNIZED
    return result


def parse_exception_report(root: ET.Element) -> models.ProtocolError:
    exception_el = _find_child(root, "Exception")
    text_el = (
        _find_child(exception_el, "ExceptionText")
        if exception_el is not None
        else None
    )
    if text_el is not None and text_el.text:
        result = models.ProtocolError(text_el.text.strip())
    else:
        result = models.ProtocolError()
    return result


def parse_get_records_response(
    contents: typing.Union[str, bytes],
) -> typing.Optional[typing.Union[models.SearchResult, models.ProtocolError]]:
    root = decode_response(contents)
    kind = classify_response(root)
    search_results = root.find(f"{{{Csw202Namespace.CSW.value}}}SearchResults")
    if kind == models.ResponseKind.EXCEPTION_REPORT:
        result = parse_exception_report(root)
    elif kind == models.ResponseKind.GET_RECORDS and search_results is not None:
        result = models.SearchResult(
            number_of_records_matched=_get_int_attribute(
                search_results, "numberOfRecordsMatched"
            ),
            number_of_records_returned=_get_int_attribute(
                search_results, "numberOfRecordsReturned"
            ),
            next_record=_get_int_attribute(search_results, "nextRecord"),
            records=[
                parse_record(item)
                for item in search_results
                if item.tag in RECORD_TAGS
            ],
        )
    else:
        log(f"Received an unexpected response: {root.tag!r}")
        result = None
    return result


def parse_get_record_by_id_response(
    contents: typing.Union[str, bytes],
) -> typing.Optional[typing.Union[models.CatalogRecord, models.ProtocolError]]:
    root = decode_response(contents)
    kind = classify_response(root)
    records = [item for item in root if item.tag in RECORD_TAGS]
    if kind == models.ResponseKind.EXCEPTION_REPORT:
        result = parse_exception_report(root)
    elif kind == models.ResponseKind.GET_RECORD_BY_ID and len(records) > 0:
        dc = flatten_dc_elements(records[0])
        result = models.CatalogRecord(dc=dc) if dc is not None else None
    else:
        log(f"Received an unexpected response: {root.tag!r}")
        result = None
    return result


def parse_record(record: ET.Element) -> models.CatalogRecord:
    """Parse a single search result into a CatalogRecord.

    Both Dublin Core records (``csw:Record``) and ISO records
    (``gmd:MD_Metadata``) are supported. Missing fields are left as None.

    """

    file_identifier_el = record.find(
        f"{{{Csw202Namespace.GMD.value}}}fileIdentifier/"
        f"{{{Csw202Namespace.GCO.value}}}CharacterString"
    )
    identification_info_el = record.find(
        f"{{{Csw202Namespace.GMD.value}}}identificationInfo"
    )
    if identification_info_el is not None and len(identification_info_el) > 0:
        identification_info = identification_info_el[0]
    else:
        identification_info = None
    return models.CatalogRecord(
        date_stamp=_get_date_stamp(record),
        file_identifier=(
            file_identifier_el.text if file_identifier_el is not None else None
        ),
        identification_info=identification_info,
        bounding_box=_get_bounding_box(record),
        dc=flatten_dc_elements(record),
    )


def flatten_dc_elements(record: ET.Element) -> typing.Optional[models.DublinCoreBag]:
    """Collect the Dublin Core elements of a record.

    Catalogues that only support the plain csw:Record schema (e.g. GeoServer)
    usually publish service URLs as ``dct:references`` with a ``scheme``
    attribute such as ``OGC:WMS``, so references keep their scheme.

    """

    dc_elements = [
        element
        for element in record
        if element.tag.startswith("{")
        and element.tag[1:].partition("}")[0] in DC_NAMESPACES
    ]
    if len(dc_elements) == 0:
        return None
    result = models.DublinCoreBag()
    for element in dc_elements:
        name = _local_name(element.tag)
        if name == "references":
            value = models.DcReference(
                value=clean_duplicated_question_marks(element.text),
                scheme=element.get("scheme"),
            )
        else:
            value = element.text if element.text is not None else ""
        result.add(name, value)
    return result


def _get_int_attribute(element: ET.Element, name: str) -> typing.Optional[int]:
    raw_value = element.get(name)
    try:
        result = int(raw_value) if raw_value is not None else None
    except ValueError:
        log(f"Invalid value for {name!r}: {raw_value!r}")
        result = None
    return result


def _parse_datetime(raw_value: str, format_="%Y-%m-%dT%H:%M:%SZ") -> dt.datetime:
    try:
        result = dt.datetime.strptime(raw_value, format_)
    except ValueError:
        result = dt.datetime.fromisoformat(raw_value)
    return result


def _get_date_stamp(
    record: ET.Element,
) -> typing.Optional[typing.Union[dt.date, dt.datetime]]:
    date_el = record.find(
        f"{{{Csw202Namespace.GMD.value}}}dateStamp/"
        f"{{{Csw202Namespace.GCO.value}}}Date"
    )
    datetime_el = record.find(
        f"{{{Csw202Namespace.GMD.value}}}dateStamp/"
        f"{{{Csw202Namespace.GCO.value}}}DateTime"
    )
    try:
        if date_el is not None and date_el.text:
            result = dt.date.fromisoformat(date_el.text.strip()[:10])
        elif datetime_el is not None and datetime_el.text:
            result = _parse_datetime(datetime_el.text.strip())
        else:
            result = None
    except ValueError:
        log(f"Could not parse dateStamp of record {record.tag!r}")
        result = None
    return result


def _get_bounding_box(record: ET.Element) -> typing.Optional[models.BoundingBox]:
    """Extract the first bounding box of the record, if any.

    CRS resolution errors are not caught, since a bounding box in the wrong CRS
    is worse than no bounding box at all.

    """

    bbox_el = record.find(f"{{{Csw202Namespace.OWS.value}}}BoundingBox")
    wgs84_bbox_el = record.find(f"{{{Csw202Namespace.OWS.value}}}WGS84BoundingBox")
    geographic_bbox_el = record.find(
        f".//{{{Csw202Namespace.GMD.value}}}EX_GeographicBoundingBox"
    )
    try:
        if bbox_el is not None:
            result = _get_ows_bounding_box(bbox_el, bbox_el.get("crs", ""))
        elif wgs84_bbox_el is not None:
            result = _get_ows_bounding_box(
                wgs84_bbox_el, wgs84_bbox_el.get("crs", CRS84_URN)
            )
        elif geographic_bbox_el is not None:
            result = _get_geographic_bounding_box(geographic_bbox_el)
        else:
            result = None
    except (AttributeError, ValueError) as exc:
        log(f"Could not parse bounding box: {exc}")
        result = None
    return result


def _get_ows_bounding_box(
    bbox_el: ET.Element, raw_crs: str
) -> models.BoundingBox:
    lower_corner = crs.parse_corner(
        bbox_el.find(f"{{{Csw202Namespace.OWS.value}}}LowerCorner").text
    )
    upper_corner = crs.parse_corner(
        bbox_el.find(f"{{{Csw202Namespace.OWS.value}}}UpperCorner").text
    )
    return crs.normalize(raw_crs, lower_corner, upper_corner)


def _get_geographic_bounding_box(
    geographic_bounding_box: ET.Element,
) -> models.BoundingBox:
    # ISO geographic bounding boxes are always expressed as lon/lat decimal degrees
    values = []
    for name in (
        "westBoundLongitude",
        "southBoundLatitude",
        "eastBoundLongitude",
        "northBoundLatitude",
    ):
        raw_value = geographic_bounding_box.find(
            f"{{{Csw202Namespace.GMD.value}}}{name}/"
            f"{{{Csw202Namespace.GCO.value}}}Decimal"
        ).text
        values.append(float(raw_value.replace(",", ".")))
    return models.BoundingBox(extent=tuple(values), crs=crs.DEFAULT_CRS)
