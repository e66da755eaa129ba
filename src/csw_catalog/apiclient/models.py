import dataclasses
import datetime as dt
import enum
import typing
from xml.etree import ElementTree as ET

if typing.TYPE_CHECKING:
    from .filters import Filter

DEFAULT_ERROR_MESSAGE = "GenericError"


class Csw202Namespace(enum.Enum):
    CSW = "http://www.opengis.net/cat/csw/2.0.2"
    OGC = "http://www.opengis.net/ogc"
    GML = "http://www.opengis.net/gml"
    DC = "http://purl.org/dc/elements/1.1/"
    DCT = "http://purl.org/dc/terms/"
    GMD = "http://www.isotc211.org/2005/gmd"
    GCO = "http://www.isotc211.org/2005/gco"
    GMI = "http://www.isotc211.org/2005/gmi"
    OWS = "http://www.opengis.net/ows"


class ResponseKind(enum.Enum):
    GET_RECORDS = "GetRecordsResponse"
    GET_RECORD_BY_ID = "GetRecordByIdResponse"
    EXCEPTION_REPORT = "ExceptionReport"
    UNRECOGNIZED = "unrecognized"


@dataclasses.dataclass()
class SearchRequest:
    start_position: int
    max_records: int
    filter_: typing.Optional[typing.Union[str, "Filter"]] = None

    def __post_init__(self):
        if self.start_position < 1:
            raise ValueError(
                f"start_position must be a positive integer, got "
                f"{self.start_position!r}"
            )
        if self.max_records < 1:
            raise ValueError(
                f"max_records must be a positive integer, got {self.max_records!r}"
            )


@dataclasses.dataclass(frozen=True)
class BoundingBox:
    extent: typing.Tuple[float, float, float, float]
    crs: str

    @property
    def min_x(self) -> float:
        return self.extent[0]

    @property
    def min_y(self) -> float:
        return self.extent[1]

    @property
    def max_x(self) -> float:
        return self.extent[2]

    @property
    def max_y(self) -> float:
        return self.extent[3]


@dataclasses.dataclass(frozen=True)
class DcReference:
    value: typing.Optional[str]
    scheme: typing.Optional[str] = None


class DublinCoreBag(dict):
    """Dublin Core element values, keyed by element name.

    An element seen once maps to its value. When the same element shows up
    again the value is turned into a list holding both occurrences and any
    later occurrence is appended to it. Link-type elements always go to the
    ``references`` list, as ``DcReference`` instances.

    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.setdefault("references", [])

    @property
    def references(self) -> typing.List[DcReference]:
        return self["references"]

    def add(self, name: str, value: typing.Any):
        if name not in self:
            self[name] = value
        elif isinstance(self[name], list):
            self[name].append(value)
        else:
            self[name] = [self[name], value]

    def get_list(self, name: str) -> typing.List:
        value = self.get(name)
        if value is None:
            result = []
        elif isinstance(value, list):
            result = value
        else:
            result = [value]
        return result


@dataclasses.dataclass()
class CatalogRecord:
    date_stamp: typing.Optional[typing.Union[dt.date, dt.datetime]] = None
    file_identifier: typing.Optional[str] = None
    identification_info: typing.Optional[ET.Element] = None
    bounding_box: typing.Optional[BoundingBox] = None
    dc: typing.Optional[DublinCoreBag] = None

    @property
    def title(self) -> typing.Optional[str]:
        titles = self.dc.get_list("title") if self.dc is not None else []
        return titles[0] if titles else None

    def to_dict(self) -> typing.Dict:
        if self.dc is not None:
            dc = {
                name: value
                for name, value in self.dc.items()
                if name != "references"
            }
            dc["references"] = [dataclasses.asdict(r) for r in self.dc.references]
        else:
            dc = None
        return {
            "dateStamp": (
                self.date_stamp.isoformat() if self.date_stamp is not None else None
            ),
            "fileIdentifier": self.file_identifier,
            "boundingBox": (
                {
                    "extent": list(self.bounding_box.extent),
                    "crs": self.bounding_box.crs,
                }
                if self.bounding_box is not None
                else None
            ),
            "dc": dc,
        }


@dataclasses.dataclass()
class SearchResult:
    number_of_records_matched: typing.Optional[int]
    number_of_records_returned: typing.Optional[int]
    next_record: typing.Optional[int]
    records: typing.List[CatalogRecord] = dataclasses.field(default_factory=list)

    def to_dict(self) -> typing.Dict:
        return {
            "numberOfRecordsMatched": self.number_of_records_matched,
            "numberOfRecordsReturned": self.number_of_records_returned,
            "nextRecord": self.next_record,
            "records": [record.to_dict() for record in self.records],
        }


@dataclasses.dataclass(frozen=True)
class ProtocolError:
    message: str = DEFAULT_ERROR_MESSAGE

    @property
    def error(self) -> str:
        return self.message

    def to_dict(self) -> typing.Dict:
        return {"error": self.message}
