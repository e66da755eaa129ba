"""OGC Filter Encoding 1.1.0 expressions used as CSW GetRecords constraints.

Filters are small trees of predicate nodes. Each node knows how to write
itself as a child of an ElementTree element and has a stable textual form,
which is handy for logging and for comparing filters in tests.
"""

import dataclasses
import typing
from xml.etree import ElementTree as ET

from .models import Csw202Namespace

WILDCARD = "%"
SINGLE_CHAR = "_"
ESCAPE_CHAR = "\\"

ANY_TEXT_PROPERTY = "csw:AnyText"
IDENTIFIER_PROPERTY = "identifier"
TYPE_PROPERTY = "dc:type"
DATASET_TYPE = "dataset"


def _ogc(name: str) -> ET.QName:
    return ET.QName(Csw202Namespace.OGC.value, name)


def _add_property_name_and_literal(parent: ET.Element, name: str, literal: str):
    property_name_el = ET.SubElement(parent, _ogc("PropertyName"))
    property_name_el.text = name
    literal_el = ET.SubElement(parent, _ogc("Literal"))
    literal_el.text = literal


@dataclasses.dataclass(frozen=True)
class PropertyIsLike:
    property_name: str
    pattern: str
    wildcard: str = WILDCARD
    single_char: str = SINGLE_CHAR
    escape_char: str = ESCAPE_CHAR
    match_case: typing.Optional[bool] = None

    def to_element(self, parent: ET.Element) -> ET.Element:
        attrib = {
            "wildCard": self.wildcard,
            "singleChar": self.single_char,
            "escapeChar": self.escape_char,
        }
        # servers decide about case sensitivity unless told otherwise
        if self.match_case is not None:
            attrib["matchCase"] = str(self.match_case).lower()
        element = ET.SubElement(parent, _ogc("PropertyIsLike"), attrib=attrib)
        _add_property_name_and_literal(element, self.property_name, self.pattern)
        return element

    def __str__(self):
        return f"PropertyIsLike({self.property_name}, {self.pattern!r})"


@dataclasses.dataclass(frozen=True)
class PropertyIsEqualTo:
    property_name: str
    literal: str

    def to_element(self, parent: ET.Element) -> ET.Element:
        element = ET.SubElement(parent, _ogc("PropertyIsEqualTo"))
        _add_property_name_and_literal(element, self.property_name, self.literal)
        return element

    def __str__(self):
        return f"PropertyIsEqualTo({self.property_name}, {self.literal!r})"


@dataclasses.dataclass(frozen=True)
class Bbox:
    """Spatial filter over the records' bounding box.

    ``extent`` is always given as (min_x, min_y, max_x, max_y) in lon/lat order.
    When targeting EPSG:4326 the envelope corners are written latitude first, as
    mandated by the EPSG definition of that CRS.

    """

    extent: typing.Tuple[float, float, float, float]
    crs: str = "EPSG:4326"
    property_name: str = "ows:BoundingBox"

    def to_element(self, parent: ET.Element) -> ET.Element:
        element = ET.SubElement(parent, _ogc("BBOX"))
        property_name_el = ET.SubElement(element, _ogc("PropertyName"))
        property_name_el.text = self.property_name
        envelope_el = ET.SubElement(
            element,
            ET.QName(Csw202Namespace.GML.value, "Envelope"),
            attrib={"srsName": self.crs},
        )
        min_x, min_y, max_x, max_y = self.extent
        if self.crs == "EPSG:4326":
            lower, upper = (min_y, min_x), (max_y, max_x)
        else:
            lower, upper = (min_x, min_y), (max_x, max_y)
        lower_corner_el = ET.SubElement(
            envelope_el, ET.QName(Csw202Namespace.GML.value, "lowerCorner")
        )
        lower_corner_el.text = f"{lower[0]} {lower[1]}"
        upper_corner_el = ET.SubElement(
            envelope_el, ET.QName(Csw202Namespace.GML.value, "upperCorner")
        )
        upper_corner_el.text = f"{upper[0]} {upper[1]}"
        return element

    def __str__(self):
        return f"BBOX({self.property_name}, {list(self.extent)}, {self.crs})"


@dataclasses.dataclass(frozen=True)
class _BinaryLogicOperator:
    operands: typing.Tuple["Predicate", ...]
    tag: typing.ClassVar[str]

    def __init__(self, *operands: "Predicate"):
        if len(operands) < 2:
            raise ValueError(f"{self.tag} needs at least two operands")
        object.__setattr__(self, "operands", tuple(operands))

    def to_element(self, parent: ET.Element) -> ET.Element:
        element = ET.SubElement(parent, _ogc(self.tag))
        for operand in self.operands:
            operand.to_element(element)
        return element

    def __str__(self):
        return f"{self.tag}({', '.join(str(op) for op in self.operands)})"


class And(_BinaryLogicOperator):
    tag = "And"


class Or(_BinaryLogicOperator):
    tag = "Or"


@dataclasses.dataclass(frozen=True)
class Not:
    operand: "Predicate"

    def to_element(self, parent: ET.Element) -> ET.Element:
        element = ET.SubElement(parent, _ogc("Not"))
        self.operand.to_element(element)
        return element

    def __str__(self):
        return f"Not({self.operand})"


Predicate = typing.Union[PropertyIsLike, PropertyIsEqualTo, Bbox, And, Or, Not]


@dataclasses.dataclass(frozen=True)
class Filter:
    """Root of a filter expression, serialized as ``ogc:Filter``."""

    predicate: Predicate

    def to_element(self, parent: typing.Optional[ET.Element] = None) -> ET.Element:
        if parent is None:
            element = ET.Element(_ogc("Filter"))
        else:
            element = ET.SubElement(parent, _ogc("Filter"))
        self.predicate.to_element(element)
        return element

    def __str__(self):
        return f"Filter({self.predicate})"


def dataset_type_predicate() -> PropertyIsEqualTo:
    return PropertyIsEqualTo(TYPE_PROPERTY, DATASET_TYPE)


def text_filter(text: typing.Optional[str] = None) -> Filter:
    """Build the default search constraint, optionally restricted by free text.

    Only records of type ``dataset`` are selected. When ``text`` is not empty
    the records must also contain it somewhere in their ``csw:AnyText``
    property.

    """

    if text:
        predicate = And(
            PropertyIsLike(ANY_TEXT_PROPERTY, f"{WILDCARD}{text}{WILDCARD}"),
            dataset_type_predicate(),
        )
    else:
        predicate = dataset_type_predicate()
    return Filter(predicate)


def workspace_filter(
    text: typing.Optional[str] = None, workspace: typing.Optional[str] = None
) -> Filter:
    """Search layers by their workspace-qualified identifier.

    Identifiers look like ``workspace:layer_name``. A missing workspace matches
    any workspace and a missing text matches any layer name.

    """

    workspace_term = workspace or WILDCARD
    layer_name_term = f"{WILDCARD}{text}{WILDCARD}" if text else WILDCARD
    return Filter(
        PropertyIsLike(IDENTIFIER_PROPERTY, f"{workspace_term}:{layer_name_term}")
    )
