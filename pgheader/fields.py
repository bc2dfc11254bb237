import struct
import logging
from collections import namedtuple

from .errors import UnknownFieldError


__all__ = (
    "FieldDescriptor", "Catalog", "CATALOG", "FieldPlan", "Skip", "Decode", "DecodePlan",
    "resolve", "build_plan",
)

logger = logging.getLogger(__name__)


FieldDescriptor = namedtuple("FieldDescriptor", ["name", "abbreviation", "byte_width"])

Skip = namedtuple("Skip", ["width"])
Decode = namedtuple("Decode", ["width", "formatter"])

_STRUCT_CODES = {2: "H", 4: "I"}

# resolver states
NOT_STARTED = 0
INCLUDING = 1
EXCLUDING_FROM_ALL = 2


class Catalog:
    "Known page header fields in on-disk order"
    def __init__(self, fields):
        self.fields = tuple(fields)
        self.names = tuple(f.name for f in self.fields)
        self.by_name = {f.name: f for f in self.fields}
        self.by_abbreviation = {f.abbreviation: f for f in self.fields}
        assert len(self.by_name) == len(self.fields)
        assert len(self.by_abbreviation) == len(self.fields)

    def __len__(self):
        return len(self.fields)

    def __iter__(self):
        return iter(self.fields)

    def expand(self, token):
        "Expand `all`, an abbreviation or a field name to a list of names"
        if token == "all":
            return list(self.names)
        if (f := self.by_abbreviation.get(token)):
            return [f.name]
        return [token]

    @property
    def header_size(self):
        return sum(f.byte_width for f in self.fields)


CATALOG = Catalog([
    FieldDescriptor("lsn_seg", "s", 4),
    FieldDescriptor("lsn_off", "o", 4),
    FieldDescriptor("tli", "t", 2),
    FieldDescriptor("flags", "f", 2),
    FieldDescriptor("lower", "l", 2),
    FieldDescriptor("upper", "u", 2),
    FieldDescriptor("special", "p", 2),
    FieldDescriptor("pagesize_version", "v", 2),
    FieldDescriptor("prune_xid", "x", 4),
])


def formatter(descriptor, hex_fields=False):
    "Get value formatter of the field for the display mode"
    if hex_fields:
        return "{{:0{}x}}".format(descriptor.byte_width * 2).format
    return "{:d}".format


class FieldPlan:
    """Included flag for every catalog field.
    Built by resolve() and never changed afterward.
    """
    def __init__(self, included, catalog=CATALOG):
        self.included = tuple(bool(b) for b in included)
        self.catalog = catalog
        assert len(self.included) == len(self.catalog)

    def __eq__(self, other):
        return self.included == other.included and self.catalog is other.catalog

    def __repr__(self):
        return "FieldPlan({})".format(",".join(self.names()))

    def names(self):
        "Included field names in catalog order"
        return [f.name for f, b in zip(self.catalog, self.included) if b]


class DecodePlan:
    """Byte layout steps of a page header and the line template of included fields
    """
    def __init__(self, steps, template):
        self.steps = tuple(steps)
        self.template = tuple(template)
        fmt = "<"
        for step in self.steps:
            if isinstance(step, Decode):
                fmt += _STRUCT_CODES[step.width]
            else:
                fmt += "{}x".format(step.width)
        self.struct = struct.Struct(fmt)

    @property
    def size(self):
        return self.struct.size

    def unpack(self, data):
        return self.struct.unpack_from(data, 0)

    def render(self, values):
        "Render decoded values as ` name=value` pairs"
        return "".join(
            " {}={}".format(name, fmt(v)) for (name, fmt), v in zip(self.template, values)
        )


def resolve(tokens, catalog=CATALOG):
    """Resolve user field selection to FieldPlan.
    tokens is a list of comma separated field lists.
    `-` prefix excludes a field, `all` means every field.
    """
    if not tokens:
        tokens = ["all"]

    state = NOT_STARTED
    selected = set()
    unknown = []
    for entry in tokens:
        for token in entry.split(","):
            token = token.strip()
            if not token:
                continue
            negated = token.startswith("-")
            if negated:
                token = token[1:]
            names = catalog.expand(token)
            for name in names:
                if name not in catalog.by_name and name not in unknown:
                    unknown.append(name)

            if state == NOT_STARTED:
                if negated:
                    state = EXCLUDING_FROM_ALL
                    selected = set(catalog.names)
                else:
                    state = INCLUDING
            if negated:
                selected.difference_update(names)
            else:
                selected.update(names)

    if unknown:
        raise UnknownFieldError(unknown)
    plan = FieldPlan([name in selected for name in catalog.names], catalog)
    logger.debug("field selection %r", plan)
    return plan


def build_plan(field_plan, hex_fields=False):
    "Build DecodePlan with its line template from FieldPlan"
    steps = []
    template = []
    for descriptor, included in zip(field_plan.catalog, field_plan.included):
        if included:
            fmt = formatter(descriptor, hex_fields)
            steps.append(Decode(descriptor.byte_width, fmt))
            template.append((descriptor.name, fmt))
        else:
            steps.append(Skip(descriptor.byte_width))
    return DecodePlan(steps, template)
