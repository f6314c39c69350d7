"""GPU API registry extractor.

Reads a machine-readable graphics API specification (the WebGPU YAML schema or
the Khronos vk.xml registry) and builds a canonical, cross-referenced registry
of every API entity. Commands are then partitioned into calling scopes and a
documentation link resolver is exposed for renderers.

Usage:
    bindgen --source webgpu --spec input/webgpu.yml
    bindgen --source vulkan --spec input/vk.xml
"""

import argparse
import functools
import logging
import re
import sys
import xml.etree.ElementTree as ET
from collections import defaultdict
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType

import yaml

log = logging.getLogger("bindgen")

DEFAULT_INPUT_DIR = Path("input")
DEFAULT_SPEC_PATHS = {
    "webgpu": DEFAULT_INPUT_DIR / "webgpu.yml",
    "vulkan": DEFAULT_INPUT_DIR / "vk.xml",
}


# ===--- CLI config contracts ---=== #


class UnresolvedConstantPolicy(Enum):
    """What to do with a spec constant whose literal is not in the mapping table."""

    PLACEHOLDER = "placeholder"
    OMIT = "omit"
    ERROR = "error"


@dataclass(frozen=True)
class ExtractOptions:
    strict_types: bool = False
    unresolved_constants: UnresolvedConstantPolicy = UnresolvedConstantPolicy.PLACEHOLDER


@dataclass(frozen=True)
class ExtractConfig:
    source: str
    spec_path: Path
    options: ExtractOptions


VALID_ERROR_CODES = {
    "MISSING_SOURCE",
    "INVALID_SOURCE",
    "INVALID_POLICY",
    "PATH_NOT_FOUND",
}
VALID_SOURCES = ("webgpu", "vulkan")


class ConfigError(Exception):
    def __init__(self, code: str, message: str, suggestion: str | None = None):
        if code not in VALID_ERROR_CODES:
            raise ValueError(f"Unknown config error code: {code}")
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion


class SpecFormatError(Exception):
    """The spec document cannot be used at all (fatal for the run)."""


class UnrecognizedTypeToken(ValueError):
    def __init__(self, token: str):
        super().__init__(f"Unrecognized type token: {token!r}")
        self.token = token


class UnresolvedConstantError(ValueError):
    def __init__(self, name: str, expr: str):
        super().__init__(f"Constant {name} has unresolved value expression {expr!r}")
        self.name = name
        self.expr = expr


def parse_source(raw: str | None) -> str:
    if raw is None:
        raise ConfigError(
            "MISSING_SOURCE",
            "--source is required.",
            "Pass --source webgpu or --source vulkan.",
        )
    if raw not in VALID_SOURCES:
        raise ConfigError(
            "INVALID_SOURCE",
            f"Unsupported spec source: {raw}",
            "Use one of: webgpu, vulkan.",
        )
    return raw


def parse_constant_policy(raw: str) -> UnresolvedConstantPolicy:
    try:
        return UnresolvedConstantPolicy(raw)
    except ValueError as err:
        raise ConfigError(
            "INVALID_POLICY",
            f"Unknown unresolved-constant policy: {raw}",
            "Use one of: placeholder, omit, error.",
        ) from err


def validate_path_exists(
    path: Path | None, flag: str, suggestion: str | None = None
) -> Path:
    if path is None:
        raise ConfigError(
            "PATH_NOT_FOUND",
            f"{flag} is required: no path provided.",
            suggestion or f"Pass the path explicitly: {flag} /path/to/resource",
        )
    if path.exists():
        return path
    raise ConfigError(
        "PATH_NOT_FOUND",
        f"Path for {flag} does not exist: {path}",
        suggestion or "Provide an existing path for this flag.",
    )


def build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Extract a canonical GPU API registry from a spec document"
    )

    parser.add_argument("--source", type=str, default=None)
    parser.add_argument("--spec", type=Path, default=None)
    parser.add_argument("--strict-types", action="store_true", default=False)
    parser.add_argument(
        "--unresolved-constants",
        type=str,
        default=UnresolvedConstantPolicy.PLACEHOLDER.value,
    )
    parser.add_argument("--verbose", action="store_true", default=False)

    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = build_argument_parser()
    return parser.parse_args(argv)


def validate_config(args: argparse.Namespace) -> ExtractConfig:
    source = parse_source(args.source)
    policy = parse_constant_policy(args.unresolved_constants)
    spec_path = args.spec if args.spec is not None else DEFAULT_SPEC_PATHS[source]
    spec_path = validate_path_exists(
        spec_path,
        "--spec",
        f"Place the {source} spec at {DEFAULT_SPEC_PATHS[source]}\n"
        "Or pass a custom path: --spec /your/path/to/spec",
    )
    return ExtractConfig(
        source=source,
        spec_path=spec_path,
        options=ExtractOptions(
            strict_types=bool(args.strict_types),
            unresolved_constants=policy,
        ),
    )


def build_config(argv: list[str] | None = None) -> ExtractConfig:
    return validate_config(parse_args(argv))


# ===--- Identifiers and types ---=== #


@dataclass(frozen=True)
class Identifier:
    """A name as spelled in the spec (``original``) and in generated code (``value``).

    Identifiers are keyed and compared by ``value`` only.
    """

    value: str
    original: str = field(default="", compare=False)

    def __post_init__(self):
        object.__setattr__(self, "value", sys.intern(self.value))
        object.__setattr__(self, "original", sys.intern(self.original or self.value))

    @classmethod
    def of(cls, original: str, canonical: str | None = None) -> "Identifier":
        return cls(canonical if canonical is not None else original, original)

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class IdentifierType:
    ident: Identifier


@dataclass(frozen=True)
class PointerType:
    pointee: "Type"
    const: bool = False


@dataclass(frozen=True)
class ArrayType:
    element: "Type"
    length: str | None = None


Type = IdentifierType | PointerType | ArrayType


def named_type(name: str) -> IdentifierType:
    return IdentifierType(Identifier.of(name))


def try_find_identifier_type(t: Type) -> Identifier | None:
    if isinstance(t, IdentifierType):
        return t.ident
    return None


VOID = named_type("void")
SIZE_T = named_type("size_t")
VOID_PTR = PointerType(VOID)
CHAINED_STRUCT_PTR = PointerType(named_type("ChainedStruct"))
STRING_TYPE = PointerType(named_type("char"), const=True)


# ===--- Entities ---=== #


@dataclass(frozen=True)
class Constant:
    name: Identifier
    type: Type
    expr: str | None

    @property
    def is_placeholder(self) -> bool:
        return self.expr is None


@dataclass(frozen=True)
class EnumVariant:
    name: Identifier
    value: int


@dataclass(frozen=True)
class Enumeration:
    name: Identifier
    variants: tuple[EnumVariant, ...]


@dataclass(frozen=True)
class Bitflag:
    name: Identifier
    value: int | str


@dataclass(frozen=True)
class Bitmask:
    name: Identifier
    bitwidth: int
    bitflags: tuple[Bitflag, ...]


@dataclass(frozen=True)
class Member:
    name: Identifier
    type: Type
    optional: bool = False
    bits: int | None = None
    len: str | None = None


@dataclass(frozen=True)
class Structure:
    name: Identifier
    members: tuple[Member, ...]
    is_union: bool = False


@dataclass(frozen=True)
class OpaqueHandleTypedef:
    name: Identifier


@dataclass(frozen=True)
class FunctionTypedef:
    name: Identifier
    params: tuple[Type, ...]
    result: Type


@dataclass(frozen=True)
class Param:
    name: Identifier
    type: Type
    optional: bool = False


@dataclass(frozen=True)
class Command:
    name: Identifier
    params: tuple[Param, ...]
    result: Type = VOID


@dataclass(frozen=True)
class Alias:
    name: Identifier
    target: Identifier


Entity = (
    Constant
    | Enumeration
    | Bitmask
    | Structure
    | OpaqueHandleTypedef
    | FunctionTypedef
    | Command
    | Alias
)


# ===--- Registry ---=== #


@dataclass(frozen=True)
class ExtensionInfo:
    """Declared scope and required command names of one spec extension."""

    name: str
    type: str | None
    commands: tuple[str, ...]


REGISTRY_SLOTS = (
    "aliases",
    "bitmasks",
    "constants",
    "commands",
    "enumerations",
    "function_typedefs",
    "opaque_handle_typedefs",
    "structures",
    "unions",
)

_SLOT_BY_KIND: dict[type, str] = {
    Alias: "aliases",
    Bitmask: "bitmasks",
    Constant: "constants",
    Command: "commands",
    Enumeration: "enumerations",
    FunctionTypedef: "function_typedefs",
    OpaqueHandleTypedef: "opaque_handle_typedefs",
}


def registry_slot(entity: Entity) -> str:
    if isinstance(entity, Structure):
        return "unions" if entity.is_union else "structures"
    try:
        return _SLOT_BY_KIND[type(entity)]
    except KeyError:
        raise TypeError(f"Not a registry entity: {entity!r}") from None


@dataclass(frozen=True)
class Registry:
    """Immutable aggregate of every entity extracted from one spec source.

    Every mapping is keyed by canonical Identifier, is read-only, and keeps
    insertion order.
    """

    aliases: Mapping[Identifier, Alias]
    bitmasks: Mapping[Identifier, Bitmask]
    constants: Mapping[Identifier, Constant]
    commands: Mapping[Identifier, Command]
    enumerations: Mapping[Identifier, Enumeration]
    function_typedefs: Mapping[Identifier, FunctionTypedef]
    opaque_handle_typedefs: Mapping[Identifier, OpaqueHandleTypedef]
    structures: Mapping[Identifier, Structure]
    unions: Mapping[Identifier, Structure]
    extensions: Mapping[str, ExtensionInfo]

    def entity_count(self) -> int:
        return sum(len(getattr(self, slot)) for slot in REGISTRY_SLOTS)

    def lookup(self, name: Identifier | str) -> Entity | None:
        key = name if isinstance(name, Identifier) else Identifier.of(name)
        for slot in REGISTRY_SLOTS:
            entity = getattr(self, slot).get(key)
            if entity is not None:
                return entity
        return None


class RegistryBuilder:
    """Single-writer, insert-only staging area for a Registry.

    The first entity registered under an identifier wins; later inserts with
    the same identifier in the same slot are dropped.
    """

    def __init__(self):
        self._slots: dict[str, dict[Identifier, Entity]] = {
            slot: {} for slot in REGISTRY_SLOTS
        }
        self._extensions: dict[str, ExtensionInfo] = {}

    def add(self, entity: Entity) -> bool:
        slot = self._slots[registry_slot(entity)]
        if entity.name in slot:
            log.debug("duplicate %s ignored, first registration wins", entity.name)
            return False
        slot[entity.name] = entity
        return True

    def add_all(self, entities: Iterable[Entity]) -> None:
        for entity in entities:
            self.add(entity)

    def add_extension(self, info: ExtensionInfo) -> bool:
        existing = self._extensions.get(info.name)
        if existing is not None:
            if existing != info:
                log.warning(
                    "conflicting metadata for extension %s, keeping the first",
                    info.name,
                )
            return False
        self._extensions[info.name] = info
        return True

    def __contains__(self, name: Identifier) -> bool:
        return any(name in slot for slot in self._slots.values())

    def build(self) -> Registry:
        frozen = {slot: MappingProxyType(dict(items)) for slot, items in self._slots.items()}
        return Registry(extensions=MappingProxyType(dict(self._extensions)), **frozen)


def merge_registries(registries: Iterable[Registry]) -> Registry:
    """Reduce several registries into one namespace.

    Input order defines priority: for each identifier the entity of the
    earliest registry holding it is kept.
    """
    builder = RegistryBuilder()
    for registry in registries:
        for slot in REGISTRY_SLOTS:
            builder.add_all(getattr(registry, slot).values())
        for info in registry.extensions.values():
            builder.add_extension(info)
    return builder.build()


# ===--- Name normalization ---=== #

_WORD_SEPARATORS_RE = re.compile(r"[_\-\s]+")

IRREGULAR_SINGULARS = {
    "entries": "entry",
}


def to_pascal_case(s: str) -> str:
    parts = _WORD_SEPARATORS_RE.split(s)
    return "".join(part[:1].upper() + part[1:] for part in parts if part)


def ensure_lower_camel_case(s: str) -> str:
    return s[:1].lower() + s[1:]


def singularize(s: str) -> str:
    irregular = IRREGULAR_SINGULARS.get(s)
    if irregular is not None:
        return irregular
    return s.removesuffix("s")


def to_member_name(s: str) -> str:
    return ensure_lower_camel_case(to_pascal_case(s))


# ===--- Type classification ---=== #

PRIMITIVE_TYPES = {
    "bool": "Bool",
    "c_void": "void",
    "char": "char",
    "uint8": "uint8_t",
    "uint16": "uint16_t",
    "uint32": "uint32_t",
    "uint64": "uint64_t",
    "usize": "size_t",
    "int8": "int8_t",
    "int16": "int16_t",
    "int32": "int32_t",
    "int64": "int64_t",
    "float32": "float",
    "float64": "double",
    "float64_supertype": "double",
    "string_with_default_empty": "StringView",
    "nullable_string": "StringView",
    "out_string": "StringView",
}

# kind prefix -> suffix appended to the PascalCase entity name
NAMED_TYPE_KINDS = {
    "struct": "",
    "enum": "",
    "bitflag": "",
    "object": "",
    "typedef": "",
    "function_type": "",
    "callback": "CallbackInfo",
}

POINTER_MUTABILITY = ("mutable", "immutable")

_ARRAY_OPEN = "array<"
_POINTER_PREFIX = "ptr."


def is_array_token(token: str) -> bool:
    return token.startswith(_ARRAY_OPEN) and token.endswith(">")


@functools.lru_cache(maxsize=None)
def parse_type_token(token: str) -> Type:
    """Parse one spec type token into a Type.

    Grammar::

        type      := array | pointer | named | primitive
        array     := "array<" type ">"
        pointer   := "ptr." ("mutable" | "immutable") "." type
        named     := kind "." NAME
        primitive := one of PRIMITIVE_TYPES

    Raises:
        UnrecognizedTypeToken: The token, or a token nested in it, is not
            part of the grammar.
    """
    text = token.strip()
    if is_array_token(text):
        return ArrayType(parse_type_token(text[len(_ARRAY_OPEN) : -1]))

    if text.startswith(_POINTER_PREFIX):
        mutability, _, inner = text[len(_POINTER_PREFIX) :].partition(".")
        if mutability not in POINTER_MUTABILITY or not inner:
            raise UnrecognizedTypeToken(token)
        return PointerType(parse_type_token(inner), const=mutability == "immutable")

    kind, dot, name = text.partition(".")
    if dot:
        suffix = NAMED_TYPE_KINDS.get(kind)
        if suffix is None or not name:
            raise UnrecognizedTypeToken(token)
        return IdentifierType(Identifier.of(name, to_pascal_case(name) + suffix))

    canonical = PRIMITIVE_TYPES.get(text)
    if canonical is None:
        raise UnrecognizedTypeToken(token)
    return IdentifierType(Identifier.of(text, canonical))


def classify_type(token: str, strict: bool = False) -> Type:
    """Classify a type token, degrading to ``void`` unless ``strict`` is set."""
    try:
        return parse_type_token(token)
    except UnrecognizedTypeToken:
        if strict:
            raise
        log.warning("unrecognized type token %r, using void placeholder", token)
        return VOID


# ===--- WebGPU YAML extraction ---=== #

WEBGPU_TOP_LEVEL_PATHS = (
    "objects",
    "functions",
    "structs",
    "callbacks",
    "enums",
    "bitflags",
    "constants",
)

EXTENSIBLE_STRUCT_KINDS = {"extensible", "extensible_callback_arg"}

ENUM_FORCE32_NAME = "FORCE32"
ENUM_FORCE32_VALUE = 0x7FFFFFFF
WEBGPU_BITMASK_WIDTH = 64

BOOLEAN_CONSTANTS = (
    Constant(Identifier.of("TRUE"), named_type("int"), "0x1"),
    Constant(Identifier.of("FALSE"), named_type("int"), "0x0"),
)

# normalized literal expression -> (type, value expression)
CONSTANT_TYPE_MAPPINGS = {
    "UINT32_MAX": ("uint32_t", "0xFFFFFFFF"),
    "UINT64_MAX": ("uint64_t", "0xFFFFFFFFFFFFFFFF"),
    "USIZE_MAX": ("size_t", "0xFFFFFFFFFFFFFFFF"),
    "NAN": ("double", "NAN"),
}

CORE_ALIASES = (Alias(Identifier.of("Bool"), Identifier.of("uint32_t")),)

CORE_STRUCTURES = (
    Structure(
        Identifier.of("StringView"),
        (
            Member(Identifier.of("data"), STRING_TYPE, optional=True),
            Member(Identifier.of("length"), SIZE_T),
        ),
    ),
    Structure(
        Identifier.of("ChainedStruct"),
        (
            Member(Identifier.of("next"), CHAINED_STRUCT_PTR, optional=True),
            Member(Identifier.of("sType"), named_type("SType")),
        ),
    ),
)


def bitflag_value(index: int) -> int:
    """Value of the index-th declared flag: 0 is the none flag, then one bit each."""
    return 0 if index == 0 else 1 << (index - 1)


def load_webgpu_document(path: Path) -> dict:
    """Read and parse a WebGPU YAML schema document.

    Raises:
        OSError: The file cannot be read.
        SpecFormatError: The text is not well-formed YAML or not a mapping.
    """
    text = path.read_text(encoding="utf-8")
    try:
        document = yaml.safe_load(text)
    except yaml.YAMLError as err:
        raise SpecFormatError(f"Malformed YAML in {path}: {err}") from err
    if not isinstance(document, dict):
        raise SpecFormatError(f"{path}: top level of a WebGPU spec must be a mapping")
    return document


def query(document: Mapping, path: str) -> list:
    """Return the sequence stored at a required top-level path.

    Raises:
        SpecFormatError: The path is absent or does not hold a sequence.
    """
    if path not in document:
        raise SpecFormatError(f"Required top-level path {path!r} is missing")
    items = document[path]
    if items is None:
        return []
    if not isinstance(items, list):
        raise SpecFormatError(f"Top-level path {path!r} must be a sequence")
    return items


def _require_fields(
    item: object,
    fields: tuple[str, ...],
    where: str,
    text_fields: tuple[str, ...] | None = None,
) -> bool:
    """Check that ``item`` is a mapping carrying every field in ``fields``.

    Fields in ``text_fields`` (all of ``fields`` by default) must also be
    strings. Failing items are logged and the caller skips them.
    """
    if not isinstance(item, dict):
        log.warning("skipping %s item that is not a mapping: %r", where, item)
        return False
    missing = [f for f in fields if item.get(f) is None]
    if missing:
        log.warning(
            "skipping %s item %r: missing %s",
            where,
            item.get("name", "<unnamed>"),
            ", ".join(missing),
        )
        return False
    if text_fields is None:
        text_fields = fields
    non_text = [f for f in text_fields if not isinstance(item.get(f), str)]
    if non_text:
        log.warning(
            "skipping %s item %r: non-string %s",
            where,
            item.get("name", "<unnamed>"),
            ", ".join(non_text),
        )
        return False
    return True


def _pointer_if_declared(item: Mapping, t: Type) -> Type:
    pointer = item.get("pointer")
    if pointer is None:
        return t
    return PointerType(t, const=pointer == "immutable")


def _webgpu_function_params(
    args: list, options: ExtractOptions, where: str
) -> list[Type]:
    params: list[Type] = []
    for arg in args:
        if not _require_fields(arg, ("type",), where):
            continue
        token = arg["type"]
        t = classify_type(token, options.strict_types)
        if token.startswith("struct."):
            t = PointerType(t, const=arg.get("pointer") == "immutable")
        params.append(t)
    return params


def extract_webgpu_constants(document: Mapping, options: ExtractOptions) -> list[Constant]:
    constants = list(BOOLEAN_CONSTANTS)
    for item in query(document, "constants"):
        if not _require_fields(item, ("name", "value"), "constants", ("name",)):
            continue
        name = str(item["name"])
        expr = str(item["value"]).upper()
        ident = Identifier.of(name, name.upper())
        mapping = CONSTANT_TYPE_MAPPINGS.get(expr)
        if mapping is not None:
            type_name, value = mapping
            constants.append(Constant(ident, named_type(type_name), value))
            continue

        policy = options.unresolved_constants
        if policy is UnresolvedConstantPolicy.ERROR:
            raise UnresolvedConstantError(name, expr)
        if policy is UnresolvedConstantPolicy.OMIT:
            log.warning("constant %s: %s not in mapping table, omitted", name, expr)
            continue
        log.warning(
            "constant %s: %s not in mapping table, possibly a user-defined macro",
            name,
            expr,
        )
        constants.append(Constant(ident, VOID, None))
    return constants


def extract_webgpu_enumerations(document: Mapping) -> list[Enumeration]:
    enumerations = []
    for item in query(document, "enums"):
        if not _require_fields(item, ("name",), "enums"):
            continue
        name = item["name"]
        variants = []
        for index, entry in enumerate(item.get("entries") or []):
            # null entries reserve a value slot
            if entry is None:
                continue
            if not _require_fields(entry, ("name",), f"enum {name}"):
                continue
            entry_name = entry["name"]
            variants.append(EnumVariant(Identifier.of(entry_name, entry_name.upper()), index))
        variants.append(EnumVariant(Identifier.of(ENUM_FORCE32_NAME), ENUM_FORCE32_VALUE))
        enumerations.append(
            Enumeration(Identifier.of(name, to_pascal_case(name)), tuple(variants))
        )
    return enumerations


def _fold_combination(
    references: list, flags: list[Bitflag]
) -> int | None:
    by_name = {flag.name.value: flag.value for flag in flags}
    combined = 0
    for reference in references:
        value = by_name.get(str(reference).upper())
        if not isinstance(value, int):
            return None
        combined |= value
    return combined


def extract_webgpu_bitmasks(document: Mapping) -> list[Bitmask]:
    bitmasks = []
    for item in query(document, "bitflags"):
        if not _require_fields(item, ("name",), "bitflags"):
            continue
        name = item["name"]
        flags: list[Bitflag] = []
        for index, entry in enumerate(item.get("entries") or []):
            if entry is None:
                continue
            if not _require_fields(entry, ("name",), f"bitflag {name}"):
                continue
            entry_name = entry["name"]
            ident = Identifier.of(entry_name, entry_name.upper())
            combination = entry.get("value_combination")
            if combination is None:
                flags.append(Bitflag(ident, bitflag_value(index)))
                continue
            combined = _fold_combination(list(combination), flags)
            if combined is None:
                log.warning(
                    "bitflag %s.%s: not all combined values are numeric, cannot fold",
                    name,
                    entry_name,
                )
                combined = bitflag_value(index)
            flags.append(Bitflag(ident, combined))
        bitmasks.append(
            Bitmask(
                Identifier.of(name, to_pascal_case(name)),
                WEBGPU_BITMASK_WIDTH,
                tuple(flags),
            )
        )
    return bitmasks


def extract_webgpu_handles(document: Mapping) -> list[OpaqueHandleTypedef]:
    handles = []
    for item in query(document, "objects"):
        if not _require_fields(item, ("name",), "objects"):
            continue
        handles.append(
            OpaqueHandleTypedef(Identifier.of(item["name"], to_pascal_case(item["name"])))
        )
    return handles


def extract_webgpu_function_typedefs(
    document: Mapping, options: ExtractOptions
) -> list[FunctionTypedef]:
    typedefs = []
    for item in query(document, "functions"):
        if not _require_fields(item, ("name",), "functions"):
            continue
        name = item["name"]
        params = _webgpu_function_params(item.get("args") or [], options, f"function {name}")
        returns = item.get("returns")
        return_token = returns.get("type") if isinstance(returns, dict) else None
        result = classify_type(return_token, options.strict_types) if return_token else VOID
        typedefs.append(
            FunctionTypedef(
                Identifier.of(name, to_pascal_case(name)), tuple(params), result
            )
        )
    return typedefs


def extract_webgpu_callback_typedefs(
    document: Mapping, options: ExtractOptions
) -> list[FunctionTypedef]:
    typedefs = []
    for item in query(document, "callbacks"):
        if not _require_fields(item, ("name",), "callbacks"):
            continue
        name = item["name"]
        params = _webgpu_function_params(item.get("args") or [], options, f"callback {name}")
        params.extend((VOID_PTR, VOID_PTR))
        typedefs.append(
            FunctionTypedef(
                Identifier.of(name, to_pascal_case(name) + "Callback"),
                tuple(params),
                VOID,
            )
        )
    return typedefs


def build_struct_members(
    raw_struct: Mapping, options: ExtractOptions
) -> tuple[Member, ...]:
    """Build the member list of one spec struct, applying the synthesis rules.

    Extensible structs get a leading ``nextInChain`` member. Every
    ``array<T>`` member is preceded by a ``size_t`` count member named after
    the singular form of the array member.
    """
    struct_name = raw_struct.get("name")
    members: list[Member] = []
    if raw_struct.get("type") in EXTENSIBLE_STRUCT_KINDS:
        members.append(Member(Identifier.of("nextInChain"), CHAINED_STRUCT_PTR))

    for entry in raw_struct.get("members") or []:
        if not _require_fields(entry, ("name", "type"), f"struct {struct_name}"):
            continue
        raw_name = entry["name"]
        token = entry["type"]
        count_name = None
        if is_array_token(token):
            count_name = to_member_name(singularize(raw_name)) + "Count"
            members.append(Member(Identifier.of(count_name), SIZE_T))
        member_type = classify_type(token, options.strict_types)
        # ArrayType plus its count member already describe the pointer
        if count_name is None:
            member_type = _pointer_if_declared(entry, member_type)
        members.append(
            Member(
                Identifier.of(raw_name, to_member_name(raw_name)),
                member_type,
                optional=entry.get("optional") is True,
                len=count_name,
            )
        )
    return tuple(members)


def build_callback_info_struct(callback_name: str) -> Structure:
    base = to_pascal_case(callback_name)
    return Structure(
        Identifier.of(base + "CallbackInfo"),
        (
            Member(Identifier.of("nextInChain"), CHAINED_STRUCT_PTR),
            Member(Identifier.of("mode"), named_type(base + "Callback")),
            Member(Identifier.of("callback"), named_type("CallbackMode")),
            Member(Identifier.of("userdata1"), VOID_PTR, optional=True),
            Member(Identifier.of("userdata2"), VOID_PTR, optional=True),
        ),
    )


def extract_webgpu_structures(
    document: Mapping, options: ExtractOptions
) -> list[Structure]:
    structures = list(CORE_STRUCTURES)
    for item in query(document, "structs"):
        if not _require_fields(item, ("name",), "structs"):
            continue
        name = item["name"]
        structures.append(
            Structure(
                Identifier.of(name, to_pascal_case(name)),
                build_struct_members(item, options),
            )
        )
    for item in query(document, "callbacks"):
        if not _require_fields(item, ("name",), "callbacks"):
            continue
        structures.append(build_callback_info_struct(item["name"]))
    return structures


def extract_webgpu_registry(
    document: Mapping, options: ExtractOptions | None = None
) -> Registry:
    """Build a Registry from a parsed WebGPU YAML document.

    Hand-authored core entities are registered before spec-derived ones so
    that the first-wins rule protects them.

    Raises:
        SpecFormatError: A required top-level path is missing.
        UnrecognizedTypeToken: Only with ``strict_types``.
        UnresolvedConstantError: Only with the ``ERROR`` constant policy.
    """
    options = options or ExtractOptions()
    for path in WEBGPU_TOP_LEVEL_PATHS:
        query(document, path)

    builder = RegistryBuilder()
    builder.add_all(CORE_ALIASES)
    builder.add_all(extract_webgpu_constants(document, options))
    builder.add_all(extract_webgpu_enumerations(document))
    builder.add_all(extract_webgpu_bitmasks(document))
    builder.add_all(extract_webgpu_handles(document))
    builder.add_all(extract_webgpu_function_typedefs(document, options))
    builder.add_all(extract_webgpu_callback_typedefs(document, options))
    builder.add_all(extract_webgpu_structures(document, options))
    return builder.build()


# ===--- Vulkan XML extraction ---=== #

API_CONSTANTS_BLOCK = "API Constants"
DEFAULT_VULKAN_BITWIDTH = 32


def load_vulkan_document(path: Path) -> ET.Element:
    """Parse vk.xml and return its root element.

    Raises:
        OSError: The file cannot be read.
        SpecFormatError: The XML is malformed or lacks the registry sections.
    """
    try:
        root = ET.parse(path).getroot()
    except ET.ParseError as err:
        raise SpecFormatError(f"Malformed XML in {path}: {err}") from err
    for section in ("types", "commands"):
        if root.find(section) is None:
            raise SpecFormatError(f"{path}: registry has no <{section}> section")
    return root


def _supports_vulkan_api(api_value: str) -> bool:
    return any(token.strip() == "vulkan" for token in api_value.split(","))


def _is_vulkansc_only(el: ET.Element) -> bool:
    return el.get("api", "") == "vulkansc"


def _parse_c_int(s: str) -> int:
    s = s.strip().rstrip("ULul")
    if s.startswith("0x") or s.startswith("0X"):
        return int(s, 16)
    if s.startswith("-"):
        return -_parse_c_int(s[1:])
    if s.startswith("(") and s.endswith(")"):
        return _parse_c_int(s[1:-1])
    return int(s)


def _parse_enum_value(val: ET.Element) -> int | str | None:
    value_str = val.get("value")
    bitpos = val.get("bitpos")
    if bitpos is not None:
        return 1 << int(bitpos)
    if value_str is None:
        return None
    try:
        return _parse_c_int(value_str)
    except ValueError:
        return value_str


def _wrap_declarator(base: Type, text_before: str, type_tail: str) -> Type:
    """Apply the C pointer declarators that follow a ``<type>`` element."""
    segments = type_tail.split("*")
    result: Type = base
    for level in range(len(segments) - 1):
        const = "const" in (text_before if level == 0 else segments[level])
        result = PointerType(result, const=const)
    return result


def _array_dims(el: ET.Element, name_tail: str) -> list[str]:
    if not name_tail.lstrip().startswith("["):
        return []
    enum_el = el.find("enum")
    if enum_el is not None and enum_el.text:
        return [enum_el.text.strip()]
    return re.findall(r"\[(\d+)\]", name_tail)


def _is_optional(el: ET.Element) -> bool:
    return el.get("optional", "").split(",")[0] == "true"


def parse_member(m: ET.Element) -> Member | None:
    if _is_vulkansc_only(m):
        return None
    type_el = m.find("type")
    name_el = m.find("name")
    if type_el is None or name_el is None:
        return None
    member_name = name_el.text or ""
    name_tail = name_el.tail or ""

    member_type = _wrap_declarator(
        named_type(type_el.text or ""), m.text or "", type_el.tail or ""
    )
    for dim in reversed(_array_dims(m, name_tail)):
        member_type = ArrayType(member_type, dim)

    bits = None
    bit_match = re.search(r":(\d+)", name_tail)
    if bit_match and "[" not in name_tail:
        bits = int(bit_match.group(1))

    return Member(
        name=Identifier.of(member_name),
        type=member_type,
        optional=_is_optional(m),
        bits=bits,
        len=m.get("len"),
    )


def parse_command_param(p: ET.Element) -> Param | None:
    type_el = p.find("type")
    name_el = p.find("name")
    if type_el is None or name_el is None:
        return None
    param_type = _wrap_declarator(
        named_type(type_el.text or ""), p.text or "", type_el.tail or ""
    )
    for dim in reversed(_array_dims(p, name_el.tail or "")):
        param_type = ArrayType(param_type, dim)
    return Param(Identifier.of(name_el.text or ""), param_type, _is_optional(p))


def _vulkan_type_name(t: ET.Element) -> str | None:
    name = t.get("name")
    if not name:
        name_el = t.find("name")
        if name_el is None and t.get("category") == "funcpointer":
            name_el = t.find("proto/name")
        if name_el is not None:
            name = name_el.text
    return name


def _vulkan_types(root: ET.Element, category: str) -> Iterable[ET.Element]:
    for t in root.findall(f"types/type[@category='{category}']"):
        if not _is_vulkansc_only(t):
            yield t


def _type_aliases(root: ET.Element, category: str) -> list[Alias]:
    aliases = []
    for t in _vulkan_types(root, category):
        alias = t.get("alias")
        name = t.get("name")
        if alias and name:
            aliases.append(Alias(Identifier.of(name), Identifier.of(alias)))
    return aliases


def extract_vulkan_constants(root: ET.Element) -> list[Constant | Alias]:
    """API constants plus the per-extension name and spec-version constants."""
    entities: list[Constant | Alias] = []
    for block in root.findall("enums"):
        if block.get("name") != API_CONSTANTS_BLOCK:
            continue
        for val in block.findall("enum"):
            name = val.get("name")
            if not name:
                continue
            alias = val.get("alias")
            if alias:
                entities.append(Alias(Identifier.of(name), Identifier.of(alias)))
                continue
            value = val.get("value")
            if value is None:
                log.warning("API constant %s has no value, skipped", name)
                continue
            entities.append(
                Constant(Identifier.of(name), named_type(val.get("type", "uint32_t")), value)
            )

    for ext in root.findall("extensions/extension"):
        if not _supports_vulkan_api(ext.get("supported", "")):
            continue
        for req in ext.findall("require"):
            for val in req.findall("enum"):
                name = val.get("name")
                if not name or val.get("extends"):
                    continue
                alias = val.get("alias")
                value = val.get("value")
                if alias:
                    entities.append(Alias(Identifier.of(name), Identifier.of(alias)))
                elif value is not None:
                    value_type = (
                        STRING_TYPE if value.startswith('"') else named_type("uint32_t")
                    )
                    entities.append(Constant(Identifier.of(name), value_type, value))
    return entities


def collect_enum_values(root: ET.Element) -> dict[str, list[tuple[str, int | str]]]:
    """Collect every value of every enum block, including extension additions."""
    enums: dict[str, list[tuple[str, int | str]]] = defaultdict(list)
    seen: dict[str, set[str]] = defaultdict(set)

    for block in root.findall("enums"):
        block_name = block.get("name", "")
        if block_name == API_CONSTANTS_BLOCK:
            continue
        for val in block.findall("enum"):
            name = val.get("name")
            if not name or val.get("alias"):
                continue
            value = _parse_enum_value(val)
            if value is None:
                continue
            if name not in seen[block_name]:
                enums[block_name].append((name, value))
                seen[block_name].add(name)

    for feat in root.findall("feature"):
        if not _supports_vulkan_api(feat.get("api", "")):
            continue
        for req in feat.findall("require"):
            for val in req.findall("enum"):
                _process_extension_enum(val, None, enums, seen)

    for ext in root.findall("extensions/extension"):
        if not _supports_vulkan_api(ext.get("supported", "")):
            continue
        extnumber = ext.get("number")
        for req in ext.findall("require"):
            for val in req.findall("enum"):
                _process_extension_enum(val, extnumber, enums, seen)

    return dict(enums)


ENUM_BASE_VALUE = 1000000000
ENUM_RANGE_SIZE = 1000


def _process_extension_enum(val, default_extnumber, enums, seen):
    name = val.get("name")
    extends = val.get("extends")
    if not name or not extends or val.get("alias") or name in seen[extends]:
        return
    offset = val.get("offset")
    if offset is not None:
        extnumber = val.get("extnumber", default_extnumber)
        if extnumber is None:
            return
        value = ENUM_BASE_VALUE + (int(extnumber) - 1) * ENUM_RANGE_SIZE + int(offset)
        if val.get("dir") == "-":
            value = -value
    else:
        value = _parse_enum_value(val)
        if value is None:
            return
    enums[extends].append((name, value))
    seen[extends].add(name)


def extract_vulkan_enums(root: ET.Element) -> list[Enumeration | Bitmask]:
    values = collect_enum_values(root)
    entities: list[Enumeration | Bitmask] = []
    for block in root.findall("enums"):
        name = block.get("name", "")
        block_type = block.get("type", "")
        entries = values.get(name, [])
        if block_type == "enum":
            variants = []
            for vname, value in entries:
                if not isinstance(value, int):
                    log.warning("enum %s.%s has non-numeric value %r, skipped", name, vname, value)
                    continue
                variants.append(EnumVariant(Identifier.of(vname), value))
            entities.append(Enumeration(Identifier.of(name), tuple(variants)))
        elif block_type == "bitmask":
            bitwidth = int(block.get("bitwidth", DEFAULT_VULKAN_BITWIDTH))
            flags = tuple(Bitflag(Identifier.of(vname), value) for vname, value in entries)
            entities.append(Bitmask(Identifier.of(name), bitwidth, flags))
    return entities


def extract_vulkan_enum_aliases(root: ET.Element) -> list[Alias]:
    """Aliased enum and bitmask values, kept out of the value lists."""
    aliases: list[Alias] = []
    for block in root.findall("enums"):
        if block.get("name") == API_CONSTANTS_BLOCK:
            continue
        for val in block.findall("enum"):
            name, alias = val.get("name"), val.get("alias")
            if name and alias:
                aliases.append(Alias(Identifier.of(name), Identifier.of(alias)))

    requires = [
        req
        for feat in root.findall("feature")
        if _supports_vulkan_api(feat.get("api", ""))
        for req in feat.findall("require")
    ]
    requires += [
        req
        for ext in root.findall("extensions/extension")
        if _supports_vulkan_api(ext.get("supported", ""))
        for req in ext.findall("require")
    ]
    for req in requires:
        for val in req.findall("enum"):
            name, alias = val.get("name"), val.get("alias")
            if name and alias and val.get("extends"):
                aliases.append(Alias(Identifier.of(name), Identifier.of(alias)))
    return aliases


def extract_vulkan_handles(root: ET.Element) -> list[OpaqueHandleTypedef]:
    handles = []
    for t in _vulkan_types(root, "handle"):
        if t.get("alias"):
            continue
        name_el = t.find("name")
        if name_el is None or not name_el.text:
            continue
        handles.append(OpaqueHandleTypedef(Identifier.of(name_el.text)))
    return handles


def _extract_aggregates(root: ET.Element, category: str) -> list[Structure]:
    structures = []
    for t in _vulkan_types(root, category):
        if t.get("alias"):
            continue
        name = t.get("name", "")
        members = []
        seen_api_members = set()
        for m in t.findall("member"):
            m_api = m.get("api", "")
            name_el = m.find("name")
            m_name = name_el.text if name_el is not None else ""
            if m_api == "vulkansc":
                continue
            if m_api and "vulkan" in m_api and m_name in seen_api_members:
                continue
            parsed = parse_member(m)
            if parsed:
                if m_api:
                    seen_api_members.add(parsed.name.value)
                members.append(parsed)
        structures.append(
            Structure(Identifier.of(name), tuple(members), is_union=category == "union")
        )
    return structures


def extract_vulkan_structures(root: ET.Element) -> list[Structure]:
    return _extract_aggregates(root, "struct") + _extract_aggregates(root, "union")


_FUNCPOINTER_RESULT_RE = re.compile(r"typedef\s+(?:const\s+)?(\w+)\s*(\**)\s*\(")


def _parse_legacy_funcpointer(t: ET.Element, name: str) -> FunctionTypedef | None:
    match = _FUNCPOINTER_RESULT_RE.search(t.text or "")
    if match is None:
        log.warning("funcpointer %s has an unrecognized prototype, skipped", name)
        return None
    result: Type = named_type(match.group(1))
    for _ in match.group(2):
        result = PointerType(result)

    params: list[Type] = []
    name_el = t.find("name")
    preceding = (name_el.tail or "") if name_el is not None else ""
    for type_el in t.findall("type"):
        tail = type_el.tail or ""
        declarator, _, _ = tail.partition(",")
        stars = declarator.count("*")
        param_type: Type = named_type(type_el.text or "")
        for level in range(stars):
            param_type = PointerType(param_type, const=level == 0 and "const" in preceding)
        params.append(param_type)
        preceding = tail.rpartition(",")[2]
    return FunctionTypedef(Identifier.of(name), tuple(params), result)


def extract_vulkan_function_typedefs(root: ET.Element) -> list[FunctionTypedef]:
    typedefs = []
    for t in _vulkan_types(root, "funcpointer"):
        name = _vulkan_type_name(t)
        if not name:
            continue
        proto = t.find("proto")
        if proto is None:
            parsed = _parse_legacy_funcpointer(t, name)
            if parsed is not None:
                typedefs.append(parsed)
            continue
        type_el = proto.find("type")
        result = VOID
        if type_el is not None:
            # tail is " (VKAPI_PTR *"
            declarator = (type_el.tail or "").partition("(")[0]
            result = _wrap_declarator(
                named_type(type_el.text or "void"), proto.text or "", declarator
            )
        params = [p.type for p in map(parse_command_param, t.findall("param")) if p]
        typedefs.append(FunctionTypedef(Identifier.of(name), tuple(params), result))
    return typedefs


def extract_vulkan_commands(root: ET.Element) -> tuple[list[Command], list[Alias]]:
    commands = []
    aliases = []
    for cmd in root.findall("commands/command"):
        if _is_vulkansc_only(cmd):
            continue
        alias = cmd.get("alias")
        if alias:
            aliases.append(Alias(Identifier.of(cmd.get("name", "")), Identifier.of(alias)))
            continue
        proto = cmd.find("proto")
        if proto is None:
            continue
        name_el = proto.find("name")
        type_el = proto.find("type")
        if name_el is None or not name_el.text:
            continue
        result = (
            _wrap_declarator(named_type(type_el.text or "void"), proto.text or "", type_el.tail or "")
            if type_el is not None
            else VOID
        )
        params = []
        for p in cmd.findall("param"):
            if _is_vulkansc_only(p):
                continue
            parsed = parse_command_param(p)
            if parsed:
                params.append(parsed)
        commands.append(Command(Identifier.of(name_el.text), tuple(params), result))
    return commands, aliases


def extract_vulkan_typedef_aliases(root: ET.Element) -> list[Alias]:
    """Base types and ``Flags`` typedefs as aliases of what they name."""
    aliases = []
    for t in _vulkan_types(root, "basetype"):
        name_el = t.find("name")
        type_el = t.find("type")
        if name_el is None or type_el is None or not name_el.text or not type_el.text:
            continue
        if "*" in (type_el.tail or ""):
            continue
        aliases.append(Alias(Identifier.of(name_el.text), Identifier.of(type_el.text)))
    for t in _vulkan_types(root, "bitmask"):
        if t.get("alias"):
            continue
        name_el = t.find("name")
        type_el = t.find("type")
        if name_el is None or not name_el.text:
            continue
        target = t.get("requires") or t.get("bitvalues")
        if target is None and type_el is not None:
            target = type_el.text
        if target:
            aliases.append(Alias(Identifier.of(name_el.text), Identifier.of(target)))
    return aliases


def extract_vulkan_extensions(root: ET.Element) -> list[ExtensionInfo]:
    extensions = []
    for ext in root.findall("extensions/extension"):
        name = ext.get("name")
        if not name or not _supports_vulkan_api(ext.get("supported", "")):
            continue
        commands: list[str] = []
        for req in ext.findall("require"):
            for cmd in req.findall("command"):
                cmd_name = cmd.get("name")
                if cmd_name and cmd_name not in commands:
                    commands.append(cmd_name)
        extensions.append(ExtensionInfo(name, ext.get("type"), tuple(commands)))
    return extensions


def extract_vulkan_registry(root: ET.Element) -> Registry:
    """Build a Registry, including extension metadata, from a vk.xml root."""
    builder = RegistryBuilder()
    builder.add_all(extract_vulkan_constants(root))
    builder.add_all(extract_vulkan_enums(root))
    builder.add_all(extract_vulkan_enum_aliases(root))
    builder.add_all(extract_vulkan_handles(root))
    builder.add_all(extract_vulkan_structures(root))
    builder.add_all(extract_vulkan_function_typedefs(root))
    commands, command_aliases = extract_vulkan_commands(root)
    builder.add_all(commands)
    builder.add_all(command_aliases)
    builder.add_all(extract_vulkan_typedef_aliases(root))
    for category in ("handle", "struct", "union", "enum", "bitmask"):
        builder.add_all(_type_aliases(root, category))
    for info in extract_vulkan_extensions(root):
        builder.add_extension(info)
    return builder.build()


# ===--- Command scope classification ---=== #


class CommandScope(Enum):
    STATIC = "static"
    ENTRY = "entry"
    INSTANCE = "instance"
    DEVICE = "device"


STATIC_COMMANDS = frozenset({"vkGetInstanceProcAddr", "vkGetDeviceProcAddr"})
ENTRY_COMMANDS = frozenset(
    {
        "vkCreateInstance",
        "vkEnumerateInstanceExtensionProperties",
        "vkEnumerateInstanceLayerProperties",
        "vkEnumerateInstanceVersion",
    }
)
INSTANCE_CREATION_COMMANDS = frozenset({"vkCreateInstance"})
PHYSICAL_DEVICE_TYPE = "VkPhysicalDevice"
DEVICE_LEVEL_TYPES = frozenset({"VkCommandBuffer", "VkDevice", "VkQueue"})


def build_extension_command_scopes(
    extensions: Iterable[ExtensionInfo],
) -> Mapping[str, CommandScope]:
    """Map each extension-required command to its extension's declared scope.

    Extensions whose type is not a known scope are ignored. When two
    extensions claim a command with different scopes the first one wins and
    a warning is logged.
    """
    scopes: dict[str, CommandScope] = {}
    for extension in extensions:
        try:
            scope = CommandScope(extension.type)
        except ValueError:
            continue
        for command in extension.commands:
            existing = scopes.get(command)
            if existing is None:
                scopes[command] = scope
            elif existing is not scope:
                log.warning(
                    "duplicate/conflicting command type for %s in %s",
                    command,
                    extension.name,
                )
    return MappingProxyType(scopes)


def _first_param_type(command: Command) -> Identifier | None:
    if not command.params:
        return None
    return try_find_identifier_type(command.params[0].type)


def detect_command_scope(
    command: Command, extension_scopes: Mapping[str, CommandScope]
) -> CommandScope:
    original = command.name.original
    if original in STATIC_COMMANDS:
        return CommandScope.STATIC
    if original in ENTRY_COMMANDS:
        return CommandScope.ENTRY
    if original in INSTANCE_CREATION_COMMANDS:
        return CommandScope.INSTANCE

    first_type = _first_param_type(command)
    extension_scope = extension_scopes.get(original)
    if extension_scope is not None:
        # device extensions also carry physical-device queries
        if (
            extension_scope is CommandScope.DEVICE
            and first_type is not None
            and first_type.original == PHYSICAL_DEVICE_TYPE
        ):
            return CommandScope.INSTANCE
        return extension_scope

    if first_type is not None and first_type.original in DEVICE_LEVEL_TYPES:
        return CommandScope.DEVICE
    return CommandScope.INSTANCE


@dataclass(frozen=True)
class CommandClassification:
    """Scope of every registry command, with commands bucketed in name order."""

    scopes: Mapping[Identifier, CommandScope]
    static: tuple[Command, ...]
    entry: tuple[Command, ...]
    instance: tuple[Command, ...]
    device: tuple[Command, ...]

    def bucket(self, scope: CommandScope) -> tuple[Command, ...]:
        return getattr(self, scope.name.lower())


def classify_commands(registry: Registry) -> CommandClassification:
    extension_scopes = build_extension_command_scopes(registry.extensions.values())
    scopes: dict[Identifier, CommandScope] = {}
    buckets: dict[CommandScope, list[Command]] = {scope: [] for scope in CommandScope}
    for command in sorted(registry.commands.values(), key=lambda c: c.name.value):
        scope = detect_command_scope(command, extension_scopes)
        scopes[command.name] = scope
        buckets[scope].append(command)
    return CommandClassification(
        scopes=MappingProxyType(scopes),
        static=tuple(buckets[CommandScope.STATIC]),
        entry=tuple(buckets[CommandScope.ENTRY]),
        instance=tuple(buckets[CommandScope.INSTANCE]),
        device=tuple(buckets[CommandScope.DEVICE]),
    )


# ===--- Documentation links ---=== #

VULKAN_MAN_PAGE_URL = "https://registry.khronos.org/vulkan/specs/latest/man/html/{}.html"
UNLINKED_CONSTANT_PREFIX = "STD_VIDEO_"
UNLINKED_ENTITY_PREFIXES = ("StdVideo", "Nv")
VIDEO_EXTENSION_MARKER = "STD_vulkan_video"
EXTENSION_NAME_SUFFIX = "_EXTENSION_NAME"

_LINKED_KINDS = (
    Bitmask,
    Command,
    Enumeration,
    Structure,
    OpaqueHandleTypedef,
    FunctionTypedef,
)

DocLinkProvider = Callable[[Entity], str | None]


def _doc_link_target(entity: Entity) -> str | None:
    if isinstance(entity, Constant):
        name = entity.name.original
        if name.startswith(UNLINKED_CONSTANT_PREFIX):
            return None
        if name.endswith(EXTENSION_NAME_SUFFIX) and entity.type == STRING_TYPE:
            unquoted = (entity.expr or "").removeprefix('"').removesuffix('"')
            if VIDEO_EXTENSION_MARKER in unquoted:
                return None
            return unquoted
        return name
    if isinstance(entity, _LINKED_KINDS):
        name = entity.name.original
        if name.startswith(UNLINKED_ENTITY_PREFIXES):
            return None
        return name
    return None


def vulkan_doc_link(entity: Entity) -> str | None:
    """Return the man page URL documenting a Vulkan entity, if it has one."""
    target = _doc_link_target(entity)
    if target is None:
        return None
    return VULKAN_MAN_PAGE_URL.format(target)


def format_doc_link(entity: Entity) -> str | None:
    target = _doc_link_target(entity)
    if target is None:
        return None
    url = VULKAN_MAN_PAGE_URL.format(target)
    return f'<a href="{url}"><code>{target}</code></a>'


# ===--- Pipeline ---=== #


@dataclass(frozen=True)
class ExtractionResult:
    """Everything handed to a renderer: the registry and the command scopes.

    Attributes:
        source: Spec source name, ``webgpu`` or ``vulkan``.
        registry: Immutable registry built from the spec document.
        classification: Scope of every command in ``registry.commands``.
        doc_link_provider: Documentation link resolver for this source, or
            None when the source has no external reference pages.
    """

    source: str
    registry: Registry
    classification: CommandClassification
    doc_link_provider: DocLinkProvider | None


def extract_registry(config: ExtractConfig) -> Registry:
    """Load the configured spec document and extract its registry.

    Raises:
        OSError: Spec file not readable.
        SpecFormatError: Spec document malformed or missing a required path.
    """
    if config.source == "webgpu":
        document = load_webgpu_document(config.spec_path)
        return extract_webgpu_registry(document, config.options)
    root = load_vulkan_document(config.spec_path)
    return extract_vulkan_registry(root)


def run_extract(config: ExtractConfig) -> ExtractionResult:
    print(f"Parsing: {config.spec_path}")
    registry = extract_registry(config)
    print(f"  Registry: {registry.entity_count()} entities")

    classification = classify_commands(registry)
    result = ExtractionResult(
        source=config.source,
        registry=registry,
        classification=classification,
        doc_link_provider=vulkan_doc_link if config.source == "vulkan" else None,
    )
    print_registry_summary(result, str(config.spec_path))
    return result


# ===--- Summary report ---=== #

SOURCE_LABELS = {"webgpu": "WebGPU", "vulkan": "Vulkan"}

_SUMMARY_ROWS = (
    ("Constants:", "constants"),
    ("Enums:", "enumerations"),
    ("Bitmasks:", "bitmasks"),
    ("Handles:", "opaque_handle_typedefs"),
    ("Structs:", "structures"),
    ("Unions:", "unions"),
    ("Functions:", "function_typedefs"),
    ("Commands:", "commands"),
    ("Aliases:", "aliases"),
)


def format_registry_summary(result: ExtractionResult, source_path: str) -> str:
    """Render the console summary for one extraction run.

    Returns a string with exactly one trailing newline.
    """
    registry = result.registry
    lines: list[str] = []
    lines.append(f"{SOURCE_LABELS.get(result.source, result.source)} registry extracted:")
    lines.append("")
    lines.append(f"  Source:     {source_path}")
    lines.append("")
    lines.append("  Entities:")
    for label, slot in _SUMMARY_ROWS:
        lines.append(f"    {label:<11}{len(getattr(registry, slot)):>6}")
    if registry.extensions:
        lines.append(f"    {'Extensions:':<11}{len(registry.extensions):>6}")
    lines.append("")
    lines.append("  Command classification:")
    for scope in CommandScope:
        label = f"{scope.name.title()}:"
        lines.append(f"    {label:<11}{len(result.classification.bucket(scope)):>6}")
    lines.append("")
    return "\n".join(lines)


def print_registry_summary(result: ExtractionResult, source_path: str) -> None:
    print(format_registry_summary(result, source_path), end="")


# ===--- Main ---=== #


def main(argv: list[str] | None = None):
    try:
        args = parse_args(argv)
        config = validate_config(args)
    except ConfigError as err:
        print(f"Config error [{err.code}]: {err.message}")
        if err.suggestion:
            print(f"Hint: {err.suggestion}")
        raise SystemExit(1) from err

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        run_extract(config)
    except (OSError, SpecFormatError) as err:
        print(f"Error: {err}")
        raise SystemExit(1) from err
    except (UnrecognizedTypeToken, UnresolvedConstantError) as err:
        print(f"Strict mode error: {err}")
        raise SystemExit(1) from err


if __name__ == "__main__":
    main()
