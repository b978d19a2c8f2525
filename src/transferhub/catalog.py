"""Parameter catalog: declaration, presentation grouping and validation.

Parameters are declared through a ``ParameterCatalogBuilder`` which is threaded
through the declaration calls and finally frozen into a ``ParameterCatalog``.
The catalog compiles its declarations into one pydantic model, validates raw
values (from YAML config, environment overrides or tests) into an immutable
``ParameterSet`` and renders the CloudFormation
``AWS::CloudFormation::Interface`` metadata used by the console.
"""

from enum import Enum
from typing import Annotated, Any, Callable, Dict, Iterator, List, Literal, Mapping, Optional, Sequence, Tuple

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, TypeAdapter, create_model
from pydantic import ValidationError as PydanticValidationError

from .errors import InvariantViolation, ValidationError, Violation

# Cross-parameter rule run on the values that passed their own constraints.
CatalogCheck = Callable[[Mapping[str, Any]], List[Violation]]

# pydantic error type -> catalog rule name; anything else is a type mismatch.
_RULES = {
    "missing": "required",
    "extra_forbidden": "unknown",
    "string_pattern_mismatch": "pattern",
    "greater_than_equal": "minimum",
    "too_short": "min_items",
    "literal_error": "allowed_values",
}


class ParameterKind(str, Enum):
    """Value kinds supported by the catalog."""
    STRING = "string"
    NUMBER = "number"
    LIST = "list"
    ENUM = "enum"


_DEFAULT_CFN_TYPES = {
    ParameterKind.STRING: "String",
    ParameterKind.NUMBER: "Number",
    ParameterKind.LIST: "CommaDelimitedList",
    ParameterKind.ENUM: "String",
}


def _text(raw: Any) -> Any:
    # unquoted YAML numbers are still valid strings
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        return str(raw)
    return raw


def _integer(raw: Any) -> Any:
    if isinstance(raw, bool):
        raise ValueError("expected an integer, got bool")
    return raw


def _items(raw: Any) -> Any:
    """Comma-separated strings and sequences become stripped, non-empty items."""
    if isinstance(raw, str):
        raw = raw.split(",")
    if isinstance(raw, (list, tuple)):
        return tuple(str(item).strip() for item in raw if str(item).strip())
    return raw


def _flag(raw: Any) -> Any:
    if isinstance(raw, bool):
        return "true" if raw else "false"
    return raw


class Parameter(BaseModel):
    """Declared input parameter. A parameter without default is required."""
    model_config = ConfigDict(frozen=True)

    name: str
    kind: ParameterKind
    label: str
    group: str
    description: str = ""
    default: Optional[Any] = None
    allowed_values: Optional[Tuple[str, ...]] = None
    pattern: Optional[str] = None
    minimum: Optional[int] = None
    min_items: Optional[int] = None
    cfn_type: Optional[str] = None

    @property
    def required(self) -> bool:
        return self.default is None

    @property
    def field_name(self) -> str:
        return self.name.replace("-", "_")

    @property
    def logical_id(self) -> str:
        """CloudFormation logical id, e.g. ``source-type`` -> ``sourceType``."""
        head, *rest = self.name.split("-")
        return head + "".join(part.capitalize() for part in rest)

    @property
    def template_type(self) -> str:
        return self.cfn_type or _DEFAULT_CFN_TYPES[self.kind]

    def value_type(self) -> Any:
        """Annotated type carrying this parameter's coercion and constraints."""
        if self.kind is ParameterKind.NUMBER:
            return Annotated[int, BeforeValidator(_integer), Field(ge=self.minimum)]
        if self.kind is ParameterKind.LIST:
            return Annotated[Tuple[str, ...], BeforeValidator(_items), Field(min_length=self.min_items)]
        if self.kind is ParameterKind.ENUM and self.allowed_values:
            return Annotated[Literal[self.allowed_values], BeforeValidator(_flag)]
        # patterns must match the whole value
        pattern = rf"^(?:{self.pattern})\Z" if self.pattern else None
        return Annotated[str, BeforeValidator(_text), Field(pattern=pattern)]


class ParameterSet(Mapping[str, Any]):
    """Immutable, validated parameter values keyed by parameter name."""

    def __init__(self, values: Mapping[str, Any]):
        self._values = dict(values)

    def __getitem__(self, name: str) -> Any:
        return self._values[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"ParameterSet({self._values!r})"

    def flag(self, name: str) -> bool:
        return self._values[name] == "true"

    def as_strings(self) -> Dict[str, str]:
        """Render every value as a string; lists are comma-joined."""
        rendered = {}
        for name, value in self._values.items():
            if isinstance(value, tuple):
                rendered[name] = ",".join(value)
            else:
                rendered[name] = str(value)
        return rendered


class ParameterCatalog:
    """Frozen snapshot of declared parameters and their presentation grouping."""

    # python-re keeps the declared patterns in Python regex syntax
    _config = ConfigDict(regex_engine="python-re")

    def __init__(
        self,
        parameters: Sequence[Parameter],
        groups: Sequence[Tuple[str, Tuple[str, ...]]],
        checks: Sequence[CatalogCheck] = (),
    ):
        self.parameters: Tuple[Parameter, ...] = tuple(parameters)
        self.groups: Tuple[Tuple[str, Tuple[str, ...]], ...] = tuple(groups)
        self.checks: Tuple[CatalogCheck, ...] = tuple(checks)
        self.labels: Dict[str, str] = {p.name: p.label for p in self.parameters}
        self._by_name = {p.name: p for p in self.parameters}
        self._model = create_model(
            "TransferParameters",
            __config__=ConfigDict(extra="forbid", validate_default=True, **self._config),
            **{
                p.field_name: (p.value_type(), Field(... if p.required else p.default, alias=p.name))
                for p in self.parameters
            },
        )

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def __getitem__(self, name: str) -> Parameter:
        return self._by_name[name]

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(p.name for p in self.parameters)

    def validate(self, values: Mapping[str, Any]) -> ParameterSet:
        """Validate raw values against every declared parameter.

        Args:
            values: Raw values keyed by parameter name. Missing (or ``None``)
                optional parameters take their declared default.

        Returns:
            The coerced, immutable parameter set.

        Raises:
            ValidationError: With every violated constraint, including those
                of the registered cross-parameter checks, not just the first.
        """
        supplied = {name: raw for name, raw in values.items() if raw is not None}
        violations: List[Violation] = []
        try:
            resolved = self._model.model_validate(supplied).model_dump(by_alias=True)
        except PydanticValidationError as exc:
            violations = [self._violation(error) for error in exc.errors()]
            resolved = self._resolve_valid(supplied, {v.parameter for v in violations})

        for check in self.checks:
            violations.extend(check(resolved))

        if violations:
            raise ValidationError(violations)
        return ParameterSet(resolved)

    def _violation(self, error: Mapping[str, Any]) -> Violation:
        name = str(error["loc"][0]) if error["loc"] else "<parameters>"
        rule = _RULES.get(error["type"], "type")
        if rule == "unknown":
            return Violation(name, rule, "is not a declared parameter")
        return Violation(name, rule, error["msg"])

    def _resolve_valid(self, supplied: Mapping[str, Any], failed: set) -> Dict[str, Any]:
        """Coerced values of the parameters that passed, for the cross-parameter checks."""
        resolved = {}
        for param in self.parameters:
            if param.name in failed:
                continue
            adapter = TypeAdapter(param.value_type(), config=self._config)
            resolved[param.name] = adapter.validate_python(supplied.get(param.name, param.default))
        return resolved

    def interface_metadata(self) -> Dict[str, Any]:
        """Render the ``AWS::CloudFormation::Interface`` metadata block."""
        return {
            "ParameterGroups": [
                {
                    "Label": {"default": label},
                    "Parameters": [self._by_name[name].logical_id for name in names],
                }
                for label, names in self.groups
            ],
            "ParameterLabels": {
                p.logical_id: {"default": p.label} for p in self.parameters
            },
        }


class ParameterCatalogBuilder:
    """Accumulates declarations in order; ``build`` returns the frozen catalog."""

    def __init__(self) -> None:
        self._parameters: List[Parameter] = []
        self._groups: Dict[str, List[str]] = {}
        self._checks: List[CatalogCheck] = []

    def declare(self, name: str, kind: ParameterKind, *, label: str, group: str, **options: Any) -> Parameter:
        if any(p.name == name for p in self._parameters):
            raise InvariantViolation(f"parameter {name!r} declared twice")
        param = Parameter(name=name, kind=kind, label=label, group=group, **options)
        self._parameters.append(param)
        self._groups.setdefault(group, []).append(name)
        return param

    def add_check(self, check: CatalogCheck) -> None:
        """Register a rule spanning several parameters, reported with the rest."""
        self._checks.append(check)

    def build(self) -> ParameterCatalog:
        return ParameterCatalog(
            self._parameters,
            [(label, tuple(names)) for label, names in self._groups.items()],
            self._checks,
        )
