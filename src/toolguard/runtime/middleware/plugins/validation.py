"""Parameter validation layer.

Runs after the caching layer, so a cache hit is served without revalidating
(cache keys derive from the raw parameters). Validated parameters, not the raw
input, are handed inward.

- Schema validation through a cached pydantic TypeAdapter per tool
- The definition's own validator callable, if any
- Field rules registered per tool (`add_rule`)
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, ClassVar

from pydantic import BaseModel, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from toolguard.foundation.core import ToolDefinition, ToolHandler, decorated, invoke
from toolguard.foundation.errors import ToolException, ValidationError
from toolguard.runtime.middleware.config import ValidationConfig

# value -> True (pass) | False (fail with default msg) | str (fail with custom msg)
Check = Callable[[object], bool | str]


@dataclass(slots=True, frozen=True)
class FieldRule:
    """Validation rule for one field of a tool's parameters."""
    field: str
    check: Check
    message: str


def format_validation_error(exc: PydanticValidationError, *, tool_name: str) -> str:
    """Condense pydantic errors into one line: `field: reason; field: reason`."""
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"]) or "params"
        parts.append(f"{loc}: {err['msg']}")
    return f"Invalid parameters for {tool_name}: " + "; ".join(parts)


@dataclass(slots=True)
class ValidationDecorator:
    """Reject invalid parameters before they reach retries and the base handler.

    Failures raise ValidationError (code INVALID_PARAMS), which the inner
    resilience layer never sees and which is never retried.

    Example:
        >>> validation = ValidationDecorator()
        >>> validation.add_rule("search_records", "query", lambda q: len(q) >= 2, "must be at least 2 characters")
    """

    name: ClassVar[str] = "validation"

    config: ValidationConfig = field(default_factory=ValidationConfig)
    _rules: dict[str, list[FieldRule]] = field(default_factory=dict)
    _adapters: dict[type[BaseModel], TypeAdapter[Any]] = field(default_factory=dict)

    def add_rule(self, tool_name: str, field_name: str, check: Check, message: str) -> ValidationDecorator:
        """Add a field rule. Chainable."""
        self._rules.setdefault(tool_name, []).append(FieldRule(field_name, check, message))
        return self

    def _adapter(self, schema: type[BaseModel]) -> TypeAdapter[Any]:
        if (adapter := self._adapters.get(schema)) is None:
            adapter = self._adapters[schema] = TypeAdapter(schema)
        return adapter

    async def validate(self, definition: ToolDefinition, params: Any) -> Any:
        """Validated parameters, or raise ValidationError."""
        tool = definition.name
        if definition.params_schema is not None:
            raw = params.model_dump() if isinstance(params, BaseModel) else params
            try:
                params = self._adapter(definition.params_schema).validate_python(raw)
            except PydanticValidationError as e:
                raise ValidationError.create(
                    tool, format_validation_error(e, tool_name=tool),
                    fields=[".".join(map(str, err["loc"])) for err in e.errors()],
                ) from e

        if definition.validator is not None:
            try:
                params = await invoke(definition.validator, params)
            except ToolException:
                raise
            except (PydanticValidationError, ValueError, TypeError) as e:
                raise ValidationError.create(tool, f"Invalid parameters for {tool}: {e}") from e

        for rule in self._rules.get(tool, ()):
            value = params.get(rule.field) if isinstance(params, dict) else getattr(params, rule.field, None)
            result = rule.check(value)
            if result is False or isinstance(result, str):
                msg = result if isinstance(result, str) else rule.message
                raise ValidationError.create(tool, f"'{rule.field}' {msg}", field=rule.field)
        return params

    def wrap(self, handler: ToolHandler, definition: ToolDefinition) -> ToolHandler:
        async def validated(params: Any) -> Any:
            checked = await self.validate(definition, params)
            return await handler(checked)

        return decorated(handler, validated, self.name, self.config)
