"""Parameter substitution for OpenShift-style templates."""

from __future__ import annotations

import copy
import json
import random
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import yaml

from toolchainkit.filters import FilterFunc, filter_objects

TEMPLATE_API_VERSION = "template.openshift.io/v1"
TEMPLATE_KIND = "Template"

_STRING_PARAM = re.compile(r"\$\{([a-zA-Z0-9_]+?)\}")
_NON_STRING_PARAM = re.compile(r"^\$\{\{([a-zA-Z0-9_]+)\}\}$")
_RANGE_EXPR = re.compile(r"\[([a-zA-Z0-9\-\\]+)\](\{(\w+)\})")
_CHAR_RANGE = re.compile(r"([\\]?[a-zA-Z0-9]\-?[a-zA-Z0-9]?)")

_ALPHABET = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"
_NUMERALS = "0123456789"
_SYMBOLS = "~!@#$%^&*()-_+={}[]\\|<,>.?/\"';:`"
_CHAR_CLASSES = {
    r"\w": _ALPHABET + _NUMERALS + "_",
    r"\d": _NUMERALS,
    r"\a": _ALPHABET + _NUMERALS,
    r"\A": _SYMBOLS,
}
_MAX_GENERATED_LENGTH = 255


class TemplateProcessingError(Exception):
    """Raised when a template cannot be decoded or processed."""


@dataclass
class Parameter:
    """A template parameter, with its value or the way to generate one."""

    name: str
    value: str = ""
    generate: str = ""
    from_: str = ""
    required: bool = False
    display_name: str = ""
    description: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Parameter:
        return cls(
            name=_as_text(data.get("name")),
            value=_as_text(data.get("value")),
            generate=_as_text(data.get("generate")),
            from_=_as_text(data.get("from")),
            required=bool(data.get("required", False)),
            display_name=_as_text(data.get("displayName", data.get("displayname"))),
            description=_as_text(data.get("description")),
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"name": self.name}
        for key, value in (
            ("displayName", self.display_name),
            ("description", self.description),
            ("value", self.value),
            ("generate", self.generate),
            ("from", self.from_),
        ):
            if value:
                result[key] = value
        if self.required:
            result["required"] = True
        return result


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


@dataclass
class Template:
    """A template: objects with ``${PARAM}`` references and the parameters they use."""

    metadata: dict[str, Any] = field(default_factory=dict)
    objects: list[Any] = field(default_factory=list)
    parameters: list[Parameter] = field(default_factory=list)
    labels: dict[str, str] = field(default_factory=dict)
    message: str = ""
    api_version: str = TEMPLATE_API_VERSION

    @property
    def name(self) -> str:
        return str(self.metadata.get("name", "") or "")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Template:
        kind = data.get("kind")
        if not kind:
            raise TemplateProcessingError("Object 'Kind' is missing")
        if kind != TEMPLATE_KIND:
            raise TemplateProcessingError(f"expected kind {TEMPLATE_KIND}, got {kind}")
        return cls(
            metadata=copy.deepcopy(dict(data.get("metadata") or {})),
            objects=copy.deepcopy(list(data.get("objects") or [])),
            parameters=[Parameter.from_dict(p) for p in data.get("parameters") or []],
            labels={str(k): _as_text(v) for k, v in (data.get("labels") or {}).items()},
            message=_as_text(data.get("message")),
            api_version=_as_text(data.get("apiVersion")) or TEMPLATE_API_VERSION,
        )

    @classmethod
    def parse(cls, content: bytes | str) -> Template:
        """Decode a template from YAML or JSON text."""
        text = content.decode("utf-8") if isinstance(content, bytes) else content
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise TemplateProcessingError(
                f"couldn't get version/kind; json parse error: {exc}"
            ) from exc
        if not isinstance(data, Mapping):
            raise TemplateProcessingError(
                f"couldn't get version/kind; json parse error: invalid content {text!r}"
            )
        return cls.from_dict(data)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "apiVersion": self.api_version,
            "kind": TEMPLATE_KIND,
            "metadata": copy.deepcopy(self.metadata),
            "objects": copy.deepcopy(self.objects),
        }
        if self.parameters:
            result["parameters"] = [p.to_dict() for p in self.parameters]
        if self.labels:
            result["labels"] = dict(self.labels)
        if self.message:
            result["message"] = self.message
        return result

    def copy(self) -> Template:
        return copy.deepcopy(self)


def get_parameter_by_name(template: Template, name: str) -> Parameter | None:
    """Return the template's parameter called ``name``, if there is one."""
    return next((p for p in template.parameters if p.name == name), None)


def _expand_range(spec: str) -> str:
    chars = []
    for token in _CHAR_RANGE.findall(spec):
        if token in _CHAR_CLASSES:
            chars.append(_CHAR_CLASSES[token])
        elif len(token) == 3 and token[1] == "-":
            start, end = token[0], token[2]
            if start > end:
                raise ValueError(f"invalid range specified: {token}")
            chars.append("".join(chr(c) for c in range(ord(start), ord(end) + 1)))
        else:
            chars.append(token.replace("\\", ""))
    result = "".join(chars)
    if not result:
        raise ValueError(f"invalid range specified: {spec}")
    return result


def _generate_expression(expression: str, rng: random.Random) -> str:
    result = expression
    for match in _RANGE_EXPR.finditer(expression):
        alphabet = _expand_range(match.group(1))
        try:
            length = int(match.group(3))
        except ValueError as exc:
            raise ValueError(f"malformed length syntax: {match.group(2)}") from exc
        if not 0 < length <= _MAX_GENERATED_LENGTH:
            raise ValueError(
                f"range must be within [1-{_MAX_GENERATED_LENGTH}] characters ({length})"
            )
        generated = "".join(rng.choice(alphabet) for _ in range(length))
        result = result.replace(match.group(0), generated, 1)
    return result


def _evaluate(params: Mapping[str, str], text: str) -> tuple[str, bool]:
    match = _NON_STRING_PARAM.match(text)
    if match and match.group(1) in params:
        return text.replace(match.group(0), params[match.group(1)], 1), False
    out = text
    for ref in _STRING_PARAM.finditer(text):
        if ref.group(1) in params:
            out = out.replace(ref.group(0), params[ref.group(1)], 1)
    return out, True


def _substitute_text(params: Mapping[str, str], text: str) -> str:
    return _evaluate(params, text)[0]


def _substitute(params: Mapping[str, str], value: Any) -> Any:
    if isinstance(value, str):
        out, as_string = _evaluate(params, value)
        if as_string:
            return out
        try:
            return json.loads(out)
        except ValueError as exc:
            raise TemplateProcessingError(
                f"unable to process template: invalid value {out!r} for non-string parameter: {exc}"
            ) from exc
    if isinstance(value, dict):
        return {
            (_substitute_text(params, k) if isinstance(k, str) else k): _substitute(params, v)
            for k, v in value.items()
        }
    if isinstance(value, list):
        return [_substitute(params, item) for item in value]
    return value


def _strip_namespace(obj: dict[str, Any]) -> None:
    metadata = obj.get("metadata")
    if not isinstance(metadata, dict):
        return
    namespace = metadata.get("namespace")
    if namespace and not _STRING_PARAM.search(str(namespace)):
        del metadata["namespace"]


def _add_labels(index: int, obj: dict[str, Any], labels: Mapping[str, str]) -> None:
    if not labels:
        return
    metadata = obj.setdefault("metadata", {})
    current = metadata.get("labels") or {}
    for key, value in labels.items():
        if key in current and current[key] != value:
            raise TemplateProcessingError(
                f"unable to process template: item[{index}].metadata.labels: "
                f"can't add label {key}={value}: it already has value {current[key]}"
            )
        current[key] = value
    metadata["labels"] = current


def _aggregate(errors: list[str]) -> str:
    if len(errors) == 1:
        return errors[0]
    return "[" + ", ".join(errors) + "]"


@dataclass
class Processor:
    """Processes templates: fills in parameters and returns the resulting objects."""

    rng: random.Random = field(default_factory=random.Random)

    def _resolve_parameters(self, template: Template) -> None:
        errors = []
        for index, param in enumerate(template.parameters):
            if param.value:
                continue
            path = f"template.parameters[{index}]"
            if param.generate:
                if param.generate != "expression":
                    errors.append(f'{path}: Not found: "{param.generate}"')
                    continue
                try:
                    param.value = _generate_expression(param.from_, self.rng)
                except ValueError as exc:
                    errors.append(
                        f'{path}: Invalid value: "{param.from_}": {path}: '
                        f"unable to generate value for parameter {param.name}: {exc}"
                    )
                    continue
            if not param.value and param.required:
                errors.append(
                    f"{path}.value: Required value: {path}: "
                    f"parameter {param.name} is required and must be specified"
                )
        if errors:
            raise TemplateProcessingError(
                f"unable to process template: {_aggregate(errors)}"
            )

    def process(
        self, template: Template, values: Mapping[str, str], *filters: FilterFunc
    ) -> list[dict[str, Any]]:
        """Fill ``values`` into a copy of ``template`` and return the retained objects."""
        tmpl = template.copy()
        for name, value in values.items():
            param = get_parameter_by_name(tmpl, name)
            if param is not None:
                param.value = value
                param.generate = ""

        self._resolve_parameters(tmpl)
        params = {p.name: p.value for p in tmpl.parameters}
        labels = {
            _substitute_text(params, k): _substitute_text(params, v)
            for k, v in tmpl.labels.items()
        }

        processed = []
        for index, item in enumerate(tmpl.objects):
            if isinstance(item, dict):
                _strip_namespace(item)
                item = _substitute(params, item)
                _add_labels(index, item, labels)
            processed.append(item)

        result = []
        for obj in filter_objects(processed, *filters):
            if not isinstance(obj, dict):
                raise TemplateProcessingError(
                    f"unable to cast of the object to client.Object: {obj!r}"
                )
            result.append(obj)
        return result