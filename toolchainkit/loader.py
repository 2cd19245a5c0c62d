"""Loading Kubernetes objects from a tree of templated YAML/JSON manifests."""

from __future__ import annotations

import dataclasses
import re
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml


class TemplateRenderError(Exception):
    """Raised when a manifest template cannot be parsed or executed."""


@dataclass(frozen=True)
class Variables:
    """Values available to manifest templates as ``{{ .Namespace }}`` and the like."""

    namespace: str = ""


_FIELD_REF = re.compile(r"\.([A-Za-z_][A-Za-z0-9_]*)")
_COMMENT = re.compile(r"/\*.*\*/", re.DOTALL)
_TRIM_SPACE = " \t\r\n"


def _template_field_name(attribute: str) -> str:
    return "".join(part[:1].upper() + part[1:] for part in attribute.split("_"))


def _lookup(name: str, field: str, variables: Variables | None) -> str:
    if variables is None:
        raise TemplateRenderError(
            f"template: {name}: nil pointer evaluating *Variables.{field}"
        )
    for attr in dataclasses.fields(variables):
        if _template_field_name(attr.name) == field:
            return str(getattr(variables, attr.name))
    raise TemplateRenderError(
        f"template: {name}: can't evaluate field {field} in type *Variables"
    )


def _evaluate(name: str, action: str, variables: Variables | None) -> str:
    if _COMMENT.fullmatch(action):
        return ""
    if not action:
        raise TemplateRenderError(f"template: {name}: missing value for command")
    match = _FIELD_REF.fullmatch(action)
    if match is None:
        raise TemplateRenderError(f"template: {name}: unsupported action {{{{{action}}}}}")
    return _lookup(name, match.group(1), variables)


def render_template(name: str, content: bytes | str, variables: Variables | None) -> str:
    """Replace ``{{ .Field }}`` actions in ``content`` with values from ``variables``."""
    text = content.decode("utf-8") if isinstance(content, bytes) else content
    parts: list[str] = []
    pos = 0
    while True:
        start = text.find("{{", pos)
        if start < 0:
            parts.append(text[pos:])
            break
        end = text.find("}}", start + 2)
        if end < 0:
            raise TemplateRenderError(f"template: {name}: unclosed action")
        literal = text[pos:start]
        action = text[start + 2 : end]
        if len(action) > 1 and action[0] == "-" and action[1] in _TRIM_SPACE:
            literal = literal.rstrip(_TRIM_SPACE)
            action = action[1:]
        trim_right = len(action) > 1 and action[-1] == "-" and action[-2] in _TRIM_SPACE
        if trim_right:
            action = action[:-1]
        parts.append(literal)
        parts.append(_evaluate(name, action.strip(), variables))
        pos = end + 2
        if trim_right:
            while pos < len(text) and text[pos] in _TRIM_SPACE:
                pos += 1
    return "".join(parts)


def _walk_files(root: Path, base: Path) -> Iterator[Path]:
    for entry in sorted(root.iterdir(), key=lambda p: p.name):
        if entry.is_dir():
            yield from _walk_files(entry, base)
        else:
            yield entry


def _decode_documents(name: str, text: str) -> Iterator[dict[str, Any]]:
    try:
        documents = list(yaml.safe_load_all(text))
    except yaml.YAMLError as exc:
        raise ValueError(f"unable to decode '{name}': {exc}") from exc
    for doc in documents:
        if doc is None:
            continue
        if not isinstance(doc, dict):
            raise ValueError(f"unable to decode '{name}': object is not a mapping: {doc!r}")
        if not doc.get("kind"):
            raise ValueError(f"Object 'Kind' is missing in '{name}'")
        yield doc


def load_objects(root: str | Path, variables: Variables | None = None) -> list[dict[str, Any]]:
    """Load every object from all files below ``root``, in lexical walk order."""
    base = Path(root)
    objects: list[dict[str, Any]] = []
    for path in _walk_files(base, base):
        name = path.relative_to(base).as_posix()
        rendered = render_template(name, path.read_bytes(), variables)
        objects.extend(_decode_documents(name, rendered))
    return objects