"""Loading tier template files and dispatching them by tier."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import yaml

from toolchainkit.processor import Parameter


class TemplateLoadError(ValueError):
    """Raised when the tier template files are inconsistent or malformed."""


@dataclass
class BasedOnTier:
    """Which tier to reuse and which of its parameters to override."""

    from_: str = ""
    parameters: list[Parameter] = field(default_factory=list)
    revision: str = ""


@dataclass
class TemplateFile:
    """A template's content and its revision."""

    revision: str
    content: bytes


@dataclass
class RawTemplates:
    """The template files of one tier, by scope."""

    ns_template_tier: TemplateFile | None = None
    cluster_template: TemplateFile | None = None
    namespace_templates: dict[str, TemplateFile] = field(default_factory=dict)
    spacerole_templates: dict[str, TemplateFile] = field(default_factory=dict)
    based_on_tier: TemplateFile | None = None


@dataclass
class TierData:
    """Everything known about one tier, from its files to the objects generated for it."""

    name: str
    raw_templates: RawTemplates = field(default_factory=RawTemplates)
    based_on_tier: BasedOnTier | None = None
    tier_templates: list[Any] = field(default_factory=list)
    objects: list[Any] = field(default_factory=list)


def _yaml_type(value: Any) -> str:
    if isinstance(value, str):
        return "!!str"
    if isinstance(value, bool):
        return "!!bool"
    if isinstance(value, int):
        return "!!int"
    if isinstance(value, float):
        return "!!float"
    if isinstance(value, list):
        return "!!seq"
    return "!!map"


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def parse_based_on_tier(content: bytes | str) -> BasedOnTier:
    """Parse the content of a ``based_on_tier.yaml`` file."""
    text = content.decode("utf-8") if isinstance(content, bytes) else content
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise TemplateLoadError(f"yaml: {exc}") from exc
    if data is None:
        return BasedOnTier()
    if not isinstance(data, Mapping):
        raise TemplateLoadError(
            f"yaml: unmarshal errors: cannot unmarshal {_yaml_type(data)} "
            f"`{text.strip()}` into BasedOnTier"
        )
    raw_params = data.get("parameters") or []
    if not isinstance(raw_params, list):
        raise TemplateLoadError(
            f"yaml: unmarshal errors: cannot unmarshal {_yaml_type(raw_params)} into []Parameter"
        )
    parameters = []
    for raw in raw_params:
        if not isinstance(raw, Mapping):
            raise TemplateLoadError(
                f"yaml: unmarshal errors: cannot unmarshal {_yaml_type(raw)} into Parameter"
            )
        parameters.append(Parameter.from_dict(raw))
    return BasedOnTier(
        from_=_text(data.get("from")),
        parameters=parameters,
        revision=_text(data.get("revision")),
    )


def _strip(text: str, prefix: str, suffix: str) -> str:
    text = text[len(prefix):] if text.startswith(prefix) else text
    return text[: -len(suffix)] if text.endswith(suffix) else text


def load_templates_by_tiers(
    metadata: Mapping[str, str], files: Mapping[str, bytes]
) -> dict[str, TierData]:
    """Dispatch ``files`` named ``<tier>/<file>.yaml`` by tier.

    Revisions are looked up in ``metadata`` by file name without the ``.yaml`` suffix.
    """
    results: dict[str, TierData] = {}
    for name, content in files.items():
        parts = name.split("/")
        if len(parts) != 2:
            raise TemplateLoadError(
                f"unable to load templates: invalid name format for file '{name}'"
            )
        tier, filename = parts
        data = results.setdefault(tier, TierData(name=tier))
        raw = data.raw_templates
        tmpl = TemplateFile(
            revision=metadata.get(_strip(name, "", ".yaml"), ""), content=content
        )
        if filename == "tier.yaml":
            raw.ns_template_tier = tmpl
        elif filename == "cluster.yaml":
            raw.cluster_template = tmpl
        elif filename.startswith("ns_"):
            raw.namespace_templates[_strip(filename, "ns_", ".yaml")] = tmpl
        elif filename.startswith("spacerole_"):
            raw.spacerole_templates[_strip(filename, "spacerole_", ".yaml")] = tmpl
        elif filename == "based_on_tier.yaml":
            try:
                based_on = parse_based_on_tier(content)
            except TemplateLoadError as exc:
                raise TemplateLoadError(f"unable to unmarshal '{name}': {exc}") from exc
            raw.based_on_tier = tmpl
            data.based_on_tier = based_on
        else:
            raise TemplateLoadError(
                f"unable to load templates: unknown scope for file '{name}'"
            )

    for tier, data in results.items():
        raw = data.raw_templates
        if raw.based_on_tier is not None and (
            raw.cluster_template is not None
            or raw.namespace_templates
            or raw.ns_template_tier is not None
        ):
            raise TemplateLoadError(
                f"the tier {tier} contains a mix of based_on_tier.yaml file "
                "together with a regular template file"
            )
    return results