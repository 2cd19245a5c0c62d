"""Generating TierTemplates and NSTemplateTiers from tier template files."""

from __future__ import annotations

import copy
import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any, ClassVar

from toolchainkit.processor import (
    Parameter,
    Processor,
    Template,
    TemplateProcessingError,
    get_parameter_by_name,
)
from toolchainkit.tierfiles import (
    TemplateFile,
    TemplateLoadError,
    TierData,
    load_templates_by_tiers,
)

log = logging.getLogger(__name__)

API_VERSION = "toolchain.dev.openshift.com/v1alpha1"
CLUSTER_RESOURCES_TEMPLATE_TYPE = "clusterresources"
PROVIDER_LABEL_KEY = "toolchain.dev.openshift.com/provider"
PROVIDER_LABEL_VALUE = "codeready-toolchain"

EnsureObject = Callable[[Any, bool, str], bool]


class TierGenerationError(Exception):
    """Raised when TierTemplates or NSTemplateTiers cannot be generated or ensured."""


@dataclass
class TierTemplate:
    """A processed template of one type (namespace, space role or cluster) of a tier."""

    kind: ClassVar[str] = "TierTemplate"

    name: str
    namespace: str
    revision: str
    tier_name: str
    type: str
    template: Template

    def to_dict(self) -> dict[str, Any]:
        return {
            "apiVersion": API_VERSION,
            "kind": self.kind,
            "metadata": {"name": self.name, "namespace": self.namespace},
            "spec": {
                "revision": self.revision,
                "tierName": self.tier_name,
                "type": self.type,
                "template": self.template.to_dict(),
            },
        }


def new_tier_template_name(tier: str, kind: str, revision: str) -> str:
    """Return the TierTemplate name ``<tier>-<kind>-<revision>``, lower-cased."""
    return f"{tier}-{kind}-{revision}".lower()


def set_params(parameters: Iterable[Parameter], template: Template) -> None:
    """Set the value of each given parameter that the template declares."""
    for to_set in parameters:
        target = get_parameter_by_name(template, to_set.name)
        if target is not None:
            target.value = to_set.value


class TierGenerator:
    """Builds the TierTemplates and NSTemplateTiers of every tier found in ``files``."""

    def __init__(
        self,
        ensure_object: EnsureObject,
        namespace: str,
        metadata: Mapping[str, str],
        files: Mapping[str, bytes],
    ) -> None:
        self.ensure_object = ensure_object
        self.namespace = namespace
        self.templates_by_tier: dict[str, TierData] = load_templates_by_tiers(metadata, files)
        self._init_tier_templates()
        self._init_ns_template_tiers()

    def _base_tier(self, data: TierData) -> TierData:
        assert data.based_on_tier is not None
        source = self.templates_by_tier.get(data.based_on_tier.from_)
        if source is None:
            raise TierGenerationError(
                f"the tier {data.name} is based on the unknown tier "
                f"'{data.based_on_tier.from_}'"
            )
        return source

    def _init_tier_templates(self) -> None:
        for tier in sorted(self.templates_by_tier):
            data = self.templates_by_tier[tier]
            source = data
            based_on_revision = ""
            parameters: list[Parameter] = []
            if data.based_on_tier is not None:
                parameters = data.based_on_tier.parameters
                assert data.raw_templates.based_on_tier is not None
                based_on_revision = data.raw_templates.based_on_tier.revision
                source = self._base_tier(data)
            data.tier_templates = self._new_tier_templates(
                based_on_revision, source, tier, parameters
            )

    def _new_tier_templates(
        self,
        based_on_revision: str,
        source: TierData,
        tier: str,
        parameters: list[Parameter],
    ) -> list[TierTemplate]:
        raw = source.raw_templates
        result = [
            self._new_tier_template(based_on_revision, tier, kind, raw.namespace_templates[kind], parameters)
            for kind in sorted(raw.namespace_templates)
        ]
        result.extend(
            self._new_tier_template(based_on_revision, tier, role, raw.spacerole_templates[role], parameters)
            for role in sorted(raw.spacerole_templates)
        )
        if raw.cluster_template is not None:
            result.append(
                self._new_tier_template(
                    based_on_revision,
                    tier,
                    CLUSTER_RESOURCES_TEMPLATE_TYPE,
                    raw.cluster_template,
                    parameters,
                )
            )
        return result

    def _new_tier_template(
        self,
        based_on_revision: str,
        tier: str,
        kind: str,
        tmpl: TemplateFile,
        parameters: list[Parameter],
    ) -> TierTemplate:
        if not based_on_revision:
            based_on_revision = tmpl.revision
        revision = f"{based_on_revision}-{tmpl.revision}"
        name = new_tier_template_name(tier, kind, revision)
        try:
            template = Template.parse(tmpl.content)
        except TemplateProcessingError as exc:
            raise TierGenerationError(
                f"unable to generate '{name}' TierTemplate manifest: {exc}"
            ) from exc
        set_params(parameters, template)
        return TierTemplate(
            name=name,
            namespace=self.namespace,
            revision=revision,
            tier_name=tier,
            type=kind,
            template=template,
        )

    def _init_ns_template_tiers(self) -> None:
        for tier in sorted(self.templates_by_tier):
            data = self.templates_by_tier[tier]
            ns_template_tier = data.raw_templates.ns_template_tier
            source_name = tier
            parameters: list[Parameter] = []
            if data.based_on_tier is not None:
                parameters = data.based_on_tier.parameters
                source = self._base_tier(data)
                ns_template_tier = source.raw_templates.ns_template_tier
                source_name = source.name
            data.objects = self._new_ns_template_tier(
                source_name, tier, ns_template_tier, data.tier_templates, parameters
            )

    def _new_ns_template_tier(
        self,
        source_name: str,
        tier: str,
        ns_template_tier: TemplateFile | None,
        tier_templates: list[TierTemplate],
        parameters: list[Parameter],
    ) -> list[dict[str, Any]]:
        if ns_template_tier is None:
            raise TierGenerationError(f"tier {tier} is missing a tier.yaml file")
        try:
            template = Template.parse(ns_template_tier.content)
        except TemplateProcessingError as exc:
            raise TierGenerationError(
                f"unable to generate '{tier}' NSTemplateTier manifest: {exc}"
            ) from exc

        params = {"NAMESPACE": self.namespace}
        for tier_template in tier_templates:
            if tier_template.type == CLUSTER_RESOURCES_TEMPLATE_TYPE:
                params["CLUSTER_TEMPL_REF"] = tier_template.name
            else:
                params[tier_template.type.upper() + "_TEMPL_REF"] = tier_template.name
        set_params(parameters, template)

        objects = Processor().process(template.copy(), params)
        for obj in objects:
            metadata = obj.setdefault("metadata", {})
            metadata["name"] = str(metadata.get("name", "") or "").replace(source_name, tier, 1)
        return objects

    def create_tier_templates(self) -> None:
        """Ensure every generated TierTemplate; they are never updated."""
        for tier in sorted(self.templates_by_tier):
            for tier_template in self.templates_by_tier[tier].tier_templates:
                log.info(
                    "creating TierTemplate namespace=%s name=%s",
                    tier_template.namespace,
                    tier_template.name,
                )
                try:
                    self.ensure_object(tier_template, False, tier)
                except Exception as exc:
                    raise TierGenerationError(
                        f"unable to create the '{tier_template.name}' TierTemplate "
                        f"in namespace '{tier_template.namespace}': {exc}"
                    ) from exc
                log.info(
                    "TierTemplate resource created namespace=%s name=%s",
                    tier_template.namespace,
                    tier_template.name,
                )

    def create_ns_template_tiers(self) -> None:
        """Create or update the NSTemplateTier of every tier."""
        for tier in sorted(self.templates_by_tier):
            objects = self.templates_by_tier[tier].objects
            if len(objects) != 1:
                raise TierGenerationError(
                    "there is an unexpected number of NSTemplateTier object to be applied "
                    f"for tier name '{tier}'; expected: 1; actual: {len(objects)}"
                )
            if not isinstance(objects[0], dict):
                raise TierGenerationError(
                    f"unable to cast NSTemplateTier '{tier}' to Unstructured object '{objects[0]!r}'"
                )
            ns_tier = copy.deepcopy(objects[0])
            labels = ns_tier.get("metadata", {}).get("labels")
            if isinstance(labels, dict):
                labels[PROVIDER_LABEL_KEY] = PROVIDER_LABEL_VALUE
            try:
                updated = self.ensure_object(ns_tier, True, tier)
            except Exception as exc:
                raise TierGenerationError(
                    f"unable to create or update the '{tier}' NSTemplateTier: {exc}"
                ) from exc

            details = [f"name={tier}"]
            spec = ns_tier.get("spec") or {}
            cluster = spec.get("clusterResources")
            if cluster:
                details.append(f"clusterResourcesTemplate={cluster.get('templateRef')}")
            for index, ns in enumerate(spec.get("namespaces") or []):
                details.append(f"namespaceTemplate-{index}={ns.get('templateRef')}")
            for role, ref in (spec.get("spaceRoles") or {}).items():
                details.append(f"spaceRoleTemplate-{role}={ref.get('templateRef')}")
            if updated:
                log.info("NSTemplateTier was either updated or created %s", " ".join(details))
            else:
                log.info(
                    "NSTemplateTier wasn't updated nor created: the spec was already set "
                    "as expected %s",
                    " ".join(details),
                )


def generate_tiers(
    ensure_object: EnsureObject,
    namespace: str,
    metadata: Mapping[str, str],
    files: Mapping[str, bytes],
) -> None:
    """Generate TierTemplates and NSTemplateTiers and ensure them via ``ensure_object``."""
    try:
        generator = TierGenerator(ensure_object, namespace, metadata, files)
    except (TemplateLoadError, TemplateProcessingError, TierGenerationError) as exc:
        raise TierGenerationError(f"unable to init NSTemplateTier generator: {exc}") from exc
    try:
        generator.create_tier_templates()
    except TierGenerationError as exc:
        raise TierGenerationError(f"unable to create TierTemplates: {exc}") from exc
    try:
        generator.create_ns_template_tiers()
    except TierGenerationError as exc:
        raise TierGenerationError(f"unable to create NSTemplateTiers: {exc}") from exc