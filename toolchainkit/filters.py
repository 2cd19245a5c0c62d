"""Predicates for selecting Kubernetes objects, and a helper that applies them."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from typing import Any

KubeObject = Mapping[str, Any]
FilterFunc = Callable[[KubeObject], bool]


def _kind(obj: KubeObject) -> str:
    return str(obj.get("kind", "") or "")


def retain_namespaces(obj: KubeObject) -> bool:
    """Keep only objects of kind ``Namespace``."""
    return _kind(obj) == "Namespace"


def retain_all_but_namespaces(obj: KubeObject) -> bool:
    """Keep every object that is not of kind ``Namespace``."""
    return _kind(obj) != "Namespace"


def filter_objects(objs: Iterable[KubeObject], *filters: FilterFunc) -> list[KubeObject]:
    """Return the objects, in order, that every one of ``filters`` retains."""
    return [obj for obj in objs if all(keep(obj) for keep in filters)]