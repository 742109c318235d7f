"""Three-way diffing of desired and stored objects.

The "original" side of the diff is the object as the operator last applied
it, kept as canonical JSON in the `LAST_APPLIED_ANNOTATION` annotation. Fields
the API server owns (status, bookkeeping metadata, defaulted values inside
lists) never show up as changes. A list changes when the stored value no
longer contains every element and key the desired value declares, or when
the declared value moved away from the last applied one.
"""
import copy
import json
from typing import Any, Dict, List, Optional
from sentinelop.utils.helpers import canonicalize_dict, prune, serialize

LAST_APPLIED_ANNOTATION = "sentinelop.io/last-applied"

_DELETE = None

_IGNORED_TOP_LEVEL = ("status", "kind", "apiVersion")
_IGNORED_METADATA = (
    "resourceVersion",
    "creationTimestamp",
    "managedFields",
    "uid",
    "generation",
    "selfLink",
)


class PatchPlan:
    """JSON merge patch computed by `PatchPlanner.plan`. Empty means no-op."""

    def __init__(self, patch: Dict[str, Any]):
        self.patch = patch

    @property
    def is_empty(self) -> bool:
        return not self.patch

    @property
    def changed_fields(self) -> List[str]:
        """Dotted paths of the changed leaves, e.g. `spec.replicas`."""
        return sorted(_leaf_paths(self.patch))

    def as_json(self) -> str:
        return json.dumps(self.patch, sort_keys=True, default=str)

    def __repr__(self) -> str:
        return f"PatchPlan({self.as_json()})"


def _leaf_paths(patch: Dict[str, Any], prefix: str = "") -> List[str]:
    paths = []
    for key, value in patch.items():
        path = f"{prefix}{key}"
        if isinstance(value, dict) and value:
            paths.extend(_leaf_paths(value, f"{path}."))
        else:
            paths.append(path)
    return paths


class PatchPlanner:
    """Three-way diff between last applied, desired and stored objects."""

    def normalize(self, obj: Any) -> Dict[str, Any]:
        """Turn a model or dict into a pruned API dict with ignored fields removed."""
        data = prune(serialize(obj)) or {}
        data = copy.deepcopy(data)
        for key in _IGNORED_TOP_LEVEL:
            data.pop(key, None)
        metadata = data.get("metadata")
        if isinstance(metadata, dict):
            for key in _IGNORED_METADATA:
                metadata.pop(key, None)
            annotations = metadata.get("annotations")
            if isinstance(annotations, dict):
                annotations.pop(LAST_APPLIED_ANNOTATION, None)
                if not annotations:
                    metadata.pop("annotations")
            if not metadata:
                data.pop("metadata")
        for template in (data.get("spec") or {}).get("volumeClaimTemplates") or []:
            if not isinstance(template, dict):
                continue
            for key in _IGNORED_TOP_LEVEL:
                template.pop(key, None)
            template_meta = template.get("metadata")
            if isinstance(template_meta, dict):
                template_meta.pop("creationTimestamp", None)
        return data

    def last_applied(self, obj: Any) -> Optional[Dict[str, Any]]:
        """Read the last applied configuration recorded on `obj`, if any."""
        data = serialize(obj) or {}
        annotations = (data.get("metadata") or {}).get("annotations") or {}
        raw = annotations.get(LAST_APPLIED_ANNOTATION)
        if not raw:
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError):
            return None

    def last_applied_value(self, obj: Any) -> str:
        """Canonical JSON of `obj` suitable for `LAST_APPLIED_ANNOTATION`."""
        return canonicalize_dict(self.normalize(obj))

    def set_last_applied(self, obj: Any) -> None:
        """Record `obj` as the last applied configuration on its own metadata."""
        value = self.last_applied_value(obj)
        if obj.metadata.annotations is None:
            obj.metadata.annotations = {}
        obj.metadata.annotations[LAST_APPLIED_ANNOTATION] = value

    def plan(self, current: Any, desired: Any) -> PatchPlan:
        """Compute the merge patch that takes `current` to `desired`."""
        original = self.last_applied(current)
        modified = self.normalize(desired)
        observed = self.normalize(current)
        if original is not None:
            original = self.normalize(original)
        return PatchPlan(self._diff(original, modified, observed))

    def _diff(
        self,
        original: Optional[Dict[str, Any]],
        modified: Dict[str, Any],
        current: Dict[str, Any],
    ) -> Dict[str, Any]:
        patch: Dict[str, Any] = {}
        for key, value in modified.items():
            if key not in current:
                patch[key] = value
                continue
            observed = current[key]
            previous = original.get(key) if isinstance(original, dict) else None
            if isinstance(value, dict) and isinstance(observed, dict):
                nested = self._diff(
                    previous if isinstance(previous, dict) else None, value, observed
                )
                if nested:
                    patch[key] = nested
            elif isinstance(value, list):
                drifted = not _contains(value, observed)
                edited = previous is not None and value != previous and value != observed
                if drifted or edited:
                    patch[key] = value
            elif value != observed:
                patch[key] = value
        if isinstance(original, dict):
            for key in original:
                if key not in modified and key in current:
                    patch[key] = _DELETE
        return patch


def _contains(desired: Any, observed: Any) -> bool:
    """True when `observed` holds everything `desired` declares.

    Lists must match in length and element by element; keys only present on
    the observed side (server defaults) are ignored.
    """
    if isinstance(desired, dict):
        if not isinstance(observed, dict):
            return False
        return all(
            key in observed and _contains(value, observed[key])
            for key, value in desired.items()
        )
    if isinstance(desired, list):
        if not isinstance(observed, list) or len(desired) != len(observed):
            return False
        return all(_contains(d, o) for d, o in zip(desired, observed))
    return desired == observed
