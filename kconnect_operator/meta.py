"""Core API machinery: group versions, status conditions, object metadata and an in-memory API client."""

from __future__ import annotations

import copy
import enum
import itertools
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Optional


@dataclass(frozen=True)
class GroupVersion:
    """An API group together with its version."""

    group: str
    version: str

    def __str__(self) -> str:
        if not self.group:
            return self.version
        return f"{self.group}/{self.version}"


GROUP_VERSION = GroupVersion(group="kafka-connect.b1zzu.net", version="v1alpha1")


class ConditionStatus(str, enum.Enum):
    """The status of a condition."""

    TRUE = "True"
    FALSE = "False"
    UNKNOWN = "Unknown"


def _now() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


@dataclass
class Condition:
    """One aspect of the observed state of a resource."""

    type: str
    status: ConditionStatus
    reason: str = ""
    message: str = ""
    observed_generation: int = 0
    last_transition_time: Optional[datetime] = None

    def __post_init__(self) -> None:
        self.status = ConditionStatus(self.status)


@dataclass
class ObjectMeta:
    """Standard object metadata."""

    name: str = ""
    namespace: str = ""
    uid: str = ""
    generation: int = 0
    resource_version: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)
    finalizers: list[str] = field(default_factory=list)
    deletion_timestamp: Optional[datetime] = None


class ApiError(Exception):
    """An error reported by the API."""

    def __init__(self, message: str, code: int = 500) -> None:
        super().__init__(message)
        self.code = code


class NotFoundError(ApiError):
    """The requested object does not exist."""

    def __init__(self, kind: str, namespace: str, name: str) -> None:
        super().__init__(f'{kind} "{namespace}/{name}" not found', 404)
        self.kind = kind
        self.namespace = namespace
        self.name = name


@dataclass(frozen=True)
class Request:
    """Identifies the object a reconciliation is about."""

    namespace: str
    name: str


@dataclass(frozen=True)
class Result:
    """Outcome of a reconciliation; requeue_after asks for another pass later."""

    requeue_after: Optional[timedelta] = None


def find_status_condition(conditions: list[Condition], condition_type: str) -> Optional[Condition]:
    """Return the condition of the given type, or None."""
    return next((c for c in conditions if c.type == condition_type), None)


def set_status_condition(conditions: list[Condition], condition: Condition) -> bool:
    """Add or update a condition in place; return whether anything changed.

    The transition time moves only when the status changes.
    """
    existing = find_status_condition(conditions, condition.type)
    if existing is None:
        added = copy.copy(condition)
        if added.last_transition_time is None:
            added.last_transition_time = _now()
        conditions.append(added)
        return True

    changed = False
    if existing.status != condition.status:
        existing.status = condition.status
        existing.last_transition_time = condition.last_transition_time or _now()
        changed = True
    for attr in ("reason", "message", "observed_generation"):
        value = getattr(condition, attr)
        if getattr(existing, attr) != value:
            setattr(existing, attr, value)
            changed = True
    return changed


# Accessors that work on both plain dict manifests and typed objects.

def _kind_of(obj: Any) -> str:
    if isinstance(obj, dict):
        return obj.get("kind", "")
    return obj.kind


def _key_of(obj: Any) -> tuple[str, str, str]:
    if isinstance(obj, dict):
        metadata = obj.get("metadata", {})
        return _kind_of(obj), metadata.get("namespace", ""), metadata.get("name", "")
    return _kind_of(obj), obj.metadata.namespace, obj.metadata.name


def _resource_version(obj: Any) -> str:
    if isinstance(obj, dict):
        return obj.get("metadata", {}).get("resourceVersion", "")
    return obj.metadata.resource_version


def _set_resource_version(obj: Any, version: str) -> None:
    if isinstance(obj, dict):
        obj.setdefault("metadata", {})["resourceVersion"] = version
    else:
        obj.metadata.resource_version = version


def _get_status(obj: Any) -> Any:
    if isinstance(obj, dict):
        return obj.get("status")
    return getattr(obj, "status", None)


def _set_status(obj: Any, status: Any) -> None:
    if isinstance(obj, dict):
        if status is None:
            obj.pop("status", None)
        else:
            obj["status"] = status
    elif hasattr(obj, "status"):
        obj.status = status


def _is_released(obj: Any) -> bool:
    """True when the object is being deleted and no finalizer holds it."""
    if isinstance(obj, dict):
        metadata = obj.get("metadata", {})
        return bool(metadata.get("deletionTimestamp")) and not metadata.get("finalizers")
    return obj.metadata.deletion_timestamp is not None and not obj.metadata.finalizers


def _merge(base: dict, patch: dict) -> dict:
    merged = copy.deepcopy(base)
    for key, value in patch.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


class KubeClient:
    """An in-memory API store offering get, update, status update and server-side apply.

    Objects are either dict manifests (with ``kind`` and ``metadata``) or typed
    objects exposing ``kind``, ``metadata`` and ``status`` attributes.
    """

    def __init__(self, objects: Iterable[Any] = ()) -> None:
        self._objects: dict[tuple[str, str, str], Any] = {}
        self._managers: dict[tuple[str, str, str], str] = {}
        self._versions = itertools.count(1)
        for obj in objects:
            stored = copy.deepcopy(obj)
            _set_resource_version(stored, self._next_version())
            self._objects[_key_of(stored)] = stored

    def _next_version(self) -> str:
        return str(next(self._versions))

    def _stored(self, obj: Any) -> tuple[tuple[str, str, str], Any]:
        key = _key_of(obj)
        stored = self._objects.get(key)
        if stored is None:
            raise NotFoundError(*key)
        submitted = _resource_version(obj)
        if submitted and submitted != _resource_version(stored):
            raise ApiError(
                "the object has been modified; please apply your changes "
                "to the latest version and try again",
                409,
            )
        return key, stored

    def get(self, kind: str, namespace: str, name: str) -> Any:
        """Return a copy of the stored object."""
        stored = self._objects.get((kind, namespace, name))
        if stored is None:
            raise NotFoundError(kind, namespace, name)
        return copy.deepcopy(stored)

    def update(self, obj: Any) -> Any:
        """Replace everything but the status of an existing object.

        An object that is being deleted and holds no finalizers is removed.
        """
        key, stored = self._stored(obj)
        replacement = copy.deepcopy(obj)
        _set_status(replacement, copy.deepcopy(_get_status(stored)))
        version = self._next_version()
        _set_resource_version(replacement, version)
        _set_resource_version(obj, version)
        if _is_released(replacement):
            del self._objects[key]
            self._managers.pop(key, None)
        else:
            self._objects[key] = replacement
        return copy.deepcopy(replacement)

    def update_status(self, obj: Any) -> Any:
        """Replace only the status of an existing object."""
        _, stored = self._stored(obj)
        _set_status(stored, copy.deepcopy(_get_status(obj)))
        version = self._next_version()
        _set_resource_version(stored, version)
        _set_resource_version(obj, version)
        return copy.deepcopy(stored)

    def apply(self, obj: dict, field_manager: str, force: bool = False) -> dict:
        """Create the object or merge the given fields into it.

        A different field manager owning the object is a conflict unless force is set.
        """
        if not isinstance(obj, dict):
            raise TypeError("apply expects a dict manifest")
        key = _key_of(obj)
        patch = copy.deepcopy(obj)
        patch.get("metadata", {}).pop("resourceVersion", None)
        stored = self._objects.get(key)
        if stored is None:
            result = patch
        else:
            if not isinstance(stored, dict):
                raise TypeError(f"{key[0]} objects cannot be applied")
            owner = self._managers.get(key)
            if owner is not None and owner != field_manager and not force:
                raise ApiError(f"apply conflict with field manager {owner!r}", 409)
            result = _merge(stored, patch)
        _set_resource_version(result, self._next_version())
        self._objects[key] = result
        self._managers[key] = field_manager
        return copy.deepcopy(result)