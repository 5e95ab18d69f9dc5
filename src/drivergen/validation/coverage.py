"""API coverage: does the memconfig model everything the analyzed API offers?

Four independent checks, each only run when the API summary declares the
feature:

* data models: a type per model, a field per required model field
* endpoints: a schema affordance per HTTP operation
* webhooks: an ``endpoint`` action on Root and an event per webhook event
* pagination: a page type exposing ``items`` and ``next``, and no
  half-built ``<Name>Page`` types
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable

from drivergen.models.api_summary import ApiEndpoint, ApiSummary
from drivergen.models.memconfig import (
    COLLECTION_SUFFIX,
    PAGE_SUFFIX,
    ROOT_TYPE,
    Memconfig,
    MemconfigType,
)
from drivergen.models.validation import Component, Severity, ValidationIssue

_VERSION_SEGMENT_RE = re.compile(r"^(v\d+(\.\d+)*|api)$", re.IGNORECASE)
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]")
_EVENT_SEPARATOR_RE = re.compile(r"[^a-z0-9]+(.)")
_SEPARATOR_RE = re.compile(r"[^A-Za-z0-9]")

# Deep Root -> collection -> resource -> collection chains are rare; the
# bound only protects against cyclic schemas.
_MAX_COLLECTION_DEPTH = 8


def check_api_coverage(memconfig: Memconfig, summary: ApiSummary) -> list[ValidationIssue]:
    """Run every API coverage check and return the issues in check order."""
    issues: list[ValidationIssue] = []
    issues.extend(check_data_models(memconfig, summary))
    issues.extend(check_endpoints(memconfig, summary))
    issues.extend(check_webhooks(memconfig, summary))
    issues.extend(check_pagination(memconfig, summary))
    return issues


# ---------------------------------------------------------------------------
# Naming helpers
# ---------------------------------------------------------------------------


def normalize_name(name: str) -> str:
    """Compare-key for names: lower case, alphanumerics only."""
    return _NON_ALNUM_RE.sub("", name.lower())


def singularize(word: str) -> str:
    if word.endswith("ies") and len(word) > 3:
        return word[:-3] + "y"
    if word.endswith("ss"):
        return word
    if word.endswith("s") and len(word) > 1:
        return word[:-1]
    return word


def to_camel_case(text: str) -> str:
    """``line-items`` -> ``lineItems``; ``item.created`` -> ``itemCreated``.

    Text without separators only has its first letter lowered, so
    ``uploadImage`` is kept as is.
    """
    if _SEPARATOR_RE.search(text) is None:
        return text[:1].lower() + text[1:]
    return _EVENT_SEPARATOR_RE.sub(lambda m: m.group(1).upper(), text.lower())


def to_pascal_case(text: str) -> str:
    camel = to_camel_case(text)
    return camel[:1].upper() + camel[1:]


def getter_name(field_name: str) -> str:
    return f"get{field_name[:1].upper()}{field_name[1:]}"


def _is_path_param(segment: str) -> bool:
    return (segment.startswith("{") and segment.endswith("}")) or segment.startswith(":")


# ---------------------------------------------------------------------------
# Data models
# ---------------------------------------------------------------------------


def check_data_models(memconfig: Memconfig, summary: ApiSummary) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    for model in summary.data_models:
        schema_type = memconfig.get_type(model.name)
        if schema_type is None:
            issues.append(
                ValidationIssue(
                    component=Component.SCHEMA,
                    message=f"Missing schema type for data model: {model.name}",
                    path=["schema", "types"],
                    severity=Severity.ERROR,
                    suggestion=f"Add a type definition for {model.name} with its fields",
                )
            )
            continue

        seen: set[str] = set()
        for field in model.required_fields:
            if field.name in seen:
                continue
            seen.add(field.name)
            if schema_type.has_field(field.name) or schema_type.has_field(getter_name(field.name)):
                continue
            issues.append(
                ValidationIssue(
                    component=Component.SCHEMA,
                    message=f'Missing field "{field.name}" in type "{schema_type.name}"',
                    path=["schema", "types", schema_type.name, "fields"],
                    severity=Severity.ERROR,
                    suggestion=(
                        f'Add field "{field.name}" of type "{field.type}" '
                        f"to {schema_type.name}"
                    ),
                )
            )
    return issues


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class _Affordance:
    """The schema member an endpoint is expected to map to."""

    kind: str  # "field" or "action"
    names: tuple[str, ...]

    def describe(self) -> str:
        return " or ".join(f"'{n}'" for n in self.names) + f" {self.kind}"


class CollectionIndex:
    """Maps resource paths (``("repo", "issue")``) to collection types.

    Paths are discovered by walking from Root through collection-typed fields:
    ``Root.repos -> RepoCollection``, then the fields of the collection's
    resource type (the type of its ``one`` field), and so on. Every
    ``<Name>Collection`` type is also reachable by its own singular name.
    """

    def __init__(self, memconfig: Memconfig) -> None:
        self._memconfig = memconfig
        self._paths: dict[tuple[str, ...], str] = {}
        self._walk(memconfig.root, (), 0)
        for schema_type in memconfig.types:
            if schema_type.name.endswith(COLLECTION_SUFFIX) and schema_type.name != COLLECTION_SUFFIX:
                base = schema_type.name[: -len(COLLECTION_SUFFIX)]
                self._paths.setdefault((singularize(normalize_name(base)),), schema_type.name)

    def _walk(self, owner: MemconfigType, prefix: tuple[str, ...], depth: int) -> None:
        if depth >= _MAX_COLLECTION_DEPTH:
            return
        for field in owner.fields or []:
            target = self._memconfig.get_type(field.type)
            if target is None or not target.name.endswith(COLLECTION_SUFFIX):
                continue
            key = prefix + (singularize(normalize_name(field.name)),)
            if key in self._paths:
                continue
            self._paths[key] = target.name
            resource = self.resource_type(target)
            if resource is not None:
                self._walk(resource, key, depth + 1)

    def resource_type(self, collection: MemconfigType) -> MemconfigType | None:
        """The resource type a collection yields (its ``one`` field's type)."""
        one = collection.get_field("one")
        if one is not None:
            found = self._memconfig.get_type(one.type)
            if found is not None:
                return found
        return self._memconfig.get_type(collection.name[: -len(COLLECTION_SUFFIX)])

    def find(self, resource_path: tuple[str, ...]) -> str | None:
        """Return the collection for the deepest matching suffix of *resource_path*."""
        for start in range(len(resource_path)):
            found = self._paths.get(resource_path[start:])
            if found is not None:
                return found
        return None


def _parse_path(path: str) -> tuple[list[str], bool]:
    """Return the resource segments of *path* and whether it ends in an id."""
    segments = [s for s in path.split("?")[0].split("/") if s]
    while segments and _VERSION_SEGMENT_RE.match(segments[0]):
        segments = segments[1:]
    has_id = bool(segments) and _is_path_param(segments[-1])
    resources = [s for s in segments if not _is_path_param(s)]
    return resources, has_id


def _post(has_id: bool, action: str | None) -> _Affordance:
    if action:
        return _Affordance("action", (action,))
    if has_id:
        return _Affordance("action", ("update", "updateWithFormData"))
    return _Affordance("action", ("create",))


def _get(has_id: bool, action: str | None) -> _Affordance | None:
    if action:
        return _Affordance("field", (action,))
    if has_id:
        return _Affordance("field", ("one",))
    # Listing a collection is served by the collection itself.
    return None


_VERB_AFFORDANCES: dict[str, Callable[[bool, str | None], _Affordance | None]] = {
    "GET": _get,
    "POST": _post,
    "PUT": lambda has_id, action: _Affordance("action", (action,) if action else ("update",)),
    "PATCH": lambda has_id, action: _Affordance("action", (action,) if action else ("update",)),
    "DELETE": lambda has_id, action: _Affordance("action", (action,) if action else ("delete",)),
}


def _has_affordance(schema_type: MemconfigType | None, affordance: _Affordance) -> bool:
    if schema_type is None:
        return False
    wanted = {normalize_name(n) for n in affordance.names}
    members = list(schema_type.actions or [])
    # A field-shaped affordance is also satisfied by an action of that name.
    if affordance.kind == "field":
        members += schema_type.fields or []
    return any(normalize_name(m.name) in wanted for m in members)


def _member_owners(memconfig: Memconfig, segment: str) -> list[MemconfigType]:
    """Types declaring a field or action named after *segment*."""
    key = normalize_name(segment)
    return [
        schema_type
        for schema_type in memconfig.types
        if any(
            normalize_name(member.name) == key
            for member in (schema_type.fields or []) + (schema_type.actions or [])
        )
    ]


def _plain_member_covers(
    memconfig: Memconfig, segment: str, affordance: _Affordance | None
) -> bool:
    owners = _member_owners(memconfig, segment)
    # Reads are served by the member itself; writes need the action on its owner.
    if affordance is None or affordance.kind == "field":
        return bool(owners)
    return any(_has_affordance(owner, affordance) for owner in owners)


def _check_endpoint(
    memconfig: Memconfig,
    index: CollectionIndex,
    endpoint: ApiEndpoint,
) -> ValidationIssue | None:
    resources, has_id = _parse_path(endpoint.path)
    if not resources:
        return None
    method = endpoint.method.upper()
    resource_path = tuple(singularize(normalize_name(s)) for s in resources)

    action: str | None = None
    collection_name = index.find(resource_path)
    if collection_name is None and len(resources) > 1 and not has_id:
        # /widgets/{id}/archive: the trailing segment names an action on the
        # resource addressed by the preceding segments.
        action = to_camel_case(resources[-1])
        collection_name = index.find(resource_path[:-1])

    if method in _VERB_AFFORDANCES:
        affordance = _VERB_AFFORDANCES[method](has_id, action)
    else:
        affordance = _Affordance("action", (action or to_camel_case(resources[-1]),))

    endpoint_label = f"{method} {endpoint.path}"

    if collection_name is None:
        # Plain members such as Root.status or Store.inventory.
        if _plain_member_covers(memconfig, resources[-1], affordance):
            return None
        suggested = to_pascal_case(singularize(resources[-1])) + COLLECTION_SUFFIX
        wanted = f" with a {affordance.describe()}" if affordance else ""
        return ValidationIssue(
            component=Component.SCHEMA,
            message=f"Endpoint not covered: {endpoint_label}",
            path=["schema", "types"],
            severity=Severity.ERROR,
            suggestion=(
                f"Add a {suggested} type{wanted} and reference it from "
                f"{ROOT_TYPE} to handle {endpoint_label}"
            ),
        )

    if affordance is None:
        return None

    collection = memconfig.get_type(collection_name)
    resource = index.resource_type(collection) if collection is not None else None
    if _has_affordance(collection, affordance) or _has_affordance(resource, affordance):
        return None

    return ValidationIssue(
        component=Component.SCHEMA,
        message=f"Endpoint not covered: {endpoint_label}",
        path=["schema", "types", collection_name],
        severity=Severity.ERROR,
        suggestion=f"Add a {affordance.describe()} to {collection_name} to handle {endpoint_label}",
    )


def check_endpoints(memconfig: Memconfig, summary: ApiSummary) -> list[ValidationIssue]:
    index = CollectionIndex(memconfig)
    issues: list[ValidationIssue] = []
    seen: set[tuple[str, str]] = set()
    for endpoint in summary.endpoints:
        key = (endpoint.method.upper(), endpoint.path)
        if key in seen:
            continue
        seen.add(key)
        issue = _check_endpoint(memconfig, index, endpoint)
        if issue is not None:
            issues.append(issue)
    return issues


# ---------------------------------------------------------------------------
# Webhooks
# ---------------------------------------------------------------------------


def check_webhooks(memconfig: Memconfig, summary: ApiSummary) -> list[ValidationIssue]:
    if not summary.webhooks.supported:
        return []

    issues: list[ValidationIssue] = []
    if not memconfig.root.has_action("endpoint"):
        issues.append(
            ValidationIssue(
                component=Component.SCHEMA,
                message="Missing webhook handler action 'endpoint' in Root type",
                path=["schema", "types", ROOT_TYPE, "actions"],
                severity=Severity.ERROR,
                suggestion="Add 'endpoint' action to Root type to handle incoming webhooks",
            )
        )

    seen: set[str] = set()
    for event in summary.webhooks.events:
        event_name = to_camel_case(event)
        if event_name in seen:
            continue
        seen.add(event_name)
        if any(t.has_event(event_name) for t in memconfig.types):
            continue
        issues.append(
            ValidationIssue(
                component=Component.SCHEMA,
                message=f"Missing event for webhook: {event}",
                path=["schema", "types"],
                severity=Severity.WARNING,
                suggestion=f'Add event "{event_name}" to handle webhook {event}',
            )
        )
    return issues


# ---------------------------------------------------------------------------
# Pagination
# ---------------------------------------------------------------------------


def check_pagination(memconfig: Memconfig, summary: ApiSummary) -> list[ValidationIssue]:
    """Check that paginated responses have a page type.

    Any type exposing both an ``items`` and a ``next`` field is a page type,
    whatever its name. ``<Name>Page`` types lacking either field are
    reported as incomplete. ``<Name>Collection`` types are not checked: they
    expose ``one`` and the write actions, and list through a page type.
    """
    if not summary.pagination.is_paginated:
        return []

    issues: list[ValidationIssue] = []
    complete = False
    for schema_type in memconfig.types:
        missing = [f for f in ("items", "next") if not schema_type.has_field(f)]
        if not missing:
            complete = True
        elif schema_type.name.endswith(PAGE_SUFFIX) and schema_type.name != PAGE_SUFFIX:
            issues.append(
                ValidationIssue(
                    component=Component.SCHEMA,
                    message=f'Incomplete pagination implementation in type "{schema_type.name}"',
                    path=["schema", "types", schema_type.name],
                    severity=Severity.ERROR,
                    suggestion=(
                        f"Add {' and '.join(repr(m) for m in missing)} field(s) to {schema_type.name}"
                    ),
                )
            )

    if not complete:
        issues.insert(
            0,
            ValidationIssue(
                component=Component.SCHEMA,
                message="Missing page type for paginated responses",
                path=["schema", "types"],
                severity=Severity.ERROR,
                suggestion=(
                    "Add a page type with an 'items' field (List of the resource) and a "
                    "'next' field (Ref to the page type) for paginated resources"
                ),
            ),
        )
    return issues
