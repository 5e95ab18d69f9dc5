"""Structural conformance of the generated TypeScript to the memconfig.

The implementation is parsed with tree-sitter's TypeScript grammar and the
exported object literals (``export const Root = { ... }``) are compared
member by member with the schema types.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterator

import tree_sitter_typescript as tstypescript
from tree_sitter import Language, Node, Parser

from drivergen.models.memconfig import Memconfig, MemconfigMember, MemconfigType
from drivergen.models.validation import Component, Severity, ValidationIssue

logger = logging.getLogger(__name__)

TS_LANGUAGE = Language(tstypescript.language_typescript())

_FUNCTION_NODES = frozenset(
    {"arrow_function", "function_expression", "function", "generator_function"}
)
_WRAPPER_NODES = frozenset(
    {"as_expression", "satisfies_expression", "parenthesized_expression", "non_null_expression"}
)
_DECLARATION_NODES = frozenset({"lexical_declaration", "variable_declaration"})
_REFERENCE_NODES = frozenset(
    {
        "identifier",
        "property_identifier",
        "shorthand_property_identifier",
        "shorthand_property_identifier_pattern",
        "string_fragment",
    }
)


# ---------------------------------------------------------------------------
# Parsed code model
# ---------------------------------------------------------------------------


@dataclass
class ObjectMember:
    """One member of an exported object literal."""

    name: str
    callable: bool
    is_async: bool
    body: Node | None = None


@dataclass
class ExportedObject:
    name: str
    members: dict[str, ObjectMember] = field(default_factory=dict)


@dataclass
class CodeModel:
    """What the validator needs to know about a TypeScript module."""

    exports: dict[str, ExportedObject] = field(default_factory=dict)
    spread_merged: set[str] = field(default_factory=set)
    syntax_error_line: int | None = None


def _text(node: Node | None) -> str:
    if node is None or node.text is None:
        return ""
    return node.text.decode("utf-8", errors="replace")


def _unwrap(node: Node | None) -> Node | None:
    while node is not None and node.type in _WRAPPER_NODES and node.named_children:
        node = node.named_children[0]
    return node


def _is_async(node: Node) -> bool:
    return any(child.type == "async" for child in node.children)


def _key_name(key: Node | None) -> str:
    if key is None:
        return ""
    if key.type == "string":
        return _text(key)[1:-1]
    return _text(key)


def _walk(node: Node) -> Iterator[Node]:
    """Yield *node* and its descendants in document order."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children))


def _first_error_line(root: Node) -> int | None:
    for node in _walk(root):
        if node.type == "ERROR" or node.is_missing:
            return node.start_point[0] + 1
    return None


class _ModuleReader:
    """Collects top-level objects, functions and exports of one module."""

    def __init__(self, root: Node) -> None:
        self.objects: dict[str, Node] = {}
        self.functions: dict[str, Node] = {}
        self.exported: dict[str, str] = {}  # exported name -> local name
        for child in root.named_children:
            self._read_statement(child)

    def _read_statement(self, node: Node) -> None:
        if node.type == "export_statement":
            declaration = node.child_by_field_name("declaration")
            if declaration is not None:
                for name in self._read_declaration(declaration):
                    self.exported[name] = name
                return
            for clause in node.named_children:
                if clause.type != "export_clause":
                    continue
                for spec in clause.named_children:
                    if spec.type != "export_specifier":
                        continue
                    local = _text(spec.child_by_field_name("name"))
                    alias = _text(spec.child_by_field_name("alias")) or local
                    self.exported[alias] = local
        else:
            self._read_declaration(node)

    def _read_declaration(self, node: Node) -> list[str]:
        names: list[str] = []
        if node.type == "function_declaration":
            name = _text(node.child_by_field_name("name"))
            self.functions[name] = node
            names.append(name)
        elif node.type in _DECLARATION_NODES:
            for declarator in node.named_children:
                if declarator.type != "variable_declarator":
                    continue
                name = _text(declarator.child_by_field_name("name"))
                value = _unwrap(declarator.child_by_field_name("value"))
                if value is None:
                    continue
                if value.type == "object":
                    self.objects[name] = value
                elif value.type in _FUNCTION_NODES:
                    self.functions[name] = value
                names.append(name)
        return names

    def member(self, node: Node) -> ObjectMember | None:
        if node.type == "pair":
            name = _key_name(node.child_by_field_name("key"))
            value = _unwrap(node.child_by_field_name("value"))
            if value is not None and value.type == "identifier":
                return self._reference(name, _text(value))
            if value is not None and value.type in _FUNCTION_NODES:
                return ObjectMember(
                    name, True, _is_async(value), value.child_by_field_name("body")
                )
            return ObjectMember(name, False, False)
        if node.type == "method_definition":
            name = _key_name(node.child_by_field_name("name"))
            return ObjectMember(name, True, _is_async(node), node.child_by_field_name("body"))
        if node.type == "shorthand_property_identifier":
            name = _text(node)
            return self._reference(name, name)
        return None

    def _reference(self, name: str, target: str) -> ObjectMember:
        function = self.functions.get(target)
        if function is None:
            return ObjectMember(name, False, False)
        return ObjectMember(name, True, _is_async(function), function.child_by_field_name("body"))


def parse_code(code: str) -> CodeModel:
    """Parse TypeScript *code* into a :class:`CodeModel`."""
    parser = Parser(TS_LANGUAGE)
    tree = parser.parse(code.encode("utf-8"))
    root = tree.root_node
    reader = _ModuleReader(root)

    model = CodeModel()
    if root.has_error:
        model.syntax_error_line = _first_error_line(root)

    for exported, local in reader.exported.items():
        obj = reader.objects.get(local)
        if obj is None:
            continue
        exported_object = ExportedObject(exported)
        for child in obj.named_children:
            member = reader.member(child)
            if member is not None and member.name:
                exported_object.members.setdefault(member.name, member)
        model.exports[exported] = exported_object

    for node in _walk(root):
        if node.type != "object":
            continue
        spreads = [c for c in node.named_children if c.type == "spread_element"]
        if len(spreads) < 2:
            continue
        for spread in spreads:
            target = _unwrap(spread.named_children[0]) if spread.named_children else None
            if target is not None and target.type == "identifier":
                model.spread_merged.add(_text(target))

    return model


def _references(node: Node | None, name: str) -> bool:
    if node is None:
        return False
    return any(n.type in _REFERENCE_NODES and _text(n) == name for n in _walk(node))


# ---------------------------------------------------------------------------
# Suggestions
# ---------------------------------------------------------------------------


def field_suggestion(member: MemconfigMember, schema_type: MemconfigType) -> str:
    if not schema_type.is_collection:
        return f"{member.name}: {{\n    // Field implementation\n  }},"
    if member.params:
        params = ", ".join(p.name for p in member.params)
        return f"async {member.name}({{ {params} }}) {{\n    // Implementation\n    return null;\n  }},"
    return f"{member.name}: () => ({{\n    // Implementation\n  }}),"


def action_suggestion(member: MemconfigMember) -> str:
    params = ", ".join(p.name for p in member.params or [])
    return f"async {member.name}({{ {params} }}) {{\n    // Implementation\n  }},"


# ---------------------------------------------------------------------------
# Checks
# ---------------------------------------------------------------------------


def _issue(message: str, path: list[str], suggestion: str) -> ValidationIssue:
    return ValidationIssue(
        component=Component.CODE,
        message=message,
        path=path,
        severity=Severity.ERROR,
        suggestion=suggestion,
    )


def _check_fields(
    schema_type: MemconfigType,
    exported: ExportedObject,
    model: CodeModel,
) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    if schema_type.is_collection:
        for member in schema_type.fields or []:
            implemented = exported.members.get(member.name)
            if implemented is not None and implemented.callable:
                continue
            issues.append(
                _issue(
                    f"Field {member.name} in {schema_type.name} must be implemented as a function",
                    [schema_type.name, member.name],
                    field_suggestion(member, schema_type),
                )
            )
        return issues

    if schema_type.name in model.spread_merged:
        return issues
    for member in schema_type.fields or []:
        if member.name in exported.members:
            continue
        issues.append(
            _issue(
                f"Missing field implementation: {member.name} in {schema_type.name}",
                [schema_type.name, member.name],
                field_suggestion(member, schema_type),
            )
        )
    return issues


def _check_actions(schema_type: MemconfigType, exported: ExportedObject) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    for action in schema_type.actions or []:
        path = [schema_type.name, action.name]
        implemented = exported.members.get(action.name)
        if implemented is None or not implemented.callable:
            message = f"Missing action implementation: {action.name} in {schema_type.name}"
        elif not implemented.is_async:
            message = f"Action {action.name} in {schema_type.name} must be async"
        else:
            unused = [
                p.name for p in action.required_params
                if not _references(implemented.body, p.name)
            ]
            if not unused:
                continue
            message = (
                f"Action {action.name} in {schema_type.name} does not use required "
                f"parameter(s): {', '.join(unused)}"
            )
        issues.append(_issue(message, path, action_suggestion(action)))
    return issues


def check_code_implementation(code: str, memconfig: Memconfig) -> list[ValidationIssue]:
    """Compare the exported objects of *code* with every schema type."""
    model = parse_code(code)
    issues: list[ValidationIssue] = []

    if model.syntax_error_line is not None:
        issues.append(
            _issue(
                f"Code contains syntax errors (first at line {model.syntax_error_line})",
                [],
                "Return complete, syntactically valid TypeScript",
            )
        )

    for schema_type in memconfig.types:
        exported = model.exports.get(schema_type.name)
        if exported is None:
            issues.append(
                _issue(
                    f"Missing implementation for schema type: {schema_type.name}",
                    [schema_type.name],
                    f"Add export const {schema_type.name} = {{ ... }}",
                )
            )
            continue
        issues.extend(_check_fields(schema_type, exported, model))
        issues.extend(_check_actions(schema_type, exported))

    logger.debug(
        "Code check: %d exports, %d issues", len(model.exports), len(issues)
    )
    return issues
