"""Component source parser for JS/JSX/TS/TSX files.

Walks the tree-sitter syntax tree of one file and emits:

  - one ``component`` block per function, arrow function or class whose body
    returns at least one JSX tree (every returned tree becomes a child subtree),
  - ``element`` blocks for each JSX tag and ``#text`` leaves for literal text,
  - ``object`` blocks for imported names that are never rendered as a tag.

The file's import records are returned alongside the blocks.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from blockgraph.models import (
    ComponentBlock,
    ElementBlock,
    EngineConfig,
    FileKind,
    ImportKind,
    ImportRecord,
    ObjectBlock,
    PropType,
    PropValue,
)
from blockgraph.parsers.base import BaseParser, ParsedFile
from blockgraph.parsers.language_map import grammar_for

try:
    from tree_sitter_language_pack import get_parser
except ImportError as _err:
    raise ImportError(
        "tree-sitter-language-pack is required. Install with: "
        "pip install tree-sitter-language-pack"
    ) from _err

logger = logging.getLogger(__name__)

_JSX_TYPES = {"jsx_element", "jsx_self_closing_element", "jsx_fragment"}
_JSX_TAG_TYPES = {"jsx_opening_element", "jsx_self_closing_element"}
_MEMBER_TAG_TYPES = {"member_expression", "nested_identifier"}
_TEXT_TYPES = {"jsx_text", "html_character_reference"}

# Returns inside these belong to another function
_FUNCTION_TYPES = {
    "function_declaration", "generator_function_declaration",
    "function_expression", "function", "generator_function",
    "arrow_function", "method_definition", "class_declaration", "class",
}
_FUNCTION_VALUE_TYPES = {
    "arrow_function", "function_expression", "function", "generator_function",
}

_NUMBER_RE = re.compile(r"-?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")

_PARSERS: dict[str, object] = {}


def _get_parser(grammar_name: str):
    if grammar_name not in _PARSERS:
        _PARSERS[grammar_name] = get_parser(grammar_name)
    return _PARSERS[grammar_name]


def _text(node) -> str:
    return node.text.decode("utf-8", errors="replace") if node is not None and node.text else ""


def _string_value(node) -> str:
    text = _text(node)
    if len(text) >= 2 and text[0] in "\"'`" and text[-1] == text[0]:
        return text[1:-1]
    return text


def _named(node) -> list:
    return [c for c in node.named_children if c.type != "comment"]


class _ByteLines:
    """Converts tree-sitter (row, byte column) points to 1-based character positions."""

    def __init__(self, data: bytes):
        self.data = data
        self.starts = [0] + [m.end() for m in re.finditer(b"\n", data)]

    def position(self, point) -> tuple[int, int]:
        row, col = point[0], point[1]
        start = self.starts[row]
        return row + 1, len(self.data[start:start + col].decode("utf-8", errors="replace")) + 1


@dataclass
class _Candidate:
    name: str
    node: object  # statement whose range the component covers
    fn: object  # function, arrow function or render method
    component_type: str
    is_exported: bool = False
    is_default: bool = False
    declarator: object | None = None


class ComponentParser(BaseParser):
    file_kind = FileKind.COMPONENT

    def __init__(
        self,
        file_path: Path,
        rel_path: str,
        config: EngineConfig | None = None,
        grammar_name: str | None = None,
    ):
        super().__init__(file_path, rel_path, config)
        self.grammar_name = grammar_name or grammar_for(file_path)
        self._lines: _ByteLines | None = None
        self._object_names: set[str] = set()
        self._type_decls: dict[str, object] = {}

    def parse(self, source: str) -> ParsedFile:
        source_bytes = source.encode("utf-8")
        tree = _get_parser(self.grammar_name).parse(source_bytes)
        root = tree.root_node

        if root.has_error and not self.config.tolerate_syntax_errors:
            logger.warning("Skipping %s: syntax errors", self.rel_path)
            return self._skipped("syntax error")

        result = self._result()
        self._lines = _ByteLines(source_bytes)

        imports = self._collect_imports(root)
        result.imports = [record for record, _ in imports]

        # Imported names never used as a tag root are object bindings
        tag_roots = self._collect_tag_roots(root)
        self._object_names = set()
        for record, stmt in imports:
            name = record.local_name
            if not name or name in tag_roots or name in self._object_names:
                continue
            self._object_names.add(name)
            self._add(ObjectBlock(
                id=self.ids.next("object", name),
                name=name,
                file_path=self.file_path,
                rel_path=self.rel_path,
                source_code=_text(stmt),
                metadata={
                    "import_source": record.source,
                    "import_kind": record.kind.value,
                    "imported_name": record.imported_name,
                },
                **self._range(stmt),
            ), stmt, result)

        self._type_decls = self._collect_type_declarations(root)

        for candidate in self._find_candidates(root):
            trees = self._rendered_trees(candidate.fn)
            if not trees:
                continue
            self._emit_component(candidate, trees, result)

        logger.debug("%s: %d blocks, %d imports", self.rel_path, len(result.blocks), len(result.imports))
        return result

    # ── Imports ──────────────────────────────────────────────

    def _collect_imports(self, root) -> list[tuple[ImportRecord, object]]:
        records: list[tuple[ImportRecord, object]] = []
        for stmt in root.named_children:
            if stmt.type != "import_statement":
                continue
            if any(c.type == "type" for c in stmt.children):
                continue  # import type { X } has no runtime binding
            specifier = _string_value(stmt.child_by_field_name("source"))
            clause = next((c for c in stmt.named_children if c.type == "import_clause"), None)
            if clause is None:
                records.append((ImportRecord(source=specifier, kind=ImportKind.NONE), stmt))
                continue

            for part in clause.named_children:
                if part.type == "identifier":
                    name = _text(part)
                    records.append((ImportRecord(specifier, ImportKind.DEFAULT, name, "default"), stmt))
                elif part.type == "namespace_import":
                    ident = next((c for c in part.named_children if c.type == "identifier"), None)
                    if ident is not None:
                        name = _text(ident)
                        records.append((ImportRecord(specifier, ImportKind.NAMESPACE, name, "*"), stmt))
                elif part.type == "named_imports":
                    for spec in part.named_children:
                        if spec.type != "import_specifier":
                            continue
                        if any(c.type == "type" for c in spec.children):
                            continue
                        imported = _text(spec.child_by_field_name("name"))
                        alias = spec.child_by_field_name("alias")
                        local = _text(alias) if alias is not None else imported
                        records.append((ImportRecord(specifier, ImportKind.NAMED, local, imported), stmt))
        return records

    def _collect_tag_roots(self, root) -> set[str]:
        """Root identifiers of every JSX tag name in the file."""
        names: set[str] = set()
        stack = [root]
        while stack:
            node = stack.pop()
            if node.type in _JSX_TAG_TYPES:
                name_node = node.child_by_field_name("name")
                if name_node is not None and name_node.type != "jsx_namespace_name":
                    names.add(_text(name_node).split(".")[0])
            stack.extend(node.children)
        return names

    def _collect_type_declarations(self, root) -> dict[str, object]:
        decls: dict[str, object] = {}
        for stmt in root.named_children:
            node = stmt
            if stmt.type == "export_statement":
                node = stmt.child_by_field_name("declaration")
                if node is None:
                    continue
            if node.type == "type_alias_declaration":
                decls[_text(node.child_by_field_name("name"))] = node.child_by_field_name("value")
            elif node.type == "interface_declaration":
                decls[_text(node.child_by_field_name("name"))] = node.child_by_field_name("body")
        return decls

    # ── Component discovery ──────────────────────────────────

    def _find_candidates(self, root) -> list[_Candidate]:
        candidates: list[_Candidate] = []
        exported_names: set[str] = set()
        default_names: set[str] = set()

        for stmt in root.named_children:
            if stmt.type != "export_statement":
                candidates.extend(self._from_declaration(stmt, stmt))
                continue

            is_default = any(c.type == "default" for c in stmt.children)
            decl = stmt.child_by_field_name("declaration")
            value = stmt.child_by_field_name("value")
            if decl is not None:
                for cand in self._from_declaration(decl, stmt):
                    cand.is_exported = True
                    cand.is_default = is_default
                    candidates.append(cand)
            elif value is not None and is_default:
                candidates.extend(self._from_default_value(value, stmt, default_names))
            elif stmt.child_by_field_name("source") is None:
                clause = next((c for c in stmt.named_children if c.type == "export_clause"), None)
                if clause is None:
                    continue
                for spec in clause.named_children:
                    if spec.type != "export_specifier":
                        continue
                    name = _text(spec.child_by_field_name("name"))
                    exported_names.add(name)
                    alias = spec.child_by_field_name("alias")
                    if alias is not None and _text(alias) == "default":
                        default_names.add(name)

        for cand in candidates:
            if cand.name in exported_names or cand.name in default_names:
                cand.is_exported = True
            if cand.name in default_names:
                cand.is_default = True
        return candidates

    def _from_declaration(self, decl, stmt) -> list[_Candidate]:
        if decl.type in ("function_declaration", "generator_function_declaration"):
            name = _text(decl.child_by_field_name("name"))
            return [_Candidate(name, stmt, decl, "function")]

        if decl.type == "class_declaration":
            render = self._render_method(decl)
            if render is None:
                return []
            return [_Candidate(_text(decl.child_by_field_name("name")), stmt, render, "class")]

        if decl.type in ("lexical_declaration", "variable_declaration"):
            found: list[_Candidate] = []
            for declarator in decl.named_children:
                if declarator.type != "variable_declarator":
                    continue
                value = declarator.child_by_field_name("value")
                fn = self._unwrap_function(value)
                if fn is None:
                    continue
                kind = "arrow" if fn.type == "arrow_function" else "function"
                name = _text(declarator.child_by_field_name("name"))
                found.append(_Candidate(name, stmt, fn, kind, declarator=declarator))
            return found

        return []

    def _from_default_value(self, value, stmt, default_names: set[str]) -> list[_Candidate]:
        """Handle ``export default <expression>``."""
        if value.type == "identifier":
            default_names.add(_text(value))
            return []

        if value.type == "call_expression":
            # export default memo(Card)
            args = value.child_by_field_name("arguments")
            for arg in _named(args) if args is not None else []:
                if arg.type == "identifier":
                    default_names.add(_text(arg))
                    return []

        if value.type == "class":
            render = self._render_method(value)
            if render is None:
                return []
            return [_Candidate(self._class_or_stem(value), stmt, render, "class", True, True)]

        fn = self._unwrap_function(value)
        if fn is None:
            return []
        kind = "arrow" if fn.type == "arrow_function" else "function"
        return [_Candidate(self._class_or_stem(fn), stmt, fn, kind, True, True)]

    def _class_or_stem(self, node) -> str:
        name_node = node.child_by_field_name("name")
        if name_node is not None:
            return _text(name_node)
        path = PurePosixPath(self.rel_path)
        return path.parent.name if path.stem == "index" and path.parent.name else path.stem

    def _unwrap_function(self, value):
        """Return the function node behind a declarator value, looking through wrapper calls."""
        if value is None:
            return None
        if value.type in _FUNCTION_VALUE_TYPES:
            return value
        if value.type == "parenthesized_expression":
            inner = _named(value)
            return self._unwrap_function(inner[0]) if inner else None
        if value.type == "call_expression":
            # memo(() => ...), forwardRef(function (props, ref) { ... })
            args = value.child_by_field_name("arguments")
            for arg in _named(args) if args is not None else []:
                fn = self._unwrap_function(arg)
                if fn is not None:
                    return fn
        return None

    @staticmethod
    def _render_method(class_node):
        body = class_node.child_by_field_name("body")
        if body is None:
            return None
        for member in body.named_children:
            if member.type == "method_definition" and _text(member.child_by_field_name("name")) == "render":
                return member
        return None

    # ── Rendered trees ───────────────────────────────────────

    def _rendered_trees(self, fn) -> list:
        body = fn.child_by_field_name("body")
        if body is None:
            return []
        if fn.type == "arrow_function" and body.type != "statement_block":
            return self._jsx_from_expression(body)
        trees: list = []
        self._collect_returns(body, trees)
        return trees

    def _collect_returns(self, node, trees: list) -> None:
        for child in node.named_children:
            if child.type == "return_statement":
                expr = _named(child)
                if expr:
                    trees.extend(self._jsx_from_expression(expr[0]))
            elif child.type in _FUNCTION_TYPES:
                continue
            else:
                self._collect_returns(child, trees)

    def _jsx_from_expression(self, node) -> list:
        if node.type in _JSX_TYPES:
            return [node]
        if node.type in ("parenthesized_expression", "as_expression",
                         "satisfies_expression", "non_null_expression"):
            inner = _named(node)
            return self._jsx_from_expression(inner[0]) if inner else []
        if node.type == "ternary_expression":
            return (self._jsx_from_expression(node.child_by_field_name("consequence"))
                    + self._jsx_from_expression(node.child_by_field_name("alternative")))
        if node.type == "binary_expression":
            operator = node.child_by_field_name("operator")
            op = operator.type if operator is not None else ""
            if op == "&&":
                return self._jsx_from_expression(node.child_by_field_name("right"))
            if op in ("||", "??"):
                return (self._jsx_from_expression(node.child_by_field_name("left"))
                        + self._jsx_from_expression(node.child_by_field_name("right")))
        return []

    def _nested_jsx(self, node) -> list:
        """JSX roots inside a ``{...}`` child expression, in source order."""
        found: list = []
        for child in node.named_children:
            if child.type in _JSX_TYPES:
                found.append(child)
            else:
                found.extend(self._nested_jsx(child))
        return found

    # ── Emission ─────────────────────────────────────────────

    def _emit_component(self, cand: _Candidate, trees: list, result: ParsedFile) -> None:
        block = ComponentBlock(
            id=self.ids.next("component", cand.name),
            name=cand.name,
            file_path=self.file_path,
            rel_path=self.rel_path,
            source_code=_text(cand.node),
            args=self._extract_args(cand.fn, cand.declarator),
            imports=list(result.imports),
            is_exported=cand.is_exported,
            metadata={
                "is_default_export": cand.is_default,
                "component_type": cand.component_type,
                "return_count": len(trees),
            },
            **self._range(cand.node),
        )
        self._add(block, cand.fn, result)
        for tree in trees:
            self._emit_jsx(tree, block, result)

    def _emit_jsx(self, node, parent, result: ParsedFile, in_expression: bool = False) -> None:
        if node.type == "jsx_self_closing_element":
            open_tag = node
            children: list = []
        elif node.type == "jsx_fragment":
            open_tag = None
            children = node.named_children
        else:
            open_tag = node.child_by_field_name("open_tag")
            if open_tag is None:
                open_tag = next((c for c in node.named_children if c.type == "jsx_opening_element"), None)
            children = [c for c in node.named_children
                        if c.type not in ("jsx_opening_element", "jsx_closing_element")]

        metadata: dict = {}
        name_node = open_tag.child_by_field_name("name") if open_tag is not None else None
        if name_node is None:
            tag = "Fragment"
            metadata["is_fragment"] = True
        elif name_node.type in _MEMBER_TAG_TYPES:
            tag = "MemberExpr"
            metadata["member_expression"] = _text(name_node)
        else:
            tag = _text(name_node)
        if in_expression:
            metadata["in_expression"] = True

        props, spreads = self._extract_props(open_tag)
        if spreads:
            metadata["spreads"] = spreads

        block = ElementBlock(
            id=self.ids.next("element", tag),
            name=tag,
            file_path=self.file_path,
            rel_path=self.rel_path,
            source_code=_text(node),
            parent_id=parent.id,
            props=props,
            metadata=metadata,
            **self._range(node),
        )
        self._add(block, node, result)
        parent.children_ids.append(block.id)

        for child in children:
            if child.type in _JSX_TYPES:
                self._emit_jsx(child, block, result)
            elif child.type in _TEXT_TYPES:
                text = _text(child)
                if text.strip():
                    self._emit_text(child, text, block, result)
            elif child.type == "jsx_expression":
                for nested in self._nested_jsx(child):
                    self._emit_jsx(nested, block, result, in_expression=True)

    def _emit_text(self, node, text: str, parent: ElementBlock, result: ParsedFile) -> None:
        block = ElementBlock(
            id=self.ids.next("text"),
            name="#text",
            file_path=self.file_path,
            rel_path=self.rel_path,
            source_code=text,
            parent_id=parent.id,
            metadata={"text": text.strip()},
            **self._range(node),
        )
        self._add(block, node, result)
        parent.children_ids.append(block.id)

    def _add(self, block, node, result: ParsedFile) -> None:
        result.blocks.append(block)
        result.syntax_nodes[block.id] = node

    def _range(self, node) -> dict[str, int]:
        start_line, start_col = self._lines.position(node.start_point)
        end_line, end_col = self._lines.position(node.end_point)
        return {
            "start_line": start_line,
            "start_col": start_col,
            "end_line": end_line,
            "end_col": end_col,
        }

    # ── Props ────────────────────────────────────────────────

    def _extract_props(self, open_tag) -> tuple[dict[str, PropValue], list[str]]:
        props: dict[str, PropValue] = {}
        spreads: list[str] = []
        if open_tag is None:
            return props, spreads
        for attr in open_tag.named_children:
            if attr.type == "jsx_attribute":
                parts = _named(attr)
                if not parts:
                    continue
                value = parts[1] if len(parts) > 1 else None
                props[_text(parts[0])] = self._prop_value(value)
            elif attr.type == "jsx_expression":
                spreads.append(_text(attr))
        return props, spreads

    def _prop_value(self, value) -> PropValue:
        if value is None:
            return PropValue(PropType.BOOLEAN, "true")
        if value.type == "string":
            return PropValue(PropType.STRING, _string_value(value))
        if value.type == "jsx_expression":
            inner = _named(value)
            if not inner:
                return PropValue(PropType.EXPRESSION, "")
            return self._expression_value(inner[0])
        return PropValue(PropType.EXPRESSION, _text(value))

    def _expression_value(self, node) -> PropValue:
        text = _text(node)
        if node.type == "number" or (node.type == "unary_expression" and _NUMBER_RE.fullmatch(text)):
            return PropValue(PropType.NUMBER, text)
        if node.type in ("true", "false"):
            return PropValue(PropType.BOOLEAN, text)
        if node.type == "string":
            return PropValue(PropType.STRING, _string_value(node))
        if node.type == "template_string" and not any(
            c.type == "template_substitution" for c in node.named_children
        ):
            return PropValue(PropType.STRING, _string_value(node))
        if node.type == "identifier":
            if text in self._object_names:
                return PropValue(PropType.OBJECT, text)
            if text[:1].isupper():
                return PropValue(PropType.COMPONENT, text)
        return PropValue(PropType.EXPRESSION, text)

    # ── Args ─────────────────────────────────────────────────

    def _extract_args(self, fn, declarator=None) -> dict[str, str]:
        args: dict[str, str] = {}
        if fn.type == "method_definition":
            return args

        params = fn.child_by_field_name("parameters")
        if params is None:
            single = fn.child_by_field_name("parameter")
            if single is not None:
                args[_text(single)] = "any"
            return args

        declared = self._declared_props_type(declarator)
        for index, param in enumerate(_named(params)):
            pattern, type_node = param, None
            if param.type in ("required_parameter", "optional_parameter"):
                pattern = param.child_by_field_name("pattern")
                annotation = param.child_by_field_name("type")
                if annotation is not None and annotation.named_children:
                    type_node = annotation.named_children[0]
            if type_node is None and index == 0:
                type_node = declared
            self._args_from_pattern(pattern, type_node, args)
        return args

    def _args_from_pattern(self, pattern, type_node, args: dict[str, str]) -> None:
        if pattern is None:
            return
        if pattern.type == "identifier":
            args[_text(pattern)] = _text(type_node) if type_node is not None else "any"
        elif pattern.type == "assignment_pattern":
            self._args_from_pattern(pattern.child_by_field_name("left"), type_node, args)
        elif pattern.type == "rest_pattern":
            inner = _named(pattern)
            if inner:
                args[_text(inner[0])] = "any"
        elif pattern.type == "object_pattern":
            member_types = self._member_types(type_node)
            for prop in _named(pattern):
                if prop.type == "shorthand_property_identifier_pattern":
                    key = _text(prop)
                elif prop.type == "pair_pattern":
                    key = _text(prop.child_by_field_name("key"))
                elif prop.type == "object_assignment_pattern":
                    key = _text(prop.child_by_field_name("left"))
                elif prop.type == "rest_pattern":
                    inner = _named(prop)
                    if inner:
                        args[_text(inner[0])] = "any"
                    continue
                else:
                    continue
                args[key] = member_types.get(key, "any")

    def _member_types(self, type_node, depth: int = 0) -> dict[str, str]:
        if type_node is None or depth > 8:
            return {}
        if type_node.type == "type_identifier":
            return self._member_types(self._type_decls.get(_text(type_node)), depth + 1)
        if type_node.type == "parenthesized_type":
            inner = _named(type_node)
            return self._member_types(inner[0], depth + 1) if inner else {}
        if type_node.type == "intersection_type":
            merged: dict[str, str] = {}
            for part in _named(type_node):
                merged.update(self._member_types(part, depth + 1))
            return merged
        if type_node.type not in ("object_type", "interface_body"):
            return {}

        members: dict[str, str] = {}
        for sig in type_node.named_children:
            if sig.type != "property_signature":
                continue
            annotation = sig.child_by_field_name("type")
            type_text = "any"
            if annotation is not None and annotation.named_children:
                type_text = _text(annotation.named_children[0])
            members[_text(sig.child_by_field_name("name"))] = type_text
        return members

    @staticmethod
    def _declared_props_type(declarator):
        """``T`` from ``const X: React.FC<T> = ...``."""
        if declarator is None:
            return None
        annotation = declarator.child_by_field_name("type")
        if annotation is None or not annotation.named_children:
            return None
        declared = annotation.named_children[0]
        if declared.type != "generic_type":
            return None
        type_args = next((c for c in declared.named_children if c.type == "type_arguments"), None)
        if type_args is None:
            return None
        inner = _named(type_args)
        return inner[0] if inner else None
