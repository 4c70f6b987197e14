"""Tests for the tree-sitter component parser."""

from pathlib import Path

import pytest

from blockgraph.models import (
    BlockKind,
    ComponentBlock,
    EngineConfig,
    ImportKind,
    ObjectBlock,
    PropType,
)

FIXTURES = Path(__file__).parent / "fixtures"
PROJECT_SRC = FIXTURES / "project" / "src"

# Only run if tree-sitter is installed
try:
    from blockgraph.parsers.component_parser import ComponentParser
    HAS_TREESITTER = True
except ImportError:
    HAS_TREESITTER = False

pytestmark = pytest.mark.skipif(not HAS_TREESITTER, reason="tree-sitter not installed")


def _parse(source, rel_path="src/Widget.tsx", config=None):
    return ComponentParser(Path("/proj") / rel_path, rel_path, config).parse(source)


def _components(result):
    return {b.name: b for b in result.blocks if isinstance(b, ComponentBlock)}


def _children(result, block):
    blocks = {b.id: b for b in result.blocks}
    return [blocks[c] for c in block.children_ids]


def test_function_component_with_inline_props_type():
    result = _parse(
        "export function Card({ title, count }: { title: string; count: number }) {\n"
        '  return <div className="card">{title}</div>;\n'
        "}\n"
    )
    card = _components(result)["Card"]
    assert card.kind == BlockKind.COMPONENT
    assert card.is_exported
    assert not card.is_default_export
    assert card.metadata["component_type"] == "function"
    assert card.args == {"title": "string", "count": "number"}
    assert (card.start_line, card.start_col) == (1, 1)
    (div,) = _children(result, card)
    assert div.name == "div"
    assert div.class_names == ["card"]
    assert div.parent_id == card.id


def test_prop_value_types():
    result = _parse(
        "import asset from './a.png';\n"
        "export const Demo = () => (\n"
        '  <Widget a="x" b={1} c d={true} e={"s"} f={`t`} g={Icon} h={asset}'
        " i={foo.bar} j={-2} k={`${x}`} />\n"
        ");\n"
    )
    (widget,) = [b for b in result.blocks if b.name == "Widget"]
    types = {k: (v.type, v.value) for k, v in widget.props.items()}
    assert types == {
        "a": (PropType.STRING, "x"),
        "b": (PropType.NUMBER, "1"),
        "c": (PropType.BOOLEAN, "true"),
        "d": (PropType.BOOLEAN, "true"),
        "e": (PropType.STRING, "s"),
        "f": (PropType.STRING, "t"),
        "g": (PropType.COMPONENT, "Icon"),
        "h": (PropType.OBJECT, "asset"),
        "i": (PropType.EXPRESSION, "foo.bar"),
        "j": (PropType.NUMBER, "-2"),
        "k": (PropType.EXPRESSION, "`${x}`"),
    }


def test_multiple_returns_give_multiple_subtrees():
    source = (PROJECT_SRC / "components" / "Comment.tsx").read_text()
    result = _parse(source, "src/components/Comment.tsx")
    comment = _components(result)["Comment"]
    roots = _children(result, comment)
    assert comment.metadata["return_count"] == 3
    assert [r.name for r in roots] == ["Text", "View", "Text"]
    assert comment.is_default_export
    assert comment.args == {"id": "string", "body": "string"}


def test_returns_of_nested_functions_are_ignored():
    result = _parse(
        "function List({ items }) {\n"
        "  const render = (item) => { return <li>{item}</li>; };\n"
        "  return <ul>{items.map((item) => <li key={item}>{item}</li>)}</ul>;\n"
        "}\n"
    )
    lst = _components(result)["List"]
    assert not lst.is_exported
    (ul,) = _children(result, lst)
    assert ul.name == "ul"
    (li,) = _children(result, ul)
    assert li.name == "li"
    assert li.metadata["in_expression"] is True
    assert li.props["key"].type == PropType.EXPRESSION


def test_conditional_return_branches():
    result = _parse(
        "export const Toggle = ({ on }) => on ? <b>on</b> : <i>off</i>;\n"
        "export const Maybe = ({ show }) => { return show && <em>shown</em>; };\n"
    )
    comps = _components(result)
    assert [c.name for c in _children(result, comps["Toggle"])] == ["b", "i"]
    assert [c.name for c in _children(result, comps["Maybe"])] == ["em"]
    assert comps["Toggle"].metadata["component_type"] == "arrow"


def test_non_rendering_functions_are_not_components():
    result = _parse(
        "export function helper(a: number) { return a + 1; }\n"
        "export const config = { debug: true };\n"
    )
    assert _components(result) == {}


def test_object_blocks_for_non_tag_imports():
    result = _parse(
        "import { View, StyleSheet } from 'react-native';\n"
        "import logo from './logo.png';\n"
        "import type { Foo } from './types';\n"
        "import './x.css';\n"
        "export const Screen = () => <View />;\n"
    )
    objects = [b for b in result.blocks if isinstance(b, ObjectBlock)]
    assert sorted(o.name for o in objects) == ["StyleSheet", "logo"]
    logo = next(o for o in objects if o.name == "logo")
    assert logo.metadata["import_source"] == "./logo.png"
    assert logo.metadata["import_kind"] == "default"

    assert [(i.source, i.kind, i.local_name) for i in result.imports] == [
        ("react-native", ImportKind.NAMED, "View"),
        ("react-native", ImportKind.NAMED, "StyleSheet"),
        ("./logo.png", ImportKind.DEFAULT, "logo"),
        ("./x.css", ImportKind.NONE, ""),
    ]
    screen = _components(result)["Screen"]
    assert screen.imports == result.imports


def test_export_clause_and_default_alias():
    result = _parse(
        "const A = () => <div />;\n"
        "function B() { return <span />; }\n"
        "export { A, B as default };\n"
    )
    comps = _components(result)
    assert comps["A"].is_exported and not comps["A"].is_default_export
    assert comps["B"].is_exported and comps["B"].is_default_export


def test_wrapped_and_anonymous_components():
    result = _parse(
        "export const Wrapped = forwardRef((props, ref) => <input ref={ref} />);\n"
        "export default memo(function Fancy() { return <p />; });\n",
        "src/Fancy.tsx",
    )
    comps = _components(result)
    assert comps["Wrapped"].args == {"props": "any", "ref": "any"}
    assert comps["Fancy"].is_default_export

    anon = _components(_parse("export default () => <main />;\n", "src/pages/Home.tsx"))
    assert list(anon) == ["Home"]
    assert anon["Home"].is_default_export


def test_class_component():
    result = _parse(
        "export class Panel extends React.Component {\n"
        "  render() {\n"
        "    return <section className=\"panel\" />;\n"
        "  }\n"
        "}\n"
    )
    panel = _components(result)["Panel"]
    assert panel.metadata["component_type"] == "class"
    assert panel.args == {}
    assert [c.name for c in _children(result, panel)] == ["section"]


def test_fragments_member_tags_and_text():
    result = _parse(
        "export const Page = () => (\n"
        "  <>\n"
        "    <Foo.Bar />\n"
        "    <p>Hello <b>world</b></p>\n"
        "  </>\n"
        ");\n"
    )
    page = _components(result)["Page"]
    (fragment,) = _children(result, page)
    assert fragment.name == "Fragment"
    assert fragment.metadata["is_fragment"] is True
    member, p = _children(result, fragment)
    assert member.name == "MemberExpr"
    assert member.metadata["member_expression"] == "Foo.Bar"
    hello, b = _children(result, p)
    assert hello.name == "#text"
    assert hello.metadata["text"] == "Hello"
    assert [c.metadata["text"] for c in _children(result, b)] == ["world"]


def test_props_from_type_alias_and_fc_annotation():
    result = _parse(
        "type Props = { label: string; size?: number };\n"
        "export const Chip: React.FC<Props> = ({ label, size, ...rest }) => <span>{label}</span>;\n"
        "interface BadgeProps { tone: 'info' | 'warn' }\n"
        "export function Badge({ tone }: BadgeProps) { return <i>{tone}</i>; }\n"
    )
    comps = _components(result)
    assert comps["Chip"].args == {"label": "string", "size": "number", "rest": "any"}
    assert comps["Badge"].args == {"tone": "'info' | 'warn'"}


def test_syntax_errors_skip_the_file():
    broken = "export const X = () => <div>;\n"
    result = _parse(broken)
    assert result.skipped
    assert result.blocks == []

    tolerant = _parse(broken, config=EngineConfig(tolerate_syntax_errors=True))
    assert not tolerant.skipped


def test_plain_jsx_file():
    result = _parse(
        'export default function App() { return <div className="app" /> }\n',
        "src/App.jsx",
    )
    app = _components(result)["App"]
    assert app.is_default_export


def test_ids_are_stable_and_syntax_nodes_kept_aside():
    source = (PROJECT_SRC / "App.tsx").read_text()
    first = _parse(source, "src/App.tsx")
    second = _parse(source, "src/App.tsx")
    assert [b.id for b in first.blocks] == [b.id for b in second.blocks]
    assert set(first.syntax_nodes) == {b.id for b in first.blocks}
    app = _components(first)["App"]
    assert first.syntax_nodes[app.id].type == "function_declaration"


def test_fixture_app_elements():
    source = (PROJECT_SRC / "App.tsx").read_text()
    result = _parse(source, "src/App.tsx")
    app = _components(result)["App"]
    (layout,) = _children(result, app)
    assert layout.name == "Layout"
    first, second = _children(result, layout)
    assert first.props["title"].value == "First"
    assert first.props["count"].type == PropType.NUMBER
    assert first.props["active"].type == PropType.BOOLEAN
    assert second.props["count"].type == PropType.EXPRESSION
    assert second.props["icon"].type == PropType.OBJECT
    assert second.props["onAction"].value == "() => count + 1"
    assert [o.name for o in result.blocks if isinstance(o, ObjectBlock)] == ["Icon"]
