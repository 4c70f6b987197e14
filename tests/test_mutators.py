"""Tests for the structural mutators."""

import pytest

from blockgraph.errors import InvalidOperandError, NotFoundError
from blockgraph.models import (
    ComponentInstanceBlock,
    CssClassBlock,
    ElementBlock,
    HtmlElementBlock,
    ImportKind,
    ImportRecord,
    PropType,
    PropValue,
)
from blockgraph.mutators import (
    delete_subtree,
    insert_component_instance,
    move_block,
    set_prop,
)
from blockgraph.mutators.insert import relative_specifier

try:
    import tree_sitter_language_pack  # noqa: F401
    HAS_TREESITTER = True
except ImportError:
    HAS_TREESITTER = False

pytestmark = pytest.mark.skipif(not HAS_TREESITTER, reason="tree-sitter not installed")

CARD_IMPORT = ImportRecord("./components/Card", ImportKind.NAMED, "Card", "Card")


def _component(engine, name):
    (comp,) = engine.graph.find_components(name)
    return comp


def _card_instance(engine, title):
    (instance,) = [
        b for b in engine.graph.of_type(ComponentInstanceBlock)
        if b.name == "Card" and b.props["title"].value == title
    ]
    return instance


def _layout_instance(engine):
    (instance,) = [b for b in engine.graph.of_type(ComponentInstanceBlock) if b.name == "Layout"]
    return instance


class TestDeleteSubtree:
    def test_deleting_one_of_two_instances_keeps_import(self, engine):
        app = _component(engine, "App")
        card = _component(engine, "Card")
        second = _card_instance(engine, "Second")

        result = delete_subtree(engine.graph, second.id)

        assert result.removed_block_ids == [second.id]
        assert result.cleaned_imports == []
        assert second.id not in engine.graph
        assert second.id not in _layout_instance(engine).children_ids
        assert CARD_IMPORT in app.imports
        assert CARD_IMPORT in engine.graph.file_imports[app.file_path]
        assert len(card.usages) == 1
        assert second.id not in card.used_in

    def test_deleting_last_instance_removes_import(self, engine):
        app = _component(engine, "App")
        card = _component(engine, "Card")
        delete_subtree(engine.graph, _card_instance(engine, "Second").id)
        result = delete_subtree(engine.graph, _card_instance(engine, "First").id)

        assert result.cleaned_imports == [CARD_IMPORT]
        assert CARD_IMPORT not in app.imports
        assert CARD_IMPORT not in engine.graph.file_imports[app.file_path]
        assert card.usages == []
        assert card.used_in == []
        # The definition itself survives
        assert card.id in engine.graph

    def test_deleting_an_element_cleans_style_links_and_usages(self, engine):
        card = _component(engine, "Card")
        button = _component(engine, "Button")
        (div,) = [engine.graph.get(c) for c in card.children_ids]
        (green,) = [
            b for b in engine.graph.of_type(CssClassBlock)
            if b.declarations == "color: green;"
        ]
        assert div.id in green.used_in

        result = delete_subtree(engine.graph, div.id)

        assert div.id not in green.used_in
        assert card.children_ids == []
        assert len(button.usages) == 1
        assert [r.local_name for r in result.cleaned_imports] == ["Button"]
        assert all(r.local_name != "Button" for r in card.imports)
        for block_id in result.removed_block_ids:
            assert block_id not in engine.graph

    def test_deleting_a_subtree_with_children(self, engine):
        layout = _layout_instance(engine)
        cards = list(layout.children_ids)
        result = delete_subtree(engine.graph, layout.id)
        assert result.removed_block_ids == [layout.id] + cards
        assert {r.local_name for r in result.cleaned_imports} == {"Layout", "Card"}
        assert _component(engine, "App").children_ids == []

    def test_unknown_id_fails(self, engine):
        before = engine.tree().to_dict()
        with pytest.raises(NotFoundError):
            delete_subtree(engine.graph, "nope")
        assert engine.tree().to_dict() == before

    def test_top_level_component_has_no_enclosing_component(self, engine):
        before = engine.tree().to_dict()
        with pytest.raises(NotFoundError):
            delete_subtree(engine.graph, _component(engine, "Card").id)
        assert engine.tree().to_dict() == before

    def test_markup_elements_cannot_be_deleted(self, engine):
        (element,) = engine.graph.of_type(HtmlElementBlock)[:1]
        with pytest.raises(NotFoundError):
            delete_subtree(engine.graph, element.id)


class TestInsertComponentInstance:
    def test_insert_into_layout_instance_at_index(self, engine):
        card = _component(engine, "Card")
        layout = _layout_instance(engine)
        usages_before = len(card.usages)

        result = insert_component_instance(engine.graph, layout.id, card.id, index=1, props={"title": "Third"})

        assert layout.children_ids[1] == result.instance_id
        instance = engine.graph.get(result.instance_id)
        assert isinstance(instance, ComponentInstanceBlock)
        assert instance.ref_id == card.id
        assert instance.parent_id == layout.id
        assert instance.props["title"] == PropValue(PropType.STRING, "Third")
        assert instance.source_code == '<Card title="Third" />'
        assert len(card.usages) == usages_before + 1
        assert result.instance_id in card.used_in
        assert result.added_import is None

    def test_index_is_clamped(self, engine):
        card = _component(engine, "Card")
        layout = _layout_instance(engine)
        appended = insert_component_instance(engine.graph, layout.id, card.id, index=99)
        assert layout.children_ids[-1] == appended.instance_id
        front = insert_component_instance(engine.graph, layout.id, card.id, index=-5)
        assert layout.children_ids[0] == front.instance_id
        assert appended.instance_id != front.instance_id

    def test_named_import_is_added(self, engine):
        card = _component(engine, "Card")
        icon = _component(engine, "Icon")
        (div,) = [engine.graph.get(c) for c in card.children_ids]

        result = insert_component_instance(engine.graph, div.id, icon.id)

        expected = ImportRecord("./Icon", ImportKind.NAMED, "Icon", "Icon")
        assert result.added_import == expected
        assert expected in card.imports
        assert expected in engine.graph.file_imports[card.file_path]

    def test_default_import_is_added(self, engine):
        layout = _component(engine, "Layout")
        comment = _component(engine, "Comment")
        (div,) = [engine.graph.get(c) for c in layout.children_ids]

        result = insert_component_instance(engine.graph, div.id, comment.id)
        assert result.added_import == ImportRecord("./Comment", ImportKind.DEFAULT, "Comment", "default")

    def test_same_file_insert_adds_no_import(self, engine):
        card = _component(engine, "Card")
        (div,) = [engine.graph.get(c) for c in card.children_ids]
        result = insert_component_instance(engine.graph, div.id, card.id, index=0)
        assert result.added_import is None

    def test_failures_leave_graph_unchanged(self, engine):
        card = _component(engine, "Card")
        layout = _layout_instance(engine)
        (rule,) = engine.graph.of_type(CssClassBlock)[:1]
        (html_div,) = [b for b in engine.graph.of_type(HtmlElementBlock) if b.name == "div"]
        before = engine.tree().to_dict()

        with pytest.raises(NotFoundError):
            insert_component_instance(engine.graph, "missing", card.id)
        with pytest.raises(NotFoundError):
            insert_component_instance(engine.graph, layout.id, "missing")
        with pytest.raises(InvalidOperandError):
            insert_component_instance(engine.graph, layout.id, rule.id)
        with pytest.raises(InvalidOperandError):
            insert_component_instance(engine.graph, html_div.id, card.id)

        assert engine.tree().to_dict() == before

    def test_relative_specifier(self):
        assert relative_specifier("/p/src/App.tsx", "/p/src/components/Card.tsx") == "./components/Card"
        assert relative_specifier("/p/src/components/Card.tsx", "/p/src/Icon.tsx") == "../Icon"


class TestMoveBlock:
    def test_reorder_within_parent(self, engine):
        layout = _layout_instance(engine)
        first = _card_instance(engine, "First")
        second = _card_instance(engine, "Second")

        move_block(engine.graph, second.id, layout.id, index=0)

        assert layout.children_ids == [second.id, first.id]
        assert second.parent_id == layout.id

    def test_move_updates_usage_parent(self, engine):
        app = _component(engine, "App")
        card = _component(engine, "Card")
        second = _card_instance(engine, "Second")

        move_block(engine.graph, second.id, app.id)

        assert app.children_ids[-1] == second.id
        snapshot = next(u for u in card.usages if u.usage_id == second.id)
        assert snapshot.parent_id == app.id
        assert second.id not in _layout_instance(engine).children_ids

    def test_invalid_moves(self, engine):
        layout = _layout_instance(engine)
        first = _card_instance(engine, "First")
        card = _component(engine, "Card")
        (card_div,) = [engine.graph.get(c) for c in card.children_ids]
        before = engine.tree().to_dict()

        with pytest.raises(InvalidOperandError):
            move_block(engine.graph, layout.id, first.id)
        with pytest.raises(InvalidOperandError):
            move_block(engine.graph, first.id, card_div.id)
        with pytest.raises(InvalidOperandError):
            move_block(engine.graph, card.id, layout.id)
        with pytest.raises(NotFoundError):
            move_block(engine.graph, first.id, "missing")

        assert engine.tree().to_dict() == before


class TestSetProp:
    def test_instance_prop_updates_usage_snapshot(self, engine):
        card = _component(engine, "Card")
        first = _card_instance(engine, "First")

        set_prop(engine.graph, first.id, "title", "Renamed")

        assert first.props["title"] == PropValue(PropType.STRING, "Renamed")
        snapshot = next(u for u in card.usages if u.usage_id == first.id)
        assert snapshot.props["title"].value == "Renamed"

    def test_none_removes_prop(self, engine):
        first = _card_instance(engine, "First")
        set_prop(engine.graph, first.id, "active", None)
        assert "active" not in first.props

    def test_components_have_no_props(self, engine):
        with pytest.raises(InvalidOperandError):
            set_prop(engine.graph, _component(engine, "Card").id, "x", "y")

    def test_plain_element(self, engine):
        (view,) = [b for b in engine.graph.of_type(ElementBlock) if b.name == "View"]
        set_prop(engine.graph, view.id, "testID", PropValue(PropType.EXPRESSION, "id"))
        assert view.props["testID"].type == PropType.EXPRESSION
