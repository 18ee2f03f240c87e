import pytest

from promptgraph.core.Errors import MissingTableColumn
from promptgraph.core.GraphPrimitives import Graph, Node
from promptgraph.core.OutputResolver import is_empty_row, resolve_output
from promptgraph.core.Template import escape_braces, template_variables, unescape_braces
from promptgraph.core.Types import TemplateVarInfo


def table_node(node_id="t1", rows=None, columns=None, **extra):
    data = {
        "columns": columns if columns is not None else [
            {"key": "A", "header": "A"},
            {"key": "B", "header": "B"},
        ],
        "rows": rows if rows is not None else [{"__uid": "r0", "A": "x", "B": "y"}],
    }
    data.update(extra)
    return Node(node_id, "table", data=data)


class TestTableOutput:

    def setup_method(self):
        self.graph = Graph()

    def test_single_row(self):
        self.graph.add_node(table_node())
        out = resolve_output(self.graph, "t1", "A")

        assert out == [TemplateVarInfo("x", {"B": "y"}, "r0")]

    def test_metavars_keyed_by_header(self):
        """Internal column keys never leak; headers are the visible names"""
        self.graph.add_node(table_node(
            columns=[{"key": "c0", "header": "question"}, {"key": "c1", "header": "topic"}],
            rows=[{"__uid": "r0", "c0": "Why?", "c1": "philosophy"}],
        ))
        out = resolve_output(self.graph, "t1", "question")

        assert len(out) == 1
        assert out[0].text == "Why?"
        assert out[0].metavars == {"topic": "philosophy"}
        assert out[0].associate_id == "r0"

    def test_empty_rows_are_skipped(self):
        self.graph.add_node(table_node(rows=[
            {"__uid": "r0", "A": "x", "B": "y"},
            {"__uid": "r1", "A": "", "B": ""},
            {"__uid": "r2", "A": "   ", "B": "\t"},
            {"__uid": "r3", "A": "", "B": "only-b"},
        ]))
        out = resolve_output(self.graph, "t1", "A")

        assert [o.associate_id for o in out] == ["r0", "r3"]
        assert out[1].text == ""
        assert out[1].metavars == {"B": "only-b"}

    def test_is_empty_row_ignores_uid(self):
        assert is_empty_row({"__uid": "r9", "A": "", "B": None})
        assert not is_empty_row({"__uid": "r9", "A": "x"})

    def test_missing_column_returns_none(self):
        self.graph.add_node(table_node())
        assert resolve_output(self.graph, "t1", "C") is None

    def test_missing_column_strict_raises(self):
        self.graph.add_node(table_node())
        with pytest.raises(MissingTableColumn) as exc_info:
            resolve_output(self.graph, "t1", "C", strict=True)
        assert exc_info.value.header == "C"

    def test_braces_are_escaped(self):
        self.graph.add_node(table_node(rows=[{"__uid": "r0", "A": "{x}", "B": "{y}"}]))
        out = resolve_output(self.graph, "t1", "A")

        assert out[0].text == "\\{x\\}"
        assert template_variables(out[0].text) == []
        assert unescape_braces(out[0].text) == "{x}"
        # metavars are provenance, not template text
        assert out[0].metavars == {"B": "{y}"}

    def test_selected_rows_take_precedence(self):
        self.graph.add_node(table_node(
            rows=[{"__uid": "r0", "A": "x", "B": "y"}, {"__uid": "r1", "A": "z", "B": "w"}],
            sel_rows=[{"__uid": "r1", "A": "z", "B": "w"}],
        ))
        out = resolve_output(self.graph, "t1", "A")
        assert [o.text for o in out] == ["z"]

    def test_non_string_cells(self):
        self.graph.add_node(table_node(rows=[{"__uid": "r0", "A": 3, "B": True}]))
        out = resolve_output(self.graph, "t1", "A")
        assert out[0].text == "3"
        assert out[0].metavars == {"B": "true"}

    def test_table_without_rows_has_no_output(self):
        self.graph.add_node(Node("t1", "table", data={"columns": [{"key": "A", "header": "A"}]}))
        assert resolve_output(self.graph, "t1", "A") is None


class TestOtherOutputs:

    def setup_method(self):
        self.graph = Graph()

    def test_unknown_node(self):
        assert resolve_output(self.graph, "ghost", "out") is None

    def test_project_single_attribute(self):
        self.graph.add_node(Node("p1", "project", data={"projectAttributes": {"goal": "ship", "owner": "ana"}}))
        assert resolve_output(self.graph, "p1", "attribute-goal") == ["ship"]
        assert resolve_output(self.graph, "p1", "attribute-missing") is None

    def test_project_all_attributes(self):
        self.graph.add_node(Node("p1", "project", data={"projectAttributes": {"goal": "ship", "owner": "ana"}}))
        assert resolve_output(self.graph, "p1", None) == ["ship", "ana"]
        assert resolve_output(self.graph, "p1", "output") == ["ship", "ana"]

    def test_fields_list_verbatim(self):
        self.graph.add_node(Node("f1", "textfields", data={"fields": ["a", "b"]}))
        assert resolve_output(self.graph, "f1", "output") == ["a", "b"]

    def test_fields_dict(self):
        self.graph.add_node(Node("f1", "textfields", data={"fields": {"f0": "a", "f1": "b"}}))
        assert resolve_output(self.graph, "f1", "output") == ["a", "b"]

    def test_fields_visibility(self):
        self.graph.add_node(Node("f1", "textfields", data={
            "fields": {"f0": "a", "f1": "b", "f2": "c"},
            "fields_visibility": {"f1": False, "f2": True},
        }))
        assert resolve_output(self.graph, "f1", "output") == ["a", "c"]

    def test_inline_fallback(self):
        self.graph.add_node(Node("s1", "split", data={"output": ["one", "two"], "text": "raw"}))
        assert resolve_output(self.graph, "s1", "output") == ["one", "two"]
        assert resolve_output(self.graph, "s1", "text") == "raw"
        assert resolve_output(self.graph, "s1", "nothing") is None

    def test_resolution_is_pure(self):
        self.graph.add_node(table_node())
        first = resolve_output(self.graph, "t1", "A")
        second = resolve_output(self.graph, "t1", "A")
        assert first == second
        assert self.graph.get_node("t1").data["rows"] == [{"__uid": "r0", "A": "x", "B": "y"}]


class TestTemplate:

    def test_escape_braces(self):
        assert escape_braces("a {b} c") == "a \\{b\\} c"
        assert escape_braces("no braces") == "no braces"

    def test_template_variables(self):
        assert template_variables("Hi {name}, {name} asks {question}") == ["name", "question"]
        assert template_variables("Hi \\{name\\}") == []
