import pytest

from promptgraph.core.Errors import UnknownNode
from promptgraph.core.GraphPrimitives import Node
from promptgraph.core.GraphService import DEFAULT_VIEWPORT, GraphService


@pytest.fixture
def service():
    svc = GraphService()
    svc.add_node(Node("tf", "textfields", data={"fields": {"f0": "hello"}}))
    svc.add_node(Node("pr", "prompt", data={"vars": ["q"]}))
    svc.add_node(Node("vis", "vis"))
    svc.add_node(Node("note", "comment"))
    return svc


class TestNodes:

    def test_add_node_by_type_generates_id(self):
        svc = GraphService()
        node = svc.add_node("prompt", data={"prompt": "hi"}, position={"x": 10, "y": 20})
        assert node.id.startswith("prompt-")
        assert node.position == {"x": 10, "y": 20}
        assert node.selected is False
        assert svc.get_node(node.id) is node

    def test_add_node_rejects_unknown_type(self):
        with pytest.raises(ValueError):
            GraphService().add_node("nonsense")

    def test_require_node(self, service):
        assert service.require_node("tf").id == "tf"
        with pytest.raises(UnknownNode):
            service.require_node("ghost")

    def test_set_data_props_replaces_data_object(self, service):
        node = service.get_node("tf")
        before = node.data
        service.set_data_props_for_node("tf", {"fields": {"f0": "bye"}, "extra": 1})

        assert node.data is not before
        assert node.data == {"fields": {"f0": "bye"}, "extra": 1}

    def test_set_data_props_keeps_other_keys(self, service):
        service.set_data_props_for_node("pr", {"prompt": "{q}"})
        assert service.get_node("pr").data == {"vars": ["q"], "prompt": "{q}"}

    def test_set_data_props_unknown_node_is_noop(self, service):
        assert service.set_data_props_for_node("ghost", {"a": 1}) is None

    def test_duplicate_node_is_a_detached_copy(self, service):
        dup = service.duplicate_node("tf", offset={"x": 30, "y": 0})
        assert dup.id != "tf"
        assert dup.type == service.get_node("tf").type
        assert dup.position == {"x": 30.0, "y": 0.0}
        dup.data["fields"]["f0"] = "changed"
        assert service.get_node("tf").data["fields"]["f0"] == "hello"
        assert service.get_node(dup.id) is None

    def test_remove_node_drops_group_membership(self, service):
        group_id = service.create_render_group("g", node_ids=["tf", "pr"])
        service.remove_node("tf")
        assert service.get_group(group_id).nodes == ["pr"]

    def test_selection(self, service):
        service.set_selected_nodes(["tf", "pr"])
        assert service.get_selected_nodes() == ["tf", "pr"]
        service.bring_node_to_front("vis")
        assert service.get_selected_nodes() == ["vis"]
        service.deselect_all_nodes()
        assert service.get_selected_nodes() == []


class TestConnect:

    def test_connect_pings_refreshable_target(self, service):
        edge = service.connect("tf", "output", "pr", "q")
        assert edge is not None
        assert service.get_node("pr").data["refresh"] is True

    def test_connect_records_input_on_visualizers(self, service):
        service.connect("pr", "prompt", "vis", "input")
        assert service.get_node("vis").data["input"] == "pr"
        assert service.get_node("vis").data["refresh"] is True

    def test_connect_to_plain_node_leaves_data_alone(self, service):
        service.connect("tf", "output", "note", "input")
        assert service.get_node("note").data == {}

    def test_connect_missing_endpoint(self, service):
        assert service.connect("tf", "output", "ghost", "q") is None
        assert service.edges == []

    def test_remove_edge(self, service):
        edge = service.connect("tf", "output", "pr", "q")
        assert service.remove_edge(edge.id) == edge
        assert service.input_edges_for_node("pr") == []


class TestResolution:

    def test_output_and_pull(self, service):
        service.connect("tf", "output", "pr", "q")
        assert service.output("tf", "output") == ["hello"]
        assert service.pull_input_data(["q"], "pr") == {"q": ["hello"]}
        assert service.get_immediate_input_node_types(["q"], "pr") == ["textfields"]

    def test_notify_downstream_is_one_hop(self, service):
        service.connect("tf", "output", "pr", "q")
        service.connect("pr", "prompt", "vis", "input")
        service.connect("tf", "output", "note", "input")
        for node in service.nodes:
            node.data.pop("refresh", None)

        assert service.notify_downstream("tf") == ["pr"]
        assert service.get_node("pr").data["refresh"] is True
        assert "refresh" not in service.get_node("vis").data
        assert "refresh" not in service.get_node("note").data


class TestEvents:

    def test_listener_receives_mutations(self, service):
        events = []
        service.subscribe(events.append)

        edge = service.connect("tf", "output", "note", "input")
        service.set_position("note", 5, 6)
        service.remove_node("note")

        assert [e["type"] for e in events] == ["EDGE_ADDED", "NODE_MOVED", "EDGE_REMOVED", "NODE_REMOVED"]
        assert events[0]["edge"]["id"] == edge.id
        assert events[1]["position"] == {"x": 5, "y": 6}

    def test_broken_listener_does_not_block_others(self, service):
        events = []

        def broken(event):
            raise RuntimeError("boom")

        service.subscribe(broken)
        service.subscribe(events.append)
        service.set_data_props_for_node("tf", {"a": 1})

        assert events == [{"type": "NODE_DATA_CHANGED", "nodeId": "tf", "keys": ["a"]}]

    def test_unsubscribe(self, service):
        events = []
        service.subscribe(events.append)
        service.unsubscribe(events.append)
        service.set_position("tf", 1, 1)
        assert events == []


class TestFlowData:

    def test_load_flow_round_trip(self, service):
        service.connect("tf", "output", "pr", "q")
        flow = service.to_flow_data()

        other = GraphService()
        other.load_flow(flow)

        assert other.to_flow_data() == flow
        assert other.pull_input_data(["q"], "pr") == {"q": ["hello"]}

    def test_load_flow_drops_dangling_edges(self):
        svc = GraphService()
        svc.load_flow({
            "nodes": [{"id": "a", "type": "textfields", "data": {}}],
            "edges": [{"id": "e1", "source": "a", "sourceHandle": "output", "target": "gone", "targetHandle": "x"}],
        })
        assert svc.edges == []
        assert svc.viewport == DEFAULT_VIEWPORT

    def test_load_flow_rejects_duplicate_node_ids(self, service):
        with pytest.raises(ValueError):
            service.load_flow({"nodes": [{"id": "a", "type": "prompt"}, {"id": "a", "type": "vis"}]})
        # the existing graph is left as it was
        assert service.get_node("tf") is not None

    def test_load_flow_rejects_unknown_type(self, service):
        with pytest.raises(ValueError):
            service.load_flow({"nodes": [{"id": "a", "type": "mystery"}]})

    def test_extract_selection(self, service):
        service.connect("tf", "output", "pr", "q")
        service.connect("pr", "prompt", "vis", "input")

        flow = service.extract_selection(["tf", "pr"])
        assert [n["id"] for n in flow["nodes"]] == ["tf", "pr"]
        assert [(e["source"], e["target"]) for e in flow["edges"]] == [("tf", "pr")]
        assert flow["groups"] == []


class TestRenderGroups:

    def test_group_lifecycle(self, service):
        events = []
        service.subscribe(events.append)

        group_id = service.create_render_group("Inputs", node_ids=["tf"])
        service.add_nodes_to_group(group_id, ["pr", "tf"])
        assert service.get_group(group_id).nodes == ["tf", "pr"]

        service.remove_nodes_from_group(group_id, ["tf"])
        service.update_group(group_id, name="Renamed", isCollapsed=True)
        group = service.get_group(group_id)
        assert group.nodes == ["pr"]
        assert group.name == "Renamed"
        assert group.isCollapsed is True

        service.select_nodes_in_group(group_id)
        assert service.get_selected_nodes() == ["pr"]

        service.delete_group(group_id)
        assert service.get_group(group_id) is None
        assert [e["type"] for e in events] == ["GROUP_CREATED", "GROUP_REMOVED"]

    def test_update_group_rejects_unknown_field(self, service):
        group_id = service.create_render_group("g", node_ids=[])
        with pytest.raises(ValueError):
            service.update_group(group_id, colour="red")

    def test_render_group_defaults_to_selection(self, service):
        service.set_selected_nodes(["vis"])
        group_id = service.create_render_group("sel")
        assert service.get_group(group_id).nodes == ["vis"]
