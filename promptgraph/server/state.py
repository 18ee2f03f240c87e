"""
GraphState: the process-wide GraphService the routes operate on.

Builds a small demo flow on startup so the UI has something to display on
first load:

    Questions (table) ──question──► Prompt ──response──► Checker (evaluator) ──► Plot (vis)
    Persona (textfields) ──persona──┘
"""
from __future__ import annotations

import logging
import random
from typing import Optional

from promptgraph.core.ColorRegistry import ColorRegistry
from promptgraph.core.GraphPrimitives import Node
from promptgraph.core.GraphService import GraphService
from promptgraph.core.Template import template_variables

logger = logging.getLogger(__name__)


class GraphState:
    """Holds the graph service and the LLM colour table for one editor session."""

    def __init__(self, seed_demo: bool = True, rng: Optional[random.Random] = None) -> None:
        self.service = GraphService(rng=rng)
        self.colors = ColorRegistry(rng=rng)
        if seed_demo:
            self._seed_demo()

    # ── Demo graph ──────────────────────────────────────────────────────────

    def _seed_demo(self) -> None:
        svc = self.service

        prompt_text = "You are {persona}. Answer in one sentence: {question}"

        svc.add_node(Node("Questions", "table", position={"x": 80, "y": 80}, data={
            "columns": [
                {"key": "c0", "header": "question"},
                {"key": "c1", "header": "topic"},
            ],
            "rows": [
                {"__uid": "r0", "c0": "What is a node graph?", "c1": "graphs"},
                {"__uid": "r1", "c0": "Why escape {braces} in cells?", "c1": "templates"},
                {"__uid": "r2", "c0": "", "c1": ""},
            ],
        }))
        svc.add_node(Node("Persona", "textfields", position={"x": 80, "y": 320}, data={
            "fields": {"f0": "a patient tutor", "f1": "a terse engineer"},
            "fields_visibility": {"f1": False},
        }))
        svc.add_node(Node("Prompt", "prompt", position={"x": 420, "y": 180}, data={
            "prompt": prompt_text,
            "vars": template_variables(prompt_text),
            "llms": ["gpt-4o-mini"],
        }))
        svc.add_node(Node("Checker", "evaluator", position={"x": 760, "y": 180}, data={
            "language": "python",
            "code": "def evaluate(response):\n    return len(response.text)\n",
        }))
        svc.add_node(Node("Plot", "vis", position={"x": 1100, "y": 180}, data={}))

        svc.connect("Questions", "question", "Prompt", "question")
        svc.connect("Persona", "output", "Prompt", "persona")
        svc.connect("Prompt", "prompt", "Checker", "responseBatch")
        svc.connect("Checker", "output", "Plot", "input")

        for llm in svc.get_node("Prompt").data["llms"]:
            self.colors.get_color_and_set_if_not_found(llm)
        logger.info("Seeded demo flow")

    def reset(self, seed_demo: bool = False) -> None:
        self.service.reset()
        self.colors.reset()
        if seed_demo:
            self._seed_demo()


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

graph_state: Optional[GraphState] = None


def get_graph_state() -> GraphState:
    global graph_state
    if graph_state is None:
        graph_state = GraphState()
    return graph_state
