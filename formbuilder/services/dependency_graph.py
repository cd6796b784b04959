"""showIf dependency graph analysis.

This module inspects the graph formed by showIf rules (field -> field it
depends on). References to unknown fields are already rejected by the form
schema, so the remaining structural problem is a cycle, which makes every
field on it unreachable.
"""

from collections import defaultdict
from typing import Dict, List

from formbuilder.schemas.form import Form
from formbuilder.logging_config import get_logger

logger = get_logger(__name__)


class DependencyGraph:
    """Service for analysing showIf dependencies."""

    @staticmethod
    def problems(form: Form) -> list[str]:
        """List showIf cycles.

        Args:
            form: Form to analyse

        Returns:
            Human-readable problems, empty if the graph is sound
        """
        problems = []
        graph = DependencyGraph.build_graph(form)
        for cycle in DependencyGraph.find_cycles(graph, [f.id for f in form.fields]):
            problems.append(f"Conditional fields form a cycle: {' -> '.join(cycle)}")

        return problems

    @staticmethod
    def build_graph(form: Form) -> Dict[str, List[str]]:
        """Build adjacency list from each field to the field it depends on.

        Args:
            form: Form to analyse

        Returns:
            Dictionary mapping field_id -> list of referenced field IDs
        """
        graph = defaultdict(list)
        for field in form.fields:
            if field.show_if:
                graph[field.id].append(field.show_if.field_id)
        return graph

    @staticmethod
    def find_cycles(graph: Dict[str, List[str]], order: List[str]) -> List[List[str]]:
        """Detect cycles using DFS with a recursion stack.

        Each cycle is reported once, starting from the node that appears
        first in ``order``.

        Args:
            graph: Adjacency list representation
            order: Node IDs in schema order

        Returns:
            List of cycles, each a path that ends where it starts
        """
        visited = set()
        rec_stack: List[str] = []
        cycles = []

        def dfs(node: str) -> None:
            visited.add(node)
            rec_stack.append(node)

            for neighbor in graph.get(node, []):
                if neighbor in rec_stack:
                    # Back edge found = cycle
                    start = rec_stack.index(neighbor)
                    cycles.append(rec_stack[start:] + [neighbor])
                elif neighbor not in visited:
                    dfs(neighbor)

            rec_stack.pop()

        for node in order:
            if node not in visited:
                dfs(node)

        if cycles:
            logger.debug(f"Found {len(cycles)} showIf cycle(s)")
        return cycles
