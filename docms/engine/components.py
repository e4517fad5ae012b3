"""
DocMS Component Graph — NetworkX-based startup wiring.

The runtime registers every component it constructs together with the
components it depends on. Start order is a topological sort of the graph;
stop order is its reverse.

Edges: component → dependency (component depends-on dependency).
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Protocol

import networkx as nx

from docms.engine.errors import DependencyCycleError

logger = logging.getLogger("docms.engine.components")


class Component(Protocol):
    """Anything the runtime can start and stop."""

    def start(self) -> None: ...

    def stop(self) -> None: ...


class ComponentGraph:
    """
    In-memory component dependency graph backed by a NetworkX DiGraph.

    Usage:
        graph = ComponentGraph()
        graph.add("database", tx)
        graph.add("scheduler", scheduler, depends_on=["tasks", "database"])
        for name in graph.start_order(): ...
    """

    def __init__(self) -> None:
        self._graph = nx.DiGraph()
        self._components: Dict[str, Any] = {}

    def add(self, name: str, component: Any, depends_on: Iterable[str] = ()) -> None:
        """Register a component and the components it depends on."""
        if name in self._components:
            raise DependencyCycleError(
                f"Component '{name}' registered twice", component=name
            )
        self._components[name] = component
        self._graph.add_node(name)
        for dep in depends_on:
            self._graph.add_edge(name, dep)
        logger.debug(f"Registered component: {name} → {list(depends_on)}")

    def get(self, name: str) -> Any:
        return self._components[name]

    def __contains__(self, name: object) -> bool:
        return name in self._components

    def start_order(self) -> List[str]:
        """
        Return component names with every dependency before its dependents.

        Raises:
            DependencyCycleError: a dependency is not registered, or the
                graph contains a cycle.
        """
        missing = [n for n in self._graph.nodes if n not in self._components]
        if missing:
            dependents = sorted(
                {src for src, dst in self._graph.edges if dst in missing}
            )
            raise DependencyCycleError(
                f"Unknown component(s) {sorted(missing)} required by {dependents}",
                component=dependents[0] if dependents else None,
            )

        try:
            # Edges point at dependencies, so dependencies sort last; reverse it
            order = list(reversed(list(nx.topological_sort(self._graph))))
        except nx.NetworkXUnfeasible as e:
            cycle = [edge[0] for edge in nx.find_cycle(self._graph)]
            raise DependencyCycleError(
                f"Component dependency cycle: {' → '.join(cycle + cycle[:1])}",
                cycle=cycle,
            ) from e
        return order

    def stop_order(self) -> List[str]:
        return list(reversed(self.start_order()))

    def dependencies(self, name: str) -> List[str]:
        """Direct dependencies of a component."""
        if not self._graph.has_node(name):
            return []
        return sorted(self._graph.successors(name))

    def dependents(self, name: str) -> List[str]:
        """All components that transitively depend on ``name``."""
        if not self._graph.has_node(name):
            return []
        return sorted(nx.ancestors(self._graph, name))

    @property
    def names(self) -> List[str]:
        return list(self._components)

    def stats(self) -> Dict[str, int]:
        return {
            "components": self._graph.number_of_nodes(),
            "edges": self._graph.number_of_edges(),
        }
