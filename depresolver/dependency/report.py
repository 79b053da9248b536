"""Human readable views of a resolution result."""

from __future__ import annotations

from typing import Iterable, List, Optional, Set

import networkx as nx

from depresolver.dependency.model import DependencyId, ResolvedDependency
from depresolver.dependency.resolver import ResolvedMap

STATUS_OK = "✅"
STATUS_ERROR = "❌"
STATUS_MISSING = "❓"
ALREADY_SHOWN = "⤴"


def to_graph(resolved: ResolvedMap) -> nx.DiGraph:
    """Dependency graph of a resolution result.

    Nodes are coordinates with a ``result`` attribute (None for coordinates
    that were declared but never resolved, e.g. excluded ones). Edges point
    from dependent to dependency.
    """
    graph = nx.DiGraph()
    for dependency_id, result in resolved.items():
        graph.add_node(dependency_id, result=result)
    for dependency_id, result in resolved.items():
        for child in result.dependencies:
            if child.dependency_id not in graph:
                graph.add_node(child.dependency_id, result=None)
            graph.add_edge(dependency_id, child.dependency_id)
    return graph


def guess_roots(resolved: ResolvedMap) -> List[DependencyId]:
    """Coordinates nothing else depends on, or all of them when every node is in a cycle."""
    graph = to_graph(resolved)
    roots = [node for node in resolved if graph.in_degree(node) == 0]
    return roots or list(resolved)


def _label(dependency_id: DependencyId, result: Optional[ResolvedDependency]) -> str:
    text = f"{dependency_id.group}:{dependency_id.name}:{dependency_id.version}"
    if dependency_id.classifier:
        text += f":{dependency_id.classifier}"
    if result is None:
        return f"{STATUS_MISSING} {text}"
    if result.has_error:
        return f"{STATUS_ERROR} {text}"
    source = f" from {result.resolved_from.name}" if result.resolved_from is not None else ""
    return f"{STATUS_OK} {text}{source}"


def pretty_print(resolved: ResolvedMap, roots: Iterable[DependencyId] = ()) -> str:
    """Render the resolution result as a tree.

    Args:
        resolved: Result of ``resolve``.
        roots: Coordinates to start from; guessed when empty.

    Returns:
        Multi-line text; subtrees already printed once are marked with ``⤴``.
    """
    roots = list(roots) or guess_roots(resolved)
    lines: List[str] = []
    shown: Set[DependencyId] = set()

    def render(dependency_id: DependencyId, first: str, rest: str) -> None:
        result = resolved.get(dependency_id)
        children = list(result.dependencies) if result is not None else []
        label = _label(dependency_id, result)
        if dependency_id in shown and children:
            lines.append(f"{first}{label} {ALREADY_SHOWN}")
            return
        shown.add(dependency_id)
        lines.append(f"{first}{label}")
        for index, child in enumerate(children):
            last = index == len(children) - 1
            render(
                child.dependency_id,
                rest + ("╘═ " if last else "╞═ "),
                rest + ("   " if last else "│  "),
            )

    for root in roots:
        render(root, "", "")
    return "\n".join(lines)


def unresolved_report(resolved: ResolvedMap) -> str:
    """List every coordinate that failed together with the reasons."""
    lines: List[str] = []
    for dependency_id, result in resolved.items():
        if result.has_error:
            lines.append(f"{STATUS_ERROR} {dependency_id}")
            lines.append(f"    {result.log}")
    return "\n".join(lines)


__all__ = [
    "to_graph",
    "guess_roots",
    "pretty_print",
    "unresolved_report",
]
