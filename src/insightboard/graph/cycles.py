"""Cycle detection over task dependency edges."""

from __future__ import annotations

from collections.abc import Mapping, Sequence


def find_cycle_task_ids(adjacency: Mapping[str, Sequence[str]]) -> set[str]:
    """Return ids of tasks that belong to a dependency cycle.

    Strongly connected components are computed with Tarjan's algorithm. A
    component counts as a cycle when it has more than one member or when its
    only member depends on itself. Edges pointing at ids missing from
    ``adjacency`` are ignored.

    Depth-first traversal runs on an explicit work stack of
    ``(node, next_edge_position)`` frames so large graphs never hit the
    interpreter recursion limit.
    """

    index_of: dict[str, int] = {}
    low_link: dict[str, int] = {}
    component_stack: list[str] = []
    on_stack: set[str] = set()
    cycle_ids: set[str] = set()
    next_index = 0

    for root in adjacency:
        if root in index_of:
            continue

        index_of[root] = low_link[root] = next_index
        next_index += 1
        component_stack.append(root)
        on_stack.add(root)
        work: list[tuple[str, int]] = [(root, 0)]

        while work:
            node, edge_position = work[-1]
            neighbors = adjacency[node]
            if edge_position < len(neighbors):
                work[-1] = (node, edge_position + 1)
                neighbor = neighbors[edge_position]
                if neighbor not in adjacency:
                    continue
                if neighbor not in index_of:
                    index_of[neighbor] = low_link[neighbor] = next_index
                    next_index += 1
                    component_stack.append(neighbor)
                    on_stack.add(neighbor)
                    work.append((neighbor, 0))
                elif neighbor in on_stack:
                    low_link[node] = min(low_link[node], index_of[neighbor])
                continue

            work.pop()
            if work:
                parent = work[-1][0]
                low_link[parent] = min(low_link[parent], low_link[node])

            if low_link[node] != index_of[node]:
                continue

            component: list[str] = []
            while True:
                member = component_stack.pop()
                on_stack.discard(member)
                component.append(member)
                if member == node:
                    break

            if len(component) > 1:
                cycle_ids.update(component)
            elif node in adjacency[node]:
                cycle_ids.add(node)

    return cycle_ids
