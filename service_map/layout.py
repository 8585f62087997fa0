"""
Layout algorithms for service map nodes.

Left-to-right layered layout:
- Each node's column is its dependency depth (longest path from a node
  with no incoming edges)
- Nodes in a column are grouped by namespace
- Columns and rows are spaced by the actual node sizes so nothing overlaps

Layout functions never mutate their input; they return new Node copies.
"""

from collections import defaultdict, deque
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import Node, Edge


# Default layout parameters
COL_GAP = 80      # Horizontal gap between columns
ROW_GAP = 40      # Vertical gap between nodes in a column
MARGIN_X = 60     # X coordinate of the first column
MARGIN_Y = 60     # Y coordinate of the first row


def _strongly_connected(node_ids: list[str], outgoing: dict[str, list[str]]) -> dict[str, int]:
    """
    Map each node id to the number of its strongly connected component.

    Iterative Tarjan, visiting roots in input order so the numbering is
    deterministic.
    """
    index: dict[str, int] = {}
    lowlink: dict[str, int] = {}
    stack: list[str] = []
    on_stack: set[str] = set()
    component: dict[str, int] = {}
    component_count = 0

    for root in node_ids:
        if root in index:
            continue
        index[root] = lowlink[root] = len(index)
        stack.append(root)
        on_stack.add(root)
        work = [(root, 0)]

        while work:
            current, next_child = work[-1]
            successors = outgoing[current]
            if next_child < len(successors):
                work[-1] = (current, next_child + 1)
                succ = successors[next_child]
                if succ not in index:
                    index[succ] = lowlink[succ] = len(index)
                    stack.append(succ)
                    on_stack.add(succ)
                    work.append((succ, 0))
                elif succ in on_stack:
                    lowlink[current] = min(lowlink[current], index[succ])
                continue

            work.pop()
            if work:
                parent = work[-1][0]
                lowlink[parent] = min(lowlink[parent], lowlink[current])
            if lowlink[current] == index[current]:
                while True:
                    member = stack.pop()
                    on_stack.discard(member)
                    component[member] = component_count
                    if member == current:
                        break
                component_count += 1

    return component


def compute_depths(nodes: list["Node"], edges: list["Edge"]) -> dict[str, int]:
    """
    Assign each node a dependency depth.

    Depth is the length of the longest path from any node with no
    incoming edges. Cycles are condensed first: all nodes of a cycle
    share one depth, and the longest path is taken over the resulting
    acyclic graph of components, so every edge that is not part of a
    cycle points to a strictly deeper column. Nodes not reachable from
    a node with no incoming edges (isolated nodes, source-less cycles
    and whatever hangs off them) get depth 0.

    Args:
        nodes: All nodes in the graph
        edges: Directed edges; edges naming unknown nodes are ignored

    Returns:
        Mapping of node id to depth
    """
    outgoing: dict[str, list[str]] = {n.id: [] for n in nodes}
    has_incoming: set[str] = set()

    for edge in edges:
        if edge.source in outgoing and edge.target in outgoing:
            outgoing[edge.source].append(edge.target)
            has_incoming.add(edge.target)

    node_ids = list(outgoing)
    sources = [node_id for node_id in node_ids if node_id not in has_incoming]

    # Only nodes reachable from a source are layered
    reachable = set(sources)
    queue: deque[str] = deque(sources)
    while queue:
        current = queue.popleft()
        for target in outgoing[current]:
            if target not in reachable:
                reachable.add(target)
                queue.append(target)

    component = _strongly_connected(node_ids, outgoing)

    # Edges between distinct reachable components form a DAG
    successors: dict[int, set[int]] = defaultdict(set)
    remaining: dict[int, int] = defaultdict(int)
    for node_id in node_ids:
        if node_id not in reachable:
            continue
        for target in outgoing[node_id]:
            src, dst = component[node_id], component[target]
            if src != dst and dst not in successors[src]:
                successors[src].add(dst)
                remaining[dst] += 1

    # Longest path over the component DAG (Kahn order); the start
    # components are exactly the sources' own singleton components
    comp_depth: dict[int, int] = {component[s]: 0 for s in sources}
    queue_c: deque[int] = deque(component[s] for s in sources)
    while queue_c:
        current_c = queue_c.popleft()
        for target_c in sorted(successors[current_c]):
            comp_depth[target_c] = max(comp_depth.get(target_c, 0), comp_depth[current_c] + 1)
            remaining[target_c] -= 1
            if remaining[target_c] == 0:
                queue_c.append(target_c)

    return {
        node_id: comp_depth[component[node_id]] if node_id in reachable else 0
        for node_id in node_ids
    }


def compute_layout(
    nodes: list["Node"],
    edges: list["Edge"],
    col_gap: float = COL_GAP,
    row_gap: float = ROW_GAP,
    margin_x: float = MARGIN_X,
    margin_y: float = MARGIN_Y,
) -> list["Node"]:
    """
    Compute layered positions for a set of nodes based on their edges.

    Args:
        nodes: Nodes to arrange
        edges: Edges defining the dependencies
        col_gap: Horizontal gap between columns
        row_gap: Vertical gap between nodes in a column
        margin_x: X coordinate of the first column
        margin_y: Y coordinate of the first node in each column

    Returns:
        New nodes, in input order, with only x/y changed
    """
    if not nodes:
        return []

    depth = compute_depths(nodes, edges)

    columns: dict[int, list["Node"]] = defaultdict(list)
    for node in nodes:
        columns[depth[node.id]].append(node)

    positions: dict[str, tuple[float, float]] = {}
    x_offset = margin_x

    for col_idx in sorted(columns):
        # Stable sort keeps input order among equal namespaces
        col_nodes = sorted(columns[col_idx], key=lambda n: n.namespace or "")
        max_width = max(n.effective_width for n in col_nodes)

        y_offset = margin_y
        for node in col_nodes:
            positions[node.id] = (x_offset, y_offset)
            y_offset += node.effective_height + row_gap

        x_offset += max_width + col_gap

    return [
        node.model_copy(update={"x": positions[node.id][0], "y": positions[node.id][1]})
        for node in nodes
    ]
