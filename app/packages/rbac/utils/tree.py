"""Tree helpers shared by menus and organizations.

Both entities are stored as adjacency lists (``parent_id``); these helpers turn a
flat list into a nested forest and guard parent reassignment against cycles.
Everything here is pure: no session, no I/O.

- Siblings are ordered by ``(sort_order, id)`` at every level;
- A node whose parent is not part of the input is treated as a root;
- Nodes trapped in a malformed cycle are surfaced as roots, so every input id
  appears in the output exactly once.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Mapping
from typing import Any, Callable, Dict, Iterable, List, Optional

Serializer = Callable[[Any], Dict[str, Any]]


def _get(node: Any, field: str) -> Any:
    if isinstance(node, Mapping):
        return node.get(field)
    return getattr(node, field, None)


def _to_dict(node: Any) -> Dict[str, Any]:
    if isinstance(node, Mapping):
        return dict(node)
    table = getattr(node, "__table__", None)
    if table is not None:
        return {column.key: getattr(node, column.key) for column in table.columns}
    return {key: value for key, value in vars(node).items() if not key.startswith("_")}


def build_tree(
    nodes: Iterable[Any],
    parent_key: Any = None,
    *,
    id_field: str = "id",
    parent_field: str = "parent_id",
    sort_field: str = "sort_order",
    serializer: Optional[Serializer] = None,
) -> List[Dict[str, Any]]:
    """把扁平节点组装成森林，每个节点渲染为附带 ``children`` 的字典。

    ``parent_key`` 为 ``None`` 时返回完整森林（含孤儿与环路节点）；
    传入具体 ID 时仅返回该节点下的子树。
    """

    items = list(nodes)
    render = serializer or _to_dict
    known_ids = {_get(item, id_field) for item in items}

    children_map: Dict[Any, List[Any]] = defaultdict(list)
    for item in items:
        parent = _get(item, parent_field)
        if parent_key is None and parent is not None and parent not in known_ids:
            parent = None
        children_map[parent].append(item)

    def sort_key(node: Any) -> tuple:
        return (_get(node, sort_field) or 0, _get(node, id_field))

    for siblings in children_map.values():
        siblings.sort(key=sort_key)

    visited: set[Any] = set()

    def build(node: Any) -> Dict[str, Any]:
        node_id = _get(node, id_field)
        visited.add(node_id)
        payload = render(node)
        children: List[Dict[str, Any]] = []
        for child in children_map.get(node_id, []):
            if _get(child, id_field) in visited:
                continue
            children.append(build(child))
        payload["children"] = children
        return payload

    forest = [build(root) for root in children_map.get(parent_key, [])]

    if parent_key is None:
        # 环路中的节点从根出发不可达，按排序键逐个提升为根
        for item in sorted(items, key=sort_key):
            if _get(item, id_field) not in visited:
                forest.append(build(item))
    return forest


def flatten_tree(forest: Iterable[Dict[str, Any]], *, children_key: str = "children") -> List[Dict[str, Any]]:
    """深度优先展开森林，返回去掉 ``children`` 的节点列表。"""
    flat: List[Dict[str, Any]] = []
    stack = list(reversed(list(forest)))
    while stack:
        node = stack.pop()
        flat.append({key: value for key, value in node.items() if key != children_key})
        stack.extend(reversed(node.get(children_key) or []))
    return flat


def parent_map(
    nodes: Iterable[Any],
    *,
    id_field: str = "id",
    parent_field: str = "parent_id",
) -> Dict[Any, Any]:
    """构建 ``{id: parent_id}`` 映射，便于在内存中模拟批量调整后的结构。"""
    return {_get(node, id_field): _get(node, parent_field) for node in nodes}


def would_create_cycle(
    nodes: Iterable[Any] | Mapping[Any, Any],
    node_id: Any,
    proposed_parent_id: Any,
    *,
    id_field: str = "id",
    parent_field: str = "parent_id",
) -> bool:
    """判断把 ``node_id`` 挂到 ``proposed_parent_id`` 下是否会形成环。

    ``nodes`` 可以是节点集合，也可以是 :func:`parent_map` 的结果。
    自父链向上遍历：回到 ``node_id`` 或步数超过节点总数即视为成环；
    遇到空父级或集合外的父级则终止。
    """

    if proposed_parent_id is None:
        return False
    if proposed_parent_id == node_id:
        return True

    parents = dict(nodes) if isinstance(nodes, Mapping) else parent_map(
        nodes, id_field=id_field, parent_field=parent_field
    )
    limit = len(parents)
    steps = 0
    current = proposed_parent_id
    while current is not None:
        if current == node_id:
            return True
        steps += 1
        if steps > limit:
            return True
        if current not in parents:
            return False
        current = parents[current]
    return False


def collect_ancestor_ids(nodes: Iterable[Any] | Mapping[Any, Any], node_ids: Iterable[Any]) -> set[Any]:
    """返回给定节点沿父链向上的全部祖先 ID（不含自身，环路安全）。"""
    parents = dict(nodes) if isinstance(nodes, Mapping) else parent_map(nodes)
    found: set[Any] = set()
    for node_id in node_ids:
        current = parents.get(node_id)
        seen = {node_id}
        while current is not None and current in parents and current not in seen:
            seen.add(current)
            found.add(current)
            current = parents.get(current)
    return found


def collect_subtree_ids(nodes: Iterable[Any] | Mapping[Any, Any], root_id: Any) -> set[Any]:
    """返回 ``root_id`` 及其全部子孙节点的 ID。"""
    parents = dict(nodes) if isinstance(nodes, Mapping) else parent_map(nodes)
    children: Dict[Any, List[Any]] = defaultdict(list)
    for node_id, parent_id in parents.items():
        children[parent_id].append(node_id)

    found = {root_id}
    stack = [root_id]
    while stack:
        for child in children.get(stack.pop(), []):
            if child not in found:
                found.add(child)
                stack.append(child)
    return found
