"""树工具的单元测试：组装、展开与防环判断。"""

from app.packages.rbac.utils.tree import (
    build_tree,
    collect_ancestor_ids,
    collect_subtree_ids,
    flatten_tree,
    would_create_cycle,
)


def _node(node_id, parent_id=None, sort_order=0):
    return {"id": node_id, "parent_id": parent_id, "sort_order": sort_order}


def test_build_tree_orders_siblings_by_sort_then_id():
    """同级节点按 (sort_order, id) 排序，每层都生效。"""
    nodes = [
        _node(1, None, 10),
        _node(2, None, 1),
        _node(3, 1, 5),
        _node(4, 1, 5),
        _node(5, 1, 0),
    ]

    forest = build_tree(nodes)

    assert [root["id"] for root in forest] == [2, 1]
    assert [child["id"] for child in forest[1]["children"]] == [5, 3, 4]


def test_build_tree_treats_unknown_parent_as_root():
    """父级不在输入中的节点提升为根。"""
    forest = build_tree([_node(1), _node(2, 99)])

    assert sorted(root["id"] for root in forest) == [1, 2]


def test_build_tree_surfaces_cycle_members_once():
    """环路节点也会出现在结果里，且每个 ID 只出现一次。"""
    nodes = [_node(1), _node(2, 3), _node(3, 2), _node(4, 1)]

    flat = flatten_tree(build_tree(nodes))
    ids = [item["id"] for item in flat]

    assert sorted(ids) == [1, 2, 3, 4]
    assert len(ids) == len(set(ids))


def test_build_tree_with_parent_key_returns_subtree():
    nodes = [_node(1), _node(2, 1), _node(3, 2), _node(4)]

    subtree = build_tree(nodes, parent_key=1)

    assert [item["id"] for item in subtree] == [2]
    assert [item["id"] for item in subtree[0]["children"]] == [3]


def test_flatten_tree_is_pre_order_and_strips_children():
    forest = build_tree([_node(1, None, 1), _node(2, 1), _node(3, None, 2), _node(4, 2)])

    flat = flatten_tree(forest)

    assert [item["id"] for item in flat] == [1, 2, 4, 3]
    assert all("children" not in item for item in flat)


def test_would_create_cycle():
    """A→B→C：把 A 挂到 C 下会成环，挂到根或无关节点则不会。"""
    parents = {"A": None, "B": "A", "C": "B", "D": None}

    assert would_create_cycle(parents, "A", "C") is True
    assert would_create_cycle(parents, "A", "A") is True
    assert would_create_cycle(parents, "A", None) is False
    assert would_create_cycle(parents, "C", "D") is False
    assert would_create_cycle(parents, "D", "C") is False


def test_would_create_cycle_accepts_node_lists():
    nodes = [_node(1), _node(2, 1), _node(3, 2)]

    assert would_create_cycle(nodes, 1, 3) is True
    assert would_create_cycle(nodes, 3, 1) is False


def test_collect_ancestor_ids():
    parents = {1: None, 2: 1, 3: 2, 4: 1, 5: None}

    assert collect_ancestor_ids(parents, [3]) == {1, 2}
    assert collect_ancestor_ids(parents, [5]) == set()


def test_collect_subtree_ids():
    parents = {1: None, 2: 1, 3: 2, 4: 1, 5: None}

    assert collect_subtree_ids(parents, 1) == {1, 2, 3, 4}
    assert collect_subtree_ids([_node(5)], 5) == {5}
