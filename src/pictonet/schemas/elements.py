"""Visual-composition element tree.

Elements form an arbitrarily deep hierarchy of labelled nodes. They are
stored as an arena: a flat list of nodes addressed by index, each knowing
its parent and its ordered children. Editing in place (rename, add,
remove) never has to chase nested ownership.

Documents use the nested form ``[{"id": label, "children": [...]}]``; the
tree validates from it and serializes back to it.
"""

from typing import Any, Iterator, Optional
from pydantic import BaseModel, Field, model_serializer, model_validator


class ElementNode(BaseModel):
    label: str
    parent: Optional[int] = None
    children: list[int] = Field(default_factory=list)


class ElementTree(BaseModel):
    """Arena of labelled nodes.

    Examples
    --------
    >>> tree = ElementTree.from_nested([{"id": "vaso", "children": [{"id": "gota"}]}])
    >>> tree.labels()
    ['vaso', 'gota']
    >>> tree.add("agua", parent=0)
    2
    >>> tree.to_nested()
    [{'id': 'vaso', 'children': [{'id': 'gota'}, {'id': 'agua'}]}]
    """

    nodes: list[ElementNode] = Field(default_factory=list)
    roots: list[int] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def accept_nested(cls, data: Any) -> Any:
        if isinstance(data, list):
            nodes, roots = _flatten(data)
            return {"nodes": nodes, "roots": roots}
        return data

    @model_serializer
    def serialize_nested(self) -> list[dict]:
        return self.to_nested()

    @classmethod
    def from_nested(cls, items: list[dict]) -> "ElementTree":
        return cls.model_validate(items)

    def to_nested(self) -> list[dict]:
        def build(index: int) -> dict:
            node = self.nodes[index]
            item = {"id": node.label}
            if node.children:
                item["children"] = [build(child) for child in node.children]
            return item

        return [build(root) for root in self.roots]

    def __len__(self) -> int:
        return len(self.nodes)

    def is_empty(self) -> bool:
        return not self.nodes

    def labels(self) -> list[str]:
        return [self.nodes[index].label for index, _ in self.walk()]

    def walk(self) -> Iterator[tuple[int, int]]:
        """Yield ``(index, depth)`` in depth-first document order."""
        stack = [(root, 0) for root in reversed(self.roots)]
        while stack:
            index, depth = stack.pop()
            yield index, depth
            for child in reversed(self.nodes[index].children):
                stack.append((child, depth + 1))

    def find(self, label: str) -> Optional[int]:
        for index, _ in self.walk():
            if self.nodes[index].label == label:
                return index
        return None

    def add(self, label: str, parent: Optional[int] = None) -> int:
        """Append a node under ``parent`` (a root when None) and return its index."""
        if parent is not None:
            self._check(parent)
        index = len(self.nodes)
        self.nodes.append(ElementNode(label=label, parent=parent))
        if parent is None:
            self.roots.append(index)
        else:
            self.nodes[parent].children.append(index)
        return index

    def rename(self, index: int, label: str) -> None:
        self._check(index)
        self.nodes[index].label = label

    def remove(self, index: int) -> None:
        """Remove a node with its whole subtree and compact the arena."""
        self._check(index)
        doomed = {index}
        stack = [index]
        while stack:
            for child in self.nodes[stack.pop()].children:
                doomed.add(child)
                stack.append(child)

        remap = {}
        kept = []
        for old, node in enumerate(self.nodes):
            if old not in doomed:
                remap[old] = len(kept)
                kept.append(node)

        for node in kept:
            node.parent = remap.get(node.parent) if node.parent is not None else None
            node.children = [remap[c] for c in node.children if c in remap]
        self.roots = [remap[r] for r in self.roots if r in remap]
        self.nodes = kept

    def outline(self) -> str:
        """Indented ``- label`` listing, two spaces per level."""
        return "\n".join(
            f"{'  ' * depth}- {self.nodes[index].label}" for index, depth in self.walk()
        )

    def _check(self, index: int) -> None:
        if not 0 <= index < len(self.nodes):
            raise IndexError(f"No element at index {index}")


def _flatten(items: list) -> tuple[list[dict], list[int]]:
    nodes: list[dict] = []
    roots: list[int] = []

    def visit(item: Any, parent: Optional[int]) -> None:
        if isinstance(item, str):
            item = {"id": item}
        if not isinstance(item, dict) or "id" not in item:
            raise ValueError(f"Element must be a mapping with an 'id', got {item!r}")
        index = len(nodes)
        nodes.append({"label": str(item["id"]), "parent": parent, "children": []})
        if parent is None:
            roots.append(index)
        else:
            nodes[parent]["children"].append(index)
        for child in item.get("children") or []:
            visit(child, index)

    for item in items:
        visit(item, None)
    return nodes, roots
