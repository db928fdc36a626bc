"""Radix tree keyed by strings, for longest-prefix lookups.

Keys are compared as UTF-8 bytes. Each node keeps up to 16 children in
two parallel lists (first byte, child); the 17th child promotes the
node to a 256-slot table indexed by the first byte.

Writers serialize on the tree's lock. Readers take no lock: a frozen
tree never changes, and the lookup cache is swapped in whole, so a
reader sees either the old mapping or the new one.

Usage::

    tree: RadixTree[App] = RadixTree()
    tree.insert("/api", api_app)
    tree.longest_prefix("/api/users")   # ("/api", api_app)
"""

import threading
from collections.abc import Iterator
from types import MappingProxyType

SMALL_CHILDREN = 16


class _Node[V]:
    __slots__ = ("children", "dense", "key", "labels", "leaf", "prefix", "value")

    def __init__(self, prefix: bytes = b"") -> None:
        self.prefix = prefix
        self.leaf = False
        self.key = ""
        self.value: V | None = None
        self.labels: list[int] = []
        self.children: list[_Node[V]] = []
        self.dense: list[_Node[V] | None] | None = None

    def set_leaf(self, key: str, value: V) -> None:
        self.leaf = True
        self.key = key
        self.value = value

    def child(self, label: int) -> "_Node[V] | None":
        if self.dense is not None:
            return self.dense[label]
        labels = self.labels
        for i in range(len(labels)):
            if labels[i] == label:
                return self.children[i]
        return None

    def put_child(self, child: "_Node[V]") -> None:
        """Add *child* or replace the one with the same first byte."""
        label = child.prefix[0]
        if self.dense is not None:
            self.dense[label] = child
            return
        for i, existing in enumerate(self.labels):
            if existing == label:
                self.children[i] = child
                return
        if len(self.labels) < SMALL_CHILDREN:
            self.labels.append(label)
            self.children.append(child)
            return
        dense: list[_Node[V] | None] = [None] * 256
        for existing, node in zip(self.labels, self.children, strict=True):
            dense[existing] = node
        dense[label] = child
        self.dense = dense
        self.labels = []
        self.children = []

    def iter_children(self) -> Iterator["_Node[V]"]:
        if self.dense is not None:
            yield from (node for node in self.dense if node is not None)
        else:
            yield from self.children

    def compact(self) -> None:
        """Replace the dense table with parallel lists, recursively."""
        if self.dense is not None:
            pairs = [(i, node) for i, node in enumerate(self.dense) if node is not None]
            self.labels = [label for label, _ in pairs]
            self.children = [node for _, node in pairs]
            self.dense = None
        for child in self.children:
            child.compact()


def _common_prefix_len(a: bytes, b: bytes) -> int:
    limit = min(len(a), len(b))
    i = 0
    while i < limit and a[i] == b[i]:
        i += 1
    return i


class RadixTree[V]:
    """String-keyed radix tree with exact and longest-prefix lookup.

    Args:
        cache_size: When positive, remember up to this many successful
            ``longest_prefix`` answers. The cache is dropped on insert.
    """

    __slots__ = ("_cache", "_cache_size", "_frozen", "_generation", "_lock", "_root", "_size")

    def __init__(self, *, cache_size: int = 0) -> None:
        self._root: _Node[V] = _Node()
        self._size = 0
        self._frozen = False
        self._lock = threading.Lock()
        self._generation = 0
        self._cache_size = cache_size
        self._cache: MappingProxyType[str, tuple[str, V]] = MappingProxyType({})

    @property
    def frozen(self) -> bool:
        return self._frozen

    def __len__(self) -> int:
        return self._size

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self._find(key) is not None

    def __repr__(self) -> str:
        state = "frozen" if self._frozen else "open"
        return f"<RadixTree size={self._size} {state}>"

    def insert(self, key: str, value: V) -> bool:
        """Insert or replace *key*. Returns ``False`` once the tree is frozen."""
        with self._lock:
            if self._frozen:
                return False
            node = self._root
            rest = key.encode()
            while True:
                if not rest:
                    self._store(node, key, value)
                    break
                child = node.child(rest[0])
                if child is None:
                    fresh: _Node[V] = _Node(rest)
                    self._store(fresh, key, value)
                    node.put_child(fresh)
                    break
                common = _common_prefix_len(child.prefix, rest)
                if common == len(child.prefix):
                    node, rest = child, rest[common:]
                    continue
                # split "child" at the divergence point
                split: _Node[V] = _Node(child.prefix[:common])
                child.prefix = child.prefix[common:]
                split.put_child(child)
                node.put_child(split)
                rest = rest[common:]
                if rest:
                    fresh = _Node(rest)
                    self._store(fresh, key, value)
                    split.put_child(fresh)
                else:
                    self._store(split, key, value)
                break
            self._generation += 1
            if self._cache:
                self._cache = MappingProxyType({})
            return True

    def _store(self, node: _Node[V], key: str, value: V) -> None:
        if not node.leaf:
            self._size += 1
        node.set_leaf(key, value)

    def _find(self, key: str) -> _Node[V] | None:
        node = self._root
        rest = key.encode()
        while rest:
            child = node.child(rest[0])
            if child is None or not rest.startswith(child.prefix):
                return None
            node, rest = child, rest[len(child.prefix) :]
        return node if node.leaf else None

    def lookup(self, key: str) -> V | None:
        """Value stored under exactly *key*, or ``None``."""
        node = self._find(key)
        return node.value if node is not None else None

    def longest_prefix(self, key: str) -> tuple[str, V] | None:
        """The longest inserted key that is a prefix of *key*, with its value."""
        generation = self._generation
        cache = self._cache
        hit = cache.get(key)
        if hit is not None:
            return hit

        node = self._root
        best = (node.key, node.value) if node.leaf else None
        rest = key.encode()
        while rest:
            child = node.child(rest[0])
            if child is None or not rest.startswith(child.prefix):
                break
            node, rest = child, rest[len(child.prefix) :]
            if node.leaf:
                best = (node.key, node.value)

        if best is not None and self._cache_size > 0:
            self._remember(key, best, generation)
        return best  # type: ignore[return-value]

    def _remember(self, key: str, entry: tuple[str, V], generation: int) -> None:
        with self._lock:
            # an insert since the walk started may have changed the answer
            if generation != self._generation:
                return
            if len(self._cache) >= self._cache_size or key in self._cache:
                return
            updated = dict(self._cache)
            updated[key] = entry
            self._cache = MappingProxyType(updated)

    def freeze(self) -> None:
        """Make the tree read-only and drop the dense child tables."""
        with self._lock:
            if self._frozen:
                return
            self._root.compact()
            self._frozen = True

    def items(self) -> Iterator[tuple[str, V]]:
        """Every ``(key, value)`` pair, in byte order of the keys."""
        stack = [self._root]
        found: list[tuple[bytes, str, V]] = []
        while stack:
            node = stack.pop()
            if node.leaf:
                found.append((node.key.encode(), node.key, node.value))  # type: ignore[arg-type]
            stack.extend(node.iter_children())
        for _, key, value in sorted(found, key=lambda item: item[0]):
            yield key, value
