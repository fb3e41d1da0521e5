"""Bounded-depth color octree used for palette quantization.

Each level of the tree consumes one bit from every channel of a pixel
(R, G, B and A), so a node has up to 16 children instead of the classic 8.
Nodes are stored in an arena owned by the tree and addressed by integer
handles; parent child slots and the per-level reduction stacks hold handles.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from .types import BIT_DEPTH, AllocationError, Color, PaletteError

logger = logging.getLogger(__name__)

N_CHILDREN = 16


def child_index(pixel: Sequence[int], level: int) -> int:
    """Compute the child slot a pixel falls into at a tree level.

    Takes bit ``7 - level`` of each channel and packs them into a nibble,
    red as the most significant bit and alpha as the least.

    Args:
        pixel: Channel values (R, G, B, A), each 0-255
        level: Tree level of the parent node (0-7)

    Returns:
        Child index in the range 0-15

    Raises:
        ValueError: If level is outside 0-7
    """
    if not 0 <= level < BIT_DEPTH:
        raise ValueError(f"level must be in [0, {BIT_DEPTH - 1}], got {level}")

    shift = 7 - level
    r, g, b, a = pixel[0], pixel[1], pixel[2], pixel[3]
    return (
        ((r >> shift) & 1) << 3
        | ((g >> shift) & 1) << 2
        | ((b >> shift) & 1) << 1
        | ((a >> shift) & 1)
    )


@dataclass
class OctreeNode:
    """A subtree rooted at a given level; a quantization bucket once a leaf."""

    level: int
    is_leaf: bool = False
    pixel_count: int = 0
    sum_red: int = 0
    sum_green: int = 0
    sum_blue: int = 0
    sum_alpha: int = 0
    children: List[Optional[int]] = field(default_factory=lambda: [None] * N_CHILDREN)

    def average(self) -> Color:
        """Averaged RGBA quad, each channel truncated by integer division."""
        if self.pixel_count == 0:
            raise PaletteError(f"Cannot average an empty node at level {self.level}")
        n = self.pixel_count
        return (
            self.sum_red // n,
            self.sum_green // n,
            self.sum_blue // n,
            self.sum_alpha // n,
        )


class Octree:
    """Color octree with per-level LIFO reduction stacks.

    ``level_queues[i]`` holds the handles of every non-leaf node created at
    level ``i`` that has not been reduced or released, most recent last.
    """

    def __init__(self, max_nodes: Optional[int] = None):
        """Create an empty tree with its root allocated at level 0.

        Args:
            max_nodes: Optional cap on live nodes. Allocating past it raises
                AllocationError, as does running out of memory.

        Raises:
            AllocationError: If the root node cannot be allocated
        """
        self.max_nodes = max_nodes
        self.leaf_count = 0
        self.level_queues: List[List[int]] = [[] for _ in range(BIT_DEPTH)]
        self._nodes: List[Optional[OctreeNode]] = []
        self._live = 0
        self._destroyed = False
        self.root: Optional[int] = self._create_node(0)

    def __enter__(self) -> "Octree":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.destroy()

    @property
    def node_count(self) -> int:
        """Number of live nodes in the arena."""
        return self._live

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    def node(self, handle: int) -> OctreeNode:
        """Resolve a handle to its node.

        Raises:
            KeyError: If the handle was released or never allocated
        """
        if not 0 <= handle < len(self._nodes) or self._nodes[handle] is None:
            raise KeyError(f"No live node for handle {handle}")
        return self._nodes[handle]

    def level_queue_sizes(self) -> List[int]:
        return [len(queue) for queue in self.level_queues]

    def _check_alive(self) -> None:
        if self._destroyed:
            raise PaletteError("Octree has been destroyed")

    def _create_node(self, level: int) -> int:
        if self.max_nodes is not None and self._live >= self.max_nodes:
            raise AllocationError(
                f"Node budget of {self.max_nodes} exhausted allocating level {level}"
            )

        try:
            node = OctreeNode(level=level)
            handle = len(self._nodes)
            self._nodes.append(node)
        except MemoryError as e:
            raise AllocationError(f"Out of memory allocating level {level} node") from e

        self._live += 1

        if level == BIT_DEPTH:
            node.is_leaf = True
            self.leaf_count += 1
        else:
            self.level_queues[level].append(handle)

        return handle

    def _release(self, handle: int) -> None:
        """Free a subtree, keeping leaf_count and the level stacks in step."""
        node = self._nodes[handle]

        if node.is_leaf:
            self.leaf_count -= 1
        else:
            self.level_queues[node.level].remove(handle)
            for child in node.children:
                if child is not None:
                    self._release(child)

        self._nodes[handle] = None
        self._live -= 1

    def insert_pixel(self, pixel: Sequence[int]) -> None:
        """Add one pixel, creating nodes along its path on demand.

        The walk stops at the first leaf: a level-8 bucket, or a shallower
        node that has already been reduced.

        Args:
            pixel: Channel values (R, G, B, A), each 0-255

        Raises:
            ValueError: If pixel does not hold four 8-bit values
            AllocationError: If a node on the path cannot be allocated; the
                pixel is not counted
        """
        self._check_alive()

        if len(pixel) != 4:
            raise ValueError(f"Expected 4 channel values, got {len(pixel)}")
        r, g, b, a = (int(c) for c in pixel)
        if not (0 <= r <= 255 and 0 <= g <= 255 and 0 <= b <= 255 and 0 <= a <= 255):
            raise ValueError(f"Channel values must be in [0, 255], got {tuple(pixel)}")

        node = self._nodes[self.root]
        while not node.is_leaf:
            index = child_index((r, g, b, a), node.level)
            child = node.children[index]
            if child is None:
                child = self._create_node(node.level + 1)
                node.children[index] = child
            node = self._nodes[child]

        node.pixel_count += 1
        node.sum_red += r
        node.sum_green += g
        node.sum_blue += b
        node.sum_alpha += a

    def reduce(self) -> bool:
        """Collapse one internal node into a leaf.

        Picks the most recently created node from the deepest non-empty
        level stack, folds every child's count and channel sums into it and
        releases the children.

        Returns:
            True if a node was collapsed, False if the tree is irreducible
        """
        self._check_alive()

        for level in range(BIT_DEPTH - 1, -1, -1):
            queue = self.level_queues[level]
            if not queue:
                continue

            handle = queue.pop()
            node = self._nodes[handle]
            merged = 0

            for i, child_handle in enumerate(node.children):
                if child_handle is None:
                    continue
                child = self._nodes[child_handle]
                node.pixel_count += child.pixel_count
                node.sum_red += child.sum_red
                node.sum_green += child.sum_green
                node.sum_blue += child.sum_blue
                node.sum_alpha += child.sum_alpha
                self._release(child_handle)
                node.children[i] = None
                merged += 1

            node.is_leaf = True
            self.leaf_count += 1

            logger.debug(
                f"Reduced level {level} node {handle}: merged {merged} children, "
                f"{self.leaf_count} leaves left"
            )
            return True

        return False

    def collect_leaves(self) -> List[OctreeNode]:
        """All current leaves, depth-first in child index order."""
        self._check_alive()

        leaves: List[OctreeNode] = []
        self._collect(self.root, leaves)
        return leaves

    def _collect(self, handle: int, leaves: List[OctreeNode]) -> None:
        node = self._nodes[handle]
        if node.is_leaf:
            leaves.append(node)
            return
        for child in node.children:
            if child is not None:
                self._collect(child, leaves)

    def destroy(self) -> None:
        """Release every node. Safe to call more than once."""
        if self._destroyed:
            return

        logger.debug(f"Destroying octree with {self._live} nodes, {self.leaf_count} leaves")

        self._nodes = []
        self.level_queues = [[] for _ in range(BIT_DEPTH)]
        self._live = 0
        self.leaf_count = 0
        self.root = None
        self._destroyed = True
