"""Tests for the color octree."""

import numpy as np
import pytest

from octpalette.octree import Octree, OctreeNode, child_index
from octpalette.types import AllocationError, PaletteError


class TestChildIndex:
    """Test cases for child_index function."""

    def test_channel_bit_positions(self):
        """Red is bit 3, green bit 2, blue bit 1, alpha bit 0."""
        assert child_index((0x80, 0, 0, 0), 0) == 8
        assert child_index((0, 0x80, 0, 0), 0) == 4
        assert child_index((0, 0, 0x80, 0), 0) == 2
        assert child_index((0, 0, 0, 0x80), 0) == 1

    def test_level_selects_bit(self):
        """Level n reads bit 7 - n of each channel."""
        pixel = (0x01, 0, 0, 0x01)
        assert child_index(pixel, 7) == 9
        assert child_index(pixel, 6) == 0
        assert child_index((0x40, 0x40, 0, 0), 1) == 12

    def test_all_bits_set(self):
        for level in range(8):
            assert child_index((255, 255, 255, 255), level) == 15
            assert child_index((0, 0, 0, 0), level) == 0

    def test_level_validation(self):
        with pytest.raises(ValueError, match="level must be in"):
            child_index((0, 0, 0, 0), 8)
        with pytest.raises(ValueError, match="level must be in"):
            child_index((0, 0, 0, 0), -1)


class TestOctreeNode:
    """Test cases for OctreeNode averaging."""

    def test_average_truncates(self):
        node = OctreeNode(
            level=8, is_leaf=True, pixel_count=3,
            sum_red=10, sum_green=11, sum_blue=765, sum_alpha=764,
        )
        assert node.average() == (3, 3, 255, 254)

    def test_average_empty_node(self):
        with pytest.raises(PaletteError):
            OctreeNode(level=3).average()


class TestOctreeInsert:
    """Test cases for pixel insertion."""

    def test_create_empty(self):
        tree = Octree()
        assert tree.leaf_count == 0
        assert tree.node_count == 1
        assert tree.level_queue_sizes() == [1, 0, 0, 0, 0, 0, 0, 0]
        assert tree.collect_leaves() == []

    def test_root_allocation_failure(self):
        with pytest.raises(AllocationError):
            Octree(max_nodes=0)

    def test_single_pixel_builds_full_path(self):
        tree = Octree()
        tree.insert_pixel((10, 20, 30, 255))

        assert tree.node_count == 9
        assert tree.leaf_count == 1
        assert tree.level_queue_sizes() == [1] * 8

        leaves = tree.collect_leaves()
        assert len(leaves) == 1
        assert leaves[0].level == 8
        assert leaves[0].average() == (10, 20, 30, 255)

    def test_repeated_pixel_reuses_path(self):
        tree = Octree()
        for _ in range(5):
            tree.insert_pixel((10, 20, 30, 255))

        assert tree.node_count == 9
        assert tree.leaf_count == 1
        leaf = tree.collect_leaves()[0]
        assert leaf.pixel_count == 5
        assert leaf.sum_red == 50
        assert leaf.sum_alpha == 1275

    def test_allocation_failure_does_not_count_pixel(self):
        tree = Octree(max_nodes=5)
        with pytest.raises(AllocationError, match="Node budget"):
            tree.insert_pixel((1, 2, 3, 4))

        assert tree.node_count == 5
        assert tree.leaf_count == 0
        assert tree.collect_leaves() == []

    def test_invalid_pixels(self):
        tree = Octree()
        with pytest.raises(ValueError, match="4 channel values"):
            tree.insert_pixel((1, 2, 3))
        with pytest.raises(ValueError, match=r"\[0, 255\]"):
            tree.insert_pixel((256, 0, 0, 0))
        assert tree.leaf_count == 0

    def test_accepts_bytes_and_numpy_rows(self):
        tree = Octree()
        tree.insert_pixel(bytes((1, 2, 3, 4)))
        tree.insert_pixel(np.array([1, 2, 3, 4], dtype=np.uint8))
        assert tree.leaf_count == 1
        assert tree.collect_leaves()[0].pixel_count == 2


class TestOctreeReduce:
    """Test cases for octree reduction."""

    def test_reduce_merges_siblings(self):
        """Two pixels differing only in the last alpha bit share a level 7 parent."""
        tree = Octree()
        tree.insert_pixel((0, 0, 0, 0))
        tree.insert_pixel((0, 0, 0, 1))
        assert tree.leaf_count == 2
        assert tree.node_count == 10

        assert tree.reduce() is True

        assert tree.leaf_count == 1
        assert tree.node_count == 8
        assert tree.level_queue_sizes() == [1, 1, 1, 1, 1, 1, 1, 0]

        leaves = tree.collect_leaves()
        assert len(leaves) == 1
        assert leaves[0].level == 7
        assert leaves[0].pixel_count == 2
        assert leaves[0].sum_alpha == 1
        assert leaves[0].average() == (0, 0, 0, 0)

    def test_reduce_single_child_keeps_leaf_count(self):
        tree = Octree()
        tree.insert_pixel((0, 0, 0, 0))
        tree.insert_pixel((0, 0, 0, 1))
        tree.reduce()

        # Level 6 node has the single collapsed level 7 leaf below it
        assert tree.reduce() is True
        assert tree.leaf_count == 1
        assert tree.collect_leaves()[0].level == 6

    def test_reduce_most_recent_first(self):
        """Within a level the most recently created node is reduced first."""
        tree = Octree()
        for alpha in (0, 1, 2, 3):
            tree.insert_pixel((0, 0, 0, alpha))
        assert tree.leaf_count == 4
        assert tree.level_queue_sizes()[7] == 2

        tree.reduce()

        assert tree.leaf_count == 3
        leaves = tree.collect_leaves()
        assert [leaf.level for leaf in leaves] == [8, 8, 7]
        assert [leaf.pixel_count for leaf in leaves] == [1, 1, 2]
        assert leaves[2].sum_alpha == 5

    def test_deepest_level_first(self):
        tree = Octree()
        tree.insert_pixel((0, 0, 0, 0))
        tree.insert_pixel((255, 0, 0, 0))
        tree.insert_pixel((255, 0, 0, 1))

        tree.reduce()

        leaves = tree.collect_leaves()
        assert [leaf.level for leaf in leaves] == [8, 7]
        assert leaves[1].pixel_count == 2

    def test_full_collapse(self):
        tree = Octree()
        for pixel in [(0, 0, 0, 0), (255, 255, 255, 255), (128, 64, 32, 16)]:
            tree.insert_pixel(pixel)

        while tree.reduce():
            pass

        assert tree.leaf_count == 1
        assert tree.node_count == 1
        assert tree.level_queue_sizes() == [0] * 8
        root = tree.node(tree.root)
        assert root.is_leaf
        assert root.pixel_count == 3
        assert tree.reduce() is False

    def test_insert_after_collapse_lands_in_leaf(self):
        tree = Octree()
        tree.insert_pixel((0, 0, 0, 0))
        while tree.reduce():
            pass

        tree.insert_pixel((200, 100, 50, 25))

        assert tree.leaf_count == 1
        assert tree.node_count == 1
        assert tree.node(tree.root).pixel_count == 2

    def test_conservation_and_leaf_count(self):
        """Pixel totals survive every reduction step and leaf_count stays exact."""
        rng = np.random.default_rng(0)
        pixels = rng.integers(0, 256, size=(120, 4), dtype=np.uint8)

        tree = Octree()
        for pixel in pixels:
            tree.insert_pixel(pixel)

        while True:
            leaves = tree.collect_leaves()
            assert len(leaves) == tree.leaf_count
            assert sum(leaf.pixel_count for leaf in leaves) == len(pixels)
            assert sum(leaf.sum_red for leaf in leaves) == int(pixels[:, 0].sum())

            before = tree.leaf_count
            if not tree.reduce():
                break
            assert tree.leaf_count <= before

        assert tree.leaf_count == 1


class TestOctreeLifecycle:
    """Test cases for destruction and handle lookup."""

    def test_destroy_is_idempotent(self):
        tree = Octree()
        tree.insert_pixel((1, 2, 3, 4))

        tree.destroy()
        tree.destroy()

        assert tree.destroyed
        assert tree.node_count == 0
        assert tree.leaf_count == 0
        assert tree.root is None

    def test_destroyed_tree_rejects_use(self):
        tree = Octree()
        tree.destroy()

        with pytest.raises(PaletteError, match="destroyed"):
            tree.insert_pixel((1, 2, 3, 4))
        with pytest.raises(PaletteError, match="destroyed"):
            tree.reduce()
        with pytest.raises(PaletteError, match="destroyed"):
            tree.collect_leaves()

    def test_context_manager_destroys(self):
        with Octree() as tree:
            tree.insert_pixel((1, 2, 3, 4))
            assert tree.node_count == 9
        assert tree.destroyed

    def test_context_manager_destroys_on_error(self):
        with pytest.raises(AllocationError):
            with Octree(max_nodes=3) as tree:
                tree.insert_pixel((1, 2, 3, 4))
        assert tree.destroyed

    def test_released_handle_lookup(self):
        tree = Octree()
        tree.insert_pixel((0, 0, 0, 0))
        tree.insert_pixel((0, 0, 0, 1))
        assert tree.node(9).is_leaf

        tree.reduce()

        with pytest.raises(KeyError):
            tree.node(9)
        with pytest.raises(KeyError):
            tree.node(1000)
