"""
Unit tests for the view-to-volume fusion core.
"""

import sys
from pathlib import Path
import numpy as np
import unittest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from multiview_volume import VolumeFuser
from multiview_volume.assembly import VolumeAssembler
from multiview_volume.depth import DepthFilter, alpha_to_depth, depth_to_index
from multiview_volume.extractor import ContributionBatch, ViewSampleExtractor, VoxelContribution
from multiview_volume.ingestion import DecodedImage
from multiview_volume.projection import FrameRotation, ViewAxis, VIEW_ORDER, remap_to_volume
from multiview_volume.synthetic import render_sphere_views, uniform_view
from multiview_volume.voxelizer import SparseGrid, VoxelAccumulator


class TestViewAxis(unittest.TestCase):
    """Tests for the view enumeration."""

    def test_labels(self):
        """Test suffix and signed label lookup."""
        assert ViewAxis.from_label("nx") is ViewAxis.NEG_X
        assert ViewAxis.from_label("-y") is ViewAxis.NEG_Y
        assert ViewAxis.from_label("+z") is ViewAxis.POS_Z
        assert [v.suffix for v in VIEW_ORDER] == ["nx", "ny", "nz", "px", "py", "pz"]

    def test_unknown_label(self):
        """Test that unknown labels are rejected."""
        with self.assertRaises(ValueError):
            ViewAxis.from_label("qx")

    def test_up_convention(self):
        """Views along y use +x as up, all others +y."""
        for view in VIEW_ORDER:
            expected = 0 if view.principal_axis == 1 else 1
            assert view.up_axis == expected


class TestRemap(unittest.TestCase):
    """Tests for the per-view axis remap table."""

    def test_neg_x_example(self):
        """View -x, N=4, row 1, column 2, depth index 3 -> (0, 1, 2)."""
        coords = remap_to_volume(ViewAxis.NEG_X, [3], [1], [2], 4)
        assert coords.tolist() == [[0, 1, 2]]

    def test_full_table(self):
        """Every view follows its fixed formula."""
        n = 8
        x, y, z = 5, 2, 6
        n1 = n - 1
        expected = {
            ViewAxis.NEG_X: (n1 - x, y, z),
            ViewAxis.NEG_Y: (n1 - z, n1 - y, x),
            ViewAxis.NEG_Z: (n1 - y, n1 - x, z),
            ViewAxis.POS_X: (x, n1 - y, z),
            ViewAxis.POS_Y: (n1 - z, y, n1 - x),
            ViewAxis.POS_Z: (y, x, z),
        }
        for view, coord in expected.items():
            result = remap_to_volume(view, [x], [y], [z], n)
            assert tuple(result[0]) == coord, view

    def test_remap_stays_in_range(self):
        """In-range inputs always remap to in-range coordinates."""
        n = 5
        grid = np.array(np.meshgrid(range(n), range(n), range(n))).reshape(3, -1)
        for view in VIEW_ORDER:
            coords = remap_to_volume(view, grid[0], grid[1], grid[2], n)
            assert coords.min() >= 0
            assert coords.max() <= n - 1


class TestDepth(unittest.TestCase):
    """Tests for depth decoding and rejection."""

    def test_index_deterministic_and_in_range(self):
        """round((1 - a) * (N - 1)) stays inside [0, N-1]."""
        alpha = np.linspace(0.0, 1.0, 101)
        for n in (1, 2, 4, 128):
            first = depth_to_index(alpha_to_depth(alpha), n)
            second = depth_to_index(alpha_to_depth(alpha), n)
            assert np.array_equal(first, second)
            assert first.min() >= 0
            assert first.max() <= n - 1

    def test_half_rounds_up(self):
        """Depth 0.5 at N=4 is index 2."""
        assert depth_to_index(np.array([0.5]), 4)[0] == 2

    def test_threshold_band(self):
        """a=0.99 is rejected, a=0.5 is kept."""
        depth_filter = DepthFilter(0.05)
        mask = depth_filter.mask(alpha_to_depth(np.array([0.99, 0.5, 0.01])))
        assert mask.tolist() == [False, True, False]

    def test_threshold_edges_kept(self):
        """Depth exactly t or 1 - t is inside the band."""
        depth_filter = DepthFilter(0.25)
        mask = depth_filter.mask(alpha_to_depth(np.array([0.75, 0.25, 0.8, 0.2])))
        assert mask.tolist() == [True, True, False, False]

    def test_invalid_threshold(self):
        with self.assertRaises(ValueError):
            DepthFilter(0.5)


class TestExtractor(unittest.TestCase):
    """Tests for view sample extraction."""

    def test_threshold_exclusion(self):
        """Only the mid-depth pixel survives."""
        rgba = np.zeros((1, 2, 4))
        rgba[0, 0] = [1.0, 0.0, 0.0, 0.99]
        rgba[0, 1] = [0.0, 1.0, 0.0, 0.5]

        extractor = ViewSampleExtractor(resolution=4, depth_threshold=0.05)
        batch = extractor.extract(DecodedImage.from_array(rgba), ViewAxis.NEG_X)

        assert len(batch) == 1
        assert batch.rejected == 1
        contribution = next(iter(batch))
        assert contribution.color == (0.0, 1.0, 0.0)
        assert contribution.weight == 1.0

    def test_pixel_to_voxel(self):
        """A pixel at row 1, column 2 of view -x lands on (0, 1, 2)."""
        rgba = np.zeros((4, 4, 4))
        rgba[1, 2] = [0.2, 0.4, 0.6, 0.1]  # depth 0.9 -> index 3

        extractor = ViewSampleExtractor(resolution=4)
        batch = extractor.extract(DecodedImage.from_array(rgba), ViewAxis.NEG_X)

        assert batch.coords.tolist() == [[0, 1, 2]]
        np.testing.assert_allclose(batch.colors[0], [0.2, 0.4, 0.6])

    def test_uint8_normalization(self):
        """8-bit images are normalized by 255."""
        rgba = np.zeros((1, 1, 4), dtype=np.uint8)
        rgba[0, 0] = [255, 0, 51, 128]

        batch = ViewSampleExtractor(resolution=16).extract(
            DecodedImage.from_array(rgba), ViewAxis.POS_Z
        )
        assert len(batch) == 1
        np.testing.assert_allclose(batch.colors[0], [1.0, 0.0, 0.2])

    def test_missing_image(self):
        """A failed decode contributes nothing."""
        batch = ViewSampleExtractor(resolution=4).extract(None, ViewAxis.POS_Y)
        assert len(batch) == 0
        assert batch.coords.shape == (0, 3)

    def test_linear_color(self):
        """Linear mode converts sRGB mid-gray."""
        rgba = uniform_view(1, 1, (0.5, 0.5, 0.5), 0.5)
        batch = ViewSampleExtractor(resolution=4, color_space="linear").extract(
            DecodedImage.from_array(rgba), ViewAxis.NEG_Z
        )
        np.testing.assert_allclose(batch.colors[0], [0.214041] * 3, atol=1e-5)

    def test_batch_from_contributions(self):
        """Batches round-trip through VoxelContribution."""
        items = [
            VoxelContribution(1, 2, 3, (0.1, 0.2, 0.3), 1.0),
            VoxelContribution(0, 0, 0, (1.0, 1.0, 1.0), 2.0),
        ]
        batch = ContributionBatch.from_contributions(items)
        assert list(batch) == items


class TestAccumulator(unittest.TestCase):
    """Tests for the alpha-weighted merge."""

    def test_merge_commutative(self):
        """Red then green equals green then red."""
        red = VoxelContribution(1, 1, 1, (1.0, 0.0, 0.0), 1.0)
        green = VoxelContribution(1, 1, 1, (0.0, 1.0, 0.0), 1.0)

        results = []
        for order in ([red, green], [green, red]):
            color, opacity = VoxelAccumulator(4).add(order).build()
            results.append((color.get_value((1, 1, 1)), opacity.get_value((1, 1, 1))))

        assert results[0] == results[1]
        assert results[0][0] == (0.5, 0.5, 0.0)
        assert results[0][1] == 2.0

    def test_single_contribution(self):
        """A lone contribution is stored unchanged."""
        color, opacity = VoxelAccumulator(4).add(
            [VoxelContribution(0, 1, 2, (0.25, 0.5, 0.75), 1.0)]
        ).build()
        assert color.get_value((0, 1, 2)) == (0.25, 0.5, 0.75)
        assert opacity.get_value((0, 1, 2)) == 1.0

    def test_weighted_average(self):
        """Weights scale each observation's share."""
        accumulator = VoxelAccumulator(4)
        accumulator.merge((0, 0, 0), (1.0, 0.0, 0.0), 3.0)
        accumulator.merge((0, 0, 0), (0.0, 0.0, 1.0), 1.0)
        color, opacity = accumulator.build()
        np.testing.assert_allclose(color.get_value((0, 0, 0)), (0.75, 0.0, 0.25))
        assert opacity.get_value((0, 0, 0)) == 4.0

    def test_out_of_range_dropped(self):
        """Coordinates equal to N or -1 never reach the grids."""
        accumulator = VoxelAccumulator(4)
        accumulator.merge((4, 0, 0), (1.0, 1.0, 1.0), 1.0)
        accumulator.merge((0, -1, 0), (1.0, 1.0, 1.0), 1.0)
        accumulator.merge((0, 0, 4), (1.0, 1.0, 1.0), 1.0)
        accumulator.merge((3, 3, 3), (1.0, 1.0, 1.0), 1.0)

        color, opacity = accumulator.build()
        assert accumulator.out_of_bounds == 3
        assert len(opacity) == 1
        assert (4, 0, 0) not in opacity
        assert (0, -1, 0) not in color

    def test_zero_weight_not_recorded(self):
        """No zero-opacity entries are ever stored."""
        accumulator = VoxelAccumulator(4)
        accumulator.merge((1, 1, 1), (1.0, 0.0, 0.0), 0.0)
        _, opacity = accumulator.build()
        assert len(opacity) == 0

    def test_opacity_not_clamped(self):
        """Six overlapping views give opacity 6."""
        accumulator = VoxelAccumulator(4)
        for _ in range(6):
            accumulator.merge((2, 2, 2), (0.5, 0.5, 0.5), 1.0)
        _, opacity = accumulator.build()
        assert opacity.get_value((2, 2, 2)) == 6.0

    def test_pairwise_merge_matches_sequential(self):
        """Per-view partial accumulation then merge equals one pass."""
        views = render_sphere_views(16)
        extractor = ViewSampleExtractor(resolution=16)
        batches = [extractor.extract(DecodedImage.from_array(views[v]), v) for v in VIEW_ORDER]

        sequential = VoxelAccumulator(16)
        for batch in batches:
            sequential.add(batch)

        left = VoxelAccumulator(16)
        right = VoxelAccumulator(16)
        for batch in batches[:3]:
            left.add(batch)
        for batch in batches[3:]:
            right.add(batch)
        combined = right.merge_accumulator(left)

        seq_color, seq_opacity = sequential.build()
        com_color, com_opacity = combined.build()

        assert len(seq_opacity) == len(com_opacity)
        for coord, value in seq_opacity.items():
            self.assertAlmostEqual(com_opacity.get_value(coord), value)
            np.testing.assert_allclose(com_color.get_value(coord), seq_color.get_value(coord))

    def test_grids_co_indexed(self):
        """Color and opacity hold exactly the same coordinates."""
        views = render_sphere_views(16)
        fuser = VolumeFuser(resolution=16)
        color, opacity = fuser.accumulate(views).build()
        assert sorted(c for c, _ in color.items()) == sorted(c for c, _ in opacity.items())
        assert all(value > 0 for _, value in opacity.items())


class TestSparseGrid(unittest.TestCase):
    """Tests for SparseGrid."""

    def test_background(self):
        grid = SparseGrid("Alpha", background=0.0)
        assert grid.get_value((5, 5, 5)) == 0.0
        assert not grid.is_active((5, 5, 5))

    def test_arrays_round_trip(self):
        grid = SparseGrid("RGB", background=(0.0, 0.0, 0.0))
        grid.set_value((2, 0, 1), (0.5, 0.25, 1.0))
        grid.set_value((0, 3, 0), (1.0, 0.0, 0.0))

        coords, values = grid.to_arrays()
        assert coords.tolist() == [[0, 3, 0], [2, 0, 1]]

        rebuilt = SparseGrid.from_arrays("RGB", coords, values, background=(0.0, 0.0, 0.0))
        assert rebuilt.get_value((2, 0, 1)) == (0.5, 0.25, 1.0)
        assert rebuilt.bounds() == ((0, 0, 0), (2, 3, 1))


class TestAssembler(unittest.TestCase):
    """Tests for volume assembly."""

    def test_rotation_is_metadata_only(self):
        """Assembly rotates the transform and leaves voxels untouched."""
        accumulator = VoxelAccumulator(4)
        accumulator.merge((0, 1, 0), (1.0, 0.0, 0.0), 1.0)
        color, opacity = accumulator.build()

        volume = VolumeAssembler().assemble(color, opacity, frame=3, resolution=4)

        assert volume.opacity.get_value((0, 1, 0)) == 1.0
        assert volume.color.get_value((0, 1, 0)) == (1.0, 0.0, 0.0)
        np.testing.assert_array_equal(volume.color.transform, volume.opacity.transform)
        # +y (rig up) becomes +z (renderer up)
        np.testing.assert_allclose(volume.world_positions(), [[0.0, 0.0, 1.0]], atol=1e-12)

    def test_custom_rotation(self):
        rotation = FrameRotation("z", 90.0)
        np.testing.assert_allclose(rotation.matrix @ [1.0, 0.0, 0.0], [0.0, 1.0, 0.0], atol=1e-12)

    def test_invalid_axis(self):
        with self.assertRaises(ValueError):
            FrameRotation("w")


class TestEndToEnd(unittest.TestCase):
    """Six 2x2 views at depth 0.5 with N=4."""

    def setUp(self):
        blue = (0.0, 0.0, 1.0)
        self.views = {
            ViewAxis.NEG_X: uniform_view(2, 2, blue, 0.5),
            ViewAxis.NEG_Y: uniform_view(2, 2, blue, 0.5),
            ViewAxis.NEG_Z: uniform_view(2, 2, (1.0, 0.0, 0.0), 0.5),
            ViewAxis.POS_X: uniform_view(2, 2, blue, 0.5),
            ViewAxis.POS_Y: uniform_view(2, 2, (0.0, 1.0, 0.0), 0.5),
            ViewAxis.POS_Z: uniform_view(2, 2, blue, 0.5),
        }
        self.volume = VolumeFuser(resolution=4).fuse(self.views, frame=1)

    def test_occupied_coordinates(self):
        """Occupancy matches the remap table exactly."""
        expected = {
            # -x: (3 - 2, y, z)
            (1, 0, 0), (1, 0, 1), (1, 1, 0), (1, 1, 1),
            # -y: (3 - z, 3 - y, 2)
            (3, 3, 2), (2, 3, 2), (3, 2, 2), (2, 2, 2),
            # -z: (3 - y, 3 - 2, z)
            (3, 1, 0), (3, 1, 1), (2, 1, 0), (2, 1, 1),
            # +x: (2, 3 - y, z)
            (2, 3, 0), (2, 3, 1), (2, 2, 0), (2, 2, 1),
            # +y: (3 - z, y, 3 - 2)
            (3, 0, 1), (2, 0, 1),
            # +z: (y, 2, z)
            (0, 2, 0), (0, 2, 1), (1, 2, 0), (1, 2, 1),
        }
        occupied = {coord for coord, _ in self.volume.opacity.items()}
        assert occupied == expected
        assert self.volume.voxel_count == 22

    def test_single_view_voxels(self):
        """Voxels seen by one view keep opacity 1 and the view color."""
        assert self.volume.opacity.get_value((1, 0, 0)) == 1.0
        assert self.volume.color.get_value((1, 0, 0)) == (0.0, 0.0, 1.0)
        assert self.volume.opacity.get_value((3, 1, 0)) == 1.0
        assert self.volume.color.get_value((3, 1, 0)) == (1.0, 0.0, 0.0)

    def test_coincident_voxels_averaged(self):
        """-z and +y both hit (3, 1, 1) and (2, 1, 1)."""
        for coord in [(3, 1, 1), (2, 1, 1)]:
            assert self.volume.opacity.get_value(coord) == 2.0
            assert self.volume.color.get_value(coord) == (0.5, 0.5, 0.0)

    def test_view_order_irrelevant(self):
        """Fusing from a differently ordered mapping gives the same volume."""
        reordered = dict(reversed(list(self.views.items())))
        other = VolumeFuser(resolution=4).fuse(reordered, frame=1)
        assert list(other.opacity.items()) == list(self.volume.opacity.items())
        assert list(other.color.items()) == list(self.volume.color.items())

    def test_view_without_alpha_is_empty(self):
        """An RGB array contributes nothing instead of failing the frame."""
        views = {
            ViewAxis.NEG_X: np.ones((2, 2, 3)),
            ViewAxis.POS_X: self.views[ViewAxis.POS_X],
        }
        volume = VolumeFuser(resolution=4).fuse(views, frame=1)

        occupied = {coord for coord, _ in volume.opacity.items()}
        assert occupied == {(2, 3, 0), (2, 3, 1), (2, 2, 0), (2, 2, 1)}


if __name__ == "__main__":
    unittest.main(verbosity=2)
