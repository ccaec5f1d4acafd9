#std/external libs
import math
import numpy

#local libs
from noise_field import NoiseField
import logutil

# 4-connected column neighbours (dx, dz).
NEIGHBOURS = ((1, 0), (-1, 0), (0, 1), (0, -1))


class HeightMap(object):
    """
    Signed column heights over a width x depth domain centred on the origin.

    Columns are addressed by world (x, z) with x in [-width/2, width/2); the
    backing array is indexed [x - x_min, z - z_min].
    """
    def __init__(self, width, depth, heights=None):
        self.width = int(width)
        self.depth = int(depth)
        self.x_min = -(self.width // 2)
        self.z_min = -(self.depth // 2)
        if heights is None:
            self.heights = numpy.zeros((self.width, self.depth), dtype=numpy.int32)
        else:
            heights = numpy.array(heights, dtype=numpy.int32)
            if heights.shape != (self.width, self.depth):
                raise ValueError(f"heights shape {heights.shape} != {(self.width, self.depth)}")
            self.heights = heights

    @classmethod
    def from_settings(cls, settings):
        return cls(settings.width, settings.depth)

    def __len__(self):
        return self.width * self.depth

    def __contains__(self, position):
        return self.in_bounds(*position)

    def __getitem__(self, position):
        x, z = position
        if not self.in_bounds(x, z):
            raise KeyError(position)
        return int(self.heights[x - self.x_min, z - self.z_min])

    def __setitem__(self, position, value):
        x, z = position
        if not self.in_bounds(x, z):
            raise KeyError(position)
        self.heights[x - self.x_min, z - self.z_min] = value

    def in_bounds(self, x, z):
        return (self.x_min <= x < self.x_min + self.width and
                self.z_min <= z < self.z_min + self.depth)

    def get(self, x, z, default=None):
        if not self.in_bounds(x, z):
            return default
        return int(self.heights[x - self.x_min, z - self.z_min])

    def columns(self):
        """Yield every (x, z) in row-major order."""
        for x in range(self.x_min, self.x_min + self.width):
            for z in range(self.z_min, self.z_min + self.depth):
                yield x, z

    def neighbours(self, x, z):
        """Yield (nx, nz, height) for the 4 neighbours; height is None off the map."""
        for dx, dz in NEIGHBOURS:
            nx, nz = x + dx, z + dz
            yield nx, nz, self.get(nx, nz)

    def coordinates(self):
        """World x and z of every column as two (width, depth) arrays."""
        xs = numpy.arange(self.x_min, self.x_min + self.width)
        zs = numpy.arange(self.z_min, self.z_min + self.depth)
        return numpy.meshgrid(xs, zs, indexing='ij')

    def copy(self):
        return HeightMap(self.width, self.depth, self.heights.copy())

    def slope_violations(self, columns=None):
        """
        Columns whose height is below (neighbour - 1) for some neighbour,
        treating off-map neighbours as height 0. `columns` is an optional
        boolean mask restricting which columns are checked.
        """
        padded = numpy.pad(self.heights, 1, mode='constant', constant_values=0)
        lowest_allowed = numpy.maximum.reduce([
            padded[2:, 1:-1], padded[:-2, 1:-1], padded[1:-1, 2:], padded[1:-1, :-2],
        ]) - 1
        bad = self.heights < lowest_allowed
        if columns is not None:
            bad &= columns
        return [(int(i) + self.x_min, int(k) + self.z_min) for i, k in zip(*numpy.nonzero(bad))]


def feature_heights(values, threshold, amplitude):
    """
    Magnitude of a hill or valley for each noise value: the excess over
    `threshold`, normalised by (1 - threshold), scaled by `amplitude`, floored
    and clamped to >= 1. Zero where the value does not exceed the threshold.
    A threshold of 1.0 or more disables the feature.
    """
    values = numpy.asarray(values, dtype=numpy.float64)
    if threshold >= 1.0:
        return numpy.zeros(values.shape, dtype=numpy.int32)
    excess = (values - threshold) / (1.0 - threshold)
    magnitude = numpy.maximum(numpy.floor(excess * amplitude), 1)
    return numpy.where(values > threshold, magnitude, 0).astype(numpy.int32)


class HeightMapBuilder(object):
    """Builds the raw (unsmoothed) height map from the hill and valley fields."""

    def __init__(self, settings):
        self.settings = settings
        self.hills = NoiseField(settings.seed, settings.hill_frequency,
            octaves=settings.hill_octaves, gain=settings.hill_gain)
        self.valleys = NoiseField(settings.seed + settings.valley_seed_offset,
            settings.valley_frequency, octaves=settings.valley_octaves,
            gain=settings.valley_gain)
        for name in ('hill', 'valley'):
            if getattr(settings, name + '_threshold') >= 1.0:
                logutil.log("HEIGHTMAP", f"{name} threshold >= 1.0, {name}s disabled", level="DEBUG")

    def in_safe_zone(self, x, z):
        if self.settings.safe_zone_size <= 0:
            return False
        half = self.settings.safe_half_extent
        return abs(x) <= half and abs(z) <= half

    def column_height(self, x, z):
        """Height of a single column, independent of every other column."""
        s = self.settings
        if self.in_safe_zone(x, z):
            return 0
        if s.hill_threshold < 1.0:
            value = self.hills.sample(x, z)
            if value > s.hill_threshold:
                excess = (value - s.hill_threshold) / (1.0 - s.hill_threshold)
                return max(1, int(math.floor(excess * s.max_hill_height)))
        if s.valley_threshold < 1.0:
            value = self.valleys.sample(x, z)
            if value > s.valley_threshold:
                excess = (value - s.valley_threshold) / (1.0 - s.valley_threshold)
                return -max(1, int(math.floor(excess * s.max_valley_depth)))
        return 0

    def safe_zone_mask(self, xs, zs):
        if self.settings.safe_zone_size <= 0:
            return numpy.zeros(xs.shape, dtype=bool)
        half = self.settings.safe_half_extent
        return (numpy.abs(xs) <= half) & (numpy.abs(zs) <= half)

    def build(self):
        s = self.settings
        height_map = HeightMap.from_settings(s)
        xs, zs = height_map.coordinates()
        hill = feature_heights(self.hills.sample_grid(xs, zs),
            s.hill_threshold, s.max_hill_height)
        valley = feature_heights(self.valleys.sample_grid(xs, zs),
            s.valley_threshold, s.max_valley_depth)
        # A hill wins over a valley on the same column.
        heights = numpy.where(hill > 0, hill, -valley)
        heights[self.safe_zone_mask(xs, zs)] = 0
        height_map.heights[:, :] = heights
        logutil.log("HEIGHTMAP", f"built {s.width}x{s.depth} hills={int((heights > 0).sum())} "
                    f"valleys={int((heights < 0).sum())} min={int(heights.min())} "
                    f"max={int(heights.max())}", level="DEBUG")
        return height_map
