import math

SEED = 1337

# Domain of columns, centred on the origin: x in [-WORLD_WIDTH/2, WORLD_WIDTH/2).
WORLD_WIDTH = 128 #x
WORLD_DEPTH = 128 #z
# World y of the flat floor (height 0).
BASE_FLOOR = 0

# Material names resolved against the host's block catalog before generation.
DIRT_MATERIAL = 'Dirt'
GRASS_MATERIAL = 'Grass'
SNOW_MATERIAL = 'Snow'
# Surface voxels at or above this height use snow instead of grass.
SNOW_HEIGHT = 6

MAX_HILL_HEIGHT = 8
MAX_VALLEY_DEPTH = 6

# Noise layers. Frequency is in cycles per column.
HILL_FREQUENCY = 0.03
HILL_OCTAVES = 4
HILL_GAIN = 0.5
HILL_THRESHOLD = 0.35
VALLEY_FREQUENCY = 0.05
VALLEY_OCTAVES = 3
VALLEY_GAIN = 0.5
VALLEY_THRESHOLD = 0.4
# Valley field seed is SEED + VALLEY_SEED_OFFSET so it is decorrelated from the hills.
VALLEY_SEED_OFFSET = 7919

# Flat square around the origin that is always height 0 (odd size keeps it centred).
SAFE_ZONE_SIZE = 9

# Columns emitted between cooperative yields to the host.
BATCH_SIZE = 256

# Relaxation sweep cap; None uses MAX_VALLEY_DEPTH.
MAX_SWEEPS = None

# Enable ANSI colors in logs.
LOG_COLOR = True

# Minimum level printed: DEBUG, INFO, WARN or ERROR.
LOG_LEVEL = 'INFO'


class ConfigurationError(ValueError):
    """Settings or materials that make a generation run impossible."""


_SETTINGS = (
    # name, config constant, type
    ('seed', 'SEED', int),
    ('width', 'WORLD_WIDTH', int),
    ('depth', 'WORLD_DEPTH', int),
    ('base_floor', 'BASE_FLOOR', int),
    ('dirt_material', 'DIRT_MATERIAL', str),
    ('grass_material', 'GRASS_MATERIAL', str),
    ('snow_material', 'SNOW_MATERIAL', str),
    ('snow_height', 'SNOW_HEIGHT', int),
    ('max_hill_height', 'MAX_HILL_HEIGHT', int),
    ('max_valley_depth', 'MAX_VALLEY_DEPTH', int),
    ('hill_frequency', 'HILL_FREQUENCY', float),
    ('hill_octaves', 'HILL_OCTAVES', int),
    ('hill_gain', 'HILL_GAIN', float),
    ('hill_threshold', 'HILL_THRESHOLD', float),
    ('valley_frequency', 'VALLEY_FREQUENCY', float),
    ('valley_octaves', 'VALLEY_OCTAVES', int),
    ('valley_gain', 'VALLEY_GAIN', float),
    ('valley_threshold', 'VALLEY_THRESHOLD', float),
    ('valley_seed_offset', 'VALLEY_SEED_OFFSET', int),
    ('safe_zone_size', 'SAFE_ZONE_SIZE', int),
    ('batch_size', 'BATCH_SIZE', int),
    ('max_sweeps', 'MAX_SWEEPS', int),
)


class TerrainSettings(object):
    """
    Immutable parameters for one generation run.

    Every value defaults to the matching module constant above, so editing
    this file changes the defaults and keyword overrides change a single run.
    """
    __slots__ = tuple(name for name, _, _ in _SETTINGS) + ('_frozen',)

    def __init__(self, **overrides):
        unknown = set(overrides) - set(name for name, _, _ in _SETTINGS)
        if unknown:
            raise ConfigurationError(f"unknown settings {sorted(unknown)}")
        module = globals()
        for name, const, kind in _SETTINGS:
            value = overrides.get(name, module.get(const))
            if value is not None:
                try:
                    converted = kind(value)
                except (TypeError, ValueError) as e:
                    raise ConfigurationError(f"{name}={value!r} is not a {kind.__name__}") from e
                # int() would truncate 8.9 to 8
                if kind is int and converted != value:
                    raise ConfigurationError(f"{name}={value!r} is not a whole number")
                value = converted
            object.__setattr__(self, name, value)
        if self.max_sweeps is None:
            object.__setattr__(self, 'max_sweeps', self.max_valley_depth)
        self._validate()
        object.__setattr__(self, '_frozen', True)

    def __setattr__(self, name, value):
        raise AttributeError(f"TerrainSettings is read-only ({name})")

    def __repr__(self):
        return 'TerrainSettings(%s)' % ', '.join(
            f"{name}={getattr(self, name)!r}" for name, _, _ in _SETTINGS)

    def _validate(self):
        for name in ('width', 'depth'):
            value = getattr(self, name)
            if value <= 0 or value % 2:
                raise ConfigurationError(f"{name} must be positive and even, got {value}")
        for name in ('max_hill_height', 'max_valley_depth', 'batch_size',
                     'hill_octaves', 'valley_octaves'):
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"{name} must be positive, got {getattr(self, name)}")
        if self.safe_zone_size < 0:
            raise ConfigurationError(f"safe_zone_size must be >= 0, got {self.safe_zone_size}")
        if self.max_sweeps < 0:
            raise ConfigurationError(f"max_sweeps must be >= 0, got {self.max_sweeps}")
        for name in ('hill_threshold', 'valley_threshold'):
            value = getattr(self, name)
            if not -1.0 <= value <= 1.0:
                raise ConfigurationError(f"{name} must lie in [-1, 1], got {value}")
        for name in ('hill_frequency', 'valley_frequency', 'hill_gain', 'valley_gain'):
            value = getattr(self, name)
            if not math.isfinite(value) or value <= 0:
                raise ConfigurationError(f"{name} must be a positive number, got {value}")

    @property
    def x_min(self):
        return -(self.width // 2)

    @property
    def z_min(self):
        return -(self.depth // 2)

    @property
    def safe_half_extent(self):
        return self.safe_zone_size // 2

    @property
    def materials(self):
        """Role -> material name for the three surface materials."""
        return {
            'dirt': self.dirt_material,
            'grass': self.grass_material,
            'snow': self.snow_material,
        }

    def replace(self, **overrides):
        values = {name: getattr(self, name) for name, _, _ in _SETTINGS}
        if self.max_sweeps == self.max_valley_depth:
            # derived default, follow a new depth
            del values['max_sweeps']
        values.update(overrides)
        return TerrainSettings(**values)
