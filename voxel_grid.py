"""In-memory voxel host: a sparse block store that generation writes into."""
from collections import Counter, defaultdict

from blocks import BLOCK_ID, BLOCK_NAME, resolve_material


class VoxelGrid(object):
    """
    Sparse {(x, y, z): block id} store implementing the host calls used by
    TerrainService. `on_yield` is called from yield_control(), e.g. to pump a
    render loop between batches.
    """
    def __init__(self, catalog=None, on_yield=None):
        self.catalog = BLOCK_ID if catalog is None else catalog
        self.names = BLOCK_NAME if catalog is None else {v: k for k, v in catalog.items()}
        self.on_yield = on_yield
        self.blocks = {}
        self._columns = defaultdict(dict)
        self.yields = 0
        self.placements = 0
        self.removals = 0

    def resolve_material(self, name):
        return resolve_material(name, self.catalog)

    def place_voxel(self, x, y, z, material_id):
        self.blocks[(x, y, z)] = material_id
        self._columns[(x, z)][y] = material_id
        self.placements += 1

    def remove_voxel(self, x, y, z):
        # removing an empty slot is allowed
        if self.blocks.pop((x, y, z), None) is not None:
            del self._columns[(x, z)][y]
        self.removals += 1

    def yield_control(self):
        self.yields += 1
        if self.on_yield is not None:
            self.on_yield()

    def __getitem__(self, position):
        return self.blocks.get(tuple(position), 0)

    def __contains__(self, position):
        return tuple(position) in self.blocks

    def __len__(self):
        return len(self.blocks)

    def column(self, x, z):
        """Sorted [(y, block id)] for one column."""
        return sorted(self._columns.get((x, z), {}).items())

    def column_top(self, x, z):
        column = self.column(x, z)
        if not column:
            return None
        return column[-1][0]

    def material_counts(self):
        """Block name -> number of placed voxels."""
        return Counter(self.names.get(b, b) for b in self.blocks.values())
