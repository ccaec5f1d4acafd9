import logutil


class VisibleVoxelEmitter(object):
    """
    Places the voxels of a finished height map that can be seen from outside
    the solid mass: one surface voxel per column plus dirt down each exposed
    side. Buried voxels are never placed.

    `host` provides place_voxel(x, y, z, material_id) and
    remove_voxel(x, y, z); `materials` maps 'dirt', 'grass' and 'snow' to
    resolved material ids.
    """
    def __init__(self, settings, host, materials):
        self.settings = settings
        self.host = host
        self.materials = materials
        self.placed = 0

    def surface_material(self, height):
        return 'snow' if height >= self.settings.snow_height else 'grass'

    def lowest_exposed(self, height_map, x, z):
        """Lowest height whose side face is open for column (x, z)."""
        lowest = height_map[x, z]
        for _, _, neighbour in height_map.neighbours(x, z):
            if neighbour is None:
                # nothing beyond the map edge hides the side
                return -self.settings.max_valley_depth
            lowest = min(lowest, neighbour)
        return lowest

    def column_voxels(self, height_map, x, z):
        """(x, y, z, role) records for one column, surface first."""
        base = self.settings.base_floor
        height = height_map[x, z]
        voxels = [(x, base + height, z, self.surface_material(height))]
        for level in range(self.lowest_exposed(height_map, x, z), height):
            voxels.append((x, base + level, z, 'dirt'))
        return voxels

    def emit_column(self, height_map, x, z):
        voxels = self.column_voxels(height_map, x, z)
        for vx, vy, vz, role in voxels:
            self.host.place_voxel(vx, vy, vz, self.materials[role])
        self.placed += len(voxels)
        return len(voxels)

    def emit(self, height_map, columns=None):
        """Place every column's voxels, yielding the count after each column."""
        if columns is None:
            columns = height_map.columns()
        for x, z in columns:
            yield self.emit_column(height_map, x, z)

    def clear(self, height_map):
        """Remove anything in the full vertical range of every column; safe to repeat."""
        s = self.settings
        removed = 0
        for x, z in height_map.columns():
            for level in range(-s.max_valley_depth, s.max_hill_height + 1):
                self.host.remove_voxel(x, s.base_floor + level, z)
                removed += 1
        logutil.log("EMIT", f"cleared {removed} voxel slots", level="DEBUG")
        return removed
