import os
import sys
import threading

import numpy as np
import pytest

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from blocks import BLOCK_ID
from config import ConfigurationError, TerrainSettings
import terrain
from terrain import CancelToken, GenerationCancelled, ReadySignal, TerrainService
from voxel_grid import VoxelGrid


def _settings(**kw):
    base = dict(seed=2024, width=32, depth=32, base_floor=0, snow_height=5,
                hill_threshold=0.1, valley_threshold=0.1, hill_frequency=0.09,
                valley_frequency=0.1, max_hill_height=8, max_valley_depth=6,
                safe_zone_size=5, batch_size=64, max_sweeps=40)
    base.update(kw)
    return TerrainSettings(**base)


def _run(settings, grid=None):
    grid = VoxelGrid() if grid is None else grid
    service = TerrainService(grid, settings)
    assert service.generate()
    return service, grid


def test_disabled_features_give_flat_grass():
    settings = _settings(width=8, depth=8, hill_threshold=1.0, valley_threshold=1.0,
                         batch_size=10)
    service, grid = _run(settings)
    assert not service.height_map.heights.any()
    counts = grid.material_counts()
    assert counts['Grass'] == 64
    assert 'Snow' not in counts
    hm = service.height_map
    for x, z in hm.columns():
        column = grid.column(x, z)
        assert column[-1] == (0, BLOCK_ID['Grass'])
        on_edge = x in (-4, 3) or z in (-4, 3)
        if on_edge:
            # nothing beyond the map hides the side of an edge column
            assert len(column) == 1 + settings.max_valley_depth
        else:
            assert column == [(0, BLOCK_ID['Grass'])]
    assert counts['Dirt'] == 28 * settings.max_valley_depth


def test_generation_is_deterministic():
    a, grid_a = _run(_settings())
    b, grid_b = _run(_settings())
    assert np.array_equal(a.height_map.heights, b.height_map.heights)
    assert grid_a.blocks == grid_b.blocks
    c, grid_c = _run(_settings(seed=2025))
    assert grid_a.blocks != grid_c.blocks


def test_generated_terrain_properties():
    settings = _settings()
    service, grid = _run(settings)
    hm = service.height_map
    assert service.state == terrain.READY
    assert service.smoothing.converged
    assert (hm.heights > 0).any()
    half = settings.safe_half_extent
    for x, z in hm.columns():
        h = hm[x, z]
        if abs(x) <= half and abs(z) <= half:
            assert h == 0
        surface = BLOCK_ID['Snow'] if h >= settings.snow_height else BLOCK_ID['Grass']
        assert grid[(x, settings.base_floor + h, z)] == surface
        assert grid.column_top(x, z) == settings.base_floor + h
    assert service.voxels_placed == len(grid)
    assert service.columns_emitted == len(hm)


def test_valleys_walkable_after_generation():
    settings = _settings(hill_threshold=1.0, valley_threshold=-0.2, max_sweeps=None)
    service, grid = _run(settings)
    hm = service.height_map
    assert (hm.heights < 0).any()
    assert hm.slope_violations() == []


def test_yields_between_batches():
    ticks = []
    grid = VoxelGrid(on_yield=lambda: ticks.append(len(grid)))
    settings = _settings(width=8, depth=8, batch_size=10)
    service, _ = _run(settings, grid)
    assert grid.yields == 6
    # each yield sees more voxels than the one before
    assert ticks == sorted(ticks) and len(set(ticks)) == 6


def test_steps_reports_progress():
    service = TerrainService(VoxelGrid(), _settings(width=8, depth=8, batch_size=16))
    assert list(service.steps()) == [16, 32, 48, 64]
    assert service.state == terrain.READY


def test_ready_fires_once_and_calls_back():
    calls = []
    service = TerrainService(VoxelGrid(), _settings(width=8, depth=8))
    service.ready.add_callback(calls.append)
    assert not service.ready.is_set()
    service.generate()
    assert calls == [service.ready]
    assert service.ready.fire() is False
    assert calls == [service.ready]
    late = []
    service.ready.add_callback(late.append)
    assert late == [service.ready]
    assert service.ready.result() is None


def test_waiting_consumer_spawns_after_ready():
    service = TerrainService(VoxelGrid(), _settings(width=16, depth=16))
    spawned = []

    def controller():
        if service.ready.wait(10):
            service.ready.result()
            spawned.append(service.spawn_position())

    thread = threading.Thread(target=controller, name="Controller")
    thread.start()
    service.generate()
    thread.join(10)
    assert spawned == [(0, 1, 0)]


def test_missing_material_fails_cleanly():
    grid = VoxelGrid(catalog={'Dirt': 1, 'Grass': 2})
    service = TerrainService(grid, _settings())
    assert service.generate() is False
    assert service.state == terrain.FAILED
    assert service.height_map is None
    assert len(grid) == 0 and grid.placements == 0
    assert service.ready.is_set()
    assert isinstance(service.ready.exception, ConfigurationError)
    with pytest.raises(ConfigurationError, match="Snow"):
        service.ready.result()


def test_custom_material_names():
    grid = VoxelGrid(catalog={'Soil': 7, 'Turf': 8, 'Ice': 9})
    settings = _settings(width=8, depth=8, dirt_material='Soil', grass_material='Turf',
                         snow_material='Ice', hill_threshold=1.0, valley_threshold=1.0)
    service, _ = _run(settings, grid)
    assert service.materials == {'dirt': 7, 'grass': 8, 'snow': 9}
    assert grid.material_counts()['Turf'] == 64


def test_cancel_at_yield_clears_terrain():
    token = CancelToken()
    grid = VoxelGrid(on_yield=token.cancel)
    service = TerrainService(grid, _settings(batch_size=100), cancel_token=token)
    assert service.generate() is False
    assert service.state == terrain.CANCELLED
    assert service.columns_emitted == 100
    assert len(grid) == 0
    with pytest.raises(GenerationCancelled):
        service.ready.result()


def test_cancel_before_start_places_nothing():
    token = CancelToken()
    token.cancel()
    grid = VoxelGrid()
    service = TerrainService(grid, _settings(), cancel_token=token)
    assert service.generate() is False
    assert service.state == terrain.CANCELLED
    assert grid.placements == 0
    assert isinstance(service.ready.exception, GenerationCancelled)


class FlakyGrid(VoxelGrid):
    """Host whose writes start failing after `limit` placements."""
    def __init__(self, limit, **kw):
        super().__init__(**kw)
        self.limit = limit

    def place_voxel(self, x, y, z, material_id):
        if self.placements >= self.limit:
            raise IOError("voxel store went away")
        super().place_voxel(x, y, z, material_id)


def test_host_error_mid_emission_fails_and_clears():
    grid = FlakyGrid(20)
    service = TerrainService(grid, _settings(width=8, depth=8, batch_size=10))
    with pytest.raises(IOError):
        service.generate()
    assert service.state == terrain.FAILED
    assert grid.placements == 20
    assert len(grid) == 0
    assert service.ready.is_set()
    assert isinstance(service.ready.exception, IOError)
    with pytest.raises(IOError):
        service.ready.result()


def test_host_error_notifies_waiting_callback():
    calls = []
    service = TerrainService(FlakyGrid(0), _settings(width=8, depth=8))
    service.ready.add_callback(calls.append)
    with pytest.raises(IOError):
        list(service.steps())
    assert calls == [service.ready]
    assert service.state == terrain.FAILED


def test_failing_ready_callback_keeps_terrain():
    calls = []

    def broken(signal):
        raise ValueError("listener bug")

    grid = VoxelGrid()
    service = TerrainService(grid, _settings(width=8, depth=8))
    service.ready.add_callback(broken)
    service.ready.add_callback(calls.append)
    with pytest.raises(ValueError):
        service.generate()
    assert service.state == terrain.READY
    assert calls == [service.ready]
    assert service.ready.result() is None
    assert len(grid) == service.voxels_placed > 0


def test_service_runs_once():
    service, _ = _run(_settings(width=8, depth=8))
    with pytest.raises(RuntimeError):
        service.generate()


def test_clear_after_generation():
    service, grid = _run(_settings())
    assert len(grid) > 0
    service.clear()
    assert len(grid) == 0
    service.clear()
    assert len(grid) == 0


def test_clear_without_generation():
    grid = VoxelGrid()
    grid.place_voxel(0, 0, 0, BLOCK_ID['Stone'])
    TerrainService(grid, _settings(width=8, depth=8)).clear()
    assert len(grid) == 0


def test_ready_result_timeout():
    signal = ReadySignal()
    with pytest.raises(TimeoutError):
        signal.result(timeout=0.01)
    assert signal.fire(ValueError("boom"))
    with pytest.raises(ValueError):
        signal.result()


def test_spawn_position_follows_floor():
    service = TerrainService(VoxelGrid(), _settings(base_floor=64))
    assert service.spawn_position() == (0, 65, 0)
