"""
Terrain generation service.

Sequences one generation run (height map, relief smoothing, voxel emission)
against a voxel host and announces completion through a one-shot ReadySignal.
Emission is the only phase that hands control back to the host, once every
`batch_size` columns.
"""
import itertools
import threading

import logutil
from config import ConfigurationError, TerrainSettings
from blocks import MaterialNotFound
from heightmap import HeightMap, HeightMapBuilder
from smoothing import ReliefSmoother
from emitter import VisibleVoxelEmitter

UNINITIALIZED = 'uninitialized'
BUILDING_HEIGHT_MAP = 'building_height_map'
SMOOTHING = 'smoothing'
EMITTING = 'emitting'
READY = 'ready'
FAILED = 'failed'
CANCELLED = 'cancelled'

_run_ids = itertools.count(1)


class GenerationCancelled(RuntimeError):
    """The run was cancelled at a yield point; placed voxels were cleared."""


class CancelToken(object):
    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self):
        return self._event.is_set()


class ReadySignal(object):
    """
    One-shot completion gate. fire() takes effect once; later calls are
    ignored. A failed run fires with the exception, which result() re-raises.
    """
    def __init__(self):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._exc = None
        self._callbacks = []

    def fire(self, exc=None):
        with self._lock:
            if self._event.is_set():
                return False
            self._exc = exc
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []
        error = None
        for fn in callbacks:
            try:
                fn(self)
            except Exception as e:
                logutil.log("TERRAIN", f"ready callback {fn!r} failed: {e!r}", level="ERROR")
                if error is None:
                    error = e
        if error is not None:
            raise error
        return True

    def add_callback(self, fn):
        """Call fn(signal) once the signal fires, immediately if it already has."""
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(fn)
                return
        fn(self)

    def is_set(self):
        return self._event.is_set()

    def wait(self, timeout=None):
        return self._event.wait(timeout)

    @property
    def exception(self):
        return self._exc

    def result(self, timeout=None):
        if not self._event.wait(timeout):
            raise TimeoutError("terrain not ready")
        if self._exc is not None:
            raise self._exc


class TerrainService(object):
    def __init__(self, host, settings=None, cancel_token=None):
        self.host = host
        self.settings = TerrainSettings() if settings is None else settings
        self.cancel_token = CancelToken() if cancel_token is None else cancel_token
        self.ready = ReadySignal()
        self.state = UNINITIALIZED
        self.run_id = None
        self.materials = None
        self.height_map = None
        self.smoothing = None
        self.columns_emitted = 0
        self.voxels_placed = 0

    def _set_state(self, state):
        logutil.log("TERRAIN", f"{self.state} -> {state}", level="DEBUG")
        self.state = state

    def resolve_materials(self):
        """Role -> material id, or ConfigurationError naming the missing material."""
        materials = {}
        for role, name in self.settings.materials.items():
            try:
                materials[role] = self.host.resolve_material(name)
            except MaterialNotFound as e:
                raise ConfigurationError(f"{role} material {name!r} not found") from e
        return materials

    def steps(self):
        """
        Run generation, yielding the number of emitted columns after every
        batch. The caller resumes the generator once the host has done its
        own work; iteration ends in READY, FAILED or CANCELLED.
        """
        if self.state != UNINITIALIZED:
            raise RuntimeError(f"terrain generation already ran (state {self.state})")
        s = self.settings
        self.run_id = next(_run_ids)
        logutil.set_run(self.run_id)
        try:
            try:
                materials = self.resolve_materials()
            except ConfigurationError as e:
                logutil.log("TERRAIN", f"generation aborted: {e}", level="ERROR")
                self._set_state(FAILED)
                self.ready.fire(e)
                return
            if self.cancel_token.cancelled:
                self._cancel(None)
                return
            self.materials = materials

            try:
                self._set_state(BUILDING_HEIGHT_MAP)
                height_map = HeightMapBuilder(s).build()
                self.height_map = height_map

                self._set_state(SMOOTHING)
                self.smoothing = ReliefSmoother.from_settings(s).smooth(height_map)

                self._set_state(EMITTING)
                emitter = VisibleVoxelEmitter(s, self.host, materials)
                for placed in emitter.emit(height_map):
                    self.columns_emitted += 1
                    self.voxels_placed += placed
                    if self.columns_emitted % s.batch_size == 0:
                        yield self.columns_emitted
                        if self.cancel_token.cancelled:
                            self._cancel(emitter)
                            return
            except Exception as e:
                self._fail(e)
                raise

            logutil.log("TERRAIN", f"ready: {self.columns_emitted} columns, "
                        f"{self.voxels_placed} voxels, {self.smoothing.sweeps} smoothing sweeps")
            self._set_state(READY)
            self.ready.fire()
        finally:
            logutil.set_run(None)

    def _fail(self, exc):
        logutil.log("TERRAIN", f"generation failed in {self.state} after "
                    f"{self.columns_emitted} columns: {exc!r}", level="ERROR")
        emitting = self.state == EMITTING
        try:
            if emitting:
                VisibleVoxelEmitter(self.settings, self.host, self.materials).clear(self.height_map)
        finally:
            self._set_state(FAILED)
            self.ready.fire(exc)

    def _cancel(self, emitter):
        if emitter is not None:
            emitter.clear(self.height_map)
        logutil.log("TERRAIN", f"cancelled after {self.columns_emitted} columns", level="WARN")
        self._set_state(CANCELLED)
        self.ready.fire(GenerationCancelled(f"cancelled after {self.columns_emitted} columns"))

    def generate(self):
        """Run to completion, calling host.yield_control() between batches. True once READY."""
        for _ in self.steps():
            self.host.yield_control()
        return self.state == READY

    def clear(self):
        """Erase the whole vertical range of every column in the domain."""
        emitter = VisibleVoxelEmitter(self.settings, self.host, self.materials or {})
        return emitter.clear(HeightMap.from_settings(self.settings))

    def spawn_position(self):
        """Standing position on the flat floor at the centre of the safe zone."""
        return (0, self.settings.base_floor + 1, 0)
