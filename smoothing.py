import logutil
from heightmap import NEIGHBOURS


class SmoothingReport(object):
    __slots__ = ("sweeps", "raised", "converged")

    def __init__(self, sweeps, raised, converged):
        self.sweeps = sweeps
        self.raised = raised
        self.converged = converged

    def __repr__(self):
        return f"SmoothingReport(sweeps={self.sweeps}, raised={self.raised}, converged={self.converged})"


class ReliefSmoother(object):
    """
    Raises valley columns until no valley column sits more than one unit below
    any 4-neighbour (off-map neighbours count as height 0). Hill and floor
    columns are never touched.

    The set of valley columns is fixed when smoothing starts, so a valley
    column raised above the floor by a tall neighbour keeps being corrected.
    Corrections are applied in place and are visible to the columns visited
    after them within the same sweep.
    """
    def __init__(self, max_sweeps):
        self.max_sweeps = int(max_sweeps)

    @classmethod
    def from_settings(cls, settings):
        return cls(settings.max_sweeps)

    def sweep(self, height_map, valleys=None):
        """One pass over the valley columns; returns the number of columns raised."""
        h = height_map.heights
        if valleys is None:
            valleys = h < 0
        width, depth = h.shape
        raised = 0
        for i, k in zip(*valleys.nonzero()):
            current = int(h[i, k])
            lowest = current
            for di, dk in NEIGHBOURS:
                ni, nk = i + di, k + dk
                if 0 <= ni < width and 0 <= nk < depth:
                    bound = int(h[ni, nk]) - 1
                else:
                    bound = -1
                if lowest < bound:
                    lowest = bound
            if lowest != current:
                h[i, k] = lowest
                raised += 1
        return raised

    def smooth(self, height_map):
        valleys = height_map.heights < 0
        sweeps = 0
        total = 0
        converged = not valleys.any()
        while not converged and sweeps < self.max_sweeps:
            raised = self.sweep(height_map, valleys)
            sweeps += 1
            total += raised
            logutil.log("SMOOTH", f"sweep {sweeps} raised {raised}", level="DEBUG")
            converged = raised == 0
        if not converged:
            # the last permitted sweep may still have reached the fixed point
            converged = not height_map.slope_violations(valleys)
        if not converged:
            logutil.log("SMOOTH", f"no fixed point after {sweeps} sweeps, "
                        "keeping best-effort heights", level="WARN")
        report = SmoothingReport(sweeps, total, converged)
        logutil.log("SMOOTH", f"{report} valleys={int(valleys.sum())}", level="DEBUG")
        return report
