#
# Seeded fractal simplex noise for terrain height fields.
#
# The 2D simplex kernel follows the speed-improved simplex noise example code
# by Stefan Gustavson (stegu@itn.liu.se), with optimisations by Peter Eastman
# (peastman@drizzle.stanford.edu). That code was placed in the public domain by
# its original author.
#
import numpy

import logutil


grad3 = numpy.array([(1,1,0),(-1,1,0),(1,-1,0),(-1,-1,0),
                     (1,0,1),(-1,0,1),(1,0,-1),(-1,0,-1),
                     (0,1,1),(0,-1,1),(0,1,-1),(0,-1,-1)], dtype=numpy.float64)

#Skewing and unskewing factors for 2 dimensions
F2 = 0.5*(3.0**0.5-1.0)
G2 = (3.0-3.0**0.5)/6.0

LACUNARITY = 2.0


# returns floor of floating point array by coercing to integer
def fastfloor(x):
    return numpy.array(numpy.floor(x), dtype = numpy.int64)


def _dot2(g, x, y):
    return g[..., 0]*x + g[..., 1]*y


def permutation_table(seed):
    """Doubled 256-entry permutation table drawn from a private RNG for `seed`."""
    rng = numpy.random.RandomState(int(seed) % (2**32))
    p = rng.permutation(256)
    # To remove the need for index wrapping, double the permutation table length
    return p[numpy.arange(512) & 255]


def simplex2(perm, xin, yin):
    """2D simplex noise over arrays of coordinates, roughly in [-1, 1]."""
    permMod12 = perm % 12
    # Skew the input space to determine which simplex cell we're in
    s = (xin+yin)*F2 # Hairy factor for 2D
    i = fastfloor(xin+s)
    j = fastfloor(yin+s)
    t = (i+j)*G2
    X0 = i-t # Unskew the cell origin back to (x,y) space
    Y0 = j-t
    x0 = xin-X0 # The x,y distances from the cell origin
    y0 = yin-Y0
    # For the 2D case, the simplex shape is an equilateral triangle.
    # Determine which simplex we are in.
    i1 = (x0>y0).astype(numpy.int64)  # lower triangle, XY order: (0,0)->(1,0)->(1,1)
    j1 = 1 - i1 # upper triangle, YX order: (0,0)->(0,1)->(1,1)
    # A step of (1,0) in (i,j) means a step of (1-c,-c) in (x,y), and
    # a step of (0,1) in (i,j) means a step of (-c,1-c) in (x,y), where
    # c = (3-sqrt(3))/6
    x1 = x0 - i1 + G2 # Offsets for middle corner in (x,y) unskewed coords
    y1 = y0 - j1 + G2
    x2 = x0 - 1.0 + 2.0 * G2 # Offsets for last corner in (x,y) unskewed coords
    y2 = y0 - 1.0 + 2.0 * G2

    # Work out the hashed gradient indices of the three simplex corners
    ii = i & 255
    jj = j & 255
    gi0 = permMod12[ii+perm[jj]]
    gi1 = permMod12[ii+i1+perm[jj+j1]]
    gi2 = permMod12[ii+1+perm[jj+1]]

    # Calculate the contribution from the three corners
    total = numpy.zeros(numpy.shape(x0))
    for gi, xc, yc in ((gi0, x0, y0), (gi1, x1, y1), (gi2, x2, y2)):
        tc = 0.5 - xc*xc - yc*yc
        contrib = tc*tc*tc*tc * _dot2(grad3[gi], xc, yc)
        total += numpy.where(tc < 0, 0.0, contrib)

    # Add contributions from each corner to get the final noise value.
    # The result is scaled to return values in the interval [-1,1].
    return 70.0 * total


class NoiseField(object):
    """
    Fractal 2D noise layer: `octaves` simplex layers with amplitude gain**k and
    frequency frequency*2**k, normalised to [-1, 1].

    The value at (x, z) depends only on the constructor arguments and the
    coordinate; sampling never mutates the field.
    """
    def __init__(self, seed, frequency, octaves=1, gain=0.5):
        self.seed = int(seed)
        self.frequency = float(frequency)
        self.octaves = int(octaves)
        self.gain = float(gain)
        self.perm = permutation_table(self.seed)
        # Per-seed lattice shift so different seeds do not all pass through 0 at the origin.
        rng = numpy.random.RandomState((self.seed + 1) % (2**32))
        self.offset = rng.uniform(0.0, 256.0, size=2)
        amplitudes = self.gain ** numpy.arange(self.octaves)
        self._norm = float(amplitudes.sum())
        logutil.log("NOISE", f"field seed={self.seed} freq={self.frequency} "
                    f"octaves={self.octaves} gain={self.gain}", level="DEBUG")

    def sample_grid(self, xs, zs):
        xs, zs = numpy.broadcast_arrays(numpy.asarray(xs, dtype=numpy.float64),
                                        numpy.asarray(zs, dtype=numpy.float64))
        total = numpy.zeros(xs.shape)
        amplitude = 1.0
        frequency = self.frequency
        for _ in range(self.octaves):
            total += amplitude * simplex2(self.perm,
                xs*frequency + self.offset[0], zs*frequency + self.offset[1])
            amplitude *= self.gain
            frequency *= LACUNARITY
        return numpy.clip(total / self._norm, -1.0, 1.0)

    def sample(self, x, z):
        return float(self.sample_grid([x], [z])[0])

    def __call__(self, x, z):
        return self.sample(x, z)
