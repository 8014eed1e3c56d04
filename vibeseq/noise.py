"""
Noise Generator for vibeseq
Multi-octave value noise used by the perlin-style pattern mode
"""

import numpy as np
from typing import Optional


# Lattice size for the noise table; sample positions wrap around it
NOISE_TABLE_SIZE = 256


class ValueNoise:
    """
    1-D fractal value noise.

    A table of random lattice values in [-1, 1] is interpolated with a
    smoothstep curve. Octaves are summed with halving amplitude and doubling
    frequency, and the sum is divided by the total amplitude so the result
    stays in [-1, 1].
    """

    def __init__(self, rng: Optional[np.random.Generator] = None,
                 octaves: int = 4, persistence: float = 0.5, lacunarity: float = 2.0):
        self.octaves = max(1, octaves)
        self.persistence = persistence
        self.lacunarity = lacunarity

        if rng is None:
            rng = np.random.default_rng()
        self._table = rng.uniform(-1.0, 1.0, NOISE_TABLE_SIZE)

    def _octave(self, x: np.ndarray) -> np.ndarray:
        """Single octave: smoothstep interpolation between lattice points"""
        x0 = np.floor(x).astype(np.int64)
        t = x - x0
        t = t * t * (3.0 - 2.0 * t)
        a = self._table[x0 % NOISE_TABLE_SIZE]
        b = self._table[(x0 + 1) % NOISE_TABLE_SIZE]
        return a + (b - a) * t

    def sample(self, x) -> np.ndarray:
        """
        Sample fractal noise at positions x

        Args:
            x: Scalar or array of sample positions (lattice units)

        Returns:
            numpy array of noise values in [-1, 1]
        """
        x = np.asarray(x, dtype=np.float64)
        total = np.zeros_like(x)
        amplitude = 1.0
        frequency = 1.0
        norm = 0.0

        for _ in range(self.octaves):
            total += self._octave(x * frequency) * amplitude
            norm += amplitude
            amplitude *= self.persistence
            frequency *= self.lacunarity

        return np.clip(total / norm, -1.0, 1.0)
