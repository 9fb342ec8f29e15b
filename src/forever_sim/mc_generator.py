# forever_sim/mc_generator.py
from typing import Optional

import numpy as np


class PriceNoiseGenerator:
    """
    Standard-normal log10 price deviations around the trend.

    Draws come from a Box-Muller transform of two independent uniforms on
    (0, 1]. The numpy Generator is injectable; pass a seed instead to get a
    private, reproducible one. Do not share one Generator between
    concurrent runs unless correlated draws are intended.
    """

    def __init__(
        self,
        num_paths: int = 200,
        horizon: int = 50,
        seed: Optional[int] = None,
        rng: Optional[np.random.Generator] = None,
    ):
        if num_paths < 1:
            raise ValueError(f"num_paths must be >= 1, got {num_paths}")
        if horizon < 1:
            raise ValueError(f"horizon must be >= 1, got {horizon}")

        self.num_paths = num_paths
        self.horizon = horizon
        self.seed = seed
        self.rng = rng if rng is not None else np.random.default_rng(seed)

    def _uniform_open_low(self, size) -> np.ndarray:
        # Generator.random is [0, 1); 1 - u is (0, 1] so log() is finite
        return 1.0 - self.rng.random(size)

    def box_muller(self, size) -> np.ndarray:
        u = self._uniform_open_low(size)
        v = self._uniform_open_low(size)
        return np.sqrt(-2.0 * np.log(u)) * np.cos(2.0 * np.pi * v)

    def generate_paths(self, num_paths: Optional[int] = None) -> np.ndarray:
        """Noise matrix of shape [num_paths, horizon]."""
        if num_paths is None:
            num_paths = self.num_paths
        return self.box_muller((num_paths, self.horizon))

    def price_paths(
        self,
        trend: np.ndarray,
        sigma: float,
        floor_multiple: float,
        num_paths: Optional[int] = None,
    ) -> np.ndarray:
        """
        Prices trend * 10^(noise * sigma), floored at floor_multiple * trend.

        trend has shape [horizon]; the result is [num_paths, horizon].
        """
        trend = np.asarray(trend, dtype=np.float64)
        if trend.shape != (self.horizon,):
            raise ValueError(
                f"trend must have shape ({self.horizon},), got {trend.shape}"
            )
        noise = self.generate_paths(num_paths)
        raw = trend[None, :] * np.power(10.0, noise * sigma)
        return np.maximum(raw, trend[None, :] * floor_multiple)
