"""
Path containers for the transition solver.

A `Path` holds one macro variable over t = 1..T. Entries 1 and T are the
steady-state anchors; only the interior 2..T-1 can be replaced, and only by
building a new Path. The solver passes these snapshots between iterations
instead of mutating arrays in place.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np


class Path:
    __slots__ = ("_values",)

    def __init__(self, values):
        v = np.array(values, dtype=np.float64)
        if v.ndim != 1 or len(v) < 3:
            raise ValueError(f"a path needs at least 3 periods (two anchors + interior), got shape {v.shape}")
        v.setflags(write=False)
        self._values = v

    @property
    def values(self) -> np.ndarray:
        return self._values

    @property
    def interior(self) -> np.ndarray:
        return self._values[1:-1]

    @property
    def T(self) -> int:
        return len(self._values)

    def with_interior(self, interior) -> "Path":
        interior = np.asarray(interior, dtype=np.float64)
        if interior.shape != (self.T - 2,):
            raise ValueError(f"interior must have {self.T - 2} entries, got {interior.shape}")
        v = self._values.copy()
        v[1:-1] = interior
        return Path(v)

    def __len__(self):
        return self.T

    def __array__(self, dtype=None, copy=None):
        return self._values if dtype is None else self._values.astype(dtype)

    def __repr__(self):
        return f"Path(T={self.T}, first={self._values[0]:.6g}, last={self._values[-1]:.6g})"


@dataclass(frozen=True)
class IterationState:
    """Guesses carried from one outer iteration to the next."""
    w: Path
    div: Path
    S: Path


@dataclass(frozen=True, eq=False)
class TransitionResult:
    """Converged (or best-estimate) interior paths, t = 2..T-1."""
    S: np.ndarray
    w: np.ndarray
    Pi: np.ndarray
    Y: np.ndarray
    R: np.ndarray
    tau: np.ndarray
    div: np.ndarray
    L: np.ndarray
    A: np.ndarray
    converged: bool
    status: str
    outer_iterations: int
    inner_iterations: Tuple[int, ...]
    w_distances: Tuple[float, ...]
    S_distances: Tuple[float, ...]

    @property
    def T(self) -> int:
        return len(self.S) + 2

    def full_paths(self, ss):
        """Re-attach the steady-state anchors: dict of length-T arrays for w, div, S."""
        out = {}
        for nm, anchor in (("w", ss.w), ("div", ss.div), ("S", 1.0)):
            v = np.empty(self.T)
            v[0] = v[-1] = anchor
            v[1:-1] = getattr(self, nm)
            out[nm] = v
        return out
