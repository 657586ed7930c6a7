from __future__ import annotations

from typing import Sequence

import numpy as np

from hyperslab.reader import iter_runs
from hyperslab.region import Region


def expected_selection(size: Sequence[int], lower: Sequence[int], upper: Sequence[int],
                       step: Sequence[int]) -> np.ndarray:
    """Linear indices of the values selected by a region, dimension 0 fastest,
    computed with numpy slicing instead of skips."""
    # numpy's last axis varies fastest, so reverse the dimensions
    indices = np.arange(int(np.prod(size, dtype=object))).reshape(tuple(size)[::-1])
    selection = tuple(slice(lo, hi, s) for lo, hi, s in zip(lower, upper, step))[::-1]
    return indices[selection].ravel()


def traverse(region: Region, backing: np.ndarray, merge_contiguous: bool = True) -> np.ndarray:
    """Read `region` from a one-dimensional in-memory array by following its runs."""
    parts = [backing[offset:offset + length]
             for offset, length in iter_runs(region, merge_contiguous)]
    return np.concatenate(parts)
