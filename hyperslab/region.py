"""Addressing of strided sub-regions of n-dimensional arrays stored linearly.

The values of the full array are assumed to be stored in a sequence (array or
uncompressed file) where the index along dimension 0 varies fastest, followed
by the index along dimension 1, *etc*. A :class:`Region` describes which of
those values must be read for a given sub-region and subsampling, and how many
values a sequential reader must skip between the runs it reads.

"""
from __future__ import annotations

import logging
import numbers
from dataclasses import dataclass, replace
from typing import Any, Optional, Sequence, Tuple

from hyperslab.config import get_max_transfer_length
from hyperslab.errors import (AxisIndexError, BoundsError, InvalidRegionError,
                              NegativeStepError, err_dimension_mismatch)
from hyperslab.util import (add_exact, ceildiv, check_range, multiply_exact,
                            normalize_extents, product_exact, table_text_report)

logger = logging.getLogger(__name__)


def normalize_region_args(size, lower, upper, step=None):
    """Check the arguments of a region request and return them as tuples of ints."""

    size = normalize_extents('size', size)
    lower = normalize_extents('lower', lower)
    upper = normalize_extents('upper', upper)
    if step is None:
        step = (1,) * len(size)
    step = normalize_extents('step', step)

    if not (len(size) == len(lower) == len(upper) == len(step)):
        err_dimension_mismatch(size, lower, upper, step)
    if len(size) == 0:
        raise InvalidRegionError('a region needs at least one dimension')

    for i, (n, lo, hi, s) in enumerate(zip(size, lower, upper, step)):
        if n <= 0:
            raise InvalidRegionError('size of dimension {} must be positive, got {}'
                                     .format(i, n))
        if lo < 0 or lo >= hi or hi > n:
            raise BoundsError(i, lo, hi, n)
        if s < 1:
            raise NegativeStepError(i, s)

    return size, lower, upper, step


@dataclass(frozen=True)
class Region:
    """A sub-area in a n-dimensional hyper-rectangle, optionally with subsampling.

    Instances are created with :meth:`Region.create` (or
    :func:`create_region`) and never modified afterwards;
    :meth:`increase_stride` returns a new region.

    Attributes
    ----------
    target_size : tuple of int
        Number of values kept along each dimension after subsampling.
    start_offset : int
        Position (in values, not bytes) of the first value to read.
    skips : tuple of int
        Number of values to skip after having read values. ``skips[0]`` is the
        number of values to skip after each single value on the same line,
        ``skips[1]`` the number of values to skip after having read the last
        value of a line, ``skips[2]`` after the last value of a plane, *etc*.
        The length of this tuple is the dimension plus one.
    total_length : int
        Number of values in the full hyper-rectangle.

    """

    target_size: Tuple[int, ...]
    start_offset: int
    skips: Tuple[int, ...]
    total_length: int

    @classmethod
    def create(cls, size: Sequence[int], lower: Sequence[int], upper: Sequence[int],
               step: Optional[Sequence[int]] = None) -> Region:
        """Compute the region to read.

        Parameters
        ----------
        size : sequence of ints
            Number of values along each dimension of the full hyper-rectangle.
        lower : sequence of ints
            Index of the first value to read along each dimension.
        upper : sequence of ints
            Index after the last value to read along each dimension.
        step : sequence of ints, optional
            Subsampling along each dimension, defaults to 1 everywhere.

        Raises
        ------
        InvalidRegionError
            If the arguments do not describe a non-empty region inside `size`.
        RegionOverflowError
            If the number of values to read along a dimension exceeds the bulk
            transfer cap, or if a position in the full hyper-rectangle exceeds
            the signed 64-bit range.

        """
        size, lower, upper, step = normalize_region_args(size, lower, upper, step)
        max_length = get_max_transfer_length()

        ndim = len(size)
        target_size = [0] * ndim
        skips = [0] * (ndim + 1)
        position = 0
        stride = 1
        skip = 0
        for i in range(ndim):
            count = ceildiv(upper[i] - lower[i], step[i])
            covered = (count - 1) * step[i] + 1
            target_size[i] = check_range(count, max_length,
                                         'number of values along dimension %d' % i)

            position = add_exact(position, multiply_exact(stride, lower[i]))
            skip = add_exact(skip, multiply_exact(stride, size[i] - covered, 'skip'), 'skip')
            skips[i] = add_exact(skips[i], multiply_exact(stride, step[i] - 1, 'skip'),
                                 'skip')
            stride = multiply_exact(stride, size[i], 'stride')
            skips[i + 1] = skip

        return cls(target_size=tuple(target_size), start_offset=position,
                   skips=tuple(skips), total_length=stride)

    @classmethod
    def from_slices(cls, size: Sequence[int], selection: Sequence[Any]) -> Region:
        """Compute the region selected by one integer or slice per dimension,
        dimension 0 first. Negative indices count from the end of the dimension."""

        size = normalize_extents('size', size)
        if isinstance(selection, (slice, numbers.Integral)):
            selection = (selection,)
        selection = tuple(selection)
        if len(selection) != len(size):
            raise InvalidRegionError(
                'expected one selection item per dimension; expected {}, got {}'
                .format(len(size), len(selection)))

        lower, upper, step = [], [], []
        for i, (dim_sel, dim_len) in enumerate(zip(selection, size)):
            if dim_len <= 0:
                raise InvalidRegionError('size of dimension {} must be positive, got {}'
                                         .format(i, dim_len))
            if isinstance(dim_sel, numbers.Integral) and not isinstance(dim_sel, bool):
                index = int(dim_sel)
                # handle wraparound
                if index < 0:
                    index = dim_len + index
                if index < 0 or index >= dim_len:
                    raise BoundsError(i, index, index + 1, dim_len)
                start, stop, dim_step = index, index + 1, 1
            elif isinstance(dim_sel, slice):
                if dim_sel.step is not None and dim_sel.step < 1:
                    raise NegativeStepError(i, dim_sel.step)
                start, stop, dim_step = dim_sel.indices(dim_len)
            else:
                raise InvalidRegionError('unsupported selection item for dimension {}; '
                                         'expected integer or slice, got {!r}'
                                         .format(i, type(dim_sel)))
            lower.append(start)
            upper.append(stop)
            step.append(dim_step)

        return cls.create(size, lower, upper, step)

    @property
    def dimension(self) -> int:
        """The hyper-rectangle dimension."""
        return len(self.target_size)

    def increase_stride(self, axis: int, extra_skip: int) -> Region:
        """Return a copy of this region with more values between two consecutive
        index values along the given dimension.

        The skips are computed automatically at construction time, but some
        storage layouts reserve more room per step than the shape implies (for
        example the records of a netCDF "unlimited" variable).

        Example: in a cube of dimension 10×10×10, the number of values between
        indices (0,0,1) and (0,0,2) is 100. ``increase_stride(1, 4)`` makes
        readers still read 100 values but skip 4 more when moving from plane 1
        to plane 2.

        Parameters
        ----------
        axis : int
            Index into :attr:`skips`, from 0 to :attr:`dimension` inclusive.
        extra_skip : int
            Additional number of values to skip after having read a block of
            data along `axis`.

        """
        if isinstance(axis, bool) or not isinstance(axis, numbers.Integral):
            raise TypeError('axis must be an integer, found %r' % (axis,))
        if not 0 <= axis <= self.dimension:
            raise AxisIndexError(axis, self.dimension)
        if isinstance(extra_skip, bool) or not isinstance(extra_skip, numbers.Integral):
            raise TypeError('extra_skip must be an integer, found %r' % (extra_skip,))
        if extra_skip < 0:
            raise InvalidRegionError('extra_skip must be >= 0, got {}'.format(extra_skip))

        skips = list(self.skips)
        skips[axis] = add_exact(skips[axis], int(extra_skip), 'skip')
        logger.debug('increased skip of dimension %d by %d to %d',
                     axis, extra_skip, skips[axis])
        return replace(self, skips=tuple(skips))

    def contiguous_prefix_length(self) -> int:
        """Number of leading dimensions whose data are contiguous, so that they
        can be read in a single operation. This is the index of the first
        non-zero element in :attr:`skips`.

        All dimensions are contiguous only if the region covers the whole
        hyper-rectangle without subsampling; when only the last dimension is
        cropped, its trailing skip excludes it.
        """
        ndim = self.dimension
        for i in range(ndim):
            if self.skips[i] != 0:
                return i
        if self.skips[ndim] != 0:
            return ndim - 1
        return ndim

    def target_length(self, dimension: Optional[int] = None) -> int:
        """Return the number of values to read from the sub-region, taking in
        account only the first `dimension` dimensions (all of them by default).

        Raises
        ------
        RegionOverflowError
            If the result exceeds the bulk transfer cap (``transfer.max_length``
            in :mod:`hyperslab.config`).

        """
        if dimension is None:
            dimension = self.dimension
        if not 0 <= dimension <= self.dimension:
            raise AxisIndexError(dimension, self.dimension)
        return product_exact(self.target_size[:dimension], get_max_transfer_length(),
                             'number of values to transfer')

    def describe(self) -> str:
        """Tabular representation of the number of values kept and skipped along
        each dimension, for debugging purpose."""
        rows = [(n, s) for n, s in zip(self.target_size, self.skips)]
        return table_text_report(('size', 'skip'), rows)

    def __str__(self):
        return self.describe()


def create_region(size, lower, upper, step=None) -> Region:
    """Convenience function equivalent to :meth:`Region.create`."""
    return Region.create(size, lower, upper, step)


__all__ = ['Region', 'create_region', 'normalize_region_args']
