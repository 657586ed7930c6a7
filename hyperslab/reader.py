"""Reading of hyper-rectangular sub-regions from seekable channels and buffers."""
import logging
import numbers
from typing import Iterator, Optional, Tuple

import numpy as np
from numcodecs.compat import ensure_contiguous_ndarray

from hyperslab.config import config
from hyperslab.errors import TruncatedReadError
from hyperslab.region import Region
from hyperslab.sync import channel_key
from hyperslab.util import add_exact, multiply_exact, nolock

logger = logging.getLogger(__name__)


def iter_runs(region: Region, merge_contiguous: Optional[bool] = None
              ) -> Iterator[Tuple[int, int]]:
    """Iterate over the runs of contiguous values to read for `region`.

    Yields ``(offset, length)`` pairs, both counted in values from the start of
    the full hyper-rectangle. When `merge_contiguous` is true (the default, see
    ``reader.merge_contiguous`` in :mod:`hyperslab.config`) the leading
    dimensions without skips are flattened into one run, otherwise every run
    holds a single value.

    Completing the sweep of a dimension resets its cursor and increments the
    next dimension, like the digits of an odometer. The skip of a dimension is
    applied only when its cursor is incremented without completing the sweep;
    the skips of the outer dimensions already account for the gaps left by the
    inner ones.
    """
    if merge_contiguous is None:
        merge_contiguous = config.get('reader.merge_contiguous')
    ndim = region.dimension
    contiguous = 0
    if merge_contiguous:
        contiguous = region.contiguous_prefix_length()
        # the last dimension joins the run even when it is cropped
        while contiguous < ndim and region.skips[contiguous] == 0:
            contiguous += 1
    length = region.target_length(contiguous)
    counts = region.target_size[contiguous:]
    skips = region.skips[contiguous:ndim]
    cursor = [0] * len(counts)

    position = region.start_offset
    while True:
        yield position, length
        position += length
        for i in range(len(cursor)):
            cursor[i] += 1
            if cursor[i] < counts[i]:
                position += skips[i]
                break
            cursor[i] = 0
        else:
            return


class HyperRectangleReader(object):
    """Read sub-regions of a n-dimensional array of fixed-size values stored
    without compression, dimension 0 varying fastest.

    Parameters
    ----------
    channel : file-like or buffer
        Either a seekable binary file object providing ``seek`` and
        ``readinto``, or any object exposing the buffer protocol (bytes,
        bytearray, mmap, numpy array).
    dtype : string or dtype
        Type of the values, byte order included (e.g. ``'>f4'`` for big-endian
        single precision floats).
    origin : int, optional
        Position in bytes of the first value of the full hyper-rectangle.
    synchronizer : object, optional
        Array synchronizer; the lock obtained from it is held during each read.
    lock_key : string, optional
        Key given to `synchronizer`, defaults to :func:`hyperslab.sync.channel_key`.

    Examples
    --------
    >>> import numpy as np
    >>> from hyperslab import HyperRectangleReader, Region
    >>> data = np.arange(16, dtype='<i4')
    >>> reader = HyperRectangleReader(data.tobytes(), '<i4')
    >>> reader.read(Region.create([4, 4], [1, 1], [3, 3]))
    array([ 5,  6,  9, 10], dtype=int32)

    """

    def __init__(self, channel, dtype, origin=0, synchronizer=None, lock_key=None):
        self._dtype = np.dtype(dtype)
        if self._dtype.hasobject:
            raise TypeError('object dtypes have no fixed size, found %r' % self._dtype)
        if isinstance(origin, bool) or not isinstance(origin, numbers.Integral):
            raise TypeError('origin must be an integer, found %r' % (origin,))
        if origin < 0:
            raise ValueError('origin must be >= 0, found %r' % origin)
        self._origin = int(origin)
        self._channel = channel
        if hasattr(channel, 'readinto') and hasattr(channel, 'seek'):
            self._buffer = None
        else:
            self._buffer = ensure_contiguous_ndarray(channel).view(np.uint8)
        self._synchronizer = synchronizer
        if lock_key is None:
            lock_key = channel_key(channel)
        self._lock_key = lock_key

    @property
    def dtype(self):
        return self._dtype

    @property
    def origin(self):
        return self._origin

    @property
    def channel(self):
        return self._channel

    def _lock(self):
        if self._synchronizer is None:
            return nolock
        return self._synchronizer[self._lock_key]

    def read(self, region: Region, out: Optional[np.ndarray] = None) -> np.ndarray:
        """Read the values of `region`, in the order dimension 0 fastest.

        Parameters
        ----------
        region : Region
            The sub-region to read.
        out : ndarray, optional
            Contiguous one-dimensional array receiving the values, with the
            reader dtype and ``region.target_length()`` items.

        Returns
        -------
        out : ndarray
            One-dimensional array of ``region.target_length()`` values.

        """
        nitems = region.target_length()
        if out is None:
            out = np.empty(nitems, dtype=self._dtype)
        else:
            self._check_out(out, nitems)
        dest = out.view(np.uint8)
        itemsize = self._dtype.itemsize
        merge_contiguous = config.get('reader.merge_contiguous')

        nruns = 0
        filled = 0
        with self._lock():
            # position of the channel after the previous run
            current = None
            for offset, length in iter_runs(region, merge_contiguous):
                position = add_exact(self._origin, multiply_exact(offset, itemsize))
                nbytes = length * itemsize
                self._transfer(position, dest[filled:filled + nbytes], current)
                filled += nbytes
                current = position + nbytes
                nruns += 1

        logger.debug('read %d values of %s in %d runs starting at value %d',
                     nitems, self._dtype, nruns, region.start_offset)
        return out

    def read_shaped(self, region: Region) -> np.ndarray:
        """Read the values of `region` as an array of shape ``region.target_size``,
        so that ``result[i0, i1, ...]`` is indexed by dimension 0 first."""
        return self.read(region).reshape(region.target_size, order='F')

    def _check_out(self, out, nitems):
        if not isinstance(out, np.ndarray):
            raise TypeError('out must be a numpy array, found %r' % type(out))
        if out.dtype != self._dtype:
            raise ValueError('out has dtype %s, expected %s' % (out.dtype, self._dtype))
        if out.ndim != 1 or out.shape[0] != nitems:
            raise ValueError('out must be one-dimensional with %d items, found shape %r'
                             % (nitems, out.shape))
        if not out.flags.c_contiguous or not out.flags.writeable:
            raise ValueError('out must be a contiguous writeable array')

    def _transfer(self, position, dest, current):
        nbytes = dest.shape[0]
        if self._buffer is not None:
            end = position + nbytes
            if end > self._buffer.shape[0]:
                raise TruncatedReadError(nbytes, position,
                                         max(0, self._buffer.shape[0] - position))
            dest[:] = self._buffer[position:end]
            return

        if position != current:
            self._channel.seek(position)
        view = memoryview(dest)
        nread = 0
        while nread < nbytes:
            n = self._channel.readinto(view[nread:])
            if not n:
                raise TruncatedReadError(nbytes, position, nread)
            nread += n
