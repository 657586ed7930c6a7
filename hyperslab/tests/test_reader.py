import io
import mmap
import pickle
from multiprocessing.pool import ThreadPool

import numpy as np
import pytest
from numpy.testing import assert_array_equal

from hyperslab.config import config
from hyperslab.errors import RegionOverflowError, TruncatedReadError
from hyperslab.reader import HyperRectangleReader, iter_runs
from hyperslab.region import Region
from hyperslab.sync import ProcessSynchronizer, ThreadSynchronizer
from hyperslab.testing import expected_selection


def _cube(dtype='<i4'):
    # 5 x 4 x 3 values holding their own linear index
    return np.arange(60, dtype=dtype)


@pytest.fixture(params=['bytes', 'bytesio', 'file', 'ndarray'])
def channel_factory(request, tmp_path):
    opened = []

    def factory(data, prefix=b''):
        raw = prefix + data.tobytes()
        if request.param == 'bytes':
            return raw
        if request.param == 'bytesio':
            return io.BytesIO(raw)
        if request.param == 'ndarray':
            return np.frombuffer(raw, dtype='u1')
        path = tmp_path / 'data.bin'
        path.write_bytes(raw)
        f = open(path, 'rb')
        opened.append(f)
        return f

    yield factory
    for f in opened:
        f.close()


@pytest.mark.parametrize('lower, upper, step', [
    ([0, 0, 0], [5, 4, 3], [1, 1, 1]),
    ([1, 1, 0], [4, 3, 3], [2, 1, 2]),
    ([0, 0, 1], [5, 4, 2], [1, 1, 1]),
    ([4, 3, 2], [5, 4, 3], [1, 1, 1]),
    ([0, 1, 0], [5, 4, 3], [1, 2, 1]),
])
def test_read(channel_factory, lower, upper, step):
    region = Region.create([5, 4, 3], lower, upper, step)
    reader = HyperRectangleReader(channel_factory(_cube()), '<i4')
    actual = reader.read(region)
    assert (region.target_length(),) == actual.shape
    assert np.dtype('<i4') == actual.dtype
    assert_array_equal(expected_selection([5, 4, 3], lower, upper, step), actual)


def test_read_origin_and_byte_order(channel_factory):
    data = _cube('>f8')
    channel = channel_factory(data, prefix=b'HDR' * 7)
    reader = HyperRectangleReader(channel, '>f8', origin=21)
    assert 21 == reader.origin
    assert np.dtype('>f8') == reader.dtype

    region = Region.create([5, 4, 3], [1, 0, 1], [5, 4, 3], [3, 2, 1])
    actual = reader.read(region)
    assert np.dtype('>f8') == actual.dtype
    assert_array_equal(expected_selection([5, 4, 3], [1, 0, 1], [5, 4, 3], [3, 2, 1]),
                       actual)


def test_read_shaped():
    reader = HyperRectangleReader(_cube().tobytes(), '<i4')
    region = Region.create([5, 4, 3], [1, 1, 0], [4, 3, 3], [2, 1, 2])
    actual = reader.read_shaped(region)
    assert (2, 2, 2) == actual.shape
    # actual[i0, i1, i2] is value (1 + 2*i0) + 5*(1 + i1) + 20*(2*i2)
    for i0 in range(2):
        for i1 in range(2):
            for i2 in range(2):
                assert (1 + 2 * i0) + 5 * (1 + i1) + 20 * 2 * i2 == actual[i0, i1, i2]


def test_read_into_out():
    reader = HyperRectangleReader(_cube().tobytes(), '<i4')
    region = Region.create([5, 4, 3], [1, 1, 1], [3, 3, 3])
    out = np.zeros(8, dtype='<i4')
    result = reader.read(region, out=out)
    assert result is out
    assert_array_equal(expected_selection([5, 4, 3], [1, 1, 1], [3, 3, 3], [1, 1, 1]), out)

    with pytest.raises(ValueError):
        reader.read(region, out=np.zeros(7, dtype='<i4'))
    with pytest.raises(ValueError):
        reader.read(region, out=np.zeros(8, dtype='<i8'))
    with pytest.raises(ValueError):
        reader.read(region, out=np.zeros((2, 4), dtype='<i4'))
    with pytest.raises(ValueError):
        reader.read(region, out=np.zeros(16, dtype='<i4')[::2])
    with pytest.raises(TypeError):
        reader.read(region, out=[0] * 8)


def test_truncated(channel_factory):
    data = np.arange(10, dtype='<i2')
    reader = HyperRectangleReader(channel_factory(data), '<i2')
    assert_array_equal([8, 9], reader.read(Region.create([10], [8], [10])))

    # the channel is shorter than the declared shape
    region = Region.create([12], [6], [12], [2])
    with pytest.raises(TruncatedReadError):
        reader.read(region)
    with pytest.raises(EOFError):
        reader.read(region)


def test_padded_records():
    # netCDF-like record layout: 3 records of 4 values, each followed by 2 values
    # of other variables
    nrec, nval, pad = 3, 4, 2
    raw = np.full((nrec, nval + pad), -1, dtype='<i4')
    raw[:, :nval] = np.arange(nrec * nval).reshape(nrec, nval)
    reader = HyperRectangleReader(raw.tobytes(), '<i4')

    region = Region.create([nval, nrec], [0, 0], [nval, nrec]).increase_stride(1, pad)
    assert 1 == region.contiguous_prefix_length()
    assert_array_equal(np.arange(nrec * nval), reader.read(region))

    region = Region.create([nval, nrec], [1, 0], [3, nrec]).increase_stride(1, pad)
    assert_array_equal([1, 2, 5, 6, 9, 10], reader.read(region))

    # the start offset ignores the padding, so later records are reached by
    # moving the origin by whole records
    reader = HyperRectangleReader(raw.tobytes(), '<i4', origin=raw[0].nbytes)
    region = Region.create([nval, nrec - 1], [1, 0], [3, nrec - 1]).increase_stride(1, pad)
    assert_array_equal([5, 6, 9, 10], reader.read(region))


def test_merge_contiguous_config():
    region = Region.create([5, 4, 3], [0, 0, 1], [5, 4, 3])
    assert [(20, 40)] == list(iter_runs(region))
    with config.set({'reader.merge_contiguous': False}):
        runs = list(iter_runs(region))
        assert 40 == len(runs)
        assert all(1 == length for _, length in runs)
        reader = HyperRectangleReader(_cube().tobytes(), '<i4')
        assert_array_equal(np.arange(20, 60), reader.read(region))


def test_byte_position_overflow():
    reader = HyperRectangleReader(b'', '<f8', origin=2**62)
    region = Region.create([2**62], [2**61], [2**61 + 1])
    with pytest.raises(RegionOverflowError):
        reader.read(region)


def test_invalid_arguments():
    with pytest.raises(TypeError):
        HyperRectangleReader(b'', object)
    with pytest.raises(TypeError):
        HyperRectangleReader(b'', '<i4', origin=1.5)
    with pytest.raises(ValueError):
        HyperRectangleReader(b'', '<i4', origin=-1)


class CountingLock(object):

    def __init__(self):
        self.count = 0

    def __enter__(self):
        self.count += 1

    def __exit__(self, *args):
        pass


def test_lock_held_per_read():
    lock = CountingLock()
    reader = HyperRectangleReader(_cube().tobytes(), '<i4', synchronizer={'cube': lock},
                                  lock_key='cube')
    region = Region.create([5, 4, 3], [1, 1, 0], [4, 3, 3], [2, 1, 2])
    reader.read(region)
    reader.read(region)
    assert 2 == lock.count


def test_thread_synchronizer_shared_file(tmp_path):
    data = np.arange(10000, dtype='<u4')
    path = tmp_path / 'shared.bin'
    path.write_bytes(data.tobytes())
    requests = [([i, i], [100, 100 - i], [1 + i % 3, 1]) for i in range(20)]
    regions = [Region.create([100, 100], *request) for request in requests]

    with open(path, 'rb') as f:
        reader = HyperRectangleReader(f, '<u4', synchronizer=ThreadSynchronizer())
        pool = ThreadPool(4)
        try:
            results = pool.map(reader.read, regions)
        finally:
            pool.terminate()

    for request, actual in zip(requests, results):
        assert_array_equal(expected_selection([100, 100], *request), actual)


def test_process_synchronizer(tmp_path):
    sync_path = tmp_path / 'locks'
    synchronizer = ProcessSynchronizer(str(sync_path))
    reader = HyperRectangleReader(_cube().tobytes(), '<i4', synchronizer=synchronizer,
                                  lock_key='/data/cube.nc')
    region = Region.create([5, 4, 3], [1, 1, 0], [4, 3, 3], [2, 1, 2])
    assert_array_equal(expected_selection([5, 4, 3], [1, 1, 0], [4, 3, 3], [2, 1, 2]),
                       reader.read(region))
    assert (sync_path / 'data_cube.nc.lock').exists()

    # synchronizers travel with pickled work items
    synchronizer = pickle.loads(pickle.dumps(synchronizer))
    assert str(sync_path) == synchronizer.path


def test_read_mmap(tmp_path):
    path = tmp_path / 'cube.bin'
    path.write_bytes(_cube().tobytes())
    region = Region.create([5, 4, 3], [1, 1, 0], [4, 3, 3], [2, 1, 2])
    with open(path, 'rb') as f:
        m = mmap.mmap(f.fileno(), 0, access=mmap.ACCESS_READ)
        reader = HyperRectangleReader(m, '<i4')
        actual = reader.read(region)
        del reader
        m.close()
    assert_array_equal(expected_selection([5, 4, 3], [1, 1, 0], [4, 3, 3], [2, 1, 2]),
                       actual)
