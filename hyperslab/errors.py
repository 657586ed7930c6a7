class _BaseRegionError(ValueError):
    _msg = ""

    def __init__(self, *args):
        super().__init__(self._msg.format(*args))


class InvalidRegionError(ValueError):
    pass


class BoundsError(_BaseRegionError, InvalidRegionError):
    _msg = ("invalid bounds for dimension {0}: expected "
            "0 <= lower < upper <= {3}, got lower={1}, upper={2}")


class NegativeStepError(_BaseRegionError, InvalidRegionError):
    _msg = "invalid subsampling for dimension {0}: step must be >= 1, got {1}"


class RegionOverflowError(OverflowError):
    _msg = "{0} exceeds the maximal value of {1}; try reading a smaller region"

    def __init__(self, what, limit):
        super().__init__(self._msg.format(what, limit))


class AxisIndexError(IndexError):
    _msg = "dimension {0} out of bounds for region with {1} dimensions"

    def __init__(self, axis, ndim):
        super().__init__(self._msg.format(axis, ndim))


class TruncatedReadError(EOFError):
    _msg = "expected {0} bytes at position {1}, got {2}"

    def __init__(self, nbytes, position, nread):
        super().__init__(self._msg.format(nbytes, position, nread))


def err_dimension_mismatch(size, lower, upper, step):
    raise InvalidRegionError(
        'all region arguments must have the same number of dimensions; got '
        'size={}, lower={}, upper={}, step={}'
        .format(len(size), len(lower), len(upper), len(step)))
