import numbers
from typing import Any, Sequence, Tuple

from hyperslab.errors import InvalidRegionError, RegionOverflowError


# signed 64-bit range used for addressing
ADDRESS_MAX = 2**63 - 1


def normalize_extents(name: str, values: Any) -> Tuple[int, ...]:
    """Convenience function to normalize one of the region arguments to a tuple
    of ints."""

    if values is None:
        raise TypeError('{} is None'.format(name))

    # handle 1D convenience form
    if isinstance(values, numbers.Integral):
        values = (values,)

    normalized = []
    for v in values:
        # numpy integers are Integral, bools are not extents
        if isinstance(v, bool) or not isinstance(v, numbers.Integral):
            raise InvalidRegionError('{} must contain integers only, found {!r}'
                                     .format(name, v))
        normalized.append(int(v))
    return tuple(normalized)


def ceildiv(a: int, b: int) -> int:
    return -(-a // b)


def check_range(value: int, limit: int, what: str) -> int:
    if value > limit or value < -limit - 1:
        raise RegionOverflowError(what, limit)
    return value


def add_exact(a: int, b: int, what: str = 'position') -> int:
    return check_range(a + b, ADDRESS_MAX, what)


def multiply_exact(a: int, b: int, what: str = 'position') -> int:
    return check_range(a * b, ADDRESS_MAX, what)


def product_exact(values: Sequence[int], limit: int, what: str) -> int:
    """Product of `values`, raising as soon as a partial product leaves the
    `limit` range."""
    result = 1
    for v in values:
        result = check_range(result * v, limit, what)
    return result


def table_text_report(header: Sequence[str], rows: Sequence[Sequence[Any]],
                      separator: str = ' ') -> str:
    """Render `rows` under `header` as right-aligned text columns."""
    cells = [[str(c) for c in header]] + [[str(c) for c in row] for row in rows]
    widths = [max(len(row[i]) for row in cells) for i in range(len(header))]
    report = ''
    for row in cells:
        report += separator.join(c.rjust(w) for c, w in zip(row, widths)) + '\n'
    return report


class NoLock(object):
    """A lock that doesn't lock."""

    def __enter__(self):
        pass

    def __exit__(self, *args):
        pass


nolock = NoLock()
