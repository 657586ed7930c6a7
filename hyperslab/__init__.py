# flake8: noqa
from hyperslab.errors import (AxisIndexError, BoundsError, InvalidRegionError,
                              NegativeStepError, RegionOverflowError,
                              TruncatedReadError)
from hyperslab.reader import HyperRectangleReader, iter_runs
from hyperslab.region import Region, create_region
from hyperslab.sync import ProcessSynchronizer, ThreadSynchronizer
from hyperslab.version import version as __version__
