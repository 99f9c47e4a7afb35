try:
    # On some systems this prevents the dreaded
    # ImportError: dlopen: cannot load any more object with static TLS
    import torch, numpy  # noqa

except ModuleNotFoundError:
    print(
        "Using shiftreduce requires the python packages Pytorch and Numpy to be installed."
    )
    raise

from shiftreduce.version import VERSION as __version__  # noqa
