# This is the configuration file for the fitscodec namespace.

__version__ = '0.1.0'

# Import the fitscodec core module.
from fitscodec import core

from fitscodec.core import *

__doc__ = core.__doc__

__all__ = core.__all__
