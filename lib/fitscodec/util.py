import os

import numpy as np


BLOCK_SIZE = 2880  # the FITS block size

# BITPIX used when neither the caller nor the header names one
DEFAULT_BITPIX = -32


def _get_config_int(name, default):
    """
    Read an integer setting from the environment, falling back to
    ``default`` when the variable is unset or not a positive integer.
    """

    value = os.environ.get(name)
    if value is None:
        return default
    try:
        value = int(value)
    except ValueError:
        return default
    if value < 1:
        return default
    return value


# Upper bound on the number of 2880 byte blocks scanned for an END card
MAX_HEADER_BLOCKS = _get_config_int('FITSCODEC_MAX_HEADER_BLOCKS', 256)


def itersubclasses(cls, _seen=None):
    """
    Generator over all subclasses of a given class, in depth first order.

    >>> class A(object): pass
    >>> class B(A): pass
    >>> class C(A): pass
    >>> class D(B,C): pass
    >>> class E(D): pass
    >>>
    >>> for cls in itersubclasses(A):
    ...     print(cls.__name__)
    B
    D
    E
    C

    From http://code.activestate.com/recipes/576949/
    """

    if _seen is None:
        _seen = set()
    for sub in cls.__subclasses__():
        if sub not in _seen:
            _seen.add(sub)
            yield sub
            for sub in itersubclasses(sub, _seen):
                yield sub


class lazyproperty(object):
    """
    Works similarly to property(), but computes the value only once.

    Adapted from the recipe at
    http://code.activestate.com/recipes/363602-lazy-property-evaluation
    """

    def __init__(self, fget):
        self._fget = fget
        self.__doc__ = fget.__doc__

    def __get__(self, obj, owner=None):
        if obj is None:
            return self
        key = self._fget.__name__
        if key not in obj.__dict__:
            obj.__dict__[key] = self._fget(obj)
        return obj.__dict__[key]


def encode_ascii(s):
    """Encode a str to ASCII bytes; bytes are passed through untouched."""

    if isinstance(s, str):
        return s.encode('ascii')
    return s


def decode_ascii(s):
    """Decode ASCII bytes to str; str is passed through untouched."""

    if isinstance(s, (bytes, bytearray, memoryview)):
        return bytes(s).decode('ascii')
    return s


def _is_int(val):
    # bool is an int subclass but never a FITS integer
    return (isinstance(val, (int, np.integer)) and
            not isinstance(val, (bool, np.bool_)))


def _pad_length(stringlen):
    """Bytes needed to pad the input stringlen to the next FITS block."""

    return (BLOCK_SIZE - (stringlen % BLOCK_SIZE)) % BLOCK_SIZE
