from fitscodec.header import Header
from fitscodec.util import _is_int, _pad_length, itersubclasses
from fitscodec.verify import ValidationError


# bytes per array element for every BITPIX value the FITS standard allows
_BITPIX_BYTES = {8: 1, 16: 2, 32: 4, 64: 8, -32: 4, -64: 8}


def _hdu_class_from_header(cls, header):
    """
    Find an appropriate HDU class to use based on values in the header.

    The subclasses of ``cls`` are tried in reverse depth first order, so the
    most specific class whose ``match_header()`` accepts the header wins.
    Abstract classes raise `NotImplementedError` to be skipped.  A header
    no class claims becomes a plain `_ExtensionHDU` if it has ``XTENSION``.
    """

    for c in reversed(list(itersubclasses(cls))):
        try:
            if c.match_header(header):
                return c
        except NotImplementedError:
            continue

    if 'XTENSION' in header:
        return _ExtensionHDU
    return cls


def _data_size(header):
    """
    Size in bytes of the data segment described by ``header``, padding
    excluded::

        |BITPIX| / 8 * GCOUNT * (PCOUNT + NAXIS1 * ... * NAXISn)
    """

    naxis = header.get('NAXIS', 0)
    if not _is_int(naxis) or naxis < 0:
        raise ValidationError(ValidationError.MISSING_DIMENSIONS,
                              'Illegal NAXIS value %r.' % (naxis,))
    if naxis == 0:
        return 0

    bitpix = header.get('BITPIX')
    if not _is_int(bitpix) or bitpix not in _BITPIX_BYTES:
        raise ValidationError(ValidationError.UNSUPPORTED_ENCODING,
                              'Illegal BITPIX value %r.' % (bitpix,))

    size = 1
    for idx in range(1, naxis + 1):
        axis = header.get('NAXIS%d' % idx)
        if not _is_int(axis) or axis < 0:
            raise ValidationError(ValidationError.MISSING_DIMENSIONS,
                                  'Missing or illegal NAXIS%d value %r.'
                                  % (idx, axis))
        size *= axis

    pcount = header.get('PCOUNT', 0)
    gcount = header.get('GCOUNT', 1)
    if not (_is_int(pcount) and _is_int(gcount)) or pcount < 0 or gcount < 0:
        raise ValidationError(ValidationError.MISSING_DIMENSIONS,
                              'Illegal PCOUNT/GCOUNT values %r/%r.'
                              % (pcount, gcount))

    return _BITPIX_BYTES[bitpix] * gcount * (pcount + size)


class _BaseHDU(object):
    """
    Base class for all HDU (header data unit) classes.

    An HDU is a `Header` plus an optional data segment, kept exactly as it
    is stored in a file: big-endian and unpadded.
    """

    def __init__(self, data=None, header=None):
        if header is None:
            header = Header()
        elif not isinstance(header, Header):
            raise ValueError('header must be a Header object')

        self._header = header
        self._buffer = bytes(data) if data else None
        self.name = ''

        # (keyword, error) pairs for user header entries that were skipped
        # while the HDU was built
        self.header_errors = []

    def __repr__(self):
        return '<%s %s, %d data bytes>' % (self.__class__.__name__,
                                           self.name or 'HDU', self.size)

    @property
    def header(self):
        return self._header

    @property
    def rawdata(self):
        """The encoded data segment, or `None` if the HDU has no data."""

        return self._buffer

    @property
    def size(self):
        """Size in bytes of the data segment, without padding."""

        if self._buffer is None:
            return 0
        return len(self._buffer)

    @classmethod
    def match_header(cls, header):
        raise NotImplementedError

    def tostring(self):
        """
        The HDU as it is written to a file: the header blocks followed by
        the data segment zero-padded to a multiple of the block size.
        """

        parts = [self._header.tostring()]
        if self._buffer is not None:
            parts.append(self._buffer)
            parts.append(b'\0' * _pad_length(len(self._buffer)))
        return b''.join(parts)

    def _writeto(self, fileobj):
        fileobj.write(self.tostring())


class _ExtensionHDU(_BaseHDU):
    """
    An extension HDU.  Used as-is for extensions other than images, whose
    data segment is kept but never interpreted.
    """

    @classmethod
    def match_header(cls, header):
        # Generic extensions only serve as a fallback
        raise NotImplementedError

    def __init__(self, data=None, header=None):
        super(_ExtensionHDU, self).__init__(data=data, header=header)
        name = self._header.get('EXTNAME', '')
        self.name = name if isinstance(name, str) else ''

    @property
    def data(self):
        raise ValidationError(
            ValidationError.UNSUPPORTED_ENCODING,
            'Extension %r holds no image data.'
            % self._header.get('XTENSION', ''))
