import re
import sys

import numpy as np

from fitscodec.card import Card
from fitscodec.hdu.base import _BaseHDU, _ExtensionHDU
from fitscodec.header import Header
from fitscodec.util import DEFAULT_BITPIX, _is_int, lazyproperty
from fitscodec.verify import ValidationError


__all__ = ['NumCode', 'ImgCode', 'BITPIX', 'PROTECTED_KEYWORDS',
           'bytes_per_sample', 'decode', 'encode', 'validate_length',
           'get_dimensions', 'resolve_encoding', 'build_hdu', 'PrimaryHDU',
           'ImageHDU']


# mappings between FITS and numpy typecodes
NumCode = {8: 'uint8', 16: 'int16', 32: 'int32', -32: 'float32',
           -64: 'float64'}
ImgCode = dict((name, bitpix) for bitpix, name in NumCode.items())

# encoding names accepted in place of a BITPIX code
BITPIX = {'byte': 8, 'short': 16, 'int': 32, 'float': -32, 'double': -64}

# keywords the codec writes itself; they are never taken from user headers
PROTECTED_KEYWORDS = frozenset(['SIMPLE', 'XTENSION', 'BITPIX', 'NAXIS',
                                'NAXIS1', 'NAXIS2', 'END', 'PCOUNT',
                                'GCOUNT'])
_naxisn_RE = re.compile(r'^NAXIS\d+$')

_BYTEORDERS = {'little': '<', 'big': '>'}


def _bitpix(encoding):
    """
    Normalize an encoding given as a BITPIX code, an encoding name
    (``'float'``), a numpy type name (``'float32'``) or a numpy dtype.
    """

    if isinstance(encoding, np.dtype):
        encoding = encoding.name
    if isinstance(encoding, str):
        key = encoding.strip().lower()
        if key in BITPIX:
            return BITPIX[key]
        elif key in ImgCode:
            return ImgCode[key]
    elif _is_int(encoding) and int(encoding) in NumCode:
        return int(encoding)

    raise ValidationError(ValidationError.UNSUPPORTED_ENCODING,
                          'Unsupported encoding %r.' % (encoding,))


def _host_order(byteorder):
    if byteorder is None:
        byteorder = sys.byteorder
    if byteorder not in _BYTEORDERS:
        raise ValueError("byteorder must be 'little' or 'big', not %r"
                         % (byteorder,))
    return byteorder


def _user_entries(user_header):
    """
    The ``(keyword, value)`` pairs of a user header given as a `Header`, a
    mapping or an iterable of pairs.  `Header` cards come as ``(keyword,
    (value, comment))``.
    """

    if user_header is None:
        return []
    if isinstance(user_header, Header):
        return [(card.keyword, (card.value, card.comment))
                for card in user_header.cards]

    try:
        if hasattr(user_header, 'items'):
            entries = user_header.items()
        else:
            entries = user_header
        return [(key, value) for key, value in entries]
    except (TypeError, ValueError):
        raise ValidationError(
            ValidationError.INVALID_VALUE,
            'A header must be a mapping or an iterable of (keyword, value) '
            'pairs, not %r.' % (user_header,))


def _find_keyword(header, keyword):
    """
    Case-insensitive lookup of ``keyword`` in a user header.  The last
    matching entry wins.  Returns ``(found, value)``, with any comment
    stripped from the value.
    """

    found, result = False, None
    for key, value in _user_entries(header):
        if isinstance(key, str) and key.strip().upper() == keyword:
            if isinstance(value, tuple) and len(value) == 2:
                value = value[0]
            found, result = True, value
    return found, result


def bytes_per_sample(encoding):
    """Number of bytes one sample occupies in the given encoding."""

    return abs(_bitpix(encoding)) // 8


def validate_length(buffer, width, height, encoding):
    """
    Check that a raw pixel buffer holds exactly ``width * height`` samples
    of the given encoding.

    Raises
    ------
    ValidationError
        ``DimensionsMismatch`` if the byte length is wrong.
    """

    expected = width * height * bytes_per_sample(encoding)
    actual = memoryview(buffer).nbytes
    if actual != expected:
        raise ValidationError(
            ValidationError.DIMENSIONS_MISMATCH,
            'Pixel buffer holds %d bytes, %d x %d %s samples need %d.'
            % (actual, width, height, NumCode[_bitpix(encoding)], expected))


def decode(buffer, encoding, count, byteorder=None):
    """
    Decode ``count`` big-endian samples from ``buffer``.

    Parameters
    ----------
    buffer : bytes-like
        The data segment, at least ``count`` samples long.  Bytes past the
        last sample (block padding) are ignored.

    encoding : int or str
        BITPIX code or encoding name.

    count : int
        Number of samples to decode.

    byteorder : str, optional
        ``'little'`` or ``'big'``; the byte order of the host the samples
        are decoded for.  Defaults to `sys.byteorder`.

    Returns
    -------
    samples : ndarray
        A new, flat ``float64`` array.
    """

    bitpix = _bitpix(encoding)
    byteorder = _host_order(byteorder)

    dtype = np.dtype(NumCode[bitpix]).newbyteorder(_BYTEORDERS[byteorder])
    nbytes = memoryview(buffer).nbytes
    if count < 0 or nbytes < count * dtype.itemsize:
        raise ValidationError(
            ValidationError.DIMENSIONS_MISMATCH,
            'Data segment of %d bytes is too short for %d %s samples.'
            % (nbytes, count, NumCode[bitpix]))
    if count == 0:
        return np.zeros(0, dtype=np.float64)

    raw = np.frombuffer(buffer, dtype=dtype, count=count)

    # FITS data are big-endian; swap for a little-endian host
    if byteorder == 'little':
        raw = raw.byteswap()
    return raw.astype(np.float64)


def _host_bytes(buffer, encoding, count, byteorder=None):
    """
    The first ``count`` big-endian samples of ``buffer`` as host order bytes
    of the same encoding, the form `build_hdu` accepts bytes pixels in.
    """

    bitpix = _bitpix(encoding)
    byteorder = _host_order(byteorder)

    code = NumCode[bitpix]
    nbytes = count * bytes_per_sample(bitpix)
    if memoryview(buffer).nbytes < nbytes:
        raise ValidationError(
            ValidationError.DIMENSIONS_MISMATCH,
            'Data segment is too short for %d %s samples.' % (count, code))
    if count == 0:
        return b''

    raw = np.frombuffer(buffer, dtype=np.dtype(code).newbyteorder('>'),
                        count=count)
    host = np.dtype(code).newbyteorder(_BYTEORDERS[byteorder])
    return raw.astype(host).tobytes()


def encode(samples, encoding, byteorder=None):
    """
    Encode numeric samples as big-endian bytes in the given encoding.

    Integer encodings round to the nearest integer, ties to even, and reject
    samples outside the target range.  Float encodings narrow as IEEE
    conversion does.

    Parameters
    ----------
    samples : array-like
        The samples, in any numeric type.

    encoding : int or str
        BITPIX code or encoding name.

    byteorder : str, optional
        ``'little'`` or ``'big'``; the byte order of the host the samples
        are laid out for before the swap.  Defaults to `sys.byteorder`.

    Raises
    ------
    ValidationError
        ``SampleOutOfRange`` if an integer encoding cannot hold a sample.
    """

    bitpix = _bitpix(encoding)
    byteorder = _host_order(byteorder)
    code = NumCode[bitpix]

    samples = np.asarray(samples, dtype=np.float64).ravel()

    if bitpix > 0:
        info = np.iinfo(code)
        rounded = np.rint(samples)
        bad = (~np.isfinite(rounded) | (rounded < info.min) |
               (rounded > info.max))
        if bad.any():
            idx = int(np.flatnonzero(bad)[0])
            raise ValidationError(
                ValidationError.SAMPLE_OUT_OF_RANGE,
                'Sample %d (%r) does not fit in %s.'
                % (idx, float(samples[idx]), code))
        output = rounded.astype(code)
    else:
        with np.errstate(over='ignore'):
            output = samples.astype(code)

    host = output.astype(output.dtype.newbyteorder(_BYTEORDERS[byteorder]))
    if byteorder == 'little':
        host = host.byteswap().view(host.dtype.newbyteorder('>'))
    return host.tobytes()


def get_dimensions(header):
    """
    Returns ``(width, height)`` from the ``NAXIS1`` and ``NAXIS2`` keywords.

    Raises
    ------
    ValidationError
        ``MissingDimensions`` if either is absent or not an integer.
    """

    width = header.get('NAXIS1')
    height = header.get('NAXIS2')
    if not (_is_int(width) and _is_int(height)):
        raise ValidationError(ValidationError.MISSING_DIMENSIONS,
                              'NAXIS1/NAXIS2 missing or not integers: %r/%r.'
                              % (width, height))
    return int(width), int(height)


def resolve_encoding(explicit, header, default=DEFAULT_BITPIX):
    """
    Pick the BITPIX to write with: ``explicit`` if given, else the
    ``BITPIX`` entry of ``header``, else ``default``.
    """

    if explicit is not None:
        return _bitpix(explicit)
    found, value = _find_keyword(header, 'BITPIX')
    if found:
        return _bitpix(value)
    return _bitpix(default)


def _is_protected(keyword):
    return keyword in PROTECTED_KEYWORDS or bool(_naxisn_RE.match(keyword))


def _add_user_cards(header, user_header):
    """
    Append the entries of ``user_header`` to ``header``.

    Protected keywords are dropped silently.  Entries that cannot be written
    as a card are skipped and reported.  Values may be given as ``(value,
    comment)`` tuples.

    Returns
    -------
    count, errors
        The number of cards the header grew by, and a list of ``(keyword,
        error)`` pairs for the skipped entries.

    Raises
    ------
    ValidationError
        ``InvalidValue`` if ``user_header`` is neither a mapping nor an
        iterable of pairs.
    """

    errors = []
    before = len(header.cards)

    for key, value in _user_entries(user_header):
        if not isinstance(key, str):
            errors.append((key, ValidationError(
                ValidationError.INVALID_KEYWORD,
                'Keyword name %r is not a string.' % (key,))))
            continue

        keyword = key.strip().upper()
        if _is_protected(keyword):
            continue

        comment = ''
        if isinstance(value, tuple) and len(value) == 2:
            value, comment = value

        card = Card(keyword, value, comment)
        errs = card.verify('ignore')
        if errs:
            errors.append((keyword, errs[0]))
            continue

        header.append(card)

    # repeated keywords merge into one card
    return len(header.cards) - before, errors


def _to_samples(pixels, width, height, bitpix):
    """
    Turn caller pixels into a flat float64 array of ``width * height``
    samples.  Bytes-like pixels are host order samples of the encoding.
    """

    if isinstance(pixels, (bytes, bytearray, memoryview)):
        validate_length(pixels, width, height, bitpix)
        return np.frombuffer(pixels, dtype=NumCode[bitpix]).astype(np.float64)

    try:
        samples = np.asarray(pixels, dtype=np.float64)
    except (TypeError, ValueError):
        raise ValidationError(ValidationError.INVALID_VALUE,
                              'Pixels must be numeric.')
    if samples.size != width * height:
        raise ValidationError(
            ValidationError.DIMENSIONS_MISMATCH,
            'Got %d samples for a %d x %d image.'
            % (samples.size, width, height))
    return samples.ravel()


def build_hdu(pixels, width, height, encoding, user_header=None,
              is_primary=True):
    """
    Build an image HDU from caller pixels.

    The header starts with the structural keywords (``SIMPLE`` or
    ``XTENSION``, ``BITPIX``, ``NAXIS``, ``NAXIS1``, ``NAXIS2`` and for
    extensions ``PCOUNT`` and ``GCOUNT``), followed by the entries of
    ``user_header`` that are not protected.  User entries that cannot be
    written end up in the ``header_errors`` attribute of the result.

    Parameters
    ----------
    pixels : bytes-like or array-like
        ``width * height`` samples; bytes are taken as host order samples
        of ``encoding``.

    width, height : int
        Positive image dimensions.

    encoding : int or str
        BITPIX code or encoding name.

    user_header : dict, Header or iterable of pairs, optional
        Extra keywords.

    is_primary : bool, optional
        Build a `PrimaryHDU` rather than an `ImageHDU`.
    """

    bitpix = _bitpix(encoding)
    if (not (_is_int(width) and _is_int(height)) or
            width < 1 or height < 1):
        raise ValidationError(
            ValidationError.DIMENSIONS_MISMATCH,
            'Image dimensions must be positive integers, got %r x %r.'
            % (width, height))

    samples = _to_samples(pixels, width, height, bitpix)
    data = encode(samples, bitpix)

    cls = PrimaryHDU if is_primary else ImageHDU
    header = Header(cls._structural_cards(bitpix, width, height))
    count, errors = _add_user_cards(header, user_header)

    hdu = cls(data=data, header=header)
    hdu.header_errors = errors
    return hdu


class _ImageBaseHDU(_BaseHDU):
    """FITS image HDU base class."""

    @classmethod
    def match_header(cls, header):
        raise NotImplementedError

    @classmethod
    def _structural_cards(cls, bitpix, width, height):
        return [Card('BITPIX', bitpix, 'array data type'),
                Card('NAXIS', 2, 'number of array dimensions'),
                Card('NAXIS1', width, 'length of data axis 1'),
                Card('NAXIS2', height, 'length of data axis 2')]

    @property
    def bitpix(self):
        return _bitpix(self._header.get('BITPIX'))

    @property
    def shape(self):
        """``(height, width)``, like the numpy shape of the image."""

        width, height = get_dimensions(self._header)
        return height, width

    @lazyproperty
    def data(self):
        """
        All samples of the data segment as a flat ``float64`` array, or
        `None` if the HDU has no data.
        """

        if self._buffer is None:
            return None
        bitpix = self.bitpix
        return decode(self._buffer, bitpix,
                      self.size // bytes_per_sample(bitpix))


class PrimaryHDU(_ImageBaseHDU):
    """FITS primary HDU class."""

    @classmethod
    def match_header(cls, header):
        return 'SIMPLE' in header

    @classmethod
    def _structural_cards(cls, bitpix, width, height):
        cards = super(PrimaryHDU, cls)._structural_cards(bitpix, width,
                                                         height)
        return [Card('SIMPLE', True, 'conforms to FITS standard')] + cards

    def __init__(self, data=None, header=None):
        super(PrimaryHDU, self).__init__(data=data, header=header)
        self.name = 'PRIMARY'


class ImageHDU(_ImageBaseHDU, _ExtensionHDU):
    """FITS image extension HDU class."""

    _extension = 'IMAGE'

    @classmethod
    def match_header(cls, header):
        xtension = header.get('XTENSION')
        return (isinstance(xtension, str) and
                xtension.rstrip() == cls._extension)

    @classmethod
    def _structural_cards(cls, bitpix, width, height):
        cards = super(ImageHDU, cls)._structural_cards(bitpix, width, height)
        return ([Card('XTENSION', cls._extension, 'Image extension')] +
                cards +
                [Card('PCOUNT', 0, 'number of parameters'),
                 Card('GCOUNT', 1, 'number of groups')])
