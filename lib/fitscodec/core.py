"""
A module for reading and writing Flexible Image Transport System
(FITS) image files.  This file format was endorsed by the International
Astronomical Union in 1999 and mandated by NASA as the standard format
for storing high energy astrophysics data.  For details of the FITS
standard, see the NASA/Science Office of Standards and Technology
publication, NOST 100-2.0.

The file level functions in this module never raise for a bad file or bad
input: they return a `Result` whose ``error`` is the `FITSError` that
stopped them.  The lower level classes (`Card`, `Header`, `HDUList` and the
HDU classes) raise those errors directly.

For detailed examples of usage, see the docstrings of `decode_file` and
`encode_file`.
"""

import functools
from collections import namedtuple

import numpy as np

from fitscodec.card import Card, Undefined, UNDEFINED, ValueKind, \
                           parse_card, format_card
from fitscodec.hdu.hdulist import HDUList, fitsopen, assemble, parse_file
from fitscodec.hdu.image import (BITPIX, NumCode, PROTECTED_KEYWORDS,
                                 PrimaryHDU, ImageHDU, _ImageBaseHDU,
                                 _add_user_cards, _find_keyword, _host_bytes,
                                 _user_entries, build_hdu, bytes_per_sample,
                                 decode, encode, get_dimensions,
                                 resolve_encoding, validate_length)
from fitscodec.header import Header, parse_block, write_block
from fitscodec.util import BLOCK_SIZE, DEFAULT_BITPIX, MAX_HEADER_BLOCKS
from fitscodec.verify import FITSError, FITSIOError, ParseError, \
                             ValidationError


__all__ = ['Result', 'Image', 'decode_file', 'encode_file', 'decode_header',
           'encode_multi_extension_file', 'copy_with_header', 'check_file',
           'update_header', 'compare_files', 'Card', 'Undefined', 'UNDEFINED', 'ValueKind', 'parse_card',
           'format_card', 'Header', 'parse_block', 'write_block', 'HDUList',
           'PrimaryHDU', 'ImageHDU', 'fitsopen', 'assemble', 'parse_file',
           'build_hdu', 'bytes_per_sample', 'decode', 'encode',
           'validate_length', 'get_dimensions', 'resolve_encoding', 'BITPIX',
           'NumCode', 'PROTECTED_KEYWORDS', 'BLOCK_SIZE', 'DEFAULT_BITPIX',
           'MAX_HEADER_BLOCKS', 'FITSError', 'FITSIOError', 'ParseError',
           'ValidationError']


class Result(namedtuple('Result', ['value', 'error'])):
    """
    Outcome of a file level operation: ``value`` on success, ``error`` (a
    `FITSError`) on failure.  Exactly one of the two is set, except for
    operations whose successful value is `None`.
    """

    __slots__ = ()

    @property
    def ok(self):
        return self.error is None


# A decoded image: ``header`` is a plain dict of keyword to value,
# ``pixels`` the ``width * height`` samples in row order as host order bytes
# of the stored encoding, and ``data`` the same samples as a flat float64
# array
Image = namedtuple('Image', ['header', 'width', 'height', 'pixels', 'data'])


def _result(func):
    """
    Decorator turning the `FITSError` raised by ``func`` into a failed
    `Result` and its return value into a successful one.
    """

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            value = func(*args, **kwargs)
        except FITSError as exc:
            return Result(None, exc)
        return Result(value, None)

    return wrapper


def _select_hdu(hdulist, ext):
    """
    The image HDU to decode: the one at index or with the name ``ext``, or
    if ``ext`` is `None` the first image HDU holding data.
    """

    if ext is None:
        for hdu in hdulist:
            if isinstance(hdu, _ImageBaseHDU) and hdu.size:
                return hdu
        raise ValidationError(ValidationError.MISSING_DIMENSIONS,
                              'No HDU in the file holds image data.')

    try:
        hdu = hdulist[ext]
    except (IndexError, KeyError):
        raise ValidationError(ValidationError.INVALID_STRUCTURE,
                              'No HDU %r in a file of %d HDUs.'
                              % (ext, len(hdulist)))
    if not isinstance(hdu, _ImageBaseHDU):
        raise ValidationError(ValidationError.INVALID_STRUCTURE,
                              'HDU %r is not an image.' % (ext,))
    return hdu


def _read_image(hdu):
    width, height = get_dimensions(hdu.header)
    raw = hdu.rawdata or b''
    count = width * height
    return Image(dict(hdu.header.items()), width, height,
                 _host_bytes(raw, hdu.bitpix, count),
                 decode(raw, hdu.bitpix, count))


@_result
def decode_file(path, ext=None):
    """
    Read a FITS image.

    Parameters
    ----------
    path : file path, file object or file-like object
        File to read.

    ext : int or str, optional
        Index or ``EXTNAME`` of the HDU to decode.  By default the first HDU
        holding image data is used, which is the primary HDU for a simple
        file.

    Returns
    -------
    result : Result
        On success ``result.value`` is an `Image`.  Its ``pixels`` are the
        samples as host order bytes of the stored encoding, exactly what
        `encode_file` takes back; its ``data`` are the same samples as
        float64 whatever the stored encoding.

    Examples
    --------
    >>> result = decode_file('image.fits')
    >>> if result.ok:
    ...     image = result.value
    ...     print(image.width, image.height, image.header['BITPIX'])
    ...     print(image.data[0])
    """

    hdulist = fitsopen(path)
    return _read_image(_select_hdu(hdulist, ext))


@_result
def decode_header(path, ext=0):
    """
    Read only the header of one HDU of a FITS file as a plain dict.

    The whole file is still checked for structure, so a truncated data
    segment is reported as an error.
    """

    hdulist = fitsopen(path)
    try:
        hdu = hdulist[ext]
    except (IndexError, KeyError):
        raise ValidationError(ValidationError.INVALID_STRUCTURE,
                              'No HDU %r in a file of %d HDUs.'
                              % (ext, len(hdulist)))
    return dict(hdu.header.items())


@_result
def encode_file(path, pixels, width, height, encoding=None, header=None):
    """
    Write a single image FITS file.

    Parameters
    ----------
    path : file path, file object or file-like object
        File to write; an existing file is replaced.

    pixels : array-like or bytes-like
        ``width * height`` samples in row order.  Bytes are taken as host
        order samples of the encoding.

    width, height : int
        Image dimensions.

    encoding : int or str, optional
        BITPIX code (8, 16, 32, -32, -64) or name (``'byte'``, ``'short'``,
        ``'int'``, ``'float'``, ``'double'``).  Defaults to the ``BITPIX``
        entry of ``header``, then to 32-bit float.

    header : dict, Header or iterable of pairs, optional
        Extra keywords.  Values may be ``(value, comment)`` tuples.  The
        structural keywords are always computed and any user values for
        them are dropped.

    Returns
    -------
    result : Result
        On success ``result.value`` lists the ``(keyword, error)`` pairs of
        header entries that could not be written and were skipped.

    Examples
    --------
    >>> encode_file('out.fits', [0.0, 0.5, 1.0, 1.5], 2, 2,
    ...             header={'OBJECT': 'M31'})
    Result(value=[], error=None)
    """

    bitpix = resolve_encoding(encoding, header)
    hdu = build_hdu(pixels, width, height, bitpix, header, is_primary=True)
    HDUList([hdu]).writeto(path)
    return hdu.header_errors


@_result
def encode_multi_extension_file(path, extensions, encoding=None):
    """
    Write a FITS file of several images: the first becomes the primary HDU
    and the others ``IMAGE`` extensions.

    Parameters
    ----------
    path : file path, file object or file-like object
        File to write.

    extensions : sequence of dict
        One mapping per image with the keys ``pixels``, ``width`` and
        ``height``, and optionally ``header`` and ``encoding``.

    encoding : int or str, optional
        Encoding for the images that do not name their own.

    Returns
    -------
    result : Result
        On success ``result.value`` holds the skipped ``(keyword, error)``
        pairs of each image, in order.
    """

    extensions = list(extensions)
    hdulist = HDUList()

    for idx, ext in enumerate(extensions):
        try:
            pixels, width, height = ext['pixels'], ext['width'], ext['height']
        except KeyError as exc:
            raise ValidationError(ValidationError.INVALID_STRUCTURE,
                                  'Image #%d is missing %s.' % (idx, exc))
        header = ext.get('header')
        bitpix = resolve_encoding(ext.get('encoding', encoding), header)

        if idx == 0 and len(extensions) > 1:
            found, value = _find_keyword(header, 'EXTEND')
            if not found:
                header = _user_entries(header) + [
                    ('EXTEND', (True, 'There may be FITS extensions'))]

        hdulist.append(build_hdu(pixels, width, height, bitpix, header,
                                 is_primary=(idx == 0)))

    hdulist.writeto(path)
    return [hdu.header_errors for hdu in hdulist]


@_result
def copy_with_header(source, dest, preserve_bitpix=True):
    """
    Copy the first image of ``source`` to ``dest`` together with its header.

    Parameters
    ----------
    source, dest : file path, file object or file-like object
        Files to read and write.

    preserve_bitpix : bool, optional
        Keep the encoding of the source.  When `False` the copy is written
        as 32-bit float.

    Returns
    -------
    result : Result
        On success ``result.value`` lists the skipped ``(keyword, error)``
        pairs.
    """

    hdulist = fitsopen(source)
    hdu = _select_hdu(hdulist, None)
    image = _read_image(hdu)

    if preserve_bitpix:
        bitpix, pixels = hdu.bitpix, image.pixels
    else:
        bitpix, pixels = DEFAULT_BITPIX, image.data
    new_hdu = build_hdu(pixels, image.width, image.height, bitpix,
                        hdu.header, is_primary=True)
    HDUList([new_hdu]).writeto(dest)
    return new_hdu.header_errors


@_result
def update_header(path, header, ext=0):
    """
    Add or replace keywords in the header of one HDU of an existing file.

    The file is read whole, updated and written back in place.  As with
    `encode_file`, structural keywords are never taken from ``header`` and
    entries that cannot be written are skipped and reported.

    Parameters
    ----------
    path : file path
        File to update.

    header : dict, Header or iterable of pairs
        Keywords to set.  Values may be ``(value, comment)`` tuples.

    ext : int or str, optional
        Index or ``EXTNAME`` of the HDU to update; the primary HDU by
        default.

    Returns
    -------
    result : Result
        On success ``result.value`` lists the skipped ``(keyword, error)``
        pairs.
    """

    hdulist = fitsopen(path)
    try:
        hdu = hdulist[ext]
    except (IndexError, KeyError):
        raise ValidationError(ValidationError.INVALID_STRUCTURE,
                              'No HDU %r in a file of %d HDUs.'
                              % (ext, len(hdulist)))

    count, errors = _add_user_cards(hdu.header, header)
    hdulist.writeto(path)
    return errors


@_result
def compare_files(path1, path2, check_pixels=True):
    """
    Compare the first images of two FITS files.

    Parameters
    ----------
    path1, path2 : file path, file object or file-like object
        Files to compare.

    check_pixels : bool, optional
        Also compare the samples when the dimensions agree.  Samples are
        compared by value, so the same image stored in two encodings
        matches.

    Returns
    -------
    result : Result
        On success ``result.value`` is a list of ``(what, detail)`` pairs,
        empty when the files match:

        - ``('bitpix', (bitpix1, bitpix2))``
        - ``('dimensions', ((width1, height1), (width2, height2)))``
        - ``('pixels', None)``
        - ``('missing_keys', [...])``: keywords only in the first file
        - ``('extra_keys', [...])``: keywords only in the second file
    """

    image1 = _read_image(_select_hdu(fitsopen(path1), None))
    image2 = _read_image(_select_hdu(fitsopen(path2), None))
    differences = []

    bitpix1, bitpix2 = image1.header['BITPIX'], image2.header['BITPIX']
    if bitpix1 != bitpix2:
        differences.append(('bitpix', (bitpix1, bitpix2)))

    dims1 = (image1.width, image1.height)
    dims2 = (image2.width, image2.height)
    if dims1 != dims2:
        differences.append(('dimensions', (dims1, dims2)))
    elif check_pixels and not np.array_equal(image1.data, image2.data,
                                             equal_nan=True):
        differences.append(('pixels', None))

    missing = [key for key in image1.header if key not in image2.header]
    extra = [key for key in image2.header if key not in image1.header]
    if missing:
        differences.append(('missing_keys', missing))
    if extra:
        differences.append(('extra_keys', extra))

    return differences


@_result
def check_file(path):
    """
    Check the structure of a FITS file.  On success ``result.value`` is the
    number of HDUs in it.
    """

    return len(fitsopen(path))
