import warnings

from fitscodec.file import _File
from fitscodec.hdu.base import (_BaseHDU, _ExtensionHDU, _data_size,
                                _hdu_class_from_header)
from fitscodec.hdu.image import PrimaryHDU
from fitscodec.header import Header
from fitscodec.util import _is_int, _pad_length, encode_ascii
from fitscodec.verify import _Verify, ParseError, ValidationError


__all__ = ['HDUList', 'fitsopen', 'assemble', 'parse_file']


# states of the file parser
_EXPECT_HEADER = 'ExpectHeader'
_EXPECT_DATA = 'ExpectData'
_DONE = 'Done'


def fitsopen(name, max_blocks=None):
    """Factory function to open a FITS file and return an `HDUList` object.

    Parameters
    ----------
    name : file path, file object or file-like object
        File to be opened.

    max_blocks : int, optional
        How many 2880 byte blocks to scan for the ``END`` card of each
        header.

    Returns
    -------
        hdulist : an HDUList object
            `HDUList` containing all of the header data units in the
            file.
    """

    with _File(name, mode='readonly') as ffo:
        data = ffo.read()
    return parse_file(data, max_blocks)


def assemble(hdus):
    """
    Concatenate HDUs into the bytes of a FITS file.

    Raises
    ------
    ValidationError
        ``InvalidStructure`` unless the first HDU is the only `PrimaryHDU`
        and all the others are extensions.
    """

    if not isinstance(hdus, HDUList):
        hdus = HDUList(hdus)
    hdus.verify('exception')
    return b''.join(hdu.tostring() for hdu in hdus)


def parse_file(data, max_blocks=None):
    """
    Split the bytes of a FITS file into HDUs.

    The first HDU must start with ``SIMPLE`` and every following one with
    ``XTENSION``.  Data segments are sized from their header; a missing pad
    after the last one is tolerated.  Blank or zero bytes after the last
    HDU are ignored with a warning.

    Raises
    ------
    ParseError
        ``UnexpectedEof`` for empty input or a truncated data segment,
        ``MalformedCard`` for a block that does not start a valid header,
        and any error raised while parsing a header.
    ValidationError
        If a header does not describe a valid data segment size.
    """

    data = memoryview(data)
    if not len(data):
        raise ParseError(ParseError.UNEXPECTED_EOF, 'Empty or truncated file.')

    hdulist = HDUList()
    offset = 0
    header = None
    state = _EXPECT_HEADER

    while state != _DONE:
        if state == _EXPECT_HEADER:
            header, hdrlen = _readheader(data, offset, not hdulist, max_blocks)
            offset += hdrlen
            state = _EXPECT_DATA
        else:
            size = _data_size(header)
            if offset + size > len(data):
                raise ParseError(ParseError.UNEXPECTED_EOF,
                                 'HDU #%d is truncated: data needs %d bytes, '
                                 'only %d left.'
                                 % (len(hdulist), size, len(data) - offset))

            buffer = data[offset:offset + size] if size else None
            klass = _hdu_class_from_header(_BaseHDU, header)
            hdulist.append(klass(data=buffer, header=header))
            offset += size + _pad_length(size)

            if offset >= len(data):
                state = _DONE
            elif not bytes(data[offset:]).strip(b'\0 '):
                warnings.warn('Unexpected extra padding at the end of the '
                              'file.  This padding may not be preserved when '
                              'saving changes.')
                state = _DONE
            else:
                state = _EXPECT_HEADER

    return hdulist


def _readheader(data, offset, first, max_blocks):
    """
    Read the header starting at ``offset``; returns the `Header` and the
    number of bytes it occupies.
    """

    keyword = 'SIMPLE' if first else 'XTENSION'
    start = bytes(data[offset:offset + 8])
    if start != encode_ascii('%-8s' % keyword):
        raise ParseError(ParseError.MALFORMED_CARD,
                         'Block at byte %d does not start with %s.'
                         % (offset, keyword))
    return Header.fromblocks(data, offset, max_blocks)


class HDUList(list, _Verify):
    """
    HDU list class.  This is the top-level FITS object.  When a FITS
    file is opened, a `HDUList` object is returned.
    """

    def __init__(self, hdus=[]):
        """
        Construct a `HDUList` object.

        Parameters
        ----------
        hdus : sequence of HDU objects or single HDU, optional
            The HDU object(s) to comprise the `HDUList`.
        """

        if hdus is None:
            hdus = []

        # can take one HDU, as well as a list of HDU's as input
        if isinstance(hdus, _BaseHDU):
            hdus = [hdus]
        else:
            hdus = list(hdus)

        for idx, hdu in enumerate(hdus):
            if not isinstance(hdu, _BaseHDU):
                raise TypeError(
                      "Element %d in the HDUList input is not an HDU." % idx)
        super(HDUList, self).__init__(hdus)

    def __getitem__(self, key):
        """
        Get an HDU from the `HDUList`, indexed by number or name.
        """

        if isinstance(key, slice):
            return HDUList(super(HDUList, self).__getitem__(key))
        return super(HDUList, self).__getitem__(self.index_of(key))

    def index_of(self, key):
        """
        Get the index of an HDU from the `HDUList`.  The key can be an
        integer or a string (the ``EXTNAME``, case-insensitive).

        Raises
        ------
        KeyError
            If no HDU matches the key.
        """

        if _is_int(key):
            return key

        if not isinstance(key, str):
            raise KeyError('Illegal key %r.' % (key,))

        name = key.strip().upper()
        for idx, hdu in enumerate(self):
            if hdu.name.strip().upper() == name:
                return idx
        raise KeyError('Extension %s not found.' % key)

    @classmethod
    def fromstring(cls, data, max_blocks=None):
        """Parse the bytes of a FITS file; see `parse_file`."""

        return parse_file(data, max_blocks)

    def tostring(self):
        """The bytes of the FITS file holding these HDUs."""

        return assemble(self)

    def writeto(self, fileobj):
        """
        Write the `HDUList` to a new file.

        Parameters
        ----------
        fileobj : file path, file object or file-like object
            File to write to.  A file path is created or truncated.
        """

        # assemble before opening, so a bad list leaves no file behind
        data = self.tostring()
        with _File(fileobj, mode='ostream') as ffo:
            ffo.write(data)

    def _verify(self):
        errs = []

        if not len(self):
            errs.append(ValidationError(
                ValidationError.INVALID_STRUCTURE,
                'A FITS file needs at least a primary HDU.'))
            return errs

        for idx, hdu in enumerate(self):
            if idx == 0 and not isinstance(hdu, PrimaryHDU):
                errs.append(ValidationError(
                    ValidationError.INVALID_STRUCTURE,
                    'HDUList\'s 0th element is not a primary HDU.'))
            elif idx > 0 and not isinstance(hdu, _ExtensionHDU):
                errs.append(ValidationError(
                    ValidationError.INVALID_STRUCTURE,
                    'HDUList\'s element %d is not an extension HDU.' % idx))
        return errs
