"""
Exception classes and the shared verification machinery.

Every failure the codec can produce is a `FITSError` carrying a ``kind``
string naming the exact failure; the subclasses group the kinds by where
they arise (parsing input bytes, validating caller input, or talking to the
host file system).
"""

import errno
import warnings


class FITSError(Exception):
    """Base class for all errors raised by fitscodec."""

    def __init__(self, kind, message=''):
        super(FITSError, self).__init__(message or kind)
        self.kind = kind

    def __repr__(self):
        return '%s(%r, %r)' % (self.__class__.__name__, self.kind,
                               str(self))


class ParseError(FITSError):
    """The input bytes are not a well-formed FITS stream."""

    MALFORMED_CARD = 'MalformedCard'
    MISSING_END = 'MissingEnd'
    UNEXPECTED_EOF = 'UnexpectedEof'


class ValidationError(FITSError):
    """Caller supplied (or header declared) values are unusable."""

    DIMENSIONS_MISMATCH = 'DimensionsMismatch'
    MISSING_DIMENSIONS = 'MissingDimensions'
    UNSUPPORTED_ENCODING = 'UnsupportedEncoding'
    SAMPLE_OUT_OF_RANGE = 'SampleOutOfRange'
    INVALID_KEYWORD = 'InvalidKeyword'
    INVALID_VALUE = 'InvalidValue'
    INVALID_STRUCTURE = 'InvalidStructure'


class FITSIOError(FITSError):
    """
    The host file system refused an operation.

    ``code`` holds the operating system errno when one is known.
    """

    NOT_FOUND = 'NotFound'
    PERMISSION_DENIED = 'PermissionDenied'
    OTHER = 'Other'

    def __init__(self, kind, message='', code=None):
        super(FITSIOError, self).__init__(kind, message)
        self.code = code

    @classmethod
    def from_oserror(cls, exc):
        """Translate an `OSError` into the matching `FITSIOError`."""

        code = getattr(exc, 'errno', None)
        if isinstance(exc, FileNotFoundError) or code == errno.ENOENT:
            kind = cls.NOT_FOUND
        elif isinstance(exc, PermissionError) or code in (errno.EACCES,
                                                          errno.EPERM):
            kind = cls.PERMISSION_DENIED
        else:
            kind = cls.OTHER
        return cls(kind, str(exc), code=code)


class _Verify(object):
    """
    Shared methods for verification.

    Subclasses implement ``_verify()`` returning a list of
    `ValidationError` instances describing everything wrong with the
    object; an empty list means the object is valid.
    """

    def _verify(self):
        raise NotImplementedError

    def verify(self, option='warn'):
        """
        Verify all values in the instance.

        Parameters
        ----------
        option : str
            Output verification option.  Must be one of ``"ignore"``,
            ``"warn"``, or ``"exception"``.

        Returns
        -------
        errs : list
            The errors found, whatever the option.
        """

        _option = option.lower()
        if _option not in ('ignore', 'warn', 'exception'):
            raise ValueError('Option %s not recognized.' % option)

        errs = self._verify()
        if _option == 'exception' and errs:
            raise errs[0]
        elif _option == 'warn':
            for err in errs:
                warnings.warn('Verification reported: %s' % err)
        return errs
