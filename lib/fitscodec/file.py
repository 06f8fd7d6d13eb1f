import os

from fitscodec.verify import FITSIOError, ParseError


PYTHON_MODES = {'readonly': 'rb', 'ostream': 'wb'}  # open modes


class _File(object):
    """
    Represents a FITS file on disk (or in some other file-like object).

    Failures of the host file system are raised as `FITSIOError`.  File-like
    objects handed in by the caller are used as they are and are not closed
    by `close`.
    """

    def __init__(self, fileobj, mode='readonly'):
        if mode not in PYTHON_MODES:
            raise ValueError("Mode '%s' not recognized" % mode)

        self.closed = False
        self.mode = mode

        if isinstance(fileobj, (str, bytes, os.PathLike)):
            self.name = os.fsdecode(fileobj)
            self.file_like = False
            try:
                self.__file = open(self.name, PYTHON_MODES[mode])
            except OSError as exc:
                raise FITSIOError.from_oserror(exc)
        else:
            # We are dealing with a file like object.
            # Assume it is open.
            if hasattr(fileobj, 'name'):
                self.name = fileobj.name
            else:
                self.name = str(type(fileobj))
            self.file_like = True
            self.__file = fileobj

            if mode == 'readonly' and not hasattr(fileobj, 'read'):
                raise FITSIOError(FITSIOError.OTHER,
                                  "File-like object does not have a 'read' "
                                  "method, required for mode 'readonly'.")
            elif mode == 'ostream' and not hasattr(fileobj, 'write'):
                raise FITSIOError(FITSIOError.OTHER,
                                  "File-like object does not have a 'write' "
                                  "method, required for mode 'ostream'.")

    def __repr__(self):
        return '<%s.%s %s>' % (self.__module__, self.__class__.__name__,
                               self.name)

    # Support the 'with' statement
    def __enter__(self):
        return self

    def __exit__(self, type, value, traceback):
        self.close()

    def read(self, size=None):
        """
        Read ``size`` bytes, or everything that is left if ``size`` is
        `None`.  A short read raises ``UnexpectedEof``.
        """

        try:
            if size is None:
                return self.__file.read()
            data = self.__file.read(size)
        except OSError as exc:
            raise FITSIOError.from_oserror(exc)

        if len(data) != size:
            raise ParseError(ParseError.UNEXPECTED_EOF,
                             'Expected %d bytes from %s, got %d.'
                             % (size, self.name, len(data)))
        return data

    def write(self, data):
        try:
            self.__file.write(data)
        except OSError as exc:
            raise FITSIOError.from_oserror(exc)

    def flush(self):
        if hasattr(self.__file, 'flush'):
            try:
                self.__file.flush()
            except OSError as exc:
                raise FITSIOError.from_oserror(exc)

    def close(self):
        """
        Close the 'physical' FITS file.
        """

        if self.closed:
            return
        self.closed = True

        try:
            if self.file_like:
                self.flush()
            else:
                self.__file.close()
        except OSError as exc:
            raise FITSIOError.from_oserror(exc)
