import math
import re
import warnings

import numpy as np

from fitscodec.util import _is_int, decode_ascii
from fitscodec.verify import _Verify, ParseError, ValidationError


__all__ = ['Card', 'Undefined', 'UNDEFINED', 'ValueKind', 'parse_card',
           'format_card']


class Undefined(object):
    """Undefined value."""

    def __repr__(self):
        return 'UNDEFINED'

    def __eq__(self, other):
        return isinstance(other, Undefined)

    def __ne__(self, other):
        return not self.__eq__(other)

    def __hash__(self):
        return hash(Undefined)
UNDEFINED = Undefined()


class ValueKind(object):
    """The tags a card value may carry."""

    INTEGER = 'integer'
    FLOAT = 'float'
    BOOL = 'bool'
    STRING = 'string'
    UNDEFINED = 'undefined'


def _value_kind(value):
    """
    Returns the `ValueKind` tag for a Python value, or `None` if the value
    cannot be stored in a card.
    """

    # must be before int checking since bool is also int
    if isinstance(value, (bool, np.bool_)):
        return ValueKind.BOOL
    elif _is_int(value):
        return ValueKind.INTEGER
    elif isinstance(value, (float, np.floating)):
        return ValueKind.FLOAT
    elif isinstance(value, str):
        return ValueKind.STRING
    elif isinstance(value, Undefined):
        return ValueKind.UNDEFINED
    return None


def _normalize_value(value, kind):
    # numpy scalars are stored as the equivalent builtin
    if kind == ValueKind.BOOL:
        return bool(value)
    elif kind == ValueKind.INTEGER:
        return int(value)
    elif kind == ValueKind.FLOAT:
        return float(value)
    return value


class Card(_Verify):
    length = 80

    # String for a FITS standard compliant (FSC) keyword.
    _keywd_FSC_RE = re.compile(r'^[A-Z0-9_-]{0,8}$')

    # Integer and floating point value tokens.  Floats may use D as the
    # exponent marker, which is read as E.
    _int_RE = re.compile(r'^[+-]?\d+$')
    _numr_RE = re.compile(r'^[+-]?(\.\d+|\d+(\.\d*)?)([deDE][+-]?\d+)?$')
    _float_marker_RE = re.compile(r'[.deDE]')

    # FSC commentary card string which must contain printable ASCII characters.
    _ascii_text_RE = re.compile(r'^[ -~]*$')

    _commentary_keywords = ['', 'COMMENT', 'HISTORY']

    # Longest value field that still fits after "KEYWORD = "
    _max_value_length = 70

    def __init__(self, keyword='', value=UNDEFINED, comment=''):
        if not isinstance(keyword, str):
            raise ValidationError(ValidationError.INVALID_KEYWORD,
                                  'Keyword name %r is not a string.'
                                  % (keyword,))
        if value is None:
            value = UNDEFINED
        self._keyword = keyword.strip().upper()
        self._kind = _value_kind(value)
        self._value = _normalize_value(value, self._kind)
        self._comment = comment or ''

    def __repr__(self):
        return repr((self.keyword, self.value, self.comment))

    def __str__(self):
        return self.image

    @property
    def keyword(self):
        return self._keyword

    @property
    def value(self):
        return self._value

    @value.setter
    def value(self, value):
        if value is None:
            value = UNDEFINED
        self._kind = _value_kind(value)
        self._value = _normalize_value(value, self._kind)

    @property
    def comment(self):
        return self._comment

    @comment.setter
    def comment(self, comment):
        self._comment = comment or ''

    @property
    def kind(self):
        """The `ValueKind` tag of the value, `None` if it is unsupported."""

        return self._kind

    @property
    def is_commentary(self):
        """True for blank, ``COMMENT`` and ``HISTORY`` cards."""

        return self._keyword in self._commentary_keywords

    @property
    def is_end(self):
        return self._keyword == 'END'

    @property
    def image(self):
        """
        The 80 column card image.  Raises `ValidationError` if the card
        cannot be represented.
        """

        self.verify('exception')
        return self._formatimage()

    @classmethod
    def fromstring(cls, image):
        """
        Construct a `Card` object from a (raw) string or bytes.  It will pad
        the string if it is shorter than a card image (80 columns).

        Raises
        ------
        ParseError
            ``MalformedCard`` if the image is longer than 80 columns,
            contains characters other than printable ASCII, has an illegal
            keyword, or holds an unparsable string value.
        """

        try:
            image = decode_ascii(image)
        except UnicodeDecodeError:
            raise ParseError(ParseError.MALFORMED_CARD,
                             'Card image is not ASCII text: %r' % (image,))

        if len(image) > cls.length:
            raise ParseError(ParseError.MALFORMED_CARD,
                             'Card image is longer than %d columns: %r'
                             % (cls.length, image))
        if not cls._ascii_text_RE.match(image):
            raise ParseError(ParseError.MALFORMED_CARD,
                             'Unprintable card image %r' % image)
        image = _pad(image)

        keyword = cls._parsekeyword(image)
        if keyword in cls._commentary_keywords:
            return cls(keyword, image[8:].rstrip())
        elif keyword == 'END':
            return cls(keyword)

        # the value indicator must sit in column 9; anything else means the
        # keyword has no value
        if image[8] != '=':
            return cls(keyword, UNDEFINED, image[8:].strip())

        value, comment = cls._parsevaluefield(image[10:], image)
        return cls(keyword, value, comment)

    @classmethod
    def _parsekeyword(cls, image):
        keyword = image[:8].strip().upper()
        if not cls._keywd_FSC_RE.match(keyword):
            raise ParseError(ParseError.MALFORMED_CARD,
                             'Illegal keyword name %r in card image %r.'
                             % (keyword, image))
        return keyword

    @classmethod
    def _parsevaluefield(cls, field, image):
        """Split the value field into a typed value and the comment."""

        field = field.lstrip()

        if not field.startswith("'"):
            token, sepr, comment = field.partition('/')
            return cls._infervalue(token.strip()), comment.strip()

        # A FITS string: doubled single quotes stand for one quote, the first
        # lone quote closes the string
        chars = []
        idx = 1
        while idx < len(field):
            char = field[idx]
            if char == "'":
                if field[idx + 1:idx + 2] == "'":
                    chars.append("'")
                    idx += 2
                    continue
                break
            chars.append(char)
            idx += 1
        else:
            raise ParseError(ParseError.MALFORMED_CARD,
                             'Unterminated string value in card image %r.'
                             % image)

        rest = field[idx + 1:].strip()
        if rest and not rest.startswith('/'):
            raise ParseError(ParseError.MALFORMED_CARD,
                             'Unexpected text after string value in card '
                             'image %r.' % image)

        # trailing blanks in a FITS string are not significant
        return ''.join(chars).rstrip(), rest[1:].strip()

    @classmethod
    def _infervalue(cls, token):
        """
        Infer the value of an unquoted token: logical, then integer, then
        floating point, falling back to the raw token as a string.
        """

        if token in ('T', 'F'):
            return token == 'T'
        elif cls._int_RE.match(token):
            return int(token)
        elif (cls._float_marker_RE.search(token) and
                cls._numr_RE.match(token)):
            return float(token.upper().replace('D', 'E'))
        elif not token:
            return UNDEFINED
        return token

    def _formatkeyword(self):
        return '%-8s' % self._keyword

    def _formatvalue(self):
        kind = self._kind
        value = self._value

        if kind == ValueKind.STRING:
            # string value should occupies at least 8 columns, unless it is
            # a null string
            if value == '':
                return "''"
            val_str = "'%-8s'" % value.replace("'", "''")
            return '%-20s' % val_str
        elif kind == ValueKind.BOOL:
            return '%20s' % ('T' if value else 'F')
        elif kind == ValueKind.INTEGER:
            return '%20d' % value
        elif kind == ValueKind.FLOAT:
            return '%20s' % _format_float(value)
        return ''

    def _formatcomment(self):
        if not self._comment:
            return ''
        return ' / %s' % self._comment

    def _formatimage(self):
        keyword = self._formatkeyword()

        if self.is_end:
            return '%-80s' % 'END'
        elif self.is_commentary:
            text = self._value
            if self._kind == ValueKind.UNDEFINED:
                text = ''
            return '%-80s' % (keyword + text)

        output = ''.join([keyword, '= ', self._formatvalue(),
                          self._formatcomment()])

        if len(output) <= self.length:
            output = '%-80s' % output
        else:
            warnings.warn('Card is too long, comment is truncated.')
            output = output[:self.length]
        return output

    def _verify(self):
        errs = []
        keyword = self._keyword

        if len(keyword) > 8:
            errs.append(ValidationError(
                ValidationError.INVALID_KEYWORD,
                'Keyword name %r is greater than 8 characters.' % keyword))
        elif not self._keywd_FSC_RE.match(keyword):
            errs.append(ValidationError(
                ValidationError.INVALID_KEYWORD,
                'Illegal keyword name %r.' % keyword))

        kind = self._kind
        value = self._value
        if kind is None:
            errs.append(ValidationError(
                ValidationError.INVALID_VALUE,
                'Illegal value for %s: %r.' % (keyword, value)))
        elif kind == ValueKind.FLOAT and not math.isfinite(value):
            errs.append(ValidationError(
                ValidationError.INVALID_VALUE,
                'Non-finite value for %s: %r.' % (keyword, value)))
        elif kind == ValueKind.STRING and not self._ascii_text_RE.match(value):
            errs.append(ValidationError(
                ValidationError.INVALID_VALUE,
                'Unprintable string %r for %s.' % (value, keyword)))
        elif self.is_commentary and kind not in (ValueKind.STRING,
                                                 ValueKind.UNDEFINED):
            errs.append(ValidationError(
                ValidationError.INVALID_VALUE,
                'Commentary card %s must have a string value.' % keyword))

        if not isinstance(self._comment, str):
            errs.append(ValidationError(
                ValidationError.INVALID_VALUE,
                'Comment for %s must be a string, not %r.'
                % (keyword, self._comment)))
        elif not self._ascii_text_RE.match(self._comment):
            errs.append(ValidationError(
                ValidationError.INVALID_VALUE,
                'Unprintable comment %r for %s.' % (self._comment, keyword)))

        if errs:
            return errs

        if self.is_commentary:
            if kind == ValueKind.STRING and len(value) > self.length - 8:
                errs.append(ValidationError(
                    ValidationError.INVALID_VALUE,
                    'The %s text is too long' % (keyword or 'blank card')))
        elif len(self._formatvalue()) > self._max_value_length:
            errs.append(ValidationError(
                ValidationError.INVALID_VALUE,
                'The keyword %s with its value is too long' % keyword))
        return errs


def parse_card(raw):
    """Parse one 80 byte card image; see `Card.fromstring`."""

    return Card.fromstring(raw)


def format_card(card):
    """Format a `Card` to its 80 column image."""

    return card.image


def _format_float(value):
    """Format a floating number to make sure it gets the decimal point."""

    # repr is the shortest string that reads back to the same float
    value_str = repr(float(value)).upper()
    if '.' not in value_str and 'E' not in value_str:
        value_str += '.0'
    return value_str


def _pad(input):
    """Pad blank space to the input string to be multiple of 80."""

    _len = len(input)
    if _len == Card.length:
        return input
    elif _len > Card.length:
        strlen = _len % Card.length
        if strlen == 0:
            return input
        else:
            return input + ' ' * (Card.length - strlen)

    # minimum length is 80
    else:
        strlen = _len % Card.length
        return input + ' ' * (Card.length - strlen)
