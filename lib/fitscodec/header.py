import copy

from fitscodec.card import Card
from fitscodec.util import (BLOCK_SIZE, MAX_HEADER_BLOCKS, _pad_length,
                            encode_ascii)
from fitscodec.verify import ParseError


__all__ = ['Header', 'parse_block', 'write_block']


class Header(object):
    """
    FITS header class.

    The purpose of this class is to present the header like a dictionary
    as opposed to a list of cards.  The header uses the card's keyword as
    the dictionary key and the card's value as the dictionary value.

    Unlike a raw FITS header a `Header` holds at most one card per keyword:
    setting or appending a keyword that is already present replaces the
    value of the existing card, so the last write wins.  Commentary cards
    (``COMMENT``, ``HISTORY`` and blank cards) carry no key/value pair; they
    are kept aside, are written after the keyword cards, and are not part
    of the mapping.
    """

    def __init__(self, cards=()):
        """
        Construct a `Header` from an iterable of `Card` objects or another
        `Header`.
        """

        self.clear()

        if isinstance(cards, Header):
            cards = cards.cards

        for card in cards:
            self.append(card)

    def __len__(self):
        return len(self._cards)

    def __iter__(self):
        return iter(list(self._cards))

    def __contains__(self, keyword):
        if not isinstance(keyword, str):
            return False
        return keyword.strip().upper() in self._cards

    def __getitem__(self, key):
        """Get a header keyword value."""

        return self._cards[self._normkey(key)].value

    def __setitem__(self, key, value):
        """
        Set a header keyword value.  The value may be given alone or as a
        ``(value, comment)`` tuple.
        """

        if isinstance(value, tuple):
            if not (0 < len(value) <= 2):
                raise ValueError(
                    'A Header item may be set with either a scalar value, '
                    'a 1-tuple containing a scalar value, or a 2-tuple '
                    'containing a scalar value and comment string.')
            if len(value) == 1:
                value, comment = value[0], None
            else:
                value, comment = value
                if comment is None:
                    comment = ''
        else:
            comment = None

        keyword = self._normkey(key)
        if keyword in self._cards:
            card = self._cards[keyword]
            card.value = value
            if comment is not None:
                card.comment = comment
        else:
            self.append(Card(keyword, value, comment))

    def __delitem__(self, key):
        """Delete the card with the keyword ``key``."""

        keyword = self._normkey(key)
        if keyword not in self._cards:
            raise KeyError("Keyword '%s' not found." % keyword)
        del self._cards[keyword]

    def __repr__(self):
        return '%s(%r)' % (self.__class__.__name__, dict(self.items()))

    def __str__(self):
        return ''.join(str(card) for card in self.cards)

    @property
    def cards(self):
        """
        The cards that make up this Header, keyword cards first and then
        commentary cards, in the order they will be written.
        """

        return tuple(self._cards.values()) + tuple(self._commentary)

    @property
    def comments(self):
        """The comment associated with each keyword, if any."""

        return dict((keyword, card.comment)
                    for keyword, card in self._cards.items())

    @classmethod
    def fromstring(cls, data, offset=0, max_blocks=None):
        """
        Creates an HDU header from a byte string containing the entire header
        data.

        Parameters
        ----------
        data : bytes or str
           String containing the header, followed by anything.

        offset : int, optional
           Where in ``data`` the header starts.

        max_blocks : int, optional
           How many 2880 byte blocks to scan for the ``END`` card.
        """

        return cls.fromblocks(data, offset, max_blocks)[0]

    @classmethod
    def fromblocks(cls, data, offset=0, max_blocks=None):
        """
        Like `fromstring`, but also returns the number of bytes the header
        occupies in ``data``, padding included.

        Commentary cards are dropped, as they have no place in the keyword
        mapping.
        """

        header = cls()
        ncards = 0
        for card in parse_block(data, offset, max_blocks):
            ncards += 1
            if not card.is_commentary:
                header.append(card)

        # the END card is part of the header too
        hdrlen = (ncards + 1) * Card.length
        return header, hdrlen + _pad_length(hdrlen)

    def tostring(self):
        """Returns the header as FITS blocks, ``END`` card included."""

        return write_block(self.cards)

    def clear(self):
        """
        Remove all cards from the header.
        """

        self._cards = {}
        self._commentary = []

    def copy(self):
        """
        Make a copy of the `Header`.
        """

        return self.__class__([copy.copy(card) for card in self.cards])

    def get(self, key, default=None):
        try:
            return self[key]
        except KeyError:
            return default

    def keys(self):
        return list(self._cards)

    def values(self):
        return [card.value for card in self._cards.values()]

    def items(self):
        return [(card.keyword, card.value) for card in self._cards.values()]

    def update(self, other):
        """
        Set every keyword of a mapping (or iterable of pairs) into this
        header, as with ``header[key] = value``.
        """

        if hasattr(other, 'items'):
            other = other.items()
        for key, value in other:
            self[key] = value

    def append(self, card):
        """
        Add a `Card` to the header.  A card whose keyword is already present
        replaces the value and comment of the existing card.  ``END`` cards
        are ignored; they are generated when writing.
        """

        if card.is_end:
            return
        elif card.is_commentary:
            self._commentary.append(card)
        elif card.keyword in self._cards:
            existing = self._cards[card.keyword]
            existing.value = card.value
            existing.comment = card.comment
        else:
            self._cards[card.keyword] = card

    def add_history(self, value):
        """Add a ``HISTORY`` card."""

        self._commentary.append(Card('HISTORY', value))

    def add_comment(self, value):
        """Add a ``COMMENT`` card."""

        self._commentary.append(Card('COMMENT', value))

    def _normkey(self, key):
        if not isinstance(key, str):
            raise KeyError('Illegal key data type %s' % type(key))
        return key.strip().upper()


def parse_block(data, offset=0, max_blocks=None):
    """
    Lazily parse the cards of a header starting at ``offset``, up to (but
    not including) the ``END`` card.

    Raises
    ------
    ParseError
        ``MissingEnd`` if no ``END`` card appears within ``max_blocks``
        blocks or the data stops cleanly at a block boundary without one;
        ``UnexpectedEof`` if the data stops in the middle of a block;
        ``MalformedCard`` for unparsable cards.
    """

    if max_blocks is None:
        max_blocks = MAX_HEADER_BLOCKS

    limit = offset + max_blocks * BLOCK_SIZE
    idx = offset

    while True:
        if idx >= limit:
            raise ParseError(ParseError.MISSING_END,
                             'Header missing END card within %d blocks.'
                             % max_blocks)

        image = data[idx:idx + Card.length]
        if len(image) < Card.length:
            if not len(image) and (idx - offset) % BLOCK_SIZE == 0:
                raise ParseError(ParseError.MISSING_END,
                                 'Header missing END card.')
            raise ParseError(ParseError.UNEXPECTED_EOF,
                             'Header truncated at byte %d.'
                             % (idx + len(image)))

        card = Card.fromstring(image)
        idx += Card.length
        if card.is_end:
            return
        yield card


def write_block(cards):
    """
    Format ``cards`` followed by an ``END`` card, padded with blank cards to
    a multiple of the FITS block size.
    """

    images = [card.image for card in cards if not card.is_end]
    images.append(Card('END').image)

    blocks = ''.join(images)
    blocks += ' ' * _pad_length(len(blocks))
    return encode_ascii(blocks)
