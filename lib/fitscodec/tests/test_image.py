import struct
import sys

import numpy as np
import pytest

import fitscodec
from fitscodec.card import Card
from fitscodec.hdu.image import (BITPIX, PrimaryHDU, ImageHDU,
                                 _add_user_cards, _host_bytes, build_hdu,
                                 bytes_per_sample, decode, encode,
                                 get_dimensions, resolve_encoding,
                                 validate_length)
from fitscodec.header import Header
from fitscodec.tests import FitscodecTestCase, pattern
from fitscodec.verify import ValidationError


# a range of values each encoding can hold exactly
SAMPLE_RANGES = {8: (0, 255), 16: (-32768, 32767),
                 32: (-2147483648, 2147483647), -32: (-1.0, 1.0),
                 -64: (-1e300, 1e300)}


class TestImageFunctions(FitscodecTestCase):
    def test_bytes_per_sample(self):
        assert [bytes_per_sample(b) for b in (8, 16, 32, -32, -64)] == \
            [1, 2, 4, 4, 8]
        assert bytes_per_sample('double') == 8
        assert bytes_per_sample('FLOAT') == 4
        assert bytes_per_sample('int16') == 2
        assert bytes_per_sample(np.dtype('uint8')) == 1

    def test_unsupported_encodings(self):
        for encoding in (64, 12, 0, 'long', None, True, 8.0):
            with pytest.raises(ValidationError) as exc:
                bytes_per_sample(encoding)
            assert exc.value.kind == ValidationError.UNSUPPORTED_ENCODING

    def test_encoding_names(self):
        assert BITPIX == {'byte': 8, 'short': 16, 'int': 32, 'float': -32,
                          'double': -64}

    def test_decode_known_bytes(self):
        assert list(decode(b'\x00\xff', 8, 2)) == [0.0, 255.0]
        assert list(decode(b'\x00\x01\xff\xff', 16, 2)) == [1.0, -1.0]
        assert list(decode(b'\x00\x00\x01\x00', 32, 1)) == [256.0]
        assert list(decode(struct.pack('>f', 1.5), -32, 1)) == [1.5]
        assert list(decode(struct.pack('>d', 0.1), -64, 1)) == [0.1]

    def test_decode_returns_float64(self):
        samples = decode(b'\x00\x01\x00\x02', 'short', 2)
        assert samples.dtype == np.float64
        assert samples.shape == (2,)

    def test_decode_ignores_padding(self):
        data = struct.pack('>hh', 7, -7) + b'\0' * 2876
        assert list(decode(data, 16, 2)) == [7.0, -7.0]

    def test_decode_short_buffer(self):
        with pytest.raises(ValidationError) as exc:
            decode(b'\x00\x01\x02', 16, 2)
        assert exc.value.kind == ValidationError.DIMENSIONS_MISMATCH

    def test_decode_empty(self):
        assert decode(b'', -32, 0).size == 0

    def test_decode_for_either_host(self):
        data = struct.pack('>4i', 1, -2, 65536, 2147483647)
        little = decode(data, 32, 4, byteorder='little')
        big = decode(data, 32, 4, byteorder='big')
        assert list(little) == [1.0, -2.0, 65536.0, 2147483647.0]
        assert list(big) == list(little)

    def test_encode_known_bytes(self):
        assert encode([1, -1], 16) == b'\x00\x01\xff\xff'
        assert encode([0, 255], 'byte') == b'\x00\xff'
        assert encode([256], 32) == b'\x00\x00\x01\x00'
        assert encode([1.5], -32) == struct.pack('>f', 1.5)
        assert encode([0.1], -64) == struct.pack('>d', 0.1)

    def test_encode_for_either_host(self):
        samples = [1.0, -2.0, 3.5, 1e10]
        for bitpix, fmt in ((-32, '>4f'), (-64, '>4d')):
            expected = struct.pack(fmt, *samples)
            assert encode(samples, bitpix, byteorder='little') == expected
            assert encode(samples, bitpix, byteorder='big') == expected

        expected = struct.pack('>3h', 1, -2, 300)
        assert encode([1, -2, 300], 16, byteorder='little') == expected
        assert encode([1, -2, 300], 16, byteorder='big') == expected

    def test_bad_byteorder(self):
        with pytest.raises(ValueError):
            encode([1], 16, byteorder='middle')
        with pytest.raises(ValueError):
            decode(b'\0\0', 16, 1, byteorder='middle')

    def test_encode_rounds_half_to_even(self):
        assert encode([0.5, 1.5, 2.5, -0.4, 254.6], 8) == bytes([0, 2, 2, 0, 255])
        assert encode([-2.5, -1.5], 16) == struct.pack('>2h', -2, -2)

    def test_encode_out_of_range(self):
        for samples, encoding in (([256], 8), ([-1], 8), ([255.5], 8),
                                  ([40000], 16), ([-32769], 16),
                                  ([2 ** 31], 32), ([float('nan')], 16),
                                  ([float('inf')], 32)):
            with pytest.raises(ValidationError) as exc:
                encode(samples, encoding)
            assert exc.value.kind == ValidationError.SAMPLE_OUT_OF_RANGE

    def test_encode_float_narrowing(self):
        data = encode([1e40, -1e40, float('nan')], -32)
        values = np.frombuffer(data, dtype='>f4')
        assert values[0] == np.inf
        assert values[1] == -np.inf
        assert np.isnan(values[2])

    def test_round_trip_all_encodings(self):
        for bitpix, (lo, hi) in SAMPLE_RANGES.items():
            samples = pattern(16, 1, lo, hi)
            if bitpix > 0:
                samples = np.rint(samples)
            elif bitpix == -32:
                samples = samples.astype(np.float32).astype(np.float64)

            data = encode(samples, bitpix)
            assert len(data) == 16 * bytes_per_sample(bitpix)
            assert np.array_equal(decode(data, bitpix, 16), samples)

    def test_host_bytes(self):
        data = struct.pack('>3h', 1, -2, 300) + b'\0' * 10
        assert _host_bytes(data, 16, 3, byteorder='little') == \
            struct.pack('<3h', 1, -2, 300)
        assert _host_bytes(data, 16, 3, byteorder='big') == \
            struct.pack('>3h', 1, -2, 300)
        assert _host_bytes(data, 'short', 3) == \
            np.array([1, -2, 300], dtype=np.int16).tobytes()
        assert _host_bytes(b'', -32, 0) == b''

        with pytest.raises(ValidationError) as exc:
            _host_bytes(data[:5], 16, 3)
        assert exc.value.kind == ValidationError.DIMENSIONS_MISMATCH

    def test_validate_length(self):
        for bitpix in (8, 16, 32, -32, -64):
            nbytes = 6 * bytes_per_sample(bitpix)
            validate_length(b'\0' * nbytes, 3, 2, bitpix)
            for wrong in (nbytes - 1, nbytes + 1, 0):
                with pytest.raises(ValidationError) as exc:
                    validate_length(b'\0' * wrong, 3, 2, bitpix)
                assert exc.value.kind == ValidationError.DIMENSIONS_MISMATCH


class TestDimensionsAndEncoding(FitscodecTestCase):
    def test_get_dimensions(self):
        assert get_dimensions({'NAXIS1': 3, 'NAXIS2': 2}) == (3, 2)
        h = Header([Card('NAXIS1', 640), Card('NAXIS2', 480)])
        assert get_dimensions(h) == (640, 480)

    def test_missing_dimensions(self):
        for header in ({}, {'NAXIS1': 3}, {'NAXIS2': 3},
                       {'NAXIS1': 3.0, 'NAXIS2': 2},
                       {'NAXIS1': True, 'NAXIS2': 2},
                       {'NAXIS1': '3', 'NAXIS2': 2}):
            with pytest.raises(ValidationError) as exc:
                get_dimensions(header)
            assert exc.value.kind == ValidationError.MISSING_DIMENSIONS

    def test_resolve_encoding(self):
        assert resolve_encoding('double', {'BITPIX': 16}) == -64
        assert resolve_encoding(None, {'BITPIX': 16}) == 16
        assert resolve_encoding(None, {'bitpix': 8}) == 8
        assert resolve_encoding(None, Header([Card('BITPIX', 32)])) == 32
        assert resolve_encoding(None, None) == -32
        assert resolve_encoding(None, {}) == -32
        assert resolve_encoding(None, {}, default='short') == 16

    def test_resolve_encoding_from_pairs(self):
        assert resolve_encoding(None, [('OBJECT', 'M31'), ('BITPIX', 8)]) == 8
        assert resolve_encoding(None, [('bitpix', (16, 'type'))]) == 16
        # the last entry wins
        assert resolve_encoding(None, [('BITPIX', 8), ('BITPIX', -64)]) == -64
        assert resolve_encoding(None, [(5, 'x')]) == -32

    def test_resolve_encoding_bad_header(self):
        for header in (5, [('BITPIX',)], [3]):
            with pytest.raises(ValidationError) as exc:
                resolve_encoding(None, header)
            assert exc.value.kind == ValidationError.INVALID_VALUE

    def test_resolve_unsupported_encoding(self):
        for explicit, header in ((12, None), (None, {'BITPIX': 64}),
                                 ('half', None), (None, {'BITPIX': -32.0})):
            with pytest.raises(ValidationError) as exc:
                resolve_encoding(explicit, header)
            assert exc.value.kind == ValidationError.UNSUPPORTED_ENCODING


class TestBuildHDU(FitscodecTestCase):
    def test_primary_header_layout(self):
        hdu = build_hdu(pattern(3, 2), 3, 2, -32, {'OBJECT': 'M31'})
        assert isinstance(hdu, PrimaryHDU)
        assert hdu.header.keys() == ['SIMPLE', 'BITPIX', 'NAXIS', 'NAXIS1',
                                     'NAXIS2', 'OBJECT']
        assert hdu.header['SIMPLE'] is True
        assert hdu.header['BITPIX'] == -32
        assert hdu.header['NAXIS'] == 2
        assert hdu.header['NAXIS1'] == 3
        assert hdu.header['NAXIS2'] == 2
        assert hdu.header_errors == []
        assert hdu.name == 'PRIMARY'

    def test_extension_header_layout(self):
        hdu = build_hdu(pattern(2, 2), 2, 2, 16, {'EXTNAME': 'SCI'},
                        is_primary=False)
        assert isinstance(hdu, ImageHDU)
        assert hdu.header.keys() == ['XTENSION', 'BITPIX', 'NAXIS', 'NAXIS1',
                                     'NAXIS2', 'PCOUNT', 'GCOUNT', 'EXTNAME']
        assert hdu.header['XTENSION'] == 'IMAGE'
        assert hdu.header['PCOUNT'] == 0
        assert hdu.header['GCOUNT'] == 1
        assert hdu.name == 'SCI'

    def test_protected_keywords_are_dropped(self):
        user = {'NAXIS1': 999, 'naxis2': 999, 'NAXIS3': 4, 'BITPIX': 8,
                'SIMPLE': False, 'XTENSION': 'TABLE', 'END': 1, 'PCOUNT': 5,
                'GCOUNT': 5, 'NAXIS': 3, 'KEEP': 1}
        hdu = build_hdu(pattern(3, 3), 3, 3, -32, user)
        assert hdu.header['NAXIS1'] == 3
        assert hdu.header['NAXIS2'] == 3
        assert hdu.header['BITPIX'] == -32
        assert hdu.header['SIMPLE'] is True
        assert 'NAXIS3' not in hdu.header
        assert 'PCOUNT' not in hdu.header
        assert hdu.header['KEEP'] == 1
        assert hdu.header_errors == []

    def test_invalid_user_entries_are_skipped(self):
        user = {'TOOLONGKEY': 1, 'GOOD': (2, 'fine'), 'BAD': [1],
                'NAN': float('nan'), 5: 'x', 'TEXT': 'caf\xe9',
                'FOO': (1, 5)}
        hdu = build_hdu(pattern(2, 1), 2, 1, 'float', user)
        assert hdu.header['GOOD'] == 2
        assert hdu.header.comments['GOOD'] == 'fine'

        skipped = [(key, err.kind) for key, err in hdu.header_errors]
        assert skipped == [
            ('TOOLONGKEY', ValidationError.INVALID_KEYWORD),
            ('BAD', ValidationError.INVALID_VALUE),
            ('NAN', ValidationError.INVALID_VALUE),
            (5, ValidationError.INVALID_KEYWORD),
            ('TEXT', ValidationError.INVALID_VALUE),
            ('FOO', ValidationError.INVALID_VALUE)]
        for key, _ in skipped:
            assert key not in hdu.header

    def test_user_header_as_pairs_and_header(self):
        hdu = build_hdu(pattern(1, 1), 1, 1, 8, [('A', 1), ('B', 'two')])
        assert hdu.header['A'] == 1
        assert hdu.header['B'] == 'two'

        user = Header([Card('OBJECT', 'M31', 'target')])
        user.add_history('reduced')
        hdu = build_hdu(pattern(1, 1), 1, 1, 8, user)
        assert hdu.header.comments['OBJECT'] == 'target'
        assert [c.keyword for c in hdu.header.cards][-1] == 'HISTORY'

    def test_added_card_count(self):
        header = Header([Card('SIMPLE', True)])
        count, errors = _add_user_cards(
            header, [('foo', 1), ('FOO', 2), ('BAR', 3), ('NAXIS1', 4),
                     ('HISTORY', 'one'), ('HISTORY', 'two')])
        assert count == 4
        assert errors == []
        assert header['FOO'] == 2

        assert _add_user_cards(header, None) == (0, [])
        assert _add_user_cards(header, {}) == (0, [])

    def test_dimensions_mismatch_for_every_encoding(self):
        for bitpix in (8, 16, 32, -32, -64):
            nbytes = 9 * bytes_per_sample(bitpix)
            for pixels in (b'\0' * (nbytes - 1), b'\0' * (nbytes + 1),
                           [0] * 8, np.zeros(10)):
                with pytest.raises(ValidationError) as exc:
                    build_hdu(pixels, 3, 3, bitpix)
                assert exc.value.kind == ValidationError.DIMENSIONS_MISMATCH

    def test_bad_dimensions(self):
        for width, height in ((0, 3), (3, 0), (-1, -1), (3.0, 3), (True, 1),
                              ('3', 3)):
            with pytest.raises(ValidationError) as exc:
                build_hdu([0.0] * 9, width, height, -32)
            assert exc.value.kind == ValidationError.DIMENSIONS_MISMATCH

    def test_non_numeric_pixels(self):
        with pytest.raises(ValidationError) as exc:
            build_hdu(['a', 'b'], 2, 1, -32)
        assert exc.value.kind == ValidationError.INVALID_VALUE

    def test_host_order_bytes(self):
        pixels = np.array([1, 2, -3, 4], dtype=np.int16).tobytes()
        hdu = build_hdu(pixels, 2, 2, 16)
        assert hdu.rawdata == struct.pack('>4h', 1, 2, -3, 4)
        assert list(hdu.data) == [1.0, 2.0, -3.0, 4.0]

    def test_two_dimensional_pixels(self):
        pixels = np.arange(6, dtype=np.float32).reshape(2, 3)
        hdu = build_hdu(pixels, 3, 2, -32)
        assert hdu.shape == (2, 3)
        assert list(hdu.data) == [0.0, 1.0, 2.0, 3.0, 4.0, 5.0]

    def test_data_is_float64(self):
        hdu = build_hdu([1, 2, 3], 3, 1, 'byte')
        assert hdu.data.dtype == np.float64
        assert hdu.bitpix == 8
        assert hdu.size == 3

    def test_hdu_classes_in_package_namespace(self):
        assert fitscodec.PrimaryHDU is PrimaryHDU
        assert fitscodec.ImageHDU is ImageHDU
        assert fitscodec.build_hdu is build_hdu
        assert sys.byteorder in ('little', 'big')
