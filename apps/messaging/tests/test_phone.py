"""
Phone normalizer tests
"""

from apps.messaging.phone import clean_digits, format_spaced, normalize_phone, phone_variants


class TestPhoneVariants:

    def test_international_number_yields_all_formats(self):
        assert phone_variants('+998937489141') == [
            '998937489141',
            '+998937489141',
            '+998 93 748 91 41',
        ]

    def test_spaced_and_punctuated_input_normalizes_the_same(self):
        expected = phone_variants('+998937489141')
        assert phone_variants('+998 (93) 748-91-41') == expected
        assert phone_variants('998 93 748 91 41') == expected

    def test_local_number_gets_country_code(self):
        assert clean_digits('93 748 91 41') == '998937489141'
        assert clean_digits('0937489141') == '998937489141'

    def test_international_dialing_prefix_is_stripped(self):
        assert clean_digits('00998937489141') == '998937489141'

    def test_foreign_number_has_no_spaced_variant(self):
        """Only the national format gets the spaced grouping"""
        assert phone_variants('+44 20 7946 0958') == ['442079460958', '+442079460958']

    def test_empty_or_garbage_input(self):
        assert phone_variants(None) == []
        assert phone_variants('') == []
        assert phone_variants('call me') == []
        assert normalize_phone('n/a') == ''

    def test_format_spaced_requires_full_length(self):
        assert format_spaced('99893748914') is None
        assert format_spaced('998937489141') == '+998 93 748 91 41'

    def test_normalize_phone(self):
        assert normalize_phone('998937489141') == '+998937489141'
