"""
Phone number normalization.

Stored patient/profile phones were typed by hand in the web app, so they come
in several shapes ("+998 93 748 91 41", "998937489141", "+998937489141").
Instead of trusting a single canonical form, lookups try every variant
returned by `phone_variants`.
"""

import re
from typing import List, Optional

from apps.messaging.conf import get_setting

_NON_DIGITS = re.compile(r'\D')


def clean_digits(raw: Optional[str]) -> str:
    """
    Strip a raw phone string down to digits with the country code in front.
    Returns "" when nothing usable is left.
    """
    if raw is None:
        return ''
    digits = _NON_DIGITS.sub('', str(raw))
    if not digits:
        return ''

    # International dialing prefix ("00998...")
    if digits.startswith('00'):
        digits = digits[2:]

    country_code = get_setting('DEFAULT_COUNTRY_CODE')
    national_length = get_setting('NATIONAL_NUMBER_LENGTH')
    if len(digits) == national_length:
        digits = country_code + digits
    elif len(digits) == national_length + 1 and digits.startswith('0'):
        # Trunk-prefixed local number
        digits = country_code + digits[1:]

    return digits


def format_spaced(digits: str) -> Optional[str]:
    """
    National grouping used by the web app: "+998 93 748 91 41".
    Only defined for full-length numbers under the default country code.
    """
    country_code = get_setting('DEFAULT_COUNTRY_CODE')
    national_length = get_setting('NATIONAL_NUMBER_LENGTH')
    if not digits.startswith(country_code) or len(digits) != len(country_code) + national_length:
        return None

    national = digits[len(country_code):]
    return f"+{country_code} {national[0:2]} {national[2:5]} {national[5:7]} {national[7:9]}"


def phone_variants(raw: Optional[str]) -> List[str]:
    """
    All stored formats a phone may have been saved under, most canonical first:
    digits only, "+"-prefixed, then the spaced national grouping when it applies.
    """
    digits = clean_digits(raw)
    if not digits:
        return []

    variants = [digits, f"+{digits}"]
    spaced = format_spaced(digits)
    if spaced:
        variants.append(spaced)
    return variants


def normalize_phone(raw: Optional[str]) -> str:
    """Canonical "+<digits>" form, or "" if the input holds no digits."""
    digits = clean_digits(raw)
    return f"+{digits}" if digits else ''
