import re

from .errors import ValidationError

_SEPARATORS = re.compile(r"[\s\-\.\(\)]")
_NATIONAL_LENGTH = 10


def normalize_phone(raw: str, country_code: str = "234") -> str:
    """Приводит номер к виду +<код страны><национальный номер>.

    08012345678, 8012345678, 2348012345678 и +234 801 234 5678
    дают один и тот же +2348012345678.
    """
    if raw is None:
        raise ValidationError("Phone Number cannot be null")
    number = _SEPARATORS.sub("", raw)
    if number.startswith("+"):
        number = number[1:]
    if not number.isdigit():
        raise ValidationError("Invalid phone number")

    if number.startswith(country_code) and len(number) == len(country_code) + _NATIONAL_LENGTH:
        national = number[len(country_code):]
    elif number.startswith("0") and len(number) == _NATIONAL_LENGTH + 1:
        national = number[1:]
    elif len(number) == _NATIONAL_LENGTH:
        national = number
    else:
        raise ValidationError("Invalid phone number")
    return f"+{country_code}{national}"
