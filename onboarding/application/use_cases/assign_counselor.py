from typing import Iterable

from ...domain.entities import Counselor
from ...domain.errors import NoCounselorAvailable


def select_least_loaded(counselors: Iterable[Counselor]) -> Counselor:
    # sorted() стабилен: при равной нагрузке сохраняется исходный порядок,
    # поэтому из равных выбирается последний по перечислению
    ordered = sorted(counselors, key=lambda c: c.load, reverse=True)
    if not ordered:
        raise NoCounselorAvailable()
    return ordered[-1]
