import random
from typing import List, Optional, Sequence, TypeVar

T = TypeVar("T")


def shuffled(items: Sequence[T], first: Optional[int] = None) -> List[T]:
    """
    Возвращает перемешанную копию. Если задан first, этот элемент
    ставится в начало, а перемешивается только остаток.
    """
    items = list(items)
    if first is None or not 0 <= first < len(items):
        random.shuffle(items)
        return items

    head = items.pop(first)
    random.shuffle(items)
    return [head] + items


def track_list_equals(a: Sequence, b: Sequence) -> bool:
    if len(a) != len(b):
        return False
    return all(x.id == y.id for x, y in zip(a, b))
