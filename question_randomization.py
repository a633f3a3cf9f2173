#!/usr/bin/env python3
"""
Question Randomization - Deterministic per-attempt shuffling for matching and ordering items
The same attempt token and question id always yield the same display order,
so a reloaded quiz page shows items where the student left them.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, TypeVar

T = TypeVar('T')

MODULUS = 2147483647
MULTIPLIER = 16807


class SeededRandom:
    """Park-Miller minimal standard generator"""

    def __init__(self, seed: int):
        self.seed = seed % MODULUS
        if self.seed <= 0:
            self.seed += MODULUS - 1

    def next(self) -> float:
        self.seed = self.seed * MULTIPLIER % MODULUS
        return (self.seed - 1) / (MODULUS - 1)

    def next_int(self, minimum: int, maximum: int) -> int:
        """Integer in [minimum, maximum)"""
        return int(self.next() * (maximum - minimum)) + minimum


def _to_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


def generate_question_seed(attempt_token: str, question_id: str) -> int:
    key = f"{attempt_token}-{question_id}"
    # hash over UTF-16 code units
    units = key.encode('utf-16-le')
    value = 0
    for i in range(0, len(units), 2):
        code = units[i] | (units[i + 1] << 8)
        value = _to_int32((value << 5) - value + code)
    return abs(value)


def shuffle_array(items: List[T], rng: SeededRandom) -> List[T]:
    """Fisher-Yates shuffle returning a new list"""
    shuffled = list(items)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.next_int(0, i + 1)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


@dataclass
class DisplayItem:
    text: str
    original_index: int
    display_index: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'text': self.text,
            'original_index': self.original_index,
            'display_index': self.display_index,
        }


def _display_items(texts: List[str], rng: SeededRandom) -> List[DisplayItem]:
    indexed = shuffle_array(list(enumerate(texts)), rng)
    return [DisplayItem(text=text, original_index=orig, display_index=pos)
            for pos, (orig, text) in enumerate(indexed)]


def randomize_matching_question(pairs: List[Dict[str, Any]], attempt_token: str,
                                question_id: str) -> Dict[str, Any]:
    """Shuffle left and right columns independently"""
    rng = SeededRandom(generate_question_seed(attempt_token, question_id))
    left_items = _display_items([str(p.get('left', '')) for p in pairs], rng)
    right_items = _display_items([str(p.get('right', '')) for p in pairs], rng)
    return {
        'left_items': [item.to_dict() for item in left_items],
        'right_items': [item.to_dict() for item in right_items],
        'left_mapping': {item.display_index: item.original_index for item in left_items},
        'right_mapping': {item.display_index: item.original_index for item in right_items},
    }


def randomize_ordering_question(items: List[str], attempt_token: str,
                                question_id: str) -> Dict[str, Any]:
    rng = SeededRandom(generate_question_seed(attempt_token, question_id))
    display = _display_items([str(i) for i in items], rng)
    return {
        'items': [item.to_dict() for item in display],
        'mapping': {item.display_index: item.original_index for item in display},
    }


def convert_matching_answer_to_original(answer: Dict[Any, Any],
                                        left_mapping: Dict[int, int],
                                        right_mapping: Dict[int, int]) -> Dict[int, int]:
    """Translate {display_left: display_right} into original indices"""
    converted = {}
    for left, right in answer.items():
        left_orig = left_mapping.get(int(left))
        right_orig = right_mapping.get(int(right))
        if left_orig is not None and right_orig is not None:
            converted[left_orig] = right_orig
    return converted


def convert_ordering_answer_to_original(answer: Dict[Any, Any],
                                        mapping: Dict[int, int]) -> Dict[int, int]:
    """Translate {display_index: position} into {original_index: position}"""
    converted = {}
    for display_index, position in answer.items():
        original = mapping.get(int(display_index))
        if original is not None:
            converted[original] = int(position)
    return converted
