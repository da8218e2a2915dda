from typing import List, Sequence, TypeVar

T = TypeVar("T")

LCG_MULTIPLIER = 9301
LCG_INCREMENT = 49297
LCG_MODULUS = 233280


def seed_from_user_id(user_id: str) -> int:
    """Sum of the character codes of the participant id"""
    # counted in UTF-16 code units so ids outside the BMP seed like browser clients
    encoded = user_id.encode("utf-16-le")
    return sum(
        int.from_bytes(encoded[i:i + 2], "little") for i in range(0, len(encoded), 2)
    )


class SeededRandom:
    """Linear congruential generator yielding floats in [0, 1).

    Kept bit-compatible with question orders already handed out, so the
    constants must not change.
    """

    def __init__(self, seed: int):
        self.state = seed

    def random(self) -> float:
        self.state = (self.state * LCG_MULTIPLIER + LCG_INCREMENT) % LCG_MODULUS
        return self.state / LCG_MODULUS


def shuffle_questions(questions: Sequence[T], user_id: str) -> List[T]:
    """Fisher-Yates shuffle seeded by the participant id.

    The same user id and input always produce the same order; the input
    sequence is left untouched.
    """
    rng = SeededRandom(seed_from_user_id(user_id))
    shuffled = list(questions)
    for i in range(len(shuffled) - 1, 0, -1):
        j = int(rng.random() * (i + 1))
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled
