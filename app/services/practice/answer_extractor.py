# ============================================================================
# Answer Extraction Service
# ============================================================================
"""
Derives the ground-truth answer of a free-form question.

Generated questions do not always come with an answer (template questions
never do, and AI output is sometimes unparseable). The extractor recovers
one from the question text using a cascade of pattern handlers chosen by
the question's operation tag:

- arithmetic (addition, subtraction, multiplication, division, decimals)
- fractions
- algebra
- geometry
- exponents & roots
- statistics
- calculus
- logic & patterns

Each family is an ordered tuple of pure handlers. A handler returns an
answer or ``None`` to pass to the next one; the first answer wins. When no
handler produces a value the question is unscorable.

Usage:
    extractor = AnswerExtractor()
    extractor.extract("What is 12 + 7?", "addition")   # 19
    extractor.extract("A, C, E, G, ___?", "logic_patterns")   # "I"
"""
from __future__ import annotations

from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union
import logging
import math
import re

from app.services.practice import extraction_fixtures as fixtures

logger = logging.getLogger(__name__)

Answer = Union[int, float, str]
Handler = Callable[[str], Optional[Answer]]


# ============================================================================
# Numeric Helpers
# ============================================================================
NUMBER = r"\d+(?:\.\d+)?"
# U+2212 minus and ASCII hyphen, hyphen last so it stays literal in a class
MINUS = "\u2212-"
SUPERSCRIPTS = "⁰¹²³⁴⁵⁶⁷⁸⁹"
SUPERSCRIPT_DIGITS = {ch: i for i, ch in enumerate(SUPERSCRIPTS)}

_NUMBER_RE = re.compile(NUMBER)
_INTEGER_RE = re.compile(r"\d+")


def round2(value: float) -> float:
    """Round half up to 2 decimal places"""
    return math.floor(value * 100 + 0.5) / 100


def tidy(value: Optional[Answer]) -> Optional[Answer]:
    """Collapse integral floats to int so 10.0 reads and compares as 10"""
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return None
        if value.is_integer():
            return int(value)
    return value


def _numbers(text: str) -> List[float]:
    return [float(n) for n in _NUMBER_RE.findall(text)]


def _integers(text: str) -> List[int]:
    return [int(n) for n in _INTEGER_RE.findall(text)]


def _superscript_value(digits: str) -> int:
    exponent = 0
    for ch in digits:
        exponent = exponent * 10 + SUPERSCRIPT_DIGITS[ch]
    return exponent


def _root(value: int, degree: int) -> float:
    if degree == 2:
        root = math.sqrt(value)
    else:
        root = round(value ** (1 / 3), 12)
    if root.is_integer():
        return root
    return round2(root)


def _fold(operator: str, values: Sequence[float]) -> Optional[float]:
    result = values[0]
    for value in values[1:]:
        if operator == "+":
            result += value
        elif operator == "-":
            result -= value
        elif operator == "*":
            result *= value
        else:
            if value == 0:
                return None
            result /= value
    return round2(result)


# ============================================================================
# Arithmetic
# ============================================================================
OPERATOR_SYMBOLS = {
    "+": r"\+",
    "-": rf"[{MINUS}]",
    "*": r"[×x]",
    "/": r"[÷/]",
}

_CHAINED = {
    op: re.compile(rf"{NUMBER}(?:\s*{symbol}\s*{NUMBER})+")
    for op, symbol in OPERATOR_SYMBOLS.items()
}
_TWO_OPERAND = {
    op: re.compile(rf"({NUMBER})\s*{symbol}\s*({NUMBER})")
    for op, symbol in OPERATOR_SYMBOLS.items()
}
_ANY_OPERATOR = re.compile(rf"({NUMBER})\s*[+×x÷/{MINUS}]\s*({NUMBER})")

# Operator actually used in a mixed (decimals) question, in precedence of detection
_DETECT_OPERATOR = (
    ("*", re.compile(r"\d\s*[×x]\s*\d")),
    ("/", re.compile(r"\d\s*[÷/]\s*\d")),
    ("-", re.compile(rf"\d\s*[{MINUS}]\s*\d")),
)


def detect_operator(question: str) -> str:
    for op, pattern in _DETECT_OPERATOR:
        if pattern.search(question):
            return op
    return "+"


def chained(op: str) -> Handler:
    """Expressions with more than two operands, e.g. ``8 + 5 + 8``"""
    def handler(question: str) -> Optional[Answer]:
        match = _CHAINED[op].search(question)
        if not match:
            return None
        values = _numbers(match.group(0))
        if len(values) <= 2:
            return None
        return _fold(op, values)
    handler.__name__ = f"chained_{op}"
    return handler


def two_operand(op: str) -> Handler:
    def handler(question: str) -> Optional[Answer]:
        match = _TWO_OPERAND[op].search(question)
        if not match:
            return None
        return _fold(op, [float(match.group(1)), float(match.group(2))])
    handler.__name__ = f"two_operand_{op}"
    return handler


def story_problem(op: str) -> Handler:
    """Word problems: fold every number in the sentence"""
    def handler(question: str) -> Optional[Answer]:
        values = _numbers(question)
        if len(values) < 2:
            return None
        if op == "/":
            return _fold("/", [values[0], values[-1]])
        return _fold(op, values)
    handler.__name__ = f"story_{op}"
    return handler


def decimals_chained(question: str) -> Optional[Answer]:
    return chained(detect_operator(question))(question)


def decimals_two_operand(question: str) -> Optional[Answer]:
    match = _ANY_OPERATOR.search(question)
    if not match:
        return None
    return _fold(detect_operator(question), [float(match.group(1)), float(match.group(2))])


def decimals_story(question: str) -> Optional[Answer]:
    return story_problem(detect_operator(question))(question)


# ============================================================================
# Exponents & Roots
# ============================================================================
_SQRT_SYMBOL = re.compile(r"√(\d+)")
_CBRT_SYMBOL = re.compile(r"∛(\d+)")
_CARET = re.compile(r"(\d+)\s*\^\s*(\d+)")
_SUPERSCRIPT = re.compile(rf"(\d+)([{SUPERSCRIPTS}]+)")
_SUPERSCRIPT_PRODUCT = re.compile(
    rf"(\d+)([{SUPERSCRIPTS}]+)\s*[×x]\s*(\d+)([{SUPERSCRIPTS}]+)"
)
_POWER_WORDS = re.compile(r"(\d+)\s*to the power (?:of\s*)?(\d+)", re.IGNORECASE)
_SQRT_WORDS = re.compile(r"square root (?:of\s*)?(\d+)", re.IGNORECASE)
_CBRT_WORDS = re.compile(r"cube root (?:of\s*)?(\d+)", re.IGNORECASE)

# Powers longer than this many digits are left unanswered
MAX_POWER_DIGITS = 30


def _power(base: int, exponent: int) -> Optional[int]:
    if base > 1 and exponent * math.log10(base) > MAX_POWER_DIGITS:
        return None
    return base ** exponent


def square_root_symbol(question: str) -> Optional[Answer]:
    match = _SQRT_SYMBOL.search(question)
    return _root(int(match.group(1)), 2) if match else None


def cube_root_symbol(question: str) -> Optional[Answer]:
    match = _CBRT_SYMBOL.search(question)
    return _root(int(match.group(1)), 3) if match else None


def caret_power(question: str) -> Optional[Answer]:
    match = _CARET.search(question)
    return _power(int(match.group(1)), int(match.group(2))) if match else None


def superscript_product(question: str) -> Optional[Answer]:
    """``2³ × 2⁴``: same base adds exponents, otherwise multiply both powers"""
    match = _SUPERSCRIPT_PRODUCT.search(question)
    if not match:
        return None
    base1, exp1 = int(match.group(1)), _superscript_value(match.group(2))
    base2, exp2 = int(match.group(3)), _superscript_value(match.group(4))
    if base1 == base2:
        return _power(base1, exp1 + exp2)
    first, second = _power(base1, exp1), _power(base2, exp2)
    if first is None or second is None:
        return None
    return first * second


def superscript_power(question: str) -> Optional[Answer]:
    match = _SUPERSCRIPT.search(question)
    if not match:
        return None
    return _power(int(match.group(1)), _superscript_value(match.group(2)))


def power_words(question: str) -> Optional[Answer]:
    match = _POWER_WORDS.search(question)
    return _power(int(match.group(1)), int(match.group(2))) if match else None


def square_root_words(question: str) -> Optional[Answer]:
    match = _SQRT_WORDS.search(question)
    return _root(int(match.group(1)), 2) if match else None


def cube_root_words(question: str) -> Optional[Answer]:
    match = _CBRT_WORDS.search(question)
    return _root(int(match.group(1)), 3) if match else None


EXPONENT_HANDLERS: Tuple[Handler, ...] = (
    square_root_symbol,
    cube_root_symbol,
    caret_power,
    superscript_product,
    superscript_power,
    power_words,
    square_root_words,
    cube_root_words,
)


# ============================================================================
# Fractions
# ============================================================================
_FRACTION_PAIR = re.compile(rf"(\d+)\s*/\s*(\d+)\s*([+×x÷{MINUS}])\s*(\d+)\s*/\s*(\d+)")
_FRACTION_OF = re.compile(r"(\d+)\s*/\s*(\d+)\s*(?:of|×)\s*(\d+)")
_FRACTION_OF_WHOLE = re.compile(
    r"(\d+)\s*/\s*(\d+)\s*of\s*(?:a|the)\s*\w+\s*is\s*(\d+)", re.IGNORECASE
)
_FRACTION_OF_WHAT = re.compile(
    r"(\d+)\s*/\s*(\d+)\s*of\s*(?:what|which)\s*number\s*(?:is|equals|=)\s*(\d+)",
    re.IGNORECASE,
)


def fraction_pair(question: str) -> Optional[Answer]:
    """``a/b OP c/d`` combined over the common denominator b*d"""
    match = _FRACTION_PAIR.search(question)
    if not match:
        return None
    n1, d1, op, n2, d2 = (
        int(match.group(1)), int(match.group(2)), match.group(3),
        int(match.group(4)), int(match.group(5)),
    )
    if d1 == 0 or d2 == 0:
        return None
    if op == "+":
        return (n1 * d2 + n2 * d1) / (d1 * d2)
    if op in MINUS:
        return (n1 * d2 - n2 * d1) / (d1 * d2)
    if op in ("×", "x"):
        return (n1 * n2) / (d1 * d2)
    if n2 == 0:
        return None
    return (n1 * d2) / (d1 * n2)


def fraction_of_number(question: str) -> Optional[Answer]:
    match = _FRACTION_OF.search(question)
    if not match:
        return None
    num, den, value = (int(g) for g in match.groups())
    if den == 0:
        return None
    return num / den * value


def fraction_of_whole(question: str) -> Optional[Answer]:
    """``If a/b of a number is C`` solves for the whole: C * b / a"""
    match = _FRACTION_OF_WHOLE.search(question) or _FRACTION_OF_WHAT.search(question)
    if not match:
        return None
    num, den, part = (int(g) for g in match.groups())
    if num == 0:
        return None
    return part * den / num


def first_ratio(question: str) -> Optional[Answer]:
    values = _integers(question)
    if len(values) < 2 or values[1] == 0:
        return None
    return values[0] / values[1]


# ============================================================================
# Algebra
# ============================================================================
_LINEAR = re.compile(rf"(\d*)x\s*([+{MINUS}])\s*(\d+)\s*=\s*(\d+)")
_SIMPLE_LINEAR = re.compile(r"(\d*)x\s*=\s*(\d+)")


def algebra_fixture(question: str) -> Optional[Answer]:
    return fixtures.lookup(question, fixtures.ALGEBRA_FIXTURES)


def linear_equation(question: str) -> Optional[Answer]:
    """``Ax + B = C`` / ``Ax - B = C`` with A defaulting to 1"""
    match = _LINEAR.search(question)
    if not match:
        return None
    a = int(match.group(1)) if match.group(1) else 1
    b, c = int(match.group(3)), int(match.group(4))
    if a == 0:
        return None
    if match.group(2) == "+":
        return (c - b) / a
    return (c + b) / a


def simple_linear_equation(question: str) -> Optional[Answer]:
    match = _SIMPLE_LINEAR.search(question)
    if not match:
        return None
    a = int(match.group(1)) if match.group(1) else 1
    if a == 0:
        return None
    return int(match.group(2)) / a


def last_number(question: str) -> Optional[Answer]:
    values = _integers(question)
    if len(values) < 2:
        return None
    return values[-1]


# ============================================================================
# Geometry
# ============================================================================
_DIMENSIONS = re.compile(r"(\d+)\s*(?:cm|m)?\s*(?:×|x|by)\s*(\d+)")


def geometry_fixture(question: str) -> Optional[Answer]:
    return fixtures.lookup(question, fixtures.GEOMETRY_FIXTURES)


def rectangle_measure(question: str) -> Optional[Answer]:
    """Area or perimeter of a rectangle given as ``L × W``"""
    lowered = question.lower()
    if "rectangle" not in lowered:
        return None
    match = _DIMENSIONS.search(question)
    if not match:
        return None
    length, width = int(match.group(1)), int(match.group(2))
    if "area" in lowered:
        return length * width
    if "perimeter" in lowered:
        return 2 * (length + width)
    return None


def first_product(question: str) -> Optional[Answer]:
    values = _integers(question)
    if len(values) < 2:
        return None
    return values[0] * values[1]


# ============================================================================
# Statistics & Calculus
# ============================================================================
def statistics_fixture(question: str) -> Optional[Answer]:
    return fixtures.lookup(question, fixtures.STATISTICS_FIXTURES)


def mean_of_numbers(question: str) -> Optional[Answer]:
    if "mean" not in question.lower():
        return None
    values = _integers(question)
    if len(values) < 2:
        return None
    return round2(sum(values) / len(values))


def calculus_fixture(question: str) -> Optional[Answer]:
    return fixtures.lookup(question, fixtures.CALCULUS_FIXTURES)


def calculus_default(question: str) -> Optional[Answer]:
    # Placeholder so a calculus question never blocks the session
    return 1


# ============================================================================
# Logic & Patterns
# ============================================================================
_LETTER_RUN = re.compile(r"\b[A-Za-z]\b(?:\s*,\s*\b[A-Za-z]\b){2,}")
_NUMBER_RUN = re.compile(r"\d+(?:\s*,\s*\d+){2,}")


def letter_sequence(question: str) -> Optional[Answer]:
    """Apply the first letter-to-letter gap to the last letter"""
    match = _LETTER_RUN.search(question)
    if not match:
        return None
    letters = [ch.upper() for ch in re.findall(r"[A-Za-z]", match.group(0))]
    gap = ord(letters[1]) - ord(letters[0])
    code = ord(letters[-1]) + gap
    return chr(min(max(code, ord("A")), ord("Z")))


def logic_fixture(question: str) -> Optional[Answer]:
    return fixtures.lookup(question, fixtures.LOGIC_FIXTURES)


def next_in_sequence(nums: Sequence[int]) -> Optional[Answer]:
    """Fibonacci-like, then geometric, then quadratic, else arithmetic"""
    if len(nums) < 3:
        return None

    if all(nums[i] == nums[i - 1] + nums[i - 2] for i in range(2, len(nums))):
        return nums[-1] + nums[-2]

    if nums[0] != 0:
        ratio = nums[1] / nums[0]
        geometric = ratio != 1 and all(
            nums[i - 1] != 0 and nums[i] / nums[i - 1] == ratio
            for i in range(2, len(nums))
        )
        if geometric:
            return nums[-1] * ratio

    diffs = [nums[i] - nums[i - 1] for i in range(1, len(nums))]
    second = [diffs[i] - diffs[i - 1] for i in range(1, len(diffs))]
    if second and all(d == second[0] for d in second):
        return nums[-1] + diffs[-1] + second[0]

    return nums[-1] + (nums[-1] - nums[-2])


def number_sequence(question: str) -> Optional[Answer]:
    """Only the longest comma-separated run counts, not stray numbers"""
    runs = _NUMBER_RUN.findall(question)
    if not runs:
        return None
    longest = max(runs, key=lambda run: len(_integers(run)))
    return next_in_sequence(_integers(longest))


# ============================================================================
# Registry
# ============================================================================
def _arithmetic(op: str, with_chain: bool = True) -> Tuple[Handler, ...]:
    chain = (chained(op),) if with_chain else ()
    return EXPONENT_HANDLERS + chain + (two_operand(op), story_problem(op))


HANDLERS: Dict[str, Tuple[Handler, ...]] = {
    "addition": _arithmetic("+"),
    "subtraction": _arithmetic("-"),
    "multiplication": _arithmetic("*"),
    "division": _arithmetic("/"),
    "decimals": EXPONENT_HANDLERS + (decimals_chained, decimals_two_operand, decimals_story),
    "fractions": EXPONENT_HANDLERS + (
        fraction_pair, fraction_of_number, fraction_of_whole, first_ratio,
    ),
    "exponents": EXPONENT_HANDLERS,
    "algebra": (algebra_fixture, linear_equation, simple_linear_equation, last_number),
    "geometry": (geometry_fixture, rectangle_measure, first_product),
    "statistics": (statistics_fixture, mean_of_numbers),
    "calculus": (calculus_fixture, calculus_default),
    "logic_patterns": EXPONENT_HANDLERS + (letter_sequence, logic_fixture, number_sequence),
}

STRING_ANSWER_OPERATIONS = frozenset({"logic_patterns"})


def normalize_operation(operation: str) -> str:
    """``algebra_problem`` and friends share their base family"""
    operation = (operation or "").strip().lower()
    if operation.endswith("_problem"):
        operation = operation[: -len("_problem")]
    return operation


def is_string_answer_operation(operation: str) -> bool:
    return normalize_operation(operation) in STRING_ANSWER_OPERATIONS


class AnswerExtractor:
    """Run the handler cascade registered for an operation family"""

    def __init__(self, handlers: Optional[Dict[str, Tuple[Handler, ...]]] = None):
        self.handlers = handlers or HANDLERS

    def extract(self, question: str, operation: str) -> Optional[Answer]:
        family = normalize_operation(operation)
        chain = self.handlers.get(family)
        if chain is None:
            logger.warning(f"No extraction handlers for operation '{operation}'")
            return None

        for handler in chain:
            value = tidy(handler(question))
            if value is not None:
                logger.debug(f"Extracted {value!r} for {family} via {handler.__name__}")
                return value

        logger.info(f"No answer derivable for {family} question: {question!r}")
        return None


_default_extractor = AnswerExtractor()


def extract_answer(question: str, operation: str) -> Optional[Answer]:
    return _default_extractor.extract(question, operation)
