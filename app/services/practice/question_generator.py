# ============================================================================
# Question Generator
# ============================================================================
"""
Produces the next practice question.

Two sources:
- Gemini, prompted with the learner's grade, a topic from their selected
  modules and a complexity derived from recent accuracy. The model is asked
  for ``{"question": ..., "answer": ...}`` JSON.
- A template bank per operation, scaled by grade. Template questions never
  carry an answer; the answer extractor derives it.

``generate`` always returns ``{"question": str, "answer": value or None}``.
"""
import asyncio
import json
import logging
import random
import re
from typing import Dict, List, Optional, Sequence

import google.generativeai as genai

from app.config import get_settings
from app.data.math_modules import (
    GRADE_COMPLEXITY,
    DEFAULT_GRADE,
    get_complexity_by_grade,
    get_topic_from_selected_modules,
)
from app.services.practice.adaptive_difficulty import AdaptiveDifficultySystem
from app.services.practice.answer_extractor import normalize_operation

logger = logging.getLogger(__name__)
settings = get_settings()

# Operations where templates get repetitive quickly
AI_PREFERRED_OPERATIONS = {
    "logic_patterns", "algebra", "geometry", "statistics",
    "calculus", "fractions", "decimals",
}

QUESTION_GUIDANCE = {
    "logic_patterns": (
        "QUESTION TYPE: Logic & Patterns - number sequences (arithmetic, geometric, "
        "Fibonacci-like), letter sequences, alternating patterns.\n"
        'Examples: "What comes next: 2, 4, 6, 8, ___?", "Identify: A, C, E, G, ___?"\n'
        "Focus on pattern recognition, NOT simple arithmetic."
    ),
    "algebra": (
        "QUESTION TYPE: Algebra - linear equations, variable relationships, "
        "expression simplification, word problems with variables.\n"
        'Examples: "If 2x + 5 = 13, what is x?", "If y = 2x and x = 5, what is y?"\n'
        "Must involve variables or algebraic thinking."
    ),
    "geometry": (
        "QUESTION TYPE: Geometry - area, perimeter, circumference, volume, angles.\n"
        'Examples: "What is the area of a rectangle 8cm × 5cm?", '
        '"A triangle has base 10cm and height 6cm. What is its area?"'
    ),
    "statistics": (
        "QUESTION TYPE: Statistics & Probability - mean, median, mode, range, "
        "probability with dice, coins and cards.\n"
        'Examples: "What is the mean of 2, 4, 6, 8?", '
        '"If a die is rolled, what is the probability of getting a 3?"'
    ),
    "calculus": (
        "QUESTION TYPE: Calculus - derivatives, limits, integration, rates of change.\n"
        'Examples: "What is the derivative of x²?", '
        '"Find the limit as x approaches 2 of (x + 1)"'
    ),
    "fractions": (
        "QUESTION TYPE: Fractions - adding, subtracting, multiplying fractions, "
        "fractions of numbers, simplification.\n"
        'Examples: "What is 1/4 + 1/4?", "What is 2/3 of 18?"'
    ),
    "decimals": (
        "QUESTION TYPE: Decimals - decimal arithmetic and real-world money or "
        "measurement problems.\n"
        'Examples: "What is 2.5 + 1.3?", "Multiply: 2.5 × 4"'
    ),
    "exponents": (
        "QUESTION TYPE: Exponents & Roots - powers, square roots, cube roots, "
        "exponent rules.\n"
        'Examples: "What is 2⁵?", "What is √144?", "Simplify: 3² × 3³"\n'
        "The answer must ALWAYS be a single number."
    ),
}

PROMPT_TEMPLATE = """Generate a single UNIQUE and FRESH math question for a {grade} grade student.

{module_context}Topic: {topic}
Curriculum level: {curriculum_level}
Complexity: {complexity}

{guidance}

REQUIREMENTS:
- Focus on the topic "{topic}"
- Keep it to one sentence
- Make it engaging and age-appropriate for grade {grade}

RESPONSE FORMAT: respond with a valid JSON object and nothing else, with exactly two keys:
- "question": the question text (string)
- "answer": the correct numeric answer (number). For letter/pattern answers use a string.
Example: {{"question": "What comes next: A, C, E, G, ___?", "answer": "I"}}"""

_CODE_FENCE_START = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_CODE_FENCE_END = re.compile(r"\s*```$")


def parse_ai_response(raw: str) -> Dict:
    """``{question, answer}`` from model output, raw text with no answer otherwise"""
    raw = (raw or "").strip()
    cleaned = _CODE_FENCE_END.sub("", _CODE_FENCE_START.sub("", raw)).strip()
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError:
        logger.warning(f"AI response was not valid JSON, using raw text: {raw!r}")
        return {"question": raw, "answer": None}

    if isinstance(parsed, dict) and parsed.get("question"):
        return {"question": parsed["question"], "answer": parsed.get("answer")}
    return {"question": raw, "answer": None}


# ============================================================================
# Template Bank
# ============================================================================
FIXED_TEMPLATES: Dict[str, List[str]] = {
    "fractions": [
        "What is 1/4 + 1/4?", "What is 1/3 of 30?", "What is 2/5 + 1/5?",
        "If 1/4 of a number is 25, what is the number?", "What is 3/4 - 1/4?",
        "What is 1/2 + 1/3?", "What is 2/3 of 18?", "What is 3/5 + 1/5?",
        "What is 1/2 of 50?", "What is 2/3 × 3/4?",
    ],
    "decimals": [
        "What is 2.5 + 1.3?", "What is 4.2 - 1.8?", "Multiply: 2.5 × 4",
        "What is 10.5 ÷ 2?", "Add: 3.14 + 2.86", "What is 5.6 - 2.3?",
        "Multiply: 1.5 × 2", "What is 7.5 ÷ 3?", "Add: 2.25 + 3.75",
        "Multiply: 0.5 × 8", "Add: 1.5 + 2.5 + 3.5",
    ],
    "algebra": [
        "If 2x + 5 = 13, what is x?", "Solve: 3x - 7 = 8", "If y = 2x and x = 5, what is y?",
        "Simplify: 4x + 2x", "If 5x = 25, what is x?", "Solve: x/2 = 10",
        "What is x if x + 8 = 15?", "Solve: 2x - 3 = 7", "If 3x = 21, what is x?",
        "Simplify: 3a + 2a + a", "Solve: 4x + 2 = 18", "If x - 5 = 10, what is x?",
        "What is y if y = 3x and x = 4?", "Solve: 2x + 4 = 12", "If 6x = 30, what is x?",
    ],
    "geometry": [
        "What is the area of a rectangle with length 8cm and width 5cm?",
        "If a square has side 6cm, what is its perimeter?",
        "What is the area of a triangle with base 10cm and height 6cm?",
        "If a circle has radius 5cm, what is its circumference? (Use π ≈ 3.14)",
        "A rectangle has area 24cm². If its width is 4cm, what is its length?",
        "If a square has perimeter 20cm, what is its side length?",
        "What is the volume of a cube with side 3cm?",
        "A circle has diameter 10cm. What is its radius?",
        "What is the area of a square with side 7cm?",
        "If a rectangle has length 12cm and area 60cm², what is its width?",
        "A triangle has base 8cm and area 20cm². What is its height?",
        "What is the perimeter of a rectangle 5cm × 3cm?",
    ],
    "statistics": [
        "If a die is rolled, what is the probability of getting a 3?",
        "What is the mean of 2, 4, 6, 8?",
        "If you flip a coin, what is the probability of getting heads?",
        "If there are 5 red balls and 3 blue balls in a bag, what is the probability of drawing a red ball?",
        "What is the mean of 10, 20, 30?",
    ],
    "calculus": [
        "What is the derivative of x²?", "What is the derivative of 3x² + 2x?",
        "What is the derivative of 5x³?", "Find the limit as x approaches 2 of (x + 1)",
    ],
    "logic_patterns": [
        "What comes next in the sequence: 2, 4, 6, 8, ___?",
        "Find the pattern: 1, 1, 2, 3, 5, 8, ___?",
        "Identify the pattern: 1, 4, 9, 16, ___?",
        "Find the pattern: 10, 20, 30, 40, ___?",
        "What comes next: 3, 6, 9, 12, ___?",
        "Continue the sequence: 2, 5, 10, 17, ___?",
        "What is the next number: 1, 2, 4, 8, ___?",
        "Find the pattern: 100, 90, 80, 70, ___?",
        "What comes next: 1, 3, 5, 7, ___?",
        "Identify the pattern: 2, 6, 12, 20, ___?",
        "Find the sequence: 5, 5, 10, 15, 25, ___?",
        "Continue: 1, 4, 7, 10, ___?",
        "Identify the pattern: 2, 4, 8, 16, ___?",
        "If the pattern doubles then adds 1: 1, 3, 7, 15, ___?",
        "What comes next: A, B, C, D, ___?",
        "Find the pattern: A, C, E, G, ___?",
        "Identify the pattern: Z, X, V, T, ___?",
        "What comes next: B, D, F, H, ___?",
        "What is the next letter: M, N, O, P, ___?",
    ],
    "exponents": [
        "What is 2⁵?", "What is 3⁴?", "What is √144?", "What is √81?",
        "What is ∛27?", "Simplify: 2³ × 2⁴", "What is 5 to the power of 3?",
        "What is the square root of 64?", "What is 10^3?",
    ],
}


class QuestionGenerator:
    """Gemini-backed question source with a template fallback"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_name: Optional[str] = None,
        rng: Optional[random.Random] = None,
        model=None
    ):
        self.rng = rng or random.Random()
        self.difficulty = AdaptiveDifficultySystem()
        self.model = model

        api_key = settings.GEMINI_API_KEY if api_key is None else api_key
        if self.model is None and api_key:
            genai.configure(api_key=api_key)
            self.model = genai.GenerativeModel(model_name or settings.GEMINI_MODEL)

    @property
    def ai_enabled(self) -> bool:
        return self.model is not None

    async def generate(
        self,
        history: Sequence[Dict],
        grade: str,
        operation: str,
        selected_modules: Optional[Sequence[str]] = None
    ) -> Dict:
        selected_modules = list(selected_modules or [])
        family = normalize_operation(operation)
        preferred = family in AI_PREFERRED_OPERATIONS

        if self.ai_enabled:
            # Selected modules always go to the model so questions stay on-topic
            probability = (
                settings.AI_PREFERRED_PROBABILITY if preferred
                else settings.AI_QUESTION_PROBABILITY
            )
            if selected_modules or self.rng.random() < probability:
                return await self._generate_ai(history, grade, family, selected_modules, preferred)

        return {"question": self.template_question(family, grade), "answer": None}

    def build_prompt(
        self,
        history: Sequence[Dict],
        grade: str,
        operation: str,
        selected_modules: Sequence[str]
    ) -> str:
        topic = get_topic_from_selected_modules(grade, list(selected_modules))
        complexity = (
            self.difficulty.recommended_complexity(history) if history else "medium"
        )
        module_context = (
            f"Selected modules: {', '.join(selected_modules)}\n" if selected_modules else ""
        )

        guidance_key = operation
        if any("Logic & Patterns" in m for m in selected_modules):
            guidance_key = "logic_patterns"
        elif operation not in QUESTION_GUIDANCE and any("Exponents" in m for m in selected_modules):
            guidance_key = "exponents"

        return PROMPT_TEMPLATE.format(
            grade=grade,
            module_context=module_context,
            topic=topic,
            curriculum_level=get_complexity_by_grade(grade),
            complexity=complexity,
            guidance=QUESTION_GUIDANCE.get(guidance_key, ""),
        )

    async def _generate_ai(
        self,
        history: Sequence[Dict],
        grade: str,
        operation: str,
        selected_modules: Sequence[str],
        preferred: bool
    ) -> Dict:
        prompt = self.build_prompt(history, grade, operation, selected_modules)
        try:
            loop = asyncio.get_event_loop()
            response = await loop.run_in_executor(
                None,
                lambda: self.model.generate_content(
                    prompt,
                    generation_config=genai.types.GenerationConfig(
                        temperature=0.8 if preferred else 0.5,
                        max_output_tokens=200
                    )
                )
            )
            return parse_ai_response(response.text)
        except Exception as e:
            logger.warning(f"AI generation failed, using template: {e}")
            return {"question": self.template_question(operation, grade), "answer": None}

    def template_question(self, operation: str, grade: str = DEFAULT_GRADE) -> str:
        complexity = GRADE_COMPLEXITY.get(grade, GRADE_COMPLEXITY[DEFAULT_GRADE])
        max_num, max_op = complexity["max_num"], complexity["max_op"]
        r = self.rng.randrange

        arithmetic = {
            "addition": [
                f"What is {r(max_num)} + {r(max_op)}?",
                f"If you have {r(max_num)} items and get {r(max_op)} more, how many do you have?",
                f"{r(max_num)} + {r(max_op)} = ?",
                f"Add: {r(max_num // 2)} + {r(max_num // 2)} + {r(max_num // 2)}",
            ],
            "subtraction": [
                f"What is {r(max_num)} - {r(max_op)}?",
                f"If you had {r(max_num)} items and used {r(max_op)}, how many are left?",
                f"{r(max_num)} - {r(max_op)} = ?",
                f"Subtract: {r(max_num)} - {r(max_num // 2)}",
            ],
            "multiplication": [
                f"What is {r(15) + 2} × {r(15) + 2}?",
                f"If each group has {r(12) + 2} items and there are {r(12) + 2} groups, how many items total?",
                f"{r(12) + 1} × {r(12) + 1} = ?",
                f"Multiply: {r(20) + 1} × {r(20) + 1}",
            ],
            "division": [
                f"What is {r(max_num)} ÷ {r(12) + 1}?",
                f"If you split {r(max_num)} equally among {r(12) + 1} groups, how many in each group?",
                f"{r(max_num)} ÷ {r(12) + 1} = ?",
                f"Divide: {r(max_num)} ÷ {r(12) + 1}",
            ],
        }

        family = normalize_operation(operation)
        questions = arithmetic.get(family) or FIXED_TEMPLATES.get(family) or arithmetic["addition"]
        return self.rng.choice(questions)
