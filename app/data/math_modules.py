# ============================================================================
# Math Modules & Topics by Grade
# ============================================================================
"""
Curriculum catalogue used for question generation and adaptive difficulty.

Grades are the six bands offered at registration. Each band lists its
modules (the unit a learner selects) and the topics the AI generator is
asked to focus on. Modules map to one or more operation tags, which drive
both question generation and answer extraction.
"""
import random
from typing import Dict, List

DEFAULT_GRADE = "4-5"
GRADES = ["KG-1", "2-3", "4-5", "6-7", "7-8", "9+"]

MATH_MODULES_BY_GRADE: Dict[str, Dict] = {
    "KG-1": {
        "grade_level": "KG - 1st Grade",
        "complexity": "beginner",
        "modules": [
            {"name": "Addition", "topics": [
                "Introduction to Addition", "Addition on Number Line", "Addition Patterns",
                "Single-digit Addition", "Two-digit Addition"]},
            {"name": "Subtraction", "topics": [
                "Introduction to Subtraction", "Subtraction on Number Line",
                "Single-digit Subtraction", "Two-digit Subtraction",
                "Number Patterns in Subtraction"]},
            {"name": "Multiplication", "topics": [
                "Counting in Groups", "Introduction to Multiplication", "Repeated Addition",
                "Multiplication Tables (2-10)", "Multiplication Properties"]},
            {"name": "Division", "topics": [
                "Introduction to Division", "Division as Grouping", "Division as Sharing",
                "Basic Division Facts", "Speed Division"]},
            {"name": "Fractions", "topics": [
                "Introduction to Fractions", "Halves and Thirds", "Equivalent Fractions",
                "Like and Unlike Fractions", "Fractions of a Whole"]},
            {"name": "Logic & Patterns", "topics": [
                "Pattern Recognition", "Logical Thinking", "Arithmetic Progressions",
                "Geometric Patterns", "Puzzles and Games"]},
        ],
    },
    "2-3": {
        "grade_level": "Grade 2-3",
        "complexity": "elementary",
        "modules": [
            {"name": "Arithmetic Operations", "topics": [
                "Addition with Regrouping", "Subtraction with Regrouping",
                "Multiplication Facts", "Division Facts",
                "Multi-digit Addition & Subtraction"]},
            {"name": "Fractions & Decimals", "topics": [
                "Understanding Fractions", "Comparing Fractions", "Introduction to Decimals",
                "Decimal Place Value", "Fraction Operations"]},
            {"name": "Geometry", "topics": [
                "Shapes and Properties", "Angles Basics", "Perimeter and Area",
                "Symmetry", "Coordinate Geometry Intro"]},
            {"name": "Variables & Equations", "topics": [
                "Introduction to Variables", "Simple Equations", "Balancing Equations",
                "Word Problems with Variables", "Solving for Unknown"]},
        ],
    },
    "4-5": {
        "grade_level": "Grade 4-5",
        "complexity": "intermediate",
        "modules": [
            {"name": "Arithmetic", "topics": [
                "Multi-digit Multiplication", "Long Division", "Decimal Operations",
                "Fraction Addition & Subtraction", "Mixed Numbers"]},
            {"name": "Fractions & Decimals", "topics": [
                "Equivalent Fractions", "Comparing and Ordering Fractions",
                "Decimal Place Value", "Decimal Comparison", "Fraction-Decimal Conversion"]},
            {"name": "Geometry", "topics": [
                "Angles and Triangles", "Quadrilaterals", "Perimeter and Area Calculation",
                "Volume Basics", "Coordinate Geometry"]},
            {"name": "Algebra", "topics": [
                "Variables and Expressions", "Equations with Variables", "Inequalities",
                "Order of Operations", "Function Basics"]},
            {"name": "Statistics & Probability", "topics": [
                "Data Collection and Analysis", "Graphs and Charts", "Probability Basics",
                "Mean and Median", "Logical Reasoning"]},
        ],
    },
    "6-7": {
        "grade_level": "Grade 6-7",
        "complexity": "intermediate-advanced",
        "modules": [
            {"name": "Arithmetic & Number Theory", "topics": [
                "Factors and Multiples", "Prime Factorization", "GCD and LCM",
                "Whole Numbers and Integers", "Rational Numbers"]},
            {"name": "Fractions, Decimals & Percentages", "topics": [
                "Fraction Operations", "Decimal Operations", "Percentage Calculations",
                "Ratios and Proportions", "Rate Problems"]},
            {"name": "Pre-Algebra", "topics": [
                "Expressions and Equations", "Two-step Equations", "Inequalities",
                "Functions and Relations", "Graphing Linear Equations"]},
            {"name": "Geometry", "topics": [
                "Angles and Angle Relationships", "Triangles and Polygons",
                "Area and Perimeter", "Surface Area and Volume", "Coordinate Geometry"]},
            {"name": "Statistics & Probability", "topics": [
                "Data Analysis", "Mean, Median, Mode", "Probability Theory",
                "Counting Principles", "Sample Space"]},
            {"name": "Advanced Reasoning", "topics": [
                "Logical Deduction", "Pattern Analysis", "Puzzles and Games",
                "Mathematical Proof Basics", "Problem-Solving Techniques"]},
        ],
    },
    "7-8": {
        "grade_level": "Grade 7-8",
        "complexity": "advanced",
        "modules": [
            {"name": "Algebra", "topics": [
                "Linear Equations", "Systems of Equations", "Quadratic Equations Intro",
                "Polynomials", "Factoring"]},
            {"name": "Functions & Graphing", "topics": [
                "Functions and Notation", "Linear Functions", "Slope and Intercepts",
                "Function Evaluation", "Rate of Change"]},
            {"name": "Geometry & Trigonometry", "topics": [
                "Congruence and Similarity", "Pythagorean Theorem", "Area and Volume",
                "Surface Area", "Coordinate Geometry"]},
            {"name": "Statistics & Probability", "topics": [
                "Probability Distributions", "Expected Value", "Mean, Median, Mode",
                "Data Analysis", "Counting Principles"]},
            {"name": "Exponents & Roots", "topics": [
                "Powers and Exponents", "Scientific Notation", "Radicals and Roots",
                "Rational Exponents", "Exponential Growth"]},
        ],
    },
    "9+": {
        "grade_level": "Grade 9+",
        "complexity": "expert",
        "modules": [
            {"name": "Algebra", "topics": [
                "Quadratic Equations", "Polynomials and Factoring", "Rational Expressions",
                "Exponential and Logarithmic Functions", "Complex Numbers"]},
            {"name": "Functions & Analysis", "topics": [
                "Advanced Functions", "Composition of Functions", "Inverse Functions",
                "Limits Introduction", "Continuity"]},
            {"name": "Geometry & Trigonometry", "topics": [
                "Coordinate Geometry", "Advanced Trigonometry", "Trigonometric Functions",
                "Law of Sines and Cosines", "Vectors Basics"]},
            {"name": "Calculus Basics", "topics": [
                "Limits and Derivatives", "Derivative Rules", "Applications of Derivatives",
                "Integration Basics", "Fundamental Theorem"]},
            {"name": "Statistics & Probability", "topics": [
                "Advanced Probability", "Distributions", "Hypothesis Testing",
                "Regression Analysis", "Bayesian Statistics"]},
            {"name": "Mathematical Reasoning", "topics": [
                "Mathematical Proofs", "Logical Argumentation", "Discrete Mathematics",
                "Set Theory", "Combinatorics"]},
        ],
    },
}

BASIC_OPERATIONS = ["addition", "subtraction", "multiplication", "division"]

# Module names are shared across grades ("Geometry", "Algebra"), so one map covers all
MODULE_TO_OPERATIONS: Dict[str, List[str]] = {
    "Addition": ["addition"],
    "Subtraction": ["subtraction"],
    "Multiplication": ["multiplication"],
    "Division": ["division"],
    "Fractions": ["fractions"],
    "Logic & Patterns": ["logic_patterns"],
    "Arithmetic Operations": BASIC_OPERATIONS,
    "Fractions & Decimals": ["fractions", "decimals"],
    "Variables & Equations": ["algebra"],
    "Geometry": ["geometry"],
    "Algebra": ["algebra"],
    "Arithmetic": BASIC_OPERATIONS,
    "Statistics & Probability": ["statistics"],
    "Arithmetic & Number Theory": BASIC_OPERATIONS,
    "Fractions, Decimals & Percentages": ["fractions", "decimals"],
    "Pre-Algebra": ["algebra"],
    "Advanced Reasoning": ["logic_patterns"],
    "Functions & Graphing": ["algebra"],
    "Geometry & Trigonometry": ["geometry"],
    "Exponents & Roots": ["exponents"],
    "Functions & Analysis": ["algebra", "calculus"],
    "Calculus Basics": ["calculus"],
    "Mathematical Reasoning": ["logic_patterns"],
}

# Fallback number ranges for template questions
GRADE_COMPLEXITY = {
    "KG-1": {"max_num": 20, "max_op": 10},
    "2-3": {"max_num": 50, "max_op": 25},
    "4-5": {"max_num": 100, "max_op": 50},
    "6-7": {"max_num": 200, "max_op": 100},
    "7-8": {"max_num": 500, "max_op": 200},
    "9+": {"max_num": 1000, "max_op": 500},
}

# Accuracy boundaries per grade; younger learners reach "Hard" sooner
DIFFICULTY_THRESHOLDS = {
    "KG-1": {"very_easy": 0.0, "easy": 0.25, "medium": 0.40, "hard": 0.60, "very_hard": 0.75},
    "2-3": {"very_easy": 0.10, "easy": 0.30, "medium": 0.50, "hard": 0.70, "very_hard": 0.85},
    "4-5": {"very_easy": 0.20, "easy": 0.40, "medium": 0.60, "hard": 0.75, "very_hard": 0.85},
    "6-7": {"very_easy": 0.30, "easy": 0.50, "medium": 0.65, "hard": 0.80, "very_hard": 0.88},
    "7-8": {"very_easy": 0.40, "easy": 0.55, "medium": 0.70, "hard": 0.82, "very_hard": 0.90},
    "9+": {"very_easy": 0.50, "easy": 0.65, "medium": 0.75, "hard": 0.85, "very_hard": 0.92},
}


def get_modules_by_grade(grade: str) -> Dict:
    """Modules and topics for a grade, defaulting to 4-5"""
    return MATH_MODULES_BY_GRADE.get(grade, MATH_MODULES_BY_GRADE[DEFAULT_GRADE])


def get_topics_by_grade(grade: str) -> List[str]:
    topics = []
    for module in get_modules_by_grade(grade)["modules"]:
        topics.extend(module["topics"])
    return topics


def get_random_topic_by_grade(grade: str) -> str:
    return random.choice(get_topics_by_grade(grade))


def get_topic_from_selected_modules(grade: str, selected_modules: List[str]) -> str:
    """Random topic drawn only from the selected modules when any match the grade"""
    if not selected_modules:
        return get_random_topic_by_grade(grade)

    topics = []
    for module in get_modules_by_grade(grade)["modules"]:
        if module["name"] in selected_modules:
            topics.extend(module["topics"])

    if topics:
        return random.choice(topics)
    return get_random_topic_by_grade(grade)


def get_complexity_by_grade(grade: str) -> str:
    return get_modules_by_grade(grade)["complexity"]


def get_difficulty_thresholds(grade: str) -> Dict[str, float]:
    return DIFFICULTY_THRESHOLDS.get(grade, DIFFICULTY_THRESHOLDS[DEFAULT_GRADE])


def get_operations_for_modules(selected_modules: List[str]) -> List[str]:
    """Operation tags for the selected modules, in first-seen order"""
    if not selected_modules:
        return list(BASIC_OPERATIONS)

    operations: List[str] = []
    for module in selected_modules:
        for op in MODULE_TO_OPERATIONS.get(module, BASIC_OPERATIONS):
            if op not in operations:
                operations.append(op)
    return operations
