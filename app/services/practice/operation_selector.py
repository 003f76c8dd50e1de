# ============================================================================
# Operation Selection
# ============================================================================
import random
from collections import defaultdict
from typing import Dict, List, Optional, Sequence

from app.config import get_settings
from app.data.math_modules import BASIC_OPERATIONS, get_operations_for_modules

settings = get_settings()

class OperationSelector:
    """Chooses the operation tag for the next question"""

    def __init__(
        self,
        weak_area_probability: Optional[float] = None,
        rng: Optional[random.Random] = None
    ):
        if weak_area_probability is None:
            weak_area_probability = settings.WEAK_AREA_PROBABILITY
        self.weak_area_probability = weak_area_probability
        self.rng = rng or random.Random()

    def available_operations(self, selected_modules: Sequence[str]) -> List[str]:
        return get_operations_for_modules(list(selected_modules or []))

    def random_operation(self, operations: Sequence[str]) -> str:
        operations = list(operations) or list(BASIC_OPERATIONS)
        return self.rng.choice(operations)

    def adaptive_operation(self, history: Sequence[Dict], operations: Sequence[str]) -> str:
        """Weakest available operation most of the time, otherwise uniform"""
        operations = list(operations) or list(BASIC_OPERATIONS)
        if not history:
            return self.random_operation(operations)

        weak_ops = [op for op in weak_operations(history) if op in operations]
        if weak_ops and self.rng.random() < self.weak_area_probability:
            return weak_ops[0]
        return self.random_operation(operations)

    def select(self, mode: str, history: Sequence[Dict], selected_modules: Sequence[str]) -> str:
        operations = self.available_operations(selected_modules)
        if mode == "play":
            return self.adaptive_operation(history, operations)
        return self.random_operation(operations)


def operation_accuracy(history: Sequence[Dict]) -> Dict[str, Dict[str, int]]:
    """Per-operation correct/total counts, in first-seen order"""
    accuracy: Dict[str, Dict[str, int]] = defaultdict(lambda: {"correct": 0, "total": 0})
    for entry in history:
        op = entry.get("operation") or "addition"
        accuracy[op]["total"] += 1
        if entry.get("correct"):
            accuracy[op]["correct"] += 1
    return dict(accuracy)


def weak_operations(history: Sequence[Dict]) -> List[str]:
    """Operations ordered from lowest to highest accuracy"""
    accuracy = operation_accuracy(history)
    return sorted(accuracy, key=lambda op: accuracy[op]["correct"] / accuracy[op]["total"])
