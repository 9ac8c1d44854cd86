from enum import Enum
from typing import Dict, FrozenSet, List


class StateMachine:
    """
    Tracks a sequencer's state against its transition table.

    Terminal states map to an empty set. Moving along an edge that is not in
    the table raises ValueError.
    """

    def __init__(self, transitions: Dict[Enum, FrozenSet[Enum]], initial: Enum, label: str):
        self.transitions = transitions
        self.state = initial
        self.history: List[Enum] = [initial]
        self.label = label

    def advance(self, new_state: Enum) -> Enum:
        if new_state not in self.transitions[self.state]:
            raise ValueError(f"{self.label}: illegal transition {self.state.name} -> {new_state.name}")
        print(f"🔀 {self.label}: {self.state.name} → {new_state.name}")
        self.state = new_state
        self.history.append(new_state)
        return new_state

    @property
    def terminal(self) -> bool:
        return not self.transitions[self.state]
