from typing import Dict, Optional, Tuple

import numpy as np
import pytest

from mdp_solver.domain_object import ActionResult, Environment

UP, DOWN, LEFT, RIGHT = "up", "down", "left", "right"
COIN_LIMIT = 100


def build_grid_env(rows: int = 4, cols: int = 4) -> Environment:
    """Corner-terminal grid: every move costs -1, walls keep the agent in place."""
    graph: Dict[Tuple[int, int], Dict[str, ActionResult]] = {}
    for r in range(rows):
        for c in range(cols):
            terminal = (r, c) in {(0, 0), (rows - 1, cols - 1)}
            if terminal:
                graph[(r, c)] = {}
                continue
            graph[(r, c)] = {
                UP: ActionResult.deterministic((max(r - 1, 0), c), -1.0),
                DOWN: ActionResult.deterministic((min(r + 1, rows - 1), c), -1.0),
                LEFT: ActionResult.deterministic((r, max(c - 1, 0)), -1.0),
                RIGHT: ActionResult.deterministic((r, min(c + 1, cols - 1)), -1.0),
            }
    return Environment.from_dict(graph)


def build_coin_env(heads_prob: float) -> Environment:
    """Gambler's problem: reach COIN_LIMIT (reward 1) before going broke."""
    graph: Dict[int, Dict[int, ActionResult]] = {}
    for money in range(1, COIN_LIMIT):
        actions = {}
        for bet in range(0, min(money, COIN_LIMIT - money) + 1):
            win = min(money + bet, COIN_LIMIT)
            lose = max(money - bet, 0)
            actions[bet] = ActionResult.from_paths([
                (win, heads_prob, 1.0 if win >= COIN_LIMIT else 0.0),
                (lose, 1.0 - heads_prob, 0.0),
            ])
        graph[money] = actions
    graph[0] = {}
    graph[COIN_LIMIT] = {}
    return Environment.from_dict(graph)


@pytest.fixture
def grid_env() -> Environment:
    return build_grid_env()


@pytest.fixture
def coin_env() -> Environment:
    return build_coin_env(0.4)


class RandomWalk:
    """Five states A..E, start at C; stepping right off E pays 1, left off A pays 0."""

    STATES = ["A", "B", "C", "D", "E"]
    ACTIONS = ["left", "right"]

    def __init__(self, seed: int = 0):
        self.rng = np.random.default_rng(seed)

    def start_state(self) -> str:
        return "C"

    def random_action(self, state: str) -> str:
        return "left" if self.rng.random() < 0.5 else "right"

    def next_state(self, state: str, action: str) -> Tuple[Optional[str], float]:
        i = self.STATES.index(state)
        if action == "left":
            return (None, 0.0) if i == 0 else (self.STATES[i - 1], 0.0)
        return (None, 1.0) if i == len(self.STATES) - 1 else (self.STATES[i + 1], 0.0)


@pytest.fixture
def random_walk() -> RandomWalk:
    return RandomWalk(seed=7)


class Corridor:
    """States 0..length-1, start at 0; every step costs -1, right from the last cell ends the episode."""

    ACTIONS = ["left", "right"]

    def __init__(self, length: int = 5):
        self.length = length

    def start_state(self) -> int:
        return 0

    def is_action_possible(self, state: int, action: str) -> bool:
        return action == "right" or state > 0

    def next_state(self, state: int, action: str) -> Tuple[Optional[int], float]:
        if action == "left":
            assert state > 0
            return state - 1, -1.0
        if state >= self.length - 1:
            return None, -1.0
        return state + 1, -1.0


@pytest.fixture
def corridor() -> Corridor:
    return Corridor(length=5)
