# -*- coding: utf-8 -*-
# 路径：mdp_solver/domain_object/environment.py
from __future__ import annotations
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Generic, Hashable, Iterable, Iterator, List, Mapping, Tuple, TypeVar

import numpy as np

from .errors import InvariantViolation

S = TypeVar("S", bound=Hashable)
A = TypeVar("A", bound=Hashable)
Reward = float

# 生成式环境（泊松截尾等）允许的概率和误差
PROBABILITY_TOLERANCE = 0.1


@dataclass(frozen=True)
class ActionDestination:
    probability: float
    reward: Reward

    def __post_init__(self) -> None:
        if not 0.0 < self.probability <= 1.0 + 1e-12:
            raise InvariantViolation(f"转移概率应在 (0, 1] 内，实际为 {self.probability}。")


@dataclass(frozen=True)
class ActionResult(Generic[S]):
    """
    执行某动作后的结果分布：目的状态 -> (概率, 奖励)。
    构造时检查概率之和为 1（容差 PROBABILITY_TOLERANCE）。
    """
    dest_states: Mapping[S, ActionDestination]

    def __post_init__(self) -> None:
        dests = dict(self.dest_states)
        if not dests:
            raise InvariantViolation("ActionResult 至少需要一个目的状态。")
        total = float(sum(d.probability for d in dests.values()))
        if not np.isclose(total, 1.0, rtol=0.0, atol=PROBABILITY_TOLERANCE):
            raise InvariantViolation(f"概率之和为 {total}，应为 1.0。")
        object.__setattr__(self, "dest_states", MappingProxyType(dests))

    @classmethod
    def deterministic(cls, dest: S, reward: Reward) -> "ActionResult[S]":
        return cls({dest: ActionDestination(probability=1.0, reward=float(reward))})

    @classmethod
    def from_paths(cls, paths: Iterable[Tuple[S, float, Reward]]) -> "ActionResult[S]":
        """
        把多条 (目的状态, 概率, 奖励) 路径合并为一个 ActionResult：
          - 同一目的状态的概率相加；
          - 奖励取“给定目的状态”的条件期望 Σ p·r / Σ p（保持 E[r] 不变）。
        零概率路径直接丢弃。
        """
        prob_sum: Dict[S, float] = {}
        weighted_reward: Dict[S, float] = {}
        for dest, p, r in paths:
            if p <= 0.0:
                continue
            prob_sum[dest] = prob_sum.get(dest, 0.0) + p
            weighted_reward[dest] = weighted_reward.get(dest, 0.0) + p * r
        return cls({
            dest: ActionDestination(probability=p, reward=weighted_reward[dest] / p)
            for dest, p in prob_sum.items()
        })

    def total_probability(self) -> float:
        return float(sum(d.probability for d in self.dest_states.values()))

    def expected_reward(self) -> float:
        return float(sum(d.probability * d.reward for d in self.dest_states.values()))

    def items(self):
        return self.dest_states.items()


@dataclass(frozen=True)
class StateActions(Generic[A, S]):
    """某状态下可执行的动作；空映射即终止态。"""
    actions: Mapping[A, ActionResult[S]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "actions", MappingProxyType(dict(self.actions)))

    @property
    def is_terminal(self) -> bool:
        return len(self.actions) == 0


@dataclass(frozen=True)
class Environment(Generic[S, A]):
    """
    显式 MDP：state -> StateActions。
    只保存可达状态（稀疏字典），构造后只读；目的状态不必出现在 states 中（视为价值 0）。
    """
    states: Mapping[S, StateActions[A, S]]

    def __post_init__(self) -> None:
        object.__setattr__(self, "states", MappingProxyType(dict(self.states)))

    @classmethod
    def from_dict(cls, graph: Mapping[S, Mapping[A, ActionResult[S]]]) -> "Environment[S, A]":
        return cls({s: StateActions(actions) for s, actions in graph.items()})

    def __len__(self) -> int:
        return len(self.states)

    def __iter__(self) -> Iterator[S]:
        return iter(self.states)

    def __contains__(self, state: object) -> bool:
        return state in self.states

    def actions(self, state: S) -> Mapping[A, ActionResult[S]]:
        return self.states[state].actions

    def is_terminal(self, state: S) -> bool:
        sa = self.states.get(state)
        return sa is None or sa.is_terminal

    def non_terminal_states(self) -> List[S]:
        return [s for s, sa in self.states.items() if not sa.is_terminal]
