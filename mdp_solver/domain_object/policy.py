# -*- coding: utf-8 -*-
# 路径：mdp_solver/domain_object/policy.py
from __future__ import annotations
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Generic, Hashable, Iterator, Mapping, TypeVar

import numpy as np

from .errors import InvariantViolation

S = TypeVar("S", bound=Hashable)
A = TypeVar("A", bound=Hashable)

ValueTable = Dict[S, float]
ActionValueTable = Dict[S, Dict[A, float]]


@dataclass(frozen=True)
class PolicyState(Generic[A]):
    """π(·|s)：动作 -> 概率，概率之和为 1。"""
    actions: Mapping[A, float]

    def __post_init__(self) -> None:
        probs = {a: float(p) for a, p in self.actions.items()}
        if not probs:
            raise InvariantViolation("PolicyState 至少需要一个动作。")
        if any(p < 0.0 for p in probs.values()):
            raise InvariantViolation(f"存在负概率：{probs}")
        total = float(sum(probs.values()))
        if not np.isclose(total, 1.0, rtol=0.0, atol=1e-6):
            raise InvariantViolation(f"概率之和为 {total}，应为 1.0。")
        object.__setattr__(self, "actions", MappingProxyType(probs))

    @classmethod
    def uniform(cls, actions) -> "PolicyState[A]":
        acts = list(actions)
        if not acts:
            raise InvariantViolation("均匀分布需要至少一个动作。")
        p = 1.0 / len(acts)
        return cls({a: p for a in acts})

    def probability(self, action: A) -> float:
        return self.actions.get(action, 0.0)

    @property
    def is_deterministic(self) -> bool:
        return len(self.actions) == 1


@dataclass(frozen=True)
class Policy(Generic[S, A]):
    """π：state -> PolicyState。确定性策略即每个状态只有一个概率为 1 的动作。"""
    states: Mapping[S, PolicyState[A]]

    def __post_init__(self) -> None:
        object.__setattr__(self, "states", MappingProxyType(dict(self.states)))

    @classmethod
    def deterministic(cls, choice: Mapping[S, A]) -> "Policy[S, A]":
        return cls({s: PolicyState({a: 1.0}) for s, a in choice.items()})

    def __len__(self) -> int:
        return len(self.states)

    def __iter__(self) -> Iterator[S]:
        return iter(self.states)

    def __contains__(self, state: object) -> bool:
        return state in self.states

    def __getitem__(self, state: S) -> PolicyState[A]:
        return self.states[state]

    def get(self, state: S, default=None):
        return self.states.get(state, default)

    def probabilities(self, state: S) -> Mapping[A, float]:
        return self.states[state].actions
