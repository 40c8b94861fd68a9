# -*- coding: utf-8 -*-
from __future__ import annotations
from typing import Callable, Dict, Hashable, List, Mapping, Optional, Sequence, TypeVar

import numpy as np

from mdp_solver.domain_object import (
    ActionFn,
    InvariantViolation,
    Policy,
    PolicyState,
    SamplingError,
)

K = TypeVar("K", bound=Hashable)
S = TypeVar("S", bound=Hashable)
A = TypeVar("A", bound=Hashable)
V = TypeVar("V")

# 判定“并列最大”的容差，容忍浮点误差
GREEDY_TOLERANCE = 1e-6


def choose_random_key(
    rng: np.random.Generator,
    weights: Mapping[K, V],
    weight_of: Callable[[V], float] = float,
) -> K:
    """
    按权重随机抽取一个 key。
    以 key 的排序顺序累减，保证给定随机流时结果可复现。
    """
    keys = sorted(weights.keys())
    total = float(sum(weight_of(weights[k]) for k in keys))
    remaining = rng.random() * total
    for k in keys:
        w = weight_of(weights[k])
        if remaining <= w:
            return k
        remaining -= w
    raise SamplingError(f"加权抽样未选中任何 key（总权重 {total}，共 {len(keys)} 个）。")


def sample_action_from_policy(rng: np.random.Generator, pi_s: PolicyState[A]) -> A:
    return choose_random_key(rng, pi_s.actions)


def uniform_choice(rng: np.random.Generator, items: Sequence[K]) -> K:
    if not items:
        raise InvariantViolation("候选集为空，无法选择。")
    if len(items) == 1:
        return items[0]
    return items[int(rng.integers(len(items)))]


def greedy_actions(q_s: Mapping[A, float], tol: float = GREEDY_TOLERANCE) -> List[A]:
    """返回所有与最大值相差不超过 tol 的动作（可能多个）。"""
    if not q_s:
        raise InvariantViolation("动作价值为空，无法求贪心动作。")
    max_q = max(q_s.values())
    best = [a for a, q in q_s.items() if abs(q - max_q) < tol]
    if not best:
        raise InvariantViolation(f"找不到贪心动作（max={max_q}）。")
    return best


def greedy_policy_state(q_s: Mapping[A, float], tol: float = GREEDY_TOLERANCE) -> PolicyState[A]:
    """并列的最优动作平分概率，不在这一层任意挑一个。"""
    return PolicyState.uniform(greedy_actions(q_s, tol))


def epsilon_greedy_probabilities(q_s: Mapping[A, float], epsilon: float) -> Dict[A, float]:
    """
    π_ε(a|s)：
      - 贪心动作：(1-ε)/|greedy| + ε/|A|
      - 其他动作：ε/|A|
    只有一个动作时其概率为 1。
    """
    if len(q_s) == 1:
        return {a: 1.0 for a in q_s}
    best = set(greedy_actions(q_s))
    others = epsilon / len(q_s)
    greedy = others + (1.0 - epsilon) / len(best)
    return {a: (greedy if a in best else others) for a in q_s}


def expected_value_under_epsilon_greedy(q_s: Mapping[A, float], epsilon: float) -> float:
    """Σ_a π_ε(a|s)·Q(s,a)"""
    probs = epsilon_greedy_probabilities(q_s, epsilon)
    return float(sum(p * q_s[a] for a, p in probs.items()))


def soft_greedy_action(
    rng: np.random.Generator,
    random_action: ActionFn[S, A],
    action_values: Mapping[S, Mapping[A, float]],
    state: S,
    exploration_fraction: float,
) -> A:
    """
    由 Q 派生的 ε-greedy 动作：
      - 从未访问过的状态，或通过探索判定 -> random_action(s)
      - 否则在已知动作中取最大者，并列时均匀随机
    """
    q_s = action_values.get(state)
    if not q_s or rng.random() <= exploration_fraction:
        return random_action(state)
    return uniform_choice(rng, greedy_actions(q_s))


def policy_from_explicit(policy: Policy[S, A], rng: np.random.Generator) -> Callable[[S], A]:
    """把显式 Policy 转成按 π(a|s) 随机采样的 policy(s) 回调。"""
    def act(state: S) -> A:
        pi_s: Optional[PolicyState[A]] = policy.get(state)
        if pi_s is None:
            raise InvariantViolation(f"策略中缺少状态 {state!r}。")
        return sample_action_from_policy(rng, pi_s)
    return act
