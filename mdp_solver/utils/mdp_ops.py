# -*- coding: utf-8 -*-
from __future__ import annotations
from typing import Dict, Hashable, Mapping, Tuple, TypeVar

import numpy as np

from mdp_solver.domain_object import (
    ActionResult,
    Environment,
    InvariantViolation,
    Policy,
    PolicyState,
)
from mdp_solver.utils.policy_ops import greedy_policy_state

S = TypeVar("S", bound=Hashable)
A = TypeVar("A", bound=Hashable)


# ---- 单个 (s,a) 的一步期望：Σ_{s'} p·(r + γ V(s')) ----------------------------
def action_value(result: ActionResult[S], values: Mapping[S, float], discount: float) -> float:
    q = 0.0
    for dest, d in result.items():
        q += d.probability * (d.reward + discount * values.get(dest, 0.0))
    return q


# ---- Q(s,a) from V(s) -------------------------------------------------------
def action_values_from_state_values(
    env: Environment[S, A],
    values: Mapping[S, float],
    discount: float,
) -> Dict[S, Dict[A, float]]:
    """
    Q(s,a) = E[r + γ * V(s')]，只对非终止态计算。
    V 中缺失的状态按 0 处理（包括不在 env 中的目的状态）。
    """
    Q: Dict[S, Dict[A, float]] = {}
    for s in env.non_terminal_states():
        Q[s] = {a: action_value(res, values, discount) for a, res in env.actions(s).items()}
    return Q


# ---- T_π V：策略评估的一轮同步备份 ---------------------------------------------
def evaluate_policy(
    env: Environment[S, A],
    policy: Policy[S, A],
    prev_values: Mapping[S, float],
    discount: float,
) -> Tuple[Dict[S, float], float]:
    """
    (T_π V)(s) = Σ_a π(a|s) Σ_{s'} p·(r + γ V(s'))。
    所有更新只读取 prev_values（同步 sweep），返回 (新 V, max|ΔV|)。
    """
    new_values: Dict[S, float] = {}
    max_delta = 0.0
    for s, sa in env.states.items():
        if sa.is_terminal:
            v = 0.0
        else:
            pi_s = policy.get(s)
            if pi_s is None:
                raise InvariantViolation(f"策略缺少非终止状态 {s!r}。")
            v = 0.0
            for a, a_prob in pi_s.actions.items():
                if a_prob == 0.0:
                    continue
                res = sa.actions.get(a)
                if res is None:
                    raise InvariantViolation(f"状态 {s!r} 下不存在策略中的动作 {a!r}。")
                v += a_prob * action_value(res, prev_values, discount)
        new_values[s] = v
        max_delta = max(max_delta, abs(v - prev_values.get(s, 0.0)))
    return new_values, max_delta


# ---- T* V：价值迭代的一轮同步备份 ----------------------------------------------
def iterate_state_value(
    env: Environment[S, A],
    prev_values: Mapping[S, float],
    discount: float,
) -> Tuple[Dict[S, float], float]:
    """(T* V)(s) = max_a Σ_{s'} p·(r + γ V(s'))，返回 (新 V, max|ΔV|)。"""
    new_values: Dict[S, float] = {}
    max_delta = 0.0
    for s, sa in env.states.items():
        if sa.is_terminal:
            v = 0.0
        else:
            v = max(action_value(res, prev_values, discount) for res in sa.actions.values())
        new_values[s] = v
        max_delta = max(max_delta, abs(v - prev_values.get(s, 0.0)))
    return new_values, max_delta


# ---- 贪心策略 π_greedy(V) -------------------------------------------------------
def make_greedy_policy(
    env: Environment[S, A],
    values: Mapping[S, float],
    discount: float,
) -> Policy[S, A]:
    """并列最优动作（容差 1e-6）平分概率。"""
    Q = action_values_from_state_values(env, values, discount)
    return Policy({s: greedy_policy_state(q_s) for s, q_s in Q.items()})


def make_uniform_policy(env: Environment[S, A]) -> Policy[S, A]:
    return Policy({s: PolicyState.uniform(env.actions(s).keys()) for s in env.non_terminal_states()})


# ---- ||T*V - V||_inf --------------------------------------------------------
def bellman_residual_optimality(
    env: Environment[S, A],
    values: Mapping[S, float],
    discount: float,
) -> float:
    """最优性残差：max_s |max_a Q(s,a) - V(s)|，终止态的目标值为 0。"""
    target, _ = iterate_state_value(env, values, discount)
    res = 0.0
    for s, v in target.items():
        res = max(res, abs(v - values.get(s, 0.0)))
    return float(res)


# ---- 策略相等性判断（供 PI 收敛判据） -----------------------------------------
def policy_equal(pi1: Policy[S, A], pi2: Policy[S, A]) -> bool:
    if set(pi1.states.keys()) != set(pi2.states.keys()):
        return False
    for s in pi1:
        d1, d2 = pi1[s].actions, pi2[s].actions
        if d1.keys() != d2.keys():
            return False
        for a in d1:
            if not np.isclose(d1[a], d2[a]):
                return False
    return True
