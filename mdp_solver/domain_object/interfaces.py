# -*- coding: utf-8 -*-
# 路径：mdp_solver/domain_object/interfaces.py
"""
model-free 求解器（MC / TD / 线性 FA）从问题模块拿到的回调契约。
普通函数、lambda、带 __call__ 的对象都满足这些 Protocol。
"""
from __future__ import annotations
from typing import Hashable, Optional, Protocol, Sequence, Tuple, TypeVar

S = TypeVar("S", bound=Hashable)
A = TypeVar("A", bound=Hashable)

StepResult = Tuple[Optional[S], float]  # (s' 或 None 表示终止, r)


class StartStateFn(Protocol[S]):
    def __call__(self) -> S: ...


class NextStateFn(Protocol[S, A]):
    def __call__(self, state: S, action: A) -> StepResult[S]: ...


class ActionFn(Protocol[S, A]):
    """random_action(s) 或 policy(s)：给出在 s 下执行的动作。"""
    def __call__(self, state: S) -> A: ...


class StateActionFeaturesFn(Protocol[S, A]):
    """x(s, a)：定长特征向量。"""
    def __call__(self, state: S, action: A) -> Sequence[float]: ...


class ActionPossibleFn(Protocol[S, A]):
    def __call__(self, state: S, action: A) -> bool: ...
