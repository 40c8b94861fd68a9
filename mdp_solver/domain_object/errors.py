# -*- coding: utf-8 -*-
# 路径：mdp_solver/domain_object/errors.py
from __future__ import annotations
from typing import Optional


class InvariantViolation(ValueError):
    """输入违反模型不变式（概率和不为 1、策略缺状态、贪心候选集为空等），本次求解直接中止。"""


class SamplingError(RuntimeError):
    """加权抽样遍历完所有 key 仍未选中；概率合法时不应出现。"""


class EpisodeTooLongError(RuntimeError):
    """episode 超过 max_steps_per_episode 仍未终止。"""

    def __init__(self, max_steps: int, state: Optional[object] = None):
        self.max_steps = max_steps
        self.state = state
        super().__init__(f"episode 超过 {max_steps} 步仍未终止（最后状态：{state!r}）。")


def check_fraction(name: str, value: float) -> float:
    value = float(value)
    if not 0.0 <= value <= 1.0:
        raise ValueError(f"{name} 应在 [0, 1] 内，实际为 {value}。")
    return value


def check_positive(name: str, value: float) -> float:
    value = float(value)
    if value <= 0.0:
        raise ValueError(f"{name} 应为正数，实际为 {value}。")
    return value


def check_iterations(iterations: int) -> int:
    if iterations < 0:
        raise ValueError(f"iterations 不能为负，实际为 {iterations}。")
    return int(iterations)
