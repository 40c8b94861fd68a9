# -*- coding: utf-8 -*-
from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, Generic, Hashable, List, Sequence, Tuple, TypeVar

import numpy as np

S = TypeVar("S")
A = TypeVar("A", bound=Hashable)

Point = Tuple[Sequence[float], Sequence[int]]  # (连续坐标, 整数坐标)


@dataclass(frozen=True)
class Bounds:
    """区间 [min, max)，右端点不包含。"""
    min: int
    max: int


@dataclass(frozen=True)
class ContinuousDimension:
    min: float
    max: float
    step_count: int

    @property
    def step_size(self) -> float:
        return (self.max - self.min) / self.step_count


class Tiling:
    """
    状态空间的一层规则网格。
    特征布局约定：第一个连续维变化最快，最后一个整数维变化最慢。
    """
    def __init__(
        self,
        origins: np.ndarray,
        step_sizes: np.ndarray,
        continuous_steps: Sequence[int],
        integer_dimensions: Sequence[Bounds],
    ) -> None:
        self.origins = origins
        self.step_sizes = step_sizes
        self.continuous_steps = [int(n) for n in continuous_steps]
        self.integer_origins = [d.min for d in integer_dimensions]
        self.integer_steps = [int(d.max - d.min) for d in integer_dimensions]
        self.tile_count = int(np.prod(self.continuous_steps + self.integer_steps, dtype=np.int64))

    def get_tile(self, pc: Sequence[float], pi: Sequence[int]) -> int:
        """包含该点的 tile 下标；越界的点被夹到边缘 tile。"""
        if len(pc) != len(self.continuous_steps) or len(pi) != len(self.integer_steps):
            raise ValueError(
                f"点的维度 ({len(pc)}, {len(pi)}) 与 tiling 维度 "
                f"({len(self.continuous_steps)}, {len(self.integer_steps)}) 不一致。"
            )
        offset = 0
        for i in reversed(range(len(pi))):
            n = self.integer_steps[i]
            index = min(max(int(pi[i]) - self.integer_origins[i], 0), n - 1)
            offset = offset * n + index

        for i in reversed(range(len(pc))):
            n = self.continuous_steps[i]
            step = max((float(pc[i]) - self.origins[i]) / self.step_sizes[i], 0.0)
            index = min(int(step), n - 1)
            offset = offset * n + index
        return offset


class TilingSet:
    """
    N 个连续维 + M 个整数维状态空间上的 count 层 tiling。
    第 k 层在每个连续维上相对基准网格偏移 k·step_size/count（非对称覆盖）。
    """
    def __init__(self, tilings: List[Tiling]) -> None:
        self.tilings = tilings

    @classmethod
    def from_dimensions(
        cls,
        continuous_dimensions: Sequence[ContinuousDimension],
        integer_dimensions: Sequence[Bounds],
        count: int,
    ) -> "TilingSet":
        if count < 1:
            raise ValueError(f"tiling 数量至少为 1，实际为 {count}。")
        for d in continuous_dimensions:
            if d.step_count < 1 or not d.max > d.min:
                raise ValueError(f"非法的连续维：{d}")
        for b in integer_dimensions:
            if not b.max > b.min:
                raise ValueError(f"非法的整数维：{b}")

        origin = np.array([d.min for d in continuous_dimensions], dtype=float)
        step_size = np.array([d.step_size for d in continuous_dimensions], dtype=float)
        offset_step = step_size / count
        steps = [d.step_count for d in continuous_dimensions]

        tilings: List[Tiling] = []
        for _ in range(count):
            tilings.append(Tiling(origin.copy(), step_size, steps, integer_dimensions))
            origin = origin + offset_step
        return cls(tilings)

    @property
    def count(self) -> int:
        return len(self.tilings)

    @property
    def tile_count(self) -> int:
        return sum(t.tile_count for t in self.tilings)

    def get_tiles(self, pc: Sequence[float], pi: Sequence[int]) -> List[int]:
        """每层 tiling 各一个 tile 下标，已加上前面各层的 tile 数，落在同一个扁平特征向量里。"""
        indices: List[int] = []
        index_offset = 0
        for t in self.tilings:
            indices.append(t.get_tile(pc, pi) + index_offset)
            index_offset += t.tile_count
        return indices

    def features(self, pc: Sequence[float], pi: Sequence[int]) -> np.ndarray:
        """稀疏二值特征的稠密形式，长度为 tile_count。"""
        x = np.zeros(self.tile_count, dtype=float)
        x[self.get_tiles(pc, pi)] = 1.0
        return x


class TileCodedFeatures(Generic[S, A]):
    """
    x(s,a)：每个动作占一段长度为 tile_count 的块，只有当前动作的块里有激活的 tile。
    split_state 把问题状态拆成 (连续坐标, 整数坐标)。
    """
    def __init__(
        self,
        tilings: TilingSet,
        actions: Sequence[A],
        split_state: Callable[[S], Point],
    ) -> None:
        self.tilings = tilings
        self.actions = list(actions)
        self.action_index = {a: i for i, a in enumerate(self.actions)}
        if len(self.action_index) != len(self.actions):
            raise ValueError("actions 中存在重复动作。")
        self.split_state = split_state

    @property
    def dimension(self) -> int:
        return self.tilings.tile_count * len(self.actions)

    def active_indices(self, state: S, action: A) -> List[int]:
        pc, pi = self.split_state(state)
        base = self.action_index[action] * self.tilings.tile_count
        return [base + i for i in self.tilings.get_tiles(pc, pi)]

    def __call__(self, state: S, action: A) -> np.ndarray:
        x = np.zeros(self.dimension, dtype=float)
        x[self.active_indices(state, action)] = 1.0
        return x
