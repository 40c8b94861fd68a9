# -*- coding: utf-8 -*-
# 路径：mdp_solver/algorithms/tdfa_planner.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Hashable, List, Optional, Sequence, TypeVar

import numpy as np

from mdp_solver.domain_object import (
    ActionPossibleFn,
    EpisodeTooLongError,
    InvariantViolation,
    NextStateFn,
    StartStateFn,
    StateActionFeaturesFn,
)
from mdp_solver.domain_object.errors import check_fraction, check_iterations, check_positive
from mdp_solver.utils.logger_manager import ClosableLoggerMixin, LoggerManager
from mdp_solver.utils.timing import record_time_decorator
from mdp_solver.utils.policy_ops import GREEDY_TOLERANCE, uniform_choice

S = TypeVar("S", bound=Hashable)
A = TypeVar("A", bound=Hashable)


# ==========================
# 线性近似的公共工具
# ==========================
def as_features(x: Sequence[float]) -> np.ndarray:
    return np.asarray(x, dtype=float)


def action_value(w: np.ndarray, features: Sequence[float]) -> float:
    r"""\hat{q}(s,a;w) = <w, x(s,a)>"""
    return float(np.dot(w, as_features(features)))


def possible_action_indices(
    actions: Sequence[A],
    is_action_possible: ActionPossibleFn[S, A],
    state: S,
) -> List[int]:
    indices = [i for i, a in enumerate(actions) if is_action_possible(state, a)]
    if not indices:
        raise InvariantViolation(f"状态 {state!r} 下没有可执行的动作。")
    return indices


def greedy_action_indices(
    actions: Sequence[A],
    w: np.ndarray,
    state_action_features: StateActionFeaturesFn[S, A],
    state: S,
    candidates: Sequence[int],
) -> List[int]:
    """候选动作中 \\hat{q} 最大者（容差内并列的全部返回）。"""
    values = [action_value(w, state_action_features(state, actions[i])) for i in candidates]
    best_value = max(values)
    return [i for i, v in zip(candidates, values) if abs(v - best_value) < GREEDY_TOLERANCE]


def greedy_action(
    actions: Sequence[A],
    w: np.ndarray,
    state_action_features: StateActionFeaturesFn[S, A],
    is_action_possible: ActionPossibleFn[S, A],
    state: S,
) -> A:
    """确定性贪心动作；并列时取 actions 中靠前的一个。"""
    candidates = possible_action_indices(actions, is_action_possible, state)
    return actions[greedy_action_indices(actions, w, state_action_features, state, candidates)[0]]


def greedy_policy_fn(
    actions: Sequence[A],
    w: np.ndarray,
    state_action_features: StateActionFeaturesFn[S, A],
    is_action_possible: ActionPossibleFn[S, A],
) -> Callable[[S], A]:
    """由权重导出 policy(s) 回调，可直接交给 MCPlanner.run_simulation。"""
    acts = list(actions)

    def act(state: S) -> A:
        return greedy_action(acts, w, state_action_features, is_action_possible, state)
    return act


# ==========================
# TD Function Approx. 配置
# ==========================
@dataclass
class FAConfig:
    seed: Optional[int] = 42
    log_dir: Optional[str] = None
    use_tensorboard: bool = False
    max_steps_per_episode: Optional[int] = 10_000
    diag_every: int = 200


# ==========================
# 主类：TDFAPlanner
# ==========================
class TDFAPlanner(ClosableLoggerMixin):
    r"""
    Value Function Approximation（控制问题）
      - Episodic semi-gradient SARSA with linear FA

    说明：
      * 线性 FA：  \hat{q}(s,a; w) = <w, x(s,a)>，梯度即 x(s,a)
        SARSA-FA: w <- w + α * [r + γ * \hat{q}(s',a';w) - \hat{q}(s,a;w)] * x(s,a)
        “半梯度”：对目标项中 w 的依赖不求导。
      * x(s,a) 由调用方提供（通常是 tile coding 的输出）。
    """

    def __init__(self, cfg: Optional[FAConfig] = None, rng: Optional[np.random.Generator] = None) -> None:
        self.cfg = cfg or FAConfig()
        self.rng = rng if rng is not None else np.random.default_rng(self.cfg.seed)
        self.logger = LoggerManager(self.cfg.log_dir, self.cfg.use_tensorboard)
        self._global_step = 0

    def _soft_greedy_index(
        self,
        actions: Sequence[A],
        w: np.ndarray,
        state_action_features: StateActionFeaturesFn[S, A],
        is_action_possible: ActionPossibleFn[S, A],
        state: S,
        exploration_fraction: float,
    ) -> int:
        """只在当前可执行的动作中做 ε-greedy；最优动作并列时均匀随机。"""
        candidates = possible_action_indices(actions, is_action_possible, state)
        if self.rng.random() <= exploration_fraction:
            return uniform_choice(self.rng, candidates)
        best = greedy_action_indices(actions, w, state_action_features, state, candidates)
        return uniform_choice(self.rng, best)

    # ========================================================
    # Episodic Semi-Gradient SARSA (on-policy)
    # ========================================================
    @record_time_decorator("SARSA-Linear")
    def find_action_values_episodic_semi_gradient_sarsa(
        self,
        actions: Sequence[A],
        start_state: StartStateFn[S],
        state_action_features: StateActionFeaturesFn[S, A],
        is_action_possible: ActionPossibleFn[S, A],
        next_state: NextStateFn[S, A],
        discount: float,
        exploration_fraction: float,
        alpha: float,
        iterations: int,
    ) -> np.ndarray:
        r"""
        返回权重向量 w：
            非终止：w <- w + α * [r + γ * \hat{q}(s',a';w) - \hat{q}(s,a;w)] * x(s,a)
            终止：  w <- w + α * [r - \hat{q}(s,a;w)] * x(s,a)
        """
        actions = list(actions)
        discount = check_fraction("discount", discount)
        eps = check_fraction("exploration_fraction", exploration_fraction)
        alpha = check_positive("alpha", alpha)
        iterations = check_iterations(iterations)
        max_steps = self.cfg.max_steps_per_episode

        # 用一个起始状态及其第一个可行动作探测特征维度
        probe = start_state()
        probe_action = actions[possible_action_indices(actions, is_action_possible, probe)[0]]
        w = np.zeros(len(as_features(state_action_features(probe, probe_action))), dtype=float)

        for ep in range(iterations):
            state = start_state()
            a_idx = self._soft_greedy_index(actions, w, state_action_features, is_action_possible, state, eps)
            x_sa = as_features(state_action_features(state, actions[a_idx]))
            ep_ret = 0.0
            t = 0

            while True:
                if max_steps is not None and t >= max_steps:
                    raise EpisodeTooLongError(max_steps, state)

                new_state, reward = next_state(state, actions[a_idx])
                ep_ret += reward
                q_sa = float(np.dot(w, x_sa))

                if new_state is None:
                    delta = reward - q_sa
                    w += alpha * delta * x_sa
                    self._diag(delta)
                    t += 1
                    break

                # 按当前 w 的 ε-greedy 选 a'，用 \hat{q}(s',a') 自举
                next_idx = self._soft_greedy_index(actions, w, state_action_features, is_action_possible, new_state, eps)
                x_next = as_features(state_action_features(new_state, actions[next_idx]))
                delta = reward + discount * float(np.dot(w, x_next)) - q_sa
                w += alpha * delta * x_sa
                self._diag(delta)
                t += 1

                state, a_idx, x_sa = new_state, next_idx, x_next

            self.logger.add_scalar("episode/return", float(ep_ret), ep)
            self.logger.add_scalar("episode/length", t, ep)
            if self.cfg.diag_every and ep % self.cfg.diag_every == 0:
                self.logger.debug(f"[SARSA-Linear] ep={ep} len={t} return={ep_ret:.3f} |w|={np.linalg.norm(w):.3e}")

        self.logger.log(f"semi-gradient SARSA finished: {iterations} episodes, dim(w)={w.shape[0]}.")
        return w

    def _diag(self, delta: float) -> None:
        if self.cfg.diag_every and self._global_step % self.cfg.diag_every == 0:
            self.logger.add_scalar("SARSA-Linear/td_error_abs", abs(float(delta)), self._global_step)
        self._global_step += 1
