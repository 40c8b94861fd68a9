# -*- coding: utf-8 -*-
# 路径：mdp_solver/algorithms/td_planner.py
from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Hashable, Optional, TypeVar

import numpy as np

from mdp_solver.domain_object import (
    ActionFn,
    EpisodeTooLongError,
    NextStateFn,
    StartStateFn,
)
from mdp_solver.domain_object.errors import check_fraction, check_iterations, check_positive
from mdp_solver.utils.logger_manager import ClosableLoggerMixin, LoggerManager
from mdp_solver.utils.timing import record_time_decorator
from mdp_solver.utils.policy_ops import (
    expected_value_under_epsilon_greedy,
    soft_greedy_action,
)

S = TypeVar("S", bound=Hashable)
A = TypeVar("A", bound=Hashable)


@dataclass
class TDConfig:
    seed: Optional[int] = 42
    log_dir: Optional[str] = None
    use_tensorboard: bool = False
    max_steps_per_episode: Optional[int] = 10_000
    diag_every: int = 100


class TDPlanner(ClosableLoggerMixin):
    """
    TD Control（model-free，只用回调）：
      - Expected SARSA：目标取 ε-greedy 策略下 s' 的期望动作价值，而不是实际采样的 a'
    一步一更新（不按 episode 批处理）。
    """
    def __init__(self, cfg: Optional[TDConfig] = None, rng: Optional[np.random.Generator] = None) -> None:
        self.cfg = cfg or TDConfig()
        self.rng = rng if rng is not None else np.random.default_rng(self.cfg.seed)
        self.logger = LoggerManager(self.cfg.log_dir, self.cfg.use_tensorboard)
        self._global_step = 0

    @record_time_decorator("ExpectedSARSA")
    def find_action_values_expected_sarsa(
            self,
            start_state: StartStateFn[S],
            random_action: ActionFn[S, A],
            next_state: NextStateFn[S, A],
            discount: float,
            exploration_fraction: float,
            alpha: float,
            iterations: int,
    ) -> Dict[S, Dict[A, float]]:
        r"""
        Q(S,A) <- Q(S,A) + α·[R + γ·Σ_a π(a|S')·Q(S',a) - Q(S,A)]
        π 为由当前 Q 派生的 ε-greedy；终止转移时简化为 Q(S,A) <- Q(S,A) + α·[R - Q(S,A)]。
        """
        discount = check_fraction("discount", discount)
        eps = check_fraction("exploration_fraction", exploration_fraction)
        alpha = check_positive("alpha", alpha)
        iterations = check_iterations(iterations)
        max_steps = self.cfg.max_steps_per_episode

        Q: Dict[S, Dict[A, float]] = {}

        for ep in range(iterations):
            state = start_state()
            ep_ret = 0.0
            t = 0

            while True:
                if max_steps is not None and t >= max_steps:
                    raise EpisodeTooLongError(max_steps, state)

                # ε-greedy(Q) 选动作
                action = soft_greedy_action(self.rng, random_action, Q, state, eps)
                q_sa = Q.get(state, {}).get(action, 0.0)

                new_state, reward = next_state(state, action)
                ep_ret += reward

                # Expected target：E_{a'~π(s')} q(s',a')；s' 未访问过时记为 0
                if new_state is None:
                    td_target = reward
                else:
                    q_next = Q.get(new_state)
                    exp_q = expected_value_under_epsilon_greedy(q_next, eps) if q_next else 0.0
                    td_target = reward + discount * exp_q

                delta = td_target - q_sa
                Q.setdefault(state, {})[action] = q_sa + alpha * delta

                if self.cfg.diag_every and self._global_step % self.cfg.diag_every == 0:
                    self.logger.add_scalar("ExpectedSARSA/td_error_abs", abs(float(delta)), self._global_step)
                self._global_step += 1
                t += 1

                if new_state is None:
                    break
                state = new_state

            self.logger.add_scalar("episode/return", ep_ret, ep)
            self.logger.add_scalar("episode/length", t, ep)

        self.logger.log(f"Expected SARSA finished: {iterations} episodes, {len(Q)} states.")
        return Q
