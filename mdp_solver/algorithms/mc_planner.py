# -*- coding: utf-8 -*-
from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Hashable, List, Optional, Set, Tuple, TypeVar

import numpy as np

from mdp_solver.domain_object import (
    ActionFn,
    EpisodeTooLongError,
    NextStateFn,
    Policy,
    StartStateFn,
)
from mdp_solver.domain_object.errors import check_fraction, check_iterations
from mdp_solver.utils.policy_ops import greedy_policy_state, soft_greedy_action
from mdp_solver.utils.logger_manager import ClosableLoggerMixin, LoggerManager
from mdp_solver.utils.timing import record_time_decorator

S = TypeVar("S", bound=Hashable)
A = TypeVar("A", bound=Hashable)

Episode = List[Tuple[S, A, float]]  # [(S_t, A_t, R_{t+1})]


@dataclass
class MCConfig:
    seed: Optional[int] = 42
    max_steps_per_episode: Optional[int] = 10_000   # Episode 上限，防止意外死循环；None 表示不限
    log_dir: Optional[str] = None
    use_tensorboard: bool = False
    diag_every: int = 100                           # 每多少个 episode 写一次汇总日志


class ValueEstimate:
    """增量平均：avg <- avg + (G - avg) / (count + 1)"""
    __slots__ = ("avg", "count")

    def __init__(self) -> None:
        self.avg = 0.0
        self.count = 0

    def update(self, value: float) -> None:
        self.avg += (value - self.avg) / (self.count + 1)
        self.count += 1


class MCPlanner(ClosableLoggerMixin):
    """
    Monte-Carlo 方法，只依赖回调（start_state / policy 或 random_action / next_state），
    适合转移图太大、无法显式枚举的环境（如纸牌游戏）。
      - evaluate_policy：按给定策略采样 episode，first-visit（从尾部扫描）估计 V
      - find_action_values / find_policy：on-policy ε-greedy MC Control，输出 Q 或其贪心策略
      - run_simulation：跑一集，返回无折扣总回报（仅评估，不学习）
    """

    def __init__(self, cfg: Optional[MCConfig] = None, rng: Optional[np.random.Generator] = None):
        self.cfg = cfg or MCConfig()
        self.rng = rng if rng is not None else np.random.default_rng(self.cfg.seed)
        self.logger = LoggerManager(self.cfg.log_dir, use_tensorboard=self.cfg.use_tensorboard)
        self.logger.log("MCPlanner initialized.")
        self.episode_counter = 0

    # ------------------------------------------------------------------ #
    # 公共：episode 生成
    # ------------------------------------------------------------------ #
    def generate_episode(
        self,
        start_state: StartStateFn[S],
        act: ActionFn[S, A],
        next_state: NextStateFn[S, A],
    ) -> Episode:
        """从 start_state() 出发，按 act(s) 选动作，直到 next_state 返回 None。"""
        max_steps = self.cfg.max_steps_per_episode
        episode: Episode = []
        state = start_state()
        while True:
            if max_steps is not None and len(episode) >= max_steps:
                raise EpisodeTooLongError(max_steps, state)
            action = act(state)
            new_state, reward = next_state(state, action)
            episode.append((state, action, float(reward)))
            if new_state is None:
                break
            state = new_state

        self.logger.add_scalar("episode/length", len(episode), self.episode_counter)
        self.episode_counter += 1
        return episode

    # ------------------------------------------------------------------ #
    # 算法 1：MC 策略评估
    # ------------------------------------------------------------------ #
    @record_time_decorator("MC Policy Evaluation")
    def evaluate_policy(
        self,
        start_state: StartStateFn[S],
        policy: ActionFn[S, A],
        next_state: NextStateFn[S, A],
        discount: float,
        iterations: int,
    ) -> Dict[S, float]:
        """
        返回 V(s)：
        - 每集从尾部往前折叠 G <- G·γ + r
        - 同一集中，只有从尾部扫描时第一次遇到的状态更新估计（去重集合）
        """
        discount = check_fraction("discount", discount)
        iterations = check_iterations(iterations)

        state_values: Dict[S, ValueEstimate] = {}
        for ep in range(iterations):
            episode = self.generate_episode(start_state, policy, next_state)

            updated: Set[S] = set()
            G = 0.0
            for state, _action, reward in reversed(episode):
                G = G * discount + reward
                if state in updated:
                    continue
                updated.add(state)
                state_values.setdefault(state, ValueEstimate()).update(G)

            self.logger.add_scalar("mc_eval/episode_return", G, ep)
            if self.cfg.diag_every and ep % self.cfg.diag_every == 0:
                self.logger.debug(f"[MC Eval] ep={ep} len={len(episode)} G0={G:.3f} |V|={len(state_values)}")

        return {s: est.avg for s, est in state_values.items()}

    # ------------------------------------------------------------------ #
    # 算法 2：MC ε-Greedy（On-policy MC Control）
    # ------------------------------------------------------------------ #
    @record_time_decorator("MC Epsilon Greedy")
    def find_action_values(
        self,
        start_state: StartStateFn[S],
        random_action: ActionFn[S, A],
        next_state: NextStateFn[S, A],
        discount: float,
        exploration_fraction: float,
        iterations: int,
    ) -> Dict[S, Dict[A, float]]:
        """
        返回 ε-greedy 控制学到的 Q(s,a)：
        - 未访问过的状态随机行动；访问过的状态以 1-ε 概率选已知最优动作（并列随机），否则随机
        - 每集中每个唯一 (s,a) 只更新一次，取其在本集中最早出现处的回报
        """
        discount = check_fraction("discount", discount)
        eps = check_fraction("exploration_fraction", exploration_fraction)
        iterations = check_iterations(iterations)

        estimates: Dict[S, Dict[A, ValueEstimate]] = {}
        # 供 soft_greedy_action 读取的 Q 视图（与 estimates 同步）
        Q: Dict[S, Dict[A, float]] = {}

        def act(state: S) -> A:
            return soft_greedy_action(self.rng, random_action, Q, state, eps)

        for ep in range(iterations):
            episode = self.generate_episode(start_state, act, next_state)

            # 从尾部折叠；同一 (s,a) 后写覆盖先写，最终保留最早出现处的回报
            G = 0.0
            observed: Dict[Tuple[S, A], float] = {}
            for state, action, reward in reversed(episode):
                G = G * discount + reward
                observed[(state, action)] = G

            for (state, action), returns in observed.items():
                est = estimates.setdefault(state, {}).setdefault(action, ValueEstimate())
                est.update(returns)
                Q.setdefault(state, {})[action] = est.avg

            self.logger.add_scalar("mc_eps/episode_return", G, ep)
            if self.cfg.diag_every and ep % self.cfg.diag_every == 0:
                self.logger.debug(f"[MC ε-Greedy] ep={ep} len={len(episode)} G0={G:.3f} |S|={len(Q)}")

        self.logger.log(f"MC control finished: {iterations} episodes, {len(Q)} states visited.")
        return Q

    def find_policy(
        self,
        start_state: StartStateFn[S],
        random_action: ActionFn[S, A],
        next_state: NextStateFn[S, A],
        discount: float,
        exploration_fraction: float,
        iterations: int,
    ) -> Policy[S, A]:
        """find_action_values 的贪心策略；并列最优动作平分概率（与 DP 的贪心策略一致）。"""
        Q = self.find_action_values(start_state, random_action, next_state,
                                    discount, exploration_fraction, iterations)
        return Policy({s: greedy_policy_state(q_s) for s, q_s in Q.items()})

    # ------------------------------------------------------------------ #
    # 评估：跑一集
    # ------------------------------------------------------------------ #
    def run_simulation(
        self,
        start_state: StartStateFn[S],
        policy: ActionFn[S, A],
        next_state: NextStateFn[S, A],
    ) -> float:
        """按 policy 跑一集，返回无折扣总回报。"""
        episode = self.generate_episode(start_state, policy, next_state)
        return float(sum(r for _s, _a, r in episode))
