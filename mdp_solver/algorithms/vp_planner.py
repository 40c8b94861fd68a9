# -*- coding: utf-8 -*-
from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Hashable, Mapping, Optional, Tuple, TypeVar

from mdp_solver.domain_object import Environment, Policy
from mdp_solver.domain_object.errors import check_fraction
from mdp_solver.utils.mdp_ops import (
    bellman_residual_optimality,
    evaluate_policy,
    iterate_state_value,
    make_greedy_policy,
    make_uniform_policy,
    policy_equal,
)
from mdp_solver.utils.logger_manager import ClosableLoggerMixin, LoggerManager
from mdp_solver.utils.timing import record_time_decorator

S = TypeVar("S", bound=Hashable)
A = TypeVar("A", bound=Hashable)

Values = Dict[S, float]


@dataclass
class PlannerConfig:
    gamma: float = 0.99
    theta: float = 1e-8                # VI/PI 收敛阈值（||V'-V||_inf）
    max_iter: int = 10000              # VI/PI 最大迭代
    eval_theta: float = 1e-8           # 策略评估的阈值（T_pi 迭代）
    eval_max_iter: int = 10000         # 策略评估最大迭代
    log_dir: Optional[str] = None
    use_tensorboard: bool = False


class VPPlanner(ClosableLoggerMixin):
    """
    Value Iteration / Policy Iteration / Truncated Policy Iteration（Modified PI）。
    单轮 sweep 在 utils.mdp_ops 中（无收敛判定），这里负责按阈值反复调用它们。
    """
    def __init__(self, env: Environment[S, A], cfg: Optional[PlannerConfig] = None) -> None:
        self.env = env
        self.cfg = cfg or PlannerConfig()
        self.gamma = check_fraction("gamma", self.cfg.gamma)
        self.logger = LoggerManager(self.cfg.log_dir, use_tensorboard=self.cfg.use_tensorboard)
        self.logger.log(f"VPPlanner initialized: {len(env)} states, gamma={self.gamma}.")
        self._eval_step = 0

    # ---------------------------------------------------------------------
    # 公共：策略评估（可完全评估，也可截断 k 次 sweep）
    # ---------------------------------------------------------------------
    def policy_evaluation(
        self,
        pi: Policy[S, A],
        V_init: Optional[Mapping[S, float]] = None,
        *,
        theta: Optional[float] = None,
        max_iter: Optional[int] = None,
        sweeps: Optional[int] = None,  # 若指定，则执行固定轮数（截断评估）
    ) -> Values:
        """
        迭代求解 V^π：
          - 若 sweeps is not None：做 sweeps 次 T_π 备份（Truncated）
          - 否则：直到 ||V'-V||_inf < theta 或达到 max_iter
        """
        V: Values = dict(V_init) if V_init is not None else {}
        theta = self.cfg.eval_theta if theta is None else theta
        max_iter = self.cfg.eval_max_iter if max_iter is None else max_iter

        if sweeps is not None:
            for _ in range(int(sweeps)):
                V, delta = evaluate_policy(self.env, pi, V, self.gamma)
                self._record_eval(delta)
            return V

        for k in range(max_iter):
            V, delta = evaluate_policy(self.env, pi, V, self.gamma)
            self._record_eval(delta)
            if delta < theta:
                self.logger.debug(f"policy evaluation converged after {k + 1} sweeps, delta={delta:.3e}")
                return V
        self.logger.warning(f"policy evaluation 达到 max_iter={max_iter} 仍未收敛（theta={theta}）。")
        return V

    # ---------------------------------------------------------------------
    # 算法 1：Value Iteration
    # ---------------------------------------------------------------------
    @record_time_decorator('value iteration')
    def value_iteration(
        self,
        V_init: Optional[Mapping[S, float]] = None,
        *,
        theta: Optional[float] = None,
        max_iter: Optional[int] = None,
    ) -> Tuple[Values, Policy[S, A]]:
        V: Values = dict(V_init) if V_init is not None else {}
        theta = self.cfg.theta if theta is None else theta
        max_iter = self.cfg.max_iter if max_iter is None else max_iter

        for k in range(max_iter):
            V, delta = iterate_state_value(self.env, V, self.gamma)   # v_{k+1} = max_a q_k
            self.logger.add_scalar("vi/delta", delta, k)
            if delta < theta:
                self.logger.log(f"value iteration converged after {k + 1} sweeps, delta={delta:.3e}")
                break
        else:
            self.logger.warning(f"value iteration 达到 max_iter={max_iter} 仍未收敛（theta={theta}）。")

        # 再抽取一遍最终贪心策略
        pi_star = make_greedy_policy(self.env, V, self.gamma)
        return V, pi_star

    # ---------------------------------------------------------------------
    # 算法 2：Policy Iteration（经典 PI：完整策略评估 + 策略改进）
    # ---------------------------------------------------------------------
    @record_time_decorator('policy iteration')
    def policy_iteration(
        self,
        pi_init: Optional[Policy[S, A]] = None,
        *,
        max_outer_iter: Optional[int] = None,
    ) -> Tuple[Values, Policy[S, A]]:
        # 初始策略：均匀（非终止态）；也可以传入外部策略
        pi = make_uniform_policy(self.env) if pi_init is None else pi_init
        max_outer_iter = self.cfg.max_iter if max_outer_iter is None else max_outer_iter

        V: Values = {}
        for k in range(max_outer_iter):
            # 完整评估 V^π（从上一轮的 V 热启动）
            V = self.policy_evaluation(pi, V)

            # 策略改进（贪心，并列平分）
            pi_new = make_greedy_policy(self.env, V, self.gamma)
            if policy_equal(pi, pi_new):
                self.logger.log(f"policy iteration stable after {k + 1} improvements.")
                return V, pi_new
            pi = pi_new

        self.logger.warning(f"policy iteration 达到 max_outer_iter={max_outer_iter} 仍未稳定。")
        return V, pi

    # ---------------------------------------------------------------------
    # 算法 3：Truncated / Modified Policy Iteration
    # 每次只对当前策略做 k 次评估 sweep，再策略改进
    # ---------------------------------------------------------------------
    @record_time_decorator('truncated policy iteration')
    def truncated_policy_iteration(
        self,
        *,
        eval_sweeps: int = 5,
        V_init: Optional[Mapping[S, float]] = None,
        pi_init: Optional[Policy[S, A]] = None,
        max_outer_iter: int = 1000,
    ) -> Tuple[Values, Policy[S, A]]:
        V: Values = dict(V_init) if V_init is not None else {}
        pi = make_uniform_policy(self.env) if pi_init is None else pi_init

        for _ in range(max_outer_iter):
            V = self.policy_evaluation(pi, V, sweeps=eval_sweeps)

            pi_new = make_greedy_policy(self.env, V, self.gamma)
            # 策略不变且 V 已是 T* 的不动点才停止（截断评估下策略可能先于 V 稳定）
            if policy_equal(pi, pi_new) and self.optimality_residual(V) < self.cfg.theta:
                return V, pi_new
            pi = pi_new

        # 外层达到上限也返回当前近似解
        self.logger.warning(f"truncated policy iteration 达到 max_outer_iter={max_outer_iter}。")
        return V, pi

    # ---------------------------------------------------------------------
    # 评估指标：Bellman 最优性残差
    # ---------------------------------------------------------------------
    def optimality_residual(self, V: Mapping[S, float]) -> float:
        return bellman_residual_optimality(self.env, V, self.gamma)

    def _record_eval(self, delta: float) -> None:
        self.logger.add_scalar("policy_evaluation/delta", delta, self._eval_step)
        self._eval_step += 1
