import pytest

from mdp_solver.domain_object import ActionResult, Environment, InvariantViolation, Policy, PolicyState
from mdp_solver.utils.mdp_ops import (
    action_values_from_state_values,
    bellman_residual_optimality,
    evaluate_policy,
    iterate_state_value,
    make_greedy_policy,
    make_uniform_policy,
    policy_equal,
)

from conftest import DOWN, LEFT, RIGHT, UP

# 4x4 grid 在均匀随机策略下的状态价值（γ=1）
UNIFORM_GRID_VALUES = [
    [0.0, -14.0, -20.0, -22.0],
    [-14.0, -18.0, -20.0, -20.0],
    [-20.0, -20.0, -18.0, -14.0],
    [-22.0, -20.0, -14.0, 0.0],
]


def _evaluate_to_convergence(env, policy, discount, theta=1e-10, max_sweeps=10_000):
    values = {}
    for _ in range(max_sweeps):
        values, delta = evaluate_policy(env, policy, values, discount)
        if delta < theta:
            break
    return values


def test_uniform_policy_covers_non_terminal_states(grid_env: Environment) -> None:
    policy = make_uniform_policy(grid_env)
    assert len(policy) == 14
    assert (0, 0) not in policy
    assert dict(policy[(1, 1)].actions) == {UP: 0.25, DOWN: 0.25, LEFT: 0.25, RIGHT: 0.25}


def test_evaluate_uniform_policy_on_grid(grid_env: Environment) -> None:
    values = _evaluate_to_convergence(grid_env, make_uniform_policy(grid_env), 1.0)
    for r, row in enumerate(UNIFORM_GRID_VALUES):
        for c, expected in enumerate(row):
            assert values[(r, c)] == pytest.approx(expected, abs=1e-4)


def test_evaluate_policy_is_synchronous() -> None:
    # a -> b -> end；一轮同步 sweep 中 a 只能看到 b 的旧值 0
    env = Environment.from_dict({
        "a": {"go": ActionResult.deterministic("b", 1.0)},
        "b": {"go": ActionResult.deterministic("end", 1.0)},
        "end": {},
    })
    policy = Policy.deterministic({"a": "go", "b": "go"})
    values, delta = evaluate_policy(env, policy, {}, 1.0)
    assert values == {"a": 1.0, "b": 1.0, "end": 0.0}
    assert delta == pytest.approx(1.0)

    values, delta = evaluate_policy(env, policy, values, 1.0)
    assert values["a"] == pytest.approx(2.0)
    assert delta == pytest.approx(1.0)


def test_evaluate_policy_fixed_point_has_zero_delta(grid_env: Environment) -> None:
    policy = make_uniform_policy(grid_env)
    values = _evaluate_to_convergence(grid_env, policy, 1.0)
    _, delta = evaluate_policy(grid_env, policy, values, 1.0)
    assert delta < 1e-8


def test_sweeps_do_not_modify_previous_values(grid_env: Environment) -> None:
    prev_values = {s: -1.0 for s in grid_env}
    snapshot = dict(prev_values)

    new_values, _ = evaluate_policy(grid_env, make_uniform_policy(grid_env), prev_values, 1.0)
    assert prev_values == snapshot
    assert new_values is not prev_values

    new_values, _ = iterate_state_value(grid_env, prev_values, 1.0)
    assert prev_values == snapshot
    assert new_values is not prev_values

    make_greedy_policy(grid_env, prev_values, 1.0)
    bellman_residual_optimality(grid_env, prev_values, 1.0)
    assert prev_values == snapshot


def test_evaluate_policy_requires_every_non_terminal_state(grid_env: Environment) -> None:
    partial = Policy.deterministic({(1, 1): UP})
    with pytest.raises(InvariantViolation):
        evaluate_policy(grid_env, partial, {}, 1.0)


def test_evaluate_policy_rejects_unknown_action(grid_env: Environment) -> None:
    states = {s: PolicyState({UP: 1.0}) for s in grid_env.non_terminal_states()}
    states[(2, 2)] = PolicyState({"teleport": 1.0})
    with pytest.raises(InvariantViolation):
        evaluate_policy(grid_env, Policy(states), {}, 1.0)


def test_iterate_state_value_reaches_distance_to_corner(grid_env: Environment) -> None:
    values = {}
    for _ in range(10):
        values, delta = iterate_state_value(grid_env, values, 1.0)
    assert delta == 0.0
    for (r, c) in grid_env:
        distance = min(r + c, 6 - r - c)
        assert values[(r, c)] == pytest.approx(-distance)
    assert bellman_residual_optimality(grid_env, values, 1.0) == pytest.approx(0.0)


def test_greedy_policy_is_sound(grid_env: Environment) -> None:
    values = _evaluate_to_convergence(grid_env, make_uniform_policy(grid_env), 1.0)
    greedy = make_greedy_policy(grid_env, values, 1.0)
    Q = action_values_from_state_values(grid_env, values, 1.0)

    for s in grid_env.non_terminal_states():
        best = max(Q[s].values())
        for a, prob in greedy[s].actions.items():
            assert prob > 0.0
            assert Q[s][a] >= best - 1e-6

    # (1,1) 向上、向左并列最优，概率平分
    assert dict(greedy[(1, 1)].actions) == {UP: 0.5, LEFT: 0.5}
    assert dict(greedy[(0, 1)].actions) == {LEFT: 1.0}


def test_action_values_treat_missing_values_as_zero(grid_env: Environment) -> None:
    Q = action_values_from_state_values(grid_env, {}, 0.9)
    assert set(Q) == set(grid_env.non_terminal_states())
    assert Q[(2, 1)][DOWN] == pytest.approx(-1.0)


def test_policy_equal(grid_env: Environment) -> None:
    uniform = make_uniform_policy(grid_env)
    assert policy_equal(uniform, make_uniform_policy(grid_env))
    greedy = make_greedy_policy(grid_env, {}, 1.0)
    assert policy_equal(uniform, greedy)  # V=0 时所有动作并列
    other = make_greedy_policy(grid_env, {(0, 0): 5.0}, 1.0)
    assert not policy_equal(uniform, other)
