import pytest

from mdp_solver.domain_object import (
    ActionDestination,
    ActionResult,
    Environment,
    InvariantViolation,
    Policy,
    PolicyState,
    StateActions,
)

from conftest import build_coin_env, build_grid_env


def test_deterministic_action_result() -> None:
    result = ActionResult.deterministic("s1", -1.0)
    assert dict(result.dest_states) == {"s1": ActionDestination(probability=1.0, reward=-1.0)}
    assert result.expected_reward() == -1.0


def test_action_result_rejects_bad_probability_sum() -> None:
    with pytest.raises(InvariantViolation):
        ActionResult({"a": ActionDestination(0.5, 0.0), "b": ActionDestination(0.2, 0.0)})
    with pytest.raises(InvariantViolation):
        ActionResult({})


def test_action_result_tolerates_small_generation_error() -> None:
    result = ActionResult({"a": ActionDestination(0.5, 0.0), "b": ActionDestination(0.45, 0.0)})
    assert result.total_probability() == pytest.approx(0.95)


def test_action_destination_rejects_non_positive_probability() -> None:
    with pytest.raises(InvariantViolation):
        ActionDestination(0.0, 1.0)


def test_from_paths_merges_destinations_and_keeps_expected_reward() -> None:
    paths = [("x", 0.25, 10.0), ("x", 0.25, 20.0), ("y", 0.5, -4.0), ("z", 0.0, 100.0)]
    result = ActionResult.from_paths(paths)

    assert set(result.dest_states) == {"x", "y"}
    assert result.dest_states["x"].probability == pytest.approx(0.5)
    assert result.dest_states["x"].reward == pytest.approx(15.0)
    assert result.expected_reward() == pytest.approx(sum(p * r for _, p, r in paths))


def test_generated_environments_conserve_probability() -> None:
    for env in (build_grid_env(), build_coin_env(0.4), build_coin_env(0.55)):
        for state in env:
            for result in env.actions(state).values():
                assert abs(result.total_probability() - 1.0) < 1e-6


def test_environment_is_read_only(grid_env: Environment) -> None:
    with pytest.raises(TypeError):
        grid_env.states[(9, 9)] = StateActions()
    with pytest.raises(TypeError):
        grid_env.actions((1, 1))["jump"] = ActionResult.deterministic((0, 0), 0.0)


def test_environment_terminal_states(grid_env: Environment) -> None:
    assert grid_env.is_terminal((0, 0))
    assert grid_env.is_terminal((3, 3))
    assert not grid_env.is_terminal((1, 2))
    # unknown destination states have no transitions
    assert grid_env.is_terminal("nowhere")
    assert len(grid_env.non_terminal_states()) == 14


def test_policy_state_validation() -> None:
    with pytest.raises(InvariantViolation):
        PolicyState({"a": 0.7, "b": 0.7})
    with pytest.raises(InvariantViolation):
        PolicyState({})
    assert PolicyState.uniform(["a", "b", "c", "d"]).probability("c") == pytest.approx(0.25)


def test_deterministic_policy() -> None:
    policy = Policy.deterministic({1: "up", 2: "down"})
    assert policy[1].is_deterministic
    assert dict(policy.probabilities(2)) == {"down": 1.0}
    assert 3 not in policy
