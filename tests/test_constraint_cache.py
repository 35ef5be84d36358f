import numpy as np
import pytest

from svmhmm.constraint_cache import Constraint, ConstraintCache
from svmhmm.types import Label


def _constraint(delta, margin, tags):
    return Constraint(delta_psi=np.asarray(delta, dtype=float), margin=margin, label=Label(tags))


def test_violation_is_margin_minus_score():
    c = _constraint([1.0, 2.0], 3.0, [1])

    assert c.violation(np.array([1.0, 0.5])) == pytest.approx(1.0)


def test_oldest_policy_evicts_first_inserted():
    cache = ConstraintCache(capacity=2, policy="oldest")
    w = np.zeros(2)
    first = _constraint([1, 0], 1.0, [0])
    second = _constraint([0, 1], 1.0, [1])
    third = _constraint([1, 1], 2.0, [2])

    assert cache.add(0, first, w) == []
    assert cache.add(0, second, w) == []
    evicted = cache.add(0, third, w)

    assert evicted == [first]
    assert [c.label for c in cache.get(0)] == [Label([1]), Label([2])]
    assert len(cache) == 2


def test_least_binding_policy_evicts_smallest_violation():
    cache = ConstraintCache(capacity=2, policy="least_binding")
    w = np.array([1.0, 0.0])
    satisfied = _constraint([5, 0], 1.0, [0])
    violated = _constraint([0, 1], 1.0, [1])
    cache.add(0, violated, w)
    cache.add(0, satisfied, w)

    evicted = cache.add(0, _constraint([0, 2], 1.5, [2]), w)

    assert evicted == [satisfied]
    assert cache.contains(0, Label([1]))
    assert not cache.contains(0, Label([0]))


def test_capacity_is_per_example():
    cache = ConstraintCache(capacity=1)
    w = np.zeros(2)
    cache.add(0, _constraint([1, 0], 1.0, [0]), w)
    cache.add(1, _constraint([0, 1], 1.0, [1]), w)

    assert len(cache) == 2
    assert [i for i, _ in cache.all_constraints()] == [0, 1]


def test_duplicate_labels_are_not_cached_twice():
    cache = ConstraintCache(capacity=3)
    w = np.zeros(2)
    cache.add(0, _constraint([1, 0], 1.0, [0, 1]), w)

    assert cache.add(0, _constraint([1, 0], 1.0, [0, 1]), w) == []
    assert len(cache) == 1


def test_zero_capacity_stores_nothing():
    cache = ConstraintCache(capacity=0)

    assert not cache.enabled
    assert cache.add(0, _constraint([1, 0], 1.0, [0]), np.zeros(2)) == []
    assert len(cache) == 0
    assert cache.slack(0, np.zeros(2)) == 0.0


def test_slack_is_largest_non_negative_violation():
    cache = ConstraintCache(capacity=3)
    w = np.array([1.0, 1.0])
    cache.add(0, _constraint([1, 0], 3.0, [0]), w)
    cache.add(0, _constraint([0, 1], 1.5, [1]), w)

    assert cache.slack(0, w) == pytest.approx(2.0)
    assert cache.slack(0, np.array([10.0, 10.0])) == 0.0
    assert cache.slack(5, w) == 0.0


def test_clear_empties_every_example():
    cache = ConstraintCache(capacity=2)
    cache.add(0, _constraint([1, 0], 1.0, [0]), np.zeros(2))
    cache.clear()

    assert len(cache) == 0
    assert cache.get(0) == []


@pytest.mark.parametrize("capacity, policy", [(-1, "oldest"), (2, "random")])
def test_invalid_cache_settings(capacity, policy):
    with pytest.raises(ValueError):
        ConstraintCache(capacity, policy)
