import pytest

from idleracer.opponents import generate_opponents


def test_level_one_roster():
    roster = generate_opponents(1)
    assert [o.difficulty_class for o in roster] == ["easy", "medium", "hard", "extreme"]
    assert [o.difficulty for o in roster] == [0.58, 0.72, 0.94, 1.15]
    assert [o.reward for o in roster] == [200, 300, 450, 600]
    assert [o.fuel_cost for o in roster] == [5, 5, 5, 8]
    assert [o.index for o in roster] == [0, 1, 2, 3]


@pytest.mark.parametrize("level", [1, 2, 10, 37, 99, 100])
def test_four_opponents_strictly_increasing(level):
    roster = generate_opponents(level)
    assert len(roster) == 4
    diffs = [o.difficulty for o in roster]
    assert diffs == sorted(diffs)
    assert len(set(diffs)) == 4


def test_roster_is_stable():
    assert generate_opponents(17) == generate_opponents(17)


def test_rewards_are_multiples_of_fifty():
    for o in generate_opponents(23):
        assert o.reward % 50 == 0
