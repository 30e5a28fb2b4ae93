"""Tests for retro_env.actions module."""
import numpy as np
import pytest
from gymnasium import spaces

from retro_env.actions import (
    Actions,
    DiscreteActionSpace,
    FilteredActionSpace,
    FullActionSpace,
    MultiDiscreteActionSpace,
)
from retro_env.errors import EncodingError
from retro_env.seeding import RandomSource

KEYBINDS = ["Z", None, "TAB", "ENTER", "UP", "DOWN", "LEFT", "RIGHT"]
# UP/DOWN, LEFT/RIGHT, fire
COMBOS = [[0, 16, 32], [0, 64, 128], [0, 1]]


class TestFullActionSpace:
    def test_scenario_bits_zero_and_five(self):
        space = FullActionSpace(KEYBINDS)
        assert space.encode([1, 0, 0, 0, 0, 1, 0, 0], 0) == 33

    def test_space_shape(self):
        space = FullActionSpace(KEYBINDS, num_players=2)
        assert isinstance(space.space, spaces.MultiBinary)
        assert space.space.n == 16

    def test_player_slices(self):
        space = FullActionSpace(KEYBINDS, num_players=2)
        action = [1, 1, 0, 0, 0, 0, 0, 0] + [0, 0, 0, 0, 0, 0, 0, 1]
        assert space.encode(action, 0) == 0b11
        assert space.encode(action, 1) == 0b10000000
        assert space.encode_all(action) == [0b11, 0b10000000]

    def test_illegal_combinations_kept(self):
        space = FullActionSpace(KEYBINDS)
        assert space.encode([0, 0, 0, 0, 1, 1, 1, 1], 0) == 0b11110000

    def test_bool_action(self):
        space = FullActionSpace(KEYBINDS)
        action = np.array([True, False, False, False, False, True, False, False])
        assert space.encode(action, 0) == 33

    def test_decode_reencode(self):
        space = FullActionSpace(KEYBINDS)
        rng = RandomSource(5)
        for _ in range(20):
            action = space.sample(rng)
            mask = space.encode(action, 0)
            flags = space.decode(mask)
            np.testing.assert_array_equal(flags, action)
            assert space.encode(flags, 0) == mask

    @pytest.mark.parametrize("action", [
        [1, 0, 0],
        [1, 0, 0, 0, 0, 0, 0, 0, 0],
        [2, 0, 0, 0, 0, 0, 0, 0],
        [-1, 0, 0, 0, 0, 0, 0, 0],
        [0.0] * 8,
        [[0] * 8],
    ])
    def test_invalid_actions(self, action):
        with pytest.raises(EncodingError):
            FullActionSpace(KEYBINDS).encode(action, 0)

    def test_invalid_player(self):
        with pytest.raises(EncodingError, match="Player"):
            FullActionSpace(KEYBINDS).encode([0] * 8, 1)

    def test_encode_does_not_mutate(self):
        action = np.array([1, 0, 1, 0, 1, 0, 1, 0], dtype=np.int8)
        before = action.copy()
        FullActionSpace(KEYBINDS).encode(action, 0)
        np.testing.assert_array_equal(action, before)


class TestFilteredActionSpace:
    def test_default_filter_uses_combos(self):
        space = FilteredActionSpace(KEYBINDS, COMBOS)
        # UP+DOWN cancel, RIGHT and fire survive, SELECT dropped
        assert space.encode([1, 0, 1, 0, 1, 1, 0, 1], 0) == 1 | 128

    def test_external_filter(self):
        calls = []

        def only_fire(mask):
            calls.append(mask)
            return mask & 1

        space = FilteredActionSpace(KEYBINDS, COMBOS, action_filter=only_fire)
        assert space.encode([1, 0, 0, 0, 1, 0, 0, 0], 0) == 1
        assert calls == [17]

    def test_legal_mask_idempotent(self):
        space = FilteredActionSpace(KEYBINDS, COMBOS)
        rng = RandomSource(9)
        for _ in range(50):
            mask = space.encode(space.sample(rng), 0)
            assert space.encode(space.decode(mask), 0) == mask


class TestDiscreteActionSpace:
    def test_combo_count(self):
        space = DiscreteActionSpace(KEYBINDS, COMBOS)
        assert space.num_combos == 18
        assert space.space.n == 18

    def test_first_and_last(self):
        space = DiscreteActionSpace(KEYBINDS, COMBOS)
        assert space.encode(0, 0) == 0
        assert space.encode(17, 0) == 32 | 128 | 1

    def test_least_significant_group_first(self):
        space = DiscreteActionSpace(KEYBINDS, COMBOS)
        assert space.encode(1, 0) == 16
        assert space.encode(3, 0) == 64
        assert space.encode(9, 0) == 1

    def test_out_of_domain(self):
        space = DiscreteActionSpace(KEYBINDS, COMBOS)
        with pytest.raises(EncodingError):
            space.encode(18, 0)
        with pytest.raises(EncodingError):
            space.encode(-1, 0)

    def test_bijection(self):
        space = DiscreteActionSpace(KEYBINDS, COMBOS)
        encoded = [space.encode(i, 0) for i in range(space.space.n)]
        assert len(set(encoded)) == len(encoded) == 18

    def test_numpy_index(self):
        space = DiscreteActionSpace(KEYBINDS, COMBOS)
        assert space.encode(np.int64(17), 0) == space.encode(np.array([17]), 0)

    def test_rejects_vectors_and_floats(self):
        space = DiscreteActionSpace(KEYBINDS, COMBOS)
        with pytest.raises(EncodingError):
            space.encode([1, 2], 0)
        with pytest.raises(EncodingError):
            space.encode(1.0, 0)

    def test_two_players(self):
        space = DiscreteActionSpace(KEYBINDS, COMBOS, num_players=2)
        assert space.space.n == 18 ** 2
        index = 1 + 18 * 17
        assert space.encode(index, 0) == 16
        assert space.encode(index, 1) == 32 | 128 | 1


class TestMultiDiscreteActionSpace:
    def test_space(self):
        space = MultiDiscreteActionSpace(KEYBINDS, COMBOS, num_players=2)
        assert space.space.nvec.tolist() == [3, 3, 2, 3, 3, 2]

    def test_direct_lookup(self):
        space = MultiDiscreteActionSpace(KEYBINDS, COMBOS, num_players=2)
        action = [2, 1, 1, 0, 2, 0]
        assert space.encode(action, 0) == 32 | 64 | 1
        assert space.encode(action, 1) == 128

    def test_out_of_range(self):
        space = MultiDiscreteActionSpace(KEYBINDS, COMBOS)
        with pytest.raises(EncodingError):
            space.encode([3, 0, 0], 0)
        with pytest.raises(EncodingError):
            space.encode([0, 0, -1], 0)

    def test_wrong_length(self):
        with pytest.raises(EncodingError):
            MultiDiscreteActionSpace(KEYBINDS, COMBOS).encode([0, 0], 0)


class TestActionsSelector:
    @pytest.mark.parametrize("actions,cls", [
        (Actions.ALL, FullActionSpace),
        (Actions.FILTERED, FilteredActionSpace),
        (Actions.DISCRETE, DiscreteActionSpace),
        (Actions.MULTI_DISCRETE, MultiDiscreteActionSpace),
    ])
    def test_space_for_emulator(self, emulator, actions, cls):
        space = actions.space_for(emulator)
        assert type(space) is cls
        assert space.buttons == tuple(emulator.buttons)

    @pytest.mark.parametrize("actions", list(Actions))
    def test_samples_are_valid(self, actions):
        space = actions.build(KEYBINDS, COMBOS, num_players=2)
        rng = RandomSource(1)
        for _ in range(10):
            sample = space.sample(rng)
            assert space.space.contains(sample)
            assert len(space.encode_all(sample)) == 2
