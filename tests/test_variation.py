import pytest

from handcraft.variation import Mulberry32, VariationState, fatigue_multiplier, page_progress, page_seed


def _sequence(state: VariationState, n: int = 50):
    out = []
    for i in range(n):
        state.tick()
        out.extend(
            [
                state.baseline_jitter(1.0),
                state.letter_spacing_jitter(1.0),
                state.rotation_jitter(1.0),
                state.size_jitter(52, 1.0),
                state.opacity_jitter(1.0),
                state.word_spacing_jitter(1.0),
                state.line_start_jitter(1.0),
                state.baseline_wave(i, 1.0),
                state.word_shift(1.0),
                state.word_stretch(1.0),
                state.ink_blob(),
                state.line_angle(1.0),
            ]
        )
    return out


def test_same_seed_same_sequence():
    a = VariationState(1234, "gradual", 0.5)
    b = VariationState(1234, "gradual", 0.5)
    assert _sequence(a) == _sequence(b)


def test_different_seeds_differ():
    assert _sequence(VariationState(page_seed(0))) != _sequence(VariationState(page_seed(1)))


def test_generator_range():
    rng = Mulberry32(99)
    values = [rng.next_float() for _ in range(1000)]
    assert all(0.0 <= v < 1.0 for v in values)
    assert len(set(values)) > 990


def test_rush_ramps_late():
    assert fatigue_multiplier(0, "rush", 0.9) > fatigue_multiplier(0, "rush", 0.3)
    assert fatigue_multiplier(0, "rush", 0.3) == fatigue_multiplier(0, "none", 0.3)


def test_careful_start_is_neater_early():
    assert fatigue_multiplier(0, "careful-start", 0.05) < fatigue_multiplier(0, "none", 0.05)


def test_gradual_ramp():
    assert fatigue_multiplier(0, "gradual", 0.0) == pytest.approx(1.0)
    assert fatigue_multiplier(0, "gradual", 1.0) == pytest.approx(1.6)


def test_character_fatigue_is_capped():
    assert fatigue_multiplier(1200) == pytest.approx(1.2)
    assert fatigue_multiplier(10 ** 6) == pytest.approx(1.4)


def test_zero_intensity_removes_jitter():
    state = VariationState(5)
    assert state.baseline_jitter(0.0) == 0.0
    assert state.rotation_jitter(0.0) == 0.0
    assert state.size_jitter(40, 0.0) == 40


def test_unknown_mode_is_flat():
    state = VariationState(1, "sleepy", 0.9)
    assert state.fatigue_mode == "none"
    assert state.fatigue() == pytest.approx(1.0)


def test_page_progress_and_seed():
    assert page_progress(0, 1) == 0.0
    assert page_progress(2, 5) == pytest.approx(0.5)
    assert page_seed(0) == 7919
    assert page_seed(2) == 2 * 13337 + 7919


def test_for_page():
    state = VariationState.for_page(3, 4, "rush")
    assert state.seed == page_seed(3)
    assert state.progress == pytest.approx(1.0)
    assert state.fatigue() == pytest.approx(2.2)
