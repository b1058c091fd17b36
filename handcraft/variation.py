from __future__ import annotations

import math

from .styles import FATIGUE_MODES

_MASK32 = 0xFFFFFFFF

PAGE_SEED_STRIDE = 13337
PAGE_SEED_OFFSET = 7919

# characters after which per-character fatigue saturates (+40%)
CHAR_FATIGUE_SPAN = 6000.0
CHAR_FATIGUE_CAP = 0.4


def page_seed(page_index: int) -> int:
    return (int(page_index) * PAGE_SEED_STRIDE + PAGE_SEED_OFFSET) & _MASK32


def page_progress(page_index: int, total_pages: int) -> float:
    if total_pages <= 1:
        return 0.0
    return float(page_index) / float(total_pages - 1)


class Mulberry32:
    """32-bit additive-state generator with an xorshift-multiply output mix."""

    def __init__(self, seed: int) -> None:
        self.state = int(seed) & _MASK32

    def next_float(self) -> float:
        self.state = (self.state + 0x6D2B79F5) & _MASK32
        a = self.state
        t = ((a ^ (a >> 15)) * (1 | a)) & _MASK32
        t = ((t + (((t ^ (t >> 7)) * (61 | t)) & _MASK32)) & _MASK32) ^ t
        return ((t ^ (t >> 14)) & _MASK32) / 4294967296.0


def fatigue_multiplier(char_count: int, fatigue_mode: str = "none", progress: float = 0.0) -> float:
    char_fatigue = 1.0 + min(char_count / CHAR_FATIGUE_SPAN, CHAR_FATIGUE_CAP)
    if fatigue_mode == "gradual":
        return char_fatigue * (1.0 + progress * 0.6)
    if fatigue_mode == "rush":
        if progress > 0.6:
            rush = (progress - 0.6) / 0.4
            return char_fatigue * (1.0 + rush * 1.2)
        return char_fatigue
    if fatigue_mode == "careful-start":
        if progress < 0.2:
            return char_fatigue * 0.4
        return char_fatigue * (0.6 + (progress - 0.2) * 0.75)
    return char_fatigue


class VariationState:
    """Jitter source for one page's render pass.

    Every draw from the generator advances the sequence, so two states built with the
    same seed, fatigue mode and page progress yield identical values when called in
    the same order. ``tick()`` advances the characters-written counter that drives
    per-character fatigue.
    """

    def __init__(self, seed: int = 42, fatigue_mode: str = "none", progress: float = 0.0) -> None:
        if fatigue_mode not in FATIGUE_MODES:
            fatigue_mode = "none"
        self.seed = int(seed)
        self.fatigue_mode = fatigue_mode
        self.progress = float(progress)
        self.char_count = 0
        self._rng = Mulberry32(seed)

    @classmethod
    def for_page(cls, page_index: int, total_pages: int, fatigue_mode: str = "none") -> "VariationState":
        return cls(page_seed(page_index), fatigue_mode, page_progress(page_index, total_pages))

    def random(self) -> float:
        return self._rng.next_float()

    def tick(self) -> None:
        self.char_count += 1

    def fatigue(self) -> float:
        return fatigue_multiplier(self.char_count, self.fatigue_mode, self.progress)

    def baseline_jitter(self, intensity: float = 1.0) -> float:
        return (self.random() - 0.5) * 6.0 * intensity * self.fatigue()

    def letter_spacing_jitter(self, intensity: float = 1.0) -> float:
        return (self.random() - 0.5) * 3.2 * intensity * self.fatigue()

    def rotation_jitter(self, intensity: float = 1.0) -> float:
        """Radians."""
        return (self.random() - 0.5) * 0.06 * intensity * self.fatigue()

    def size_jitter(self, base_font_size: float, intensity: float = 1.0) -> float:
        return base_font_size + (self.random() - 0.5) * 3.0 * intensity * self.fatigue()

    def opacity_jitter(self, intensity: float = 1.0) -> float:
        fatigue = self.fatigue()
        base = 0.65 + self.random() * 0.35 * intensity
        return min(base / (fatigue * 0.3 + 0.7), 1.0)

    def word_spacing_jitter(self, intensity: float = 1.0) -> float:
        return (self.random() - 0.5) * 7.0 * intensity * self.fatigue()

    def line_start_jitter(self, intensity: float = 1.0) -> float:
        return (self.random() - 0.3) * 10.0 * intensity * self.fatigue()

    def baseline_wave(self, char_index: int, intensity: float = 1.0) -> float:
        return math.sin(char_index * 0.08 + self.random() * 2.0) * 3.5 * intensity * self.fatigue()

    def word_shift(self, intensity: float = 1.0) -> float:
        return (self.random() - 0.5) * 4.5 * intensity * self.fatigue()

    def word_stretch(self, intensity: float = 1.0) -> float:
        return 0.94 + self.random() * 0.12 * intensity

    def ink_blob(self) -> bool:
        return self.random() < 0.03 * self.fatigue()

    def line_angle(self, intensity: float = 1.0) -> float:
        """Radians."""
        return (self.random() - 0.5) * 0.006 * intensity * self.fatigue()
