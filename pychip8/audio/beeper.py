"""Square-wave beeper that sounds while the sound timer is running."""

from __future__ import annotations

from array import array
import math
from typing import Optional

from pychip8.utils import debug_enabled, debug_log


class SquareWaveBeeper:
    """Manage a looping square-wave tone using pygame's mixer."""

    def __init__(
        self,
        *,
        frequency: float = 440.0,
        sample_rate: int = 44_100,
        volume: float = 0.35,
        min_play_ms: int = 35,
    ) -> None:
        try:
            import pygame  # type: ignore
        except ImportError as exc:  # pragma: no cover - optional dependency
            raise RuntimeError("pygame is required for audio output") from exc

        if pygame.mixer.get_init() is None:
            raise RuntimeError("pygame mixer must be initialised before creating SquareWaveBeeper")
        if frequency <= 0.0:
            raise ValueError("frequency must be positive")

        self._pygame = pygame
        self._frequency = frequency
        self._sample_rate = max(1, sample_rate)
        self._volume = max(0.0, min(1.0, volume))
        self._min_play_ms = max(0, min_play_ms)
        self._channel: Optional[pygame.mixer.Channel] = None
        self._sound: Optional[pygame.mixer.Sound] = None
        self._playing = False
        self._last_start_ms: int = 0

    @property
    def playing(self) -> bool:
        return self._playing

    # ------------------------------------------------------------------
    # Public API

    def set_active(self, active: bool) -> None:
        """Start or stop the tone; repeated calls with the same value are no-ops."""

        if active == self._playing:
            return
        if not active:
            self._stop()
            return

        if self._sound is None:
            self._sound = self._build_sound(self._frequency)
            if self._sound is None:
                return

        channel = self._channel
        if channel is None:
            channel = self._pygame.mixer.find_channel(True)
            if channel is None:
                return
            self._channel = channel

        channel.play(self._sound, loops=-1)
        channel.set_volume(self._volume)
        self._playing = True
        self._last_start_ms = self._pygame.time.get_ticks()
        if debug_enabled("audio"):
            debug_log("audio", "beep on freq=%.1f", self._frequency)

    def shutdown(self) -> None:
        """Stop any active tone and release resources."""

        self._stop()
        self._channel = None
        self._sound = None

    # ------------------------------------------------------------------
    # Internals

    def _stop(self) -> None:
        if self._channel is not None:
            if self._min_play_ms > 0:
                elapsed = self._pygame.time.get_ticks() - self._last_start_ms
                remaining = self._min_play_ms - elapsed
                if remaining > 0:
                    self._channel.fadeout(int(max(10, remaining)))
                else:
                    self._channel.stop()
            else:
                self._channel.stop()
        if self._playing and debug_enabled("audio"):
            debug_log("audio", "beep off")
        self._playing = False

    def _build_sound(self, frequency: float) -> Optional["pygame.mixer.Sound"]:
        period_samples = max(32, int(round(self._sample_rate / frequency)))
        rank = int(((self._sample_rate / (2.0 * frequency)) + 1.0) / 2.0)
        rank = max(1, min(30, rank))

        buffer = array("h")
        amplitude = 12_000
        scale = (4.0 / math.pi) * amplitude
        for index in range(period_samples):
            phase = (2.0 * math.pi * index) / period_samples
            total = 0.0
            for harmonic in range(rank):
                k = 2 * harmonic + 1
                total += math.sin(k * phase) / k
            value = total * scale
            value = max(-amplitude, min(amplitude, value))
            buffer.append(int(value))

        try:
            sound = self._pygame.mixer.Sound(buffer=buffer.tobytes())
        except self._pygame.error as exc:  # pragma: no cover - pygame error path
            if debug_enabled("audio"):
                debug_log("audio", "sound_build_failed=%s", exc)
            return None
        return sound


__all__ = ["SquareWaveBeeper"]
