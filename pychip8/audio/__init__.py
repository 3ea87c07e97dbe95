"""Audio output for the CHIP-8 sound timer."""

from .beeper import SquareWaveBeeper

__all__ = ["SquareWaveBeeper"]
