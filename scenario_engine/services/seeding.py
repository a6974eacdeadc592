import json

import numpy as np

from scenario_engine.schemas import BaselineConfig, LeverState


_FNV_OFFSET = 0x811C9DC5
_FNV_PRIME = 0x01000193
_MASK32 = 0xFFFFFFFF

_MULBERRY_INCREMENT = np.uint32(0x6D2B79F5)
_TWO_POW_32 = 4294967296.0


def canonical_config(levers: LeverState, baseline: BaselineConfig) -> str:
    """Serialize the full input configuration in declared field order.

    The seed override is excluded: it replaces the hash rather than feeding it.
    """
    payload = {
        "levers": levers.model_dump(),
        "baseline": baseline.model_dump(exclude={"seed"}),
    }
    return json.dumps(payload, ensure_ascii=True, separators=(",", ":"))


def fnv1a32(text: str) -> int:
    """FNV-1a, 32-bit. Order sensitive, non-cryptographic."""
    h = _FNV_OFFSET
    for byte in text.encode("utf-8"):
        h ^= byte
        h = (h * _FNV_PRIME) & _MASK32
    return h


def derive_seed(levers: LeverState, baseline: BaselineConfig) -> int:
    if baseline.seed is not None:
        return int(baseline.seed) & _MASK32
    return fnv1a32(canonical_config(levers, baseline))


def trial_seeds(seed: int, start: int, stop: int) -> np.ndarray:
    """Per-trial stream keys: seed XOR trial index."""
    idx = np.arange(start, stop, dtype=np.uint64)
    return ((np.uint64(seed & _MASK32) ^ idx) & np.uint64(_MASK32)).astype(np.uint32)


class Mulberry32:
    """mulberry32 over an array of independent uint32 states.

    Element i of every draw comes only from state i, so a trial's stream is the
    same whether it is advanced alone or alongside others.
    """

    def __init__(self, seeds):
        self._state = np.array(seeds, dtype=np.uint32, copy=True).reshape(-1)

    @classmethod
    def for_trials(cls, seed: int, start: int, stop: int) -> "Mulberry32":
        return cls(trial_seeds(seed, start, stop))

    def __len__(self):
        return int(self._state.shape[0])

    def random(self) -> np.ndarray:
        """Next uniform in [0, 1) for every stream."""
        self._state = self._state + _MULBERRY_INCREMENT
        t = self._state
        t = (t ^ (t >> np.uint32(15))) * (t | np.uint32(1))
        t = t ^ (t + (t ^ (t >> np.uint32(7))) * (t | np.uint32(61)))
        t = t ^ (t >> np.uint32(14))
        return t.astype(np.float64) / _TWO_POW_32

    def gaussian(self, mean=0.0, std=1.0) -> np.ndarray:
        # Box-Muller; 1 - u keeps the log argument in (0, 1]
        u1 = 1.0 - self.random()
        u2 = self.random()
        z0 = np.sqrt(-2.0 * np.log(u1)) * np.cos(2.0 * np.pi * u2)
        return z0 * std + mean
