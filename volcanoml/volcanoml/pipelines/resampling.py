import logging
from dataclasses import dataclass
from typing import Iterator, Tuple, Union

import numpy as np
import pandas as pd

from ..exceptions import ConfigurationError

log = logging.getLogger(__name__)

DEFAULT_TIMES = 25


@dataclass(frozen=True, eq=False)
class Resample:
    """One bootstrap draw: positions drawn with replacement plus its out-of-bag complement."""

    id: str
    in_bag: np.ndarray
    out_of_bag: np.ndarray

    def analysis(self, table: pd.DataFrame) -> pd.DataFrame:
        return table.iloc[self.in_bag]

    def assessment(self, table: pd.DataFrame) -> pd.DataFrame:
        return table.iloc[self.out_of_bag]


@dataclass(frozen=True)
class ResampleSet:
    resamples: Tuple[Resample, ...]
    seed: int
    n_rows: int

    def __len__(self) -> int:
        return len(self.resamples)

    def __iter__(self) -> Iterator[Resample]:
        return iter(self.resamples)

    def __getitem__(self, i: int) -> Resample:
        return self.resamples[i]

    @property
    def ids(self) -> Tuple[str, ...]:
        return tuple(r.id for r in self.resamples)


def _resample_id(i: int, times: int) -> str:
    width = max(2, len(str(times)))
    return f"Bootstrap{i + 1:0{width}d}"


def bootstraps(data: Union[pd.DataFrame, int], times: int = DEFAULT_TIMES, seed: int = 42) -> ResampleSet:
    """
    Draw `times` bootstrap resamples of a table (or of `data` rows when an int).

    Every resample has as many in-bag positions as the source has rows, drawn
    uniformly with replacement; rows never drawn form the out-of-bag holdout.
    A single generator seeded with `seed` produces all draws in order, so the
    same (seed, times, n) always yields the same membership.
    """
    n = int(data) if isinstance(data, (int, np.integer)) else len(data)
    if times < 1:
        raise ConfigurationError(f"times must be >= 1, got {times}", config_key="N_RESAMPLES")
    if n < 1:
        raise ConfigurationError("cannot resample an empty table")

    rng = np.random.default_rng(seed)
    out = []
    for i in range(times):
        in_bag = rng.integers(0, n, size=n)
        oob_mask = np.ones(n, dtype=bool)
        oob_mask[in_bag] = False
        out_of_bag = np.flatnonzero(oob_mask)
        if out_of_bag.size == 0:
            log.warning("%s has an empty out-of-bag set", _resample_id(i, times))
        in_bag.setflags(write=False)
        out_of_bag.setflags(write=False)
        out.append(Resample(id=_resample_id(i, times), in_bag=in_bag, out_of_bag=out_of_bag))

    log.info("Drew %d bootstrap resamples of %d rows (seed=%d)", times, n, seed)
    return ResampleSet(resamples=tuple(out), seed=seed, n_rows=n)
