"""Tests for report serialization."""

import json
from datetime import date

import numpy as np

from volcanoml.artifacts import dumps


class TestDumps:
    def test_numpy_and_nan(self):
        payload = {
            "nan": float("nan"),
            "np_nan": np.float64("nan"),
            "f": np.float64(1.5),
            "i": np.int64(3),
            "arr": np.array([1.0, np.inf]),
            "day": date(2020, 5, 12),
            "nested": [{"x": float("inf")}],
        }
        out = json.loads(dumps(payload))

        assert out == {
            "nan": None,
            "np_nan": None,
            "f": 1.5,
            "i": 3,
            "arr": [1.0, None],
            "day": "2020-05-12",
            "nested": [{"x": None}],
        }

    def test_output_is_strict_json(self):
        text = dumps({"a": float("nan")})
        assert "NaN" not in text
