"""Tests for the two-phase preprocessing pipeline."""

import dataclasses
import warnings

import numpy as np
import pandas as pd
import pytest

from volcanoml.exceptions import ConfigurationError, DegenerateFitError
from volcanoml.pipelines.preprocessing import OTHER_LEVEL, PreprocessingPipeline, RareLevelCollapser


class TestRareLevelCollapser:
    def test_pools_rare_and_unseen_levels(self):
        X = pd.DataFrame({"rock": ["a"] * 6 + ["b"] * 3 + ["c"]})
        collapser = RareLevelCollapser(threshold=0.2).fit(X)

        assert collapser.levels_ == {"rock": ("a", "b")}
        out = collapser.transform(pd.DataFrame({"rock": ["a", "c", "zzz", "b"]}))
        assert out["rock"].tolist() == ["a", OTHER_LEVEL, OTHER_LEVEL, "b"]

    def test_threshold_is_inclusive(self):
        X = pd.DataFrame({"rock": ["a"] * 19 + ["b"]})
        collapser = RareLevelCollapser(threshold=0.05).fit(X)
        assert collapser.levels_["rock"] == ("a", "b")

    def test_columns_are_independent(self):
        X = pd.DataFrame({"x": ["p"] * 9 + ["q"], "y": ["r"] * 5 + ["s"] * 5})
        collapser = RareLevelCollapser(threshold=0.2).fit(X)
        assert collapser.levels_ == {"x": ("p",), "y": ("r", "s")}


class TestPreprocessingPipeline:
    def test_standardizes_fit_data(self, modeling_table):
        fitted = PreprocessingPipeline().fit(modeling_table)
        X = fitted.features(modeling_table)

        assert list(X.columns) == list(fitted.feature_names)
        np.testing.assert_allclose(X.mean(axis=0).to_numpy(), 0.0, atol=1e-9)
        np.testing.assert_allclose(X.std(axis=0, ddof=0).to_numpy(), 1.0, atol=1e-9)

    def test_transform_passes_id_through_first(self, modeling_table):
        fitted = PreprocessingPipeline().fit(modeling_table)
        out = fitted.transform(modeling_table)

        assert out.columns[0] == "volcano_number"
        assert out["volcano_number"].tolist() == modeling_table["volcano_number"].tolist()
        assert "volcano_number" not in fitted.feature_names
        assert "volcano_type" not in out.columns

    def test_one_hot_drops_reference_level(self, modeling_table):
        fitted = PreprocessingPipeline(other_threshold=0.05).fit(modeling_table)

        levels = fitted.retained_levels["tectonic_settings"]
        ref = fitted.reference_levels["tectonic_settings"]
        vocab = fitted.vocabulary["tectonic_settings"]
        assert ref == sorted(levels)[0]
        assert ref not in vocab
        assert set(vocab) | {ref} == set(levels)
        assert f"tectonic_settings_{ref}" not in fitted.feature_names

    def test_rare_levels_collapse_before_encoding(self, modeling_table):
        fitted = PreprocessingPipeline(other_threshold=0.2).fit(modeling_table)

        # Rhyolite (1/20) and Dacite (3/20) are below 20%.
        assert fitted.retained_levels["major_rock_1"] == (
            "Andesite / Basaltic Andesite", "Basalt / Picro-Basalt",
        )
        assert "major_rock_1_other" in fitted.feature_names

    def test_transform_uses_fit_statistics(self, modeling_table):
        a = modeling_table.iloc[:12]
        b = modeling_table.iloc[8:]
        fitted = PreprocessingPipeline().fit(a)

        first = fitted.transform(b)
        second = fitted.transform(b)

        pd.testing.assert_frame_equal(first, second)
        expected = (b["elevation"] - fitted.means["elevation"]) / fitted.scales["elevation"]
        np.testing.assert_allclose(first["elevation"].to_numpy(), expected.to_numpy())
        assert fitted.means["elevation"] == pytest.approx(a["elevation"].mean())

    def test_unseen_level_encodes_like_reference(self, modeling_table):
        fitted = PreprocessingPipeline(other_threshold=0.0).fit(modeling_table)
        rows = modeling_table.iloc[[0, 0]].copy()
        rows.iloc[1, rows.columns.get_loc("major_rock_1")] = "Trachyte"
        rows.iloc[0, rows.columns.get_loc("major_rock_1")] = fitted.reference_levels["major_rock_1"]

        with warnings.catch_warnings():
            warnings.simplefilter("error", UserWarning)
            out = fitted.features(rows)

        rock_cols = [c for c in out.columns if c.startswith("major_rock_1_")]
        np.testing.assert_allclose(out.iloc[0][rock_cols].to_numpy(), out.iloc[1][rock_cols].to_numpy())

    def test_single_level_categorical_is_dropped(self, modeling_table):
        table = modeling_table.assign(major_rock_1="Basalt / Picro-Basalt")
        fitted = PreprocessingPipeline().fit(table)
        out = fitted.transform(table)

        assert not any(c.startswith("major_rock_1") for c in out.columns)
        assert any(c.startswith("tectonic_settings") for c in out.columns)

    def test_constant_numeric_is_dropped(self, modeling_table):
        table = modeling_table.assign(elevation=100.0)
        fitted = PreprocessingPipeline().fit(table)

        assert "elevation" in fitted.dropped_columns
        assert "elevation" not in fitted.transform(table).columns

    def test_fits_are_independent(self, modeling_table):
        pre = PreprocessingPipeline()
        a = pre.fit(modeling_table.iloc[:10])
        b = pre.fit(modeling_table.iloc[10:])

        assert a.means["latitude"] != b.means["latitude"]
        assert a.means["latitude"] == pytest.approx(modeling_table["latitude"].iloc[:10].mean())

    def test_all_constant_predictors_raise(self, modeling_table):
        rows = modeling_table.iloc[[3] * 20]
        with pytest.raises(DegenerateFitError) as exc:
            PreprocessingPipeline().fit(rows)
        assert exc.value.n_rows == 20

    def test_state_cannot_be_reassigned(self, modeling_table):
        fitted = PreprocessingPipeline().fit(modeling_table)
        with pytest.raises(dataclasses.FrozenInstanceError):
            fitted.means = {}

    @pytest.mark.parametrize("threshold", [-0.1, 1.0, 2.0])
    def test_invalid_threshold(self, threshold):
        with pytest.raises(ConfigurationError):
            PreprocessingPipeline(other_threshold=threshold)
