"""Shared fixtures: small synthetic volcano tables."""

import numpy as np
import pandas as pd
import pytest

from volcanoml.labels import CLASSES

TECTONIC = (
    ["Subduction zone / Continental crust"] * 8
    + ["Rift zone / Oceanic crust"] * 6
    + ["Intraplate / Continental crust"] * 5
    + ["Subduction zone / Oceanic crust"]
)
ROCK = (
    ["Andesite / Basaltic Andesite"] * 9
    + ["Basalt / Picro-Basalt"] * 7
    + ["Dacite"] * 3
    + ["Rhyolite"]
)
PRIMARY_TYPES = (
    ["Stratovolcano", "Stratovolcano(es)", "Complex", "Caldera", "Shield"] * 4
)


@pytest.fixture
def modeling_table():
    """20 rows, five per class."""
    rng = np.random.default_rng(0)
    labels = np.repeat(CLASSES, 5)
    return pd.DataFrame({
        "volcano_type": pd.Categorical(labels, categories=CLASSES),
        "volcano_number": np.arange(210010, 210030),
        "latitude": rng.uniform(-60.0, 60.0, 20),
        "longitude": rng.uniform(-180.0, 180.0, 20),
        "elevation": rng.normal(1500.0, 800.0, 20),
        "tectonic_settings": TECTONIC,
        "major_rock_1": ROCK,
    })


@pytest.fixture
def raw_records():
    """Raw rows shaped like volcano.csv, including columns the pipeline ignores."""
    rng = np.random.default_rng(1)
    return pd.DataFrame({
        "volcano_number": np.arange(210010, 210030),
        "volcano_name": [f"Volcano {i}" for i in range(20)],
        "primary_volcano_type": PRIMARY_TYPES,
        "last_eruption_year": ["Unknown", "1990"] * 10,
        "country": ["Japan", "Chile", "Iceland", "Indonesia"] * 5,
        "latitude": rng.uniform(-60.0, 60.0, 20),
        "longitude": rng.uniform(-180.0, 180.0, 20),
        "elevation": rng.normal(1500.0, 800.0, 20).round(),
        "tectonic_settings": TECTONIC,
        "major_rock_1": ROCK,
        "major_rock_2": ["Dacite"] * 20,
    })
