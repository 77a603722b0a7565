# ============================================
# 1) Imports & basic config
# ============================================
import logging
import os

from volcanoml import DATA_URL, load_volcanoes, quick_profile, select_modeling_table, write_report
from volcanoml.pipelines import Config, run_classification

LOG_FMT = "[%(levelname)s] %(asctime)s %(name)s - %(message)s"
logging.basicConfig(level=logging.INFO, format=LOG_FMT)
log = logging.getLogger("run_volcano_analysis")

# Repro
SEED = 42

SOURCE = os.environ.get("VOLCANOML_SOURCE", DATA_URL)
OUT_DIR = os.environ.get("VOLCANOML_OUT", "results")


def _config_from_env() -> Config:
    return Config(
        N_RESAMPLES=int(os.environ.get("VOLCANOML_RESAMPLES", "25")),
        N_TREES=int(os.environ.get("VOLCANOML_TREES", "1000")),
        N_JOBS=int(os.environ.get("VOLCANOML_JOBS", "1")),
        SEED=SEED,
    )


# ============================================
# 2) Load, label, select
# ============================================
def main() -> int:
    cfg = _config_from_env()
    log.info("Config: %s", cfg)

    raw = load_volcanoes(SOURCE)
    table = select_modeling_table(raw)
    prof = quick_profile(table)
    log.info("Modeling table: %d rows x %d cols", prof["rows"], prof["cols"])

    # ============================================
    # 3) Bootstrap evaluation + importance
    # ============================================
    report = run_classification(table, cfg=cfg)
    report.info["source"] = SOURCE

    # ============================================
    # 4) Tables for the reporting layer
    # ============================================
    print(report.metrics.to_string(index=False))
    print()
    print(report.confusion_matrix.to_string())
    print()
    print(report.importance.head(10).to_string(index=False))

    paths = write_report(report, OUT_DIR)
    log.info("Artifacts: %s", paths)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
