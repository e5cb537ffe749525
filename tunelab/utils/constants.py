# tunelab/utils/constants.py

# --- Top-Level Result Directories ---
# Sequentially numbered so the run folder sorts in workflow order

CONFIG_DIR = "01_RunConfiguration"          # Run config, metadata, seeds
TASK_SPLIT_DIR = "02_TaskSplit"             # Train/test row ids, class balance
AUTO_TUNING_DIR = "03_AutoTuning"           # Tuning archive, best config, holdout scores
NESTED_RESAMPLING_DIR = "04_NestedResampling"  # Outer scores, inner tuning results
BENCHMARK_DIR = "05_Benchmark"              # Benchmark cells, aggregate, ranks
PLOTS_DIR = "06_Plots"                      # Diagnostic figures

TOP_LEVEL_RESULT_DIRS = [
    CONFIG_DIR,
    TASK_SPLIT_DIR,
    AUTO_TUNING_DIR,
    NESTED_RESAMPLING_DIR,
    BENCHMARK_DIR,
    PLOTS_DIR,
]

# --- File Names ---
CONFIG_USED_FILE = "config_used.json"
CONFIG_HASH_FILE = "config_hash.txt"
RUN_METADATA_FILE = "run_metadata.json"

TRAIN_IDS_FILE = "train_ids.parquet"
TEST_IDS_FILE = "test_ids.parquet"
CLASS_BALANCE_FILE = "class_balance.parquet"

TUNING_ARCHIVE_FILE = "tuning_archive.parquet"
BEST_CONFIGURATION_FILE = "best_configuration.json"
HOLDOUT_SCORES_FILE = "holdout_scores.json"
FINAL_MODEL_FILE = "final_model.pkl"

OUTER_SCORES_FILE = "outer_scores.parquet"
INNER_TUNING_RESULTS_FILE = "inner_tuning_results.parquet"
NESTED_AGGREGATE_FILE = "aggregate.json"

BENCHMARK_SCORES_FILE = "benchmark_scores.parquet"
BENCHMARK_AGGREGATE_FILE = "benchmark_aggregate.parquet"
BENCHMARK_CELLS_FILE = "benchmark_cells.json"
BENCHMARK_RANKS_FILE = "benchmark_ranks.parquet"

# --- Column Names ---
ROW_ID = "row_id"
