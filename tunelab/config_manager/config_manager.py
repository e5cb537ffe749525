import json
import os
import hashlib
import sys
import logging
import jsonschema
import psutil  # Required for memory awareness
from datetime import datetime
from pathlib import Path
from typing import Dict, Any, Optional, List

from tunelab.learner_factory import LearnerFactory
from tunelab.measures import MeasureFactory
from tunelab.resampling import ResamplingFactory
from tunelab.search_space.presets import get_available_presets, search_space_from_config
from tunelab.task import TaskFactory
from tunelab.tuner import EvaluationBudget, GridSearchTuner, TunerFactory
from tunelab.utils.exceptions import ConfigurationError, TuneLabException
from tunelab.utils import constants


class ConfigurationManager:
    """
    Manages workbench configuration loading, validation, and access.
    Acts as the single source of truth and safety guard for every run.

    Every name in the config (task, learner, measure, resampling, tuner,
    search-space preset) is resolved against its registry and every search
    space is built here, so malformed bounds fail before any tuning starts.
    """

    # Default Resource Limits (Safety Guardrails)
    DEFAULT_MAX_GRID_POINTS = 10000  # Prevent accidental combinatoric explosions

    # Offsets keep component seeds apart while deriving them from one master seed
    SEED_OFFSETS = {
        'split': 0,
        'inner_resampling': 1000,
        'outer_resampling': 2000,
        'tuner': 3000,
        'model': 4000,
    }

    def __init__(self, config_path: str = "config/config.json",
                 schema_path: str = "config/schema.json"):
        """
        Initialize the ConfigurationManager.

        Args:
            config_path (str): Path to the user configuration JSON.
            schema_path (str): Path to the JSON schema definition.
        """
        self.config_path = config_path
        self.schema_path = schema_path
        self.config: Dict[str, Any] = {}
        self.schema: Dict[str, Any] = {}
        self.run_id: Optional[str] = None
        self.logger = logging.getLogger("config_manager")

    def load_and_validate(self) -> Dict[str, Any]:
        """
        Main entry point. Loads config, validates registries/schema/logic/resources
        and propagates seeds.

        Returns:
            Dict[str, Any]: The fully validated and hydrated configuration.

        Raises:
            ConfigurationError: If any validation step fails.
        """
        return self.validate(self._load_json(self.config_path))

    def validate(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Validate an in-memory config dict (same steps as load_and_validate)."""
        self.config = config
        if not self.schema:
            self.schema = self._load_json(self.schema_path)

        # 1. Registries (startup consistency of every name -> factory table)
        self._validate_registries()

        # 2. Structural Validation (Schema)
        self._validate_schema()

        # 3. Logical Validation (Business Rules & Bounds)
        self._validate_logic()

        # 4. Resource Validation (Prevent Exhaustion)
        self._validate_resources()

        # 5. Internal Seed Propagation (Reproducibility)
        self._propagate_seeds()

        return self.config

    def generate_run_id(self) -> str:
        """
        Generate or retrieve a unique run identifier based on timestamp.
        Used for directory naming and metadata.
        """
        if not self.run_id:
            timestamp = datetime.now()
            # Format: YYYYMMDD_HHMMSS
            self.run_id = timestamp.strftime("%Y%m%d_%H%M%S")
        return self.run_id

    def save_artifacts(self, output_dir: str) -> None:
        """
        Save configuration artifacts to the run directory for full reproducibility.

        Saves:
        1. config_used.json: The exact config object in memory.
        2. config_hash.txt: SHA256 hash for versioning.
        3. run_metadata.json: Environment details (Python version, platform, library versions).
        """
        config_dir = Path(output_dir) / constants.CONFIG_DIR
        config_dir.mkdir(parents=True, exist_ok=True)

        # 1. Save Config
        with open(config_dir / constants.CONFIG_USED_FILE, 'w') as f:
            json.dump(self.config, f, indent=2)

        # 2. Calculate and Save Hash
        config_str = json.dumps(self.config, sort_keys=True)
        config_hash = hashlib.sha256(config_str.encode()).hexdigest()

        with open(config_dir / constants.CONFIG_HASH_FILE, 'w') as f:
            f.write(config_hash)

        # 3. Save Metadata (Environment Capture)
        import sklearn
        metadata = {
            'run_id': self.run_id,
            'start_time': datetime.now().isoformat(),
            'python_version': sys.version,
            'platform': sys.platform,
            'sklearn_version': sklearn.__version__,
            'config_hash': config_hash,
            'seeds': self.config.get('_internal_seeds', {}),
            'working_directory': os.getcwd()
        }

        with open(config_dir / constants.RUN_METADATA_FILE, 'w') as f:
            json.dump(metadata, f, indent=2)

    def _load_json(self, path: str) -> Dict[str, Any]:
        """Safely load a JSON file."""
        if not os.path.exists(path):
            raise ConfigurationError(f"File not found: {path}")
        try:
            with open(path, 'r') as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON in {path}: {str(e)}")

    def _validate_registries(self) -> None:
        try:
            TaskFactory.validate_registry()
            LearnerFactory.validate_registry()
            MeasureFactory.validate_registry()
            ResamplingFactory.validate_registry()
            TunerFactory.validate_registry()
        except TuneLabException as e:
            raise ConfigurationError(f"Registry validation failed: {e}") from e

    def _validate_schema(self) -> None:
        """Validate config structure against JSON schema."""
        try:
            jsonschema.validate(instance=self.config, schema=self.schema)
        except jsonschema.ValidationError as e:
            raise ConfigurationError(f"Schema validation failed: {e.message}")

    def _validate_logic(self) -> None:
        """Comprehensive logical validation."""
        # --- Task Section ---
        task = self.config.get('task', {})
        if task.get('file_path'):
            if not task.get('target'):
                raise ConfigurationError("task.target must be specified when task.file_path is used.")
        else:
            self._check_name(TaskFactory.get_available_tasks(), task.get('name'), "task.name")

        # --- Splitting Section ---
        split = self.config.get('splitting', {})
        train_ratio = split.get('train_ratio', 0.8)
        if not (0.0 < train_ratio < 1.0):
            raise ConfigurationError(f"train_ratio must be between 0 and 1 (exclusive), got {train_ratio}")
        if split.get('seed', 42) < 0:
            raise ConfigurationError("Splitting seed must be non-negative.")

        # --- Tuning Section ---
        tuning = self.config.get('tuning', {})
        self._validate_tuning_block(tuning, "tuning")

        # --- Evaluation Section ---
        for name in self.config.get('evaluation', {}).get('measures', []):
            self._check_name(MeasureFactory.get_available_measures(), name, "evaluation.measures")

        # --- Nested Section ---
        nested = self.config.get('nested', {})
        if nested.get('enabled', False):
            self._check_resampling(nested.get('outer_resampling', {'method': 'cv', 'folds': 3}),
                                   "nested.outer_resampling")

        # --- Benchmark Section ---
        benchmark = self.config.get('benchmark', {})
        if benchmark.get('enabled', False):
            for name in benchmark.get('tasks', []):
                self._check_name(TaskFactory.get_available_tasks(), name, "benchmark.tasks")
            learner_ids = []
            for i, entry in enumerate(benchmark.get('learners', [])):
                where = f"benchmark.learners[{i}]"
                self._check_name(LearnerFactory.get_available_learners(), entry.get('learner'), f"{where}.learner")
                if entry.get('search_space') is not None:
                    self._validate_tuning_block({**tuning, **entry}, where)
                learner_ids.append(entry.get('id', entry.get('learner')))
            if len(set(learner_ids)) != len(learner_ids):
                raise ConfigurationError(f"benchmark.learners ids must be unique, got {learner_ids}")
            self._check_resampling(benchmark.get('resampling', {'method': 'cv', 'folds': 3}), "benchmark.resampling")
            for name in benchmark.get('measures', []):
                self._check_name(MeasureFactory.get_available_measures(), name, "benchmark.measures")

        # --- SVM Exploration Section ---
        svm = self.config.get('svm_exploration', {})
        if svm.get('enabled', False):
            features = svm.get('features', [])
            if len(features) != 2:
                raise ConfigurationError(f"svm_exploration.features must name exactly 2 features, got {features}")

        # Execution validation
        execution = self.config.get('execution', {})
        if 'n_jobs' in execution:
            n_jobs = execution['n_jobs']
            if n_jobs == 0 or n_jobs < -1:
                raise ConfigurationError(f"execution.n_jobs must be -1 (all cores) or a positive integer, got {n_jobs}")

    def _validate_tuning_block(self, block: Dict[str, Any], where: str) -> None:
        learner = block.get('learner')
        self._check_name(LearnerFactory.get_available_learners(), learner, f"{where}.learner")
        self._check_name(MeasureFactory.get_available_measures(), block.get('measure', 'classification_error'),
                         f"{where}.measure")

        tuner_cfg = block.get('tuner', {'method': 'random_search'})
        self._check_name(TunerFactory.get_available_tuners(), tuner_cfg.get('method', 'random_search'),
                         f"{where}.tuner.method")
        try:
            TunerFactory.from_config(tuner_cfg)
            EvaluationBudget(block.get('budget', 20))
        except ConfigurationError as e:
            raise ConfigurationError(f"{where}: {e}") from e

        self._check_resampling(block.get('resampling', {'method': 'cv', 'folds': 3}), f"{where}.resampling")

        space_cfg = block.get('search_space', learner)
        if isinstance(space_cfg, str):
            self._check_name(get_available_presets(), space_cfg, f"{where}.search_space")
        try:
            search_space_from_config(space_cfg, learner_name=learner)
        except TuneLabException as e:
            raise ConfigurationError(f"{where}.search_space is invalid: {e}") from e

    def _check_resampling(self, resampling_cfg: Dict[str, Any], where: str) -> None:
        self._check_name(ResamplingFactory.get_available_resamplings(), resampling_cfg.get('method', 'cv'),
                         f"{where}.method")
        try:
            ResamplingFactory.from_config(resampling_cfg)
        except ConfigurationError as e:
            raise ConfigurationError(f"{where}: {e}") from e

    @staticmethod
    def _check_name(available: List[str], name: Optional[str], where: str) -> None:
        if name not in available:
            raise ConfigurationError(f"{where}: unknown name '{name}'. Available: {available}")

    def _validate_resources(self) -> None:
        """
        Validate against system resources.
        Calculates grid sizes and ensures they fit within safe limits to prevent crashes.
        """
        resources = self.config.get('resources', {})
        max_points = resources.get('max_grid_points', self.DEFAULT_MAX_GRID_POINTS)

        # 1. Grid Explosion Check
        blocks = [('tuning', self.config.get('tuning', {}))]
        if self.config.get('benchmark', {}).get('enabled', False):
            tuning = self.config.get('tuning', {})
            blocks += [
                (f"benchmark.learners[{i}]", {**tuning, **entry})
                for i, entry in enumerate(self.config['benchmark'].get('learners', []))
                if entry.get('search_space') is not None
            ]
        for where, block in blocks:
            tuner = TunerFactory.from_config(block.get('tuner', {'method': 'random_search'}))
            if not isinstance(tuner, GridSearchTuner):
                continue
            space = search_space_from_config(block.get('search_space', block.get('learner')))
            grid_points = tuner.grid_size(space)
            if grid_points > max_points:
                raise ConfigurationError(
                    f"Grid Explosion Detected in {where}! Grid size ({grid_points}) exceeds "
                    f"safety limit ({max_points}). Lower the resolution or increase 'resources.max_grid_points'."
                )
            self.logger.info(f"Grid size validated for {where}: {grid_points} points (Limit: {max_points})")

        # 2. Memory Limits Check
        # Get system total memory in MB
        system_ram_mb = int(psutil.virtual_memory().total / (1024 * 1024))
        # Default safety buffer: 80% of system RAM
        safe_ram_limit = int(system_ram_mb * 0.8)

        config_max_ram = resources.get('max_memory_mb', safe_ram_limit)

        if config_max_ram > system_ram_mb:
            self.logger.warning(
                f"Configured max_memory_mb ({config_max_ram}MB) exceeds physical system RAM ({system_ram_mb}MB). "
                "This may lead to instability."
            )

        # Inject the safe limit back into config if not present, for other modules to use
        if 'resources' not in self.config:
            self.config['resources'] = {}
        self.config['resources']['max_memory_mb'] = config_max_ram

    def _propagate_seeds(self) -> None:
        """
        Propagate master seed to internal components to ensure full run reproducibility.
        Uses large, non-overlapping offsets to avoid correlation between components.
        """
        master_seed = self.config.get('splitting', {}).get('seed', 42)

        self.config['_internal_seeds'] = {
            name: master_seed + offset for name, offset in self.SEED_OFFSETS.items()
        }
        self.logger.debug(f"Seeds propagated from master ({master_seed}): {self.config['_internal_seeds']}")
