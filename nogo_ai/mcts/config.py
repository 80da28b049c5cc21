"""
Configuration for Monte Carlo Tree Search (MCTS).

This module defines the configuration parameters for the MCTS algorithm,
including the exploration constant, the simulation budget, the time
management schedule and the early-stop and stability heuristics.

Agents are configured from a flat ``key=value`` argument string such as
``"name=mcts role=black search=MCTS C=1.2 fix_sim=500"``; ``MCTSConfig.from_meta``
translates the parsed keys into a configuration.
"""
from dataclasses import dataclass, fields
from typing import Any, Callable, Dict, Optional, Tuple

from nogo_ai.mcts.exceptions import ConfigurationError


def parse_args_string(args: str) -> Dict[str, str]:
    """
    Parse a whitespace separated ``key=value`` string.

    A token without ``=`` maps to itself, so bare flags such as ``early`` are
    present with a non-empty value. Later tokens override earlier ones.

    Args:
        args: Argument string

    Returns:
        Dictionary of raw string values
    """
    meta = {}
    for token in args.split():
        key = token.split("=", 1)[0]
        value = token.split("=", 1)[-1]
        meta[key] = value
    return meta


def _to_int(value: str) -> int:
    return int(float(value))


def _to_flag(value: str) -> bool:
    return True


# Argument key -> (field name, converter)
ARG_KEYS: Dict[str, Tuple[str, Callable[[str], Any]]] = {
    "C": ("exploration_weight", float),
    "fix_sim": ("iterations", _to_int),
    "basic_f": ("basic_const", _to_int),
    "enhanced_f": ("enhanced_peak", _to_int),
    "early": ("early_stop", _to_flag),
    "early_c": ("early_coefficient", float),
    "unst": ("unstable_retries", _to_int),
    "t_bonus": ("time_bonus", float),
    "p_leaf": ("leaf_parallel", _to_int),
    "seed": ("seed", _to_int),
    "init_time": ("initial_time", float),
}


@dataclass
class MCTSConfig:
    """
    Configuration parameters for Monte Carlo Tree Search.

    This class defines all tunable parameters for the MCTS algorithm,
    with validation and sensible defaults.
    """
    # Search parameters
    iterations: int = 100
    """Number of simulations per move when time management is off"""

    exploration_weight: float = 1.44
    """UCB exploration constant"""

    # Time management
    use_time_management: bool = False
    """Spend a share of the remaining clock per move instead of a fixed count"""

    basic_const: int = 30
    """Divisor of the remaining time in the basic schedule"""

    enhanced_peak: int = 0
    """Peak parameter of the enhanced schedule (0 = basic schedule only)"""

    time_bonus: float = 1.0
    """Multiplier applied to every thinking time"""

    initial_time: float = 300.0
    """Clock available for a whole game, in seconds"""

    # Early stop and stability
    early_stop: bool = False
    """Stop searching once the most visited move has a decisive lead"""

    early_threshold: int = 5000
    """Fixed visit lead required for an early stop"""

    early_coefficient: float = 0.0
    """If positive, scale the required lead with the remaining thinking time"""

    unstable_retries: int = 0
    """Extra half-budget bursts spent while visit count and win rate disagree"""

    # Parallelization
    leaf_parallel: int = 0
    """Number of concurrent rollouts per expansion (0 = sequential)"""

    seed: Optional[int] = None
    """Seed for the random number generators (None = nondeterministic)"""

    # Scoring constants
    win_weight: int = 2
    """Reward of a rollout won by the searching side"""

    terminal_scale: float = 200.0
    """Scale applied to the outcome of a proven terminal child"""

    unexplored_score: float = 999.0
    """Score of an unexpanded move at a node where the searching side moves"""

    def __post_init__(self):
        """Validate configuration parameters."""
        if self.iterations <= 0:
            raise ConfigurationError("iterations must be positive")

        if self.exploration_weight < 0:
            raise ConfigurationError("exploration_weight must not be negative")

        if self.basic_const <= 0:
            raise ConfigurationError("basic_const must be positive")

        if self.enhanced_peak < 0:
            raise ConfigurationError("enhanced_peak must not be negative")

        if self.time_bonus <= 0:
            raise ConfigurationError("time_bonus must be positive")

        if self.initial_time <= 0:
            raise ConfigurationError("initial_time must be positive")

        if self.early_threshold <= 0:
            raise ConfigurationError("early_threshold must be positive")

        if self.early_coefficient < 0:
            raise ConfigurationError("early_coefficient must not be negative")

        if self.unstable_retries < 0:
            raise ConfigurationError("unstable_retries must not be negative")

        if self.leaf_parallel < 0:
            raise ConfigurationError("leaf_parallel must not be negative")

        if self.win_weight <= 0:
            raise ConfigurationError("win_weight must be positive")

        # A time-scaled margin is meaningless without early stop
        if self.early_coefficient > 0:
            self.early_stop = True

    @property
    def parallel_width(self) -> int:
        """Number of rollouts completed per expansion."""
        return max(1, self.leaf_parallel)

    @classmethod
    def from_meta(cls, meta: Dict[str, str]) -> 'MCTSConfig':
        """
        Create a configuration from parsed agent arguments.

        Unknown keys are ignored and missing keys keep their defaults.
        Either ``basic_f`` or ``enhanced_f`` switches on time management.

        Args:
            meta: Dictionary produced by ``parse_args_string``

        Returns:
            MCTSConfig object

        Raises:
            ConfigurationError: if a value cannot be converted
        """
        params: Dict[str, Any] = {}
        for key, (name, convert) in ARG_KEYS.items():
            if key not in meta:
                continue
            try:
                params[name] = convert(meta[key])
            except (TypeError, ValueError):
                raise ConfigurationError(f"invalid value for {key}: {meta[key]}") from None

        if "basic_f" in meta or "enhanced_f" in meta:
            params["use_time_management"] = True

        return cls(**params)

    @classmethod
    def from_args(cls, args: str) -> 'MCTSConfig':
        """Create a configuration directly from an argument string."""
        return cls.from_meta(parse_args_string(args))

    @classmethod
    def from_dict(cls, config_dict: dict) -> 'MCTSConfig':
        """
        Create a configuration from a dictionary.

        Args:
            config_dict: Dictionary of configuration parameters

        Returns:
            MCTSConfig object
        """
        # Filter out any keys that aren't valid parameters
        valid_params = {k: v for k, v in config_dict.items()
                        if k in cls.__dataclass_fields__}
        return cls(**valid_params)

    def to_dict(self) -> dict:
        """
        Convert the configuration to a dictionary.

        Returns:
            Dictionary of configuration parameters
        """
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def __str__(self) -> str:
        params = [f"{name}={value}" for name, value in self.to_dict().items()]
        return f"MCTSConfig({', '.join(params)})"
