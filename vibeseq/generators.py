"""
Pattern Generators for vibeseq
Synthesizes intensity level sequences from a grid size, a mode and a seed
"""

import logging
import numpy as np
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence, Union

from .oscillator import WaveformType, render_waveform
from .noise import ValueNoise

logger = logging.getLogger(__name__)


class PatternMode(str, Enum):
    MANUAL = "manual"
    SINE = "sine"
    SQUARE = "square"
    TRIANGLE = "triangle"
    SAWTOOTH = "sawtooth"
    RANDOM = "random"
    AUTO = "auto"
    BROWNIAN = "brownian"
    LIFE = "life"
    PERLIN = "perlin"
    AUTOMATON = "automaton"
    GENETIC = "genetic"
    MARKOV = "markov"
    NEURAL = "neural"
    ORGANIC = "organic"


MIN_ROWS = 2
MIN_COLUMNS = 1

# Random walk step tables
BROWNIAN_SMALL_STEP_PROB = 0.7          # |step| = 1, otherwise |step| = 2
LIFE_STEPS = np.array([-2, -1, 0, 1, 2])
LIFE_WEIGHTS = np.array([0.1, 0.2, 0.4, 0.2, 0.1])

# Perlin-style noise
PERLIN_OCTAVES = 4
PERLIN_BASE_FREQUENCY = 4.0   # Lattice cells per column span at octave 0

# Automaton
AUTOMATON_RULE_COUNT = 256

# Genetic search
GENETIC_POPULATION = 10
GENETIC_GENERATIONS = 5
GENETIC_ELITE = 5
GENETIC_MUTATION_RATE = 0.1

# Neural sampler topology
NEURAL_INPUTS = 5
NEURAL_HIDDEN = 16


@dataclass
class GenerationRequest:
    """Parameters of one generator run"""
    row_count: int
    column_count: int
    mode: PatternMode = PatternMode.MANUAL
    seed: Optional[float] = None
    existing: List[int] = field(default_factory=list)

    def clamp(self, value: int) -> int:
        """Clamp a level into [0, row_count - 1]"""
        return max(0, min(self.row_count - 1, int(value)))


@dataclass
class SearchResult:
    """Outcome of a genetic search run"""
    best: List[int]
    best_fitness: float
    initial_population: List[List[int]]
    best_fitness_history: List[float]


# ============ Helpers ============

def _seed_level(seed: Optional[float], row_count: int, rng: np.random.Generator) -> int:
    """Map a seed in [0, 1) to a starting level, or draw one at random"""
    if seed is None:
        return int(rng.integers(0, row_count))
    return max(0, min(row_count - 1, int(np.floor(seed * row_count))))


def fit_to_length(values: Sequence[int], column_count: int, row_count: int) -> List[int]:
    """Truncate or zero-pad values to column_count, clamping each into range"""
    result = [max(0, min(row_count - 1, int(v))) for v in list(values)[:column_count]]
    result.extend([0] * (column_count - len(result)))
    return result


def fitness(levels: Sequence[int], row_count: int) -> float:
    """Smoothness score: sum over adjacent pairs of 1 - |delta| / row_count"""
    arr = np.asarray(levels, dtype=np.float64)
    if arr.size < 2:
        return 0.0
    return float(np.sum(1.0 - np.abs(np.diff(arr)) / row_count))


def automaton_rule(seed: Optional[float]) -> int:
    """Rule index selected by the seed.

    The rule is reported but does not steer the automaton walk.
    """
    if seed is None:
        return 0
    return int(np.floor(seed * AUTOMATON_RULE_COUNT)) % AUTOMATON_RULE_COUNT


# ============ Strategies ============

def _manual(request: GenerationRequest, rng: np.random.Generator) -> List[int]:
    return fit_to_length(request.existing, request.column_count, request.row_count)


def _waveform(waveform: WaveformType) -> Callable[[GenerationRequest, np.random.Generator], List[int]]:
    def generate_waveform(request: GenerationRequest, rng: np.random.Generator) -> List[int]:
        return render_waveform(waveform, request.row_count, request.column_count).tolist()
    generate_waveform.__name__ = f"_{waveform.name.lower()}"
    return generate_waveform


def _random(request: GenerationRequest, rng: np.random.Generator) -> List[int]:
    u = rng.random(request.column_count)
    return np.minimum(np.floor(u * request.row_count), request.row_count - 1).astype(int).tolist()


def _auto(request: GenerationRequest, rng: np.random.Generator) -> List[int]:
    """Sine at a fixed 0.5 rad/step with up to two levels of upward jitter"""
    i = np.arange(request.column_count)
    raw = np.floor(np.sin(i * 0.5) * (request.row_count - 1) + rng.random(request.column_count) * 2)
    return np.clip(raw, 0, request.row_count - 1).astype(int).tolist()


def _brownian(request: GenerationRequest, rng: np.random.Generator) -> List[int]:
    levels = [int(rng.integers(0, request.row_count))]
    for _ in range(request.column_count - 1):
        magnitude = 1 if rng.random() < BROWNIAN_SMALL_STEP_PROB else 2
        sign = 1 if rng.random() < 0.5 else -1
        levels.append(request.clamp(levels[-1] + sign * magnitude))
    return levels


def _life(request: GenerationRequest, rng: np.random.Generator) -> List[int]:
    top = request.row_count - 1
    levels = [int(rng.integers(0, request.row_count))]
    for _ in range(request.column_count - 1):
        prev = levels[-1]
        value = request.clamp(prev + int(rng.choice(LIFE_STEPS, p=LIFE_WEIGHTS)))
        # Never rest on a boundary for two consecutive steps
        if value == prev and value in (0, top):
            value = prev + 1 if prev == 0 else prev - 1
        levels.append(value)
    return levels


def _perlin(request: GenerationRequest, rng: np.random.Generator) -> List[int]:
    noise = ValueNoise(rng, octaves=PERLIN_OCTAVES)
    offset = (request.seed or 0.0) * 64.0
    x = offset + np.arange(request.column_count) / request.column_count * PERLIN_BASE_FREQUENCY
    values = (noise.sample(x) + 1.0) / 2.0
    levels = np.floor(values * (request.row_count - 1))
    return np.clip(levels, 0, request.row_count - 1).astype(int).tolist()


def _automaton(request: GenerationRequest, rng: np.random.Generator) -> List[int]:
    rule = automaton_rule(request.seed)
    logger.debug("Automaton rule %d", rule)

    levels = [_seed_level(request.seed, request.row_count, rng)]
    for _ in range(request.column_count - 1):
        # Left cell pushes up, right cell pushes down
        left, _centre, right = rng.integers(0, 2, size=3)
        levels.append(request.clamp(levels[-1] + int(left) - int(right)))
    return levels


def genetic_search(row_count: int, column_count: int, rng: np.random.Generator,
                   population_size: int = GENETIC_POPULATION,
                   generations: int = GENETIC_GENERATIONS,
                   elite: int = GENETIC_ELITE,
                   mutation_rate: float = GENETIC_MUTATION_RATE) -> SearchResult:
    """
    Evolve a population of sequences towards smooth contours.

    Each generation is sorted by descending fitness; the elite survive and
    the rest are replaced by uniform crossover of two random elite parents
    followed by per-gene mutation to a uniform random level.
    """
    elite = max(1, min(elite, population_size))
    population = rng.integers(0, row_count, size=(population_size, column_count))
    initial = population.tolist()
    history = []

    for _ in range(generations):
        scores = np.array([fitness(ind, row_count) for ind in population])
        order = np.argsort(-scores, kind="stable")
        population = population[order]
        history.append(float(scores[order[0]]))

        parents = population[:elite]
        for slot in range(elite, population_size):
            a, b = parents[rng.integers(0, elite)], parents[rng.integers(0, elite)]
            mask = rng.random(column_count) < 0.5
            child = np.where(mask, a, b)
            mutate = rng.random(column_count) < mutation_rate
            child = np.where(mutate, rng.integers(0, row_count, size=column_count), child)
            population[slot] = child

    scores = np.array([fitness(ind, row_count) for ind in population])
    best_index = int(np.argmax(scores))
    return SearchResult(
        best=population[best_index].tolist(),
        best_fitness=float(scores[best_index]),
        initial_population=initial,
        best_fitness_history=history,
    )


def _genetic(request: GenerationRequest, rng: np.random.Generator) -> List[int]:
    return genetic_search(request.row_count, request.column_count, rng).best


def transition_matrix(row_count: int, rng: np.random.Generator) -> np.ndarray:
    """Row-stochastic matrix built from independent uniform draws"""
    matrix = rng.random((row_count, row_count))
    return matrix / matrix.sum(axis=1, keepdims=True)


def _markov(request: GenerationRequest, rng: np.random.Generator) -> List[int]:
    matrix = transition_matrix(request.row_count, rng)
    cumulative = np.cumsum(matrix, axis=1)

    levels = [_seed_level(request.seed, request.row_count, rng)]
    for _ in range(request.column_count - 1):
        u = rng.random()
        # First state whose cumulative probability reaches u
        state = int(np.searchsorted(cumulative[levels[-1]], u, side="left"))
        levels.append(min(state, request.row_count - 1))
    return levels


def _neural(request: GenerationRequest, rng: np.random.Generator) -> List[int]:
    w_hidden = rng.normal(0.0, 1.0, (NEURAL_HIDDEN, NEURAL_INPUTS))
    b_hidden = rng.normal(0.0, 0.1, NEURAL_HIDDEN)
    w_out = rng.normal(0.0, 1.0, (request.row_count, NEURAL_HIDDEN))
    b_out = rng.normal(0.0, 0.1, request.row_count)

    window = rng.random(NEURAL_INPUTS)
    levels = []
    for _ in range(request.column_count):
        hidden = np.tanh(w_hidden @ window + b_hidden)
        output = w_out @ hidden + b_out
        levels.append(int(np.argmax(output)))
        window = np.append(window[1:], rng.random())
    return levels


def _organic(request: GenerationRequest, rng: np.random.Generator) -> List[int]:
    levels = [int(rng.integers(0, request.row_count))]
    for _ in range(request.column_count - 1):
        levels.append(request.clamp(levels[-1] + int(rng.integers(-1, 2))))
    return levels


GENERATORS: Dict[PatternMode, Callable[[GenerationRequest, np.random.Generator], List[int]]] = {
    PatternMode.MANUAL: _manual,
    PatternMode.SINE: _waveform(WaveformType.SINE),
    PatternMode.SQUARE: _waveform(WaveformType.SQUARE),
    PatternMode.TRIANGLE: _waveform(WaveformType.TRIANGLE),
    PatternMode.SAWTOOTH: _waveform(WaveformType.SAWTOOTH),
    PatternMode.RANDOM: _random,
    PatternMode.AUTO: _auto,
    PatternMode.BROWNIAN: _brownian,
    PatternMode.LIFE: _life,
    PatternMode.PERLIN: _perlin,
    PatternMode.AUTOMATON: _automaton,
    PatternMode.GENETIC: _genetic,
    PatternMode.MARKOV: _markov,
    PatternMode.NEURAL: _neural,
    PatternMode.ORGANIC: _organic,
}


def resolve_mode(mode: Union[PatternMode, str]) -> PatternMode:
    """Map a mode name to a PatternMode; unknown names resolve to MANUAL"""
    if isinstance(mode, PatternMode):
        return mode
    try:
        return PatternMode(str(mode).lower())
    except ValueError:
        logger.warning("Unknown pattern mode %r, keeping existing values", mode)
        return PatternMode.MANUAL


def generate(mode: Union[PatternMode, str], row_count: int, column_count: int,
             seed: Optional[float] = None, existing: Optional[Sequence[int]] = None,
             rng: Optional[np.random.Generator] = None) -> List[int]:
    """
    Generate a sequence of levels

    Args:
        mode: Pattern mode (enum member or its name)
        row_count: Number of levels (raised to 2 if lower)
        column_count: Number of steps (raised to 1 if lower)
        seed: Optional shape parameter in [0, 1)
        existing: Current values, kept by MANUAL and unknown modes
        rng: Random source (default: fresh unseeded generator)

    Returns:
        List of column_count ints, each in [0, row_count - 1]
    """
    request = GenerationRequest(
        row_count=max(MIN_ROWS, int(row_count)),
        column_count=max(MIN_COLUMNS, int(column_count)),
        mode=resolve_mode(mode),
        seed=seed,
        existing=list(existing or []),
    )
    if rng is None:
        rng = np.random.default_rng()

    levels = GENERATORS[request.mode](request, rng)
    return fit_to_length(levels, request.column_count, request.row_count)
