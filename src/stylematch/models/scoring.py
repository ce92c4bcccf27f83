"""
Scoring Interface for StyleMatch
Learned scorers with deterministic fallbacks, and the final score blend
"""

import logging
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from pathlib import Path
from typing import Dict, Optional, Union

import numpy as np
import torch
import torch.nn as nn

from stylematch.exceptions import ModelUnavailable
from stylematch.models.data_structures import clamp

logger = logging.getLogger(__name__)

# Blend of the component scores into the final relevance
BLEND_WEIGHTS = {
    'base': 0.5,
    'seasonal': 0.2,
    'trend': 0.2,
    'compatibility': 0.1,
}


def blend_scores(base: float, seasonal: float, trend: float, compatibility: float = 1.0) -> float:
    """
    Blend component scores into a final relevance score

    Returns:
        0.5 base + 0.2 seasonal + 0.2 trend + 0.1 compatibility, clamped to [0, 1]
    """
    return clamp(
        BLEND_WEIGHTS['base'] * base +
        BLEND_WEIGHTS['seasonal'] * seasonal +
        BLEND_WEIGHTS['trend'] * trend +
        BLEND_WEIGHTS['compatibility'] * compatibility
    )


class Scorer(ABC):
    """Maps a feature vector to a score in [0, 1]"""

    @abstractmethod
    def score(self, vector: np.ndarray) -> float:
        pass

    def score_batch(self, matrix: np.ndarray) -> np.ndarray:
        """Score each row of a 2-D feature matrix"""
        matrix = np.atleast_2d(matrix)
        return np.array([self.score(row) for row in matrix], dtype=np.float64)


class HeuristicScorer(Scorer):
    """Weighted sum over the style, color, price and rating signals"""

    # feature index -> weight
    DEFAULT_WEIGHTS = {
        0: 0.35,   # style match
        1: 0.25,   # color match
        2: 0.25,   # price fit
        11: 0.15,  # normalized rating
    }

    def __init__(self, weights: Optional[Dict[int, float]] = None):
        self.weights = dict(weights or self.DEFAULT_WEIGHTS)
        self._indices = np.array(sorted(self.weights), dtype=np.intp)
        self._values = np.array([self.weights[i] for i in sorted(self.weights)], dtype=np.float64)

    def score(self, vector: np.ndarray) -> float:
        return float(self.score_batch(np.asarray(vector).reshape(1, -1))[0])

    def score_batch(self, matrix: np.ndarray) -> np.ndarray:
        matrix = np.nan_to_num(np.atleast_2d(np.asarray(matrix, dtype=np.float64)), nan=0.0)
        scores = matrix[:, self._indices] @ self._values
        return np.clip(scores, 0.0, 1.0)


class CompatibilityFallbackScorer(Scorer):
    """
    Rule-based outfit score over the 20-dimension outfit vector

    Starts at 0.5 and adds 0.2 for color harmony or a neutral base, 0.2
    for a cohesive style set and 0.1 when the outfit suits the season.
    """

    def score(self, vector: np.ndarray) -> float:
        vector = np.nan_to_num(np.asarray(vector, dtype=np.float64), nan=0.0)
        score = 0.5
        if vector[0] >= 1.0 or vector[1] >= 1.0:
            score += 0.2
        if vector[6] >= 1.0:
            score += 0.2
        if vector[8] >= 0.5:
            score += 0.1
        return clamp(score)


def _get_device(device: str) -> str:
    """Determine the best device to use"""
    if device == "auto":
        if torch.backends.mps.is_available():
            return "mps"
        elif torch.cuda.is_available():
            return "cuda"
        else:
            return "cpu"
    return device


class TorchModelScorer(Scorer):
    """Exposes a torch module with a single sigmoid output as a Scorer"""

    def __init__(self, model: nn.Module, device: str = "cpu"):
        """
        Initialize torch scorer

        Args:
            model: Module mapping (batch, features) to (batch, 1) scores
            device: Device to run on ("auto", "cpu", "mps", "cuda")
        """
        self.device = _get_device(device)
        self.model = model.to(self.device)
        # Set to eval mode for inference
        self.model.eval()

    def score(self, vector: np.ndarray) -> float:
        return float(self.score_batch(np.asarray(vector).reshape(1, -1))[0])

    def score_batch(self, matrix: np.ndarray) -> np.ndarray:
        inputs = torch.as_tensor(np.atleast_2d(matrix), dtype=torch.float32, device=self.device)
        with torch.no_grad():
            outputs = self.model(inputs)
        return outputs.reshape(-1).cpu().numpy().astype(np.float64)


def load_torch_model(path: Union[str, Path], device: str = "cpu") -> TorchModelScorer:
    """
    Load a TorchScript model trained elsewhere

    Raises:
        ModelUnavailable: if the file is missing or cannot be deserialized
    """
    path = Path(path)
    if not path.exists():
        raise ModelUnavailable(f"Model file not found: {path}")
    try:
        module = torch.jit.load(str(path), map_location=_get_device(device))
    except (RuntimeError, ValueError) as e:
        raise ModelUnavailable(f"Could not load model {path}: {e}") from e
    logger.info(f"Loaded TorchScript model from {path}")
    return TorchModelScorer(module, device=device)


def build_relevance_network(input_dim: int = 50) -> nn.Sequential:
    """Layer layout of the user/product relevance model"""
    return nn.Sequential(
        nn.Linear(input_dim, 128),
        nn.ReLU(),
        nn.Dropout(0.3),
        nn.Linear(128, 64),
        nn.ReLU(),
        nn.BatchNorm1d(64),
        nn.Linear(64, 32),
        nn.ReLU(),
        nn.Dropout(0.2),
        nn.Linear(32, 1),
        nn.Sigmoid(),
    )


def build_compatibility_network(input_dim: int = 20) -> nn.Sequential:
    """Layer layout of the outfit compatibility model"""
    return nn.Sequential(
        nn.Linear(input_dim, 64),
        nn.ReLU(),
        nn.Dropout(0.3),
        nn.Linear(64, 32),
        nn.ReLU(),
        nn.Linear(32, 16),
        nn.ReLU(),
        nn.Linear(16, 1),
        nn.Sigmoid(),
    )


class LearnedScorer(Scorer):
    """
    Pluggable learned model guarded by a timeout and a fallback scorer

    The model runs on a dedicated worker thread. When it is missing, times
    out, raises or returns non-finite values, the fallback scores the
    affected rows instead. score and score_batch never raise.
    """

    def __init__(self, model: Optional[Scorer], fallback: Scorer, timeout: float = 0.25):
        """
        Initialize learned scorer

        Args:
            model: Model backend (e.g. TorchModelScorer), or None to always fall back
            fallback: Deterministic scorer used whenever the model cannot answer
            timeout: Seconds to wait for the model per call
        """
        self.model = model
        self.fallback = fallback
        self.timeout = timeout
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="stylematch-model") if model else None

    @property
    def available(self) -> bool:
        return self.model is not None

    def score(self, vector: np.ndarray) -> float:
        return float(self.score_batch(np.asarray(vector).reshape(1, -1))[0])

    def score_batch(self, matrix: np.ndarray) -> np.ndarray:
        matrix = np.atleast_2d(np.asarray(matrix, dtype=np.float64))
        if matrix.shape[0] == 0:
            return np.zeros(0, dtype=np.float64)
        if self.model is None:
            return self.fallback.score_batch(matrix)

        future = self._executor.submit(self.model.score_batch, matrix)
        try:
            outputs = np.asarray(future.result(timeout=self.timeout), dtype=np.float64).reshape(-1)
        except FutureTimeout:
            future.cancel()
            self._log_unavailable(f"model did not answer within {self.timeout:.3f}s")
            return self.fallback.score_batch(matrix)
        except Exception as e:
            self._log_unavailable(f"model raised {e.__class__.__name__}: {e}")
            return self.fallback.score_batch(matrix)

        if outputs.shape[0] != matrix.shape[0]:
            self._log_unavailable(f"model returned {outputs.shape[0]} scores for {matrix.shape[0]} rows")
            return self.fallback.score_batch(matrix)

        bad = ~np.isfinite(outputs)
        if bad.any():
            self._log_unavailable(f"model returned {int(bad.sum())} non-finite scores")
            outputs[bad] = self.fallback.score_batch(matrix[bad])

        return np.clip(outputs, 0.0, 1.0)

    def _log_unavailable(self, reason: str):
        error = ModelUnavailable(reason)
        logger.warning(f"{error.__class__.__name__}: {error}; using fallback scorer")

    def close(self):
        """Release the model worker thread"""
        if self._executor is not None:
            self._executor.shutdown(wait=False)
