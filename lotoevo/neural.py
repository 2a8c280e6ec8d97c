import tensorflow as tf
from tensorflow.keras.models import Model, load_model
from tensorflow.keras.layers import Input, Dense, Dropout, BatchNormalization
from tensorflow.keras.callbacks import EarlyStopping, ReduceLROnPlateau
from tensorflow.keras.optimizers import Adam
import numpy as np
import logging
import pandas as pd
from pathlib import Path
from typing import Dict, Optional, Tuple, Union
from .config import NEURAL_MODEL_PARAMS, MODELS_DIR, MAX_NUMBER
from .data import LotteryDataManager
from .errors import EngineConfigError

logger = logging.getLogger(__name__)

DEVICE_PREFERENCES = ("auto", "cpu", "gpu")
_resolved_devices: Dict[str, str] = {}


def select_device(preference: str = NEURAL_MODEL_PARAMS["device"]) -> str:
    """
    Resolve the TensorFlow device the engine model runs on.

    "auto" takes the first visible GPU and falls back to the CPU, "gpu" fails
    without one and "cpu" skips GPU setup entirely. Memory growth is enabled
    on the first resolution in the process, before any model is built.
    """
    if preference not in DEVICE_PREFERENCES:
        raise EngineConfigError(f"Unknown device preference {preference!r}; expected one of {DEVICE_PREFERENCES}")
    if preference in _resolved_devices:
        return _resolved_devices[preference]

    device = "/CPU:0"
    if preference != "cpu":
        gpus = tf.config.list_physical_devices("GPU")
        if gpus:
            for gpu in gpus:
                try:
                    tf.config.experimental.set_memory_growth(gpu, True)
                except RuntimeError as e:
                    # Only settable before the GPU is initialized
                    logger.debug(f"Memory growth not set for {gpu.name}: {e}")
            device = "/GPU:0"
        elif preference == "gpu":
            raise EngineConfigError("GPU requested but TensorFlow sees none.")

    logger.info(f"Engine model device: {device} (preference: {preference})")
    _resolved_devices[preference] = device
    return device


class NeuralModel:
    """Dense network mapping a round's input vector to per-number probabilities."""

    def __init__(self, params: Optional[Dict] = None, model_path: Union[str, Path, None] = None):
        self.params = dict(NEURAL_MODEL_PARAMS, **(params or {}))
        self.device = select_device(self.params["device"])
        self.model_path = Path(model_path) if model_path else MODELS_DIR / "engine_model.keras"
        self.model = None
        self.models_loaded = False

    def build_model(self):
        """Build or load the network."""
        input_dim = self.params['input_dim']
        if self.model_path.exists():
            try:
                logger.info(f"Loading existing model from {self.model_path}...")
                with tf.device(self.device):
                    self.model = load_model(self.model_path)
                if self.model.input_shape[-1] != input_dim:
                    logger.warning(f"Model input shape mismatch: {self.model.input_shape[-1]} vs {input_dim}. Rebuilding...")
                    raise ValueError("Shape mismatch")
                self.models_loaded = True
                return self
            except Exception as e:
                logger.warning(f"Failed to load model: {e}. Rebuilding...")

        logger.info("Building new model...")
        with tf.device(self.device):
            self.model = self._create_model(input_dim, MAX_NUMBER)
        self.models_loaded = False
        return self

    def _create_model(self, input_dim: int, output_size: int) -> Model:
        hidden = self.params['hidden_units']
        dropout_rate = self.params['dropout']

        inp = Input(shape=(input_dim,))
        x = Dense(hidden, activation='relu')(inp)
        x = BatchNormalization()(x)
        x = Dropout(dropout_rate)(x)
        x = Dense(hidden // 2, activation='relu')(x)
        x = Dropout(dropout_rate)(x)

        # Output probability for each number
        out = Dense(output_size, activation='sigmoid', name='number_output')(x)

        model = Model(inputs=inp, outputs=out, name='engine_model')
        model.compile(optimizer=Adam(learning_rate=self.params['learning_rate']),
                      loss='binary_crossentropy',
                      metrics=['accuracy'])
        return model

    def train(self, dataset: Union[pd.DataFrame, Tuple[np.ndarray, np.ndarray]],
              config: Optional[Dict] = None) -> "NeuralModel":
        """
        Supervised training.

        Args:
            dataset: Draw history frame (see LotteryDataManager) or an (X, y) pair.
            config: Overrides for epochs / batch_size / validation_split.
        """
        if self.model is None:
            self.build_model()
        config = config or {}

        if isinstance(dataset, pd.DataFrame):
            logger.info("Preparing training data...")
            X, y = LotteryDataManager().build_training_set(dataset)
        else:
            X, y = dataset
        if len(X) < 2:
            raise ValueError("Not enough data to train NeuralModel.")

        logger.info(f"Training model on {len(X)} samples ({self.device})...")
        with tf.device(self.device):
            self.model.fit(
                X, y,
                epochs=config.get('epochs', self.params['epochs']),
                batch_size=config.get('batch_size', self.params['batch_size']),
                validation_split=config.get('validation_split', 0.2),
                callbacks=[
                    EarlyStopping(patience=10, restore_best_weights=True),
                    ReduceLROnPlateau(factor=0.5, patience=5)
                ],
                verbose=config.get('verbose', 0)
            )
        self.models_loaded = True
        return self

    def predict(self, input_vector) -> np.ndarray:
        """Probability vector (index i -> number i+1) for one input vector."""
        if self.model is None:
            raise ValueError("Model not built. Call build_model() and optionally train().")
        x = np.asarray(input_vector, dtype=np.float32).reshape(1, -1)
        with tf.device(self.device):
            probs = self.model(x, training=False)
        return np.asarray(probs)[0].astype(np.float64)

    def save(self, path: Union[str, Path, None] = None) -> Path:
        target = Path(path) if path else self.model_path
        self.model.save(target)
        logger.info(f"Model saved to {target}")
        return target

    @classmethod
    def load(cls, path: Union[str, Path], params: Optional[Dict] = None) -> "NeuralModel":
        nm = cls(params=params, model_path=path)
        with tf.device(nm.device):
            nm.model = load_model(Path(path))
        nm.models_loaded = True
        return nm
