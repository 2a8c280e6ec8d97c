import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Union

from .config import CHECKPOINTS_DIR, MODELS_DIR

logger = logging.getLogger(__name__)


class CheckpointStore:
    """JSON checkpoints of engine state plus model files with metadata."""

    def __init__(self, checkpoint_dir: Union[str, Path] = CHECKPOINTS_DIR,
                 models_dir: Union[str, Path] = MODELS_DIR):
        self.checkpoint_dir = Path(checkpoint_dir)
        self.models_dir = Path(models_dir)
        self.checkpoint_dir.mkdir(parents=True, exist_ok=True)
        self.models_dir.mkdir(parents=True, exist_ok=True)

    def save_checkpoint(self, state: Dict, name: Optional[str] = None) -> Path:
        """Write a state snapshot; returns the file path as the handle."""
        name = name or f"checkpoint_{datetime.now().strftime('%Y%m%d_%H%M%S_%f')}"
        path = self.checkpoint_dir / f"{name}.json"
        payload = {
            "saved_at": datetime.now().isoformat(),
            "state": state
        }
        try:
            with open(path, 'w') as f:
                json.dump(payload, f, indent=2)
        except (OSError, TypeError) as e:
            logger.error(f"Error saving checkpoint {path}: {e}")
            raise
        logger.info(f"Checkpoint saved to {path}")
        return path

    def load_checkpoint(self, handle: Union[str, Path]) -> Dict:
        path = Path(handle)
        if not path.is_absolute() and not path.exists():
            path = self.checkpoint_dir / path
        if path.suffix != ".json":
            path = path.with_suffix(".json")
        with open(path, 'r') as f:
            payload = json.load(f)
        logger.info(f"Checkpoint loaded from {path} (saved {payload.get('saved_at')})")
        return payload["state"]

    def list_checkpoints(self) -> List[Path]:
        return sorted(self.checkpoint_dir.glob("*.json"))

    def latest_checkpoint(self) -> Optional[Path]:
        checkpoints = self.list_checkpoints()
        return max(checkpoints, key=lambda p: p.stat().st_mtime) if checkpoints else None

    def save_model(self, model, metadata: Optional[Dict] = None, model_id: Optional[str] = None) -> Path:
        """Save a model exposing ``save(path)`` next to a metadata JSON file."""
        model_id = model_id or f"model_{datetime.now().strftime('%Y%m%d_%H%M%S')}"
        model_path = self.models_dir / f"{model_id}.keras"
        model.save(model_path)
        with open(self.models_dir / f"{model_id}.json", 'w') as f:
            json.dump({"model_id": model_id, "saved_at": datetime.now().isoformat(),
                       "metadata": metadata or {}}, f, indent=2)
        logger.info(f"Model {model_id} saved to {model_path}")
        return model_path

    def load_model_metadata(self, model_id: str) -> Dict:
        with open(self.models_dir / f"{model_id}.json", 'r') as f:
            return json.load(f)

    def load_model(self, model_id: str):
        """Load a saved model as a NeuralModel (imports TensorFlow on demand)."""
        from .neural import NeuralModel
        model_path = self.models_dir / f"{model_id}.keras"
        if not model_path.exists():
            raise FileNotFoundError(f"No saved model named {model_id}")
        return NeuralModel.load(model_path)
