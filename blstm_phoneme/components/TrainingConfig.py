from dataclasses import dataclass, asdict
from typing import Dict, Optional


@dataclass
class TrainingConfig:
    """
    Hyperparameters for the framewise phoneme BLSTM.

    Defaults follow Graves & Schmidhuber (2005) without retraining:
    - 26 input features per frame, 93 LSTM cells per direction
    - 61 TIMIT phoneme classes
    - Momentum SGD (lr 1e-5, momentum 0.9) for 20 epochs
    - First 184 utterances held out for validation
    """
    input_size: int = 26
    hidden_size: int = 93
    num_classes: int = 61
    learning_rate: float = 1e-5
    momentum: float = 0.9
    num_epochs: int = 20
    val_size: int = 184
    seed: Optional[int] = None

    def to_dict(self) -> Dict:
        return asdict(self)
