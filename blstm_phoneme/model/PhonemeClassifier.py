import torch
import torch.nn as nn
import torch.nn.functional as F
import logging
from contextlib import contextmanager
from typing import Dict
from blstm_phoneme.model.BLSTM import BLSTM

logger = logging.getLogger(__name__)


class BLSTMPhonemeClassifier(nn.Module):
    """
    Framewise phoneme classifier (Graves & Schmidhuber, 2005):

    - Input: one utterance of MFCC frames (26 features per frame)
    - BLSTM: forward and backward LSTM, 93 cells each, concatenated (186)
    - Output layer: Linear(186, 61) applied per frame
    - Softmax over the 61 TIMIT phoneme classes per frame
    """

    def __init__(
        self,
        input_size: int,
        hidden_size: int,
        num_classes: int
    ):
        super().__init__()

        self.input_size = input_size
        self.hidden_size = hidden_size
        self.num_classes = num_classes

        self.blstm = BLSTM(input_size=input_size, hidden_size=hidden_size)
        self.output = nn.Linear(self.blstm.output_size, num_classes)

        self._initialize_output_layer()

        self.architecture_info = {
            'input_size': input_size,
            'hidden_size': hidden_size,
            'blstm_output_size': self.blstm.output_size,
            'num_classes': num_classes,
            'total_params': self._count_parameters()
        }

    def _initialize_output_layer(self):
        """Initialize output layer with Xavier initialization."""
        nn.init.xavier_uniform_(self.output.weight)
        nn.init.zeros_(self.output.bias)

    def _count_parameters(self) -> int:
        """Count total trainable parameters."""
        return sum(p.numel() for p in self.parameters() if p.requires_grad)

    def forward(self, x: torch.Tensor) -> Dict[str, torch.Tensor]:
        """
        Forward pass through the full architecture.

        Args:
            x: Frames [seq_len, input_size] or [batch_size, seq_len, input_size]

        Returns:
            Dictionary with per-frame 'logits', softmax 'probabilities'
            and the raw 'blstm_output'
        """
        blstm_output = self.blstm(x)  # (..., T, 2*hidden_size)
        logits = self.output(blstm_output)  # (..., T, num_classes)
        probabilities = F.softmax(logits, dim=-1)

        return {
            'logits': logits,
            'probabilities': probabilities,
            'blstm_output': blstm_output
        }

    @contextmanager
    def fresh_state(self):
        with self.blstm.fresh_state():
            yield self

    def reset(self):
        self.blstm.reset()

    def predict(self, x: torch.Tensor) -> torch.Tensor:
        """
        Predicted class distribution for every frame of one utterance.

        Recurrent state is reset after the call.
        """
        with torch.no_grad(), self.fresh_state():
            return self.forward(x)['probabilities']

    def get_model_info(self) -> Dict:
        """Return model architecture information."""
        return self.architecture_info


def create_model(
    input_size: int = 26,
    hidden_size: int = 93,
    num_classes: int = 61
) -> BLSTMPhonemeClassifier:
    """
    Factory function to create the framewise phoneme classifier.

    Args:
        input_size: Features per frame
        hidden_size: LSTM cells per direction
        num_classes: Number of phoneme classes

    Returns:
        Configured classifier
    """
    model = BLSTMPhonemeClassifier(
        input_size=input_size,
        hidden_size=hidden_size,
        num_classes=num_classes
    )

    logger.info("BLSTM phoneme classifier created")
    logger.info(f"  Architecture: {input_size} -> 2 x LSTM({hidden_size}) -> "
                f"{model.blstm.output_size} -> {num_classes} (softmax)")
    logger.info(f"  Trainable parameters: {model.architecture_info['total_params']:,}")

    return model
