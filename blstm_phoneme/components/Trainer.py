import torch
import torch.nn as nn
import torch.optim as optim
import numpy as np
from typing import Dict, List, Tuple, Optional
import logging
from tqdm import tqdm
import json
from pathlib import Path
from blstm_phoneme.components.FramewiseCrossEntropyLoss import SummedCrossEntropyLoss
from blstm_phoneme.components.Evaluation import evaluate_accuracy
from blstm_phoneme.utils.training_plotter import plot_training_metrics

Utterance = Tuple[torch.Tensor, torch.Tensor]


class PhonemeTrainer:
    """
    Training pipeline for the framewise phoneme BLSTM.

    Default training configuration:
    - One utterance per update (online gradient descent)
    - SGD with momentum 0.9, learning rate 1e-5
    - Summed cross-entropy loss
    - Fixed 20 epochs, no early stopping or LR schedule

    `seed` only drives the per-epoch shuffling of training and validation
    order. Weight initialization happens when the model is built, so seed
    torch (torch.manual_seed) before create_model for reproducible weights.
    """

    def __init__(
        self,
        model: nn.Module,
        train_data: List[Utterance],
        val_data: List[Utterance],
        device: str = 'cuda' if torch.cuda.is_available() else 'cpu',
        learning_rate: float = 1e-5,
        momentum: float = 0.9,
        num_epochs: int = 20,
        seed: Optional[int] = None,
        save_dir: Optional[str] = None,
        log_dir: Optional[str] = None
    ):
        if not val_data:
            raise ValueError("Validation set is empty")

        self.model = model.to(device)
        self.train_data = list(train_data)
        self.val_data = list(val_data)
        self.device = device
        self.num_epochs = num_epochs

        # Create directories
        for directory in (save_dir, log_dir):
            if directory:
                Path(directory).mkdir(parents=True, exist_ok=True)
        self.save_dir = save_dir
        self.log_dir = log_dir

        # All three layers share one optimizer so every step updates all of them
        self.optimizer = optim.SGD(
            model.parameters(),
            lr=learning_rate,
            momentum=momentum
        )
        self.criterion = SummedCrossEntropyLoss(reduction='sum')

        # Unseeded by default: shuffling order then differs from run to run
        self.rng = np.random.RandomState(seed)

        self._setup_logging()

        # Training tracking
        self.train_losses = []
        self.val_accuracies = []

    def _setup_logging(self):
        """Setup training logger."""
        self.logger = logging.getLogger(__name__)
        self._file_handler = None

    def _attach_log_file(self):
        """Mirror this run's records to <log_dir>/training.log."""
        if not self.log_dir:
            return
        self._file_handler = logging.FileHandler(str(Path(self.log_dir) / 'training.log'))
        self._file_handler.setFormatter(logging.Formatter('%(asctime)s - %(levelname)s - %(message)s'))
        self.logger.addHandler(self._file_handler)

    def _detach_log_file(self):
        if self._file_handler is None:
            return
        self.logger.removeHandler(self._file_handler)
        self._file_handler.close()
        self._file_handler = None

    def loss(self, x: torch.Tensor, y: torch.Tensor) -> torch.Tensor:
        """
        Summed cross-entropy of one utterance.

        The BLSTM state is reset once the loss is computed, whether or not the
        forward pass succeeded.
        """
        if y.size(-1) != self.model.num_classes:
            raise ValueError(
                f"Expected {self.model.num_classes}-dim one-hot labels, got {y.size(-1)}"
            )

        with self.model.fresh_state():
            outputs = self.model(x.to(self.device))
            return self.criterion(outputs['logits'], y.to(self.device))

    def _shuffle(self, data: List[Utterance]) -> List[Utterance]:
        order = self.rng.permutation(len(data))
        return [data[i] for i in order]

    def train_epoch(self) -> float:
        """Train for one epoch, one optimizer step per utterance."""
        self.model.train()
        self.train_data = self._shuffle(self.train_data)

        total_loss = 0.0
        num_utterances = 0

        progress_bar = tqdm(self.train_data, desc="Training", unit="utt")

        for x, y in progress_bar:
            self.optimizer.zero_grad()
            loss = self.loss(x, y)

            loss.backward()
            self.optimizer.step()

            total_loss += loss.item()
            num_utterances += 1

            progress_bar.set_postfix({'Loss': f'{loss.item():.4f}'})

        return total_loss / num_utterances if num_utterances else 0.0

    def validate(self) -> float:
        """Framewise accuracy on the (reshuffled) validation set."""
        self.val_data = self._shuffle(self.val_data)
        return evaluate_accuracy(self.model, self.val_data, self.device)

    def train(self) -> Dict:
        """Complete training loop."""
        self._attach_log_file()
        try:
            return self._run_epochs()
        finally:
            self._detach_log_file()

    def _run_epochs(self) -> Dict:
        self.logger.info("Beginning training")
        self.logger.info(f"Training utterances: {len(self.train_data)}, "
                         f"validation utterances: {len(self.val_data)}")

        for epoch in range(self.num_epochs):
            self.logger.info(f"Epoch {epoch + 1}/{self.num_epochs}")

            # Train
            train_loss = self.train_epoch()
            self.train_losses.append(train_loss)

            # Validate
            self.logger.info("Validating")
            val_acc = self.validate()
            self.val_accuracies.append(val_acc)

            self.logger.info(f"Train loss: {train_loss:.4f}")
            self.logger.info(f"Val acc. {val_acc}")

        if self.save_dir:
            self._save_model()

        if self.log_dir and self.train_losses:
            plot_path = Path(self.log_dir) / "training_metrics.png"
            saved_path = plot_training_metrics(self.train_losses, self.val_accuracies, str(plot_path))
            self.logger.info(f"Training plot saved: {saved_path}")

        return {
            'train_losses': self.train_losses,
            'val_accuracies': self.val_accuracies,
            'final_val_accuracy': self.val_accuracies[-1] if self.val_accuracies else None
        }

    def _save_model(self):
        """Save the final model checkpoint and training history."""
        checkpoint = {
            'epoch': len(self.train_losses),
            'model_state_dict': self.model.state_dict(),
            'optimizer_state_dict': self.optimizer.state_dict(),
            'val_accuracy': self.val_accuracies[-1] if self.val_accuracies else None,
            'model_config': self.model.get_model_info()
        }

        save_path = Path(self.save_dir) / "blstm_final.pth"
        torch.save(checkpoint, save_path)
        self.logger.info(f"Model saved: {save_path}")

        history = {
            'train_losses': self.train_losses,
            'val_accuracies': self.val_accuracies
        }

        history_dir = Path(self.log_dir or self.save_dir)
        with open(history_dir / "training_history.json", 'w') as f:
            json.dump(history, f, indent=2)
