import torch
import numpy as np
from sklearn.metrics import accuracy_score
from typing import Iterable, Tuple


def framewise_predictions(
    model,
    data: Iterable[Tuple[torch.Tensor, torch.Tensor]],
    device: str = 'cpu'
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Flat true and predicted class indices over every frame of every utterance.

    One-hot labels and predicted distributions are both reduced with argmax;
    torch.argmax returns the first (lowest) index on ties.
    """
    model.eval()
    all_labels = []
    all_predictions = []

    for x, y in data:
        y_true = torch.argmax(y, dim=-1)
        y_pred = torch.argmax(model.predict(x.to(device)), dim=-1)

        all_labels.append(y_true.reshape(-1).cpu().numpy())
        all_predictions.append(y_pred.reshape(-1).cpu().numpy())

    if not all_labels:
        return np.array([], dtype=np.int64), np.array([], dtype=np.int64)

    return np.concatenate(all_labels), np.concatenate(all_predictions)


def evaluate_accuracy(
    model,
    data: Iterable[Tuple[torch.Tensor, torch.Tensor]],
    device: str = 'cpu'
) -> float:
    """
    Framewise accuracy of the model, usable for validation or test data.

    Args:
        model: Classifier exposing predict(x) -> per-frame probabilities
        data: Iterable of (features, one-hot labels) pairs, one per utterance
        device: Device the model lives on

    Returns:
        Correct frames / total frames
    """
    y_true, y_pred = framewise_predictions(model, data, device)
    if y_true.size == 0:
        raise ValueError("Cannot compute accuracy on an empty set of frames")
    return float(accuracy_score(y_true, y_pred))
