"""
Training metrics plotter for the framewise phoneme BLSTM.
"""

import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
import numpy as np
from typing import List


def plot_training_metrics(
    train_losses: List[float],
    val_accuracies: List[float],
    save_path: str = "training_metrics.png"
) -> str:
    """
    Create a 1x2 figure with the per-epoch training loss and validation accuracy.

    Args:
        train_losses: Mean summed cross-entropy per utterance, per epoch
        val_accuracies: Framewise validation accuracy per epoch
        save_path: Path to save the plot

    Returns:
        Path to saved plot
    """
    epochs = range(1, len(train_losses) + 1)

    fig, (ax1, ax2) = plt.subplots(1, 2, figsize=(12, 4))

    # 1. Loss curve
    ax1.plot(epochs, train_losses, 'b-', label='Train Loss', linewidth=2)
    ax1.set_title('Training Loss (per utterance)')
    ax1.set_xlabel('Epoch')
    ax1.set_ylabel('Cross-entropy')
    ax1.legend()
    ax1.grid(True, alpha=0.3)
    ax1.set_xticks(epochs)  # Force integer ticks

    # 2. Validation accuracy
    ax2.plot(epochs, val_accuracies, 'g-', linewidth=2, marker='o')
    ax2.set_title('Validation Framewise Accuracy')
    ax2.set_xlabel('Epoch')
    ax2.set_ylabel('Accuracy')
    ax2.set_ylim(0, 1)
    ax2.grid(True, alpha=0.3)
    ax2.set_xticks(epochs)

    if val_accuracies:
        best_idx = int(np.argmax(val_accuracies))
        best_acc = val_accuracies[best_idx]
        ax2.scatter(best_idx + 1, best_acc, color='red', s=100, zorder=5)
        ax2.text(best_idx + 1, min(best_acc + 0.05, 0.95), f'Best: {best_acc:.3f}',
                 ha='center', fontweight='bold')

    plt.tight_layout()
    plt.savefig(save_path, dpi=150, bbox_inches='tight')
    plt.close(fig)

    return save_path
