import torch.nn as nn
import torch.nn.functional as F
from torch import Tensor


class SummedCrossEntropyLoss(nn.Module):
    """
    Categorical cross-entropy against one-hot frame labels.

    For one utterance the per-frame losses -sum_k y_k * log(p_k) are summed
    over time rather than averaged, so long utterances weigh more in each
    update. log_softmax is used on the logits instead of log(softmax(...)),
    which keeps the loss finite when a probability underflows to zero.

    Args:
        reduction: 'sum' (default), 'mean' over frames, or 'none'
    """

    def __init__(self, reduction: str = 'sum'):
        super().__init__()
        if reduction not in ['mean', 'sum', 'none']:
            raise ValueError(f"Reduction must be 'mean', 'sum', or 'none', got {reduction}")
        self.reduction = reduction

    def forward(self, logits: Tensor, targets: Tensor) -> Tensor:
        """
        Args:
            logits: Raw scores [..., seq_len, num_classes]
            targets: One-hot labels with the same shape

        Returns:
            Loss tensor (scalar unless reduction='none')
        """
        if logits.shape != targets.shape:
            raise ValueError(
                f"Logits shape {tuple(logits.shape)} does not match "
                f"targets shape {tuple(targets.shape)}"
            )

        frame_loss = -(targets * F.log_softmax(logits, dim=-1)).sum(dim=-1)

        if self.reduction == 'sum':
            return frame_loss.sum()
        elif self.reduction == 'mean':
            return frame_loss.mean()
        return frame_loss
