"""
Tests for the summed framewise cross-entropy loss.
"""

import torch
import torch.nn.functional as F
import pytest
from blstm_phoneme.components.FramewiseCrossEntropyLoss import SummedCrossEntropyLoss


def _one_hot(indices, num_classes=61):
    return F.one_hot(torch.tensor(indices), num_classes).float()


def test_loss_is_summed_over_frames():
    torch.manual_seed(0)
    logits = torch.randn(4, 61)
    targets = _one_hot([0, 5, 60, 5])

    loss = SummedCrossEntropyLoss()(logits, targets)

    probabilities = torch.softmax(logits, dim=-1)
    expected = -sum(torch.log(probabilities[t, k]) for t, k in enumerate([0, 5, 60, 5]))
    assert torch.allclose(loss, expected, atol=1e-5), f"{loss} != {expected}"


def test_reductions():
    torch.manual_seed(1)
    logits = torch.randn(6, 61)
    targets = _one_hot([1, 2, 3, 4, 5, 6])

    per_frame = SummedCrossEntropyLoss(reduction='none')(logits, targets)
    assert per_frame.shape == (6,)
    assert torch.allclose(SummedCrossEntropyLoss(reduction='sum')(logits, targets), per_frame.sum())
    assert torch.allclose(SummedCrossEntropyLoss(reduction='mean')(logits, targets), per_frame.mean())

    with pytest.raises(ValueError):
        SummedCrossEntropyLoss(reduction='max')


def test_loss_stays_finite_for_saturated_logits():
    logits = torch.full((2, 61), -1000.0)
    logits[:, 3] = 1000.0
    targets = _one_hot([0, 0])

    loss = SummedCrossEntropyLoss()(logits, targets)
    assert torch.isfinite(loss), "Loss should not overflow to inf"
    assert loss.item() > 0


def test_shape_mismatch_is_rejected():
    with pytest.raises(ValueError):
        SummedCrossEntropyLoss()(torch.randn(3, 61), torch.zeros(3, 39))
