#!/usr/bin/env python3
"""
Evaluate a trained BLSTM phoneme classifier on a held-out test directory.

Usage:
    python test.py --checkpoint results/models/blstm_final.pth --test_dir test
"""

import torch
import torch.nn as nn
from typing import Dict
import argparse
import logging
import json
from pathlib import Path
import os

from blstm_phoneme.components.Dataset import UtteranceDataset, iterate_utterances
from blstm_phoneme.components.Evaluation import evaluate_accuracy
from blstm_phoneme.model.PhonemeClassifier import BLSTMPhonemeClassifier, create_model


def test_model(
    model: nn.Module,
    test_dir: str,
    device: str = 'cuda' if torch.cuda.is_available() else 'cpu',
    output_dir: str = './test_results'
) -> Dict:
    """
    Evaluate the trained model on a separate test directory.

    Args:
        model: Trained classifier
        test_dir: Directory with one utterance file per test utterance
        device: Device for inference ('cuda' or 'cpu')
        output_dir: Directory to save test results

    Returns:
        Dictionary with test accuracy and set sizes
    """
    logger = _setup_test_logging(output_dir)
    logger.info("Starting model testing...")

    if not os.path.isdir(test_dir):
        raise FileNotFoundError(f"Test directory not found: {test_dir}")

    logger.info("Loading test dataset...")
    test_dataset = UtteranceDataset.from_directory(test_dir)
    logger.info(f"Test dataset loaded: {len(test_dataset)} utterances")

    model = model.to(device)
    logger.info("Testing")
    test_acc = evaluate_accuracy(model, iterate_utterances(test_dataset), device)

    results = {
        'test_accuracy': test_acc,
        'test_utterances': len(test_dataset),
        'test_frames': sum(len(test_dataset[i]['labels']) for i in range(len(test_dataset)))
    }

    results_path = Path(output_dir) / 'test_results.json'
    with open(results_path, 'w') as f:
        json.dump(results, f, indent=2)

    logger.info(f"Test acc. {test_acc}")
    logger.info(f"Test results saved to: {results_path}")

    return results


def load_trained_model(checkpoint_path: str, device: str = 'cpu') -> BLSTMPhonemeClassifier:
    """Rebuild the classifier from a checkpoint written by PhonemeTrainer."""
    if not os.path.exists(checkpoint_path):
        raise FileNotFoundError(f"Checkpoint not found: {checkpoint_path}")

    checkpoint = torch.load(checkpoint_path, map_location=device, weights_only=False)
    config = checkpoint['model_config']

    model = create_model(
        input_size=config['input_size'],
        hidden_size=config['hidden_size'],
        num_classes=config['num_classes']
    )
    model.load_state_dict(checkpoint['model_state_dict'])
    return model.to(device)


def _setup_test_logging(output_dir: str) -> logging.Logger:
    """Setup logging for test function."""
    Path(output_dir).mkdir(parents=True, exist_ok=True)

    log_file = Path(output_dir) / 'test.log'

    logger = logging.getLogger('blstm_test')
    logger.setLevel(logging.INFO)

    # Clear existing handlers
    if logger.handlers:
        logger.handlers.clear()

    formatter = logging.Formatter('%(asctime)s - %(levelname)s - %(message)s')

    file_handler = logging.FileHandler(log_file)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    logger.propagate = False

    return logger


def parse_args():
    parser = argparse.ArgumentParser(description='Evaluate a trained BLSTM phoneme classifier')
    parser.add_argument('--checkpoint', type=str, required=True,
                        help='Path to a checkpoint saved by train.py')
    parser.add_argument('--test_dir', type=str, default='test',
                        help='Directory with test utterance files')
    parser.add_argument('--output_dir', type=str, default='./test_results',
                        help='Directory for test logs and results')
    parser.add_argument('--device', type=str,
                        default='cuda' if torch.cuda.is_available() else 'cpu')
    return parser.parse_args()


def main():
    args = parse_args()
    model = load_trained_model(args.checkpoint, args.device)
    test_model(model, args.test_dir, device=args.device, output_dir=args.output_dir)


if __name__ == "__main__":
    main()
