#!/usr/bin/env python3
"""
Train the bidirectional LSTM framewise phoneme classifier of
Graves & Schmidhuber (2005) on TIMIT-style utterance files.

This script:
1. Loads the training utterances and holds out the first 184 for validation
2. Trains the BLSTM with momentum SGD, one utterance per update
3. Releases the training data and reports accuracy on the test directory

Usage:
    python train.py --train_dir train --test_dir test --epochs 20
"""

import os
import gc
import argparse
import torch
from pathlib import Path
import json
import logging
from typing import Dict, Tuple
from dotenv import load_dotenv

from blstm_phoneme.components.TrainingConfig import TrainingConfig
from blstm_phoneme.components.Dataset import read_data, split_validation
from blstm_phoneme.components.Trainer import PhonemeTrainer
from blstm_phoneme.model.PhonemeClassifier import BLSTMPhonemeClassifier, create_model
from test import test_model


def run_training(
    config: TrainingConfig,
    train_dir: str,
    device: str,
    output_dir: str
) -> Tuple[BLSTMPhonemeClassifier, Dict]:
    """
    Load the training directory, split off validation data and train.

    The utterances only live inside this function, so they can be freed
    before the test set is loaded.
    """
    logging.info("Loading files")
    Xs, Ys = read_data(train_dir)
    val_data, train_data = split_validation(Xs, Ys, val_size=config.val_size)
    del Xs, Ys

    model = create_model(
        input_size=config.input_size,
        hidden_size=config.hidden_size,
        num_classes=config.num_classes
    )

    trainer = PhonemeTrainer(
        model=model,
        train_data=train_data,
        val_data=val_data,
        device=device,
        learning_rate=config.learning_rate,
        momentum=config.momentum,
        num_epochs=config.num_epochs,
        seed=config.seed,
        save_dir=f"{output_dir}/models",
        log_dir=f"{output_dir}/logs"
    )

    training_results = trainer.train()
    return trainer.model, training_results


def parse_args():
    defaults = TrainingConfig()
    parser = argparse.ArgumentParser(description='Train a BLSTM framewise phoneme classifier')
    parser.add_argument('--train_dir', type=str, default=os.getenv('TIMIT_TRAIN_DIR', 'train'),
                        help='Directory with training utterance files')
    parser.add_argument('--test_dir', type=str, default=os.getenv('TIMIT_TEST_DIR', 'test'),
                        help='Directory with test utterance files')
    parser.add_argument('--epochs', type=int, default=defaults.num_epochs,
                        help='Number of training epochs')
    parser.add_argument('--lr', type=float, default=defaults.learning_rate,
                        help='Learning rate')
    parser.add_argument('--momentum', type=float, default=defaults.momentum,
                        help='Momentum coefficient')
    parser.add_argument('--hidden_size', type=int, default=defaults.hidden_size,
                        help='LSTM cells per direction')
    parser.add_argument('--val_size', type=int, default=defaults.val_size,
                        help='Number of leading utterances held out for validation')
    parser.add_argument('--seed', type=int, default=None,
                        help='Seed for initialization and shuffling (unseeded if omitted)')
    parser.add_argument('--output_dir', type=str, default='./results',
                        help='Output directory for models and logs')
    parser.add_argument('--device', type=str,
                        default='cuda' if torch.cuda.is_available() else 'cpu')

    return parser.parse_args()


def main():
    load_dotenv()
    args = parse_args()

    # Create output directory
    Path(args.output_dir).mkdir(parents=True, exist_ok=True)

    # Setup logging
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(f'{args.output_dir}/run.log'),
            logging.StreamHandler()
        ]
    )
    logging.info(f"Using device: {args.device}")

    config = TrainingConfig(
        hidden_size=args.hidden_size,
        learning_rate=args.lr,
        momentum=args.momentum,
        num_epochs=args.epochs,
        val_size=args.val_size,
        seed=args.seed
    )

    # Weight initialization draws from torch; shuffling uses the trainer's own RandomState
    if config.seed is not None:
        torch.manual_seed(config.seed)

    model, training_results = run_training(config, args.train_dir, args.device, args.output_dir)

    # Training and validation utterances went out of scope with run_training
    gc.collect()

    test_results = test_model(
        model=model,
        test_dir=args.test_dir,
        device=args.device,
        output_dir=f"{args.output_dir}/test_results"
    )

    with open(f"{args.output_dir}/results.json", 'w') as f:
        json.dump({
            'config': config.to_dict(),
            'val_accuracies': training_results['val_accuracies'],
            'final_val_accuracy': training_results['final_val_accuracy'],
            'test_accuracy': test_results['test_accuracy']
        }, f, indent=2)

    logging.info(f"Final validation accuracy: {training_results['final_val_accuracy']}")
    logging.info(f"Test acc. {test_results['test_accuracy']}")


if __name__ == "__main__":
    main()
