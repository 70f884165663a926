import torch
import numpy as np
import h5py
import zipfile
import logging
from pathlib import Path
from typing import Iterator, List, Tuple
from torch.utils.data import DataLoader
from tqdm import tqdm

logger = logging.getLogger(__name__)

NPZ_EXTENSIONS = {'.npz'}
HDF5_EXTENSIONS = {'.h5', '.hdf5'}
JLD_EXTENSIONS = {'.jld'}


class DataLoadError(ValueError):
    """Raised when an utterance file cannot be turned into a feature/label pair."""


def _read_npz(path: Path) -> Tuple[np.ndarray, np.ndarray]:
    with np.load(path) as archive:
        for key in ('x', 'y'):
            if key not in archive.files:
                raise DataLoadError(f"{path.name}: missing array '{key}'")
        return np.asarray(archive['x']), np.asarray(archive['y'])


def _read_hdf5(path: Path, column_major: bool = False) -> Tuple[np.ndarray, np.ndarray]:
    with h5py.File(path, 'r') as f:
        for key in ('x', 'y'):
            if key not in f:
                raise DataLoadError(f"{path.name}: missing dataset '{key}'")
        x, y = f['x'][()], f['y'][()]

    # Julia writes matrices column-major, so h5py sees them transposed
    if column_major:
        x, y = x.T, y.T
    return np.asarray(x), np.asarray(y)


def load_utterance(path) -> Tuple[torch.Tensor, torch.Tensor]:
    """
    Load one utterance file.

    Args:
        path: .npz, .h5/.hdf5 or .jld file holding matrices 'x' (frames x features)
              and 'y' (frames x classes, one-hot)

    Returns:
        (features, labels) as float32 tensors, one row per frame
    """
    path = Path(path)
    suffix = path.suffix.lower()

    try:
        if suffix in NPZ_EXTENSIONS:
            x, y = _read_npz(path)
        elif suffix in HDF5_EXTENSIONS:
            x, y = _read_hdf5(path)
        elif suffix in JLD_EXTENSIONS:
            x, y = _read_hdf5(path, column_major=True)
        else:
            raise DataLoadError(f"{path.name}: unsupported file type '{suffix}'")
    except DataLoadError:
        raise
    except (OSError, ValueError, KeyError, zipfile.BadZipFile) as e:
        raise DataLoadError(f"{path.name}: could not read file ({e})") from e

    if x.ndim != 2 or y.ndim != 2:
        raise DataLoadError(
            f"{path.name}: expected 2-D matrices, got x{x.shape} and y{y.shape}"
        )
    if x.shape[0] != y.shape[0]:
        raise DataLoadError(
            f"{path.name}: {x.shape[0]} feature frames but {y.shape[0]} label frames"
        )

    features = torch.from_numpy(x.astype(np.float32))
    labels = torch.from_numpy(y.astype(np.float32))
    return features, labels


def read_data(data_dir) -> Tuple[List[torch.Tensor], List[torch.Tensor]]:
    """
    Read every utterance file in a directory.

    Files are visited in sorted filename order so that the positional
    validation split is reproducible across platforms.

    Returns:
        Tuple of (Xs, Ys): index-aligned lists of feature and label tensors
    """
    data_dir = Path(data_dir)
    if not data_dir.is_dir():
        raise DataLoadError(f"Data directory not found: {data_dir}")

    fnames = sorted(p for p in data_dir.iterdir() if p.is_file())
    if not fnames:
        raise DataLoadError(f"No utterance files in {data_dir}")

    Xs, Ys = [], []
    for fname in tqdm(fnames, desc=f"Loading {data_dir.name}", unit="file"):
        x, y = load_utterance(fname)
        Xs.append(x)
        Ys.append(y)

    total_frames = sum(x.shape[0] for x in Xs)
    logger.info(f"Loaded {len(Xs)} utterances ({total_frames} frames) from {data_dir}")
    return Xs, Ys


def split_validation(
    Xs: List[torch.Tensor],
    Ys: List[torch.Tensor],
    val_size: int = 184
) -> Tuple[List[Tuple[torch.Tensor, torch.Tensor]], List[Tuple[torch.Tensor, torch.Tensor]]]:
    """
    Hold out the first `val_size` utterances for validation.

    The split is positional; shuffling only happens inside each training epoch.

    Returns:
        Tuple of (val_data, train_data), each a list of (features, labels) pairs
    """
    if len(Xs) != len(Ys):
        raise ValueError(f"Got {len(Xs)} feature sequences but {len(Ys)} label sequences")
    if val_size < 0 or val_size > len(Xs):
        raise ValueError(f"val_size must be between 0 and {len(Xs)}, got {val_size}")

    data = list(zip(Xs, Ys))
    val_data = data[:val_size]
    train_data = data[val_size:]

    logger.info(f"Validation utterances: {len(val_data)}, training utterances: {len(train_data)}")
    return val_data, train_data


class UtteranceDataset(torch.utils.data.Dataset):
    """Variable-length utterances as a torch Dataset (one utterance per item)."""

    def __init__(self, pairs: List[Tuple[torch.Tensor, torch.Tensor]]):
        self.pairs = list(pairs)

    def __len__(self):
        return len(self.pairs)

    def __getitem__(self, idx):
        features, labels = self.pairs[idx]
        return {'features': features, 'labels': labels}

    @classmethod
    def from_directory(cls, data_dir) -> 'UtteranceDataset':
        Xs, Ys = read_data(data_dir)
        return cls(zip(Xs, Ys))


def iterate_utterances(dataset: UtteranceDataset, shuffle: bool = False) -> Iterator[Tuple[torch.Tensor, torch.Tensor]]:
    """
    Yield (features, labels) pairs through a DataLoader, one utterance at a time.

    Automatic batching is disabled (batch_size=None) since utterances differ in length.
    """
    loader = DataLoader(dataset, batch_size=None, shuffle=shuffle)
    for item in loader:
        yield item['features'], item['labels']
