"""
Tests for utterance loading and the validation split.
"""

import os
import tempfile
import numpy as np
import h5py
import torch
import pytest
from blstm_phoneme.components.Dataset import (
    DataLoadError,
    UtteranceDataset,
    iterate_utterances,
    load_utterance,
    read_data,
    split_validation
)


def _random_utterance(num_frames, rng):
    x = rng.randn(num_frames, 26)
    y = np.eye(61)[rng.randint(0, 61, size=num_frames)]
    return x, y


def test_read_data_sorted_and_aligned():
    """Files are read in sorted order and every utterance keeps equal lengths."""
    print("Testing directory loading...")
    rng = np.random.RandomState(0)
    lengths = {'utt_b.npz': 5, 'utt_a.npz': 3, 'utt_c.npz': 8}

    with tempfile.TemporaryDirectory() as tmp_dir:
        for name, num_frames in lengths.items():
            x, y = _random_utterance(num_frames, rng)
            np.savez(os.path.join(tmp_dir, name), x=x, y=y)

        Xs, Ys = read_data(tmp_dir)

    assert [x.shape[0] for x in Xs] == [3, 5, 8], "Files should be read in sorted order"
    for x, y in zip(Xs, Ys):
        assert x.shape[0] == y.shape[0]
        assert x.shape[1] == 26 and y.shape[1] == 61
        assert x.dtype == torch.float32 and y.dtype == torch.float32
    print("✓ Loaded 3 utterances in sorted order")


def test_mismatched_row_counts_are_fatal():
    rng = np.random.RandomState(1)
    with tempfile.TemporaryDirectory() as tmp_dir:
        x, _ = _random_utterance(4, rng)
        _, y = _random_utterance(5, rng)
        np.savez(os.path.join(tmp_dir, 'bad.npz'), x=x, y=y)

        with pytest.raises(DataLoadError):
            read_data(tmp_dir)


def test_missing_key_is_fatal():
    rng = np.random.RandomState(2)
    with tempfile.TemporaryDirectory() as tmp_dir:
        x, _ = _random_utterance(4, rng)
        path = os.path.join(tmp_dir, 'no_labels.npz')
        np.savez(path, x=x)

        with pytest.raises(DataLoadError):
            load_utterance(path)


def test_unreadable_and_unsupported_files():
    with tempfile.TemporaryDirectory() as tmp_dir:
        corrupt = os.path.join(tmp_dir, 'corrupt.npz')
        with open(corrupt, 'wb') as f:
            f.write(b'not an archive')
        with pytest.raises(DataLoadError):
            load_utterance(corrupt)

        notes = os.path.join(tmp_dir, 'notes.txt')
        with open(notes, 'w') as f:
            f.write('x y')
        with pytest.raises(DataLoadError):
            load_utterance(notes)


def test_missing_or_empty_directory():
    with tempfile.TemporaryDirectory() as tmp_dir:
        with pytest.raises(DataLoadError):
            read_data(tmp_dir)
        with pytest.raises(DataLoadError):
            read_data(os.path.join(tmp_dir, 'does_not_exist'))


def test_hdf5_and_jld_files():
    """HDF5 is read as written; JLD matrices are stored column-major and get transposed."""
    rng = np.random.RandomState(3)
    x, y = _random_utterance(6, rng)

    with tempfile.TemporaryDirectory() as tmp_dir:
        h5_path = os.path.join(tmp_dir, 'utt.h5')
        with h5py.File(h5_path, 'w') as f:
            f.create_dataset('x', data=x)
            f.create_dataset('y', data=y)

        jld_path = os.path.join(tmp_dir, 'utt.jld')
        with h5py.File(jld_path, 'w') as f:
            f.create_dataset('x', data=x.T)
            f.create_dataset('y', data=y.T)

        h5_x, h5_y = load_utterance(h5_path)
        jld_x, jld_y = load_utterance(jld_path)

    expected_x = torch.from_numpy(x.astype(np.float32))
    expected_y = torch.from_numpy(y.astype(np.float32))
    assert torch.equal(h5_x, expected_x) and torch.equal(h5_y, expected_y)
    assert torch.equal(jld_x, expected_x) and torch.equal(jld_y, expected_y)


def test_split_validation_200_utterances():
    """First 184 utterances validate, the other 16 train, with nothing lost or shared."""
    Xs = [torch.zeros(2, 26) for _ in range(200)]
    Ys = [torch.zeros(2, 61) for _ in range(200)]

    val_data, train_data = split_validation(Xs, Ys)

    assert len(val_data) == 184
    assert len(train_data) == 16

    val_ids = {id(x) for x, _ in val_data}
    train_ids = {id(x) for x, _ in train_data}
    assert not val_ids & train_ids, "Splits should be disjoint"
    assert val_ids | train_ids == {id(x) for x in Xs}, "Splits should cover the dataset"

    # Positional: validation is the leading block, in load order
    assert all(pair[0] is Xs[i] for i, pair in enumerate(val_data))
    assert all(pair[1] is Ys[184 + i] for i, pair in enumerate(train_data))


def test_split_validation_rejects_bad_sizes():
    Xs = [torch.zeros(1, 26)] * 10
    Ys = [torch.zeros(1, 61)] * 10
    with pytest.raises(ValueError):
        split_validation(Xs, Ys, val_size=11)
    with pytest.raises(ValueError):
        split_validation(Xs, Ys[:9], val_size=5)


def test_utterance_dataset_from_directory():
    rng = np.random.RandomState(4)
    with tempfile.TemporaryDirectory() as tmp_dir:
        for i in range(3):
            x, y = _random_utterance(4 + i, rng)
            np.savez(os.path.join(tmp_dir, f'utt_{i}.npz'), x=x, y=y)
        dataset = UtteranceDataset.from_directory(tmp_dir)

    assert len(dataset) == 3
    item = dataset[2]
    assert item['features'].shape == (6, 26)
    assert item['labels'].shape == (6, 61)


def test_iterate_utterances_yields_unbatched_pairs():
    """Variable-length utterances come out one at a time, in dataset order."""
    rng = np.random.RandomState(5)
    pairs = []
    for num_frames in [2, 7, 4]:
        x, y = _random_utterance(num_frames, rng)
        pairs.append((torch.from_numpy(x).float(), torch.from_numpy(y).float()))
    dataset = UtteranceDataset(pairs)

    loaded = list(iterate_utterances(dataset))

    assert len(loaded) == 3
    for (features, labels), (x, y) in zip(loaded, pairs):
        assert torch.equal(features, x), "Features should pass through unbatched"
        assert torch.equal(labels, y)

    shuffled = list(iterate_utterances(dataset, shuffle=True))
    assert sorted(f.shape[0] for f, _ in shuffled) == [2, 4, 7]


def main():
    """Run all dataset tests."""
    print("Dataset Tests")
    print("=" * 60)

    test_read_data_sorted_and_aligned()
    test_mismatched_row_counts_are_fatal()
    test_missing_key_is_fatal()
    test_unreadable_and_unsupported_files()
    test_missing_or_empty_directory()
    test_hdf5_and_jld_files()
    test_split_validation_200_utterances()
    test_split_validation_rejects_bad_sizes()
    test_utterance_dataset_from_directory()
    test_iterate_utterances_yields_unbatched_pairs()

    print("\n" + "=" * 60)
    print("All dataset tests passed!")


if __name__ == "__main__":
    main()
