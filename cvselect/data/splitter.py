"""
Splitter
========

Train/test partitioning and cross-validation fold construction.

Every function takes an explicit ``seed`` that is passed to scikit-learn as
``random_state``; no process-wide random state is read or written, so the same
(dataset, parameters, seed) always yields the same assignment.

"""

import logging
from typing import Tuple

import numpy as np
from sklearn.model_selection import KFold, StratifiedKFold, train_test_split

from ..errors import ConfigurationError, InsufficientDataError
from .dataset import Dataset, Fold, FoldSet, Partition

logger = logging.getLogger(__name__)


def _check_seed(seed: int) -> int:
    if isinstance(seed, bool) or not isinstance(seed, (int, np.integer)):
        raise ConfigurationError(f"seed must be an integer, got {seed!r}")
    if not 0 <= int(seed) < 2 ** 32:
        raise ConfigurationError(f"seed must be in [0, 2**32), got {seed}")
    return int(seed)


def split(
    dataset: Dataset,
    test_fraction: float,
    stratify: bool = True,
    seed: int = 42,
) -> Tuple[Partition, Partition]:
    """
    Split a dataset into disjoint train and test partitions.

    Args:
        dataset: Source dataset
        test_fraction: Share of samples placed in the test partition, in (0, 1)
        stratify: Preserve label proportions in both partitions
        seed: Random seed for the assignment

    Returns:
        (train, test) partitions whose union is the whole dataset

    Raises:
        ConfigurationError: If the fraction is out of range or leaves a side empty
        InsufficientDataError: If stratifying and a class has fewer than 2 members
    """
    seed = _check_seed(seed)
    if not 0.0 < test_fraction < 1.0:
        raise ConfigurationError(f"test_fraction must be in (0, 1), got {test_fraction}")

    n = dataset.n_samples
    n_test = int(np.ceil(test_fraction * n))
    if n_test < 1 or n - n_test < 1:
        raise ConfigurationError(
            f"test_fraction={test_fraction} on {n} samples leaves an empty partition"
        )

    indices = np.arange(n)
    stratify_labels = None
    if stratify:
        counts = dataset.class_counts()
        small = {label: c for label, c in counts.items() if c < 2}
        if small:
            raise InsufficientDataError(
                f"Stratified split needs at least 2 samples per class, got {small}"
            )
        if n_test < len(counts) or n - n_test < len(counts):
            raise InsufficientDataError(
                f"test_fraction={test_fraction} on {n} samples cannot hold all {len(counts)} classes on both sides"
            )
        stratify_labels = dataset.labels

    train_idx, test_idx = train_test_split(
        indices,
        test_size=test_fraction,
        random_state=seed,
        shuffle=True,
        stratify=stratify_labels,
    )

    train = Partition('train', train_idx)
    test = Partition('test', test_idx)

    logger.info(f"Split: train {len(train)} ({len(train) / n * 100:.1f}%), "
                f"test {len(test)} ({len(test) / n * 100:.1f}%), stratify={stratify}, seed={seed}")
    for name, part in [('Train', train), ('Test', test)]:
        logger.debug(f"  {name} classes: {dataset.class_counts(part.indices)}")

    return train, test


def make_folds(
    dataset: Dataset,
    partition: Partition,
    fold_count: int,
    stratify: bool = True,
    seed: int = 42,
) -> FoldSet:
    """
    Build cross-validation folds over a partition.

    Fold indices refer to the original dataset, not to positions inside the
    partition.

    Raises:
        ConfigurationError: If fold_count < 2 or fold_count > len(partition)
        InsufficientDataError: If stratifying and a class has fewer members than fold_count
    """
    seed = _check_seed(seed)
    if isinstance(fold_count, bool) or not isinstance(fold_count, (int, np.integer)):
        raise ConfigurationError(f"fold_count must be an integer, got {fold_count!r}")
    if fold_count < 2:
        raise ConfigurationError(f"fold_count must be >= 2, got {fold_count}")
    if fold_count > len(partition):
        raise ConfigurationError(
            f"fold_count={fold_count} exceeds the {len(partition)} samples in partition '{partition.name}'"
        )

    source = partition.indices
    labels = dataset.labels[source]

    if stratify:
        counts = dataset.class_counts(source)
        small = {label: c for label, c in counts.items() if c < fold_count}
        if small:
            raise InsufficientDataError(
                f"Stratified {fold_count}-fold split needs at least {fold_count} samples per class "
                f"in partition '{partition.name}', got {small}"
            )
        splitter = StratifiedKFold(n_splits=fold_count, shuffle=True, random_state=seed)
    else:
        splitter = KFold(n_splits=fold_count, shuffle=True, random_state=seed)

    folds = []
    for fold_index, (train_pos, held_pos) in enumerate(splitter.split(source, labels)):
        folds.append(Fold(
            fold_index=fold_index,
            train=Partition(f'{partition.name}/fold-{fold_index}/train', source[train_pos]),
            held_out=Partition(f'{partition.name}/fold-{fold_index}/held_out', source[held_pos]),
        ))

    logger.info(f"Using {'Stratified KFold' if stratify else 'KFold'} of {fold_count} folds "
                f"over '{partition.name}' ({len(partition)} samples), seed={seed}")

    return FoldSet(source=partition, folds=tuple(folds), stratified=stratify, seed=seed)
