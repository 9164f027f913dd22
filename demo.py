import argparse
import logging

import numpy as np
import pandas as pd

from softimpute_cv import (
    LowRankDataGenerator,
    RegularizationSelector,
    SelectorConfig,
    compare_imputers,
    produce_mcar,
    summarize,
)

logger = logging.getLogger("demo")


def load_matrix(path):
    '''
    Numeric columns of a CSV file; empty cells become NaN.
    '''
    df = pd.read_csv(path)
    numeric = df.select_dtypes(include=[np.number])
    dropped = sorted(set(df.columns) - set(numeric.columns))
    if dropped:
        logger.info("Ignoring non-numeric columns: %s", dropped)
    return numeric


def main():
    parser = argparse.ArgumentParser(description="Cross-validated soft-impute and a comparison of imputers.")
    parser.add_argument("--csv", help="Numeric CSV to impute. Synthetic low-rank data if omitted.")
    parser.add_argument("--rows", type=int, default=200)
    parser.add_argument("--cols", type=int, default=30)
    parser.add_argument("--rank", type=int, default=4)
    parser.add_argument("--noise", type=float, default=0.1)
    parser.add_argument("--missing-fraction", type=float, default=0.2)
    parser.add_argument("--repetitions", type=int, default=10)
    parser.add_argument("--grid-length", type=int, default=20)
    parser.add_argument("--compare-repetitions", type=int, default=3)
    parser.add_argument("--seed", type=int, default=0)
    parser.add_argument("--out", default="imputation_comparison.csv")
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format="%(asctime)s %(name)s %(levelname)s %(message)s")

    if args.csv:
        X_complete = load_matrix(args.csv)
        rng = np.random.default_rng(args.seed)
        X_missing = pd.DataFrame(produce_mcar(X_complete.to_numpy(dtype=float), args.missing_fraction, rng),
                                 index=X_complete.index, columns=X_complete.columns)
    else:
        data_gen = LowRankDataGenerator(args.rows, args.cols, args.rank, noise=args.noise, seed=args.seed)
        X_complete, X_missing = data_gen.generate_sample(args.missing_fraction)

    logger.info("Matrix %s with %.1f%% missing", X_missing.shape, 100 * np.isnan(np.asarray(X_missing, dtype=float)).mean())

    selector = RegularizationSelector(SelectorConfig(repetitions=args.repetitions,
                                                     grid_length=args.grid_length,
                                                     random_state=args.seed))
    selector.fit(X_missing)
    print(selector.score_table().to_string(index=False))
    X_imputed = selector.transform(X_missing, random_state=args.seed)
    logger.info("Imputed matrix has %d missing entries", int(np.isnan(np.asarray(X_imputed, dtype=float)).sum()))

    results = compare_imputers(X_complete, missing_fraction=args.missing_fraction,
                               repetitions=args.compare_repetitions, random_state=args.seed, verbose=True)
    results.to_csv(args.out, index=False)
    print(summarize(results))


if __name__ == '__main__':
    main()
