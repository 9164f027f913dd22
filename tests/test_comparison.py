"""Tests for the side-by-side comparison of imputers."""
import numpy as np
import pandas as pd

from softimpute_cv import LowRankDataGenerator, compare_imputers, summarize
from softimpute_cv.ImputationComparison import (
    make_mice_imputer,
    make_softimpute_cv_imputer,
    mean_imputer,
    usvt_imputer,
)


def _complete_matrix():
    return LowRankDataGenerator(25, 6, 2, noise=0.05, seed=4).generate_complete()


class TestCompareImputers:

    def test_one_row_per_method_and_repetition(self):
        methods = {
            'mean': mean_imputer,
            'usvt': usvt_imputer,
            'softimpute_cv': make_softimpute_cv_imputer(repetitions=2, grid_length=4),
            'mice': make_mice_imputer(n_imputations=2, max_iter=3),
        }
        results = compare_imputers(_complete_matrix(), repetitions=2, methods=methods, random_state=0)
        assert isinstance(results, pd.DataFrame)
        assert len(results) == 8
        assert set(results['method']) == set(methods)
        assert (results['n_held_out'] == 30).all()
        assert np.isfinite(results[['rmse', 'mae', 'max_error']].to_numpy()).all()

    def test_entries_missing_in_truth_are_not_scored(self):
        X = _complete_matrix()
        X[0, :] = np.nan
        results = compare_imputers(X, repetitions=1, methods={'mean': mean_imputer})
        assert results['n_held_out'].iloc[0] == 30
        assert np.isfinite(results['rmse'].iloc[0])

    def test_reproducible(self):
        methods = {'mean': mean_imputer}
        a = compare_imputers(_complete_matrix(), repetitions=2, methods=methods, random_state=7)
        b = compare_imputers(_complete_matrix(), repetitions=2, methods=methods, random_state=7)
        pd.testing.assert_frame_equal(a, b)

    def test_summarize(self):
        methods = {'mean': mean_imputer, 'usvt': usvt_imputer}
        summary = summarize(compare_imputers(_complete_matrix(), repetitions=2, methods=methods))
        assert set(summary.index) == {'mean', 'usvt'}
        assert ('rmse', 'mean') in summary.columns
        assert ('mae', 'std') in summary.columns
