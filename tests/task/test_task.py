import numpy as np
import pandas as pd
import pytest

from tunelab.task import Task, TaskFactory
from tunelab.utils.exceptions import DataValidationError, RegistryError


@pytest.fixture
def frame():
    return pd.DataFrame({
        'x1': [0.1, 0.2, 0.3, 0.4, 0.5, 0.6],
        'x2': [1, 0, 1, 0, 1, 0],
        'label': ['b', 'a', 'b', 'a', 'b', 'a'],
    })


class TestTask:
    def test_basic_accessors(self, frame):
        task = Task('toy', frame, 'label')
        assert task.task_id == 'toy'
        assert task.feature_names == ['x1', 'x2']
        assert task.class_labels == ['a', 'b']
        assert task.is_binary
        assert task.positive == 'a'
        assert task.n_rows == 6
        np.testing.assert_array_equal(task.row_ids, np.arange(6))

    def test_explicit_positive(self, frame):
        assert Task('toy', frame, 'label', positive='b').positive == 'b'

    def test_unknown_positive_fails(self, frame):
        with pytest.raises(DataValidationError, match="Positive class"):
            Task('toy', frame, 'label', positive='c')

    def test_row_selection_by_id(self, frame):
        task = Task('toy', frame, 'label')
        X = task.X([4, 1])
        assert list(X.index) == [4, 1]
        assert list(task.y([4, 1])) == ['b', 'a']

    def test_out_of_range_ids(self, frame):
        task = Task('toy', frame, 'label')
        with pytest.raises(DataValidationError, match="out of range"):
            task.X([0, 6])

    def test_views_do_not_alter_task(self, frame):
        task = Task('toy', frame, 'label')
        X = task.X([0, 1])
        X.loc[0, 'x1'] = 99.0
        assert task.X([0]).loc[0, 'x1'] == 0.1

    @pytest.mark.parametrize("data, target, message", [
        (pd.DataFrame(), 'label', "non-empty"),
        (pd.DataFrame({'x': [1, 2]}), 'label', "not found"),
        (pd.DataFrame({'x': [1, 2], 'label': ['a', None]}), 'label', "missing values"),
        (pd.DataFrame({'x': [1, 2], 'label': ['a', 'a']}), 'label', "at least two classes"),
        (pd.DataFrame({'label': ['a', 'b']}), 'label', "no feature columns"),
    ])
    def test_invalid_tasks(self, data, target, message):
        with pytest.raises(DataValidationError, match=message):
            Task('bad', data, target)


class TestTaskFactory:
    def test_registered_tasks(self):
        assert {'breast_cancer', 'wine', 'iris'} <= set(TaskFactory.get_available_tasks())

    def test_breast_cancer(self):
        task = TaskFactory.create('breast_cancer')
        assert task.n_rows == 569
        assert task.positive == 'malignant'
        assert len(task.feature_names) == 30

    def test_iris_is_multiclass(self):
        task = TaskFactory.create('iris')
        assert len(task.class_labels) == 3
        assert task.positive is None

    def test_unknown_task(self):
        with pytest.raises(RegistryError, match="Unknown task name"):
            TaskFactory.create('titanic')

    def test_from_file(self, tmp_path, frame):
        path = tmp_path / "toy.csv"
        frame.to_csv(path, index=False)
        task = TaskFactory.from_config({'file_path': str(path), 'target': 'label', 'positive': 'b'})
        assert task.task_id == 'toy'
        assert task.positive == 'b'

    def test_from_missing_file(self, tmp_path):
        with pytest.raises(DataValidationError, match="not found"):
            TaskFactory.from_file(tmp_path / "nope.csv", target='label')

    def test_unsupported_extension(self, tmp_path):
        path = tmp_path / "toy.txt"
        path.write_text("x")
        with pytest.raises(DataValidationError, match="Unsupported"):
            TaskFactory.from_file(path, target='label')
