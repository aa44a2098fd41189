"""
End-to-end tests: CSV file -> HousingDataset -> Examples -> trained network.
"""

import numpy as np
import pytest

from russian_housing.config import TrainingParams
from russian_housing.dataset import HousingDataset
from russian_housing.exceptions import FileAccessError, MissingBaseDateError
from russian_housing.model import load_model_artifact
from russian_housing.train import train


PRICES = [5850000, 6000000, 5700000, 13100000, 16331452]


def test_five_row_scenario(scenario_csv):
    dataset = HousingDataset(scenario_csv, verbose=False)

    examples = dataset.examples
    names = dataset.feature_names

    assert len(examples) == 5
    assert 'id' not in names and 'price_doc' not in names
    assert 'sub_area_0' in names and 'sub_area_1' in names
    assert 'sub_area_2' not in names

    i0, i1 = names.index('sub_area_0'), names.index('sub_area_1')
    for example in examples:
        assert example.features[i0] + example.features[i1] == 1

    assert [ex.label for ex in examples] == PRICES

    # full_sq observed 43, 34, 89, 77 -> mean 60.75 fills the missing row
    full_sq = [ex.features[names.index('full_sq')] for ex in examples]
    assert full_sq == pytest.approx([43, 34, 60.75, 89, 77])


def test_minimal_header_scenario(write_csv_text):
    path = write_csv_text(
        "id,timestamp,sub_area,price_doc\n"
        "1,2011-08-20,Bibirevo,100\n"
        "2,2011-08-21,Lefortovo,200\n"
        "3,2011-08-22,Bibirevo,300\n"
        "4,2011-08-23,Lefortovo,400\n"
        "5,2011-08-24,Lefortovo,500\n"
    )
    dataset = HousingDataset(path, verbose=False)

    assert dataset.feature_names == ['timestamp', 'sub_area_0', 'sub_area_1']
    assert [ex.label for ex in dataset.examples] == [100, 200, 300, 400, 500]
    np.testing.assert_array_equal(
        np.stack([ex.features for ex in dataset.examples]),
        [[0, 1, 0], [1, 0, 1], [2, 1, 0], [3, 0, 1], [4, 0, 1]]
    )


def test_dataset_is_computed_once(scenario_csv):
    dataset = HousingDataset(scenario_csv, verbose=False)

    assert dataset.records is dataset.records
    assert dataset.examples is dataset.examples
    assert len(dataset) == 5
    assert dataset.feature_count == len(dataset.feature_names)


def test_dataset_split_holds_out_leading_examples(scenario_csv):
    dataset = HousingDataset(scenario_csv, verbose=False)

    train_set, held_out = dataset.split(2)

    assert [ex.label for ex in held_out] == PRICES[:2]
    assert [ex.label for ex in train_set] == PRICES[2:]
    with pytest.raises(ValueError):
        dataset.split(5)


def test_missing_file_is_fatal(tmp_path):
    dataset = HousingDataset(tmp_path / "missing.csv", verbose=False)
    with pytest.raises(FileAccessError):
        dataset.examples


def test_missing_first_timestamp_is_fatal(write_csv_text):
    path = write_csv_text(
        "id,timestamp,full_sq,price_doc\n"
        "1,NA,40,100\n"
        "2,2011-08-21,50,200\n"
    )
    with pytest.raises(MissingBaseDateError):
        HousingDataset(path, verbose=False).examples


def test_train_end_to_end(write_csv_text, tmp_path):
    rows = ["id,timestamp,sub_area,full_sq,water_1line,product_type,price_doc"]
    areas = ['Bibirevo', 'Lefortovo', 'Arbat']
    for i in range(16):
        full_sq = 'NA' if i % 5 == 3 else str(30 + 3 * i)
        water = 'yes' if i % 2 else 'no'
        product = 'Investment' if i % 3 else 'OwnerOccupier'
        rows.append(f"{i + 1},2011-08-{10 + i},{areas[i % 3]},{full_sq},{water},{product},{1000000 + 50000 * i}")
    path = write_csv_text("\n".join(rows) + "\n")

    checkpoint = tmp_path / "models" / "net.joblib"
    params = TrainingParams(
        test_size=4, batch_size=4, epoch_size=6, epoch_count=2,
        checkpoint_path=str(checkpoint)
    )
    dataset = HousingDataset(path, verbose=False)

    model = train(dataset, params)

    assert model.feature_names == dataset.feature_names
    assert len(model.history) == 2
    assert set(model.metrics) >= {'r2', 'mae', 'mape'}
    assert checkpoint.is_file()
    assert load_model_artifact(str(checkpoint)).feature_names == dataset.feature_names
