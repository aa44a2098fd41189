"""
Pytest configuration and fixtures.
"""

import textwrap

import pandas as pd
import pytest


SCENARIO_CSV = """\
id,timestamp,sub_area,full_sq,price_doc
1,2011-08-20,Bibirevo,43,5850000
2,2011-08-23,Nagatinskij Zaton,34,6000000
3,2011-08-27,Bibirevo,NA,5700000
4,2011-09-01,Nagatinskij Zaton,89,13100000
5,2011-09-05,Bibirevo,77,16331452
"""


@pytest.fixture
def write_csv_text(tmp_path):
    """Factory writing CSV text to a file under tmp_path and returning its path."""
    def _write(text: str, name: str = "housing.csv"):
        path = tmp_path / name
        path.write_text(textwrap.dedent(text), encoding="utf-8")
        return path
    return _write


@pytest.fixture
def scenario_csv(write_csv_text):
    return write_csv_text(SCENARIO_CSV)


@pytest.fixture
def housing_records():
    """Small parsed record frame covering every column group of the pipeline."""
    return pd.DataFrame({
        'id': [1, 2, 3, 4, 5, 6],
        'timestamp': ['2011-08-20', '2011-08-23', 'NA', '2011-09-01', '2011-09-05', '2011-09-10'],
        'full_sq': [43, 34, 'NA', 89, 77, 67],
        'life_sq': [27.0, 19.5, 'NA', 50.0, 'NA', 46.0],
        'sub_area': ['Bibirevo', 'Nagatinskij Zaton', 'Bibirevo', 'Tekstil\'shhiki', 'Bibirevo', 'NA'],
        'ecology': ['good', 'excellent', 'poor', 'good', 'no data', 'good'],
        'product_type': ['Investment', 'Investment', 'OwnerOccupier', 'NA', 'Investment', 'OwnerOccupier'],
        'water_1line': ['no', 'yes', 'no', 'NA', 'yes', 'no'],
        'railroad_1line': ['no', 'no', 'yes', 'no', 'no', 'no'],
        'price_doc': [5850000, 6000000, 5700000, 13100000, 16331452, 9100000],
    })
