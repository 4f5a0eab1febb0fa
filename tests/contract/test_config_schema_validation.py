from __future__ import annotations

import json

import jsonschema
import pytest
import yaml

from vehicle_lists.config.loader import SCHEMA_PATH

"""Config schema contract tests."""


@pytest.fixture(scope="module")
def schema() -> dict:
    return json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))


def test_sample_config_is_valid(schema, sample_config_yaml):
    jsonschema.validate(yaml.safe_load(sample_config_yaml), schema)


def test_empty_config_is_valid(schema):
    jsonschema.validate({}, schema)


def test_dsn_only_database(schema):
    jsonschema.validate({"database": {"dsn": "postgresql://app@db/lists"}}, schema)


@pytest.mark.parametrize(
    "data",
    [
        {"batch_size": 0},
        {"batch_size": 501},
        {"batch_size": "500"},
        {"collections": {"lists": "l", "extra": "x"}},
        {"database": {"port": "5432"}},
        {"database": {"table": "1abc"}},
        {"source_directory": "./data"},
    ],
)
def test_invalid_configs_rejected(schema, data):
    with pytest.raises(jsonschema.exceptions.ValidationError):
        jsonschema.validate(data, schema)
