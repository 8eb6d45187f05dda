#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
配置测试
"""
import json

import pytest

from address_dedup.config.config import Config, load_config, merge_config, validate_config
from address_dedup.core.exceptions import ConfigurationError


def test_default_config_is_valid_and_isolated():
    config = Config.default_config()
    validate_config(config)

    config['spatial']['max_distance_m'] = 1.0
    assert Config.ALGORITHM_CONFIG['spatial']['max_distance_m'] == 300.0


def test_merge_config_updates_sections():
    merged = merge_config(Config.default_config(), {'clustering': {'merge_threshold': 0.9}})
    assert merged['clustering']['merge_threshold'] == 0.9
    assert merged['clustering']['no_geometry_policy'] == 'singleton'
    assert Config.ALGORITHM_CONFIG['clustering']['merge_threshold'] != 0.9


def test_load_config_from_json_with_overrides(tmp_path):
    path = tmp_path / 'config.json'
    path.write_text(json.dumps({
        'spatial': {'max_distance_m': 150},
        'canonical': {'source_priority': ['osm', 'bano', 'openaddresses']},
    }), encoding='utf-8')

    config = load_config(path, {'clustering': {'merge_threshold': 0.7}})

    assert config['spatial']['max_distance_m'] == 150
    assert config['canonical']['source_priority'][0] == 'osm'
    assert config['clustering']['merge_threshold'] == 0.7


def test_unreadable_config_file(tmp_path):
    path = tmp_path / 'broken.json'
    path.write_text('{not json', encoding='utf-8')

    with pytest.raises(ConfigurationError):
        load_config(path)
    with pytest.raises(ConfigurationError):
        load_config(tmp_path / 'missing.json')


@pytest.mark.parametrize('overrides', [
    {'spatial': {'max_distance_m': -5}},
    {'spatial': {'max_distance_m': 0}},
    {'spatial': {'max_distance_m': float('nan')}},
    {'spatial': {'max_distance_m': float('inf')}},
    {'clustering': {'merge_threshold': float('nan')}},
    {'weights': {'geometric': float('nan')}},
    {'spatial': {'cell_size_m': 10}},
    {'weights': {'geometric': 1.5}},
    {'weights': {'geometric': 0, 'lexical': 0}},
    {'lexical_weights': {'street': -0.1}},
    {'clustering': {'merge_threshold': 1.01}},
    {'clustering': {'no_geometry_policy': 'guess'}},
    {'clustering': {'oversized_policy': 'drop'}},
    {'scoring': {'street_metric': 'soundex'}},
    {'normalization': {'backend': 'magic'}},
    {'canonical': {'source_priority': ['bano', 'osm', 'tiger']}},
    {'canonical': {'source_priority': ['bano', 'osm']}},
    {'canonical': {'source_priority': ['bano', 'bano', 'osm', 'openaddresses']}},
    {'canonical': {'source_priority': []}},
    {'canonical': {'geometry_source': 'tiger'}},
    {'performance': {'n_jobs': 0}},
    {'performance': {'batch_size': 'big'}},
])
def test_invalid_values_raise_configuration_error(overrides):
    with pytest.raises(ConfigurationError):
        load_config(overrides=overrides)



def test_nan_in_config_file_is_rejected(tmp_path):
    path = tmp_path / 'nan.json'
    path.write_text('{"spatial": {"max_distance_m": NaN}}', encoding='utf-8')

    with pytest.raises(ConfigurationError):
        load_config(path)
