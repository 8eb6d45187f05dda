#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
地址标准化测试
"""
import pytest

from address_dedup.core.address_normalizer import (AddressNormalizer, RuleBasedParser, acquire_parser,
                                                   clean_text, fold_text)
from address_dedup.core.exceptions import ConfigurationError, NormalizationError
from address_dedup.core.models import NormalizedAddress


def test_clean_text_lowercases_and_strips_punctuation():
    assert clean_text('  R. de la Paix ') == 'r de la paix'
    assert clean_text('Rue de l’Église') == "rue de l'église"
    assert clean_text(None) == ''
    assert clean_text('???') == ''


def test_fold_text_removes_accents_and_separators():
    assert fold_text("allée de l'église") == 'allee de l eglise'
    assert fold_text('saint-germain') == 'saint germain'


def test_abbreviated_and_full_street_share_an_expansion(make_normalized):
    full = make_normalized(street='Rue de la Paix')
    short = make_normalized(source='osm', street='R. de la Paix')

    assert full.street_name == 'rue de la paix'
    assert short.street_name == 'rue de la paix'
    assert 'rue de la paix' in full.expansions & short.expansions


def test_expansions_always_contain_street_name(make_normalized):
    address = make_normalized(street='Bd Saint-Michel')
    assert address.street_name in address.expansions
    assert 'boulevard saint michel' in address.expansions


def test_trailing_st_prefers_street(make_normalized):
    address = make_normalized(street='Main St')
    assert address.street_name == 'main street'


def test_house_number_extracted_from_street(make_normalized):
    address = make_normalized(street='12 bis rue des Lilas')
    assert address.house_number == '12bis'
    assert address.street_name == 'rue des lilas'


def test_year_in_street_name_is_not_a_house_number(make_normalized):
    address = make_normalized(street='Rue du 8 Mai 1945')
    assert address.house_number == ''
    assert address.street_name == 'rue du 8 mai 1945'


@pytest.mark.parametrize('marker', ['S/N', 'sn', 'SN', '0'])
def test_no_number_markers_become_empty(make_normalized, marker):
    address = make_normalized(house_number=marker, street='Chemin des Vignes')
    assert address.house_number == ''


def test_postcode_split_from_city(make_normalized):
    address = make_normalized(street='Rue de Rivoli', city='75001 Paris Cedex 01')
    assert address.postcode == '75001'
    assert address.city == 'paris'


@pytest.mark.parametrize('fields', [
    {},
    {'street': '---', 'city': '  '},
    {'house_number': '...', 'postcode': '/'},
])
def test_unparseable_records_raise(normalizer, make_raw, fields):
    with pytest.raises(NormalizationError) as exc_info:
        normalizer.normalize(make_raw(source='bano', source_id='x', **fields))

    error = exc_info.value
    assert error.kind == NormalizationError.UNPARSEABLE
    assert error.source == 'bano'
    assert error.source_id == 'x'


def test_missing_geometry_only_when_required(make_raw):
    record = make_raw(street='Rue de la Paix')

    assert AddressNormalizer({'require_geometry': False}).normalize(record).has_geometry is False
    with pytest.raises(NormalizationError) as exc_info:
        AddressNormalizer({'require_geometry': True}).normalize(record)
    assert exc_info.value.kind == NormalizationError.MISSING_GEOMETRY


def test_missing_house_number_only_when_required(make_raw):
    record = make_raw(house_number='S/N', street='Rue de la Paix', lat=48.0, lon=2.0)

    assert AddressNormalizer().normalize(record).house_number == ''
    with pytest.raises(NormalizationError) as exc_info:
        AddressNormalizer({'require_house_number': True}).normalize(record)
    assert exc_info.value.kind == NormalizationError.MISSING_HOUSE_NUMBER


def test_batch_normalize_keeps_input_order(normalizer, make_raw):
    records = [make_raw(source_id=str(i), street=f'Rue {i}') if i % 3 else make_raw(source_id=str(i))
               for i in range(30)]

    results = normalizer.batch_normalize(records, n_jobs=4)

    assert len(results) == len(records)
    for i, result in enumerate(results):
        if i % 3:
            assert isinstance(result, NormalizedAddress)
            assert result.record.source_id == str(i)
        else:
            assert isinstance(result, NormalizationError)
            assert result.source_id == str(i)


def test_parser_handle_is_shared():
    assert acquire_parser('rules') is acquire_parser('rules')
    assert isinstance(acquire_parser('rules'), RuleBasedParser)


def test_unknown_backend_is_configuration_error():
    with pytest.raises(ConfigurationError):
        acquire_parser('nonexistent')


def test_libpostal_backend_expands_street(make_raw):
    pytest.importorskip('postal')
    normalizer = AddressNormalizer({'backend': 'libpostal'})
    address = normalizer.normalize(make_raw(house_number='2', street='R. de la Paix', city='Paris'))
    assert address.house_number == '2'
    assert address.expansions
