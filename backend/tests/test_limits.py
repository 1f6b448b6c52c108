import math

from partyfinder.limits import (
    clamp_int,
    clamp_power,
    clean_text,
    hash_passcode,
    passcode_matches,
    random_id,
)


def test_power_is_clamped_into_range():
    assert clamp_power(-5) == 0
    assert clamp_power(200000) == 99999
    assert clamp_power(1234) == 1234


def test_non_finite_and_junk_become_zero():
    assert clamp_power(math.inf) == 0
    assert clamp_power(-math.inf) == 0
    assert clamp_power(math.nan) == 0
    assert clamp_int('lots') == 0
    assert clamp_int(None) == 0


def test_fractions_truncate_and_buffs_cap_at_9999():
    assert clamp_int(12.9) == 12
    assert clamp_int(-0.5) == 0
    assert clamp_int(10000) == 9999
    assert clamp_int('42') == 42


def test_clean_text_trims_then_bounds_length():
    assert clean_text('  hello  ', 20) == 'hello'
    assert clean_text('x' * 50, 20) == 'x' * 20
    assert clean_text('   ', 20) == ''
    assert clean_text(None, 20) == ''


def test_same_passcode_differs_per_party():
    assert hash_passcode('partyAAA', '1234') != hash_passcode('partyBBB', '1234')
    assert hash_passcode('partyAAA', '1234') == hash_passcode('partyAAA', '1234')
    assert '1234' not in hash_passcode('partyAAA', '1234')


def test_passcode_matches_only_for_the_right_party_and_secret():
    stored = hash_passcode('partyAAA', '1234')
    assert passcode_matches('partyAAA', '1234', stored)
    assert not passcode_matches('partyAAA', '9999', stored)
    assert not passcode_matches('partyBBB', '1234', stored)
    assert not passcode_matches('partyAAA', '1234', None)


def test_random_ids_have_requested_length():
    ids = {random_id(8) for _ in range(50)}
    assert all(len(i) == 8 for i in ids)
    assert len(ids) > 1
