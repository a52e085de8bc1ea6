"""Tests for prize payout calculation."""

from datetime import date
from decimal import Decimal

import pytest

from creditledger.models.entities import Column, Operation
from creditledger.services.payout_calc import (
    PayoutCalculator, PayoutValidationError, build_description, calculate_entries,
    is_payout_description, multiplier, parse_description, permutation_count,
    reprice_entries, total_winnings
)


class TestPermutationCount:
    """Distinct digit orderings decide the Box divisor."""

    @pytest.mark.parametrize('number,expected', [
        ('1234', 24),
        ('1123', 12),
        ('1112', 4),
        ('1211', 4),
        ('1122', 6),
        ('1212', 6),
        ('8888', 1),
        ('123', 6),
        ('112', 3),
        ('888', 1),
    ])
    def test_counts(self, number, expected):
        assert permutation_count(number) == expected


class TestMultipliers:

    def test_small_pays_nothing_at_lowest_tiers(self):
        assert multiplier('4D', 'Small', 'S') == 0
        assert multiplier('4D', 'Small', 'C') == 0

    def test_3a_only_first_tier(self):
        assert multiplier('3D', '3A', '1') == 720
        assert multiplier('3D', '3A', '2') == 0


class TestCalculateEntries:
    """Win amounts per bet."""

    def test_box_first_prize(self):
        """1234 Box, stake 240, one side: 240 / 24 * 2750 = 27500."""
        [entry] = calculate_entries('4D', '1234', '1', ['M'], 'Box', {'Big': 240})
        assert entry.win_amount == 27500
        assert entry.bet_category == 'Big'
        assert entry.position_label == '头'

    def test_box_equals_straight_for_single_digit_number(self):
        [box] = calculate_entries('4D', '8888', '2', ['M'], 'Box', {'Big': 10})
        [straight] = calculate_entries('4D', '8888', '2', ['M'], 'Straight', {'Big': 10})
        assert box.win_amount == straight.win_amount == 11000

    def test_pau_pays_like_straight(self):
        [pau] = calculate_entries('4D', '1234', '3', ['K'], 'Pau', {'Small': 2})
        [straight] = calculate_entries('4D', '1234', '3', ['K'], 'Straight', {'Small': 2})
        assert pau.win_amount == straight.win_amount == 2200
        assert pau.bet_type == 'Pau'

    def test_stake_split_across_sides(self):
        [entry] = calculate_entries('4D', '1234', '1', ['T', 'M'], 'Straight', {'Big': 2})
        assert entry.win_amount == 2750
        assert entry.sides == ['M', 'T']

    def test_big_and_small(self):
        entries = calculate_entries('4D', '5678', '1', ['M'], 'Straight', {'Big': 1, 'Small': 1})
        assert [e.win_amount for e in entries] == [2750, 3850]

    def test_small_at_consolation_omitted(self):
        entries = calculate_entries('4D', '5678', 'C', ['M'], 'Straight', {'Big': 1, 'Small': 5})
        assert [(e.bet_category, e.win_amount) for e in entries] == [('Big', 66)]

    def test_no_paying_combination_returns_empty(self):
        assert calculate_entries('4D', '5678', 'S', ['M'], 'Straight', {'Small': 5}) == []

    def test_3d_3a_ignored_below_first_tier(self):
        entries = calculate_entries('3D', '123', '2', ['M'], 'Straight', {'3A': 5, '3ABC': 5})
        assert [(e.bet_category, e.win_amount) for e in entries] == [('3ABC', 1200)]

    def test_3d_box(self):
        [entry] = calculate_entries('3D', '112', '1', ['M'], 'Box', {'3A': 3})
        assert entry.win_amount == 720

    def test_box_win_rounded_to_cents(self):
        """1 / 24 / 3 * 2750 = 38.194..."""
        [entry] = calculate_entries('4D', '1234', '1', ['M', 'K', 'T'], 'Box', {'Big': 1})
        assert entry.win_amount == Decimal('38.19')

    def test_fractional_stakes_sum_exactly(self):
        calc = PayoutCalculator()
        for number in ('1234', '5678', '9012'):
            calc.add_bet('4D', number, 'C', ['M'], 'Straight', {'Big': 0.1})
        assert [e.win_amount for e in calc.entries] == [Decimal('6.60')] * 3
        assert calc.total_winnings == Decimal('19.80')


class TestValidation:
    """Malformed input is rejected before any calculation."""

    @pytest.mark.parametrize('mode,number', [
        ('4D', '123'), ('4D', '12345'), ('3D', '1234'), ('4D', '12a4'), ('4D', ''),
    ])
    def test_bad_number(self, mode, number):
        stake = {'Big': 1} if mode == '4D' else {'3ABC': 1}
        with pytest.raises(PayoutValidationError):
            calculate_entries(mode, number, '1', ['M'], 'Straight', stake)

    def test_empty_sides(self):
        with pytest.raises(PayoutValidationError):
            calculate_entries('4D', '1234', '1', [], 'Straight', {'Big': 1})

    def test_unknown_side(self):
        with pytest.raises(PayoutValidationError):
            calculate_entries('4D', '1234', '1', ['X'], 'Straight', {'Big': 1})

    def test_no_positive_stake(self):
        with pytest.raises(PayoutValidationError):
            calculate_entries('4D', '1234', '1', ['M'], 'Straight', {'Big': 0})

    def test_negative_stake(self):
        with pytest.raises(PayoutValidationError):
            calculate_entries('4D', '1234', '1', ['M'], 'Straight', {'Big': 5, 'Small': -1})

    @pytest.mark.parametrize('value', [float('nan'), float('inf'), 'nan', '-Infinity', 'abc', True])
    def test_non_finite_stake_rejected(self, value):
        with pytest.raises(PayoutValidationError):
            calculate_entries('4D', '1234', '1', ['M'], 'Straight', {'Big': 5, 'Small': value})

    def test_3d_special_position_invalid(self):
        with pytest.raises(PayoutValidationError):
            calculate_entries('3D', '123', 'S', ['M'], 'Straight', {'3ABC': 1})

    def test_stake_category_must_match_mode(self):
        with pytest.raises(PayoutValidationError):
            calculate_entries('3D', '123', '1', ['M'], 'Straight', {'Big': 1})

    def test_validation_error_is_value_error(self):
        assert issubclass(PayoutValidationError, ValueError)


class TestDescription:
    """Saved descriptions can be parsed back and repriced."""

    def test_format(self):
        entries = calculate_entries('4D', '1234', '1', ['M', 'K'], 'Box', {'Big': 240})
        assert build_description(entries) == 'Winnings: MK 1234 Big Box 240-13750.00 头'

    def test_parse_back(self):
        entries = (
            calculate_entries('4D', '1234', 'S', ['M'], 'Straight', {'Big': 1.5})
            + calculate_entries('3D', '987', '3', ['K', 'T'], 'Pau', {'3ABC': 4})
        )
        parsed = parse_description(build_description(entries))

        assert [p.number for p in parsed] == ['1234', '987']
        assert [p.mode for p in parsed] == ['4D', '3D']
        assert [p.position for p in parsed] == ['S', '3']
        assert [p.win_amount for p in parsed] == [e.win_amount for e in entries]
        assert parsed[0].stake == 1.5
        assert parsed[1].sides == ['K', 'T']
        assert parsed[1].bet_type == 'Pau'

    def test_non_payout_description(self):
        assert not is_payout_description('cash handed over')
        assert not is_payout_description('Winnings: something else')
        with pytest.raises(PayoutValidationError):
            parse_description('')

    def test_reprice(self):
        entries = calculate_entries('4D', '5678', '1', ['M'], 'Straight', {'Big': 1, 'Small': 1})
        edited = reprice_entries(entries, {1: 3000})
        assert [e.win_amount for e in edited] == [2750, 3000]
        assert total_winnings(edited) == 5750
        assert entries[1].win_amount == 3850

    @pytest.mark.parametrize('value', [float('nan'), 'inf', '-1'])
    def test_reprice_rejects_bad_amount(self, value):
        entries = calculate_entries('4D', '5678', '1', ['M'], 'Straight', {'Big': 1})
        with pytest.raises(PayoutValidationError):
            reprice_entries(entries, {0: value})

    def test_reprice_rounds_to_cents(self):
        entries = calculate_entries('4D', '5678', '1', ['M'], 'Straight', {'Big': 1})
        [edited] = reprice_entries(entries, {0: '100.005'})
        assert edited.win_amount == Decimal('100.01')

    def test_reprice_bad_index(self):
        entries = calculate_entries('4D', '5678', '1', ['M'], 'Straight', {'Big': 1})
        with pytest.raises(PayoutValidationError):
            reprice_entries(entries, {3: 10})


class TestCalculatorSession:
    """Entries accumulate and save as two transactions."""

    def test_accumulates_newest_first(self):
        calc = PayoutCalculator()
        calc.add_bet('4D', '1234', '1', ['M'], 'Straight', {'Big': 1})
        calc.add_bet('3D', '123', '1', ['M'], 'Straight', {'3A': 1})
        assert [e.number for e in calc.entries] == ['123', '1234']
        assert calc.total_winnings == 3470

    def test_remove_entry(self):
        calc = PayoutCalculator()
        [entry] = calc.add_bet('4D', '1234', '1', ['M'], 'Straight', {'Big': 1})
        calc.remove_entry(entry.id)
        assert calc.entries == []
        assert calc.total_winnings == 0

    def test_build_transactions(self):
        calc = PayoutCalculator()
        calc.add_bet('4D', '1234', '2', ['M'], 'Straight', {'Big': 1})
        calc.add_bet('4D', '4321', 'C', ['M'], 'Straight', {'Big': 1.5})
        settle = date(2025, 6, 1)

        itemized, aggregate = calc.build_transactions('c1', settle)

        assert itemized.amount == aggregate.amount == 1199
        assert itemized.operation is aggregate.operation is Operation.SUBTRACT
        assert itemized.column is Column.PANEL1
        assert aggregate.column is Column.MAIN
        assert itemized.description == calc.description()
        assert aggregate.description == ''
        assert itemized.date == aggregate.date == settle
        assert itemized.is_visible and aggregate.is_visible

    def test_build_without_entries(self):
        with pytest.raises(PayoutValidationError):
            PayoutCalculator().build_transactions('c1', date(2025, 6, 1))
