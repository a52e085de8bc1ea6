"""Tests for the Lambda handler and routes."""

import json
from datetime import date

import pytest

from creditledger import main


def call(method, path, body=None, query=None):
    event = {
        'requestContext': {'http': {'method': method}},
        'rawPath': path,
        'body': json.dumps(body) if body is not None else None,
        'queryStringParameters': query
    }
    response = main.handler(event, None)
    return response['statusCode'], json.loads(response['body']) if response['body'] else None


@pytest.fixture
def client_id(db):
    status, body = call('POST', '/api/clients', {'code': 'Z03', 'name': 'Ah Seng'})
    assert status == 201
    return body['id']


class TestHandler:

    def test_unknown_route(self, db):
        status, body = call('GET', '/api/nothing')
        assert status == 404
        assert body['error'] == 'not_found'

    def test_invalid_json(self, db):
        event = {'requestContext': {'http': {'method': 'POST'}}, 'rawPath': '/api/clients', 'body': '{'}
        assert main.handler(event, None)['statusCode'] == 400

    def test_cors_headers(self, db):
        event = {'requestContext': {'http': {'method': 'GET'}}, 'rawPath': '/api/clients'}
        response = main.handler(event, None)
        assert response['headers']['Access-Control-Allow-Origin'] == '*'
        assert response['headers']['Content-Type'] == 'application/json'

    def test_stage_prefix(self, db):
        status, _ = call('GET', '/prod/api/clients')
        assert status == 200


class TestClientRoutes:

    def test_create_requires_name(self, db):
        status, _ = call('POST', '/api/clients', {'code': 'Z03'})
        assert status == 400

    def test_list_and_search(self, client_id):
        call('POST', '/api/clients', {'code': 'M01', 'name': 'Mei', 'category': 'mobile'})

        _, body = call('GET', '/api/clients', query={'search': 'seng'})
        assert [c['id'] for c in body['clients']] == [client_id]

        _, body = call('GET', '/api/clients', query={'category': 'mobile'})
        assert [c['code'] for c in body['clients']] == ['M01']

    def test_update_and_delete(self, client_id):
        status, body = call('PATCH', f'/api/clients/{client_id}', {'phone': '012'})
        assert (status, body['phone']) == (200, '012')

        assert call('DELETE', f'/api/clients/{client_id}')[0] == 200
        assert call('DELETE', f'/api/clients/{client_id}')[0] == 404

    def test_ledger_view(self, db, client_id):
        db.insert_sale(client_id, date(2025, 3, 10), b=300)
        call('POST', f'/api/clients/{client_id}/transactions', {
            'label': '中', 'amount': 100, 'operation': 'subtract', 'date': '2025-03-11'
        })

        status, body = call('GET', f'/api/clients/{client_id}/ledger', query={'date': '2025-03-14'})

        assert status == 200
        assert (body['start'], body['end']) == ('2025-03-10', '2025-03-16')
        main_column = body['columns']['main']
        assert [t['label'] for t in main_column['transactions']] == ['Sales Opening', '中']
        assert main_column['balance'] == 200
        assert body['columns']['panel1']['balance'] == 0
        assert body['running_balance'] == 200

    def test_ledger_bad_date(self, client_id):
        status, _ = call('GET', f'/api/clients/{client_id}/ledger', query={'date': '14/03/2025'})
        assert status == 400

    def test_ledger_unknown_client(self, db):
        assert call('GET', '/api/clients/missing/ledger')[0] == 404


class TestTransactionRoutes:

    def test_create_defaults(self, client_id):
        status, body = call('POST', f'/api/clients/{client_id}/transactions', {
            'label': '', 'amount': 25, 'operation': 'add', 'column': 'panel1', 'date': '2025-03-11'
        })
        assert status == 201
        assert body['operation'] == 'none'
        assert body['net'] == 0

    def test_window_date_outside_today(self, client_id):
        status, body = call('POST', f'/api/clients/{client_id}/transactions', {
            'label': '收', 'amount': 25, 'operation': 'add', 'window_date': '2020-01-08'
        })
        assert status == 201
        assert body['date'] == '2020-01-12'

    @pytest.mark.parametrize('payload', [
        {'label': '收', 'amount': -5, 'operation': 'add'},
        {'label': '收', 'amount': 'lots', 'operation': 'add'},
        {'label': '收', 'amount': 'nan', 'operation': 'add'},
        {'label': '收', 'amount': float('nan'), 'operation': 'add'},
        {'label': '收', 'amount': 'Infinity', 'operation': 'add'},
        {'label': '收', 'amount': 5, 'operation': 'add', 'is_visible': 'maybe'},
        {'label': '收', 'amount': 5, 'operation': 'multiply'},
        {'label': '收', 'amount': 5},
    ])
    def test_invalid_entry(self, client_id, payload):
        assert call('POST', f'/api/clients/{client_id}/transactions', payload)[0] == 400

    def test_null_label_is_quick_entry(self, client_id):
        status, body = call('POST', f'/api/clients/{client_id}/transactions', {
            'label': None, 'amount': 25, 'operation': 'add', 'column': 'panel1', 'date': '2025-03-11'
        })
        assert status == 201
        assert (body['label'], body['operation']) == ('', 'none')

    @pytest.mark.parametrize('flag,expected', [('false', False), ('FALSE', False), ('true', True), (0, False)])
    def test_is_visible_parsed_strictly(self, client_id, flag, expected):
        status, body = call('POST', f'/api/clients/{client_id}/transactions', {
            'label': '收', 'amount': 25, 'operation': 'add', 'date': '2025-03-11', 'is_visible': flag
        })
        assert status == 201
        assert body['is_visible'] is expected

    def test_update_parses_fields(self, client_id):
        _, created = call('POST', f'/api/clients/{client_id}/transactions', {
            'label': '收', 'amount': 25, 'operation': 'add', 'date': '2025-03-11'
        })
        txn_path = f"/api/transactions/{created['id']}"

        status, body = call('PATCH', txn_path, {'is_visible': 'false', 'label': None})
        assert (status, body['is_visible'], body['label']) == (200, False, '')
        assert call('PATCH', txn_path, {'is_visible': 'no thanks'})[0] == 400
        assert call('PATCH', txn_path, {'amount': 'NaN'})[0] == 400
        assert call('PATCH', txn_path, {'amount': 10.005})[1]['amount'] == 10.01

    def test_update_and_delete(self, client_id):
        _, created = call('POST', f'/api/clients/{client_id}/transactions', {
            'label': '收', 'amount': 25, 'operation': 'add', 'date': '2025-03-11'
        })

        status, body = call('PATCH', f"/api/transactions/{created['id']}", {'is_visible': False})
        assert (status, body['is_visible']) == (200, False)

        assert call('PATCH', f"/api/transactions/{created['id']}", {'amount': -1})[0] == 400
        assert call('DELETE', f"/api/transactions/{created['id']}")[0] == 200
        assert call('DELETE', f"/api/transactions/{created['id']}")[0] == 404


class TestCategoryRoutes:

    def test_list_seeds_defaults(self, db):
        _, body = call('GET', '/api/categories')
        assert [c['label'] for c in body['categories']][:3] == ['收', '中', '出']

    def test_create_reorder_delete(self, db):
        status, created = call('POST', '/api/categories', {'label': '电话', 'operation': 'subtract'})
        assert status == 201
        assert created['color'] == 'bg-red-100 text-red-800'

        _, listed = call('GET', '/api/categories')
        ids = [c['id'] for c in listed['categories']]
        status, reordered = call('PUT', '/api/categories/order', {'ids': ids[::-1]})
        assert status == 200
        assert reordered['categories'][0]['label'] == '电话'

        assert call('PUT', '/api/categories/order', {'ids': ['nope']})[0] == 400
        assert call('DELETE', f"/api/categories/{created['id']}")[0] == 200
        assert call('DELETE', f"/api/categories/{created['id']}")[0] == 404


class TestPayoutRoutes:

    BETS = [{
        'mode': '4D', 'number': '1234', 'position': '1', 'sides': ['M', 'K'],
        'bet_type': 'Box', 'stakes': {'Big': '240', 'Small': ''}
    }]

    def test_calculate(self, db):
        status, body = call('POST', '/api/payouts/calculate', {'bets': self.BETS})
        assert status == 200
        assert body['total_winnings'] == 13750
        assert body['description'] == 'Winnings: MK 1234 Big Box 240-13750.00 头'

    def test_calculate_invalid(self, db):
        bets = [dict(self.BETS[0], number='12a4')]
        assert call('POST', '/api/payouts/calculate', {'bets': bets})[0] == 400
        assert call('POST', '/api/payouts/calculate', {'bets': []})[0] == 400

    @pytest.mark.parametrize('stake', ['nan', 'inf', float('nan'), 'lots'])
    def test_calculate_non_finite_stake(self, db, stake):
        bets = [dict(self.BETS[0], stakes={'Big': '240', 'Small': stake})]
        status, body = call('POST', '/api/payouts/calculate', {'bets': bets})
        assert status == 400
        assert 'Small' in body['message']

    def test_save_and_reprice(self, client_id):
        status, body = call('POST', '/api/payouts', {
            'client_id': client_id, 'date': '2025-03-12', 'bets': self.BETS
        })
        assert status == 201
        assert body['itemized']['column'] == 'panel1'
        assert body['main']['column'] == 'main'
        assert body['main']['label'] == body['itemized']['label'] == '中'

        status, repriced = call('POST', f"/api/transactions/{body['itemized']['id']}/reprice",
                                {'win_amounts': {'0': 10000}})
        assert status == 200
        assert repriced['amount'] == 10000
        _, ledger_body = call('GET', f'/api/clients/{client_id}/ledger', query={'date': '2025-03-12'})
        assert ledger_body['columns']['main']['balance'] == -10000
        assert ledger_body['columns']['panel1']['balance'] == -10000

        status, _ = call('POST', f"/api/transactions/{body['itemized']['id']}/reprice",
                         {'win_amounts': {'0': 'NaN'}})
        assert status == 400

        status, _ = call('POST', f"/api/transactions/{body['main']['id']}/reprice",
                         {'win_amounts': {'0': 1}})
        assert status == 400

    def test_save_unknown_client(self, db):
        assert call('POST', '/api/payouts', {'client_id': 'x', 'bets': self.BETS})[0] == 404


class TestReportRoutes:

    def test_weeks(self, db):
        status, body = call('GET', '/api/weeks', query={'year': '2025', 'month': '2'})
        assert status == 200
        assert body['weeks']['1'] == ['2025-03-01', '2025-03-02']
        assert body['weeks']['6'][-1] == '2025-04-06'

    def test_weeks_invalid_month(self, db):
        assert call('GET', '/api/weeks', query={'year': '2025', 'month': '12'})[0] == 400

    def test_summary(self, db, client_id):
        db.insert_advance(client_id, date(2025, 3, 5), 80)
        _, body = call('GET', '/api/summary')
        assert body['total_receivables'] == 80

    def test_summary_as_of(self, db, client_id):
        db.insert_advance(client_id, date(2025, 3, 5), 80)
        db.insert_advance(client_id, date(2025, 4, 5), 20)

        status, body = call('GET', '/api/summary', query={'as_of': '2025-03-31'})
        assert status == 200
        assert body['as_of'] == '2025-03-31'
        assert body['total_receivables'] == 80
        assert call('GET', '/api/summary')[1]['total_receivables'] == 100
        assert call('GET', '/api/summary', query={'as_of': '31/03/2025'})[0] == 400

    def test_sales_earnings(self, db, client_id):
        db.insert_sale(client_id, date(2025, 3, 5), b=1000)
        status, body = call('GET', '/api/reports/sales-earnings')
        assert status == 200
        assert body['total'] == 30
