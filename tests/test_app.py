from conftest import make_expense


def create_group(client, *members, currency='EUR'):
    creator, *others = members
    response = client.post('/api/groups', json={
        'name': 'Weekend',
        'currency': currency,
        'member_id': creator,
        'display_name': creator.upper()
    })
    assert response.status_code == 201
    group_id = response.get_json()['group']['id']
    for member_id in others:
        joined = client.post(f'/api/groups/{group_id}/join', json={
            'member_id': member_id,
            'display_name': member_id.upper()
        })
        assert joined.status_code == 200
    return group_id


def add_expense(client, group_id, **payload):
    payload.setdefault('description', 'Dinner')
    return client.post(f'/api/groups/{group_id}/expenses', json=payload)


def balances(client, group_id):
    response = client.get(f'/api/groups/{group_id}/balances')
    assert response.status_code == 200
    return response.get_json()['balances']


def test_create_and_fetch_group(client):
    group_id = create_group(client, 'a', 'b')

    response = client.get(f'/api/groups/{group_id}')
    data = response.get_json()

    assert response.status_code == 200
    assert data['group']['currency'] == 'EUR'
    assert [m['member_id'] for m in data['group']['members']] == ['a', 'b']


def test_group_validation(client):
    assert client.post('/api/groups', json={'member_id': 'a'}).status_code == 400
    assert client.post('/api/groups', json={'name': 'x'}).status_code == 400
    assert client.post('/api/groups', json={'name': 'x', 'member_id': 'a', 'currency': 'euro'}).status_code == 400
    assert client.post('/api/groups', json={
        'name': 'x', 'member_id': 'a', 'phone_number': '12'
    }).status_code == 400


def test_missing_group_is_404(client):
    assert client.get('/api/groups/999').status_code == 404
    assert client.get('/api/groups/999/balances').status_code == 404
    assert client.post('/api/groups/999/join', json={'member_id': 'a'}).status_code == 404


def test_list_member_groups(client):
    create_group(client, 'a', 'b')
    create_group(client, 'c')

    response = client.get('/api/groups?member_id=b')

    assert len(response.get_json()['groups']) == 1
    assert client.get('/api/groups').status_code == 400


def test_join_twice_is_harmless(client):
    group_id = create_group(client, 'a', 'b')

    response = client.post(f'/api/groups/{group_id}/join', json={'member_id': 'b'})

    assert response.get_json()['message'] == 'Already a member'


def test_equal_split_scenario_and_settlement(client):
    group_id = create_group(client, 'a', 'b')

    response = add_expense(client, group_id, total_amount='30.00', payer='a')
    assert response.status_code == 201
    expense = response.get_json()['expense']
    assert expense['category'] == 'general'
    assert [(s['member_id'], s['amount']) for s in expense['splits']] == [('a', '15.00'), ('b', '15.00')]

    assert balances(client, group_id) == {'a': '15.00', 'b': '-15.00'}

    settled = client.post(f'/api/groups/{group_id}/settlements', json={
        'from_member': 'b', 'to_member': 'a', 'amount': '15.00'
    })
    assert settled.status_code == 201
    assert balances(client, group_id) == {'a': '0.00', 'b': '0.00'}


def test_percentage_split_scenario(client):
    group_id = create_group(client, 'a', 'b', 'c')

    response = add_expense(client, group_id, total_amount='100.00', payer='a', split_policy={
        'type': 'percentage', 'shares': {'a': 50, 'b': 25, 'c': 25}
    })

    assert response.status_code == 201
    assert balances(client, group_id) == {'a': '50.00', 'b': '-25.00', 'c': '-25.00'}


def test_custom_split_scenario(client):
    group_id = create_group(client, 'a', 'b', 'c')

    response = add_expense(client, group_id, total_amount='100.00', payer='a', split_policy={
        'type': 'custom', 'amounts': {'a': '33.33', 'b': '33.33', 'c': '33.34'}
    })

    assert response.status_code == 201
    assert balances(client, group_id) == {'a': '66.67', 'b': '-33.33', 'c': '-33.34'}


def test_custom_split_residual_cent_is_absorbed_into_total(client):
    group_id = create_group(client, 'a', 'b', 'c')

    response = add_expense(client, group_id, total_amount='100.00', payer='a', split_policy={
        'type': 'custom', 'amounts': {'a': '33.33', 'b': '33.33', 'c': '33.33'}
    })

    assert response.get_json()['expense']['total_amount'] == '99.99'
    assert balances(client, group_id) == {'a': '66.66', 'b': '-33.33', 'c': '-33.33'}


def test_equal_split_remainder_follows_roster_order(client):
    group_id = create_group(client, 'a', 'b', 'c')

    response = add_expense(client, group_id, total_amount='10.00', payer='b', split_policy={
        'type': 'equal', 'participants': ['c', 'a', 'b']
    })

    splits = response.get_json()['expense']['splits']
    assert [(s['member_id'], s['amount']) for s in splits] == [('a', '3.34'), ('b', '3.33'), ('c', '3.33')]


def test_split_policy_failures_name_the_mismatch(client):
    group_id = create_group(client, 'a', 'b')

    percentage = add_expense(client, group_id, total_amount='10.00', payer='a', split_policy={
        'type': 'percentage', 'shares': {'a': 60, 'b': 30}
    })
    assert percentage.status_code == 400
    assert percentage.get_json()['details']['code'] == 'percentage_mismatch'
    assert '90' in percentage.get_json()['error']

    custom = add_expense(client, group_id, total_amount='10.00', payer='a', split_policy={
        'type': 'custom', 'amounts': {'a': '5.00', 'b': '4.00'}
    })
    assert custom.status_code == 400
    assert custom.get_json()['details'] == {
        'code': 'custom_amount_mismatch',
        'message': custom.get_json()['error'],
        'expected': '10.00',
        'actual': '9.00'
    }

    empty = add_expense(client, group_id, total_amount='10.00', payer='a', split_policy={
        'type': 'equal', 'participants': []
    })
    assert empty.get_json()['details']['code'] == 'empty_participant_set'

    # nothing was persisted
    assert client.get(f'/api/groups/{group_id}/expenses').get_json()['expenses'] == []


def test_expense_validation(client):
    group_id = create_group(client, 'a', 'b')

    assert add_expense(client, group_id, total_amount='abc', payer='a').status_code == 400
    assert add_expense(client, group_id, total_amount='1.005', payer='a').status_code == 400
    assert add_expense(client, group_id, total_amount='0', payer='a').status_code == 400
    assert add_expense(client, group_id, total_amount='5.00', payer='zed').status_code == 400
    assert add_expense(client, group_id, total_amount='5.00').status_code == 400
    assert add_expense(client, group_id, total_amount='5.00', payer='a', split_policy={
        'type': 'equal', 'participants': ['a', 'zed']
    }).status_code == 400
    assert add_expense(client, group_id, total_amount='5.00', payer='a', split_policy={
        'type': 'shares'
    }).status_code == 400
    assert add_expense(client, 999, total_amount='5.00', payer='a').status_code == 404


def test_list_and_delete_expense(client):
    group_id = create_group(client, 'a', 'b')
    expense_id = add_expense(client, group_id, total_amount='8.00', payer='a').get_json()['expense']['id']

    listed = client.get(f'/api/groups/{group_id}/expenses').get_json()['expenses']
    assert [e['id'] for e in listed] == [expense_id]

    assert client.delete(f'/api/expenses/{expense_id}').status_code == 200
    assert client.delete(f'/api/expenses/{expense_id}').status_code == 404
    assert balances(client, group_id) == {'a': '0.00', 'b': '0.00'}


def test_settlement_validation(client):
    group_id = create_group(client, 'a', 'b')
    url = f'/api/groups/{group_id}/settlements'

    assert client.post(url, json={'from_member': 'a', 'to_member': 'a', 'amount': '1'}).status_code == 400
    assert client.post(url, json={'from_member': 'a', 'to_member': 'zed', 'amount': '1'}).status_code == 400
    assert client.post(url, json={'from_member': 'a', 'to_member': 'b', 'amount': '-1'}).status_code == 400
    assert client.post(url, json={'from_member': 'a', 'to_member': 'b'}).status_code == 400


def test_reverse_settlement(client):
    group_id = create_group(client, 'a', 'b')
    add_expense(client, group_id, total_amount='30.00', payer='a')
    settlement = client.post(f'/api/groups/{group_id}/settlements', json={
        'from_member': 'b', 'to_member': 'a', 'amount': '15.00'
    }).get_json()['settlement']

    response = client.post(f"/api/settlements/{settlement['id']}/reverse")
    reversal = response.get_json()['settlement']

    assert response.status_code == 201
    assert (reversal['from_member'], reversal['to_member'], reversal['amount']) == ('a', 'b', '15.00')
    assert reversal['reverses_id'] == settlement['id']
    assert balances(client, group_id) == {'a': '15.00', 'b': '-15.00'}

    assert client.post(f"/api/settlements/{settlement['id']}/reverse").status_code == 400
    assert client.post(f"/api/settlements/{reversal['id']}/reverse").status_code == 400
    assert client.post('/api/settlements/999/reverse').status_code == 404

    listed = client.get(f'/api/groups/{group_id}/settlements').get_json()['settlements']
    assert len(listed) == 2


def test_suggested_transfers(client):
    group_id = create_group(client, 'a', 'b', 'c')
    add_expense(client, group_id, total_amount='300.00', payer='a')
    add_expense(client, group_id, total_amount='100.00', payer='b')

    response = client.get(f'/api/groups/{group_id}/transfers')
    transfers = response.get_json()['transfers']

    # the spare cent of b's expense lands on a, first on the roster
    assert balances(client, group_id) == {'a': '166.66', 'b': '-33.33', 'c': '-133.33'}
    assert [(t['from_member'], t['to_member'], t['amount']) for t in transfers] == [
        ('c', 'a', '133.33'), ('b', 'a', '33.33')
    ]
    assert transfers[0]['message'] == 'C owes A €133.33'


def test_balances_fail_loudly_on_inconsistent_history(client, db):
    group_id = create_group(client, 'a', 'b')
    db.save_expense(make_expense('a', '30.00', {'a': '10.00', 'b': '10.00'}, group_id=group_id))

    response = client.get(f'/api/groups/{group_id}/balances')

    assert response.status_code == 500
    inconsistencies = response.get_json()['inconsistencies']
    assert inconsistencies[0]['split_total'] == '20.00'
    assert client.get(f'/api/groups/{group_id}/transfers').status_code == 500


def test_notify_transfers_skips_without_credentials(client, monkeypatch):
    from config import Config

    monkeypatch.setattr(Config, 'TWILIO_ACCOUNT_SID', '')
    group_id = create_group(client, 'a')
    client.post(f'/api/groups/{group_id}/join', json={'member_id': 'b', 'phone_number': '+31 6 12345678'})
    add_expense(client, group_id, total_amount='20.00', payer='a')

    response = client.post(f'/api/groups/{group_id}/transfers/notify')

    assert response.status_code == 200
    assert response.get_json()['notifications'] == [{'member_id': 'b', 'success': False}]


def test_oversized_total_is_a_validation_error(client):
    group_id = create_group(client, 'a', 'b')

    response = add_expense(client, group_id, total_amount='9' * 30, payer='a')

    assert response.status_code == 400
    assert 'too large' in response.get_json()['error']

    custom = add_expense(client, group_id, total_amount='10.00', payer='a', split_policy={
        'type': 'custom', 'amounts': {'a': '9' * 30}
    })
    assert custom.status_code == 400


def test_public_group_summary_hides_contact_details(client):
    group_id = create_group(client, 'a')
    client.post(f'/api/groups/{group_id}/join', json={
        'member_id': 'b', 'display_name': 'Ben', 'phone_number': '+31612345678'
    })

    response = client.get(f'/api/groups/{group_id}/public')
    group = response.get_json()['group']

    assert response.status_code == 200
    assert group == {
        'id': group_id,
        'name': 'Weekend',
        'currency': 'EUR',
        'member_count': 2,
        'members': ['A', 'Ben']
    }
    assert '+31612345678' not in response.get_data(as_text=True)
    assert client.get('/api/groups/999/public').status_code == 404


def test_history_of_missing_group_is_404(client):
    assert client.get('/api/groups/999/expenses').status_code == 404
    assert client.get('/api/groups/999/settlements').status_code == 404
