import json

from flask.testing import FlaskClient


def run_self_tests(app):
    """Basic smoke tests to ensure the app serves and CSV I/O works."""
    print('[TEST] starting self tests…')
    with app.test_client() as c:  # type: FlaskClient
        r = c.get('/api/health')
        assert r.status_code == 200 and r.json.get('ok') is True

        r = c.get('/api/customers')
        assert r.status_code == 200
        before = r.get_json()
        assert isinstance(before, list)

        r = c.get('/api/customers/next-id')
        expected_id = r.json.get('id')
        assert expected_id >= 1000

        payload = {
            'customer_number': 0,
            'first_name': 'Ana',
            'last_name': 'Selftest',
            'company': 'Studio "Nord", GmbH',
            'email': 'ana@example.com',
        }
        r = c.post('/api/customers', data=json.dumps(payload), content_type='application/json')
        assert r.status_code == 201 and r.json.get('ok')
        new_id = r.json.get('id')
        assert new_id == expected_id
        folder = r.json['record']['folder_path']
        assert folder.endswith(f'C_{new_id}')

        r = c.post('/api/customers', data=json.dumps(dict(payload, customer_number=new_id)),
                   content_type='application/json')
        assert r.status_code == 409

        r = c.put(f'/api/customers/{new_id}', data=json.dumps(dict(payload, city='Köln')),
                  content_type='application/json')
        assert r.status_code == 200 and r.json['record']['folder_path'] == folder
        assert not r.json.get('warnings')

        project = {
            'customer_number': new_id,
            'project_name': 'Hochzeit Ana',
            'booking': '2025-06-14 00:00:00',
            'booking_time': '14:30',
            'photography': True,
        }
        r = c.post('/api/projects', data=json.dumps(project), content_type='application/json')
        assert r.status_code == 201
        project_id = r.json.get('id')
        assert r.json['record']['booking_time'] == '14:30'

        r = c.get(f'/api/projects?customer={new_id}')
        assert r.status_code == 200 and [p['project_id'] for p in r.json] == [project_id]

        r = c.get('/api/customers/export.csv')
        assert r.status_code == 200 and r.data.startswith(b'CustomerNumber,FirstName,LastName')
        assert b'"Studio ""Nord"", GmbH"' in r.data

        r = c.post(f'/api/customers/{new_id}/folder')
        assert r.status_code == 200 and r.json.get('path') == folder

        r = c.delete(f'/api/projects/{project_id}')
        assert r.status_code == 200 and r.json.get('deleted') is True

        r = c.delete(f'/api/customers/{new_id}')
        assert r.status_code == 200 and r.json.get('deleted') is True

        r = c.get(f'/api/customers/{new_id}')
        assert r.status_code == 404

        r = c.delete('/api/customers/999999')
        assert r.status_code == 200 and r.json.get('deleted') is False

        r = c.get('/api/invoices')
        assert r.status_code == 404

    print('[TEST] all self tests passed!')
