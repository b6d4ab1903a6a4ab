import pytest
from django.urls import reverse
from rest_framework.test import APIClient

from hub.models import User
from hub.services.audit import AuditAction

pytestmark = pytest.mark.django_db


@pytest.fixture
def nurse():
    return User.objects.create_user(username='nurse1', password='P@ssw0rd1', role='NURSE',
                                    first_name='Amina', last_name='Otieno', facility_id='F1')


def login(client, username, password, **extra):
    return client.post(reverse('auth-login'), {'username': username, 'password': password}, format='json', **extra)


def test_login_issues_tokens_and_audits(nurse, audit_sink):
    client = APIClient()
    r = login(client, 'nurse1', 'P@ssw0rd1', HTTP_X_FORWARDED_FOR='41.90.1.2, 10.0.0.1', HTTP_USER_AGENT='pytest')
    assert r.status_code == 200
    assert r.data['ok'] is True
    assert r.data['token'] and r.data['jwt_access'] and r.data['jwt_refresh']
    assert r.data['user']['role'] == 'NURSE'
    assert r.data['user']['name'] == 'Amina Otieno'

    [record] = audit_sink.queued
    assert record.action is AuditAction.LOGIN
    assert record.user_id == str(nurse.pk)
    assert record.ip_address == '41.90.1.2'
    assert record.user_agent == 'pytest'
    assert record.success is True
    assert audit_sink.critical == []


def test_failed_login_goes_through_critical_path(nurse, audit_sink):
    r = login(APIClient(), 'nurse1', 'wrong', REMOTE_ADDR='10.1.1.1')
    assert r.status_code == 400
    assert r.data['ok'] is False
    [record] = audit_sink.critical
    assert record.success is False
    assert record.user_id == 'nurse1'
    assert record.ip_address == '10.1.1.1'
    assert record.error_message == 'Invalid credentials'
    assert audit_sink.queued == []


def test_failed_login_falls_back_to_queue(nurse, audit_sink):
    audit_sink.critical_ok = False
    login(APIClient(), 'nurse1', 'wrong')
    assert len(audit_sink.critical) == 1
    assert audit_sink.queued == audit_sink.critical


def test_login_requires_fields():
    r = APIClient().post(reverse('auth-login'), {'username': 'x'}, format='json')
    assert r.status_code == 400


def test_logout_blacklists_and_audits(nurse, audit_sink):
    client = APIClient()
    r = login(client, 'nurse1', 'P@ssw0rd1')
    client.credentials(HTTP_AUTHORIZATION=f"Token {r.data['token']}")
    out = client.post(reverse('auth-logout'), {'refresh': r.data['jwt_refresh']}, format='json')
    assert out.status_code == 200
    assert out.data == {'ok': True, 'blacklisted': 1}
    assert audit_sink.queued[-1].action is AuditAction.LOGOUT

    again = client.post(reverse('auth-refresh'), {'refresh': r.data['jwt_refresh']}, format='json')
    assert again.status_code == 401


def test_logout_without_refresh_blacklists_all(nurse, audit_sink):
    client = APIClient()
    login(client, 'nurse1', 'P@ssw0rd1')
    r = login(client, 'nurse1', 'P@ssw0rd1')
    client.credentials(HTTP_AUTHORIZATION=f"Token {r.data['token']}")
    out = client.post(reverse('auth-logout'), {}, format='json')
    assert out.data['blacklisted'] == 2


def test_logout_requires_authentication():
    assert APIClient().post(reverse('auth-logout'), {}, format='json').status_code == 401
