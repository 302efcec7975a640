"""
Patient and Profile model tests
"""

import pytest

from apps.patients.models import InjectionStatus, Patient, Profile


@pytest.mark.django_db
class TestPatient:
    """Schedule helpers on the patient record"""

    def test_scheduled_injections_skips_other_statuses_and_bad_entries(self):
        patient = Patient.objects.create(
            full_name='Aziza',
            injections=[
                {'id': '1', 'date': '2025-03-02', 'status': InjectionStatus.SCHEDULED},
                {'id': '2', 'date': '2025-03-03', 'status': InjectionStatus.COMPLETED},
                {'id': '3', 'status': InjectionStatus.SCHEDULED},
                'garbage',
            ],
        )

        assert [inj['id'] for inj in patient.scheduled_injections()] == ['1']

    def test_display_name_falls_back(self):
        assert Patient(full_name='').display_name == 'Patient'
        assert str(Patient(full_name='Aziza')) == 'Aziza'


class TestProfileContactPhone:
    """Phone-login accounts keep their number in the email"""

    def test_explicit_phone_wins(self):
        profile = Profile(phone='+998 90 123 45 67', email='998901112233@graftcare.uz')
        assert profile.contact_phone == '+998 90 123 45 67'

    def test_phone_from_email_local_part(self):
        assert Profile(email='998901234567@graftcare.uz').contact_phone == '998901234567'

    def test_regular_email_has_no_phone(self):
        assert Profile(email='dr.karimov@graftcare.uz').contact_phone == ''
        assert Profile().contact_phone == ''
