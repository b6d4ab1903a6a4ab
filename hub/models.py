"""
Database models for the emergency hub backend.

Only two concepts live in the relational store here: the staff user
(with the role and facility used to attribute audit entries) and the
append-only audit trail.  Patients, dispatches, ambulances and claims
are owned by other services; audit rows reference them by
``entity_type``/``entity_id`` strings only.
"""
from __future__ import annotations

from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    """Staff account with a role and an optional facility binding.

    Roles mirror the front-end roles.  ``facility_id`` identifies the
    hospital, health centre or dispensary the account works for and is
    copied onto every audit entry the user produces.
    """
    ROLE_CHOICES = [
        ('SUPER_ADMIN', 'Super Administrator'),
        ('ADMIN', 'Administrator'),
        ('HOSPITAL_ADMIN', 'Hospital Administrator'),
        ('DOCTOR', 'Doctor'),
        ('NURSE', 'Nurse'),
        ('DISPATCHER', 'Dispatcher'),
        ('TRIAGE_OFFICER', 'Triage Officer'),
        ('AMBULANCE_CREW', 'Ambulance Crew'),
    ]
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default='NURSE')
    facility_id = models.CharField(max_length=64, blank=True, null=True, db_index=True)

    @property
    def display_name(self) -> str:
        return self.get_full_name() or self.username

    def __str__(self) -> str:
        return f"{self.username} ({self.role})"


class AuditLog(models.Model):
    """One persisted audit entry.

    Rows are written by the background audit sink and never edited
    afterwards.  ``timestamp`` is assigned by the database write, not
    when the record was built by the caller.
    """
    ACTION_CHOICES = [
        ('CREATE', 'CREATE'),
        ('READ', 'READ'),
        ('UPDATE', 'UPDATE'),
        ('DELETE', 'DELETE'),
        ('LOGIN', 'LOGIN'),
        ('LOGOUT', 'LOGOUT'),
        ('APPROVE', 'APPROVE'),
        ('REJECT', 'REJECT'),
        ('TRANSFER', 'TRANSFER'),
        ('DISCHARGE', 'DISCHARGE'),
        ('PRESCRIBE', 'PRESCRIBE'),
        ('SUBMIT_CLAIM', 'SUBMIT_CLAIM'),
        ('CANCEL', 'CANCEL'),
        ('OVERRIDE', 'OVERRIDE'),
    ]
    user_id = models.CharField(max_length=64)
    user_role = models.CharField(max_length=32)
    user_name = models.CharField(max_length=255, default='System')
    action = models.CharField(max_length=20, choices=ACTION_CHOICES)
    entity_type = models.CharField(max_length=64)
    entity_id = models.CharField(max_length=128)
    description = models.TextField()
    changes = models.JSONField(blank=True, null=True)
    ip_address = models.CharField(max_length=64, blank=True, null=True)
    user_agent = models.TextField(blank=True, null=True)
    facility_id = models.CharField(max_length=64, blank=True, null=True)
    success = models.BooleanField(default=True)
    error_message = models.TextField(blank=True, null=True)
    timestamp = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        db_table = 'audit_logs'
        ordering = ['-timestamp']
        indexes = [
            models.Index(fields=['user_id', 'timestamp'], name='audit_logs_user_id_5a0c3e_idx'),
            models.Index(fields=['entity_type', 'entity_id'], name='audit_logs_entity__8d1f2b_idx'),
            models.Index(fields=['action', 'timestamp'], name='audit_logs_action_3c9e71_idx'),
            models.Index(fields=['facility_id', 'timestamp'], name='audit_logs_facilit_b47d20_idx'),
        ]

    def __str__(self):
        return f"{self.action}:{self.entity_type}/{self.entity_id} by {self.user_id}@{self.timestamp:%F %T}"
