"""
Convenience builders for common audit events.

Each helper only shapes an :class:`AuditRecord` and queues it; none of
them touches the database directly or raises on persistence problems.
"""
from __future__ import annotations

from typing import Any, Optional

from hub.services.audit import AuditAction, AuditRecord, AuditSink, get_audit_sink


def _emit(record: AuditRecord, sink: Optional[AuditSink]) -> AuditRecord:
    (sink or get_audit_sink()).enqueue(record)
    return record


def log_patient_creation(patient_id: str, user_id: str, user_role: str, user_name: str,
                         facility_id: Optional[str] = None, *, sink: Optional[AuditSink] = None) -> AuditRecord:
    return _emit(AuditRecord(
        action=AuditAction.CREATE, entity_type='PATIENT', entity_id=patient_id,
        user_id=user_id, user_role=user_role, user_name=user_name,
        description='Created new patient record', facility_id=facility_id,
    ), sink)


def log_patient_update(patient_id: str, user_id: str, user_role: str, user_name: str, changes: Any,
                       facility_id: Optional[str] = None, *, sink: Optional[AuditSink] = None) -> AuditRecord:
    return _emit(AuditRecord(
        action=AuditAction.UPDATE, entity_type='PATIENT', entity_id=patient_id,
        user_id=user_id, user_role=user_role, user_name=user_name,
        description='Updated patient record', changes=changes, facility_id=facility_id,
    ), sink)


def log_emergency_creation(emergency_id: str, user_id: str, user_role: str, user_name: str,
                           facility_id: Optional[str] = None, *, sink: Optional[AuditSink] = None) -> AuditRecord:
    return _emit(AuditRecord(
        action=AuditAction.CREATE, entity_type='EMERGENCY', entity_id=emergency_id,
        user_id=user_id, user_role=user_role, user_name=user_name,
        description='Created new emergency incident', facility_id=facility_id,
    ), sink)


def log_transfer_request(transfer_id: str, user_id: str, user_role: str, user_name: str,
                         facility_id: Optional[str] = None, *, sink: Optional[AuditSink] = None) -> AuditRecord:
    return _emit(AuditRecord(
        action=AuditAction.CREATE, entity_type='TRANSFER', entity_id=transfer_id,
        user_id=user_id, user_role=user_role, user_name=user_name,
        description='Requested patient transfer', facility_id=facility_id,
    ), sink)


def log_dispatch_creation(dispatch_id: str, user_id: str, user_role: str, user_name: str,
                          facility_id: Optional[str] = None, *, sink: Optional[AuditSink] = None) -> AuditRecord:
    return _emit(AuditRecord(
        action=AuditAction.CREATE, entity_type='DISPATCH', entity_id=dispatch_id,
        user_id=user_id, user_role=user_role, user_name=user_name,
        description='Created new emergency dispatch', facility_id=facility_id,
    ), sink)


def log_ambulance_assignment(dispatch_id: str, ambulance_id: str, user_id: str, user_role: str, user_name: str,
                             facility_id: Optional[str] = None, *, sink: Optional[AuditSink] = None) -> AuditRecord:
    return _emit(AuditRecord(
        action=AuditAction.UPDATE, entity_type='DISPATCH', entity_id=dispatch_id,
        user_id=user_id, user_role=user_role, user_name=user_name,
        description=f'Assigned ambulance {ambulance_id} to dispatch',
        changes={'ambulanceId': ambulance_id}, facility_id=facility_id,
    ), sink)


def log_status_update(entity_type: str, entity_id: str, old_status: str, new_status: str,
                      user_id: str, user_role: str, user_name: str,
                      facility_id: Optional[str] = None, *, sink: Optional[AuditSink] = None) -> AuditRecord:
    return _emit(AuditRecord(
        action=AuditAction.UPDATE, entity_type=entity_type, entity_id=entity_id,
        user_id=user_id, user_role=user_role, user_name=user_name,
        description=f'Updated {entity_type.lower()} status from {old_status} to {new_status}',
        changes={'oldStatus': old_status, 'newStatus': new_status}, facility_id=facility_id,
    ), sink)


def log_login(user_id: str, user_role: str, user_name: str, ip_address: Optional[str] = None,
              user_agent: Optional[str] = None, *, sink: Optional[AuditSink] = None) -> AuditRecord:
    return _emit(AuditRecord(
        action=AuditAction.LOGIN, entity_type='USER', entity_id=user_id,
        user_id=user_id, user_role=user_role, user_name=user_name,
        description='User logged into the system',
        ip_address=ip_address, user_agent=user_agent,
    ), sink)


def log_failed_login(user_id: str, user_role: str, user_name: str, error_message: str,
                     ip_address: Optional[str] = None, user_agent: Optional[str] = None,
                     *, critical: bool = False, sink: Optional[AuditSink] = None) -> AuditRecord:
    """Failed sign-in.  With ``critical`` the record is written synchronously
    (falling back to the queue) instead of only being queued."""
    record = AuditRecord(
        action=AuditAction.LOGIN, entity_type='USER', entity_id=user_id,
        user_id=user_id, user_role=user_role, user_name=user_name,
        description='Failed login attempt',
        ip_address=ip_address, user_agent=user_agent,
        success=False, error_message=error_message,
    )
    if critical:
        (sink or get_audit_sink()).write_critical(record)
        return record
    return _emit(record, sink)


def log_logout(user_id: str, user_role: str, user_name: str, ip_address: Optional[str] = None,
               user_agent: Optional[str] = None, *, sink: Optional[AuditSink] = None) -> AuditRecord:
    return _emit(AuditRecord(
        action=AuditAction.LOGOUT, entity_type='USER', entity_id=user_id,
        user_id=user_id, user_role=user_role, user_name=user_name,
        description='User logged out of the system',
        ip_address=ip_address, user_agent=user_agent,
    ), sink)


def log_sha_claim_submission(claim_id: str, user_id: str, user_role: str, user_name: str,
                             facility_id: Optional[str] = None, *, sink: Optional[AuditSink] = None) -> AuditRecord:
    return _emit(AuditRecord(
        action=AuditAction.SUBMIT_CLAIM, entity_type='SHA_CLAIM', entity_id=claim_id,
        user_id=user_id, user_role=user_role, user_name=user_name,
        description='Submitted SHA claim for processing', facility_id=facility_id,
    ), sink)


def log_resource_request(resource_id: str, user_id: str, user_role: str, user_name: str,
                         facility_id: Optional[str] = None, *, sink: Optional[AuditSink] = None) -> AuditRecord:
    return _emit(AuditRecord(
        action=AuditAction.CREATE, entity_type='RESOURCE_REQUEST', entity_id=resource_id,
        user_id=user_id, user_role=user_role, user_name=user_name,
        description='Requested new resource', facility_id=facility_id,
    ), sink)


def log_staff_creation(staff_id: str, user_id: str, user_role: str, user_name: str,
                       facility_id: Optional[str] = None, *, sink: Optional[AuditSink] = None) -> AuditRecord:
    return _emit(AuditRecord(
        action=AuditAction.CREATE, entity_type='STAFF', entity_id=staff_id,
        user_id=user_id, user_role=user_role, user_name=user_name,
        description='Created new staff member', facility_id=facility_id,
    ), sink)


def log_staff_update(staff_id: str, user_id: str, user_role: str, user_name: str, changes: Any,
                     facility_id: Optional[str] = None, *, sink: Optional[AuditSink] = None) -> AuditRecord:
    return _emit(AuditRecord(
        action=AuditAction.UPDATE, entity_type='STAFF', entity_id=staff_id,
        user_id=user_id, user_role=user_role, user_name=user_name,
        description='Updated staff member information', changes=changes, facility_id=facility_id,
    ), sink)


def log_staff_deactivation(staff_id: str, user_id: str, user_role: str, user_name: str,
                           facility_id: Optional[str] = None, *, sink: Optional[AuditSink] = None) -> AuditRecord:
    return _emit(AuditRecord(
        action=AuditAction.DELETE, entity_type='STAFF', entity_id=staff_id,
        user_id=user_id, user_role=user_role, user_name=user_name,
        description='Deactivated staff member', facility_id=facility_id,
    ), sink)


def log_schedule_assignment(schedule_id: str, staff_id: str, user_id: str, user_role: str, user_name: str,
                            facility_id: Optional[str] = None, *, sink: Optional[AuditSink] = None) -> AuditRecord:
    return _emit(AuditRecord(
        action=AuditAction.CREATE, entity_type='STAFF_SCHEDULE', entity_id=schedule_id,
        user_id=user_id, user_role=user_role, user_name=user_name,
        description=f'Assigned schedule to staff member {staff_id}',
        changes={'staffId': staff_id}, facility_id=facility_id,
    ), sink)
