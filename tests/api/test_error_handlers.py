'''
Tests for how storage-level errors are surfaced.
'''
from sqlalchemy.exc import IntegrityError

from campus_link_backend.common.exceptions import ConflictError, DuplicateObligation
from campus_link_backend.main import conflict_for_integrity_error


def integrity_error(message: str) -> IntegrityError:
    return IntegrityError("INSERT ...", {}, Exception(message))


def test_duplicate_obligation_from_sqlite():
    error = conflict_for_integrity_error(integrity_error(
        "UNIQUE constraint failed: student_fee_obligations.student_id, student_fee_obligations.fee_definition_id"
    ))
    assert isinstance(error, DuplicateObligation)
    assert error.status_code == 409

def test_duplicate_obligation_from_postgres():
    error = conflict_for_integrity_error(integrity_error(
        'duplicate key value violates unique constraint "student_fee_obligations_student_id_fee_definition_id_key"'
    ))
    assert isinstance(error, DuplicateObligation)

def test_other_violations_are_generic_conflicts():
    error = conflict_for_integrity_error(integrity_error(
        'duplicate key value violates unique constraint "tenants_domain_key"'
    ))
    assert type(error) is ConflictError
    assert error.detail == "The request conflicts with existing data."
